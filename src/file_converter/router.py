"""Pipeline router: turns a conversion request into an ordered stage plan."""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Mapping, Optional

from .errors import RoutingError, UnsupportedInputError
from .formats import ConversionDomain, domain_for
from .models import ConversionPlan, ConversionRequest, Stage
from .plugins.registry import AdapterCatalog

logger = logging.getLogger(__name__)

MAX_STAGES = 2

# Intermediate format each source family passes through when no adapter
# maps the request directly.
DEFAULT_NORMALIZATION: Dict[ConversionDomain, str] = {
    ConversionDomain.DOCUMENT: "pdf",
    ConversionDomain.IMAGE: "pdf",
    ConversionDomain.PDF: "png",
}

NORMALIZING_DOMAINS: FrozenSet[ConversionDomain] = frozenset(
    {ConversionDomain.IMAGE, ConversionDomain.PDF, ConversionDomain.DOCUMENT}
)


class PipelineRouter:
    """Chooses a direct adapter or a chain through a normalization format.

    The declared request domain is always tried first; the family of the
    stage's source extension is only a fallback lookup key.
    """

    def __init__(
        self,
        catalog: AdapterCatalog,
        *,
        normalization: Optional[Mapping[ConversionDomain, str]] = None,
        normalizing_domains: Optional[FrozenSet[ConversionDomain]] = None,
        max_stages: int = MAX_STAGES,
    ) -> None:
        self.catalog = catalog
        self.normalization = dict(DEFAULT_NORMALIZATION if normalization is None else normalization)
        self.normalizing_domains = NORMALIZING_DOMAINS if normalizing_domains is None else normalizing_domains
        self.max_stages = max_stages

    def plan(self, request: ConversionRequest) -> ConversionPlan:
        source = request.input_format
        if not self.catalog.accepts(source):
            raise UnsupportedInputError(
                f"Unsupported input format: {source or 'unknown'}",
                filename=request.original_name,
            )

        stages = self._route(request, source, request.target_format, depth=0)
        plan = ConversionPlan(request=request, stages=stages)
        logger.info(
            "Routed %s (%s) %s->%s via %s",
            request.original_name,
            request.domain.value,
            source,
            request.target_format,
            " -> ".join(stage.adapter.slug for stage in stages),
        )
        return plan

    def normalization_target(self, domain: ConversionDomain, source: str) -> Optional[str]:
        if domain not in self.normalizing_domains:
            return None
        family = domain_for(source)
        if family is None:
            return None
        return self.normalization.get(family)

    def _direct(self, domain: ConversionDomain, source: str, target: str) -> Optional[Stage]:
        match = self.catalog.find((domain, domain_for(source)), source, target)
        if match is None:
            return None
        stage_domain, adapter = match
        return Stage(domain=stage_domain, source_format=source, target_format=target, adapter=adapter)

    def _route(self, request: ConversionRequest, source: str, target: str, depth: int) -> List[Stage]:
        if depth >= self.max_stages:
            raise RoutingError(
                f"No conversion path from {request.input_format} to {request.target_format} "
                f"within {self.max_stages} stages",
                filename=request.original_name,
            )

        direct = self._direct(request.domain, source, target)
        if direct is not None:
            return [direct]

        if source == target:
            # Same-format requests never pass through a normalization format.
            raise RoutingError(
                f"No converter rewrites {source} in domain {request.domain.value}",
                filename=request.original_name,
            )

        intermediate = self.normalization_target(request.domain, source)
        if intermediate is None:
            raise RoutingError(
                f"No converter for {source}->{target} in domain {request.domain.value}",
                filename=request.original_name,
            )
        if intermediate in (source, target):
            # Normalizing would loop back onto the same conversion.
            raise RoutingError(
                f"No direct converter for {source}->{target} and normalization through "
                f"{intermediate} would cycle",
                filename=request.original_name,
            )

        first = self._direct(request.domain, source, intermediate)
        if first is None:
            raise RoutingError(
                f"Cannot normalize {source} to {intermediate} for {request.domain.value} conversion",
                filename=request.original_name,
            )

        logger.debug("Chaining %s->%s through %s (depth %d)", source, target, intermediate, depth)
        rest = self._route(request, intermediate, target, depth + 1)
        stages = [first, *rest]
        if len(stages) > self.max_stages:
            raise RoutingError(
                f"Conversion {request.input_format}->{request.target_format} needs more than "
                f"{self.max_stages} stages",
                filename=request.original_name,
            )
        return stages
