"""Error code registry and the conversion error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ErrorCodeSpec:
    code: str
    zh: str
    en: str
    status: int
    http_status: int


class ErrorRegistry:
    def __init__(self) -> None:
        self._codes: Dict[str, ErrorCodeSpec] = {}

    def register(self, spec: ErrorCodeSpec) -> None:
        if spec.code in self._codes:
            raise ValueError(f"Error code {spec.code} already registered")
        self._codes[spec.code] = spec

    def get(self, code: str) -> ErrorCodeSpec:
        if code not in self._codes:
            raise KeyError(f"Unknown error code: {code}")
        return self._codes[code]

    def to_dict(self) -> Dict[str, ErrorCodeSpec]:
        return dict(self._codes)


ERRORS = ErrorRegistry()


def register_default_errors() -> None:
    defaults = (
        ("ERR_FILE_TOO_LARGE", "单个文件大小超出限制", "File exceeds size limit", 4201, HTTPStatus.BAD_REQUEST),
        (
            "ERR_BATCH_LIMIT_EXCEEDED",
            "批量任务超出数量限制",
            "Batch is empty or exceeds the allowed number of files",
            4202,
            HTTPStatus.BAD_REQUEST,
        ),
        ("ERR_FORMAT_UNSUPPORTED", "文件格式暂不支持", "Unsupported format", 4203, HTTPStatus.BAD_REQUEST),
        (
            "ERR_BATCH_MISMATCH",
            "文件数量与格式描述数量不一致",
            "Mismatch between files and formats",
            4204,
            HTTPStatus.BAD_REQUEST,
        ),
        ("ERR_FIELD_MISSING", "缺少必填字段", "Missing required field", 4205, HTTPStatus.BAD_REQUEST),
        ("ERR_INPUT_INVALID", "输入文件无效或已损坏", "Invalid or corrupted input file", 4206, HTTPStatus.BAD_REQUEST),
        ("ERR_OUTPUT_NOT_FOUND", "转换结果文件不存在", "Converted file not found", 4207, HTTPStatus.NOT_FOUND),
        (
            "ERR_ROUTE_NOT_FOUND",
            "不存在可用的转换路径",
            "No conversion path between the requested formats",
            4221,
            HTTPStatus.UNPROCESSABLE_ENTITY,
        ),
        (
            "ERR_INPUT_UNSUPPORTED",
            "没有转换器可以处理该输入格式",
            "No converter accepts the input format",
            4222,
            HTTPStatus.UNPROCESSABLE_ENTITY,
        ),
        ("ERR_ADAPTER_FAILED", "转换器执行失败", "Conversion failed", 5001, HTTPStatus.INTERNAL_SERVER_ERROR),
        ("ERR_TIMEOUT", "转换超时", "Conversion timed out", 5041, HTTPStatus.GATEWAY_TIMEOUT),
        ("ERR_CLEANUP_FAILED", "临时文件清理失败", "Artifact cleanup failed", 5101, HTTPStatus.INTERNAL_SERVER_ERROR),
    )
    for code, zh, en, status, http_status in defaults:
        ERRORS.register(ErrorCodeSpec(code=code, zh=zh, en=en, status=status, http_status=int(http_status)))


register_default_errors()


class ConversionError(Exception):
    """Base class for every failure the engine reports to callers."""

    kind = "conversion"
    default_code = "ERR_ADAPTER_FAILED"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        filename: str | None = None,
    ) -> None:
        self.code = code or self.default_code
        self.spec = ERRORS.get(self.code)
        self.message = message or self.spec.en
        self.filename = filename
        super().__init__(self.message)

    def with_filename(self, filename: str | None) -> "ConversionError":
        if filename and not self.filename:
            self.filename = filename
        return self

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": "failure",
            "error_code": self.spec.code,
            "error_status": self.spec.status,
            "error_kind": self.kind,
            "message": self.message,
            "zh_message": self.spec.zh,
        }
        if self.filename:
            payload["filename"] = self.filename
        return payload


class ValidationError(ConversionError):
    kind = "validation"
    default_code = "ERR_FORMAT_UNSUPPORTED"


class RoutingError(ConversionError):
    kind = "routing"
    default_code = "ERR_ROUTE_NOT_FOUND"


class UnsupportedInputError(RoutingError):
    default_code = "ERR_INPUT_UNSUPPORTED"


class AdapterError(ConversionError):
    kind = "adapter"
    default_code = "ERR_ADAPTER_FAILED"

    def __init__(self, message: str | None = None, *, adapter: Optional[str] = None, **kwargs: Any) -> None:
        self.adapter = adapter
        if adapter and message:
            message = f"[{adapter}] {message}"
        super().__init__(message, **kwargs)


class JobTimeoutError(ConversionError):
    kind = "timeout"
    default_code = "ERR_TIMEOUT"


class CleanupError(ConversionError):
    kind = "cleanup"
    default_code = "ERR_CLEANUP_FAILED"

    def __init__(self, message: str | None = None, *, path: str | None = None, **kwargs: Any) -> None:
        self.path = path
        super().__init__(message, **kwargs)
