"""Test package for the conversion engine."""
