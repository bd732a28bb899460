"""Public import for the OpenAPI builder (served at /openapi.json and dumped by scripts/generate_spec.py)."""
from .openapi_builder import build_openapi_spec  # noqa: F401

__all__ = ["build_openapi_spec"]
