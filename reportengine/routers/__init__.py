"""API routers."""

from . import catalog, metrics, presets, system

__all__ = ["catalog", "metrics", "presets", "system"]
