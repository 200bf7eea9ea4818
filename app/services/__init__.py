"""Service package exports."""

from __future__ import annotations

import importlib
from typing import Any

__all__ = ["crud_orchestrator", "resource_catalog", "table_view"]


def __getattr__(name: str) -> Any:
    if name in __all__:
        return importlib.import_module(f"app.services.{name}")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
