from __future__ import annotations

import importlib
from typing import Any, Iterable, List


def load_symbol(dotted: str) -> Any:
    """
    Load a class or function from a dotted path.
    Supports both "package.module:ClassName" and "package.module.ClassName".
    """
    if ":" in dotted:
        module_name, symbol_name = dotted.split(":", 1)
    else:
        module_name, symbol_name = dotted.rsplit(".", 1)

    module = importlib.import_module(module_name)
    try:
        return getattr(module, symbol_name)
    except AttributeError as exc:
        raise ImportError(f"{module_name!r} has no attribute {symbol_name!r}") from exc


def split_dotted_list(raw: str | Iterable[str] | None) -> List[str]:
    """Accept "a:B, c:D" or a list and return the non-empty dotted paths."""
    if not raw:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    return [item.strip() for item in raw if item and item.strip()]
