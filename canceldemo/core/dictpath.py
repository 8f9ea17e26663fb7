# canceldemo/core/dictpath.py
from __future__ import annotations
from collections.abc import Mapping
from typing import Any

__all__ = ["getByPath"]



def getByPath(data: Any, path: str) -> Any:
    """
    Read a dotted path ("hosts.core.port") from nested mappings.

    Digit segments index into lists. Returns None when any segment is missing.
    """
    if not path:
        return data
    current = data
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return None
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current
