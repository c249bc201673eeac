from __future__ import annotations
import json

import numpy as np


def _default(obj):
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonical_dumps(obj) -> str:
    """Serialize to canonical JSON (sorted keys, minimal whitespace, numpy values unwrapped)."""
    return json.dumps(
        obj,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        default=_default,
    )


def pretty_dumps(obj) -> str:
    """Indented JSON for files and stdout, with the same key order as canonical output."""
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, indent=2, default=_default)
