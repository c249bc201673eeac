from __future__ import annotations
import math
from typing import Iterable


def q(x: float | None, step: float) -> float | None:
    """Quantize a float to the nearest step (half away from zero) for stable hashing."""
    if x is None:
        return None
    x = float(x)
    if math.isnan(x) or math.isinf(x):
        return x
    inv = 1.0 / step
    y = x * inv
    if y >= 0:
        yq = math.floor(y + 0.5)
    else:
        yq = -math.floor(-y + 0.5)
    return yq / inv


def q_list(xs: Iterable[float | None], step: float) -> list[float | None]:
    """Quantize a sequence (list or numpy array) into a plain list."""
    return [q(v, step) for v in xs]


def q_matrix(rows: Iterable[Iterable[float]], step: float) -> list[list[float | None]]:
    """Quantize a 2D array row by row."""
    return [q_list(row, step) for row in rows]
