"""Onset and silence boundary detection."""
from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np

from audiotools.errors import InputError

CRITERIA = ("rms", "peak")
DIRECTIONS = ("start", "end")


@dataclass(frozen=True)
class AutoStartConfig:
    """
    Boundary detection parameters.

    The signal is cut into consecutive spans of ``window_size`` samples. A
    boundary is the first span that opens a run of above-threshold spans
    lasting at least ``min_duration_s`` and never fewer than two spans, so
    an isolated click cannot trigger it.
    """
    threshold: float = 0.01
    window_size: int = 512
    min_duration_s: float = 0.01
    criterion: str = "rms"
    snap_to_zero_crossing: bool = True

    def validate(self) -> None:
        if not self.threshold > 0:
            raise InputError("threshold must be positive.")
        if int(self.window_size) != self.window_size or self.window_size < 1:
            raise InputError("window_size must be a positive integer.")
        if self.min_duration_s < 0:
            raise InputError("min_duration_s must not be negative.")
        if self.criterion not in CRITERIA:
            raise InputError(f"Unknown criterion: {self.criterion}")


def _span_levels(x: np.ndarray, window: int, criterion: str) -> np.ndarray:
    n_spans = x.size // window
    spans = x[:n_spans * window].reshape(n_spans, window)
    if criterion == "peak":
        return np.max(np.abs(spans), axis=1)
    return np.sqrt(np.mean(spans ** 2, axis=1))


def _first_sustained_run(above: np.ndarray, run: int) -> int | None:
    if above.size < run:
        return None
    counts = np.concatenate(([0], np.cumsum(above.astype(np.int64))))
    hits = np.flatnonzero(counts[run:] - counts[:-run] == run)
    if hits.size == 0:
        return None
    return int(hits[0])


def _first_zero_crossing(x: np.ndarray, start: int, stop: int) -> int | None:
    seg = x[start:min(stop, x.size)]
    if seg.size < 2:
        return None
    neg = seg < 0.0
    crossings = np.flatnonzero(neg[:-1] != neg[1:])
    if crossings.size == 0:
        return None
    return start + int(crossings[0])


def detect_boundary(
    samples: np.ndarray,
    fs: float,
    config: AutoStartConfig | None = None,
    direction: str = "start"
) -> float | None:
    """
    Detect where sustained content starts (or, scanning backwards, ends).

    Args:
        samples: Mono audio samples (1D array)
        fs: Sample rate in Hz
        config: Detection parameters (defaults: -40 dBFS RMS, 512-sample spans)
        direction: ``start`` scans forward, ``end`` scans from the end

    Returns:
        Boundary in seconds from the beginning of ``samples``, or None when
        nothing is sustained above the threshold.
    """
    cfg = config or AutoStartConfig()
    cfg.validate()
    if direction not in DIRECTIONS:
        raise InputError(f"Unknown direction: {direction}")
    x = np.asarray(samples, dtype=np.float64)
    if x.ndim != 1:
        raise InputError("detect_boundary expects mono audio.")
    if fs <= 0:
        raise InputError("detect_boundary expects a positive sample rate.")
    if direction == "end":
        x = x[::-1]

    window = int(cfg.window_size)
    levels = _span_levels(x, window, cfg.criterion)
    run = max(2, int(math.ceil(cfg.min_duration_s * fs / window)))
    first = _first_sustained_run(levels > cfg.threshold, run)
    if first is None:
        return None

    offset = first * window
    if cfg.snap_to_zero_crossing:
        zc = _first_zero_crossing(x, offset, offset + run * window)
        if zc is not None:
            offset = zc
    if direction == "end":
        return (x.size - offset) / float(fs)
    return offset / float(fs)


def silence_bounds(
    samples: np.ndarray,
    fs: float,
    config: AutoStartConfig | None = None
) -> dict:
    """Leading/trailing silence and content bounds for a mono signal."""
    x = np.asarray(samples, dtype=np.float64)
    duration = x.size / float(fs) if fs > 0 else 0.0
    start = detect_boundary(x, fs, config, direction="start")
    end = detect_boundary(x, fs, config, direction="end")
    if start is None or end is None or end <= start:
        return {
            "content_found": False,
            "content_start_s": None,
            "content_end_s": None,
            "leading_silence_s": duration,
            "trailing_silence_s": 0.0,
            "duration_s": duration,
        }
    return {
        "content_found": True,
        "content_start_s": float(start),
        "content_end_s": float(end),
        "leading_silence_s": float(start),
        "trailing_silence_s": float(duration - end),
        "duration_s": duration,
    }
