"""Sample-peak and true-peak measurement.

True peak follows BS.1770-4 Annex 2: oversample, then take the absolute
maximum. Oversampling uses ``scipy.signal.resample_poly`` (polyphase FIR,
Kaiser-windowed sinc) and runs over fixed-size chunks with enough context
on both sides that the result matches a whole-buffer pass.
"""
from __future__ import annotations

import numpy as np
from scipy.signal import resample_poly

from audiotools.errors import InputError
from audiotools.metrics.levels import linear_to_dbfs

MIN_OVERSAMPLE = 4
_CHUNK_FRAMES = 1 << 18
# resample_poly's default filter spans 10 input samples per side.
_CONTEXT_FRAMES = 64


def _as_2d(samples: np.ndarray) -> np.ndarray:
    x = np.asarray(samples, dtype=np.float64)
    if x.ndim == 1:
        x = x.reshape(-1, 1)
    if x.ndim != 2 or x.shape[0] == 0:
        raise InputError("Expected non-empty 1D or 2D (frames, channels) audio.")
    return x


def sample_peak(samples: np.ndarray) -> float:
    """Maximum absolute sample value across all channels (linear)."""
    return float(np.max(np.abs(_as_2d(samples))))


def _oversampled_peak_mono(x: np.ndarray, factor: int) -> float:
    n = x.size
    peak = 0.0
    for start in range(0, n, _CHUNK_FRAMES):
        stop = min(n, start + _CHUNK_FRAMES)
        lo = max(0, start - _CONTEXT_FRAMES)
        hi = min(n, stop + _CONTEXT_FRAMES)
        up = resample_poly(x[lo:hi], factor, 1)
        a = (start - lo) * factor
        b = a + (stop - start) * factor
        seg = up[a:b]
        if seg.size:
            peak = max(peak, float(np.max(np.abs(seg))))
    return peak


def true_peak(samples: np.ndarray, oversample: int = MIN_OVERSAMPLE) -> float:
    """
    Estimate the true (inter-sample) peak across all channels (linear).

    The result is never below the sample peak.
    """
    if isinstance(oversample, bool) or int(oversample) != oversample or oversample < MIN_OVERSAMPLE:
        raise InputError(f"true-peak oversampling must be an integer >= {MIN_OVERSAMPLE}.")
    x = _as_2d(samples)
    peak = float(np.max(np.abs(x)))
    for ch in range(x.shape[1]):
        peak = max(peak, _oversampled_peak_mono(x[:, ch], int(oversample)))
    return peak


def sample_peak_dbfs(samples: np.ndarray) -> float | None:
    return linear_to_dbfs(sample_peak(samples))


def true_peak_dbtp(samples: np.ndarray, oversample: int = MIN_OVERSAMPLE) -> float | None:
    return linear_to_dbfs(true_peak(samples, oversample=oversample))


def true_peak_dbtp_mono(
    x: np.ndarray,
    fs: float,
    oversample: int = MIN_OVERSAMPLE
) -> float | None:
    """
    Compute true peak level in dBTP for mono audio.

    Returns None for digital silence.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise InputError("true_peak_dbtp_mono expects 1D mono audio.")
    if x.size == 0:
        raise InputError("true_peak_dbtp_mono expects non-empty audio.")
    if fs <= 0:
        raise InputError("true_peak_dbtp_mono expects a positive sample rate.")
    return true_peak_dbtp(x, oversample=oversample)
