"""Peak, RMS, and decibel conversion helpers."""
from __future__ import annotations

import numpy as np

from audiotools.errors import InputError

DEFAULT_FLOOR_DB = -120.0


def _validate_mono(x: np.ndarray) -> np.ndarray:
    """Validate and coerce mono audio arrays."""
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise InputError("Expected 1D mono audio array.")
    if x.size == 0:
        raise InputError("Expected non-empty audio array.")
    return x


def amplitude_to_db(values, floor_db: float = DEFAULT_FLOOR_DB) -> np.ndarray:
    """Convert magnitudes to dB via 20*log10(|x|), floored at ``floor_db``."""
    x = np.abs(np.asarray(values, dtype=np.float64))
    floor_amp = 10.0 ** (float(floor_db) / 20.0)
    return 20.0 * np.log10(np.maximum(x, floor_amp))


def db_to_amplitude(values_db) -> np.ndarray:
    """Inverse of amplitude_to_db for values above the floor."""
    return 10.0 ** (np.asarray(values_db, dtype=np.float64) / 20.0)


def linear_to_dbfs(value: float) -> float | None:
    """Scalar amplitude to dBFS; digital silence has no level and maps to None."""
    if value <= 0:
        return None
    return float(20.0 * np.log10(value))


def peak_dbfs_mono(x: np.ndarray) -> float | None:
    """Compute sample peak in dBFS for mono audio."""
    x = _validate_mono(x)
    return linear_to_dbfs(float(np.max(np.abs(x))))


def rms_dbfs_mono(x: np.ndarray) -> float | None:
    """Compute RMS level in dBFS for mono audio."""
    x = _validate_mono(x)
    return linear_to_dbfs(float(np.sqrt(np.mean(x ** 2))))
