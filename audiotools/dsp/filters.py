"""Biquad cascades and the BS.1770 K-weighting pre-filter.

Filtering runs through ``scipy.signal.sosfilt`` with explicit delay
registers so state carries across the whole buffer in one pass. Each channel
owns its own ``FilterState``; nothing is shared between channels or calls.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.signal import sosfilt

from audiotools.errors import InputError


REFERENCE_RATE_HZ = 48000

# ITU-R BS.1770-4 Table 1 / Table 2 coefficients at 48 kHz.
K_WEIGHTING_48K_SOS = np.array([
    [1.53512485958697, -2.69169618940638, 1.19839281085285,
     1.0, -1.69065929318241, 0.73248077421585],
    [1.0, -2.0, 1.0,
     1.0, -1.99004745483398, 0.99007225036621],
], dtype=np.float64)
K_WEIGHTING_48K_SOS.flags.writeable = False

# Analog prototype parameters that reproduce the 48 kHz tables above.
_SHELF_F0_HZ = 1681.974450955533
_SHELF_GAIN_DB = 3.999843853973347
_SHELF_Q = 0.7071752369554196
_SHELF_VB_EXPONENT = 0.4996667741545416
_HIGHPASS_F0_HZ = 38.13547087602444
_HIGHPASS_Q = 0.5003270373238773


@dataclass(frozen=True)
class Biquad:
    """Normalized second-order section (a0 == 1)."""
    b0: float
    b1: float
    b2: float
    a1: float
    a2: float

    def as_sos_row(self) -> list[float]:
        return [self.b0, self.b1, self.b2, 1.0, self.a1, self.a2]


def cascade(*sections: Biquad) -> np.ndarray:
    """Stack biquads into an (n, 6) second-order-sections array."""
    if not sections:
        raise InputError("cascade needs at least one section.")
    return np.array([s.as_sos_row() for s in sections], dtype=np.float64)


def _high_shelf(fs: float) -> Biquad:
    k = np.tan(np.pi * _SHELF_F0_HZ / fs)
    vh = 10.0 ** (_SHELF_GAIN_DB / 20.0)
    vb = vh ** _SHELF_VB_EXPONENT
    a0 = 1.0 + k / _SHELF_Q + k * k
    return Biquad(
        b0=float((vh + vb * k / _SHELF_Q + k * k) / a0),
        b1=float(2.0 * (k * k - vh) / a0),
        b2=float((vh - vb * k / _SHELF_Q + k * k) / a0),
        a1=float(2.0 * (k * k - 1.0) / a0),
        a2=float((1.0 - k / _SHELF_Q + k * k) / a0),
    )


def _high_pass(fs: float) -> Biquad:
    k = np.tan(np.pi * _HIGHPASS_F0_HZ / fs)
    a0 = 1.0 + k / _HIGHPASS_Q + k * k
    return Biquad(
        b0=1.0,
        b1=-2.0,
        b2=1.0,
        a1=float(2.0 * (k * k - 1.0) / a0),
        a2=float((1.0 - k / _HIGHPASS_Q + k * k) / a0),
    )


def k_weighting_biquads(sample_rate: float) -> tuple[Biquad, Biquad]:
    """Recompute both K-weighting stages for an arbitrary sample rate."""
    fs = float(sample_rate)
    if fs <= 2.0 * _SHELF_F0_HZ:
        raise InputError(
            f"sample rate {sample_rate} Hz is too low for K-weighting."
        )
    return _high_shelf(fs), _high_pass(fs)


def k_weighting_sos(sample_rate: float) -> np.ndarray:
    """
    K-weighting cascade (head-diffraction shelf, then RLB high-pass).

    At 48 kHz the standard's published table is returned; any other rate is
    recomputed through the bilinear transform with pre-warping.
    """
    if int(sample_rate) == REFERENCE_RATE_HZ and float(sample_rate) == REFERENCE_RATE_HZ:
        return K_WEIGHTING_48K_SOS.copy()
    return cascade(*k_weighting_biquads(sample_rate))


@dataclass
class FilterState:
    """Coefficients plus two delay registers per section for one channel."""
    sos: np.ndarray
    zi: np.ndarray

    @classmethod
    def create(cls, sos: np.ndarray) -> "FilterState":
        sos = np.asarray(sos, dtype=np.float64)
        if sos.ndim != 2 or sos.shape[1] != 6:
            raise InputError("sos must have shape (n_sections, 6).")
        return cls(sos=sos, zi=np.zeros((sos.shape[0], 2), dtype=np.float64))

    def process(self, x: np.ndarray) -> np.ndarray:
        """Filter a chunk, continuing from the stored registers."""
        x = np.asarray(x, dtype=np.float64)
        if x.ndim != 1:
            raise InputError("FilterState.process expects a 1D sequence.")
        y, self.zi = sosfilt(self.sos, x, zi=self.zi)
        return y


def apply_sos(samples: np.ndarray, sos: np.ndarray) -> np.ndarray:
    """
    Filter each channel independently in a single pass.

    Args:
        samples: 1D mono array or 2D (frames, channels) array
        sos: Second-order sections, shape (n_sections, 6)

    Returns:
        New array with the same shape; the input is not modified.
    """
    x = np.asarray(samples, dtype=np.float64)
    if x.ndim == 1:
        return FilterState.create(sos).process(x)
    if x.ndim != 2:
        raise InputError("apply_sos expects 1D or 2D (frames, channels) samples.")
    out = np.empty_like(x)
    for ch in range(x.shape[1]):
        out[:, ch] = FilterState.create(sos).process(x[:, ch])
    return out


def k_weight(samples: np.ndarray, sample_rate: float) -> np.ndarray:
    """Apply K-weighting per channel."""
    return apply_sos(samples, k_weighting_sos(sample_rate))
