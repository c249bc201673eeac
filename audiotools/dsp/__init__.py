"""DSP modules for audiotools."""

from audiotools.dsp.filters import (
    FilterState,
    apply_sos,
    k_weight,
    k_weighting_sos,
)
from audiotools.dsp.normalize import (
    apply_normalization,
    measure_peaks,
    plan_normalization,
    remix_channels,
)

__all__ = [
    "FilterState",
    "apply_sos",
    "k_weight",
    "k_weighting_sos",
    "apply_normalization",
    "measure_peaks",
    "plan_normalization",
    "remix_channels",
]
