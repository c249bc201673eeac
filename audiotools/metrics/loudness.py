"""EBU R128 / ITU-R BS.1770-4 loudness measurement.

Integrated loudness uses 400 ms gating blocks with 75 % overlap, an absolute
gate at -70 LUFS and a relative gate 10 LU below the absolute-gated mean.
Loudness range follows EBU Tech 3342: 3 s short-term windows, absolute gate
at -70 LUFS, relative gate 20 LU below, and the 10th to 95th percentile
spread of what survives.
"""
from __future__ import annotations

from typing import Sequence

import numpy as np

from audiotools.dsp.filters import k_weight
from audiotools.errors import InputError
from audiotools.metrics.levels import linear_to_dbfs
from audiotools.metrics.truepeak import MIN_OVERSAMPLE, sample_peak, true_peak
from audiotools.types import GatingBlock, LoudnessResult, LoudnessStatus, PcmBuffer

LOUDNESS_OFFSET_DB = -0.691
ABSOLUTE_GATE_LUFS = -70.0
RELATIVE_GATE_LU = -10.0
LRA_RELATIVE_GATE_LU = -20.0
BLOCK_SECONDS = 0.4
BLOCK_HOP_SECONDS = 0.1
SHORT_TERM_SECONDS = 3.0
LRA_LOW_PERCENTILE = 10.0
LRA_HIGH_PERCENTILE = 95.0
SURROUND_WEIGHT = 1.41


def default_channel_weights(channels: int) -> tuple[float, ...]:
    """
    BS.1770 channel weights for common layouts.

    5 channels are read as L R C Ls Rs, 6 channels as L R C LFE Ls Rs
    (LFE excluded). Every other layout weighs each channel 1.0.
    """
    if channels == 5:
        return (1.0, 1.0, 1.0, SURROUND_WEIGHT, SURROUND_WEIGHT)
    if channels == 6:
        return (1.0, 1.0, 1.0, 0.0, SURROUND_WEIGHT, SURROUND_WEIGHT)
    return (1.0,) * channels


def _resolve_weights(channels: int, weights: Sequence[float] | None) -> np.ndarray:
    if weights is None:
        return np.asarray(default_channel_weights(channels), dtype=np.float64)
    w = np.asarray(list(weights), dtype=np.float64)
    if w.shape != (channels,):
        raise InputError(
            f"channel_weights has {w.size} entries for {channels} channels."
        )
    if np.any(w < 0) or not np.all(np.isfinite(w)):
        raise InputError("channel_weights must be finite and non-negative.")
    return w


def _power_to_lufs(power) -> np.ndarray:
    p = np.asarray(power, dtype=np.float64)
    with np.errstate(divide="ignore"):
        return LOUDNESS_OFFSET_DB + 10.0 * np.log10(p)


def _windowed_powers(
    filtered: np.ndarray,
    weights: np.ndarray,
    length: int,
    hop: int
) -> tuple[np.ndarray, np.ndarray]:
    """Channel-weighted mean-square power of each window; returns (starts, powers)."""
    n = filtered.shape[0]
    if length <= 0 or hop <= 0:
        raise InputError("window length and hop must be positive.")
    if n < length:
        return np.array([], dtype=np.int64), np.array([], dtype=np.float64)
    csum = np.zeros((n + 1, filtered.shape[1]), dtype=np.float64)
    np.cumsum(filtered ** 2, axis=0, out=csum[1:])
    starts = np.arange(0, n - length + 1, hop, dtype=np.int64)
    mean_sq = (csum[starts + length] - csum[starts]) / float(length)
    # cumulative-sum differencing can dip a hair below zero on silence
    mean_sq = np.maximum(mean_sq, 0.0)
    return starts, mean_sq @ weights


def _gated_mean(
    powers: np.ndarray,
    relative_gate_lu: float
) -> tuple[float | None, float | None, np.ndarray]:
    """Two-stage gating; returns (gated loudness, relative threshold, kept mask)."""
    loud = _power_to_lufs(powers)
    abs_mask = loud > ABSOLUTE_GATE_LUFS
    if not np.any(abs_mask):
        return None, None, abs_mask
    rel_threshold = float(_power_to_lufs(np.mean(powers[abs_mask]))) + relative_gate_lu
    mask = abs_mask & (loud > rel_threshold)
    gated = float(_power_to_lufs(np.mean(powers[mask])))
    return gated, rel_threshold, mask


def _loudness_range(powers: np.ndarray) -> tuple[float | None, float | None, float | None]:
    loud = _power_to_lufs(powers)
    _, _, mask = _gated_mean(powers, LRA_RELATIVE_GATE_LU)
    vals = loud[mask]
    if vals.size == 0:
        return None, None, None
    low = float(np.percentile(vals, LRA_LOW_PERCENTILE))
    high = float(np.percentile(vals, LRA_HIGH_PERCENTILE))
    return high - low, low, high


def _max_loudness(powers: np.ndarray) -> float | None:
    if powers.size == 0:
        return None
    peak_power = float(np.max(powers))
    if peak_power <= 0:
        return None
    return float(_power_to_lufs(peak_power))


def _block_sizes(sample_rate: int) -> tuple[int, int]:
    block = int(round(BLOCK_SECONDS * sample_rate))
    hop = int(round(BLOCK_HOP_SECONDS * sample_rate))
    return block, hop


def gating_blocks(
    buffer: PcmBuffer,
    *,
    channel_weights: Sequence[float] | None = None
) -> list[GatingBlock]:
    """
    K-weighted 400 ms gating blocks (100 ms hop) before any gating.

    Blocks of digital silence carry ``loudness=None`` rather than -inf.
    """
    weights = _resolve_weights(buffer.channels, channel_weights)
    block, hop = _block_sizes(buffer.sample_rate)
    filtered = k_weight(buffer.samples, buffer.sample_rate)
    starts, powers = _windowed_powers(filtered, weights, block, hop)
    loud = _power_to_lufs(powers)
    return [
        GatingBlock(start=int(s), mean_square=float(p), loudness=float(l) if p > 0 else None)
        for s, p, l in zip(starts, powers, loud)
    ]


def measure_loudness(
    buffer: PcmBuffer,
    *,
    channel_weights: Sequence[float] | None = None,
    true_peak_oversample: int = MIN_OVERSAMPLE,
    lra_window_s: float = SHORT_TERM_SECONDS,
    lra_hop_s: float = BLOCK_HOP_SECONDS
) -> LoudnessResult:
    """
    Measure integrated loudness, loudness range and peaks.

    Args:
        buffer: Decoded PCM buffer
        channel_weights: Per-channel BS.1770 weights (defaults by layout)
        true_peak_oversample: Oversampling factor for true peak (>= 4)
        lra_window_s: Short-term window for loudness range
        lra_hop_s: Short-term hop for loudness range

    Returns:
        LoudnessResult; a status other than ``ok`` means no integrated
        loudness was computed.
    """
    if lra_window_s <= 0 or lra_hop_s <= 0:
        raise InputError("lra_window_s and lra_hop_s must be positive.")
    fs = buffer.sample_rate
    weights = _resolve_weights(buffer.channels, channel_weights)
    sp_db = linear_to_dbfs(sample_peak(buffer.samples))
    tp_db = linear_to_dbfs(true_peak(buffer.samples, oversample=true_peak_oversample))
    weights_tuple = tuple(float(w) for w in weights)

    block, hop = _block_sizes(fs)
    if buffer.frames < block:
        return LoudnessResult(
            status=LoudnessStatus.INSUFFICIENT_DATA,
            sample_peak_dbfs=sp_db,
            true_peak_dbtp=tp_db,
            channel_weights=weights_tuple,
            warnings=[
                f"buffer is {buffer.duration:.3f} s, shorter than one "
                f"{BLOCK_SECONDS * 1000:.0f} ms gating block."
            ],
        )

    warnings: list[str] = []
    filtered = k_weight(buffer.samples, fs)
    _, powers = _windowed_powers(filtered, weights, block, hop)
    integrated, rel_threshold, mask = _gated_mean(powers, RELATIVE_GATE_LU)

    st_len = int(round(lra_window_s * fs))
    st_hop = max(1, int(round(lra_hop_s * fs)))
    lra = lra_low = lra_high = None
    short_term_max = None
    if buffer.frames >= st_len:
        _, st_powers = _windowed_powers(filtered, weights, st_len, st_hop)
        short_term_max = _max_loudness(st_powers)
        lra, lra_low, lra_high = _loudness_range(st_powers)
    else:
        warnings.append(
            f"buffer is shorter than one {lra_window_s:g} s short-term window; "
            "loudness range not computed."
        )

    if integrated is None:
        warnings.append("no gating block above the -70 LUFS absolute gate.")
        return LoudnessResult(
            status=LoudnessStatus.NO_MEASURABLE_LOUDNESS,
            sample_peak_dbfs=sp_db,
            true_peak_dbtp=tp_db,
            block_count=int(powers.size),
            gated_block_count=0,
            channel_weights=weights_tuple,
            warnings=warnings,
        )

    return LoudnessResult(
        status=LoudnessStatus.OK,
        integrated_lufs=integrated,
        loudness_range_lu=lra,
        lra_low_lufs=lra_low,
        lra_high_lufs=lra_high,
        relative_threshold_lufs=rel_threshold,
        momentary_max_lufs=_max_loudness(powers),
        short_term_max_lufs=short_term_max,
        sample_peak_dbfs=sp_db,
        true_peak_dbtp=tp_db,
        block_count=int(powers.size),
        gated_block_count=int(np.sum(mask)),
        channel_weights=weights_tuple,
        warnings=warnings,
    )


def integrated_lufs_mono(x: np.ndarray, fs: float) -> float | None:
    """
    Compute integrated loudness in LUFS for mono audio.

    Returns None when nothing passes the gates; raises InsufficientDataError
    when the signal is shorter than one gating block.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise InputError("integrated_lufs_mono expects 1D mono audio.")
    result = measure_loudness(PcmBuffer.from_mono(x, int(fs)))
    if result.status == LoudnessStatus.INSUFFICIENT_DATA:
        result.require_integrated()
    return result.integrated_lufs


def short_term_lufs_series_mono(
    x: np.ndarray,
    fs: float,
    *,
    window_s: float = SHORT_TERM_SECONDS,
    hop_s: float = BLOCK_HOP_SECONDS
) -> tuple[np.ndarray, np.ndarray]:
    """
    Short-term loudness over time for mono audio.

    Returns:
        (times_s, lufs) where times are window starts. Silent windows read
        as NaN rather than -inf.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise InputError("short_term_lufs_series_mono expects 1D mono audio.")
    buffer = PcmBuffer.from_mono(x, int(fs))
    length = int(round(window_s * buffer.sample_rate))
    hop = int(round(hop_s * buffer.sample_rate))
    filtered = k_weight(buffer.samples, buffer.sample_rate)
    starts, powers = _windowed_powers(filtered, np.ones(1), length, hop)
    lufs = np.full(powers.shape, np.nan)
    positive = powers > 0
    lufs[positive] = _power_to_lufs(powers[positive])
    return starts / float(buffer.sample_rate), lufs
