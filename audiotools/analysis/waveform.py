"""Downsampled waveform envelopes with time-range and onset selection."""
from __future__ import annotations

from dataclasses import replace
from typing import Sequence

import numpy as np

from audiotools.analysis.timerange import TimeRange
from audiotools.errors import InputError
from audiotools.metrics.levels import DEFAULT_FLOOR_DB, amplitude_to_db, db_to_amplitude
from audiotools.metrics.silence import AutoStartConfig, detect_boundary
from audiotools.types import Annotation, PcmBuffer, WaveformEnvelope, WaveformScale


def _parse_scale(scale: str | WaveformScale) -> WaveformScale:
    try:
        return WaveformScale(scale)
    except ValueError:
        raise InputError(f"Unknown waveform scale: {scale}") from None


def _span_stats(x: np.ndarray, edges: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Min, max and RMS per span; edges are relative sample boundaries."""
    starts = edges[:-1]
    counts = np.diff(edges).astype(np.float64)
    mins = np.minimum.reduceat(x, starts)
    maxs = np.maximum.reduceat(x, starts)
    rms = np.sqrt(np.add.reduceat(x * x, starts) / counts)
    return mins, maxs, rms


def compute_waveform(
    buffer: PcmBuffer,
    *,
    columns: int = 1200,
    scale: str | WaveformScale = WaveformScale.AMPLITUDE,
    time_range: TimeRange | None = None,
    auto_start: AutoStartConfig | None = None,
    annotations: Sequence[Annotation] = (),
    channel: int | None = None,
    floor_db: float = DEFAULT_FLOOR_DB
) -> WaveformEnvelope:
    """
    Reduce a buffer to ``columns`` (min, max, RMS) triples.

    Args:
        buffer: Decoded PCM buffer
        columns: Output resolution (number of equal-width spans)
        scale: ``amplitude`` or ``decibel``
        time_range: Optional range; invalid ranges raise InputError
        auto_start: When set, the envelope starts at the detected onset
            inside the selected range
        annotations: Time annotations kept if inside the rendered range
        channel: Channel index, or None for a mean downmix
        floor_db: Floor used by the decibel scale

    Returns:
        WaveformEnvelope covering [start_s, end_s]
    """
    wf_scale = _parse_scale(scale)
    if isinstance(columns, bool) or int(columns) != columns or columns < 1:
        raise InputError("columns must be a positive integer.")
    columns = int(columns)
    fs = buffer.sample_rate
    x = buffer.mono() if channel is None else buffer.channel(channel)
    label = "mono" if channel is None else f"ch{channel}"

    start_s, end_s = (0.0, buffer.duration) if time_range is None else time_range.resolve(buffer.duration)
    start = int(round(start_s * fs))
    end = min(int(round(end_s * fs)), x.size)

    warnings: list[str] = []
    detected = None
    if auto_start is not None:
        onset = detect_boundary(x[start:end], fs, auto_start, direction="start")
        if onset is None:
            warnings.append(
                "auto-start found no sustained signal above threshold; "
                "envelope starts at the range start."
            )
        else:
            detected = start_s + onset
            start_s = detected
            start = int(round(start_s * fs))

    if end - start < columns:
        raise InputError(
            f"{columns} columns requested but the selected range holds only "
            f"{end - start} samples."
        )

    edges = np.round(np.linspace(start, end, columns + 1)).astype(np.int64) - start
    mins, maxs, rms = _span_stats(x[start:end], edges)
    if wf_scale == WaveformScale.DECIBEL:
        mins = amplitude_to_db(mins, floor_db)
        maxs = amplitude_to_db(maxs, floor_db)
        rms = amplitude_to_db(rms, floor_db)

    kept: list[Annotation] = []
    for ann in annotations:
        if start_s <= ann.position <= end_s:
            kept.append(ann)
        else:
            warnings.append(
                f"annotation '{ann.label}' at {ann.position:g} s is outside "
                f"[{start_s:g}, {end_s:g}] s and was dropped."
            )

    return WaveformEnvelope(
        mins=mins,
        maxs=maxs,
        rms=rms,
        scale=wf_scale,
        start_s=float(start_s),
        end_s=float(end_s),
        sample_rate=fs,
        channel=label,
        floor_db=float(floor_db),
        detected_start_s=detected,
        annotations=tuple(kept),
        warnings=warnings,
    )


def to_decibel(envelope: WaveformEnvelope) -> WaveformEnvelope:
    """Convert an amplitude envelope to dB magnitudes (sign is dropped)."""
    if envelope.scale == WaveformScale.DECIBEL:
        return envelope
    f = envelope.floor_db
    return replace(
        envelope,
        mins=amplitude_to_db(envelope.mins, f),
        maxs=amplitude_to_db(envelope.maxs, f),
        rms=amplitude_to_db(envelope.rms, f),
        scale=WaveformScale.DECIBEL,
    )


def to_linear(envelope: WaveformEnvelope) -> WaveformEnvelope:
    """Convert a dB envelope back to linear magnitudes."""
    if envelope.scale == WaveformScale.AMPLITUDE:
        return envelope
    return replace(
        envelope,
        mins=db_to_amplitude(envelope.mins),
        maxs=db_to_amplitude(envelope.maxs),
        rms=db_to_amplitude(envelope.rms),
        scale=WaveformScale.AMPLITUDE,
    )
