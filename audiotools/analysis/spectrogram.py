from __future__ import annotations

from typing import Sequence

import numpy as np

from audiotools.dsp.stft import hop_for, stft_magnitude_db, validate_window_size
from audiotools.errors import InputError
from audiotools.metrics.levels import DEFAULT_FLOOR_DB
from audiotools.types import Annotation, PcmBuffer, Spectrogram, SpectrogramFrame

CHANNEL_MODES = ("mono", "per_channel")


def _channel_views(buffer: PcmBuffer, channel_mode: str) -> list[tuple[str, np.ndarray]]:
    if channel_mode == "mono":
        return [("mono", buffer.mono())]
    if channel_mode == "per_channel":
        return [(f"ch{idx}", buffer.channel(idx)) for idx in range(buffer.channels)]
    raise InputError(f"Unknown channel mode: {channel_mode}")


def compute_spectrogram(
    buffer: PcmBuffer,
    *,
    window_size: int = 2048,
    overlap: float = 0.5,
    min_freq_hz: float = 0.0,
    max_freq_hz: float | None = None,
    channel_mode: str = "mono",
    zero_pad: bool = True,
    floor_db: float = DEFAULT_FLOOR_DB,
    annotations: Sequence[Annotation] = ()
) -> list[Spectrogram]:
    """
    Compute a spectrogram per channel view of a buffer.

    Larger windows give finer frequency resolution at the cost of time
    resolution; both ``window_size`` and ``overlap`` are passed through
    unchanged.

    Returns:
        One Spectrogram for ``mono``, one per channel for ``per_channel``.
    """
    window_size = validate_window_size(window_size)
    hop = hop_for(window_size, overlap)
    nyquist = buffer.sample_rate / 2.0
    hi = nyquist if max_freq_hz is None else float(max_freq_hz)
    lo = float(min_freq_hz)
    if lo < 0 or hi > nyquist or lo >= hi:
        raise InputError(
            f"frequency range [{lo}, {hi}] Hz is invalid for Nyquist {nyquist} Hz."
        )
    bin_hz = buffer.sample_rate / float(window_size)
    bins = np.fft.rfftfreq(window_size, d=1.0 / buffer.sample_rate)
    if not np.any((bins >= lo) & (bins <= hi)):
        raise InputError(
            f"no frequency bin falls inside [{lo:g}, {hi:g}] Hz; bins are {bin_hz:g} Hz apart "
            f"at window size {window_size}."
        )

    kept: list[Annotation] = []
    warnings: list[str] = []
    for ann in annotations:
        if lo <= ann.position <= hi:
            kept.append(Annotation(float(ann.position), ann.label, "frequency"))
        else:
            warnings.append(
                f"annotation '{ann.label}' at {ann.position:g} Hz is outside "
                f"[{lo:g}, {hi:g}] Hz and was dropped."
            )

    out: list[Spectrogram] = []
    for label, x in _channel_views(buffer, channel_mode):
        freqs, times, mag_db = stft_magnitude_db(
            x,
            buffer.sample_rate,
            window_size=window_size,
            hop=hop,
            zero_pad=zero_pad,
            floor_db=floor_db,
        )
        mask = (freqs >= lo) & (freqs <= hi)
        band = mag_db[:, mask]
        frames = tuple(
            SpectrogramFrame(time_s=float(t), magnitudes_db=band[i])
            for i, t in enumerate(times)
        )
        out.append(
            Spectrogram(
                frames=frames,
                freqs_hz=freqs[mask],
                sample_rate=buffer.sample_rate,
                window_size=window_size,
                hop=hop,
                channel=label,
                zero_padded=bool(zero_pad),
                floor_db=float(floor_db),
                annotations=tuple(kept),
                warnings=list(warnings),
            )
        )
    return out
