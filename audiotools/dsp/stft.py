from __future__ import annotations
import math
import numpy as np
from audiotools.dsp.windowing import hann, coherent_gain
from audiotools.errors import InputError, InsufficientDataError
from audiotools.metrics.levels import DEFAULT_FLOOR_DB, amplitude_to_db

MIN_WINDOW_SIZE = 16
_FRAMES_PER_BATCH = 256


def hop_for(window_size: int, overlap: float) -> int:
    """Hop length for a window size and overlap ratio in [0, 1)."""
    if not (0.0 <= float(overlap) < 1.0):
        raise InputError(f"overlap must satisfy 0 <= overlap < 1, got {overlap}.")
    hop = int(window_size * (1.0 - float(overlap)))
    if hop < 1:
        raise InputError(
            f"overlap {overlap} leaves no hop for window size {window_size}."
        )
    return hop


def validate_window_size(window_size: int) -> int:
    if isinstance(window_size, bool) or int(window_size) != window_size:
        raise InputError("window_size must be an integer.")
    n = int(window_size)
    if n < MIN_WINDOW_SIZE or (n & (n - 1)) != 0:
        raise InputError(
            f"window_size must be a power of two >= {MIN_WINDOW_SIZE}, got {window_size}."
        )
    return n


def frame_count(n_samples: int, window_size: int, hop: int, zero_pad: bool = True) -> int:
    """
    Number of analysis frames for a signal.

    Without padding: floor((N - W) / hop) + 1, zero when N < W.
    With padding the tail is padded so the last frame reaches the end:
    ceil(max(0, N - W) / hop) + 1.
    """
    if n_samples <= 0:
        return 0
    if not zero_pad:
        if n_samples < window_size:
            return 0
        return (n_samples - window_size) // hop + 1
    return int(math.ceil(max(0, n_samples - window_size) / hop)) + 1


def stft_magnitude_db(
    x: np.ndarray,
    fs: float,
    window_size: int = 2048,
    hop: int = 1024,
    *,
    zero_pad: bool = True,
    floor_db: float = DEFAULT_FLOOR_DB
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Short-time Fourier magnitudes in dBFS.

    Uses a periodic Hann window and normalizes by the window's coherent
    gain so a full-scale sine centred on a bin reads 0 dBFS.

    Args:
        x: Mono input signal (1D array)
        fs: Sample rate in Hz
        window_size: FFT size (power of two)
        hop: Hop size between frames
        zero_pad: Pad the tail so every sample lands in a frame
        floor_db: Lower bound for magnitudes

    Returns:
        Tuple of (freqs, times, mag_db):
        - freqs: Bin frequencies k * fs / window_size
        - times: Frame centre times in seconds
        - mag_db: Magnitudes, shape (frames, bins)
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise InputError("stft_magnitude_db expects mono 1D signal.")
    window_size = validate_window_size(window_size)
    if hop <= 0:
        raise InputError("hop must be positive.")
    n_frames = frame_count(x.size, window_size, hop, zero_pad=zero_pad)
    if n_frames == 0:
        raise InsufficientDataError(
            f"signal of {x.size} samples is shorter than window size {window_size}."
        )

    if zero_pad:
        needed = (n_frames - 1) * hop + window_size
        if needed > x.size:
            x = np.concatenate([x, np.zeros(needed - x.size, dtype=np.float64)])

    w = hann(window_size)
    scale = 2.0 / coherent_gain(w)
    frames = np.lib.stride_tricks.sliding_window_view(x, window_size)[::hop][:n_frames]
    mag_db = np.empty((n_frames, window_size // 2 + 1), dtype=np.float64)
    for start in range(0, n_frames, _FRAMES_PER_BATCH):
        batch = frames[start:start + _FRAMES_PER_BATCH]
        mag = np.abs(np.fft.rfft(batch * w, n=window_size, axis=-1)) * scale
        # DC and Nyquist have no mirrored half
        mag[:, 0] *= 0.5
        mag[:, -1] *= 0.5
        mag_db[start:start + batch.shape[0]] = amplitude_to_db(mag, floor_db=floor_db)

    freqs = np.fft.rfftfreq(window_size, d=1.0 / fs)
    starts = np.arange(n_frames, dtype=np.float64) * hop
    times = (starts + window_size / 2.0) / float(fs)
    return freqs.astype(np.float64), times, mag_db
