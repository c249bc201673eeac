from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Sequence
import numpy as np

from audiotools.errors import InputError, InsufficientDataError


def _readonly(values) -> np.ndarray:
    x = np.array(values, dtype=np.float64)
    x.flags.writeable = False
    return x


class FileStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    ERROR = "error"


class LoudnessStatus(str, Enum):
    OK = "ok"
    NO_MEASURABLE_LOUDNESS = "no_measurable_loudness"
    INSUFFICIENT_DATA = "insufficient_data"


class WaveformScale(str, Enum):
    AMPLITUDE = "amplitude"
    DECIBEL = "decibel"


@dataclass(frozen=True)
class PcmBuffer:
    """
    Decoded audio as normalized float64 samples.

    ``samples`` is always 2D with shape ``(frames, channels)`` and is marked
    read-only after construction.
    """
    samples: np.ndarray
    sample_rate: int
    backend: str = "memory"
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        sr = self.sample_rate
        if isinstance(sr, bool) or not isinstance(sr, (int, float, np.integer, np.floating)):
            raise InputError("sample_rate must be a positive integer.")
        if float(sr) != int(sr) or int(sr) <= 0:
            raise InputError(f"sample_rate must be a positive integer, got {sr!r}.")
        x = np.array(self.samples, dtype=np.float64, copy=True)
        if x.ndim == 1:
            x = x.reshape(-1, 1)
        if x.ndim != 2:
            raise InputError("samples must be a 1D or 2D (frames, channels) array.")
        if x.shape[1] == 0:
            raise InputError("buffer must have at least one channel.")
        if x.shape[0] == 0:
            raise InputError("buffer must contain at least one sample frame.")
        if not np.all(np.isfinite(x)):
            raise InputError("buffer contains non-finite samples.")
        x.flags.writeable = False
        object.__setattr__(self, "samples", x)
        object.__setattr__(self, "sample_rate", int(sr))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    @classmethod
    def from_interleaved(
        cls,
        data: Sequence[float] | np.ndarray,
        sample_rate: int,
        channels: int,
        **kwargs
    ) -> "PcmBuffer":
        """Build a buffer from interleaved samples (L R L R ...)."""
        if channels <= 0:
            raise InputError("channels must be positive.")
        x = np.asarray(data, dtype=np.float64).ravel()
        if x.size % channels != 0:
            raise InputError(
                f"interleaved length {x.size} is not a multiple of {channels} channels."
            )
        return cls(samples=x.reshape(-1, channels), sample_rate=sample_rate, **kwargs)

    @classmethod
    def from_planar(
        cls,
        planes: Sequence[Sequence[float] | np.ndarray],
        sample_rate: int,
        **kwargs
    ) -> "PcmBuffer":
        """Build a buffer from one array per channel."""
        arrays = [np.asarray(p, dtype=np.float64).ravel() for p in planes]
        if not arrays:
            raise InputError("buffer must have at least one channel.")
        lengths = {a.size for a in arrays}
        if len(lengths) != 1:
            raise InputError(f"inconsistent channel lengths: {sorted(lengths)}.")
        return cls(samples=np.stack(arrays, axis=1), sample_rate=sample_rate, **kwargs)

    @classmethod
    def from_mono(cls, x: Sequence[float] | np.ndarray, sample_rate: int, **kwargs) -> "PcmBuffer":
        return cls(samples=np.asarray(x, dtype=np.float64).reshape(-1, 1), sample_rate=sample_rate, **kwargs)

    @property
    def channels(self) -> int:
        return int(self.samples.shape[1])

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        return self.frames / float(self.sample_rate)

    def channel(self, index: int) -> np.ndarray:
        if index < 0 or index >= self.channels:
            raise InputError(f"channel index {index} out of range for {self.channels} channels.")
        return self.samples[:, index]

    def mono(self) -> np.ndarray:
        """Mean downmix of all channels."""
        if self.channels == 1:
            return self.samples[:, 0]
        return np.mean(self.samples, axis=1)

    def with_samples(self, samples: np.ndarray, warnings: Sequence[str] | None = None) -> "PcmBuffer":
        """New buffer with the same rate and backend but different samples."""
        return PcmBuffer(
            samples=samples,
            sample_rate=self.sample_rate,
            backend=self.backend,
            warnings=tuple(self.warnings if warnings is None else warnings),
        )

    def slice_frames(self, start: int, end: int) -> "PcmBuffer":
        if start < 0 or end > self.frames or start >= end:
            raise InputError(f"invalid frame slice [{start}, {end}) for {self.frames} frames.")
        return self.with_samples(self.samples[start:end])


@dataclass(frozen=True)
class Annotation:
    position: float
    label: str
    axis: str = "time"


@dataclass(frozen=True)
class GatingBlock:
    start: int
    mean_square: float
    loudness: float | None


@dataclass(frozen=True)
class LoudnessResult:
    status: LoudnessStatus
    integrated_lufs: float | None = None
    loudness_range_lu: float | None = None
    lra_low_lufs: float | None = None
    lra_high_lufs: float | None = None
    relative_threshold_lufs: float | None = None
    momentary_max_lufs: float | None = None
    short_term_max_lufs: float | None = None
    sample_peak_dbfs: float | None = None
    true_peak_dbtp: float | None = None
    block_count: int = 0
    gated_block_count: int = 0
    channel_weights: tuple[float, ...] = ()
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "channel_weights", tuple(self.channel_weights))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    def require_integrated(self) -> float:
        """Return integrated loudness or raise InsufficientDataError."""
        if self.status != LoudnessStatus.OK or self.integrated_lufs is None:
            raise InsufficientDataError(
                f"no integrated loudness available (status: {self.status.value})."
            )
        return float(self.integrated_lufs)


@dataclass(frozen=True)
class PeakMeasurement:
    sample_peak_dbfs: float | None
    true_peak_dbtp: float | None = None


@dataclass(frozen=True)
class SpectrogramFrame:
    time_s: float
    magnitudes_db: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "magnitudes_db", _readonly(self.magnitudes_db))


@dataclass(frozen=True)
class Spectrogram:
    frames: tuple[SpectrogramFrame, ...]
    freqs_hz: np.ndarray
    sample_rate: int
    window_size: int
    hop: int
    channel: str
    zero_padded: bool
    floor_db: float
    annotations: tuple[Annotation, ...] = ()
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "frames", tuple(self.frames))
        object.__setattr__(self, "freqs_hz", _readonly(self.freqs_hz))
        object.__setattr__(self, "annotations", tuple(self.annotations))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    @property
    def times_s(self) -> np.ndarray:
        return np.array([f.time_s for f in self.frames], dtype=np.float64)

    def matrix(self) -> np.ndarray:
        """Magnitudes in dB with shape (frames, bins)."""
        if not self.frames:
            return np.zeros((0, self.freqs_hz.size), dtype=np.float64)
        return np.stack([f.magnitudes_db for f in self.frames], axis=0)


@dataclass(frozen=True)
class WaveformEnvelope:
    mins: np.ndarray
    maxs: np.ndarray
    rms: np.ndarray
    scale: WaveformScale
    start_s: float
    end_s: float
    sample_rate: int
    channel: str = "mono"
    floor_db: float = -120.0
    detected_start_s: float | None = None
    annotations: tuple[Annotation, ...] = ()
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in ("mins", "maxs", "rms"):
            object.__setattr__(self, name, _readonly(getattr(self, name)))
        object.__setattr__(self, "annotations", tuple(self.annotations))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    @property
    def column_count(self) -> int:
        return int(self.rms.size)

    def columns(self) -> Iterator[tuple[float, float, float]]:
        for lo, hi, r in zip(self.mins, self.maxs, self.rms):
            yield float(lo), float(hi), float(r)

    def column_times_s(self) -> np.ndarray:
        """Centre time of each column in seconds."""
        n = self.column_count
        edges = np.linspace(self.start_s, self.end_s, n + 1)
        return (edges[:-1] + edges[1:]) / 2.0


@dataclass(frozen=True)
class NormalizationPlan:
    reference: str
    target_level: float
    measured_level: float
    requested_gain_db: float
    gain_db: float
    linear_gain: float
    current_peak_db: float | None
    projected_peak_db: float | None
    ceiling_db: float
    gain_limited: bool = False
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "warnings", tuple(self.warnings))
