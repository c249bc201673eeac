"""
audiotools - Audio Analysis Engine

Loudness (EBU R128), spectrograms, waveform envelopes and normalization
planning over decoded PCM buffers, with a batch CLI around them.
"""
from audiotools.version import __version__
from audiotools.errors import (
    AudioToolsError,
    InputError,
    InsufficientDataError,
    LimitExceededError,
)
from audiotools.types import (
    FileStatus,
    LoudnessStatus,
    WaveformScale,
    PcmBuffer,
    Annotation,
    LoudnessResult,
    PeakMeasurement,
    Spectrogram,
    SpectrogramFrame,
    WaveformEnvelope,
    NormalizationPlan,
)

__all__ = [
    "__version__",
    "AudioToolsError",
    "InputError",
    "InsufficientDataError",
    "LimitExceededError",
    "FileStatus",
    "LoudnessStatus",
    "WaveformScale",
    "PcmBuffer",
    "Annotation",
    "LoudnessResult",
    "PeakMeasurement",
    "Spectrogram",
    "SpectrogramFrame",
    "WaveformEnvelope",
    "NormalizationPlan",
]
