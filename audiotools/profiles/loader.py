from __future__ import annotations
from dataclasses import asdict, dataclass, field
import json

from audiotools.metrics.levels import DEFAULT_FLOOR_DB
from audiotools.metrics.silence import AutoStartConfig
from audiotools.profiles.validator import validate_analysis_profile_dict
from audiotools.utils.hashing import sha256_hex_canonical_json


@dataclass(frozen=True)
class LoudnessSettings:
    channel_weights: tuple[float, ...] | None = None
    true_peak_oversample: int = 4
    lra_window_s: float = 3.0
    lra_hop_s: float = 0.1


@dataclass(frozen=True)
class SpectrumSettings:
    window_size: int = 2048
    overlap: float = 0.5
    min_freq_hz: float = 0.0
    max_freq_hz: float | None = None
    channel_mode: str = "mono"
    zero_pad: bool = True
    floor_db: float = DEFAULT_FLOOR_DB


@dataclass(frozen=True)
class WaveformSettings:
    columns: int = 1200
    scale: str = "amplitude"
    floor_db: float = DEFAULT_FLOOR_DB
    auto_start: AutoStartConfig | None = None


@dataclass(frozen=True)
class NormalizationSettings:
    reference: str = "integrated"
    target_level: float = -23.0
    ceiling_db: float = -1.0
    on_limit: str = "limit"
    output_format: str = "wav"
    bit_depth: int = 24
    postfix: str = "_normalized"


@dataclass(frozen=True)
class AnalysisProfile:
    """Analysis and normalization parameters, with the hash of their source JSON."""
    name: str = "default"
    version: str = "1.0"
    loudness: LoudnessSettings = field(default_factory=LoudnessSettings)
    spectrum: SpectrumSettings = field(default_factory=SpectrumSettings)
    waveform: WaveformSettings = field(default_factory=WaveformSettings)
    normalization: NormalizationSettings = field(default_factory=NormalizationSettings)
    profile_hash_sha256: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def analysis_profile_from_dict(j: dict) -> AnalysisProfile:
    """
    Build an AnalysisProfile from a parsed profile document.

    Missing sections and keys take their defaults.

    Raises:
        ValueError: with every validation problem joined by "; "
    """
    validate_analysis_profile_dict(j)
    meta = j.get("profile", {})
    loud = j.get("loudness", {})
    spec = j.get("spectrum", {})
    wf = j.get("waveform", {})
    norm = j.get("normalization", {})

    weights = loud.get("channel_weights")
    loudness = LoudnessSettings(
        channel_weights=None if weights is None else tuple(float(w) for w in weights),
        true_peak_oversample=int(loud.get("true_peak_oversample", 4)),
        lra_window_s=float(loud.get("lra_window_s", 3.0)),
        lra_hop_s=float(loud.get("lra_hop_s", 0.1)),
    )

    max_freq = spec.get("max_freq_hz")
    spectrum = SpectrumSettings(
        window_size=int(spec.get("window_size", 2048)),
        overlap=float(spec.get("overlap", 0.5)),
        min_freq_hz=float(spec.get("min_freq_hz", 0.0)),
        max_freq_hz=None if max_freq is None else float(max_freq),
        channel_mode=str(spec.get("channel_mode", "mono")),
        zero_pad=bool(spec.get("zero_pad", True)),
        floor_db=float(spec.get("floor_db", DEFAULT_FLOOR_DB)),
    )

    auto = wf.get("auto_start", {})
    auto_start = None
    if auto.get("enabled", False):
        auto_start = AutoStartConfig(
            threshold=float(auto.get("threshold", 0.01)),
            window_size=int(auto.get("window_size", 512)),
            min_duration_s=float(auto.get("min_duration_s", 0.01)),
            criterion=str(auto.get("criterion", "rms")),
            snap_to_zero_crossing=bool(auto.get("snap_to_zero_crossing", True)),
        )
    waveform = WaveformSettings(
        columns=int(wf.get("columns", 1200)),
        scale=str(wf.get("scale", "amplitude")),
        floor_db=float(wf.get("floor_db", DEFAULT_FLOOR_DB)),
        auto_start=auto_start,
    )

    normalization = NormalizationSettings(
        reference=str(norm.get("reference", "integrated")),
        target_level=float(norm.get("target_level", -23.0)),
        ceiling_db=float(norm.get("ceiling_db", -1.0)),
        on_limit=str(norm.get("on_limit", "limit")),
        output_format=str(norm.get("output_format", "wav")),
        bit_depth=int(norm.get("bit_depth", 24)),
        postfix=str(norm.get("postfix", "_normalized")),
    )

    return AnalysisProfile(
        name=str(meta.get("name", "default")),
        version=str(meta.get("version", "1.0")),
        loudness=loudness,
        spectrum=spectrum,
        waveform=waveform,
        normalization=normalization,
        profile_hash_sha256=sha256_hex_canonical_json(j),
    )


def default_analysis_profile() -> AnalysisProfile:
    """Profile used when no --profile is given."""
    return analysis_profile_from_dict({})


def read_profile_json(path: str) -> dict:
    """Parse a profile file without validating it."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_analysis_profile(path: str) -> AnalysisProfile:
    """
    Load an analysis profile from a JSON file.

    Args:
        path: Path to the profile JSON file

    Returns:
        AnalysisProfile with defaults filled in for anything the file omits
    """
    return analysis_profile_from_dict(read_profile_json(path))
