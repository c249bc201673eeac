"""Analysis profile validation helpers."""
from __future__ import annotations
from typing import Any
import math

from audiotools.analysis.spectrogram import CHANNEL_MODES
from audiotools.dsp.normalize import LIMIT_POLICIES, REFERENCES
from audiotools.dsp.stft import MIN_WINDOW_SIZE
from audiotools.io.formats import OUTPUT_FORMAT_NAMES
from audiotools.metrics.silence import CRITERIA
from audiotools.metrics.truepeak import MIN_OVERSAMPLE

SECTIONS = ("profile", "loudness", "spectrum", "waveform", "normalization")
WAVEFORM_SCALES = ("amplitude", "decibel")


def _is_number(v: Any) -> bool:
    return (
        isinstance(v, (int, float))
        and not isinstance(v, bool)
        and not math.isnan(v)
        and not math.isinf(v)
    )


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _section(j: dict, name: str, err) -> dict:
    sec = j.get(name, {})
    if not isinstance(sec, dict):
        err(f"{name} must be an object.")
        return {}
    return sec


def validate_analysis_profile_dict(j: dict) -> None:
    """Validate analysis profile structure; all problems are reported at once."""
    errors: list[str] = []

    def err(msg: str) -> None:
        errors.append(msg)

    if not isinstance(j, dict):
        raise ValueError("profile must be a JSON object.")
    for k in j:
        if k not in SECTIONS:
            err(f"unknown section: {k}")

    meta = _section(j, "profile", err)
    if "name" in meta and (not isinstance(meta["name"], str) or not meta["name"]):
        err("profile.name must be a non-empty string.")
    if "version" in meta and not isinstance(meta["version"], str):
        err("profile.version must be a string.")

    loud = _section(j, "loudness", err)
    weights = loud.get("channel_weights")
    if weights is not None:
        if not isinstance(weights, list) or not weights:
            err("loudness.channel_weights must be null or a non-empty list.")
        elif not all(_is_number(w) and w >= 0 for w in weights):
            err("loudness.channel_weights entries must be non-negative numbers.")
    oversample = loud.get("true_peak_oversample", MIN_OVERSAMPLE)
    if not _is_int(oversample) or oversample < MIN_OVERSAMPLE:
        err(f"loudness.true_peak_oversample must be an integer >= {MIN_OVERSAMPLE}.")
    for key in ("lra_window_s", "lra_hop_s"):
        v = loud.get(key, 1.0)
        if not _is_number(v) or v <= 0:
            err(f"loudness.{key} must be a positive number.")

    spec = _section(j, "spectrum", err)
    ws = spec.get("window_size", 2048)
    if not _is_int(ws) or ws < MIN_WINDOW_SIZE or ws & (ws - 1):
        err(f"spectrum.window_size must be a power of two >= {MIN_WINDOW_SIZE}.")
    overlap = spec.get("overlap", 0.5)
    if not _is_number(overlap) or not 0.0 <= overlap < 1.0:
        err("spectrum.overlap must be in [0, 1).")
    f_min = spec.get("min_freq_hz", 0.0)
    f_max = spec.get("max_freq_hz")
    if not _is_number(f_min) or f_min < 0:
        err("spectrum.min_freq_hz must be a non-negative number.")
    if f_max is not None:
        if not _is_number(f_max) or f_max <= 0:
            err("spectrum.max_freq_hz must be null or a positive number.")
        elif _is_number(f_min) and f_max <= f_min:
            err("spectrum.max_freq_hz must be greater than min_freq_hz.")
    if spec.get("channel_mode", "mono") not in CHANNEL_MODES:
        err(f"spectrum.channel_mode must be one of {', '.join(CHANNEL_MODES)}.")
    if not isinstance(spec.get("zero_pad", True), bool):
        err("spectrum.zero_pad must be boolean.")

    wf = _section(j, "waveform", err)
    cols = wf.get("columns", 1200)
    if not _is_int(cols) or cols < 1:
        err("waveform.columns must be a positive integer.")
    if wf.get("scale", "amplitude") not in WAVEFORM_SCALES:
        err("waveform.scale must be amplitude or decibel.")
    auto = wf.get("auto_start", {})
    if not isinstance(auto, dict):
        err("waveform.auto_start must be an object.")
        auto = {}
    if not isinstance(auto.get("enabled", False), bool):
        err("waveform.auto_start.enabled must be boolean.")
    threshold = auto.get("threshold", 0.01)
    if not _is_number(threshold) or threshold <= 0:
        err("waveform.auto_start.threshold must be a positive number.")
    aws = auto.get("window_size", 512)
    if not _is_int(aws) or aws < 1:
        err("waveform.auto_start.window_size must be a positive integer.")
    min_dur = auto.get("min_duration_s", 0.01)
    if not _is_number(min_dur) or min_dur < 0:
        err("waveform.auto_start.min_duration_s must be a non-negative number.")
    if auto.get("criterion", "rms") not in CRITERIA:
        err(f"waveform.auto_start.criterion must be one of {', '.join(CRITERIA)}.")
    if not isinstance(auto.get("snap_to_zero_crossing", True), bool):
        err("waveform.auto_start.snap_to_zero_crossing must be boolean.")

    for name, sec in (("spectrum", spec), ("waveform", wf)):
        floor = sec.get("floor_db", -120.0)
        if not _is_number(floor) or floor >= 0:
            err(f"{name}.floor_db must be a negative number.")

    norm = _section(j, "normalization", err)
    if norm.get("reference", "integrated") not in REFERENCES:
        err(f"normalization.reference must be one of {', '.join(REFERENCES)}.")
    for key in ("target_level", "ceiling_db"):
        if key in norm and not _is_number(norm[key]):
            err(f"normalization.{key} must be a number.")
    if norm.get("on_limit", "limit") not in LIMIT_POLICIES:
        err(f"normalization.on_limit must be one of {', '.join(LIMIT_POLICIES)}.")
    if norm.get("output_format", "wav") not in OUTPUT_FORMAT_NAMES:
        err(f"normalization.output_format must be one of {', '.join(OUTPUT_FORMAT_NAMES)}.")
    if norm.get("bit_depth", 24) not in (16, 24, 32):
        err("normalization.bit_depth must be 16, 24 or 32.")
    if not isinstance(norm.get("postfix", "_normalized"), str):
        err("normalization.postfix must be a string.")

    if errors:
        raise ValueError("; ".join(errors))
