from __future__ import annotations

import numpy as np

from audiotools.algorithms.registry import (
    AUTO_START_ALGO_ID,
    LOUDNESS_ALGO_ID,
    TRUE_PEAK_ALGO_ID,
    algorithm_ids_from_registry,
    build_algorithm_registry,
)
from audiotools.analysis.spectrogram import compute_spectrogram
from audiotools.analysis.waveform import compute_waveform
from audiotools.dsp.normalize import plan_normalization
from audiotools.profiles.loader import analysis_profile_from_dict, default_analysis_profile
from audiotools.reporting.report import (
    build_analysis_report,
    build_loudness_report,
    build_normalization_report,
    spectrogram_to_dict,
    waveform_to_dict,
)
from audiotools.types import LoudnessResult, LoudnessStatus, PcmBuffer
from audiotools.utils.canonical_json import canonical_dumps
from audiotools.utils.hashing import sha256_hex_canonical_json
from tests.conftest import sine

ENGINE = {"name": "audiotools", "version": "test"}
INPUT = {"path": "/tmp/x.wav", "file_hash_sha256": "0" * 64}


def _loudness_result() -> LoudnessResult:
    return LoudnessResult(
        status=LoudnessStatus.OK,
        integrated_lufs=-23.004999,
        loudness_range_lu=6.123456,
        sample_peak_dbfs=-3.0,
        true_peak_dbtp=-2.789,
        block_count=10,
        gated_block_count=9,
        channel_weights=(1.0, 1.0),
        warnings=["note"],
    )


def test_registry_records_profile_parameters():
    profile = default_analysis_profile()
    registry = build_algorithm_registry(profile)
    assert AUTO_START_ALGO_ID not in registry
    assert registry[TRUE_PEAK_ALGO_ID]["params"]["oversample"] == 4
    assert registry[LOUDNESS_ALGO_ID]["params"]["channel_weights"] == "layout_default"
    assert algorithm_ids_from_registry(registry) == sorted(registry)

    profile = analysis_profile_from_dict({"waveform": {"auto_start": {"enabled": True}}})
    assert AUTO_START_ALGO_ID in build_algorithm_registry(profile)


def test_loudness_report_is_quantized_and_hashed():
    profile = default_analysis_profile()
    report = build_loudness_report(
        engine=ENGINE,
        input_meta=INPUT,
        profile=profile,
        algorithms=build_algorithm_registry(profile),
        result=_loudness_result(),
        created_utc="2024-01-01T00:00:00Z",
    )
    loud = report["results"]["loudness"]
    assert loud["status"] == "ok"
    assert loud["integrated_lufs"] == -23.0
    assert loud["loudness_range_lu"] == 6.12
    assert loud["true_peak_dbtp"] == -2.79
    assert loud["lra_low_lufs"] is None
    assert report["warnings"] == ["note"]
    assert report["profile"]["profile_hash_sha256"] == profile.profile_hash_sha256
    assert report["profile"]["algorithm_ids"] == sorted(build_algorithm_registry(profile))

    body = dict(report)
    integrity = body.pop("integrity")
    assert integrity["report_hash_sha256"] == sha256_hex_canonical_json(body)


def test_report_hash_is_stable():
    profile = default_analysis_profile()
    kwargs = dict(
        kind="info",
        engine=ENGINE,
        input_meta=INPUT,
        profile=profile,
        algorithms={},
        results={"value": 1},
        created_utc="2024-01-01T00:00:00Z",
    )
    a = build_analysis_report(**kwargs)
    b = build_analysis_report(**kwargs)
    assert a["integrity"] == b["integrity"]
    kwargs["results"] = {"value": 2}
    assert build_analysis_report(**kwargs)["integrity"] != a["integrity"]


def test_normalization_report_collects_warnings():
    profile = default_analysis_profile()
    measurement = LoudnessResult(
        status=LoudnessStatus.OK, integrated_lufs=-30.0, true_peak_dbtp=-3.0, warnings=["m"]
    )
    plan = plan_normalization(measurement, -14.0, ceiling_db=-1.0)
    report = build_normalization_report(
        engine=ENGINE,
        input_meta=INPUT,
        profile=profile,
        algorithms={},
        measurement=measurement,
        plan=plan,
        output_path=None,
        applied=False,
        extra_warnings=["x"],
    )
    results = report["results"]
    assert report["kind"] == "normalize"
    assert results["applied"] is False
    assert results["plan"]["gain_db"] == 2.0
    assert results["plan"]["gain_limited"] is True
    assert report["warnings"][0] == "m"
    assert report["warnings"][-1] == "x"
    assert len(report["warnings"]) == 3


def test_spectrogram_and_waveform_serialize_to_json():
    fs = 8000
    buf = PcmBuffer.from_mono(sine(1000.0, amplitude=0.5, seconds=0.5, fs=fs), fs)
    (spec,) = compute_spectrogram(buf, window_size=256)
    d = spectrogram_to_dict(spec)
    assert len(d["magnitudes_db"]) == len(d["times_s"])
    assert len(d["magnitudes_db"][0]) == len(d["freqs_hz"]) == 129
    env = compute_waveform(buf, columns=16, scale="decibel")
    w = waveform_to_dict(env)
    assert w["columns"] == 16
    assert w["scale"] == "decibel"
    assert len(w["times_s"]) == len(w["rms"]) == 16
    assert np.isclose(w["rms"][0], -9.03, atol=0.02)
    canonical_dumps(d)
    canonical_dumps(w)
