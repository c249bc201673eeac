from __future__ import annotations

import pytest

from audiotools.metrics.silence import AutoStartConfig
from audiotools.profiles.loader import (
    analysis_profile_from_dict,
    default_analysis_profile,
    load_analysis_profile,
)
from audiotools.profiles.validator import validate_analysis_profile_dict
from tests.conftest import build_profile_dict, write_profile


def test_default_profile():
    profile = default_analysis_profile()
    assert profile.name == "default"
    assert profile.loudness.true_peak_oversample == 4
    assert profile.spectrum.window_size == 2048
    assert profile.spectrum.overlap == 0.5
    assert profile.waveform.columns == 1200
    assert profile.waveform.auto_start is None
    assert profile.normalization.target_level == -23.0
    assert profile.normalization.ceiling_db == -1.0
    assert profile.normalization.postfix == "_normalized"
    assert len(profile.profile_hash_sha256) == 64


def test_load_profile_from_file(tmp_path):
    doc = build_profile_dict(
        loudness={"channel_weights": [1.0, 1.0], "true_peak_oversample": 8},
        spectrum={"window_size": 4096, "overlap": 0.75, "channel_mode": "per_channel"},
        waveform={"scale": "decibel", "auto_start": {"enabled": True, "threshold": 0.05, "criterion": "peak"}},
        normalization={"reference": "true_peak", "target_level": -1.0, "on_limit": "reject"},
    )
    profile = load_analysis_profile(str(write_profile(tmp_path, doc)))
    assert profile.name == "test_profile"
    assert profile.version == "2.0"
    assert profile.loudness.channel_weights == (1.0, 1.0)
    assert profile.loudness.true_peak_oversample == 8
    assert profile.spectrum.window_size == 4096
    assert profile.spectrum.channel_mode == "per_channel"
    assert profile.waveform.scale == "decibel"
    assert profile.waveform.auto_start == AutoStartConfig(threshold=0.05, criterion="peak")
    assert profile.normalization.reference == "true_peak"
    assert profile.normalization.on_limit == "reject"


def test_profile_hash_tracks_content():
    a = analysis_profile_from_dict(build_profile_dict(spectrum={"window_size": 1024}))
    b = analysis_profile_from_dict(build_profile_dict(spectrum={"window_size": 1024}))
    c = analysis_profile_from_dict(build_profile_dict(spectrum={"window_size": 512}))
    assert a.profile_hash_sha256 == b.profile_hash_sha256
    assert a.profile_hash_sha256 != c.profile_hash_sha256


def test_disabled_auto_start_is_none():
    profile = analysis_profile_from_dict(build_profile_dict(waveform={"auto_start": {"threshold": 0.2}}))
    assert profile.waveform.auto_start is None


def test_invalid_profile_reports_every_problem():
    doc = build_profile_dict(
        loudness={"true_peak_oversample": 2},
        spectrum={"window_size": 1000, "overlap": 1.0},
        waveform={"columns": 0, "scale": "log"},
        normalization={"reference": "rms", "output_format": "ogg"},
    )
    doc["extras"] = {}
    with pytest.raises(ValueError) as exc_info:
        validate_analysis_profile_dict(doc)
    message = str(exc_info.value)
    for fragment in (
        "unknown section: extras",
        "true_peak_oversample",
        "window_size must be a power of two",
        "overlap",
        "columns",
        "waveform.scale",
        "normalization.reference",
        "normalization.output_format",
    ):
        assert fragment in message
    assert message.count("; ") == 7


@pytest.mark.parametrize(
    "doc, fragment",
    [
        ({"spectrum": {"min_freq_hz": 5000, "max_freq_hz": 1000}}, "greater than min_freq_hz"),
        ({"spectrum": {"floor_db": 0}}, "floor_db must be a negative number"),
        ({"loudness": {"channel_weights": [1.0, -1.0]}}, "channel_weights"),
        ({"loudness": {"lra_hop_s": 0}}, "lra_hop_s"),
        ({"waveform": {"auto_start": {"criterion": "lufs"}}}, "criterion"),
        ({"normalization": {"bit_depth": 12}}, "bit_depth"),
        ({"profile": {"name": ""}}, "profile.name"),
        ({"spectrum": []}, "spectrum must be an object"),
    ],
)
def test_invalid_profile_fields(doc, fragment):
    with pytest.raises(ValueError, match=fragment):
        analysis_profile_from_dict(doc)


def test_profile_must_be_object():
    with pytest.raises(ValueError, match="JSON object"):
        validate_analysis_profile_dict([])
