from __future__ import annotations

from pathlib import Path

import pytest

from audiotools.analysis.timerange import Percentage, Seconds
from audiotools.cli.main import (
    EXIT_BAD_ARGS,
    EXIT_INSUFFICIENT_DATA,
    EXIT_LIMIT_EXCEEDED,
    EXIT_OK,
    ProfileFileError,
    _batch_exit_code,
    _deep_merge,
    _report_path,
    build_options,
    build_parser,
    profile_overrides,
    resolve_profile,
)
from audiotools.io.formats import FlacFormat, WavFormat
from tests.conftest import build_profile_dict, write_profile


def test_profile_overrides_nest_only_given_flags():
    args = build_parser().parse_args(
        ["normalize", "x.wav", "--target", "-14", "--ceiling", "-2", "--on-limit", "reject"]
    )
    assert profile_overrides(args) == {
        "normalization": {"target_level": -14.0, "ceiling_db": -2.0, "on_limit": "reject"}
    }
    args = build_parser().parse_args(["waveform", "x.wav", "--auto-start", "--no-snap", "--threshold", "0.1"])
    assert profile_overrides(args) == {
        "waveform": {"auto_start": {"enabled": True, "snap_to_zero_crossing": False, "threshold": 0.1}}
    }


def test_resolve_profile_merges_file_and_flags(tmp_path):
    path = write_profile(tmp_path, build_profile_dict(spectrum={"window_size": 4096, "overlap": 0.25}))
    args = build_parser().parse_args(["spectrum", "x.wav", "-p", str(path), "--overlap", "0.75"])
    profile = resolve_profile(args)
    assert profile.name == "test_profile"
    assert profile.spectrum.window_size == 4096
    assert profile.spectrum.overlap == 0.75


def test_resolve_profile_errors(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    args = build_parser().parse_args(["loudness", "x.wav", "-p", str(bad)])
    with pytest.raises(ProfileFileError):
        resolve_profile(args)
    args = build_parser().parse_args(["loudness", "x.wav", "-p", str(tmp_path / "missing.json")])
    with pytest.raises(ProfileFileError):
        resolve_profile(args)
    args = build_parser().parse_args(["spectrum", "x.wav", "--window-size", "1000"])
    with pytest.raises(ValueError, match="power of two"):
        resolve_profile(args)


def test_build_options_per_command():
    parser = build_parser()
    args = parser.parse_args(["waveform", "x.wav", "--start", "10%", "--annotate", "1.5:drop"])
    opts = build_options(args, "waveform", resolve_profile(args))
    assert opts["time_range"].start == Percentage(0.1)
    assert opts["annotations"][0].axis == "time"

    args = parser.parse_args(["spectrum", "x.wav", "--annotate", "440:A4"])
    opts = build_options(args, "spectrum", resolve_profile(args))
    assert opts["annotations"][0].axis == "frequency"

    args = parser.parse_args(["convert", "x.wav", "-O", "flac", "--compression-level", "3", "--bit-depth", "24"])
    opts = build_options(args, "convert", resolve_profile(args))
    assert opts["format"] == FlacFormat(compression_level=3, bit_depth=24)

    args = parser.parse_args(["normalize", "x.wav"])
    opts = build_options(args, "normalize", resolve_profile(args))
    assert opts["format"] == WavFormat(24)

    args = parser.parse_args(["waveform", "x.wav", "--end", "1:99"])
    with pytest.raises(ValueError):
        build_options(args, "waveform", resolve_profile(args))


def test_waveform_end_defaults_to_full_duration():
    args = build_parser().parse_args(["waveform", "x.wav", "--end", "5"])
    opts = build_options(args, "waveform", resolve_profile(args))
    assert opts["time_range"].start == Seconds(0.0)
    assert opts["time_range"].end == Seconds(5.0)


def test_deep_merge():
    base = {"a": {"x": 1, "y": 2}, "b": 1}
    assert _deep_merge(base, {"a": {"y": 3}, "c": 4}) == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
    assert base["a"]["y"] == 2


def test_report_path_mirrors_subdirectories(tmp_path):
    root = tmp_path / "in"
    (root / "sub").mkdir(parents=True)
    out = _report_path(Path("/out"), root / "sub" / "a.wav", root, "loudness")
    assert out == Path("/out/sub/a.loudness.json")


def test_batch_exit_code():
    ok = ("a", "ok", None, None, EXIT_OK)
    skipped = ("b", "skipped", "short", None, EXIT_INSUFFICIENT_DATA)
    rejected = ("c", "error", "limit", None, EXIT_LIMIT_EXCEEDED)
    assert _batch_exit_code([skipped], single=True) == EXIT_INSUFFICIENT_DATA
    assert _batch_exit_code([ok, skipped], single=False) == EXIT_OK
    assert _batch_exit_code([ok, rejected, skipped], single=False) == EXIT_LIMIT_EXCEEDED
    assert _batch_exit_code([], single=True) == EXIT_BAD_ARGS


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
