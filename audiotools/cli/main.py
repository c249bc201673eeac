"""audiotools CLI - batch audio analysis, normalization and conversion."""
from __future__ import annotations
import argparse
from dataclasses import asdict
from concurrent.futures import ProcessPoolExecutor, as_completed
import json
import logging
import os
from pathlib import Path
import platform
import shutil
import subprocess
import sys
import tempfile

import numpy as np

from audiotools.version import __version__
from audiotools.algorithms.registry import build_algorithm_registry
from audiotools.analysis.spectrogram import CHANNEL_MODES, compute_spectrogram
from audiotools.analysis.timerange import make_time_range, parse_annotation
from audiotools.analysis.waveform import compute_waveform
from audiotools.dsp.normalize import (
    LIMIT_POLICIES,
    REFERENCES,
    apply_normalization,
    measure_peaks,
    plan_normalization,
    remix_channels,
)
from audiotools.errors import InputError, InsufficientDataError, LimitExceededError
from audiotools.io.audio import AUDIO_EXTENSIONS, iter_audio_files, load_audio, probe_audio
from audiotools.io.formats import (
    OUTPUT_FORMAT_NAMES,
    Mp3Format,
    WavFormat,
    build_ffmpeg_command,
    convert_file,
    output_path_for,
    parse_output_format,
    write_pcm,
)
from audiotools.metrics.levels import rms_dbfs_mono
from audiotools.metrics.loudness import measure_loudness
from audiotools.metrics.silence import CRITERIA, silence_bounds
from audiotools.metrics.truepeak import sample_peak_dbfs, true_peak_dbtp
from audiotools.profiles.loader import analysis_profile_from_dict, read_profile_json
from audiotools.reporting.batch_summary import build_batch_summary, render_batch_summary_md
from audiotools.reporting.report import (
    build_analysis_report,
    build_loudness_report,
    build_normalization_report,
    spectrogram_to_dict,
    waveform_to_dict,
)
from audiotools.types import FileStatus, LoudnessStatus, PcmBuffer
from audiotools.utils.canonical_json import pretty_dumps
from audiotools.utils.hashing import sha256_hex_file
from audiotools.utils.quantize import q

logger = logging.getLogger("audiotools.cli")

EXIT_OK = 0
EXIT_BAD_ARGS = 2
EXIT_DECODE_ERROR = 3
EXIT_PROFILE_ERROR = 4
EXIT_INTERNAL_ERROR = 5
EXIT_INSUFFICIENT_DATA = 6
EXIT_LIMIT_EXCEEDED = 7

# CLI dest -> path inside the profile document
_PROFILE_OVERRIDES = {
    "channel_weights": ("loudness", "channel_weights"),
    "oversample": ("loudness", "true_peak_oversample"),
    "window_size": ("spectrum", "window_size"),
    "overlap": ("spectrum", "overlap"),
    "min_freq": ("spectrum", "min_freq_hz"),
    "max_freq": ("spectrum", "max_freq_hz"),
    "channel_mode": ("spectrum", "channel_mode"),
    "zero_pad": ("spectrum", "zero_pad"),
    "columns": ("waveform", "columns"),
    "scale": ("waveform", "scale"),
    "auto_start": ("waveform", "auto_start", "enabled"),
    "threshold": ("waveform", "auto_start", "threshold"),
    "auto_window": ("waveform", "auto_start", "window_size"),
    "min_duration": ("waveform", "auto_start", "min_duration_s"),
    "criterion": ("waveform", "auto_start", "criterion"),
    "snap": ("waveform", "auto_start", "snap_to_zero_crossing"),
    "target": ("normalization", "target_level"),
    "reference": ("normalization", "reference"),
    "ceiling": ("normalization", "ceiling_db"),
    "on_limit": ("normalization", "on_limit"),
    "format": ("normalization", "output_format"),
    "bit_depth": ("normalization", "bit_depth"),
    "postfix": ("normalization", "postfix"),
}


class ProfileFileError(Exception):
    """The --profile file could not be read or is invalid."""


def _build_engine_meta() -> dict:
    """Engine metadata embedded in every report."""
    import scipy
    import soundfile as sf

    ffmpeg_version = "unavailable"
    ffmpeg = shutil.which("ffmpeg")
    if ffmpeg:
        try:
            proc = subprocess.run([ffmpeg, "-version"], capture_output=True, text=True, check=False)
        except OSError as exc:
            logger.warning("could not query ffmpeg version: %s", exc)
        else:
            if proc.stdout:
                ffmpeg_version = proc.stdout.splitlines()[0].strip()
    return {
        "name": "audiotools",
        "version": __version__,
        "build": {
            "platform": platform.platform(),
            "python": platform.python_version(),
            "deps": [
                {"name": "numpy", "version": np.__version__},
                {"name": "scipy", "version": scipy.__version__},
                {"name": "soundfile", "version": sf.__version__},
                {"name": "ffmpeg", "version": ffmpeg_version},
            ],
        },
    }


def _path_meta(audio_path: str) -> dict:
    path = Path(audio_path)
    return {
        "path": str(path.resolve()),
        "file_hash_sha256": sha256_hex_file(str(path)),
        "size_bytes": path.stat().st_size,
    }


def _build_input_meta(audio_path: str, buffer: PcmBuffer) -> dict:
    """Input metadata for a decoded file."""
    import hashlib

    meta = _path_meta(audio_path)
    meta.update({
        "decoded_pcm_hash_sha256": hashlib.sha256(buffer.samples.tobytes()).hexdigest(),
        "sample_rate_hz": buffer.sample_rate,
        "channels": buffer.channels,
        "frames": buffer.frames,
        "duration_s": buffer.duration,
        "decode_backend": buffer.backend,
        "decode_warnings": list(buffer.warnings),
    })
    return meta


def _silence_dict(bounds: dict) -> dict:
    return {k: (q(v, 1e-4) if isinstance(v, float) else v) for k, v in bounds.items()}


def _report_kwargs(profile, opts: dict) -> dict:
    return {
        "engine": opts["engine"],
        "profile": profile,
        "algorithms": build_algorithm_registry(profile),
    }


def _loudness_kwargs(profile) -> dict:
    loud = profile.loudness
    return {
        "channel_weights": loud.channel_weights,
        "true_peak_oversample": loud.true_peak_oversample,
        "lra_window_s": loud.lra_window_s,
        "lra_hop_s": loud.lra_hop_s,
    }


def _info_one(audio_path: str, input_root: str, profile, opts: dict):
    results = {"file": probe_audio(audio_path)}
    warnings: list[str] = []
    if opts.get("levels"):
        buffer = load_audio(audio_path)
        warnings.extend(buffer.warnings)
        results["levels"] = {
            "sample_peak_dbfs": q(sample_peak_dbfs(buffer.samples), 0.01),
            "true_peak_dbtp": q(
                true_peak_dbtp(buffer.samples, oversample=profile.loudness.true_peak_oversample), 0.01
            ),
            "rms_dbfs": q(rms_dbfs_mono(buffer.mono()), 0.01),
            "silence": _silence_dict(
                silence_bounds(buffer.mono(), buffer.sample_rate, profile.waveform.auto_start)
            ),
        }
    report = build_analysis_report(
        kind="info",
        input_meta=_path_meta(audio_path),
        results=results,
        warnings=warnings,
        **_report_kwargs(profile, opts),
    )
    return report, FileStatus.OK, None, EXIT_OK


def _loudness_one(audio_path: str, input_root: str, profile, opts: dict):
    buffer = load_audio(audio_path)
    result = measure_loudness(buffer, **_loudness_kwargs(profile))
    report = build_loudness_report(
        input_meta=_build_input_meta(audio_path, buffer),
        result=result,
        **_report_kwargs(profile, opts),
    )
    if result.status == LoudnessStatus.INSUFFICIENT_DATA:
        reason = result.warnings[0] if result.warnings else "insufficient data"
        return report, FileStatus.SKIPPED, reason, EXIT_INSUFFICIENT_DATA
    return report, FileStatus.OK, None, EXIT_OK


def _spectrum_one(audio_path: str, input_root: str, profile, opts: dict):
    buffer = load_audio(audio_path)
    s = profile.spectrum
    spectrograms = compute_spectrogram(
        buffer,
        window_size=s.window_size,
        overlap=s.overlap,
        min_freq_hz=s.min_freq_hz,
        max_freq_hz=s.max_freq_hz,
        channel_mode=s.channel_mode,
        zero_pad=s.zero_pad,
        floor_db=s.floor_db,
        annotations=opts.get("annotations", ()),
    )
    warnings = list(buffer.warnings)
    # annotation warnings are shared by every channel view
    warnings.extend(spectrograms[0].warnings)
    report = build_analysis_report(
        kind="spectrum",
        input_meta=_build_input_meta(audio_path, buffer),
        results={"spectrograms": [spectrogram_to_dict(sp) for sp in spectrograms]},
        warnings=warnings,
        **_report_kwargs(profile, opts),
    )
    return report, FileStatus.OK, None, EXIT_OK


def _waveform_one(audio_path: str, input_root: str, profile, opts: dict):
    buffer = load_audio(audio_path)
    w = profile.waveform
    envelope = compute_waveform(
        buffer,
        columns=w.columns,
        scale=w.scale,
        time_range=opts.get("time_range"),
        auto_start=w.auto_start,
        annotations=opts.get("annotations", ()),
        channel=opts.get("channel"),
        floor_db=w.floor_db,
    )
    bounds = silence_bounds(buffer.mono(), buffer.sample_rate, w.auto_start)
    report = build_analysis_report(
        kind="waveform",
        input_meta=_build_input_meta(audio_path, buffer),
        results={"waveform": waveform_to_dict(envelope), "silence": _silence_dict(bounds)},
        warnings=list(buffer.warnings) + list(envelope.warnings),
        **_report_kwargs(profile, opts),
    )
    return report, FileStatus.OK, None, EXIT_OK


def _write_normalized(buffer: PcmBuffer, dest: Path, fmt, opts: dict) -> list[str]:
    if isinstance(fmt, Mp3Format):
        with tempfile.TemporaryDirectory() as tmp:
            wav = Path(tmp) / "normalized.wav"
            warnings = write_pcm(wav, buffer, WavFormat(bit_depth=32, floating=True), overwrite=True)
            convert_file(wav, dest, fmt, overwrite=opts.get("force", False))
        return warnings
    return write_pcm(dest, buffer, fmt, overwrite=opts.get("force", False))


def _normalize_one(audio_path: str, input_root: str, profile, opts: dict):
    settings = profile.normalization
    fmt = opts["format"]
    buffer = load_audio(audio_path)
    if opts.get("channels"):
        buffer = remix_channels(buffer, opts["channels"])
    if settings.reference == "integrated":
        measurement = measure_loudness(buffer, **_loudness_kwargs(profile))
    else:
        measurement = measure_peaks(buffer, oversample=profile.loudness.true_peak_oversample)

    dest = output_path_for(
        audio_path,
        fmt,
        input_root=input_root,
        output_dir=opts.get("audio_dir"),
        prefix=opts.get("prefix", ""),
        postfix=settings.postfix,
        flatten=opts.get("flatten", False),
    )
    if dest.resolve() == Path(audio_path).resolve():
        raise InputError(f"output would overwrite the input {audio_path}; set a prefix, postfix or --audio-dir.")

    common = dict(
        input_meta=_build_input_meta(audio_path, buffer),
        measurement=measurement,
        **_report_kwargs(profile, opts),
    )
    try:
        plan = plan_normalization(
            measurement,
            settings.target_level,
            reference=settings.reference,
            ceiling_db=settings.ceiling_db,
            on_limit=settings.on_limit,
        )
    except LimitExceededError as exc:
        report = build_normalization_report(plan=exc.plan, output_path=None, applied=False, **common)
        return report, FileStatus.ERROR, str(exc), EXIT_LIMIT_EXCEEDED

    write_warnings: list[str] = []
    if not opts.get("dry_run"):
        write_warnings = _write_normalized(apply_normalization(buffer, plan), dest, fmt, opts)
        logger.info("wrote %s (gain %+.2f dB)", dest, plan.gain_db)
    report = build_normalization_report(
        plan=plan,
        output_path=str(dest),
        applied=not opts.get("dry_run"),
        extra_warnings=list(buffer.warnings) + write_warnings,
        **common,
    )
    return report, FileStatus.OK, None, EXIT_OK


def _convert_one(audio_path: str, input_root: str, profile, opts: dict):
    fmt = opts["format"]
    dest = output_path_for(
        audio_path,
        fmt,
        input_root=input_root,
        output_dir=opts.get("audio_dir"),
        prefix=opts.get("prefix", ""),
        postfix=opts.get("postfix", ""),
        flatten=opts.get("flatten", False),
    )
    cmd = build_ffmpeg_command(
        audio_path, dest, fmt,
        sample_rate=opts.get("sample_rate"),
        overwrite=opts.get("force", False),
    )
    logger.debug("ffmpeg command: %s", " ".join(cmd))
    if not opts.get("dry_run"):
        convert_file(
            audio_path, dest, fmt,
            sample_rate=opts.get("sample_rate"),
            overwrite=opts.get("force", False),
        )
    report = build_analysis_report(
        kind="convert",
        input_meta=_path_meta(audio_path),
        results={
            "output_path": str(dest),
            "format": {"name": fmt.name, **asdict(fmt)},
            "sample_rate": opts.get("sample_rate"),
            "command": cmd,
            "converted": not opts.get("dry_run"),
        },
        **_report_kwargs(profile, opts),
    )
    return report, FileStatus.OK, None, EXIT_OK


_COMMANDS = {
    "info": _info_one,
    "loudness": _loudness_one,
    "spectrum": _spectrum_one,
    "waveform": _waveform_one,
    "normalize": _normalize_one,
    "convert": _convert_one,
}


def _report_path(out_dir: Path, audio_path: Path, input_root: Path, kind: str) -> Path:
    """Report path mirroring the file's sub-directory under the input root."""
    root = input_root if input_root.is_dir() else input_root.parent
    try:
        relative = audio_path.parent.relative_to(root)
    except ValueError:
        relative = Path()
    return out_dir / relative / f"{audio_path.stem}.{kind}.json"


def _file_worker(
    task: tuple[str, str, str, object, dict]
) -> tuple[str, str, str | None, dict | None, int]:
    """Process one file; every failure is captured into the result tuple."""
    audio_path, command, input_root, profile, opts = task
    try:
        report, status, err, code = _COMMANDS[command](audio_path, input_root, profile, opts)
        if report is not None and opts.get("out_dir"):
            out_path = _report_path(Path(opts["out_dir"]), Path(audio_path), Path(input_root), command)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(pretty_dumps(report), encoding="utf-8")
        return (audio_path, status.value, err, report, code)
    except InsufficientDataError as exc:
        logger.warning("%s: skipped: %s", audio_path, exc)
        return (audio_path, FileStatus.SKIPPED.value, str(exc), None, EXIT_INSUFFICIENT_DATA)
    except FileNotFoundError as exc:
        return (audio_path, FileStatus.ERROR.value, f"File not found - {exc}", None, EXIT_DECODE_ERROR)
    except FileExistsError as exc:
        return (audio_path, FileStatus.ERROR.value, str(exc), None, EXIT_BAD_ARGS)
    except ValueError as exc:
        return (audio_path, FileStatus.ERROR.value, str(exc), None, EXIT_DECODE_ERROR)
    except Exception as exc:
        logger.exception("internal error while processing %s", audio_path)
        return (audio_path, FileStatus.ERROR.value, f"Internal error: {exc}", None, EXIT_INTERNAL_ERROR)


def _float_list(text: str) -> list[float]:
    try:
        return [float(v) for v in text.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated numbers, got {text!r}") from None


def _csv_list(text: str) -> list[str]:
    return [v.strip().lower().lstrip(".") for v in text.split(",") if v.strip()]


def _deep_merge(base: dict, extra: dict) -> dict:
    out = dict(base)
    for k, v in extra.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def profile_overrides(args: argparse.Namespace) -> dict:
    """Nested profile document built from the CLI flags that were given."""
    doc: dict = {}
    for dest, path in _PROFILE_OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is None:
            continue
        node = doc
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = value
    return doc


def resolve_profile(args: argparse.Namespace):
    """
    Profile file (or defaults) with CLI overrides applied.

    Raises:
        ProfileFileError: the --profile file is unreadable or invalid
        ValueError: an override produced an invalid profile
    """
    base: dict = {}
    if getattr(args, "profile", None):
        try:
            base = read_profile_json(args.profile)
            analysis_profile_from_dict(base)
        except (OSError, ValueError) as exc:
            raise ProfileFileError(str(exc)) from exc
    return analysis_profile_from_dict(_deep_merge(base, profile_overrides(args)))


def build_options(args: argparse.Namespace, command: str, profile) -> dict:
    """Per-file options that are not part of the analysis profile."""
    opts: dict = {
        "out_dir": getattr(args, "out_dir", None),
        "levels": getattr(args, "levels", False),
        "channel": getattr(args, "channel", None),
        "audio_dir": getattr(args, "audio_dir", None),
        "prefix": getattr(args, "prefix", None) or "",
        "postfix": getattr(args, "postfix", None) or "",
        "flatten": getattr(args, "flatten", False),
        "force": getattr(args, "force", False),
        "dry_run": getattr(args, "dry_run", False),
        "sample_rate": getattr(args, "sample_rate", None),
        "channels": getattr(args, "channels", None),
    }
    axis = "frequency" if command == "spectrum" else "time"
    opts["annotations"] = tuple(
        parse_annotation(a, axis=axis) for a in (getattr(args, "annotate", None) or [])
    )
    if command == "waveform":
        opts["time_range"] = make_time_range(args.start, args.end)
    if command == "convert":
        opts["format"] = parse_output_format(
            args.output_format,
            bit_depth=args.bit_depth,
            bitrate_kbps=args.bitrate,
            compression_level=args.compression_level,
        )
    if command == "normalize":
        settings = profile.normalization
        opts["format"] = parse_output_format(
            settings.output_format,
            bit_depth=settings.bit_depth,
            bitrate_kbps=args.bitrate,
            compression_level=args.compression_level,
        )
    return opts


def _batch_exit_code(results: list[tuple], single: bool) -> int:
    """Single files report their own code; batches fail on the first error only."""
    if single:
        return results[0][4] if results else EXIT_BAD_ARGS
    for _, status, _, _, code in results:
        if status == FileStatus.ERROR.value:
            return code
    return EXIT_OK


def run_command(args: argparse.Namespace) -> int:
    """Shared driver for every sub-command."""
    command = args.command
    try:
        profile = resolve_profile(args)
    except ProfileFileError as exc:
        print(f"Error: Invalid profile - {exc}", file=sys.stderr)
        return EXIT_PROFILE_ERROR
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_BAD_ARGS

    try:
        opts = build_options(args, command, profile)
        extensions = getattr(args, "input_format", None) or AUDIO_EXTENSIONS
        audio_paths = list(iter_audio_files(args.input, args.recursive, extensions))
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_BAD_ARGS
    if not audio_paths:
        print("Error: No input files found.", file=sys.stderr)
        return EXIT_BAD_ARGS

    single = Path(args.input).is_file()
    if args.summary and not args.out_dir:
        print("Error: --summary requires --out-dir.", file=sys.stderr)
        return EXIT_BAD_ARGS
    if args.out_dir:
        Path(args.out_dir).mkdir(parents=True, exist_ok=True)
    opts["engine"] = _build_engine_meta()

    tasks = [(str(p), command, str(args.input), profile, opts) for p in audio_paths]
    max_workers = max(1, min(int(args.workers), len(tasks)))
    logger.info("%s: %d file(s), %d worker(s)", command, len(tasks), max_workers)

    results: list[tuple[str, str, str | None, dict | None, int]] = []
    try:
        if max_workers == 1:
            for task in tasks:
                results.append(_file_worker(task))
                if not single:
                    _print_progress(results[-1])
        else:
            with ProcessPoolExecutor(max_workers=max_workers) as ex:
                futures = [ex.submit(_file_worker, task) for task in tasks]
                for fut in as_completed(futures):
                    results.append(fut.result())
                    _print_progress(results[-1])
    except Exception as exc:
        logger.exception("batch run failed")
        print(f"Internal error: {exc}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR
    results.sort(key=lambda r: r[0])

    if single:
        audio_path, status, err, report, code = results[0]
        if err:
            print(f"Error: {err}", file=sys.stderr)
        if report is not None:
            if args.out:
                Path(args.out).write_text(pretty_dumps(report), encoding="utf-8")
                print(f"Report written to: {args.out}", file=sys.stderr)
            elif not args.out_dir:
                print(pretty_dumps(report))

    if args.summary:
        summary = build_batch_summary([r[:4] for r in results], command=command)
        out_dir = Path(args.out_dir)
        (out_dir / "batch-summary.json").write_text(json.dumps(summary, indent=2), encoding="utf-8")
        (out_dir / "batch-summary.md").write_text(render_batch_summary_md(summary), encoding="utf-8")
        print(f"Summary written to: {out_dir / 'batch-summary.json'}", file=sys.stderr)

    return _batch_exit_code(results, single)


def _print_progress(result: tuple) -> None:
    audio_path, status, err, _, _ = result
    if status == FileStatus.ERROR.value:
        print(f"[ERROR] {audio_path}: {err}", file=sys.stderr)
    elif status == FileStatus.SKIPPED.value:
        print(f"[SKIPPED] {audio_path}: {err}")
    else:
        print(f"[OK] {audio_path}")


def _add_common_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("input", help="Audio file or folder")
    p.add_argument("--recursive", "-r", action="store_true", help="Recurse into subfolders")
    p.add_argument(
        "--input-format", "-I",
        type=_csv_list,
        help=f"Comma-separated extensions to process (default: {','.join(AUDIO_EXTENSIONS)})"
    )
    p.add_argument("--profile", "-p", help="Analysis profile JSON")
    p.add_argument("--out", "-o", help="Report path (single file input)")
    p.add_argument("--out-dir", help="Directory for per-file report JSONs")
    p.add_argument(
        "--summary",
        action="store_true",
        help="Write batch-summary.json and batch-summary.md into --out-dir"
    )
    p.add_argument(
        "--workers",
        type=int,
        default=max(1, (os.cpu_count() or 2) - 1),
        help="Parallel workers (default: cpu_count-1)"
    )


def _add_output_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--audio-dir", help="Output directory for audio (default: next to the source)")
    p.add_argument("--flatten", action="store_true", help="Do not mirror input sub-directories")
    p.add_argument("--prefix", help="Prefix for output filenames")
    p.add_argument("--postfix", help="Postfix for output filenames")
    p.add_argument("--bit-depth", type=int, help="PCM bit depth (wav: 16/24/32, flac: 16/24)")
    p.add_argument("--bitrate", type=int, help="MP3 bitrate in kbps (default: 320)")
    p.add_argument("--compression-level", type=int, help="FLAC compression level 0-8 (default: 8)")
    p.add_argument("--force", action="store_true", help="Overwrite existing outputs")
    p.add_argument("--dry-run", action="store_true", help="Plan without writing audio")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audiotools",
        description="audiotools - batch audio analysis, normalization and conversion"
    )
    parser.add_argument("--version", action="version", version=f"audiotools {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    info = subparsers.add_parser("info", help="Show container and stream information")
    _add_common_arguments(info)
    info.add_argument("--levels", action="store_true", help="Also decode and report peaks and silence")
    info.set_defaults(func=run_command)

    loud = subparsers.add_parser("loudness", help="Measure EBU R128 loudness and true peak")
    _add_common_arguments(loud)
    loud.add_argument("--channel-weights", type=_float_list, help="Per-channel weights, e.g. 1,1,1,0,1.41,1.41")
    loud.add_argument("--oversample", type=int, help="True-peak oversampling factor (>= 4)")
    loud.set_defaults(func=run_command)

    spec = subparsers.add_parser("spectrum", help="Compute spectrograms")
    _add_common_arguments(spec)
    spec.add_argument("--window-size", "-w", type=int, help="FFT window size, power of two (default: 2048)")
    spec.add_argument("--overlap", type=float, help="Window overlap in [0, 1) (default: 0.5)")
    spec.add_argument("--min-freq", type=float, help="Lowest frequency in Hz (default: 0)")
    spec.add_argument("--max-freq", type=float, help="Highest frequency in Hz (default: Nyquist)")
    spec.add_argument("--channel-mode", choices=CHANNEL_MODES, help="mono downmix or one per channel")
    spec.add_argument(
        "--no-zero-pad", dest="zero_pad", action="store_const", const=False,
        help="Drop the trailing partial frame instead of zero-padding it"
    )
    spec.add_argument("--annotate", action="append", help="Frequency annotation 'hz:label' (repeatable)")
    spec.set_defaults(func=run_command)

    wave = subparsers.add_parser("waveform", help="Compute waveform envelopes")
    _add_common_arguments(wave)
    wave.add_argument("--columns", type=int, help="Envelope resolution (default: 1200)")
    wave.add_argument("--scale", choices=["amplitude", "decibel"], help="Envelope scale")
    wave.add_argument("--start", help="Range start: seconds, MM:SS or NN%%")
    wave.add_argument("--end", help="Range end: seconds, MM:SS or NN%%")
    wave.add_argument("--channel", type=int, help="Channel index (default: mono downmix)")
    wave.add_argument(
        "--auto-start", dest="auto_start", action="store_const", const=True,
        help="Start the envelope at the detected onset"
    )
    wave.add_argument("--threshold", type=float, help="Onset threshold, linear (default: 0.01)")
    wave.add_argument("--auto-window", type=int, help="Onset detection span in samples (default: 512)")
    wave.add_argument("--min-duration", type=float, help="Seconds the level must hold (default: 0.01)")
    wave.add_argument("--criterion", choices=CRITERIA, help="Onset level criterion")
    wave.add_argument(
        "--no-snap", dest="snap", action="store_const", const=False,
        help="Do not snap the onset to a zero crossing"
    )
    wave.add_argument("--annotate", action="append", help="Time annotation 'seconds:label' (repeatable)")
    wave.set_defaults(func=run_command)

    norm = subparsers.add_parser("normalize", help="Normalize loudness or peak level")
    _add_common_arguments(norm)
    _add_output_arguments(norm)
    norm.add_argument("--target", type=float, help="Target level in LUFS or dB (default: -23)")
    norm.add_argument("--reference", choices=REFERENCES, help="Measured quantity to normalize")
    norm.add_argument("--ceiling", type=float, help="Peak ceiling in dBTP (default: -1)")
    norm.add_argument("--on-limit", choices=LIMIT_POLICIES, help="Cap the gain or reject the file")
    norm.add_argument("--format", "-O", choices=OUTPUT_FORMAT_NAMES, help="Output format (default: wav)")
    norm.add_argument("--channels", type=int, help="Downmix to mono (1) or duplicate mono to N channels")
    norm.set_defaults(func=run_command)

    conv = subparsers.add_parser("convert", help="Convert between formats with ffmpeg")
    _add_common_arguments(conv)
    _add_output_arguments(conv)
    conv.add_argument(
        "--output-format", "-O",
        choices=OUTPUT_FORMAT_NAMES,
        default="wav",
        help="Target format (default: wav)"
    )
    conv.add_argument("--sample-rate", "-s", type=int, help="Target sample rate in Hz")
    conv.set_defaults(func=run_command)
    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s"
    )
    if hasattr(args, "func"):
        sys.exit(args.func(args))
    parser.print_help()
    sys.exit(EXIT_BAD_ARGS)


if __name__ == "__main__":
    main()
