"""Audio decode boundary: files in, PcmBuffer out."""
from __future__ import annotations

import json
import os
import shutil
import subprocess
import warnings as py_warnings
from pathlib import Path
from typing import Iterable, Iterator

import numpy as np

from audiotools.errors import InputError
from audiotools.types import PcmBuffer

AUDIO_EXTENSIONS = (
    "wav", "flac", "mp3", "aac", "m4a", "ogg", "wma", "aiff", "alac", "opus",
)
SIZE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")


def _extension(path: str | Path) -> str:
    return Path(path).suffix.lower().lstrip(".")


def is_audio_file(path: str | Path, extensions: Iterable[str] | None = None) -> bool:
    """True when the file extension is one of the supported audio formats."""
    allowed = {e.lower().lstrip(".") for e in (extensions or AUDIO_EXTENSIONS)}
    return _extension(path) in allowed


def iter_audio_files(
    path: str | Path,
    recursive: bool = False,
    extensions: Iterable[str] | None = None
) -> Iterator[Path]:
    """
    Yield audio files under ``path`` in sorted order.

    A single file is yielded as-is when its extension matches. Directories
    are scanned one level deep unless ``recursive`` is set.
    """
    root = Path(path)
    if not root.exists():
        raise InputError(f"Path not found: {root}")
    exts = tuple(extensions) if extensions else AUDIO_EXTENSIONS
    if root.is_file():
        if is_audio_file(root, exts):
            yield root
        return
    candidates = root.rglob("*") if recursive else root.glob("*")
    for p in sorted(candidates):
        if p.is_file() and is_audio_file(p, exts):
            yield p


def format_size(num_bytes: int) -> str:
    """Human-readable size, e.g. ``1.50 KB (1536 bytes)``."""
    if num_bytes <= 0:
        return f"0 {SIZE_UNITS[0]}"
    unit = 0
    while num_bytes >= 1024 ** (unit + 1):
        unit += 1
    if unit >= len(SIZE_UNITS):
        return f"{num_bytes} {SIZE_UNITS[0]}"
    size = num_bytes / float(1024 ** unit)
    return f"{size:.2f} {SIZE_UNITS[unit]} ({num_bytes} bytes)"


def _decode_soundfile(path: str) -> tuple[np.ndarray, int, list[str]]:
    """Decode using soundfile (libsndfile)."""
    import soundfile as sf

    with py_warnings.catch_warnings(record=True) as w:
        py_warnings.simplefilter("always")
        data, fs = sf.read(path, always_2d=True, dtype="float64")
    warn_list = [str(wi.message) for wi in w]
    return data, int(fs), warn_list


def _run_ffprobe(path: str, entries: str) -> dict:
    ffprobe = shutil.which("ffprobe")
    if not ffprobe:
        raise RuntimeError("ffprobe not found for ffmpeg backend.")
    cmd = [
        ffprobe,
        "-v", "error",
        "-select_streams", "a:0",
        "-show_entries", entries,
        "-of", "json",
        path,
    ]
    proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        raise InputError(f"ffprobe failed: {proc.stderr.strip()}")
    return json.loads(proc.stdout or "{}")


def _ffprobe_info(path: str) -> tuple[int, int]:
    """Return (sample_rate, channels) from ffprobe."""
    info = _run_ffprobe(path, "stream=sample_rate,channels")
    streams = info.get("streams", [])
    if not streams:
        raise InputError("ffprobe reported no audio streams.")
    stream = streams[0]
    return int(stream["sample_rate"]), int(stream["channels"])


def _decode_ffmpeg(path: str) -> tuple[np.ndarray, int, list[str]]:
    """Decode using ffmpeg to raw float32 PCM."""
    ffmpeg = shutil.which("ffmpeg")
    if not ffmpeg:
        raise RuntimeError("ffmpeg backend not available.")
    fs, ch = _ffprobe_info(path)
    cmd = [
        ffmpeg,
        "-v", "warning",
        "-i", path,
        "-f", "f32le",
        "-acodec", "pcm_f32le",
        "-vn",
        "pipe:1",
    ]
    proc = subprocess.run(cmd, capture_output=True, check=False)
    warn_list = [
        line for line in proc.stderr.decode("utf-8", errors="replace").splitlines()
        if line.strip()
    ]
    if proc.returncode != 0:
        raise InputError("ffmpeg decode failed.")
    data = np.frombuffer(proc.stdout, dtype=np.float32)
    n = (data.size // ch) * ch
    if n != data.size:
        warn_list.append("ffmpeg: trimmed partial frame at end of stream.")
        data = data[:n]
    return data.reshape(-1, ch).astype(np.float64), fs, warn_list


def load_audio(path: str | Path) -> PcmBuffer:
    """
    Load an audio file into a float64 PcmBuffer, keeping every channel.

    WAV, FLAC, AIFF and OGG decode through soundfile; anything libsndfile
    rejects falls back to ffmpeg when it is installed. Decoder messages are
    kept in the buffer's warnings.

    Raises:
        FileNotFoundError: the path does not exist
        InputError: no backend could decode the file
    """
    path = str(path)
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    warnings_list: list[str] = []
    backend = "soundfile"
    try:
        data, fs, warn_list = _decode_soundfile(path)
    except Exception as exc:
        warnings_list.append(f"soundfile decode failed: {exc}")
        backend = "ffmpeg"
        try:
            data, fs, warn_list = _decode_ffmpeg(path)
        except RuntimeError as ff_exc:
            raise InputError(f"could not decode {path}: {exc}; {ff_exc}") from ff_exc
    warnings_list.extend(warn_list)
    return PcmBuffer(samples=data, sample_rate=fs, backend=backend, warnings=warnings_list)


def _probe_ffprobe(path: str) -> dict:
    info = _run_ffprobe(path, "stream=codec_name,sample_rate,channels,bit_rate:format=format_name,duration")
    streams = info.get("streams", [])
    if not streams:
        raise InputError("ffprobe reported no audio streams.")
    stream = streams[0]
    fmt = info.get("format", {})
    fs = int(stream["sample_rate"])
    duration = float(fmt.get("duration", 0.0) or 0.0)
    return {
        "format": str(fmt.get("format_name", _extension(path))).upper(),
        "subtype": stream.get("codec_name"),
        "channels": int(stream["channels"]),
        "sample_rate": fs,
        "frames": int(round(duration * fs)),
        "duration_s": duration,
        "bit_rate": int(stream["bit_rate"]) if stream.get("bit_rate") else None,
        "backend": "ffprobe",
    }


def probe_audio(path: str | Path) -> dict:
    """
    Container and stream facts without decoding samples.

    Returns:
        Dict with path, format, subtype, channels, sample_rate, frames,
        duration_s, size_bytes, size and the backend that answered.
    """
    path = str(path)
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    try:
        import soundfile as sf

        info = sf.info(path)
        facts = {
            "format": info.format,
            "subtype": info.subtype,
            "channels": int(info.channels),
            "sample_rate": int(info.samplerate),
            "frames": int(info.frames),
            "duration_s": float(info.duration),
            "bit_rate": None,
            "backend": "soundfile",
        }
    except Exception as exc:
        try:
            facts = _probe_ffprobe(path)
        except RuntimeError as ff_exc:
            raise InputError(f"could not probe {path}: {exc}; {ff_exc}") from ff_exc
    size = os.path.getsize(path)
    return {"path": path, **facts, "size_bytes": int(size), "size": format_size(size)}
