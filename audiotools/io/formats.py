"""Output formats and the ffmpeg / soundfile encode boundary."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import shutil
import subprocess
from typing import ClassVar, Union

import numpy as np

from audiotools.errors import InputError
from audiotools.types import PcmBuffer

MP3_BITRATES_KBPS = (32, 40, 48, 56, 64, 80, 96, 112, 128, 160, 192, 224, 256, 320)
FLAC_MAX_COMPRESSION = 8


@dataclass(frozen=True)
class WavFormat:
    bit_depth: int = 16
    floating: bool = False

    name: ClassVar[str] = "wav"
    extension: ClassVar[str] = "wav"

    def __post_init__(self) -> None:
        if self.bit_depth not in (16, 24, 32):
            raise InputError(f"Unsupported WAV bit depth: {self.bit_depth} (use 16, 24 or 32).")
        if self.floating and self.bit_depth != 32:
            raise InputError("Floating-point WAV is 32-bit only.")

    def ffmpeg_args(self) -> list[str]:
        if self.floating:
            return ["-acodec", "pcm_f32le"]
        return ["-acodec", f"pcm_s{self.bit_depth}le"]

    def soundfile_args(self) -> dict:
        if self.floating:
            return {"format": "WAV", "subtype": "FLOAT"}
        return {"format": "WAV", "subtype": f"PCM_{self.bit_depth}"}


@dataclass(frozen=True)
class FlacFormat:
    compression_level: int = FLAC_MAX_COMPRESSION
    bit_depth: int = 16

    name: ClassVar[str] = "flac"
    extension: ClassVar[str] = "flac"

    def __post_init__(self) -> None:
        if isinstance(self.compression_level, bool) or not (
            isinstance(self.compression_level, int)
            and 0 <= self.compression_level <= FLAC_MAX_COMPRESSION
        ):
            raise InputError(
                f"FLAC compression level must be 0..{FLAC_MAX_COMPRESSION}, got {self.compression_level}."
            )
        if self.bit_depth not in (16, 24):
            raise InputError(f"Unsupported FLAC bit depth: {self.bit_depth} (use 16 or 24).")

    def ffmpeg_args(self) -> list[str]:
        args = ["-acodec", "flac", "-compression_level", str(self.compression_level)]
        if self.bit_depth == 24:
            return args + ["-sample_fmt", "s32", "-bits_per_raw_sample", "24"]
        return args + ["-sample_fmt", "s16"]

    def soundfile_args(self) -> dict:
        # libsndfile maps 0..1 onto FLAC levels 0..8
        return {
            "format": "FLAC",
            "subtype": f"PCM_{self.bit_depth}",
            "compression_level": self.compression_level / float(FLAC_MAX_COMPRESSION),
        }


@dataclass(frozen=True)
class Mp3Format:
    bitrate_kbps: int = 320

    name: ClassVar[str] = "mp3"
    extension: ClassVar[str] = "mp3"

    def __post_init__(self) -> None:
        if self.bitrate_kbps not in MP3_BITRATES_KBPS:
            raise InputError(
                f"Unsupported MP3 bitrate: {self.bitrate_kbps} kbps "
                f"(use one of {', '.join(str(b) for b in MP3_BITRATES_KBPS)})."
            )

    def ffmpeg_args(self) -> list[str]:
        return ["-acodec", "libmp3lame", "-b:a", f"{self.bitrate_kbps}k"]


OutputFormat = Union[WavFormat, FlacFormat, Mp3Format]
OUTPUT_FORMAT_NAMES = (WavFormat.name, FlacFormat.name, Mp3Format.name)


def parse_output_format(
    name: str,
    *,
    bit_depth: int | None = None,
    bitrate_kbps: int | None = None,
    compression_level: int | None = None
) -> OutputFormat:
    """
    Build an output format from its name and optional parameters.

    Parameters that do not apply to the chosen format are ignored.
    """
    key = str(name).strip().lower().lstrip(".")
    if key == "wav":
        return WavFormat(bit_depth=16 if bit_depth is None else int(bit_depth))
    if key == "flac":
        return FlacFormat(
            compression_level=FLAC_MAX_COMPRESSION if compression_level is None else int(compression_level),
            bit_depth=16 if bit_depth is None else int(bit_depth),
        )
    if key == "mp3":
        return Mp3Format(bitrate_kbps=320 if bitrate_kbps is None else int(bitrate_kbps))
    raise InputError(f"Unsupported output format: {name} (use {', '.join(OUTPUT_FORMAT_NAMES)}).")


def output_path_for(
    source: str | Path,
    fmt: OutputFormat,
    *,
    input_root: str | Path | None = None,
    output_dir: str | Path | None = None,
    prefix: str = "",
    postfix: str = "",
    flatten: bool = False
) -> Path:
    """
    Destination path for a converted file.

    Without ``output_dir`` the file lands next to its source. With it, the
    source's sub-directory under ``input_root`` is mirrored unless
    ``flatten`` is set.
    """
    src = Path(source)
    filename = f"{prefix}{src.stem}{postfix}.{fmt.extension}"
    if output_dir is None:
        return src.with_name(filename)
    out_dir = Path(output_dir)
    if flatten or input_root is None:
        return out_dir / filename
    root = Path(input_root)
    if root.is_file():
        root = root.parent
    try:
        relative = src.parent.relative_to(root)
    except ValueError:
        relative = Path()
    return out_dir / relative / filename


def build_ffmpeg_command(
    source: str | Path,
    destination: str | Path,
    fmt: OutputFormat,
    *,
    sample_rate: int | None = None,
    gain_db: float | None = None,
    overwrite: bool = False,
    ffmpeg: str = "ffmpeg"
) -> list[str]:
    """ffmpeg argument list converting ``source`` into ``destination``."""
    cmd = [ffmpeg, "-hide_banner", "-v", "error", "-y" if overwrite else "-n", "-i", str(source)]
    if sample_rate is not None:
        if isinstance(sample_rate, bool) or int(sample_rate) != sample_rate or sample_rate <= 0:
            raise InputError(f"sample rate must be a positive integer, got {sample_rate}.")
        cmd += ["-ar", str(int(sample_rate))]
    if gain_db is not None:
        if not np.isfinite(gain_db):
            raise InputError("gain must be finite.")
        cmd += ["-af", f"volume={float(gain_db):.4f}dB"]
    cmd += fmt.ffmpeg_args()
    cmd.append(str(destination))
    return cmd


def convert_file(
    source: str | Path,
    destination: str | Path,
    fmt: OutputFormat,
    *,
    sample_rate: int | None = None,
    gain_db: float | None = None,
    overwrite: bool = False
) -> Path:
    """
    Convert one file with ffmpeg.

    Raises:
        RuntimeError: ffmpeg is not installed
        FileExistsError: destination exists and ``overwrite`` is off
        InputError: bad parameters or ffmpeg rejected the input
    """
    src = Path(source)
    dst = Path(destination)
    if src.resolve() == dst.resolve():
        raise InputError(f"refusing to convert {src} onto itself.")
    if dst.exists() and not overwrite:
        raise FileExistsError(f"{dst} exists (use --force to overwrite).")
    ffmpeg = shutil.which("ffmpeg")
    if not ffmpeg:
        raise RuntimeError("ffmpeg not found.")
    cmd = build_ffmpeg_command(
        src, dst, fmt,
        sample_rate=sample_rate,
        gain_db=gain_db,
        overwrite=True,
        ffmpeg=ffmpeg,
    )
    dst.parent.mkdir(parents=True, exist_ok=True)
    proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        raise InputError(f"ffmpeg conversion failed: {proc.stderr.strip()}")
    return dst


def write_pcm(
    path: str | Path,
    buffer: PcmBuffer,
    fmt: OutputFormat,
    *,
    overwrite: bool = False
) -> list[str]:
    """
    Write a buffer as WAV or FLAC through soundfile.

    Returns:
        Warnings about the write (e.g. samples beyond full scale)
    """
    import soundfile as sf

    if isinstance(fmt, Mp3Format):
        raise InputError("MP3 output is encoded with ffmpeg; use convert_file.")
    dst = Path(path)
    if dst.exists() and not overwrite:
        raise FileExistsError(f"{dst} exists (use --force to overwrite).")
    warnings: list[str] = []
    peak = float(np.max(np.abs(buffer.samples)))
    if peak > 1.0 and not getattr(fmt, "floating", False):
        warnings.append(
            f"peak {peak:.4f} exceeds full scale and will clip in {fmt.bit_depth}-bit PCM."
        )
    dst.parent.mkdir(parents=True, exist_ok=True)
    sf.write(str(dst), buffer.samples, buffer.sample_rate, **fmt.soundfile_args())
    return warnings
