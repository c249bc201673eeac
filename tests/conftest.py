from __future__ import annotations

import json
import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def sine(
    freq_hz: float = 1000.0,
    *,
    amplitude: float = 0.5,
    seconds: float = 1.0,
    fs: int = 48000,
    phase: float = 0.0
) -> np.ndarray:
    t = np.arange(int(round(seconds * fs)), dtype=np.float64) / fs
    return amplitude * np.sin(2.0 * np.pi * freq_hz * t + phase)


def stereo(x: np.ndarray) -> np.ndarray:
    return np.stack([x, x], axis=1)


def level_to_amplitude(dbfs: float) -> float:
    return float(10.0 ** (dbfs / 20.0))


def write_wav(path: Path, samples: np.ndarray, fs: int = 48000, subtype: str = "PCM_24") -> Path:
    import soundfile as sf

    path.parent.mkdir(parents=True, exist_ok=True)
    sf.write(str(path), samples, fs, subtype=subtype)
    return path


def build_profile_dict(
    *,
    loudness: dict | None = None,
    spectrum: dict | None = None,
    waveform: dict | None = None,
    normalization: dict | None = None
) -> dict:
    doc: dict = {"profile": {"name": "test_profile", "version": "2.0"}}
    for name, section in (
        ("loudness", loudness),
        ("spectrum", spectrum),
        ("waveform", waveform),
        ("normalization", normalization),
    ):
        if section is not None:
            doc[name] = section
    return doc


def write_profile(tmp_path: Path, profile: dict) -> Path:
    path = tmp_path / "profile.json"
    path.write_text(json.dumps(profile), encoding="utf-8")
    return path
