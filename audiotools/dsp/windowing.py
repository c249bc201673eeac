"""Windowing functions for DSP operations."""
import numpy as np


def hann(n: int, periodic: bool = True) -> np.ndarray:
    """Generate a Hann window of length n (periodic by default for STFT use)."""
    if n <= 0:
        raise ValueError("window length must be positive.")
    if periodic:
        return np.hanning(n + 1)[:-1].astype(np.float64)
    return np.hanning(n).astype(np.float64)


def coherent_gain(w: np.ndarray) -> float:
    """Sum of window samples; amplitude of a bin-centred sine scales by sum(w)/2."""
    return float(np.sum(w.astype(np.float64)))
