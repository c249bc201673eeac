from __future__ import annotations

import numpy as np
import pytest

from audiotools.analysis.spectrogram import compute_spectrogram
from audiotools.analysis.waveform import compute_waveform
from audiotools.dsp.normalize import plan_normalization
from audiotools.metrics.loudness import measure_loudness
from audiotools.metrics.silence import AutoStartConfig
from audiotools.types import Annotation, PcmBuffer
from tests.conftest import level_to_amplitude, sine


def _buffer(fs: int = 48000) -> PcmBuffer:
    tone = sine(1000.0, amplitude=level_to_amplitude(-20.0), seconds=3.0, fs=fs)
    x = np.concatenate([np.zeros(fs // 2), tone])
    return PcmBuffer.from_planar([x, 0.5 * x], fs)


def test_repeated_runs_are_identical():
    buf = _buffer()

    first, second = measure_loudness(buf), measure_loudness(buf)
    assert first == second

    a = compute_spectrogram(buf, window_size=1024, channel_mode="per_channel")
    b = compute_spectrogram(buf, window_size=1024, channel_mode="per_channel")
    assert len(a) == len(b)
    for sa, sb in zip(a, b):
        assert np.array_equal(sa.matrix(), sb.matrix())
        assert np.array_equal(sa.freqs_hz, sb.freqs_hz)
        assert np.array_equal(sa.times_s, sb.times_s)

    kwargs = dict(columns=200, scale="decibel", auto_start=AutoStartConfig(), annotations=[Annotation(1.0, "x")])
    wa, wb = compute_waveform(buf, **kwargs), compute_waveform(buf, **kwargs)
    for name in ("mins", "maxs", "rms"):
        assert np.array_equal(getattr(wa, name), getattr(wb, name))
    assert (wa.start_s, wa.detected_start_s, wa.warnings) == (wb.start_s, wb.detected_start_s, wb.warnings)

    pa = plan_normalization(first, -14.0, ceiling_db=-1.0)
    pb = plan_normalization(second, -14.0, ceiling_db=-1.0)
    assert pa == pb


def test_results_are_read_only():
    buf = _buffer()
    (spec,) = compute_spectrogram(buf, window_size=1024)
    env = compute_waveform(buf, columns=50)
    result = measure_loudness(buf)
    plan = plan_normalization(result, -14.0)

    assert isinstance(result.warnings, tuple)
    assert isinstance(plan.warnings, tuple)
    assert isinstance(spec.warnings, tuple)
    assert isinstance(env.warnings, tuple)
    for arr in (spec.freqs_hz, spec.frames[0].magnitudes_db, env.mins, env.maxs, env.rms):
        assert not arr.flags.writeable
        with pytest.raises(ValueError):
            arr[0] = 1.0
