from __future__ import annotations

import numpy as np
import pytest
from scipy.signal import resample_poly

from audiotools.errors import InputError, InsufficientDataError
from audiotools.metrics.loudness import (
    default_channel_weights,
    gating_blocks,
    integrated_lufs_mono,
    measure_loudness,
    short_term_lufs_series_mono,
)
from audiotools.metrics.truepeak import (
    sample_peak,
    sample_peak_dbfs,
    true_peak,
    true_peak_dbtp,
    true_peak_dbtp_mono,
)
from audiotools.types import LoudnessStatus, PcmBuffer
from tests.conftest import level_to_amplitude, sine, stereo


def test_true_peak_basic_sine():
    fs = 48000
    x = sine(1000.0, amplitude=0.5, seconds=0.1, fs=fs)
    tp = true_peak_dbtp_mono(x, fs, oversample=4)
    assert np.isclose(tp, -6.02, atol=0.1)


def test_true_peak_finds_intersample_peak():
    fs = 48000
    x = sine(fs / 4.0, amplitude=0.5, seconds=0.1, fs=fs, phase=np.pi / 4)
    assert np.isclose(sample_peak_dbfs(x), -9.03, atol=0.05)
    assert np.isclose(true_peak_dbtp(x), -6.02, atol=0.2)


def test_true_peak_never_below_sample_peak():
    rng = np.random.default_rng(11)
    x = 0.3 * rng.standard_normal((4800, 2))
    assert true_peak(x) >= sample_peak(x)


def test_true_peak_chunked_matches_whole_buffer():
    rng = np.random.default_rng(5)
    x = 0.2 * rng.standard_normal(300000)
    expected = max(np.max(np.abs(x)), np.max(np.abs(resample_poly(x, 4, 1))))
    assert np.isclose(true_peak(x, oversample=4), expected, rtol=1e-9)


def test_true_peak_rejects_low_oversampling():
    with pytest.raises(InputError, match=">= 4"):
        true_peak(np.ones(16), oversample=2)


def test_silence_has_no_peak_level():
    assert sample_peak_dbfs(np.zeros(100)) is None
    assert true_peak_dbtp(np.zeros(100)) is None


def test_integrated_loudness_stereo_reference_levels():
    fs = 48000
    for target in (-23.0, -33.0):
        x = sine(1000.0, amplitude=level_to_amplitude(target), seconds=5.0, fs=fs)
        result = measure_loudness(PcmBuffer(samples=stereo(x), sample_rate=fs))
        assert result.status == LoudnessStatus.OK
        assert np.isclose(result.integrated_lufs, target, atol=0.1)


def test_integrated_loudness_mono_is_3db_below_stereo():
    fs = 48000
    x = sine(1000.0, amplitude=level_to_amplitude(-23.0), seconds=5.0, fs=fs)
    assert np.isclose(integrated_lufs_mono(x, fs), -26.01, atol=0.1)


def test_integrated_loudness_at_44k1():
    fs = 44100
    x = sine(1000.0, amplitude=level_to_amplitude(-23.0), seconds=5.0, fs=fs)
    result = measure_loudness(PcmBuffer(samples=stereo(x), sample_rate=fs))
    assert np.isclose(result.integrated_lufs, -23.0, atol=0.1)


def test_silence_has_no_measurable_loudness():
    result = measure_loudness(PcmBuffer(samples=np.zeros((96000, 2)), sample_rate=48000))
    assert result.status == LoudnessStatus.NO_MEASURABLE_LOUDNESS
    assert result.integrated_lufs is None
    assert result.sample_peak_dbfs is None
    assert any("-70 LUFS" in w for w in result.warnings)
    with pytest.raises(InsufficientDataError):
        result.require_integrated()


def test_short_buffer_is_insufficient_data():
    fs = 48000
    x = sine(1000.0, amplitude=0.1, seconds=0.3, fs=fs)
    result = measure_loudness(PcmBuffer.from_mono(x, fs))
    assert result.status == LoudnessStatus.INSUFFICIENT_DATA
    assert result.integrated_lufs is None
    assert result.sample_peak_dbfs is not None
    assert "400 ms" in result.warnings[0]
    with pytest.raises(InsufficientDataError):
        integrated_lufs_mono(x, fs)


def test_loudness_range_of_alternating_levels():
    fs = 48000
    seg = 10 * fs
    env = np.concatenate([
        np.full(seg, level_to_amplitude(-20.0)),
        np.full(seg, level_to_amplitude(-30.0)),
        np.full(seg, level_to_amplitude(-20.0)),
        np.full(seg, level_to_amplitude(-30.0)),
    ])
    x = env * sine(1000.0, amplitude=1.0, seconds=40.0, fs=fs)
    result = measure_loudness(PcmBuffer(samples=stereo(x), sample_rate=fs))
    assert np.isclose(result.loudness_range_lu, 10.0, atol=0.1)
    assert np.isclose(result.lra_high_lufs, -20.0, atol=0.1)
    assert np.isclose(result.short_term_max_lufs, -20.0, atol=0.1)


def test_loudness_range_needs_one_short_term_window():
    fs = 48000
    x = sine(1000.0, amplitude=0.1, seconds=2.0, fs=fs)
    result = measure_loudness(PcmBuffer.from_mono(x, fs))
    assert result.status == LoudnessStatus.OK
    assert result.loudness_range_lu is None
    assert any("loudness range not computed" in w for w in result.warnings)


def test_lfe_channel_is_excluded_by_default():
    fs = 48000
    assert default_channel_weights(6) == (1.0, 1.0, 1.0, 0.0, 1.41, 1.41)
    samples = np.zeros((fs, 6))
    samples[:, 3] = sine(1000.0, amplitude=0.5, seconds=1.0, fs=fs)
    result = measure_loudness(PcmBuffer(samples=samples, sample_rate=fs))
    assert result.status == LoudnessStatus.NO_MEASURABLE_LOUDNESS


def test_invalid_channel_weights():
    buf = PcmBuffer(samples=np.zeros((48000, 2)), sample_rate=48000)
    with pytest.raises(InputError, match="entries for 2 channels"):
        measure_loudness(buf, channel_weights=[1.0])
    with pytest.raises(InputError, match="non-negative"):
        measure_loudness(buf, channel_weights=[1.0, -1.0])


def test_gating_blocks_count_and_spacing():
    fs = 48000
    x = sine(1000.0, amplitude=0.1, seconds=1.0, fs=fs)
    blocks = gating_blocks(PcmBuffer.from_mono(x, fs))
    assert len(blocks) == 7
    assert [b.start for b in blocks[:3]] == [0, 4800, 9600]


def test_gating_blocks_mark_digital_silence_as_none():
    fs = 48000
    x = np.concatenate([np.zeros(fs), sine(1000.0, amplitude=0.1, seconds=1.0, fs=fs)])
    blocks = gating_blocks(PcmBuffer.from_mono(x, fs))
    assert blocks[0].loudness is None
    assert blocks[0].mean_square == 0.0
    assert np.isfinite(blocks[-1].loudness)


def test_short_term_series_marks_silence_as_nan():
    fs = 48000
    x = np.concatenate([np.zeros(4 * fs), sine(1000.0, amplitude=0.1, seconds=4.0, fs=fs)])
    times, lufs = short_term_lufs_series_mono(x, fs)
    assert times.size == lufs.size
    assert np.isnan(lufs[0])
    assert np.isfinite(lufs[-1])
