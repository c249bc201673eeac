from __future__ import annotations

import numpy as np
import pytest

from audiotools.dsp.stft import frame_count, hop_for, stft_magnitude_db, validate_window_size
from audiotools.dsp.windowing import coherent_gain, hann
from audiotools.errors import InputError, InsufficientDataError


def test_hann_is_periodic():
    w = hann(8)
    assert w.size == 8
    assert w[0] == 0.0
    assert np.isclose(w[4], 1.0)
    assert np.isclose(coherent_gain(w), 4.0)


def test_hop_for_overlap():
    assert hop_for(2048, 0.5) == 1024
    assert hop_for(1024, 0.0) == 1024
    assert hop_for(1024, 0.75) == 256
    with pytest.raises(InputError, match="overlap"):
        hop_for(1024, 1.0)
    with pytest.raises(InputError, match="no hop"):
        hop_for(16, 0.99)


def test_validate_window_size():
    assert validate_window_size(4096) == 4096
    for bad in (1000, 8, True, 16.5):
        with pytest.raises(InputError):
            validate_window_size(bad)


def test_frame_count_with_and_without_padding():
    assert frame_count(10000, 1024, 512, zero_pad=False) == 18
    assert frame_count(10000, 1024, 512, zero_pad=True) == 19
    assert frame_count(100, 1024, 512, zero_pad=False) == 0
    assert frame_count(100, 1024, 512, zero_pad=True) == 1
    assert frame_count(0, 1024, 512) == 0


def test_bin_centred_sine_reads_zero_dbfs():
    fs = 48000
    n = 1024
    freq = 64 * fs / n
    t = np.arange(fs // 4) / fs
    x = np.sin(2.0 * np.pi * freq * t)
    freqs, times, mag_db = stft_magnitude_db(x, fs, window_size=n, hop=512, zero_pad=False)
    assert np.isclose(freqs[64], freq)
    assert mag_db.shape == (frame_count(x.size, n, 512, zero_pad=False), n // 2 + 1)
    assert np.allclose(mag_db[:, 64], 0.0, atol=0.01)
    assert np.all(mag_db <= 0.01)
    assert np.isclose(times[0], n / 2 / fs)


def test_silence_sits_on_the_floor():
    _, _, mag_db = stft_magnitude_db(np.zeros(4096), 48000, window_size=1024, hop=512, floor_db=-100.0)
    assert np.allclose(mag_db, -100.0)


def test_short_signal_without_padding_is_insufficient():
    with pytest.raises(InsufficientDataError):
        stft_magnitude_db(np.zeros(100), 48000, window_size=1024, hop=512, zero_pad=False)
    _, times, _ = stft_magnitude_db(np.zeros(100), 48000, window_size=1024, hop=512, zero_pad=True)
    assert times.size == 1


def test_stft_rejects_multichannel_input():
    with pytest.raises(InputError, match="mono"):
        stft_magnitude_db(np.zeros((4096, 2)), 48000)
