from __future__ import annotations

import numpy as np
import pytest

from audiotools.dsp.filters import (
    K_WEIGHTING_48K_SOS,
    FilterState,
    apply_sos,
    k_weighting_biquads,
    k_weighting_sos,
)
from audiotools.errors import InputError


def test_k_weighting_48k_uses_published_table():
    sos = k_weighting_sos(48000)
    assert np.array_equal(sos, K_WEIGHTING_48K_SOS)
    sos[0, 0] = 0.0
    assert K_WEIGHTING_48K_SOS[0, 0] != 0.0


def test_k_weighting_recompute_matches_table_at_48k():
    shelf, hp = k_weighting_biquads(48000)
    recomputed = np.array([shelf.as_sos_row(), hp.as_sos_row()])
    assert np.allclose(recomputed, K_WEIGHTING_48K_SOS, atol=1e-4)


def test_k_weighting_44k1_coefficients():
    sos = k_weighting_sos(44100)
    shelf_b = [1.5308412300503478, -2.6509799951547297, 1.1690790799215869]
    shelf_a = [1.0, -1.6636551132560204, 0.7125954280732254]
    hp_a = [1.0, -1.9891696736297957, 0.9891990357870394]
    assert np.allclose(sos[0, :3], shelf_b, atol=1e-3)
    assert np.allclose(sos[0, 3:], shelf_a, atol=1e-3)
    assert np.allclose(sos[1, :3], [1.0, -2.0, 1.0])
    assert np.allclose(sos[1, 3:], hp_a, atol=1e-3)


def test_k_weighting_rejects_low_rate():
    with pytest.raises(InputError, match="too low"):
        k_weighting_sos(3000)


def test_filter_state_chunks_match_single_pass():
    rng = np.random.default_rng(7)
    x = rng.standard_normal(10000)
    sos = k_weighting_sos(48000)
    whole = apply_sos(x, sos)
    state = FilterState.create(sos)
    parts = [state.process(x[i:i + 999]) for i in range(0, x.size, 999)]
    assert np.allclose(np.concatenate(parts), whole, atol=1e-12)


def test_apply_sos_filters_channels_independently():
    rng = np.random.default_rng(3)
    left = rng.standard_normal(4096)
    x = np.stack([left, np.zeros_like(left)], axis=1)
    y = apply_sos(x, k_weighting_sos(48000))
    assert y.shape == x.shape
    assert np.allclose(y[:, 0], apply_sos(left, k_weighting_sos(48000)))
    assert np.all(y[:, 1] == 0.0)


def test_filter_state_rejects_bad_shapes():
    with pytest.raises(InputError):
        FilterState.create(np.zeros((2, 5)))
    state = FilterState.create(k_weighting_sos(48000))
    with pytest.raises(InputError):
        state.process(np.zeros((4, 2)))
