"""Algorithm registry: ids and locked parameters recorded in every report."""
from __future__ import annotations

from audiotools.dsp.filters import REFERENCE_RATE_HZ
from audiotools.metrics import loudness as lm

K_WEIGHTING_ALGO_ID = "k_weighting_bs1770_bilinear_v1"
LOUDNESS_ALGO_ID = "loudness_bs1770-4_ebur128_gated_v1"
LRA_ALGO_ID = "loudness_range_tech3342_v1"
TRUE_PEAK_ALGO_ID = "true_peak_kaiser_sinc_polyphase_v1"
SPECTROGRAM_ALGO_ID = "stft_hann_periodic_coherent_db_v1"
WAVEFORM_ALGO_ID = "waveform_minmaxrms_linspace_v1"
AUTO_START_ALGO_ID = "auto_start_sustained_span_v1"
NORMALIZATION_ALGO_ID = "normalization_gain_ceiling_v1"


def build_algorithm_registry(profile) -> dict:
    """
    Build the algorithm registry for an AnalysisProfile.

    Entries are keyed by algorithm id; each holds the parameters that
    determine its output so two reports can be compared like for like.
    """
    loud = profile.loudness
    spec = profile.spectrum
    wf = profile.waveform
    norm = profile.normalization
    auto = wf.auto_start

    registry = {
        K_WEIGHTING_ALGO_ID: {
            "id": K_WEIGHTING_ALGO_ID,
            "params": {
                "reference_rate_hz": REFERENCE_RATE_HZ,
                "stages": ["high_shelf", "high_pass"],
                "other_rates": "bilinear_prewarped_recompute",
            },
        },
        LOUDNESS_ALGO_ID: {
            "id": LOUDNESS_ALGO_ID,
            "params": {
                "block_s": lm.BLOCK_SECONDS,
                "hop_s": lm.BLOCK_HOP_SECONDS,
                "absolute_gate_lufs": lm.ABSOLUTE_GATE_LUFS,
                "relative_gate_lu": lm.RELATIVE_GATE_LU,
                "channel_weights": (
                    "layout_default" if loud.channel_weights is None
                    else list(loud.channel_weights)
                ),
            },
        },
        LRA_ALGO_ID: {
            "id": LRA_ALGO_ID,
            "params": {
                "window_s": float(loud.lra_window_s),
                "hop_s": float(loud.lra_hop_s),
                "relative_gate_lu": lm.LRA_RELATIVE_GATE_LU,
                "low_percentile": lm.LRA_LOW_PERCENTILE,
                "high_percentile": lm.LRA_HIGH_PERCENTILE,
            },
        },
        TRUE_PEAK_ALGO_ID: {
            "id": TRUE_PEAK_ALGO_ID,
            "params": {
                "method": "scipy_resample_poly",
                "window": "kaiser",
                "oversample": int(loud.true_peak_oversample),
            },
        },
        SPECTROGRAM_ALGO_ID: {
            "id": SPECTROGRAM_ALGO_ID,
            "params": {
                "window": "hann_periodic",
                "window_size": int(spec.window_size),
                "overlap": float(spec.overlap),
                "zero_pad": bool(spec.zero_pad),
                "channel_mode": spec.channel_mode,
                "floor_db": float(spec.floor_db),
            },
        },
        WAVEFORM_ALGO_ID: {
            "id": WAVEFORM_ALGO_ID,
            "params": {
                "columns": int(wf.columns),
                "scale": wf.scale,
                "floor_db": float(wf.floor_db),
            },
        },
        NORMALIZATION_ALGO_ID: {
            "id": NORMALIZATION_ALGO_ID,
            "params": {
                "reference": norm.reference,
                "target_level": float(norm.target_level),
                "ceiling_db": float(norm.ceiling_db),
                "on_limit": norm.on_limit,
            },
        },
    }
    if auto is not None:
        registry[AUTO_START_ALGO_ID] = {
            "id": AUTO_START_ALGO_ID,
            "params": {
                "threshold": float(auto.threshold),
                "window_size": int(auto.window_size),
                "min_duration_s": float(auto.min_duration_s),
                "criterion": auto.criterion,
                "snap_to_zero_crossing": bool(auto.snap_to_zero_crossing),
            },
        }
    return registry


def algorithm_ids_from_registry(registry: dict) -> list[str]:
    """Return sorted algorithm IDs from registry."""
    return sorted(registry.keys())
