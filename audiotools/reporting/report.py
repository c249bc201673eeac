from __future__ import annotations
from datetime import datetime, timezone

from audiotools.algorithms.registry import algorithm_ids_from_registry
from audiotools.types import (
    Annotation,
    LoudnessResult,
    NormalizationPlan,
    PeakMeasurement,
    Spectrogram,
    WaveformEnvelope,
    WaveformScale,
)
from audiotools.utils.hashing import sha256_hex_canonical_json
from audiotools.utils.quantize import q, q_list, q_matrix

SCHEMA_VERSION = "1.0"
DB_STEP = 0.01
TIME_STEP = 1e-4
AMPLITUDE_STEP = 1e-6


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _annotations(items: tuple[Annotation, ...]) -> list[dict]:
    return [
        {"position": q(a.position, TIME_STEP), "label": a.label, "axis": a.axis}
        for a in items
    ]


def _finalize(report: dict) -> dict:
    """Attach the integrity hash computed over everything else."""
    tmp = dict(report)
    tmp.pop("integrity", None)
    report["integrity"] = {"report_hash_sha256": sha256_hex_canonical_json(tmp)}
    return report


def build_analysis_report(
    *,
    kind: str,
    engine: dict,
    input_meta: dict,
    profile,
    algorithms: dict,
    results: dict,
    warnings: list[str] | None = None,
    created_utc: str | None = None
) -> dict:
    """
    Wrap already-serialized results in the common report envelope.

    Args:
        kind: Report kind (info, loudness, spectrum, waveform, normalize)
        engine: Engine metadata (name, version, platform)
        input_meta: Input file metadata
        profile: AnalysisProfile the results were computed with
        algorithms: Algorithm registry entries
        results: Kind-specific payload
        warnings: Deviations noted while computing the payload

    Returns:
        Report dictionary with an integrity hash
    """
    report = {
        "schema_version": SCHEMA_VERSION,
        "kind": kind,
        "created_utc": created_utc or _utc_now(),
        "engine": engine,
        "input": input_meta,
        "profile": {
            "name": profile.name,
            "version": profile.version,
            "profile_hash_sha256": profile.profile_hash_sha256,
            "algorithm_ids": algorithm_ids_from_registry(algorithms),
        },
        "algorithms": algorithms,
        "results": results,
        "warnings": list(warnings or []),
    }
    return _finalize(report)


def loudness_to_dict(result: LoudnessResult) -> dict:
    """Quantized, JSON-ready view of a LoudnessResult."""
    return {
        "status": result.status.value,
        "integrated_lufs": q(result.integrated_lufs, DB_STEP),
        "loudness_range_lu": q(result.loudness_range_lu, DB_STEP),
        "lra_low_lufs": q(result.lra_low_lufs, DB_STEP),
        "lra_high_lufs": q(result.lra_high_lufs, DB_STEP),
        "relative_threshold_lufs": q(result.relative_threshold_lufs, DB_STEP),
        "momentary_max_lufs": q(result.momentary_max_lufs, DB_STEP),
        "short_term_max_lufs": q(result.short_term_max_lufs, DB_STEP),
        "sample_peak_dbfs": q(result.sample_peak_dbfs, DB_STEP),
        "true_peak_dbtp": q(result.true_peak_dbtp, DB_STEP),
        "block_count": result.block_count,
        "gated_block_count": result.gated_block_count,
        "channel_weights": list(result.channel_weights),
    }


def build_loudness_report(
    *,
    engine: dict,
    input_meta: dict,
    profile,
    algorithms: dict,
    result: LoudnessResult,
    created_utc: str | None = None
) -> dict:
    """Loudness report for one file."""
    return build_analysis_report(
        kind="loudness",
        engine=engine,
        input_meta=input_meta,
        profile=profile,
        algorithms=algorithms,
        results={"loudness": loudness_to_dict(result)},
        warnings=result.warnings,
        created_utc=created_utc,
    )


def _measurement_to_dict(measurement: LoudnessResult | PeakMeasurement) -> dict:
    if isinstance(measurement, LoudnessResult):
        return loudness_to_dict(measurement)
    return {
        "sample_peak_dbfs": q(measurement.sample_peak_dbfs, DB_STEP),
        "true_peak_dbtp": q(measurement.true_peak_dbtp, DB_STEP),
    }


def plan_to_dict(plan: NormalizationPlan) -> dict:
    return {
        "reference": plan.reference,
        "target_level": q(plan.target_level, DB_STEP),
        "measured_level": q(plan.measured_level, DB_STEP),
        "requested_gain_db": q(plan.requested_gain_db, DB_STEP),
        "gain_db": q(plan.gain_db, DB_STEP),
        "linear_gain": q(plan.linear_gain, AMPLITUDE_STEP),
        "current_peak_db": q(plan.current_peak_db, DB_STEP),
        "projected_peak_db": q(plan.projected_peak_db, DB_STEP),
        "ceiling_db": q(plan.ceiling_db, DB_STEP),
        "gain_limited": plan.gain_limited,
    }


def build_normalization_report(
    *,
    engine: dict,
    input_meta: dict,
    profile,
    algorithms: dict,
    measurement: LoudnessResult | PeakMeasurement,
    plan: NormalizationPlan,
    output_path: str | None,
    applied: bool,
    extra_warnings: list[str] | None = None,
    created_utc: str | None = None
) -> dict:
    """
    Normalization report: what was measured, the plan, and whether it was written.

    A rejected plan is still reported (``applied`` False) so the limited gain
    that would have been used stays visible.
    """
    warnings = list(getattr(measurement, "warnings", []) or [])
    warnings.extend(plan.warnings)
    warnings.extend(extra_warnings or [])
    return build_analysis_report(
        kind="normalize",
        engine=engine,
        input_meta=input_meta,
        profile=profile,
        algorithms=algorithms,
        results={
            "measurement": _measurement_to_dict(measurement),
            "plan": plan_to_dict(plan),
            "applied": bool(applied),
            "output_path": output_path,
        },
        warnings=warnings,
        created_utc=created_utc,
    )


def spectrogram_to_dict(spectrogram: Spectrogram) -> dict:
    """JSON-ready spectrogram: bins, frame times and a frames x bins dB matrix."""
    return {
        "channel": spectrogram.channel,
        "sample_rate": spectrogram.sample_rate,
        "window_size": spectrogram.window_size,
        "hop": spectrogram.hop,
        "zero_padded": spectrogram.zero_padded,
        "floor_db": spectrogram.floor_db,
        "freqs_hz": q_list(spectrogram.freqs_hz, DB_STEP),
        "times_s": q_list(spectrogram.times_s, TIME_STEP),
        "magnitudes_db": q_matrix(spectrogram.matrix(), DB_STEP),
        "annotations": _annotations(spectrogram.annotations),
        "warnings": list(spectrogram.warnings),
    }


def waveform_to_dict(envelope: WaveformEnvelope) -> dict:
    """JSON-ready waveform envelope; one min/max/RMS triple per column."""
    step = DB_STEP if envelope.scale == WaveformScale.DECIBEL else AMPLITUDE_STEP
    return {
        "channel": envelope.channel,
        "scale": envelope.scale.value,
        "sample_rate": envelope.sample_rate,
        "start_s": q(envelope.start_s, TIME_STEP),
        "end_s": q(envelope.end_s, TIME_STEP),
        "detected_start_s": q(envelope.detected_start_s, TIME_STEP),
        "floor_db": envelope.floor_db,
        "columns": envelope.column_count,
        "times_s": q_list(envelope.column_times_s(), TIME_STEP),
        "mins": q_list(envelope.mins, step),
        "maxs": q_list(envelope.maxs, step),
        "rms": q_list(envelope.rms, step),
        "annotations": _annotations(envelope.annotations),
        "warnings": list(envelope.warnings),
    }
