"""Normalization gain planning and explicit channel remixing."""
from __future__ import annotations

import numpy as np

from audiotools.errors import InputError, InsufficientDataError, LimitExceededError
from audiotools.metrics.truepeak import MIN_OVERSAMPLE, sample_peak_dbfs, true_peak_dbtp
from audiotools.types import LoudnessResult, NormalizationPlan, PcmBuffer, PeakMeasurement

REFERENCES = ("integrated", "true_peak", "sample_peak")
LIMIT_POLICIES = ("limit", "reject")
DEFAULT_CEILING_DB = 0.0


def db_to_gain(gain_db: float) -> float:
    return float(10.0 ** (float(gain_db) / 20.0))


def measure_peaks(buffer: PcmBuffer, oversample: int = MIN_OVERSAMPLE) -> PeakMeasurement:
    """Peak-only measurement for peak-based normalization."""
    return PeakMeasurement(
        sample_peak_dbfs=sample_peak_dbfs(buffer.samples),
        true_peak_dbtp=true_peak_dbtp(buffer.samples, oversample=oversample),
    )


def _measured_level(measurement: LoudnessResult | PeakMeasurement, reference: str) -> float:
    if reference == "integrated":
        if not isinstance(measurement, LoudnessResult):
            raise InputError("integrated normalization needs a LoudnessResult.")
        return measurement.require_integrated()
    level = measurement.true_peak_dbtp if reference == "true_peak" else measurement.sample_peak_dbfs
    if level is None:
        raise InsufficientDataError(f"no measurable {reference.replace('_', ' ')} (digital silence).")
    return float(level)


def _current_peak(measurement: LoudnessResult | PeakMeasurement) -> tuple[float | None, list[str]]:
    if measurement.true_peak_dbtp is not None:
        return float(measurement.true_peak_dbtp), []
    if measurement.sample_peak_dbfs is not None:
        return float(measurement.sample_peak_dbfs), [
            "true peak unavailable; ceiling checked against sample peak."
        ]
    return None, []


def plan_normalization(
    measurement: LoudnessResult | PeakMeasurement,
    target_level: float,
    *,
    reference: str = "integrated",
    ceiling_db: float = DEFAULT_CEILING_DB,
    on_limit: str = "limit"
) -> NormalizationPlan:
    """
    Compute the gain that moves ``measurement`` to ``target_level``.

    The projected peak (current true peak + gain) is checked against
    ``ceiling_db``. With ``on_limit="limit"`` the gain is capped so the
    ceiling is met exactly and the plan is flagged ``gain_limited``; with
    ``on_limit="reject"`` LimitExceededError is raised carrying that capped
    plan.

    Raises:
        InputError: unknown reference/policy or wrong measurement type
        InsufficientDataError: the measurement has no usable level
        LimitExceededError: ceiling violated under the ``reject`` policy
    """
    if reference not in REFERENCES:
        raise InputError(f"Unknown normalization reference: {reference}")
    if on_limit not in LIMIT_POLICIES:
        raise InputError(f"Unknown limit policy: {on_limit}")
    target = float(target_level)
    ceiling = float(ceiling_db)
    if not np.isfinite(target) or not np.isfinite(ceiling):
        raise InputError("target_level and ceiling_db must be finite.")

    measured = _measured_level(measurement, reference)
    requested = target - measured
    current_peak, warnings = _current_peak(measurement)
    projected = None if current_peak is None else current_peak + requested

    if projected is None or projected <= ceiling:
        return NormalizationPlan(
            reference=reference,
            target_level=target,
            measured_level=measured,
            requested_gain_db=requested,
            gain_db=requested,
            linear_gain=db_to_gain(requested),
            current_peak_db=current_peak,
            projected_peak_db=projected,
            ceiling_db=ceiling,
            gain_limited=False,
            warnings=warnings,
        )

    limited = ceiling - current_peak
    warnings.append(
        f"requested gain {requested:+.2f} dB would put the peak at {projected:.2f} dB, "
        f"above the {ceiling:.2f} dB ceiling; gain limited to {limited:+.2f} dB."
    )
    plan = NormalizationPlan(
        reference=reference,
        target_level=target,
        measured_level=measured,
        requested_gain_db=requested,
        gain_db=limited,
        linear_gain=db_to_gain(limited),
        current_peak_db=current_peak,
        projected_peak_db=ceiling,
        ceiling_db=ceiling,
        gain_limited=True,
        warnings=warnings,
    )
    if on_limit == "reject":
        raise LimitExceededError(warnings[-1], plan=plan)
    return plan


def apply_normalization(buffer: PcmBuffer, plan: NormalizationPlan) -> PcmBuffer:
    """Scale a buffer by exactly the plan's reported linear gain."""
    return buffer.with_samples(buffer.samples * plan.linear_gain)


def remix_channels(buffer: PcmBuffer, channels: int) -> PcmBuffer:
    """
    Change the channel count explicitly.

    Downmixes any layout to mono (mean) or duplicates mono to N channels.
    Other conversions are not defined and raise InputError.
    """
    if isinstance(channels, bool) or int(channels) != channels or channels < 1:
        raise InputError("channels must be a positive integer.")
    channels = int(channels)
    if channels == buffer.channels:
        return buffer
    warnings = list(buffer.warnings)
    if channels == 1:
        warnings.append(f"downmixed {buffer.channels} channels to mono.")
        return buffer.with_samples(buffer.mono().reshape(-1, 1), warnings=warnings)
    if buffer.channels == 1:
        warnings.append(f"duplicated mono to {channels} channels.")
        return buffer.with_samples(np.repeat(buffer.samples, channels, axis=1), warnings=warnings)
    raise InputError(
        f"cannot remix {buffer.channels} channels to {channels}; "
        "only downmix to mono or duplication of mono is supported."
    )
