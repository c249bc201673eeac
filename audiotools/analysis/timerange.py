"""Time specifications, time ranges, and annotation parsing."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from audiotools.errors import InputError
from audiotools.types import Annotation


@dataclass(frozen=True)
class Seconds:
    value: float

    def to_seconds(self, total: float) -> float:
        return float(self.value)


@dataclass(frozen=True)
class MinutesSeconds:
    minutes: int
    seconds: int

    def to_seconds(self, total: float) -> float:
        return float(self.minutes * 60 + self.seconds)


@dataclass(frozen=True)
class Percentage:
    """Fraction of the total duration, 0.0 to 1.0."""
    fraction: float

    def to_seconds(self, total: float) -> float:
        return float(total) * float(self.fraction)


TimeSpecification = Union[Seconds, MinutesSeconds, Percentage]


@dataclass(frozen=True)
class TimeRange:
    start: TimeSpecification = Seconds(0.0)
    end: TimeSpecification = Percentage(1.0)

    def resolve(self, total_duration: float) -> tuple[float, float]:
        """Resolve to (start_s, end_s); invalid ranges raise InputError."""
        start = self.start.to_seconds(total_duration)
        end = self.end.to_seconds(total_duration)
        if start >= end:
            raise InputError(
                f"start time ({start:g} s) must be less than end time ({end:g} s)."
            )
        if start < 0.0:
            raise InputError(f"start time ({start:g} s) must not be negative.")
        if end > total_duration:
            raise InputError(
                f"end time ({end:g} s) exceeds audio duration ({total_duration:g} s)."
            )
        return start, end


def parse_time_specification(text: str) -> TimeSpecification:
    """
    Parse ``12.5`` (seconds), ``MM:SS``, or ``NN%``.

    Raises:
        InputError: for malformed or out-of-range values
    """
    s = str(text).strip()
    if s.endswith("%"):
        try:
            pct = float(s[:-1])
        except ValueError:
            raise InputError(f"invalid percentage: {text!r}") from None
        if pct < 0.0 or pct > 100.0:
            raise InputError("percentage must be between 0 and 100.")
        return Percentage(pct / 100.0)
    if ":" in s:
        parts = s.split(":")
        if len(parts) != 2:
            raise InputError(f"invalid time format {text!r}; use MM:SS.")
        try:
            minutes = int(parts[0])
            seconds = int(parts[1])
        except ValueError:
            raise InputError(f"invalid time format {text!r}; use MM:SS.") from None
        if minutes < 0 or seconds < 0:
            raise InputError("minutes and seconds must not be negative.")
        if seconds >= 60:
            raise InputError("seconds must be less than 60.")
        return MinutesSeconds(minutes, seconds)
    try:
        value = float(s)
    except ValueError:
        raise InputError(f"invalid seconds value: {text!r}") from None
    if value < 0.0:
        raise InputError("seconds must not be negative.")
    return Seconds(value)


def make_time_range(start: str | None, end: str | None) -> TimeRange | None:
    """Build a TimeRange from optional CLI strings; None when neither is given."""
    if start is None and end is None:
        return None
    return TimeRange(
        start=parse_time_specification(start) if start is not None else Seconds(0.0),
        end=parse_time_specification(end) if end is not None else Percentage(1.0),
    )


def parse_annotation(text: str, axis: str = "time") -> Annotation:
    """Parse ``position:label`` (seconds for time, Hz for frequency)."""
    position, sep, label = str(text).partition(":")
    if not sep or not label:
        raise InputError(f"annotation {text!r} must look like 'position:label'.")
    try:
        value = float(position)
    except ValueError:
        raise InputError(f"invalid annotation position: {position!r}") from None
    return Annotation(position=value, label=label, axis=axis)
