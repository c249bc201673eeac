from __future__ import annotations

import pytest

from audiotools.analysis.timerange import (
    MinutesSeconds,
    Percentage,
    Seconds,
    TimeRange,
    make_time_range,
    parse_annotation,
    parse_time_specification,
)
from audiotools.errors import InputError
from audiotools.types import Annotation


def test_parse_time_specifications():
    assert parse_time_specification("12.5") == Seconds(12.5)
    assert parse_time_specification("01:30") == MinutesSeconds(1, 30)
    assert parse_time_specification(" 25% ") == Percentage(0.25)
    assert parse_time_specification("01:30").to_seconds(0.0) == 90.0
    assert Percentage(0.25).to_seconds(200.0) == 50.0


@pytest.mark.parametrize("text", ["abc", "1:75", "1:2:3", "x:10", "150%", "-1", "abc%"])
def test_parse_time_specification_rejects(text):
    with pytest.raises(InputError):
        parse_time_specification(text)


def test_time_range_resolve():
    assert TimeRange().resolve(10.0) == (0.0, 10.0)
    assert TimeRange(Percentage(0.1), MinutesSeconds(0, 5)).resolve(10.0) == (1.0, 5.0)
    with pytest.raises(InputError, match="less than"):
        TimeRange(Seconds(5.0), Seconds(5.0)).resolve(10.0)
    with pytest.raises(InputError, match="exceeds"):
        TimeRange(Seconds(0.0), MinutesSeconds(1, 0)).resolve(10.0)


def test_make_time_range():
    assert make_time_range(None, None) is None
    tr = make_time_range("10%", None)
    assert tr.start == Percentage(0.1)
    assert tr.end == Percentage(1.0)


def test_parse_annotation():
    assert parse_annotation("1.5:Intro") == Annotation(1.5, "Intro", "time")
    assert parse_annotation("440:A4", axis="frequency").axis == "frequency"
    assert parse_annotation("2:label:with:colons").label == "label:with:colons"
    with pytest.raises(InputError, match="position:label"):
        parse_annotation("nolabel")
    with pytest.raises(InputError, match="position"):
        parse_annotation("soon:label")
