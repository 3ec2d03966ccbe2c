from datetime import time

import pytest

from src.core.exceptions import ValidationError
from src.modules.schedule.service import calculate_end_time, overlaps


def test_end_time_adds_duration():
    assert calculate_end_time(time(10, 0), 60) == time(11, 0)
    assert calculate_end_time(time(9, 45), 30) == time(10, 15)
    assert calculate_end_time(time(23, 0), 59) == time(23, 59)


def test_end_time_drops_seconds():
    assert calculate_end_time(time(10, 0, 42), 15) == time(10, 15)


@pytest.mark.parametrize("duration", [0, -15])
def test_end_time_rejects_non_positive_duration(duration):
    with pytest.raises(ValidationError):
        calculate_end_time(time(10, 0), duration)


@pytest.mark.parametrize("start, duration", [(time(23, 30), 30), (time(23, 30), 90)])
def test_end_time_rejects_crossing_midnight(start, duration):
    with pytest.raises(ValidationError) as excinfo:
        calculate_end_time(start, duration)
    assert "midnight" in excinfo.value.detail


def test_overlap_is_half_open():
    booked = (time(10, 0), time(11, 0))
    assert overlaps(booked, (time(10, 30), time(11, 30)))
    assert overlaps(booked, (time(9, 0), time(12, 0)))
    assert not overlaps(booked, (time(11, 0), time(12, 0)))
    assert not overlaps(booked, (time(9, 0), time(10, 0)))
