import pytest

from jianghu.models import TimeState
from jianghu.timekeeping import advance_time, format_time


def test_zero_ticks_is_identity():
    time = TimeState()
    assert advance_time(time, 0) is time


def test_negative_ticks_rejected():
    with pytest.raises(ValueError):
        advance_time(TimeState(), -1)


@pytest.mark.parametrize("start, ticks, expected", [
    (TimeState(), 59, (1, 1, 1, 6, 59)),
    (TimeState(), 60, (1, 1, 1, 7, 0)),
    (TimeState(hour=23, tick=30), 30, (1, 1, 2, 0, 0)),
    (TimeState(day=30, hour=23), 60, (1, 2, 1, 0, 0)),
    (TimeState(month=12, day=30, hour=23), 60, (2, 1, 1, 0, 0)),
    (TimeState(), 60 * 24 * 30 * 12, (2, 1, 1, 6, 0)),
])
def test_advance_carries(start, ticks, expected):
    t = advance_time(start, ticks)
    assert (t.year, t.month, t.day, t.hour, t.tick) == expected


def test_advance_is_additive():
    a = advance_time(advance_time(TimeState(), 1000), 2345)
    b = advance_time(TimeState(), 3345)
    assert a == b


@pytest.mark.parametrize("year, name", [(1, "Jia-Zi"), (2, "Yi-Chou"), (11, "Jia-Xu"), (61, "Jia-Zi")])
def test_format_time_cycle(year, name):
    assert format_time(TimeState(year=year)) == f"{name} year, month 1, day 1, hour 6"
