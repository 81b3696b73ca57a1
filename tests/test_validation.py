from __future__ import annotations

import pytest

from trainctl.core.model import DIRECTION_LEFT, DIRECTION_RIGHT, DIRECTION_STOP
from trainctl.core.validation import (
    clamp_acceleration,
    clamp_dcc_code,
    clamp_speed,
    normalize_direction,
    truncate_long_name,
    truncate_short_name,
)


@pytest.mark.parametrize("value, expected", [(-50, 0), (0, 0), (64, 64), (128, 128), (200, 128)])
def test_clamp_speed(value: int, expected: int) -> None:
    assert clamp_speed(value) == expected


def test_clamp_speed_always_in_range() -> None:
    for value in range(-1000, 1000, 7):
        assert 0 <= clamp_speed(value) <= 128


@pytest.mark.parametrize("value, expected", [(-9, -3), (-3, -3), (2, 2), (3, 3), (40, 3)])
def test_clamp_acceleration(value: int, expected: int) -> None:
    assert clamp_acceleration(value) == expected


@pytest.mark.parametrize("value, expected", [(-1, 0), (300, 300), (30000, 30000), (65535, 30000)])
def test_clamp_dcc_code(value: int, expected: int) -> None:
    assert clamp_dcc_code(value) == expected


def test_truncate_long_name() -> None:
    assert truncate_long_name("Flying Scotsman") == "Flying Scotsman"
    assert truncate_long_name("x" * 100) == "x" * 100
    assert truncate_long_name("y" * 150) == "y" * 100


def test_truncate_short_name() -> None:
    assert truncate_short_name("Engine01") == "Engine01"
    assert truncate_short_name("Locomotive") == "Locomoti"


def test_normalize_direction() -> None:
    assert normalize_direction(DIRECTION_LEFT) == DIRECTION_LEFT
    assert normalize_direction(f" {DIRECTION_RIGHT}\n") == DIRECTION_RIGHT
    assert normalize_direction("sideways") == DIRECTION_STOP
