"""Permissive validation rules: out-of-range input is clamped, never rejected."""

from __future__ import annotations

from trainctl.core.model import (
    DIRECTION_STOP,
    DIRECTIONS,
    MAX_ACCELERATION,
    MAX_DCC_CODE,
    MAX_LONG_NAME_LENGTH,
    MAX_SPEED,
    MIN_ACCELERATION,
    MIN_DCC_CODE,
    SHORT_NAME_LENGTH,
)


def clamp_speed(value: int) -> int:
    return max(0, min(MAX_SPEED, value))


def clamp_acceleration(value: int) -> int:
    return max(MIN_ACCELERATION, min(MAX_ACCELERATION, value))


def clamp_dcc_code(value: int) -> int:
    return max(MIN_DCC_CODE, min(MAX_DCC_CODE, value))


def truncate_long_name(value: str) -> str:
    if len(value) > MAX_LONG_NAME_LENGTH:
        return value[:MAX_LONG_NAME_LENGTH]
    return value


def truncate_short_name(value: str) -> str:
    return value[:SHORT_NAME_LENGTH]


def normalize_direction(value: str) -> str:
    """Return `value` if it is a known direction code, else the stop code."""
    code = value.strip()
    if code in DIRECTIONS:
        return code
    return DIRECTION_STOP
