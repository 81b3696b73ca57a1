"""Byte layouts of the train characteristics.

Every field has a `decode` (payload read from the device or delivered by a
notification) and an `encode` (payload written to the device). Decoders apply
the same clamping rules as user input so the directory only ever holds
in-range values.
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from trainctl.core.errors import PayloadError
from trainctl.core.model import Field
from trainctl.core.validation import (
    clamp_acceleration,
    clamp_dcc_code,
    clamp_speed,
    normalize_direction,
    truncate_long_name,
)

_DCC_STRUCT = struct.Struct("<i")
_ACCELERATION_STRUCT = struct.Struct("<b")


def decode_long_name(data: bytes) -> str:
    return truncate_long_name(data.decode("utf-8", errors="replace"))


def encode_long_name(value: str) -> bytes:
    return truncate_long_name(value).encode("utf-8")


def decode_dcc_code(data: bytes) -> int:
    if len(data) < _DCC_STRUCT.size:
        raise PayloadError(
            f"DCC code payload needs {_DCC_STRUCT.size} bytes, got {len(data)}"
        )
    (value,) = _DCC_STRUCT.unpack_from(data)
    return clamp_dcc_code(value)


def encode_dcc_code(value: int) -> bytes:
    return _DCC_STRUCT.pack(clamp_dcc_code(value))


def decode_speed(data: bytes) -> int:
    if not data:
        raise PayloadError("Speed payload is empty")
    return clamp_speed(data[0])


def encode_speed(value: int) -> bytes:
    return bytes([clamp_speed(value)])


def decode_acceleration(data: bytes) -> int:
    if not data:
        raise PayloadError("Acceleration payload is empty")
    (value,) = _ACCELERATION_STRUCT.unpack_from(data)
    return clamp_acceleration(value)


def encode_acceleration(value: int) -> bytes:
    return _ACCELERATION_STRUCT.pack(clamp_acceleration(value))


def decode_direction(data: bytes) -> str:
    # Devices answer with the raw code byte (0x00, 0x01, 0x0a); older
    # firmware sends the ASCII code instead.
    if len(data) == 1:
        return normalize_direction(f"{data[0]:02d}")
    return normalize_direction(data.decode("utf-8", errors="replace"))


def encode_direction(value: str) -> bytes:
    return bytes([int(normalize_direction(value))])


def decode_network_key(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def encode_network_key(value: str) -> bytes:
    return value.encode("utf-8")


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise PayloadError(f"Expected an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise PayloadError(f"Expected an integer, got {value!r}") from exc


@dataclass(frozen=True)
class FieldCodec:
    attribute: str
    decode: Callable[[bytes], Any]
    encode: Callable[[Any], bytes]
    normalize: Callable[[Any], Any]


FIELD_CODECS: dict[Field, FieldCodec] = {
    Field.LONG_NAME: FieldCodec(
        attribute="long_name",
        decode=decode_long_name,
        encode=encode_long_name,
        normalize=lambda value: truncate_long_name(str(value)),
    ),
    Field.DCC_CODE: FieldCodec(
        attribute="dcc_code",
        decode=decode_dcc_code,
        encode=encode_dcc_code,
        normalize=lambda value: clamp_dcc_code(_as_int(value)),
    ),
    Field.SPEED: FieldCodec(
        attribute="speed",
        decode=decode_speed,
        encode=encode_speed,
        normalize=lambda value: clamp_speed(_as_int(value)),
    ),
    Field.ACCELERATION: FieldCodec(
        attribute="acceleration",
        decode=decode_acceleration,
        encode=encode_acceleration,
        normalize=lambda value: clamp_acceleration(_as_int(value)),
    ),
    Field.DIRECTION: FieldCodec(
        attribute="direction",
        decode=decode_direction,
        encode=encode_direction,
        normalize=lambda value: normalize_direction(str(value)),
    ),
    Field.NETWORK_KEY: FieldCodec(
        attribute="network_key",
        decode=decode_network_key,
        encode=encode_network_key,
        normalize=str,
    ),
}

READ_ORDER: tuple[Field, ...] = (
    Field.LONG_NAME,
    Field.DCC_CODE,
    Field.SPEED,
    Field.ACCELERATION,
    Field.DIRECTION,
    Field.NETWORK_KEY,
)
