from __future__ import annotations

import pytest

from trainctl.core.codec import (
    FIELD_CODECS,
    READ_ORDER,
    decode_acceleration,
    decode_dcc_code,
    decode_direction,
    decode_long_name,
    decode_network_key,
    decode_speed,
    encode_acceleration,
    encode_dcc_code,
    encode_direction,
    encode_long_name,
    encode_speed,
)
from trainctl.core.errors import PayloadError
from trainctl.core.model import DIRECTION_LEFT, DIRECTION_RIGHT, DIRECTION_STOP, Field


def test_dcc_code_is_little_endian() -> None:
    assert decode_dcc_code(bytes([0x2C, 0x01, 0x00, 0x00])) == 300
    assert encode_dcc_code(300).hex() == "2c010000"


def test_dcc_code_is_clamped() -> None:
    assert decode_dcc_code(bytes.fromhex("ffffffff")) == 0
    assert decode_dcc_code((70000).to_bytes(4, "little")) == 30000


def test_short_dcc_payload_is_rejected() -> None:
    with pytest.raises(PayloadError):
        decode_dcc_code(b"\x2c\x01")


def test_speed_is_unsigned_and_clamped() -> None:
    assert decode_speed(b"\x40") == 64
    assert decode_speed(b"\xc8") == 128
    assert encode_speed(200) == b"\x80"


def test_acceleration_is_signed() -> None:
    assert decode_acceleration(b"\xfe") == -2
    assert decode_acceleration(b"\x7f") == 3
    assert encode_acceleration(-3) == b"\xfd"


def test_direction_byte_codes() -> None:
    assert encode_direction(DIRECTION_STOP) == b"\x00"
    assert encode_direction(DIRECTION_RIGHT) == b"\x01"
    assert encode_direction(DIRECTION_LEFT) == b"\x0a"
    assert decode_direction(b"\x0a") == DIRECTION_LEFT
    assert decode_direction(b"01") == DIRECTION_RIGHT
    assert decode_direction(b"\x07") == DIRECTION_STOP


def test_long_name_utf8_and_truncated() -> None:
    assert decode_long_name("Dampflok Ä".encode()) == "Dampflok Ä"
    assert len(decode_long_name(b"a" * 120)) == 100
    assert encode_long_name("é" * 101) == ("é" * 100).encode("utf-8")


def test_network_key_tolerates_invalid_utf8() -> None:
    assert decode_network_key(b"key\xff") == "key\ufffd"


def test_normalize_parses_text_input() -> None:
    assert FIELD_CODECS[Field.SPEED].normalize("200") == 128
    assert FIELD_CODECS[Field.ACCELERATION].normalize(-7) == -3
    with pytest.raises(PayloadError):
        FIELD_CODECS[Field.SPEED].normalize("fast")


def test_read_order_covers_every_field() -> None:
    assert READ_ORDER[0] is Field.LONG_NAME
    assert set(READ_ORDER) == set(Field)
