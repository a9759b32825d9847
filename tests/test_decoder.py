import pytest

from sigharvest.dbc import ByteOrder, DbcFile, DbcMessage, DbcSignal, ValueType
from sigharvest.decoder import (
    SignalDecoder,
    extract_bits,
    insert_bits,
    sign_extend,
)
from sigharvest.message import CanMessage


def _as_i64(value):
    return value - (1 << 64) if value >= 1 << 63 else value


def _temperature_dbc():
    dbc = DbcFile()
    dbc.add_message(
        DbcMessage(
            id=0x123,
            name="TestMessage",
            size=8,
            signals=[
                DbcSignal(
                    name="TestSignal",
                    start_bit=0,
                    bit_length=8,
                    byte_order=ByteOrder.INTEL,
                    value_type=ValueType.UNSIGNED,
                    factor=0.5,
                    offset=-40.0,
                    unit="degC",
                )
            ],
        )
    )
    return dbc


def test_extract_bits_intel_single_byte():
    assert extract_bits(bytes([0b11010010]), 2, 4, ByteOrder.INTEL) == 0b0100


def test_extract_bits_intel_full_byte():
    assert extract_bits(bytes([0xAB]), 0, 8, ByteOrder.INTEL) == 0xAB


def test_extract_bits_intel_multi_byte():
    assert extract_bits(bytes([0xCD, 0xAB]), 0, 16, ByteOrder.INTEL) == 0xABCD


def test_insert_bits_intel():
    data = bytearray(2)
    assert insert_bits(data, 0xABCD, 0, 16, ByteOrder.INTEL) is True
    assert data[0] == 0xCD
    assert data[1] == 0xAB


def test_sign_extend_positive():
    assert _as_i64(sign_extend(5, 4)) == 5


def test_sign_extend_negative():
    assert _as_i64(sign_extend(0b1111, 4)) == -1
    assert sign_extend(0b1111, 4) == (1 << 64) - 1


def test_sign_extend_full_width_unchanged():
    assert sign_extend(0x8000_0000_0000_0000, 64) == 0x8000_0000_0000_0000


def test_sign_extend_zero_length_raises():
    with pytest.raises(ValueError):
        sign_extend(1, 0)


def test_decode_signal():
    decoder = SignalDecoder()
    decoder.set_dbc(_temperature_dbc())
    signals = decoder.decode_message(CanMessage(0, 0x123, [100]))
    assert len(signals) == 1
    assert signals[0].name == "TestSignal"
    assert signals[0].raw_value == 100
    assert signals[0].physical_value == 10.0
    assert signals[0].unit == "degC"
    assert signals[0].message_id == 0x123


@pytest.mark.parametrize(
    ("start", "length", "value"),
    [(0, 8, 0xAB), (8, 8, 0xCD), (4, 12, 0xABC), (16, 16, 0x1234)],
)
def test_insert_and_extract_roundtrip(start, length, value):
    data = bytearray(8)
    insert_bits(data, value, start, length, ByteOrder.INTEL)
    assert extract_bits(data, start, length, ByteOrder.INTEL) == value


@pytest.mark.parametrize("length", [0, 65])
def test_extract_rejects_bad_length(length):
    assert extract_bits(bytes(8), 0, length, ByteOrder.INTEL) is None


def test_extract_rejects_empty_data():
    assert extract_bits(b"", 0, 8, ByteOrder.INTEL) is None


def test_extract_start_beyond_data():
    assert extract_bits(bytes(2), 16, 8, ByteOrder.INTEL) is None


def test_extract_stops_at_end_of_data():
    assert extract_bits(bytes([0xFF]), 0, 16, ByteOrder.INTEL) == 0xFF


def test_insert_rejects_start_beyond_data():
    data = bytearray(1)
    assert insert_bits(data, 1, 8, 8, ByteOrder.INTEL) is False
    assert data == bytearray(1)


def test_insert_preserves_neighbouring_bits():
    data = bytearray([0xFF])
    insert_bits(data, 0, 2, 4, ByteOrder.INTEL)
    assert data[0] == 0xC3


def test_motorola_full_byte():
    assert extract_bits(bytes([0xAB]), 7, 8, ByteOrder.MOTOROLA) == 0xAB


def test_motorola_bit_zero_is_msb():
    assert extract_bits(bytes([0x80]), 0, 1, ByteOrder.MOTOROLA) == 1


def test_motorola_roundtrip():
    data = bytearray(2)
    insert_bits(data, 0x5A, 7, 8, ByteOrder.MOTOROLA)
    assert data[0] == 0x5A
    assert extract_bits(data, 7, 8, ByteOrder.MOTOROLA) == 0x5A


def test_decode_without_dbc_is_empty():
    assert SignalDecoder().decode_message(CanMessage(0, 0x123, [1])) == []


def test_decode_unknown_id_is_empty():
    decoder = SignalDecoder(_temperature_dbc())
    assert decoder.decode_message(CanMessage(0, 0x456, [1])) == []


def test_clear_dbc_stops_decoding():
    decoder = SignalDecoder(_temperature_dbc())
    decoder.clear_dbc()
    assert decoder.decode_message(CanMessage(0, 0x123, [100])) == []


def test_decode_signal_with_empty_payload_is_none():
    decoder = SignalDecoder(_temperature_dbc())
    sig = _temperature_dbc().get_message(0x123).signals[0]
    assert decoder.decode_signal(CanMessage(0, 0x123, b""), sig) is None


def test_decode_signed_raw_value_is_sign_extended():
    sig = DbcSignal("Neg", 0, 8, value_type=ValueType.SIGNED)
    decoded = SignalDecoder().decode_signal(CanMessage(0, 1, [0xFF]), sig)
    assert _as_i64(decoded.raw_value) == -1


def test_encode_then_decode_roundtrip():
    dbc = _temperature_dbc()
    sig = dbc.get_message(0x123).signals[0]
    data = bytearray(8)
    assert SignalDecoder().encode_signal(data, sig, 10.0) is True
    assert data[0] == 100
    decoded = SignalDecoder(dbc).decode_message(CanMessage(0, 0x123, data))
    assert decoded[0].physical_value == 10.0


def test_encode_negative_value_masks_to_width():
    sig = DbcSignal("Neg", 0, 8, value_type=ValueType.SIGNED)
    data = bytearray(2)
    assert SignalDecoder().encode_signal(data, sig, -1.0) is True
    assert data == bytearray([0xFF, 0x00])


def test_encode_zero_factor_saturates():
    sig = DbcSignal("Z", 0, 8, factor=0.0)
    data = bytearray(1)
    assert SignalDecoder().encode_signal(data, sig, 5.0) is True
    assert data[0] == 0xFF


def test_encode_into_empty_data_fails():
    sig = DbcSignal("S", 0, 8)
    assert SignalDecoder().encode_signal(bytearray(), sig, 1.0) is False