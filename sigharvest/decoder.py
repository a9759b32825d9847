"""Extract signal values from CAN payloads using DBC definitions, and encode them back."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime

from sigharvest.dbc import ByteOrder, DbcFile, DbcSignal, ValueType
from sigharvest.message import CanMessage

_U64_MASK = (1 << 64) - 1
_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1


@dataclass
class DecodedSignal:
    """A signal value decoded from one CAN message."""

    name: str
    physical_value: float
    raw_value: int
    unit: str | None
    timestamp: datetime
    message_id: int


class SignalDecoder:
    """Decodes signals from CAN messages with the definitions of a DBC file."""

    def __init__(self, dbc: DbcFile | None = None) -> None:
        self.dbc = dbc

    def set_dbc(self, dbc: DbcFile) -> None:
        self.dbc = dbc

    def clear_dbc(self) -> None:
        self.dbc = None

    def decode_message(self, msg: CanMessage) -> list[DecodedSignal]:
        """Decode every signal the DBC defines for this message's ID."""
        if self.dbc is None:
            return []
        definition = self.dbc.get_message(msg.id)
        if definition is None:
            return []
        decoded = (self.decode_signal(msg, signal) for signal in definition.signals)
        return [sig for sig in decoded if sig is not None]

    def decode_signal(self, msg: CanMessage, signal: DbcSignal) -> DecodedSignal | None:
        """Decode one signal; None if its bits cannot be read from the payload."""
        raw_value = extract_bits(msg.data, signal.start_bit, signal.bit_length, signal.byte_order)
        if raw_value is None:
            return None
        if signal.value_type is ValueType.SIGNED:
            raw_value = sign_extend(raw_value, signal.bit_length)

        return DecodedSignal(
            name=signal.name,
            physical_value=float(raw_value) * signal.factor + signal.offset,
            raw_value=raw_value,
            unit=signal.unit,
            timestamp=msg.timestamp,
            message_id=msg.id,
        )

    def encode_signal(self, data: bytearray, signal: DbcSignal, physical_value: float) -> bool:
        """Write a physical value into ``data`` in place; False if it does not fit."""
        raw = _physical_to_raw(physical_value, signal.offset, signal.factor)
        if raw < 0:
            mask = _U64_MASK if signal.bit_length >= 64 else (1 << signal.bit_length) - 1
            raw &= mask
        return insert_bits(data, raw, signal.start_bit, signal.bit_length, signal.byte_order)


def _physical_to_raw(physical: float, offset: float, factor: float) -> int:
    """(physical - offset) / factor, truncated and saturated to a signed 64-bit int."""
    numerator = physical - offset
    if math.isnan(numerator):
        return 0
    if factor == 0:
        if numerator == 0:
            return 0
        same_sign = (numerator > 0) == (math.copysign(1.0, factor) > 0)
        quotient = math.inf if same_sign else -math.inf
    else:
        quotient = numerator / factor
    if math.isnan(quotient):
        return 0
    if quotient >= 2.0**63:
        return _I64_MAX
    if quotient <= -(2.0**63):
        return _I64_MIN
    return int(quotient)


def _bit_position(start_bit: int, byte_order: ByteOrder) -> tuple[int, int]:
    byte_idx, bit_idx = divmod(start_bit, 8)
    if byte_order is ByteOrder.MOTOROLA:
        bit_idx = 7 - bit_idx
    return byte_idx, bit_idx


def _segments(
    byte_idx: int, bit_idx: int, bit_length: int, size: int
) -> Iterator[tuple[int, int, int, int]]:
    """Yield (byte index, bit offset, width, value shift) for each byte touched."""
    remaining = bit_length
    shift = 0
    while remaining > 0 and byte_idx < size:
        width = min(remaining, 8 - bit_idx)
        yield byte_idx, bit_idx, width, shift
        remaining -= width
        shift += width
        bit_idx += width
        if bit_idx >= 8:
            bit_idx = 0
            byte_idx += 1


def extract_bits(
    data: bytes, start_bit: int, bit_length: int, byte_order: ByteOrder
) -> int | None:
    """Read an unsigned value of ``bit_length`` bits starting at a DBC bit position.

    Returns None if the data is empty, the length is not 1..64, or the start
    lies past the end of the data. Bits past the end are read as zero.
    """
    if not data or bit_length == 0 or bit_length > 64:
        return None
    byte_idx, bit_idx = _bit_position(start_bit, byte_order)
    if byte_idx >= len(data):
        return None

    result = 0
    for index, offset, width, shift in _segments(byte_idx, bit_idx, bit_length, len(data)):
        result |= ((data[index] >> offset) & ((1 << width) - 1)) << shift
    return result


def insert_bits(
    data: bytearray, value: int, start_bit: int, bit_length: int, byte_order: ByteOrder
) -> bool:
    """Write ``value`` into ``data`` in place; False if nothing can be written."""
    if not data or bit_length == 0 or bit_length > 64:
        return False
    byte_idx, bit_idx = _bit_position(start_bit, byte_order)
    if byte_idx >= len(data):
        return False

    for index, offset, width, shift in _segments(byte_idx, bit_idx, bit_length, len(data)):
        width_mask = (1 << width) - 1
        bits = (value >> shift) & width_mask
        keep = ~(width_mask << offset) & 0xFF
        data[index] = (data[index] & keep) | (bits << offset)
    return True


def sign_extend(value: int, bit_length: int) -> int:
    """Sign-extend a ``bit_length``-bit value to a 64-bit two's complement pattern."""
    if bit_length >= 64:
        return value
    if bit_length <= 0:
        raise ValueError("bit_length must be positive")
    if value & (1 << (bit_length - 1)):
        return value | (~((1 << bit_length) - 1) & _U64_MASK)
    return value