"""DBC database model: messages, signals and value tables, with a text parser and writer."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from itertools import combinations
from pathlib import Path

_UNSIGNED_RE = re.compile(r"\+?[0-9]+")
_SIGNED_RE = re.compile(r"[+-]?[0-9]+")

_U8_MAX = 0xFF
_U32_MAX = 0xFFFF_FFFF
_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1

_NEW_SYMBOLS = (
    "NS_DESC_",
    "CM_",
    "BA_DEF_",
    "BA_",
    "VAL_",
    "CAT_DEF_",
    "CAT_",
    "FILTER",
    "BA_DEF_DEF_",
    "EV_DATA_",
    "ENVVAR_DATA_",
    "SGTYPE_",
    "SGTYPE_VAL_",
    "BA_DEF_SGTYPE_",
    "BA_SGTYPE_",
    "SIG_TYPE_REF_",
    "VAL_TABLE_",
    "SIG_GROUP_",
    "SIG_VALTYPE_",
    "SIGTYPE_VALTYPE_",
    "BO_TX_BU_",
    "BA_DEF_REL_",
    "BA_REL_",
    "BA_DEF_DEF_REL_",
    "BU_SG_REL_",
    "BU_EV_REL_",
    "BU_BO_REL_",
    "SG_MUL_VAL_",
)


class ByteOrder(Enum):
    """Byte order of a signal inside the message payload."""

    MOTOROLA = "motorola"  # big endian
    INTEL = "intel"  # little endian


class ValueType(Enum):
    """Whether a signal's raw value is signed (two's complement) or unsigned."""

    SIGNED = "signed"
    UNSIGNED = "unsigned"


_BYTE_ORDER_CODES = {"0": ByteOrder.MOTOROLA, "1": ByteOrder.INTEL}
_VALUE_TYPE_CODES = {"+": ValueType.UNSIGNED, "-": ValueType.SIGNED}
_BYTE_ORDER_CHARS = {order: code for code, order in _BYTE_ORDER_CODES.items()}
_VALUE_TYPE_CHARS = {vtype: code for code, vtype in _VALUE_TYPE_CODES.items()}


@dataclass(frozen=True)
class Multiplexor:
    """Multiplexing role of a signal.

    With ``value`` None the signal is the selector itself; otherwise the
    signal is present when the selector holds ``value``.
    """

    value: int | None = None

    @property
    def is_selector(self) -> bool:
        return self.value is None


@dataclass
class ValueDescription:
    """A named value of an enum-like signal."""

    value: int
    description: str


@dataclass
class DbcSignal:
    """A signal defined in a DBC message."""

    name: str
    start_bit: int
    bit_length: int
    byte_order: ByteOrder = ByteOrder.INTEL
    value_type: ValueType = ValueType.UNSIGNED
    factor: float = 1.0
    offset: float = 0.0
    minimum: float | None = None
    maximum: float | None = None
    unit: str | None = None
    multiplexor: Multiplexor | None = None

    def with_unit(self, unit: str) -> DbcSignal:
        """Return a copy of this signal with the given unit."""
        return replace(self, unit=unit)

    def with_range(self, minimum: float, maximum: float) -> DbcSignal:
        """Return a copy of this signal with the given physical range."""
        return replace(self, minimum=minimum, maximum=maximum)

    def raw_range(self) -> tuple[int, int]:
        """Raw value range before factor and offset are applied."""
        return 0, (1 << self.bit_length) - 1

    def physical_range(self) -> tuple[float, float]:
        """Physical value range after factor and offset are applied."""
        raw_min, raw_max = self.raw_range()
        return (
            float(raw_min) * self.factor + self.offset,
            float(raw_max) * self.factor + self.offset,
        )


@dataclass
class DbcMessage:
    """A CAN message defined in a DBC file."""

    id: int
    name: str
    size: int
    signals: list[DbcSignal] = field(default_factory=list)

    def add_signal(self, signal: DbcSignal) -> None:
        self.signals.append(signal)

    def get_signal(self, name: str) -> DbcSignal | None:
        return next((s for s in self.signals if s.name == name), None)

    def validate(self) -> list[str]:
        """Return a list of problems: bad DLC, overlapping or out-of-range signals."""
        errors: list[str] = []

        if self.size > 8:
            errors.append(f"Message {self.name} has invalid DLC: {self.size}")

        for first, second in combinations(self.signals, 2):
            if signals_overlap(first, second):
                errors.append(
                    f"Signals '{first.name}' and '{second.name}' overlap "
                    f"in message {self.name}"
                )

        max_bits = self.size * 8
        for signal in self.signals:
            end_bit = signal.start_bit + signal.bit_length
            if end_bit > max_bits:
                errors.append(
                    f"Signal '{signal.name}' extends beyond message boundary "
                    f"({end_bit} > {max_bits})"
                )

        return errors


@dataclass
class DbcFile:
    """A loaded DBC database."""

    version: str = ""
    messages: list[DbcMessage] = field(default_factory=list)
    value_tables: dict[str, list[ValueDescription]] = field(default_factory=dict)
    file_path: str | None = None
    message_lookup: dict[int, DbcMessage] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.message_lookup = {msg.id: msg for msg in self.messages}

    @classmethod
    def load(cls, path: str | Path) -> DbcFile:
        """Read and parse a DBC file from disk."""
        content = Path(path).read_text(encoding="utf-8")
        dbc = cls.parse(content)
        dbc.file_path = str(path)
        return dbc

    @classmethod
    def parse(cls, content: str) -> DbcFile:
        """Parse DBC text; lines that are not understood are skipped."""
        dbc = cls()
        for raw_line in content.split("\n"):
            line = raw_line.strip()
            if line.startswith("VERSION"):
                rest = line[len("VERSION ") :] if line.startswith("VERSION ") else ""
                dbc.version = rest.strip('"')
            elif line.startswith("BO_ "):
                message = parse_message_line(line)
                if message is not None:
                    dbc.messages.append(message)
            elif line.startswith("SG_ "):
                if dbc.messages:
                    signal = parse_signal_line(line)
                    if signal is not None:
                        dbc.messages[-1].signals.append(signal)
            elif line.startswith("VAL_ "):
                parsed = parse_val_line(line)
                if parsed is not None:
                    name, values = parsed
                    dbc.value_tables[name] = values

        dbc.message_lookup = {msg.id: msg for msg in dbc.messages}
        return dbc

    def save(self, path: str | Path) -> None:
        """Write this database to disk in DBC format."""
        Path(path).write_text(self.to_dbc_string(), encoding="utf-8", newline="")

    def to_dbc_string(self) -> str:
        """Render this database as DBC text."""
        out: list[str] = [f'VERSION "{self.version}"\n\n', "NS_ :\n"]
        out.extend(f"\t{symbol}\n" for symbol in _NEW_SYMBOLS)
        out.append("\n")
        out.append("BS_:\n\n")
        out.append("BU_: Vector__XXX\n\n")

        for msg in self.messages:
            out.append(f"BO_ {msg.id} {msg.name}: {msg.size} Vector__XXX\n")
            for sig in msg.signals:
                minimum = sig.minimum if sig.minimum is not None else 0.0
                maximum = sig.maximum if sig.maximum is not None else 0.0
                out.append(
                    f" SG_ {sig.name} : {sig.start_bit}|{sig.bit_length}"
                    f"@{_BYTE_ORDER_CHARS[sig.byte_order]}"
                    f"{_VALUE_TYPE_CHARS[sig.value_type]}"
                    f" ({_format_float(sig.factor)},{_format_float(sig.offset)})"
                    f" [{_format_float(minimum)}|{_format_float(maximum)}]"
                    f' "{sig.unit or ""}" Vector__XXX\n'
                )
            out.append("\n")

        for name, values in self.value_tables.items():
            out.append(f"VAL_ {name} ")
            out.extend(f'{val.value} "{val.description}" ' for val in values)
            out.append(";\n")

        return "".join(out)

    def add_message(self, message: DbcMessage) -> None:
        self.message_lookup[message.id] = message
        self.messages.append(message)

    def get_message(self, message_id: int) -> DbcMessage | None:
        return self.message_lookup.get(message_id)

    def remove_message(self, message_id: int) -> DbcMessage | None:
        """Remove every message with this ID and return the one that was looked up."""
        message = self.message_lookup.pop(message_id, None)
        if message is not None:
            self.messages = [m for m in self.messages if m.id != message_id]
        return message

    def message_ids(self) -> list[int]:
        return [m.id for m in self.messages]

    def is_empty(self) -> bool:
        return not self.messages


def _format_float(value: float) -> str:
    """Format a float as a plain decimal, never in exponent notation."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value.is_integer():
        if value == 0 and math.copysign(1.0, value) < 0:
            return "-0"
        return str(int(value))
    return format(Decimal(repr(value)), "f")


def _parse_int(text: str, pattern: re.Pattern[str], low: int, high: int) -> int | None:
    if not pattern.fullmatch(text):
        return None
    value = int(text)
    return value if low <= value <= high else None


def _parse_float(text: str) -> float | None:
    if not text or "_" in text or any(ch.isspace() for ch in text):
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_message_line(line: str) -> DbcMessage | None:
    """Parse ``BO_ <id> <name>: <dlc> <transmitter>``."""
    parts = line.split()
    if len(parts) < 4 or parts[0] != "BO_":
        return None
    message_id = _parse_int(parts[1], _UNSIGNED_RE, 0, _U32_MAX)
    if message_id is None:
        return None
    size = _parse_int(parts[3], _UNSIGNED_RE, 0, _U8_MAX)
    if size is None:
        return None
    return DbcMessage(id=message_id, name=parts[2].rstrip(":"), size=size)


def _parse_order_and_type(text: str) -> tuple[ByteOrder, ValueType] | None:
    if not text.startswith("@") or len(text) < 3:
        return None
    byte_order = _BYTE_ORDER_CODES.get(text[1])
    value_type = _VALUE_TYPE_CODES.get(text[2])
    if byte_order is None or value_type is None:
        return None
    return byte_order, value_type


def _parse_min_max(text: str) -> tuple[float | None, float | None]:
    pieces = text.strip("[]").split("|")
    if len(pieces) != 2:
        return None, None
    return _parse_float(pieces[0]), _parse_float(pieces[1])


def parse_signal_line(line: str) -> DbcSignal | None:
    """Parse an ``SG_`` line; returns None if the line is malformed."""
    if not line.startswith("SG_ "):
        return None
    line = line[len("SG_ ") :]

    name_part, colon, rest = line.partition(":")
    if not colon:
        return None
    name_tokens = name_part.split()
    if not name_tokens:
        return None
    name = name_tokens[0]

    parts = rest.split()
    if not parts:
        return None

    bit_part, at, order_rest = parts[0].partition("@")
    if not at:
        return None
    bit_fields = bit_part.split("|")
    if len(bit_fields) != 2:
        return None
    start_bit = _parse_int(bit_fields[0], _UNSIGNED_RE, 0, _U8_MAX)
    bit_length = _parse_int(bit_fields[1], _UNSIGNED_RE, 0, _U8_MAX)
    if start_bit is None or bit_length is None:
        return None

    order_and_type = _parse_order_and_type("@" + order_rest)
    if order_and_type is None:
        return None
    byte_order, value_type = order_and_type

    factor = 1.0
    offset = 0.0
    scaling = next((p for p in parts if p.startswith("(")), None)
    if scaling is not None:
        pieces = scaling.strip("()").split(",")
        if len(pieces) == 2:
            parsed_factor = _parse_float(pieces[0])
            if parsed_factor is None:
                return None
            parsed_offset = _parse_float(pieces[1])
            if parsed_offset is None:
                return None
            factor, offset = parsed_factor, parsed_offset

    range_part = next((p for p in parts if p.startswith("[")), None)
    minimum, maximum = _parse_min_max(range_part) if range_part is not None else (None, None)

    unit_part = next((p for p in parts if p.startswith('"')), None)
    unit = unit_part.strip('"') if unit_part is not None else None

    return DbcSignal(
        name=name,
        start_bit=start_bit,
        bit_length=bit_length,
        byte_order=byte_order,
        value_type=value_type,
        factor=factor,
        offset=offset,
        minimum=minimum,
        maximum=maximum,
        unit=unit,
    )


def parse_val_line(line: str) -> tuple[str, list[ValueDescription]] | None:
    """Parse ``VAL_ <id> <signal> <value> "<text>" ... ;`` into a name and its values."""
    if not line.startswith("VAL_ "):
        return None
    parts = line[len("VAL_ ") :].split('"')
    if len(parts) < 3:
        return None

    head = parts[0].split()
    if len(head) < 3:
        return None
    signal_name = head[1]

    values: list[ValueDescription] = []
    for value_part, description in zip(parts[0::2], parts[1::2]):
        tokens = value_part.split()
        if not tokens:
            continue
        value = _parse_int(tokens[-1], _SIGNED_RE, _I64_MIN, _I64_MAX)
        if value is not None:
            values.append(ValueDescription(value=value, description=description))

    if not values:
        return None
    return signal_name, values


def signals_overlap(a: DbcSignal, b: DbcSignal) -> bool:
    """Whether two signals share bit positions (byte order is not considered)."""
    a_start, a_end = a.start_bit, a.start_bit + a.bit_length
    b_start, b_end = b.start_bit, b.start_bit + b.bit_length
    return a_start < b_end and b_start < a_end