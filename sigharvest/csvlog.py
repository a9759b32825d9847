"""Load CAN traffic from CSV logs with flexible column names."""

from __future__ import annotations

import csv
import re
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path

from sigharvest.message import CanMessage, parse_hex

_TIME_NAMES = ("time", "timestamp", "t", "ts")
_BUS_NAMES = ("bus", "channel", "interface")
_ID_NAMES = ("id", "addr", "msg_id", "can_id", "message_id")
_DATA_NAMES = ("data", "payload", "hex", "bytes")

_DEC_RE = re.compile(r"\+?[0-9]+")
_HEX_RE = re.compile(r"\+?[0-9A-Fa-f]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)

_U8_MAX = 0xFF
_U32_MAX = 0xFFFF_FFFF

# A time step backwards larger than this starts a new session.
_RESET_THRESHOLD = 0.1
_RESET_STEP = 0.000001


def _parse_f64(text: str) -> float | None:
    return float(text) if _FLOAT_RE.fullmatch(text) else None


def _parse_uint(text: str, pattern: re.Pattern[str], base: int, high: int) -> int | None:
    if not pattern.fullmatch(text):
        return None
    value = int(text, base)
    return value if value <= high else None


def _parse_can_id(text: str) -> int | None:
    if text.startswith(("0x", "0X")):
        return _parse_uint(text[2:], _HEX_RE, 16, _U32_MAX)
    return _parse_uint(text, _DEC_RE, 10, _U32_MAX)


def find_column(headers: Sequence[str], names: Sequence[str]) -> int:
    """Index of the first header equal (case-insensitively) to one of ``names``."""
    for index, header in enumerate(headers):
        if header.lower() in names:
            return index
    listed = ", ".join(f'"{name}"' for name in names)
    raise ValueError(f"Could not find column with names: [{listed}]")


def detect_columns(headers: Sequence[str]) -> tuple[int, int, int, int]:
    """Indices of the time, bus, ID and data columns."""
    return (
        find_column(headers, _TIME_NAMES),
        find_column(headers, _BUS_NAMES),
        find_column(headers, _ID_NAMES),
        find_column(headers, _DATA_NAMES),
    )


def load_csv(path: str | Path) -> list[CanMessage]:
    """Load CAN messages from a CSV log.

    Timestamps are read as relative seconds and laid out from the current
    time; a large step backwards is treated as a new session and advances the
    clock by one microsecond. Raises ValueError on missing columns, ragged
    rows, unparsable IDs or bad hex data.
    """
    base_time = datetime.now(timezone.utc)
    messages: list[CanMessage] = []

    with open(path, newline="", encoding="utf-8-sig") as handle:
        rows = (row for row in csv.reader(handle) if row)
        headers = next(rows, [])
        time_idx, bus_idx, id_idx, data_idx = detect_columns(headers)

        accumulated = 0.0
        last_seen = 0.0
        for line_number, record in enumerate(rows, start=2):
            if len(record) != len(headers):
                raise ValueError(
                    f"Failed to read CSV row {line_number}: found {len(record)} fields, "
                    f"but the header has {len(headers)}"
                )

            relative = _parse_f64(record[time_idx])
            if relative is None:
                relative = 0.0
            if relative < last_seen - _RESET_THRESHOLD:
                accumulated += _RESET_STEP
            elif relative > last_seen:
                accumulated += relative - last_seen
            last_seen = relative
            timestamp = base_time + timedelta(microseconds=int(accumulated * 1_000_000.0))

            bus = _parse_uint(record[bus_idx], _DEC_RE, 10, _U8_MAX)
            can_id = _parse_can_id(record[id_idx])
            if can_id is None:
                raise ValueError(f"Failed to parse CAN ID: {record[id_idx]!r}")
            data = parse_hex(record[data_idx])

            messages.append(
                CanMessage(bus=bus or 0, id=can_id, data=data, timestamp=timestamp)
            )

    return messages