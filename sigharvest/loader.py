"""Detect the format of a CAN log file and load it."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from sigharvest.csvlog import load_csv
from sigharvest.message import CanMessage

_RLOG_MAGIC = b"bz"
_CSV_SAMPLE_BYTES = 500
_CSV_SAMPLE_LINES = 5
_CSV_MIN_BYTES = 10


class InputFormat(Enum):
    """Kinds of log files that can be recognised."""

    CSV = "csv"
    RLOG = "rlog"
    UNKNOWN = "unknown"


def _is_rlog(data: bytes) -> bool:
    return data.startswith(_RLOG_MAGIC)


def _is_csv(data: bytes) -> bool:
    if len(data) < _CSV_MIN_BYTES:
        return False
    try:
        text = data[:_CSV_SAMPLE_BYTES].decode("utf-8")
    except UnicodeDecodeError:
        return False
    lines = text.split("\n")[:_CSV_SAMPLE_LINES]
    return any(line.count(",") >= 2 for line in lines)


def detect_format(data: bytes) -> InputFormat:
    """Guess the format from the first bytes of a file."""
    if _is_rlog(data):
        return InputFormat.RLOG
    if _is_csv(data):
        return InputFormat.CSV
    return InputFormat.UNKNOWN


def load_file(path: str | Path) -> list[CanMessage]:
    """Load CAN messages from a file of any recognised format.

    Raises ValueError for unknown formats and for rlog logs, which cannot be read.
    """
    data = Path(path).read_bytes()
    detected = detect_format(data)
    if detected is InputFormat.CSV:
        return load_csv(path)
    if detected is InputFormat.RLOG:
        raise ValueError("Reading rlog logs is not supported")
    raise ValueError("Unknown input format")