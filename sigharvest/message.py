"""Raw CAN frames and hex payload parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_HEX_BYTE_RE = re.compile(r"[0-9A-Fa-f]{2}|\+[0-9A-Fa-f]")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CanMessage:
    """A raw CAN frame as received from a bus or read from a log."""

    bus: int
    id: int
    data: bytes
    timestamp: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        self.data = bytes(self.data)

    def is_extended(self) -> bool:
        """Whether the identifier needs the 29-bit extended format."""
        return self.id > 0x7FF

    def hex_data(self) -> str:
        """Payload as space separated upper-case hex bytes."""
        return " ".join(f"{byte:02X}" for byte in self.data)

    def timestamp_unix(self) -> float:
        """Timestamp as Unix seconds, truncated to millisecond precision."""
        stamp = self.timestamp
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        millis = (stamp - _EPOCH) // timedelta(milliseconds=1)
        return millis / 1000.0


def parse_hex(text: str) -> bytes:
    """Parse a hex string such as ``"12 34 AB"`` or ``"0x1234AB"`` into bytes.

    Raises ValueError if the string has odd length or holds non-hex characters.
    """
    compact = text.replace(" ", "")
    if compact.startswith(("0x", "0X")):
        compact = compact[2:]

    if len(compact) % 2 != 0:
        raise ValueError("Hex string must have even length")

    pairs = [compact[i : i + 2] for i in range(0, len(compact), 2)]
    for pair in pairs:
        if not _HEX_BYTE_RE.fullmatch(pair):
            raise ValueError(f"Failed to parse hex: invalid digit in {pair!r}")
    return bytes(int(pair, 16) for pair in pairs)