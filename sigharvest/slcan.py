"""SLCAN (Lawicel) serial protocol: commands, frame parsing and line assembly."""

from __future__ import annotations

import re

from sigharvest.message import CanMessage

_HEX_BYTE_RE = re.compile(r"[0-9A-Fa-f]{2}|\+[0-9A-Fa-f]")
_HEX_ID_RE = re.compile(r"\+?[0-9A-Fa-f]+")
_DLC_RE = re.compile(r"[0-9]")

_BITRATE_CODES = {
    10_000: "0",
    20_000: "1",
    50_000: "2",
    100_000: "3",
    125_000: "4",
    250_000: "5",
    500_000: "6",
    800_000: "7",
    1_000_000: "8",
}
_DEFAULT_BITRATE_CODE = "6"


def bitrate_command(bitrate: int) -> bytes:
    """Command that sets the bus bitrate; unknown rates fall back to 500 kbit/s."""
    code = _BITRATE_CODES.get(bitrate, _DEFAULT_BITRATE_CODE)
    return f"S{code}\r".encode("ascii")


def open_command(listen_only: bool) -> bytes:
    """Command that opens the channel, optionally in listen-only mode."""
    mode = "L" if listen_only else "O"
    return f"{mode}\r".encode("ascii")


def close_command() -> bytes:
    """Command that closes the channel."""
    return b"C\r"


def parse_hex_data(text: str) -> bytes | None:
    """Parse pairs of hex digits into bytes; None if any pair is invalid."""
    if len(text) % 2 != 0:
        return None
    pairs = [text[i : i + 2] for i in range(0, len(text), 2)]
    if not all(_HEX_BYTE_RE.fullmatch(pair) for pair in pairs):
        return None
    return bytes(int(pair, 16) for pair in pairs)


def _parse_body(body: str, id_digits: int, bus_id: int) -> CanMessage | None:
    if len(body) < id_digits + 1:
        return None
    id_text = body[:id_digits]
    dlc_text = body[id_digits : id_digits + 1]
    if not _HEX_ID_RE.fullmatch(id_text) or not _DLC_RE.fullmatch(dlc_text):
        return None
    message_id = int(id_text, 16)
    expected_len = id_digits + 1 + int(dlc_text) * 2
    if len(body) < expected_len:
        return None
    data = parse_hex_data(body[id_digits + 1 : expected_len])
    if data is None:
        return None
    return CanMessage(bus=bus_id, id=message_id, data=data)


def parse_frame(line: str, bus_id: int = 0) -> CanMessage | None:
    """Parse one SLCAN frame line (``t``, ``T``, ``r`` or ``R``) into a message."""
    if not line or not line.isascii():
        return None
    kind, body = line[0], line[1:]
    if kind in ("t", "r"):
        return _parse_body(body, 3, bus_id)
    if kind in ("T", "R"):
        return _parse_body(body, 8, bus_id)
    return None


def tx_command(message: CanMessage) -> bytes:
    """Command that transmits ``message``; extended IDs use the ``T`` form."""
    payload = "".join(f"{byte:02X}" for byte in message.data)
    dlc = len(message.data)
    if message.is_extended():
        return f"T{message.id:08X}{dlc}{payload}\r".encode("ascii")
    return f"t{message.id:03X}{dlc}{payload}\r".encode("ascii")


class LineAssembler:
    """Collects serial text and splits it into complete SLCAN lines.

    Lines ending in a carriage return are taken first; any line feeds left
    in the remainder are then treated as line ends as well.
    """

    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending(self) -> str:
        """Text received that does not yet form a complete line."""
        return self._pending

    def _take_lines(self, terminator: str) -> list[str]:
        *complete, self._pending = self._pending.split(terminator)
        return [line.strip() for line in complete if line.strip()]

    def feed(self, text: str) -> list[str]:
        """Add received text and return the complete, non-empty lines it finished."""
        self._pending += text
        return self._take_lines("\r") + self._take_lines("\n")

    def clear(self) -> None:
        self._pending = ""