"""Decoded signal values and time series for plotting."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

_U64_MAX = (1 << 64) - 1
_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1


@dataclass
class Signal:
    """A decoded signal value taken from one CAN message."""

    name: str
    message_id: int
    value: float
    timestamp: datetime
    units: str | None = None


@dataclass(frozen=True)
class SignalValue:
    """A typed signal value: float, unsigned, signed or boolean."""

    class Kind(Enum):
        FLOAT = "float"
        UNSIGNED = "unsigned"
        SIGNED = "signed"
        BOOLEAN = "boolean"

    kind: SignalValue.Kind
    value: float | int | bool

    def __post_init__(self) -> None:
        kind, value = self.kind, self.value
        if kind is SignalValue.Kind.BOOLEAN:
            if not isinstance(value, bool):
                raise TypeError("boolean signal value must be a bool")
        elif kind is SignalValue.Kind.FLOAT:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError("float signal value must be a number")
        else:
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{kind.value} signal value must be an int")
            low, high = (0, _U64_MAX) if kind is SignalValue.Kind.UNSIGNED else (_I64_MIN, _I64_MAX)
            if not low <= value <= high:
                raise ValueError(f"{kind.value} signal value out of range: {value}")

    @classmethod
    def of_float(cls, value: float) -> SignalValue:
        return cls(cls.Kind.FLOAT, value)

    @classmethod
    def of_unsigned(cls, value: int) -> SignalValue:
        return cls(cls.Kind.UNSIGNED, value)

    @classmethod
    def of_signed(cls, value: int) -> SignalValue:
        return cls(cls.Kind.SIGNED, value)

    @classmethod
    def of_bool(cls, value: bool) -> SignalValue:
        return cls(cls.Kind.BOOLEAN, value)

    def as_float(self) -> float:
        """The value as a float, for plotting; booleans become 1.0 or 0.0."""
        if self.kind is SignalValue.Kind.BOOLEAN:
            return 1.0 if self.value else 0.0
        return float(self.value)


@dataclass
class SignalPoint:
    """One sample of a signal."""

    timestamp: datetime
    value: float


@dataclass
class SignalSeries:
    """A time series of one signal's values."""

    signal_name: str
    data_points: list[SignalPoint] = field(default_factory=list)