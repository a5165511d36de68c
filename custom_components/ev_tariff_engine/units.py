"""Decimal-backed value types for energy, power, duration and money.

Unit conversions (Wh to kWh, seconds to hours) only happen here, so the
rating code never handles a bare number whose unit is ambiguous.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

WH_PER_KWH = Decimal(1000)
SECONDS_PER_HOUR = Decimal(3600)


def to_decimal(value: Any) -> Decimal:
    """Coerce an int, float, str or Decimal to a finite Decimal without binary drift.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not
    Decimal("0.1000000000000000055511151231257827...").
    Infinity and NaN raise ValueError.
    """
    if isinstance(value, bool):
        raise TypeError(f"Cannot convert bool to Decimal: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise TypeError(f"Cannot convert {type(value).__name__} to Decimal: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def optional_decimal(value: Any) -> Decimal | None:
    """Return None for None/empty values, else to_decimal(value)."""
    if value is None or value == "":
        return None
    return to_decimal(value)


@dataclass(frozen=True)
class Energy:
    """Cumulated energy, stored in watt-hours."""

    wh: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "wh", to_decimal(self.wh))
        if self.wh < 0:
            raise ValueError(f"Energy cannot be negative: {self.wh} Wh")

    @classmethod
    def from_kwh(cls, kwh: Any) -> Energy:
        return cls(to_decimal(kwh) * WH_PER_KWH)

    @classmethod
    def from_reading(cls, value: Any, unit: str) -> Energy:
        """Build from a meter reading expressed in 'Wh' or 'kWh'."""
        if unit == "kWh":
            return cls.from_kwh(value)
        if unit == "Wh":
            return cls(value)
        raise ValueError(f"Unsupported energy unit: {unit!r}")

    @property
    def kwh(self) -> Decimal:
        return self.wh / WH_PER_KWH


@dataclass(frozen=True)
class Duration:
    """Elapsed time, stored in seconds."""

    seconds: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "seconds", to_decimal(self.seconds))
        if self.seconds < 0:
            raise ValueError(f"Duration cannot be negative: {self.seconds} s")

    @property
    def hours(self) -> Decimal:
        return self.seconds / SECONDS_PER_HOUR


@dataclass(frozen=True)
class Power:
    """Power level in kilowatts."""

    kw: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "kw", to_decimal(self.kw))

    @classmethod
    def from_average_energy(cls, energy: Energy) -> Power:
        """Approximate session power from cumulated energy.

        The cumulated kWh figure is read as kW. This is not instantaneous
        power; power restrictions are evaluated against this value.
        """
        return cls(energy.kwh)


@dataclass(frozen=True)
class Money:
    """Unrounded monetary amount. Rounding belongs to invoicing."""

    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))

    @classmethod
    def zero(cls) -> Money:
        return cls(Decimal(0))

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + other.amount)
