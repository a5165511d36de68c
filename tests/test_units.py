"""Tests for decimal-backed value types."""

from __future__ import annotations

from decimal import Decimal

import pytest

from custom_components.ev_tariff_engine.consumption import Consumption
from custom_components.ev_tariff_engine.units import (
    Duration,
    Energy,
    Money,
    Power,
    optional_decimal,
    to_decimal,
)


def test_float_converted_without_binary_drift():
    """0.1 becomes Decimal('0.1'), not its binary expansion."""
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal("32.325") == Decimal("32.325")
    assert to_decimal(7) == Decimal(7)


def test_bool_rejected():
    with pytest.raises(TypeError):
        to_decimal(True)


def test_unsupported_type_rejected():
    with pytest.raises(TypeError):
        to_decimal([1])


@pytest.mark.parametrize("value", ["inf", "-Infinity", "nan", "sNaN", float("inf"), Decimal("NaN")])
def test_non_finite_values_rejected(value):
    with pytest.raises(ValueError):
        to_decimal(value)


def test_energy_rejects_infinite_reading():
    with pytest.raises(ValueError):
        Energy.from_reading("inf", "Wh")


def test_optional_decimal_empty_values():
    assert optional_decimal(None) is None
    assert optional_decimal("") is None
    assert optional_decimal(0) == Decimal(0)


def test_energy_wh_to_kwh():
    assert Energy(32325).kwh == Decimal("32.325")


def test_energy_from_reading_units():
    """Meter readings in kWh are stored as Wh."""
    assert Energy.from_reading("12.5", "kWh").wh == Decimal("12500.0")
    assert Energy.from_reading("800", "Wh").wh == Decimal(800)


def test_energy_from_reading_unknown_unit():
    with pytest.raises(ValueError):
        Energy.from_reading("1", "MWh")


def test_negative_energy_rejected():
    with pytest.raises(ValueError):
        Energy(-1)


def test_negative_duration_rejected():
    with pytest.raises(ValueError):
        Duration(-5)


def test_duration_seconds_to_hours():
    assert Duration(5400).hours == Decimal("1.5")


def test_power_from_average_energy_reads_kwh_as_kw():
    """Cumulated 7.4 kWh is treated as 7.4 kW."""
    assert Power.from_average_energy(Energy(7400)).kw == Decimal("7.4")


def test_money_addition_is_exact():
    total = Money.zero() + Money("0.1") + Money("0.2")
    assert total.amount == Decimal("0.3")


def test_money_add_non_money_not_supported():
    with pytest.raises(TypeError):
        Money(1) + 1


def test_consumption_from_readings():
    consumption = Consumption.from_readings(32325, 3600, 240)
    assert consumption.energy == Energy(32325)
    assert consumption.duration == Duration(3600)
    assert consumption.inactivity == Duration(240)
    assert consumption.to_dict() == {
        "cumulated_wh": "32325",
        "total_duration_secs": "3600",
        "total_inactivity_secs": "240",
    }


def test_consumption_is_frozen():
    consumption = Consumption.from_readings(0, 0)
    with pytest.raises(Exception):
        consumption.energy = Energy(1)  # type: ignore[misc]
