"""Shared fixtures for EV Tariff Engine tests."""

from __future__ import annotations

from typing import Any

import pytest
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.ev_tariff_engine.const import DOMAIN, SUBENTRY_TYPE_TARIFF_DEFINITION

# Entity IDs for the mock charger
MOCK_CAR_STATUS_ENTITY = "sensor.wallbox_car_status"
MOCK_ENERGY_ENTITY = "sensor.wallbox_session_energy"

# Standard mock data for charger config entry
MOCK_CHARGER_DATA = {
    "charger_name": "Garage Wallbox",
    "tenant": "acme",
    "connector_type": "T2",
    "car_status_entity": MOCK_CAR_STATUS_ENTITY,
    "car_status_charging_value": "Charging",
    "car_status_disconnected_value": "Idle",
    "energy_entity": MOCK_ENERGY_ENTITY,
    "energy_unit": "Wh",
    "currency": "EUR",
}

# Flat fee 1.5 plus 0.50 per kWh, unrestricted
MOCK_STANDARD_TARIFF = {
    "name": "Standard",
    "entity_type": "tenant",
    "active_dimensions": ["flat_fee", "energy"],
    "flat_fee_price": 1.5,
    "energy_price": 0.5,
}

# 5 per hour of charging, only for sessions of at least 30 minutes
MOCK_LONG_STAY_TARIFF = {
    "name": "Long stay",
    "entity_type": "tenant",
    "active_dimensions": ["charging_time"],
    "charging_time_price": 5,
    "min_duration_s": 1800,
}


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: None) -> None:
    """Enable custom integrations for all tests."""


def tariff_subentry(data: dict[str, Any]) -> dict[str, Any]:
    """Return ConfigSubentryData for a tariff definition."""
    return {
        "data": data,
        "subentry_type": SUBENTRY_TYPE_TARIFF_DEFINITION,
        "title": data["name"],
        "unique_id": None,
    }


def make_entry(
    *tariffs: dict[str, Any],
    data: dict[str, Any] | None = None,
    options: dict[str, Any] | None = None,
) -> MockConfigEntry:
    """Create a charger config entry with the given tariff definitions, in order."""
    return MockConfigEntry(
        domain=DOMAIN,
        data=data or MOCK_CHARGER_DATA,
        options=options or {},
        title="Garage Wallbox",
        subentries_data=[tariff_subentry(t) for t in tariffs],
    )


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry with the standard tariff."""
    return make_entry(MOCK_STANDARD_TARIFF)


async def setup_integration(
    hass: HomeAssistant,
    entry: MockConfigEntry,
) -> ConfigEntry:
    """Set up the full integration including session engine and sensor platforms.

    Initializes charger entity states to idle before setup so listeners
    are registered with a clean baseline.
    """
    hass.states.async_set(MOCK_CAR_STATUS_ENTITY, "Idle")
    hass.states.async_set(MOCK_ENERGY_ENTITY, "0")

    entry.add_to_hass(hass)
    await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()
    return hass.config_entries.async_get_entry(entry.entry_id)


async def start_charging_session(hass: HomeAssistant, energy: str = "0") -> None:
    """Simulate a car starting to charge."""
    hass.states.async_set(MOCK_ENERGY_ENTITY, energy)
    hass.states.async_set(MOCK_CAR_STATUS_ENTITY, "Charging")
    await hass.async_block_till_done()


async def stop_charging_session(hass: HomeAssistant) -> None:
    """Simulate the car being disconnected."""
    hass.states.async_set(MOCK_CAR_STATUS_ENTITY, "Idle")
    await hass.async_block_till_done()
