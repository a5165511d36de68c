"""Tests for sensor and binary sensor entities."""

from __future__ import annotations

from decimal import Decimal

from homeassistant.const import STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.core import HomeAssistant
from homeassistant.helpers import entity_registry as er

from custom_components.ev_tariff_engine.const import DOMAIN, SessionEngineState
from tests.conftest import (
    MOCK_ENERGY_ENTITY,
    MOCK_STANDARD_TARIFF,
    make_entry,
    setup_integration,
    start_charging_session,
    stop_charging_session,
)


def _state(hass: HomeAssistant, entry, key: str, platform: str = "sensor"):
    """Return the state object of the entity with unique_id '{entry_id}_{key}'."""
    registry = er.async_get(hass)
    entity_id = registry.async_get_entity_id(platform, DOMAIN, f"{entry.entry_id}_{key}")
    assert entity_id is not None, key
    return hass.states.get(entity_id)


async def test_all_entities_created(hass: HomeAssistant):
    entry = make_entry(MOCK_STANDARD_TARIFF)
    await setup_integration(hass, entry)

    for key in (
        "session_amount",
        "session_energy",
        "status",
        "flat_fee_amount",
        "energy_amount",
        "charging_time_amount",
        "parking_time_amount",
    ):
        assert _state(hass, entry, key) is not None
    assert _state(hass, entry, "pricing_context", "binary_sensor") is not None


async def test_session_sensors_unavailable_when_idle(hass: HomeAssistant):
    entry = make_entry(MOCK_STANDARD_TARIFF)
    await setup_integration(hass, entry)

    assert _state(hass, entry, "session_amount").state == STATE_UNAVAILABLE
    assert _state(hass, entry, "session_energy").state == STATE_UNAVAILABLE
    assert _state(hass, entry, "energy_amount").state == STATE_UNAVAILABLE
    assert _state(hass, entry, "status").state == SessionEngineState.IDLE
    assert _state(hass, entry, "pricing_context", "binary_sensor").state == "off"


async def test_sensors_follow_rating(hass: HomeAssistant):
    entry = make_entry(MOCK_STANDARD_TARIFF)
    await setup_integration(hass, entry)
    await start_charging_session(hass)

    hass.states.async_set(MOCK_ENERGY_ENTITY, "4000")
    await hass.async_block_till_done()

    amount = _state(hass, entry, "session_amount")
    assert Decimal(amount.state) == Decimal("3.5")
    assert amount.attributes["unit_of_measurement"] == "EUR"
    assert amount.attributes["device_class"] == "monetary"
    assert amount.attributes["tariff_model"] is not None

    energy_amount = _state(hass, entry, "energy_amount")
    assert Decimal(energy_amount.state) == Decimal("2")
    assert energy_amount.attributes["quantity"] == "4"
    assert energy_amount.attributes["tariff"] == "Standard"

    session_energy = _state(hass, entry, "session_energy")
    assert Decimal(session_energy.state) == Decimal("4")
    assert session_energy.attributes["unit_of_measurement"] == "kWh"

    assert _state(hass, entry, "status").state == SessionEngineState.TRACKING
    assert _state(hass, entry, "pricing_context", "binary_sensor").state == "on"


async def test_unpriced_dimension_sensor_unavailable(hass: HomeAssistant):
    """Dimensions no definition prices stay unavailable during a session."""
    entry = make_entry(MOCK_STANDARD_TARIFF)
    await setup_integration(hass, entry)
    await start_charging_session(hass)

    assert _state(hass, entry, "flat_fee_amount").state != STATE_UNAVAILABLE
    assert _state(hass, entry, "charging_time_amount").state == STATE_UNAVAILABLE
    assert _state(hass, entry, "parking_time_amount").state == STATE_UNAVAILABLE


async def test_pricing_context_off_without_model(hass: HomeAssistant):
    entry = make_entry()
    await setup_integration(hass, entry)
    await start_charging_session(hass)

    assert _state(hass, entry, "pricing_context", "binary_sensor").state == "off"
    assert _state(hass, entry, "session_amount").state == STATE_UNKNOWN
    assert _state(hass, entry, "status").attributes["last_no_context_at"] is not None


async def test_sensors_return_to_unavailable_after_session_ends(hass: HomeAssistant):
    entry = make_entry(MOCK_STANDARD_TARIFF)
    await setup_integration(hass, entry)
    await start_charging_session(hass)
    await stop_charging_session(hass)

    assert _state(hass, entry, "session_amount").state == STATE_UNAVAILABLE
    assert _state(hass, entry, "flat_fee_amount").state == STATE_UNAVAILABLE
    assert _state(hass, entry, "status").state == SessionEngineState.IDLE
    assert _state(hass, entry, "pricing_context", "binary_sensor").state == "off"


async def test_status_sensor_reports_step_mode(hass: HomeAssistant):
    entry = make_entry(MOCK_STANDARD_TARIFF, options={"step_mode": "round_up"})
    await setup_integration(hass, entry)

    assert _state(hass, entry, "status").attributes["step_mode"] == "round_up"
