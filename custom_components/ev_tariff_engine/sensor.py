"""Sensor platform for EV Tariff Engine rated session metrics."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory, UnitOfEnergy
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import (
    CONF_CURRENCY,
    DEFAULT_CURRENCY,
    DOMAIN,
    SIGNAL_SESSION_UPDATE,
    DimensionKind,
    SessionEngineState,
)
from .pricing import PricedDimension

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up EV Tariff Engine sensor entities from a config entry."""
    entities: list[Any] = [
        SessionAmountSensor(hass, entry),
        SessionEnergySensor(hass, entry),
        StatusSensor(hass, entry),
    ]
    entities.extend(DimensionAmountSensor(hass, entry, kind) for kind in DimensionKind)
    async_add_entities(entities)


class _SessionSensorBase(SensorEntity):
    """Base class for all session sensor entities.

    All sensors are push-based (no polling) and subscribe to the dispatcher
    signal from SessionEngine. Device is tied to the config entry device.
    """

    _attr_should_poll = False
    _attr_has_entity_name = True

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        """Initialize the sensor."""
        self._hass = hass
        self._entry = entry
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, entry.entry_id)},
        )

    @callback
    def _handle_update(self) -> None:
        """Handle dispatcher update from SessionEngine."""
        self.async_write_ha_state()

    async def async_added_to_hass(self) -> None:
        """Subscribe to SessionEngine dispatcher signal."""
        signal = SIGNAL_SESSION_UPDATE.format(self._entry.entry_id)
        self.async_on_remove(async_dispatcher_connect(self._hass, signal, self._handle_update))

    def _engine(self):
        """Return the SessionEngine for this entry."""
        return self._hass.data.get(DOMAIN, {}).get(self._entry.entry_id, {}).get("session_engine")

    def _is_tracking(self) -> bool:
        """Return True if engine is in TRACKING state."""
        engine = self._engine()
        return engine is not None and engine.state == SessionEngineState.TRACKING

    def _active_session(self):
        """Return the active session or None."""
        engine = self._engine()
        if engine is None:
            return None
        return engine.active_session

    @property
    def available(self) -> bool:
        """Return True only when a session is active (TRACKING state)."""
        return self._is_tracking() and self._active_session() is not None


class SessionAmountSensor(_SessionSensorBase):
    """Shows the total rated amount of the current session."""

    _attr_device_class = SensorDeviceClass.MONETARY
    _attr_suggested_display_precision = 2

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        super().__init__(hass, entry)
        self._attr_unique_id = f"{entry.entry_id}_session_amount"
        self._attr_translation_key = "session_amount"
        self._attr_native_unit_of_measurement = entry.data.get(CONF_CURRENCY, DEFAULT_CURRENCY)

    @property
    def native_value(self) -> Decimal | None:
        session = self._active_session()
        if session is None or session.priced is None:
            return None
        return session.priced.total_amount.amount

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        session = self._active_session()
        if session is None or session.pricing_model is None:
            return {"tariff_model": None}
        return {"tariff_model": session.pricing_model.model_id}


class DimensionAmountSensor(_SessionSensorBase):
    """Shows the amount of one dimension; unavailable when it was not priced."""

    _attr_device_class = SensorDeviceClass.MONETARY
    _attr_suggested_display_precision = 2

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry, kind: DimensionKind) -> None:
        super().__init__(hass, entry)
        self._kind = kind
        self._attr_unique_id = f"{entry.entry_id}_{kind}_amount"
        self._attr_translation_key = f"{kind}_amount"
        self._attr_native_unit_of_measurement = entry.data.get(CONF_CURRENCY, DEFAULT_CURRENCY)

    def _priced(self) -> PricedDimension | None:
        session = self._active_session()
        if session is None or session.priced is None:
            return None
        return session.priced.get(self._kind)

    @property
    def available(self) -> bool:
        """Available only while tracking a session where this dimension was priced."""
        return super().available and self._priced() is not None

    @property
    def native_value(self) -> Decimal | None:
        priced = self._priced()
        if priced is None:
            return None
        return priced.amount.amount

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return the billed quantity and the tariff that priced it."""
        priced = self._priced()
        if priced is None:
            return {"quantity": None, "tariff": None}
        return {"quantity": str(priced.quantity), "tariff": priced.tariff_name}


class SessionEnergySensor(_SessionSensorBase):
    """Shows the energy consumed in the current session (kWh)."""

    _attr_device_class = SensorDeviceClass.ENERGY
    _attr_state_class = SensorStateClass.TOTAL_INCREASING
    _attr_native_unit_of_measurement = UnitOfEnergy.KILO_WATT_HOUR
    _attr_suggested_display_precision = 2

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        super().__init__(hass, entry)
        self._attr_unique_id = f"{entry.entry_id}_session_energy"
        self._attr_translation_key = "session_energy"

    @property
    def native_value(self) -> Decimal | None:
        session = self._active_session()
        if session is None:
            return None
        return session.energy.kwh


class StatusSensor(_SessionSensorBase):
    """Diagnostic sensor showing the engine state (idle/tracking/completing).

    This sensor is never unavailable; it always reports the current state.
    """

    _attr_icon = "mdi:state-machine"
    _attr_entity_category = EntityCategory.DIAGNOSTIC

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        super().__init__(hass, entry)
        self._attr_unique_id = f"{entry.entry_id}_status"
        self._attr_translation_key = "status"

    @property
    def available(self) -> bool:
        """Always available."""
        return True

    @property
    def native_value(self) -> str:
        """Return current engine state. Falls back to 'idle' if engine missing."""
        engine = self._engine()
        if engine is None:
            return SessionEngineState.IDLE
        return engine.state

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return diagnostic attributes: step mode and last missing pricing context."""
        engine = self._engine()
        return {
            "step_mode": str(engine.pricing.step_mode) if engine else None,
            "last_no_context_at": engine.last_no_context_at if engine else None,
        }
