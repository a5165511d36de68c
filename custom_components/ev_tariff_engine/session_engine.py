"""Session tracking and consumption rating for EV Tariff Engine."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from homeassistant.const import STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.core import Event, HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.event import async_track_state_change_event, async_track_time_interval
from homeassistant.util import dt as dt_util

from .const import (
    CONF_CAR_STATUS_CHARGING_VALUE,
    CONF_CAR_STATUS_DISCONNECTED_VALUE,
    CONF_CAR_STATUS_ENTITY,
    CONF_CHARGER_NAME,
    CONF_CONNECTOR_TYPE,
    CONF_ENERGY_ENTITY,
    CONF_ENERGY_UNIT,
    CONF_RATING_INTERVAL_S,
    CONF_STEP_MODE,
    CONF_TENANT,
    DEFAULT_CAR_STATUS_CHARGING_VALUE,
    DEFAULT_CAR_STATUS_DISCONNECTED_VALUE,
    DEFAULT_CONNECTOR_TYPE,
    DEFAULT_ENERGY_UNIT,
    DEFAULT_RATING_INTERVAL_S,
    DEFAULT_STEP_MODE,
    DEFAULT_TENANT,
    EVENT_NO_PRICING_CONTEXT,
    EVENT_SESSION_PRICED,
    EVENT_SESSION_STARTED,
    SIGNAL_SESSION_UPDATE,
    SessionEngineState,
)
from .pricing import PricingEngine
from .resolver import PricingContextResolver
from .session import Transaction
from .session_store import SessionStore
from .units import Duration, Energy

_LOGGER = logging.getLogger(__name__)

# States that indicate an entity has no valid value
_INVALID_STATES = {STATE_UNAVAILABLE, STATE_UNKNOWN, None, "null", ""}


class SessionEngine:
    """Track charging sessions for one config entry and rate their consumption.

    Implements a 3-state machine: IDLE → TRACKING → COMPLETING → IDLE.
    The session starts when the car status equals the charging value and
    ends when it equals the disconnected value. Any other status while
    tracking counts as inactivity (parking time).

    The pricing context is resolved once per session, at start. Rating runs
    on every energy update, on a fixed interval, and once more at the end.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry: Any,  # ConfigEntry, avoiding circular import
        resolver: PricingContextResolver,
        session_store: SessionStore,
    ) -> None:
        """Initialize the session engine."""
        self._hass = hass
        self._entry = entry
        self._resolver = resolver
        self._session_store = session_store

        self._tenant: str = entry.data.get(CONF_TENANT, DEFAULT_TENANT)
        self._pricing = PricingEngine(entry.options.get(CONF_STEP_MODE, DEFAULT_STEP_MODE))

        self._state = SessionEngineState.IDLE
        self._active_session: Transaction | None = None

        # Last valid energy reading, kept during transient unavailability
        self._last_energy: Energy = Energy(0)

        # Inactivity bookkeeping for the active session
        self._inactive_since: datetime | None = None
        self._inactivity_accrued_s: float = 0.0

        self._rating_unsub: Any = None

        self.last_no_context_at: str | None = None

    @property
    def state(self) -> SessionEngineState:
        """Return the current engine state."""
        return self._state

    @property
    def active_session(self) -> Transaction | None:
        """Return the active session, or None if idle."""
        return self._active_session

    @property
    def pricing(self) -> PricingEngine:
        """Return the pricing engine used for rating."""
        return self._pricing

    @callback
    def async_setup(self) -> None:
        """Register state change listeners for the configured charger entities.

        All listeners are unsubscribed on entry unload via entry.async_on_unload().
        """
        entry = self._entry
        watched = [
            e
            for e in [entry.data.get(CONF_CAR_STATUS_ENTITY), entry.data.get(CONF_ENERGY_ENTITY)]
            if e
        ]

        if not watched:
            _LOGGER.warning("SessionEngine: no charger entities configured, engine inactive")
            return

        unsub = async_track_state_change_event(
            self._hass,
            watched,
            self._async_on_state_change,
        )
        entry.async_on_unload(unsub)
        entry.async_on_unload(self._cancel_periodic_rating)
        _LOGGER.debug("SessionEngine registered listeners for: %s", watched)

    def _get_entity_state(self, entity_id: str | None) -> str | None:
        """Return the current state of an entity, or None if unavailable/missing."""
        if not entity_id:
            return None
        state = self._hass.states.get(entity_id)
        if state is None:
            return None
        return state.state if state.state not in _INVALID_STATES else None

    def _get_car_status(self) -> str | None:
        """Return the current car status entity value."""
        return self._get_entity_state(self._entry.data.get(CONF_CAR_STATUS_ENTITY))

    def _get_energy(self) -> Energy | None:
        """Return the current energy reading, or None if unavailable or invalid."""
        entity_id = self._entry.data.get(CONF_ENERGY_ENTITY)
        val = self._get_entity_state(entity_id)
        if val is None:
            return None
        unit = self._entry.data.get(CONF_ENERGY_UNIT, DEFAULT_ENERGY_UNIT)
        try:
            return Energy.from_reading(val, unit)
        except (ArithmeticError, ValueError, TypeError):
            _LOGGER.warning("Energy entity %s has invalid value: %r", entity_id, val)
            return None

    def _charging_value(self) -> str:
        return str(
            self._entry.data.get(CONF_CAR_STATUS_CHARGING_VALUE, DEFAULT_CAR_STATUS_CHARGING_VALUE)
        )

    def _disconnected_value(self) -> str:
        return str(
            self._entry.data.get(
                CONF_CAR_STATUS_DISCONNECTED_VALUE, DEFAULT_CAR_STATUS_DISCONNECTED_VALUE
            )
        )

    @callback
    def _async_on_state_change(self, event: Event) -> None:
        """Handle any state change on a watched entity."""
        if self._state == SessionEngineState.IDLE:
            self._handle_idle_state()
        elif self._state == SessionEngineState.TRACKING:
            self._handle_tracking_state()

    def _handle_idle_state(self) -> None:
        """Evaluate IDLE → TRACKING transition."""
        if self._get_car_status() == self._charging_value():
            # Set state synchronously to prevent duplicate tasks from rapid events
            self._state = SessionEngineState.TRACKING
            self._hass.async_create_task(self._async_start_session())

    def _handle_tracking_state(self) -> None:
        """Update the session or evaluate TRACKING → COMPLETING transition."""
        car_status = self._get_car_status()
        if car_status == self._disconnected_value():
            # Set state synchronously to prevent duplicate completion tasks
            self._state = SessionEngineState.COMPLETING
            self._hass.async_create_task(self._async_complete_session())
            return

        now = dt_util.utcnow()
        if car_status is not None:
            self._update_activity(car_status == self._charging_value(), now)

        energy = self._get_energy()
        if energy is None:
            _LOGGER.warning(
                "Energy entity unavailable during active session, keeping last value %s Wh",
                self._last_energy.wh,
            )
        else:
            self._last_energy = energy

        if self._active_session is not None:
            self._rate(now)

        self._dispatch_update()

    def _update_activity(self, charging: bool, now: datetime) -> None:
        """Open or close an inactivity period on charging status changes."""
        if charging and self._inactive_since is not None:
            self._inactivity_accrued_s += (now - self._inactive_since).total_seconds()
            self._inactive_since = None
        elif not charging and self._inactive_since is None:
            self._inactive_since = now

    def _refresh_readings(self, session: Transaction, now: datetime) -> None:
        """Bring the session's cumulative readings up to now."""
        started = session.started_at_dt or now
        session.duration = Duration(max(0, int((now - started).total_seconds())))

        inactivity_s = self._inactivity_accrued_s
        if self._inactive_since is not None:
            inactivity_s += (now - self._inactive_since).total_seconds()
        session.inactivity = Duration(max(0, int(inactivity_s)))

        delta_wh = self._last_energy.wh - session.energy_start.wh
        session.energy = Energy(max(delta_wh, 0))

    def _rate(self, now: datetime) -> None:
        """Refresh readings and re-rate the active session."""
        session = self._active_session
        if session is None:
            return
        self._refresh_readings(session, now)
        if session.pricing_model is None:
            return
        session.priced = self._pricing.rate(session.pricing_model, session.consumption())
        _LOGGER.debug(
            "Session rated: energy=%s Wh, duration=%s s, inactivity=%s s, amount=%s",
            session.energy.wh,
            session.duration.seconds,
            session.inactivity.seconds,
            session.priced.total_amount.amount,
        )

    @callback
    def _async_periodic_rating(self, _now: datetime) -> None:
        """Re-rate the active session on the configured interval."""
        if self._active_session is None or self._state != SessionEngineState.TRACKING:
            return
        self._rate(dt_util.utcnow())
        self._dispatch_update()

    @callback
    def _cancel_periodic_rating(self) -> None:
        if self._rating_unsub is not None:
            self._rating_unsub()
            self._rating_unsub = None

    async def _async_start_session(self) -> None:
        """Create a new session, resolve its pricing context and start rating."""
        energy = self._get_energy()
        if energy is None:
            energy = Energy(0)
        self._last_energy = energy
        self._inactive_since = None
        self._inactivity_accrued_s = 0.0

        now = dt_util.utcnow()
        charger_name = self._entry.data.get(CONF_CHARGER_NAME, "")
        session = Transaction(
            tenant=self._tenant,
            charging_station_id=self._entry.entry_id,
            connector_type=self._entry.data.get(CONF_CONNECTOR_TYPE, DEFAULT_CONNECTOR_TYPE),
            charger_name=charger_name,
            started_at=now.isoformat(),
            energy_start=energy,
        )

        session.pricing_model = await self._resolver.async_resolve(self._tenant, session)
        if self._state != SessionEngineState.TRACKING:
            _LOGGER.debug("Session %s ended before it was started, dropping it", session.id)
            return

        self._active_session = session

        if session.pricing_model is None:
            self.last_no_context_at = session.started_at
            self._hass.bus.async_fire(
                EVENT_NO_PRICING_CONTEXT,
                {
                    "session_id": session.id,
                    "tenant": session.tenant,
                    "charger": charger_name,
                    "started_at": session.started_at,
                },
            )

        interval = self._entry.options.get(CONF_RATING_INTERVAL_S, DEFAULT_RATING_INTERVAL_S)
        self._cancel_periodic_rating()
        self._rating_unsub = async_track_time_interval(
            self._hass,
            self._async_periodic_rating,
            timedelta(seconds=interval),
        )

        _LOGGER.info(
            "Session started: id=%s tenant=%s tariff_model=%s",
            session.id,
            session.tenant,
            session.pricing_model.model_id if session.pricing_model else None,
        )

        self._hass.bus.async_fire(
            EVENT_SESSION_STARTED,
            {
                "session_id": session.id,
                "tenant": session.tenant,
                "charger": charger_name,
                "connector_type": session.connector_type,
                "started_at": session.started_at,
                "pricing_model_id": (
                    session.pricing_model.model_id if session.pricing_model else None
                ),
            },
        )

        self._rate(now)
        self._dispatch_update()

    async def _async_complete_session(self) -> None:
        """Final rating, persist, fire priced event, reset to IDLE."""
        self._state = SessionEngineState.COMPLETING
        self._cancel_periodic_rating()
        session = self._active_session

        if session is None:
            self._state = SessionEngineState.IDLE
            self._dispatch_update()
            return

        now = dt_util.utcnow()
        energy = self._get_energy()
        if energy is not None:
            self._last_energy = energy
        self._rate(now)
        session.ended_at = now.isoformat()

        _LOGGER.info(
            "Session ending: id=%s duration=%ss energy=%s Wh inactivity=%ss",
            session.id,
            session.duration.seconds,
            session.energy.wh,
            session.inactivity.seconds,
        )

        session_dict = session.to_dict()
        await self._session_store.add_session(session_dict)
        self._hass.bus.async_fire(
            EVENT_SESSION_PRICED,
            {
                "session_id": session.id,
                "tenant": session.tenant,
                "charger": session.charger_name,
                "started_at": session.started_at,
                "ended_at": session.ended_at,
                "consumption": session_dict["consumption"],
                "pricing_model_id": session_dict["pricing_model_id"],
                "priced": session_dict["priced"],
                "total_amount": session_dict["total_amount"],
            },
        )

        # Reset to IDLE
        self._active_session = None
        self._last_energy = Energy(0)
        self._inactive_since = None
        self._inactivity_accrued_s = 0.0
        self._state = SessionEngineState.IDLE
        self._dispatch_update()

    def _dispatch_update(self) -> None:
        """Send dispatcher signal to notify sensor entities of state change."""
        signal = SIGNAL_SESSION_UPDATE.format(self._entry.entry_id)
        async_dispatcher_send(self._hass, signal)
