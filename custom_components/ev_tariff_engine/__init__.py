"""EV Tariff Engine integration."""

from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry, ConfigEntryState
from homeassistant.core import HomeAssistant
from homeassistant.helpers import device_registry as dr

from .const import (
    CONF_CHARGER_NAME,
    CONF_CONNECTOR_TYPE,
    CONF_MAX_STORED_SESSIONS,
    CONF_TENANT,
    DEFAULT_CHARGER_NAME,
    DEFAULT_CONNECTOR_TYPE,
    DEFAULT_MAX_STORED_SESSIONS,
    DEFAULT_TENANT,
    DOMAIN,
    PLATFORMS,
)
from .resolver import NewestModelStrategy, PricingContextResolver
from .session_engine import SessionEngine
from .session_store import SessionStore
from .tariff_store import TariffStore

_LOGGER = logging.getLogger(__name__)

# Key of the tariff store shared by all entries, next to the per-entry data
DATA_TARIFF_STORE = "tariff_store"


async def _async_get_tariff_store(hass: HomeAssistant) -> TariffStore:
    """Return the shared tariff store, loading it on first use."""
    domain_data = hass.data.setdefault(DOMAIN, {})
    tariff_store: TariffStore | None = domain_data.get(DATA_TARIFF_STORE)
    if tariff_store is None:
        tariff_store = TariffStore(hass)
        await tariff_store.async_load()
        tariff_store = domain_data.setdefault(DATA_TARIFF_STORE, tariff_store)
    return tariff_store


async def _async_sync_tenant_tariffs(
    hass: HomeAssistant,
    tariff_store: TariffStore,
    tenant: str,
    exclude_entry_id: str | None = None,
) -> None:
    """Publish the tariff definitions of every charger entry of a tenant."""
    entries = [
        entry
        for entry in hass.config_entries.async_entries(DOMAIN)
        if entry.data.get(CONF_TENANT, DEFAULT_TENANT) == tenant
        and entry.entry_id != exclude_entry_id
    ]
    await tariff_store.async_sync_from_entries(entries, tenant)


async def _on_entry_updated(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle config entry updates (options change or subentry add/edit/delete)."""
    if entry.state is not ConfigEntryState.LOADED:
        return

    domain_data = hass.data.get(DOMAIN, {}).get(entry.entry_id, {})
    if domain_data.get("options") != dict(entry.options):
        # Step mode, rating interval and retention are read at setup
        _LOGGER.debug("Options changed for %s, reloading", entry.title)
        hass.config_entries.async_schedule_reload(entry.entry_id)
        return

    tariff_store: TariffStore | None = hass.data[DOMAIN].get(DATA_TARIFF_STORE)
    if tariff_store is None:
        return
    await _async_sync_tenant_tariffs(
        hass, tariff_store, entry.data.get(CONF_TENANT, DEFAULT_TENANT)
    )


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up EV Tariff Engine from a config entry."""
    tariff_store = await _async_get_tariff_store(hass)
    hass.data[DOMAIN][entry.entry_id] = {"options": dict(entry.options)}

    # Publish the tenant's tariff definitions, across all its chargers, as its newest model
    tenant = entry.data.get(CONF_TENANT, DEFAULT_TENANT)
    await _async_sync_tenant_tariffs(hass, tariff_store, tenant)

    # Register update listener for subentry and options changes
    entry.async_on_unload(entry.add_update_listener(_on_entry_updated))

    device_registry = dr.async_get(hass)
    device_registry.async_get_or_create(
        config_entry_id=entry.entry_id,
        identifiers={(DOMAIN, entry.entry_id)},
        name=entry.data.get(CONF_CHARGER_NAME, DEFAULT_CHARGER_NAME),
        manufacturer="EV Tariff Engine",
        model=entry.data.get(CONF_CONNECTOR_TYPE, DEFAULT_CONNECTOR_TYPE),
    )

    # Set up session store and load persisted sessions
    max_sessions = entry.options.get(CONF_MAX_STORED_SESSIONS, DEFAULT_MAX_STORED_SESSIONS)
    session_store = SessionStore(hass, entry.entry_id, max_sessions=max_sessions)
    await session_store.async_load()

    # Set up session engine and register state listeners
    resolver = PricingContextResolver(NewestModelStrategy(tariff_store))
    session_engine = SessionEngine(hass, entry, resolver, session_store)
    session_engine.async_setup()

    hass.data[DOMAIN][entry.entry_id]["session_store"] = session_store
    hass.data[DOMAIN][entry.entry_id]["session_engine"] = session_engine

    # Forward setup to sensor and binary_sensor platforms
    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        hass.data[DOMAIN].pop(entry.entry_id, None)
    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Republish the tenant's tariffs without the removed charger's definitions."""
    tariff_store = await _async_get_tariff_store(hass)
    await _async_sync_tenant_tariffs(
        hass,
        tariff_store,
        entry.data.get(CONF_TENANT, DEFAULT_TENANT),
        exclude_entry_id=entry.entry_id,
    )
