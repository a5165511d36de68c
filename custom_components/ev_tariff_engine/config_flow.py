"""Config flow for EV Tariff Engine."""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant.config_entries import (
    ConfigEntry,
    ConfigFlow,
    ConfigFlowResult,
    ConfigSubentryFlow,
    OptionsFlow,
    SubentryFlowResult,
)
from homeassistant.core import callback
from homeassistant.helpers import selector

from .const import (
    CONF_ACTIVE_DIMENSIONS,
    CONF_CAR_STATUS_CHARGING_VALUE,
    CONF_CAR_STATUS_DISCONNECTED_VALUE,
    CONF_CAR_STATUS_ENTITY,
    CONF_CHARGER_NAME,
    CONF_CONNECTOR_TYPE,
    CONF_CONNECTOR_TYPES,
    CONF_CURRENCY,
    CONF_DESCRIPTION,
    CONF_ENERGY_ENTITY,
    CONF_ENERGY_UNIT,
    CONF_ENTITY_ID,
    CONF_ENTITY_TYPE,
    CONF_MAX_DURATION_S,
    CONF_MAX_POWER_KW,
    CONF_MAX_STORED_SESSIONS,
    CONF_MIN_DURATION_S,
    CONF_MIN_POWER_KW,
    CONF_NAME,
    CONF_RATING_INTERVAL_S,
    CONF_STEP_MODE,
    CONF_TENANT,
    CONF_VALID_FROM,
    CONF_VALID_TO,
    CONNECTOR_TYPES,
    DEFAULT_CAR_STATUS_CHARGING_VALUE,
    DEFAULT_CAR_STATUS_DISCONNECTED_VALUE,
    DEFAULT_CHARGER_NAME,
    DEFAULT_CONNECTOR_TYPE,
    DEFAULT_CURRENCY,
    DEFAULT_ENERGY_UNIT,
    DEFAULT_MAX_STORED_SESSIONS,
    DEFAULT_RATING_INTERVAL_S,
    DEFAULT_STEP_MODE,
    DEFAULT_TENANT,
    DOMAIN,
    SUBENTRY_TYPE_TARIFF_DEFINITION,
    DimensionKind,
    EntityType,
    StepMode,
)
from .models import TariffDefinition, price_key, step_size_key

# Fields that must have a valid, reachable HA entity state
_MANDATORY_ENTITY_FIELDS = [
    CONF_CAR_STATUS_ENTITY,
    CONF_ENERGY_ENTITY,
]


class EvTariffEngineConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle the EV Tariff Engine config flow."""

    VERSION = 1

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> OptionsFlow:
        """Return the options flow handler."""
        return OptionsFlowHandler()

    @classmethod
    @callback
    def async_get_supported_subentry_types(
        cls, config_entry: ConfigEntry
    ) -> dict[str, type[ConfigSubentryFlow]]:
        """Return subentry types supported by this integration."""
        return {SUBENTRY_TYPE_TARIFF_DEFINITION: TariffDefinitionSubentryFlowHandler}

    def __init__(self) -> None:
        """Initialize the config flow."""
        self.data: dict[str, Any] = {}

    async def async_step_user(self, user_input: dict[str, Any] | None = None) -> ConfigFlowResult:
        """Step 1: Charger, tenant and sensor entities."""
        errors: dict[str, str] = {}

        if user_input is not None:
            # Status values are compared as strings against entity states
            for field in (CONF_CAR_STATUS_CHARGING_VALUE, CONF_CAR_STATUS_DISCONNECTED_VALUE):
                user_input[field] = str(user_input[field]).strip()
            if user_input[CONF_CAR_STATUS_CHARGING_VALUE] == user_input[
                CONF_CAR_STATUS_DISCONNECTED_VALUE
            ]:
                errors["base"] = "status_values_identical"
            else:
                errors = await self._validate_entities(user_input)
            if not errors:
                self.data.update(user_input)
                return await self.async_step_confirm()

        entity_selector = selector.EntitySelector(selector.EntitySelectorConfig(domain="sensor"))

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Optional(CONF_CHARGER_NAME, default=DEFAULT_CHARGER_NAME): (
                        selector.TextSelector()
                    ),
                    vol.Required(CONF_TENANT, default=DEFAULT_TENANT): selector.TextSelector(),
                    vol.Required(
                        CONF_CONNECTOR_TYPE, default=DEFAULT_CONNECTOR_TYPE
                    ): selector.SelectSelector(
                        selector.SelectSelectorConfig(
                            options=CONNECTOR_TYPES,
                            mode=selector.SelectSelectorMode.DROPDOWN,
                        )
                    ),
                    vol.Required(CONF_CAR_STATUS_ENTITY): entity_selector,
                    vol.Required(
                        CONF_CAR_STATUS_CHARGING_VALUE, default=DEFAULT_CAR_STATUS_CHARGING_VALUE
                    ): selector.TextSelector(),
                    vol.Required(
                        CONF_CAR_STATUS_DISCONNECTED_VALUE,
                        default=DEFAULT_CAR_STATUS_DISCONNECTED_VALUE,
                    ): selector.TextSelector(),
                    vol.Required(CONF_ENERGY_ENTITY): entity_selector,
                    vol.Required(CONF_ENERGY_UNIT, default=DEFAULT_ENERGY_UNIT): (
                        selector.SelectSelector(
                            selector.SelectSelectorConfig(
                                options=["Wh", "kWh"],
                                mode=selector.SelectSelectorMode.LIST,
                            )
                        )
                    ),
                    vol.Required(CONF_CURRENCY, default=DEFAULT_CURRENCY): selector.TextSelector(),
                }
            ),
            errors=errors,
        )

    async def _validate_entities(self, user_input: dict[str, Any]) -> dict[str, str]:
        """Validate that provided entity IDs exist and are not unavailable."""
        errors: dict[str, str] = {}
        for field in _MANDATORY_ENTITY_FIELDS:
            entity_id = user_input.get(field)
            state = self.hass.states.get(entity_id) if entity_id else None
            if state is None:
                errors[field] = "entity_not_found"
            elif state.state in ("unavailable", "unknown"):
                errors[field] = "entity_unavailable"
        return errors

    async def async_step_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Step 2: Show summary and create config entry on confirmation."""
        charger_name = self.data.get(CONF_CHARGER_NAME, DEFAULT_CHARGER_NAME)
        if user_input is not None:
            await self.async_set_unique_id(
                f"{self.data[CONF_TENANT]}_{self.data[CONF_CAR_STATUS_ENTITY]}"
            )
            self._abort_if_unique_id_configured()
            return self.async_create_entry(title=charger_name, data=self.data)

        return self.async_show_form(
            step_id="confirm",
            data_schema=vol.Schema({}),
            description_placeholders={
                "charger_name": charger_name,
                "tenant": self.data[CONF_TENANT],
            },
        )


# ---------------------------------------------------------------------------
# Options flow
# ---------------------------------------------------------------------------


class OptionsFlowHandler(OptionsFlow):
    """Handle EV Tariff Engine options."""

    async def async_step_init(self, user_input: dict[str, Any] | None = None) -> ConfigFlowResult:
        """Manage step rounding, rating interval and retention."""
        if user_input is not None:
            return self.async_create_entry(data=user_input)

        opts = self.config_entry.options
        schema = vol.Schema(
            {
                vol.Optional(
                    CONF_STEP_MODE,
                    default=str(opts.get(CONF_STEP_MODE, DEFAULT_STEP_MODE)),
                ): selector.SelectSelector(
                    selector.SelectSelectorConfig(
                        options=[str(mode) for mode in StepMode],
                        translation_key=CONF_STEP_MODE,
                        mode=selector.SelectSelectorMode.LIST,
                    )
                ),
                vol.Optional(
                    CONF_RATING_INTERVAL_S,
                    default=opts.get(CONF_RATING_INTERVAL_S, DEFAULT_RATING_INTERVAL_S),
                ): vol.All(
                    selector.NumberSelector(
                        selector.NumberSelectorConfig(
                            min=10, max=3600, step=1, mode=selector.NumberSelectorMode.BOX
                        )
                    ),
                    vol.Coerce(int),
                ),
                vol.Optional(
                    CONF_MAX_STORED_SESSIONS,
                    default=opts.get(CONF_MAX_STORED_SESSIONS, DEFAULT_MAX_STORED_SESSIONS),
                ): vol.All(
                    selector.NumberSelector(
                        selector.NumberSelectorConfig(
                            min=100, max=10000, step=1, mode=selector.NumberSelectorMode.BOX
                        )
                    ),
                    vol.Coerce(int),
                ),
            }
        )

        return self.async_show_form(step_id="init", data_schema=schema)


# ---------------------------------------------------------------------------
# Subentry flow handler (Tariff definition)
# ---------------------------------------------------------------------------


def _price_number() -> selector.NumberSelector:
    return selector.NumberSelector(
        selector.NumberSelectorConfig(min=0, step="any", mode=selector.NumberSelectorMode.BOX)
    )


def _build_tariff_schema() -> vol.Schema:
    """Build the tariff definition form: identity, dimensions, restrictions."""
    schema: dict[Any, Any] = {
        vol.Required(CONF_NAME): selector.TextSelector(),
        vol.Optional(CONF_DESCRIPTION): selector.TextSelector(
            selector.TextSelectorConfig(multiline=True)
        ),
        vol.Required(CONF_ENTITY_TYPE, default=str(EntityType.TENANT)): selector.SelectSelector(
            selector.SelectSelectorConfig(
                options=[str(t) for t in EntityType],
                translation_key=CONF_ENTITY_TYPE,
                mode=selector.SelectSelectorMode.DROPDOWN,
            )
        ),
        vol.Optional(CONF_ENTITY_ID): selector.TextSelector(),
        vol.Required(CONF_ACTIVE_DIMENSIONS): selector.SelectSelector(
            selector.SelectSelectorConfig(
                options=[str(kind) for kind in DimensionKind],
                translation_key=CONF_ACTIVE_DIMENSIONS,
                multiple=True,
                mode=selector.SelectSelectorMode.LIST,
            )
        ),
    }
    for kind in DimensionKind:
        schema[vol.Optional(price_key(kind))] = _price_number()
        if kind != DimensionKind.FLAT_FEE:
            schema[vol.Optional(step_size_key(kind))] = _price_number()
    schema.update(
        {
            vol.Optional(CONF_MIN_POWER_KW): _price_number(),
            vol.Optional(CONF_MAX_POWER_KW): _price_number(),
            vol.Optional(CONF_MIN_DURATION_S): _price_number(),
            vol.Optional(CONF_MAX_DURATION_S): _price_number(),
            vol.Optional(CONF_CONNECTOR_TYPES): selector.SelectSelector(
                selector.SelectSelectorConfig(
                    options=CONNECTOR_TYPES,
                    multiple=True,
                    mode=selector.SelectSelectorMode.DROPDOWN,
                )
            ),
            vol.Optional(CONF_VALID_FROM): selector.DateSelector(),
            vol.Optional(CONF_VALID_TO): selector.DateSelector(),
        }
    )
    return vol.Schema(schema)


TARIFF_DEFINITION_SCHEMA = _build_tariff_schema()


def _validate_tariff_input(user_input: dict[str, Any]) -> str | None:
    """Return an error key for the submitted tariff form, or None if valid."""
    active = user_input.get(CONF_ACTIVE_DIMENSIONS) or []
    if not active:
        return "dimensions_required"
    for kind in active:
        if user_input.get(price_key(DimensionKind(kind))) is None:
            return "price_required"
    definition = TariffDefinition.from_subentry("pending", user_input)
    return definition.validate()


class TariffDefinitionSubentryFlowHandler(ConfigSubentryFlow):
    """Handle tariff definition subentry add/edit flows.

    Subentry order is the definition order used for first-match selection.
    """

    async def async_step_user(self, user_input: dict[str, Any] | None = None) -> SubentryFlowResult:
        """Handle adding a new tariff definition."""
        errors: dict[str, str] = {}
        if user_input is not None:
            error = _validate_tariff_input(user_input)
            if error is None:
                return self.async_create_entry(title=user_input[CONF_NAME], data=user_input)
            errors["base"] = error

        schema = TARIFF_DEFINITION_SCHEMA
        if user_input is not None:
            schema = self.add_suggested_values_to_schema(schema, user_input)
        return self.async_show_form(step_id="user", data_schema=schema, errors=errors)

    async def async_step_reconfigure(
        self, user_input: dict[str, Any] | None = None
    ) -> SubentryFlowResult:
        """Handle editing an existing tariff definition."""
        subentry = self._get_reconfigure_subentry()
        errors: dict[str, str] = {}

        if user_input is not None:
            error = _validate_tariff_input(user_input)
            if error is None:
                return self.async_update_and_abort(
                    self._get_entry(),
                    subentry,
                    data=user_input,
                    title=user_input[CONF_NAME],
                )
            errors["base"] = error

        # Pre-fill with existing values
        schema = self.add_suggested_values_to_schema(
            TARIFF_DEFINITION_SCHEMA, user_input if user_input is not None else dict(subentry.data)
        )
        return self.async_show_form(step_id="reconfigure", data_schema=schema, errors=errors)
