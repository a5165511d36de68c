"""Constants for EV Tariff Engine."""

from enum import StrEnum

from homeassistant.const import Platform

DOMAIN = "ev_tariff_engine"

# Configuration keys
CONF_CHARGER_NAME = "charger_name"
CONF_TENANT = "tenant"
CONF_CONNECTOR_TYPE = "connector_type"
CONF_CAR_STATUS_ENTITY = "car_status_entity"
CONF_CAR_STATUS_CHARGING_VALUE = "car_status_charging_value"
CONF_CAR_STATUS_DISCONNECTED_VALUE = "car_status_disconnected_value"
CONF_ENERGY_ENTITY = "energy_entity"
CONF_ENERGY_UNIT = "energy_unit"
CONF_CURRENCY = "currency"

# Options keys
CONF_STEP_MODE = "step_mode"
CONF_RATING_INTERVAL_S = "rating_interval_s"
CONF_MAX_STORED_SESSIONS = "max_stored_sessions"

# Tariff definition subentry keys
CONF_NAME = "name"
CONF_DESCRIPTION = "description"
CONF_ENTITY_TYPE = "entity_type"
CONF_ENTITY_ID = "entity_id"
CONF_ACTIVE_DIMENSIONS = "active_dimensions"
CONF_MIN_POWER_KW = "min_power_kw"
CONF_MAX_POWER_KW = "max_power_kw"
CONF_MIN_DURATION_S = "min_duration_s"
CONF_MAX_DURATION_S = "max_duration_s"
CONF_CONNECTOR_TYPES = "connector_types"
CONF_VALID_FROM = "valid_from"
CONF_VALID_TO = "valid_to"

# Subentry types
SUBENTRY_TYPE_TARIFF_DEFINITION = "tariff_definition"

# Default values
DEFAULT_CHARGER_NAME = "EV Charger"
DEFAULT_TENANT = "default"
DEFAULT_CONNECTOR_TYPE = "T2"
DEFAULT_CAR_STATUS_CHARGING_VALUE = "Charging"
DEFAULT_CAR_STATUS_DISCONNECTED_VALUE = "Idle"
DEFAULT_ENERGY_UNIT = "Wh"
DEFAULT_CURRENCY = "EUR"
DEFAULT_RATING_INTERVAL_S = 60
DEFAULT_MAX_STORED_SESSIONS = 1000

CONNECTOR_TYPES = ["T2", "CCS", "CHAdeMO", "DOMESTIC", "T1"]

# Store settings
TARIFF_STORE_KEY = "ev_tariff_engine_tariffs"
TARIFF_STORE_VERSION = 1
SESSION_STORE_KEY = "ev_tariff_engine_sessions"
SESSION_STORE_VERSION = 1


class DimensionKind(StrEnum):
    """Priceable aspects of a charging session."""

    FLAT_FEE = "flat_fee"
    ENERGY = "energy"
    CHARGING_TIME = "charging_time"
    PARKING_TIME = "parking_time"


class EntityType(StrEnum):
    """Kind of entity a tariff definition is attached to."""

    TENANT = "tenant"
    COMPANY = "company"
    SITE = "site"
    SITE_AREA = "site_area"
    CHARGING_STATION = "charging_station"
    USER_GROUP = "user_group"
    USER = "user"


class StepMode(StrEnum):
    """How a step size turns a consumed quantity into billed units."""

    # quantity mod step_size
    REMAINDER = "remainder"
    # quantity rounded up to the next multiple of step_size
    ROUND_UP = "round_up"


DEFAULT_STEP_MODE = StepMode.REMAINDER


# Session engine state
class SessionEngineState(StrEnum):
    """States for the session engine state machine."""

    IDLE = "idle"
    TRACKING = "tracking"
    COMPLETING = "completing"


# Session lifecycle events
EVENT_SESSION_STARTED = "ev_tariff_engine_session_started"
EVENT_SESSION_PRICED = "ev_tariff_engine_session_priced"
EVENT_NO_PRICING_CONTEXT = "ev_tariff_engine_no_pricing_context"

# Dispatcher signal for sensor updates (format with entry_id)
SIGNAL_SESSION_UPDATE = "ev_tariff_engine_session_update_{}"

# Platforms to forward to
PLATFORMS = [Platform.SENSOR, Platform.BINARY_SENSOR]
