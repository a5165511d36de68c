"""Dynamic restriction checks for tariff definitions.

Each check passes when its restriction is unset. Upper bounds are exclusive.
"""

from __future__ import annotations

from .consumption import Consumption
from .models import DynamicRestrictions, TariffDefinition
from .units import Power


def check_min_power(restrictions: DynamicRestrictions, consumption: Consumption) -> bool:
    """Fail when the approximated session power is below min_power."""
    if restrictions.min_power is None:
        return True
    return Power.from_average_energy(consumption.energy).kw >= restrictions.min_power.kw


def check_max_power(restrictions: DynamicRestrictions, consumption: Consumption) -> bool:
    """Fail when the approximated session power reaches max_power."""
    if restrictions.max_power is None:
        return True
    return Power.from_average_energy(consumption.energy).kw < restrictions.max_power.kw


def check_min_duration(restrictions: DynamicRestrictions, consumption: Consumption) -> bool:
    """Fail when the session is shorter than min_duration."""
    if restrictions.min_duration is None:
        return True
    return consumption.duration.seconds >= restrictions.min_duration.seconds


def check_max_duration(restrictions: DynamicRestrictions, consumption: Consumption) -> bool:
    """Fail when the session reaches max_duration."""
    if restrictions.max_duration is None:
        return True
    return consumption.duration.seconds < restrictions.max_duration.seconds


_CHECKS = (check_min_power, check_max_power, check_min_duration, check_max_duration)


def passes_restrictions(definition: TariffDefinition, consumption: Consumption) -> bool:
    """Return True if every dynamic restriction of the definition holds.

    Stops at the first failing check.
    """
    restrictions = definition.restrictions
    if restrictions.is_empty:
        return True
    return all(check(restrictions, consumption) for check in _CHECKS)
