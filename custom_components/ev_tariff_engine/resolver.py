"""Pricing context resolution: which tariff definitions apply to a session."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from homeassistant.util import dt as dt_util

from .models import ResolvedTariffModel, TariffDefinition
from .session import Transaction
from .tariff_store import TariffStore

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricingScope:
    """Where a session happens, from the broadest scope to the most specific.

    Only tenant is required. The other levels are carried for hierarchical
    strategies that let a narrower scope extend or override a broader one.
    """

    tenant: str
    company_id: str | None = None
    site_id: str | None = None
    site_area_id: str | None = None
    charging_station_id: str | None = None
    user_group_id: str | None = None
    user_id: str | None = None
    connector_type: str | None = None


class ResolutionStrategy(Protocol):
    """Picks the ordered tariff definitions for a scope at a point in time."""

    async def async_resolve_for_scope(
        self, scope: PricingScope, as_of: datetime
    ) -> ResolvedTariffModel | None: ...


def filter_static_restrictions(
    definitions: Iterable[TariffDefinition], scope: PricingScope, as_of: datetime
) -> tuple[TariffDefinition, ...]:
    """Drop definitions whose connector or validity window excludes the scope, keeping order."""
    return tuple(
        d for d in definitions if d.static_restrictions.matches(scope.connector_type, as_of)
    )


class NewestModelStrategy:
    """Use the most recently created tariff model of the tenant.

    Ignores every scope level below the tenant.
    """

    def __init__(self, store: TariffStore) -> None:
        """Initialize with the tariff store to read from."""
        self._store = store

    async def async_resolve_for_scope(
        self, scope: PricingScope, as_of: datetime
    ) -> ResolvedTariffModel | None:
        """Return the newest model's definitions, or None if the tenant has no model."""
        models = self._store.get_models(scope.tenant, limit=1)
        if not models:
            return None
        model = models[0]
        return ResolvedTariffModel(
            model_id=model.id,
            definitions=filter_static_restrictions(model.definitions, scope, as_of),
        )


class PricingContextResolver:
    """Resolve the tariff model attached to a session at its start."""

    def __init__(self, strategy: ResolutionStrategy) -> None:
        """Initialize with the resolution strategy."""
        self._strategy = strategy

    async def async_resolve(
        self, tenant: str, transaction: Transaction
    ) -> ResolvedTariffModel | None:
        """Return the resolved model, or None when no pricing context exists.

        Resolution is evaluated as of the transaction start. Whether a
        missing context blocks billing is left to the caller.
        """
        scope = PricingScope(
            tenant=tenant,
            charging_station_id=transaction.charging_station_id,
            user_id=transaction.user_id,
            connector_type=transaction.connector_type,
        )
        as_of = transaction.started_at_dt or dt_util.utcnow()
        resolved = await self._strategy.async_resolve_for_scope(scope, as_of)
        if resolved is None:
            _LOGGER.warning(
                "No pricing context for tenant %s (transaction %s)", tenant, transaction.id
            )
            return None
        _LOGGER.debug(
            "Resolved tariff model %s with %d definition(s) for transaction %s",
            resolved.model_id,
            len(resolved.definitions),
            transaction.id,
        )
        return resolved
