"""Versioned tariff models persisted via HA helpers.storage.Store.

Store key:     ev_tariff_engine_tariffs
Store version: 1
Format:        {"models": [TariffModel dict, ...]} in insertion order
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from .const import SUBENTRY_TYPE_TARIFF_DEFINITION, TARIFF_STORE_KEY, TARIFF_STORE_VERSION
from .models import TariffDefinition, TariffModel

_LOGGER = logging.getLogger(__name__)


class InvalidTariffDefinition(ValueError):
    """Raised when a tariff definition fails validation before being stored."""

    def __init__(self, definition_name: str, error_key: str) -> None:
        """Initialize with the offending definition name and error key."""
        super().__init__(f"Invalid tariff definition '{definition_name}': {error_key}")
        self.definition_name = definition_name
        self.error_key = error_key


class TariffStore:
    """Wrap helpers.storage.Store for tariff models.

    Models are append-only versions: a change to the tariff definitions
    publishes a new model, and sessions keep the model they resolved at
    start.
    """

    def __init__(self, hass: HomeAssistant) -> None:
        """Initialize the tariff store."""
        self._store: Store[dict[str, Any]] = Store(hass, TARIFF_STORE_VERSION, TARIFF_STORE_KEY)
        self._models: list[TariffModel] = []

    @property
    def models(self) -> list[TariffModel]:
        """Return all models in insertion order."""
        return self._models

    async def async_load(self) -> list[TariffModel]:
        """Load models from disk.

        Malformed models are skipped with a warning. Stored definitions are
        validated again and invalid ones dropped from their model.
        """
        stored = await self._store.async_load()
        self._models = []
        if stored is None:
            _LOGGER.debug("No existing tariff store found, starting fresh")
            return self._models

        for data in stored.get("models", []):
            try:
                model = TariffModel.from_dict(data)
            except (KeyError, ValueError, TypeError, ArithmeticError) as err:
                _LOGGER.warning("Skipping malformed tariff model %s: %s", data.get("id", "?"), err)
                continue
            valid = tuple(d for d in model.definitions if self._is_valid(d))
            if valid != model.definitions:
                model = replace(model, definitions=valid)
            self._models.append(model)
        _LOGGER.debug("Loaded %d tariff model(s) from storage", len(self._models))
        return self._models

    @staticmethod
    def _is_valid(definition: TariffDefinition) -> bool:
        error = definition.validate()
        if error is not None:
            _LOGGER.warning("Skipping invalid tariff definition '%s': %s", definition.name, error)
            return False
        return True

    async def async_save(self) -> None:
        """Persist current models to disk."""
        await self._store.async_save({"models": [m.to_dict() for m in self._models]})

    def get_models(self, tenant: str, limit: int | None = None) -> list[TariffModel]:
        """Return the tenant's models, newest created_on first.

        Ties keep the most recently added model first. Definition order
        inside each model is returned exactly as stored.
        """
        indexed = [(i, m) for i, m in enumerate(self._models) if m.tenant == tenant]
        indexed.sort(key=lambda item: (item[1].created_on, item[0]), reverse=True)
        models = [m for _, m in indexed]
        if limit is not None:
            return models[:limit]
        return models

    async def async_add_model(self, model: TariffModel) -> None:
        """Validate and append a model, then persist.

        Raises InvalidTariffDefinition if any definition is invalid.
        """
        for definition in model.definitions:
            error = definition.validate()
            if error is not None:
                raise InvalidTariffDefinition(definition.name, error)
        self._models.append(model)
        await self.async_save()
        _LOGGER.debug(
            "Stored tariff model %s for tenant %s with %d definition(s)",
            model.id,
            model.tenant,
            len(model.definitions),
        )

    async def async_sync_from_entries(
        self, entries: Iterable[ConfigEntry], tenant: str
    ) -> TariffModel | None:
        """Publish the tariff definition subentries of a tenant's entries as its newest model.

        entries are all config entries of the tenant; entry order followed by
        subentry order becomes definition order. Invalid subentries are
        skipped. No new model is stored when the definitions are unchanged.
        """
        definitions: list[TariffDefinition] = []
        for entry in entries:
            for subentry in entry.subentries.values():
                if subentry.subentry_type != SUBENTRY_TYPE_TARIFF_DEFINITION:
                    continue
                try:
                    definition = TariffDefinition.from_subentry(
                        subentry.subentry_id, dict(subentry.data)
                    )
                except (KeyError, ValueError, TypeError, ArithmeticError) as err:
                    _LOGGER.warning(
                        "Skipping malformed tariff definition %s: %s", subentry.subentry_id, err
                    )
                    continue
                if self._is_valid(definition):
                    definitions.append(definition)

        latest = self.get_models(tenant, limit=1)
        if latest and latest[0].definitions == tuple(definitions):
            _LOGGER.debug("Tariff definitions unchanged for tenant %s", tenant)
            return latest[0]
        if not latest and not definitions:
            return None

        model = TariffModel(
            id=uuid.uuid4().hex,
            tenant=tenant,
            created_on=dt_util.utcnow().isoformat(),
            definitions=tuple(definitions),
        )
        await self.async_add_model(model)
        _LOGGER.info(
            "Published tariff model %s for tenant %s (%d definition(s))",
            model.id,
            tenant,
            len(definitions),
        )
        return model
