"""Pricing engine for EV charging session consumption rating."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, Decimal
from typing import Any, assert_never

from .const import DEFAULT_STEP_MODE, DimensionKind, StepMode
from .consumption import Consumption
from .models import DimensionSpec, ResolvedTariffModel, TariffDefinition
from .restrictions import passes_restrictions
from .units import Money

_LOGGER = logging.getLogger(__name__)

FLAT_FEE_QUANTITY = Decimal(1)


@dataclass(frozen=True)
class PricedDimension:
    """Amount owed for one dimension, with the tariff that priced it."""

    amount: Money
    quantity: Decimal
    tariff_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict (decimals as strings)."""
        return {
            "amount": str(self.amount.amount),
            "quantity": str(self.quantity),
            "tariff_name": self.tariff_name,
        }


@dataclass(frozen=True)
class PricedConsumption:
    """Priced dimensions of one rating call; unpriced dimensions are absent."""

    dimensions: Mapping[DimensionKind, PricedDimension] = field(default_factory=dict)

    def get(self, kind: DimensionKind) -> PricedDimension | None:
        """Return the priced dimension for kind, or None if absent."""
        return self.dimensions.get(kind)

    @property
    def total_amount(self) -> Money:
        """Return the unrounded sum of all priced dimensions."""
        total = Money.zero()
        for priced in self.dimensions.values():
            total = total + priced.amount
        return total

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict, omitting absent dimensions."""
        return {
            str(kind): self.dimensions[kind].to_dict()
            for kind in DimensionKind
            if kind in self.dimensions
        }


def dimension_quantity(kind: DimensionKind, consumption: Consumption) -> Decimal:
    """Return the billable quantity of a dimension in its billing unit.

    flat_fee: 1 per session, energy: kWh, charging/parking time: hours.
    """
    match kind:
        case DimensionKind.FLAT_FEE:
            return FLAT_FEE_QUANTITY
        case DimensionKind.ENERGY:
            return consumption.energy.kwh
        case DimensionKind.CHARGING_TIME:
            return consumption.duration.hours
        case DimensionKind.PARKING_TIME:
            return consumption.inactivity.hours
        case _:
            assert_never(kind)


class PricingEngine:
    """Rate session consumption against an ordered list of tariff definitions.

    Stateless apart from the step mode; safe to share between sessions.
    """

    def __init__(self, step_mode: StepMode = DEFAULT_STEP_MODE) -> None:
        """Initialize with the step billing mode."""
        self._step_mode = StepMode(step_mode)

    @property
    def step_mode(self) -> StepMode:
        """Return the step billing mode."""
        return self._step_mode

    def billed_units(self, spec: DimensionSpec, quantity: Decimal) -> Decimal:
        """Return the units billed for quantity under spec's step size.

        Without a step size the whole quantity is billed. With one:
          remainder: quantity mod step_size (32.325 on a step of 5 bills 2.325)
          round_up:  next multiple of step_size (6 on a step of 5 bills 10)
        """
        if spec.step_size is None:
            return quantity
        if self._step_mode == StepMode.REMAINDER:
            return quantity % spec.step_size
        steps = (quantity / spec.step_size).to_integral_value(rounding=ROUND_CEILING)
        return steps * spec.step_size

    def price_dimension(self, spec: DimensionSpec, quantity: Decimal) -> PricedDimension:
        """Price one dimension. Callers only pass active specs."""
        amount = Money(spec.price * self.billed_units(spec, quantity))
        return PricedDimension(amount=amount, quantity=quantity)

    def select_and_price(
        self,
        definitions: Sequence[TariffDefinition],
        kind: DimensionKind,
        quantity: Decimal,
    ) -> PricedDimension | None:
        """Price kind with the first definition, in list order, that has an active spec.

        Priority is positional: a later definition never wins over an
        earlier one, whatever amount it would produce.
        """
        for definition in definitions:
            spec = definition.active_spec(kind)
            if spec is None:
                continue
            priced = self.price_dimension(spec, quantity)
            return PricedDimension(
                amount=priced.amount,
                quantity=priced.quantity,
                tariff_name=definition.name,
            )
        return None

    def eligible_definitions(
        self, model: ResolvedTariffModel, consumption: Consumption
    ) -> list[TariffDefinition]:
        """Return the model's definitions passing their dynamic restrictions, in order."""
        return [d for d in model.definitions if passes_restrictions(d, consumption)]

    def rate(self, model: ResolvedTariffModel, consumption: Consumption) -> PricedConsumption:
        """Price all dimensions of a consumption snapshot.

        Pure: calling it again with the same model and snapshot gives an
        equal result, so it serves both periodic and final rating.
        """
        eligible = self.eligible_definitions(model, consumption)
        dimensions: dict[DimensionKind, PricedDimension] = {}
        for kind in DimensionKind:
            priced = self.select_and_price(eligible, kind, dimension_quantity(kind, consumption))
            if priced is not None:
                dimensions[kind] = priced

        if not dimensions:
            _LOGGER.debug(
                "No dimension priced: %d of %d definitions eligible",
                len(eligible),
                len(model.definitions),
            )
        return PricedConsumption(dimensions=dimensions)
