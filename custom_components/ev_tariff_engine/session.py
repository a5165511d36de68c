"""Transaction dataclass for EV Tariff Engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .const import DEFAULT_TENANT
from .consumption import Consumption
from .models import ResolvedTariffModel
from .pricing import PricedConsumption
from .units import Duration, Energy


@dataclass
class Transaction:
    """A single charging session being rated.

    The pricing model is attached once at session start and never replaced;
    the priced consumption is refreshed on every rating.
    """

    # Identity
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    tenant: str = DEFAULT_TENANT
    charging_station_id: str | None = None
    connector_type: str | None = None
    user_id: str | None = None
    charger_name: str = ""

    # Timing
    started_at: str = ""
    ended_at: str | None = None

    # Cumulative readings
    energy_start: Energy = field(default_factory=lambda: Energy(0))
    energy: Energy = field(default_factory=lambda: Energy(0))
    duration: Duration = field(default_factory=lambda: Duration(0))
    inactivity: Duration = field(default_factory=lambda: Duration(0))

    # Pricing
    pricing_model: ResolvedTariffModel | None = None
    priced: PricedConsumption | None = None

    @property
    def started_at_dt(self) -> datetime | None:
        """Return started_at parsed as datetime, or None if unset."""
        if not self.started_at:
            return None
        return datetime.fromisoformat(self.started_at)

    def consumption(self) -> Consumption:
        """Return an immutable snapshot of the current readings."""
        return Consumption(energy=self.energy, duration=self.duration, inactivity=self.inactivity)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "tenant": self.tenant,
            "charging_station_id": self.charging_station_id,
            "connector_type": self.connector_type,
            "user_id": self.user_id,
            "charger_name": self.charger_name,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "consumption": self.consumption().to_dict(),
            "pricing_model_id": self.pricing_model.model_id if self.pricing_model else None,
            "priced": self.priced.to_dict() if self.priced is not None else None,
            "total_amount": (
                str(self.priced.total_amount.amount) if self.priced is not None else None
            ),
        }
