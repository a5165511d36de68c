"""Tariff definition data model for EV Tariff Engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from .const import (
    CONF_ACTIVE_DIMENSIONS,
    CONF_CONNECTOR_TYPES,
    CONF_DESCRIPTION,
    CONF_ENTITY_ID,
    CONF_ENTITY_TYPE,
    CONF_MAX_DURATION_S,
    CONF_MAX_POWER_KW,
    CONF_MIN_DURATION_S,
    CONF_MIN_POWER_KW,
    CONF_NAME,
    CONF_VALID_FROM,
    CONF_VALID_TO,
    DimensionKind,
    EntityType,
)
from .units import Duration, Power, optional_decimal, to_decimal


def price_key(kind: DimensionKind) -> str:
    """Return the flat subentry key holding the price of a dimension."""
    return f"{kind}_price"


def step_size_key(kind: DimensionKind) -> str:
    """Return the flat subentry key holding the step size of a dimension."""
    return f"{kind}_step_size"


def _optional_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


@dataclass(frozen=True)
class DimensionSpec:
    """Unit price, optional step size and active flag of one dimension."""

    price: Decimal
    step_size: Decimal | None = None
    active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "price", to_decimal(self.price))
        object.__setattr__(self, "step_size", optional_decimal(self.step_size))

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict (decimals as strings)."""
        return {
            "price": str(self.price),
            "step_size": str(self.step_size) if self.step_size is not None else None,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DimensionSpec:
        """Create from a stored dict."""
        return cls(
            price=to_decimal(data["price"]),
            step_size=optional_decimal(data.get("step_size")),
            active=data.get("active", True),
        )


@dataclass(frozen=True)
class DynamicRestrictions:
    """Eligibility conditions evaluated against session consumption."""

    min_power: Power | None = None
    max_power: Power | None = None
    min_duration: Duration | None = None
    max_duration: Duration | None = None

    @property
    def is_empty(self) -> bool:
        """Return True when no restriction is set."""
        return (
            self.min_power is None
            and self.max_power is None
            and self.min_duration is None
            and self.max_duration is None
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "min_power_kw": str(self.min_power.kw) if self.min_power else None,
            "max_power_kw": str(self.max_power.kw) if self.max_power else None,
            "min_duration_secs": str(self.min_duration.seconds) if self.min_duration else None,
            "max_duration_secs": str(self.max_duration.seconds) if self.max_duration else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DynamicRestrictions:
        """Create from a stored dict; None means unrestricted."""
        if not data:
            return cls()
        min_power = optional_decimal(data.get("min_power_kw"))
        max_power = optional_decimal(data.get("max_power_kw"))
        min_duration = optional_decimal(data.get("min_duration_secs"))
        max_duration = optional_decimal(data.get("max_duration_secs"))
        return cls(
            min_power=Power(min_power) if min_power is not None else None,
            max_power=Power(max_power) if max_power is not None else None,
            min_duration=Duration(min_duration) if min_duration is not None else None,
            max_duration=Duration(max_duration) if max_duration is not None else None,
        )

    def validate(self) -> str | None:
        """Validate restriction ranges. Returns error key or None."""
        if (self.min_power is not None and self.min_power.kw < 0) or (
            self.max_power is not None and self.max_power.kw < 0
        ):
            return "power_range_invalid"
        if (
            self.min_power is not None
            and self.max_power is not None
            and self.min_power.kw >= self.max_power.kw
        ):
            return "power_range_invalid"
        if (
            self.min_duration is not None
            and self.max_duration is not None
            and self.min_duration.seconds >= self.max_duration.seconds
        ):
            return "duration_range_invalid"
        return None


@dataclass(frozen=True)
class StaticRestrictions:
    """Connector and validity-window conditions, checked when resolving a model.

    valid_from is inclusive, valid_to is exclusive.
    """

    connector_types: tuple[str, ...] = ()
    valid_from: date | None = None
    valid_to: date | None = None

    def matches(self, connector_type: str | None, as_of: datetime) -> bool:
        """Return True if the definition applies to this connector at as_of."""
        if self.connector_types and connector_type not in self.connector_types:
            return False
        day = as_of.date()
        if self.valid_from is not None and day < self.valid_from:
            return False
        if self.valid_to is not None and day >= self.valid_to:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "connector_types": list(self.connector_types),
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_to": self.valid_to.isoformat() if self.valid_to else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> StaticRestrictions:
        """Create from a stored dict; None means unrestricted."""
        if not data:
            return cls()
        return cls(
            connector_types=tuple(data.get("connector_types") or ()),
            valid_from=_optional_date(data.get("valid_from")),
            valid_to=_optional_date(data.get("valid_to")),
        )

    def validate(self) -> str | None:
        """Validate the validity window. Returns error key or None."""
        if (
            self.valid_from is not None
            and self.valid_to is not None
            and self.valid_from >= self.valid_to
        ):
            return "validity_range_invalid"
        return None


@dataclass(frozen=True)
class TariffDefinition:
    """A priceable offer attached to an entity.

    Holds at most one DimensionSpec per DimensionKind. Treated as read-only
    once built; the rating code never mutates it.
    """

    id: str
    name: str
    description: str = ""
    entity_type: EntityType = EntityType.TENANT
    entity_id: str | None = None
    restrictions: DynamicRestrictions = field(default_factory=DynamicRestrictions)
    static_restrictions: StaticRestrictions = field(default_factory=StaticRestrictions)
    dimensions: Mapping[DimensionKind, DimensionSpec] = field(default_factory=dict)

    def active_spec(self, kind: DimensionKind) -> DimensionSpec | None:
        """Return the spec for kind if it exists and is active, else None."""
        spec = self.dimensions.get(kind)
        if spec is not None and spec.active:
            return spec
        return None

    def validate(self) -> str | None:
        """Validate the definition before it reaches the rating code.

        Returns error key or None.
        """
        if not any(spec.active for spec in self.dimensions.values()):
            return "dimensions_required"
        for spec in self.dimensions.values():
            if spec.active and spec.price <= 0:
                return "price_not_positive"
            if spec.step_size is not None and spec.step_size <= 0:
                return "step_size_not_positive"
        return self.restrictions.validate() or self.static_restrictions.validate()

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "entity_type": str(self.entity_type),
            "entity_id": self.entity_id,
            "restrictions": self.restrictions.to_dict(),
            "static_restrictions": self.static_restrictions.to_dict(),
            # DimensionKind order keeps the serialized form stable
            "dimensions": {
                str(kind): self.dimensions[kind].to_dict()
                for kind in DimensionKind
                if kind in self.dimensions
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TariffDefinition:
        """Create from a stored dict."""
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            entity_type=EntityType(data.get("entity_type", EntityType.TENANT)),
            entity_id=data.get("entity_id"),
            restrictions=DynamicRestrictions.from_dict(data.get("restrictions")),
            static_restrictions=StaticRestrictions.from_dict(data.get("static_restrictions")),
            dimensions={
                DimensionKind(kind): DimensionSpec.from_dict(spec)
                for kind, spec in (data.get("dimensions") or {}).items()
            },
        )

    @classmethod
    def from_subentry(cls, subentry_id: str, data: Mapping[str, Any]) -> TariffDefinition:
        """Create from a HA ConfigSubentry's flat form data.

        A dimension exists when its price is set; it is active when listed
        in active_dimensions.
        """
        active_kinds = set(data.get(CONF_ACTIVE_DIMENSIONS) or ())
        dimensions: dict[DimensionKind, DimensionSpec] = {}
        for kind in DimensionKind:
            price = optional_decimal(data.get(price_key(kind)))
            if price is None:
                continue
            dimensions[kind] = DimensionSpec(
                price=price,
                step_size=optional_decimal(data.get(step_size_key(kind))),
                active=str(kind) in active_kinds,
            )
        return cls(
            id=subentry_id,
            name=data[CONF_NAME],
            description=data.get(CONF_DESCRIPTION) or "",
            entity_type=EntityType(data.get(CONF_ENTITY_TYPE) or EntityType.TENANT),
            entity_id=data.get(CONF_ENTITY_ID) or None,
            restrictions=DynamicRestrictions.from_dict(
                {
                    "min_power_kw": data.get(CONF_MIN_POWER_KW),
                    "max_power_kw": data.get(CONF_MAX_POWER_KW),
                    "min_duration_secs": data.get(CONF_MIN_DURATION_S),
                    "max_duration_secs": data.get(CONF_MAX_DURATION_S),
                }
            ),
            static_restrictions=StaticRestrictions.from_dict(
                {
                    "connector_types": data.get(CONF_CONNECTOR_TYPES),
                    "valid_from": data.get(CONF_VALID_FROM),
                    "valid_to": data.get(CONF_VALID_TO),
                }
            ),
            dimensions=dimensions,
        )


@dataclass(frozen=True)
class TariffModel:
    """A versioned, ordered set of tariff definitions owned by a tenant."""

    id: str
    tenant: str
    created_on: str
    definitions: tuple[TariffDefinition, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "tenant": self.tenant,
            "created_on": self.created_on,
            "definitions": [d.to_dict() for d in self.definitions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TariffModel:
        """Create from a stored dict."""
        return cls(
            id=data["id"],
            tenant=data["tenant"],
            created_on=data["created_on"],
            definitions=tuple(TariffDefinition.from_dict(d) for d in data.get("definitions", [])),
        )


@dataclass(frozen=True)
class ResolvedTariffModel:
    """Ordered tariff definitions attached to one session for its lifetime."""

    definitions: tuple[TariffDefinition, ...]
    model_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "model_id": self.model_id,
            "definitions": [d.to_dict() for d in self.definitions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResolvedTariffModel:
        """Create from a stored dict."""
        return cls(
            model_id=data.get("model_id"),
            definitions=tuple(TariffDefinition.from_dict(d) for d in data.get("definitions", [])),
        )
