"""Tests for EV Tariff Engine data models."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from custom_components.ev_tariff_engine.const import DimensionKind, EntityType
from custom_components.ev_tariff_engine.models import (
    DimensionSpec,
    DynamicRestrictions,
    ResolvedTariffModel,
    StaticRestrictions,
    TariffDefinition,
    TariffModel,
)
from custom_components.ev_tariff_engine.units import Duration, Power

from tests.conftest import MOCK_LONG_STAY_TARIFF, MOCK_STANDARD_TARIFF

# ---------------------------------------------------------------------------
# TariffDefinition.from_subentry
# ---------------------------------------------------------------------------


def test_definition_from_subentry() -> None:
    """Prices become active dimension specs, floats are read as exact decimals."""
    definition = TariffDefinition.from_subentry("sub_001", MOCK_STANDARD_TARIFF)

    assert definition.id == "sub_001"
    assert definition.name == "Standard"
    assert definition.entity_type == EntityType.TENANT
    assert definition.entity_id is None
    assert definition.restrictions.is_empty
    assert set(definition.dimensions) == {DimensionKind.FLAT_FEE, DimensionKind.ENERGY}
    assert definition.dimensions[DimensionKind.FLAT_FEE].price == Decimal("1.5")
    assert definition.dimensions[DimensionKind.ENERGY].price == Decimal("0.5")
    assert definition.dimensions[DimensionKind.ENERGY].step_size is None


def test_definition_from_subentry_restrictions() -> None:
    definition = TariffDefinition.from_subentry("sub_002", MOCK_LONG_STAY_TARIFF)

    assert definition.restrictions.min_duration == Duration(1800)
    assert definition.restrictions.max_duration is None
    assert definition.restrictions.min_power is None


def test_priced_but_unselected_dimension_is_inactive() -> None:
    """A price without the dimension in active_dimensions is kept but inactive."""
    data = {
        "name": "Seasonal",
        "active_dimensions": ["energy"],
        "energy_price": 0.4,
        "parking_time_price": 2,
        "parking_time_step_size": 0.25,
    }
    definition = TariffDefinition.from_subentry("sub_003", data)

    parking = definition.dimensions[DimensionKind.PARKING_TIME]
    assert parking.active is False
    assert parking.step_size == Decimal("0.25")
    assert definition.active_spec(DimensionKind.PARKING_TIME) is None
    assert definition.active_spec(DimensionKind.ENERGY) is not None
    assert definition.active_spec(DimensionKind.FLAT_FEE) is None


def test_definition_from_subentry_static_restrictions() -> None:
    data = {
        **MOCK_STANDARD_TARIFF,
        "connector_types": ["CCS"],
        "valid_from": "2026-01-01",
        "valid_to": "2027-01-01",
    }
    definition = TariffDefinition.from_subentry("sub_004", data)

    assert definition.static_restrictions.connector_types == ("CCS",)
    assert definition.static_restrictions.valid_from == date(2026, 1, 1)
    assert definition.static_restrictions.valid_to == date(2027, 1, 1)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _definition(**kwargs) -> TariffDefinition:
    kwargs.setdefault("dimensions", {DimensionKind.ENERGY: DimensionSpec(price="0.30")})
    return TariffDefinition(id="d1", name="Test", **kwargs)


def test_valid_definition() -> None:
    assert _definition().validate() is None


def test_definition_without_dimensions_rejected() -> None:
    assert _definition(dimensions={}).validate() == "dimensions_required"


def test_definition_with_only_inactive_dimensions_rejected() -> None:
    spec = DimensionSpec(price="0.30", active=False)
    assert _definition(dimensions={DimensionKind.ENERGY: spec}).validate() == "dimensions_required"


def test_non_positive_price_rejected() -> None:
    spec = DimensionSpec(price=0)
    assert _definition(dimensions={DimensionKind.ENERGY: spec}).validate() == "price_not_positive"


def test_inactive_dimension_price_not_checked() -> None:
    dimensions = {
        DimensionKind.ENERGY: DimensionSpec(price="0.30"),
        DimensionKind.FLAT_FEE: DimensionSpec(price=0, active=False),
    }
    assert _definition(dimensions=dimensions).validate() is None


def test_non_positive_step_size_rejected() -> None:
    spec = DimensionSpec(price="0.30", step_size=0)
    assert (
        _definition(dimensions={DimensionKind.ENERGY: spec}).validate()
        == "step_size_not_positive"
    )


def test_inverted_power_range_rejected() -> None:
    restrictions = DynamicRestrictions(min_power=Power(22), max_power=Power(11))
    assert _definition(restrictions=restrictions).validate() == "power_range_invalid"


def test_negative_power_rejected() -> None:
    restrictions = DynamicRestrictions(min_power=Power(-1))
    assert _definition(restrictions=restrictions).validate() == "power_range_invalid"


def test_inverted_duration_range_rejected() -> None:
    restrictions = DynamicRestrictions(min_duration=Duration(3600), max_duration=Duration(3600))
    assert _definition(restrictions=restrictions).validate() == "duration_range_invalid"


def test_inverted_validity_window_rejected() -> None:
    static = StaticRestrictions(valid_from=date(2026, 6, 1), valid_to=date(2026, 1, 1))
    assert _definition(static_restrictions=static).validate() == "validity_range_invalid"


# ---------------------------------------------------------------------------
# StaticRestrictions.matches
# ---------------------------------------------------------------------------


def test_static_restrictions_empty_matches_everything() -> None:
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert StaticRestrictions().matches(None, now)
    assert StaticRestrictions().matches("CCS", now)


def test_static_restrictions_connector_type() -> None:
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    static = StaticRestrictions(connector_types=("CCS", "CHAdeMO"))
    assert static.matches("CCS", now)
    assert not static.matches("T2", now)
    assert not static.matches(None, now)


def test_static_restrictions_validity_window_bounds() -> None:
    """valid_from is inclusive, valid_to is exclusive."""
    static = StaticRestrictions(valid_from=date(2026, 1, 1), valid_to=date(2026, 7, 1))
    assert not static.matches(None, datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc))
    assert static.matches(None, datetime(2026, 1, 1, tzinfo=timezone.utc))
    assert static.matches(None, datetime(2026, 6, 30, 23, 59, tzinfo=timezone.utc))
    assert not static.matches(None, datetime(2026, 7, 1, tzinfo=timezone.utc))


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def test_definition_to_dict_uses_strings_for_decimals() -> None:
    definition = TariffDefinition.from_subentry("sub_002", MOCK_LONG_STAY_TARIFF)
    result = definition.to_dict()

    assert result["dimensions"] == {
        "charging_time": {"price": "5", "step_size": None, "active": True},
    }
    assert result["restrictions"]["min_duration_secs"] == "1800"
    assert result["restrictions"]["max_power_kw"] is None
    assert result["static_restrictions"] == {
        "connector_types": [],
        "valid_from": None,
        "valid_to": None,
    }


def test_model_from_dict_keeps_definition_order() -> None:
    """Stored definition order is the selection order; it must survive a reload."""
    model = TariffModel(
        id="m1",
        tenant="acme",
        created_on="2026-03-01T10:00:00+00:00",
        definitions=(
            TariffDefinition.from_subentry("b", MOCK_LONG_STAY_TARIFF),
            TariffDefinition.from_subentry("a", MOCK_STANDARD_TARIFF),
        ),
    )
    restored = TariffModel.from_dict(model.to_dict())

    assert [d.id for d in restored.definitions] == ["b", "a"]
    assert restored == model


def test_resolved_model_from_dict() -> None:
    resolved = ResolvedTariffModel(
        model_id="m1",
        definitions=(TariffDefinition.from_subentry("a", MOCK_STANDARD_TARIFF),),
    )
    assert ResolvedTariffModel.from_dict(resolved.to_dict()) == resolved
