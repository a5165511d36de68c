"""Consumption snapshot read by the rating code."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .units import Duration, Energy


@dataclass(frozen=True)
class Consumption:
    """Immutable cumulative readings of a session at one point in time."""

    energy: Energy
    duration: Duration
    inactivity: Duration

    @classmethod
    def from_readings(
        cls,
        cumulated_wh: Any,
        total_duration_secs: Any,
        total_inactivity_secs: Any = 0,
    ) -> Consumption:
        """Build a snapshot from raw numbers (Wh, seconds, seconds)."""
        return cls(
            energy=Energy(cumulated_wh),
            duration=Duration(total_duration_secs),
            inactivity=Duration(total_inactivity_secs),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "cumulated_wh": str(self.energy.wh),
            "total_duration_secs": str(self.duration.seconds),
            "total_inactivity_secs": str(self.inactivity.seconds),
        }
