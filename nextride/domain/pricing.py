"""
Fare & Duration Quote  (Strategy Pattern)
=========================================

Formula
-------
Distance    = Haversine(pickup, destination) in **miles** (R = 3959)
Fare        = round(max(Minimum_Fare, Distance x Rate(vehicle_class)), 2)
Duration    = round(max(Minimum_Minutes, Distance x Minutes_Per_Mile))

Canonical rate table (USD / mile)::

    sedan 1.5 | suv 2.0 | hatchback 1.5 | luxury 2.5

The quote is computed once when the ride is created and never re-quoted.
Routed durations from the directions API are only used while navigating.

Complexity: O(1) per quote.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Optional

from .enums import VehicleClass
from .errors import ValidationError
from .geo import haversine_miles

DEFAULT_RATES: dict[VehicleClass, float] = {
    VehicleClass.SEDAN: 1.5,
    VehicleClass.SUV: 2.0,
    VehicleClass.HATCHBACK: 1.5,
    VehicleClass.LUXURY: 2.5,
}


# ── Strategy hierarchy ────────────────────────────────────────────────


class FareStrategy(ABC):
    @abstractmethod
    def calculate(self, distance_miles: float, vehicle_class: VehicleClass) -> float: ...


class PerMileFare(FareStrategy):
    """Flat per-mile rate by vehicle class with a minimum fare."""

    def __init__(
        self,
        rates: Optional[Mapping[VehicleClass, float]] = None,
        minimum_fare: float = 5.0,
    ):
        self.rates = dict(rates or DEFAULT_RATES)
        self.minimum_fare = minimum_fare

    def rate_for(self, vehicle_class: VehicleClass) -> float:
        try:
            return self.rates[VehicleClass(vehicle_class)]
        except (KeyError, ValueError):
            raise ValidationError(f"Unknown vehicle class: {vehicle_class!r}") from None

    def calculate(self, distance_miles: float, vehicle_class: VehicleClass) -> float:
        fare = max(self.minimum_fare, distance_miles * self.rate_for(vehicle_class))
        return round(fare, 2)


# ── Engine facade ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class FareQuote:
    distance_miles: float
    fare: float
    estimated_duration: int  # minutes


class FareEstimator:
    """High-level API used by the ride lifecycle manager."""

    def __init__(
        self,
        strategy: Optional[FareStrategy] = None,
        minimum_minutes: int = 5,
        minutes_per_mile: float = 2.0,
    ):
        self.strategy = strategy or PerMileFare()
        self.minimum_minutes = minimum_minutes
        self.minutes_per_mile = minutes_per_mile

    @classmethod
    def from_settings(cls, settings) -> "FareEstimator":
        rates = {VehicleClass(k): v for k, v in settings.fare_rates.items()}
        return cls(
            PerMileFare(rates, settings.minimum_fare),
            minimum_minutes=settings.minimum_duration_minutes,
            minutes_per_mile=settings.minutes_per_mile,
        )

    def estimate_fare(self, pickup, destination, vehicle_class: VehicleClass) -> float:
        return self.strategy.calculate(haversine_miles(pickup, destination), vehicle_class)

    def estimate_duration(self, pickup, destination) -> int:
        minutes = max(
            self.minimum_minutes,
            haversine_miles(pickup, destination) * self.minutes_per_mile,
        )
        return int(round(minutes))

    def quote(self, pickup, destination, vehicle_class: VehicleClass) -> FareQuote:
        return FareQuote(
            distance_miles=haversine_miles(pickup, destination),
            fare=self.estimate_fare(pickup, destination, vehicle_class),
            estimated_duration=self.estimate_duration(pickup, destination),
        )
