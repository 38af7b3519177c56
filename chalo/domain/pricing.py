"""
Fare Engine  (Strategy Pattern)
===============================

Formula
-------
* **auto**:      Fare = flat one-way / return price (distance is ignored)
* **car / bus**: Fare = round(Rate(distance band) x Distance)

Distance bands
--------------
  distance <= 50 km   -> 50km rate
  distance <= 100 km  -> 100km rate
  distance <= 150 km  -> 150km rate
  distance >  150 km  -> 150km rate   (saturates, no higher band)

Breakdown
---------
  Subtotal = Fare + additional charges
  Total    = Subtotal + round(Subtotal x Tax_Rate) - Discount

Complexity: O(1) per fare; O(n) to build a ``PricingTable`` from n rows.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from .entities import (
    AdditionalCharges,
    AutoPrice,
    DistancePricing,
    DistanceRates,
    PricingBreakdown,
    PricingReference,
    VehiclePricing,
)
from .enums import FareTripType, VehicleCategory
from .errors import PricingUnavailable

DISTANCE_BANDS_KM = (50, 100, 150)


def round_currency(amount: float) -> int:
    """Round half-up to the nearest whole currency unit."""
    return int(math.floor(amount + 0.5))


# ── Strategy hierarchy ────────────────────────────────────────────────


class FareStrategy(ABC):
    @abstractmethod
    def rate(self, distance_km: float, trip_type: FareTripType) -> float: ...

    @abstractmethod
    def calculate(self, distance_km: float, trip_type: FareTripType) -> int: ...


class AutoFlatPricing(FareStrategy):
    def __init__(self, auto_price: AutoPrice):
        self.auto_price = auto_price

    def rate(self, distance_km: float, trip_type: FareTripType) -> float:
        return 0.0

    def calculate(self, distance_km: float, trip_type: FareTripType) -> int:
        if trip_type is FareTripType.ONE_WAY:
            return round_currency(self.auto_price.one_way)
        return round_currency(self.auto_price.return_trip)


class DistanceBandPricing(FareStrategy):
    def __init__(self, distance_pricing: DistancePricing):
        self.distance_pricing = distance_pricing

    def rate(self, distance_km: float, trip_type: FareTripType) -> float:
        rates = self.distance_pricing.for_trip(trip_type)
        if rates is None:
            raise PricingUnavailable(
                f"Distance pricing not available for {trip_type.value} trips"
            )
        if distance_km <= 50:
            return rates.rate_50km
        if distance_km <= 100:
            return rates.rate_100km
        return rates.rate_150km

    def calculate(self, distance_km: float, trip_type: FareTripType) -> int:
        return round_currency(self.rate(distance_km, trip_type) * distance_km)


# ── Fare calculator ───────────────────────────────────────────────────


class FareCalculator:
    """Computes the charged fare from a vehicle's pricing snapshot."""

    @staticmethod
    def strategy_for(
        pricing: Optional[VehiclePricing], category: VehicleCategory
    ) -> FareStrategy:
        if pricing is None:
            raise PricingUnavailable("Vehicle pricing not available")
        if category is VehicleCategory.AUTO:
            return AutoFlatPricing(pricing.auto_price or AutoPrice())
        if pricing.distance_pricing is None:
            raise PricingUnavailable(
                f"Distance pricing not available for {category.value} vehicle"
            )
        return DistanceBandPricing(pricing.distance_pricing)

    def rate_for(
        self,
        pricing: Optional[VehiclePricing],
        category: VehicleCategory,
        distance_km: float,
        trip_type: FareTripType = FareTripType.ONE_WAY,
    ) -> float:
        return self.strategy_for(pricing, category).rate(distance_km, trip_type)

    def calculate(
        self,
        pricing: Optional[VehiclePricing],
        category: VehicleCategory,
        distance_km: float,
        trip_type: FareTripType = FareTripType.ONE_WAY,
    ) -> int:
        if distance_km < 0:
            raise ValueError("Distance must be non-negative")
        return self.strategy_for(pricing, category).calculate(distance_km, trip_type)

    def breakdown(
        self,
        pricing: Optional[VehiclePricing],
        category: VehicleCategory,
        distance_km: float,
        trip_type: FareTripType,
        charges: Optional[AdditionalCharges] = None,
        discount: int = 0,
        tax_rate: float = 0.0,
    ) -> PricingBreakdown:
        """Full price block for a booking; ``total = subtotal + tax - discount``."""
        charges = charges or AdditionalCharges()
        fare = self.calculate(pricing, category, distance_km, trip_type)
        subtotal = fare + charges.total()
        tax = round_currency(subtotal * tax_rate)
        discount = min(max(discount, 0), subtotal + tax)
        return PricingBreakdown(
            fare_trip_type=trip_type,
            base_fare=fare,
            distance=distance_km,
            rate_per_km=self.rate_for(pricing, category, distance_km, trip_type),
            additional_charges=charges,
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            total=subtotal + tax - discount,
        )


# ── Pricing table ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class PricingEntry:
    """One configured row: a (category, type, model, trip type) price."""

    category: VehicleCategory
    vehicle_type: str
    vehicle_model: str
    trip_type: FareTripType
    auto_price: int = 0
    rates: Optional[DistanceRates] = None
    is_default: bool = False
    is_active: bool = True


class PricingTable:
    """
    Lookup of configured pricing rows.

    Exact (category, type, model, trip type) matches win; otherwise the row
    flagged ``is_default`` for the same category and type is used.
    """

    def __init__(self, entries: Iterable[PricingEntry] = ()):
        self._exact: dict[tuple, PricingEntry] = {}
        self._defaults: dict[tuple, PricingEntry] = {}
        for entry in entries:
            self.add(entry)

    def add(self, entry: PricingEntry) -> None:
        if not entry.is_active:
            return
        self._exact[
            (entry.category, entry.vehicle_type, entry.vehicle_model, entry.trip_type)
        ] = entry
        if entry.is_default:
            self._defaults[(entry.category, entry.vehicle_type, entry.trip_type)] = entry

    def __len__(self) -> int:
        return len(self._exact)

    def lookup(
        self, reference: PricingReference, trip_type: FareTripType
    ) -> Optional[PricingEntry]:
        entry = self._exact.get(
            (
                reference.category,
                reference.vehicle_type,
                reference.vehicle_model,
                trip_type,
            )
        )
        if entry is None:
            entry = self._defaults.get(
                (reference.category, reference.vehicle_type, trip_type)
            )
        return entry

    def resolve(
        self, reference: PricingReference, now: Optional[datetime] = None
    ) -> VehiclePricing:
        """Build the pricing snapshot cached on a vehicle record."""
        one_way = self.lookup(reference, FareTripType.ONE_WAY)
        return_trip = self.lookup(reference, FareTripType.RETURN)
        if one_way is None and return_trip is None:
            raise PricingUnavailable(
                f"No pricing for {reference.category.value} "
                f"{reference.vehicle_type} {reference.vehicle_model}"
            )

        snapshot = VehiclePricing(last_updated=now or datetime.now(timezone.utc))
        if reference.category is VehicleCategory.AUTO:
            snapshot.auto_price = AutoPrice(
                one_way=one_way.auto_price if one_way else 0,
                return_trip=return_trip.auto_price if return_trip else 0,
            )
        else:
            snapshot.distance_pricing = DistancePricing(
                one_way=one_way.rates if one_way else None,
                return_trip=return_trip.rates if return_trip else None,
            )
        return snapshot
