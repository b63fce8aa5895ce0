# File: src/automated_parking/domain/strategies.py
"""
Strategy Pattern Implementation for the Automated Parking Lot

Strategies:
1. Floor Selection Strategies - choose the floor for an incoming vehicle
2. Pricing Strategies - derive the minute rate and the amount to be paid

Strategies are stateless and work on plain domain objects, so the same
instance can be shared between worker threads.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional
from datetime import datetime
from decimal import Decimal
import logging

from .models import Floor, ParkingRecord, truncate


# ============================================================================
# FLOOR SELECTION STRATEGIES
# ============================================================================

class FloorSelectionStrategy(ABC):
    """
    Abstract base class for floor selection
    Receives floors that already passed the eligibility filter
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def select_floor(
        self,
        candidates: Iterable[Floor],
        vehicle_height: Decimal,
        vehicle_weight: Decimal
    ) -> Optional[Floor]:
        """
        Pick one of the eligible floors
        Returns: the chosen floor or None when there are no candidates
        """
        pass

    def get_strategy_name(self) -> str:
        return self.__class__.__name__.replace("Strategy", "")

    def __str__(self) -> str:
        return f"{self.get_strategy_name()} Strategy"


class ClosestCeilingHeightStrategy(FloorSelectionStrategy):
    """
    Strategy: space-saving allocation
    Picks the floor whose ceiling is closest to the vehicle height, leaving
    taller floors for taller vehicles. Candidates are expected in ascending
    floor number; on equal distance the first one seen wins.
    """

    def select_floor(
        self,
        candidates: Iterable[Floor],
        vehicle_height: Decimal,
        vehicle_weight: Decimal
    ) -> Optional[Floor]:
        best: Optional[Floor] = None
        best_distance: Optional[Decimal] = None

        for floor in candidates:
            distance = abs(vehicle_height - floor.ceiling_height)
            if best_distance is None or distance < best_distance:
                best, best_distance = floor, distance

        if best is not None:
            self.logger.debug(
                f"Selected floor {best.number} for height {vehicle_height} "
                f"(clearance {best.ceiling_height - vehicle_height} cm)"
            )
        return best


# ============================================================================
# PRICING STRATEGIES
# ============================================================================

class PricingStrategy(ABC):
    """
    Abstract base class for pricing strategies
    Defines the rate and duration rules used when a bill is generated
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def price_per_minute(self, record: ParkingRecord, floor: Floor) -> Decimal:
        """Rate charged for each whole minute of the stay"""
        pass

    @staticmethod
    def billable_minutes(parking_timestamp: datetime, emptying_timestamp: datetime) -> int:
        """
        Whole minutes between two timestamps
        Seconds are truncated first, then divided by 60, both toward zero
        """
        seconds = int((emptying_timestamp - parking_timestamp).total_seconds())
        minutes = abs(seconds) // 60
        return minutes if seconds >= 0 else -minutes

    def total_amount(self, record: ParkingRecord, floor: Floor) -> Decimal:
        """Amount to be paid for a closed record, truncated to cents"""
        if record.emptying_timestamp is None:
            raise ValueError(f"Parking record {record.id} is still open")
        minutes = self.billable_minutes(record.parking_timestamp, record.emptying_timestamp)
        return truncate(Decimal(minutes) * self.price_per_minute(record, floor))


class DemandPricingStrategy(PricingStrategy):
    """
    Strategy: demand-sensitive minute rate
    rate = allowed weight on the floor just before the vehicle was admitted
           divided by the floor's nominal weight capacity, truncated to cents

    The admission snapshot is authoritative. Weight changes made by other
    vehicles during the stay do not affect this vehicle's rate.
    """

    def price_per_minute(self, record: ParkingRecord, floor: Floor) -> Decimal:
        if floor.weight_capacity <= 0:
            raise ValueError(f"Floor {floor.number} has no weight capacity to price against")
        return truncate(record.allowed_weight_on_floor_before_parking / floor.weight_capacity)

