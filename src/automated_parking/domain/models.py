# File: src/automated_parking/domain/models.py
"""
Domain Models for the Automated Parking Lot
Plain value types with identity, related to each other only by identifiers

This module contains:
1. Enums: parking status and weight adjustment direction
2. Entities: Floor, ParkingSpace, ParkingRecord, Bill
3. Decimal helpers shared by the pricing rules

No entity holds a live reference to another. Floors are referenced by their
ordinal number, spaces by id and vehicles by their external id (for example
the licence plate code).
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any
from datetime import datetime
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from enum import Enum


TWO_PLACES = Decimal('0.01')


def truncate(value: Decimal, exponent: Decimal = TWO_PLACES) -> Decimal:
    """Cut a decimal down to the given exponent, never rounding up"""
    return value.quantize(exponent, rounding=ROUND_DOWN)


def to_decimal(value: Any) -> Decimal:
    """Convert numbers and numeric strings to Decimal without float noise"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_amount(value: Any) -> Decimal:
    """Convert to Decimal and round half up to the stored scale of two places"""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# ============================================================================
# ENUMS
# ============================================================================

class ParkingStatus(str, Enum):
    """
    Lifecycle of a parking record
    IN_PROGRESS: the vehicle still occupies its space
    OVER: the vehicle has left and the record is closed for good
    """
    IN_PROGRESS = "IN_PROGRESS"
    OVER = "OVER"

    def __str__(self) -> str:
        return self.value


class WeightDirection(Enum):
    """Whether a vehicle's weight is taken from or given back to a floor"""
    ADMIT = "admit"
    RELEASE = "release"

    def apply(self, allowed_weight: Decimal, vehicle_weight: Decimal) -> Decimal:
        if self is WeightDirection.ADMIT:
            return allowed_weight - vehicle_weight
        return allowed_weight + vehicle_weight


# ============================================================================
# ENTITIES
# ============================================================================

@dataclass
class Floor:
    """
    Entity: one level of the lot
    weight_capacity is fixed at provisioning, allowed_weight is what is still
    available for new vehicles and must stay within [0, weight_capacity]
    """
    number: int
    ceiling_height: Decimal
    weight_capacity: Decimal
    allowed_weight: Decimal
    id: Optional[int] = None

    def __post_init__(self):
        self.ceiling_height = to_amount(self.ceiling_height)
        self.weight_capacity = to_amount(self.weight_capacity)
        self.allowed_weight = to_amount(self.allowed_weight)
        if self.number < 0:
            raise ValueError(f"Floor number cannot be negative: {self.number}")
        if self.ceiling_height <= 0:
            raise ValueError(f"Ceiling height must be positive: {self.ceiling_height}")
        if self.weight_capacity <= 0:
            raise ValueError(f"Weight capacity must be positive: {self.weight_capacity}")

    def within_bounds(self, allowed_weight: Decimal) -> bool:
        return Decimal('0') <= allowed_weight <= self.weight_capacity

    def fits(self, height: Decimal, weight: Decimal) -> bool:
        """Check ceiling clearance and remaining weight budget for a vehicle"""
        return self.ceiling_height >= height and self.allowed_weight >= weight

    @property
    def used_weight(self) -> Decimal:
        return self.weight_capacity - self.allowed_weight

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        return (f"Floor {self.number} (ceiling {self.ceiling_height} cm, "
                f"{self.allowed_weight}/{self.weight_capacity} kg free)")


@dataclass
class ParkingSpace:
    """Entity: a physical slot on a floor, free when occupying_vehicle_id is None"""
    floor: int
    occupying_vehicle_id: Optional[str] = None
    id: Optional[int] = None

    @property
    def is_free(self) -> bool:
        return self.occupying_vehicle_id is None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ParkingRecord:
    """
    Entity: the lifecycle entry for one vehicle's stay
    Vehicle dimensions and the floor's allowed weight are snapshots taken at
    admission. Once status is OVER the record is never changed again.
    """
    vehicle_id: str
    vehicle_weight: Decimal
    vehicle_height: Decimal
    allowed_weight_on_floor_before_parking: Decimal
    parking_timestamp: datetime
    floor: int
    parking_space_id: int
    status: ParkingStatus = ParkingStatus.IN_PROGRESS
    emptying_timestamp: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.vehicle_weight = to_amount(self.vehicle_weight)
        self.vehicle_height = to_amount(self.vehicle_height)
        self.allowed_weight_on_floor_before_parking = to_amount(
            self.allowed_weight_on_floor_before_parking
        )
        self.status = ParkingStatus(self.status)

    @property
    def is_open(self) -> bool:
        return self.status == ParkingStatus.IN_PROGRESS

    def close(self, emptying_timestamp: datetime) -> None:
        if not self.is_open:
            raise ValueError(f"Parking record {self.id} is already closed")
        self.emptying_timestamp = emptying_timestamp
        self.status = ParkingStatus.OVER

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data


@dataclass(frozen=True)
class Bill:
    """Entity: the invoice for one completed parking record, immutable"""
    vehicle_id: str
    billing_from: str
    billing_to: str
    price_per_minute: Decimal
    total_amount_to_be_paid: Decimal
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
