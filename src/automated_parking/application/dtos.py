# File: src/automated_parking/application/dtos.py
"""
Data Transfer Objects (DTOs) for the Automated Parking Lot

This module defines DTOs for data transfer between layers:
1. Input DTOs - park and pull-out requests
2. Output DTOs - allocation result, bill, lot status
3. Error DTO - the {errorCode, errorMessage} failure shape

DTO Principles:
- camelCase names on the wire, snake_case in Python (both accepted on input)
- Validation at creation, but missing request fields are allowed so the
  parking service can report them in its own order
- No business logic, only data
"""

from typing import Dict, List, Optional, Any
from datetime import datetime
from decimal import Decimal
import json

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..domain.models import Bill, Floor, ParkingRecord, ParkingSpace


# ============================================================================
# BASE DTO
# ============================================================================

class BaseDTO(BaseModel):
    """Base DTO with common functionality"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel
    )

    def to_dict(self, exclude_none: bool = False, **kwargs) -> Dict[str, Any]:
        """Convert DTO to a JSON-compatible dictionary with wire names"""
        kwargs.setdefault('by_alias', True)
        kwargs.setdefault('mode', 'json')
        return self.model_dump(exclude_none=exclude_none, **kwargs)

    def to_json(self, **kwargs) -> str:
        kwargs.setdefault('by_alias', True)
        return self.model_dump_json(**kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseDTO':
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, json_str: str) -> 'BaseDTO':
        return cls.model_validate(json.loads(json_str))


# ============================================================================
# REQUEST DTOs
# ============================================================================

class ParkingRequestDTO(BaseDTO):
    """
    DTO for a parking request: the result of the entrance scan
    vehicle_id can be any unique id, e.g. the licence plate code
    """
    vehicle_id: Optional[str] = Field(default=None, description="Vehicle ID")
    vehicle_weight: Optional[Decimal] = Field(default=None, ge=0, description="Weight in kg")
    vehicle_height: Optional[Decimal] = Field(default=None, ge=0, description="Height in cm")


class PullOutRequestDTO(BaseDTO):
    """DTO for a pull-out-and-bill request"""
    vehicle_id: Optional[str] = Field(default=None, description="Vehicle ID")


# ============================================================================
# RESULT DTOs
# ============================================================================

class ParkingAllocationDTO(BaseDTO):
    """DTO for the result of a successful park"""
    vehicle_id: str
    floor: int
    parking_space_id: int
    parking_record_id: int
    allowed_weight_on_floor_before_parking: Decimal
    allowed_weight_on_floor_after_parking: Decimal
    parking_timestamp: datetime
    strategy_used: Optional[str] = None

    @classmethod
    def from_domain(
        cls,
        record: ParkingRecord,
        space: ParkingSpace,
        floor: Floor,
        strategy_used: Optional[str] = None
    ) -> 'ParkingAllocationDTO':
        return cls(
            vehicle_id=record.vehicle_id,
            floor=floor.number,
            parking_space_id=space.id,
            parking_record_id=record.id,
            allowed_weight_on_floor_before_parking=record.allowed_weight_on_floor_before_parking,
            allowed_weight_on_floor_after_parking=floor.allowed_weight,
            parking_timestamp=record.parking_timestamp,
            strategy_used=strategy_used
        )


class BillDTO(BaseDTO):
    """DTO for a parking bill"""
    id: Optional[int] = None
    vehicle_id: str
    billing_from: str
    billing_to: str
    price_per_minute: Decimal
    total_amount_to_be_paid: Decimal

    @classmethod
    def from_domain(cls, bill: Bill) -> 'BillDTO':
        return cls(
            id=bill.id,
            vehicle_id=bill.vehicle_id,
            billing_from=bill.billing_from,
            billing_to=bill.billing_to,
            price_per_minute=bill.price_per_minute,
            total_amount_to_be_paid=bill.total_amount_to_be_paid
        )


class ParkingRecordDTO(BaseDTO):
    """DTO for one stay of a vehicle"""
    id: int
    vehicle_id: str
    vehicle_weight: Decimal
    vehicle_height: Decimal
    allowed_weight_on_floor_before_parking: Decimal
    parking_timestamp: datetime
    emptying_timestamp: Optional[datetime] = None
    floor: int
    parking_space_id: int
    status: str

    @classmethod
    def from_domain(cls, record: ParkingRecord) -> 'ParkingRecordDTO':
        return cls(**record.to_dict())


class FloorStatusDTO(BaseDTO):
    """Occupancy and weight budget of one floor"""
    number: int
    ceiling_height: Decimal
    weight_capacity: Decimal
    allowed_weight: Decimal
    free_spaces: int
    occupied_spaces: int


class LotStatusDTO(BaseDTO):
    """Snapshot of the whole lot"""
    floors: List[FloorStatusDTO] = Field(default_factory=list)
    total_spaces: int = 0
    free_spaces: int = 0
    parked_vehicles: int = 0
    timestamp: Optional[datetime] = None


# ============================================================================
# ERROR DTO
# ============================================================================

class ParkingErrorResponseDTO(BaseModel):
    """The failure shape returned for rejected requests"""
    model_config = ConfigDict(populate_by_name=True)

    error_code: str = Field(alias="errorCode")
    error_message: str = Field(alias="errorMessage")

    def to_dict(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)
