# File: src/automated_parking/domain/exceptions.py
"""
Error taxonomy for the Automated Parking Lot

Three families:
1. ParkingRequestError - the request is rejected and the caller gets an
   error code with an explanatory message
2. ParkingConsistencyError - two components disagree about the lot state;
   a programming contract was broken and the error must surface loudly
3. AllocationConflictError - a concurrent worker won a race; the whole
   operation is rolled back and retried
"""

from enum import Enum
from typing import Dict, Optional


class ParkingErrorCode(Enum):
    """Error codes returned to callers, with their explanatory messages"""

    NO_AVAILABLE_FLOOR = (
        "There is no available floor where available parking spaces exist, "
        "whose ceiling is high enough, and which is not overweight!"
    )
    CAR_ALREADY_PARKED = "There is already a parked car in the lot with this ID!"
    NO_PARKED_CAR_WITH_THIS_ID = "A parked car to be pulled out with this ID is not available in the lot!"
    CAR_ID_MISSING = "Car ID must be provided!"
    CAR_WEIGHT_MISSING = "Car scan must pass the weight of the car to the system!"
    CAR_HEIGHT_MISSING = "Car scan must pass the height of the car to the system!"
    INVALID_REQUEST = "The request is malformed!"

    @property
    def explanatory_message(self) -> str:
        return self.value


class ParkingServiceError(Exception):
    """Base exception for parking service errors"""
    pass


# ============================================================================
# REQUEST REJECTIONS
# ============================================================================

class ParkingRequestError(ParkingServiceError):
    """A request rejected for a business reason"""

    error_code: ParkingErrorCode = ParkingErrorCode.INVALID_REQUEST

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.error_code.explanatory_message)

    def to_response(self) -> Dict[str, str]:
        return {
            "errorCode": self.error_code.name,
            "errorMessage": self.error_code.explanatory_message,
        }


class CarIdMissingError(ParkingRequestError):
    error_code = ParkingErrorCode.CAR_ID_MISSING


class CarWeightMissingError(ParkingRequestError):
    error_code = ParkingErrorCode.CAR_WEIGHT_MISSING


class CarHeightMissingError(ParkingRequestError):
    error_code = ParkingErrorCode.CAR_HEIGHT_MISSING


class CarAlreadyParkedError(ParkingRequestError):
    error_code = ParkingErrorCode.CAR_ALREADY_PARKED


class NoAvailableFloorError(ParkingRequestError):
    error_code = ParkingErrorCode.NO_AVAILABLE_FLOOR


class NoParkedVehicleError(ParkingRequestError):
    error_code = ParkingErrorCode.NO_PARKED_CAR_WITH_THIS_ID


class InvalidRequestError(ParkingRequestError):
    error_code = ParkingErrorCode.INVALID_REQUEST


# ============================================================================
# INTERNAL CONSISTENCY VIOLATIONS
# ============================================================================

class ParkingConsistencyError(ParkingServiceError):
    """Components disagree about the lot state"""
    pass


class NoSpaceOnFloorError(ParkingConsistencyError):
    """The floor was selected as eligible but no free space could be claimed"""

    def __init__(self, floor_number: int):
        super().__init__(f"No free parking space could be claimed on floor {floor_number}")
        self.floor_number = floor_number


class SpaceNotFoundError(ParkingConsistencyError):
    """No space is occupied by the vehicle being released"""

    def __init__(self, vehicle_id: str):
        super().__init__(f"No parking space is occupied by vehicle {vehicle_id}")
        self.vehicle_id = vehicle_id


class NoOpenRecordError(ParkingConsistencyError):
    """A parked vehicle has no IN_PROGRESS parking record"""

    def __init__(self, vehicle_id: str):
        super().__init__(f"No open parking record exists for vehicle {vehicle_id}")
        self.vehicle_id = vehicle_id


class WeightBoundsError(ParkingConsistencyError):
    """An adjustment would push allowed weight outside [0, capacity]"""

    def __init__(self, floor_number: int, attempted_weight, weight_capacity):
        super().__init__(
            f"Allowed weight on floor {floor_number} would become {attempted_weight}, "
            f"outside [0, {weight_capacity}]"
        )
        self.floor_number = floor_number
        self.attempted_weight = attempted_weight
        self.weight_capacity = weight_capacity


# ============================================================================
# CONCURRENCY
# ============================================================================

class AllocationConflictError(ParkingServiceError):
    """A concurrent worker changed a row this operation relied on"""
    pass
