# File: src/automated_parking/application/commands.py
"""
Command Pattern Implementation for the Automated Parking Lot

This module encapsulates the lot's operations as first-class objects and
maps their outcome to a request/response shape:

    {"success": bool, "data": ..., "error": {"errorCode": ..., "errorMessage": ...}}

Command Types:
1. Parking Commands - park, pull out and bill
2. Query Commands - lot status, bills, parking history

Rejected requests (ParkingRequestError, malformed input) become error
responses. Consistency errors and exhausted retries are not requests the
caller can fix; they propagate.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from datetime import datetime
import logging
import uuid

from pydantic import ValidationError

from ..domain.exceptions import ParkingRequestError, InvalidRequestError
from .dtos import ParkingRequestDTO, PullOutRequestDTO, ParkingErrorResponseDTO
from .parking_service import ParkingService


# ============================================================================
# COMMAND BASE CLASS
# ============================================================================

class Command(ABC):
    """
    Abstract base class for all commands

    A command represents an intent against the parking service.
    Commands are named in the imperative (e.g., ParkVehicleCommand).
    """

    def __init__(self, command_id: Optional[str] = None):
        self.command_id = command_id or str(uuid.uuid4())
        self.executed_at: Optional[datetime] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def execute(self, service: ParkingService) -> Any:
        """
        Execute the command using the provided service

        Returns: JSON-compatible result data
        Raises: ParkingRequestError or pydantic ValidationError on rejection
        """
        pass

    def get_description(self) -> str:
        """Get human-readable command description"""
        return self.__class__.__name__.replace("Command", "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command_id": self.command_id,
            "command_type": self.__class__.__name__,
            "executed_at": self.executed_at.isoformat() if self.executed_at else None
        }


# ============================================================================
# PARKING COMMANDS
# ============================================================================

class ParkVehicleCommand(Command):
    """
    Command: Park a vehicle

    Accepts a ready DTO or the raw request payload, e.g.
    {"vehicleId": "B-AB 123", "vehicleWeight": 1500, "vehicleHeight": 160}
    """

    def __init__(self, request: Union[ParkingRequestDTO, Dict[str, Any]], command_id: Optional[str] = None):
        super().__init__(command_id)
        self.request = request

    def execute(self, service: ParkingService) -> Dict[str, Any]:
        request = self.request
        if not isinstance(request, ParkingRequestDTO):
            request = ParkingRequestDTO.model_validate(request)
        return service.park_vehicle(request).to_dict()

    def get_description(self) -> str:
        vehicle_id = self.request.vehicle_id if isinstance(self.request, ParkingRequestDTO) else None
        return f"ParkVehicle({vehicle_id})" if vehicle_id else "ParkVehicle"


class PullOutAndBillCommand(Command):
    """
    Command: Pull a vehicle out of the lot and bill it

    Accepts the vehicle id or the raw request payload, e.g. {"vehicleId": "B-AB 123"}
    """

    def __init__(self, request: Union[str, PullOutRequestDTO, Dict[str, Any], None], command_id: Optional[str] = None):
        super().__init__(command_id)
        self.request = request

    @property
    def vehicle_id(self) -> Optional[str]:
        if isinstance(self.request, PullOutRequestDTO):
            return self.request.vehicle_id
        if isinstance(self.request, dict):
            return PullOutRequestDTO.model_validate(self.request).vehicle_id
        return self.request

    def execute(self, service: ParkingService) -> Dict[str, Any]:
        return service.pull_out_and_bill(self.vehicle_id).to_dict()

    def get_description(self) -> str:
        if isinstance(self.request, dict):
            return f"PullOutAndBill({self.request.get('vehicleId', self.request.get('vehicle_id'))})"
        return f"PullOutAndBill({self.vehicle_id})"


# ============================================================================
# QUERY COMMANDS
# ============================================================================

class GetLotStatusCommand(Command):
    """Command: Report occupancy and weight budget of every floor"""

    def execute(self, service: ParkingService) -> Dict[str, Any]:
        return service.get_lot_status().to_dict()


class GetBillsCommand(Command):
    """Command: List the bills of a vehicle"""

    def __init__(self, vehicle_id: str, command_id: Optional[str] = None):
        super().__init__(command_id)
        self.vehicle_id = vehicle_id

    def execute(self, service: ParkingService) -> List[Dict[str, Any]]:
        return [bill.to_dict() for bill in service.get_bills(self.vehicle_id)]


class GetParkingHistoryCommand(Command):
    """Command: List the parking records of a vehicle"""

    def __init__(self, vehicle_id: str, command_id: Optional[str] = None):
        super().__init__(command_id)
        self.vehicle_id = vehicle_id

    def execute(self, service: ParkingService) -> List[Dict[str, Any]]:
        return [record.to_dict() for record in service.get_parking_history(self.vehicle_id)]


# ============================================================================
# COMMAND PROCESSOR
# ============================================================================

class CommandProcessor:
    """
    Executes commands and maps their outcome to a response

    Keeps a bounded history of successfully executed commands.
    """

    def __init__(self, service: ParkingService, max_history_size: int = 1000):
        self.service = service
        self.logger = logging.getLogger(self.__class__.__name__)
        self.command_history: List[Command] = []
        self.max_history_size = max_history_size

    def execute(self, command: Command) -> Dict[str, Any]:
        """
        Execute a command

        Returns: {"success": True, "data": ..., "error": None} or
                 {"success": False, "data": None, "error": {errorCode, errorMessage}}
        """
        self.logger.debug(f"Processing command: {command.get_description()}")

        try:
            data = command.execute(self.service)
        except ParkingRequestError as e:
            return self._error_response(command, e)
        except ValidationError as e:
            self.logger.debug(f"Malformed request for {command.get_description()}: {e}")
            return self._error_response(command, InvalidRequestError())

        command.executed_at = datetime.now()
        self._add_to_history(command)
        return {"success": True, "data": data, "error": None}

    def execute_batch(self, commands: List[Command]) -> List[Dict[str, Any]]:
        """Execute commands one after the other, failures do not stop the batch"""
        return [self.execute(command) for command in commands]

    def get_history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        history = self.command_history if limit is None else self.command_history[-limit:]
        return [command.to_dict() for command in history]

    def _error_response(self, command: Command, error: ParkingRequestError) -> Dict[str, Any]:
        response = ParkingErrorResponseDTO(
            error_code=error.error_code.name,
            error_message=error.error_code.explanatory_message
        )
        self.logger.error(
            f"PARKING ERROR! {command.get_description()}: {response.error_code} - {response.error_message}"
        )
        return {"success": False, "data": None, "error": response.to_dict()}

    def _add_to_history(self, command: Command) -> None:
        self.command_history.append(command)
        if len(self.command_history) > self.max_history_size:
            self.command_history.pop(0)
