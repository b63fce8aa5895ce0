# File: src/automated_parking/application/parking_ledger.py
"""
Parking Ledger

Creates and closes parking records. One record covers one stay of one
vehicle: it is opened IN_PROGRESS at admission and turned OVER exactly once
at departure.

The ledger does not check for an already open record itself; the
orchestrator does that before opening, backed by a unique index on open
records per vehicle.
"""

from typing import Callable, List, Optional
from datetime import datetime
from decimal import Decimal
import logging

from ..domain.models import ParkingRecord, ParkingStatus
from ..domain.exceptions import NoOpenRecordError, AllocationConflictError
from ..infrastructure.repositories import ParkingRecordRepository


class ParkingLedger:
    """Opens and closes parking records"""

    def __init__(
        self,
        records: ParkingRecordRepository,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.records = records
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

    def open(
        self,
        vehicle_id: str,
        vehicle_weight: Decimal,
        vehicle_height: Decimal,
        floor: int,
        allowed_weight_snapshot: Decimal,
        parking_space_id: int
    ) -> ParkingRecord:
        """Create an IN_PROGRESS record stamped with the current time"""
        record = ParkingRecord(
            vehicle_id=vehicle_id,
            vehicle_weight=vehicle_weight,
            vehicle_height=vehicle_height,
            allowed_weight_on_floor_before_parking=allowed_weight_snapshot,
            parking_timestamp=self.clock(),
            floor=floor,
            parking_space_id=parking_space_id,
            status=ParkingStatus.IN_PROGRESS
        )
        record = self.records.add(record)
        self.logger.debug(f"Opened parking record {record.id} for {vehicle_id}")
        return record

    def close(self, vehicle_id: str) -> ParkingRecord:
        """
        Close the vehicle's open record

        Raises:
            NoOpenRecordError: the vehicle has no IN_PROGRESS record
            AllocationConflictError: a concurrent departure closed it first
        """
        record = self.records.find_open_by_vehicle(vehicle_id)
        if record is None:
            raise NoOpenRecordError(vehicle_id)

        emptying_timestamp = self.clock()
        if not self.records.mark_over(record.id, emptying_timestamp):
            raise AllocationConflictError(f"Parking record {record.id} was closed concurrently")

        record.close(emptying_timestamp)
        self.logger.debug(f"Closed parking record {record.id} for {vehicle_id}")
        return record

    def find_open_record(self, vehicle_id: str) -> Optional[ParkingRecord]:
        return self.records.find_open_by_vehicle(vehicle_id)

    def history(self, vehicle_id: str) -> List[ParkingRecord]:
        return self.records.find_by_vehicle(vehicle_id)
