# File: src/automated_parking/application/parking_service.py
"""
Automated Parking Application Service

This module implements the allocation orchestrator, the only entry point
that changes lot state. It coordinates the Floor Registry, Space Allocator,
Parking Ledger and Billing Engine inside one unit of work per operation.

Responsibilities:
1. Validate parking requests in a fixed order
2. Park: best floor -> claim space -> open record -> debit floor weight
3. Pull out: close record -> credit floor weight -> release space -> bill
4. Retry an operation from scratch when a concurrent worker won a race
5. Publish domain events once the transaction has committed

Key Principles:
- One transaction per public operation, all or nothing
- Optimistic concurrency: losers roll back and re-run with fresh state
- Dependency Injection for testability (unit of work factory, clock, strategies)
"""

from typing import Callable, List, Optional, Tuple, TypeVar
from datetime import datetime
import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError

from ..config import ParkingConfig
from ..domain.models import WeightDirection, to_amount
from ..domain.strategies import (
    FloorSelectionStrategy, PricingStrategy,
    ClosestCeilingHeightStrategy, DemandPricingStrategy
)
from ..domain.exceptions import (
    AllocationConflictError, NoSpaceOnFloorError, ParkingConsistencyError,
    CarAlreadyParkedError, CarWeightMissingError, CarHeightMissingError,
    CarIdMissingError, NoParkedVehicleError
)
from ..infrastructure.repositories import UnitOfWork, UnitOfWorkFactory
from ..infrastructure.messaging import EventBus, DomainEvent, EventType, ConsoleNotificationHandler
from .floor_registry import FloorRegistry
from .space_allocator import SpaceAllocator
from .parking_ledger import ParkingLedger
from .billing import BillingEngine
from .dtos import (
    ParkingRequestDTO, ParkingAllocationDTO, BillDTO, ParkingRecordDTO,
    FloorStatusDTO, LotStatusDTO
)

R = TypeVar('R')

# Raised when another worker changed a row this attempt relied on
RETRYABLE_ERRORS = (AllocationConflictError, NoSpaceOnFloorError, IntegrityError, OperationalError)

# Driver messages and SQLSTATE codes of lock timeouts, deadlocks and
# serialization failures; any other OperationalError is permanent
LOCK_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize access",
    "lock wait timeout",
)
LOCK_CONTENTION_CODES = ("40001", "40P01")


def is_lock_contention(error: OperationalError) -> bool:
    """Whether a database error came from waiting on another transaction"""
    orig = error.orig
    if getattr(orig, "pgcode", None) in LOCK_CONTENTION_CODES:
        return True
    message = str(orig if orig is not None else error).lower()
    return any(marker in message for marker in LOCK_CONTENTION_MARKERS)


# ============================================================================
# PARKING SERVICE
# ============================================================================

class ParkingService:
    """
    Main application service for the automated parking lot

    Safe to share between worker threads: every call opens its own unit of
    work and the components are created per transaction.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        event_bus: Optional[EventBus] = None,
        config: Optional[ParkingConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
        selection_strategy: Optional[FloorSelectionStrategy] = None,
        pricing_strategy: Optional[PricingStrategy] = None
    ):
        self.uow_factory = uow_factory
        self.event_bus = event_bus or EventBus()
        self.config = config or ParkingConfig()
        self.clock = clock
        self.selection_strategy = selection_strategy or ClosestCeilingHeightStrategy()
        self.pricing_strategy = pricing_strategy or DemandPricingStrategy()
        self.logger = logging.getLogger(self.__class__.__name__)

        self.logger.info(
            f"ParkingService initialized with {self.selection_strategy} and {self.pricing_strategy.__class__.__name__}"
        )

    # ------------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------------

    def park_vehicle(self, request: ParkingRequestDTO) -> ParkingAllocationDTO:
        """
        Park a vehicle in the most suitable free space

        Use Case: Vehicle Entry
        1. Reject vehicles already in the lot, then missing weight, height, id
        2. Find the best floor
        3. Claim a free space on it
        4. Open a parking record with the floor's allowed weight before parking
        5. Take the vehicle's weight from the floor

        Raises: ParkingRequestError subclasses for rejected requests
        """
        self.logger.info(f"Processing parking request for {request.vehicle_id}")

        allocation = self._run_with_retry("park", lambda: self._park_once(request))

        self.logger.info(
            f"Vehicle {allocation.vehicle_id} parked in space {allocation.parking_space_id} "
            f"on floor {allocation.floor}"
        )
        self.event_bus.publish(DomainEvent(
            event_type=EventType.VEHICLE_PARKED,
            data=allocation.model_dump(mode='json')
        ))
        return allocation

    def pull_out_and_bill(self, vehicle_id: Optional[str]) -> BillDTO:
        """
        Pull a parked vehicle out of the lot and bill the stay

        Use Case: Vehicle Exit
        1. Reject vehicles that hold no space
        2. Close the open parking record
        3. Give the vehicle's weight back to its floor
        4. Release the space
        5. Generate and store the bill

        Raises: NoParkedVehicleError when the vehicle is not in the lot
        """
        self.logger.info(f"Processing pull out request for {vehicle_id}")

        record, bill = self._run_with_retry("pull out", lambda: self._pull_out_once(vehicle_id))

        self.logger.info(f"Vehicle {vehicle_id} left floor {record.floor}, billed {bill.total_amount_to_be_paid}")
        self.event_bus.publish(DomainEvent(
            event_type=EventType.VEHICLE_PULLED_OUT,
            data=record.model_dump(mode='json')
        ))
        self.event_bus.publish(DomainEvent(
            event_type=EventType.BILL_GENERATED,
            data=bill.model_dump(mode='json')
        ))
        return bill

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    def get_lot_status(self) -> LotStatusDTO:
        """Free and occupied spaces and remaining weight per floor"""
        with self.uow_factory() as uow:
            floors = FloorRegistry(uow.floors, self.selection_strategy).list_floors()
            occupancy = uow.parking_spaces.get_occupancy_by_floor()
            parked_vehicles = len(uow.parking_records.find_open())

        floor_statuses = []
        for floor in floors:
            free, occupied = occupancy.get(floor.number, (0, 0))
            floor_statuses.append(FloorStatusDTO(
                number=floor.number,
                ceiling_height=floor.ceiling_height,
                weight_capacity=floor.weight_capacity,
                allowed_weight=floor.allowed_weight,
                free_spaces=free,
                occupied_spaces=occupied
            ))

        return LotStatusDTO(
            floors=floor_statuses,
            total_spaces=sum(s.free_spaces + s.occupied_spaces for s in floor_statuses),
            free_spaces=sum(s.free_spaces for s in floor_statuses),
            parked_vehicles=parked_vehicles,
            timestamp=self.clock()
        )

    def get_bills(self, vehicle_id: str) -> List[BillDTO]:
        with self.uow_factory() as uow:
            bills = self._billing_engine(uow).bills_for(vehicle_id)
        return [BillDTO.from_domain(bill) for bill in bills]

    def get_parking_history(self, vehicle_id: str) -> List[ParkingRecordDTO]:
        with self.uow_factory() as uow:
            records = ParkingLedger(uow.parking_records, self.clock).history(vehicle_id)
        return [ParkingRecordDTO.from_domain(record) for record in records]

    # ------------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------------

    def _park_once(self, request: ParkingRequestDTO) -> ParkingAllocationDTO:
        with self.uow_factory() as uow:
            registry = FloorRegistry(uow.floors, self.selection_strategy)
            allocator = SpaceAllocator(uow.parking_spaces)
            ledger = ParkingLedger(uow.parking_records, self.clock)

            self._validate_parking_request(request, allocator)
            vehicle_id = request.vehicle_id
            weight = to_amount(request.vehicle_weight)
            height = to_amount(request.vehicle_height)

            floor = registry.find_best_floor(height, weight)
            space = allocator.claim_free_space(floor.number, vehicle_id)
            record = ledger.open(
                vehicle_id=vehicle_id,
                vehicle_weight=weight,
                vehicle_height=height,
                floor=floor.number,
                allowed_weight_snapshot=floor.allowed_weight,
                parking_space_id=space.id
            )
            floor = registry.adjust_weight(
                floor.number, weight, WeightDirection.ADMIT,
                expected_allowed_weight=record.allowed_weight_on_floor_before_parking
            )

            return ParkingAllocationDTO.from_domain(
                record, space, floor, strategy_used=self.selection_strategy.get_strategy_name()
            )

    def _pull_out_once(self, vehicle_id: Optional[str]) -> Tuple[ParkingRecordDTO, BillDTO]:
        with self.uow_factory() as uow:
            registry = FloorRegistry(uow.floors, self.selection_strategy)
            allocator = SpaceAllocator(uow.parking_spaces)
            ledger = ParkingLedger(uow.parking_records, self.clock)

            if allocator.find_occupied_by(vehicle_id) is None:
                raise NoParkedVehicleError()

            record = ledger.close(vehicle_id)
            floor = registry.adjust_weight(record.floor, record.vehicle_weight, WeightDirection.RELEASE)
            allocator.release(vehicle_id)
            bill = self._billing_engine(uow).generate_bill(record, floor)

            return ParkingRecordDTO.from_domain(record), BillDTO.from_domain(bill)

    def _validate_parking_request(self, request: ParkingRequestDTO, allocator: SpaceAllocator) -> None:
        if allocator.find_occupied_by(request.vehicle_id) is not None:
            raise CarAlreadyParkedError()
        if request.vehicle_weight is None:
            raise CarWeightMissingError()
        if request.vehicle_height is None:
            raise CarHeightMissingError()
        if request.vehicle_id is None:
            raise CarIdMissingError()

    def _run_with_retry(self, operation_name: str, operation: Callable[[], R]) -> R:
        """
        Run a transactional operation, re-running it after a lost race

        Each attempt is a fresh unit of work, so a retry starts again from
        validation and sees what the winning worker committed.
        """
        max_attempts = self.config.max_allocation_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            try:
                return operation()
            except RETRYABLE_ERRORS as e:
                if isinstance(e, OperationalError) and not is_lock_contention(e):
                    self.logger.error(f"{operation_name} failed on a database error: {e}")
                    raise
                last_error = e
                self.logger.warning(
                    f"{operation_name} attempt {attempt}/{max_attempts} conflicted: "
                    f"{e.__class__.__name__}: {e}"
                )
                if attempt < max_attempts:
                    time.sleep(self.config.retry_delay * (2 ** (attempt - 1)))
            except ParkingConsistencyError as e:
                self.logger.critical(f"{operation_name} broke lot consistency: {e}")
                raise

        self.logger.critical(f"{operation_name} gave up after {max_attempts} attempts: {last_error}")
        raise last_error

    def _billing_engine(self, uow: UnitOfWork) -> BillingEngine:
        return BillingEngine(uow.bills, self.pricing_strategy, self.config.bill_timestamp_format)


# ============================================================================
# SERVICE FACTORY
# ============================================================================

class ParkingServiceFactory:
    """Factory for creating parking services"""

    @staticmethod
    def create_service(
        uow_factory: UnitOfWorkFactory,
        config: Optional[ParkingConfig] = None,
        clock: Callable[[], datetime] = datetime.now
    ) -> ParkingService:
        config = config or ParkingConfig()
        event_bus = EventBus()
        event_bus.subscribe_all(ConsoleNotificationHandler(config.currency_symbol))
        return ParkingService(uow_factory, event_bus=event_bus, config=config, clock=clock)
