# File: tests/support.py
"""
Shared helpers for the Automated Parking Lot tests

Provides a controllable clock, an event recorder, lot setup over SQLite and
a base test case with invariant checks over the stored lot state.
"""

import unittest
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from automated_parking.config import ParkingConfig, parse_floor_layouts
from automated_parking.domain.models import Floor, ParkingSpace, ParkingRecord, Bill
from automated_parking.infrastructure.repositories import RepositoryFactory, UnitOfWorkFactory
from automated_parking.infrastructure.factories import LotProvisioner
from automated_parking.infrastructure.messaging import EventBus, EventHandler, DomainEvent
from automated_parking.application.dtos import ParkingRequestDTO, ParkingAllocationDTO
from automated_parking.application.parking_service import ParkingService


# Floors 1, 2 and 3 with ceilings 285, 130 and 170 cm, 20000 kg and 10 spaces each
SCENARIO_FLOORS = "1:285:20000:10,2:130:20000:10,3:170:20000:10"


class FakeClock:
    """Clock that only moves when told to"""

    def __init__(self, start: datetime = datetime(2024, 1, 15, 10, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingHandler(EventHandler):
    """Keeps every event it receives"""

    def __init__(self):
        self.events: List[DomainEvent] = []

    def handle(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> List[DomainEvent]:
        return [event for event in self.events if event.event_type == event_type]


def create_lot(database_url: str = "sqlite://", floors: str = SCENARIO_FLOORS) -> UnitOfWorkFactory:
    """Create the schema and provision the given floors"""
    uow_factory = RepositoryFactory.create_uow_factory(database_url)
    LotProvisioner(uow_factory).provision(parse_floor_layouts(floors))
    return uow_factory


def make_config(**overrides) -> ParkingConfig:
    values = {"log_dir": None, "retry_delay": 0}
    values.update(overrides)
    return ParkingConfig(**values)


class LotState:
    """Everything stored in the lot, read in one unit of work"""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        with uow_factory() as uow:
            self.floors: List[Floor] = uow.floors.list_by_number()
            self.spaces: List[ParkingSpace] = uow.parking_spaces.get_all()
            self.records: List[ParkingRecord] = uow.parking_records.get_all()
            self.bills: List[Bill] = uow.bills.get_all()

    def floor(self, number: int) -> Floor:
        return next(floor for floor in self.floors if floor.number == number)

    @property
    def open_records(self) -> List[ParkingRecord]:
        return [record for record in self.records if record.is_open]

    @property
    def occupied_spaces(self) -> List[ParkingSpace]:
        return [space for space in self.spaces if not space.is_free]


class ParkingTestCase(unittest.TestCase):
    """Base class: a provisioned in-memory lot and a service with a fake clock"""

    floors = SCENARIO_FLOORS
    database_url = "sqlite://"

    def setUp(self):
        self.clock = FakeClock()
        self.uow_factory = create_lot(self.database_url, self.floors)
        self.config = make_config()
        self.recorder = RecordingHandler()
        self.event_bus = EventBus()
        self.event_bus.subscribe_all(self.recorder)
        self.service = ParkingService(
            self.uow_factory, event_bus=self.event_bus, config=self.config, clock=self.clock
        )

    def tearDown(self):
        self.uow_factory.dispose()

    def park(self, vehicle_id: Optional[str], weight, height) -> ParkingAllocationDTO:
        return self.service.park_vehicle(ParkingRequestDTO(
            vehicle_id=vehicle_id,
            vehicle_weight=None if weight is None else Decimal(str(weight)),
            vehicle_height=None if height is None else Decimal(str(height))
        ))

    def lot_state(self) -> LotState:
        return LotState(self.uow_factory)

    def assert_lot_consistent(self) -> None:
        """Weight bounds, weight accounting and space/record correspondence"""
        state = self.lot_state()

        open_weight: Dict[int, Decimal] = {}
        for record in state.open_records:
            open_weight[record.floor] = open_weight.get(record.floor, Decimal('0')) + record.vehicle_weight

        for floor in state.floors:
            self.assertGreaterEqual(floor.allowed_weight, 0, f"floor {floor.number} overweight")
            self.assertLessEqual(floor.allowed_weight, floor.weight_capacity, f"floor {floor.number} over capacity")
            self.assertEqual(
                floor.allowed_weight,
                floor.weight_capacity - open_weight.get(floor.number, Decimal('0')),
                f"floor {floor.number} weight does not match its parked vehicles"
            )

        open_vehicle_ids = [record.vehicle_id for record in state.open_records]
        self.assertEqual(len(open_vehicle_ids), len(set(open_vehicle_ids)), "vehicle with two open records")

        records_by_space = {record.parking_space_id: record for record in state.open_records}
        self.assertEqual(len(records_by_space), len(state.open_records), "space referenced by two open records")
        for space in state.spaces:
            record = records_by_space.get(space.id)
            if space.is_free:
                self.assertIsNone(record, f"free space {space.id} has an open record")
            else:
                self.assertIsNotNone(record, f"occupied space {space.id} has no open record")
                self.assertEqual(record.vehicle_id, space.occupying_vehicle_id)
                self.assertEqual(record.floor, space.floor)
