# File: src/automated_parking/infrastructure/factories.py
"""
Factory Pattern Implementation for the Automated Parking Lot

This module creates the lot's initial state:
1. Domain Object Factories - floors and parking spaces from a layout
2. Lot Provisioner - seeds a database with floors and their spaces

A new floor starts with its whole weight capacity available. Floors are
fixed once provisioned: provisioning an existing floor number again leaves
it untouched.
"""

from abc import ABC, abstractmethod
from typing import TypeVar, Generic, List, Callable, Iterable, Optional
import logging

from ..config import FloorLayout
from ..domain.models import Floor, ParkingSpace
from .repositories import UnitOfWork

T = TypeVar('T')


# ============================================================================
# FACTORY INTERFACES
# ============================================================================

class Factory(ABC, Generic[T]):
    """Base factory interface"""

    @abstractmethod
    def create(self, **kwargs) -> T:
        """Create an instance of T"""
        pass

    @abstractmethod
    def create_many(self, count: int, **kwargs) -> List[T]:
        """Create multiple instances"""
        pass


# ============================================================================
# DOMAIN OBJECT FACTORIES
# ============================================================================

class FloorFactory(Factory[Floor]):
    """Factory for creating Floor domain objects"""

    def create(self, number: int, ceiling_height, weight_capacity) -> Floor:
        return Floor(
            number=number,
            ceiling_height=ceiling_height,
            weight_capacity=weight_capacity,
            allowed_weight=weight_capacity
        )

    def create_many(self, count: int, start_number: int = 1, **kwargs) -> List[Floor]:
        """Create floors with consecutive numbers and identical dimensions"""
        return [self.create(number=start_number + i, **kwargs) for i in range(count)]

    def create_from_layout(self, layout: FloorLayout) -> Floor:
        return self.create(
            number=layout.number,
            ceiling_height=layout.ceiling_height,
            weight_capacity=layout.weight_capacity
        )


class ParkingSpaceFactory(Factory[ParkingSpace]):
    """Factory for creating free ParkingSpace domain objects"""

    def create(self, floor: int) -> ParkingSpace:
        return ParkingSpace(floor=floor)

    def create_many(self, count: int, floor: int = 0) -> List[ParkingSpace]:
        return [self.create(floor=floor) for _ in range(count)]


# ============================================================================
# LOT PROVISIONER
# ============================================================================

class LotProvisioner:
    """Seeds floors and parking spaces in one transaction"""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        floor_factory: Optional[FloorFactory] = None,
        space_factory: Optional[ParkingSpaceFactory] = None
    ):
        self.uow_factory = uow_factory
        self.floor_factory = floor_factory or FloorFactory()
        self.space_factory = space_factory or ParkingSpaceFactory()
        self.logger = logging.getLogger(self.__class__.__name__)

    def provision(self, layouts: Iterable[FloorLayout]) -> List[Floor]:
        """
        Create the floors of the layout that don't exist yet

        Returns: the floors that were created
        """
        created: List[Floor] = []

        with self.uow_factory() as uow:
            for layout in layouts:
                if uow.floors.get_by_number(layout.number) is not None:
                    self.logger.warning(f"Floor {layout.number} already exists, leaving it unchanged")
                    continue

                floor = uow.floors.add(self.floor_factory.create_from_layout(layout))
                for space in self.space_factory.create_many(layout.spaces, floor=floor.number):
                    uow.parking_spaces.add(space)

                created.append(floor)
                self.logger.info(
                    f"Provisioned floor {floor.number}: ceiling {floor.ceiling_height} cm, "
                    f"capacity {floor.weight_capacity} kg, {layout.spaces} spaces"
                )

        return created

    def is_provisioned(self) -> bool:
        with self.uow_factory() as uow:
            return uow.floors.count() > 0
