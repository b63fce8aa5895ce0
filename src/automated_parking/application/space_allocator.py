# File: src/automated_parking/application/space_allocator.py
"""
Space Allocator

Assigns and reclaims individual parking spaces. Occupancy of a space is
changed only here.
"""

from typing import Optional
import logging

from ..domain.models import ParkingSpace
from ..domain.exceptions import NoSpaceOnFloorError, SpaceNotFoundError
from ..infrastructure.repositories import ParkingSpaceRepository


class SpaceAllocator:
    """Claims, releases and looks up parking spaces"""

    def __init__(self, spaces: ParkingSpaceRepository):
        self.spaces = spaces
        self.logger = logging.getLogger(self.__class__.__name__)

    def claim_free_space(self, floor_number: int, vehicle_id: str) -> ParkingSpace:
        """
        Assign the vehicle to the free space with the lowest id on the floor

        Spaces taken by a concurrent worker between the lookup and the claim
        are skipped. If nothing can be claimed the floor registry and the
        allocator disagree about the floor, which NoSpaceOnFloorError reports.
        """
        for space in self.spaces.find_free_on_floor(floor_number):
            if self.spaces.occupy(space.id, vehicle_id):
                space.occupying_vehicle_id = vehicle_id
                self.logger.debug(f"Vehicle {vehicle_id} claimed space {space.id} on floor {floor_number}")
                return space
            self.logger.debug(f"Space {space.id} was taken concurrently, trying the next one")

        raise NoSpaceOnFloorError(floor_number)

    def release(self, vehicle_id: str) -> None:
        """Free the space held by the vehicle"""
        space = self.spaces.find_by_occupying_vehicle(vehicle_id)
        if space is None or not self.spaces.vacate(space.id, vehicle_id):
            raise SpaceNotFoundError(vehicle_id)
        self.logger.debug(f"Space {space.id} on floor {space.floor} released by {vehicle_id}")

    def find_occupied_by(self, vehicle_id: Optional[str]) -> Optional[ParkingSpace]:
        """The space the vehicle occupies, or None if it is not in the lot"""
        if vehicle_id is None:
            return None
        return self.spaces.find_by_occupying_vehicle(vehicle_id)

    def count_free_spaces(self, floor_number: int) -> int:
        free, _ = self.spaces.get_occupancy_by_floor().get(floor_number, (0, 0))
        return free
