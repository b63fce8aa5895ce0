# File: src/automated_parking/application/floor_registry.py
"""
Floor Registry

Holds floor capacity/height metadata and the remaining allowed weight of each
floor. Answers best-floor queries and applies weight adjustments while a
vehicle is admitted or released.

The allowed weight of a floor is only changed here, and every change is a
compare-and-swap against the value that was just read, so two workers can
never both spend the same weight budget.
"""

from typing import List, Optional
from decimal import Decimal
import logging

from ..domain.models import Floor, WeightDirection, to_amount
from ..domain.strategies import FloorSelectionStrategy, ClosestCeilingHeightStrategy
from ..domain.exceptions import (
    NoAvailableFloorError, WeightBoundsError, AllocationConflictError
)
from ..infrastructure.repositories import FloorRepository


class FloorRegistry:
    """Floor lookups and weight bookkeeping"""

    def __init__(
        self,
        floors: FloorRepository,
        selection_strategy: Optional[FloorSelectionStrategy] = None
    ):
        self.floors = floors
        self.selection_strategy = selection_strategy or ClosestCeilingHeightStrategy()
        self.logger = logging.getLogger(self.__class__.__name__)

    def find_best_floor(self, vehicle_height: Decimal, vehicle_weight: Decimal) -> Floor:
        """
        Find the best floor for a vehicle

        Eligible floors have a free space, a ceiling at least as high as the
        vehicle and at least the vehicle's weight left in their budget.
        Among those the selection strategy decides (closest ceiling height by
        default, lowest floor number on ties).

        Raises: NoAvailableFloorError when no floor is eligible
        """
        vehicle_height = to_amount(vehicle_height)
        vehicle_weight = to_amount(vehicle_weight)

        candidates = self.floors.find_fitting_and_available(vehicle_height, vehicle_weight)
        floor = self.selection_strategy.select_floor(candidates, vehicle_height, vehicle_weight)
        if floor is None:
            self.logger.info(
                f"No floor fits height {vehicle_height} and weight {vehicle_weight}"
            )
            raise NoAvailableFloorError()
        return floor

    def adjust_weight(
        self,
        floor_number: int,
        vehicle_weight: Decimal,
        direction: WeightDirection,
        expected_allowed_weight: Optional[Decimal] = None
    ) -> Floor:
        """
        Take a vehicle's weight from a floor or give it back

        expected_allowed_weight: the value the caller based its decision on;
        if the floor moved on since then the adjustment is refused.

        Raises:
            WeightBoundsError: the result would leave [0, weight_capacity]
            AllocationConflictError: a concurrent worker changed the floor
        """
        vehicle_weight = to_amount(vehicle_weight)
        floor = self.floors.get_by_number(floor_number, for_update=True)
        if floor is None:
            raise ValueError(f"Floor {floor_number} does not exist")

        if expected_allowed_weight is not None and floor.allowed_weight != to_amount(expected_allowed_weight):
            raise AllocationConflictError(
                f"Allowed weight on floor {floor_number} changed from "
                f"{expected_allowed_weight} to {floor.allowed_weight}"
            )

        new_allowed_weight = direction.apply(floor.allowed_weight, vehicle_weight)
        if not floor.within_bounds(new_allowed_weight):
            self.logger.critical(
                f"Weight bookkeeping broken on floor {floor_number}: "
                f"{direction.value} {vehicle_weight} from {floor.allowed_weight}"
            )
            raise WeightBoundsError(floor_number, new_allowed_weight, floor.weight_capacity)

        if not self.floors.compare_and_set_allowed_weight(
            floor_number, floor.allowed_weight, new_allowed_weight
        ):
            raise AllocationConflictError(
                f"Allowed weight on floor {floor_number} was changed concurrently"
            )

        self.logger.debug(
            f"Floor {floor_number} allowed weight {floor.allowed_weight} -> {new_allowed_weight}"
        )
        floor.allowed_weight = new_allowed_weight
        return floor

    def get_floor(self, floor_number: int) -> Optional[Floor]:
        return self.floors.get_by_number(floor_number)

    def list_floors(self) -> List[Floor]:
        return self.floors.list_by_number()
