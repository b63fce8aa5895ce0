#!/usr/bin/env python3
"""
Unit tests for the floor registry
Repository access is mocked so only the registry's own rules are exercised.
"""

import unittest
from decimal import Decimal
from unittest.mock import Mock

from automated_parking.domain.models import Floor, WeightDirection
from automated_parking.domain.exceptions import (
    NoAvailableFloorError, WeightBoundsError, AllocationConflictError
)
from automated_parking.application.floor_registry import FloorRegistry


def make_floor(number, ceiling, allowed=20000, capacity=20000):
    return Floor(number=number, ceiling_height=ceiling, weight_capacity=capacity, allowed_weight=allowed)


class TestFindBestFloor(unittest.TestCase):

    def setUp(self):
        self.floors = Mock()
        self.registry = FloorRegistry(self.floors)

    def test_returns_closest_candidate(self):
        self.floors.find_fitting_and_available.return_value = [make_floor(1, 285), make_floor(3, 170)]
        floor = self.registry.find_best_floor(160, 1500)
        self.assertEqual(floor.number, 3)
        self.floors.find_fitting_and_available.assert_called_once_with(Decimal('160'), Decimal('1500'))

    def test_no_candidates(self):
        self.floors.find_fitting_and_available.return_value = []
        with self.assertRaises(NoAvailableFloorError):
            self.registry.find_best_floor(Decimal('300'), Decimal('1500'))

    def test_uses_given_strategy(self):
        strategy = Mock()
        chosen = make_floor(2, 130)
        strategy.select_floor.return_value = chosen
        self.floors.find_fitting_and_available.return_value = [make_floor(1, 285), chosen]
        registry = FloorRegistry(self.floors, selection_strategy=strategy)
        self.assertIs(registry.find_best_floor(Decimal('100'), Decimal('900')), chosen)


class TestAdjustWeight(unittest.TestCase):

    def setUp(self):
        self.floors = Mock()
        self.floors.compare_and_set_allowed_weight.return_value = True
        self.registry = FloorRegistry(self.floors)

    def test_admit_subtracts_weight(self):
        self.floors.get_by_number.return_value = make_floor(3, 170)
        floor = self.registry.adjust_weight(3, Decimal('1500'), WeightDirection.ADMIT)
        self.assertEqual(floor.allowed_weight, Decimal('18500'))
        self.floors.get_by_number.assert_called_once_with(3, for_update=True)
        self.floors.compare_and_set_allowed_weight.assert_called_once_with(
            3, Decimal('20000'), Decimal('18500')
        )

    def test_release_adds_weight(self):
        self.floors.get_by_number.return_value = make_floor(3, 170, allowed=Decimal('18500'))
        floor = self.registry.adjust_weight(3, Decimal('1500'), WeightDirection.RELEASE)
        self.assertEqual(floor.allowed_weight, Decimal('20000'))

    def test_admit_to_exactly_zero_is_allowed(self):
        self.floors.get_by_number.return_value = make_floor(1, 285, allowed=Decimal('1500'))
        floor = self.registry.adjust_weight(1, Decimal('1500'), WeightDirection.ADMIT)
        self.assertEqual(floor.allowed_weight, Decimal('0'))

    def test_overweight_admission_is_a_bounds_error(self):
        self.floors.get_by_number.return_value = make_floor(1, 285, allowed=Decimal('1000'))
        with self.assertRaises(WeightBoundsError):
            self.registry.adjust_weight(1, Decimal('1500'), WeightDirection.ADMIT)
        self.floors.compare_and_set_allowed_weight.assert_not_called()

    def test_release_above_capacity_is_a_bounds_error(self):
        self.floors.get_by_number.return_value = make_floor(1, 285)
        with self.assertLogs('FloorRegistry', level='CRITICAL'):
            with self.assertRaises(WeightBoundsError):
                self.registry.adjust_weight(1, Decimal('1'), WeightDirection.RELEASE)

    def test_stale_expectation_is_a_conflict(self):
        self.floors.get_by_number.return_value = make_floor(3, 170, allowed=Decimal('18500'))
        with self.assertRaises(AllocationConflictError):
            self.registry.adjust_weight(3, Decimal('1400'), WeightDirection.ADMIT, Decimal('20000'))
        self.floors.compare_and_set_allowed_weight.assert_not_called()

    def test_matching_expectation_is_applied(self):
        self.floors.get_by_number.return_value = make_floor(3, 170, allowed=Decimal('18500'))
        floor = self.registry.adjust_weight(3, Decimal('1400'), WeightDirection.ADMIT, Decimal('18500'))
        self.assertEqual(floor.allowed_weight, Decimal('17100'))

    def test_lost_compare_and_set_is_a_conflict(self):
        self.floors.get_by_number.return_value = make_floor(3, 170)
        self.floors.compare_and_set_allowed_weight.return_value = False
        with self.assertRaises(AllocationConflictError):
            self.registry.adjust_weight(3, Decimal('1500'), WeightDirection.ADMIT)

    def test_unknown_floor(self):
        self.floors.get_by_number.return_value = None
        with self.assertRaises(ValueError):
            self.registry.adjust_weight(9, Decimal('1500'), WeightDirection.ADMIT)


class TestFloorQueries(unittest.TestCase):

    def test_get_and_list(self):
        floors = Mock()
        floors.get_by_number.return_value = make_floor(2, 130)
        floors.list_by_number.return_value = [make_floor(1, 285), make_floor(2, 130)]
        registry = FloorRegistry(floors)
        self.assertEqual(registry.get_floor(2).number, 2)
        self.assertEqual([floor.number for floor in registry.list_floors()], [1, 2])


if __name__ == '__main__':
    unittest.main()
