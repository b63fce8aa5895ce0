#!/usr/bin/env python3
"""
Concurrent workers racing against one SQLite database file

Each worker thread runs its own unit of work over a shared engine, the way
a pool of request handlers would. Losers of a race must be rolled back and
either retried or rejected, never allowed to overwrite the winner.
"""

import os
import shutil
import tempfile
import threading
import unittest
from decimal import Decimal
from typing import Callable, List

from automated_parking.domain.exceptions import (
    CarAlreadyParkedError, NoAvailableFloorError, NoParkedVehicleError
)
from automated_parking.application.parking_service import ParkingService

from support import ParkingTestCase, make_config


class ConcurrentParkingTestCase(ParkingTestCase):
    """Lot in a temporary database file, shared by worker threads"""

    workers = 8

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.database_url = f"sqlite:///{os.path.join(self.temp_dir, 'lot.db')}"
        super().setUp()
        self.config = make_config(max_allocation_attempts=10, retry_delay=0.01)
        self.service = ParkingService(
            self.uow_factory, event_bus=self.event_bus, config=self.config, clock=self.clock
        )

    def tearDown(self):
        super().tearDown()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def run_concurrently(self, tasks: List[Callable[[], object]]):
        """Start all tasks at once; returns (results, errors) in task order"""
        barrier = threading.Barrier(len(tasks))
        results = [None] * len(tasks)
        errors = [None] * len(tasks)

        def worker(index, task):
            barrier.wait()
            try:
                results[index] = task()
            except Exception as e:
                errors[index] = e

        threads = [threading.Thread(target=worker, args=(i, task)) for i, task in enumerate(tasks)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=120)
            self.assertFalse(thread.is_alive(), "worker did not finish")
        return results, errors


class TestLastSpaceRace(ConcurrentParkingTestCase):
    floors = "1:200:20000:1"

    def test_only_one_vehicle_gets_the_last_space(self):
        tasks = [
            (lambda number=number: self.park(f"CAR-{number}", 1000, 150))
            for number in range(self.workers)
        ]
        results, errors = self.run_concurrently(tasks)

        winners = [result for result in results if result is not None]
        self.assertEqual(len(winners), 1)
        losers = [error for error in errors if error is not None]
        self.assertEqual(len(losers), self.workers - 1)
        for error in losers:
            self.assertIsInstance(error, NoAvailableFloorError)

        state = self.lot_state()
        self.assertEqual(len(state.open_records), 1)
        self.assertEqual(state.floor(1).allowed_weight, Decimal('19000'))
        self.assert_lot_consistent()


class TestSameVehicleRace(ConcurrentParkingTestCase):

    def test_only_one_park_per_vehicle_succeeds(self):
        tasks = [lambda: self.park("B-AB 123", 1500, 160) for _ in range(self.workers)]
        results, errors = self.run_concurrently(tasks)

        self.assertEqual(len([result for result in results if result is not None]), 1)
        for error in errors:
            if error is not None:
                self.assertIsInstance(error, CarAlreadyParkedError)

        state = self.lot_state()
        self.assertEqual(len(state.open_records), 1)
        self.assertEqual(state.floor(3).allowed_weight, Decimal('18500'))
        self.assert_lot_consistent()

    def test_only_one_pull_out_per_vehicle_succeeds(self):
        self.park("B-AB 123", 1500, 160)
        tasks = [lambda: self.service.pull_out_and_bill("B-AB 123") for _ in range(self.workers)]
        results, errors = self.run_concurrently(tasks)

        self.assertEqual(len([result for result in results if result is not None]), 1)
        for error in errors:
            if error is not None:
                self.assertIsInstance(error, NoParkedVehicleError)

        state = self.lot_state()
        self.assertEqual(len(state.bills), 1)
        self.assertEqual(state.floor(3).allowed_weight, Decimal('20000'))
        self.assert_lot_consistent()


class TestWeightBudgetRace(ConcurrentParkingTestCase):
    floors = "1:200:3000:10"

    def test_weight_budget_is_never_overspent(self):
        tasks = [
            (lambda number=number: self.park(f"CAR-{number}", 1000, 150))
            for number in range(self.workers)
        ]
        results, errors = self.run_concurrently(tasks)

        self.assertEqual(len([result for result in results if result is not None]), 3)
        for error in errors:
            if error is not None:
                self.assertIsInstance(error, NoAvailableFloorError)

        self.assertEqual(self.lot_state().floor(1).allowed_weight, Decimal('0'))
        self.assert_lot_consistent()


class TestMixedTraffic(ConcurrentParkingTestCase):

    def test_parks_and_pull_outs_keep_the_lot_consistent(self):
        for number in range(4):
            self.park(f"OLD-{number}", 1200, 160)

        tasks = [(lambda number=number: self.service.pull_out_and_bill(f"OLD-{number}")) for number in range(4)]
        tasks += [(lambda number=number: self.park(f"NEW-{number}", 1300, 160)) for number in range(4)]
        results, errors = self.run_concurrently(tasks)

        self.assertEqual([error for error in errors if error is not None], [])
        state = self.lot_state()
        self.assertEqual({record.vehicle_id for record in state.open_records}, {f"NEW-{n}" for n in range(4)})
        self.assertEqual(len(state.bills), 4)
        self.assert_lot_consistent()


if __name__ == '__main__':
    unittest.main()
