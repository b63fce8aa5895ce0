#!/usr/bin/env python3
"""
Unit tests for configuration parsing and logging setup
"""

import logging
import os
import shutil
import tempfile
import unittest
from decimal import Decimal

from pydantic import ValidationError

from automated_parking.config import (
    FloorLayout, ParkingConfig, parse_floor_layouts, setup_logging
)


class TestFloorLayout(unittest.TestCase):

    def test_parse_with_spaces(self):
        layout = FloorLayout.parse("3:170:20000:12")
        self.assertEqual(layout.number, 3)
        self.assertEqual(layout.ceiling_height, Decimal('170'))
        self.assertEqual(layout.weight_capacity, Decimal('20000'))
        self.assertEqual(layout.spaces, 12)

    def test_parse_defaults_to_ten_spaces(self):
        self.assertEqual(FloorLayout.parse(" 1 : 285 : 20000 ").spaces, 10)

    def test_parse_rejects_wrong_shape(self):
        with self.assertRaises(ValueError):
            FloorLayout.parse("1:285")
        with self.assertRaises(ValueError):
            FloorLayout.parse("1:285:20000:10:extra")

    def test_parse_rejects_bad_values(self):
        with self.assertRaises(ValidationError):
            FloorLayout.parse("1:0:20000")
        with self.assertRaises(ValidationError):
            FloorLayout.parse("one:285:20000")

    def test_parse_rejects_zero_capacity(self):
        with self.assertRaises(ValidationError):
            FloorLayout.parse("1:200:0:2")
        with self.assertRaises(ValidationError):
            ParkingConfig(default_floors="1:200:0:2")

    def test_parse_list(self):
        layouts = parse_floor_layouts("1:285:20000:10,2:130:20000:10,")
        self.assertEqual([layout.number for layout in layouts], [1, 2])


class TestParkingConfig(unittest.TestCase):

    def test_defaults(self):
        config = ParkingConfig()
        self.assertEqual(config.max_allocation_attempts, 5)
        self.assertEqual(config.bill_timestamp_format, "%d.%m.%Y %H:%M")
        self.assertEqual(config.log_level, "INFO")
        self.assertEqual([floor.number for floor in config.default_floors], [1, 2, 3])
        self.assertEqual(config.default_floors[1].ceiling_height, Decimal('130'))

    def test_from_env(self):
        config = ParkingConfig.from_env({
            "PARKING_DATABASE_URL": "sqlite://",
            "PARKING_MAX_ALLOCATION_ATTEMPTS": "9",
            "PARKING_LOG_LEVEL": "debug",
            "PARKING_DEFAULT_FLOORS": "0:250:5000:2",
            "UNRELATED": "ignored",
        })
        self.assertEqual(config.database_url, "sqlite://")
        self.assertEqual(config.max_allocation_attempts, 9)
        self.assertEqual(config.log_level, "DEBUG")
        self.assertEqual(len(config.default_floors), 1)
        self.assertEqual(config.default_floors[0].spaces, 2)

    def test_unknown_log_level(self):
        with self.assertRaises(ValidationError):
            ParkingConfig(log_level="LOUD")

    def test_attempts_must_be_positive(self):
        with self.assertRaises(ValidationError):
            ParkingConfig(max_allocation_attempts=0)

    def test_duplicate_floor_numbers(self):
        with self.assertRaises(ValidationError):
            ParkingConfig(default_floors="1:285:20000,1:130:20000")


class TestSetupLogging(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        for handler in logging.getLogger().handlers[:]:
            handler.close()
            logging.getLogger().removeHandler(handler)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_creates_log_file(self):
        log_dir = os.path.join(self.temp_dir, "logs")
        logger = setup_logging(ParkingConfig(log_dir=log_dir, log_level="WARNING"))
        logger.warning("written to file")
        self.assertTrue(os.path.exists(os.path.join(log_dir, "automated_parking.log")))
        self.assertEqual(logging.getLogger().level, logging.WARNING)

    def test_console_only_without_log_dir(self):
        setup_logging(ParkingConfig(log_dir=None))
        handlers = logging.getLogger().handlers
        self.assertEqual(len(handlers), 1)
        self.assertNotIsInstance(handlers[0], logging.FileHandler)


if __name__ == '__main__':
    unittest.main()
