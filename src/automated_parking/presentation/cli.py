# File: src/automated_parking/presentation/cli.py
"""
Command-line interface for the Automated Parking Lot

Every subcommand prints one JSON response on stdout:

    {"success": true, "data": {...}, "error": null}
    {"success": false, "data": null, "error": {"errorCode": ..., "errorMessage": ...}}

Exit codes: 0 on success, 1 when the request was rejected, 2 on an
unexpected failure. Logs go to stderr and the configured log file.
"""

from typing import Any, Dict, List, Optional
import argparse
import json
import sys

from ..config import ParkingConfig, parse_floor_layouts, setup_logging
from ..infrastructure.repositories import RepositoryFactory, UnitOfWorkFactory
from ..infrastructure.factories import LotProvisioner
from ..application.parking_service import ParkingServiceFactory
from ..application.commands import (
    CommandProcessor, ParkVehicleCommand, PullOutAndBillCommand,
    GetLotStatusCommand, GetBillsCommand, GetParkingHistoryCommand
)

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='automated-parking',
        description='Automated parking lot: allocation and billing'
    )
    parser.add_argument('--database-url', help='SQLAlchemy database URL (default: PARKING_DATABASE_URL)')
    parser.add_argument('--log-level', help='Logging level (default: PARKING_LOG_LEVEL)')
    parser.add_argument('--log-dir', help='Directory of the log file, empty to disable (default: PARKING_LOG_DIR)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('init-db', help='Create the database tables')

    provision = subparsers.add_parser('provision', help='Create floors and their parking spaces')
    provision.add_argument(
        '--floors',
        help='Comma separated number:ceiling_height:weight_capacity[:spaces] (default: PARKING_DEFAULT_FLOORS)'
    )

    park = subparsers.add_parser('park', help='Park a vehicle')
    park.add_argument('--vehicle-id', help='Vehicle ID, e.g. the licence plate code')
    park.add_argument('--weight', help='Vehicle weight in kg')
    park.add_argument('--height', help='Vehicle height in cm')

    pull_out = subparsers.add_parser('pull-out', help='Pull a vehicle out of the lot and bill it')
    pull_out.add_argument('vehicle_id', help='Vehicle ID')

    subparsers.add_parser('status', help='Show occupancy and weight budget per floor')

    bills = subparsers.add_parser('bills', help='List the bills of a vehicle')
    bills.add_argument('vehicle_id', help='Vehicle ID')

    history = subparsers.add_parser('history', help='List the parking records of a vehicle')
    history.add_argument('vehicle_id', help='Vehicle ID')

    return parser


def load_config(args: argparse.Namespace) -> ParkingConfig:
    """Environment settings with command-line overrides on top"""
    config = ParkingConfig.from_env()
    overrides = {
        'database_url': args.database_url,
        'log_level': args.log_level,
        'log_dir': args.log_dir,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if not overrides:
        return config
    return ParkingConfig(**{**config.model_dump(), **overrides})


def run_command(args: argparse.Namespace, config: ParkingConfig, uow_factory: UnitOfWorkFactory) -> Dict[str, Any]:
    if args.command == 'init-db':
        return {"success": True, "data": {"databaseUrl": config.database_url}, "error": None}

    if args.command == 'provision':
        layouts = parse_floor_layouts(args.floors) if args.floors else config.default_floors
        floors = LotProvisioner(uow_factory).provision(layouts)
        return {"success": True, "data": [floor.to_dict() for floor in floors], "error": None}

    service = ParkingServiceFactory.create_service(uow_factory, config)
    processor = CommandProcessor(service)

    if args.command == 'park':
        command = ParkVehicleCommand({
            "vehicleId": args.vehicle_id,
            "vehicleWeight": args.weight,
            "vehicleHeight": args.height,
        })
    elif args.command == 'pull-out':
        command = PullOutAndBillCommand(args.vehicle_id)
    elif args.command == 'status':
        command = GetLotStatusCommand()
    elif args.command == 'bills':
        command = GetBillsCommand(args.vehicle_id)
    else:
        command = GetParkingHistoryCommand(args.vehicle_id)

    return processor.execute(command)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command-line interface"""
    args = build_parser().parse_args(argv)
    config = load_config(args)
    logger = setup_logging(config)

    uow_factory = None
    try:
        uow_factory = RepositoryFactory.create_uow_factory(config.database_url, echo=config.sql_echo)
        response = run_command(args, config, uow_factory)
    except Exception as e:
        logger.exception(f"Fatal error in {args.command}: {e}")
        return EXIT_FAILURE
    finally:
        if uow_factory is not None:
            uow_factory.dispose()

    print(json.dumps(response, indent=2, default=str, ensure_ascii=False))
    return EXIT_OK if response["success"] else EXIT_REJECTED


if __name__ == "__main__":
    sys.exit(main())
