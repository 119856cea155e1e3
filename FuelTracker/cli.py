"""Command line interface.

Run ``python -m FuelTracker --help`` for the list of commands.
"""
import argparse
import datetime
import logging
import pathlib
import sys
from typing import List, Optional

import pandas as pd

from .core import auth
from .core.store import store
from .data import data
from .importer import importer
from .log import log
from .status import status

LOG_LEVELS: List[str] = list(log.LEVELS)


def _get_session() -> auth.Session:
    """Return the current session, signing in interactively when required."""
    try:
        return auth.auth_manager.get_session()
    except auth.AuthExpiredError as ex:
        logging.info(f'{ex}. Starting sign-in...')
        return auth.auth_manager.sign_in()


def _resolve_vehicle_id(session: auth.Session, vehicle_id: Optional[str]) -> str:
    if vehicle_id:
        return vehicle_id
    vehicle = store.get_default_vehicle(session)
    if vehicle is None:
        raise status.VehicleNotSelectedException('Create a vehicle first with "add-vehicle".')
    return vehicle.id


def _parse_date(value: str) -> datetime.datetime:
    try:
        return datetime.datetime.fromisoformat(value)
    except ValueError as ex:
        raise argparse.ArgumentTypeError(f'Invalid date "{value}", expected YYYY-MM-DD') from ex


def cmd_import(args: argparse.Namespace) -> int:
    path = pathlib.Path(args.csv)
    if not path.is_file():
        print(f'File not found: {path}', file=sys.stderr)
        return 1
    text = path.read_text(encoding='utf-8-sig')

    session = _get_session()
    vehicle_id = _resolve_vehicle_id(session, args.vehicle)
    result = importer.import_csv(text, vehicle_id, session, store)
    print(result.summary())
    return 0 if result.succeeded else 1


def cmd_entries(args: argparse.Namespace) -> int:
    session = _get_session()
    entries = store.list_all(session)
    entries = data.filter_entries(
        entries,
        search=args.search,
        start=args.start,
        end=args.end,
        vehicle_id=args.vehicle,
    )
    entries = data.sort_entries(entries, field=args.sort, descending=not args.ascending)
    if not entries:
        print('No entries.')
        return 0

    df = pd.DataFrame([e.to_dict() for e in entries])
    columns = [
        'date_gas_added', 'gas_station', 'gas_station_city', 'fuel_type',
        'gallons', 'price_per_gallon', 'total_cost', 'mileage', 'mpg_before',
    ]
    print(df[columns].to_string(index=False))
    return 0


def cmd_vehicles(args: argparse.Namespace) -> int:
    session = _get_session()
    vehicles = store.list_vehicles(session)
    if not vehicles:
        print('No vehicles. Create one with "add-vehicle".')
        return 0
    for v in vehicles:
        marker = '*' if v.is_default else ' '
        mpg = f', expected {v.expected_mpg:g} mpg' if v.expected_mpg else ''
        print(f'{marker} {v.id}  {v.display_name}{mpg}')
    return 0


def cmd_add_vehicle(args: argparse.Namespace) -> int:
    session = _get_session()
    vehicle = store.create_vehicle(
        session,
        args.name,
        make=args.make,
        model=args.model,
        year=args.year,
        expected_mpg=args.expected_mpg,
        is_default=args.default,
    )
    print(f'Created {vehicle.display_name} ({vehicle.id}){" [default]" if vehicle.is_default else ""}')
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    session = _get_session()
    entries = data.filter_entries(store.list_all(session), vehicle_id=args.vehicle)
    vehicles = store.list_vehicles(session)

    df = data.filter_period(data.entries_to_frame(entries), args.period)
    cost = data.get_cost_metrics(df)
    usage = data.get_usage_metrics(df)
    efficiency = data.get_efficiency_metrics(df, vehicles)

    print(f'Total spending:          ${cost["total_spending"]:.2f}')
    print(f'This month:              ${cost["month_spending"]:.2f}')
    print(f'This year:               ${cost["year_spending"]:.2f}')
    print(f'Average per fill-up:     ${cost["average_per_fill_up"]:.2f}')
    print(f'Average price/gallon:    ${cost["average_price_per_gallon"]:.3f}')
    print(f'Fill-ups:                {usage["fill_ups"]}')
    print(f'Average gallons:         {usage["average_gallons"]:.2f}')
    print(f'Empty tank frequency:    {usage["empty_tank_frequency"]:.1f}%')
    print(f'Average distance:        {usage["average_distance"]:.1f} mi')
    print(f'Average MPG:             {efficiency["average_mpg"]:.1f}')
    score = efficiency['average_efficiency_score']
    if score is not None:
        print(f'Efficiency score:        {score:.1f}%')
    return 0


def cmd_sign_out(args: argparse.Namespace) -> int:
    session = None
    try:
        session = auth.auth_manager.get_session()
    except (auth.AuthExpiredError, status.BaseStatusException) as ex:
        logging.debug(f'No active session to sign out of: {ex}')
    auth.sign_out(session)
    print('Signed out.')
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='FuelTracker',
        description='Track fuel fill-ups in a personal Google spreadsheet.'
    )
    parser.add_argument('--log-level', choices=LOG_LEVELS, default='WARNING',
                        help='Log level (default: WARNING)')
    parser.add_argument('--no-log-file', action='store_true',
                        help=f'Do not write {log.LOG_FILE_NAME} to the application data folder')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('import', help='Import fill-ups from a CSV or tab-delimited file')
    p.add_argument('csv', help='Path to the file')
    p.add_argument('--vehicle', help='Vehicle id (default: the default vehicle)')
    p.set_defaults(func=cmd_import)

    p = sub.add_parser('entries', help='List fill-ups')
    p.add_argument('--search', default='', help='Match station or city')
    p.add_argument('--vehicle', help='Vehicle id')
    p.add_argument('--start', type=_parse_date, help='Earliest date, YYYY-MM-DD')
    p.add_argument('--end', type=_parse_date, help='Latest date, YYYY-MM-DD')
    p.add_argument('--sort', choices=data.SORTABLE_FIELDS, default='date_gas_added')
    p.add_argument('--ascending', action='store_true')
    p.set_defaults(func=cmd_entries)

    p = sub.add_parser('vehicles', help='List vehicles')
    p.set_defaults(func=cmd_vehicles)

    p = sub.add_parser('add-vehicle', help='Create a vehicle')
    p.add_argument('name')
    p.add_argument('--make')
    p.add_argument('--model')
    p.add_argument('--year', type=int)
    p.add_argument('--expected-mpg', type=float)
    p.add_argument('--default', action='store_true', help='Make this the default vehicle')
    p.set_defaults(func=cmd_add_vehicle)

    p = sub.add_parser('summary', help='Show spending, usage and efficiency figures')
    p.add_argument('--vehicle', help='Vehicle id')
    p.add_argument('--period', choices=[str(p) for p in data.Period], default=data.Period.All.value)
    p.set_defaults(func=cmd_summary)

    p = sub.add_parser('sign-out', help='Delete stored credentials')
    p.set_defaults(func=cmd_sign_out)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and run a command.

    Returns:
        int: The process exit code.
    """
    args = build_parser().parse_args(argv)
    log.set_logging_level(args.log_level)
    if not args.no_log_file:
        from .settings import lib
        log.add_file_handler(lib.settings.config_dir)

    try:
        return args.func(args)
    except (status.BaseStatusException, auth.AuthExpiredError) as ex:
        # Status exceptions have already been logged
        print(str(ex), file=sys.stderr)
        return 1
