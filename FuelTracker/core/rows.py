"""Conversion between fuel log records and spreadsheet rows.

Cells are written as strings with ``valueInputOption=RAW``: numbers in their
shortest form, booleans as ``true``/``false`` and dates in ISO 8601. Reading is
lenient: missing cells default and unparsable numbers read as zero.
"""
import datetime
import logging
import math
from typing import Any, List, Optional

from ..data.model import FuelEntry, FuelType, Vehicle

ENTRY_HEADERS: List[str] = [
    'id',
    'vehicle_id',
    'gas_station',
    'gas_station_city',
    'fuel_type',
    'mpg_before',
    'mileage',
    'dte_before',
    'price_per_gallon',
    'gallons',
    'total_cost',
    'dte_after',
    'date_gas_added',
    'added_from_empty',
]

VEHICLE_HEADERS: List[str] = ['id', 'name', 'make', 'model', 'year', 'expected_mpg', 'is_default']


def format_number(value: Any) -> str:
    """Format a number the way it is stored in the sheet (``10``, ``3.5``)."""
    if value is None or value == '':
        return ''
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return str(value)


def format_bool(value: bool) -> str:
    return 'true' if value else 'false'


def _cell(row: List[Any], idx: int) -> str:
    if idx >= len(row) or row[idx] is None:
        return ''
    return str(row[idx]).strip()


def _to_float(value: str, default: Optional[float] = 0.0) -> Optional[float]:
    if not value:
        return default
    try:
        number = float(value)
    except ValueError:
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _to_bool(value: str) -> bool:
    return value.lower() == 'true'


def _to_datetime(value: str) -> datetime.datetime:
    if value:
        try:
            dt = datetime.datetime.fromisoformat(value)
        except ValueError:
            logging.debug(f'Could not parse stored date "{value}", using the current time.')
        else:
            if dt.tzinfo is not None:
                dt = dt.astimezone().replace(tzinfo=None)
            return dt
    return datetime.datetime.now()


def _to_fuel_type(value: str) -> FuelType:
    try:
        return FuelType(value)
    except ValueError:
        return FuelType.Regular87


def entry_to_row(entry: FuelEntry) -> List[str]:
    """Return the sheet row for an entry, in ``ENTRY_HEADERS`` order."""
    return [
        entry.id,
        entry.vehicle_id,
        entry.gas_station,
        entry.gas_station_city,
        str(entry.fuel_type),
        format_number(entry.mpg_before),
        format_number(entry.mileage),
        format_number(entry.dte_before),
        format_number(entry.price_per_gallon),
        format_number(entry.gallons),
        format_number(entry.total_cost),
        format_number(entry.dte_after),
        entry.date_gas_added.isoformat(),
        format_bool(entry.added_from_empty),
    ]


def row_to_entry(row: List[Any], index: int) -> FuelEntry:
    """Build an entry from a sheet row.

    Args:
        row: Cell values in ``ENTRY_HEADERS`` order. May be shorter than the headers.
        index: Zero-based data row index, used for rows without an id.
    """
    return FuelEntry(
        id=_cell(row, 0) or f'entry_{index}',
        vehicle_id=_cell(row, 1),
        gas_station=_cell(row, 2),
        gas_station_city=_cell(row, 3),
        fuel_type=_to_fuel_type(_cell(row, 4)),
        mpg_before=_to_float(_cell(row, 5)),
        mileage=_to_float(_cell(row, 6)),
        dte_before=_to_float(_cell(row, 7)),
        price_per_gallon=_to_float(_cell(row, 8)),
        gallons=_to_float(_cell(row, 9)),
        total_cost=_to_float(_cell(row, 10)),
        dte_after=_to_float(_cell(row, 11)),
        date_gas_added=_to_datetime(_cell(row, 12)),
        added_from_empty=_to_bool(_cell(row, 13)),
    )


def vehicle_to_row(vehicle: Vehicle) -> List[str]:
    """Return the sheet row for a vehicle, in ``VEHICLE_HEADERS`` order."""
    return [
        vehicle.id,
        vehicle.name,
        vehicle.make or '',
        vehicle.model or '',
        str(vehicle.year) if vehicle.year else '',
        format_number(vehicle.expected_mpg),
        format_bool(vehicle.is_default),
    ]


def row_to_vehicle(row: List[Any]) -> Vehicle:
    year = _to_float(_cell(row, 4), default=None)
    return Vehicle(
        id=_cell(row, 0),
        name=_cell(row, 1) or 'Unknown Vehicle',
        make=_cell(row, 2) or None,
        model=_cell(row, 3) or None,
        year=int(year) if year is not None else None,
        expected_mpg=_to_float(_cell(row, 5), default=None),
        is_default=_to_bool(_cell(row, 6)),
    )
