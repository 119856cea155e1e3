"""Convert parsed CSV rows into :class:`~FuelTracker.data.model.FuelEntry` records.

Conversion is lenient: unknown fuel grades read as regular, unparsable numbers as
zero and unparsable dates as the current time. Only a missing station or a zero
mileage rejects a row.
"""
import datetime
import logging
import math
import re
from typing import Dict, NamedTuple, Optional

import pandas as pd

from ..data.model import FuelEntry, FuelType

_NUMBER_RE = re.compile(r'[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?')
_DATE_TIME_RE = re.compile(r'(\d{4}-\d{2}-\d{2})\s+(\d{2}):(\d{2})')
_STRIP_CHARS_RE = re.compile(r'[$€£,\s]')

TRUE_VALUES = ('true', 'yes', '1')


class RowValidationError(ValueError):
    """A row that cannot become an entry. The message names the 1-based row."""
    pass


class ConversionResult(NamedTuple):
    entry: Optional[FuelEntry]
    error: Optional[str]


def get_value(row: Dict[str, str], mapping: Dict[str, str], field: str) -> str:
    """Return the raw value for a field, via the first header mapped to it or the field name itself."""
    header = next((h for h, key in mapping.items() if key == field), None)
    if header is not None:
        return row.get(header) or ''
    return row.get(field) or ''


def parse_fuel_type(value: str) -> FuelType:
    """Classify a free-text fuel grade. Defaults to regular."""
    v = (value or '').lower()
    if '87' in v or 'regular' in v:
        return FuelType.Regular87
    if '89' in v or 'mid' in v:
        return FuelType.MidGrade89
    if '91' in v or ('premium' in v and '93' not in v):
        return FuelType.Premium91
    if '93' in v or 'super' in v:
        return FuelType.Premium93
    if 'diesel' in v:
        return FuelType.Diesel
    if 'e85' in v:
        return FuelType.E85
    if 'e15' in v:
        return FuelType.E15
    if 'e10' in v:
        return FuelType.E10
    return FuelType.Regular87


def parse_number(value: str) -> float:
    """
    Parse the leading number of a cell.

    Currency symbols, thousands separators and whitespace are removed first.
    Returns 0.0 when no number can be read.
    """
    cleaned = _STRIP_CHARS_RE.sub('', value or '')
    match = _NUMBER_RE.match(cleaned)
    if not match:
        return 0.0
    number = float(match.group(0))
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _naive(dt: datetime.datetime) -> datetime.datetime:
    if dt.tzinfo is not None:
        return dt.astimezone().replace(tzinfo=None)
    return dt


def parse_date(value: str) -> datetime.datetime:
    """
    Parse a fill-up date.

    Tries ISO 8601, then pandas' format inference, then a ``YYYY-MM-DD HH:MM``
    pattern anywhere in the text. Falls back to the current time.
    """
    value = (value or '').strip()
    if not value:
        return datetime.datetime.now()

    try:
        return _naive(datetime.datetime.fromisoformat(value))
    except ValueError:
        pass

    parsed = pd.to_datetime(value, errors='coerce')
    if not pd.isna(parsed):
        return _naive(parsed.to_pydatetime())

    match = _DATE_TIME_RE.search(value)
    if match:
        date_part, hour, minute = match.groups()
        try:
            return datetime.datetime.fromisoformat(f'{date_part}T{hour}:{minute}:00')
        except ValueError:
            pass

    logging.debug(f'Could not parse date "{value}", using the current time.')
    return datetime.datetime.now()


def parse_near_empty(value: str) -> Optional[bool]:
    """Read the near-empty flag. None when the cell is blank."""
    v = (value or '').strip().lower()
    if not v:
        return None
    return v in TRUE_VALUES or 'empty' in v


def _validate(entry_data: Dict, row_number: int, raw_mileage: str) -> None:
    if not entry_data['gas_station'].strip():
        raise RowValidationError(f'Row {row_number}: Missing gas station')
    if entry_data['mileage'] == 0:
        raise RowValidationError(f'Row {row_number}: Invalid or missing mileage (got: {raw_mileage})')


def convert_row(
        row: Dict[str, str],
        mapping: Dict[str, str],
        index: int,
        vehicle_id: str,
        threshold: Optional[float] = None,
) -> ConversionResult:
    """
    Convert one parsed row into an entry.

    Never raises: failures are returned as the result's error message.

    Args:
        row: Raw values keyed by CSV header.
        mapping: CSV header to field key.
        index: Zero-based row index, reported 1-based in messages.
        vehicle_id: The vehicle the entry belongs to.
        threshold: Near-empty threshold used when the row has no near-empty value.

    Returns:
        ConversionResult: ``(entry, None)`` on success, ``(None, message)`` otherwise.
    """
    row_number = index + 1
    if not vehicle_id:
        return ConversionResult(None, 'Please select a vehicle')

    try:
        raw_mileage = get_value(row, mapping, 'mileage')
        entry_data = {
            'gas_station': get_value(row, mapping, 'gas_station'),
            'gas_station_city': get_value(row, mapping, 'gas_station_city') or 'Unknown',
            'fuel_type': parse_fuel_type(get_value(row, mapping, 'fuel_type')),
            'mpg_before': parse_number(get_value(row, mapping, 'mpg_before')),
            'mileage': parse_number(raw_mileage),
            'dte_before': parse_number(get_value(row, mapping, 'dte_before')),
            'price_per_gallon': parse_number(get_value(row, mapping, 'price_per_gallon')),
            'gallons': parse_number(get_value(row, mapping, 'gallons')),
            'total_cost': parse_number(get_value(row, mapping, 'total_cost')),
            'dte_after': parse_number(get_value(row, mapping, 'dte_after')),
            'date_gas_added': parse_date(get_value(row, mapping, 'date_gas_added')),
            'added_from_empty': parse_near_empty(get_value(row, mapping, 'added_from_empty')),
        }
        _validate(entry_data, row_number, raw_mileage)

        entry = FuelEntry.create(
            vehicle_id=vehicle_id,
            threshold=threshold,
            **entry_data
        )
    except RowValidationError as ex:
        return ConversionResult(None, str(ex))
    except (ValueError, TypeError, KeyError, AttributeError, OverflowError) as ex:
        return ConversionResult(None, f'Row {row_number}: {ex}')

    return ConversionResult(entry, None)
