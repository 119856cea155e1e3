"""Map CSV column headers to fuel entry fields.

Headers are matched case-insensitively, first against the field names themselves,
then against :data:`FIELD_ALIASES`. An alias matches when it equals the header,
is contained in it, or contains it. Fields are tried in table order and the first
match wins, so broad aliases can claim headers meant for later fields
(``DTE After`` resolves to ``dte_before`` through the ``dte`` alias).
"""
import logging
from typing import Dict, List, Optional, Tuple, Iterable

#: Columns carrying import bookkeeping rather than entry data.
RESERVED_HEADERS: Tuple[str, ...] = ('_source_file', 'source_file')

FIELD_ALIASES: Dict[str, List[str]] = {
    'gas_station': ['gas station', 'station', 'gas_station', 'gasstation', 'location', 'where'],
    'gas_station_city': ['city', 'gas_station_city', 'station city', 'location city', 'town'],
    'fuel_type': ['fuel type', 'fuel_type', 'fuel', 'gas type', 'octane'],
    'mpg_before': ['mpg before', 'mpg_before', 'mpg', 'miles per gallon', 'fuel economy'],
    'mileage': ['mileage', 'odometer', 'miles', 'total miles', 'odometer reading'],
    'dte_before': ['dte before', 'dte_before', 'dte', 'distance to empty', 'miles to empty'],
    'price_per_gallon': [
        'price per gallon', 'price_per_gallon', 'price', 'cost per gallon', 'ppg', 'price/gallon'
    ],
    'gallons': ['gallons', 'amount', 'quantity', 'fuel amount', 'liters'],
    'total_cost': ['total cost', 'total_cost', 'total', 'cost', 'price paid', 'amount paid'],
    'dte_after': ['dte after', 'dte_after', 'dte after fill', 'distance after'],
    'date_gas_added': ['date', 'date_gas_added', 'date added', 'fill date', 'transaction date', 'timestamp'],
    'added_from_empty': ['added from empty', 'added_from_empty', 'from empty', 'empty tank', 'low fuel'],
}

#: Canonical field keys, in priority order.
FIELD_KEYS: List[str] = list(FIELD_ALIASES)


def normalize_field_name(header: str) -> Optional[str]:
    """
    Resolve a CSV header to a field key.

    Args:
        header (str): The raw column header.

    Returns:
        Optional[str]: The field key, or None when nothing matches.
    """
    normalized = (header or '').strip().lower()
    if not normalized:
        return None

    if normalized in FIELD_ALIASES:
        return normalized

    for key, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            if normalized == alias or alias in normalized or normalized in alias:
                return key
    return None


def build_field_mapping(headers: Iterable[str]) -> Tuple[Dict[str, str], List[str]]:
    """
    Map every header to a field key.

    Reserved bookkeeping columns and empty headers are ignored.

    Args:
        headers: The CSV headers, in column order.

    Returns:
        A ``(mapping, unmapped)`` tuple: header to field key, and the headers
        that matched nothing.
    """
    mapping: Dict[str, str] = {}
    unmapped: List[str] = []

    for header in headers:
        if not header or header in RESERVED_HEADERS or header in mapping or header in unmapped:
            continue
        key = normalize_field_name(header)
        if key:
            mapping[header] = key
        else:
            unmapped.append(header)

    logging.debug(f'Field mapping: {mapping}')
    if unmapped:
        logging.warning(f'Some fields weren\'t automatically mapped: {", ".join(unmapped)}')
    return mapping, unmapped
