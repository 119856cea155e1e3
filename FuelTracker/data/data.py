"""Fuel log analytics.

This module turns lists of :class:`~FuelTracker.data.model.FuelEntry` records into
pandas DataFrames and computes the spending, usage and efficiency figures shown to
the user, along with the price and spending trends.
"""
import dataclasses
import datetime
import enum
import logging
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd
from statsmodels.nonparametric.smoothers_lowess import lowess

from .model import FuelEntry, Vehicle

ENTRY_COLUMNS: List[str] = [f.name for f in dataclasses.fields(FuelEntry)]
EFFICIENCY_COLUMNS: List[str] = ['date', 'vehicle_id', 'actual_mpg', 'expected_mpg', 'efficiency_score']
PRICE_TREND_COLUMNS: List[str] = ['date', 'price', 'cost', 'gallons', 'loess']
MONTHLY_SPENDING_COLUMNS: List[str] = ['month', 'total']
STATION_PRICE_COLUMNS: List[str] = ['station', 'average_price', 'count']

SORTABLE_FIELDS: List[str] = ['date_gas_added', 'price_per_gallon', 'total_cost', 'gallons', 'mileage']


class Period(enum.StrEnum):
    OneMonth = '1m'
    ThreeMonths = '3m'
    SixMonths = '6m'
    YearToDate = 'ytd'
    Year = 'year'
    All = 'all'


def calculate_mpg(miles: float, gallons: float) -> float:
    """Miles per gallon. Zero when no fuel was added."""
    if gallons == 0:
        return 0.0
    return miles / gallons


def calculate_cost_per_mile(cost: float, miles: float) -> float:
    if miles == 0:
        return 0.0
    return cost / miles


def calculate_distance_between_fill_ups(current_mileage: float, previous_mileage: float) -> float:
    return current_mileage - previous_mileage


def calculate_efficiency_score(actual_mpg: float, expected_mpg: Optional[float]) -> Optional[float]:
    """Actual MPG as a percentage of the vehicle's expected MPG.

    Returns:
        Optional[float]: None when the vehicle has no expected MPG.
    """
    if not expected_mpg:
        return None
    return actual_mpg / expected_mpg * 100


def get_actual_mpg(entry: FuelEntry, previous_entry: Optional[FuelEntry]) -> Optional[float]:
    """MPG over the distance driven since the previous fill-up."""
    if previous_entry is None:
        return None
    miles = calculate_distance_between_fill_ups(entry.mileage, previous_entry.mileage)
    return calculate_mpg(miles, entry.gallons)


def entries_to_frame(entries: Iterable[FuelEntry]) -> pd.DataFrame:
    """Build a DataFrame of entries sorted by date, oldest first.

    Args:
        entries: The entries to convert.

    Returns:
        pd.DataFrame: One row per entry with the :data:`ENTRY_COLUMNS` columns.
    """
    records = [e.to_dict() for e in entries]
    if not records:
        df = pd.DataFrame(columns=ENTRY_COLUMNS)
        df['date_gas_added'] = pd.to_datetime(df['date_gas_added'])
        return df

    df = pd.DataFrame.from_records(records, columns=ENTRY_COLUMNS)
    df['date_gas_added'] = pd.to_datetime(df['date_gas_added'])
    numeric = ['mpg_before', 'mileage', 'dte_before', 'price_per_gallon', 'gallons', 'total_cost', 'dte_after']
    df[numeric] = df[numeric].astype(float)
    df['added_from_empty'] = df['added_from_empty'].astype(bool)
    return df.sort_values(by='date_gas_added', kind='stable').reset_index(drop=True)


def filter_entries(
        entries: Iterable[FuelEntry],
        search: str = '',
        start: Optional[datetime.datetime] = None,
        end: Optional[datetime.datetime] = None,
        vehicle_id: Optional[str] = None,
) -> List[FuelEntry]:
    """Filter the history list.

    Args:
        search: Case-insensitive text matched against the station and city.
        start: Keep entries on or after this time.
        end: Keep entries on or before this time.
        vehicle_id: Keep entries of this vehicle only.
    """
    needle = (search or '').strip().lower()
    result = []
    for entry in entries:
        if vehicle_id and entry.vehicle_id != vehicle_id:
            continue
        if needle and needle not in entry.gas_station.lower() and needle not in entry.gas_station_city.lower():
            continue
        if start and entry.date_gas_added < start:
            continue
        if end and entry.date_gas_added > end:
            continue
        result.append(entry)
    return result


def sort_entries(entries: Iterable[FuelEntry], field: str = 'date_gas_added', descending: bool = True) -> List[FuelEntry]:
    """Sort the history list by one of :data:`SORTABLE_FIELDS`."""
    if field not in SORTABLE_FIELDS:
        raise ValueError(f'Cannot sort by "{field}", must be one of {SORTABLE_FIELDS}')
    return sorted(entries, key=lambda e: getattr(e, field), reverse=descending)


def period_start(period: str, now: Optional[datetime.datetime] = None) -> Optional[pd.Timestamp]:
    """Return the first moment included in a period, or None for all time."""
    period = Period(period)
    now = pd.Timestamp(now or datetime.datetime.now())

    if period == Period.All:
        return None
    if period == Period.YearToDate:
        return pd.Timestamp(year=now.year, month=1, day=1)

    months = {
        Period.OneMonth: 1,
        Period.ThreeMonths: 3,
        Period.SixMonths: 6,
        Period.Year: 12,
    }[period]
    return now - pd.DateOffset(months=months)


def filter_period(df: pd.DataFrame, period: str, now: Optional[datetime.datetime] = None) -> pd.DataFrame:
    """Keep the rows dated on or after the start of the period.

    Args:
        df: Frame from :func:`entries_to_frame`.
        period: One of ``1m``, ``3m``, ``6m``, ``ytd``, ``year`` or ``all``.
        now: Reference time. Defaults to the current time.

    Raises:
        ValueError: If the period is unknown.
    """
    cutoff = period_start(period, now)
    if cutoff is None or df.empty:
        return df
    return df[df['date_gas_added'] >= cutoff].reset_index(drop=True)


def get_cost_metrics(df: pd.DataFrame, now: Optional[datetime.datetime] = None) -> Dict[str, float]:
    """Spending totals and averages.

    Returns:
        dict: ``total_spending``, ``month_spending``, ``year_spending``,
        ``average_per_fill_up`` and ``average_price_per_gallon``.
    """
    now = now or datetime.datetime.now()
    if df.empty:
        return {
            'total_spending': 0.0,
            'month_spending': 0.0,
            'year_spending': 0.0,
            'average_per_fill_up': 0.0,
            'average_price_per_gallon': 0.0,
        }

    dates = df['date_gas_added']
    this_year = dates.dt.year == now.year
    this_month = this_year & (dates.dt.month == now.month)

    return {
        'total_spending': float(df['total_cost'].sum()),
        'month_spending': float(df.loc[this_month, 'total_cost'].sum()),
        'year_spending': float(df.loc[this_year, 'total_cost'].sum()),
        'average_per_fill_up': float(df['total_cost'].mean()),
        'average_price_per_gallon': float(df['price_per_gallon'].mean()),
    }


def get_usage_metrics(df: pd.DataFrame) -> Dict[str, float]:
    """Fill-up counts and habits.

    Returns:
        dict: ``fill_ups``, ``average_gallons``, ``empty_tank_frequency`` (percent)
        and ``average_distance`` between consecutive fill-ups.
    """
    if df.empty:
        return {
            'fill_ups': 0,
            'average_gallons': 0.0,
            'empty_tank_frequency': 0.0,
            'average_distance': 0.0,
        }

    distances = df.sort_values(by='date_gas_added', kind='stable')['mileage'].diff()
    distances = distances[distances > 0]

    return {
        'fill_ups': int(len(df)),
        'average_gallons': float(df['gallons'].mean()),
        'empty_tank_frequency': float(df['added_from_empty'].mean() * 100),
        'average_distance': float(distances.mean()) if not distances.empty else 0.0,
    }


def get_efficiency_data(df: pd.DataFrame, vehicles: Iterable[Vehicle]) -> pd.DataFrame:
    """Actual MPG between consecutive fill-ups of each vehicle.

    Fill-ups without a previous entry, or with no computable MPG, are left out.

    Args:
        df: Frame from :func:`entries_to_frame`.
        vehicles: Used to look up each vehicle's expected MPG.

    Returns:
        pd.DataFrame: Columns :data:`EFFICIENCY_COLUMNS`, sorted by date.
    """
    if df.empty:
        return pd.DataFrame(columns=EFFICIENCY_COLUMNS)

    expected = {v.id: v.expected_mpg for v in vehicles}

    rows: List[Dict[str, Any]] = []
    for vehicle_id, sub in df.sort_values(by='date_gas_added', kind='stable').groupby('vehicle_id', sort=False):
        miles = sub['mileage'].diff()
        for date, distance, gallons in zip(sub['date_gas_added'], miles, sub['gallons']):
            if pd.isna(distance):
                continue
            actual = calculate_mpg(distance, gallons)
            if not actual:
                continue
            expected_mpg = expected.get(vehicle_id)
            score = calculate_efficiency_score(actual, expected_mpg)
            rows.append({
                'date': date,
                'vehicle_id': vehicle_id,
                'actual_mpg': round(actual, 1),
                'expected_mpg': expected_mpg,
                'efficiency_score': round(score, 1) if score is not None else None,
            })

    if not rows:
        return pd.DataFrame(columns=EFFICIENCY_COLUMNS)
    out = pd.DataFrame(rows, columns=EFFICIENCY_COLUMNS)
    return out.sort_values(by='date', kind='stable').reset_index(drop=True)


def get_efficiency_metrics(df: pd.DataFrame, vehicles: Iterable[Vehicle]) -> Dict[str, Optional[float]]:
    """Average recorded MPG, average actual MPG and average efficiency score.

    The score is None when no vehicle has an expected MPG.
    """
    if df.empty:
        return {'average_mpg': 0.0, 'average_actual_mpg': 0.0, 'average_efficiency_score': None}

    data = get_efficiency_data(df, vehicles)
    scores = data['efficiency_score'].dropna() if not data.empty else pd.Series(dtype=float)

    return {
        'average_mpg': float(df['mpg_before'].mean()),
        'average_actual_mpg': float(data['actual_mpg'].mean()) if not data.empty else 0.0,
        'average_efficiency_score': float(scores.mean()) if not scores.empty else None,
    }


def get_price_trend(df: pd.DataFrame, loess_fraction: float = 0.3) -> pd.DataFrame:
    """Price per gallon over time with a LOWESS smoothed line.

    Args:
        df: Frame from :func:`entries_to_frame`.
        loess_fraction: Fraction of the data used for each local fit (0 < loess_fraction <= 1).

    Returns:
        pd.DataFrame: Columns :data:`PRICE_TREND_COLUMNS`, oldest first.
    """
    if df.empty:
        return pd.DataFrame(columns=PRICE_TREND_COLUMNS)

    sdf = df.sort_values(by='date_gas_added', kind='stable')
    out = pd.DataFrame({
        'date': sdf['date_gas_added'].to_numpy(),
        'price': sdf['price_per_gallon'].round(3).to_numpy(),
        'cost': sdf['total_cost'].round(2).to_numpy(),
        'gallons': sdf['gallons'].round(2).to_numpy(),
    })

    values = out['price'].to_numpy(dtype=float)
    if len(values) < 3:
        out['loess'] = values.copy()
    else:
        x = (out['date'] - out['date'].iloc[0]).dt.total_seconds().to_numpy(dtype=float) / 86400.0
        # Each local fit needs at least three points
        frac = min(1.0, max(loess_fraction, 3 / len(values)))
        out['loess'] = lowess(values, x, frac=frac, return_sorted=False)

    logging.debug(f'Computed price trend over {len(out)} fill-ups.')
    return out[PRICE_TREND_COLUMNS]


def get_monthly_spending(df: pd.DataFrame) -> pd.DataFrame:
    """Total cost per calendar month, oldest first. Months without fill-ups are omitted."""
    if df.empty:
        return pd.DataFrame(columns=MONTHLY_SPENDING_COLUMNS)

    grp = df.groupby(df['date_gas_added'].dt.to_period('M'))['total_cost'].sum().sort_index()
    return pd.DataFrame({
        'month': grp.index.to_timestamp(),
        'total': grp.round(2).to_numpy(),
    })


def get_price_by_station(df: pd.DataFrame, limit: int = 10) -> pd.DataFrame:
    """Average price per gallon by station, most expensive first.

    Stations are keyed as ``<station> - <city>``.
    """
    if df.empty:
        return pd.DataFrame(columns=STATION_PRICE_COLUMNS)

    station = df['gas_station'] + ' - ' + df['gas_station_city']
    grp = df.groupby(station)['price_per_gallon'].agg(['mean', 'count'])
    out = pd.DataFrame({
        'station': grp.index.to_numpy(),
        'average_price': grp['mean'].round(3).to_numpy(),
        'count': grp['count'].to_numpy(),
    })
    out = out.sort_values(by='average_price', ascending=False, kind='stable').reset_index(drop=True)
    return out.head(limit)
