# tests/test_data.py
"""
Unit tests for FuelTracker.data.data (frames, filters and analytics).

Run:
    python -m unittest tests.test_data
"""
import datetime
import unittest

import pandas as pd

from FuelTracker.data import data
from FuelTracker.data.model import Vehicle
from tests.base import make_entry

NOW = datetime.datetime(2025, 2, 20, 12, 0)


def sample_entries():
    return [
        make_entry(date_gas_added=datetime.datetime(2025, 2, 10, 8, 0), mileage=1620, gallons=8,
                   price_per_gallon=4.0, total_cost=32, mpg_before=28, gas_station='Shell',
                   gas_station_city='Austin'),
        make_entry(date_gas_added=datetime.datetime(2025, 1, 1, 8, 0), mileage=1000, gallons=10,
                   price_per_gallon=3.0, total_cost=30, mpg_before=30, gas_station='Shell',
                   gas_station_city='Austin', added_from_empty=True),
        make_entry(date_gas_added=datetime.datetime(2025, 1, 15, 8, 0), mileage=1300, gallons=10,
                   price_per_gallon=3.6, total_cost=36, mpg_before=32, gas_station='Exxon',
                   gas_station_city='Dallas'),
    ]


VEHICLES = [Vehicle(id='vehicle_1', name='Civic', expected_mpg=30.0)]


class CalculationTests(unittest.TestCase):

    def test_mpg(self):
        self.assertEqual(data.calculate_mpg(300, 10), 30.0)
        self.assertEqual(data.calculate_mpg(300, 0), 0.0)

    def test_cost_per_mile(self):
        self.assertEqual(data.calculate_cost_per_mile(30, 300), 0.1)
        self.assertEqual(data.calculate_cost_per_mile(30, 0), 0.0)

    def test_distance(self):
        self.assertEqual(data.calculate_distance_between_fill_ups(1300, 1000), 300)

    def test_efficiency_score(self):
        self.assertAlmostEqual(data.calculate_efficiency_score(33, 30), 110.0)
        self.assertIsNone(data.calculate_efficiency_score(33, None))
        self.assertIsNone(data.calculate_efficiency_score(33, 0))

    def test_actual_mpg(self):
        first, second = make_entry(mileage=1000), make_entry(mileage=1300, gallons=10)
        self.assertIsNone(data.get_actual_mpg(first, None))
        self.assertEqual(data.get_actual_mpg(second, first), 30.0)


class FrameTests(unittest.TestCase):

    def test_sorted_by_date(self):
        df = data.entries_to_frame(sample_entries())
        self.assertEqual(list(df.columns), data.ENTRY_COLUMNS)
        self.assertTrue(df['date_gas_added'].is_monotonic_increasing)
        self.assertEqual(df['mileage'].tolist(), [1000.0, 1300.0, 1620.0])
        self.assertEqual(df['fuel_type'].iloc[0], 'regular-87')

    def test_empty(self):
        df = data.entries_to_frame([])
        self.assertTrue(df.empty)
        self.assertEqual(list(df.columns), data.ENTRY_COLUMNS)


class FilterTests(unittest.TestCase):

    def setUp(self) -> None:
        self.entries = sample_entries()

    def test_search_matches_station_and_city(self):
        self.assertEqual([e.gas_station for e in data.filter_entries(self.entries, search='dallas')], ['Exxon'])
        self.assertEqual(len(data.filter_entries(self.entries, search='SHELL')), 2)
        self.assertEqual(len(data.filter_entries(self.entries, search='')), 3)

    def test_date_range(self):
        result = data.filter_entries(
            self.entries,
            start=datetime.datetime(2025, 1, 10),
            end=datetime.datetime(2025, 1, 31),
        )
        self.assertEqual([e.mileage for e in result], [1300])

    def test_vehicle(self):
        other = make_entry(vehicle_id='vehicle_2')
        result = data.filter_entries(self.entries + [other], vehicle_id='vehicle_2')
        self.assertEqual(result, [other])

    def test_sort(self):
        result = data.sort_entries(self.entries, field='total_cost')
        self.assertEqual([e.total_cost for e in result], [36, 32, 30])
        result = data.sort_entries(self.entries, descending=False)
        self.assertEqual([e.mileage for e in result], [1000, 1300, 1620])
        with self.assertRaises(ValueError):
            data.sort_entries(self.entries, field='vehicle_id')

    def test_periods(self):
        df = data.entries_to_frame(self.entries)
        self.assertEqual(len(data.filter_period(df, '1m', now=NOW)), 1)
        self.assertEqual(len(data.filter_period(df, 'ytd', now=NOW)), 3)
        self.assertEqual(len(data.filter_period(df, data.Period.All, now=NOW)), 3)
        self.assertEqual(data.period_start('3m', now=NOW), pd.Timestamp(2024, 11, 20, 12, 0))
        self.assertIsNone(data.period_start('all', now=NOW))
        with self.assertRaises(ValueError):
            data.filter_period(df, '2w', now=NOW)


class MetricsTests(unittest.TestCase):

    def setUp(self) -> None:
        self.df = data.entries_to_frame(sample_entries())

    def test_cost_metrics(self):
        metrics = data.get_cost_metrics(self.df, now=NOW)
        self.assertAlmostEqual(metrics['total_spending'], 98.0)
        self.assertAlmostEqual(metrics['month_spending'], 32.0)
        self.assertAlmostEqual(metrics['year_spending'], 98.0)
        self.assertAlmostEqual(metrics['average_per_fill_up'], 98.0 / 3)
        self.assertAlmostEqual(metrics['average_price_per_gallon'], 10.6 / 3)

    def test_usage_metrics(self):
        metrics = data.get_usage_metrics(self.df)
        self.assertEqual(metrics['fill_ups'], 3)
        self.assertAlmostEqual(metrics['average_gallons'], 28 / 3)
        self.assertAlmostEqual(metrics['empty_tank_frequency'], 100 / 3)
        self.assertAlmostEqual(metrics['average_distance'], 310.0)

    def test_efficiency(self):
        eff = data.get_efficiency_data(self.df, VEHICLES)
        self.assertEqual(list(eff.columns), data.EFFICIENCY_COLUMNS)
        self.assertEqual(eff['actual_mpg'].tolist(), [30.0, 40.0])
        self.assertEqual(eff['efficiency_score'].tolist(), [100.0, 133.3])

        metrics = data.get_efficiency_metrics(self.df, VEHICLES)
        self.assertAlmostEqual(metrics['average_mpg'], 30.0)
        self.assertAlmostEqual(metrics['average_actual_mpg'], 35.0)
        self.assertAlmostEqual(metrics['average_efficiency_score'], 116.65)

    def test_efficiency_without_expected_mpg(self):
        metrics = data.get_efficiency_metrics(self.df, [Vehicle(id='vehicle_1', name='Civic')])
        self.assertIsNone(metrics['average_efficiency_score'])

    def test_efficiency_is_per_vehicle(self):
        entries = sample_entries() + [
            make_entry(vehicle_id='vehicle_2', mileage=50_000, gallons=12,
                       date_gas_added=datetime.datetime(2025, 1, 10)),
        ]
        eff = data.get_efficiency_data(data.entries_to_frame(entries), VEHICLES)
        self.assertEqual(eff['vehicle_id'].tolist(), ['vehicle_1', 'vehicle_1'])

    def test_empty_metrics(self):
        df = data.entries_to_frame([])
        self.assertEqual(data.get_cost_metrics(df)['total_spending'], 0.0)
        self.assertEqual(data.get_usage_metrics(df)['fill_ups'], 0)
        self.assertIsNone(data.get_efficiency_metrics(df, VEHICLES)['average_efficiency_score'])
        self.assertTrue(data.get_price_trend(df).empty)
        self.assertTrue(data.get_monthly_spending(df).empty)
        self.assertTrue(data.get_price_by_station(df).empty)


class TrendTests(unittest.TestCase):

    def test_monthly_spending(self):
        monthly = data.get_monthly_spending(data.entries_to_frame(sample_entries()))
        self.assertEqual(monthly['month'].tolist(), [pd.Timestamp(2025, 1, 1), pd.Timestamp(2025, 2, 1)])
        self.assertEqual(monthly['total'].tolist(), [66.0, 32.0])

    def test_price_by_station(self):
        stations = data.get_price_by_station(data.entries_to_frame(sample_entries()))
        self.assertEqual(stations['station'].tolist(), ['Exxon - Dallas', 'Shell - Austin'])
        self.assertEqual(stations['average_price'].tolist(), [3.6, 3.5])
        self.assertEqual(stations['count'].tolist(), [1, 2])

    def test_price_trend_short_series(self):
        trend = data.get_price_trend(data.entries_to_frame(sample_entries()[:2]))
        self.assertEqual(list(trend.columns), data.PRICE_TREND_COLUMNS)
        self.assertEqual(trend['loess'].tolist(), trend['price'].tolist())

    def test_price_trend_smoothing(self):
        start = datetime.datetime(2025, 1, 1)
        entries = [
            make_entry(date_gas_added=start + datetime.timedelta(days=7 * i),
                       price_per_gallon=3.0 + 0.05 * i + (0.02 if i % 2 else -0.02))
            for i in range(12)
        ]
        trend = data.get_price_trend(data.entries_to_frame(entries), loess_fraction=0.5)
        self.assertEqual(len(trend), 12)
        self.assertTrue(trend['date'].is_monotonic_increasing)
        self.assertTrue(trend['loess'].notna().all())
        # The alternating noise is smoothed towards the underlying line
        for i, smoothed in enumerate(trend['loess']):
            self.assertLess(abs(smoothed - (3.0 + 0.05 * i)), 0.04)
