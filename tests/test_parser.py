# tests/test_parser.py
"""
Unit tests for FuelTracker.importer.parser.

Run:
    python -m unittest tests.test_parser
"""
import unittest

from FuelTracker.importer.parser import parse_csv, parse_headers
from FuelTracker.status import status
from tests.base import mute_ui_signals


class ParseCsvTests(unittest.TestCase):

    def test_comma_delimited(self):
        rows = parse_csv('station,city,price,gallons\nShell,Austin,3.50,10\n')
        self.assertEqual(rows, [{'station': 'Shell', 'city': 'Austin', 'price': '3.50', 'gallons': '10'}])

    def test_tab_delimited(self):
        rows = parse_csv('Station\tCity\nShell, Inc\tAustin\n')
        self.assertEqual(rows, [{'Station': 'Shell, Inc', 'City': 'Austin'}])

    def test_blank_lines_and_whitespace_are_ignored(self):
        text = '\n  station , city \n\n Shell , Austin \r\n\n'
        self.assertEqual(parse_csv(text), [{'station': 'Shell', 'city': 'Austin'}])

    def test_wrapping_quotes_are_stripped(self):
        rows = parse_csv('"station","city"\n"Shell","Austin"\n')
        self.assertEqual(rows, [{'station': 'Shell', 'city': 'Austin'}])

    def test_short_rows_are_skipped(self):
        rows = parse_csv('a,b,c\n1,2\n1,2,3\n')
        self.assertEqual(rows, [{'a': '1', 'b': '2', 'c': '3'}])

    def test_extra_values_are_ignored(self):
        rows = parse_csv('a,b\n1,2,3,4\n')
        self.assertEqual(rows, [{'a': '1', 'b': '2'}])

    def test_reserved_columns_are_dropped(self):
        rows = parse_csv('station,_source_file,source_file\nShell,a.csv,b.csv\n')
        self.assertEqual(rows, [{'station': 'Shell'}])

    def test_empty_header_columns_are_dropped(self):
        rows = parse_csv('station,,city\nShell,x,Austin\n')
        self.assertEqual(rows, [{'station': 'Shell', 'city': 'Austin'}])

    def test_rows_without_keys_are_dropped(self):
        self.assertEqual(parse_csv('_source_file\na.csv\n'), [])

    def test_row_keys_match_headers(self):
        rows = parse_csv('a,b,c\n1,2,3\n4,5,6\n')
        for row in rows:
            self.assertEqual(list(row), ['a', 'b', 'c'])

    def test_header_only_raises(self):
        with mute_ui_signals():
            with self.assertRaises(status.CsvFormatInvalidException):
                parse_csv('station,city\n')

    def test_empty_text_raises(self):
        with mute_ui_signals():
            with self.assertRaises(status.CsvFormatInvalidException):
                parse_csv('')
            with self.assertRaises(status.CsvFormatInvalidException):
                parse_csv('\n\n   \n')

    def test_format_error_message(self):
        with mute_ui_signals():
            with self.assertRaises(status.CsvFormatInvalidException) as ctx:
                parse_csv('only one line')
        self.assertIn('CSV must have at least a header row and one data row', str(ctx.exception))


class ParseHeadersTests(unittest.TestCase):

    def test_headers_are_cleaned(self):
        self.assertEqual(parse_headers(' "Station" ,City\nx,y'), ['Station', 'City'])

    def test_headers_survive_dropped_rows(self):
        text = 'station,city,mileage\nShell\n'
        self.assertEqual(parse_csv(text), [])
        self.assertEqual(parse_headers(text), ['station', 'city', 'mileage'])


if __name__ == '__main__':
    unittest.main()
