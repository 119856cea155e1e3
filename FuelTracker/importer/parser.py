"""Split delimited text into header-keyed rows.

The first non-blank line holds the headers. The delimiter is a tab when the header
line contains one, otherwise a comma. Quoting is limited to stripping one pair of
wrapping double quotes from each cell; delimiters inside quotes are not supported.
"""
import logging
import re
from typing import Dict, List

from .normalizer import RESERVED_HEADERS
from ..status import status

RawRow = Dict[str, str]

_QUOTE_RE = re.compile(r'^"|"$')


def _clean(cell: str) -> str:
    return _QUOTE_RE.sub('', cell.strip())


def _lines(text: str) -> List[str]:
    lines = [line for line in (text or '').split('\n') if line.strip()]
    if len(lines) < 2:
        raise status.CsvFormatInvalidException(f'Found {len(lines)} non-blank line(s).')
    return lines


def _delimiter(header_line: str) -> str:
    return '\t' if '\t' in header_line else ','


def parse_headers(text: str) -> List[str]:
    """
    Return the cleaned header cells of the text.

    Raises:
        status.CsvFormatInvalidException: If there are fewer than two non-blank lines.
    """
    header_line = _lines(text)[0]
    return [_clean(h) for h in header_line.split(_delimiter(header_line))]


def parse_csv(text: str) -> List[RawRow]:
    """
    Parse delimited text into rows keyed by header.

    Rows with fewer cells than headers are skipped. Extra trailing cells are
    ignored. Reserved and empty headers are left out of every row, and rows
    left with no keys are dropped.

    Args:
        text (str): The file contents.

    Returns:
        list[RawRow]: One dict per accepted data line.

    Raises:
        status.CsvFormatInvalidException: If there are fewer than two non-blank lines.
    """
    lines = _lines(text)
    delimiter = _delimiter(lines[0])
    headers = [_clean(h) for h in lines[0].split(delimiter)]
    logging.debug(f'Parsing CSV with {len(headers)} columns, delimiter={delimiter!r}')

    rows: List[RawRow] = []
    for line_no, line in enumerate(lines[1:], start=2):
        values = [_clean(v) for v in line.strip().split(delimiter)]
        if len(values) < len(headers):
            logging.debug(f'Skipping line {line_no}: {len(values)} values for {len(headers)} headers')
            continue

        row: RawRow = {
            header: values[idx]
            for idx, header in enumerate(headers)
            if header and header not in RESERVED_HEADERS
        }
        if row:
            rows.append(row)

    logging.debug(f'Parsed {len(rows)} row(s) from {len(lines) - 1} data line(s)')
    return rows
