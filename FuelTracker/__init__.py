"""
FuelTracker: personal fuel-expense tracker backed by a per-user Google spreadsheet.

This package provides:

- :mod:`FuelTracker.importer` – CSV import: header normalization, parsing, row conversion and the batch import.
- :mod:`FuelTracker.core` – Google authentication, Sheets and Drive access, and the remote entry store.
- :mod:`FuelTracker.data` – Fuel entry and vehicle records, and pandas-based analytics (:func:`FuelTracker.data.data.get_cost_metrics`, :func:`FuelTracker.data.data.get_price_trend`).
- :mod:`FuelTracker.settings` – Settings management, including schema validation and per-user spreadsheet ids.
- :mod:`FuelTracker.log` – Logging setup with an in-memory log tank.

Use :func:`FuelTracker.exec_` to run the command line interface.
"""

import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('FuelTracker requires Python 3.11 or higher.')

__version__ = '0.1.0'
__description__ = 'FuelTracker: personal fuel-expense tracker backed by Google Sheets.'

from .log import log

log.setup_logging()


def exec_() -> None:
    """Run the command line interface and exit with its return code."""
    from . import cli
    sys.exit(cli.main())


if __name__ == '__main__':
    exec_()
