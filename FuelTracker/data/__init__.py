"""Data package: fuel log record types and the pandas-based analytics built on them.

Modules:

- :mod:`FuelTracker.data.model` – :class:`FuelEntry`, :class:`Vehicle` and :class:`FuelType`.
- :mod:`FuelTracker.data.data` – fuel economy calculations, filters and aggregations.
"""
