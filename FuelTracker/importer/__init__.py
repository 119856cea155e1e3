"""CSV import package.

Modules:

- :mod:`FuelTracker.importer.normalizer` – Header to field key matching.
- :mod:`FuelTracker.importer.parser` – Delimited text to header-keyed rows.
- :mod:`FuelTracker.importer.converter` – Row to :class:`~FuelTracker.data.model.FuelEntry` conversion.
- :mod:`FuelTracker.importer.importer` – The batch import with its one-by-one fallback.
"""
