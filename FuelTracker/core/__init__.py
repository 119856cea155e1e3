"""Core package: authentication, Google API access and the remote entry store.

Modules:

- :mod:`FuelTracker.core.auth` – OAuth credentials and the :class:`Session` object.
- :mod:`FuelTracker.core.service` – Sheets and Drive clients, spreadsheet lookup and creation.
- :mod:`FuelTracker.core.rows` – Conversion between records and sheet rows.
- :mod:`FuelTracker.core.store` – :class:`EntryStore`, the persistence collaborator.
"""
