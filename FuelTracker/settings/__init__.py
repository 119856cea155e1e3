"""Settings package: configuration files, schema validation, and per-user spreadsheet ids.

Modules:

- :mod:`FuelTracker.settings.lib` – :class:`ConfigPaths` and :class:`SettingsAPI`, exposed as ``lib.settings``.
"""
