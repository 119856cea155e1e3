"""
Logging subsystem for FuelTracker.

Modules:

- :mod:`FuelTracker.log.log` – Root logger setup, an in-memory log tank, and the Qt message bridge.
"""
