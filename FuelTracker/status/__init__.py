"""Status package: failure states and the exceptions that report them.

- :mod:`FuelTracker.status.status` – :class:`~FuelTracker.status.status.Status`, user-facing messages
  and the :class:`~FuelTracker.status.status.BaseStatusException` hierarchy.
"""
