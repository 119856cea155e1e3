"""Application-wide Qt signals for FuelTracker.

This module provides:
    - Signals: custom Qt signals for configuration changes, entry and vehicle fetch
      lifecycle, CSV import progress, authentication requests, and error reporting.

Signals are emitted synchronously from the calling thread; connected slots run as
direct calls, so no Qt event loop is needed to consume them.
"""
from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for application config, data, and import events."""
    authenticationRequested = QtCore.Signal()

    configSectionChanged = QtCore.Signal(str)

    entriesAboutToBeFetched = QtCore.Signal()
    entriesFetched = QtCore.Signal(object)
    vehiclesFetched = QtCore.Signal(object)

    importStarted = QtCore.Signal(int)  # Number of parsed rows
    importFinished = QtCore.Signal(object)  # ImportResult

    showLogs = QtCore.Signal()

    error = QtCore.Signal(str)


signals = Signals()
