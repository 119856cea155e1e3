"""Error states of FuelTracker and the exceptions that carry them.

Every :class:`BaseStatusException` is logged and broadcast on ``signals.error`` as
soon as it is created, so callers only need to decide whether to stop or carry on.
Messages are the ones shown to the user; the optional argument adds detail.
"""
import enum
import logging
from typing import Dict


class Status(enum.StrEnum):
    """Failure states the tracker reports to the user."""
    UnknownStatus = enum.auto()

    # settings.json
    SettingsNotFound = enum.auto()
    SettingsInvalid = enum.auto()

    # Google sign-in
    ClientSecretNotFound = enum.auto()
    ClientSecretInvalid = enum.auto()
    CredsInvalid = enum.auto()
    NotAuthenticated = enum.auto()

    # Remote gas log
    SpreadsheetNotFound = enum.auto()
    ServiceUnavailable = enum.auto()

    # CSV import and vehicles
    CsvFormatInvalid = enum.auto()
    VehicleNotSelected = enum.auto()
    VehicleNotFound = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Something went wrong.',

    Status.SettingsNotFound: 'The FuelTracker settings file is missing.',
    Status.SettingsInvalid: 'The FuelTracker settings file is incomplete or has invalid values.',

    Status.ClientSecretNotFound: 'No Google client secret found. Add an OAuth client secret to sign in.',
    Status.ClientSecretInvalid: 'The Google client secret is incomplete. Add a valid OAuth client secret to sign in.',
    Status.CredsInvalid: 'The saved Google sign-in is unreadable. Please sign in again.',
    Status.NotAuthenticated: 'Google rejected the sign-in. Please sign in again.',

    Status.SpreadsheetNotFound: 'Could not find or create your gas log spreadsheet.',
    Status.ServiceUnavailable: 'Could not reach Google Sheets. Check your connection and try again.',

    Status.CsvFormatInvalid: 'CSV must have at least a header row and one data row.',
    Status.VehicleNotSelected: 'Please select a vehicle before importing.',
    Status.VehicleNotFound: 'Vehicle not found.',
}


def get_message(status: Status) -> str:
    """Return the user-facing message of a status."""
    return STATUS_MESSAGE.get(status, STATUS_MESSAGE[Status.UnknownStatus])


class BaseStatusException(Exception):
    """Base of all reported FuelTracker errors.

    Attributes:
        status (Status): The failure state.
        status_message (str): The user-facing message of ``status``.

    Args:
        message (str): Optional detail appended to the status message.
    """
    status = Status.UnknownStatus

    def __init__(self, message: str = None):
        self.status_message = get_message(self.status)
        text = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(text)

        logging.error(text)

        from ..actions import signals
        signals.error.emit(message or self.status_message)


class SettingsNotFoundException(BaseStatusException):
    status = Status.SettingsNotFound


class SettingsInvalidException(BaseStatusException):
    status = Status.SettingsInvalid


class ClientSecretNotFoundException(BaseStatusException):
    status = Status.ClientSecretNotFound


class ClientSecretInvalidException(BaseStatusException):
    """The client secret lacks an ``installed``/``web`` section or required keys."""
    status = Status.ClientSecretInvalid


class CredsInvalidException(BaseStatusException):
    """Stored or freshly issued credentials could not be used."""
    status = Status.CredsInvalid


class AuthenticationExceptionException(BaseStatusException):
    """Google refused the credentials (HTTP 401, failed refresh or a failed OAuth flow)."""
    status = Status.NotAuthenticated


class RemoteStatusException(BaseStatusException):
    """A Google request failed for a reason other than authentication.

    The importer treats this family as the signal to retry entries one at a time.
    """
    status = Status.ServiceUnavailable


class SpreadsheetNotFoundException(RemoteStatusException):
    status = Status.SpreadsheetNotFound


class ServiceUnavailableException(RemoteStatusException):
    """A Sheets, Drive or userinfo request failed or the connection dropped."""
    status = Status.ServiceUnavailable


class CsvFormatInvalidException(BaseStatusException):
    """The CSV text has no header row or no data rows."""
    status = Status.CsvFormatInvalid


class VehicleNotSelectedException(BaseStatusException):
    status = Status.VehicleNotSelected


class VehicleNotFoundException(BaseStatusException):
    """No vehicle row carries the requested id."""
    status = Status.VehicleNotFound
