"""Google Sheets and Drive API integration.

Provides cached API clients, HTTP error translation, and the per-user spreadsheet
lookup: the remembered id is verified first, then Drive is searched by title, and
finally a new spreadsheet is created with its worksheets and header rows.
"""

import logging
import socket
import ssl
from typing import Any, Dict, List, Optional

import httplib2
from PySide6 import QtCore
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .auth import Session, require_session
from .rows import ENTRY_HEADERS, VEHICLE_HEADERS
from ..status import status

SPREADSHEET_MIME_TYPE: str = 'application/vnd.google-apps.spreadsheet'

# Cached API clients keyed by API name, valid for _cached_credentials only
_cached_services: Dict[str, Any] = {}
_cached_credentials: Any = None


def clear_service() -> None:
    """
    Clears the cached API clients.
    """
    global _cached_credentials

    for name, client in _cached_services.items():
        try:
            client.close()
        except (AttributeError, OSError) as ex:
            logging.debug(f'Failed closing cached {name} client: {ex}')

    _cached_services.clear()
    _cached_credentials = None


def get_service(session: Session, api: str = 'sheets') -> Any:
    """
    Builds (or returns cached) Google API client for the session's credentials.

    Args:
        session: The authenticated session.
        api: One of 'sheets', 'drive' or 'oauth2'.

    Returns:
        The API Resource.

    Raises:
        AuthExpiredError: If the session is missing or expired.
        status.ServiceUnavailableException: If the client cannot be built.
    """
    global _cached_credentials

    require_session(session)
    if _cached_credentials is not session.credentials:
        clear_service()
        _cached_credentials = session.credentials

    if api in _cached_services:
        return _cached_services[api]

    versions = {'sheets': 'v4', 'drive': 'v3', 'oauth2': 'v2'}
    if api not in versions:
        raise ValueError(f'Unknown API "{api}", must be one of {list(versions)}')

    try:
        client: Any = build(api, versions[api], credentials=session.credentials, cache_discovery=False)
    except (HttpError, OSError) as ex:
        raise status.ServiceUnavailableException(f'Failed to build the {api} client: {ex}') from ex

    logging.debug(f'Google {api} client created successfully.')
    _cached_services[api] = client
    return client


def execute(request: Any, context: str) -> Dict[str, Any]:
    """
    Executes an API request and translates transport failures.

    Args:
        request: A googleapiclient HttpRequest.
        context: Short description used in error messages.

    Returns:
        The decoded response, or an empty dict.

    Raises:
        status.AuthenticationExceptionException: On HTTP 401.
        status.ServiceUnavailableException: On any other failed response or a dropped connection.
    """
    try:
        result = request.execute()
    except HttpError as ex:
        stat: Optional[int] = ex.resp.status if ex.resp else None
        if stat == 401:
            raise status.AuthenticationExceptionException(
                f'{context} was rejected (HTTP 401).'
            ) from ex
        raise status.ServiceUnavailableException(
            f'{context} failed (HTTP {stat}): {ex}'
        ) from ex
    except socket.timeout as ex:
        raise status.ServiceUnavailableException(f'Timeout error during {context}: {ex}') from ex
    except ssl.SSLError as ex:
        raise status.ServiceUnavailableException(f'SSL error during {context}: {ex}') from ex
    except (OSError, httplib2.HttpLib2Error) as ex:
        raise status.ServiceUnavailableException(f'Connection error during {context}: {ex}') from ex

    return result or {}


def idx_to_col(idx: int) -> str:
    """Convert zero-based column index to spreadsheet letter(s).

    Args:
        idx: The zero-based column index.

    Returns:
        The spreadsheet column letter(s) (e.g., A, B, AA).
    """
    letters = ''
    while idx >= 0:
        letters = chr((idx % 26) + ord('A')) + letters
        idx = idx // 26 - 1
    return letters


def a1_range(worksheet: str, cells: str) -> str:
    """Return an A1 range with the worksheet name quoted, e.g. ``'Gas Log'!A2:N``."""
    escaped = worksheet.replace("'", "''")
    return f"'{escaped}'!{cells}"


def spreadsheet_title_for(email: str) -> str:
    """Return the per-user spreadsheet title, e.g. ``Gas Log - me@example.com``."""
    from ..settings import lib
    return f'{lib.settings["spreadsheet_title"]} - {email}'


def _spreadsheet_accessible(session: Session, spreadsheet_id: str) -> bool:
    """Check whether a spreadsheet exists and can be opened by the session's account."""
    client = get_service(session, 'sheets')
    try:
        client.spreadsheets().get(
            spreadsheetId=spreadsheet_id,
            fields='spreadsheetId'
        ).execute()
    except HttpError as ex:
        stat: Optional[int] = ex.resp.status if ex.resp else None
        if stat in (403, 404):
            logging.warning(f'Spreadsheet "{spreadsheet_id}" is not accessible (HTTP {stat}).')
            return False
        if stat == 401:
            raise status.AuthenticationExceptionException('Spreadsheet lookup was rejected (HTTP 401).') from ex
        raise status.ServiceUnavailableException(
            f'Error accessing spreadsheet "{spreadsheet_id}": {ex}'
        ) from ex
    return True


def find_spreadsheet(session: Session) -> Optional[str]:
    """
    Search Drive for the user's spreadsheet by its exact title.

    Returns:
        The spreadsheet id, or None if nothing was found.
    """
    title = spreadsheet_title_for(session.email).replace("'", "\\'")
    query = f"name='{title}' and mimeType='{SPREADSHEET_MIME_TYPE}' and trashed=false"

    logging.debug(f'Searching Drive with query: {query}')
    drive = get_service(session, 'drive')
    result = execute(
        drive.files().list(q=query, spaces='drive', fields='files(id,name,createdTime)', pageSize=1),
        'Drive search'
    )
    files: List[Dict[str, Any]] = result.get('files', [])
    if not files:
        return None
    return files[0]['id']


def create_spreadsheet(session: Session) -> str:
    """
    Create the user's spreadsheet with the entries and vehicles worksheets and their headers.

    Returns:
        The new spreadsheet id.

    Raises:
        status.SpreadsheetNotFoundException: If the API did not return an id.
    """
    from ..settings import lib

    entries_ws: str = lib.settings['entries_worksheet']
    vehicles_ws: str = lib.settings['vehicles_worksheet']
    title = spreadsheet_title_for(session.email)

    logging.info(f'Creating spreadsheet "{title}"...')
    client = get_service(session, 'sheets')
    result = execute(
        client.spreadsheets().create(
            body={
                'properties': {'title': title},
                'sheets': [
                    {'properties': {'title': entries_ws}},
                    {'properties': {'title': vehicles_ws}},
                ],
            },
            fields='spreadsheetId'
        ),
        'Spreadsheet creation'
    )
    spreadsheet_id: Optional[str] = result.get('spreadsheetId')
    if not spreadsheet_id:
        raise status.SpreadsheetNotFoundException('No spreadsheet id returned on creation.')

    execute(
        client.spreadsheets().values().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={
                'valueInputOption': 'RAW',
                'data': [
                    {
                        'range': a1_range(entries_ws, f'A1:{idx_to_col(len(ENTRY_HEADERS) - 1)}1'),
                        'values': [ENTRY_HEADERS],
                    },
                    {
                        'range': a1_range(vehicles_ws, f'A1:{idx_to_col(len(VEHICLE_HEADERS) - 1)}1'),
                        'values': [VEHICLE_HEADERS],
                    },
                ],
            }
        ),
        'Header initialization'
    )
    logging.info(f'Created spreadsheet "{spreadsheet_id}".')
    return spreadsheet_id


def ensure_spreadsheet(session: Session) -> str:
    """
    Return the id of the user's spreadsheet, finding or creating it as needed.

    The resolved id is remembered in the settings for the session's user.

    Raises:
        AuthExpiredError: If the session is missing or expired.
        status.ServiceUnavailableException: If an API call fails.
    """
    from ..settings import lib

    require_session(session)

    spreadsheet_id = lib.settings.get_spreadsheet_id(session.email)
    if spreadsheet_id:
        if _spreadsheet_accessible(session, spreadsheet_id):
            logging.debug(f'Using remembered spreadsheet "{spreadsheet_id}".')
            return spreadsheet_id
        lib.settings.forget_spreadsheet_id(session.email)

    spreadsheet_id = find_spreadsheet(session)
    if spreadsheet_id and _spreadsheet_accessible(session, spreadsheet_id):
        logging.debug(f'Found existing spreadsheet "{spreadsheet_id}" in Drive.')
    else:
        spreadsheet_id = create_spreadsheet(session)

    lib.settings.set_spreadsheet_id(session.email, spreadsheet_id)
    return spreadsheet_id


def read_values(session: Session, spreadsheet_id: str, range_: str) -> List[List[str]]:
    """Read a range of cell values. Missing trailing cells are omitted by the API."""
    client = get_service(session, 'sheets')
    logging.debug(f'Reading range "{range_}".')
    result = execute(
        client.spreadsheets().values().get(spreadsheetId=spreadsheet_id, range=range_),
        f'Reading "{range_}"'
    )
    return result.get('values', [])


def append_values(session: Session, spreadsheet_id: str, range_: str, values: List[List[Any]]) -> Dict[str, Any]:
    """Append rows after the last row of the range in a single request."""
    client = get_service(session, 'sheets')
    logging.debug(f'Appending {len(values)} row(s) to "{range_}".')
    return execute(
        client.spreadsheets().values().append(
            spreadsheetId=spreadsheet_id,
            range=range_,
            valueInputOption='RAW',
            insertDataOption='INSERT_ROWS',
            body={'values': values}
        ),
        f'Appending to "{range_}"'
    )


def update_values(session: Session, spreadsheet_id: str, range_: str, values: List[List[Any]]) -> Dict[str, Any]:
    """Overwrite a range with the given rows."""
    client = get_service(session, 'sheets')
    logging.debug(f'Updating range "{range_}".')
    return execute(
        client.spreadsheets().values().update(
            spreadsheetId=spreadsheet_id,
            range=range_,
            valueInputOption='RAW',
            body={'values': values}
        ),
        f'Updating "{range_}"'
    )


def _reset_cached_service(section: str) -> None:
    """Clear cached clients when the client secret changes."""
    if section == 'client_secret':
        logging.debug('Clearing cached API clients due to client_secret change')
        clear_service()


def _connect_signals() -> None:
    from ..actions import signals
    signals.configSectionChanged.connect(_reset_cached_service, QtCore.Qt.DirectConnection)


_connect_signals()
