"""
Google OAuth2 authentication and session management.

Provides the credential manager used to authenticate with Google services, the
:class:`Session` object handed to every store call, and helpers to persist and
discard stored credentials.
"""

import dataclasses
import datetime
import json
import logging
from typing import Dict, Union, Optional

import google.auth.exceptions
import google.auth.transport.requests
import google.oauth2.credentials
import google_auth_oauthlib.flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..status import status

DEFAULT_SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive.file',
    'https://www.googleapis.com/auth/userinfo.email',
    'openid',
]


class AuthExpiredError(Exception):
    """Raised when there is no usable session and interactive sign-in is required."""
    pass


@dataclasses.dataclass
class Session:
    """An authenticated user session.

    Attributes:
        email: The signed-in account's e-mail address.
        credentials: The OAuth2 credentials used for API calls.
        expires_at: Naive UTC expiry of the access token, if known.
    """
    email: str
    credentials: google.oauth2.credentials.Credentials
    expires_at: Optional[datetime.datetime] = None

    @property
    def expired(self) -> bool:
        if not self.credentials or not self.credentials.token:
            return True
        if self.expires_at is None:
            return False
        now = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
        return now >= self.expires_at


def require_session(session: Optional[Session]) -> Session:
    """
    Verify a session is present and usable.

    Args:
        session: The session to verify.

    Returns:
        Session: The same session.

    Raises:
        AuthExpiredError: If the session is missing or expired.
    """
    if session is None:
        raise AuthExpiredError('Not signed in; interactive authentication required')
    if session.expired:
        raise AuthExpiredError(f'Session for {session.email} has expired; sign in again')
    return session


class AuthManager:
    """Manages OAuth2 credentials and the current user session."""

    def __init__(self):
        self._creds: Optional[google.oauth2.credentials.Credentials] = None
        self._session: Optional[Session] = None

    def get_valid_credentials(self) -> google.oauth2.credentials.Credentials:
        """
        Return valid credentials without user interaction.

        Raises:
            AuthExpiredError: if no credentials exist or a full interactive flow is required.
            status.AuthenticationExceptionException: if an auto-refresh fails.
            status.CredsInvalidException: if stored credentials are corrupt.
        """
        from ..settings import lib

        if self._creds is None:
            if not lib.settings.creds_path.exists():
                raise AuthExpiredError(
                    'No saved sign-in; run the Google sign-in first')
            try:
                self._creds = google.oauth2.credentials.Credentials.from_authorized_user_file(
                    str(lib.settings.creds_path))
            except (ValueError, KeyError, json.JSONDecodeError) as ex:
                # Drop the corrupt token file
                lib.settings.creds_path.unlink(missing_ok=True)
                raise status.CredsInvalidException(f'Removed unreadable {lib.settings.creds_path.name}') from ex

        if self._creds.expired or not self._creds.token:
            if self._creds.refresh_token:
                logging.debug('Credentials expired; attempting refresh.')
                try:
                    self._creds.refresh(google.auth.transport.requests.Request())
                    save_creds(self._creds)
                except (google.auth.exceptions.RefreshError, google.auth.exceptions.TransportError) as ex:
                    self._creds = None
                    raise status.AuthenticationExceptionException(
                        'Google refused to refresh the saved sign-in') from ex
            else:
                self._creds = None
                raise AuthExpiredError(
                    'Saved sign-in expired and cannot be refreshed')

        return self._creds

    def get_session(self) -> Session:
        """
        Return the current session, building it from stored credentials if needed.

        Raises:
            AuthExpiredError: if interactive sign-in is required.
            status.ServiceUnavailableException: if the account e-mail cannot be resolved.
        """
        creds = self.get_valid_credentials()
        if (
                self._session is not None
                and self._session.credentials is creds
                and not self._session.expired
        ):
            return self._session

        email = fetch_user_email(creds)
        self._session = Session(email=email, credentials=creds, expires_at=creds.expiry)
        logging.debug(f'Session ready for {email}.')
        return self._session

    def sign_in(self) -> Session:
        """Run the interactive OAuth flow and return a fresh session."""
        creds = authenticate()
        self._creds = creds
        self._session = None
        return self.get_session()

    def clear(self) -> None:
        """Forget cached credentials and session."""
        self._creds = None
        self._session = None


auth_manager = AuthManager()


def fetch_user_email(creds: google.oauth2.credentials.Credentials) -> str:
    """
    Resolve the account e-mail for the given credentials.

    Args:
        creds: Authorized credentials carrying the userinfo.email scope.

    Returns:
        str: The e-mail address.

    Raises:
        status.ServiceUnavailableException: If the userinfo call fails.
        status.AuthenticationExceptionException: If no e-mail was returned.
    """
    try:
        client = build('oauth2', 'v2', credentials=creds, cache_discovery=False)
        info = client.userinfo().get().execute()
    except HttpError as ex:
        raise status.ServiceUnavailableException(
            f'Failed to fetch user info (HTTP {ex.resp.status})') from ex

    email = info.get('email')
    if not email:
        raise status.AuthenticationExceptionException('Account e-mail was not returned by Google.')
    return email


def save_creds(creds: Union[google.oauth2.credentials.Credentials, Dict, str]) -> None:
    """
    Write credentials to the token file so later runs can sign in silently.

    Args:
        creds: Credentials object, authorized-user dict or its JSON text.
    """
    from ..settings import lib

    if isinstance(creds, str):
        data = creds
    elif isinstance(creds, dict):
        data = json.dumps(creds)
    else:
        data = creds.to_json()
    lib.settings.creds_path.write_text(data, encoding='utf-8')
    logging.debug(f'Wrote {lib.settings.creds_path}')


def authenticate() -> google.oauth2.credentials.Credentials:
    """
    Run the installed-app OAuth flow to obtain credentials.

    Returns:
        google.oauth2.credentials.Credentials: The authenticated credentials.

    Raises:
        status.ClientSecretNotFoundException: If the client secret file is not found.
        status.ClientSecretInvalidException: If the client secret is incomplete.
        status.AuthenticationExceptionException: If authentication fails or is cancelled.
        status.CredsInvalidException: If credentials returned are invalid.
    """
    from ..settings import lib
    from ..actions import signals

    if not lib.settings.client_secret_path.exists():
        raise status.ClientSecretNotFoundException
    lib.settings.validate_client_secret()
    client_config = lib.settings.get_section('client_secret')

    signals.authenticationRequested.emit()

    logging.debug('Opening the Google sign-in page.')
    flow = google_auth_oauthlib.flow.InstalledAppFlow.from_client_config(client_config, scopes=DEFAULT_SCOPES)
    try:
        creds = flow.run_local_server(port=0)
    except Exception as ex:
        raise status.AuthenticationExceptionException(f'OAuth flow failed: {ex}') from ex

    if not creds:
        raise status.AuthenticationExceptionException('The Google sign-in returned no credentials.')
    if not creds.valid:
        raise status.CredsInvalidException('The Google sign-in returned unusable credentials.')

    save_creds(creds)
    return creds


def sign_out(session: Optional[Session] = None) -> None:
    """
    Delete stored credentials and forget the cached session.

    Args:
        session: When given, the user's remembered spreadsheet id is forgotten too.
    """
    from ..settings import lib
    from . import service

    if lib.settings.creds_path.exists():
        logging.debug(f'Removing {lib.settings.creds_path}')
        lib.settings.creds_path.unlink()
    else:
        logging.debug('No saved sign-in to remove.')

    if session is not None:
        lib.settings.forget_spreadsheet_id(session.email)

    auth_manager.clear()
    service.clear_service()
