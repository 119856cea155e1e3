"""Tests for FuelTracker.core.service.

The Google API clients are replaced with mocks:

* ServiceHelpersTest      – column letters, ranges and titles
* ExecuteTest             – HTTP and connection error translation
* GetServiceTest          – client caching per credentials
* EnsureSpreadsheetTest   – remembered id, Drive search and creation order
"""
import socket
from unittest.mock import MagicMock, patch

import httplib2
from googleapiclient.errors import HttpError

from FuelTracker.core import auth
from FuelTracker.core import service as svc
from FuelTracker.core.rows import ENTRY_HEADERS, VEHICLE_HEADERS
from FuelTracker.settings import lib
from FuelTracker.status import status
from tests.base import BaseTestCase, make_session, mute_ui_signals


def http_error(code: int) -> HttpError:
    return HttpError(resp=MagicMock(status=code), content=b'')


def failing_request(ex: Exception) -> MagicMock:
    request = MagicMock()
    request.execute.side_effect = ex
    return request


class ServiceHelpersTest(BaseTestCase):

    def test_idx_to_col(self):
        self.assertEqual(svc.idx_to_col(0), 'A')
        self.assertEqual(svc.idx_to_col(13), 'N')
        self.assertEqual(svc.idx_to_col(25), 'Z')
        self.assertEqual(svc.idx_to_col(26), 'AA')
        self.assertEqual(svc.idx_to_col(27), 'AB')
        self.assertEqual(svc.idx_to_col(701), 'ZZ')
        self.assertEqual(svc.idx_to_col(702), 'AAA')

    def test_a1_range_quotes_worksheet(self):
        self.assertEqual(svc.a1_range('Gas Log', 'A2:N'), "'Gas Log'!A2:N")
        self.assertEqual(svc.a1_range("Bob's", 'A1'), "'Bob''s'!A1")

    def test_spreadsheet_title_follows_preference(self):
        self.assertEqual(svc.spreadsheet_title_for('me@example.com'), 'Gas Log - me@example.com')
        lib.settings['spreadsheet_title'] = 'Fuel'
        self.assertEqual(svc.spreadsheet_title_for('me@example.com'), 'Fuel - me@example.com')


class ExecuteTest(BaseTestCase):

    def test_returns_result(self):
        request = MagicMock()
        request.execute.return_value = {'values': [['a']]}
        self.assertEqual(svc.execute(request, 'Reading'), {'values': [['a']]})

    def test_none_result_is_empty_dict(self):
        request = MagicMock()
        request.execute.return_value = None
        self.assertEqual(svc.execute(request, 'Appending'), {})

    def test_unauthorized_maps_to_authentication_error(self):
        with mute_ui_signals():
            with self.assertRaises(status.AuthenticationExceptionException):
                svc.execute(failing_request(http_error(401)), 'Reading')

    def test_other_http_errors_map_to_service_unavailable(self):
        for code in (400, 403, 429, 500, 503):
            with self.subTest(code=code):
                with mute_ui_signals():
                    with self.assertRaises(status.ServiceUnavailableException):
                        svc.execute(failing_request(http_error(code)), 'Reading')

    def test_timeout_maps_to_service_unavailable(self):
        with mute_ui_signals():
            with self.assertRaises(status.ServiceUnavailableException):
                svc.execute(failing_request(socket.timeout('timed out')), 'Reading')

    def test_dropped_connection_maps_to_service_unavailable(self):
        errors = (
            ConnectionResetError('connection reset by peer'),
            OSError('network is unreachable'),
            httplib2.ServerNotFoundError('Unable to find the server at sheets.googleapis.com'),
            httplib2.HttpLib2Error('transport failed'),
        )
        for ex in errors:
            with self.subTest(error=type(ex).__name__):
                with mute_ui_signals():
                    with self.assertRaises(status.ServiceUnavailableException) as ctx:
                        svc.execute(failing_request(ex), 'Appending')
                self.assertIs(ctx.exception.__cause__, ex)
                self.assertIsInstance(ctx.exception, status.RemoteStatusException)


class GetServiceTest(BaseTestCase):

    def test_requires_session(self):
        with self.assertRaises(auth.AuthExpiredError):
            svc.get_service(None)
        with self.assertRaises(auth.AuthExpiredError):
            svc.get_service(make_session(expired=True))

    def test_unknown_api(self):
        with self.assertRaises(ValueError):
            svc.get_service(make_session(), 'calendar')

    @patch('FuelTracker.core.service.build')
    def test_clients_are_cached_per_credentials(self, mock_build):
        mock_build.side_effect = lambda *args, **kwargs: MagicMock()
        session = make_session()

        sheets = svc.get_service(session, 'sheets')
        self.assertIs(svc.get_service(session, 'sheets'), sheets)
        self.assertEqual(mock_build.call_count, 1)
        self.assertEqual(mock_build.call_args.args, ('sheets', 'v4'))

        svc.get_service(session, 'drive')
        self.assertEqual(mock_build.call_args.args, ('drive', 'v3'))

        other = make_session('other@example.com')
        self.assertIsNot(svc.get_service(other, 'sheets'), sheets)
        self.assertEqual(mock_build.call_count, 3)

    @patch('FuelTracker.core.service.build')
    def test_client_secret_change_clears_cache(self, mock_build):
        mock_build.side_effect = lambda *args, **kwargs: MagicMock()
        session = make_session()
        svc.get_service(session, 'sheets')

        lib.settings.set_section('client_secret', lib.settings.get_section('client_secret'))

        svc.get_service(session, 'sheets')
        self.assertEqual(mock_build.call_count, 2)


class EnsureSpreadsheetTest(BaseTestCase):

    def setUp(self) -> None:
        super().setUp()
        self.session = make_session('me@example.com')

    def test_remembered_id_is_used(self):
        lib.settings.set_spreadsheet_id('me@example.com', 'remembered')
        with patch.object(svc, '_spreadsheet_accessible', return_value=True), \
                patch.object(svc, 'find_spreadsheet') as find, \
                patch.object(svc, 'create_spreadsheet') as create:
            self.assertEqual(svc.ensure_spreadsheet(self.session), 'remembered')
        find.assert_not_called()
        create.assert_not_called()

    def test_inaccessible_id_falls_back_to_drive_search(self):
        lib.settings.set_spreadsheet_id('me@example.com', 'stale')
        accessible = {'stale': False, 'found': True}
        with patch.object(svc, '_spreadsheet_accessible', side_effect=lambda s, i: accessible[i]), \
                patch.object(svc, 'find_spreadsheet', return_value='found'), \
                patch.object(svc, 'create_spreadsheet') as create:
            self.assertEqual(svc.ensure_spreadsheet(self.session), 'found')
        create.assert_not_called()
        self.assertEqual(lib.settings.get_spreadsheet_id('me@example.com'), 'found')

    def test_creates_when_nothing_found(self):
        with patch.object(svc, 'find_spreadsheet', return_value=None), \
                patch.object(svc, 'create_spreadsheet', return_value='created') as create:
            self.assertEqual(svc.ensure_spreadsheet(self.session), 'created')
        create.assert_called_once_with(self.session)
        self.assertEqual(lib.settings.get_spreadsheet_id('me@example.com'), 'created')

    def test_ids_are_per_user(self):
        lib.settings.set_spreadsheet_id('other@example.com', 'theirs')
        with patch.object(svc, 'find_spreadsheet', return_value=None), \
                patch.object(svc, 'create_spreadsheet', return_value='mine'):
            svc.ensure_spreadsheet(self.session)
        self.assertEqual(lib.settings.get_spreadsheet_id('other@example.com'), 'theirs')
        self.assertEqual(lib.settings.get_spreadsheet_id('me@example.com'), 'mine')

    def test_requires_session(self):
        with patch.object(svc, 'find_spreadsheet') as find:
            with self.assertRaises(auth.AuthExpiredError):
                svc.ensure_spreadsheet(None)
        find.assert_not_called()


class SpreadsheetCallsTest(BaseTestCase):

    def setUp(self) -> None:
        super().setUp()
        self.session = make_session('me@example.com')
        self.client = MagicMock()
        patcher = patch.object(svc, 'get_service', return_value=self.client)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_find_spreadsheet_query(self):
        self.client.files().list().execute.return_value = {'files': [{'id': 'abc'}]}
        self.assertEqual(svc.find_spreadsheet(self.session), 'abc')
        query = self.client.files().list.call_args.kwargs['q']
        self.assertIn("name='Gas Log - me@example.com'", query)
        self.assertIn(svc.SPREADSHEET_MIME_TYPE, query)
        self.assertIn('trashed=false', query)

    def test_find_spreadsheet_nothing(self):
        self.client.files().list().execute.return_value = {'files': []}
        self.assertIsNone(svc.find_spreadsheet(self.session))

    def test_create_spreadsheet_writes_headers(self):
        self.client.spreadsheets().create().execute.return_value = {'spreadsheetId': 'new'}
        self.assertEqual(svc.create_spreadsheet(self.session), 'new')

        body = self.client.spreadsheets().create.call_args.kwargs['body']
        self.assertEqual(body['properties']['title'], 'Gas Log - me@example.com')
        self.assertEqual(
            [s['properties']['title'] for s in body['sheets']],
            ['Gas Log', 'Vehicles']
        )

        data = self.client.spreadsheets().values().batchUpdate.call_args.kwargs['body']['data']
        self.assertEqual(data[0]['range'], "'Gas Log'!A1:N1")
        self.assertEqual(data[0]['values'], [ENTRY_HEADERS])
        self.assertEqual(data[1]['range'], "'Vehicles'!A1:G1")
        self.assertEqual(data[1]['values'], [VEHICLE_HEADERS])

    def test_create_spreadsheet_without_id(self):
        self.client.spreadsheets().create().execute.return_value = {}
        with mute_ui_signals():
            with self.assertRaises(status.SpreadsheetNotFoundException):
                svc.create_spreadsheet(self.session)

    def test_spreadsheet_accessible(self):
        get = self.client.spreadsheets().get()
        get.execute.return_value = {'spreadsheetId': 'abc'}
        self.assertTrue(svc._spreadsheet_accessible(self.session, 'abc'))

        for code in (403, 404):
            with self.subTest(code=code):
                get.execute.side_effect = http_error(code)
                self.assertFalse(svc._spreadsheet_accessible(self.session, 'abc'))

        get.execute.side_effect = http_error(401)
        with mute_ui_signals():
            with self.assertRaises(status.AuthenticationExceptionException):
                svc._spreadsheet_accessible(self.session, 'abc')

    def test_read_values(self):
        self.client.spreadsheets().values().get().execute.return_value = {'values': [['a', 'b']]}
        self.assertEqual(svc.read_values(self.session, 'abc', "'Gas Log'!A2:N"), [['a', 'b']])

    def test_read_values_empty_range(self):
        self.client.spreadsheets().values().get().execute.return_value = {}
        self.assertEqual(svc.read_values(self.session, 'abc', "'Gas Log'!A2:N"), [])

    def test_append_values_is_raw(self):
        svc.append_values(self.session, 'abc', "'Gas Log'!A:N", [['x']])
        kwargs = self.client.spreadsheets().values().append.call_args.kwargs
        self.assertEqual(kwargs['valueInputOption'], 'RAW')
        self.assertEqual(kwargs['insertDataOption'], 'INSERT_ROWS')
        self.assertEqual(kwargs['body'], {'values': [['x']]})
