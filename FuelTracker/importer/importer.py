"""Batch import of fuel entries from CSV text.

The import runs in one direction: parse the text, map its headers, convert every
row, then persist the accepted entries. Row failures are collected and never stop
the batch. Persistence is attempted once as a single batch; if that request fails
the entries are sent one at a time, skipping any that already reached the sheet.

Example:

    .. code-block:: python

        from FuelTracker.core.auth import auth_manager
        from FuelTracker.core.store import store
        from FuelTracker.importer import importer

        session = auth_manager.get_session()
        result = importer.import_csv(text, vehicle.id, session, store)
        print(result.summary())

"""
import dataclasses
import logging
from typing import Dict, List, Optional, Set

from . import converter
from .normalizer import build_field_mapping, RESERVED_HEADERS
from .parser import RawRow, parse_csv, parse_headers
from ..core.auth import Session, require_session
from ..data.model import FuelEntry
from ..status import status


@dataclasses.dataclass
class ImportResult:
    """Outcome of an import.

    Attributes:
        attempted: Number of parsed rows.
        succeeded: Number of entries persisted.
        failed: Rows rejected during conversion plus entries that failed to save.
        unmapped: Headers that matched no field.
        errors: Every failure message, in order.
        entries: The entries that were persisted.
    """
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    unmapped: List[str] = dataclasses.field(default_factory=list)
    errors: List[str] = dataclasses.field(default_factory=list)
    entries: List[FuelEntry] = dataclasses.field(default_factory=list)

    def summary(self, max_errors: Optional[int] = None) -> str:
        """
        Return a user-facing summary.

        Only the first ``max_errors`` messages are listed, the rest are counted.

        Args:
            max_errors: Defaults to the ``max_reported_errors`` preference.
        """
        if max_errors is None:
            from ..settings import lib
            max_errors = lib.settings['max_reported_errors']

        lines: List[str] = []
        if self.attempted == 0:
            lines.append('No data rows to import.')
        elif self.succeeded > 0:
            noun = 'entry' if self.succeeded == 1 else 'entries'
            lines.append(f'Successfully imported {self.succeeded} {noun}!')
            if self.failed > 0:
                noun = 'row' if self.failed == 1 else 'rows'
                lines.append(f'{self.failed} {noun} failed.')
        else:
            lines.append(f'Failed to import entries. {self.failed} rows had errors.')

        if self.unmapped:
            lines.append(f'Some fields weren\'t automatically mapped: {", ".join(self.unmapped)}')

        lines.extend(self.errors[:max_errors])
        hidden = len(self.errors) - max_errors
        if hidden > 0:
            lines.append(f'...and {hidden} more')
        return '\n'.join(lines)


def _row_headers(rows: List[RawRow]) -> List[str]:
    headers: Dict[str, None] = {}
    for row in rows:
        headers.update(dict.fromkeys(row))
    return list(headers)


def _persist_one_by_one(
        entries: List[FuelEntry], session: Session, store, result: ImportResult
) -> None:
    """Save entries individually after a failed batch request."""
    try:
        existing: Set[str] = {e.id for e in store.list_all(session)}
    except status.RemoteStatusException as ex:
        logging.warning(f'Could not read existing entries before retrying individually: {ex}')
        existing = set()

    for entry in entries:
        if entry.id in existing:
            logging.debug(f'Entry {entry.id} is already in the sheet, not sending it again.')
            result.succeeded += 1
            result.entries.append(entry)
            continue
        try:
            store.create_one(session, entry)
        except status.RemoteStatusException as ex:
            msg = f'Failed to save entry - {ex}'
            logging.warning(msg)
            result.failed += 1
            result.errors.append(msg)
            continue
        result.succeeded += 1
        result.entries.append(entry)


def _refresh(session: Session, store) -> None:
    from ..actions import signals

    signals.entriesAboutToBeFetched.emit()
    try:
        entries = store.list_all(session)
    except status.RemoteStatusException as ex:
        logging.warning(f'Import finished but the entry list could not be refreshed: {ex}')
        return
    signals.entriesFetched.emit(entries)


def import_rows(
        rows: List[RawRow],
        vehicle_id: str,
        session: Optional[Session],
        store,
        mapping: Optional[Dict[str, str]] = None,
        headers: Optional[List[str]] = None,
) -> ImportResult:
    """
    Convert and persist parsed rows.

    Args:
        rows: Parsed CSV rows.
        vehicle_id: The vehicle every entry is logged against.
        session: The signed-in session.
        store: The persistence collaborator (see :class:`~FuelTracker.core.store.EntryStore`).
        mapping: CSV header to field key. Built from the row headers when omitted.
        headers: The CSV headers, used to report unmapped columns.

    Returns:
        ImportResult: Counts, unmapped headers and every failure message.

    Raises:
        status.VehicleNotSelectedException: If ``vehicle_id`` is empty.
        AuthExpiredError: If there are entries to save and the session is missing or expired.
        status.AuthenticationExceptionException: If Google rejects the credentials.
    """
    from ..actions import signals
    from ..settings import lib

    if not vehicle_id:
        raise status.VehicleNotSelectedException

    if headers is None:
        headers = _row_headers(rows)
    if mapping is None:
        mapping, unmapped = build_field_mapping(headers)
    else:
        unmapped = [h for h in headers if h and h not in RESERVED_HEADERS and h not in mapping]

    result = ImportResult(attempted=len(rows), unmapped=unmapped)
    signals.importStarted.emit(len(rows))
    logging.info(f'Importing {len(rows)} row(s) for vehicle {vehicle_id}...')

    threshold = lib.settings['near_empty_threshold']
    to_create: List[FuelEntry] = []
    for idx, row in enumerate(rows):
        entry, error = converter.convert_row(row, mapping, idx, vehicle_id, threshold=threshold)
        if entry is not None:
            to_create.append(entry)
            continue
        result.failed += 1
        if error:
            logging.warning(error)
            result.errors.append(error)

    if to_create:
        require_session(session)
        try:
            store.create_batch(session, to_create)
        except status.RemoteStatusException as ex:
            logging.warning(f'Batch save failed, saving entries one by one: {ex}')
            _persist_one_by_one(to_create, session, store, result)
        else:
            result.succeeded = len(to_create)
            result.entries.extend(to_create)

        _refresh(session, store)

    if result.failed:
        logging.warning(f'Import errors: {result.errors}')
    logging.info(f'Import finished: {result.succeeded} succeeded, {result.failed} failed.')

    signals.importFinished.emit(result)
    return result


def import_csv(
        text: str,
        vehicle_id: str,
        session: Optional[Session],
        store,
) -> ImportResult:
    """
    Parse CSV text and import its rows.

    Raises:
        status.CsvFormatInvalidException: If the text lacks a header row or data rows.
        status.VehicleNotSelectedException: If ``vehicle_id`` is empty.
        AuthExpiredError: If the session is missing or expired.
    """
    if not vehicle_id:
        raise status.VehicleNotSelectedException

    headers = parse_headers(text)
    rows = parse_csv(text)
    mapping, _ = build_field_mapping(headers)
    return import_rows(rows, vehicle_id, session, store, mapping=mapping, headers=headers)
