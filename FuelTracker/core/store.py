"""Remote store for fuel entries and vehicles.

:class:`EntryStore` is the persistence collaborator used by the importer and the
command line. Every call takes the caller's :class:`~FuelTracker.core.auth.Session`
and talks to the user's spreadsheet through :mod:`FuelTracker.core.service`.

"""
import logging
from typing import List, Optional

from . import service
from .auth import Session, require_session
from .rows import (
    ENTRY_HEADERS, VEHICLE_HEADERS, entry_to_row, row_to_entry, vehicle_to_row, row_to_vehicle
)
from ..data.model import FuelEntry, Vehicle, new_vehicle_id
from ..status import status


class EntryStore:
    """Reads and writes the entries and vehicles worksheets.

    Raises from every method:
        AuthExpiredError: If the session is absent or expired.
        status.AuthenticationExceptionException: If Google rejects the credentials.
        status.RemoteStatusException: For any other failed response or a missing spreadsheet.
    """

    def _spreadsheet_id(self, session: Session) -> str:
        require_session(session)
        return service.ensure_spreadsheet(session)

    @staticmethod
    def _entries_range(cells: str) -> str:
        from ..settings import lib
        return service.a1_range(lib.settings['entries_worksheet'], cells)

    @staticmethod
    def _vehicles_range(cells: str) -> str:
        from ..settings import lib
        return service.a1_range(lib.settings['vehicles_worksheet'], cells)

    def create_one(self, session: Session, entry: FuelEntry) -> None:
        """Append a single entry."""
        self.create_batch(session, [entry])

    def create_batch(self, session: Session, entries: List[FuelEntry]) -> None:
        """Append all entries in one request. The request succeeds or fails as a unit."""
        if not entries:
            return
        spreadsheet_id = self._spreadsheet_id(session)
        last_col = service.idx_to_col(len(ENTRY_HEADERS) - 1)
        service.append_values(
            session,
            spreadsheet_id,
            self._entries_range(f'A:{last_col}'),
            [entry_to_row(e) for e in entries]
        )
        logging.debug(f'Appended {len(entries)} entries.')

    def list_all(self, session: Session) -> List[FuelEntry]:
        """Return every entry in sheet order."""
        spreadsheet_id = self._spreadsheet_id(session)
        last_col = service.idx_to_col(len(ENTRY_HEADERS) - 1)
        values = service.read_values(session, spreadsheet_id, self._entries_range(f'A2:{last_col}'))
        entries = [row_to_entry(row, idx) for idx, row in enumerate(values) if any(row)]
        logging.debug(f'Fetched {len(entries)} entries.')
        return entries

    def list_vehicles(self, session: Session) -> List[Vehicle]:
        """Return every vehicle in sheet order."""
        spreadsheet_id = self._spreadsheet_id(session)
        last_col = service.idx_to_col(len(VEHICLE_HEADERS) - 1)
        values = service.read_values(session, spreadsheet_id, self._vehicles_range(f'A2:{last_col}'))
        vehicles = [row_to_vehicle(row) for row in values if any(row)]

        from ..actions import signals
        signals.vehiclesFetched.emit(vehicles)
        return vehicles

    def create_vehicle(
            self,
            session: Session,
            name: str,
            make: Optional[str] = None,
            model: Optional[str] = None,
            year: Optional[int] = None,
            expected_mpg: Optional[float] = None,
            is_default: bool = False,
    ) -> Vehicle:
        """Create a vehicle. The first vehicle created is always the default."""
        if not name or not name.strip():
            raise ValueError('Vehicle name must not be empty.')

        existing = self.list_vehicles(session)
        vehicle = Vehicle(
            id=new_vehicle_id(),
            name=name.strip(),
            make=make or None,
            model=model or None,
            year=year,
            expected_mpg=expected_mpg,
            is_default=not existing or is_default,
        )

        spreadsheet_id = self._spreadsheet_id(session)
        last_col = service.idx_to_col(len(VEHICLE_HEADERS) - 1)
        service.append_values(
            session,
            spreadsheet_id,
            self._vehicles_range(f'A:{last_col}'),
            [vehicle_to_row(vehicle)]
        )
        logging.info(f'Created vehicle "{vehicle.name}" ({vehicle.id}).')
        return vehicle

    def update_vehicle(self, session: Session, vehicle: Vehicle) -> None:
        """Rewrite the row of an existing vehicle.

        Raises:
            status.VehicleNotFoundException: If no row carries the vehicle's id.
        """
        spreadsheet_id = self._spreadsheet_id(session)
        last_col = service.idx_to_col(len(VEHICLE_HEADERS) - 1)
        values = service.read_values(session, spreadsheet_id, self._vehicles_range(f'A2:{last_col}'))
        idx = next((i for i, row in enumerate(values) if row and str(row[0]).strip() == vehicle.id), None)
        if idx is None:
            raise status.VehicleNotFoundException(f'No vehicle with id "{vehicle.id}".')

        # +2: one for the header row, one for 1-based row numbers
        row_number = idx + 2
        service.update_values(
            session,
            spreadsheet_id,
            self._vehicles_range(f'A{row_number}:{last_col}{row_number}'),
            [vehicle_to_row(vehicle)]
        )
        logging.info(f'Updated vehicle "{vehicle.name}" ({vehicle.id}).')

    def get_default_vehicle(self, session: Session) -> Optional[Vehicle]:
        """Return the default vehicle, else the first one, else None."""
        vehicles = self.list_vehicles(session)
        return next((v for v in vehicles if v.is_default), vehicles[0] if vehicles else None)


store: EntryStore = EntryStore()
