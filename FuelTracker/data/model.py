"""Fuel log record types.

Defines the :class:`FuelEntry` fill-up record, the :class:`Vehicle` record and the
:class:`FuelType` grades, plus the id generators used when records are created.
"""
import dataclasses
import datetime
import enum
import random
import string
import time
from typing import Optional, Dict, Any

#: Distance-to-empty (miles) below which a fill-up counts as "from empty".
NEAR_EMPTY_THRESHOLD: float = 35

_ID_ALPHABET: str = string.ascii_lowercase + string.digits


class FuelType(enum.StrEnum):
    """Fuel grades recognised by the tracker."""
    Regular87 = 'regular-87'
    MidGrade89 = 'mid-grade-89'
    Premium91 = 'premium-91'
    Premium93 = 'premium-93'
    Diesel = 'diesel'
    E85 = 'E85'
    E15 = 'E15'
    E10 = 'E10'


def _random_suffix(length: int = 9) -> str:
    return ''.join(random.choices(_ID_ALPHABET, k=length))


def new_entry_id() -> str:
    """Return a new entry id of the form ``entry_<millis>_<random9>``."""
    return f'entry_{int(time.time() * 1000)}_{_random_suffix()}'


def new_vehicle_id() -> str:
    """Return a new vehicle id of the form ``vehicle_<millis>_<random9>``."""
    return f'vehicle_{int(time.time() * 1000)}_{_random_suffix()}'


def get_near_empty_threshold() -> float:
    """Return the configured near-empty threshold, falling back to the default."""
    from ..settings import lib
    value = lib.settings['near_empty_threshold']
    return NEAR_EMPTY_THRESHOLD if value is None else value


def backfill_total_cost(total_cost: float, price_per_gallon: float, gallons: float) -> float:
    """Compute the total cost from price and volume when it was not recorded."""
    if total_cost == 0 and price_per_gallon > 0 and gallons > 0:
        return price_per_gallon * gallons
    return total_cost


@dataclasses.dataclass(frozen=True)
class FuelEntry:
    """A single fill-up.

    Entries are immutable once created. Use :meth:`create` to build one with a
    fresh id and the derived fields applied.
    """
    id: str
    vehicle_id: str
    gas_station: str
    gas_station_city: str
    fuel_type: FuelType
    mpg_before: float
    mileage: float
    dte_before: float
    price_per_gallon: float
    gallons: float
    total_cost: float
    dte_after: float
    date_gas_added: datetime.datetime
    added_from_empty: bool

    @classmethod
    def create(
            cls,
            vehicle_id: str,
            gas_station: str,
            mileage: float,
            gas_station_city: str = 'Unknown',
            fuel_type: FuelType = FuelType.Regular87,
            mpg_before: float = 0.0,
            dte_before: float = 0.0,
            price_per_gallon: float = 0.0,
            gallons: float = 0.0,
            total_cost: float = 0.0,
            dte_after: float = 0.0,
            date_gas_added: Optional[datetime.datetime] = None,
            added_from_empty: Optional[bool] = None,
            threshold: Optional[float] = None,
    ) -> 'FuelEntry':
        """Create a new entry with a generated id.

        Args:
            added_from_empty: Explicit near-empty flag. When None the flag is derived from
                ``dte_before`` and the near-empty threshold.
            threshold: Near-empty threshold override. Defaults to the configured preference.
            date_gas_added: Defaults to the current time.

        Returns:
            FuelEntry: The new entry.

        Raises:
            status.VehicleNotSelectedException: If ``vehicle_id`` is empty.
        """
        if not vehicle_id:
            from ..status import status
            raise status.VehicleNotSelectedException

        if added_from_empty is None:
            if threshold is None:
                threshold = get_near_empty_threshold()
            added_from_empty = dte_before < threshold

        return cls(
            id=new_entry_id(),
            vehicle_id=vehicle_id,
            gas_station=gas_station,
            gas_station_city=gas_station_city or 'Unknown',
            fuel_type=FuelType(fuel_type),
            mpg_before=mpg_before,
            mileage=mileage,
            dte_before=dte_before,
            price_per_gallon=price_per_gallon,
            gallons=gallons,
            total_cost=backfill_total_cost(total_cost, price_per_gallon, gallons),
            dte_after=dte_after,
            date_gas_added=date_gas_added or datetime.datetime.now(),
            added_from_empty=bool(added_from_empty),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dataclasses.asdict(self)
        data['fuel_type'] = str(self.fuel_type)
        return data


@dataclasses.dataclass
class Vehicle:
    """A vehicle fill-ups are logged against."""
    id: str
    name: str
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    expected_mpg: Optional[float] = None
    is_default: bool = False

    @property
    def display_name(self) -> str:
        details = ' '.join(str(v) for v in (self.year, self.make, self.model) if v)
        return f'{self.name} ({details})' if details else self.name
