"""Fixed garage layout: spot identifiers and the tandem blocking relation.

Every row holds two spots. Spot A sits against the wall and spot B in
front of it, so a vehicle in B keeps the vehicle in A from leaving.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol

DEFAULT_ROWS = 5

_SPOT_PATTERN = re.compile(r"^([1-9][0-9]*)([AB])$")


class Column(str, Enum):
    """Spot column within a row."""

    A = "A"
    B = "B"


@dataclass(frozen=True)
class SpotId:
    """Identifier of a spot, rendered as "{row}{column}" (e.g. "3A")."""

    row: int
    column: Column

    def __str__(self) -> str:
        return f"{self.row}{self.column.value}"

    @classmethod
    def parse(cls, value: str) -> "SpotId":
        """
        Parse a spot string like "3A".

        Raises:
            ValueError: If the string is not a valid spot identifier
        """
        match = _SPOT_PATTERN.match(value)
        if not match:
            raise ValueError(f"Invalid spot number: {value!r}")
        return cls(row=int(match.group(1)), column=Column(match.group(2)))

    @property
    def partner(self) -> "SpotId":
        """The other spot in the same row."""
        other = Column.B if self.column == Column.A else Column.A
        return SpotId(row=self.row, column=other)


def spot_ids(rows: int = DEFAULT_ROWS) -> list[SpotId]:
    """All spots in canonical order: 1A, 1B, 2A, 2B, ..."""
    return [SpotId(row, column) for row in range(1, rows + 1) for column in Column]


def spot_numbers(rows: int = DEFAULT_ROWS) -> list[str]:
    return [str(spot) for spot in spot_ids(rows)]


def is_valid_spot(spot_number: str, rows: int = DEFAULT_ROWS) -> bool:
    """Check that a spot string exists in a garage of the given size."""
    try:
        spot = SpotId.parse(spot_number)
    except ValueError:
        return False
    return spot.row <= rows


def blocking_spot_for(spot_number: str) -> Optional[str]:
    """Get the spot whose vehicle would block this one, if any (A -> B)."""
    spot = SpotId.parse(spot_number)
    if spot.column != Column.A:
        return None
    return str(spot.partner)


def blocked_spot_for(spot_number: str) -> Optional[str]:
    """Get the spot that a vehicle here would block, if any (B -> A)."""
    spot = SpotId.parse(spot_number)
    if spot.column != Column.B:
        return None
    return str(spot.partner)


def is_blocking_car(my_spot_number: str, other_spot_number: str) -> bool:
    """Check whether a car in other_spot_number blocks my_spot_number."""
    if not my_spot_number.endswith(Column.A.value):
        return False
    return other_spot_number == blocking_spot_for(my_spot_number)


class _HasOccupancy(Protocol):
    spot_number: str
    is_occupied: bool


def is_parked_in(spot_number: str, spots: Iterable[_HasOccupancy]) -> bool:
    """Check whether the A spot is blocked by an occupied B spot in the same row."""
    blocker = blocking_spot_for(spot_number)
    if blocker is None:
        return False
    for spot in spots:
        if spot.spot_number == blocker:
            return spot.is_occupied
    return False
