"""Dense variable ids for grid coordinates."""

from typing import Dict, Iterator, List, Tuple

import numpy as np

Coordinate = Tuple[int, int]


class VariableIndex:
    """
    Bidirectional mapping between ``(row, col)`` grid coordinates and dense
    linear variable ids.

    Ids are allocated lazily on first lookup, in first-touch order, starting at
    zero. There is no removal; an index lives for a single solve and is then
    discarded. Not thread-safe.
    """

    def __init__(self):
        self._ids: Dict[Coordinate, int] = {}
        self._coordinates: List[Coordinate] = []

    def id(self, coordinate: Coordinate) -> int:
        """Return the id for ``coordinate``, allocating the next one if unseen."""
        key = (int(coordinate[0]), int(coordinate[1]))
        existing = self._ids.get(key)
        if existing is not None:
            return existing

        new_id = len(self._coordinates)
        self._ids[key] = new_id
        self._coordinates.append(key)
        return new_id

    def coordinate(self, variable_id: int) -> Coordinate:
        """Inverse lookup of a previously allocated id."""
        if variable_id < 0:
            raise IndexError(f"Variable id must be non-negative, got {variable_id}")
        return self._coordinates[variable_id]

    def coordinates(self) -> np.ndarray:
        """All allocated coordinates as an ``(n, 2)`` integer array ordered by id."""
        if not self._coordinates:
            return np.empty((0, 2), dtype=np.intp)
        return np.asarray(self._coordinates, dtype=np.intp)

    def __contains__(self, coordinate) -> bool:
        return (int(coordinate[0]), int(coordinate[1])) in self._ids

    def __len__(self) -> int:
        return len(self._coordinates)

    def __iter__(self) -> Iterator[Coordinate]:
        return iter(self._coordinates)
