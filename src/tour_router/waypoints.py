"""Ordered, mutable list of user-placed waypoints."""

import logging
from dataclasses import dataclass

from tour_router.distance import is_within, midpoint
from tour_router.models import Waypoint

logger = logging.getLogger(__name__)

DEFAULT_CLOSE_RADIUS_M = 50.0


@dataclass(frozen=True)
class Mutation:
    """A successful change to the waypoint list.

    `index` is the position that changed: the appended/inserted/removed index,
    or the lower of the two swapped indices for a reorder.
    """

    kind: str  # append, insert, remove, move, clear, replace
    index: int
    generation: int


class WaypointSequencer:
    """Owns the waypoint list and the generation counter.

    Invalid operations are rejected as no-ops: the method returns None and
    the reason is kept in `last_rejection`.
    """

    def __init__(self, waypoints: list[Waypoint] | None = None, close_radius_m: float = DEFAULT_CLOSE_RADIUS_M):
        self._waypoints: list[Waypoint] = list(waypoints or [])
        self.close_radius_m = close_radius_m
        self.generation = 0
        self.last_rejection: str | None = None

    def __len__(self) -> int:
        return len(self._waypoints)

    def __getitem__(self, index: int) -> Waypoint:
        return self._waypoints[index]

    @property
    def waypoints(self) -> list[Waypoint]:
        """A snapshot copy of the current waypoints."""
        return list(self._waypoints)

    @property
    def is_closed(self) -> bool:
        return len(self._waypoints) >= 2 and self._waypoints[0] == self._waypoints[-1]

    def _commit(self, kind: str, index: int) -> Mutation:
        self.generation += 1
        self.last_rejection = None
        return Mutation(kind=kind, index=index, generation=self.generation)

    def _reject(self, reason: str) -> None:
        self.last_rejection = reason
        logger.debug("Rejected waypoint operation: %s", reason)
        return None

    def append(self, point: Waypoint) -> Mutation:
        self._waypoints.append(point)
        return self._commit("append", len(self._waypoints) - 1)

    def extend(self, points: list[Waypoint]) -> Mutation | None:
        """Append several waypoints as one change; the mutation index is the first new one."""
        if not points:
            return self._reject("no waypoints to append")
        first = len(self._waypoints)
        self._waypoints.extend(points)
        return self._commit("append", first)

    def insert_after(self, index: int) -> Mutation | None:
        """Insert the midpoint of waypoints[index] and waypoints[index + 1]."""
        if index < 0 or index >= len(self._waypoints) - 1:
            return self._reject(f"cannot insert after index {index}")
        mid = midpoint(self._waypoints[index], self._waypoints[index + 1])
        self._waypoints.insert(index + 1, mid)
        return self._commit("insert", index + 1)

    def remove(self, index: int) -> Mutation | None:
        if index < 0 or index >= len(self._waypoints):
            return self._reject(f"index {index} out of range")
        del self._waypoints[index]
        return self._commit("remove", index)

    def move_up(self, index: int) -> Mutation | None:
        if index <= 0 or index >= len(self._waypoints):
            return self._reject(f"cannot move index {index} up")
        wps = self._waypoints
        wps[index - 1], wps[index] = wps[index], wps[index - 1]
        return self._commit("move", index - 1)

    def move_down(self, index: int) -> Mutation | None:
        if index < 0 or index >= len(self._waypoints) - 1:
            return self._reject(f"cannot move index {index} down")
        wps = self._waypoints
        wps[index], wps[index + 1] = wps[index + 1], wps[index]
        return self._commit("move", index)

    def undo_last(self) -> Mutation | None:
        if not self._waypoints:
            return self._reject("nothing to undo")
        return self.remove(len(self._waypoints) - 1)

    def close_loop(self) -> Mutation | None:
        """Append a copy of the first waypoint, returning to the start."""
        if len(self._waypoints) < 2:
            return self._reject("need at least 2 waypoints")
        if self.is_closed:
            return self._reject("already closed")
        return self.append(self._waypoints[0])

    def should_offer_close(self, point: Waypoint) -> bool:
        """True when a new click at `point` lands close enough to the start to close the loop."""
        if len(self._waypoints) < 2 or self.is_closed:
            return False
        return is_within(point, self._waypoints[0], self.close_radius_m)

    def clear(self) -> Mutation | None:
        if not self._waypoints:
            return self._reject("already empty")
        self._waypoints.clear()
        return self._commit("clear", 0)

    def replace(self, points: list[Waypoint]) -> Mutation:
        self._waypoints = list(points)
        return self._commit("replace", 0)
