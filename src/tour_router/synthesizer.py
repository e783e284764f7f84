"""Route synthesis: turn waypoints into displayable geometry.

Routed geometry that has been accepted is kept as a frozen prefix. Later
cycles only route the waypoints beyond it (the delta), starting from the last
frozen coordinate, and splice the result on. Manual mode draws straight lines
after the frozen prefix without calling the routing service.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from tour_router.models import FrozenState, Mode, RouteRequest, SynthesisOutcome, Waypoint
from tour_router.waypoints import Mutation

logger = logging.getLogger(__name__)

# What happens to straight segments drawn in manual mode once the tour is
# back in automatic mode.
MANUAL_REROUTE = "reroute"  # routed as part of the next delta
MANUAL_KEEP = "keep"  # frozen as drawn, never routed
MANUAL_SEGMENT_POLICIES = (MANUAL_REROUTE, MANUAL_KEEP)


class Phase(Enum):
    IDLE = "idle"
    SETTLED = "settled"
    ROUTING_IN_FLIGHT = "routing_in_flight"
    MANUAL_DRAWING = "manual_drawing"


@dataclass
class RouteSynthesizerState:
    frozen: FrozenState | None = None
    previous_mode: Mode = Mode.AUTOMATIC
    pending: RouteRequest | None = None
    phase: Phase = Phase.IDLE
    degraded: bool = False


class RouteSynthesizer:
    """State machine deciding what to draw and what to route.

    The synthesizer never performs I/O. `synthesize` returns the geometry to
    show immediately plus, in automatic mode, the RouteRequest the caller
    should send. The caller reports back through `apply_route` or
    `apply_failure`.
    """

    def __init__(self, manual_segments: str = MANUAL_REROUTE):
        if manual_segments not in MANUAL_SEGMENT_POLICIES:
            raise ValueError(f"Unknown manual segment policy: {manual_segments}")
        self.manual_segments = manual_segments
        self.state = RouteSynthesizerState()

    @property
    def frozen(self) -> FrozenState | None:
        return self.state.frozen

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def reset(self) -> None:
        self.state = RouteSynthesizerState(previous_mode=self.state.previous_mode)

    def on_mutation(self, mutation: Mutation) -> None:
        """Keep the frozen prefix consistent with a waypoint-list change."""
        frozen = self.state.frozen
        self.state.pending = None
        if frozen is None:
            return

        if mutation.kind in ("clear", "replace"):
            self._invalidate("waypoints replaced")
        elif mutation.kind == "remove":
            if mutation.index <= frozen.until_index:
                self._invalidate(f"removed waypoint {mutation.index} inside frozen span")
            else:
                self.state.frozen = FrozenState(coords=frozen.coords, until_index=frozen.until_index - 1)
        elif mutation.kind in ("insert", "move"):
            if mutation.index <= frozen.until_index:
                self._invalidate(f"{mutation.kind} at {mutation.index} inside frozen span")

    def _invalidate(self, reason: str) -> None:
        logger.debug("Dropping frozen route: %s", reason)
        self.state.frozen = None

    def synthesize(self, waypoints: list[Waypoint], mode: Mode, generation: int) -> SynthesisOutcome:
        """Run one synthesis cycle for the current waypoints."""
        state = self.state
        if mode != state.previous_mode:
            logger.debug("Mode changed %s -> %s", state.previous_mode.value, mode.value)
            state.previous_mode = mode

        if len(waypoints) < 2:
            state.frozen = None
            state.pending = None
            state.degraded = False
            state.phase = Phase.IDLE
            return SynthesisOutcome()

        if mode == Mode.MANUAL:
            return self._draw_manual(waypoints)

        frozen = state.frozen
        if frozen is None:
            request = RouteRequest(
                generation=generation,
                waypoints=tuple(waypoints),
                kind="full",
                until_index=len(waypoints) - 1,
            )
            return self._issue(request, list(waypoints))

        if len(waypoints) <= frozen.until_index + 1:
            state.pending = None
            state.phase = Phase.SETTLED
            return SynthesisOutcome(geometry=list(frozen.coords), degraded=state.degraded)

        new_waypoints = waypoints[frozen.until_index + 1:]
        request = RouteRequest(
            generation=generation,
            waypoints=(frozen.coords[-1], *new_waypoints),
            kind="delta",
            until_index=len(waypoints) - 1,
        )
        return self._issue(request, list(frozen.coords) + list(new_waypoints))

    def _issue(self, request: RouteRequest, interim: list[Waypoint]) -> SynthesisOutcome:
        logger.debug(
            "Requesting %s route for %d points (generation %d)",
            request.kind, len(request.waypoints), request.generation,
        )
        self.state.pending = request
        self.state.phase = Phase.ROUTING_IN_FLIGHT
        return SynthesisOutcome(geometry=interim, request=request)

    def _draw_manual(self, waypoints: list[Waypoint]) -> SynthesisOutcome:
        state = self.state
        state.pending = None
        state.phase = Phase.MANUAL_DRAWING
        frozen = state.frozen

        if frozen is None:
            geometry = list(waypoints)
            if self.manual_segments == MANUAL_KEEP:
                state.frozen = FrozenState(coords=tuple(waypoints), until_index=len(waypoints) - 1)
            return SynthesisOutcome(geometry=geometry)

        tail = waypoints[frozen.until_index + 1:]
        geometry = list(frozen.coords) + list(tail)
        if tail and self.manual_segments == MANUAL_KEEP:
            state.frozen = frozen.extend([frozen.coords[-1], *tail], len(waypoints) - 1)
        return SynthesisOutcome(geometry=geometry)

    def apply_route(self, request: RouteRequest, coords: list[Waypoint]) -> list[Waypoint] | None:
        """Accept a routing result. Returns the combined geometry, or None if superseded."""
        state = self.state
        if request is not state.pending:
            logger.debug("Ignoring result for superseded %s request", request.kind)
            return None
        if len(coords) < 2:
            return self.apply_failure(request)

        if request.kind == "full":
            state.frozen = FrozenState(coords=tuple(coords), until_index=request.until_index)
        else:
            state.frozen = state.frozen.extend(coords, request.until_index)
        state.pending = None
        state.degraded = False
        state.phase = Phase.MANUAL_DRAWING if state.previous_mode == Mode.MANUAL else Phase.SETTLED
        return list(state.frozen.coords)

    def apply_failure(self, request: RouteRequest) -> list[Waypoint] | None:
        """Fall back to straight lines for the span the request covered."""
        state = self.state
        if request is not state.pending:
            return None
        state.pending = None
        state.degraded = True
        state.phase = Phase.MANUAL_DRAWING if state.previous_mode == Mode.MANUAL else Phase.SETTLED

        if request.kind == "full":
            return list(request.waypoints)
        # Delta waypoints start at the junction, which is already the last frozen coordinate
        return list(state.frozen.coords) + list(request.waypoints[1:])
