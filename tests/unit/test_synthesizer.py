import pytest

from tour_router.models import Mode, Waypoint
from tour_router.synthesizer import MANUAL_KEEP, Phase, RouteSynthesizer
from tour_router.waypoints import WaypointSequencer

from conftest import road_route

A = Waypoint(lat=45.0, lng=9.0)
B = Waypoint(lat=45.01, lng=9.01)
C = Waypoint(lat=45.02, lng=9.02)
D = Waypoint(lat=45.03, lng=9.03)
BEND_AB = Waypoint(lat=45.005, lng=9.004)


class Harness:
    """Sequencer plus synthesizer wired the way the session wires them."""

    def __init__(self, manual_segments="reroute"):
        self.seq = WaypointSequencer()
        self.synth = RouteSynthesizer(manual_segments)
        self.mode = Mode.AUTOMATIC

    def run(self, mutation):
        assert mutation is not None
        self.synth.on_mutation(mutation)
        return self.synth.synthesize(self.seq.waypoints, self.mode, self.seq.generation)

    def append(self, point):
        return self.run(self.seq.append(point))

    def route_ok(self, outcome, coords=None):
        request = outcome.request
        if coords is None:
            coords = road_route(list(request.waypoints))
        return self.synth.apply_route(request, coords)


class TestFirstRoute:
    def test_single_waypoint_is_idle(self):
        h = Harness()
        outcome = h.append(A)
        assert outcome.geometry == []
        assert outcome.request is None
        assert h.synth.phase == Phase.IDLE

    def test_two_waypoints_request_full_route(self):
        h = Harness()
        h.append(A)
        outcome = h.append(B)
        assert outcome.request.kind == "full"
        assert outcome.request.waypoints == (A, B)
        # Interim geometry is straight lines until the route lands
        assert outcome.geometry == [A, B]
        assert h.synth.phase == Phase.ROUTING_IN_FLIGHT

    def test_accepted_route_is_frozen(self):
        h = Harness()
        h.append(A)
        outcome = h.append(B)
        geometry = h.route_ok(outcome, [A, BEND_AB, B])
        assert geometry == [A, BEND_AB, B]
        assert h.synth.frozen.until_index == 1
        assert h.synth.frozen.coords == (A, BEND_AB, B)
        assert h.synth.phase == Phase.SETTLED


class TestDeltaRouting:
    def test_third_waypoint_routes_only_the_delta(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B), [A, BEND_AB, B])

        outcome = h.append(C)
        assert outcome.request.kind == "delta"
        assert outcome.request.waypoints == (B, C)
        assert outcome.geometry == [A, BEND_AB, B, C]

        geometry = h.route_ok(outcome, [B, Waypoint(45.015, 9.016), C])
        assert geometry == [A, BEND_AB, B, Waypoint(45.015, 9.016), C]
        assert h.synth.frozen.until_index == 2

    def test_frozen_coords_are_a_prefix_of_the_next_route(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        before = h.synth.frozen.coords
        geometry = h.route_ok(h.append(C))
        assert tuple(geometry[: len(before)]) == before

    def test_delta_starts_at_last_frozen_coordinate(self):
        h = Harness()
        h.append(A)
        # Router snapped the end point to the road
        snapped = Waypoint(lat=45.0101, lng=9.0099)
        h.route_ok(h.append(B), [A, BEND_AB, snapped])
        outcome = h.append(C)
        assert outcome.request.waypoints[0] == snapped

    def test_nothing_new_returns_frozen_without_request(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        outcome = h.synth.synthesize(h.seq.waypoints, Mode.AUTOMATIC, h.seq.generation)
        assert outcome.request is None
        assert outcome.geometry == list(h.synth.frozen.coords)
        assert h.synth.phase == Phase.SETTLED


class TestSupersededResults:
    def test_result_for_replaced_request_is_ignored(self):
        h = Harness()
        h.append(A)
        first = h.append(B)
        second = h.append(C)
        assert h.synth.apply_route(first.request, road_route([A, B])) is None
        assert h.synth.frozen is None
        assert h.route_ok(second) is not None

    def test_failure_for_replaced_request_is_ignored(self):
        h = Harness()
        h.append(A)
        first = h.append(B)
        h.append(C)
        assert h.synth.apply_failure(first.request) is None
        assert not h.synth.state.degraded


class TestRemoval:
    def _routed_three(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        h.route_ok(h.append(C))
        return h

    def test_remove_inside_frozen_span_reroutes_everything(self):
        h = self._routed_three()
        outcome = h.run(h.seq.remove(1))
        assert h.synth.frozen is None
        assert outcome.request.kind == "full"
        assert outcome.request.waypoints == (A, C)

    def test_remove_last_frozen_waypoint_invalidates(self):
        h = self._routed_three()
        outcome = h.run(h.seq.undo_last())
        assert outcome.request.kind == "full"
        assert outcome.request.waypoints == (A, B)

    def test_remove_beyond_frozen_span_shrinks_until_index(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        h.append(C)
        h.append(D)
        # until_index is 1; removing index 3 is outside the frozen span
        h.run(h.seq.remove(3))
        assert h.synth.frozen is not None
        assert h.synth.frozen.until_index == 0

    def test_remove_beyond_frozen_span_in_manual_mode_repeats_junction(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        frozen = h.synth.frozen.coords
        h.mode = Mode.MANUAL
        h.append(C)

        outcome = h.run(h.seq.remove(2))

        # The frozen coords still end at B, but only waypoint 0 counts as settled,
        # so B is drawn again as a zero-length manual segment
        assert h.synth.frozen.until_index == 0
        assert h.synth.frozen.coords == frozen
        assert outcome.geometry == list(frozen) + [B]

        h.mode = Mode.AUTOMATIC
        outcome = h.append(D)
        assert outcome.request.kind == "delta"
        assert outcome.request.waypoints == (B, B, D)
        geometry = h.route_ok(outcome)
        assert tuple(geometry[: len(frozen)]) == frozen
        assert geometry[-1] == D


class TestInsertAndMove:
    def test_insert_inside_frozen_span_invalidates(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        outcome = h.run(h.seq.insert_after(0))
        assert h.synth.frozen is None
        assert outcome.request.kind == "full"
        assert len(outcome.request.waypoints) == 3

    def test_move_inside_frozen_span_invalidates(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        h.route_ok(h.append(C))
        outcome = h.run(h.seq.move_down(0))
        assert outcome.request.waypoints == (B, A, C)

    def test_move_beyond_frozen_span_keeps_prefix(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        h.append(C)
        h.append(D)
        outcome = h.run(h.seq.move_down(2))
        assert h.synth.frozen.until_index == 1
        assert outcome.request.kind == "delta"
        assert outcome.request.waypoints == (B, D, C)


class TestManualMode:
    def test_manual_draws_straight_lines_without_request(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        frozen = h.synth.frozen.coords
        h.mode = Mode.MANUAL
        outcome = h.append(C)
        assert outcome.request is None
        assert outcome.geometry == list(frozen) + [C]
        assert h.synth.phase == Phase.MANUAL_DRAWING

    def test_manual_from_scratch(self):
        h = Harness()
        h.mode = Mode.MANUAL
        h.append(A)
        outcome = h.append(B)
        assert outcome.geometry == [A, B]
        assert outcome.request is None

    def test_round_trip_keeps_frozen_prefix(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        frozen_before = h.synth.frozen.coords

        h.mode = Mode.MANUAL
        h.append(C)
        h.mode = Mode.AUTOMATIC
        outcome = h.append(D)

        assert h.synth.frozen.coords == frozen_before
        assert outcome.request.kind == "delta"
        # Manual waypoints are routed together with the new one
        assert outcome.request.waypoints == (B, C, D)
        geometry = h.route_ok(outcome)
        assert tuple(geometry[: len(frozen_before)]) == frozen_before

    def test_keep_policy_freezes_straight_segments(self):
        h = Harness(manual_segments=MANUAL_KEEP)
        h.append(A)
        h.route_ok(h.append(B))
        h.mode = Mode.MANUAL
        h.append(C)
        assert h.synth.frozen.until_index == 2
        assert h.synth.frozen.coords[-1] == C

        h.mode = Mode.AUTOMATIC
        outcome = h.append(D)
        assert outcome.request.waypoints == (C, D)

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError, match="Unknown manual segment policy"):
            RouteSynthesizer("sometimes")


class TestFailure:
    def test_full_route_failure_falls_back_to_straight_lines(self):
        h = Harness()
        h.append(A)
        outcome = h.append(B)
        geometry = h.synth.apply_failure(outcome.request)
        assert geometry == [A, B]
        assert h.synth.state.degraded
        assert h.synth.frozen is None
        assert h.synth.phase == Phase.SETTLED

    def test_delta_failure_keeps_frozen_prefix(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B), [A, BEND_AB, B])
        outcome = h.append(C)
        geometry = h.synth.apply_failure(outcome.request)
        assert geometry == [A, BEND_AB, B, C]
        assert h.synth.frozen.until_index == 1

    def test_too_short_route_counts_as_failure(self):
        h = Harness()
        h.append(A)
        outcome = h.append(B)
        geometry = h.synth.apply_route(outcome.request, [A])
        assert geometry == [A, B]
        assert h.synth.state.degraded

    def test_success_clears_degraded(self):
        h = Harness()
        h.append(A)
        h.synth.apply_failure(h.append(B).request)
        h.route_ok(h.append(C))
        assert not h.synth.state.degraded


class TestClear:
    def test_clear_returns_to_idle(self):
        h = Harness()
        h.append(A)
        h.route_ok(h.append(B))
        outcome = h.run(h.seq.clear())
        assert outcome.geometry == []
        assert h.synth.frozen is None
        assert h.synth.phase == Phase.IDLE
