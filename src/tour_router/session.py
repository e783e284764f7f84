"""Tour session: the single owner of waypoints, route state and stats.

Commands mutate the waypoint list synchronously and bump the generation
counter. Network work (routing, elevation lookup) runs on an executor; the
worker threads only do I/O and post their futures to an inbox queue. The
owner applies inbox messages in `process_pending` or `wait_idle`, dropping
any result whose generation has been overtaken by a newer mutation.
"""

import logging
import queue
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

from tour_router.distance import path_length_km
from tour_router.elevation_api import ElevationClient
from tour_router.errors import RoutingError
from tour_router.events import ObserverList, TourObserver
from tour_router.models import ElevationParams, ElevationSample, Mode, RouteRequest, TrackStats, Waypoint
from tour_router.profile import MIN_PROFILE_POINTS, ElevationProfile, ElevationProfiler
from tour_router.routing_api import DEFAULT_PROFILE, RoutingClient
from tour_router.stats import aggregate_stats
from tour_router.synthesizer import MANUAL_REROUTE, RouteSynthesizer
from tour_router.waypoints import DEFAULT_CLOSE_RADIUS_M, Mutation, WaypointSequencer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Message:
    kind: str  # "route" or "profile"
    generation: int
    future: Future
    request: RouteRequest | None = None


class TourSession:
    def __init__(
        self,
        routing_client: RoutingClient,
        elevation_client: ElevationClient,
        params: ElevationParams | None = None,
        routing_profile: str = DEFAULT_PROFILE,
        manual_segments: str = MANUAL_REROUTE,
        close_radius_m: float = DEFAULT_CLOSE_RADIUS_M,
        executor: Executor | None = None,
    ):
        self.sequencer = WaypointSequencer(close_radius_m=close_radius_m)
        self.synthesizer = RouteSynthesizer(manual_segments)
        self.profiler = ElevationProfiler(elevation_client, params)
        self.routing_client = routing_client
        self.routing_profile = routing_profile
        self.mode = Mode.AUTOMATIC
        self.observers = ObserverList()

        self.geometry: list[Waypoint] = []
        self.samples: list[ElevationSample] = []
        self.stats = TrackStats()

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="tour-router")
        self._inbox: queue.Queue[_Message] = queue.Queue()
        self._route_future: Future | None = None
        self._profile_future: Future | None = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self) -> None:
        self._cancel_in_flight()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    @property
    def waypoints(self) -> list[Waypoint]:
        return self.sequencer.waypoints

    @property
    def generation(self) -> int:
        return self.sequencer.generation

    @property
    def busy(self) -> bool:
        return self._route_future is not None or self._profile_future is not None

    def add_observer(self, observer: TourObserver) -> None:
        self.observers.add(observer)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def append(self, point: Waypoint) -> Mutation | None:
        return self._after(self.sequencer.append(point))

    def extend(self, points: list[Waypoint]) -> Mutation | None:
        return self._after(self.sequencer.extend(points))

    def add_point(self, point: Waypoint, confirm_close: Callable[[], bool] | None = None) -> Mutation | None:
        """Handle a map click: close the loop if the click lands on the start and the caller agrees."""
        if self.sequencer.should_offer_close(point) and confirm_close is not None and confirm_close():
            return self.close_loop()
        return self.append(point)

    def insert_after(self, index: int) -> Mutation | None:
        return self._after(self.sequencer.insert_after(index))

    def remove(self, index: int) -> Mutation | None:
        return self._after(self.sequencer.remove(index))

    def move_up(self, index: int) -> Mutation | None:
        return self._after(self.sequencer.move_up(index))

    def move_down(self, index: int) -> Mutation | None:
        return self._after(self.sequencer.move_down(index))

    def undo_last(self) -> Mutation | None:
        return self._after(self.sequencer.undo_last())

    def close_loop(self) -> Mutation | None:
        return self._after(self.sequencer.close_loop())

    def clear(self) -> Mutation | None:
        return self._after(self.sequencer.clear())

    def load(self, points: list[Waypoint]) -> Mutation:
        return self._after(self.sequencer.replace(points))

    def set_mode(self, mode: Mode) -> None:
        """Switch between automatic routing and manual drawing.

        Takes effect on the next synthesis cycle: the next waypoint change or
        an explicit `resynthesize()`.
        """
        if mode != self.mode:
            logger.debug("Mode set to %s", mode.value)
            self.mode = mode

    def resynthesize(self) -> None:
        """Run a synthesis cycle without changing the waypoints."""
        self._cancel_in_flight()
        self._synthesize()

    # ------------------------------------------------------------------
    # Synthesis and background work
    # ------------------------------------------------------------------

    def _after(self, mutation: Mutation | None) -> Mutation | None:
        if mutation is None:
            return None
        self.synthesizer.on_mutation(mutation)
        self._cancel_in_flight()
        self._synthesize()
        return mutation

    def _cancel_in_flight(self) -> None:
        # Best effort: a request already on the wire still completes, and its
        # result is then dropped by the generation check.
        for future in (self._route_future, self._profile_future):
            if future is not None:
                future.cancel()
        self._route_future = None
        self._profile_future = None

    def _synthesize(self) -> None:
        waypoints = self.sequencer.waypoints
        outcome = self.synthesizer.synthesize(waypoints, self.mode, self.generation)

        if not outcome.geometry:
            self._clear_outputs()
            return

        self._set_geometry(outcome.geometry)
        if outcome.request is not None:
            self._submit_route(outcome.request)
        else:
            self._start_profile()

    def _submit_route(self, request: RouteRequest) -> None:
        future = self._executor.submit(self.routing_client.route, list(request.waypoints), self.routing_profile)
        self._route_future = future
        self._post_when_done(_Message("route", request.generation, future, request))

    def _start_profile(self) -> None:
        if len(self.geometry) < MIN_PROFILE_POINTS:
            self._set_profile(ElevationProfile())
            return
        future = self._executor.submit(self.profiler.profile, list(self.geometry))
        self._profile_future = future
        self._post_when_done(_Message("profile", self.generation, future))

    def _post_when_done(self, message: _Message) -> None:
        message.future.add_done_callback(lambda _f: self._inbox.put(message))

    # ------------------------------------------------------------------
    # Applying results (owner side)
    # ------------------------------------------------------------------

    def process_pending(self) -> int:
        """Apply every completed result waiting in the inbox without blocking.

        Returns the number of results applied (stale ones are not counted).
        """
        applied = 0
        while True:
            try:
                message = self._inbox.get_nowait()
            except queue.Empty:
                return applied
            if self._apply(message):
                applied += 1

    def wait_idle(self, timeout: float | None = None) -> None:
        """Block until the current route and profile results are applied.

        Raises:
            TimeoutError: If work is still outstanding after `timeout` seconds.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.busy:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                message = self._inbox.get(timeout=remaining)
            except queue.Empty:
                raise TimeoutError(f"Tour session still busy after {timeout}s") from None
            self._apply(message)

    def _apply(self, message: _Message) -> bool:
        if message.future.cancelled():
            return False
        if message.generation != self.generation:
            logger.debug(
                "Discarding stale %s result (generation %d, current %d)",
                message.kind, message.generation, self.generation,
            )
            return False

        if message.kind == "route":
            if message.future is not self._route_future:
                return False
            self._route_future = None
            return self._apply_route(message)

        if message.future is not self._profile_future:
            return False
        self._profile_future = None
        try:
            profile = message.future.result()
        except Exception:
            logger.exception("Elevation profiling failed; reporting length only")
            profile = ElevationProfile(stats=aggregate_stats(path_length_km(self.geometry)))
        self._set_profile(profile)
        return True

    def _apply_route(self, message: _Message) -> bool:
        try:
            coords = message.future.result()
        except RoutingError as e:
            logger.warning("Routing failed (%s): %s", e.kind, e)
            geometry = self.synthesizer.apply_failure(message.request)
            self.observers.routing_failed(e)
        except Exception as e:
            logger.exception("Routing client failed unexpectedly")
            geometry = self.synthesizer.apply_failure(message.request)
            self.observers.routing_failed(RoutingError("http", str(e) or type(e).__name__))
        else:
            geometry = self.synthesizer.apply_route(message.request, coords)

        if geometry is None:
            return False
        self._set_geometry(geometry)
        self._start_profile()
        return True

    def _set_geometry(self, geometry: list[Waypoint]) -> None:
        self.geometry = list(geometry)
        self.observers.geometry_changed(list(self.geometry))

    def _set_profile(self, profile: ElevationProfile) -> None:
        self.samples = list(profile.samples)
        self.stats = profile.stats
        self.observers.profile_changed(list(self.samples))
        self.observers.stats_changed(self.stats)

    def _clear_outputs(self) -> None:
        self._set_geometry([])
        self._set_profile(ElevationProfile())
