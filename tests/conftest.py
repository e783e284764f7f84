from concurrent.futures import Executor, Future

import pytest

from tour_router.distance import midpoint
from tour_router.elevation_api import ElevationClient
from tour_router.errors import ElevationQueryError, RoutingError
from tour_router.models import ElevationParams, Waypoint
from tour_router.routing_api import RoutingClient
from tour_router.session import TourSession


def road_route(waypoints: list[Waypoint]) -> list[Waypoint]:
    """Pretend road geometry: every leg gets one bend point at its midpoint."""
    coords = [waypoints[0]]
    for a, b in zip(waypoints, waypoints[1:]):
        coords.append(midpoint(a, b))
        coords.append(b)
    return coords


class FakeRoutingClient(RoutingClient):
    """Records every request; routes with `road_route` unless told to fail."""

    def __init__(self, fail_with: Exception | None = None):
        self.calls: list[list[Waypoint]] = []
        self.profiles: list[str] = []
        self.fail_with = fail_with

    def route(self, waypoints, profile="cycling"):
        self.calls.append(list(waypoints))
        self.profiles.append(profile)
        if self.fail_with is not None:
            raise self.fail_with
        return road_route(list(waypoints))


class FakeElevationClient(ElevationClient):
    """Elevation grows 1 m per 0.0001 degree of latitude above 45.0."""

    def __init__(self, fail: bool = False, missing: set[int] | None = None):
        self.calls: list[list[Waypoint]] = []
        self.fail = fail
        self.missing = missing or set()

    def elevations(self, points):
        self.calls.append(list(points))
        if self.fail:
            raise ElevationQueryError("DEM unavailable")
        return [
            None if i in self.missing else 100.0 + (p.lat - 45.0) * 10000
            for i, p in enumerate(points)
        ]


class DeferredExecutor(Executor):
    """Executor that only runs jobs when the test says so, in the order it picks."""

    def __init__(self):
        self.jobs: list[tuple[Future, object, tuple, dict]] = []

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run_next(self, index: int = 0) -> Future:
        future, fn, args, kwargs = self.jobs.pop(index)
        if future.set_running_or_notify_cancel():
            try:
                result = fn(*args, **kwargs)
            except BaseException as e:
                future.set_exception(e)
            else:
                future.set_result(result)
        return future

    def run_all(self) -> None:
        while self.jobs:
            self.run_next()


def settle(session: TourSession, executor: DeferredExecutor) -> None:
    """Run background jobs and apply their results until nothing is left."""
    while True:
        executor.run_all()
        session.process_pending()
        if not executor.jobs:
            return


@pytest.fixture
def routing_client():
    return FakeRoutingClient()


@pytest.fixture
def elevation_client():
    return FakeElevationClient()


@pytest.fixture
def executor():
    return DeferredExecutor()


@pytest.fixture
def session(routing_client, elevation_client, executor):
    params = ElevationParams(method="simple", floor=0.5, cap=1000.0)
    with TourSession(routing_client, elevation_client, params=params, executor=executor) as s:
        yield s


@pytest.fixture
def tour_points():
    """Four waypoints heading north-east, roughly 1.4 km apart."""
    return [
        Waypoint(lat=45.0, lng=9.0),
        Waypoint(lat=45.01, lng=9.01),
        Waypoint(lat=45.02, lng=9.02),
        Waypoint(lat=45.03, lng=9.03),
    ]
