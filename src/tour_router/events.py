"""Observer interface for consumers of tour updates (map display, stats panel)."""

import logging

from tour_router.errors import RoutingError
from tour_router.models import ElevationSample, TrackStats, Waypoint

logger = logging.getLogger(__name__)


class TourObserver:
    """Receives tour updates. Override the methods you care about."""

    def geometry_changed(self, points: list[Waypoint]) -> None:
        pass

    def profile_changed(self, samples: list[ElevationSample]) -> None:
        pass

    def stats_changed(self, stats: TrackStats) -> None:
        pass

    def routing_failed(self, error: RoutingError) -> None:
        pass


class ObserverList(TourObserver):
    """Fans every update out to registered observers.

    Notifications are fire-and-forget: an observer that raises is logged and
    skipped so the remaining observers still get the update.
    """

    def __init__(self):
        self._observers: list[TourObserver] = []

    def add(self, observer: TourObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove(self, observer: TourObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, method: str, *args) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, method)(*args)
            except Exception:
                logger.exception("Observer %r failed handling %s", observer, method)

    def geometry_changed(self, points: list[Waypoint]) -> None:
        self._notify("geometry_changed", points)

    def profile_changed(self, samples: list[ElevationSample]) -> None:
        self._notify("profile_changed", samples)

    def stats_changed(self, stats: TrackStats) -> None:
        self._notify("stats_changed", stats)

    def routing_failed(self, error: RoutingError) -> None:
        self._notify("routing_failed", error)


class RecordingObserver(TourObserver):
    """Keeps the latest value of every update, plus a count of each."""

    def __init__(self):
        self.geometry: list[Waypoint] = []
        self.samples: list[ElevationSample] = []
        self.stats: TrackStats = TrackStats()
        self.errors: list[RoutingError] = []
        self.counts = {"geometry": 0, "profile": 0, "stats": 0}

    def geometry_changed(self, points: list[Waypoint]) -> None:
        self.geometry = list(points)
        self.counts["geometry"] += 1

    def profile_changed(self, samples: list[ElevationSample]) -> None:
        self.samples = list(samples)
        self.counts["profile"] += 1

    def stats_changed(self, stats: TrackStats) -> None:
        self.stats = stats
        self.counts["stats"] += 1

    def routing_failed(self, error: RoutingError) -> None:
        self.errors.append(error)
