import logging

from tour_router.events import ObserverList, RecordingObserver, TourObserver
from tour_router.models import TrackStats, Waypoint


class Exploding(TourObserver):
    def geometry_changed(self, points):
        raise RuntimeError("boom")


class TestObserverList:
    def test_fans_out(self):
        observers = ObserverList()
        first, second = RecordingObserver(), RecordingObserver()
        observers.add(first)
        observers.add(second)
        observers.geometry_changed([Waypoint(45.0, 9.0)])
        assert first.geometry == second.geometry == [Waypoint(45.0, 9.0)]

    def test_add_is_idempotent(self):
        observers = ObserverList()
        recorder = RecordingObserver()
        observers.add(recorder)
        observers.add(recorder)
        observers.stats_changed(TrackStats(length_km=1.0))
        assert recorder.counts["stats"] == 1

    def test_remove(self):
        observers = ObserverList()
        recorder = RecordingObserver()
        observers.add(recorder)
        observers.remove(recorder)
        observers.profile_changed([])
        assert recorder.counts["profile"] == 0

    def test_failing_observer_does_not_block_others(self, caplog):
        observers = ObserverList()
        recorder = RecordingObserver()
        observers.add(Exploding())
        observers.add(recorder)

        with caplog.at_level(logging.ERROR, logger="tour_router.events"):
            observers.geometry_changed([Waypoint(45.0, 9.0)])

        assert recorder.counts["geometry"] == 1
        assert "geometry_changed" in caplog.text

    def test_base_observer_ignores_everything(self):
        observer = TourObserver()
        observer.geometry_changed([])
        observer.stats_changed(TrackStats())
