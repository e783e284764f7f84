import gpxpy

from tour_router.models import Waypoint


def parse_gpx(filepath: str) -> list[Waypoint]:
    """Parse a GPX file into an ordered list of tour waypoints.

    Route points are preferred (they are what a planner saves), then track
    points, then standalone waypoints.
    """
    with open(filepath, "r") as f:
        gpx = gpxpy.parse(f)

    points: list[Waypoint] = []
    for route in gpx.routes:
        for pt in route.points:
            points.append(Waypoint(lat=pt.latitude, lng=pt.longitude))
    if points:
        return points

    for track in gpx.tracks:
        for segment in track.segments:
            for pt in segment.points:
                points.append(Waypoint(lat=pt.latitude, lng=pt.longitude))
    if points:
        return points

    return [Waypoint(lat=pt.latitude, lng=pt.longitude) for pt in gpx.waypoints]
