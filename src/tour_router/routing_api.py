"""Road routing through an OSRM-compatible service."""

import logging

import requests

from tour_router.cache import RouteCache, make_route_cache_key
from tour_router.errors import RoutingError
from tour_router.models import Waypoint

logger = logging.getLogger(__name__)

OSRM_BIKE_URL = "https://routing.openstreetmap.de/routed-bike"
DEFAULT_PROFILE = "cycling"
DEFAULT_TIMEOUT = 15.0
MAX_CACHED_ROUTES = 50


class RoutingClient:
    """Road-routing collaborator.

    `route` returns the routed polyline through the given waypoints, in
    order, and raises RoutingError when no route can be produced.
    """

    def route(self, waypoints: list[Waypoint], profile: str = DEFAULT_PROFILE) -> list[Waypoint]:
        raise NotImplementedError


def parse_osrm_response(data) -> list[Waypoint]:
    """Extract the first route's geometry from an OSRM /route response.

    Raises:
        RoutingError: If the response holds no usable route.
    """
    if not isinstance(data, dict):
        raise RoutingError("http", "OSRM response is not a JSON object")
    code = data.get("code")
    if code != "Ok":
        raise RoutingError("no_route", f"OSRM returned {code}: {data.get('message', '')}".strip())

    routes = data.get("routes")
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        raise RoutingError("no_route", "OSRM returned no routes")

    geometry = routes[0].get("geometry")
    coordinates = geometry.get("coordinates") if isinstance(geometry, dict) else None
    if not isinstance(coordinates, list):
        raise RoutingError("no_route", "OSRM route has no GeoJSON geometry")

    # GeoJSON coordinates are [lon, lat]
    points = [
        Waypoint(lat=float(c[1]), lng=float(c[0]))
        for c in coordinates
        if isinstance(c, (list, tuple)) and len(c) >= 2 and all(isinstance(v, (int, float)) for v in c[:2])
    ]
    if len(points) < 2:
        raise RoutingError("no_route", "OSRM route geometry is empty")
    return points


class OsrmRoutingClient(RoutingClient):
    """RoutingClient for OSRM's /route/v1 HTTP API, with an LRU response cache."""

    def __init__(
        self,
        service_url: str = OSRM_BIKE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        cache: RouteCache | None = None,
    ):
        self.service_url = service_url.rstrip("/")
        self.timeout = timeout
        self.cache = cache if cache is not None else RouteCache(max_size=MAX_CACHED_ROUTES)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "tour-router"})

    def route(self, waypoints: list[Waypoint], profile: str = DEFAULT_PROFILE) -> list[Waypoint]:
        if len(waypoints) < 2:
            raise ValueError("Routing needs at least 2 waypoints")

        cache_key = make_route_cache_key(self.service_url, profile, waypoints)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("Route cache hit for %d waypoints", len(waypoints))
            return cached

        # OSRM expects lon,lat order in path
        coords = ";".join(f"{p.lng},{p.lat}" for p in waypoints)
        url = f"{self.service_url}/route/v1/{profile}/{coords}"
        params = {"overview": "full", "geometries": "geojson", "steps": "false"}

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise RoutingError("timeout", f"Routing timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise RoutingError("http", f"Routing request failed: {e}") from e

        # OSRM answers NoRoute / NoSegment with 400 and a JSON body
        if response.status_code not in (200, 400):
            raise RoutingError("http", f"Routing service returned HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise RoutingError("http", "Routing service returned invalid JSON") from e

        points = parse_osrm_response(data)
        self.cache.put(cache_key, points)
        logger.debug("Routed %d waypoints into %d points", len(waypoints), len(points))
        return points
