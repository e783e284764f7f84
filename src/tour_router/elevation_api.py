"""Elevation lookups against public DEM services."""

import logging
import time

import requests

from tour_router.errors import ElevationQueryError
from tour_router.models import Waypoint

logger = logging.getLogger(__name__)

OPEN_ELEVATION_URL = "https://api.open-elevation.com/api/v1/lookup"
OPEN_TOPO_DATA_URL = "https://api.opentopodata.org/v1/srtm30m"

REQUEST_TIMEOUT = 30


def _request_open_elevation(http, batch: list[Waypoint]):
    return http.post(
        OPEN_ELEVATION_URL,
        json={"locations": [{"latitude": p.lat, "longitude": p.lng} for p in batch]},
        headers={"Accept": "application/json"},
        timeout=REQUEST_TIMEOUT,
    )


def _request_opentopodata(http, batch: list[Waypoint]):
    return http.get(
        OPEN_TOPO_DATA_URL,
        params={"locations": "|".join(f"{p.lat},{p.lng}" for p in batch)},
        timeout=REQUEST_TIMEOUT,
    )


# name -> (request function, points per request, pause between requests in s)
# OpenTopoData asks for at most 1 request per second.
_BACKENDS = {
    "open-elevation": (_request_open_elevation, 100, 0.5),
    "opentopodata": (_request_opentopodata, 100, 1.0),
}

ELEVATION_APIS = tuple(_BACKENDS)


def _align(results: list, batch_len: int) -> list[float | None]:
    """Map API results onto the batch, padding short responses with None."""
    elevations: list[float | None] = []
    for idx in range(batch_len):
        entry = results[idx] if idx < len(results) else None
        elev = entry.get("elevation") if isinstance(entry, dict) else None
        numeric = isinstance(elev, (int, float)) and not isinstance(elev, bool)
        elevations.append(float(elev) if numeric else None)
    missing = elevations.count(None)
    if missing:
        logger.warning("Elevation API returned no value for %d of %d points", missing, batch_len)
    return elevations


def fetch_dem_elevation(
    points: list[Waypoint],
    api: str = "open-elevation",
    batch_size: int | None = None,
    session: requests.Session | None = None,
) -> list[float | None]:
    """Fetch DEM elevation for a list of points.

    Args:
        points: Points to look up
        api: Which API to use ("open-elevation" or "opentopodata")
        batch_size: Number of points per API request (API default if None)
        session: Optional requests session for connection reuse

    Returns:
        List of elevations in meters, index-aligned with points. A point the
        API could not resolve is None, never 0.

    Raises:
        ValueError: If the API name is unknown.
        ElevationQueryError: If an API request fails.
    """
    if api not in _BACKENDS:
        raise ValueError(f"Unknown elevation API: {api}")
    request, default_batch, pause = _BACKENDS[api]
    batch_size = batch_size or default_batch
    http = session or requests

    elevations: list[float | None] = []
    for start in range(0, len(points), batch_size):
        if start:
            time.sleep(pause)
        batch = points[start : start + batch_size]
        logger.debug("Fetching %s elevation for %d points", api, len(batch))

        try:
            response = request(http, batch)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise ElevationQueryError(f"{api} request failed: {e}") from e
        except ValueError as e:
            raise ElevationQueryError(f"{api} returned invalid JSON: {e}") from e

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ElevationQueryError(f"Invalid {api} response format")
        elevations.extend(_align(results, len(batch)))

    return elevations


class ElevationClient:
    """Elevation lookup collaborator.

    `elevations` returns one value per input point, None where the lookup
    failed, and raises ElevationQueryError when the whole query fails.
    """

    def elevations(self, points: list[Waypoint]) -> list[float | None]:
        raise NotImplementedError


class DemElevationClient(ElevationClient):
    """ElevationClient backed by a public DEM API."""

    def __init__(self, api: str = "open-elevation", batch_size: int | None = None):
        if api not in ELEVATION_APIS:
            raise ValueError(f"Unknown elevation API: {api}")
        self.api = api
        self.batch_size = batch_size
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "tour-router"})

    def elevations(self, points: list[Waypoint]) -> list[float | None]:
        return fetch_dem_elevation(points, self.api, self.batch_size, self.session)
