"""Elevation profile and statistics for route geometry."""

import logging
import math
from dataclasses import dataclass, field

from tour_router.distance import cumulative_distances_km, path_length_km
from tour_router.elevation_api import ElevationClient
from tour_router.errors import ElevationQueryError
from tour_router.models import ElevationParams, ElevationSample, TrackStats, Waypoint
from tour_router.smoothing import calculate_gain_loss, interpolate_missing, remove_spikes
from tour_router.stats import aggregate_stats

logger = logging.getLogger(__name__)

MIN_PROFILE_POINTS = 3


@dataclass(frozen=True)
class ElevationProfile:
    samples: list[ElevationSample] = field(default_factory=list)
    stats: TrackStats = field(default_factory=TrackStats)


def downsample(points: list[Waypoint], max_samples: int = 100) -> list[Waypoint]:
    """Take every ceil(N / max_samples)-th point, always ending on the last point."""
    if max_samples < 1:
        raise ValueError(f"max_samples must be at least 1, got {max_samples}")
    if len(points) <= max_samples:
        return list(points)
    step = math.ceil(len(points) / max_samples)
    sampled = points[::step]
    if (len(points) - 1) % step != 0:
        sampled.append(points[-1])
    return sampled


def compute_profile(
    geometry: list[Waypoint],
    sampled: list[Waypoint],
    elevations: list[float | None],
    params: ElevationParams,
) -> ElevationProfile:
    """Build the profile and stats from sampled points and their DEM elevations.

    Failed samples (None) are interpolated from their valid neighbours by
    distance, then spikes are flattened. When no sample is valid only the
    length is reported.
    """
    length_km = path_length_km(geometry)
    distances = cumulative_distances_km(sampled)

    filled = interpolate_missing(distances, elevations)
    if filled is None:
        logger.warning("No valid elevation samples; reporting length only")
        return ElevationProfile(stats=aggregate_stats(length_km))

    cleaned = remove_spikes(
        distances,
        filled,
        short_meters=params.spike_short_meters,
        short_jump=params.spike_short_jump,
        slope=params.spike_slope,
        slope_min_jump=params.spike_slope_min_jump,
    )
    spikes = sum(1 for raw, kept in zip(filled, cleaned) if raw != kept)
    if spikes:
        logger.debug("Flattened %d elevation spike(s)", spikes)
    filled = cleaned

    gain, loss = calculate_gain_loss(
        filled,
        method=params.method,
        win=params.win,
        k=params.k,
        floor=params.floor,
        cap=params.cap,
    )
    samples = [ElevationSample(distance_km=d, elevation_m=e) for d, e in zip(distances, filled)]
    return ElevationProfile(
        samples=samples,
        stats=aggregate_stats(length_km, gain, loss, filled),
    )


class ElevationProfiler:
    """Samples route geometry, queries elevations and derives the profile.

    Holds no state between calls: the same geometry and params always give
    the same result for the same elevation data.
    """

    def __init__(self, client: ElevationClient, params: ElevationParams | None = None):
        self.client = client
        self.params = params or ElevationParams()

    def profile(self, geometry: list[Waypoint]) -> ElevationProfile:
        if len(geometry) < MIN_PROFILE_POINTS:
            return ElevationProfile()

        sampled = downsample(geometry, self.params.max_samples)
        try:
            elevations = self.client.elevations(sampled)
        except ElevationQueryError as e:
            logger.warning("Elevation query failed: %s", e)
            elevations = [None] * len(sampled)

        if len(elevations) != len(sampled):
            logger.warning("Elevation service returned %d values for %d points", len(elevations), len(sampled))
            elevations = (list(elevations) + [None] * len(sampled))[: len(sampled)]

        return compute_profile(geometry, sampled, elevations, self.params)
