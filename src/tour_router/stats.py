from tour_router.models import TrackStats


def aggregate_stats(
    length_km: float | None,
    gain: float | None = None,
    loss: float | None = None,
    elevations: list[float] | None = None,
) -> TrackStats:
    """Package profile results into one TrackStats snapshot.

    Gain, loss and the elevation range are rounded to whole meters and length
    to one decimal km. Anything not supplied stays None (unknown).
    """
    min_elev = max_elev = None
    if elevations:
        min_elev = float(round(min(elevations)))
        max_elev = float(round(max(elevations)))

    return TrackStats(
        length_km=round(length_km, 1) if length_km is not None else None,
        elevation_gain_m=float(round(gain)) if gain is not None else None,
        elevation_loss_m=float(round(loss)) if loss is not None else None,
        min_elevation_m=min_elev,
        max_elevation_m=max_elev,
    )


def format_stats(stats: TrackStats) -> str:
    """Human-readable multi-line summary of a TrackStats snapshot."""

    def fmt(value: float | None, unit: str, pattern: str = ".0f") -> str:
        return "unknown" if value is None else f"{value:{pattern}} {unit}"

    lines = [
        f"Distance:       {fmt(stats.length_km, 'km', '.1f')}",
        f"Elevation Gain: {fmt(stats.elevation_gain_m, 'm')}",
        f"Elevation Loss: {fmt(stats.elevation_loss_m, 'm')}",
        f"Min Elevation:  {fmt(stats.min_elevation_m, 'm')}",
        f"Max Elevation:  {fmt(stats.max_elevation_m, 'm')}",
    ]
    return "\n".join(lines)
