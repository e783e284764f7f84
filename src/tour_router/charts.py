"""Elevation profile chart generation."""

import io

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt

from tour_router.models import ElevationSample, TrackStats


def set_fixed_margins(fig, fig_width: float, fig_height: float) -> None:
    """Set fixed margins in inches so the plot area does not depend on content."""
    left = 0.7 / fig_width
    right = 1 - 0.35 / fig_width
    bottom = 0.55 / fig_height
    top = 1 - 0.45 / fig_height
    fig.subplots_adjust(left=left, right=right, bottom=bottom, top=top)


def generate_elevation_profile(
    samples: list[ElevationSample],
    stats: TrackStats | None = None,
    aspect_ratio: float = 3.5,
) -> bytes:
    """Generate a filled elevation profile over distance.

    Args:
        samples: Profile samples (distance in km, elevation in m)
        stats: Optional stats shown in the title
        aspect_ratio: Width/height ratio (1.0 = square, 3.5 = wide default)

    Returns PNG image as bytes.

    Raises:
        ValueError: If there are fewer than 2 samples to plot.
    """
    if len(samples) < 2:
        raise ValueError("Need at least 2 elevation samples to plot a profile")

    distances = [s.distance_km for s in samples]
    elevations = [s.elevation_m for s in samples]

    fig_height = 4
    fig_width = fig_height * aspect_ratio
    fig, ax = plt.subplots(figsize=(fig_width, fig_height), facecolor='white')

    low = min(elevations)
    high = max(elevations)
    margin = max(10.0, (high - low) * 0.1)
    base = max(0.0, low - margin)

    ax.fill_between(distances, base, elevations, color='#DC143C', alpha=0.25, linewidth=0)
    ax.plot(distances, elevations, color='#DC143C', linewidth=1.2)

    ax.set_xlim(0, distances[-1])
    ax.set_ylim(base, high + margin)
    ax.set_xlabel('Distance (km)', fontsize=10)
    ax.set_ylabel('Elevation (m)', fontsize=10)
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)
    ax.grid(axis='y', alpha=0.3, linestyle='-', linewidth=0.5)

    if stats is not None and stats.length_km is not None:
        title = f"{stats.length_km:.1f} km"
        if stats.elevation_gain_m is not None:
            title += f"  +{stats.elevation_gain_m:.0f} m / -{stats.elevation_loss_m:.0f} m"
        ax.set_title(title, fontsize=10, loc='left')

    set_fixed_margins(fig, fig_width, fig_height)

    buf = io.BytesIO()
    fig.savefig(buf, format='png', dpi=100, facecolor='white', edgecolor='none')
    plt.close(fig)
    buf.seek(0)
    return buf.getvalue()
