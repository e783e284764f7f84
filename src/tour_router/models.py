from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Waypoint:
    lat: float
    lng: float


@dataclass(frozen=True)
class FrozenState:
    """Accepted route geometry and the waypoint index it reaches."""

    coords: tuple[Waypoint, ...]
    until_index: int

    def extend(self, delta: list[Waypoint], until_index: int) -> "FrozenState":
        """Return a new state with `delta` spliced on, dropping its junction point."""
        return FrozenState(coords=self.coords + tuple(delta[1:]), until_index=until_index)


class Mode(Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


@dataclass(frozen=True)
class ElevationSample:
    distance_km: float
    elevation_m: float


@dataclass(frozen=True)
class TrackStats:
    length_km: float | None = None
    elevation_gain_m: float | None = None
    elevation_loss_m: float | None = None
    min_elevation_m: float | None = None
    max_elevation_m: float | None = None

    @property
    def is_empty(self) -> bool:
        return self.length_km is None and self.elevation_gain_m is None


@dataclass
class ElevationParams:
    method: str = "hysteresis"  # "simple" or "hysteresis"
    win: int = 3  # moving-average window, in samples
    k: float = 0.8  # multiplier on local variability (hysteresis only)
    floor: float = 0.5  # meters; deltas below this are noise
    cap: float = 3.0  # meters; largest single step accumulated
    max_samples: int = 100  # DEM samples per profile
    # A sample is a spike when it jumps more than spike_short_jump meters
    # within spike_short_meters of the previous one, or when its gradient
    # exceeds spike_slope (1.0 = 100%) on a jump of at least spike_slope_min_jump.
    spike_short_meters: float = 1.0
    spike_short_jump: float = 50.0
    spike_slope: float = 1.0
    spike_slope_min_jump: float = 0.0

    def __post_init__(self):
        if self.max_samples < 1:
            raise ValueError(f"max_samples must be at least 1, got {self.max_samples}")
        if self.win < 1:
            raise ValueError(f"win must be at least 1, got {self.win}")
        for name in ("k", "floor", "cap", "spike_short_meters", "spike_short_jump", "spike_slope",
                     "spike_slope_min_jump"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")


@dataclass(frozen=True)
class RouteRequest:
    """A routing job the synthesizer wants issued to the routing service."""

    generation: int
    waypoints: tuple[Waypoint, ...]
    kind: str  # "full" or "delta"
    until_index: int  # waypoint index the result will settle


@dataclass(frozen=True)
class SynthesisOutcome:
    """What a synthesis cycle decided: geometry to show now and maybe a request."""

    geometry: list[Waypoint] = field(default_factory=list)
    request: RouteRequest | None = None
    degraded: bool = False
