"""Configuration file loading and defaults."""

import json
import logging
from pathlib import Path

from tour_router.routing_api import DEFAULT_PROFILE, DEFAULT_TIMEOUT, OSRM_BIKE_URL

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "tour-router"
CONFIG_PATH = CONFIG_DIR / "tour-router.json"
LOCAL_CONFIG_PATH = Path("tour-router.json")

# Default values for CLI options
DEFAULTS = {
    "routing_url": OSRM_BIKE_URL,
    "routing_profile": DEFAULT_PROFILE,
    "routing_timeout": DEFAULT_TIMEOUT,
    "elevation_api": "open-elevation",
    "elevation_method": "hysteresis",
    "win": 3,
    "k": 0.8,
    "floor": 0.5,
    "cap": 3.0,
    "max_samples": 100,
    "spike_short_meters": 1.0,
    "spike_short_jump": 50.0,
    "spike_slope": 1.0,
    "spike_slope_min_jump": 0.0,
    "manual_segments": "reroute",
    "close_radius_m": 50.0,
}


def _load_config() -> dict:
    """Load configuration from config files.

    Merges config from global and local files:
    1. ~/.config/tour-router/tour-router.json (global, loaded first)
    2. ./tour-router.json (local, overrides global)

    Returns:
        Dict with merged config values, empty dict if no files exist.
    """
    config = {}
    for config_path in [CONFIG_PATH, LOCAL_CONFIG_PATH]:
        if config_path.exists():
            try:
                with config_path.open() as f:
                    config.update(json.load(f))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable config file %s: %s", config_path, e)
                continue
    return config
