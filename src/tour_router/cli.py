import argparse
import logging
import sys

from tour_router import __version_date__, get_git_hash
from tour_router.config import DEFAULTS, _load_config
from tour_router.elevation_api import ELEVATION_APIS, DemElevationClient
from tour_router.events import RecordingObserver
from tour_router.models import ElevationParams, Mode, Waypoint
from tour_router.parser import parse_gpx
from tour_router.routing_api import OsrmRoutingClient
from tour_router.session import TourSession
from tour_router.smoothing import GAIN_LOSS_METHODS
from tour_router.stats import format_stats
from tour_router.synthesizer import MANUAL_SEGMENT_POLICIES

DEFAULT_WAIT_SECONDS = 120.0


def parse_point(value: str) -> Waypoint:
    """Parse a "LAT,LNG" command-line value."""
    try:
        lat_str, lng_str = value.split(",")
        lat, lng = float(lat_str), float(lng_str)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LNG but got {value!r}") from None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise argparse.ArgumentTypeError(f"coordinates out of range: {value!r}")
    return Waypoint(lat=lat, lng=lng)


def build_parser(config: dict | None = None) -> argparse.ArgumentParser:
    """Build argument parser with defaults from config file."""
    if config is None:
        config = {}

    def get_default(key: str):
        return config.get(key, DEFAULTS[key])

    parser = argparse.ArgumentParser(
        description="Build a tour from waypoints, routing the gaps on roads, and report its elevation stats."
    )
    parser.add_argument("gpx_file", nargs="?", help="GPX file whose points are used as waypoints")
    parser.add_argument(
        "--point",
        "-p",
        action="append",
        type=parse_point,
        default=[],
        metavar="LAT,LNG",
        help="Waypoint to append (repeatable, added after any GPX points)",
    )
    parser.add_argument(
        "--manual-from",
        type=int,
        default=None,
        metavar="N",
        help="Switch to manual (straight-line) drawing before adding waypoint N (0-based)",
    )
    parser.add_argument(
        "--close-loop",
        action="store_true",
        help="Return to the first waypoint at the end",
    )
    parser.add_argument(
        "--method",
        choices=GAIN_LOSS_METHODS,
        default=get_default("elevation_method"),
        help=f"Gain/loss algorithm (default: {DEFAULTS['elevation_method']})",
    )
    parser.add_argument(
        "--floor",
        type=float,
        default=get_default("floor"),
        help=f"Elevation changes below this many meters are noise (default: {DEFAULTS['floor']})",
    )
    parser.add_argument(
        "--cap",
        type=float,
        default=get_default("cap"),
        help=f"Largest elevation change counted per step, in meters (default: {DEFAULTS['cap']})",
    )
    parser.add_argument(
        "--win",
        type=int,
        default=get_default("win"),
        help=f"Moving-average window in samples (default: {DEFAULTS['win']})",
    )
    parser.add_argument(
        "--k",
        type=float,
        default=get_default("k"),
        help=f"Hysteresis variability multiplier (default: {DEFAULTS['k']})",
    )
    parser.add_argument(
        "--max-samples",
        type=int,
        default=get_default("max_samples"),
        help=f"Elevation samples per profile (default: {DEFAULTS['max_samples']})",
    )
    parser.add_argument(
        "--spike-short-meters",
        type=float,
        default=get_default("spike_short_meters"),
        help=f"Sample spacing below which a large jump is a spike (default: {DEFAULTS['spike_short_meters']})",
    )
    parser.add_argument(
        "--spike-short-jump",
        type=float,
        default=get_default("spike_short_jump"),
        help=f"Jump in meters that counts as a spike over a short spacing (default: {DEFAULTS['spike_short_jump']})",
    )
    parser.add_argument(
        "--spike-slope",
        type=float,
        default=get_default("spike_slope"),
        help=f"Gradient treated as a spike, 1.0 = 100%% (default: {DEFAULTS['spike_slope']})",
    )
    parser.add_argument(
        "--spike-slope-min-jump",
        type=float,
        default=get_default("spike_slope_min_jump"),
        help=f"Smallest jump in meters the gradient check applies to (default: {DEFAULTS['spike_slope_min_jump']})",
    )
    parser.add_argument(
        "--profile",
        default=get_default("routing_profile"),
        help=f"Routing profile (default: {DEFAULTS['routing_profile']})",
    )
    parser.add_argument(
        "--routing-url",
        default=get_default("routing_url"),
        help=f"OSRM service base URL (default: {DEFAULTS['routing_url']})",
    )
    parser.add_argument(
        "--routing-timeout",
        type=float,
        default=get_default("routing_timeout"),
        help=f"Routing request timeout in seconds (default: {DEFAULTS['routing_timeout']})",
    )
    parser.add_argument(
        "--elevation-api",
        choices=ELEVATION_APIS,
        default=get_default("elevation_api"),
        help=f"Elevation service (default: {DEFAULTS['elevation_api']})",
    )
    parser.add_argument(
        "--manual-segments",
        choices=MANUAL_SEGMENT_POLICIES,
        default=get_default("manual_segments"),
        help="What happens to manual segments when routing resumes "
        f"(default: {DEFAULTS['manual_segments']})",
    )
    parser.add_argument(
        "--plot",
        metavar="PNG",
        default=None,
        help="Write the elevation profile chart to this file",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version_date__} ({get_git_hash()})",
    )
    return parser


def build_session(args, config: dict | None = None) -> TourSession:
    if config is None:
        config = {}
    params = ElevationParams(
        method=args.method,
        win=args.win,
        k=args.k,
        floor=args.floor,
        cap=args.cap,
        max_samples=args.max_samples,
        spike_short_meters=args.spike_short_meters,
        spike_short_jump=args.spike_short_jump,
        spike_slope=args.spike_slope,
        spike_slope_min_jump=args.spike_slope_min_jump,
    )
    return TourSession(
        routing_client=OsrmRoutingClient(args.routing_url, timeout=args.routing_timeout),
        elevation_client=DemElevationClient(args.elevation_api),
        params=params,
        routing_profile=args.profile,
        manual_segments=args.manual_segments,
        close_radius_m=config.get("close_radius_m", DEFAULTS["close_radius_m"]),
    )


def run_tour(session: TourSession, waypoints: list[Waypoint], manual_from: int | None, close_loop: bool) -> None:
    """Build the tour: route every waypoint before `manual_from` in one request, draw the rest by hand."""
    split = len(waypoints) if manual_from is None else min(max(manual_from, 0), len(waypoints))
    session.load(waypoints[:split])
    session.wait_idle(DEFAULT_WAIT_SECONDS)
    if split < len(waypoints):
        session.set_mode(Mode.MANUAL)
        session.extend(waypoints[split:])
    if close_loop:
        session.close_loop()
    session.wait_idle(DEFAULT_WAIT_SECONDS)


def main(argv: list[str] | None = None) -> None:
    config = _load_config()
    parser = build_parser(config)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    waypoints: list[Waypoint] = []
    if args.gpx_file:
        try:
            waypoints = parse_gpx(args.gpx_file)
        except FileNotFoundError:
            print(f"Error: File not found: {args.gpx_file}", file=sys.stderr)
            sys.exit(1)
        except Exception as e:
            print(f"Error parsing GPX file: {e}", file=sys.stderr)
            sys.exit(1)
    waypoints.extend(args.point)

    if len(waypoints) < 2:
        print("Error: a tour needs at least 2 waypoints.", file=sys.stderr)
        sys.exit(1)

    try:
        session = build_session(args, config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    recorder = RecordingObserver()
    with session:
        session.add_observer(recorder)
        try:
            run_tour(session, waypoints, args.manual_from, args.close_loop)
        except TimeoutError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    print("=== Tour Summary ===")
    print(f"Waypoints:      {len(session.waypoints)}")
    print(f"Route points:   {len(recorder.geometry)}")
    print(format_stats(recorder.stats))
    if recorder.errors:
        print(f"Warning: routing failed {len(recorder.errors)} time(s); straight lines shown instead.")

    if args.plot:
        if len(recorder.samples) < 2:
            print("Warning: no elevation profile to plot.", file=sys.stderr)
        else:
            from tour_router.charts import generate_elevation_profile

            with open(args.plot, "wb") as f:
                f.write(generate_elevation_profile(recorder.samples, recorder.stats))
            print(f"Profile chart:  {args.plot}")
