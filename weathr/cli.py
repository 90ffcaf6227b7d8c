"""
Command line entry point for the weathr command.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .app import AnimationLoop
from .conditions import WeatherCondition, format_condition_list
from .config import (
    CONFIG_HELP,
    Config,
    LocationDisplay,
    apply_env_overrides,
    cache_dir,
    load_config,
)
from .errors import ConfigError, NetworkFailure, TerminalError, UnknownConditionError
from .geolocation import locate_by_ip, reverse_geocode
from .models import Location, WeatherUnits
from .resolver import SimulationOverride
from .utils.error_handling import get_error_tally, handle_error

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

ATTRIBUTION = (
    "Weather data provided by Open-Meteo.com (https://open-meteo.com/)\n"
    "Data licensed under CC BY 4.0 (https://creativecommons.org/licenses/by/4.0/)\n\n"
    "Geocoding powered by Nominatim/OpenStreetMap (https://nominatim.openstreetmap.org/)\n"
    "Data © OpenStreetMap contributors, ODbL (https://www.openstreetmap.org/copyright)"
)

LONG_VERSION = f"weathr {__version__}\n\n{ATTRIBUTION}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="weathr",
        description=f"Terminal-based ASCII weather application\n\n{ATTRIBUTION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    weathr                              # Live weather for the configured location
    weathr --auto-location              # Detect the location from your IP
    weathr --simulate rain              # Simulate a condition offline
    weathr -s thunderstorm-hail -n      # Night-time storm
    weathr --list-conditions            # Show every simulation name

Keyboard Shortcuts:
    q     Quit
        """
    )
    parser.add_argument("--simulate", "-s", metavar="CONDITION",
                        help="Simulate weather condition (clear, rain, drizzle, snow, etc.)")
    parser.add_argument("--night", "-n", action="store_true",
                        help="Simulate night time (moon and stars)")
    parser.add_argument("--leaves", "-l", action="store_true",
                        help="Enable falling autumn leaves")
    parser.add_argument("--auto-location", action="store_true",
                        help="Auto-detect location via IP (uses ipinfo.io)")
    parser.add_argument("--hide-location", action="store_true",
                        help="Hide location coordinates in UI")
    parser.add_argument("--hide-hud", action="store_true",
                        help="Hide HUD (status line)")

    units = parser.add_mutually_exclusive_group()
    units.add_argument("--imperial", action="store_true",
                       help="Use imperial units (°F, mph, inch)")
    units.add_argument("--metric", action="store_true",
                       help="Use metric units (°C, km/h, mm)")

    parser.add_argument("--silent", action="store_true",
                        help="Run silently (suppress non-error output)")
    parser.add_argument("--config", "-c", type=Path, metavar="PATH",
                        help="Path to config.toml (default: ~/.config/weathr/config.toml)")
    parser.add_argument("--log-file", type=Path, metavar="PATH",
                        help="Write logs here (default: ~/.cache/weathr/weathr.log)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log debug messages")
    parser.add_argument("--list-conditions", action="store_true",
                        help="List the conditions accepted by --simulate")
    parser.add_argument("--version", "-V", action="version", version=LONG_VERSION)
    return parser


def configure_logging(log_file: Optional[Path] = None, verbose: bool = False) -> Optional[Path]:
    """
    Send log records to a file; the terminal belongs to the animation.

    Returns the log file path, or None if it could not be created.
    """
    path = log_file or cache_dir() / 'weathr.log'
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(path, encoding='utf-8')
    except OSError as e:
        print(f"Warning: cannot write log file {path}: {e}", file=sys.stderr)
        handler, path = logging.NullHandler(), None

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[handler],
        force=True,
    )
    return path


def info(silent: bool, message: str):
    """Startup progress on stdout unless --silent."""
    if not silent:
        print(message)


def _load(path: Optional[Path]) -> Config:
    try:
        return load_config(path)
    except ConfigError as e:
        handle_error(e, "loading config", details={'kind': e.kind})
        print(f"Error loading config: {e}", file=sys.stderr)
        print("", file=sys.stderr)
        print(CONFIG_HELP, file=sys.stderr)

    try:
        return apply_env_overrides(Config())
    except ConfigError as e:
        handle_error(e, "reading location environment variables")
        print(f"Ignoring location environment variables: {e}", file=sys.stderr)
        return Config()


def _units_from_args(args: argparse.Namespace) -> Optional[WeatherUnits]:
    if args.imperial:
        return WeatherUnits.imperial()
    if args.metric:
        return WeatherUnits.metric()
    return None


def resolve_location(config: Config) -> Config:
    """Auto-detect the location and look up the city name as configured."""
    loc = config.location
    silent = config.silent

    if loc.from_env:
        info(silent, f"Location overridden via environment: ({loc.latitude:.4f}, {loc.longitude:.4f})")

    if loc.is_default:
        print("Warning: No location set, defaulting to Berlin (52.52, 13.41).", file=sys.stderr)

    if loc.auto:
        info(silent, "Auto-detecting location...")
        try:
            geo = locate_by_ip()
        except NetworkFailure as e:
            print(e.user_friendly_message(), file=sys.stderr)
        else:
            if geo.city:
                info(silent, f"Location detected: {geo.city} ({geo.latitude:.4f}, {geo.longitude:.4f})")
            else:
                info(silent, f"Location detected: {geo.latitude:.4f}, {geo.longitude:.4f}")
            config = config.with_location(geo.latitude, geo.longitude, geo.city)

    loc = config.location
    if loc.city is None and not loc.hide and loc.display in (LocationDisplay.CITY, LocationDisplay.MIXED):
        info(silent, "Resolving city name...")
        city = reverse_geocode(loc.latitude, loc.longitude, loc.city_name_language)
        if city:
            info(silent, f"City resolved: {city}")
            config = config.with_city(city)

    return config


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the weathr command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_conditions:
        print(format_condition_list())
        return 0

    simulation = None
    if args.simulate:
        try:
            condition = WeatherCondition.parse(args.simulate)
        except UnknownConditionError as e:
            print(f"Error: {e}", file=sys.stderr)
            print("", file=sys.stderr)
            print(format_condition_list(), file=sys.stderr)
            return 1
        simulation = SimulationOverride(condition, night=args.night, leaves=args.leaves)

    log_path = configure_logging(args.log_file, args.verbose)
    logger.info(f"weathr {__version__} starting (log: {log_path})")

    config = _load(args.config).with_overrides(
        auto_location=args.auto_location,
        hide_location=args.hide_location,
        hide_hud=args.hide_hud,
        silent=args.silent,
        units=_units_from_args(args),
    )

    if simulation is None:
        config = resolve_location(config)

    loc = config.location
    location = Location(loc.latitude, loc.longitude, loc.city, loc.city_name_language)
    loop = AnimationLoop(
        config,
        simulation=simulation,
        location=location,
        night=args.night,
        leaves=args.leaves,
    )

    exit_code = 0
    try:
        loop.run()
    except TerminalError as e:
        record = handle_error(e, "terminal session")
        print(f"\n{record.message}\n", file=sys.stderr)
        exit_code = 1
    except KeyboardInterrupt:
        pass

    errors = get_error_tally().summary()
    if errors:
        logger.info(f"Errors this session: {errors}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
