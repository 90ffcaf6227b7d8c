"""
Weathr Configuration - TOML config file, environment and CLI overrides.

The config file lives at $XDG_CONFIG_HOME/weathr/config.toml (or
~/.config/weathr/config.toml, %APPDATA%\\weathr\\config.toml on Windows):

    [location]
    latitude = 52.52
    longitude = 13.41
    auto = false
    hide = false
    display = "mixed"            # coordinates | city | mixed
    city_name_language = "auto"

    [units]
    temperature = "celsius"      # celsius | fahrenheit
    wind_speed = "kmh"           # kmh | ms | mph | kn
    precipitation = "mm"         # mm | inch

    hide_hud = false
    silent = false

A Config is built once at startup and never changes for the run.
"""

import logging
import os
import sys
import tomllib
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError
from .models import (
    PrecipitationUnit,
    TemperatureUnit,
    WeatherUnits,
    WindSpeedUnit,
    validate_coordinates,
)

logger = logging.getLogger(__name__)

ENV_LATITUDE = "WEATHR_LATITUDE"
ENV_LONGITUDE = "WEATHR_LONGITUDE"

DEFAULT_LATITUDE = 52.52
DEFAULT_LONGITUDE = 13.41

# Seconds between weather fetches
DEFAULT_REFRESH_INTERVAL = 300.0
# Half-width of the sunrise/sunset blend
DEFAULT_TWILIGHT_MINUTES = 45.0
DEFAULT_FPS = 10


class LocationDisplay(Enum):
    """How the HUD shows the location."""
    COORDINATES = "coordinates"
    CITY = "city"
    MIXED = "mixed"


def _app_dir(environ: Mapping[str, str], xdg_var: str, fallback: str, windows_var: str) -> Path:
    if sys.platform == 'win32' and environ.get(windows_var):
        return Path(environ[windows_var]) / 'weathr'
    base = environ.get(xdg_var)
    if base:
        return Path(base) / 'weathr'
    return Path.home() / fallback / 'weathr'


def config_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Directory holding config.toml."""
    env = os.environ if environ is None else environ
    return _app_dir(env, 'XDG_CONFIG_HOME', '.config', 'APPDATA')


def cache_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Directory for the location cache and the log file."""
    env = os.environ if environ is None else environ
    return _app_dir(env, 'XDG_CACHE_HOME', '.cache', 'LOCALAPPDATA')


def default_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    return config_dir(environ) / 'config.toml'


@dataclass(frozen=True)
class LocationConfig:
    """Location settings."""
    latitude: float = DEFAULT_LATITUDE
    longitude: float = DEFAULT_LONGITUDE
    auto: bool = False
    hide: bool = False
    display: LocationDisplay = LocationDisplay.COORDINATES
    city: Optional[str] = None
    city_name_language: str = "auto"
    from_env: bool = False

    @property
    def is_default(self) -> bool:
        """True when nothing set a location and Berlin is used."""
        return (
            not self.auto and
            not self.from_env and
            self.latitude == DEFAULT_LATITUDE and
            self.longitude == DEFAULT_LONGITUDE
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'auto': self.auto,
            'hide': self.hide,
            'display': self.display.value,
            'city': self.city,
            'city_name_language': self.city_name_language,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LocationConfig':
        display = data.get('display', LocationDisplay.COORDINATES.value)
        try:
            display = LocationDisplay(str(display).lower())
        except ValueError:
            raise ConfigError(
                'parse',
                f"Invalid location display '{display}' "
                f"(expected one of: {', '.join(d.value for d in LocationDisplay)})",
            ) from None
        try:
            latitude = float(data.get('latitude', DEFAULT_LATITUDE))
            longitude = float(data.get('longitude', DEFAULT_LONGITUDE))
        except (TypeError, ValueError) as e:
            raise ConfigError('parse', f"Invalid coordinates: {e}") from None
        return cls(
            latitude=latitude,
            longitude=longitude,
            auto=bool(data.get('auto', False)),
            hide=bool(data.get('hide', False)),
            display=display,
            city=data.get('city') or None,
            city_name_language=str(data.get('city_name_language', 'auto')),
        )


def _units_from_dict(data: Dict[str, Any]) -> WeatherUnits:
    defaults = WeatherUnits()
    try:
        return WeatherUnits(
            temperature=TemperatureUnit(data.get('temperature', defaults.temperature.value)),
            wind_speed=WindSpeedUnit(data.get('wind_speed', defaults.wind_speed.value)),
            precipitation=PrecipitationUnit(data.get('precipitation', defaults.precipitation.value)),
        )
    except ValueError as e:
        raise ConfigError('parse', f"Invalid unit: {e}") from None


@dataclass(frozen=True)
class Config:
    """Settings for one run. Immutable."""
    hide_hud: bool = False
    silent: bool = False
    location: LocationConfig = field(default_factory=LocationConfig)
    units: WeatherUnits = field(default_factory=WeatherUnits)
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    twilight_minutes: float = DEFAULT_TWILIGHT_MINUTES
    fps: int = DEFAULT_FPS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'hide_hud': self.hide_hud,
            'silent': self.silent,
            'location': self.location.to_dict(),
            'units': {
                'temperature': self.units.temperature.value,
                'wind_speed': self.units.wind_speed.value,
                'precipitation': self.units.precipitation.value,
            },
            'refresh_interval': self.refresh_interval,
            'twilight_minutes': self.twilight_minutes,
            'fps': self.fps,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create from the parsed TOML document."""
        location = LocationConfig.from_dict(data.get('location', {}))
        units = _units_from_dict(data.get('units', {}))
        try:
            refresh_interval = float(data.get('refresh_interval', DEFAULT_REFRESH_INTERVAL))
            twilight_minutes = float(data.get('twilight_minutes', DEFAULT_TWILIGHT_MINUTES))
            fps = int(data.get('fps', DEFAULT_FPS))
        except (TypeError, ValueError) as e:
            raise ConfigError('parse', f"Invalid timing value: {e}") from None
        if refresh_interval <= 0 or twilight_minutes < 0 or fps <= 0:
            raise ConfigError(
                'parse',
                "refresh_interval and fps must be positive, twilight_minutes non-negative",
            )
        return cls(
            hide_hud=bool(data.get('hide_hud', False)),
            silent=bool(data.get('silent', False)),
            location=location,
            units=units,
            refresh_interval=refresh_interval,
            twilight_minutes=twilight_minutes,
            fps=fps,
        )

    def validate(self):
        """Raise ConfigError if the coordinates are out of range."""
        loc = self.location
        if not -90.0 <= loc.latitude <= 90.0:
            raise ConfigError(
                'invalid_latitude',
                f"Latitude {loc.latitude} must be between -90 and 90",
            )
        if not -180.0 <= loc.longitude <= 180.0:
            raise ConfigError(
                'invalid_longitude',
                f"Longitude {loc.longitude} must be between -180 and 180",
            )

    def with_overrides(
        self,
        auto_location: bool = False,
        hide_location: bool = False,
        hide_hud: bool = False,
        silent: bool = False,
        units: Optional[WeatherUnits] = None,
    ) -> 'Config':
        """Apply CLI flags. Flags only ever switch settings on."""
        location = replace(
            self.location,
            auto=self.location.auto or auto_location,
            hide=self.location.hide or hide_location,
        )
        return replace(
            self,
            location=location,
            hide_hud=self.hide_hud or hide_hud,
            silent=self.silent or silent,
            units=units or self.units,
        )

    def with_location(self, latitude: float, longitude: float, city: Optional[str] = None) -> 'Config':
        """Config with a resolved location (auto-detect or reverse geocode)."""
        validate_coordinates(latitude, longitude)
        return replace(
            self,
            location=replace(self.location, latitude=latitude, longitude=longitude, city=city),
        )

    def with_city(self, city: Optional[str]) -> 'Config':
        return replace(self, location=replace(self.location, city=city))


def apply_env_overrides(config: Config, environ: Optional[Mapping[str, str]] = None) -> Config:
    """Apply WEATHR_LATITUDE / WEATHR_LONGITUDE."""
    env = os.environ if environ is None else environ
    location = config.location
    changed = False

    for var, attr, kind in (
        (ENV_LATITUDE, 'latitude', 'invalid_latitude'),
        (ENV_LONGITUDE, 'longitude', 'invalid_longitude'),
    ):
        raw = env.get(var)
        if raw is None:
            continue
        try:
            value = float(raw)
        except ValueError:
            raise ConfigError(kind, f"{var}={raw!r} is not a number") from None
        location = replace(location, **{attr: value})
        changed = True

    if not changed:
        return config

    logger.info(f"Location overridden via environment: ({location.latitude:.4f}, {location.longitude:.4f})")
    return replace(config, location=replace(location, from_env=True, auto=False))


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Config:
    """
    Load the config file, then apply environment overrides.

    A missing file yields the defaults. Raises ConfigError for unreadable
    or malformed files and out-of-range coordinates.
    """
    config_path = Path(path) if path is not None else default_config_path(environ)

    if not config_path.exists():
        logger.info(f"No config file at {config_path}, using defaults")
        config = Config()
    else:
        try:
            with open(config_path, 'rb') as f:
                data = tomllib.load(f)
        except OSError as e:
            raise ConfigError('read', f"Cannot read {config_path}: {e}", str(config_path)) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError('parse', f"Invalid TOML in {config_path}: {e}", str(config_path)) from e

        try:
            config = Config.from_dict(data)
        except ConfigError as e:
            e.path = str(config_path)
            raise
        logger.info(f"Loaded config from {config_path}")

    config = apply_env_overrides(config, environ)
    try:
        config.validate()
    except ConfigError as e:
        e.path = str(config_path)
        raise
    return config


CONFIG_HELP = """\
Fix or recreate it at:
  Linux: ~/.config/weathr/config.toml (or $XDG_CONFIG_HOME/weathr/config.toml)
  Windows: %APPDATA%\\weathr\\config.toml

Example config.toml:
  [location]
  latitude = 52.52
  longitude = 13.41
  auto = false  # Set to true to auto-detect location
"""

__all__ = [
    'Config',
    'LocationConfig',
    'LocationDisplay',
    'load_config',
    'apply_env_overrides',
    'config_dir',
    'cache_dir',
    'default_config_path',
    'CONFIG_HELP',
]
