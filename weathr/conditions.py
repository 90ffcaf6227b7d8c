"""
Weather Conditions - The closed set of conditions and their animation profiles.

Every WeatherCondition maps to exactly one AnimationProfile through PROFILES.
Open-Meteo reports conditions as WMO weather interpretation codes; WMO_CODES
maps those onto the fourteen conditions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .errors import UnknownConditionError, UnmappedCondition
from .utils.error_handling import handle_error


class WeatherCondition(Enum):
    """Discrete weather categories. Values are the simulation names."""
    CLEAR = "clear"
    PARTLY_CLOUDY = "partly-cloudy"
    CLOUDY = "cloudy"
    OVERCAST = "overcast"
    FOG = "fog"
    DRIZZLE = "drizzle"
    RAIN = "rain"
    FREEZING_RAIN = "freezing-rain"
    RAIN_SHOWERS = "rain-showers"
    SNOW = "snow"
    SNOW_GRAINS = "snow-grains"
    SNOW_SHOWERS = "snow-showers"
    THUNDERSTORM = "thunderstorm"
    THUNDERSTORM_HAIL = "thunderstorm-hail"

    @property
    def display_name(self) -> str:
        """Get display name for the HUD."""
        return {
            WeatherCondition.PARTLY_CLOUDY: "Partly Cloudy",
            WeatherCondition.FREEZING_RAIN: "Freezing Rain",
            WeatherCondition.RAIN_SHOWERS: "Rain Showers",
            WeatherCondition.SNOW_GRAINS: "Snow Grains",
            WeatherCondition.SNOW_SHOWERS: "Snow Showers",
            WeatherCondition.THUNDERSTORM_HAIL: "Thunderstorm with Hail",
        }.get(self, self.value.title())

    @property
    def is_raining(self) -> bool:
        return self in (
            WeatherCondition.DRIZZLE,
            WeatherCondition.RAIN,
            WeatherCondition.FREEZING_RAIN,
            WeatherCondition.RAIN_SHOWERS,
            WeatherCondition.THUNDERSTORM,
            WeatherCondition.THUNDERSTORM_HAIL,
        )

    @classmethod
    def parse(cls, name: str) -> 'WeatherCondition':
        """Look up a condition by simulation name.

        Accepts "thunderstorm-hail", "thunderstorm_hail" or "Thunderstorm Hail".
        """
        key = '-'.join(name.strip().lower().replace('_', ' ').replace('-', ' ').split())
        for condition in cls:
            if condition.value == key:
                return condition
        raise UnknownConditionError(name, [c.value for c in cls])


# Grouped listing printed by `weathr --list-conditions` and on a bad --simulate
CONDITION_GROUPS: List[Tuple[str, List[Tuple[WeatherCondition, str]]]] = [
    ("Clear Skies", [
        (WeatherCondition.CLEAR, "Clear sunny sky"),
        (WeatherCondition.PARTLY_CLOUDY, "Partial cloud coverage"),
        (WeatherCondition.CLOUDY, "Cloudy sky"),
        (WeatherCondition.OVERCAST, "Overcast sky"),
    ]),
    ("Precipitation", [
        (WeatherCondition.FOG, "Foggy conditions"),
        (WeatherCondition.DRIZZLE, "Light drizzle"),
        (WeatherCondition.RAIN, "Rain"),
        (WeatherCondition.FREEZING_RAIN, "Freezing rain"),
        (WeatherCondition.RAIN_SHOWERS, "Rain showers"),
    ]),
    ("Snow", [
        (WeatherCondition.SNOW, "Snow"),
        (WeatherCondition.SNOW_GRAINS, "Snow grains"),
        (WeatherCondition.SNOW_SHOWERS, "Snow showers"),
    ]),
    ("Storms", [
        (WeatherCondition.THUNDERSTORM, "Thunderstorm"),
        (WeatherCondition.THUNDERSTORM_HAIL, "Thunderstorm with hail"),
    ]),
]


def format_condition_list() -> str:
    """Human-readable grouped list of simulation names."""
    lines = ["Available weather conditions:", ""]
    for group, entries in CONDITION_GROUPS:
        lines.append(f"  {group}:")
        for condition, description in entries:
            lines.append(f"    {condition.value:<18} - {description}")
        lines.append("")
    lines.extend([
        "Examples:",
        "  weathr --simulate rain",
        "  weathr --simulate snow --night",
        "  weathr -s thunderstorm -n",
    ])
    return '\n'.join(lines)


class ParticleKind(Enum):
    """Kinds of particle the ParticleSystem can spawn."""
    RAIN = "rain"
    DRIZZLE = "drizzle"
    SLEET = "sleet"
    SNOW = "snow"
    SNOW_GRAIN = "snow_grain"
    HAIL = "hail"
    LEAF = "leaf"
    FOG = "fog"
    SMOKE = "smoke"
    FIREFLY = "firefly"

    @property
    def is_precipitation(self) -> bool:
        return self not in (
            ParticleKind.LEAF,
            ParticleKind.FOG,
            ParticleKind.SMOKE,
            ParticleKind.FIREFLY,
        )


@dataclass(frozen=True)
class AnimationProfile:
    """
    Animation parameters bound to one condition.

    density is the spawn rate in particles per column per second; fall_speed
    and drift are in rows/columns per second; lifetime is in ticks.
    """
    kinds: Tuple[ParticleKind, ...] = ()
    density: float = 0.0
    fall_speed: Tuple[float, float] = (0.0, 0.0)
    drift: Tuple[float, float] = (0.0, 0.0)
    lifetime: Tuple[int, int] = (0, 0)
    lightning: bool = False
    leaves_allowed: bool = False
    cloud_cover: float = 0.0
    airplanes: bool = False
    splash: bool = False

    @property
    def is_empty(self) -> bool:
        """True when the profile would animate nothing at all."""
        return (
            not self.kinds and
            not self.lightning and
            not self.leaves_allowed and
            not self.airplanes and
            self.cloud_cover <= 0.0
        )

    @property
    def has_precipitation(self) -> bool:
        return any(kind.is_precipitation for kind in self.kinds)


# Lifetimes in ticks at 10 fps; ParticleSystem stretches precipitation that
# would expire before reaching the ground
_RAIN_LIFE = (60, 90)
_DRIZZLE_LIFE = (120, 180)
_SNOW_LIFE = (300, 450)
_DRIFT_LIFE = (200, 400)

PROFILES: Dict[WeatherCondition, AnimationProfile] = {
    WeatherCondition.CLEAR: AnimationProfile(
        leaves_allowed=True, airplanes=True,
    ),
    WeatherCondition.PARTLY_CLOUDY: AnimationProfile(
        leaves_allowed=True, airplanes=True, cloud_cover=0.35,
    ),
    WeatherCondition.CLOUDY: AnimationProfile(
        airplanes=True, cloud_cover=0.65,
    ),
    WeatherCondition.OVERCAST: AnimationProfile(
        cloud_cover=1.0,
    ),
    WeatherCondition.FOG: AnimationProfile(
        kinds=(ParticleKind.FOG,), density=0.04, drift=(1.0, 2.5),
        lifetime=_DRIFT_LIFE, cloud_cover=0.8,
    ),
    WeatherCondition.DRIZZLE: AnimationProfile(
        kinds=(ParticleKind.DRIZZLE,), density=0.25, fall_speed=(6.0, 9.0),
        drift=(-0.2, 0.2), lifetime=_DRIZZLE_LIFE, cloud_cover=0.7, splash=True,
    ),
    WeatherCondition.RAIN: AnimationProfile(
        kinds=(ParticleKind.RAIN,), density=0.6, fall_speed=(12.0, 18.0),
        drift=(-0.3, 0.3), lifetime=_RAIN_LIFE, cloud_cover=0.85, splash=True,
    ),
    WeatherCondition.FREEZING_RAIN: AnimationProfile(
        kinds=(ParticleKind.SLEET,), density=0.5, fall_speed=(9.0, 13.0),
        drift=(-0.3, 0.3), lifetime=_RAIN_LIFE, cloud_cover=0.85, splash=True,
    ),
    WeatherCondition.RAIN_SHOWERS: AnimationProfile(
        kinds=(ParticleKind.RAIN,), density=0.9, fall_speed=(14.0, 20.0),
        drift=(-0.4, 0.4), lifetime=_RAIN_LIFE, cloud_cover=0.75, splash=True,
    ),
    WeatherCondition.SNOW: AnimationProfile(
        kinds=(ParticleKind.SNOW,), density=0.35, fall_speed=(2.0, 4.0),
        drift=(-1.0, 1.0), lifetime=_SNOW_LIFE, cloud_cover=0.85, splash=True,
    ),
    WeatherCondition.SNOW_GRAINS: AnimationProfile(
        kinds=(ParticleKind.SNOW_GRAIN,), density=0.3, fall_speed=(3.0, 5.0),
        drift=(-0.5, 0.5), lifetime=_SNOW_LIFE, cloud_cover=0.8, splash=True,
    ),
    WeatherCondition.SNOW_SHOWERS: AnimationProfile(
        kinds=(ParticleKind.SNOW,), density=0.55, fall_speed=(2.5, 5.0),
        drift=(-1.5, 1.5), lifetime=_SNOW_LIFE, cloud_cover=0.75, splash=True,
    ),
    WeatherCondition.THUNDERSTORM: AnimationProfile(
        kinds=(ParticleKind.RAIN,), density=0.8, fall_speed=(15.0, 22.0),
        drift=(-0.5, 0.5), lifetime=_RAIN_LIFE, lightning=True,
        cloud_cover=1.0, splash=True,
    ),
    WeatherCondition.THUNDERSTORM_HAIL: AnimationProfile(
        kinds=(ParticleKind.RAIN, ParticleKind.HAIL), density=0.8,
        fall_speed=(15.0, 22.0), drift=(-0.5, 0.5), lifetime=_RAIN_LIFE,
        lightning=True, cloud_cover=1.0, splash=True,
    ),
}


def profile_for(condition: WeatherCondition) -> AnimationProfile:
    """The animation profile for a condition. Total and pure."""
    return PROFILES[condition]


FIREFLY_CONDITIONS = (WeatherCondition.CLEAR, WeatherCondition.PARTLY_CLOUDY)
FIREFLY_MIN_TEMPERATURE_C = 15.0


def fireflies_visible(condition: WeatherCondition, temperature_c: Optional[float],
                      is_night: bool) -> bool:
    """Fireflies come out on warm nights under a clear or partly cloudy sky."""
    if not is_night or temperature_c is None:
        return False
    return condition in FIREFLY_CONDITIONS and temperature_c > FIREFLY_MIN_TEMPERATURE_C


# WMO weather interpretation codes as reported by Open-Meteo
WMO_CODES: Dict[int, WeatherCondition] = {
    0: WeatherCondition.CLEAR,
    1: WeatherCondition.PARTLY_CLOUDY,
    2: WeatherCondition.CLOUDY,
    3: WeatherCondition.OVERCAST,
    45: WeatherCondition.FOG,
    48: WeatherCondition.FOG,
    51: WeatherCondition.DRIZZLE,
    53: WeatherCondition.DRIZZLE,
    55: WeatherCondition.DRIZZLE,
    56: WeatherCondition.FREEZING_RAIN,
    57: WeatherCondition.FREEZING_RAIN,
    61: WeatherCondition.RAIN,
    63: WeatherCondition.RAIN,
    65: WeatherCondition.RAIN,
    66: WeatherCondition.FREEZING_RAIN,
    67: WeatherCondition.FREEZING_RAIN,
    71: WeatherCondition.SNOW,
    73: WeatherCondition.SNOW,
    75: WeatherCondition.SNOW,
    77: WeatherCondition.SNOW_GRAINS,
    80: WeatherCondition.RAIN_SHOWERS,
    81: WeatherCondition.RAIN_SHOWERS,
    82: WeatherCondition.RAIN_SHOWERS,
    85: WeatherCondition.SNOW_SHOWERS,
    86: WeatherCondition.SNOW_SHOWERS,
    95: WeatherCondition.THUNDERSTORM,
    96: WeatherCondition.THUNDERSTORM_HAIL,
    99: WeatherCondition.THUNDERSTORM_HAIL,
}

FALLBACK_CONDITION = WeatherCondition.CLOUDY


def lookup_code(code: int) -> WeatherCondition:
    """Strict lookup; raises UnmappedCondition for unknown codes."""
    try:
        return WMO_CODES[code]
    except KeyError:
        raise UnmappedCondition(code) from None


def condition_from_code(code: int) -> WeatherCondition:
    """Map a WMO code to a condition, falling back to Cloudy."""
    try:
        return lookup_code(code)
    except UnmappedCondition as e:
        handle_error(e, "weather code mapping", details={'showing': FALLBACK_CONDITION.value})
        return FALLBACK_CONDITION
