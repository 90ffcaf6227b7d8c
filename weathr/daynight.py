"""
Day/Night Model - Sky colors and sun/moon position from the time of day.

Times are day fractions in [0, 1) of local solar time. Around sunrise and
sunset the palette blends linearly between day and night over the twilight
window so the sky never changes color abruptly between frames.
"""

import math
from dataclasses import dataclass
from datetime import datetime, time as dt_time, timezone
from typing import Optional, Tuple, Union

from .colors import Color, Colors

MINUTES_PER_DAY = 24 * 60

# Night-factor at which stars come out
STARS_THRESHOLD = 0.75

# Where the moon sits when night is forced (fraction of its arc)
FORCED_NIGHT_MOON_PROGRESS = 0.7

# Highest row of the sun/moon arc (row 1 is the HUD)
ARC_TOP_ROW = 3
ARC_MARGIN = 4

# Axial tilt in degrees
EARTH_TILT = 23.44


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def smoothstep(x: float) -> float:
    x = clamp(x, 0.0, 1.0)
    return x * x * (3 - 2 * x)


def day_fraction(value: Union[datetime, dt_time, float]) -> float:
    """Convert a datetime, time or plain fraction to a day fraction in [0, 1)."""
    if isinstance(value, (datetime, dt_time)):
        seconds = value.hour * 3600 + value.minute * 60 + value.second + value.microsecond / 1e6
        return (seconds / 86400.0) % 1.0
    return float(value) % 1.0


def solar_day_fraction(utc_now: datetime, longitude: float) -> float:
    """Local mean solar time at a longitude, as a day fraction."""
    if utc_now.tzinfo is not None:
        utc_now = utc_now.astimezone(timezone.utc)
    return (day_fraction(utc_now) + longitude / 360.0) % 1.0


def arc_position(progress: float, width: int, height: int) -> Tuple[int, int]:
    """
    (row, col) on a parabolic arc across the sky.

    progress 0 is the left edge, 1 the right edge; the arc peaks at
    ARC_TOP_ROW in the middle and drops to a third of the height at the edges.
    """
    progress = clamp(progress, 0.0, 1.0)
    min_row = ARC_TOP_ROW
    max_row = max(min_row, height // 3)
    arc_height = max_row - min_row
    centered = progress - 0.5
    row = int(min_row + arc_height * 4 * (centered ** 2))
    span = max(0, width - 1 - 2 * ARC_MARGIN)
    col = int(round(ARC_MARGIN + span * progress)) if span else width // 2
    return row, col


@dataclass(frozen=True)
class SkyPalette:
    """Everything the backdrop needs to paint the sky for one frame."""
    top: Color
    bottom: Color
    night_factor: float
    stars_visible: bool
    celestial: str          # "sun" or "moon"
    celestial_pos: Tuple[int, int]
    phase: str              # day, dawn, dusk, night

    @property
    def is_night(self) -> bool:
        return self.night_factor >= 0.5

    def color_at(self, row: int, height: int) -> Color:
        """Vertical gradient from top to bottom."""
        if height <= 1:
            return self.top
        return self.top.lerp(self.bottom, row / (height - 1))


class DayNightModel:
    """
    Sunrise/sunset times plus the twilight window.

    sky_for() has no side effects and keeps no state between calls.
    """

    def __init__(self, sunrise: float = 0.25, sunset: float = 0.75,
                 twilight_minutes: float = 45.0, polar: Optional[str] = None):
        if not 0.0 <= sunrise <= sunset <= 1.0:
            raise ValueError(f"Need 0 <= sunrise <= sunset <= 1, got {sunrise}, {sunset}")
        self.sunrise = sunrise
        self.sunset = sunset
        self.twilight_minutes = max(0.0, twilight_minutes)
        self.polar = polar  # None, "day" or "night"

    @classmethod
    def for_location(cls, latitude: float, day_of_year: int,
                     twilight_minutes: float = 45.0) -> 'DayNightModel':
        """Sunrise/sunset in solar time from the sun's declination."""
        declination = math.radians(EARTH_TILT) * math.sin(2 * math.pi * (284 + day_of_year) / 365.0)
        cos_hour_angle = -math.tan(math.radians(latitude)) * math.tan(declination)
        if cos_hour_angle >= 1.0:
            return cls(0.5, 0.5, twilight_minutes, polar="night")
        if cos_hour_angle <= -1.0:
            return cls(0.0, 1.0, twilight_minutes, polar="day")
        half_day = math.acos(cos_hour_angle) / (2 * math.pi)
        return cls(0.5 - half_day, 0.5 + half_day, twilight_minutes)

    def __repr__(self) -> str:
        return (
            f"DayNightModel(sunrise={self.sunrise:.3f}, sunset={self.sunset:.3f}, "
            f"twilight_minutes={self.twilight_minutes}, polar={self.polar!r})"
        )

    def night_factor(self, fraction: float) -> float:
        """0.0 in full day, 1.0 in full night, linear across twilight."""
        if self.polar == "day":
            return 0.0
        if self.polar == "night":
            return 1.0

        window = self.twilight_minutes / MINUTES_PER_DAY
        midday = (self.sunrise + self.sunset) / 2
        midnight = (midday + 0.5) % 1.0

        # Pick the edge of the half-day we are in
        if _between(fraction, midnight, midday):
            edge, rising = self.sunrise, True
        else:
            edge, rising = self.sunset, False

        offset = _signed_offset(fraction, edge)
        if window <= 0:
            darkness = 1.0 if offset < 0 else 0.0
        else:
            darkness = clamp((window - offset) / (2 * window), 0.0, 1.0)
        return darkness if rising else 1.0 - darkness

    def phase(self, fraction: float) -> str:
        window = self.twilight_minutes / MINUTES_PER_DAY
        if self.polar is not None:
            return self.polar
        if abs(_signed_offset(fraction, self.sunrise)) < window:
            return "dawn"
        if abs(_signed_offset(fraction, self.sunset)) < window:
            return "dusk"
        return "day" if self.sunrise <= fraction < self.sunset else "night"

    def _twilight_glow(self, fraction: float) -> float:
        window = self.twilight_minutes / MINUTES_PER_DAY
        if self.polar is not None or window <= 0:
            return 0.0
        nearest = min(abs(_signed_offset(fraction, self.sunrise)),
                      abs(_signed_offset(fraction, self.sunset)))
        return smoothstep(1.0 - clamp(nearest, 0.0, window) / window)

    def _celestial(self, fraction: float) -> Tuple[str, float]:
        if self.polar == "day" or (self.polar is None and self.sunrise <= fraction < self.sunset):
            length = self.sunset - self.sunrise
            return "sun", (fraction - self.sunrise) / length if length > 0 else 0.5
        night_length = 1.0 - (self.sunset - self.sunrise)
        if night_length <= 0:
            return "moon", 0.5
        return "moon", ((fraction - self.sunset) % 1.0) / night_length

    def sky_for(self, local_time: Union[datetime, dt_time, float], width: int, height: int,
                night_override: bool = False) -> SkyPalette:
        """
        Sky palette for a moment.

        With night_override the night palette and moon are used whatever the
        clock says.
        """
        if night_override:
            return SkyPalette(
                top=Colors.NIGHT_SKY_TOP,
                bottom=Colors.NIGHT_SKY_BOTTOM,
                night_factor=1.0,
                stars_visible=True,
                celestial="moon",
                celestial_pos=arc_position(FORCED_NIGHT_MOON_PROGRESS, width, height),
                phase="night",
            )

        fraction = day_fraction(local_time)
        night = self.night_factor(fraction)
        top = Colors.DAY_SKY_TOP.lerp(Colors.NIGHT_SKY_TOP, night)
        bottom = Colors.DAY_SKY_BOTTOM.lerp(Colors.NIGHT_SKY_BOTTOM, night)
        glow = self._twilight_glow(fraction)
        if glow > 0:
            bottom = bottom.lerp(Colors.TWILIGHT_GLOW, 0.5 * glow)

        celestial, progress = self._celestial(fraction)
        return SkyPalette(
            top=top,
            bottom=bottom,
            night_factor=night,
            stars_visible=night >= STARS_THRESHOLD,
            celestial=celestial,
            celestial_pos=arc_position(progress, width, height),
            phase=self.phase(fraction),
        )


def _between(x: float, start: float, end: float) -> bool:
    """x in [start, end) on the circular day."""
    if start <= end:
        return start <= x < end
    return x >= start or x < end


def _signed_offset(x: float, edge: float) -> float:
    """Shortest signed distance from edge to x on the circular day."""
    return (x - edge + 0.5) % 1.0 - 0.5
