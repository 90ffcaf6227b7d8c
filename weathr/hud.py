"""
HUD - The status text drawn over the top-left corner of the scene.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple

from .colors import Colors, Style
from .conditions import WeatherCondition
from .config import LocationDisplay
from .models import Reading, WeatherUnits

# Top-left anchor of the HUD
HUD_ROW = 1
HUD_COL = 2

LOADING_CHARS = ['|', '/', '-', '\\']

QUIT_HINT = "Press 'q' to quit"


@dataclass(frozen=True)
class HudText:
    """Lines of HUD text with their styles, top to bottom."""
    lines: Tuple[Tuple[str, Style], ...] = field(default_factory=tuple)
    row: int = HUD_ROW
    col: int = HUD_COL

    @property
    def text(self) -> str:
        return '\n'.join(line for line, _ in self.lines)


def _round2(value: float) -> str:
    """Two decimals, halves rounded away from zero (13.405 -> 13.41)."""
    return str(Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def format_coordinates(latitude: float, longitude: float) -> str:
    """'52.52°N, 13.41°E'; southern and western values get S and W."""
    lat_letter = 'N' if latitude >= 0 else 'S'
    lon_letter = 'E' if longitude >= 0 else 'W'
    return f"{_round2(abs(latitude))}°{lat_letter}, {_round2(abs(longitude))}°{lon_letter}"


def format_location(latitude: float, longitude: float, city: Optional[str],
                    display: LocationDisplay, hide: bool = False) -> Optional[str]:
    """
    Location segment of the HUD, or None when hidden.

    city and mixed modes fall back to plain coordinates when no city is known.
    """
    if hide:
        return None
    coordinates = format_coordinates(latitude, longitude)
    if not city or display is LocationDisplay.COORDINATES:
        return f"Location: {coordinates}"
    if display is LocationDisplay.CITY:
        return f"Location: {city}"
    return f"Location: {city} ({coordinates})"


def loading_char(frame: int) -> str:
    return LOADING_CHARS[frame % len(LOADING_CHARS)]


def format_readings(reading: Reading, units: WeatherUnits) -> List[str]:
    """Temp / wind / precipitation segments in the configured units."""
    converted = reading.converted(units)
    return [
        f"Temp: {converted.temperature.format(1)}",
        f"Wind: {converted.wind_speed.format(1)}",
        f"Precip: {converted.precipitation.format(1)}",
    ]


def format_hud(
    condition: Optional[WeatherCondition],
    reading: Optional[Reading],
    units: WeatherUnits,
    location_text: Optional[str],
    warning: Optional[str] = None,
    frame: int = 0,
) -> HudText:
    """
    Build the HUD.

    condition None means the first fetch is still pending and shows a
    spinner. A warning goes on its own line below the status line.
    """
    if condition is None:
        segments = [f"Weather: Loading... {loading_char(frame)}"]
    else:
        segments = [f"Weather: {condition.display_name}"]
        if reading is not None:
            segments.extend(format_readings(reading, units))
    if location_text:
        segments.append(location_text)
    segments.append(QUIT_HINT)

    lines: List[Tuple[str, Style]] = [(' | '.join(segments), Colors.HUD)]
    if warning:
        lines.append((warning, Colors.HUD_WARNING))
    return HudText(tuple(lines))
