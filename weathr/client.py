"""
Weather Client - Open-Meteo over HTTP and the fixed --simulate readings.

OpenMeteoProvider implements WeatherProvider. It turns every transport or
decoding problem into FetchResult.fail(NetworkFailure); nothing raises out
of fetch().
"""

import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, Optional

from . import __version__
from .conditions import WMO_CODES, WeatherCondition
from .errors import NetworkFailure
from .models import (
    Location,
    Measurement,
    PrecipitationUnit,
    RawReading,
    TemperatureUnit,
    WeatherUnits,
    WindSpeedUnit,
)
from .protocol import FetchResult, WeatherProvider

logger = logging.getLogger(__name__)

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
USER_AGENT = f"weathr/{__version__}"
DEFAULT_TIMEOUT = 10.0

CURRENT_FIELDS = (
    "temperature_2m",
    "apparent_temperature",
    "relative_humidity_2m",
    "precipitation",
    "weather_code",
    "cloud_cover",
    "wind_speed_10m",
    "wind_direction_10m",
    "is_day",
)


def get_json(url: str, headers: Optional[Dict[str, str]] = None,
             timeout: float = DEFAULT_TIMEOUT) -> Any:
    """
    GET a URL and decode the JSON body.

    Raises NetworkFailure for unreachable hosts, timeouts, HTTP errors and
    undecodable bodies. 4xx responses are not retryable.
    """
    request = urllib.request.Request(url, headers={'User-Agent': USER_AGENT, **(headers or {})})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read()
    except urllib.error.HTTPError as e:
        raise NetworkFailure(f"HTTP {e.code}: {e.reason}", url, retryable=e.code >= 500) from e
    except urllib.error.URLError as e:
        raise NetworkFailure(f"Unreachable: {e.reason}", url) from e
    except (socket.timeout, TimeoutError) as e:
        raise NetworkFailure(f"Timed out after {timeout:.0f}s", url) from e
    except OSError as e:
        raise NetworkFailure(str(e), url) from e

    try:
        return json.loads(body.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise NetworkFailure(f"Invalid JSON response: {e}", url, retryable=False) from e


class OpenMeteoProvider(WeatherProvider):
    """Current weather from the Open-Meteo forecast API (no API key)."""

    name = "open-meteo"

    def __init__(self, base_url: str = OPEN_METEO_URL, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url
        self.timeout = timeout

    def build_url(self, location: Location, units: WeatherUnits) -> str:
        params = {
            'latitude': f"{location.latitude:.4f}",
            'longitude': f"{location.longitude:.4f}",
            'current': ','.join(CURRENT_FIELDS),
            'temperature_unit': units.temperature.value,
            'wind_speed_unit': units.wind_speed.value,
            'precipitation_unit': units.precipitation.value,
            'timezone': 'auto',
        }
        return f"{self.base_url}?{urllib.parse.urlencode(params, safe=',')}"

    def fetch(self, location: Location, units: WeatherUnits) -> FetchResult:
        url = self.build_url(location, units)
        logger.debug(f"Fetching weather: {url}")
        try:
            data = get_json(url, timeout=self.timeout)
            reading = self.parse_response(data, units)
        except NetworkFailure as e:
            logger.warning(f"Weather fetch failed: {e}")
            return FetchResult.fail(e)
        logger.info(
            f"Weather updated: code={reading.weather_code} "
            f"temp={reading.temperature}{units.temperature.symbol}"
        )
        return FetchResult.ok(reading)

    @staticmethod
    def parse_response(data: Any, units: WeatherUnits) -> RawReading:
        """Parse the `current` block of an Open-Meteo response."""
        try:
            current = data['current']
            return RawReading(
                weather_code=int(current['weather_code']),
                temperature=float(current['temperature_2m']),
                apparent_temperature=float(current.get('apparent_temperature') or 0.0),
                humidity=float(current.get('relative_humidity_2m') or 0.0),
                precipitation=float(current.get('precipitation') or 0.0),
                wind_speed=float(current.get('wind_speed_10m') or 0.0),
                wind_direction=float(current.get('wind_direction_10m') or 0.0),
                cloud_cover=float(current.get('cloud_cover') or 0.0),
                is_day=bool(current.get('is_day', 1)),
                timestamp=str(current.get('time', '')),
                units=units,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise NetworkFailure(f"Malformed weather response: missing or bad {e}", retryable=False) from e


def _code_for(condition: WeatherCondition) -> int:
    return min(code for code, cond in WMO_CODES.items() if cond is condition)


def simulated_reading(condition: WeatherCondition, night: bool,
                      units: Optional[WeatherUnits] = None) -> RawReading:
    """
    Fixed reading used for --simulate.

    Values are defined in metric and converted to the requested units, so the
    same override always yields the same reading.
    """
    units = units or WeatherUnits.metric()
    celsius = TemperatureUnit.CELSIUS
    return RawReading(
        weather_code=_code_for(condition),
        temperature=Measurement(20.0, celsius).to(units.temperature).value,
        apparent_temperature=Measurement(19.0, celsius).to(units.temperature).value,
        humidity=65.0,
        precipitation=Measurement(
            2.5 if condition.is_raining else 0.0, PrecipitationUnit.MM
        ).to(units.precipitation).value,
        wind_speed=Measurement(10.0, WindSpeedUnit.KMH).to(units.wind_speed).value,
        wind_direction=180.0,
        cloud_cover=50.0,
        is_day=not night,
        timestamp="",
        units=units,
    )

