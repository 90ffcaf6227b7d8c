"""
Geolocation - IP-based location lookup and reverse geocoding.

locate_by_ip() asks ipinfo.io where we are (retrying transient failures with
exponential backoff) and caches the answer for a day. city_for() asks
Nominatim/OpenStreetMap for the settlement name at a coordinate.
"""

import json
import logging
import time
import urllib.parse
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .client import get_json
from .config import cache_dir
from .errors import GeocodeNotFound, NetworkFailure
from .models import validate_coordinates
from .utils.error_handling import (
    ErrorCategory,
    handle_error,
    safe_execute,
    with_error_handling,
)

logger = logging.getLogger(__name__)

IPINFO_URL = "https://ipinfo.io/json"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"

CACHE_FILENAME = "location.json"
CACHE_MAX_AGE = 24 * 60 * 60

MAX_ATTEMPTS = 3
INITIAL_BACKOFF = 0.5


@dataclass(frozen=True)
class GeoLocation:
    """Result of an IP lookup."""
    latitude: float
    longitude: float
    city: Optional[str] = None


def _is_retryable(error: Exception) -> bool:
    return isinstance(error, NetworkFailure) and error.retryable


@with_error_handling(
    category=ErrorCategory.NETWORK,
    operation="ip geolocation",
    reraise=True,
    retry_count=MAX_ATTEMPTS - 1,
    retry_delay=INITIAL_BACKOFF,
    retry_backoff=2.0,
    should_retry=_is_retryable,
)
def fetch_ip_location(url: str = IPINFO_URL, timeout: float = 5.0) -> GeoLocation:
    """One ipinfo.io lookup (retried by the decorator)."""
    data = get_json(url, timeout=timeout)
    try:
        lat_str, lon_str = str(data['loc']).split(',')
        latitude, longitude = float(lat_str), float(lon_str)
        validate_coordinates(latitude, longitude)
    except (KeyError, TypeError, ValueError) as e:
        raise NetworkFailure(f"Invalid location in response: {e}", url, retryable=False) from e
    return GeoLocation(latitude, longitude, data.get('city') or None)


class LocationCache:
    """JSON file holding the last IP lookup and when it was made."""

    def __init__(self, path: Optional[Path] = None, max_age: float = CACHE_MAX_AGE,
                 clock: Callable[[], float] = time.time):
        self.path = Path(path) if path is not None else cache_dir() / CACHE_FILENAME
        self.max_age = max_age
        self._clock = clock

    def load(self) -> Optional[GeoLocation]:
        """Cached location, or None if missing, unreadable or expired."""
        if not self.path.exists():
            return None
        with safe_execute("reading location cache", ErrorCategory.FILESYSTEM) as result:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            age = self._clock() - float(data['cached_at'])
            if 0 <= age <= self.max_age:
                latitude, longitude = float(data['latitude']), float(data['longitude'])
                validate_coordinates(latitude, longitude)
                result.value = GeoLocation(latitude, longitude, data.get('city') or None)
            else:
                logger.debug(f"Location cache expired ({age:.0f}s old)")
        return result.value

    def save(self, location: GeoLocation):
        with safe_execute("writing location cache", ErrorCategory.FILESYSTEM):
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump({
                    'latitude': location.latitude,
                    'longitude': location.longitude,
                    'city': location.city,
                    'cached_at': self._clock(),
                }, f)


def locate_by_ip(cache: Optional[LocationCache] = None,
                 fetch: Callable[[], GeoLocation] = fetch_ip_location) -> GeoLocation:
    """
    Detect the location from the public IP.

    Returns the cached result when it is less than a day old.
    Raises NetworkFailure once all attempts are used up.
    """
    cache = cache or LocationCache()
    cached = cache.load()
    if cached is not None:
        logger.info(f"Using cached location ({cached.latitude:.4f}, {cached.longitude:.4f})")
        return cached

    location = fetch()
    cache.save(location)
    return location


def city_for(latitude: float, longitude: float, language: str = "auto",
             url: str = NOMINATIM_URL, timeout: float = 5.0) -> str:
    """
    Name of the city, town or village at a coordinate.

    Raises GeocodeNotFound when no settlement is known there, NetworkFailure
    when Nominatim cannot be reached.
    """
    params = urllib.parse.urlencode({
        'lat': latitude,
        'lon': longitude,
        'format': 'json',
        'zoom': 10,
    })
    headers = {}
    if language and language != 'auto':
        headers['Accept-Language'] = language

    data = get_json(f"{url}?{params}", headers=headers, timeout=timeout)
    address = data.get('address') if isinstance(data, dict) else None
    if not isinstance(address, dict) or not address:
        raise GeocodeNotFound(f"No address for ({latitude}, {longitude})")

    for key in ('city', 'town', 'village'):
        if address.get(key):
            return address[key]
    raise GeocodeNotFound(f"No settlement at ({latitude}, {longitude})")


def reverse_geocode(latitude: float, longitude: float, language: str = "auto",
                    lookup: Callable[..., str] = city_for) -> Optional[str]:
    """Best-effort city lookup; None means show coordinates instead."""
    try:
        return lookup(latitude, longitude, language)
    except (GeocodeNotFound, NetworkFailure) as e:
        handle_error(e, "reverse geocoding", details={'showing': 'coordinates'})
    return None
