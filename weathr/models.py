"""
Weathr Data Models - Units, readings and location.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from .errors import InvalidLocationError


class TemperatureUnit(Enum):
    """Temperature units understood by the provider."""
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"

    @property
    def symbol(self) -> str:
        return "°C" if self is TemperatureUnit.CELSIUS else "°F"

    def to_base(self, value: float) -> float:
        """Convert to celsius."""
        if self is TemperatureUnit.FAHRENHEIT:
            return (value - 32.0) * 5.0 / 9.0
        return value

    def from_base(self, value: float) -> float:
        """Convert from celsius."""
        if self is TemperatureUnit.FAHRENHEIT:
            return value * 9.0 / 5.0 + 32.0
        return value


class WindSpeedUnit(Enum):
    """Wind speed units understood by the provider."""
    KMH = "kmh"
    MS = "ms"
    MPH = "mph"
    KN = "kn"

    @property
    def symbol(self) -> str:
        return {
            WindSpeedUnit.KMH: "km/h",
            WindSpeedUnit.MS: "m/s",
            WindSpeedUnit.MPH: "mph",
            WindSpeedUnit.KN: "kn",
        }[self]

    @property
    def _kmh_factor(self) -> float:
        # km/h per one of this unit
        return {
            WindSpeedUnit.KMH: 1.0,
            WindSpeedUnit.MS: 3.6,
            WindSpeedUnit.MPH: 1.609344,
            WindSpeedUnit.KN: 1.852,
        }[self]

    def to_base(self, value: float) -> float:
        """Convert to km/h."""
        return value * self._kmh_factor

    def from_base(self, value: float) -> float:
        """Convert from km/h."""
        return value / self._kmh_factor


class PrecipitationUnit(Enum):
    """Precipitation units understood by the provider."""
    MM = "mm"
    INCH = "inch"

    @property
    def symbol(self) -> str:
        return "mm" if self is PrecipitationUnit.MM else "in"

    def to_base(self, value: float) -> float:
        """Convert to millimetres."""
        if self is PrecipitationUnit.INCH:
            return value * 25.4
        return value

    def from_base(self, value: float) -> float:
        """Convert from millimetres."""
        if self is PrecipitationUnit.INCH:
            return value / 25.4
        return value


@dataclass(frozen=True)
class WeatherUnits:
    """Unit preferences for temperature, wind and precipitation."""
    temperature: TemperatureUnit = TemperatureUnit.CELSIUS
    wind_speed: WindSpeedUnit = WindSpeedUnit.KMH
    precipitation: PrecipitationUnit = PrecipitationUnit.MM

    @classmethod
    def metric(cls) -> 'WeatherUnits':
        return cls(TemperatureUnit.CELSIUS, WindSpeedUnit.KMH, PrecipitationUnit.MM)

    @classmethod
    def imperial(cls) -> 'WeatherUnits':
        return cls(TemperatureUnit.FAHRENHEIT, WindSpeedUnit.MPH, PrecipitationUnit.INCH)


@dataclass(frozen=True)
class Measurement:
    """A numeric value tagged with its unit."""
    value: float
    unit: Enum

    def to(self, unit: Enum) -> 'Measurement':
        """Convert to another unit of the same quantity."""
        if unit is self.unit:
            return self
        if type(unit) is not type(self.unit):
            raise TypeError(f"Cannot convert {self.unit} to {unit}")
        return Measurement(unit.from_base(self.unit.to_base(self.value)), unit)

    def format(self, precision: int = 1) -> str:
        return f"{self.value:.{precision}f}{'' if self.unit.symbol.startswith('°') else ' '}{self.unit.symbol}"


@dataclass(frozen=True)
class RawReading:
    """Provider response for the current weather, before condition mapping."""
    weather_code: int
    temperature: float
    apparent_temperature: float = 0.0
    humidity: float = 0.0
    precipitation: float = 0.0
    wind_speed: float = 0.0
    wind_direction: float = 0.0
    cloud_cover: float = 0.0
    is_day: bool = True
    timestamp: str = ""
    units: WeatherUnits = field(default_factory=WeatherUnits)


@dataclass(frozen=True)
class Reading:
    """Scalar readings shown in the HUD and used to drive the wind drift."""
    temperature: Measurement
    wind_speed: Measurement
    precipitation: Measurement
    apparent_temperature: Optional[Measurement] = None
    wind_direction: float = 0.0
    humidity: float = 0.0
    cloud_cover: float = 0.0
    is_day: bool = True
    timestamp: str = ""

    @classmethod
    def from_raw(cls, raw: RawReading) -> 'Reading':
        units = raw.units
        return cls(
            temperature=Measurement(raw.temperature, units.temperature),
            wind_speed=Measurement(raw.wind_speed, units.wind_speed),
            precipitation=Measurement(raw.precipitation, units.precipitation),
            apparent_temperature=Measurement(raw.apparent_temperature, units.temperature),
            wind_direction=raw.wind_direction,
            humidity=raw.humidity,
            cloud_cover=raw.cloud_cover,
            is_day=raw.is_day,
            timestamp=raw.timestamp,
        )

    def converted(self, units: WeatherUnits) -> 'Reading':
        """Return the same reading expressed in other units."""
        return replace(
            self,
            temperature=self.temperature.to(units.temperature),
            wind_speed=self.wind_speed.to(units.wind_speed),
            precipitation=self.precipitation.to(units.precipitation),
            apparent_temperature=(
                self.apparent_temperature.to(units.temperature)
                if self.apparent_temperature is not None else None
            ),
        )

    @property
    def wind_kmh(self) -> float:
        return self.wind_speed.to(WindSpeedUnit.KMH).value

    @property
    def temperature_c(self) -> float:
        return self.temperature.to(TemperatureUnit.CELSIUS).value


@dataclass(frozen=True)
class Location:
    """Where the weather is fetched for. Never mutated once resolved."""
    latitude: float
    longitude: float
    city: Optional[str] = None
    language: str = "auto"

    def __post_init__(self):
        validate_coordinates(self.latitude, self.longitude)

    def with_city(self, city: Optional[str]) -> 'Location':
        return replace(self, city=city)


def validate_coordinates(latitude: float, longitude: float):
    """Raise InvalidLocationError unless lat in [-90,90] and lon in [-180,180]."""
    if not -90.0 <= latitude <= 90.0:
        raise InvalidLocationError(f"Latitude {latitude} out of range [-90, 90]")
    if not -180.0 <= longitude <= 180.0:
        raise InvalidLocationError(f"Longitude {longitude} out of range [-180, 180]")
