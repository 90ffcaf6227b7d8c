"""
Weathr - Live ASCII weather in the terminal

Renders a small house scene whose sky, precipitation, lightning and passing
airplanes follow the current weather at a location (Open-Meteo), or a
simulated condition.

Basic Usage:
    $ weathr
    $ weathr --simulate thunderstorm-hail --night

From Python:
    from weathr import AnimationLoop, Config, WeatherCondition
    from weathr.resolver import SimulationOverride

    loop = AnimationLoop(Config(), simulation=SimulationOverride(WeatherCondition.SNOW))
    loop.run()
"""

__version__ = "1.0.0"

# Core classes
from .app import AnimationLoop, LoopState
from .config import Config, LocationConfig, LocationDisplay, load_config
from .resolver import ConditionResolver, Resolution, SimulationOverride

# Data models
from .conditions import AnimationProfile, ParticleKind, WeatherCondition, profile_for
from .models import Location, Reading, WeatherUnits

# Providers
from .protocol import FetchResult, WeatherProvider
from .client import OpenMeteoProvider

# Visual components
from .colors import ColorCapability, Colors
from .daynight import DayNightModel, SkyPalette
from .weather import Particle, ParticleSystem
from .scene import Scene, WorldScene
from .compositor import SceneCompositor
from .render import Renderer

__all__ = [
    # Version
    "__version__",
    # Core
    "AnimationLoop",
    "LoopState",
    "Config",
    "LocationConfig",
    "LocationDisplay",
    "load_config",
    "ConditionResolver",
    "Resolution",
    "SimulationOverride",
    # Models
    "AnimationProfile",
    "ParticleKind",
    "WeatherCondition",
    "profile_for",
    "Location",
    "Reading",
    "WeatherUnits",
    # Providers
    "FetchResult",
    "WeatherProvider",
    "OpenMeteoProvider",
    # Visual
    "ColorCapability",
    "Colors",
    "DayNightModel",
    "SkyPalette",
    "Particle",
    "ParticleSystem",
    "Scene",
    "WorldScene",
    "SceneCompositor",
    "Renderer",
]
