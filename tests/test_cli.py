"""
Tests for the weathr command line.

The animation loop, IP geolocation and reverse geocoding are replaced so
nothing touches the terminal or the network.
"""

import logging
import os
import sys
from types import SimpleNamespace

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from weathr import app, cli
from weathr.app import AnimationLoop
from weathr.conditions import WeatherCondition
from weathr.config import LocationDisplay
from weathr.errors import NetworkFailure, TerminalError
from weathr.geolocation import GeoLocation
from weathr.models import TemperatureUnit
from weathr.utils.error_handling import ErrorCategory, get_error_tally


class CursesError(Exception):
    pass


class RecordingLoop:
    """Stands in for AnimationLoop and remembers how it was built."""

    instances = []
    raise_on_run = None

    def __init__(self, config, simulation=None, location=None, night=False, leaves=False):
        self.config = config
        self.simulation = simulation
        self.location = location
        self.night = night
        self.leaves = leaves
        self.ran = False
        RecordingLoop.instances.append(self)

    def run(self):
        self.ran = True
        if RecordingLoop.raise_on_run is not None:
            raise RecordingLoop.raise_on_run


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.delenv("WEATHR_LATITUDE", raising=False)
    monkeypatch.delenv("WEATHR_LONGITUDE", raising=False)
    monkeypatch.setattr(cli, "AnimationLoop", RecordingLoop)
    monkeypatch.setattr(cli, "reverse_geocode", lambda lat, lon, language="auto": None)
    RecordingLoop.instances = []
    RecordingLoop.raise_on_run = None
    get_error_tally().clear()
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()


def run_main(tmp_path, *argv):
    return cli.main(["--log-file", str(tmp_path / "weathr.log"), *argv])


def write_config(tmp_path, text):
    path = tmp_path / "config.toml"
    path.write_text(text, encoding="utf-8")
    return path


class TestInformational:
    def test_list_conditions(self, capsys):
        assert cli.main(["--list-conditions"]) == 0
        out = capsys.readouterr().out
        for condition in WeatherCondition:
            assert condition.value in out
        assert RecordingLoop.instances == []

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--version"])
        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "weathr 1.0.0" in out
        assert "Open-Meteo" in out
        assert "OpenStreetMap" in out

    def test_units_are_exclusive(self):
        with pytest.raises(SystemExit):
            cli.main(["--imperial", "--metric"])


class TestSimulate:
    def test_invalid_condition(self, capsys):
        assert cli.main(["--simulate", "tornado"]) == 1
        err = capsys.readouterr().err
        assert "Error: Unknown weather condition 'tornado'" in err
        assert "thunderstorm-hail" in err
        assert RecordingLoop.instances == []

    def test_valid_condition(self, tmp_path, capsys):
        assert run_main(tmp_path, "--simulate", "snow", "--night", "--leaves") == 0
        loop = RecordingLoop.instances[0]
        assert loop.ran
        assert loop.simulation.condition is WeatherCondition.SNOW
        assert loop.simulation.night and loop.simulation.leaves
        # Location resolution is skipped when simulating
        assert "defaulting to Berlin" not in capsys.readouterr().err

    def test_condition_name_forms(self, tmp_path):
        run_main(tmp_path, "-s", "Thunderstorm_Hail")
        assert RecordingLoop.instances[0].simulation.condition is WeatherCondition.THUNDERSTORM_HAIL


class TestLiveStartup:
    def test_default_location_warning(self, tmp_path, capsys):
        assert run_main(tmp_path) == 0
        loop = RecordingLoop.instances[0]
        assert loop.simulation is None
        assert (loop.location.latitude, loop.location.longitude) == (52.52, 13.41)
        assert "defaulting to Berlin" in capsys.readouterr().err

    def test_flags_become_overrides(self, tmp_path):
        run_main(tmp_path, "--imperial", "--hide-hud", "--hide-location", "--silent")
        config = RecordingLoop.instances[0].config
        assert config.units.temperature is TemperatureUnit.FAHRENHEIT
        assert config.hide_hud
        assert config.location.hide
        assert config.silent

    def test_night_and_leaves_without_simulation(self, tmp_path):
        run_main(tmp_path, "--night", "--leaves")
        loop = RecordingLoop.instances[0]
        assert loop.night and loop.leaves

    def test_env_location(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("WEATHR_LATITUDE", "40.7128")
        monkeypatch.setenv("WEATHR_LONGITUDE", "-74.006")
        run_main(tmp_path)
        loop = RecordingLoop.instances[0]
        assert loop.location.latitude == pytest.approx(40.7128)
        captured = capsys.readouterr()
        assert "Location overridden via environment" in captured.out
        assert "defaulting to Berlin" not in captured.err

    def test_auto_location(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(cli, "locate_by_ip", lambda: GeoLocation(48.8566, 2.3522, "Paris"))
        run_main(tmp_path, "--auto-location")
        loop = RecordingLoop.instances[0]
        assert loop.location.city == "Paris"
        assert "Location detected: Paris (48.8566, 2.3522)" in capsys.readouterr().out

    def test_auto_location_failure_keeps_config(self, tmp_path, monkeypatch, capsys):
        def down():
            raise NetworkFailure("Unreachable", "https://ipinfo.io/json")

        monkeypatch.setattr(cli, "locate_by_ip", down)
        assert run_main(tmp_path, "--auto-location") == 0
        assert RecordingLoop.instances[0].location.latitude == 52.52
        assert "Network error" in capsys.readouterr().err

    def test_city_lookup_for_mixed_display(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(cli, "reverse_geocode", lambda lat, lon, language="auto": "Berlin")
        path = write_config(tmp_path, '[location]\nlatitude = 52.52\nlongitude = 13.41\ndisplay = "mixed"\n')
        run_main(tmp_path, "--config", str(path))
        loop = RecordingLoop.instances[0]
        assert loop.config.location.display is LocationDisplay.MIXED
        assert loop.location.city == "Berlin"
        assert "City resolved: Berlin" in capsys.readouterr().out

    def test_no_city_lookup_when_hidden(self, tmp_path, monkeypatch):
        def lookup(lat, lon, language="auto"):
            raise AssertionError("should not look up")

        monkeypatch.setattr(cli, "reverse_geocode", lookup)
        path = write_config(tmp_path, '[location]\ndisplay = "city"\n')
        assert run_main(tmp_path, "--config", str(path), "--hide-location") == 0

    def test_silent_suppresses_progress(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(cli, "locate_by_ip", lambda: GeoLocation(1.0, 2.0, None))
        run_main(tmp_path, "--auto-location", "--silent")
        assert capsys.readouterr().out == ""


class TestErrors:
    def test_bad_config_falls_back_to_defaults(self, tmp_path, capsys):
        path = write_config(tmp_path, "[location\nlatitude = ")
        assert run_main(tmp_path, "--config", str(path)) == 0
        err = capsys.readouterr().err
        assert "Error loading config" in err
        assert "Example config.toml" in err
        assert RecordingLoop.instances[0].location.latitude == 52.52

    def test_out_of_range_config(self, tmp_path, capsys):
        path = write_config(tmp_path, "[location]\nlatitude = 123.0\n")
        assert run_main(tmp_path, "--config", str(path)) == 0
        assert "Error loading config" in capsys.readouterr().err

    def test_terminal_error_exit_code(self, tmp_path, capsys):
        RecordingLoop.raise_on_run = TerminalError("no tty")
        assert run_main(tmp_path, "-s", "clear") == 1
        assert "Terminal error: no tty" in capsys.readouterr().err

    def test_curses_setup_failure_exit_code(self, tmp_path, monkeypatch, capsys):
        def no_terminal(main_loop):
            raise CursesError("setupterm: could not find terminal")

        monkeypatch.setattr(cli, "AnimationLoop", AnimationLoop)
        monkeypatch.setattr(app, "curses", SimpleNamespace(wrapper=no_terminal, error=CursesError))
        monkeypatch.setattr(app, "CURSES_AVAILABLE", True)

        assert run_main(tmp_path, "--simulate", "rain") == 1
        assert "Terminal error: setupterm: could not find terminal" in capsys.readouterr().err
        assert get_error_tally().count(ErrorCategory.TERMINAL) == 1

    def test_session_errors_logged_on_exit(self, tmp_path):
        path = write_config(tmp_path, "[location]\nlatitude = 123.0\n")
        run_main(tmp_path, "--config", str(path))
        log = (tmp_path / "weathr.log").read_text(encoding="utf-8")
        assert "loading config failed [config]" in log
        assert "Errors this session: 1 config" in log

    def test_ctrl_c_is_clean_exit(self, tmp_path):
        RecordingLoop.raise_on_run = KeyboardInterrupt()
        assert run_main(tmp_path, "-s", "clear") == 0


class TestLogging:
    def test_log_file_written(self, tmp_path):
        run_main(tmp_path, "-s", "rain")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "weathr 1.0.0 starting" in (tmp_path / "weathr.log").read_text(encoding="utf-8")

    def test_unwritable_log_file(self, tmp_path, capsys):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        assert cli.configure_logging(blocker / "weathr.log") is None
        assert "cannot write log file" in capsys.readouterr().err

    def test_verbose_level(self, tmp_path):
        cli.configure_logging(tmp_path / "weathr.log", verbose=True)
        assert logging.getLogger().level == logging.DEBUG
