"""
Tests for IP geolocation, the location cache and reverse geocoding.
"""

import json
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from weathr import geolocation
from weathr.errors import GeocodeNotFound, NetworkFailure
from weathr.geolocation import (
    GeoLocation,
    LocationCache,
    city_for,
    fetch_ip_location,
    locate_by_ip,
    reverse_geocode,
)
from weathr.utils.error_handling import get_error_tally


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    delays = []
    monkeypatch.setattr("weathr.utils.error_handling.time.sleep", delays.append)
    get_error_tally().clear()
    return delays


class TestFetchIpLocation:
    def test_parses_loc(self, monkeypatch):
        monkeypatch.setattr(geolocation, "get_json",
                            lambda url, timeout: {"loc": "48.8566,2.3522", "city": "Paris"})
        loc = fetch_ip_location()
        assert loc == GeoLocation(48.8566, 2.3522, "Paris")

    def test_retries_transient_failures(self, monkeypatch, no_sleep):
        calls = []

        def flaky(url, timeout):
            calls.append(url)
            if len(calls) < 3:
                raise NetworkFailure("Unreachable", url)
            return {"loc": "1.0,2.0"}

        monkeypatch.setattr(geolocation, "get_json", flaky)
        assert fetch_ip_location() == GeoLocation(1.0, 2.0, None)
        assert len(calls) == 3
        assert no_sleep == [0.5, 1.0]

    def test_gives_up_after_three_attempts(self, monkeypatch):
        calls = []

        def down(url, timeout):
            calls.append(url)
            raise NetworkFailure("Unreachable", url)

        monkeypatch.setattr(geolocation, "get_json", down)
        with pytest.raises(NetworkFailure):
            fetch_ip_location()
        assert len(calls) == 3

    def test_bad_payload_not_retried(self, monkeypatch):
        calls = []

        def garbage(url, timeout):
            calls.append(url)
            return {"loc": "somewhere"}

        monkeypatch.setattr(geolocation, "get_json", garbage)
        with pytest.raises(NetworkFailure):
            fetch_ip_location()
        assert len(calls) == 1

    def test_out_of_range_payload_rejected(self, monkeypatch):
        monkeypatch.setattr(geolocation, "get_json", lambda url, timeout: {"loc": "95.0,0.0"})
        with pytest.raises(NetworkFailure):
            fetch_ip_location()


class TestLocationCache:
    def test_save_then_load(self, tmp_path):
        cache = LocationCache(tmp_path / "location.json", clock=lambda: 1000.0)
        cache.save(GeoLocation(52.52, 13.41, "Berlin"))
        assert cache.load() == GeoLocation(52.52, 13.41, "Berlin")

    def test_missing_file(self, tmp_path):
        assert LocationCache(tmp_path / "nope.json").load() is None

    def test_expired_entry(self, tmp_path):
        now = [1000.0]
        cache = LocationCache(tmp_path / "location.json", max_age=60, clock=lambda: now[0])
        cache.save(GeoLocation(1.0, 2.0))
        now[0] += 61
        assert cache.load() is None

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "location.json"
        path.write_text("{not json", encoding="utf-8")
        assert LocationCache(path).load() is None

    def test_out_of_range_entry_is_ignored(self, tmp_path):
        path = tmp_path / "location.json"
        path.write_text(json.dumps({
            "latitude": 123.0, "longitude": 13.41, "city": "Nowhere", "cached_at": 1000.0,
        }), encoding="utf-8")
        assert LocationCache(path, clock=lambda: 1000.0).load() is None

    def test_out_of_range_entry_is_refetched(self, tmp_path):
        path = tmp_path / "location.json"
        path.write_text(json.dumps({
            "latitude": 10.0, "longitude": -400.0, "cached_at": 1000.0,
        }), encoding="utf-8")
        cache = LocationCache(path, clock=lambda: 1000.0)
        loc = locate_by_ip(cache, fetch=lambda: GeoLocation(3.0, 4.0, "Fresh"))
        assert loc == GeoLocation(3.0, 4.0, "Fresh")
        assert cache.load() == loc

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "deep" / "er" / "location.json"
        LocationCache(path).save(GeoLocation(1.0, 2.0))
        assert json.loads(path.read_text(encoding="utf-8"))["latitude"] == 1.0


class TestLocateByIp:
    def test_uses_fresh_cache(self, tmp_path):
        cache = LocationCache(tmp_path / "location.json")
        cache.save(GeoLocation(10.0, 20.0, "Cached"))

        def fetch():
            raise AssertionError("should not fetch")

        assert locate_by_ip(cache, fetch=fetch).city == "Cached"

    def test_fetches_and_caches(self, tmp_path):
        cache = LocationCache(tmp_path / "location.json")
        loc = locate_by_ip(cache, fetch=lambda: GeoLocation(3.0, 4.0, "Fresh"))
        assert loc.city == "Fresh"
        assert cache.load() == loc

    def test_failure_propagates(self, tmp_path):
        def fetch():
            raise NetworkFailure("Unreachable")

        with pytest.raises(NetworkFailure):
            locate_by_ip(LocationCache(tmp_path / "location.json"), fetch=fetch)


class TestReverseGeocoding:
    def test_city(self, monkeypatch):
        seen = {}

        def fake(url, headers, timeout):
            seen["url"], seen["headers"] = url, headers
            return {"address": {"city": "Berlin", "country": "Germany"}}

        monkeypatch.setattr(geolocation, "get_json", fake)
        assert city_for(52.52, 13.41, "de") == "Berlin"
        assert seen["headers"] == {"Accept-Language": "de"}
        assert "lat=52.52" in seen["url"]

    def test_auto_language_sends_no_header(self, monkeypatch):
        seen = {}

        def fake(url, headers, timeout):
            seen["headers"] = headers
            return {"address": {"town": "Smalltown"}}

        monkeypatch.setattr(geolocation, "get_json", fake)
        assert city_for(1.0, 2.0) == "Smalltown"
        assert seen["headers"] == {}

    def test_village_fallback(self, monkeypatch):
        monkeypatch.setattr(geolocation, "get_json",
                            lambda url, headers, timeout: {"address": {"village": "Hamlet"}})
        assert city_for(1.0, 2.0) == "Hamlet"

    def test_ocean_is_not_found(self, monkeypatch):
        monkeypatch.setattr(geolocation, "get_json",
                            lambda url, headers, timeout: {"error": "Unable to geocode"})
        with pytest.raises(GeocodeNotFound):
            city_for(0.0, -30.0)

    def test_no_settlement_is_not_found(self, monkeypatch):
        monkeypatch.setattr(geolocation, "get_json",
                            lambda url, headers, timeout: {"address": {"country": "Antarctica"}})
        with pytest.raises(GeocodeNotFound):
            city_for(-80.0, 0.0)

    def test_malformed_address_is_not_found(self, monkeypatch):
        monkeypatch.setattr(geolocation, "get_json",
                            lambda url, headers, timeout: {"address": "Unter den Linden, Berlin"})
        with pytest.raises(GeocodeNotFound):
            city_for(52.52, 13.41)

    def test_reverse_geocode_malformed_address_is_none(self, monkeypatch):
        monkeypatch.setattr(geolocation, "get_json",
                            lambda url, headers, timeout: {"address": ["Berlin"]})
        assert reverse_geocode(52.52, 13.41) is None

    def test_reverse_geocode_not_found_is_none(self):
        def lookup(lat, lon, language):
            raise GeocodeNotFound("nothing here")
        assert reverse_geocode(0.0, 0.0, lookup=lookup) is None

    def test_reverse_geocode_network_failure_is_none(self):
        def lookup(lat, lon, language):
            raise NetworkFailure("down")
        assert reverse_geocode(0.0, 0.0, lookup=lookup) is None

    def test_reverse_geocode_passes_language(self):
        assert reverse_geocode(1.0, 2.0, "fr", lookup=lambda lat, lon, lang: f"{lang}:{lat},{lon}") == "fr:1.0,2.0"
