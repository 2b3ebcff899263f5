"""
Configuration and zone resolution tests.
"""

import pytest

from festival.config import Config, ZONES, resolve_zone


@pytest.fixture
def config(monkeypatch):
    monkeypatch.setattr(Config, "_zone", None)
    monkeypatch.setattr(Config, "DATABASE_URL", None)
    return Config


def test_zone_table():
    assert {key: zone.id_prefix for key, zone in ZONES.items()} == {
        'a': 'KRT', 'c': 'KLM', 'd': 'KPM', 'f': 'KSK'
    }


def test_resolve_zone_is_case_insensitive():
    assert resolve_zone(' D ').display_name == 'D Zone'


@pytest.mark.parametrize("key", ['b', '', None])
def test_unknown_zone(key):
    with pytest.raises(ValueError):
        resolve_zone(key)


def test_zone_is_resolved_once(config, monkeypatch):
    monkeypatch.setattr(Config, "FEST_ZONE", "f")
    zone = config.get_zone()
    assert zone.id_prefix == "KSK"
    assert config.get_zone() is zone


def test_zone_follows_setting_change(config, monkeypatch):
    monkeypatch.setattr(Config, "FEST_ZONE", "a")
    assert config.get_zone().key == "a"
    monkeypatch.setattr(Config, "FEST_ZONE", "c")
    assert config.get_zone().key == "c"


def test_default_database_url_is_per_zone(config, monkeypatch):
    monkeypatch.setattr(Config, "FEST_ZONE", "a")
    assert config.get_database_url() == "sqlite:///a_zone.db"

    monkeypatch.setattr(Config, "DATABASE_URL", "sqlite:///custom.db")
    assert config.get_database_url() == "sqlite:///custom.db"


def test_database_url_for_explicit_zone(config, monkeypatch):
    monkeypatch.setattr(Config, "FEST_ZONE", "c")
    assert config.get_database_url(resolve_zone('f')) == "sqlite:///f_zone.db"


def test_validate(config, monkeypatch):
    monkeypatch.setattr(Config, "FEST_ZONE", "x")
    with pytest.raises(ValueError):
        config.validate()

    monkeypatch.setattr(Config, "FEST_ZONE", "c")
    monkeypatch.setattr(Config, "TOP_SCORER_LIMIT", 0)
    with pytest.raises(ValueError):
        config.validate()
