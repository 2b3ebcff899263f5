import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class ZoneConfig:
    """Per-deployment constants for one festival zone."""
    key: str
    display_name: str
    db_name: str
    id_prefix: str
    primary_color: Tuple[float, float, float]

    @property
    def db_slug(self) -> str:
        return self.db_name.lower().replace(' ', '_').replace('-', '_')


ZONES: Dict[str, ZoneConfig] = {
    'a': ZoneConfig('a', 'A Zone', 'A-Zone', 'KRT', (0.69, 0.18, 0.51)),
    'c': ZoneConfig('c', 'C Zone', 'C-Zone', 'KLM', (0.01, 0.13, 0.38)),
    'd': ZoneConfig('d', 'D Zone', 'D-Zone', 'KPM', (0.52, 0.17, 0.89)),
    'f': ZoneConfig('f', 'F Zone', 'F-Zone', 'KSK', (0.35, 0.78, 0.81)),
}


def resolve_zone(zone_key: Optional[str]) -> ZoneConfig:
    """Look up a zone by its key (case-insensitive)."""
    zone = ZONES.get((zone_key or '').strip().lower())
    if zone is None:
        raise ValueError(f"Unknown festival zone: {zone_key!r}")
    return zone


class Config:
    """Festival backend configuration settings"""

    # Zone settings
    FEST_ZONE = os.getenv('FEST_ZONE', 'c')

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL')

    # Runtime settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')

    # Leaderboard settings
    TOP_SCORER_LIMIT = int(os.getenv('TOP_SCORER_LIMIT', 10))
    LEADERBOARD_REFRESH_IN_BACKGROUND = os.getenv('LEADERBOARD_REFRESH_IN_BACKGROUND', 'True').lower() == 'true'

    _zone: Optional[ZoneConfig] = None

    @classmethod
    def get_zone(cls) -> ZoneConfig:
        """Resolve the configured zone once and reuse it afterwards"""
        if cls._zone is None or cls._zone.key != cls.FEST_ZONE.strip().lower():
            cls._zone = resolve_zone(cls.FEST_ZONE)
        return cls._zone

    @classmethod
    def get_database_url(cls, zone: Optional[ZoneConfig] = None) -> str:
        """Database URL, defaulting to a per-zone SQLite file"""
        if cls.DATABASE_URL:
            return cls.DATABASE_URL
        return f"sqlite:///{(zone or cls.get_zone()).db_slug}.db"

    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        cls.get_zone()
        if cls.TOP_SCORER_LIMIT < 1:
            raise ValueError("TOP_SCORER_LIMIT must be a positive integer")
