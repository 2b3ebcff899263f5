import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from festival.config import Config, ZoneConfig

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def log_file_path(zone: ZoneConfig, day: Optional[date] = None) -> Path:
    """Daily log file for one zone, e.g. logs/festival_c_20261019.log"""
    day = day or date.today()
    return Path(Config.LOG_DIR) / f'festival_{zone.key}_{day:%Y%m%d}.log'

def setup_logger(name: str, zone: Optional[ZoneConfig] = None) -> logging.Logger:
    """
    Logger writing to stdout and to the zone's daily log file.

    Handlers are attached once per logger name; later calls return the
    configured logger unchanged.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = logging.DEBUG if Config.DEBUG else logging.INFO
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    path = log_file_path(zone or Config.get_zone())
    path.parent.mkdir(parents=True, exist_ok=True)
    # The file keeps debug detail even when the console does not
    file_handler = logging.FileHandler(path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    return logger
