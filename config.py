"""
config.py — Application configuration read from the environment.

Variables (a .env file is loaded at startup when present):
- SECRET_KEY
- PLANT_STORE_BACKEND     sqlite | file | memory   (default: sqlite)
- PLANT_STORE_PATH        database or JSON file path (default: data/plants.db)
- BACKUP_DIR              where journal snapshots go (default: backups/)
- LOG_LEVEL               default: INFO
- WATERING_INTERVAL_DAYS  default: 7
"""

import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    PLANT_STORE_BACKEND = os.environ.get('PLANT_STORE_BACKEND') or 'sqlite'
    PLANT_STORE_PATH = os.environ.get('PLANT_STORE_PATH') or os.path.join(BASE_DIR, 'data', 'plants.db')
    BACKUP_DIR = os.environ.get('BACKUP_DIR') or os.path.join(BASE_DIR, 'backups')
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    WATERING_INTERVAL_DAYS = int(os.environ.get('WATERING_INTERVAL_DAYS') or 7)
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024  # model replies and imports


class DevelopmentConfig(Config):
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    DEBUG = False
    TESTING = False


class TestingConfig(Config):
    TESTING = True
    PLANT_STORE_BACKEND = 'memory'
    LOG_LEVEL = 'WARNING'


CONFIGS = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}


def get_config(name=None):
    """Config class for `name`, or for APP_ENV (default: development)."""
    name = name or os.environ.get('APP_ENV') or 'development'
    try:
        return CONFIGS[name]
    except KeyError:
        raise ValueError(f"Unknown APP_ENV: {name!r}") from None
