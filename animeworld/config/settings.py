"""
Central Configuration for AnimeWorld
====================================
This module provides centralized configuration management for the media
client, the recognition client and the user-record API.
"""

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Any
import yaml

# ==============================================================================
# BASE DIRECTORIES
# ==============================================================================

# Config and project directories
CONFIG_DIR = Path(__file__).parent
BASE_DIR = Path(os.getenv('ANIMEWORLD_HOME', Path.cwd()))
DATA_DIR = BASE_DIR / 'data'
LOG_DIR = BASE_DIR / 'logs'

# ==============================================================================
# USER-RECORD STORE
# ==============================================================================

# DuckDB connection string (a file path, or ':memory:')
USER_DB_PATH = os.getenv('USER_DB_PATH', str(DATA_DIR / 'users.duckdb'))
USER_TABLE = 'users'

# Defaults applied to new records
DEFAULT_COUNTRY_CODE = '+91'
DEFAULT_FIRST_NAME = 'User'
DEFAULT_DISPLAY_NAME = 'User'
DEFAULT_ROLE = 'user'
ADMIN_ROLE = 'admin'

# Listing users requires an admin caller (X-User-Id header)
REQUIRE_ADMIN_FOR_USER_LIST = os.getenv('REQUIRE_ADMIN_FOR_USER_LIST', 'false').lower() in ('1', 'true', 'yes')

# ==============================================================================
# HTTP API
# ==============================================================================

API_TITLE = 'AnimeWorld API'
API_VERSION = '1.0.0'
API_HOST = os.getenv('API_HOST', '0.0.0.0')
PORT = int(os.getenv('PORT', '5000'))
API_BASE_URL = os.getenv('API_BASE_URL', f'http://localhost:{PORT}')
API_CLIENT_TIMEOUT = 15  # seconds
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',')
    if origin.strip()
]

# ==============================================================================
# CATALOG API (AniList GraphQL)
# ==============================================================================

ANILIST_API_URL = 'https://graphql.anilist.co'
ANILIST_RATE_LIMIT = 90  # requests per minute
ANILIST_TIMEOUT = 30  # seconds
ANILIST_MAX_RETRIES = 3  # schedule pages only
ANILIST_RETRY_DELAY = 1  # seconds, doubled per attempt
ANILIST_MAX_PAGE_SIZE = 50

# Trending / search / filter
TRENDING_WINDOW_SIZE = 10
SEARCH_MIN_LENGTH = 3
SEARCH_DEBOUNCE_SECONDS = 0.3
SEARCH_PAGE_SIZE = 20
FILTER_PAGE_SIZE = 50
RECOMMENDATIONS_LIMIT = 12
UPCOMING_PAGE_SIZE = 25
RECENT_PAGE_SIZE = 50
TITLE_MATCH_CANDIDATES = 5
TITLE_MATCH_THRESHOLD = 0.6

# Airing schedule pagination
SCHEDULE_DAYS_AHEAD = 7
SCHEDULE_PAGE_SIZE = 25
SCHEDULE_PAGE_DELAY = 0.25  # seconds between pages
SCHEDULE_MAX_PAGES = 10
SCHEDULE_ITEMS_PER_DAY = 10

# Normalization defaults
PLACEHOLDER_COVER_IMAGE = '/fallback-image.jpg'
DEFAULT_COLOR = '#6d28d9'
DEFAULT_DESCRIPTION = 'No description available.'
UNKNOWN_TITLE = 'Unknown Title'

# Bundled data files
FALLBACK_MEDIA_FILE = 'fallback_media.yaml'
SIMULATED_RECOGNITION_FILE = 'simulated_recognition.yaml'

# ==============================================================================
# RECOGNITION PROVIDERS
# ==============================================================================

RECOGNITION_SUPPORTED_FORMATS = (
    'image/jpeg',
    'image/jpg',
    'image/png',
    'image/webp',
    'image/gif',
)
RECOGNITION_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
RECOGNITION_TIMEOUT = 60  # seconds

# trace.moe (anime scenes)
TRACE_MOE_API_URL = 'https://api.trace.moe/search'
TRACE_MOE_MIN_SIMILARITY = 0.0

# SauceNAO (illustrations, manga panels)
SAUCENAO_API_URL = 'https://saucenao.com/search.php'
SAUCENAO_API_KEY = os.getenv('SAUCENAO_API_KEY') or None
SAUCENAO_MATCH_THRESHOLD = 70.0  # percent
SAUCENAO_SIMULATED_DELAY = 0.0  # seconds

# ==============================================================================
# LOGGING CONFIGURATION
# ==============================================================================

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LOG_APP_FILE = LOG_DIR / 'app' / 'app.log'

# Log rotation
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5

# ==============================================================================
# ENVIRONMENT-SPECIFIC CONFIGURATION
# ==============================================================================

ENVIRONMENT = os.getenv('ENVIRONMENT', 'development')  # development, test, production

if ENVIRONMENT == 'development':
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')

elif ENVIRONMENT == 'test':
    SCHEDULE_PAGE_DELAY = 0.0
    ANILIST_RETRY_DELAY = 0

elif ENVIRONMENT == 'production':
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    SAUCENAO_SIMULATED_DELAY = 1.5

# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================

def load_yaml_config(config_file: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Args:
        config_file: Name of the config file (relative to config directory)

    Returns:
        Dictionary containing configuration
    """
    config_path = CONFIG_DIR / config_file
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def ensure_directories():
    """
    Create the data and log directories if they don't exist
    """
    directories = [
        DATA_DIR,
        LOG_APP_FILE.parent,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


def setup_logging(level: str = None, log_file: Path = LOG_APP_FILE):
    """
    Configure root logging once: console plus a rotating file handler.

    Args:
        level: Log level name (defaults to LOG_LEVEL)
        log_file: Rotating log file path, or None for console only
    """
    handlers = [logging.StreamHandler()]
    file_error = None

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
            )
        except OSError as e:
            file_error = e

    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
    )

    if file_error is not None:
        logging.getLogger(__name__).warning(f"File logging disabled: {file_error}")


def validate_configuration():
    """
    Validate that all required configuration is present and valid

    Raises:
        ValueError: If configuration is invalid
    """
    errors = []

    if not ANILIST_API_URL:
        errors.append("AniList API URL not configured")

    if ANILIST_RATE_LIMIT <= 0:
        errors.append(f"Invalid rate limit: {ANILIST_RATE_LIMIT}")

    if not (1 <= TRENDING_WINDOW_SIZE <= ANILIST_MAX_PAGE_SIZE):
        errors.append(f"Invalid trending window: {TRENDING_WINDOW_SIZE}")

    if not (0 <= SAUCENAO_MATCH_THRESHOLD <= 100):
        errors.append(f"Invalid SauceNAO threshold: {SAUCENAO_MATCH_THRESHOLD}")

    if RECOGNITION_MAX_BYTES <= 0:
        errors.append(f"Invalid upload ceiling: {RECOGNITION_MAX_BYTES}")

    if not USER_DB_PATH:
        errors.append("User database path not configured")

    if errors:
        raise ValueError("Configuration validation failed:\n" + "\n".join(errors))


# ==============================================================================
# INITIALIZATION
# ==============================================================================

try:
    validate_configuration()
except ValueError as e:
    logging.getLogger(__name__).warning(str(e))

# ==============================================================================
# EXPORT ALL SETTINGS
# ==============================================================================

__all__ = [
    'BASE_DIR',
    'DATA_DIR',
    'LOG_DIR',
    'CONFIG_DIR',
    'USER_DB_PATH',
    'ANILIST_API_URL',
    'ANILIST_RATE_LIMIT',
    'SAUCENAO_API_KEY',
    'API_BASE_URL',
    'PORT',
    'load_yaml_config',
    'ensure_directories',
    'setup_logging',
    'validate_configuration',
]
