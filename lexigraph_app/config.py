# File: lexigraph_app/config.py
# Application configuration, read from the environment (.env supported).

import os

from dotenv import load_dotenv

load_dotenv()

# Project root: this file lives in lexigraph_app/, one level below the root.
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))


def _env_float(name, default):
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    """Lexigraph application configuration."""

    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        # Fallback for development, though env is preferred
        SECRET_KEY = 'dev-secret-key-replace-in-production'

    JSON_AS_ASCII = False

    # Logging
    LOG_LEVEL = os.environ.get('LEXIGRAPH_LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LEXIGRAPH_LOG_DIR') or os.path.join(BASE_DIR, 'logs')
    LOG_JSON = os.environ.get('LEXIGRAPH_LOG_JSON', '').lower() in ('1', 'true', 'yes')

    # Engine tunables (see core/defaults.py for the full list)
    CACHE_TTL_DAYS = _env_int('LEXIGRAPH_CACHE_TTL_DAYS', 30)
    MEMORY_CACHE_SIZE = _env_int('LEXIGRAPH_MEMORY_CACHE_SIZE', 512)
    CONTEXT_WORD_LIMIT = _env_int('LEXIGRAPH_CONTEXT_WORD_LIMIT', 15)
    EDGE_SIMILARITY_THRESHOLD = _env_float('LEXIGRAPH_EDGE_SIMILARITY_THRESHOLD', 0.6)
    GRAVITY_THRESHOLD = _env_float('LEXIGRAPH_GRAVITY_THRESHOLD', 0.5)
    SINGLE_NODE_ZOOM = _env_float('LEXIGRAPH_SINGLE_NODE_ZOOM', 3.5)

    @classmethod
    def init_app(cls, app):
        """Create the directories the app writes to."""
        os.makedirs(cls.LOG_DIR, exist_ok=True)
