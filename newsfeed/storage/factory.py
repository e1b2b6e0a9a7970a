"""Factory functions to create storage instances.

The database URL comes from DATABASE_URL, then NF_DATABASE_URL, then the
settings default (a local SQLite file). Any SQLAlchemy URL works; PostgreSQL
needs its driver installed separately.
"""

import os
from functools import lru_cache

import structlog

from .database import ArticleStorage

logger = structlog.get_logger()


def get_database_url() -> str:
    """Get database URL from environment, with fallback to SQLite."""
    # Check for DATABASE_URL first (standard for cloud platforms)
    url = os.environ.get('DATABASE_URL')
    if url:
        return url

    # Check for NF_ prefixed version
    url = os.environ.get('NF_DATABASE_URL')
    if url:
        return url

    from ..config.settings import settings
    return settings.database_url


@lru_cache(maxsize=1)
def get_article_storage() -> ArticleStorage:
    """Get the shared article storage instance."""
    url = get_database_url()
    logger.info("using_storage", url=url[:40] + "...")
    return ArticleStorage(url)


def clear_cache():
    """Clear cached instances (useful for testing)."""
    get_article_storage.cache_clear()
