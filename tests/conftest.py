"""Pytest configuration and shared fixtures."""

import pytest
import tempfile
import os
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from pathlib import Path

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeFetcher:
    """Serves canned feed text by URL; unknown URLs fail like a dead host."""

    def __init__(self, feeds=None):
        self.feeds = feeds or {}
        self.requested = []

    async def fetch_text(self, url):
        self.requested.append(url)
        return self.feeds.get(url)


def rss_date(hours_ago: float) -> str:
    """RFC 822 date string relative to NOW."""
    return format_datetime(NOW - timedelta(hours=hours_ago))


def rss_item(title="", link="", description="", pub_date="", author=None) -> str:
    parts = [f"<title>{title}</title>", f"<link>{link}</link>"]
    if description:
        parts.append(f"<description><![CDATA[{description}]]></description>")
    if pub_date:
        parts.append(f"<pubDate>{pub_date}</pubDate>")
    if author:
        parts.append(f"<dc:creator><![CDATA[{author}]]></dc:creator>")
    return "<item>" + "".join(parts) + "</item>"


def rss_feed(*items: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">'
        "<channel><title>Test Feed</title>"
        + "".join(items)
        + "</channel></rss>"
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def temp_db():
    """Provide a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield f"sqlite:///{db_path}"
    # Cleanup
    try:
        os.unlink(db_path)
    except FileNotFoundError:
        pass


@pytest.fixture
def storage(temp_db):
    from newsfeed.storage.database import ArticleStorage
    return ArticleStorage(temp_db)


@pytest.fixture
def registry():
    """A small registry with two known sources."""
    from newsfeed.config.feeds import FeedSourceRegistry
    from newsfeed.ingestion.interfaces import FeedSource
    return FeedSourceRegistry(
        [
            FeedSource(
                name="TechCrunch",
                url="https://techcrunch.com/feed/",
                image_url="https://images.example.com/techcrunch.jpg",
            ),
            FeedSource(
                name="Wired",
                url="https://www.wired.com/feed/rss",
                image_url="https://images.example.com/wired.jpg",
            ),
        ],
        fallback_image_url="https://images.example.com/fallback.jpg",
    )


@pytest.fixture
def sample_entry():
    """Provide a sample RawFeedEntry."""
    from newsfeed.ingestion.interfaces import RawFeedEntry
    return RawFeedEntry(
        title="Startup raises $50M to build quantum sensors",
        link="https://techcrunch.com/2026/01/15/quantum-sensors/",
        description="<p>The <b>startup</b> announced new funding.</p>",
        pub_date=rss_date(1),
        author="Jane Doe",
    )


@pytest.fixture
def sample_article():
    """Provide a sample CanonicalArticle."""
    from newsfeed.ingestion.interfaces import CanonicalArticle
    return CanonicalArticle(
        title="Startup raises $50M to build quantum sensors",
        summary="The startup announced new funding.",
        source="TechCrunch",
        author="Jane Doe",
        topic="#Business",
        url="https://techcrunch.com/2026/01/15/quantum-sensors/",
        image_url="https://images.example.com/techcrunch.jpg",
        published_at=rss_date(1),
    )
