"""Interface definitions for feed ingestion."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List


@dataclass(frozen=True)
class FeedSource:
    """A named feed endpoint and its placeholder image."""
    name: str
    url: str
    image_url: str


@dataclass
class FeedSubscription:
    """A user's opt-in to ingest from a named source."""
    user_id: str
    source_name: str
    active: bool = True
    id: Optional[int] = None


@dataclass
class RawFeedEntry:
    """One item parsed out of a feed. Lives for a single fetch-parse cycle."""
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""  # Source-native format, parsed later
    author: Optional[str] = None
    categories: Optional[List[str]] = None


@dataclass
class CanonicalArticle:
    """The persisted, normalized representation of one feed entry."""
    title: str
    summary: str
    source: str
    author: str
    topic: str
    url: str  # Unique across all stored articles
    image_url: str
    published_at: str  # Raw publish string, stored verbatim
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "source": self.source,
            "author": self.author,
            "topic": self.topic,
            "url": self.url,
            "image_url": self.image_url,
            "published_at": self.published_at,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class IngestionRequest:
    """Input to one ingestion run."""
    user_id: str
    time_filter: Optional[str] = None


@dataclass
class IngestionResult:
    """Output of one ingestion run."""
    articles_added: int = 0
    articles: List[CanonicalArticle] = field(default_factory=list)
    message: str = ""
    sources_processed: int = 0
    skipped: dict = field(default_factory=dict)  # SkipReason value -> count


class FetcherInterface:
    """Interface for raw feed retrieval."""

    async def fetch_text(self, url: str) -> Optional[str]:
        """Return the feed body, or None if it could not be retrieved."""
        raise NotImplementedError


class FeedParserInterface:
    """Interface for turning raw feed text into entries."""

    def parse(self, text: str) -> List[RawFeedEntry]:
        """Parse feed text. Must not raise."""
        raise NotImplementedError


class ArticleStoreInterface:
    """Interface for subscription and article storage."""

    def list_active_subscriptions(self, user_id: str) -> List[FeedSubscription]:
        """Get the user's active subscriptions."""
        raise NotImplementedError

    def get_by_url(self, url: str) -> Optional[CanonicalArticle]:
        """Get article by URL."""
        raise NotImplementedError

    def exists_url(self, url: str) -> bool:
        """Check if an article with exactly this URL exists."""
        raise NotImplementedError

    def insert_articles(self, articles: List[CanonicalArticle]) -> List[CanonicalArticle]:
        """Insert a batch, return the articles actually persisted."""
        raise NotImplementedError
