"""Feed ingestion - fetching, parsing, filtering and assembling entries."""

from .interfaces import (
    FeedSource, FeedSubscription, RawFeedEntry, CanonicalArticle,
    IngestionRequest, IngestionResult,
    FetcherInterface, FeedParserInterface, ArticleStoreInterface,
)
from .fetcher import FeedFetcher
from .parser import RegexFeedParser, FeedparserFeedParser
from .time_window import TimeWindow, TimeWindowFilter, parse_published
from .dedup import Deduplicator
from .assembler import ArticleAssembler

__all__ = [
    "FeedSource", "FeedSubscription", "RawFeedEntry", "CanonicalArticle",
    "IngestionRequest", "IngestionResult",
    "FetcherInterface", "FeedParserInterface", "ArticleStoreInterface",
    "FeedFetcher", "RegexFeedParser", "FeedparserFeedParser",
    "TimeWindow", "TimeWindowFilter", "parse_published",
    "Deduplicator", "ArticleAssembler",
]
