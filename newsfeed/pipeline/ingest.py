"""Per-user ingestion pipeline orchestration."""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

import structlog

from ..config.settings import settings
from ..config.feeds import FeedSourceRegistry, load_registry
from ..classification.classifier import TopicClassifier
from ..errors import ConfigurationGap, StoreReadError, StoreWriteError
from ..ingestion.assembler import ArticleAssembler
from ..ingestion.dedup import Deduplicator
from ..ingestion.fetcher import FeedFetcher
from ..ingestion.interfaces import (
    ArticleStoreInterface, CanonicalArticle, FeedParserInterface, FeedSubscription,
    FetcherInterface, IngestionRequest, IngestionResult, RawFeedEntry,
)
from ..ingestion.parser import RegexFeedParser
from ..ingestion.time_window import TimeWindowFilter

logger = structlog.get_logger()

NO_NEW_ARTICLES = "No new articles found"


class SkipReason(Enum):
    """Why an entry or a whole source contributed nothing."""
    MISSING_LINK = "missing_link"
    OUTSIDE_WINDOW = "outside_window"
    DUPLICATE = "duplicate"
    DUPLICATE_IN_BATCH = "duplicate_in_batch"
    UNKNOWN_SOURCE = "unknown_source"
    FETCH_FAILED = "fetch_failed"
    SOURCE_FAILED = "source_failed"


@dataclass
class EntryDecision:
    """Outcome for one parsed entry: an assembled article or a skip reason."""
    entry: RawFeedEntry
    article: Optional[CanonicalArticle] = None
    reason: Optional[SkipReason] = None

    @property
    def kept(self) -> bool:
        return self.article is not None


@dataclass
class SourceReport:
    """Outcome for one subscription."""
    source_name: str
    feed_url: Optional[str] = None
    decisions: List[EntryDecision] = field(default_factory=list)
    reason: Optional[SkipReason] = None  # Set when the whole source was skipped

    @property
    def articles(self) -> List[CanonicalArticle]:
        return [d.article for d in self.decisions if d.kept]


class IngestionOrchestrator:
    """Runs fetch, parse, filter, dedup, classify and assemble for one user.

    Sources are processed concurrently; their results are merged into one
    batch and inserted with a single store call.
    """

    def __init__(
        self,
        storage: ArticleStoreInterface,
        registry: FeedSourceRegistry,
        fetcher: FetcherInterface,
        parser: FeedParserInterface = None,
        classifier: TopicClassifier = None,
        assembler: ArticleAssembler = None,
    ):
        self.storage = storage
        self.registry = registry
        self.fetcher = fetcher
        self.parser = parser or RegexFeedParser()
        self.classifier = classifier or TopicClassifier()
        self.assembler = assembler or ArticleAssembler(registry)
        self.deduplicator = Deduplicator(storage)

    async def run(self, request: IngestionRequest, now: datetime = None) -> IngestionResult:
        """Ingest new articles for one user.

        Raises StoreReadError if subscriptions cannot be loaded and
        StoreWriteError if the batch insert fails. Per-source problems are
        logged and never raised.
        """
        start = datetime.now()
        window = TimeWindowFilter.for_keyword(
            request.time_filter or settings.default_time_filter, now=now
        )

        subscriptions = self.storage.list_active_subscriptions(request.user_id)
        if not subscriptions:
            logger.info("no_active_subscriptions", user_id=request.user_id)
            return IngestionResult(message=NO_NEW_ARTICLES)

        results = await asyncio.gather(
            *[self._process_subscription(s, window) for s in subscriptions],
            return_exceptions=True,
        )
        reports = self._collect(subscriptions, results)

        batch = self._merge(reports)
        skipped = self._count_skips(reports)

        if not batch:
            logger.info("ingestion_complete", user_id=request.user_id, added=0, skipped=skipped)
            return IngestionResult(
                message=NO_NEW_ARTICLES,
                sources_processed=len(reports),
                skipped=skipped,
            )

        inserted = self.storage.insert_articles(batch)
        if len(inserted) < len(batch):
            skipped[SkipReason.DUPLICATE.value] = (
                skipped.get(SkipReason.DUPLICATE.value, 0) + len(batch) - len(inserted)
            )

        logger.info(
            "ingestion_complete",
            user_id=request.user_id,
            window=window.window.value,
            sources=len(reports),
            submitted=len(batch),
            added=len(inserted),
            skipped=skipped,
            elapsed_seconds=(datetime.now() - start).total_seconds(),
        )
        return IngestionResult(
            articles_added=len(inserted),
            articles=inserted,
            message="" if inserted else NO_NEW_ARTICLES,
            sources_processed=len(reports),
            skipped=skipped,
        )

    async def _process_subscription(
        self,
        subscription: FeedSubscription,
        window: TimeWindowFilter,
    ) -> SourceReport:
        source_name = subscription.source_name
        try:
            feed_url = self._resolve_feed(source_name)
        except ConfigurationGap as e:
            logger.info("source_skipped", source=source_name, reason=str(e))
            return SourceReport(source_name=source_name, reason=SkipReason.UNKNOWN_SOURCE)

        logger.debug("fetching_source", source=source_name, url=feed_url)
        text = await self.fetcher.fetch_text(feed_url)
        if text is None:
            return SourceReport(source_name=source_name, feed_url=feed_url, reason=SkipReason.FETCH_FAILED)

        entries = self.parser.parse(text)
        # Store lookups are blocking; keep them off the event loop
        loop = asyncio.get_event_loop()
        decisions = await loop.run_in_executor(
            None, self._decide_all, entries, source_name, window
        )

        report = SourceReport(source_name=source_name, feed_url=feed_url, decisions=decisions)
        logger.info(
            "entries_filtered",
            source=source_name,
            parsed=len(entries),
            kept=len(report.articles),
        )
        return report

    def _collect(self, subscriptions: List[FeedSubscription], results: list) -> List[SourceReport]:
        """Turn gather results into reports; a source that raised is skipped."""
        reports = []
        for subscription, result in zip(subscriptions, results):
            if isinstance(result, (StoreReadError, StoreWriteError)):
                raise result
            if isinstance(result, Exception):
                logger.warning(
                    "source_failed",
                    source=subscription.source_name,
                    error=str(result) or type(result).__name__,
                )
                reports.append(SourceReport(
                    source_name=subscription.source_name,
                    reason=SkipReason.SOURCE_FAILED,
                ))
                continue
            if isinstance(result, BaseException):
                raise result
            reports.append(result)
        return reports

    def _resolve_feed(self, source_name: str) -> str:
        feed_url = self.registry.feed_url(source_name)
        if not feed_url:
            raise ConfigurationGap(f"No feed configured for source {source_name!r}")
        return feed_url

    def _decide_all(
        self,
        entries: List[RawFeedEntry],
        source_name: str,
        window: TimeWindowFilter,
    ) -> List[EntryDecision]:
        return [self._decide(entry, source_name, window) for entry in entries]

    def _decide(self, entry: RawFeedEntry, source_name: str, window: TimeWindowFilter) -> EntryDecision:
        """Filter, deduplicate, classify and assemble a single entry."""
        if not entry.link:
            return EntryDecision(entry=entry, reason=SkipReason.MISSING_LINK)

        if not window.keep(entry):
            return EntryDecision(entry=entry, reason=SkipReason.OUTSIDE_WINDOW)

        if self.deduplicator.is_duplicate(entry.link):
            return EntryDecision(entry=entry, reason=SkipReason.DUPLICATE)

        topic = self.classifier.classify(entry.title, entry.description, entry.categories)
        article = self.assembler.assemble(entry, source_name, topic)
        return EntryDecision(entry=entry, article=article)

    def _merge(self, reports: List[SourceReport]) -> List[CanonicalArticle]:
        """Join per-source results into one batch, first URL wins."""
        batch = []
        seen_urls = set()
        for report in reports:
            for decision in report.decisions:
                if not decision.kept:
                    continue
                if decision.article.url in seen_urls:
                    decision.article = None
                    decision.reason = SkipReason.DUPLICATE_IN_BATCH
                    continue
                seen_urls.add(decision.article.url)
                batch.append(decision.article)
        return batch

    def _count_skips(self, reports: List[SourceReport]) -> dict:
        counts = Counter()
        for report in reports:
            if report.reason:
                counts[report.reason.value] += 1
            for decision in report.decisions:
                if decision.reason:
                    counts[decision.reason.value] += 1
        return dict(counts)


async def run_ingestion(
    request: IngestionRequest,
    storage: ArticleStoreInterface = None,
    registry: FeedSourceRegistry = None,
    parser: FeedParserInterface = None,
) -> IngestionResult:
    """Run one ingestion with default collaborators.

    Args:
        request: User id and time-window keyword
        storage: Article store, defaults to the shared storage instance
        registry: Feed source registry, defaults to config/feeds.json
        parser: Feed parser, defaults to RegexFeedParser

    Returns:
        IngestionResult for the run
    """
    if storage is None:
        from ..storage.factory import get_article_storage
        storage = get_article_storage()
    if registry is None:
        registry = load_registry()

    async with FeedFetcher() as fetcher:
        orchestrator = IngestionOrchestrator(
            storage=storage,
            registry=registry,
            fetcher=fetcher,
            parser=parser,
        )
        return await orchestrator.run(request)
