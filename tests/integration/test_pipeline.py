"""Integration tests for the full ingestion pipeline."""

import threading

import pytest
from unittest.mock import MagicMock

# Add project root to path
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from conftest import NOW, FakeFetcher, rss_date, rss_feed, rss_item
from newsfeed.errors import StoreReadError, StoreWriteError
from newsfeed.ingestion.interfaces import FeedSubscription, IngestionRequest
from newsfeed.ingestion.parser import FeedparserFeedParser
from newsfeed.pipeline.handler import handle_fetch_request
from newsfeed.pipeline.ingest import NO_NEW_ARTICLES, IngestionOrchestrator

TECHCRUNCH = "https://techcrunch.com/feed/"
WIRED = "https://www.wired.com/feed/rss"


def techcrunch_feed():
    """One fresh item, one stale item and one item that is already stored."""
    return rss_feed(
        rss_item(
            title="Mars rover finds water",
            link="https://techcrunch.com/2026/01/15/mars-water/",
            description="<p>Scientists report <b>new</b> findings.</p>",
            pub_date=rss_date(1),
            author="Jane Doe",
        ),
        rss_item(
            title="Old news",
            link="https://techcrunch.com/2026/01/13/old/",
            description="Yesterday's story.",
            pub_date=rss_date(30),
        ),
        rss_item(
            title="Startup raises $50M to build quantum sensors",
            link="https://techcrunch.com/2026/01/15/quantum-sensors/",
            description="Already in the database.",
            pub_date=rss_date(2),
        ),
    )


@pytest.fixture
def orchestrator_for(storage, registry):
    """Build an orchestrator over the temp database and canned feeds."""
    def build(feeds, **kwargs):
        fetcher = FakeFetcher(feeds)
        orchestrator = IngestionOrchestrator(
            storage=storage, registry=registry, fetcher=fetcher, **kwargs
        )
        return orchestrator, fetcher
    return build


def stub_store(subscriptions):
    store = MagicMock()
    store.list_active_subscriptions.return_value = subscriptions
    store.exists_url.return_value = False
    store.insert_articles.side_effect = lambda articles: articles
    return store


@pytest.mark.asyncio
class TestPipelineIntegration:
    """Integration tests for IngestionOrchestrator against SQLite."""

    async def test_full_pipeline_run(self, storage, sample_article, orchestrator_for):
        """Should insert only fresh entries that are not stored yet."""
        storage.add_subscription("alice", "TechCrunch")
        storage.insert_articles([sample_article])
        orchestrator, fetcher = orchestrator_for({TECHCRUNCH: techcrunch_feed()})

        result = await orchestrator.run(IngestionRequest(user_id="alice", time_filter="24h"), now=NOW)

        assert result.articles_added == 1
        assert fetcher.requested == [TECHCRUNCH]
        assert result.skipped == {"outside_window": 1, "duplicate": 1}

        article = result.articles[0]
        assert article.id is not None
        assert article.title == "Mars rover finds water"
        assert article.summary == "Scientists report new findings."
        assert article.topic == "#Science"
        assert article.author == "Jane Doe"
        assert article.source == "TechCrunch"
        assert article.image_url == "https://images.example.com/techcrunch.jpg"
        assert article.published_at == rss_date(1)

        assert storage.exists_url("https://techcrunch.com/2026/01/15/mars-water/")
        assert storage.get_stats()["total_articles"] == 2

    async def test_second_run_adds_nothing(self, storage, orchestrator_for):
        """Should be idempotent for an unchanged feed."""
        storage.add_subscription("alice", "TechCrunch")
        orchestrator, _ = orchestrator_for({TECHCRUNCH: techcrunch_feed()})
        request = IngestionRequest(user_id="alice")

        first = await orchestrator.run(request, now=NOW)
        second = await orchestrator.run(request, now=NOW)

        assert first.articles_added == 2
        assert second.articles_added == 0
        assert second.message == NO_NEW_ARTICLES
        assert second.skipped["duplicate"] == 2
        assert storage.get_stats()["total_articles"] == 2

    async def test_no_subscriptions(self, orchestrator_for):
        """Should report no new articles for users without subscriptions."""
        orchestrator, fetcher = orchestrator_for({TECHCRUNCH: techcrunch_feed()})

        result = await orchestrator.run(IngestionRequest(user_id="nobody"), now=NOW)

        assert result.articles_added == 0
        assert result.message == NO_NEW_ARTICLES
        assert fetcher.requested == []

    async def test_inactive_subscriptions_ignored(self, storage, orchestrator_for):
        """Should not fetch sources the user has switched off."""
        storage.add_subscription("alice", "TechCrunch", active=False)
        orchestrator, fetcher = orchestrator_for({TECHCRUNCH: techcrunch_feed()})

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        assert result.articles_added == 0
        assert fetcher.requested == []

    async def test_unknown_source_is_skipped(self, storage, orchestrator_for):
        """Should skip sources missing from the registry without failing."""
        storage.add_subscription("alice", "Hacker Blog")
        orchestrator, fetcher = orchestrator_for({TECHCRUNCH: techcrunch_feed()})

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        assert result.articles_added == 0
        assert result.skipped == {"unknown_source": 1}
        assert fetcher.requested == []

    async def test_failed_source_does_not_stop_others(self, storage, orchestrator_for):
        """Should keep going when one feed cannot be fetched."""
        storage.add_subscription("alice", "TechCrunch")
        storage.add_subscription("alice", "Wired")
        orchestrator, fetcher = orchestrator_for({TECHCRUNCH: techcrunch_feed()})

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        assert sorted(fetcher.requested) == sorted([TECHCRUNCH, WIRED])
        assert result.articles_added == 2
        assert result.skipped["fetch_failed"] == 1

    async def test_same_url_in_two_sources_inserted_once(self, storage, orchestrator_for):
        """Should keep one copy of a story syndicated by two sources."""
        storage.add_subscription("alice", "TechCrunch")
        storage.add_subscription("alice", "Wired")
        shared = rss_item(
            title="Phone review",
            link="https://example.com/shared-story",
            description="Battery life is good.",
            pub_date=rss_date(1),
        )
        orchestrator, _ = orchestrator_for({
            TECHCRUNCH: rss_feed(shared),
            WIRED: rss_feed(shared),
        })

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        assert result.articles_added == 1
        assert result.skipped == {"duplicate_in_batch": 1}
        assert storage.get_stats()["total_articles"] == 1

    async def test_entry_without_link_skipped(self, storage, orchestrator_for):
        """Should drop entries that have no link."""
        storage.add_subscription("alice", "Wired")
        orchestrator, _ = orchestrator_for({
            WIRED: rss_feed(rss_item(title="No link here", pub_date=rss_date(1))),
        })

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        assert result.articles_added == 0
        assert result.skipped == {"missing_link": 1}

    @pytest.mark.parametrize("time_filter, expected", [
        ("2h", 1),
        ("24h", 2),
        ("7d", 3),
        ("1y", 2),
        (None, 2),
    ])
    async def test_time_filters(self, storage, orchestrator_for, time_filter, expected):
        """Should honor the window keyword and fall back to 24h."""
        storage.add_subscription("alice", "Wired")
        orchestrator, _ = orchestrator_for({
            WIRED: rss_feed(
                rss_item(title="Phone one", link="https://example.com/1", pub_date=rss_date(1)),
                rss_item(title="Phone three", link="https://example.com/3", pub_date=rss_date(3)),
                rss_item(title="Phone five days", link="https://example.com/5d", pub_date=rss_date(120)),
            ),
        })

        result = await orchestrator.run(
            IngestionRequest(user_id="alice", time_filter=time_filter), now=NOW
        )
        assert result.articles_added == expected

    async def test_with_feedparser_parser(self, storage, orchestrator_for):
        """Should produce the same articles with the feedparser backend."""
        storage.add_subscription("alice", "TechCrunch")
        orchestrator, _ = orchestrator_for(
            {TECHCRUNCH: techcrunch_feed()}, parser=FeedparserFeedParser()
        )

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        urls = sorted(a.url for a in result.articles)
        assert urls == [
            "https://techcrunch.com/2026/01/15/mars-water/",
            "https://techcrunch.com/2026/01/15/quantum-sensors/",
        ]

    async def test_handler_end_to_end(self, storage, orchestrator_for):
        """Should serve a fetch request through the orchestrator."""
        storage.add_subscription("alice", "TechCrunch")
        orchestrator, _ = orchestrator_for({TECHCRUNCH: techcrunch_feed()})

        status, body = await handle_fetch_request(
            {"userId": "alice", "timeFilter": "2h"},
            runner=lambda request: orchestrator.run(request, now=NOW),
        )

        # The 2h-old item sits exactly on the cutoff and is kept
        assert status == 200
        assert body["articlesAdded"] == 2
        assert {a["url"] for a in body["articles"]} == {
            "https://techcrunch.com/2026/01/15/mars-water/",
            "https://techcrunch.com/2026/01/15/quantum-sensors/",
        }
        assert all(a["created_at"] is not None for a in body["articles"])


@pytest.mark.asyncio
class TestPipelineStoreContract:
    """Tests for how the pipeline drives the store."""

    async def test_single_insert_call(self, registry):
        """Should insert the whole batch with one store call."""
        store = stub_store([
            FeedSubscription(user_id="alice", source_name="TechCrunch"),
            FeedSubscription(user_id="alice", source_name="Wired"),
        ])
        fetcher = FakeFetcher({
            TECHCRUNCH: techcrunch_feed(),
            WIRED: rss_feed(rss_item(title="Phone", link="https://example.com/w", pub_date=rss_date(1))),
        })
        orchestrator = IngestionOrchestrator(storage=store, registry=registry, fetcher=fetcher)

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        store.insert_articles.assert_called_once()
        assert len(store.insert_articles.call_args[0][0]) == 3
        assert result.articles_added == 3

    async def test_store_result_is_authoritative(self, registry):
        """Should count only the rows the store reports as inserted."""
        store = stub_store([FeedSubscription(user_id="alice", source_name="TechCrunch")])
        store.insert_articles.side_effect = lambda articles: articles[:1]
        orchestrator = IngestionOrchestrator(
            storage=store, registry=registry, fetcher=FakeFetcher({TECHCRUNCH: techcrunch_feed()})
        )

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        assert result.articles_added == 1
        assert len(result.articles) == 1
        assert result.skipped["duplicate"] == 1

    async def test_subscription_read_failure_propagates(self, registry):
        """Should abort when subscriptions cannot be loaded."""
        store = stub_store([])
        store.list_active_subscriptions.side_effect = StoreReadError("database unavailable")
        orchestrator = IngestionOrchestrator(storage=store, registry=registry, fetcher=FakeFetcher())

        with pytest.raises(StoreReadError):
            await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

    async def test_insert_failure_propagates(self, registry):
        """Should abort when the batch insert fails."""
        store = stub_store([FeedSubscription(user_id="alice", source_name="TechCrunch")])
        store.insert_articles.side_effect = StoreWriteError("disk full")
        orchestrator = IngestionOrchestrator(
            storage=store, registry=registry, fetcher=FakeFetcher({TECHCRUNCH: techcrunch_feed()})
        )

        with pytest.raises(StoreWriteError):
            await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

    async def test_dedup_lookup_failure_lets_entry_through(self, registry):
        """Should still submit entries whose duplicate check failed."""
        store = stub_store([FeedSubscription(user_id="alice", source_name="TechCrunch")])
        store.exists_url.side_effect = StoreReadError("lookup failed")
        orchestrator = IngestionOrchestrator(
            storage=store, registry=registry, fetcher=FakeFetcher({TECHCRUNCH: techcrunch_feed()})
        )

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        assert result.articles_added == 2


class FailingFetcher(FakeFetcher):
    """Raises for the given URLs instead of returning None."""

    def __init__(self, feeds, failures):
        super().__init__(feeds)
        self.failures = failures

    async def fetch_text(self, url):
        self.requested.append(url)
        if url in self.failures:
            raise self.failures[url]
        return self.feeds.get(url)


def wired_feed():
    return rss_feed(
        rss_item(title="Phone review", link="https://example.com/wired-phone", pub_date=rss_date(1)),
    )


@pytest.mark.asyncio
class TestSourceIsolation:
    """One misbehaving source must not take down the run."""

    async def test_out_of_range_date_does_not_abort_run(self, storage, orchestrator_for):
        """Should exclude an entry with an out-of-range date and serve the rest."""
        storage.add_subscription("alice", "TechCrunch")
        storage.add_subscription("alice", "Wired")
        orchestrator, _ = orchestrator_for({
            TECHCRUNCH: rss_feed(rss_item(
                title="Broken date",
                link="https://techcrunch.com/broken-date",
                pub_date="0001-01-01T00:00:00+01:00",
            )),
            WIRED: wired_feed(),
        })

        status, body = await handle_fetch_request(
            {"userId": "alice"},
            runner=lambda request: orchestrator.run(request, now=NOW),
        )

        assert status == 200
        assert body["articlesAdded"] == 1
        assert body["articles"][0]["url"] == "https://example.com/wired-phone"

    async def test_raising_fetcher_skips_only_that_source(self, storage, registry):
        """Should report a source that raised and still insert the others."""
        storage.add_subscription("alice", "TechCrunch")
        storage.add_subscription("alice", "Wired")
        fetcher = FailingFetcher(
            {WIRED: wired_feed()},
            failures={TECHCRUNCH: RuntimeError("connection pool exhausted")},
        )
        orchestrator = IngestionOrchestrator(storage=storage, registry=registry, fetcher=fetcher)

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        assert result.articles_added == 1
        assert result.articles[0].url == "https://example.com/wired-phone"
        assert result.skipped == {"source_failed": 1}

    async def test_raising_parser_skips_only_that_source(self, storage, registry):
        """Should contain unexpected parser errors to the source."""
        storage.add_subscription("alice", "TechCrunch")
        parser = MagicMock()
        parser.parse.side_effect = RuntimeError("parser crashed")
        orchestrator = IngestionOrchestrator(
            storage=storage,
            registry=registry,
            fetcher=FakeFetcher({TECHCRUNCH: techcrunch_feed()}),
            parser=parser,
        )

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        assert result.articles_added == 0
        assert result.message == NO_NEW_ARTICLES
        assert result.skipped == {"source_failed": 1}

    async def test_store_errors_from_a_source_stay_fatal(self, registry):
        """Should not downgrade store failures raised inside a source task."""
        store = stub_store([
            FeedSubscription(user_id="alice", source_name="TechCrunch"),
            FeedSubscription(user_id="alice", source_name="Wired"),
        ])
        fetcher = FailingFetcher(
            {WIRED: wired_feed()},
            failures={TECHCRUNCH: StoreReadError("database unavailable")},
        )
        orchestrator = IngestionOrchestrator(storage=store, registry=registry, fetcher=fetcher)

        with pytest.raises(StoreReadError):
            await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)
        store.insert_articles.assert_not_called()

    async def test_store_lookups_run_off_the_event_loop(self, registry):
        """Should run duplicate lookups in worker threads, not the loop thread."""
        lookup_threads = []

        def exists_url(url):
            lookup_threads.append(threading.get_ident())
            return False

        store = stub_store([FeedSubscription(user_id="alice", source_name="TechCrunch")])
        store.exists_url.side_effect = exists_url
        orchestrator = IngestionOrchestrator(
            storage=store, registry=registry, fetcher=FakeFetcher({TECHCRUNCH: techcrunch_feed()})
        )

        result = await orchestrator.run(IngestionRequest(user_id="alice"), now=NOW)

        assert result.articles_added == 2
        assert lookup_threads
        assert threading.get_ident() not in lookup_threads
