"""URL-based deduplication against stored articles."""

import structlog

from .interfaces import ArticleStoreInterface
from ..errors import StoreReadError

logger = structlog.get_logger()


class Deduplicator:
    """Discards candidates whose URL is already stored.

    Matching is exact string equality. URLs that differ only by trailing
    slash, scheme, or tracking parameters are treated as different articles.
    """

    def __init__(self, store: ArticleStoreInterface):
        self.store = store

    def is_duplicate(self, url: str) -> bool:
        try:
            duplicate = self.store.exists_url(url)
        except StoreReadError as e:
            # The unique URL constraint on insert still catches it
            logger.warning("duplicate_check_failed", url=url[:80], error=str(e))
            return False

        if duplicate:
            logger.debug("article_duplicate", url=url[:80])
        return duplicate
