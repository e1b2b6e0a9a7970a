"""Maps kept feed entries to canonical article records."""

import re

from .interfaces import RawFeedEntry, CanonicalArticle
from ..classification.interfaces import Topic
from ..config.settings import settings

TAG_PATTERN = re.compile(r"<[^>]*>")


def strip_tags(text: str) -> str:
    """Remove every angle-bracket tag."""
    return TAG_PATTERN.sub("", text or "")


class ArticleAssembler:
    """Builds CanonicalArticle records. Assembly never fails."""

    def __init__(
        self,
        registry,
        default_author: str = None,
        title_max_length: int = None,
        summary_max_length: int = None,
    ):
        self.registry = registry
        self.default_author = default_author or settings.default_author
        self.title_max_length = title_max_length or settings.title_max_length
        self.summary_max_length = summary_max_length or settings.summary_max_length

    def assemble(self, entry: RawFeedEntry, source_name: str, topic: Topic) -> CanonicalArticle:
        # Tags are stripped first; the limit applies to the visible text
        summary = strip_tags(entry.description).strip()[:self.summary_max_length]

        return CanonicalArticle(
            title=(entry.title or "")[:self.title_max_length],
            summary=summary,
            source=source_name,
            author=entry.author or self.default_author,
            topic=topic.value,
            url=entry.link,
            image_url=self.registry.image_url(source_name),
            published_at=entry.pub_date,
        )
