"""Feed parsers: pattern-based extraction and a feedparser-backed variant.

Both produce RawFeedEntry lists with the same field rules:
CDATA values win over plain ones, missing fields become "" (None for author
and categories), and a malformed item never fails the whole feed.
"""

import html
import io
import re
from typing import List, Optional

import feedparser
import structlog

from .interfaces import FeedParserInterface, RawFeedEntry
from ..errors import FeedParseError

logger = structlog.get_logger()

ITEM_PATTERN = re.compile(r"<(item|entry)(?:\s[^>]*)?>(.*?)</\1>", re.DOTALL | re.IGNORECASE)
TAG_PATTERN = re.compile(r"<[^>]*>")
ATOM_LINK_PATTERN = re.compile(
    r"<link\b(?=[^>]*\brel=[\"']alternate[\"']|(?![^>]*\brel=))[^>]*\bhref=[\"']([^\"']+)[\"'][^>]*/?>",
    re.IGNORECASE,
)
CATEGORY_TERM_PATTERN = re.compile(r"<category\b[^>]*\bterm=[\"']([^\"']+)[\"'][^>]*/?>", re.IGNORECASE)

DATE_TAGS = ("pubDate", "dc:date", "published", "updated")


def _cdata(tag: str) -> re.Pattern:
    return re.compile(
        rf"<{tag}(?:\s[^>]*)?>\s*<!\[CDATA\[(.*?)\]\]>\s*</{tag}>",
        re.DOTALL | re.IGNORECASE,
    )


def _plain(tag: str) -> re.Pattern:
    return re.compile(rf"<{tag}(?:\s[^>]*)?>(.*?)</{tag}>", re.DOTALL | re.IGNORECASE)


_PATTERNS = {
    tag: (_cdata(tag), _plain(tag))
    for tag in ("title", "description", "summary", "content", "link",
                "dc:creator", "author", "category") + DATE_TAGS
}


def extract_field(block: str, tag: str) -> Optional[str]:
    """Value of the first <tag> in block, CDATA form preferred.

    Returns None when the tag is absent.
    """
    cdata_pattern, plain_pattern = _PATTERNS.get(tag) or (_cdata(tag), _plain(tag))

    match = cdata_pattern.search(block)
    if match:
        return match.group(1).strip()

    match = plain_pattern.search(block)
    if match:
        return html.unescape(match.group(1).strip())

    return None


def extract_all(block: str, tag: str) -> List[str]:
    """Values of every <tag> in block, each CDATA form preferred."""
    cdata_pattern, plain_pattern = _PATTERNS.get(tag) or (_cdata(tag), _plain(tag))
    values = []
    for match in plain_pattern.finditer(block):
        inner = match.group(0)
        cdata = cdata_pattern.search(inner)
        if cdata:
            values.append(cdata.group(1).strip())
        else:
            values.append(html.unescape(match.group(1).strip()))
    return values


class RegexFeedParser(FeedParserInterface):
    """Pattern-based RSS/Atom item extraction.

    Finds each <item> (or Atom <entry>) block and pulls fields out of it
    with regular expressions. Not a full XML parser: namespaces other than
    dc:creator and dc:date are ignored.
    """

    def parse(self, text: str) -> List[RawFeedEntry]:
        if not text:
            return []

        entries = []
        for index, match in enumerate(ITEM_PATTERN.finditer(text)):
            try:
                entries.append(self._parse_block(match.group(2)))
            except FeedParseError as e:
                logger.warning("feed_item_parse_failed", index=index, error=str(e))

        logger.debug("feed_parsed", entries=len(entries))
        return entries

    def _parse_block(self, block: str) -> RawFeedEntry:
        try:
            title = extract_field(block, "title") or ""
            description = (
                extract_field(block, "description")
                or extract_field(block, "summary")
                or extract_field(block, "content")
                or ""
            )
            return RawFeedEntry(
                title=title,
                link=self._link(block),
                description=description,
                pub_date=self._pub_date(block),
                author=self._author(block),
                categories=self._categories(block),
            )
        except (TypeError, ValueError, re.error) as e:
            raise FeedParseError(str(e)) from e

    def _link(self, block: str) -> str:
        link = extract_field(block, "link")
        if link:
            return link
        match = ATOM_LINK_PATTERN.search(block)
        return html.unescape(match.group(1).strip()) if match else ""

    def _pub_date(self, block: str) -> str:
        for tag in DATE_TAGS:
            value = extract_field(block, tag)
            if value:
                return value
        return ""

    def _author(self, block: str) -> Optional[str]:
        creator = extract_field(block, "dc:creator")
        if creator:
            return creator

        author = extract_field(block, "author")
        if author:
            # Atom nests <name>/<email> inside <author>
            name = extract_field(author, "name")
            author = name if name else TAG_PATTERN.sub("", author).strip()
        return author or None

    def _categories(self, block: str) -> Optional[List[str]]:
        categories = [c for c in extract_all(block, "category") if c]
        categories.extend(CATEGORY_TERM_PATTERN.findall(block))
        return categories or None


class FeedparserFeedParser(FeedParserInterface):
    """Parser backed by the feedparser library.

    Keeps the same output contract as RegexFeedParser: the publish date is the
    raw string from the feed, not feedparser's parsed struct.
    """

    def parse(self, text: str) -> List[RawFeedEntry]:
        if not text:
            return []

        # A stream keeps feedparser from treating the body as a path or URL
        feed = feedparser.parse(io.BytesIO(text.encode("utf-8")))
        if feed.get("bozo") and not feed.entries:
            logger.warning("feed_parse_failed", error=str(feed.get("bozo_exception", "")))
            return []

        entries = []
        for index, entry in enumerate(feed.entries):
            try:
                entries.append(self._parse_entry(entry))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("feed_item_parse_failed", index=index, error=str(e))

        logger.debug("feed_parsed", entries=len(entries))
        return entries

    def _parse_entry(self, entry) -> RawFeedEntry:
        description = entry.get("summary", "")
        if not description and entry.get("content"):
            description = entry.content[0].get("value", "")

        pub_date = ""
        for attr in ("published", "updated"):
            value = entry.get(attr)
            if value:
                pub_date = value
                break

        categories = [t.get("term") for t in entry.get("tags", []) if t.get("term")]

        return RawFeedEntry(
            title=entry.get("title", ""),
            link=entry.get("link", ""),
            description=description,
            pub_date=pub_date,
            author=entry.get("author") or None,
            categories=categories or None,
        )
