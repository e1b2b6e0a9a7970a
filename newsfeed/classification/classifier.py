"""Keyword-based topic classifier."""

from typing import List, Tuple
from .interfaces import ClassifierInterface, ClassificationResult, Topic


class TopicClassifier(ClassifierInterface):
    """Assigns one topic tag by ordered keyword matching.

    Groups are tested in order and the first group with any keyword found in
    the lower-cased title + summary wins. Matching is plain substring search,
    so "ai" also hits inside longer words.
    """

    KEYWORDS: List[Tuple[Topic, List[str]]] = [
        (Topic.AI, ["ai", "artificial intelligence", "machine learning"]),
        (Topic.CLIMATE, ["climate", "environment", "carbon"]),
        (Topic.SCIENCE, ["space", "mars", "nasa"]),
        (Topic.POLITICS, ["policy", "regulation", "government"]),
        (Topic.BUSINESS, ["startup", "funding", "investment"]),
        (Topic.CRYPTO, ["crypto", "blockchain", "bitcoin"]),
    ]
    DEFAULT = Topic.TECH

    def match(self, title: str, summary: str) -> ClassificationResult:
        """Classify and report which keyword decided it."""
        text = f"{title or ''} {summary or ''}".lower()

        for topic, keywords in self.KEYWORDS:
            for keyword in keywords:
                if keyword in text:
                    return ClassificationResult(topic=topic, matched_keyword=keyword)

        return ClassificationResult(topic=self.DEFAULT, matched_keyword=None)

    def classify(self, title: str, summary: str, categories: List[str] = None) -> Topic:
        """Classify an entry by title and summary.

        Feed categories are accepted but do not affect the result.
        """
        return self.match(title, summary).topic

    def classify_batch(self, entries: List[dict]) -> List[Topic]:
        """Classify multiple entries."""
        return [
            self.classify(
                entry.get("title", ""),
                entry.get("summary", "") or entry.get("description", ""),
                entry.get("categories"),
            )
            for entry in entries
        ]
