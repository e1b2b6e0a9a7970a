"""Interface definitions for topic classification."""

from dataclasses import dataclass
from typing import List, Optional
from enum import Enum


class Topic(Enum):
    """Topic tags, in the order they are tested."""
    AI = "#AI"
    CLIMATE = "#Climate"
    SCIENCE = "#Science"
    POLITICS = "#Politics"
    BUSINESS = "#Business"
    CRYPTO = "#Crypto"
    TECH = "#Tech"  # Default when nothing matches


@dataclass
class ClassificationResult:
    """Result of classifying an entry."""
    topic: Topic
    matched_keyword: Optional[str]  # None when the default was used


class ClassifierInterface:
    """Interface for topic classification."""

    def classify(self, title: str, summary: str, categories: List[str] = None) -> Topic:
        """Classify a single entry."""
        raise NotImplementedError

    def classify_batch(self, entries: List[dict]) -> List[Topic]:
        """Classify multiple entries."""
        raise NotImplementedError
