"""Topic classification."""

from .interfaces import Topic, ClassificationResult, ClassifierInterface
from .classifier import TopicClassifier

__all__ = ["Topic", "ClassificationResult", "ClassifierInterface", "TopicClassifier"]
