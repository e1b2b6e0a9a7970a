"""Feed source registry and its JSON loader."""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import structlog

from ..ingestion.interfaces import FeedSource
from .settings import settings

logger = structlog.get_logger()


class FeedSourceRegistry:
    """Immutable mapping from source name to feed endpoint and image."""

    def __init__(self, sources: Iterable[FeedSource], fallback_image_url: str = None):
        self._sources: Dict[str, FeedSource] = {s.name: s for s in sources}
        self.fallback_image_url = fallback_image_url or settings.fallback_image_url

    def __contains__(self, name: str) -> bool:
        return name in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def get(self, name: str) -> Optional[FeedSource]:
        return self._sources.get(name)

    def feed_url(self, name: str) -> Optional[str]:
        """Feed endpoint for a source, None if the source is unknown."""
        source = self._sources.get(name)
        return source.url if source else None

    def image_url(self, name: str) -> str:
        """Placeholder image for a source, the fallback image if unknown."""
        source = self._sources.get(name)
        return source.image_url if source else self.fallback_image_url

    def names(self) -> List[str]:
        return sorted(self._sources)


def load_registry(config_path: str = None) -> FeedSourceRegistry:
    """Load the feed source registry from a JSON file."""
    if config_path is None:
        config_path = settings.feeds_config_path

    with open(config_path) as f:
        data = json.load(f)

    fallback = data.get("settings", {}).get("fallback_image_url", settings.fallback_image_url)

    sources = []
    for feed_data in data.get("feeds", []):
        sources.append(FeedSource(
            name=feed_data["name"],
            url=feed_data["url"],
            image_url=feed_data.get("image_url", fallback),
        ))

    logger.info("feed_registry_loaded", path=str(config_path), sources=len(sources))
    return FeedSourceRegistry(sources, fallback_image_url=fallback)
