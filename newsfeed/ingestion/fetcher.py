"""Async feed fetcher with bounded concurrency and per-request timeouts."""

import asyncio
import time
from typing import Optional

import aiohttp
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import structlog

from .interfaces import FetcherInterface
from ..config.settings import settings
from ..errors import TransportError

logger = structlog.get_logger()


class FeedFetcher(FetcherInterface):
    """Fetches raw feed text. Transport failures are logged, never raised."""

    def __init__(
        self,
        timeout_seconds: float = None,
        max_concurrent: int = None,
        user_agent: str = None,
    ):
        self.session: Optional[aiohttp.ClientSession] = None
        self.timeout_seconds = timeout_seconds or settings.fetch_timeout_seconds
        self.semaphore = asyncio.Semaphore(max_concurrent or settings.max_concurrent_fetches)
        self.user_agent = user_agent or settings.user_agent

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            headers={"User-Agent": self.user_agent}
        )
        return self

    async def __aexit__(self, *args):
        if self.session:
            await self.session.close()

    async def fetch_text(self, url: str) -> Optional[str]:
        """Fetch a feed body. Returns None on any transport failure."""
        async with self.semaphore:
            start_time = time.time()
            try:
                text = await self._get(url)
            except TransportError as e:
                elapsed_ms = int((time.time() - start_time) * 1000)
                logger.warning("feed_fetch_failed", url=url, error=e.reason, time_ms=elapsed_ms)
                return None

            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.info("feed_fetched", url=url, chars=len(text), time_ms=elapsed_ms)
            return text

    @retry(
        stop=stop_after_attempt(settings.fetch_max_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(TransportError),
        reraise=True,
    )
    async def _get(self, url: str) -> str:
        if self.session is None:
            raise RuntimeError("FeedFetcher must be used as an async context manager")
        try:
            async with self.session.get(url) as response:
                response.raise_for_status()
                return await response.text()
        except aiohttp.ClientResponseError as e:
            raise TransportError(url, f"HTTP {e.status}") from e
        except asyncio.TimeoutError as e:
            raise TransportError(url, f"timed out after {self.timeout_seconds}s") from e
        except (aiohttp.ClientError, UnicodeDecodeError, LookupError) as e:
            raise TransportError(url, str(e) or type(e).__name__) from e
