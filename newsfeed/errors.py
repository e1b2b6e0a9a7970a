"""Exception hierarchy for the ingestion pipeline.

Soft errors (TransportError, FeedParseError, ConfigurationGap) are contained
at the source or entry they concern. Hard errors (StoreReadError,
StoreWriteError) abort the run and reach the caller.
"""


class IngestionError(Exception):
    """Base class for ingestion errors."""


class TransportError(IngestionError):
    """Feed unreachable, timed out, non-2xx, or undecodable."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class FeedParseError(IngestionError):
    """A feed item could not be parsed."""


class ConfigurationGap(IngestionError):
    """A subscription names a source the registry does not know."""


class StoreReadError(IngestionError):
    """Reading from the store failed."""


class StoreWriteError(IngestionError):
    """Writing to the store failed."""
