"""Pipeline orchestration - per-user ingestion runs."""

from .ingest import IngestionOrchestrator, SkipReason, EntryDecision, SourceReport, run_ingestion
from .handler import handle_fetch_request

__all__ = [
    "IngestionOrchestrator", "SkipReason", "EntryDecision", "SourceReport",
    "run_ingestion", "handle_fetch_request",
]
