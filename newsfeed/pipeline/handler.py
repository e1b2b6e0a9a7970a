"""Request/response surface for a fetch-articles invocation.

Transport-agnostic: takes the decoded JSON payload and returns an HTTP-style
status code with a JSON-serializable body.
"""

from typing import Awaitable, Callable, Optional, Tuple

import structlog

from ..errors import IngestionError
from ..ingestion.interfaces import IngestionRequest, IngestionResult
from .ingest import NO_NEW_ARTICLES, run_ingestion

logger = structlog.get_logger()

Runner = Callable[[IngestionRequest], Awaitable[IngestionResult]]


def build_request(payload: Optional[dict]) -> IngestionRequest:
    """Validate a {"timeFilter", "userId"} payload."""
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")

    user_id = payload.get("userId")
    if user_id is None or not str(user_id).strip():
        raise ValueError("userId is required")

    time_filter = payload.get("timeFilter")
    if time_filter is not None and not isinstance(time_filter, str):
        raise ValueError("timeFilter must be a string")

    return IngestionRequest(user_id=str(user_id), time_filter=time_filter)


def result_to_body(result: IngestionResult) -> dict:
    if result.articles_added == 0:
        return {
            "success": True,
            "articlesAdded": 0,
            "message": result.message or NO_NEW_ARTICLES,
        }
    return {
        "success": True,
        "articlesAdded": result.articles_added,
        "articles": [a.to_dict() for a in result.articles],
    }


async def handle_fetch_request(payload: Optional[dict], runner: Runner = None) -> Tuple[int, dict]:
    """Run an ingestion for a request payload.

    Returns (200, body) on success and (400, {"success": False, "error": ...})
    for invalid requests and hard pipeline failures.
    """
    runner = runner or run_ingestion
    try:
        request = build_request(payload)
        result = await runner(request)
    except (ValueError, IngestionError) as e:
        logger.error("fetch_request_failed", error=str(e))
        return 400, {"success": False, "error": str(e)}

    return 200, result_to_body(result)
