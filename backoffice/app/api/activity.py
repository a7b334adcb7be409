"""Helpers to record request/response activity."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def record_activity(
    log: List[Dict[str, Any]],
    *,
    action: str,
    method: str,
    endpoint: str,
    payload: Optional[Dict[str, Any]] = None,
    response: Optional[Any] = None,
    status: str = "success",
    source: str = "supabase",
) -> None:
    """Append a structured entry to the in-memory activity log."""
    log.append(
        {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            "method": method,
            "endpoint": endpoint,
            "payload": payload,
            "response": response,
            "status": status,
            "source": source,
        }
    )


def summarize(response: Any) -> Any:
    """Keep log entries small: lists become their length, rows their id."""
    if isinstance(response, list):
        return {"count": len(response)}
    if isinstance(response, dict) and "id" in response:
        return {"id": response["id"]}
    return response
