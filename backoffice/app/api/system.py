"""Operational endpoints: backend status, exchange rates and the session activity log."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from backoffice.app.api.deps import get_activity_log, get_app_settings, get_converter, get_data_client
from backoffice.app.config import Settings
from backoffice.app.services.currency import CurrencyConverter
from backoffice.app.services.mock_client import MockSupabaseClient

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
async def health(
    settings: Settings = Depends(get_app_settings),
    client: Any = Depends(get_data_client),
    converter: CurrencyConverter = Depends(get_converter),
    activity_log=Depends(get_activity_log),
) -> Dict[str, Any]:
    """Which data source the console is talking to, plus cache and log sizes."""
    return {
        "status": "ok",
        "app_name": settings.app_name,
        "data_source": "mock" if isinstance(client, MockSupabaseClient) else "supabase",
        "use_mock_data": settings.use_mock_data,
        "default_currency": settings.default_currency,
        "cached_rates": len(converter.cache),
        "rate_cache_ttl_seconds": settings.rate_cache_ttl_seconds,
        "activity_entries": len(activity_log),
    }


@router.get("/rates")
async def exchange_rate(
    from_currency: str = Query(..., alias="from", min_length=3, max_length=3),
    to_currency: Optional[str] = Query(default=None, alias="to", min_length=3, max_length=3),
    settings: Settings = Depends(get_app_settings),
    converter: CurrencyConverter = Depends(get_converter),
) -> Dict[str, Any]:
    """Rate used for supplier-cost conversion; ``to`` defaults to the base currency."""
    target = (to_currency or settings.default_currency).upper()
    rate, source = await converter.lookup(from_currency, target)
    return {"from": from_currency.upper(), "to": target, "rate": rate, "source": source}


@router.delete("/rates")
async def clear_rates(
    converter: CurrencyConverter = Depends(get_converter),
) -> Dict[str, Any]:
    """Drop cached rates so the next conversion asks the rate service again."""
    dropped = len(converter.cache)
    converter.cache.clear()
    return {"status": "cleared", "dropped": dropped}


@router.get("/activity")
async def activity(
    activity_log=Depends(get_activity_log),
    action: Optional[str] = Query(default=None, description="Action prefix, e.g. 'bookings.'"),
    status: Optional[str] = Query(default=None, pattern="^(success|error)$"),
    limit: Optional[int] = Query(default=None, ge=1),
) -> List[Dict[str, Any]]:
    """Recorded entries, oldest first, optionally filtered and trimmed to the newest ``limit``."""
    entries = [
        entry
        for entry in activity_log
        if (action is None or str(entry.get("action", "")).startswith(action))
        and (status is None or entry.get("status") == status)
    ]
    if limit is not None:
        entries = entries[-limit:]
    return entries


@router.delete("/activity")
async def clear_activity(
    activity_log=Depends(get_activity_log),
) -> Dict[str, str]:
    activity_log.clear()
    return {"status": "cleared"}
