"""Quote listing, editing and PDF export endpoints."""

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from backoffice.app.api.activity import record_activity, summarize
from backoffice.app.api.deps import get_activity_log, get_app_settings, get_quote_service
from backoffice.app.config import Settings
from backoffice.app.models.booking import Quote, QuoteUpdate, QuoteView
from backoffice.app.services.pdf import QuotePDFRenderer, fetch_logo, quote_pdf_filename
from backoffice.app.services.quotes import QuoteService, build_quote_view
from backoffice.app.services.supabase_client import SupabaseAPIError

router = APIRouter(prefix="/api/quotes", tags=["quotes"])


@router.get("")
async def list_quotes(
    quote_status: Optional[str] = Query(default=None, alias="status"),
    service: QuoteService = Depends(get_quote_service),
    activity_log=Depends(get_activity_log),
) -> List[Dict[str, Any]]:
    try:
        quotes = await service.list_quotes(quote_status)
    except SupabaseAPIError as exc:
        record_activity(
            activity_log,
            action="quotes.list",
            method="GET",
            endpoint="/quotes",
            payload={"status": quote_status},
            status="error",
            response={"status_code": exc.status_code, "payload": exc.payload},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to fetch quotes: {exc.message}",
        ) from exc

    record_activity(
        activity_log,
        action="quotes.list",
        method="GET",
        endpoint="/quotes",
        payload={"status": quote_status},
        response=summarize(quotes),
    )
    return quotes


@router.get("/{quote_id}", response_model=QuoteView)
async def get_quote(
    quote_id: str = Path(...),
    service: QuoteService = Depends(get_quote_service),
) -> QuoteView:
    """Quote with its components normalized for display."""
    try:
        view = await service.get_quote_view(quote_id)
    except SupabaseAPIError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to fetch quote: {exc.message}",
        ) from exc
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quote not found")
    return view


@router.put("/{quote_id}", response_model=QuoteView)
async def update_quote(
    payload: QuoteUpdate,
    quote_id: str = Path(...),
    service: QuoteService = Depends(get_quote_service),
    activity_log=Depends(get_activity_log),
) -> QuoteView:
    body = payload.to_payload()
    try:
        quote: Quote = await service.update_quote(quote_id, payload)
    except SupabaseAPIError as exc:
        record_activity(
            activity_log,
            action="quotes.update",
            method="PUT",
            endpoint=f"/quotes/{quote_id}",
            payload=body,
            status="error",
            response={"status_code": exc.status_code, "payload": exc.payload},
        )
        code = status.HTTP_404_NOT_FOUND if exc.status_code == 404 else status.HTTP_400_BAD_REQUEST
        raise HTTPException(
            status_code=code,
            detail=f"Failed to update quote: {exc.message}",
        ) from exc

    record_activity(
        activity_log,
        action="quotes.update",
        method="PUT",
        endpoint=f"/quotes/{quote_id}",
        payload=body,
        response=summarize(quote.model_dump()),
    )
    return build_quote_view(quote)


@router.get("/{quote_id}/pdf")
async def quote_pdf(
    quote_id: str = Path(...),
    service: QuoteService = Depends(get_quote_service),
    settings: Settings = Depends(get_app_settings),
    activity_log=Depends(get_activity_log),
) -> Response:
    """Render the client-facing quote document."""
    quote = await service.get_quote(quote_id)
    if quote is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quote not found")

    team = quote.team or {}
    logo = await fetch_logo(team.get("logo_url"))
    try:
        content = QuotePDFRenderer(settings.company_name).render(quote, logo)
    except Exception as exc:  # noqa: BLE001
        record_activity(
            activity_log,
            action="quotes.pdf",
            method="GET",
            endpoint=f"/quotes/{quote_id}/pdf",
            status="error",
            response={"error": str(exc)},
            source="pdf",
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate quote PDF",
        ) from exc

    filename = quote_pdf_filename(quote, date.today())
    record_activity(
        activity_log,
        action="quotes.pdf",
        method="GET",
        endpoint=f"/quotes/{quote_id}/pdf",
        response={"filename": filename, "bytes": len(content)},
        source="pdf",
    )
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
