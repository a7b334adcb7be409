"""Booking endpoints: quote promotion, lookups and confirmation PDFs."""

from datetime import date
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status

from backoffice.app.api.activity import record_activity, summarize
from backoffice.app.api.deps import (
    get_activity_log,
    get_app_settings,
    get_booking_service,
    get_quote_service,
)
from backoffice.app.config import Settings
from backoffice.app.models.booking import (
    BookingCreated,
    BookingForm,
    BookingFormView,
    BookingStatusUpdate,
)
from backoffice.app.services.booking_workflow import (
    BookingCreationError,
    BookingValidationError,
    BookingWorkflow,
)
from backoffice.app.services.bookings import BookingService
from backoffice.app.services.fields import as_mapping
from backoffice.app.services.pdf import (
    BookingConfirmationPDFRenderer,
    booking_pdf_filename,
    fetch_logo,
)
from backoffice.app.services.quotes import QuoteService
from backoffice.app.services.supabase_client import SupabaseAPIError

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


def _already_booked(view: BookingFormView) -> HTTPException:
    booking = view.booking or {}
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "message": "A booking already exists for this quote",
            "booking_id": booking.get("id"),
            "booking_reference": booking.get("booking_reference"),
        },
    )


@router.get("")
async def list_bookings(
    service: BookingService = Depends(get_booking_service),
) -> List[Dict[str, Any]]:
    try:
        return await service.list_bookings()
    except SupabaseAPIError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to fetch bookings: {exc.message}",
        ) from exc


@router.get("/by-quote/{quote_id}")
async def booking_for_quote(
    quote_id: str = Path(...),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    booking = await service.get_booking_by_quote(quote_id)
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No booking exists for this quote",
        )
    return booking


@router.get("/from-quote/{quote_id}/form", response_model=BookingFormView)
async def booking_form(
    quote_id: str = Path(...),
    quotes: QuoteService = Depends(get_quote_service),
    bookings: BookingService = Depends(get_booking_service),
) -> BookingFormView:
    """Load the prefilled booking form, or report why it cannot be shown."""
    return await BookingWorkflow(quotes, bookings).load(quote_id)


@router.post(
    "/from-quote/{quote_id}",
    response_model=BookingCreated,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    form: BookingForm,
    quote_id: str = Path(...),
    quotes: QuoteService = Depends(get_quote_service),
    bookings: BookingService = Depends(get_booking_service),
    activity_log=Depends(get_activity_log),
) -> BookingCreated:
    """Promote a quote into a booking."""
    endpoint = f"/bookings/from-quote/{quote_id}"
    body = form.model_dump()
    workflow = BookingWorkflow(quotes, bookings)

    view = await workflow.load(quote_id)
    if view.state == "error":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=view.error)
    if view.state == "already_booked":
        raise _already_booked(view)

    try:
        result = await workflow.submit(form)
    except BookingValidationError as exc:
        record_activity(
            activity_log,
            action="bookings.create",
            method="POST",
            endpoint=endpoint,
            payload=body,
            status="error",
            response={"error": str(exc)},
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    except BookingCreationError as exc:
        record_activity(
            activity_log,
            action="bookings.create",
            method="POST",
            endpoint=endpoint,
            payload=body,
            status="error",
            response={"error": str(exc), "retryable": exc.retryable},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # noqa: BLE001
        record_activity(
            activity_log,
            action="bookings.create",
            method="POST",
            endpoint=endpoint,
            payload=body,
            status="error",
            response={"error": str(exc)},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unexpected booking creation error",
        ) from exc

    if isinstance(result, BookingFormView):
        raise _already_booked(result)

    record_activity(
        activity_log,
        action="bookings.create",
        method="POST",
        endpoint=endpoint,
        payload=body,
        response=result.model_dump(),
    )
    return result


@router.get("/{booking_id}")
async def get_booking(
    booking_id: str = Path(...),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """Booking with its travelers, payments and booked components."""
    details = await service.get_booking_details(booking_id)
    if details is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return details


@router.put("/{booking_id}/status")
async def update_booking_status(
    update: BookingStatusUpdate,
    booking_id: str = Path(...),
    service: BookingService = Depends(get_booking_service),
    activity_log=Depends(get_activity_log),
) -> Dict[str, Any]:
    """Move a booking to a new status and record it in the booking's activity log."""
    endpoint = f"/bookings/{booking_id}/status"
    if await service.get_booking(booking_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    try:
        booking = await service.update_booking_status(booking_id, update.status, update.notes)
    except SupabaseAPIError as exc:
        record_activity(
            activity_log,
            action="bookings.status",
            method="PUT",
            endpoint=endpoint,
            payload=update.model_dump(),
            status="error",
            response={"error": exc.message},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to update booking status: {exc.message}",
        ) from exc

    record_activity(
        activity_log,
        action="bookings.status",
        method="PUT",
        endpoint=endpoint,
        payload=update.model_dump(),
        response=summarize(booking),
    )
    return booking


@router.get("/{booking_id}/pdf")
async def booking_pdf(
    booking_id: str = Path(...),
    service: BookingService = Depends(get_booking_service),
    settings: Settings = Depends(get_app_settings),
    activity_log=Depends(get_activity_log),
) -> Response:
    details = await service.get_booking_details(booking_id)
    if details is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

    team = as_mapping(details["booking"].get("team") or as_mapping(details.get("quote")).get("team"))
    logo = await fetch_logo(team.get("logo_url"))
    try:
        content = BookingConfirmationPDFRenderer(settings.company_name).render(details, logo)
    except Exception as exc:  # noqa: BLE001
        record_activity(
            activity_log,
            action="bookings.pdf",
            method="GET",
            endpoint=f"/bookings/{booking_id}/pdf",
            status="error",
            response={"error": str(exc)},
            source="pdf",
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate booking confirmation PDF",
        ) from exc

    filename = booking_pdf_filename(details["booking"], date.today())
    record_activity(
        activity_log,
        action="bookings.pdf",
        method="GET",
        endpoint=f"/bookings/{booking_id}/pdf",
        response=summarize({"id": booking_id}),
        source="pdf",
    )
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
