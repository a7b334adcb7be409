"""FastAPI dependency helpers."""

from typing import Any, Dict, List

from fastapi import Depends, Request

from backoffice.app.config import Settings, get_settings
from backoffice.app.services.bookings import BookingService
from backoffice.app.services.currency import CurrencyConverter
from backoffice.app.services.inventory import InventoryManager
from backoffice.app.services.quotes import QuoteService


def get_app_settings() -> Settings:
    """Provide application settings."""
    return get_settings()


def get_data_client(
    request: Request, settings: Settings = Depends(get_app_settings)
) -> Any:
    """Retrieve the Supabase (or mock) client from app state."""
    client = request.app.state.data_client  # type: ignore[attr-defined]
    return client


def get_converter(request: Request) -> CurrencyConverter:
    converter: CurrencyConverter = request.app.state.converter  # type: ignore[attr-defined]
    return converter


def get_activity_log(request: Request) -> List[Dict[str, Any]]:
    """Return activity log stored in app state."""
    log: List[Dict[str, Any]] = request.app.state.activity_log  # type: ignore[attr-defined]
    return log


def get_inventory_manager(
    client: Any = Depends(get_data_client),
    converter: CurrencyConverter = Depends(get_converter),
    settings: Settings = Depends(get_app_settings),
) -> InventoryManager:
    return InventoryManager(client, converter, base_currency=settings.default_currency)


def get_quote_service(client: Any = Depends(get_data_client)) -> QuoteService:
    return QuoteService(client)


def get_booking_service(client: Any = Depends(get_data_client)) -> BookingService:
    return BookingService(client)
