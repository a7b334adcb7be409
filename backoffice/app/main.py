"""Entrypoint for the travel back-office FastAPI backend."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List

from fastapi import FastAPI
from loguru import logger

from backoffice.app.api import bookings, inventory, quotes, system
from backoffice.app.config import Settings, get_settings
from backoffice.app.services.currency import CurrencyConverter
from backoffice.app.services.mock_client import MockSupabaseClient, offline_rate_transport
from backoffice.app.services.supabase_client import SupabaseClient


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup/shutdown routines."""
    settings: Settings = get_settings()
    client: SupabaseClient | MockSupabaseClient
    if settings.use_mock_data:
        client = MockSupabaseClient(settings)
        converter = CurrencyConverter(settings, transport=offline_rate_transport())
    else:
        client = SupabaseClient(settings)
        converter = CurrencyConverter(settings)
    activity_log: List[Dict[str, Any]] = []

    app.state.settings = settings  # type: ignore[attr-defined]
    app.state.data_client = client  # type: ignore[attr-defined]
    app.state.converter = converter  # type: ignore[attr-defined]
    app.state.activity_log = activity_log  # type: ignore[attr-defined]

    logger.info(
        "Starting back-office backend (mock mode = {mock})",
        mock=settings.use_mock_data,
    )
    try:
        yield
    finally:
        await client.close()
        await converter.close()
        logger.info("Back-office backend shutdown complete")


app = FastAPI(
    title="Travel Back Office Backend",
    version="0.1.0",
    lifespan=lifespan,
)


app.include_router(system.router)
app.include_router(inventory.router)
app.include_router(quotes.router)
app.include_router(bookings.router)


@app.get("/")
async def root() -> Dict[str, str]:
    """Simple root endpoint for manual verification."""
    return {"message": "Travel back-office backend is running"}
