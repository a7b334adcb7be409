"""Quote retrieval, editing and display preparation."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from loguru import logger

from backoffice.app.models.booking import Quote, QuoteUpdate, QuoteView
from backoffice.app.services.components import coerce_component_list, extract_component_info
from backoffice.app.services.flights import extract_flight_info, partition_components


class QuoteService:
    """Reads and edits quotes through the backend client."""

    def __init__(self, client: Any):
        self._client = client

    async def list_quotes(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        filters = [("status", "eq", status)] if status else []
        return await self._client.select("quotes", filters, order="created_at", ascending=False)

    async def get_quote(self, quote_id: str) -> Optional[Quote]:
        row = await self._client.get("quotes", quote_id)
        return Quote.model_validate(row) if row else None

    async def update_quote(self, quote_id: str, payload: QuoteUpdate) -> Quote:
        changes = payload.to_payload()
        row = await self._client.update("quotes", quote_id, changes)
        logger.info("Updated quote {id}: {fields}", id=quote_id, fields=sorted(changes))
        return Quote.model_validate(row)

    async def get_quote_view(self, quote_id: str) -> Optional[QuoteView]:
        quote = await self.get_quote(quote_id)
        if quote is None:
            return None
        return build_quote_view(quote)


def build_quote_view(quote: Quote) -> QuoteView:
    """Split a quote's components into flight summaries and package rows."""
    flights, others = partition_components(coerce_component_list(quote.selected_components))
    return QuoteView(
        quote=quote,
        components=[extract_component_info(component) for component in others],
        flights=[extract_flight_info(component) for component in flights],
    )
