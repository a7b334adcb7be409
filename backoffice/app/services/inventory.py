"""Inventory managers: filtered listing and CRUD for inventory tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from math import ceil
from typing import Any, Dict, List, Optional, Tuple, Type

from loguru import logger
from pydantic import BaseModel

from backoffice.app.models.inventory import (
    AirportTransferCreate,
    AirportTransferUpdate,
    CircuitTransferCreate,
    CircuitTransferUpdate,
    FlightCreate,
    FlightUpdate,
    HotelRoomCreate,
    HotelRoomUpdate,
    ListPage,
    ListQuery,
    LoungePassCreate,
    LoungePassUpdate,
    TicketCategoryCreate,
    TicketCategoryUpdate,
    TicketCreate,
    TicketUpdate,
    VenueCreate,
    VenueUpdate,
)
from backoffice.app.services.currency import CurrencyConverter, apply_markup
from backoffice.app.services.supabase_client import Filter


@dataclass(frozen=True)
class EntitySpec:
    """How one inventory table is listed, searched and validated."""

    table: str
    label: str
    create_model: Type[BaseModel]
    update_model: Type[BaseModel]
    filters: Dict[str, Tuple[str, str]] = field(default_factory=dict)
    search_columns: Tuple[str, ...] = ()
    order_by: str = "created_at"


ENTITY_SPECS: Dict[str, EntitySpec] = {
    "flights": EntitySpec(
        table="flights",
        label="flight",
        create_model=FlightCreate,
        update_model=FlightUpdate,
        filters={
            "event_id": ("event_id", "eq"),
            "departure_airport_code": ("departure_airport_code", "eq"),
            "arrival_airport_code": ("arrival_airport_code", "eq"),
            "airline": ("airline", "eq"),
            "flight_class": ("flight_class", "eq"),
            "stops_outbound": ("stops_outbound", "eq"),
            "min_price": ("price_gbp", "gte"),
            "max_price": ("price_gbp", "lte"),
        },
        search_columns=(
            "departure_airport_code",
            "arrival_airport_code",
            "airline",
            "outbound_flight_number",
            "return_flight_number",
            "supplier",
            "notes",
        ),
    ),
    "airport_transfers": EntitySpec(
        table="airport_transfers",
        label="airport transfer",
        create_model=AirportTransferCreate,
        update_model=AirportTransferUpdate,
        filters={
            "event_id": ("event_id", "eq"),
            "hotel_id": ("hotel_id", "eq"),
            "transport_type": ("transport_type", "eq"),
            "supplier": ("supplier", "eq"),
            "quote_currency": ("quote_currency", "eq"),
        },
        search_columns=("transport_type", "supplier", "notes"),
    ),
    "circuit_transfers": EntitySpec(
        table="circuit_transfers",
        label="circuit transfer",
        create_model=CircuitTransferCreate,
        update_model=CircuitTransferUpdate,
        filters={
            "event_id": ("event_id", "eq"),
            "hotel_id": ("hotel_id", "eq"),
            "transfer_type": ("transfer_type", "eq"),
            "supplier": ("supplier", "eq"),
        },
        search_columns=("transfer_type", "supplier", "notes"),
    ),
    "venues": EntitySpec(
        table="venues",
        label="venue",
        create_model=VenueCreate,
        update_model=VenueUpdate,
        filters={"country": ("country", "eq"), "city": ("city", "eq")},
        search_columns=("name", "slug", "country", "city", "description"),
    ),
    "ticket_categories": EntitySpec(
        table="ticket_categories",
        label="ticket category",
        create_model=TicketCategoryCreate,
        update_model=TicketCategoryUpdate,
        filters={"venue_id": ("venue_id", "eq"), "category_type": ("category_type", "eq")},
        search_columns=("category_name", "sport_type", "category_type"),
    ),
    "tickets": EntitySpec(
        table="tickets",
        label="ticket",
        create_model=TicketCreate,
        update_model=TicketUpdate,
        filters={
            "event_id": ("event_id", "eq"),
            "ticket_category_id": ("ticket_category_id", "eq"),
            "ticket_type": ("ticket_type", "eq"),
            "supplier": ("supplier", "eq"),
            "min_available": ("quantity_available", "gte"),
            "max_price": ("price", "lte"),
        },
        search_columns=("ticket_category_id", "ticket_type", "supplier", "supplier_ref"),
    ),
    "hotel_rooms": EntitySpec(
        table="hotel_rooms",
        label="hotel room",
        create_model=HotelRoomCreate,
        update_model=HotelRoomUpdate,
        filters={
            "event_id": ("event_id", "eq"),
            "hotel_id": ("hotel_id", "eq"),
            "room_type_id": ("room_type_id", "eq"),
            "check_in_from": ("check_in", "gte"),
            "check_out_to": ("check_out", "lte"),
            "min_available": ("quantity_available", "gte"),
        },
        search_columns=("hotel_id", "room_type_id", "supplier", "supplier_ref"),
    ),
    "lounge_passes": EntitySpec(
        table="lounge_passes",
        label="lounge pass",
        create_model=LoungePassCreate,
        update_model=LoungePassUpdate,
        filters={
            "event_id": ("event_id", "eq"),
            "airport_code": ("airport_code", "eq"),
            "terminal": ("terminal", "eq"),
            "is_active": ("is_active", "eq"),
        },
        search_columns=("variant", "airport_code", "terminal", "supplier", "notes"),
    ),
}


# Base price column and markup column of tables whose sell price is stored.
SELL_PRICE_COLUMNS: Dict[str, Tuple[str, str]] = {
    "tickets": ("price", "markup_percent"),
    "hotel_rooms": ("base_price", "markup_percent"),
    "lounge_passes": ("supplier_quote", "markup_percent"),
}


class UnknownEntityError(KeyError):
    """Raised for entity names missing from ``ENTITY_SPECS``."""


class UnknownFilterError(ValueError):
    """Raised when a list query names a filter the entity does not support."""


def get_entity_spec(entity: str) -> EntitySpec:
    try:
        return ENTITY_SPECS[entity]
    except KeyError as exc:
        raise UnknownEntityError(entity) from exc


def build_filters(spec: EntitySpec, values: Dict[str, Any]) -> List[Filter]:
    """Translate query filter values into backend filters; blanks are skipped."""
    filters: List[Filter] = []
    for key, value in values.items():
        if value is None or value == "":
            continue
        if key not in spec.filters:
            raise UnknownFilterError(f"Unsupported filter '{key}' for {spec.table}")
        column, operator = spec.filters[key]
        filters.append((column, operator, value))
    return filters


def search_rows(rows: List[Dict[str, Any]], columns: Tuple[str, ...], term: Optional[str]) -> List[Dict[str, Any]]:
    """Case-insensitive substring match across ``columns``."""
    needle = (term or "").strip().lower()
    if not needle:
        return rows
    return [
        row
        for row in rows
        if any(needle in str(row.get(column) or "").lower() for column in columns)
    ]


def sort_rows(rows: List[Dict[str, Any]], column: Optional[str], descending: bool = False) -> List[Dict[str, Any]]:
    """Stable sort on ``column``; rows without a value always go last."""
    if not column:
        return rows
    present = [row for row in rows if row.get(column) is not None]
    missing = [row for row in rows if row.get(column) is None]
    try:
        present.sort(key=lambda row: row[column], reverse=descending)
    except TypeError:
        present.sort(key=lambda row: str(row[column]), reverse=descending)
    return present + missing


def paginate(rows: List[Dict[str, Any]], page: int, page_size: int) -> ListPage:
    total = len(rows)
    start = (page - 1) * page_size
    return ListPage(
        items=rows[start : start + page_size],
        total=total,
        page=page,
        page_size=page_size,
        pages=ceil(total / page_size) if page_size else 1,
    )


def price_with_markup(table: str, row: Dict[str, Any]) -> Optional[float]:
    """Sell price of a transfer row in the base currency."""
    if table == "airport_transfers":
        base, markup = row.get("supplier_quote_per_car_gbp"), row.get("markup")
    elif table == "circuit_transfers":
        base, markup = row.get("total_coach_cost_gbp"), row.get("markup_percent")
    else:
        return None
    if base is None:
        return None
    return apply_markup(float(base), float(markup or 0))


class InventoryManager:
    """CRUD over the inventory tables through the backend client."""

    def __init__(self, client: Any, converter: CurrencyConverter, base_currency: str = "GBP"):
        self._client = client
        self._converter = converter
        self._base_currency = base_currency

    async def list(self, entity: str, query: ListQuery) -> ListPage:
        spec = get_entity_spec(entity)
        filters = build_filters(spec, query.filters)
        rows = await self._client.select(spec.table, filters, order=spec.order_by, ascending=False)
        rows = search_rows(rows, spec.search_columns, query.search)
        for row in rows:
            if spec.table in ("airport_transfers", "circuit_transfers"):
                row["price_with_markup"] = price_with_markup(spec.table, row)
        rows = sort_rows(rows, query.sort_by, query.sort_desc)
        return paginate(rows, query.page, query.page_size)

    async def get(self, entity: str, record_id: str) -> Optional[Dict[str, Any]]:
        spec = get_entity_spec(entity)
        return await self._client.get(spec.table, record_id)

    async def _derive_prices(self, table: str, row: Dict[str, Any], current: Optional[Dict[str, Any]] = None) -> None:
        merged = {**(current or {}), **row}
        if table == "airport_transfers":
            local = merged.get("supplier_quote_per_car_local")
            currency = merged.get("quote_currency")
            if local is not None and currency and (
                "supplier_quote_per_car_local" in row or "quote_currency" in row
            ):
                row["supplier_quote_per_car_gbp"] = await self._converter.convert(
                    float(local), currency, self._base_currency
                )
        elif table == "circuit_transfers":
            per_day = merged.get("coach_cost_per_day_local")
            days = merged.get("days") or 1
            currency = merged.get("supplier_currency")
            if per_day is not None and currency and (
                {"coach_cost_per_day_local", "days", "supplier_currency"} & row.keys()
            ):
                total_local = round(float(per_day) * int(days), 2)
                row["total_coach_cost_local"] = total_local
                row["total_coach_cost_gbp"] = await self._converter.convert(
                    total_local, currency, self._base_currency
                )
        elif table in SELL_PRICE_COLUMNS:
            base_column, markup_column = SELL_PRICE_COLUMNS[table]
            base = merged.get(base_column)
            if base is not None and {base_column, markup_column} & row.keys():
                row["price_with_markup"] = apply_markup(float(base), float(merged.get(markup_column) or 0))

    async def create(self, entity: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        spec = get_entity_spec(entity)
        row = spec.create_model.model_validate(payload).to_payload()
        if "quantity_total" in row:
            row.setdefault("quantity_available", row["quantity_total"])
        await self._derive_prices(spec.table, row)
        created = await self._client.insert(spec.table, row)
        logger.info("Created {label} {id}", label=spec.label, id=created.get("id"))
        return created

    async def update(self, entity: str, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        spec = get_entity_spec(entity)
        changes = spec.update_model.model_validate(payload).to_payload()
        current = None
        if spec.table in ("airport_transfers", "circuit_transfers") or spec.table in SELL_PRICE_COLUMNS:
            current = await self._client.get(spec.table, record_id)
        await self._derive_prices(spec.table, changes, current)
        updated = await self._client.update(spec.table, record_id, changes)
        logger.info("Updated {label} {id}", label=spec.label, id=record_id)
        return updated

    async def delete(self, entity: str, record_id: str) -> None:
        spec = get_entity_spec(entity)
        await self._client.delete(spec.table, record_id)
        logger.info("Deleted {label} {id}", label=spec.label, id=record_id)

    async def bulk_delete(self, entity: str, record_ids: List[str]) -> int:
        """Delete sequentially; earlier deletions stay applied if a later one fails."""
        deleted = 0
        for record_id in record_ids:
            await self.delete(entity, record_id)
            deleted += 1
        return deleted
