"""Pydantic models for inventory listing and mutations."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ListQuery(BaseModel):
    """Filters, search, sort and paging for an inventory table."""

    filters: Dict[str, Any] = Field(default_factory=dict)
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_desc: bool = False
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=25, ge=1, le=500)


class ListPage(BaseModel):
    items: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int
    pages: int


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class InventoryPayload(BaseModel):
    """Base for create payloads; unset optional fields are omitted."""

    model_config = ConfigDict(extra="forbid")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True, mode="json")


class PartialUpdate(BaseModel):
    """Mixin for update payloads: only explicitly supplied fields are sent."""

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, mode="json")


class FlightCreate(InventoryPayload):
    event_id: Optional[str] = None
    departure_airport_code: str = Field(..., min_length=3, max_length=4)
    arrival_airport_code: str = Field(..., min_length=3, max_length=4)
    return_departure_airport_code: Optional[str] = None
    return_arrival_airport_code: Optional[str] = None
    airline: Optional[str] = None
    flight_class: Optional[str] = None
    outbound_flight_number: Optional[str] = None
    outbound_departure_datetime: Optional[str] = None
    outbound_arrival_datetime: Optional[str] = None
    return_flight_number: Optional[str] = None
    return_departure_datetime: Optional[str] = None
    return_arrival_datetime: Optional[str] = None
    stops_outbound: int = Field(default=0, ge=0)
    stops_return: int = Field(default=0, ge=0)
    layovers_outbound: Optional[str] = None
    layovers_return: Optional[str] = None
    supplier: Optional[str] = None
    quote_currency: str = "GBP"
    supplier_quote: Optional[float] = Field(default=None, ge=0)
    markup_percent: float = Field(default=0, ge=0)
    price_gbp: Optional[float] = Field(default=None, ge=0)
    baggage_policy: Optional[str] = None
    refundable: Optional[bool] = None
    notes: Optional[str] = None
    is_active: bool = True


class FlightUpdate(PartialUpdate, FlightCreate):
    departure_airport_code: Optional[str] = Field(default=None, min_length=3, max_length=4)
    arrival_airport_code: Optional[str] = Field(default=None, min_length=3, max_length=4)


class AirportTransferCreate(InventoryPayload):
    event_id: Optional[str] = None
    hotel_id: Optional[str] = None
    transport_type: Literal["hotel_chauffeur", "private_car"]
    max_capacity: int = Field(..., ge=1)
    used: int = Field(default=0, ge=0)
    supplier: Optional[str] = None
    quote_currency: str = "GBP"
    supplier_quote_per_car_local: Optional[float] = Field(default=None, ge=0)
    supplier_quote_per_car_gbp: Optional[float] = Field(default=None, ge=0)
    paid_to_supplier: bool = False
    outstanding: bool = True
    markup: float = Field(default=0, ge=0)
    notes: Optional[str] = None
    active: bool = True


class AirportTransferUpdate(PartialUpdate, AirportTransferCreate):
    transport_type: Optional[Literal["hotel_chauffeur", "private_car"]] = None
    max_capacity: Optional[int] = Field(default=None, ge=1)


class CircuitTransferCreate(InventoryPayload):
    event_id: Optional[str] = None
    hotel_id: Optional[str] = None
    transfer_type: Literal["coach", "mpv"]
    coach_capacity: int = Field(..., ge=1)
    used: int = Field(default=0, ge=0)
    days: int = Field(default=1, ge=1)
    quote_hours: Optional[float] = Field(default=None, ge=0)
    supplier: Optional[str] = None
    supplier_currency: str = "GBP"
    coach_cost_per_day_local: Optional[float] = Field(default=None, ge=0)
    total_coach_cost_local: Optional[float] = Field(default=None, ge=0)
    total_coach_cost_gbp: Optional[float] = Field(default=None, ge=0)
    markup_percent: float = Field(default=0, ge=0)
    notes: Optional[str] = None
    active: bool = True


class CircuitTransferUpdate(PartialUpdate, CircuitTransferCreate):
    transfer_type: Optional[Literal["coach", "mpv"]] = None
    coach_capacity: Optional[int] = Field(default=None, ge=1)


class VenueCreate(InventoryPayload):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    description: Optional[str] = None
    map_url: Optional[str] = None
    website: Optional[str] = None


class VenueUpdate(PartialUpdate, VenueCreate):
    name: Optional[str] = Field(default=None, min_length=1)


class TicketCategoryCreate(InventoryPayload):
    category_name: str = Field(..., min_length=1)
    venue_id: Optional[str] = None
    sport_type: Optional[str] = None
    category_type: Optional[str] = None
    description: Optional[Any] = None
    options: Optional[Any] = None
    ticket_delivery_days: Optional[int] = Field(default=None, ge=0)


class TicketCategoryUpdate(PartialUpdate, TicketCategoryCreate):
    category_name: Optional[str] = Field(default=None, min_length=1)


class TicketCreate(InventoryPayload):
    event_id: Optional[str] = None
    ticket_category_id: str = Field(..., min_length=1)
    quantity_total: int = Field(..., ge=0)
    quantity_available: Optional[int] = Field(default=None, ge=0)
    price: float = Field(..., ge=0)
    markup_percent: float = Field(default=0, ge=0)
    currency: str = "GBP"
    price_with_markup: Optional[float] = Field(default=None, ge=0)
    delivery_method: Optional[str] = None
    ticket_type: Optional[str] = None
    refundable: Optional[bool] = None
    resellable: Optional[bool] = None
    supplier: Optional[str] = None
    supplier_ref: Optional[str] = None
    is_active: bool = True


class TicketUpdate(PartialUpdate, TicketCreate):
    ticket_category_id: Optional[str] = Field(default=None, min_length=1)
    quantity_total: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, ge=0)


class HotelRoomCreate(InventoryPayload):
    hotel_id: str = Field(..., min_length=1)
    room_type_id: str = Field(..., min_length=1)
    event_id: Optional[str] = None
    check_in: str
    check_out: str
    quantity_total: int = Field(..., ge=0)
    quantity_available: Optional[int] = Field(default=None, ge=0)
    base_price: float = Field(..., ge=0)
    markup_percent: float = Field(default=0, ge=0)
    currency: str = "GBP"
    price_with_markup: Optional[float] = Field(default=None, ge=0)
    contracted: bool = False
    supplier: Optional[str] = None
    supplier_ref: Optional[str] = None
    is_active: bool = True


class HotelRoomUpdate(PartialUpdate, HotelRoomCreate):
    hotel_id: Optional[str] = Field(default=None, min_length=1)
    room_type_id: Optional[str] = Field(default=None, min_length=1)
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    quantity_total: Optional[int] = Field(default=None, ge=0)
    base_price: Optional[float] = Field(default=None, ge=0)


class LoungePassCreate(InventoryPayload):
    event_id: Optional[str] = None
    airport_code: Optional[str] = Field(default=None, min_length=3, max_length=4)
    variant: str = Field(..., min_length=1)
    terminal: Optional[str] = None
    supplier: Optional[str] = None
    quote_currency: str = "GBP"
    supplier_quote: Optional[float] = Field(default=None, ge=0)
    markup_percent: float = Field(default=0, ge=0)
    price_with_markup: Optional[float] = Field(default=None, ge=0)
    capacity: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None
    is_active: bool = True


class LoungePassUpdate(PartialUpdate, LoungePassCreate):
    variant: Optional[str] = Field(default=None, min_length=1)

