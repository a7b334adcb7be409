"""Pydantic models for quotes and quote-to-booking promotion."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from backoffice.app.models.components import ComponentInfo, FlightSummary

QuoteStatus = Literal[
    "draft", "sent", "accepted", "declined", "expired", "confirmed", "cancelled"
]
BOOKABLE_STATUSES = ("sent", "accepted", "confirmed")

PaymentType = Literal["deposit", "second_payment", "final_payment", "additional"]
BookingStatus = Literal["pending_payment", "confirmed", "cancelled", "completed"]


class Quote(BaseModel):
    """Quote row as stored by the backend; unknown columns are kept."""

    model_config = ConfigDict(extra="allow")

    id: str
    quote_number: Optional[str] = None
    status: str = "draft"
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    event_id: Optional[str] = None
    event_name: Optional[str] = None
    event_location: Optional[str] = None
    event_start_date: Optional[str] = None
    event_end_date: Optional[str] = None
    package_id: Optional[str] = None
    package_name: Optional[str] = None
    tier_id: Optional[str] = None
    tier_name: Optional[str] = None
    travelers_adults: Optional[int] = None
    travelers_total: Optional[int] = None
    selected_components: Any = None
    total_price: Optional[float] = None
    currency: str = "GBP"
    payment_deposit: Optional[float] = None
    payment_second_payment: Optional[float] = None
    payment_final_payment: Optional[float] = None
    payment_deposit_date: Optional[str] = None
    payment_second_payment_date: Optional[str] = None
    payment_final_payment_date: Optional[str] = None
    created_at: Optional[str] = None
    team: Optional[Dict[str, Any]] = None


class QuoteUpdate(BaseModel):
    """Editable quote fields."""

    status: Optional[QuoteStatus] = None
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    travelers_adults: Optional[int] = Field(default=None, ge=1)
    travelers_total: Optional[int] = Field(default=None, ge=1)
    total_price: Optional[float] = Field(default=None, ge=0)
    payment_deposit: Optional[float] = Field(default=None, ge=0)
    payment_second_payment: Optional[float] = Field(default=None, ge=0)
    payment_final_payment: Optional[float] = Field(default=None, ge=0)
    payment_deposit_date: Optional[str] = None
    payment_second_payment_date: Optional[str] = None
    payment_final_payment_date: Optional[str] = None
    internal_notes: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class QuoteView(BaseModel):
    """Quote with its components already normalized for display."""

    quote: Quote
    components: List[ComponentInfo]
    flights: List[FlightSummary]


class LeadTraveler(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: Optional[str] = None
    address: Optional[str] = None


class GuestTraveler(BaseModel):
    first_name: str = ""
    last_name: str = ""


class BookingPayment(BaseModel):
    payment_type: PaymentType
    amount: float = Field(default=0, ge=0)
    due_date: str = ""
    notes: Optional[str] = None


class FlightBookingEntry(BaseModel):
    booking_ref: Optional[str] = None
    ticketing_deadline: Optional[str] = None
    flight_status: str = "Booked - Not Ticketed"
    notes: Optional[str] = None


class LoungePassBookingEntry(BaseModel):
    booking_ref: str = ""
    notes: Optional[str] = None


class BookingForm(BaseModel):
    """Editable booking form, prefilled from a quote."""

    lead_traveler: LeadTraveler = Field(default_factory=LeadTraveler)
    guest_travelers: List[GuestTraveler] = Field(default_factory=list)
    deposit_paid: bool = True
    deposit_reference: Optional[str] = None
    use_original_payment_schedule: bool = True
    adjusted_payments: List[BookingPayment] = Field(default_factory=list)
    flights: List[FlightBookingEntry] = Field(default_factory=list)
    lounge_passes: List[LoungePassBookingEntry] = Field(default_factory=list)
    booking_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    special_requests: Optional[str] = None


class CreateBookingData(BaseModel):
    """Validated payload for the booking-creation mutation."""

    quote_id: str
    lead_traveler: LeadTraveler
    guest_travelers: List[GuestTraveler] = Field(default_factory=list)
    adjusted_payment_schedule: Optional[List[BookingPayment]] = None
    booking_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    special_requests: Optional[str] = None
    deposit_paid: bool = False
    deposit_reference: Optional[str] = None
    flights: List[FlightBookingEntry] = Field(default_factory=list)
    lounge_passes: List[LoungePassBookingEntry] = Field(default_factory=list)


WorkflowState = Literal[
    "loading", "ready", "error", "editing", "submitting", "success", "already_booked"
]


class BookingFormView(BaseModel):
    """Result of loading the booking form for a quote."""

    state: WorkflowState
    quote: Optional[Quote] = None
    form: Optional[BookingForm] = None
    booking: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class BookingCreated(BaseModel):
    state: WorkflowState = "success"
    booking_id: str
    booking_reference: str


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    notes: Optional[str] = None
