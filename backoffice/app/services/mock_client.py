"""Mock Supabase client providing local demo data."""

from __future__ import annotations

import asyncio
import copy
import random
import string
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import httpx
from loguru import logger

from backoffice.app.config import Settings
from backoffice.app.services.currency import FALLBACK_RATES
from backoffice.app.services.supabase_client import Filter, SupabaseAPIError, encode_filter


def _random_id(prefix: str) -> str:
    token = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{prefix}_{token}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _demo_tables() -> Dict[str, List[Dict[str, Any]]]:
    team = {"name": "GPGT", "agency_name": "GPGT TRAVEL", "logo_url": None}
    return {
        "venues": [
            {
                "id": "venue-monaco",
                "name": "Circuit de Monaco",
                "slug": "circuit-de-monaco",
                "country": "Monaco",
                "city": "Monte Carlo",
                "timezone": "Europe/Monaco",
                "latitude": 43.7347,
                "longitude": 7.4206,
                "description": "Street circuit around the harbour",
                "map_url": None,
                "website": "https://www.formula1monaco.com",
                "created_at": "2025-01-05T09:00:00+00:00",
            },
            {
                "id": "venue-silverstone",
                "name": "Silverstone Circuit",
                "slug": "silverstone",
                "country": "United Kingdom",
                "city": "Silverstone",
                "timezone": "Europe/London",
                "latitude": 52.0786,
                "longitude": -1.0169,
                "description": None,
                "map_url": None,
                "website": "https://www.silverstone.co.uk",
                "created_at": "2025-01-06T09:00:00+00:00",
            },
        ],
        "ticket_categories": [
            {
                "id": "tc-grandstand-k",
                "category_name": "Grandstand K",
                "venue_id": "venue-monaco",
                "sport_type": "formula1",
                "category_type": "grandstand",
                "description": {"summary": "Covered seats overlooking the harbour"},
                "options": {"covered": True},
                "ticket_delivery_days": 14,
                "created_at": "2025-01-10T09:00:00+00:00",
            },
            {
                "id": "tc-club",
                "category_name": "Silverstone Club",
                "venue_id": "venue-silverstone",
                "sport_type": "formula1",
                "category_type": "grandstand",
                "description": None,
                "options": None,
                "ticket_delivery_days": 7,
                "created_at": "2025-01-11T09:00:00+00:00",
            },
        ],
        "flights": [
            {
                "id": "fl-lhr-nce",
                "event_id": "event-monaco-2025",
                "departure_airport_code": "LHR",
                "arrival_airport_code": "NCE",
                "return_departure_airport_code": "NCE",
                "return_arrival_airport_code": "LHR",
                "airline": "British Airways",
                "flight_class": "Economy",
                "outbound_flight_number": "BA342",
                "outbound_departure_datetime": "2025-05-22T07:15:00",
                "outbound_arrival_datetime": "2025-05-22T10:20:00",
                "return_flight_number": "BA343",
                "return_departure_datetime": "2025-05-26T11:05:00",
                "return_arrival_datetime": "2025-05-26T12:20:00",
                "stops_outbound": 0,
                "stops_return": 0,
                "supplier": "BA Holidays",
                "quote_currency": "GBP",
                "supplier_quote": 320.0,
                "markup_percent": 15,
                "price_gbp": 320.0,
                "baggage_policy": "1 x 23kg",
                "refundable": False,
                "notes": None,
                "is_active": True,
                "created_at": "2025-02-01T10:00:00+00:00",
            },
            {
                "id": "fl-man-nce",
                "event_id": "event-monaco-2025",
                "departure_airport_code": "MAN",
                "arrival_airport_code": "NCE",
                "return_departure_airport_code": "NCE",
                "return_arrival_airport_code": "MAN",
                "airline": "easyJet",
                "flight_class": "Economy",
                "outbound_flight_number": "U22203",
                "outbound_departure_datetime": "2025-05-22T06:40:00",
                "outbound_arrival_datetime": "2025-05-22T10:05:00",
                "return_flight_number": "U22204",
                "return_departure_datetime": "2025-05-26T10:50:00",
                "return_arrival_datetime": "2025-05-26T12:25:00",
                "stops_outbound": 0,
                "stops_return": 0,
                "supplier": "easyJet",
                "quote_currency": "EUR",
                "supplier_quote": 260.0,
                "markup_percent": 10,
                "price_gbp": 221.0,
                "baggage_policy": None,
                "refundable": False,
                "notes": "Cabin bag only",
                "is_active": True,
                "created_at": "2025-02-02T10:00:00+00:00",
            },
        ],
        "airport_transfers": [
            {
                "id": "at-nice-chauffeur",
                "event_id": "event-monaco-2025",
                "hotel_id": "hotel-fairmont",
                "transport_type": "hotel_chauffeur",
                "max_capacity": 10,
                "used": 2,
                "supplier": "Riviera Cars",
                "quote_currency": "EUR",
                "supplier_quote_per_car_local": 180.0,
                "supplier_quote_per_car_gbp": 153.0,
                "paid_to_supplier": False,
                "outstanding": True,
                "markup": 20,
                "notes": None,
                "active": True,
                "created_at": "2025-02-10T08:00:00+00:00",
            },
            {
                "id": "at-nice-private",
                "event_id": "event-monaco-2025",
                "hotel_id": "hotel-hermitage",
                "transport_type": "private_car",
                "max_capacity": 6,
                "used": 0,
                "supplier": None,
                "quote_currency": "GBP",
                "supplier_quote_per_car_local": 120.0,
                "supplier_quote_per_car_gbp": 120.0,
                "paid_to_supplier": True,
                "outstanding": False,
                "markup": 10,
                "notes": "Meet and greet",
                "active": True,
                "created_at": "2025-02-11T08:00:00+00:00",
            },
        ],
        "circuit_transfers": [
            {
                "id": "ct-monaco-coach",
                "event_id": "event-monaco-2025",
                "hotel_id": "hotel-fairmont",
                "transfer_type": "coach",
                "coach_capacity": 50,
                "used": 12,
                "days": 3,
                "quote_hours": 6,
                "supplier": "Azur Coaches",
                "supplier_currency": "EUR",
                "coach_cost_per_day_local": 900.0,
                "total_coach_cost_local": 2700.0,
                "total_coach_cost_gbp": 2295.0,
                "markup_percent": 25,
                "notes": None,
                "active": True,
                "created_at": "2025-02-15T08:00:00+00:00",
            },
        ],
        "tickets": [
            {
                "id": "tk-monaco-k",
                "event_id": "event-monaco-2025",
                "ticket_category_id": "tc-grandstand-k",
                "quantity_total": 40,
                "quantity_available": 25,
                "price": 800.0,
                "markup_percent": 18.75,
                "currency": "GBP",
                "price_with_markup": 950.0,
                "delivery_method": "e-ticket",
                "ticket_type": "3-day",
                "refundable": False,
                "resellable": False,
                "supplier": "ACM",
                "supplier_ref": "ACM-K-2025",
                "is_active": True,
                "created_at": "2025-01-12T09:00:00+00:00",
            },
        ],
        "hotel_rooms": [
            {
                "id": "room-hermitage",
                "hotel_id": "hotel-hermitage",
                "room_type_id": "deluxe_double",
                "event_id": "event-monaco-2025",
                "check_in": "2025-05-22",
                "check_out": "2025-05-26",
                "quantity_total": 10,
                "quantity_available": 4,
                "base_price": 2600.0,
                "markup_percent": 15,
                "currency": "EUR",
                "price_with_markup": 2990.0,
                "contracted": True,
                "supplier": "Hotel Hermitage",
                "supplier_ref": None,
                "is_active": True,
                "created_at": "2025-01-15T09:00:00+00:00",
            },
        ],
        "lounge_passes": [
            {
                "id": "lp-heathrow",
                "event_id": "event-monaco-2025",
                "airport_code": "LHR",
                "variant": "No1 Lounge",
                "terminal": "T3",
                "supplier": "No1 Lounges",
                "quote_currency": "GBP",
                "supplier_quote": 40.0,
                "markup_percent": 12.5,
                "price_with_markup": 45.0,
                "capacity": 20,
                "notes": None,
                "is_active": True,
                "created_at": "2025-02-20T08:00:00+00:00",
            },
        ],
        "quotes": [
            {
                "id": "quote-array",
                "quote_number": "Q-2025-0001",
                "status": "sent",
                "client_id": "client-1",
                "client_name": "Alice Mary Example",
                "client_email": "alice@example.com",
                "client_phone": "+44 20 7946 0001",
                "event_id": "event-monaco-2025",
                "event_name": "Monaco Grand Prix 2025",
                "event_location": "Monte Carlo, Monaco",
                "event_start_date": "2025-05-23",
                "event_end_date": "2025-05-25",
                "package_name": "Harbour Weekend",
                "tier_name": "Gold",
                "travelers_adults": 2,
                "travelers_total": 2,
                "total_price": 5000.0,
                "currency": "GBP",
                "payment_deposit": 1500.0,
                "payment_second_payment": 1500.0,
                "payment_final_payment": 2000.0,
                "payment_deposit_date": "2025-01-31",
                "payment_second_payment_date": "2025-03-01",
                "payment_final_payment_date": "2025-04-15",
                "created_at": "2025-01-20T12:00:00+00:00",
                "team": team,
                "selected_components": [
                    {
                        "id": "tc-grandstand-k",
                        "type": "ticket",
                        "componentType": "ticket",
                        "name": "Grandstand K",
                        "quantity": 2,
                        "data": {"category_name": "Grandstand K", "price": 950},
                    },
                    {
                        "id": "room-fairmont-deluxe",
                        "type": "hotel_room",
                        "componentType": "hotel_room",
                        "quantity": 1,
                        "data": {
                            "hotelName": "Fairmont Monte Carlo",
                            "roomType": "Deluxe Sea View",
                            "bedType": "King",
                            "checkIn": "2025-05-22",
                            "checkOut": "2025-05-26",
                        },
                    },
                    {
                        "id": "ct-monaco-coach",
                        "type": "circuit_transfer",
                        "quantity": 2,
                        "data": {"transfer_type": "coach", "days": 3},
                    },
                    {
                        "id": "at-nice-chauffeur",
                        "type": "airport_transfer",
                        "component_type": "airport_transfer",
                        "quantity": 1,
                        "component_data": {
                            "transport_type": "hotel_chauffeur",
                            "transferDirection": "both",
                        },
                    },
                    {
                        "id": "fl-offer-1",
                        "type": "flight",
                        "quantity": 2,
                        "data": {
                            "source": "api",
                            "origin": "LHR",
                            "destination": "NCE",
                            "passengers": 2,
                            "total": 640.0,
                            "currencyId": "GBP",
                            "fareTypeName": "Economy Light",
                            "refundable": False,
                            "outboundFlightSegments": [
                                {
                                    "departureAirportName": "London Heathrow",
                                    "departureAirportId": "LHR",
                                    "arrivalAirportName": "Nice Cote d'Azur",
                                    "arrivalAirportId": "NCE",
                                    "departureDateTime": "2025-05-22T07:15:00",
                                    "arrivalDateTime": "2025-05-22T10:20:00",
                                    "flightDuration": "2h 05m",
                                    "flightNumber": "BA342",
                                    "marketingAirlineName": "British Airways",
                                    "cabin": "Economy",
                                    "BaggageAllowance": {"NumberOfPieces": 1},
                                    "aircraftType": "A320",
                                }
                            ],
                            "returnFlightSegments": [
                                {
                                    "departureAirportName": "Nice Cote d'Azur",
                                    "departureAirportId": "NCE",
                                    "arrivalAirportName": "London Heathrow",
                                    "arrivalAirportId": "LHR",
                                    "departureDateTime": "2025-05-26T11:05:00",
                                    "arrivalDateTime": "2025-05-26T12:20:00",
                                    "flightDuration": "2h 15m",
                                    "flightNumber": "BA343",
                                    "marketingAirlineName": "British Airways",
                                    "cabin": "Economy",
                                    "aircraftType": "A320",
                                }
                            ],
                        },
                    },
                    {
                        "id": "lp-heathrow",
                        "type": "lounge_pass",
                        "quantity": 2,
                        "data": {"variant": "Plaza Premium Lounge", "price": 45},
                    },
                ],
            },
            {
                "id": "quote-legacy",
                "quote_number": "Q-2024-0042",
                "status": "accepted",
                "client_id": "client-2",
                "client_name": "Bob Sample",
                "client_email": "bob@example.com",
                "client_phone": None,
                "event_id": "event-monaco-2025",
                "event_name": "Monaco Grand Prix 2025",
                "event_location": "Monte Carlo, Monaco",
                "event_start_date": "2025-05-23",
                "event_end_date": "2025-05-25",
                "package_name": "Paddock Explorer",
                "tier_name": "Silver",
                "travelers_adults": 1,
                "travelers_total": 1,
                "total_price": 2400.0,
                "currency": "GBP",
                "payment_deposit": 800.0,
                "payment_second_payment": 800.0,
                "payment_final_payment": 800.0,
                "payment_deposit_date": "2024-12-01",
                "payment_second_payment_date": "2025-02-01",
                "payment_final_payment_date": "2025-04-01",
                "created_at": "2024-11-20T12:00:00+00:00",
                "team": team,
                "selected_components": {
                    "tickets": [{"id": "tk-monaco-k", "category": "Grandstand K", "quantity": 1, "price": 950}],
                    "hotels": [{"roomId": "room-hermitage", "hotel_name": "Hotel Hermitage", "quantity": 1}],
                    "circuitTransfers": [{"id": "ct-monaco-coach", "transfer_type": "coach", "days": 3, "quantity": 1}],
                    "airportTransfers": [
                        {"id": "at-nice-private", "transport_type": "private_car", "direction": "outbound", "quantity": 1}
                    ],
                    "flights": [
                        {
                            "id": "fl-lhr-nce",
                            "originAirport": "LHR",
                            "destinationAirport": "NCE",
                            "airline": "British Airways",
                            "passengers": 1,
                            "price": 368.0,
                            "currencyCode": "gbp",
                            "outboundFlight": {
                                "DepartureAirportName": "London Heathrow",
                                "departureAirportId": "LHR",
                                "arrivalAirportName": "Nice Cote d'Azur",
                                "arrivalAirportId": "NCE",
                                "departureDateTime": "2025-05-22T07:15:00",
                                "arrivalDateTime": "2025-05-22T10:20:00",
                                "flightDuration": "2h 05m",
                                "flightNumber": "BA342",
                            },
                        }
                    ],
                    "loungePass": {"id": "lp-heathrow", "variant": "No1 Lounge", "quantity": 1},
                },
            },
            {
                "id": "quote-draft",
                "quote_number": "Q-2025-0007",
                "status": "draft",
                "client_name": "Carol Draft",
                "client_email": "carol@example.com",
                "travelers_adults": 1,
                "total_price": 900.0,
                "currency": "GBP",
                "payment_deposit": 300.0,
                "payment_second_payment": 300.0,
                "payment_final_payment": 300.0,
                "created_at": "2025-03-01T12:00:00+00:00",
                "team": team,
                "selected_components": [],
            },
            {
                "id": "quote-booked",
                "quote_number": "Q-2025-0003",
                "status": "confirmed",
                "client_name": "Dan Booked",
                "client_email": "dan@example.com",
                "travelers_adults": 1,
                "total_price": 1200.0,
                "currency": "GBP",
                "payment_deposit": 400.0,
                "payment_second_payment": 400.0,
                "payment_final_payment": 400.0,
                "created_at": "2025-02-01T12:00:00+00:00",
                "team": team,
                "selected_components": [
                    {"id": "custom-1", "name": "Paddock Tour", "description": "Guided pit lane walk"}
                ],
            },
        ],
        "bookings": [
            {
                "id": "booking-existing",
                "booking_reference": "B-2025-DEMO01",
                "quote_id": "quote-booked",
                "status": "confirmed",
                "total_price": 1200.0,
                "currency": "GBP",
                "created_at": "2025-02-05T12:00:00+00:00",
            }
        ],
        "booking_payments": [],
        "booking_travelers": [
            {
                "id": "traveler-dan",
                "booking_id": "booking-existing",
                "traveler_type": "lead",
                "first_name": "Dan",
                "last_name": "Booked",
                "email": "dan@example.com",
            }
        ],
        "booking_components": [],
        "bookings_flights": [],
        "bookings_lounge_passes": [],
        "booking_activities": [],
    }


def _coerce(value: Any, target: Any) -> Any:
    """Query-string targets compared against numeric or boolean columns are parsed first."""
    if isinstance(target, str) and isinstance(value, bool):
        return target.strip().lower() == "true"
    if isinstance(target, str) and isinstance(value, (int, float)):
        try:
            return float(target)
        except ValueError:
            return target
    return target


def _compare(value: Any, operator: str, target: Any) -> bool:
    target = _coerce(value, target)
    if operator == "eq":
        return value == target
    if operator == "neq":
        return value != target
    if operator == "in":
        return value in (target if isinstance(target, (list, tuple, set)) else [target])
    if operator == "ilike":
        needle = str(target).strip("%*").lower()
        return value is not None and needle in str(value).lower()
    if value is None:
        return False
    try:
        if operator == "gt":
            return value > target
        if operator == "gte":
            return value >= target
        if operator == "lt":
            return value < target
        if operator == "lte":
            return value <= target
    except TypeError:
        return False
    return False


class MockSupabaseClient:
    """In-memory mock client mimicking the Supabase table API."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._tables: Dict[str, List[Dict[str, Any]]] = _demo_tables()

    async def close(self) -> None:
        """Mock close to align with SupabaseClient interface."""
        await asyncio.sleep(0)

    def _table(self, table: str) -> List[Dict[str, Any]]:
        return self._tables.setdefault(table, [])

    async def select(
        self,
        table: str,
        filters: Optional[Iterable[Filter]] = None,
        *,
        columns: str = "*",
        order: Optional[str] = None,
        ascending: bool = True,
    ) -> List[Dict[str, Any]]:
        """Return copies of rows matching every filter."""
        filters = list(filters or [])
        for _column, operator, value in filters:
            encode_filter(operator, value)
        rows = [
            row
            for row in self._table(table)
            if all(_compare(row.get(column), operator, value) for column, operator, value in filters)
        ]
        if order:
            present = [row for row in rows if row.get(order) is not None]
            missing = [row for row in rows if row.get(order) is None]
            present.sort(key=lambda row: row[order], reverse=not ascending)
            rows = present + missing
        if columns != "*":
            wanted = [column.strip() for column in columns.split(",")]
            rows = [{key: row.get(key) for key in wanted} for row in rows]
        return copy.deepcopy(rows)

    async def get(self, table: str, record_id: Any) -> Optional[Dict[str, Any]]:
        rows = await self.select(table, [("id", "eq", record_id)])
        return rows[0] if rows else None

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        stored = copy.deepcopy(row)
        stored.setdefault("id", _random_id(table.rstrip("s")))
        stored.setdefault("created_at", _now())
        self._table(table).append(stored)
        logger.debug("Mock insert into {table}: {id}", table=table, id=stored["id"])
        return copy.deepcopy(stored)

    async def insert_many(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [await self.insert(table, row) for row in rows]

    async def update(self, table: str, record_id: Any, changes: Dict[str, Any]) -> Dict[str, Any]:
        for row in self._table(table):
            if row.get("id") == record_id:
                row.update(copy.deepcopy(changes))
                row["updated_at"] = _now()
                return copy.deepcopy(row)
        raise SupabaseAPIError(404, {"message": f"{table} record not found"})

    async def delete(self, table: str, record_id: Any) -> None:
        rows = self._table(table)
        self._tables[table] = [row for row in rows if row.get("id") != record_id]


def offline_rate_transport() -> httpx.MockTransport:
    """Exchange-rate API stand-in serving ``FALLBACK_RATES`` without network access."""

    def handler(request: httpx.Request) -> httpx.Response:
        base = request.url.path.rstrip("/").rsplit("/", 1)[-1].upper()
        rates = FALLBACK_RATES.get(base)
        if rates is None:
            return httpx.Response(404, json={"error": f"unsupported base {base}"})
        return httpx.Response(200, json={"base": base, "rates": rates})

    return httpx.MockTransport(handler)
