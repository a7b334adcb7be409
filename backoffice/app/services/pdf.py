"""Quote and booking confirmation PDF rendering with ReportLab."""

from __future__ import annotations

import base64
from datetime import date
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Union
from xml.sax.saxutils import escape

import httpx
from loguru import logger
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from backoffice.app.models.booking import Quote
from backoffice.app.models.components import FlightData
from backoffice.app.services.components import coerce_component_list, extract_component_info
from backoffice.app.services.fields import as_mapping, format_date
from backoffice.app.services.flights import (
    build_itinerary,
    extract_flight_info,
    normalize_flight,
    partition_components,
    segment_row,
)

BRAND = colors.HexColor("#CF212A")
ROW_ALT = colors.HexColor("#F7F7F7")
PAGE_MARGIN = 36
CONTENT_WIDTH = A4[0] - 2 * PAGE_MARGIN


async def fetch_logo(url: Optional[str], transport: Optional[httpx.AsyncBaseTransport] = None) -> Optional[bytes]:
    """Logo bytes from a ``data:`` URI or URL; any failure yields ``None``."""
    if not url:
        return None
    try:
        if url.startswith("data:"):
            return base64.b64decode(url.split(",", 1)[1])
        async with httpx.AsyncClient(timeout=httpx.Timeout(10.0), transport=transport) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content
    except (httpx.HTTPError, ValueError, IndexError) as exc:
        logger.warning("Logo fetch failed for {url}: {error}", url=url[:80], error=exc)
        return None


def quote_pdf_filename(quote: Quote, today: date) -> str:
    return f"quote-{quote.quote_number or quote.id}-{today.isoformat()}.pdf"


def booking_pdf_filename(booking: Dict[str, Any], today: date) -> str:
    return f"booking-{booking.get('booking_reference') or booking.get('id')}-{today.isoformat()}.pdf"


def _money(currency: Optional[str], amount: Any) -> str:
    try:
        return f"{currency or 'GBP'} {float(amount):,.2f}"
    except (TypeError, ValueError):
        return "N/A"


def pair_booked_flights(
    flights: Sequence[Dict[str, Any]], booked: Sequence[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Booked flight row for each quoted flight component.

    Rows are matched on ``source_flight_id`` first; the rest are handed out in
    ``flight_sequence`` order. A flight without a row gets ``{}``.
    """
    remaining = sorted(booked, key=lambda row: row.get("flight_sequence") or 0)
    paired: List[Optional[Dict[str, Any]]] = []
    for component in flights:
        match = None
        flight_id = component.get("id") if isinstance(component, dict) else None
        if flight_id is not None:
            match = next((row for row in remaining if row.get("source_flight_id") == flight_id), None)
        if match is not None:
            remaining.remove(match)
        paired.append(match)
    return [row if row is not None else (remaining.pop(0) if remaining else {}) for row in paired]


def booking_flight_sections(flight: FlightData) -> Dict[str, Union[List[Dict[str, str]], str]]:
    """Outbound/return rows for a flight; a direction with no segments is ``"N/A"``."""
    sections: Dict[str, Union[List[Dict[str, str]], str]] = {}
    for direction in ("outbound", "return"):
        itinerary = build_itinerary(flight, direction)
        sections[direction] = [segment_row(segment) for segment in itinerary.segments] or "N/A"
    return sections


class PDFRenderer:
    """Shared page furniture: header, tables, footer and document build."""

    footer_lines: Sequence[str] = ()

    def __init__(self, company_name: str = "GPGT TRAVEL"):
        self.company_name = company_name
        base = getSampleStyleSheet()
        self.styles = {
            "body": ParagraphStyle("body", parent=base["BodyText"], fontSize=9, leading=12),
            "small": ParagraphStyle("small", parent=base["BodyText"], fontSize=8, leading=10, textColor=colors.grey),
            "company": ParagraphStyle("company", parent=base["Title"], fontSize=18, textColor=BRAND, alignment=0),
            "heading": ParagraphStyle(
                "heading", parent=base["Heading3"], fontSize=11, textColor=BRAND, spaceBefore=10, spaceAfter=4
            ),
            "subheading": ParagraphStyle("subheading", parent=base["Heading4"], fontSize=9, spaceBefore=4),
            "right": ParagraphStyle("right", parent=base["BodyText"], fontSize=10, alignment=2),
            "th": ParagraphStyle("th", parent=base["BodyText"], fontSize=9, fontName="Helvetica-Bold", textColor=colors.white),
            "total": ParagraphStyle("total", parent=base["BodyText"], fontSize=12, fontName="Helvetica-Bold"),
            "total_right": ParagraphStyle(
                "total_right", parent=base["BodyText"], fontSize=12, fontName="Helvetica-Bold", alignment=2
            ),
        }

    def p(self, text: Any, style: str = "body") -> Paragraph:
        return Paragraph(escape(str(text)).replace("\n", "<br/>"), self.styles[style])

    def _logo(self, logo: Optional[bytes]) -> Optional[Image]:
        if not logo:
            return None
        try:
            reader = ImageReader(BytesIO(logo))
            width, height = reader.getSize()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Ignoring unreadable logo image: {error}", error=exc)
            return None
        target_height = 40
        return Image(BytesIO(logo), width=width * target_height / height, height=target_height)

    def header(self, agency: Optional[str], logo: Optional[bytes], right_lines: Sequence[str]) -> Table:
        left: Any = self._logo(logo) or Paragraph(escape(agency or self.company_name), self.styles["company"])
        right = [self.p(line, "right") for line in right_lines]
        table = Table([[left, right]], colWidths=[CONTENT_WIDTH * 0.55, CONTENT_WIDTH * 0.45])
        table.setStyle(
            TableStyle(
                [
                    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                    ("LINEBELOW", (0, 0), (-1, 0), 1.5, BRAND),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
                ]
            )
        )
        return table

    def info_columns(self, left_title: str, left: Sequence[Sequence[str]], right_title: str, right: Sequence[Sequence[str]]) -> Table:
        def column(title: str, rows: Sequence[Sequence[str]]) -> List[Any]:
            cells: List[Any] = [self.p(title, "heading")]
            cells.extend(self.p(f"{label}: {value}") for label, value in rows)
            return cells

        table = Table([[column(left_title, left), column(right_title, right)]], colWidths=[CONTENT_WIDTH / 2] * 2)
        table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        return table

    def data_table(self, header: Sequence[str], rows: Sequence[Sequence[Any]], widths: Sequence[float]) -> Table:
        body = [[self.p(cell) for cell in row] for row in rows]
        table = Table(
            [[self.p(title, "th") for title in header]] + body,
            colWidths=[CONTENT_WIDTH * width for width in widths],
            repeatRows=1,
        )
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), BRAND),
                    ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, ROW_ALT]),
                ]
            )
        )
        return table

    def total_row(self, label: str, currency: Optional[str], amount: Any) -> Table:
        table = Table(
            [[self.p(label, "total"), self.p(_money(currency, amount), "total_right")]],
            colWidths=[CONTENT_WIDTH * 0.7, CONTENT_WIDTH * 0.3],
        )
        table.setStyle(
            TableStyle(
                [
                    ("LINEABOVE", (0, 0), (-1, 0), 1, BRAND),
                ]
            )
        )
        return table

    def _draw_footer(self, canvas, doc) -> None:
        canvas.saveState()
        canvas.setFont("Helvetica", 7)
        canvas.setFillColor(colors.grey)
        y = PAGE_MARGIN / 2 + 10 * len(self.footer_lines)
        for line in self.footer_lines:
            canvas.drawCentredString(A4[0] / 2, y, line)
            y -= 10
        canvas.drawRightString(A4[0] - PAGE_MARGIN, PAGE_MARGIN / 2, f"Page {doc.page}")
        canvas.restoreState()

    def build(self, elements: List[Any], title: str) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=PAGE_MARGIN,
            rightMargin=PAGE_MARGIN,
            topMargin=PAGE_MARGIN,
            bottomMargin=PAGE_MARGIN + 20,
            title=title,
            author=self.company_name,
        )
        doc.build(elements, onFirstPage=self._draw_footer, onLaterPages=self._draw_footer)
        return buffer.getvalue()


class QuotePDFRenderer(PDFRenderer):
    footer_lines = (
        "This quote is valid for 30 days from the date of issue.",
        "For questions or to proceed with booking, please contact your travel consultant.",
    )

    def _flight_details(self, component: Dict[str, Any]) -> List[str]:
        summary = extract_flight_info(component)
        headline = " ".join(
            part
            for part in (
                summary.airline if summary.airline != "N/A" else "",
                f"Flight {', '.join(summary.flight_numbers)}" if summary.flight_numbers != ["N/A"] else "",
            )
            if part
        )
        if summary.departure != "N/A":
            dates = summary.departure if summary.return_ == "N/A" else f"{summary.departure} - {summary.return_}"
            headline = f"{headline} ({dates})".strip()
        details = "\n".join(line for line in (headline, summary.details) if line) or "Flight service"
        return [summary.route, details, summary.cabin_class]

    def render(self, quote: Quote, logo: Optional[bytes] = None) -> bytes:
        team = quote.team or {}
        flights, others = partition_components(coerce_component_list(quote.selected_components))
        event_dates = "N/A"
        if quote.event_start_date and quote.event_end_date:
            event_dates = f"{format_date(quote.event_start_date)} - {format_date(quote.event_end_date)}"

        elements: List[Any] = [
            self.header(
                team.get("agency_name") or team.get("name"),
                logo,
                [f"Quote #{quote.quote_number or 'N/A'}", format_date(quote.created_at)],
            ),
            Spacer(1, 12),
            self.info_columns(
                "CLIENT INFORMATION",
                [
                    ("Name", quote.client_name or "N/A"),
                    ("Email", quote.client_email or "N/A"),
                    ("Phone", quote.client_phone or "N/A"),
                ],
                "EVENT INFORMATION",
                [
                    ("Event", quote.event_name or "N/A"),
                    ("Location", quote.event_location or "N/A"),
                    ("Dates", event_dates),
                ],
            ),
            self.p("PACKAGE DETAILS", "heading"),
            self.p(f"Package: {quote.package_name or 'N/A'}"),
            self.p(f"Tier: {quote.tier_name or 'N/A'}"),
            self.p("TRAVELERS", "heading"),
            self.p(f"Total Travelers: {quote.travelers_total or 0}"),
        ]

        if flights:
            elements += [
                self.p("FLIGHTS", "heading"),
                self.data_table(
                    ["Route", "Details", "Class"],
                    [self._flight_details(component) for component in flights],
                    [0.4, 0.4, 0.2],
                ),
            ]

        if others:
            rows = []
            for component in others:
                info = extract_component_info(component)
                rows.append([info.name, info.details, info.quantity])
            elements += [
                self.p("INCLUDED IN THE PACKAGE", "heading"),
                self.data_table(["Component", "Details", "Quantity"], rows, [0.3, 0.5, 0.2]),
            ]

        payments = [
            ("Deposit", quote.payment_deposit, quote.payment_deposit_date),
            ("Second Payment", quote.payment_second_payment, quote.payment_second_payment_date),
            ("Final Payment", quote.payment_final_payment, quote.payment_final_payment_date),
        ]
        payment_rows = [
            [name, _money(quote.currency, amount), format_date(due, "TBD")]
            for name, amount, due in payments
            if amount and amount > 0
        ]
        if payment_rows:
            elements += [
                self.p("PAYMENT SCHEDULE", "heading"),
                self.data_table(["Payment", "Amount", "Due"], payment_rows, [0.4, 0.3, 0.3]),
            ]

        if quote.total_price:
            elements += [Spacer(1, 12), self.total_row("Total Price", quote.currency, quote.total_price)]

        return self.build(elements, title=f"Quote {quote.quote_number or quote.id}")


class BookingConfirmationPDFRenderer(PDFRenderer):
    footer_lines = (
        "Thank you for booking with us.",
        "Please check all details carefully and contact your travel consultant with any questions.",
    )

    def _flight_section(
        self, index: int, flight: FlightData, booked: Dict[str, Any], booking_currency: Optional[str]
    ) -> List[Any]:
        elements: List[Any] = [self.p(f"Flight {index}", "subheading")]
        if booked:
            elements.append(
                self.p(
                    f"PNR: {booked.get('booking_pnr') or 'TBC'}   "
                    f"Status: {booked.get('flight_status') or 'N/A'}   "
                    f"Ticketing deadline: {format_date(booked.get('ticketing_deadline'))}"
                )
            )
        for direction, section in booking_flight_sections(flight).items():
            elements.append(self.p("Outbound" if direction == "outbound" else "Return", "subheading"))
            if isinstance(section, str):
                elements.append(self.p(section))
                continue
            shared = build_itinerary(flight, direction).shared
            elements.append(
                self.p(f"Airline: {shared.airline}   Class: {shared.cabin_class}   Baggage: {shared.baggage}")
            )
            rows = [[row["from"], row["to"], row["departure"], row["arrival"], row["duration"]] for row in section]
            elements.append(
                self.data_table(
                    ["From", "To", "Departure", "Arrival", "Duration"], rows, [0.26, 0.26, 0.18, 0.18, 0.12]
                )
            )
        currency = (flight.currency_code or booking_currency or "GBP").upper()
        total = _money(currency, flight.total_price) if flight.total_price else "N/A"
        elements.append(self.p(f"Passengers: {flight.passenger_count or 'N/A'}   Total: {total}"))
        return elements

    def render(self, details: Dict[str, Any], logo: Optional[bytes] = None) -> bytes:
        booking = details.get("booking") or {}
        quote = details.get("quote") or {}
        team = as_mapping(booking.get("team") or quote.get("team"))
        currency = booking.get("currency") or quote.get("currency") or "GBP"
        travelers = details.get("travelers") or []
        lead = next((row for row in travelers if row.get("traveler_type") == "lead"), {})

        snapshot = as_mapping(booking.get("package_snapshot")).get("selected_components")
        components = coerce_component_list(snapshot if snapshot else quote.get("selected_components"))
        flights, others = partition_components(components)

        elements: List[Any] = [
            self.header(
                team.get("agency_name") or team.get("name"),
                logo,
                [
                    f"Booking Confirmation #{booking.get('booking_reference') or booking.get('id') or 'N/A'}",
                    format_date(booking.get("created_at")),
                ],
            ),
            Spacer(1, 12),
            self.info_columns(
                "LEAD TRAVELER",
                [
                    ("Name", f"{lead.get('first_name', '')} {lead.get('last_name', '')}".strip() or "N/A"),
                    ("Email", lead.get("email") or "N/A"),
                    ("Phone", lead.get("phone") or "N/A"),
                ],
                "EVENT INFORMATION",
                [
                    ("Event", quote.get("event_name") or "N/A"),
                    ("Location", quote.get("event_location") or "N/A"),
                    ("Status", str(booking.get("status") or "N/A").replace("_", " ").title()),
                ],
            ),
        ]

        if travelers:
            elements.append(self.p("TRAVELERS", "heading"))
            for row in travelers:
                kind = "Lead" if row.get("traveler_type") == "lead" else "Guest"
                elements.append(self.p(f"{row.get('first_name', '')} {row.get('last_name', '')} ({kind})"))

        if others:
            rows = []
            for component in others:
                info = extract_component_info(component)
                rows.append([info.name, info.details, info.quantity])
            elements += [
                self.p("BOOKED COMPONENTS", "heading"),
                self.data_table(["Component", "Details", "Quantity"], rows, [0.3, 0.5, 0.2]),
            ]

        if flights:
            booked_flights = pair_booked_flights(flights, details.get("flights") or [])
            elements.append(self.p("FLIGHTS", "heading"))
            for index, (component, booked) in enumerate(zip(flights, booked_flights), start=1):
                elements += self._flight_section(index, normalize_flight(component), booked, currency)

        payments = details.get("payments") or []
        if payments:
            rows = [
                [
                    str(row.get("payment_type") or "payment").replace("_", " ").title(),
                    _money(currency, row.get("amount")),
                    format_date(row.get("due_date"), "TBD"),
                    "Paid" if row.get("paid") else "Pending",
                ]
                for row in payments
            ]
            elements += [
                self.p("PAYMENT SCHEDULE", "heading"),
                self.data_table(["Payment", "Amount", "Due", "Status"], rows, [0.3, 0.25, 0.25, 0.2]),
            ]

        total = booking.get("total_price") or quote.get("total_price")
        if total:
            elements += [Spacer(1, 12), self.total_row("Total Price", currency, total)]

        return self.build(elements, title=f"Booking {booking.get('booking_reference') or booking.get('id')}")
