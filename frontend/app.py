"""Streamlit operator console for the travel back office."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st
from st_aggrid import AgGrid, GridOptionsBuilder

try:
    from frontend.backend_client import BackendClient, error_detail  # type: ignore[import]
    from frontend.preferences import ColumnPreferences, storage_key  # type: ignore[import]
except ModuleNotFoundError:
    import sys

    sys.path.append(str(Path(__file__).resolve().parent))
    from backend_client import BackendClient, error_detail
    from preferences import ColumnPreferences, storage_key

PREFERENCES_PATH = Path(".streamlit") / "column_preferences.json"

ENTITIES: Dict[str, str] = {
    "flights": "Flights",
    "airport_transfers": "Airport Transfers",
    "circuit_transfers": "Circuit Transfers",
    "venues": "Venues",
    "ticket_categories": "Ticket Categories",
    "tickets": "Tickets",
    "hotel_rooms": "Hotel Rooms",
    "lounge_passes": "Lounge Passes",
}

ENTITY_FILTERS: Dict[str, List[str]] = {
    "flights": [
        "event_id",
        "departure_airport_code",
        "arrival_airport_code",
        "airline",
        "flight_class",
        "stops_outbound",
        "min_price",
        "max_price",
    ],
    "airport_transfers": ["event_id", "hotel_id", "transport_type", "supplier", "quote_currency"],
    "circuit_transfers": ["event_id", "hotel_id", "transfer_type", "supplier"],
    "venues": ["country", "city"],
    "ticket_categories": ["venue_id", "category_type"],
    "tickets": ["event_id", "ticket_category_id", "ticket_type", "supplier", "min_available", "max_price"],
    "hotel_rooms": ["event_id", "hotel_id", "room_type_id", "check_in_from", "check_out_to", "min_available"],
    "lounge_passes": ["event_id", "airport_code", "terminal", "is_active"],
}

DEFAULT_COLUMNS: Dict[str, List[str]] = {
    "flights": [
        "departure_airport_code",
        "arrival_airport_code",
        "airline",
        "outbound_flight_number",
        "outbound_departure_datetime",
        "return_flight_number",
        "flight_class",
        "price_gbp",
        "is_active",
    ],
    "airport_transfers": [
        "transport_type",
        "max_capacity",
        "used",
        "supplier",
        "supplier_quote_per_car_local",
        "quote_currency",
        "supplier_quote_per_car_gbp",
        "price_with_markup",
    ],
    "circuit_transfers": [
        "transfer_type",
        "days",
        "coach_capacity",
        "used",
        "supplier",
        "total_coach_cost_gbp",
        "price_with_markup",
    ],
    "venues": ["name", "city", "country", "timezone"],
    "ticket_categories": ["category_name", "category_type", "sport_type", "venue_id"],
    "tickets": [
        "ticket_category_id",
        "ticket_type",
        "quantity_total",
        "quantity_available",
        "price",
        "price_with_markup",
        "supplier",
    ],
    "hotel_rooms": [
        "hotel_id",
        "room_type_id",
        "check_in",
        "check_out",
        "quantity_available",
        "base_price",
        "price_with_markup",
    ],
    "lounge_passes": ["variant", "airport_code", "terminal", "supplier_quote", "price_with_markup", "is_active"],
}

QUOTE_STATUSES = ["draft", "sent", "accepted", "declined", "expired", "confirmed", "cancelled"]
BOOKING_STATUSES = ["pending_payment", "confirmed", "cancelled", "completed"]
FLIGHT_STATUSES = [
    "Booked - Ticketed - Paid",
    "Booked - Ticketed - Not Paid",
    "Booked - Not Ticketed",
]


def get_backend_client() -> BackendClient:
    """Retrieve a backend client configured from session state."""
    base_url: str = st.session_state.get("backend_url", "http://localhost:8000")
    return BackendClient(base_url=base_url)


def get_preferences() -> ColumnPreferences:
    return ColumnPreferences(PREFERENCES_PATH)


def render_table(data: List[Dict[str, Any]], height: int = 300, columns: Optional[List[str]] = None) -> None:
    """Render a list of dictionaries using AgGrid."""
    if not data:
        st.info("No records to display.")
        return
    df = pd.json_normalize(data)
    if columns:
        shown = [column for column in columns if column in df.columns]
        if shown:
            df = df[shown]
    builder = GridOptionsBuilder.from_dataframe(df)
    builder.configure_pagination(enabled=True, paginationAutoPageSize=True)
    builder.configure_default_column(
        resizable=True, sortable=True, filter=True, wrapText=True, autoHeight=True
    )
    grid_options = builder.build()
    AgGrid(
        df,
        gridOptions=grid_options,
        height=height,
        theme="streamlit",
    )


def extract_records(payload: Any) -> List[Dict[str, Any]]:
    """Attempt to extract record list from various payload shapes."""
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict):
        for key in ("items", "data", "results"):
            value = payload.get(key)
            if isinstance(value, list):
                return [item for item in value if isinstance(item, dict)]
    return []


def show_json(payload: Any) -> None:
    """Display payload as formatted JSON."""
    st.code(json.dumps(payload, indent=2, default=str), language="json")


def column_chooser(entity: str, records: List[Dict[str, Any]]) -> List[str]:
    """Multiselect of visible columns, persisted per table."""
    preferences = get_preferences()
    key = storage_key(entity)
    available = sorted({column for record in records for column in record})
    saved = preferences.load(key, DEFAULT_COLUMNS.get(entity, []))
    selected = st.multiselect(
        "Visible columns",
        available,
        default=[column for column in saved if column in available],
        key=f"columns_{entity}",
    )
    if selected != [column for column in saved if column in available]:
        preferences.save(key, selected)
    return selected


def inventory_tab() -> None:
    """Browse and edit inventory tables."""
    st.subheader("Inventory")
    client = get_backend_client()
    entity = st.selectbox(
        "Table", list(ENTITIES), format_func=lambda key: ENTITIES[key], key="inventory_entity"
    )

    with st.form(f"inventory_filters_{entity}"):
        columns = st.columns(4)
        filters: Dict[str, Any] = {}
        for index, name in enumerate(ENTITY_FILTERS[entity]):
            with columns[index % 4]:
                value = st.text_input(name.replace("_", " ").title(), key=f"filter_{entity}_{name}")
                if value:
                    filters[name] = value
        search = st.text_input("Search")
        col1, col2, col3, col4 = st.columns(4)
        with col1:
            sort_by = st.text_input("Sort by column")
        with col2:
            sort_desc = st.checkbox("Descending")
        with col3:
            page = st.number_input("Page", min_value=1, value=1, step=1)
        with col4:
            page_size = st.number_input("Page size", min_value=1, max_value=500, value=25, step=1)
        submit = st.form_submit_button("Load")

    if submit:
        params: Dict[str, Any] = {"page": int(page), "page_size": int(page_size), "sort_desc": sort_desc}
        if search:
            params["search"] = search
        if sort_by:
            params["sort_by"] = sort_by
        if filters:
            params["filters"] = json.dumps(filters)
        try:
            st.session_state[f"inventory_{entity}"] = client.get(f"/api/inventory/{entity}", params=params)
        except Exception as err:  # noqa: BLE001
            st.error(f"Failed to load {ENTITIES[entity].lower()}: {error_detail(err)}")

    result = st.session_state.get(f"inventory_{entity}")
    if result:
        records = extract_records(result)
        st.caption(
            f"{result.get('total', 0)} records, page {result.get('page')} of {result.get('pages') or 1}"
        )
        visible = column_chooser(entity, records)
        render_table(records, height=360, columns=visible)

        ids = [str(record.get("id")) for record in records if record.get("id") is not None]
        to_delete = st.multiselect("Select records to delete", ids, key=f"delete_{entity}")
        if st.button("Delete selected", disabled=not to_delete, key=f"delete_button_{entity}"):
            try:
                if len(to_delete) == 1:
                    client.delete(f"/api/inventory/{entity}/{to_delete[0]}")
                else:
                    client.post(f"/api/inventory/{entity}/bulk-delete", json={"ids": to_delete})
                st.success(f"Deleted {len(to_delete)} record(s).")
                st.session_state.pop(f"inventory_{entity}", None)
            except Exception as err:  # noqa: BLE001
                st.error(f"Delete failed: {error_detail(err)}")

    st.markdown("#### Create or edit")
    with st.form(f"inventory_editor_{entity}"):
        record_id = st.text_input("Record ID (leave blank to create)")
        body = st.text_area("Fields (JSON)", value="{}", height=200)
        save = st.form_submit_button("Save")

    if save:
        try:
            payload = json.loads(body or "{}")
        except json.JSONDecodeError as err:
            st.error(f"Invalid JSON: {err}")
            return
        try:
            if record_id:
                response = client.put(f"/api/inventory/{entity}/{record_id}", json=payload)
            else:
                response = client.post(f"/api/inventory/{entity}", json=payload)
            st.success(f"Saved record {response.get('id')}.")
            with st.expander("Saved record"):
                show_json(response)
        except Exception as err:  # noqa: BLE001
            st.error(f"Save failed: {error_detail(err)}")


def quotes_tab() -> None:
    """View quotes, change their status and export PDFs."""
    st.subheader("Quotes")
    client = get_backend_client()
    status_filter = st.selectbox("Status", ["all"] + QUOTE_STATUSES, key="quote_status_filter")
    try:
        params = None if status_filter == "all" else {"status": status_filter}
        quotes = client.get("/api/quotes", params=params)
    except Exception as err:  # noqa: BLE001
        st.error(f"Could not load quotes: {error_detail(err)}")
        return

    render_table(
        quotes,
        height=250,
        columns=["quote_number", "client_name", "event_name", "status", "total_price", "currency"],
    )
    if not quotes:
        return

    labels = {
        quote["id"]: f"{quote.get('quote_number') or quote['id']} - {quote.get('client_name') or 'Unknown'}"
        for quote in quotes
    }
    quote_id = st.selectbox("Quote", list(labels), format_func=labels.get, key="quote_selected")
    try:
        view = client.get(f"/api/quotes/{quote_id}")
    except Exception as err:  # noqa: BLE001
        st.error(f"Could not load quote: {error_detail(err)}")
        return

    quote = view["quote"]
    col1, col2, col3 = st.columns(3)
    col1.metric("Status", quote.get("status", "N/A"))
    col2.metric("Travelers", quote.get("travelers_total") or quote.get("travelers_adults") or 0)
    col3.metric("Total", f"{quote.get('currency', 'GBP')} {quote.get('total_price') or 0:,.2f}")

    st.markdown("#### Included in the package")
    render_table(view.get("components", []), height=220)
    if view.get("flights"):
        st.markdown("#### Flights")
        render_table(view["flights"], height=180)

    with st.form(f"quote_status_{quote_id}"):
        current = quote.get("status")
        new_status = st.selectbox(
            "Change status",
            QUOTE_STATUSES,
            index=QUOTE_STATUSES.index(current) if current in QUOTE_STATUSES else 0,
        )
        update = st.form_submit_button("Update quote")
    if update:
        try:
            client.put(f"/api/quotes/{quote_id}", json={"status": new_status})
            st.success(f"Quote status set to {new_status}.")
        except Exception as err:  # noqa: BLE001
            st.error(f"Quote update failed: {error_detail(err)}")

    if st.button("Prepare PDF", key=f"quote_pdf_{quote_id}"):
        try:
            content, filename = client.download(f"/api/quotes/{quote_id}/pdf")
            st.download_button("Download quote PDF", content, file_name=filename, mime="application/pdf")
        except Exception as err:  # noqa: BLE001
            st.error(f"PDF generation failed: {error_detail(err)}")


def render_booking_form(quote_id: str, view: Dict[str, Any]) -> None:
    """Prefilled booking form; submits to the create-booking endpoint."""
    client = get_backend_client()
    quote = view["quote"]
    form = view["form"]

    with st.form(f"booking_form_{quote_id}"):
        st.markdown("##### Lead traveler")
        lead = form["lead_traveler"]
        col1, col2 = st.columns(2)
        lead["first_name"] = col1.text_input("First name", value=lead["first_name"])
        lead["last_name"] = col2.text_input("Last name", value=lead["last_name"])
        lead["email"] = col1.text_input("Email", value=lead["email"])
        lead["phone"] = col2.text_input("Phone", value=lead.get("phone") or "")
        lead["address"] = st.text_input("Address", value=lead.get("address") or "")

        if form["guest_travelers"]:
            st.markdown("##### Guests")
        for index, guest in enumerate(form["guest_travelers"], start=1):
            col1, col2 = st.columns(2)
            guest["first_name"] = col1.text_input(f"Guest {index} first name", value=guest["first_name"])
            guest["last_name"] = col2.text_input(f"Guest {index} last name", value=guest["last_name"])

        st.markdown("##### Payments")
        form["deposit_paid"] = st.checkbox("Deposit paid", value=form["deposit_paid"])
        form["deposit_reference"] = st.text_input("Deposit reference", value=form.get("deposit_reference") or "")
        form["use_original_payment_schedule"] = st.checkbox(
            "Use original payment schedule", value=form["use_original_payment_schedule"]
        )
        for payment in form["adjusted_payments"]:
            col1, col2 = st.columns(2)
            label = payment["payment_type"].replace("_", " ").title()
            payment["amount"] = col1.number_input(
                f"{label} amount", min_value=0.0, value=float(payment["amount"]), step=50.0
            )
            payment["due_date"] = col2.text_input(f"{label} due date", value=payment["due_date"])

        for index, flight in enumerate(form["flights"], start=1):
            st.markdown(f"##### Flight {index}")
            col1, col2, col3 = st.columns(3)
            flight["booking_ref"] = col1.text_input(f"Flight {index} PNR", value=flight.get("booking_ref") or "")
            flight["ticketing_deadline"] = col2.text_input(
                f"Flight {index} ticketing deadline", value=flight.get("ticketing_deadline") or ""
            )
            flight["flight_status"] = col3.selectbox(
                f"Flight {index} status",
                FLIGHT_STATUSES,
                index=FLIGHT_STATUSES.index(flight["flight_status"])
                if flight["flight_status"] in FLIGHT_STATUSES
                else 2,
            )

        for index, lounge in enumerate(form["lounge_passes"], start=1):
            lounge["booking_ref"] = st.text_input(f"Lounge pass {index} reference", value=lounge["booking_ref"])

        st.markdown("##### Notes")
        form["booking_notes"] = st.text_area("Booking notes", value=form.get("booking_notes") or "")
        form["special_requests"] = st.text_area("Special requests", value=form.get("special_requests") or "")
        form["internal_notes"] = st.text_area("Internal notes", value=form.get("internal_notes") or "")
        submit = st.form_submit_button("Create booking")

    if submit:
        try:
            created = client.post(f"/api/bookings/from-quote/{quote_id}", json=form)
            st.success(f"Booking {created['booking_reference']} created for {quote.get('client_name')}.")
            st.session_state["last_booking_id"] = created["booking_id"]
        except Exception as err:  # noqa: BLE001
            st.error(error_detail(err))


def bookings_tab() -> None:
    """Create bookings from quotes and download confirmations."""
    st.subheader("Bookings")
    client = get_backend_client()

    st.markdown("#### Create from quote")
    quote_id = st.text_input("Quote ID", key="booking_quote_id")
    if quote_id:
        try:
            view = client.get(f"/api/bookings/from-quote/{quote_id}/form")
        except Exception as err:  # noqa: BLE001
            st.error(f"Could not load booking form: {error_detail(err)}")
            view = None
        if view and view["state"] == "error":
            st.error(view.get("error") or "Quote not found or access denied")
        elif view and view["state"] == "already_booked":
            booking = view.get("booking") or {}
            st.warning(
                f"A booking already exists for this quote: {booking.get('booking_reference') or booking.get('id')}"
            )
        elif view:
            render_booking_form(quote_id, view)

    st.markdown("#### Existing bookings")
    try:
        bookings = client.get("/api/bookings")
    except Exception as err:  # noqa: BLE001
        st.error(f"Could not load bookings: {error_detail(err)}")
        return
    render_table(
        bookings,
        height=250,
        columns=["booking_reference", "status", "total_price", "currency", "created_at"],
    )
    if not bookings:
        return
    labels = {booking["id"]: booking.get("booking_reference") or booking["id"] for booking in bookings}
    ids = list(labels)
    last = st.session_state.get("last_booking_id")
    booking_id = st.selectbox(
        "Booking", ids, index=ids.index(last) if last in ids else 0, format_func=labels.get
    )
    if st.button("Prepare confirmation PDF", key=f"booking_pdf_{booking_id}"):
        try:
            content, filename = client.download(f"/api/bookings/{booking_id}/pdf")
            st.download_button("Download confirmation", content, file_name=filename, mime="application/pdf")
        except Exception as err:  # noqa: BLE001
            st.error(f"PDF generation failed: {error_detail(err)}")

    with st.form(f"booking_status_{booking_id}"):
        new_status = st.selectbox("Status", BOOKING_STATUSES)
        notes = st.text_input("Notes")
        if st.form_submit_button("Update status"):
            try:
                client.put(
                    f"/api/bookings/{booking_id}/status",
                    json={"status": new_status, "notes": notes or None},
                )
                st.success(f"Booking moved to {new_status.replace('_', ' ')}.")
            except Exception as err:  # noqa: BLE001
                st.error(f"Status update failed: {error_detail(err)}")


def dashboard_tab() -> None:
    """Render dashboard overview."""
    st.subheader("Backend Status")
    client = get_backend_client()
    try:
        health = client.get("/api/system/health")
        st.success("Backend reachable.")
        st.json(health)
    except Exception as err:  # noqa: BLE001
        st.error(f"Unable to reach backend: {err}")

    st.subheader("Exchange Rates")
    pair = st.columns(2)
    source_currency = pair[0].text_input("From", value="EUR", max_chars=3)
    target_currency = pair[1].text_input("To", value="GBP", max_chars=3)
    if st.button("Look up rate"):
        try:
            quote = client.get("/api/system/rates", params={"from": source_currency, "to": target_currency})
            if quote["rate"] is None:
                st.warning(f"No rate available for {quote['from']} to {quote['to']}.")
            else:
                st.metric(f"{quote['from']} → {quote['to']}", quote["rate"], help=f"Source: {quote['source']}")
        except Exception as err:  # noqa: BLE001
            st.error(f"Rate lookup failed: {error_detail(err)}")

    st.subheader("Session Activity")
    if st.button("Refresh Activity Log"):
        try:
            activity = client.get("/api/system/activity")
            st.session_state["activity_log"] = activity
        except Exception as err:  # noqa: BLE001
            st.error(f"Activity fetch failed: {err}")

    if st.button("Clear Activity Log"):
        try:
            client.delete("/api/system/activity")
            st.session_state.pop("activity_log", None)
            st.success("Activity log cleared.")
        except Exception as err:  # noqa: BLE001
            st.error(f"Failed to clear activity log: {err}")

    if "activity_log" in st.session_state:
        render_table(st.session_state["activity_log"], height=200)


def settings_tab() -> None:
    """Render settings controls."""
    st.subheader("Connection Settings")
    backend_url = st.text_input(
        "Backend URL",
        value=st.session_state.get("backend_url", "http://localhost:8000"),
    )
    if backend_url != st.session_state.get("backend_url"):
        st.session_state["backend_url"] = backend_url
        st.success(f"Backend URL updated to {backend_url}")

    st.markdown(
        f"""
        **Usage Tips**
        - Start FastAPI backend: `uvicorn backoffice.app.main:app --reload`
        - Start Streamlit UI: `streamlit run frontend/app.py`
        - Provide Supabase credentials via `.env.local` or environment variables.
        - Set `USE_MOCK_DATA=true` to work against the in-memory demo tables.
        - Column choices are saved to `{PREFERENCES_PATH}`.
        """
    )


def main() -> None:
    """Application entry point."""
    st.set_page_config(page_title="Travel Back Office", layout="wide")
    if "backend_url" not in st.session_state:
        st.session_state["backend_url"] = "http://localhost:8000"

    tabs = st.tabs(["Dashboard", "Inventory", "Quotes", "Bookings", "Settings"])
    with tabs[0]:
        dashboard_tab()
    with tabs[1]:
        inventory_tab()
    with tabs[2]:
        quotes_tab()
    with tabs[3]:
        bookings_tab()
    with tabs[4]:
        settings_tab()


if __name__ == "__main__":
    main()
