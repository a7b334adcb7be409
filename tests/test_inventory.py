import asyncio

import pytest
from pydantic import ValidationError

from backoffice.app.config import Settings
from backoffice.app.models.inventory import ListQuery
from backoffice.app.services.currency import CurrencyConverter
from backoffice.app.services.inventory import (
    InventoryManager,
    UnknownEntityError,
    UnknownFilterError,
    get_entity_spec,
    paginate,
    sort_rows,
)
from backoffice.app.services.mock_client import MockSupabaseClient, offline_rate_transport
from backoffice.app.services.supabase_client import SupabaseAPIError


@pytest.fixture()
def manager():
    settings = Settings()
    client = MockSupabaseClient(settings)
    converter = CurrencyConverter(settings, transport=offline_rate_transport())
    return InventoryManager(client, converter)


def run(coro):
    return asyncio.run(coro)


def test_list_defaults_to_newest_first(manager):
    page = run(manager.list("flights", ListQuery()))
    assert [row["id"] for row in page.items] == ["fl-man-nce", "fl-lhr-nce"]
    assert page.total == 2
    assert page.pages == 1


def test_equality_and_range_filters(manager):
    page = run(manager.list("flights", ListQuery(filters={"departure_airport_code": "LHR"})))
    assert [row["id"] for row in page.items] == ["fl-lhr-nce"]

    page = run(manager.list("flights", ListQuery(filters={"max_price": "250"})))
    assert [row["id"] for row in page.items] == ["fl-man-nce"]

    page = run(manager.list("flights", ListQuery(filters={"airline": "", "min_price": None})))
    assert page.total == 2


def test_unknown_filter_is_rejected(manager):
    with pytest.raises(UnknownFilterError):
        run(manager.list("flights", ListQuery(filters={"colour": "red"})))


def test_unknown_entity(manager):
    with pytest.raises(UnknownEntityError):
        run(manager.list("hotels", ListQuery()))
    with pytest.raises(UnknownEntityError):
        get_entity_spec("lounges")


def test_search_is_case_insensitive(manager):
    page = run(manager.list("venues", ListQuery(search="SILVER")))
    assert [row["id"] for row in page.items] == ["venue-silverstone"]


def test_sort_places_missing_values_last():
    rows = [{"id": 1, "supplier": "b"}, {"id": 2, "supplier": None}, {"id": 3, "supplier": "a"}]
    assert [row["id"] for row in sort_rows(rows, "supplier")] == [3, 1, 2]
    assert [row["id"] for row in sort_rows(rows, "supplier", descending=True)] == [1, 3, 2]


def test_paginate():
    page = paginate([{"id": n} for n in range(7)], page=2, page_size=3)
    assert [row["id"] for row in page.items] == [3, 4, 5]
    assert (page.total, page.pages) == (7, 3)


def test_transfer_rows_carry_markup_price(manager):
    page = run(manager.list("airport_transfers", ListQuery(sort_by="price_with_markup")))
    prices = {row["id"]: row["price_with_markup"] for row in page.items}
    assert prices == {"at-nice-private": 132.0, "at-nice-chauffeur": 183.6}
    assert [row["id"] for row in page.items] == ["at-nice-private", "at-nice-chauffeur"]


def test_create_airport_transfer_converts_local_quote(manager):
    created = run(
        manager.create(
            "airport_transfers",
            {
                "event_id": "event-monaco-2025",
                "transport_type": "private_car",
                "max_capacity": 4,
                "supplier_quote_per_car_local": 200,
                "quote_currency": "EUR",
                "markup": 10,
            },
        )
    )
    assert created["supplier_quote_per_car_gbp"] == 170.0
    assert run(manager.get("airport_transfers", created["id"]))["transport_type"] == "private_car"


def test_update_circuit_transfer_recomputes_totals(manager):
    updated = run(manager.update("circuit_transfers", "ct-monaco-coach", {"days": 4}))
    assert updated["total_coach_cost_local"] == 3600.0
    assert updated["total_coach_cost_gbp"] == 3060.0
    assert updated["days"] == 4


def test_update_only_sends_supplied_fields(manager):
    updated = run(manager.update("venues", "venue-monaco", {"city": "Monaco"}))
    assert updated["city"] == "Monaco"
    assert updated["country"] == "Monaco"
    assert updated["website"] == "https://www.formula1monaco.com"


def test_invalid_payload_is_rejected(manager):
    with pytest.raises(ValidationError):
        run(manager.create("airport_transfers", {"transport_type": "helicopter"}))
    with pytest.raises(ValidationError):
        run(manager.create("venues", {"name": "Imola", "unexpected": True}))


def test_update_missing_record(manager):
    with pytest.raises(SupabaseAPIError) as excinfo:
        run(manager.update("venues", "nope", {"city": "Nowhere"}))
    assert excinfo.value.status_code == 404


class FailingDeleteClient(MockSupabaseClient):
    async def delete(self, table, record_id):
        if record_id == "venue-silverstone":
            raise SupabaseAPIError(409, {"message": "venue is referenced by ticket categories"})
        await super().delete(table, record_id)


def test_bulk_delete_has_no_rollback():
    settings = Settings()
    client = FailingDeleteClient(settings)
    manager = InventoryManager(client, CurrencyConverter(settings, transport=offline_rate_transport()))

    with pytest.raises(SupabaseAPIError):
        run(manager.bulk_delete("venues", ["venue-monaco", "venue-silverstone"]))
    remaining = run(manager.list("venues", ListQuery()))
    assert [row["id"] for row in remaining.items] == ["venue-silverstone"]


def test_bulk_delete_counts(manager):
    assert run(manager.bulk_delete("ticket_categories", ["tc-club", "tc-grandstand-k"])) == 2
    assert run(manager.list("ticket_categories", ListQuery())).total == 0


def test_create_hotel_room_defaults_availability_and_sell_price(manager):
    created = run(
        manager.create(
            "hotel_rooms",
            {
                "hotel_id": "hotel-fairmont",
                "room_type_id": "junior_suite",
                "check_in": "2025-05-22",
                "check_out": "2025-05-26",
                "quantity_total": 8,
                "base_price": 1000,
                "markup_percent": 10,
            },
        )
    )
    assert created["quantity_available"] == 8
    assert created["price_with_markup"] == 1100.0


def test_update_ticket_markup_recomputes_sell_price(manager):
    updated = run(manager.update("tickets", "tk-monaco-k", {"markup_percent": 25}))
    assert updated["price_with_markup"] == 1000.0
    assert updated["price"] == 800.0

    untouched = run(manager.update("tickets", "tk-monaco-k", {"supplier_ref": "ACM-K-2025b"}))
    assert untouched["price_with_markup"] == 1000.0


def test_lounge_pass_boolean_filter(manager):
    page = run(manager.list("lounge_passes", ListQuery(filters={"is_active": "true"})))
    assert [row["id"] for row in page.items] == ["lp-heathrow"]
    page = run(manager.list("lounge_passes", ListQuery(filters={"is_active": "false"})))
    assert page.total == 0


def test_hotel_room_filters(manager):
    page = run(manager.list("hotel_rooms", ListQuery(filters={"min_available": "5"})))
    assert page.total == 0
    page = run(manager.list("hotel_rooms", ListQuery(filters={"hotel_id": "hotel-hermitage"}, search="DELUXE")))
    assert [row["id"] for row in page.items] == ["room-hermitage"]


def test_lounge_pass_requires_variant(manager):
    with pytest.raises(ValidationError):
        run(manager.create("lounge_passes", {"airport_code": "LHR"}))
