import json

from frontend.preferences import ColumnPreferences, storage_key

DEFAULT = ["airline", "departure_airport_code", "price_gbp"]


def test_defaults_when_nothing_stored(tmp_path):
    prefs = ColumnPreferences(tmp_path / "prefs.json")
    assert prefs.load(storage_key("flights"), DEFAULT) == DEFAULT


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "nested" / "prefs.json"
    prefs = ColumnPreferences(path)
    prefs.save("flightsManagerTableVisibleColumns_v1", ["airline", "supplier"])

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored == {"flightsManagerTableVisibleColumns_v1": '["airline", "supplier"]'}
    assert ColumnPreferences(path).load("flightsManagerTableVisibleColumns_v1", DEFAULT) == ["airline", "supplier"]


def test_keys_are_independent(tmp_path):
    prefs = ColumnPreferences(tmp_path / "prefs.json")
    prefs.save(storage_key("flights"), ["airline"])
    prefs.save(storage_key("airport_transfers"), ["supplier"])
    assert storage_key("airport_transfers") == "airportTransfersVisibleColumns"
    assert prefs.load(storage_key("flights"), DEFAULT) == ["airline"]
    assert prefs.load(storage_key("airport_transfers"), []) == ["supplier"]


def test_toggle(tmp_path):
    prefs = ColumnPreferences(tmp_path / "prefs.json")
    key = storage_key("flights")
    assert prefs.toggle(key, "price_gbp", DEFAULT) == ["airline", "departure_airport_code"]
    assert prefs.toggle(key, "supplier", DEFAULT) == ["airline", "departure_airport_code", "supplier"]
    assert prefs.toggle(key, "supplier", DEFAULT, visible=True) == ["airline", "departure_airport_code", "supplier"]
    assert prefs.toggle(key, "airline", DEFAULT, visible=False) == ["departure_airport_code", "supplier"]
    assert prefs.load(key, DEFAULT) == ["departure_airport_code", "supplier"]


def test_corrupt_values_fall_back(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")
    assert ColumnPreferences(path).load("k", DEFAULT) == DEFAULT

    path.write_text(json.dumps({"k": '{"a": 1}', "j": "oops"}), encoding="utf-8")
    prefs = ColumnPreferences(path)
    assert prefs.load("k", DEFAULT) == DEFAULT
    assert prefs.load("j", DEFAULT) == DEFAULT


def test_unknown_entity_key():
    assert storage_key("hotels") == "hotelsVisibleColumns"
