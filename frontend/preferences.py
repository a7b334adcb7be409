"""Per-table visible-column preferences persisted as JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

STORAGE_KEYS: Dict[str, str] = {
    "flights": "flightsManagerTableVisibleColumns_v1",
    "airport_transfers": "airportTransfersVisibleColumns",
    "circuit_transfers": "circuitTransfersManagerTableVisibleColumns_v1",
    "venues": "venuesManagerTableVisibleColumns_v1",
    "ticket_categories": "ticketCategoriesManagerTableVisibleColumns_v1",
    "tickets": "ticketsManagerTableVisibleColumns_v1",
    "hotel_rooms": "hotelRoomsTableVisibleColumns",
    "lounge_passes": "loungePassesTableVisibleColumns",
}


def storage_key(entity: str) -> str:
    return STORAGE_KEYS.get(entity, f"{entity}VisibleColumns")


class ColumnPreferences:
    """Stores one JSON array of visible column keys per table key.

    The whole store is a single JSON object written back on every change.
    Unreadable files and non-list entries fall back to the defaults.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, key: str, default: Iterable[str]) -> List[str]:
        raw = self._read().get(key)
        if isinstance(raw, str):
            try:
                columns = json.loads(raw)
            except ValueError:
                columns = None
            if isinstance(columns, list):
                return [str(column) for column in columns]
        return list(default)

    def save(self, key: str, columns: Iterable[str]) -> None:
        data = self._read()
        data[key] = json.dumps(list(columns))
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def toggle(self, key: str, column: str, default: Iterable[str], visible: Optional[bool] = None) -> List[str]:
        """Show or hide ``column`` (flip when ``visible`` is None) and persist."""
        columns = self.load(key, default)
        show = column not in columns if visible is None else visible
        if show and column not in columns:
            columns.append(column)
        elif not show and column in columns:
            columns.remove(column)
        self.save(key, columns)
        return columns
