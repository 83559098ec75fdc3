"""District lookup for optional location context."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from farmvoice.types import LocationContext

logger = logging.getLogger(__name__)


class LocationLookup(Protocol):
    def get(self, district_id: str | None) -> LocationContext | None:
        """Return the district profile, or None when unknown."""


class StaticLocationLookup:
    """Lookup over a `{district_id: {name, soil_type, avg_rainfall_mm}}` mapping."""

    def __init__(self, districts: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._districts: dict[str, LocationContext] = {}
        for district_id, entry in (districts or {}).items():
            try:
                self._districts[district_id.lower()] = LocationContext(
                    name=str(entry["name"]),
                    soil_type=str(entry.get("soil_type", "unknown")),
                    avg_rainfall_mm=float(entry.get("avg_rainfall_mm", 0.0)),
                )
            except (KeyError, TypeError, ValueError):
                logger.warning("skipping malformed district entry %r", district_id)

    @classmethod
    def from_json(cls, path: str | Path | None) -> "StaticLocationLookup":
        """Load `{"districts": {...}}` from disk; a missing file gives an empty lookup."""
        if path is None:
            return cls()
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("district table unavailable at %s: %s", path, exc)
            return cls()
        districts = payload.get("districts", payload) if isinstance(payload, dict) else {}
        return cls(districts)

    def get(self, district_id: str | None) -> LocationContext | None:
        if not district_id:
            return None
        return self._districts.get(district_id.strip().lower())

    def __len__(self) -> int:
        return len(self._districts)
