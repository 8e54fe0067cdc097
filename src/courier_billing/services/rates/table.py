"""Zone rate lookup."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from ...config import settings
from ...errors import RateNotFound, ValidationError
from ...models.domain import Zone
from ...persistence.rates import ZoneRepository
from ..cache import TimedSnapshot


def _key(value: str | None) -> str:
    return (value or "").strip().lower()


class RateTable:
    """Resolves (sector, destination zone) to a base rate per weight unit.

    Zones are grouped by sector; the destination-zone key picks the record
    within the sector. Optional service and date narrow the match further.
    """

    def __init__(self, zones: ZoneRepository, *, ttl_seconds: float | None = None) -> None:
        self._zones = zones
        self._snapshot: TimedSnapshot[dict[str, list[Zone]]] = TimedSnapshot(
            self._load,
            settings.reference_cache_ttl_seconds if ttl_seconds is None else ttl_seconds,
            name="zone rate table",
        )
        zones.on_change(self._snapshot.invalidate)

    def _load(self) -> dict[str, list[Zone]]:
        by_sector: dict[str, list[Zone]] = {}
        for zone in self._zones.list():
            if zone.is_active:
                by_sector.setdefault(_key(zone.sector), []).append(zone)
        return by_sector

    def lookup_zone(
        self,
        sector: str,
        destination_zone: str,
        *,
        service: str | None = None,
        on: date | None = None,
    ) -> Zone:
        if not _key(sector):
            raise ValidationError("sector is required for rate lookup")
        if not _key(destination_zone):
            raise ValidationError("destination zone is required for rate lookup")

        candidates = [
            zone
            for zone in self._snapshot.get().get(_key(sector), [])
            if _key(zone.zone) == _key(destination_zone)
        ]
        if service:
            # service-less zones apply to every service
            candidates = [zone for zone in candidates if zone.service is None or _key(zone.service) == _key(service)]
        if on is not None:
            candidates = [zone for zone in candidates if zone.is_effective(on)]
        if not candidates:
            detail = f" for service {service}" if service else ""
            detail += f" on {on.isoformat()}" if on else ""
            raise RateNotFound(f"No rate for sector {sector} zone {destination_zone}{detail}")

        # Prefer the service-specific record, then the most recently effective one.
        candidates.sort(key=lambda zone: (zone.service is not None, zone.effective_from or date.min))
        return candidates[-1]

    def lookup_rate(
        self,
        sector: str,
        destination_zone: str,
        *,
        service: str | None = None,
        on: date | None = None,
    ) -> Decimal:
        return self.lookup_zone(sector, destination_zone, service=service, on=on).rate
