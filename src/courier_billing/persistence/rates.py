"""Zone rate and surcharge setting persistence."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Callable

from ..errors import ConflictError, NotFoundError
from ..models.domain import SurchargeMode, SurchargeSetting, Zone, utcnow
from .codec import (
    dump_date,
    dump_datetime,
    dump_decimal,
    load_date,
    load_datetime,
    load_decimal,
)
from .store import DocumentStore

ZONES = "zones"
FUEL_SETTINGS = "fuel_settings"
TAX_SETTINGS = "tax_settings"


def _zone_from_row(row: dict[str, Any]) -> Zone:
    return Zone(
        id=row.get("id"),
        sector=(row.get("sector") or "").strip(),
        zone=(row.get("zone") or "").strip(),
        rate=load_decimal(row.get("rate")),
        service=(row.get("service") or "").strip() or None,
        destination=(row.get("destination") or "").strip() or None,
        effective_from=load_date(row.get("effective_from")),
        effective_to=load_date(row.get("effective_to")),
        is_active=bool(row.get("is_active", True)),
        billed=bool(row.get("billed", False)),
    )


class ZoneRepository:
    """Zone records. Writes notify listeners so cached rate tables reload."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._listeners: list[Callable[[], None]] = []

    def on_change(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    def list(self, sector: str | None = None) -> list[Zone]:
        zones = [_zone_from_row(row) for row in self.store.find(ZONES)]
        if sector:
            wanted = sector.strip().lower()
            zones = [zone for zone in zones if zone.sector.lower() == wanted]
        return zones

    def get(self, zone_id: str) -> Zone | None:
        row = self.store.find_one(ZONES, {"id": zone_id})
        return _zone_from_row(row) if row else None

    def create(self, zone: Zone) -> Zone:
        row = self.store.insert(
            ZONES,
            {
                "sector": zone.sector.strip(),
                "zone": zone.zone.strip(),
                "rate": dump_decimal(zone.rate),
                "service": zone.service.strip() if zone.service else None,
                "destination": zone.destination.strip() if zone.destination else None,
                "effective_from": dump_date(zone.effective_from),
                "effective_to": dump_date(zone.effective_to),
                "is_active": zone.is_active,
                "billed": False,
            },
        )
        self._changed()
        return _zone_from_row(row)

    def update_rate(self, zone_id: str, rate: Decimal) -> Zone:
        """Change the base rate; zones referenced by a built invoice are frozen."""
        zone = self.get(zone_id)
        if zone is None:
            raise NotFoundError(f"Zone {zone_id} not found")
        if zone.billed:
            raise ConflictError(
                f"Zone {zone.sector}/{zone.zone} is used by a billed invoice; create a new effective-dated zone instead"
            )
        rows = self.store.update(ZONES, {"id": zone_id, "billed": False}, {"rate": dump_decimal(rate)})
        if not rows:
            raise ConflictError(f"Zone {zone.sector}/{zone.zone} was billed while being updated")
        self._changed()
        return _zone_from_row(rows[0])

    def deactivate(self, zone_id: str) -> Zone:
        rows = self.store.update(ZONES, {"id": zone_id}, {"is_active": False})
        if not rows:
            raise NotFoundError(f"Zone {zone_id} not found")
        self._changed()
        return _zone_from_row(rows[0])

    def mark_billed(self, zone_ids: set[str]) -> None:
        if not zone_ids:
            return
        self.store.update(ZONES, {"id": sorted(zone_ids)}, {"billed": True})
        self._changed()


def _setting_from_row(row: dict[str, Any]) -> SurchargeSetting:
    return SurchargeSetting(
        id=row.get("id"),
        customer=(row.get("customer") or "").strip().upper(),
        service=(row.get("service") or "").strip(),
        amount=load_decimal(row.get("amount")),
        mode=SurchargeMode(row.get("mode") or SurchargeMode.PERCENTAGE.value),
        name=row.get("name"),
        effective_date=load_date(row.get("effective_date")),
        created_at=load_datetime(row.get("created_at")) or utcnow(),
    )


class SurchargeRepository:
    """Fuel or tax settings; one instance per collection."""

    def __init__(self, store: DocumentStore, collection: str) -> None:
        self.store = store
        self.collection = collection
        self._listeners: list[Callable[[], None]] = []

    def on_change(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def list(self, customer: str | None = None, service: str | None = None) -> list[SurchargeSetting]:
        settings_list = [_setting_from_row(row) for row in self.store.find(self.collection)]
        if customer:
            settings_list = [item for item in settings_list if item.customer == customer.strip().upper()]
        if service:
            settings_list = [item for item in settings_list if item.service.lower() == service.strip().lower()]
        return settings_list

    def create(self, setting: SurchargeSetting) -> SurchargeSetting:
        # History is kept: a new record supersedes older ones from its effective date on.
        row = self.store.insert(
            self.collection,
            {
                "customer": setting.customer.strip().upper(),
                "service": setting.service.strip(),
                "amount": dump_decimal(setting.amount),
                "mode": setting.mode.value,
                "name": setting.name,
                "effective_date": dump_date(setting.effective_date),
                "created_at": dump_datetime(setting.created_at),
            },
        )
        logging.info(
            f"Saved {self.collection} record for {setting.customer}/{setting.service} "
            f"effective {setting.effective_date}"
        )
        for listener in self._listeners:
            listener()
        return _setting_from_row(row)
