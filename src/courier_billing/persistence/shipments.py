"""Shipment, manifest, clubbing and run persistence."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable

from ..errors import ClubLocked, ClubNotFound, ConflictError, NotFoundError, ShipmentNotFound, ValidationError
from ..models.domain import (
    Clubbing,
    ClubbingRow,
    Manifest,
    ManifestStatus,
    RunEntry,
    Shipment,
    utcnow,
)
from .codec import (
    dump_date,
    dump_datetime,
    dump_decimal,
    load_date,
    load_datetime,
    load_decimal,
    load_optional_decimal,
    normalize_code,
)
from .store import DocumentStore

SHIPMENTS = "shipments"
MANIFESTS = "manifests"
CLUBBING = "clubbing"
RUNS = "runs"

# Fields that may still change once the shipment's manifest is closed.
WEIGHT_FIELDS = {"corrected_weight"}
EDITABLE_FIELDS = {
    "sector",
    "zone",
    "service",
    "origin",
    "destination",
    "state",
    "actual_weight",
    "volumetric_weight",
    "pcs",
    "run_no",
    "is_hold",
}


def _shipment_from_row(row: dict[str, Any]) -> Shipment:
    return Shipment(
        awb_no=row["awb_no"],
        account_code=row["account_code"],
        sector=row.get("sector") or "",
        zone=row.get("zone") or "",
        date=load_date(row.get("date")),
        service=row.get("service") or "",
        origin=row.get("origin"),
        destination=row.get("destination"),
        actual_weight=load_decimal(row.get("actual_weight")),
        volumetric_weight=load_decimal(row.get("volumetric_weight")),
        corrected_weight=load_optional_decimal(row.get("corrected_weight")),
        pcs=int(row.get("pcs") or 1),
        state=row.get("state"),
        run_no=row.get("run_no") or None,
        manifest_no=row.get("manifest_no") or None,
        club_no=row.get("club_no") or None,
        is_hold=bool(row.get("is_hold", False)),
        is_billed=bool(row.get("is_billed", False)),
        bill_no=row.get("bill_no") or None,
    )


def _dump_field(name: str, value: Any) -> Any:
    if isinstance(value, Decimal):
        return dump_decimal(value)
    if name == "run_no":
        return normalize_code(value) or None
    if name == "date":
        return dump_date(value)
    return value


class ShipmentRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def create(self, shipment: Shipment) -> Shipment:
        if not shipment.sector.strip():
            raise ValidationError("sector is required")
        row = self.store.insert(
            SHIPMENTS,
            {
                "awb_no": normalize_code(shipment.awb_no),
                "account_code": normalize_code(shipment.account_code),
                "sector": shipment.sector.strip(),
                "zone": shipment.zone.strip(),
                "date": dump_date(shipment.date),
                "service": shipment.service.strip(),
                "origin": shipment.origin,
                "destination": shipment.destination,
                "actual_weight": dump_decimal(shipment.actual_weight),
                "volumetric_weight": dump_decimal(shipment.volumetric_weight),
                "corrected_weight": dump_decimal(shipment.corrected_weight),
                "pcs": shipment.pcs,
                "state": shipment.state,
                "run_no": normalize_code(shipment.run_no) or None,
                "manifest_no": None,
                "club_no": None,
                "is_hold": shipment.is_hold,
                "is_billed": False,
                "bill_no": None,
            },
        )
        return _shipment_from_row(row)

    def get(self, awb_no: str) -> Shipment | None:
        row = self.store.find_one(SHIPMENTS, {"awb_no": normalize_code(awb_no)})
        return _shipment_from_row(row) if row else None

    def require(self, awb_no: str) -> Shipment:
        shipment = self.get(awb_no)
        if shipment is None:
            raise ShipmentNotFound(f"Shipment {awb_no} not found")
        return shipment

    def get_many(self, awb_numbers: Iterable[str]) -> dict[str, Shipment]:
        codes = sorted({normalize_code(awb) for awb in awb_numbers})
        if not codes:
            return {}
        rows = self.store.find(SHIPMENTS, {"awb_no": codes})
        return {row["awb_no"]: _shipment_from_row(row) for row in rows}

    def for_account(self, account_code: str, *, unbilled_only: bool = False) -> list[Shipment]:
        filters: dict[str, Any] = {"account_code": normalize_code(account_code)}
        if unbilled_only:
            filters["is_billed"] = False
        return [_shipment_from_row(row) for row in self.store.find(SHIPMENTS, filters, order_by="awb_no")]

    def _manifest_closed(self, shipment: Shipment) -> bool:
        if not shipment.manifest_no:
            return False
        row = self.store.find_one(MANIFESTS, {"manifest_no": shipment.manifest_no})
        return bool(row) and row.get("status") == ManifestStatus.CLOSED.value

    def update(self, awb_no: str, changes: dict[str, Any]) -> Shipment:
        """Edit booking fields; closed manifests and billed shipments only accept weight corrections."""
        shipment = self.require(awb_no)
        unknown = set(changes) - EDITABLE_FIELDS - WEIGHT_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        frozen = set(changes) - WEIGHT_FIELDS
        if frozen and (shipment.is_billed or self._manifest_closed(shipment)):
            raise ConflictError(
                f"Shipment {shipment.awb_no} is closed for edits; only weight corrections are allowed"
            )
        if "corrected_weight" in changes and shipment.is_billed:
            raise ConflictError(f"Shipment {shipment.awb_no} is already billed on {shipment.bill_no}")
        payload = {name: _dump_field(name, value) for name, value in changes.items()}
        rows = self.store.update(SHIPMENTS, {"awb_no": shipment.awb_no}, payload)
        return _shipment_from_row(rows[0])

    def claim(self, awb_numbers: Iterable[str], bill_no: str) -> list[str]:
        """Mark unbilled shipments as billed on ``bill_no``; returns the AWBs actually claimed."""
        codes = sorted({normalize_code(awb) for awb in awb_numbers})
        if not codes:
            return []
        rows = self.store.update(
            SHIPMENTS, {"awb_no": codes, "is_billed": False}, {"is_billed": True, "bill_no": bill_no}
        )
        return sorted(row["awb_no"] for row in rows)

    def release(self, awb_numbers: Iterable[str], bill_no: str) -> None:
        codes = sorted({normalize_code(awb) for awb in awb_numbers})
        if codes:
            self.store.update(SHIPMENTS, {"awb_no": codes, "bill_no": bill_no}, {"is_billed": False, "bill_no": None})

    def assign(self, awb_numbers: Iterable[str], **fields: Any) -> None:
        codes = sorted({normalize_code(awb) for awb in awb_numbers})
        if codes:
            self.store.update(SHIPMENTS, {"awb_no": codes}, fields)


def _manifest_from_row(row: dict[str, Any]) -> Manifest:
    return Manifest(
        manifest_no=row["manifest_no"],
        account_code=row["account_code"],
        awb_numbers=list(row.get("awb_numbers") or []),
        status=ManifestStatus(row.get("status") or ManifestStatus.ACTIVE.value),
        pickup_type=row.get("pickup_type"),
        created_at=load_datetime(row.get("created_at")) or utcnow(),
    )


class ManifestRepository:
    def __init__(self, store: DocumentStore, shipments: ShipmentRepository) -> None:
        self.store = store
        self.shipments = shipments

    def create(self, manifest: Manifest) -> Manifest:
        account_code = normalize_code(manifest.account_code)
        awbs = [normalize_code(awb) for awb in manifest.awb_numbers]
        found = self.shipments.get_many(awbs)
        missing = [awb for awb in awbs if awb not in found]
        if missing:
            raise ShipmentNotFound(f"Shipments not found: {', '.join(missing)}")
        foreign = [awb for awb, shipment in found.items() if shipment.account_code != account_code]
        if foreign:
            raise ValidationError(f"Shipments belong to another account: {', '.join(sorted(foreign))}")
        row = self.store.insert(
            MANIFESTS,
            {
                "manifest_no": normalize_code(manifest.manifest_no),
                "account_code": account_code,
                "awb_numbers": awbs,
                "status": ManifestStatus.ACTIVE.value,
                "pickup_type": manifest.pickup_type,
                "created_at": dump_datetime(manifest.created_at),
            },
        )
        self.shipments.assign(awbs, manifest_no=row["manifest_no"])
        return _manifest_from_row(row)

    def get(self, manifest_no: str) -> Manifest | None:
        row = self.store.find_one(MANIFESTS, {"manifest_no": normalize_code(manifest_no)})
        return _manifest_from_row(row) if row else None

    def close(self, manifest_no: str) -> Manifest:
        rows = self.store.update(
            MANIFESTS, {"manifest_no": normalize_code(manifest_no)}, {"status": ManifestStatus.CLOSED.value}
        )
        if not rows:
            raise NotFoundError(f"Manifest {manifest_no} not found")
        return _manifest_from_row(rows[0])


def _club_from_row(row: dict[str, Any]) -> Clubbing:
    return Clubbing(
        club_no=row["club_no"],
        run_no=row.get("run_no"),
        service=row.get("service"),
        date=load_date(row.get("date")),
        rows=[
            ClubbingRow(awb_no=item["awb_no"], weight=load_decimal(item.get("weight")))
            for item in (row.get("rows") or [])
        ],
        bag_weight=load_optional_decimal(row.get("bag_weight")),
        is_locked=bool(row.get("is_locked", False)),
        remarks=row.get("remarks"),
    )


def _dump_rows(rows: Iterable[ClubbingRow]) -> list[dict[str, str]]:
    return [{"awb_no": normalize_code(row.awb_no), "weight": dump_decimal(row.weight)} for row in rows]


class ClubbingRepository:
    """Clubbing batches with an Open -> Locked state machine.

    Every read goes to the store; lock state gates weight mutability and is
    never cached.
    """

    def __init__(self, store: DocumentStore, shipments: ShipmentRepository) -> None:
        self.store = store
        self.shipments = shipments

    def create(self, club: Clubbing) -> Clubbing:
        if not club.rows:
            raise ValidationError("A club needs at least one AWB")
        awbs = [normalize_code(row.awb_no) for row in club.rows]
        if len(set(awbs)) != len(awbs):
            raise ValidationError("A club cannot list the same AWB twice")
        if any(row.weight <= 0 for row in club.rows):
            raise ValidationError("Club weights must be positive")
        found = self.shipments.get_many(awbs)
        missing = [awb for awb in awbs if awb not in found]
        if missing:
            raise ShipmentNotFound(f"Shipments not found: {', '.join(missing)}")
        already = sorted(awb for awb, shipment in found.items() if shipment.club_no)
        if already:
            raise ConflictError(f"Shipments already clubbed: {', '.join(already)}")

        row = self.store.insert(
            CLUBBING,
            {
                "club_no": normalize_code(club.club_no),
                "run_no": normalize_code(club.run_no) or None,
                "service": club.service,
                "date": dump_date(club.date),
                "rows": _dump_rows(club.rows),
                "bag_weight": dump_decimal(club.bag_weight),
                "is_locked": False,
                "remarks": club.remarks,
            },
        )
        self.shipments.assign(awbs, club_no=row["club_no"])
        logging.info(f"Created club {row['club_no']} with {len(awbs)} AWBs")
        return _club_from_row(row)

    def get(self, club_no: str) -> Clubbing | None:
        row = self.store.find_one(CLUBBING, {"club_no": normalize_code(club_no)})
        return _club_from_row(row) if row else None

    def require(self, club_no: str) -> Clubbing:
        club = self.get(club_no)
        if club is None:
            raise ClubNotFound(f"Club {club_no} not found")
        return club

    def for_run(self, run_no: str) -> list[Clubbing]:
        rows = self.store.find(CLUBBING, {"run_no": normalize_code(run_no)}, order_by="club_no")
        return [_club_from_row(row) for row in rows]

    def for_shipment(self, shipment: Shipment) -> Clubbing | None:
        if not shipment.club_no:
            return None
        return self.get(shipment.club_no)

    def _write_open(self, club: Clubbing, changes: dict[str, Any]) -> Clubbing:
        rows = self.store.update(CLUBBING, {"club_no": club.club_no, "is_locked": False}, changes)
        if not rows:
            # lost to a concurrent lock
            raise ClubLocked(f"Club {club.club_no} is locked; weights are frozen")
        return _club_from_row(rows[0])

    def amend_weights(self, club_no: str, weights: dict[str, Decimal]) -> Clubbing:
        club = self.require(club_no)
        if club.is_locked:
            raise ClubLocked(f"Club {club.club_no} is locked; weights are frozen")
        wanted = {normalize_code(awb): value for awb, value in weights.items()}
        unknown = sorted(set(wanted) - set(club.awb_numbers))
        if unknown:
            raise ValidationError(f"AWBs are not members of club {club.club_no}: {', '.join(unknown)}")
        if any(value <= 0 for value in wanted.values()):
            raise ValidationError("Club weights must be positive")
        rows = [ClubbingRow(awb_no=row.awb_no, weight=wanted.get(row.awb_no, row.weight)) for row in club.rows]
        return self._write_open(club, {"rows": _dump_rows(rows)})

    def set_bag_weight(self, club_no: str, bag_weight: Decimal | None) -> Clubbing:
        club = self.require(club_no)
        if club.is_locked:
            raise ClubLocked(f"Club {club.club_no} is locked; weights are frozen")
        if bag_weight is not None and bag_weight < 0:
            raise ValidationError("Bag weight cannot be negative")
        return self._write_open(club, {"bag_weight": dump_decimal(bag_weight)})

    def lock(self, club_no: str) -> Clubbing:
        club = self.require(club_no)
        if club.is_locked:
            return club
        rows = self.store.update(CLUBBING, {"club_no": club.club_no}, {"is_locked": True})
        logging.info(f"Locked club {club.club_no}")
        return _club_from_row(rows[0])


def _run_from_row(row: dict[str, Any]) -> RunEntry:
    return RunEntry(
        run_no=row["run_no"],
        sector=row.get("sector"),
        origin=row.get("origin"),
        destination=row.get("destination"),
        date=load_date(row.get("date")),
        flight=row.get("flight"),
        transport_type=row.get("transport_type"),
    )


class RunRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def create(self, run: RunEntry) -> RunEntry:
        row = self.store.insert(
            RUNS,
            {
                "run_no": normalize_code(run.run_no),
                "sector": run.sector,
                "origin": run.origin,
                "destination": run.destination,
                "date": dump_date(run.date),
                "flight": run.flight,
                "transport_type": run.transport_type,
            },
        )
        return _run_from_row(row)

    def get(self, run_no: str) -> RunEntry | None:
        row = self.store.find_one(RUNS, {"run_no": normalize_code(run_no)})
        return _run_from_row(row) if row else None

    def list(self) -> list[RunEntry]:
        return [_run_from_row(row) for row in self.store.find(RUNS, order_by="run_no")]
