"""Typed repositories over the document store, built once per process."""

from __future__ import annotations

from dataclasses import dataclass

from .accounts import CustomerRepository, LedgerRepository, ReceiptRepository
from .invoices import InvoiceRepository
from .notifications import NotificationRepository
from .rates import FUEL_SETTINGS, TAX_SETTINGS, SurchargeRepository, ZoneRepository
from .shipments import ClubbingRepository, ManifestRepository, RunRepository, ShipmentRepository
from .store import DocumentStore, MemoryStore, SupabaseStore, create_store


@dataclass(slots=True)
class Repositories:
    store: DocumentStore
    customers: CustomerRepository
    ledger: LedgerRepository
    receipts: ReceiptRepository
    zones: ZoneRepository
    fuel_settings: SurchargeRepository
    tax_settings: SurchargeRepository
    shipments: ShipmentRepository
    manifests: ManifestRepository
    clubbing: ClubbingRepository
    runs: RunRepository
    invoices: InvoiceRepository
    notifications: NotificationRepository


def build_repositories(store: DocumentStore) -> Repositories:
    shipments = ShipmentRepository(store)
    return Repositories(
        store=store,
        customers=CustomerRepository(store),
        ledger=LedgerRepository(store),
        receipts=ReceiptRepository(store),
        zones=ZoneRepository(store),
        fuel_settings=SurchargeRepository(store, FUEL_SETTINGS),
        tax_settings=SurchargeRepository(store, TAX_SETTINGS),
        shipments=shipments,
        manifests=ManifestRepository(store, shipments),
        clubbing=ClubbingRepository(store, shipments),
        runs=RunRepository(store),
        invoices=InvoiceRepository(store),
        notifications=NotificationRepository(store),
    )


__all__ = [
    "DocumentStore",
    "MemoryStore",
    "Repositories",
    "SupabaseStore",
    "build_repositories",
    "create_store",
]
