"""Domain models for accounts, shipments, rate settings and invoices."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from .money import ZERO, money, weight


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvoiceStatus(str, Enum):
    DRAFT = "Draft"
    BUILT = "Built"
    APPLIED = "Applied"
    VOID = "Void"


class ManifestStatus(str, Enum):
    ACTIVE = "Active"
    CLOSED = "Closed"


class SurchargeMode(str, Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


class LedgerEntryKind(str, Enum):
    INVOICE = "invoice"
    RECEIPT = "receipt"
    CREDIT_NOTE = "credit_note"


@dataclass(slots=True)
class CustomerAccount:
    """A billed customer and its running balance (positive = amount owed)."""

    account_code: str
    name: str
    state: Optional[str] = None
    email: Optional[str] = None
    balance: Decimal = ZERO
    version: int = 0


@dataclass(slots=True)
class Zone:
    """Base rate per weight unit for a (sector, destination-zone) pair."""

    sector: str
    zone: str
    rate: Decimal
    service: Optional[str] = None
    destination: Optional[str] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    is_active: bool = True
    billed: bool = False
    id: Optional[str] = None

    def is_effective(self, on: date) -> bool:
        if self.effective_from and on < self.effective_from:
            return False
        if self.effective_to and on > self.effective_to:
            return False
        return True


@dataclass(slots=True)
class SurchargeSetting:
    """One time-effective fuel or tax record.

    ``amount`` is a percentage when ``mode`` is PERCENTAGE, otherwise a flat
    amount added once per shipment line.
    """

    customer: str
    service: str
    amount: Decimal
    effective_date: date
    mode: SurchargeMode = SurchargeMode.PERCENTAGE
    name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def charge_on(self, base: Decimal) -> Decimal:
        if self.mode is SurchargeMode.FLAT:
            return money(self.amount)
        return money(base * self.amount / Decimal(100))


@dataclass(slots=True)
class Shipment:
    awb_no: str
    account_code: str
    sector: str
    zone: str
    date: date
    service: str = ""
    origin: Optional[str] = None
    destination: Optional[str] = None
    actual_weight: Decimal = ZERO
    volumetric_weight: Decimal = ZERO
    corrected_weight: Optional[Decimal] = None
    pcs: int = 1
    state: Optional[str] = None
    run_no: Optional[str] = None
    manifest_no: Optional[str] = None
    club_no: Optional[str] = None
    is_hold: bool = False
    is_billed: bool = False
    bill_no: Optional[str] = None

    @property
    def chargeable_weight(self) -> Decimal:
        if self.corrected_weight is not None:
            return weight(self.corrected_weight)
        return weight(max(self.actual_weight, self.volumetric_weight))


@dataclass(slots=True)
class Manifest:
    """A pickup batch of AWBs for one customer."""

    manifest_no: str
    account_code: str
    awb_numbers: List[str] = field(default_factory=list)
    status: ManifestStatus = ManifestStatus.ACTIVE
    pickup_type: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class ClubbingRow:
    awb_no: str
    weight: Decimal


@dataclass(slots=True)
class Clubbing:
    """AWBs travelling together under one run. Locked clubs are frozen."""

    club_no: str
    run_no: Optional[str] = None
    service: Optional[str] = None
    date: Optional[date] = None
    rows: List[ClubbingRow] = field(default_factory=list)
    bag_weight: Optional[Decimal] = None
    is_locked: bool = False
    remarks: Optional[str] = None

    @property
    def awb_numbers(self) -> list[str]:
        return [row.awb_no for row in self.rows]

    def row_for(self, awb_no: str) -> Optional[ClubbingRow]:
        for row in self.rows:
            if row.awb_no == awb_no:
                return row
        return None


@dataclass(slots=True)
class RunEntry:
    run_no: str
    sector: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    date: Optional[date] = None
    flight: Optional[str] = None
    transport_type: Optional[str] = None


@dataclass(slots=True)
class InvoiceLine:
    awb_no: str
    date: date
    sector: str
    zone: str
    service: str
    weight: Decimal
    rate: Decimal
    freight: Decimal
    fuel: Decimal
    tax: Decimal
    total: Decimal


@dataclass(slots=True)
class InvoiceSummary:
    basic_amount: Decimal = ZERO
    fuel_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    grand_total: Decimal = ZERO


@dataclass(slots=True)
class Invoice:
    invoice_number: str
    serial: int
    account_code: str
    invoice_date: date
    financial_year: str
    customer_name: Optional[str] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    lines: List[InvoiceLine] = field(default_factory=list)
    summary: InvoiceSummary = field(default_factory=InvoiceSummary)
    place_of_supply: Optional[str] = None
    branch: Optional[str] = None
    created_by: Optional[str] = None
    credited_amount: Decimal = ZERO
    credit_note_count: int = 0
    created_at: datetime = field(default_factory=utcnow)
    applied_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None

    @property
    def awb_numbers(self) -> list[str]:
        return [line.awb_no for line in self.lines]

    @property
    def grand_total(self) -> Decimal:
        return self.summary.grand_total


@dataclass(slots=True)
class LedgerEntry:
    """One append-only balance movement. ``amount`` is signed."""

    account_code: str
    sequence: int
    kind: LedgerEntryKind
    reference: str
    amount: Decimal
    balance_after: Decimal
    created_at: datetime = field(default_factory=utcnow)
    remarks: Optional[str] = None

    @property
    def entry_key(self) -> str:
        return f"{self.kind.value}:{self.reference}"


@dataclass(slots=True)
class Receipt:
    receipt_no: str
    account_code: str
    amount: Decimal
    mode: str
    entry_user: str
    date: date
    remarks: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Notification:
    account_code: Optional[str]
    title: str
    message: str
    kind: str = "info"
    is_read: bool = False
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None
