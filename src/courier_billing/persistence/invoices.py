"""Invoice persistence."""

from __future__ import annotations

from dataclasses import asdict
from decimal import Decimal
from typing import Any

from ..errors import InvoiceNotFound
from ..models.domain import Invoice, InvoiceLine, InvoiceStatus, InvoiceSummary, utcnow
from .codec import (
    dump_date,
    dump_datetime,
    dump_decimal,
    load_date,
    load_datetime,
    load_decimal,
    normalize_code,
)
from .store import DocumentStore

INVOICES = "invoices"

_LINE_MONEY_FIELDS = ("weight", "rate", "freight", "fuel", "tax", "total")


def _dump_line(line: InvoiceLine) -> dict[str, Any]:
    payload = asdict(line)
    payload["date"] = dump_date(line.date)
    for name in _LINE_MONEY_FIELDS:
        payload[name] = dump_decimal(payload[name])
    return payload


def _load_line(item: dict[str, Any]) -> InvoiceLine:
    return InvoiceLine(
        awb_no=item["awb_no"],
        date=load_date(item.get("date")),
        sector=item.get("sector") or "",
        zone=item.get("zone") or "",
        service=item.get("service") or "",
        **{name: load_decimal(item.get(name)) for name in _LINE_MONEY_FIELDS},
    )


def _dump_summary(summary: InvoiceSummary) -> dict[str, str]:
    return {name: dump_decimal(value) for name, value in asdict(summary).items()}


def _load_summary(payload: dict[str, Any] | None) -> InvoiceSummary:
    payload = payload or {}
    return InvoiceSummary(**{name: load_decimal(payload.get(name)) for name in InvoiceSummary.__dataclass_fields__})


def _invoice_from_row(row: dict[str, Any]) -> Invoice:
    return Invoice(
        invoice_number=row["invoice_number"],
        serial=int(row["serial"]),
        account_code=row["account_code"],
        invoice_date=load_date(row.get("invoice_date")),
        financial_year=row.get("financial_year") or "",
        customer_name=row.get("customer_name"),
        status=InvoiceStatus(row.get("status") or InvoiceStatus.BUILT.value),
        lines=[_load_line(item) for item in (row.get("lines") or [])],
        summary=_load_summary(row.get("summary")),
        place_of_supply=row.get("place_of_supply"),
        branch=row.get("branch"),
        created_by=row.get("created_by"),
        credited_amount=load_decimal(row.get("credited_amount")),
        credit_note_count=int(row.get("credit_note_count") or 0),
        created_at=load_datetime(row.get("created_at")) or utcnow(),
        applied_at=load_datetime(row.get("applied_at")),
        voided_at=load_datetime(row.get("voided_at")),
    )


class InvoiceRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def next_serial(self) -> int:
        latest = self.store.find(INVOICES, order_by="serial", descending=True, limit=1)
        return int(latest[0]["serial"]) + 1 if latest else 1

    def insert(self, invoice: Invoice) -> Invoice:
        row = self.store.insert(
            INVOICES,
            {
                "invoice_number": invoice.invoice_number,
                "serial": invoice.serial,
                "account_code": normalize_code(invoice.account_code),
                "invoice_date": dump_date(invoice.invoice_date),
                "financial_year": invoice.financial_year,
                "customer_name": invoice.customer_name,
                "status": invoice.status.value,
                "lines": [_dump_line(line) for line in invoice.lines],
                "summary": _dump_summary(invoice.summary),
                "place_of_supply": invoice.place_of_supply,
                "branch": invoice.branch,
                "created_by": invoice.created_by,
                "credited_amount": dump_decimal(invoice.credited_amount),
                "credit_note_count": invoice.credit_note_count,
                "created_at": dump_datetime(invoice.created_at),
                "applied_at": None,
                "voided_at": None,
            },
        )
        return _invoice_from_row(row)

    def get(self, invoice_number: str) -> Invoice | None:
        row = self.store.find_one(INVOICES, {"invoice_number": normalize_code(invoice_number)})
        return _invoice_from_row(row) if row else None

    def require(self, invoice_number: str) -> Invoice:
        invoice = self.get(invoice_number)
        if invoice is None:
            raise InvoiceNotFound(f"Invoice {invoice_number} not found")
        return invoice

    def for_account(self, account_code: str) -> list[Invoice]:
        rows = self.store.find(INVOICES, {"account_code": normalize_code(account_code)}, order_by="serial")
        return [_invoice_from_row(row) for row in rows]

    def transition(
        self,
        invoice_number: str,
        from_status: InvoiceStatus,
        to_status: InvoiceStatus,
        **changes: Any,
    ) -> Invoice | None:
        """Conditionally move an invoice between states; None when it was not in ``from_status``."""
        payload = {"status": to_status.value}
        payload.update({name: dump_datetime(value) if name.endswith("_at") else value for name, value in changes.items()})
        rows = self.store.update(
            INVOICES, {"invoice_number": invoice_number, "status": from_status.value}, payload
        )
        return _invoice_from_row(rows[0]) if rows else None

    def delete_draft(self, invoice_number: str) -> None:
        """Drop an invoice that never left Draft; built invoices are voided instead."""
        self.store.delete(INVOICES, {"invoice_number": invoice_number, "status": InvoiceStatus.DRAFT.value})

    def record_credit(self, invoice: Invoice, credited_amount: Decimal) -> Invoice | None:
        """Raise the credited total of an applied invoice unless another credit landed first."""
        rows = self.store.update(
            INVOICES,
            {
                "invoice_number": invoice.invoice_number,
                "status": InvoiceStatus.APPLIED.value,
                "credit_note_count": invoice.credit_note_count,
            },
            {
                "credited_amount": dump_decimal(credited_amount),
                "credit_note_count": invoice.credit_note_count + 1,
            },
        )
        return _invoice_from_row(rows[0]) if rows else None

    def undo_credit(self, credited: Invoice, previous_amount: Decimal) -> None:
        self.store.update(
            INVOICES,
            {"invoice_number": credited.invoice_number, "credit_note_count": credited.credit_note_count},
            {"credited_amount": dump_decimal(previous_amount), "credit_note_count": credited.credit_note_count - 1},
        )
