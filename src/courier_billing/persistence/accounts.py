"""Customer account, ledger entry and receipt persistence."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from ..errors import AccountNotFound
from ..models.domain import CustomerAccount, LedgerEntry, LedgerEntryKind, Receipt, utcnow
from ..models.money import ZERO
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

ACCOUNTS = "customer_accounts"
LEDGER = "ledger_entries"
RECEIPTS = "receipts"


def _account_from_row(row: dict[str, Any]) -> CustomerAccount:
    return CustomerAccount(
        account_code=row["account_code"],
        name=row.get("name") or "",
        state=row.get("state"),
        email=row.get("email"),
        balance=load_decimal(row.get("balance")),
        version=int(row.get("version") or 0),
    )


class CustomerRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def create(self, account: CustomerAccount) -> CustomerAccount:
        row = self.store.insert(
            ACCOUNTS,
            {
                "account_code": normalize_code(account.account_code),
                "name": account.name,
                "state": account.state,
                "email": account.email,
                # new accounts always start from an empty ledger
                "balance": dump_decimal(ZERO),
                "version": 0,
            },
        )
        return _account_from_row(row)

    def get(self, account_code: str) -> CustomerAccount | None:
        row = self.store.find_one(ACCOUNTS, {"account_code": normalize_code(account_code)})
        return _account_from_row(row) if row else None

    def require(self, account_code: str) -> CustomerAccount:
        account = self.get(account_code)
        if account is None:
            raise AccountNotFound(f"Customer account {account_code} not found")
        return account

    def list(self) -> list[CustomerAccount]:
        return [_account_from_row(row) for row in self.store.find(ACCOUNTS, order_by="account_code")]

    def compare_and_set_balance(
        self, account_code: str, expected_version: int, new_balance: Decimal
    ) -> CustomerAccount | None:
        """Write the balance only if nobody bumped the version since it was read."""
        rows = self.store.update(
            ACCOUNTS,
            {"account_code": normalize_code(account_code), "version": expected_version},
            {"balance": dump_decimal(new_balance), "version": expected_version + 1},
        )
        return _account_from_row(rows[0]) if rows else None


def _entry_from_row(row: dict[str, Any]) -> LedgerEntry:
    return LedgerEntry(
        account_code=row["account_code"],
        sequence=int(row["sequence"]),
        kind=LedgerEntryKind(row["kind"]),
        reference=row["reference"],
        amount=load_decimal(row.get("amount")),
        balance_after=load_decimal(row.get("balance_after")),
        created_at=load_datetime(row.get("created_at")) or utcnow(),
        remarks=row.get("remarks"),
    )


class LedgerRepository:
    """Append-only balance history; entries are never updated or deleted."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        row = self.store.insert(
            LEDGER,
            {
                "account_code": normalize_code(entry.account_code),
                "sequence": entry.sequence,
                "kind": entry.kind.value,
                "reference": entry.reference,
                "entry_key": entry.entry_key,
                "amount": dump_decimal(entry.amount),
                "balance_after": dump_decimal(entry.balance_after),
                "created_at": dump_datetime(entry.created_at),
                "remarks": entry.remarks,
            },
        )
        return _entry_from_row(row)

    def get(self, entry_key: str) -> LedgerEntry | None:
        row = self.store.find_one(LEDGER, {"entry_key": entry_key})
        return _entry_from_row(row) if row else None

    def for_account(self, account_code: str) -> list[LedgerEntry]:
        rows = self.store.find(LEDGER, {"account_code": normalize_code(account_code)}, order_by="sequence")
        return [_entry_from_row(row) for row in rows]


def _receipt_from_row(row: dict[str, Any]) -> Receipt:
    return Receipt(
        receipt_no=row["receipt_no"],
        account_code=row["account_code"],
        amount=load_decimal(row.get("amount")),
        mode=row.get("mode") or "",
        entry_user=row.get("entry_user") or "Unknown",
        date=load_date(row.get("date")),
        remarks=row.get("remarks"),
        created_at=load_datetime(row.get("created_at")) or utcnow(),
    )


class ReceiptRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def insert(self, receipt: Receipt) -> Receipt:
        row = self.store.insert(
            RECEIPTS,
            {
                "receipt_no": normalize_code(receipt.receipt_no),
                "account_code": normalize_code(receipt.account_code),
                "amount": dump_decimal(receipt.amount),
                "mode": receipt.mode,
                "entry_user": receipt.entry_user,
                "date": dump_date(receipt.date),
                "remarks": receipt.remarks,
                "created_at": dump_datetime(receipt.created_at),
            },
        )
        return _receipt_from_row(row)

    def get(self, receipt_no: str) -> Receipt | None:
        row = self.store.find_one(RECEIPTS, {"receipt_no": normalize_code(receipt_no)})
        return _receipt_from_row(row) if row else None

    def delete(self, receipt_no: str) -> None:
        self.store.delete(RECEIPTS, {"receipt_no": normalize_code(receipt_no)})

    def count(self) -> int:
        return len(self.store.find(RECEIPTS))
