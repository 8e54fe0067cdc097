"""Customer balance ledger with optimistic concurrency.

Every balance change is a compare-and-set on the account's ``version``
followed by an append-only ledger entry whose ``sequence`` is the version the
change produced. Replaying the entries from zero therefore reproduces the
stored balance. A change whose entry cannot be written is reversed, which
leaves a gap in the sequence but no unrecorded amount.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, List

from ...config import settings
from ...errors import (
    AlreadyApplied,
    ConcurrentUpdate,
    DuplicateKeyError,
    InvalidTransition,
    LedgerOutOfSync,
    StorageError,
    ValidationError,
)
from ...models.domain import (
    CustomerAccount,
    Invoice,
    InvoiceStatus,
    LedgerEntry,
    LedgerEntryKind,
    Receipt,
    utcnow,
)
from ...models.money import ZERO, money, to_decimal
from ...persistence import Repositories
from ...persistence.codec import normalize_code
from ..notifications import notify


@dataclass(slots=True)
class BalanceCheck:
    account_code: str
    stored_balance: Decimal
    replayed_balance: Decimal
    entries: int

    @property
    def consistent(self) -> bool:
        return self.stored_balance == self.replayed_balance


class BalanceLedger:
    def __init__(
        self,
        repos: Repositories,
        *,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ) -> None:
        self.repos = repos
        self.max_retries = settings.ledger_max_retries if max_retries is None else max_retries
        self.backoff_seconds = settings.ledger_backoff_seconds if backoff_seconds is None else backoff_seconds

    def _move_balance(self, account_code: str, amount: Decimal, label: str) -> CustomerAccount:
        """Compare-and-set the balance, retrying when another writer wins the race."""
        customers = self.repos.customers
        for attempt in range(self.max_retries + 1):
            account = customers.require(account_code)
            new_balance = money(account.balance + amount)
            updated = customers.compare_and_set_balance(account.account_code, account.version, new_balance)
            if updated is not None:
                return updated
            logging.debug(
                f"Balance of {account.account_code} changed under {label} "
                f"(attempt {attempt + 1}/{self.max_retries + 1})"
            )
            if attempt < self.max_retries and self.backoff_seconds:
                time.sleep(self.backoff_seconds * (attempt + 1))
        raise ConcurrentUpdate(
            f"Balance of {account_code} kept changing; gave up after {self.max_retries + 1} attempts"
        )

    def _append(self, entry: LedgerEntry) -> LedgerEntry:
        """Write a ledger entry; a duplicate of the same entry means an earlier attempt landed."""
        ledger = self.repos.ledger
        for attempt in range(self.max_retries + 1):
            try:
                return ledger.append(entry)
            except DuplicateKeyError:
                existing = ledger.get(entry.entry_key)
                if existing is None or (existing.account_code, existing.sequence) != (entry.account_code, entry.sequence):
                    raise
                return existing
            except StorageError as exc:
                if attempt == self.max_retries:
                    raise
                logging.warning(f"Writing ledger entry {entry.entry_key} failed ({exc}); retrying")
                if self.backoff_seconds:
                    time.sleep(self.backoff_seconds * (attempt + 1))
        raise StorageError(f"Ledger entry {entry.entry_key} was not written")

    def _post(
        self,
        account_code: str,
        kind: LedgerEntryKind,
        reference: str,
        amount: Decimal,
        remarks: str | None = None,
    ) -> LedgerEntry:
        """Apply a signed amount to the balance and record it under the version it produced.

        When the entry cannot be written the balance change is reversed before the
        error propagates, so callers may release whatever they claimed. If the
        reversal fails too, ``LedgerOutOfSync`` is raised and the claim must stand.
        """
        updated = self._move_balance(account_code, amount, f"{kind.value} {reference}")
        entry = LedgerEntry(
            account_code=updated.account_code,
            sequence=updated.version,
            kind=kind,
            reference=reference,
            amount=amount,
            balance_after=updated.balance,
            remarks=remarks,
        )
        try:
            return self._append(entry)
        except Exception as exc:
            logging.error(f"Ledger entry {entry.entry_key} for {updated.account_code} was not written: {exc}")
            try:
                self._move_balance(updated.account_code, -amount, f"reversal of {entry.entry_key}")
            except Exception as reversal_error:
                raise LedgerOutOfSync(
                    f"Balance of {updated.account_code} includes {entry.entry_key} but its ledger entry is missing"
                ) from reversal_error
            raise

    @staticmethod
    def _check_owner(invoice: Invoice, account_code: str) -> None:
        if invoice.account_code != normalize_code(account_code):
            raise ValidationError(
                f"Invoice {invoice.invoice_number} belongs to {invoice.account_code}, not {normalize_code(account_code)}"
            )

    # ---------------------------------------------------------------- invoices

    def apply_invoice(self, account_code: str, invoice_number: str) -> Decimal:
        """Post a built invoice's total to the balance exactly once."""
        invoices = self.repos.invoices
        invoice = invoices.require(invoice_number)
        self._check_owner(invoice, account_code)
        if invoice.status is InvoiceStatus.APPLIED:
            raise AlreadyApplied(f"Invoice {invoice.invoice_number} is already applied")
        if invoice.status is not InvoiceStatus.BUILT:
            raise InvalidTransition(f"Invoice {invoice.invoice_number} is {invoice.status.value}; only Built invoices can be applied")

        claimed = invoices.transition(
            invoice.invoice_number, InvoiceStatus.BUILT, InvoiceStatus.APPLIED, applied_at=utcnow()
        )
        if claimed is None:
            current = invoices.require(invoice_number)
            if current.status is InvoiceStatus.APPLIED:
                raise AlreadyApplied(f"Invoice {invoice.invoice_number} is already applied")
            raise InvalidTransition(f"Invoice {invoice.invoice_number} became {current.status.value} while applying")

        try:
            entry = self._post(claimed.account_code, LedgerEntryKind.INVOICE, claimed.invoice_number, claimed.grand_total)
        except LedgerOutOfSync:
            raise
        except Exception:
            invoices.transition(claimed.invoice_number, InvoiceStatus.APPLIED, InvoiceStatus.BUILT, applied_at=None)
            raise

        logging.info(
            f"Applied invoice {claimed.invoice_number} ({claimed.grand_total}) to {claimed.account_code}; "
            f"balance {entry.balance_after}"
        )
        notify(
            self.repos.notifications,
            claimed.account_code,
            "Invoice applied",
            f"Invoice {claimed.invoice_number} for {claimed.grand_total} was added to your account",
            kind="invoice",
        )
        return entry.balance_after

    def apply_credit_note(
        self,
        account_code: str,
        invoice_number: str,
        amount: Any = None,
        *,
        reason: str | None = None,
    ) -> LedgerEntry:
        """Credit back part or all of an applied invoice."""
        invoices = self.repos.invoices
        invoice = invoices.require(invoice_number)
        self._check_owner(invoice, account_code)
        if invoice.status is not InvoiceStatus.APPLIED:
            raise InvalidTransition(
                f"Invoice {invoice.invoice_number} is {invoice.status.value}; credit notes need an Applied invoice"
            )

        remaining = invoice.grand_total - invoice.credited_amount
        credit = remaining if amount is None else money(to_decimal(amount))
        if credit <= ZERO:
            raise ValidationError("Credit note amount must be positive")
        if credit > remaining:
            raise ValidationError(
                f"Credit note {credit} exceeds the uncredited amount {remaining} of invoice {invoice.invoice_number}"
            )

        credited = invoices.record_credit(invoice, invoice.credited_amount + credit)
        if credited is None:
            raise ConcurrentUpdate(f"Invoice {invoice.invoice_number} was credited concurrently; retry")

        reference = f"CN-{credited.invoice_number}-{credited.credit_note_count}"
        try:
            entry = self._post(credited.account_code, LedgerEntryKind.CREDIT_NOTE, reference, -credit, remarks=reason)
        except LedgerOutOfSync:
            raise
        except Exception:
            invoices.undo_credit(credited, invoice.credited_amount)
            raise
        logging.info(f"Credit note {reference} for {credit}; balance of {credited.account_code} {entry.balance_after}")
        return entry

    # ---------------------------------------------------------------- receipts

    def _next_receipt_no(self) -> str:
        return f"{settings.receipt_prefix}-{self.repos.receipts.count() + 1:06d}"

    def _insert_receipt(self, receipt: Receipt, generated: bool) -> Receipt:
        attempts = self.max_retries + 1 if generated else 1
        for _ in range(attempts):
            try:
                return self.repos.receipts.insert(receipt)
            except DuplicateKeyError:
                if not generated:
                    raise AlreadyApplied(f"Receipt {receipt.receipt_no} is already recorded") from None
                logging.debug(f"Receipt number {receipt.receipt_no} taken; generating another")
                receipt.receipt_no = self._next_receipt_no()
        raise ConcurrentUpdate("Could not allocate a receipt number; too many concurrent receipts")

    def record_receipt(
        self,
        account_code: str,
        amount: Any,
        *,
        receipt_no: str | None = None,
        mode: str = "Cash",
        entry_user: str = "Unknown",
        receipt_date: date | None = None,
        remarks: str | None = None,
    ) -> tuple[Receipt, LedgerEntry]:
        value = money(to_decimal(amount))
        if value <= ZERO:
            raise ValidationError("Receipt amount must be positive")
        account = self.repos.customers.require(account_code)

        number = (receipt_no or "").strip()
        receipt = self._insert_receipt(
            Receipt(
                receipt_no=number or self._next_receipt_no(),
                account_code=account.account_code,
                amount=value,
                mode=mode,
                entry_user=entry_user,
                date=receipt_date or utcnow().date(),
                remarks=remarks,
            ),
            generated=not number,
        )
        try:
            entry = self._post(account.account_code, LedgerEntryKind.RECEIPT, receipt.receipt_no, -value, remarks=remarks)
        except LedgerOutOfSync:
            raise
        except Exception:
            self.repos.receipts.delete(receipt.receipt_no)
            raise

        logging.info(f"Receipt {receipt.receipt_no} of {value} from {account.account_code}; balance {entry.balance_after}")
        notify(
            self.repos.notifications,
            account.account_code,
            "Payment received",
            f"Payment of {value} received ({receipt.receipt_no})",
            kind="payment",
        )
        return receipt, entry

    def apply_receipt(self, account_code: str, amount: Any, **details: Any) -> Decimal:
        _, entry = self.record_receipt(account_code, amount, **details)
        return entry.balance_after

    # ------------------------------------------------------------------ audit

    def balance(self, account_code: str) -> Decimal:
        return self.repos.customers.require(account_code).balance

    def statement(self, account_code: str) -> List[LedgerEntry]:
        account = self.repos.customers.require(account_code)
        return self.repos.ledger.for_account(account.account_code)

    def replay_balance(self, account_code: str) -> Decimal:
        """Fold the ledger in sequence order starting from zero."""
        balance = ZERO
        for entry in self.statement(account_code):
            balance = money(balance + entry.amount)
        return balance

    def verify_balance(self, account_code: str) -> BalanceCheck:
        account = self.repos.customers.require(account_code)
        entries = self.repos.ledger.for_account(account.account_code)
        replayed = ZERO
        for entry in entries:
            replayed = money(replayed + entry.amount)
        check = BalanceCheck(
            account_code=account.account_code,
            stored_balance=account.balance,
            replayed_balance=replayed,
            entries=len(entries),
        )
        if not check.consistent:
            logging.warning(
                f"Balance of {account.account_code} is {account.balance} but its ledger replays to {replayed}"
            )
        return check
