import threading
from datetime import date
from decimal import Decimal

import pytest

from courier_billing.errors import (
    AlreadyApplied,
    ConcurrentUpdate,
    InvalidTransition,
    LedgerOutOfSync,
    StorageError,
    ValidationError,
)
from courier_billing.models.domain import InvoiceStatus, LedgerEntryKind
from courier_billing.services.ledger import BalanceLedger

BILLING_DATE = date(2024, 5, 15)


@pytest.fixture
def invoice(services, seed):
    seed.billing_setup()
    seed.shipment("AWB1")
    return services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE)


def test_invoice_applies_exactly_once(repos, services, invoice) -> None:
    balance = services.ledger.apply_invoice("ACME", invoice.invoice_number)
    assert balance == Decimal("129.80")
    assert repos.invoices.require(invoice.invoice_number).status is InvoiceStatus.APPLIED

    with pytest.raises(AlreadyApplied):
        services.ledger.apply_invoice("ACME", invoice.invoice_number)

    assert services.ledger.balance("ACME") == Decimal("129.80")
    entries = services.ledger.statement("ACME")
    assert [(entry.sequence, entry.kind, entry.reference) for entry in entries] == [
        (1, LedgerEntryKind.INVOICE, invoice.invoice_number)
    ]


def test_invoice_must_belong_to_account(services, seed, invoice) -> None:
    seed.account(code="OTHER")

    with pytest.raises(ValidationError):
        services.ledger.apply_invoice("OTHER", invoice.invoice_number)


def test_receipts_reduce_balance_and_replay_matches(services, invoice) -> None:
    services.ledger.apply_invoice("ACME", invoice.invoice_number)

    receipt, entry = services.ledger.record_receipt("ACME", "100", mode="UPI", entry_user="cashier")
    assert receipt.receipt_no == "RCPT-000001"
    assert entry.amount == Decimal("-100.00")
    assert services.ledger.apply_receipt("ACME", Decimal("29.80"), receipt_no="BANK-77") == Decimal("0.00")

    assert services.ledger.replay_balance("ACME") == services.ledger.balance("ACME")
    check = services.ledger.verify_balance("ACME")
    assert check.consistent and check.entries == 3


def test_receipt_validation(services, seed) -> None:
    seed.account()
    services.ledger.apply_receipt("ACME", "10", receipt_no="R1")

    with pytest.raises(AlreadyApplied):
        services.ledger.apply_receipt("ACME", "10", receipt_no="R1")
    with pytest.raises(ValidationError):
        services.ledger.apply_receipt("ACME", "0")
    assert services.ledger.balance("ACME") == Decimal("-10.00")


def test_credit_note_compensates_applied_invoice(repos, services, invoice) -> None:
    with pytest.raises(InvalidTransition):
        services.ledger.apply_credit_note("ACME", invoice.invoice_number, "10")

    services.ledger.apply_invoice("ACME", invoice.invoice_number)
    partial = services.ledger.apply_credit_note("ACME", invoice.invoice_number, "29.80", reason="damaged")
    assert partial.reference == f"CN-{invoice.invoice_number}-1"
    assert partial.balance_after == Decimal("100.00")

    with pytest.raises(ValidationError):
        services.ledger.apply_credit_note("ACME", invoice.invoice_number, "100.01")

    rest = services.ledger.apply_credit_note("ACME", invoice.invoice_number)
    assert rest.amount == Decimal("-100.00")
    assert rest.balance_after == Decimal("0.00")
    assert repos.invoices.require(invoice.invoice_number).credited_amount == Decimal("129.80")
    assert services.ledger.verify_balance("ACME").consistent


def test_concurrent_receipts_are_serialized(repos, seed) -> None:
    seed.account()
    ledger = BalanceLedger(repos, max_retries=100, backoff_seconds=0.001)
    errors: list[Exception] = []

    def pay(index: int) -> None:
        try:
            ledger.apply_receipt("ACME", "1", receipt_no=f"R{index}")
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=pay, args=(index,)) for index in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    account = repos.customers.require("ACME")
    assert account.balance == Decimal("-10.00")
    assert account.version == 10
    assert [entry.sequence for entry in ledger.statement("ACME")] == list(range(1, 11))
    assert ledger.replay_balance("ACME") == account.balance


def test_retry_exhaustion_releases_the_invoice(repos, invoice, monkeypatch: pytest.MonkeyPatch) -> None:
    ledger = BalanceLedger(repos, max_retries=2, backoff_seconds=0)
    monkeypatch.setattr(repos.customers, "compare_and_set_balance", lambda *args, **kwargs: None)

    with pytest.raises(ConcurrentUpdate):
        ledger.apply_invoice("ACME", invoice.invoice_number)
    with pytest.raises(ConcurrentUpdate):
        ledger.apply_receipt("ACME", "5", receipt_no="R1")

    assert repos.invoices.require(invoice.invoice_number).status is InvoiceStatus.BUILT
    assert repos.receipts.get("R1") is None
    assert ledger.statement("ACME") == []


def test_concurrent_invoice_applications_keep_both(repos, services, seed) -> None:
    seed.billing_setup()
    seed.shipment("AWB1")
    seed.shipment("AWB2")
    first = services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE)
    second = services.invoices.build_invoice("ACME", ["AWB2"], BILLING_DATE)
    ledger = BalanceLedger(repos, max_retries=100, backoff_seconds=0.001)
    start = threading.Barrier(2)
    errors: list[Exception] = []

    def apply(invoice_number: str) -> None:
        start.wait()
        try:
            ledger.apply_invoice("ACME", invoice_number)
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=apply, args=(number,)) for number in (first.invoice_number, second.invoice_number)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    account = repos.customers.require("ACME")
    assert account.balance == Decimal("259.60")
    assert account.version == 2
    entries = ledger.statement("ACME")
    assert [entry.sequence for entry in entries] == [1, 2]
    assert {entry.reference for entry in entries} == {first.invoice_number, second.invoice_number}
    assert ledger.verify_balance("ACME").consistent


def _flaky_append(repos, monkeypatch: pytest.MonkeyPatch, failures: int, *, lands: bool = False) -> None:
    """Make the next ``failures`` ledger writes raise; ``lands`` writes the row before raising."""
    real_append = repos.ledger.append
    calls = {"count": 0}

    def append(entry):
        calls["count"] += 1
        if calls["count"] <= failures:
            if lands:
                real_append(entry)
            raise StorageError("connection reset by peer")
        return real_append(entry)

    monkeypatch.setattr(repos.ledger, "append", append)


def test_ledger_write_is_retried_and_invoice_stays_applied_once(repos, invoice, monkeypatch: pytest.MonkeyPatch) -> None:
    ledger = BalanceLedger(repos, max_retries=2, backoff_seconds=0)
    _flaky_append(repos, monkeypatch, failures=1)

    assert ledger.apply_invoice("ACME", invoice.invoice_number) == Decimal("129.80")
    with pytest.raises(AlreadyApplied):
        ledger.apply_invoice("ACME", invoice.invoice_number)

    assert ledger.balance("ACME") == Decimal("129.80")
    assert [entry.sequence for entry in ledger.statement("ACME")] == [1]
    assert ledger.verify_balance("ACME").consistent


def test_ledger_write_that_landed_is_not_duplicated(repos, invoice, monkeypatch: pytest.MonkeyPatch) -> None:
    ledger = BalanceLedger(repos, max_retries=2, backoff_seconds=0)
    _flaky_append(repos, monkeypatch, failures=1, lands=True)

    assert ledger.apply_invoice("ACME", invoice.invoice_number) == Decimal("129.80")

    assert len(ledger.statement("ACME")) == 1
    assert ledger.verify_balance("ACME").consistent


def test_failed_ledger_write_reverses_the_balance(repos, invoice, monkeypatch: pytest.MonkeyPatch) -> None:
    ledger = BalanceLedger(repos, max_retries=1, backoff_seconds=0)
    _flaky_append(repos, monkeypatch, failures=100)

    with pytest.raises(StorageError):
        ledger.apply_invoice("ACME", invoice.invoice_number)
    with pytest.raises(StorageError):
        ledger.apply_receipt("ACME", "5", receipt_no="R1")

    assert ledger.balance("ACME") == Decimal("0.00")
    assert repos.invoices.require(invoice.invoice_number).status is InvoiceStatus.BUILT
    assert repos.receipts.get("R1") is None
    assert ledger.verify_balance("ACME").consistent

    monkeypatch.undo()
    assert ledger.apply_invoice("ACME", invoice.invoice_number) == Decimal("129.80")
    assert [entry.reference for entry in ledger.statement("ACME")] == [invoice.invoice_number]
    assert ledger.verify_balance("ACME").consistent


def test_unreversible_balance_keeps_the_invoice_applied(repos, invoice, monkeypatch: pytest.MonkeyPatch) -> None:
    ledger = BalanceLedger(repos, max_retries=0, backoff_seconds=0)
    _flaky_append(repos, monkeypatch, failures=100)
    real_cas = repos.customers.compare_and_set_balance
    writes = {"count": 0}

    def cas_once(*args, **kwargs):
        writes["count"] += 1
        return real_cas(*args, **kwargs) if writes["count"] == 1 else None

    monkeypatch.setattr(repos.customers, "compare_and_set_balance", cas_once)

    with pytest.raises(LedgerOutOfSync):
        ledger.apply_invoice("ACME", invoice.invoice_number)

    assert repos.invoices.require(invoice.invoice_number).status is InvoiceStatus.APPLIED
    with pytest.raises(AlreadyApplied):
        ledger.apply_invoice("ACME", invoice.invoice_number)
    assert ledger.balance("ACME") == Decimal("129.80")
    assert not ledger.verify_balance("ACME").consistent
