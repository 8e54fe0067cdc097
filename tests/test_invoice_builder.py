import threading
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from courier_billing.errors import (
    BuildCancelled,
    ConflictError,
    InvalidTransition,
    RateNotFound,
    ShipmentNotFound,
    SurchargeNotFound,
    ValidationError,
)
from courier_billing.models.domain import Clubbing, ClubbingRow, InvoiceStatus, SurchargeMode
from courier_billing.services.invoices import InvoiceBuilder, financial_year, format_invoice_number, split_gst

BILLING_DATE = date(2024, 5, 15)


def test_financial_year_runs_april_to_march() -> None:
    assert financial_year(date(2025, 3, 31)) == "2024-25"
    assert financial_year(date(2025, 4, 1)) == "2025-26"
    assert format_invoice_number(7, "2024-25", prefix="INV") == "INV-2024-25-00007"


def test_gst_split_depends_on_customer_state() -> None:
    assert split_gst(Decimal("19.81"), "delhi", home_state="Delhi") == (Decimal("9.91"), Decimal("9.90"), Decimal("0"))
    assert split_gst(Decimal("19.80"), "Maharashtra", home_state="Delhi") == (Decimal("0"), Decimal("0"), Decimal("19.80"))


def test_build_prices_every_line(repos, services, seed) -> None:
    seed.billing_setup()
    seed.shipment("AWB1", weight="10")

    invoice = services.invoices.build_invoice("acme", ["awb1"], BILLING_DATE, created_by="ops")

    line = invoice.lines[0]
    assert (line.weight, line.rate) == (Decimal("10.000"), Decimal("10"))
    assert (line.freight, line.fuel, line.tax, line.total) == (
        Decimal("100.00"),
        Decimal("10.00"),
        Decimal("19.80"),
        Decimal("129.80"),
    )
    summary = invoice.summary
    assert summary.grand_total == Decimal("129.80")
    assert (summary.cgst, summary.sgst, summary.igst) == (Decimal("9.90"), Decimal("9.90"), Decimal("0"))

    assert invoice.invoice_number == "INV-2024-25-00001"
    assert invoice.status is InvoiceStatus.BUILT
    shipment = repos.shipments.require("AWB1")
    assert shipment.is_billed and shipment.bill_no == invoice.invoice_number
    assert all(zone.billed for zone in repos.zones.list())
    # building never touches the balance
    assert repos.customers.require("ACME").balance == Decimal("0")
    assert repos.notifications.list("ACME")[0].kind == "invoice"


def test_interstate_customer_pays_igst_and_serials_increase(services, seed) -> None:
    seed.billing_setup(state="Maharashtra")
    seed.shipment("AWB1")
    seed.shipment("AWB2")

    first = services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE)
    second = services.invoices.build_invoice("ACME", ["AWB2"], BILLING_DATE)

    assert first.summary.igst == Decimal("19.80")
    assert first.summary.cgst == Decimal("0")
    assert second.invoice_number == "INV-2024-25-00002"


def test_clubbed_shipments_share_bag_weight(repos, services, seed) -> None:
    seed.billing_setup()
    seed.shipment("AWB1", weight="10")
    seed.shipment("AWB2", weight="20")
    repos.clubbing.create(
        Clubbing(
            club_no="C1",
            rows=[ClubbingRow("AWB1", Decimal("10")), ClubbingRow("AWB2", Decimal("20"))],
            bag_weight=Decimal("6"),
        )
    )

    invoice = services.invoices.build_invoice("ACME", ["AWB1", "AWB2"], BILLING_DATE)

    assert [line.weight for line in invoice.lines] == [Decimal("12.000"), Decimal("24.000")]
    assert invoice.summary.basic_amount == Decimal("360.00")


def test_surcharges_resolved_at_billing_date(services, seed) -> None:
    seed.billing_setup()
    seed.fuel(amount="25", effective_date=date(2024, 6, 1), mode=SurchargeMode.FLAT)
    seed.shipment("AWB1", booked=date(2024, 5, 20))

    invoice = services.invoices.build_invoice("ACME", ["AWB1"], date(2024, 6, 15))

    assert invoice.lines[0].fuel == Decimal("25.00")
    assert invoice.lines[0].tax == Decimal("22.50")


def test_new_settings_do_not_reprice_built_invoices(repos, services, seed) -> None:
    seed.billing_setup()
    seed.shipment("AWB1")
    seed.shipment("AWB2")
    built = services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE)

    seed.fuel(amount="30", effective_date=date(2024, 6, 1))
    seed.tax(amount="5", effective_date=date(2024, 4, 1), created_at=datetime(2030, 1, 1, tzinfo=timezone.utc))

    stored = repos.invoices.require(built.invoice_number)
    assert stored.lines == built.lines
    assert stored.summary.grand_total == Decimal("129.80")

    # the same-day tax record replaces the old one for new builds only
    later = services.invoices.build_invoice("ACME", ["AWB2"], BILLING_DATE)
    assert (later.lines[0].fuel, later.lines[0].tax) == (Decimal("10.00"), Decimal("5.50"))
    assert repos.invoices.require(built.invoice_number).summary.grand_total == Decimal("129.80")


def test_missing_rate_writes_nothing(repos, services, seed) -> None:
    seed.billing_setup()
    seed.shipment("AWB1")
    seed.shipment("AWB2", zone="Z9")

    with pytest.raises(RateNotFound):
        services.invoices.build_invoice("ACME", ["AWB1", "AWB2"], BILLING_DATE)

    assert repos.invoices.for_account("ACME") == []
    assert not repos.shipments.require("AWB1").is_billed
    assert not any(zone.billed for zone in repos.zones.list())


def test_missing_surcharge_rejected_unless_policy_is_zero(repos, services, seed) -> None:
    seed.account()
    seed.zone()
    seed.fuel()
    seed.run()
    seed.shipment("AWB1")

    with pytest.raises(SurchargeNotFound):
        services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE)

    lenient = InvoiceBuilder(
        repos,
        services.rates,
        services.surcharges,
        services.weights,
        missing_surcharge_policy="zero",
    )
    invoice = lenient.build_invoice("ACME", ["AWB1"], BILLING_DATE)
    assert invoice.lines[0].tax == Decimal("0.00")
    assert invoice.grand_total == Decimal("110.00")


def test_shipment_validation(services, seed) -> None:
    seed.billing_setup()
    seed.account(code="OTHER")
    seed.shipment("AWB1")
    seed.shipment("HOLD1", is_hold=True)
    seed.shipment("NORUN", run_no=None)
    seed.shipment("FOREIGN", account="OTHER")

    with pytest.raises(ShipmentNotFound):
        services.invoices.build_invoice("ACME", ["AWB1", "MISSING"], BILLING_DATE)
    with pytest.raises(ValidationError):
        services.invoices.build_invoice("ACME", ["HOLD1"], BILLING_DATE)
    with pytest.raises(ValidationError):
        services.invoices.build_invoice("ACME", ["NORUN"], BILLING_DATE)
    with pytest.raises(ValidationError):
        services.invoices.build_invoice("ACME", ["FOREIGN"], BILLING_DATE)
    with pytest.raises(ValidationError):
        services.invoices.build_invoice("ACME", [], BILLING_DATE)

    services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE)
    with pytest.raises(ConflictError):
        services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE)


def test_cancelled_build_writes_nothing(repos, services, seed) -> None:
    seed.billing_setup()
    seed.shipment("AWB1")
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(BuildCancelled):
        services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE, cancel_event=cancel)

    assert repos.invoices.for_account("ACME") == []
    assert not repos.shipments.require("AWB1").is_billed


def test_void_releases_shipments(repos, services, seed) -> None:
    seed.billing_setup()
    seed.shipment("AWB1")
    invoice = services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE)

    voided = services.invoices.void_invoice(invoice.invoice_number)

    assert voided.status is InvoiceStatus.VOID
    assert voided.voided_at is not None
    assert not repos.shipments.require("AWB1").is_billed
    with pytest.raises(InvalidTransition):
        services.invoices.void_invoice(invoice.invoice_number)

    rebuilt = services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE)
    assert rebuilt.serial == 2


def test_applied_invoice_cannot_be_voided(services, seed) -> None:
    seed.billing_setup()
    seed.shipment("AWB1")
    invoice = services.invoices.build_invoice("ACME", ["AWB1"], BILLING_DATE)
    services.ledger.apply_invoice("ACME", invoice.invoice_number)

    with pytest.raises(InvalidTransition):
        services.invoices.void_invoice(invoice.invoice_number)
