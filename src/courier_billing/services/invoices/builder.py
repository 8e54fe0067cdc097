"""Invoice construction from billable shipments."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from ...config import settings
from ...errors import (
    BuildCancelled,
    ClubNotFound,
    ConflictError,
    DuplicateKeyError,
    InvalidTransition,
    NoApplicableSetting,
    ShipmentNotFound,
    SurchargeNotFound,
    ValidationError,
)
from ...models.domain import (
    Clubbing,
    CustomerAccount,
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    InvoiceSummary,
    Shipment,
    SurchargeMode,
    SurchargeSetting,
    utcnow,
)
from ...models.money import ZERO, money
from ...persistence import Repositories
from ...persistence.codec import normalize_code
from ..notifications import notify
from ..rates import RateTable
from ..surcharges import SurchargeResolver, Surcharges
from ..weights import WeightAggregator, batch_weights

# Attempts at reserving a serial when concurrent builds race for the same one.
SERIAL_ATTEMPTS = 5


def financial_year(on: date) -> str:
    """Indian financial year (April to March) label, e.g. ``2024-25``."""
    start = on.year if on.month >= 4 else on.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


def format_invoice_number(serial: int, year: str, prefix: str | None = None) -> str:
    return f"{prefix or settings.invoice_prefix}-{year}-{serial:05d}"


def split_gst(tax: Decimal, customer_state: str | None, home_state: str | None = None) -> tuple[Decimal, Decimal, Decimal]:
    """Return (cgst, sgst, igst). Intra-state supply splits tax equally between CGST and SGST."""
    home = (home_state or settings.home_state or "").strip().lower()
    if customer_state and customer_state.strip().lower() == home:
        cgst = money(tax / 2)
        return cgst, tax - cgst, ZERO
    return ZERO, ZERO, tax


def price_line(shipment: Shipment, billable_weight: Decimal, rate: Decimal, surcharges: Surcharges) -> InvoiceLine:
    freight = money(rate * billable_weight)
    fuel = surcharges.fuel.charge_on(freight)
    tax = surcharges.tax.charge_on(freight + fuel)
    return InvoiceLine(
        awb_no=shipment.awb_no,
        date=shipment.date,
        sector=shipment.sector,
        zone=shipment.zone,
        service=shipment.service,
        weight=billable_weight,
        rate=rate,
        freight=freight,
        fuel=fuel,
        tax=tax,
        total=freight + fuel + tax,
    )


def summarize(lines: Sequence[InvoiceLine], customer_state: str | None) -> InvoiceSummary:
    basic = sum((line.freight for line in lines), ZERO)
    fuel = sum((line.fuel for line in lines), ZERO)
    tax = sum((line.tax for line in lines), ZERO)
    cgst, sgst, igst = split_gst(tax, customer_state)
    return InvoiceSummary(
        basic_amount=basic,
        fuel_amount=fuel,
        tax_amount=tax,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        grand_total=basic + fuel + tax,
    )


def _zero_setting(customer: str, service: str, billing_date: date) -> SurchargeSetting:
    return SurchargeSetting(
        customer=customer,
        service=service,
        amount=ZERO,
        effective_date=billing_date,
        mode=SurchargeMode.FLAT,
        name="none",
    )


@dataclass(slots=True)
class _PricedShipment:
    shipment: Shipment
    line: InvoiceLine
    zone_id: str | None


class InvoiceBuilder:
    """Prices shipments and persists invoices all-or-nothing.

    Every line is priced before anything is written. Persistence reserves the
    serial with a Draft record, claims the shipments, then promotes the draft
    to Built; any failure on the way releases the claims and drops the draft.
    """

    def __init__(
        self,
        repos: Repositories,
        rates: RateTable,
        surcharges: SurchargeResolver,
        weights: WeightAggregator,
        *,
        missing_surcharge_policy: str | None = None,
    ) -> None:
        self.repos = repos
        self.rates = rates
        self.surcharges = surcharges
        self.weights = weights
        self.missing_surcharge_policy = missing_surcharge_policy or settings.missing_surcharge_policy

    # ------------------------------------------------------------------ pricing

    @staticmethod
    def _check_cancelled(cancel_event: threading.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise BuildCancelled("Invoice build was cancelled; nothing was written")

    def _load_shipments(self, account: CustomerAccount, awbs: List[str]) -> List[Shipment]:
        found = self.repos.shipments.get_many(awbs)
        missing = [awb for awb in awbs if awb not in found]
        if missing:
            raise ShipmentNotFound(f"Shipments not found: {', '.join(missing)}")

        shipments = [found[awb] for awb in awbs]
        foreign = [item.awb_no for item in shipments if item.account_code != account.account_code]
        if foreign:
            raise ValidationError(
                f"Shipments do not belong to account {account.account_code}: {', '.join(foreign)}"
            )
        on_hold = [item.awb_no for item in shipments if item.is_hold]
        if on_hold:
            raise ValidationError(f"Shipments are on hold: {', '.join(on_hold)}")
        without_run = [item.awb_no for item in shipments if not item.run_no]
        if without_run:
            raise ValidationError(f"Shipments have no run number: {', '.join(without_run)}")
        billed = [f"{item.awb_no} ({item.bill_no})" for item in shipments if item.is_billed]
        if billed:
            raise ConflictError(f"Shipments already billed: {', '.join(billed)}")
        return shipments

    def _billable_weights(self, shipments: Iterable[Shipment]) -> Dict[str, Decimal]:
        clubs: Dict[str, Clubbing] = {}
        weights: Dict[str, Decimal] = {}
        for shipment in shipments:
            if not shipment.club_no:
                weights[shipment.awb_no] = self.weights.aggregate_weight(shipment)
                continue
            if shipment.club_no not in clubs:
                club = self.weights.club_for(shipment)
                if club is None:
                    raise ClubNotFound(f"Club {shipment.club_no} of shipment {shipment.awb_no} not found")
                clubs[shipment.club_no] = club
            members = batch_weights(clubs[shipment.club_no])
            if shipment.awb_no not in members:
                raise ValidationError(f"Shipment {shipment.awb_no} is not a member of club {shipment.club_no}")
            weights[shipment.awb_no] = members[shipment.awb_no]
        return weights

    def _resolve_surcharges(self, account_code: str, service: str, billing_date: date) -> Surcharges:
        try:
            fuel = self.surcharges.resolve_fuel(account_code, service, billing_date)
        except NoApplicableSetting as exc:
            if self.missing_surcharge_policy != "zero":
                raise SurchargeNotFound(exc.message) from exc
            fuel = _zero_setting(account_code, service, billing_date)
        try:
            tax = self.surcharges.resolve_tax(account_code, service, billing_date)
        except NoApplicableSetting as exc:
            if self.missing_surcharge_policy != "zero":
                raise SurchargeNotFound(exc.message) from exc
            tax = _zero_setting(account_code, service, billing_date)
        return Surcharges(fuel=fuel, tax=tax)

    def price(
        self,
        account: CustomerAccount,
        shipments: Sequence[Shipment],
        billing_date: date,
        cancel_event: threading.Event | None = None,
    ) -> List[_PricedShipment]:
        weights = self._billable_weights(shipments)
        by_service: Dict[str, Surcharges] = {}
        priced: List[_PricedShipment] = []
        for shipment in shipments:
            self._check_cancelled(cancel_event)
            # the rate in force when the shipment was booked
            zone = self.rates.lookup_zone(
                shipment.sector, shipment.zone, service=shipment.service or None, on=shipment.date
            )
            service_key = shipment.service.strip().lower()
            if service_key not in by_service:
                by_service[service_key] = self._resolve_surcharges(account.account_code, shipment.service, billing_date)
            line = price_line(shipment, weights[shipment.awb_no], zone.rate, by_service[service_key])
            priced.append(_PricedShipment(shipment=shipment, line=line, zone_id=zone.id))
        return priced

    # -------------------------------------------------------------- persistence

    def _reserve_draft(self, draft: Invoice) -> Invoice:
        invoices = self.repos.invoices
        for _ in range(SERIAL_ATTEMPTS):
            draft.serial = invoices.next_serial()
            draft.invoice_number = format_invoice_number(draft.serial, draft.financial_year)
            try:
                return invoices.insert(draft)
            except DuplicateKeyError:
                logging.debug(f"Invoice serial {draft.serial} taken by a concurrent build; retrying")
        raise ConflictError("Could not reserve an invoice number; too many concurrent builds")

    def _persist(self, draft: Invoice, awbs: List[str], zone_ids: set[str]) -> Invoice:
        reserved = self._reserve_draft(draft)
        number = reserved.invoice_number
        shipments = self.repos.shipments
        claimed: List[str] = []
        try:
            claimed = shipments.claim(awbs, number)
            if len(claimed) != len(awbs):
                lost = sorted(set(awbs) - set(claimed))
                raise ConflictError(f"Shipments were billed by a concurrent build: {', '.join(lost)}")
            built = self.repos.invoices.transition(number, InvoiceStatus.DRAFT, InvoiceStatus.BUILT)
            if built is None:
                raise InvalidTransition(f"Invoice {number} left Draft while being built")
        except Exception:
            shipments.release(claimed, number)
            self.repos.invoices.delete_draft(number)
            raise
        self.repos.zones.mark_billed(zone_ids)
        return built

    # ------------------------------------------------------------------ public

    def build_invoice(
        self,
        account_code: str,
        awbs: Iterable[str],
        billing_date: date,
        *,
        branch: str | None = None,
        created_by: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Invoice:
        codes = list(dict.fromkeys(normalize_code(awb) for awb in awbs if normalize_code(awb)))
        if not codes:
            raise ValidationError("At least one AWB is required to build an invoice")
        self._check_cancelled(cancel_event)

        account = self.repos.customers.require(account_code)
        shipments = self._load_shipments(account, codes)
        priced = self.price(account, shipments, billing_date, cancel_event)
        lines = [item.line for item in priced]

        draft = Invoice(
            invoice_number="",
            serial=0,
            account_code=account.account_code,
            invoice_date=billing_date,
            financial_year=financial_year(billing_date),
            customer_name=account.name,
            status=InvoiceStatus.DRAFT,
            lines=lines,
            summary=summarize(lines, account.state),
            place_of_supply=account.state,
            branch=branch,
            created_by=created_by,
        )
        self._check_cancelled(cancel_event)
        invoice = self._persist(draft, codes, {item.zone_id for item in priced if item.zone_id})

        logging.info(
            f"Built invoice {invoice.invoice_number} for {account.account_code}: "
            f"{len(lines)} shipments, total {invoice.grand_total}"
        )
        notify(
            self.repos.notifications,
            account.account_code,
            "Invoice generated",
            f"Invoice {invoice.invoice_number} for {invoice.grand_total} has been generated",
            kind="invoice",
        )
        return invoice

    def void_invoice(self, invoice_number: str) -> Invoice:
        invoice = self.repos.invoices.require(invoice_number)
        if invoice.status is not InvoiceStatus.BUILT:
            raise InvalidTransition(
                f"Invoice {invoice.invoice_number} is {invoice.status.value}; only Built invoices can be voided"
            )
        voided = self.repos.invoices.transition(
            invoice.invoice_number, InvoiceStatus.BUILT, InvoiceStatus.VOID, voided_at=utcnow()
        )
        if voided is None:
            current = self.repos.invoices.require(invoice_number)
            raise InvalidTransition(
                f"Invoice {invoice.invoice_number} became {current.status.value} before it could be voided"
            )
        self.repos.shipments.release(voided.awb_numbers, voided.invoice_number)
        logging.info(f"Voided invoice {voided.invoice_number}; {len(voided.lines)} shipments released")
        return voided
