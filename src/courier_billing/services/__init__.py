"""Billing services wired over the repositories."""

from __future__ import annotations

from dataclasses import dataclass

from ..persistence import Repositories
from .invoices import InvoiceBuilder
from .ledger import BalanceLedger
from .rates import RateTable
from .surcharges import SurchargeResolver
from .weights import WeightAggregator


@dataclass(slots=True)
class Services:
    rates: RateTable
    surcharges: SurchargeResolver
    weights: WeightAggregator
    invoices: InvoiceBuilder
    ledger: BalanceLedger


def build_services(repos: Repositories) -> Services:
    rates = RateTable(repos.zones)
    surcharges = SurchargeResolver(repos.fuel_settings, repos.tax_settings)
    weights = WeightAggregator(repos.clubbing)
    return Services(
        rates=rates,
        surcharges=surcharges,
        weights=weights,
        invoices=InvoiceBuilder(repos, rates, surcharges, weights),
        ledger=BalanceLedger(repos),
    )


__all__ = ["Services", "build_services"]
