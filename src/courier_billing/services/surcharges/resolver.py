"""Fuel and tax surcharge resolution for a billing date."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ...config import settings
from ...errors import NoApplicableSetting
from ...persistence.rates import SurchargeRepository
from ...models.domain import SurchargeSetting
from ..cache import TimedSnapshot
from .index import TemporalIndex


@dataclass(slots=True)
class Surcharges:
    fuel: SurchargeSetting
    tax: SurchargeSetting


class SurchargeResolver:
    """Finds the fuel and tax settings authoritative on a billing date.

    A customer's own records take precedence; global records are the fallback
    only when the customer has nothing effective on that date.
    """

    def __init__(
        self,
        fuel_settings: SurchargeRepository,
        tax_settings: SurchargeRepository,
        *,
        global_customer: str | None = None,
        ttl_seconds: float | None = None,
    ) -> None:
        self.global_customer = (global_customer or settings.global_customer_code).strip().upper()
        ttl = settings.reference_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._fuel = self._snapshot(fuel_settings, ttl, "fuel settings")
        self._tax = self._snapshot(tax_settings, ttl, "tax settings")

    def _snapshot(self, repository: SurchargeRepository, ttl: float, name: str) -> TimedSnapshot[TemporalIndex]:
        snapshot: TimedSnapshot[TemporalIndex] = TimedSnapshot(
            lambda: TemporalIndex(repository.list(), global_customer=self.global_customer),
            ttl,
            name=name,
        )
        repository.on_change(snapshot.invalidate)
        return snapshot

    def _resolve(self, index: TemporalIndex, kind: str, customer: str | None, service: str, on: date) -> SurchargeSetting:
        if customer and customer.strip().upper() != self.global_customer:
            record = index.latest_on(customer, service, on)
            if record is not None:
                return record
        record = index.latest_on(self.global_customer, service, on)
        if record is None:
            raise NoApplicableSetting(
                f"No {kind} setting effective on {on.isoformat()} for customer "
                f"{customer or self.global_customer} and service {service}"
            )
        return record

    def resolve_fuel(self, customer: str | None, service: str, billing_date: date) -> SurchargeSetting:
        return self._resolve(self._fuel.get(), "fuel", customer, service, billing_date)

    def resolve_tax(self, customer: str | None, service: str, billing_date: date) -> SurchargeSetting:
        return self._resolve(self._tax.get(), "tax", customer, service, billing_date)

    def resolve_surcharge(self, customer: str | None, service: str, billing_date: date) -> Surcharges:
        return Surcharges(
            fuel=self.resolve_fuel(customer, service, billing_date),
            tax=self.resolve_tax(customer, service, billing_date),
        )
