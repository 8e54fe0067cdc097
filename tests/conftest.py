from datetime import date
from decimal import Decimal

import pytest

from courier_billing.models.domain import (
    CustomerAccount,
    RunEntry,
    Shipment,
    SurchargeMode,
    SurchargeSetting,
    Zone,
)
from courier_billing.persistence import MemoryStore, Repositories, build_repositories
from courier_billing.services import Services, build_services


class Seeder:
    """Writes reference data and shipments with sensible defaults."""

    def __init__(self, repos: Repositories) -> None:
        self.repos = repos

    def account(self, code: str = "ACME", state: str | None = "Delhi", name: str = "Acme Traders") -> CustomerAccount:
        return self.repos.customers.create(CustomerAccount(account_code=code, name=name, state=state))

    def zone(self, sector: str = "DEL-BOM", zone: str = "Z1", rate: str = "10", **extra) -> Zone:
        return self.repos.zones.create(Zone(sector=sector, zone=zone, rate=Decimal(rate), **extra))

    def _setting(self, repository, amount, effective_date, customer, service, mode, created_at) -> SurchargeSetting:
        setting = SurchargeSetting(
            customer=customer,
            service=service,
            amount=Decimal(amount),
            effective_date=effective_date,
            mode=mode,
        )
        if created_at is not None:
            setting.created_at = created_at
        return repository.create(setting)

    def fuel(
        self,
        amount: str = "10",
        effective_date: date = date(2024, 4, 1),
        customer: str = "ALL",
        service: str = "EXPRESS",
        mode: SurchargeMode = SurchargeMode.PERCENTAGE,
        created_at=None,
    ) -> SurchargeSetting:
        return self._setting(self.repos.fuel_settings, amount, effective_date, customer, service, mode, created_at)

    def tax(
        self,
        amount: str = "18",
        effective_date: date = date(2024, 4, 1),
        customer: str = "ALL",
        service: str = "EXPRESS",
        mode: SurchargeMode = SurchargeMode.PERCENTAGE,
        created_at=None,
    ) -> SurchargeSetting:
        return self._setting(self.repos.tax_settings, amount, effective_date, customer, service, mode, created_at)

    def run(self, run_no: str = "RUN1") -> RunEntry:
        return self.repos.runs.create(RunEntry(run_no=run_no, sector="DEL-BOM", date=date(2024, 5, 1)))

    def shipment(
        self,
        awb_no: str,
        account: str = "ACME",
        weight: str = "10",
        sector: str = "DEL-BOM",
        zone: str = "Z1",
        service: str = "EXPRESS",
        booked: date = date(2024, 5, 1),
        run_no: str | None = "RUN1",
        **extra,
    ) -> Shipment:
        return self.repos.shipments.create(
            Shipment(
                awb_no=awb_no,
                account_code=account,
                sector=sector,
                zone=zone,
                date=booked,
                service=service,
                actual_weight=Decimal(weight),
                run_no=run_no,
                **extra,
            )
        )

    def billing_setup(self, state: str | None = "Delhi") -> None:
        """Account, one zone at rate 10, fuel 10% and tax 18% for EXPRESS."""
        self.account(state=state)
        self.zone()
        self.fuel()
        self.tax()
        self.run()


@pytest.fixture
def repos() -> Repositories:
    return build_repositories(MemoryStore())


@pytest.fixture
def services(repos: Repositories) -> Services:
    return build_services(repos)


@pytest.fixture
def seed(repos: Repositories) -> Seeder:
    return Seeder(repos)
