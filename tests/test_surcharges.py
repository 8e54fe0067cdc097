from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from courier_billing.errors import NoApplicableSetting
from courier_billing.models.domain import SurchargeSetting
from courier_billing.services.surcharges import SurchargeResolver, TemporalIndex

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _setting(amount: str, effective: date, customer: str = "ALL", created_at: datetime = T0) -> SurchargeSetting:
    return SurchargeSetting(
        customer=customer,
        service="EXPRESS",
        amount=Decimal(amount),
        effective_date=effective,
        created_at=created_at,
    )


def test_latest_on_picks_most_recent_effective_record() -> None:
    index = TemporalIndex(
        [
            _setting("10", date(2024, 1, 1)),
            _setting("12", date(2024, 6, 1)),
            _setting("15", date(2025, 1, 1)),
        ]
    )

    assert index.latest_on("ALL", "EXPRESS", date(2024, 7, 1)).amount == Decimal("12")
    assert index.latest_on("ALL", "EXPRESS", date(2024, 6, 1)).amount == Decimal("12")
    assert index.latest_on("ALL", "EXPRESS", date(2023, 12, 31)) is None
    assert len(index) == 3


def test_same_effective_date_resolved_by_creation_time() -> None:
    later = _setting("9", date(2024, 4, 1), created_at=T0 + timedelta(hours=1))
    earlier = _setting("7", date(2024, 4, 1), created_at=T0)
    index = TemporalIndex([later, earlier])

    assert index.latest_on("ALL", "express", date(2024, 4, 1)) is later
    assert [item.amount for item in index.history("ALL", "EXPRESS")] == [Decimal("7"), Decimal("9")]


def test_empty_customer_is_global() -> None:
    index = TemporalIndex([_setting("5", date(2024, 1, 1), customer="")])

    assert index.latest_on("ALL", "EXPRESS", date(2024, 2, 1)).amount == Decimal("5")


def test_customer_record_wins_over_newer_global(repos, seed) -> None:
    seed.fuel(amount="8", effective_date=date(2024, 4, 1), customer="ACME")
    seed.fuel(amount="12", effective_date=date(2024, 5, 1))
    resolver = SurchargeResolver(repos.fuel_settings, repos.tax_settings)

    assert resolver.resolve_fuel("ACME", "EXPRESS", date(2024, 6, 1)).amount == Decimal("8")
    assert resolver.resolve_fuel("OTHER", "EXPRESS", date(2024, 6, 1)).amount == Decimal("12")


def test_global_used_until_customer_record_takes_effect(repos, seed) -> None:
    seed.tax(amount="18", effective_date=date(2024, 1, 1))
    seed.tax(amount="5", effective_date=date(2024, 7, 1), customer="ACME")
    resolver = SurchargeResolver(repos.fuel_settings, repos.tax_settings)

    assert resolver.resolve_tax("ACME", "EXPRESS", date(2024, 6, 30)).amount == Decimal("18")
    assert resolver.resolve_tax("ACME", "EXPRESS", date(2024, 7, 1)).amount == Decimal("5")


def test_future_dated_record_ignored_and_missing_rejected(repos, seed) -> None:
    seed.fuel(amount="10", effective_date=date(2024, 9, 1))
    seed.tax(amount="18", effective_date=date(2024, 1, 1))
    resolver = SurchargeResolver(repos.fuel_settings, repos.tax_settings)

    with pytest.raises(NoApplicableSetting):
        resolver.resolve_surcharge("ACME", "EXPRESS", date(2024, 8, 31))
    with pytest.raises(NoApplicableSetting):
        resolver.resolve_tax("ACME", "ECONOMY", date(2024, 8, 31))

    resolved = resolver.resolve_surcharge(None, "EXPRESS", date(2024, 9, 1))
    assert (resolved.fuel.amount, resolved.tax.amount) == (Decimal("10"), Decimal("18"))


def test_resolver_sees_new_settings_immediately(repos, seed) -> None:
    resolver = SurchargeResolver(repos.fuel_settings, repos.tax_settings, ttl_seconds=3600)
    with pytest.raises(NoApplicableSetting):
        resolver.resolve_fuel("ACME", "EXPRESS", date(2024, 5, 1))

    seed.fuel(amount="11", effective_date=date(2024, 4, 1))
    assert resolver.resolve_fuel("ACME", "EXPRESS", date(2024, 5, 1)).amount == Decimal("11")
