"""Per-key time series supporting "latest record effective on a date" queries."""

from __future__ import annotations

from bisect import bisect_right
from datetime import date, datetime, timezone
from typing import Iterable

from ...models.domain import SurchargeSetting

_END_OF_TIME = datetime.max.replace(tzinfo=timezone.utc)


class _Series:
    """Records of one key sorted by (effective date, created at)."""

    __slots__ = ("keys", "records")

    def __init__(self) -> None:
        self.keys: list[tuple[date, datetime]] = []
        self.records: list[SurchargeSetting] = []

    def add(self, record: SurchargeSetting) -> None:
        created = record.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        sort_key = (record.effective_date, created)
        position = bisect_right(self.keys, sort_key)
        self.keys.insert(position, sort_key)
        self.records.insert(position, record)

    def latest_on(self, on: date) -> SurchargeSetting | None:
        position = bisect_right(self.keys, (on, _END_OF_TIME))
        return self.records[position - 1] if position else None


class TemporalIndex:
    """Surcharge records keyed by (customer, service), sorted by effective date.

    Within one key, records sharing an effective date are ordered by creation
    time, so the rightmost record at or before a date is the authoritative one.
    """

    def __init__(self, records: Iterable[SurchargeSetting] = (), *, global_customer: str = "ALL") -> None:
        self.global_customer = global_customer.strip().upper()
        self._series: dict[tuple[str, str], _Series] = {}
        for record in records:
            self.add(record)

    def key_for(self, customer: str | None, service: str) -> tuple[str, str]:
        code = (customer or "").strip().upper() or self.global_customer
        return code, (service or "").strip().lower()

    def add(self, record: SurchargeSetting) -> None:
        self._series.setdefault(self.key_for(record.customer, record.service), _Series()).add(record)

    def latest_on(self, customer: str | None, service: str, on: date) -> SurchargeSetting | None:
        series = self._series.get(self.key_for(customer, service))
        return series.latest_on(on) if series else None

    def history(self, customer: str | None, service: str) -> list[SurchargeSetting]:
        series = self._series.get(self.key_for(customer, service))
        return list(series.records) if series else []

    def __len__(self) -> int:
        return sum(len(series.records) for series in self._series.values())
