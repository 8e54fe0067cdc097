"""Notification persistence."""

from __future__ import annotations

from typing import Any

from ..models.domain import Notification, utcnow
from .codec import dump_datetime, load_datetime, normalize_code
from .store import DocumentStore

NOTIFICATIONS = "notifications"


def _notification_from_row(row: dict[str, Any]) -> Notification:
    return Notification(
        id=row.get("id"),
        account_code=row.get("account_code"),
        title=row.get("title") or "",
        message=row.get("message") or "",
        kind=row.get("kind") or "info",
        is_read=bool(row.get("is_read", False)),
        created_at=load_datetime(row.get("created_at")) or utcnow(),
    )


class NotificationRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def create(self, notification: Notification) -> Notification:
        row = self.store.insert(
            NOTIFICATIONS,
            {
                "account_code": normalize_code(notification.account_code) or None,
                "title": notification.title,
                "message": notification.message,
                "kind": notification.kind,
                "is_read": False,
                "created_at": dump_datetime(notification.created_at),
            },
        )
        return _notification_from_row(row)

    def list(self, account_code: str | None = None, *, unread_only: bool = False) -> list[Notification]:
        filters: dict[str, Any] = {}
        if account_code:
            filters["account_code"] = normalize_code(account_code)
        if unread_only:
            filters["is_read"] = False
        rows = self.store.find(NOTIFICATIONS, filters, order_by="created_at", descending=True)
        return [_notification_from_row(row) for row in rows]

    def mark_all_read(self, account_code: str | None = None) -> int:
        filters: dict[str, Any] = {"is_read": False}
        if account_code:
            filters["account_code"] = normalize_code(account_code)
        return len(self.store.update(NOTIFICATIONS, filters, {"is_read": True}))
