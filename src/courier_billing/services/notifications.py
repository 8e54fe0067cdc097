"""Fire-and-forget customer notifications."""

from __future__ import annotations

import logging

from ..models.domain import Notification
from ..persistence.notifications import NotificationRepository


def notify(
    notifications: NotificationRepository,
    account_code: str | None,
    title: str,
    message: str,
    kind: str = "info",
) -> Notification | None:
    """Record a notification; a failure here never fails the calling operation."""
    try:
        return notifications.create(Notification(account_code=account_code, title=title, message=message, kind=kind))
    except Exception as exc:  # noqa: BLE001
        logging.warning(f"Failed to record notification '{title}' for {account_code or 'all accounts'}: {exc}")
        return None
