"""Notification endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ...persistence import Repositories
from ...schemas.common import ApiResponse, envelope
from ...schemas.invoices import NotificationModel
from ..deps import get_repos

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=ApiResponse[list[NotificationModel]], status_code=status.HTTP_200_OK)
def list_notifications(
    account_code: str | None = Query(default=None),
    unread_only: bool = Query(default=False),
    repos: Repositories = Depends(get_repos),
) -> dict:
    items = repos.notifications.list(account_code, unread_only=unread_only)
    return envelope([NotificationModel.model_validate(item) for item in items])


@router.post("/read", status_code=status.HTTP_200_OK)
def mark_notifications_read(
    account_code: str | None = Query(default=None),
    repos: Repositories = Depends(get_repos),
) -> dict:
    return envelope({"updated": repos.notifications.mark_all_read(account_code)})
