"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...persistence import Repositories, SupabaseStore
from ...schemas.common import envelope
from ..deps import get_repos

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return envelope({"status": "ok"})


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database(repos: Repositories = Depends(get_repos)) -> dict:
    """Report which document store backs the service and whether it answers."""
    backend = "supabase" if isinstance(repos.store, SupabaseStore) else "memory"
    try:
        accounts = len(repos.customers.list())
    except Exception as exc:  # noqa: BLE001
        return envelope({"backend": backend, "connected": False, "message": f"Database connection error: {exc}"})
    return envelope({"backend": backend, "connected": True, "customer_accounts": accounts})
