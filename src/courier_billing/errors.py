"""Billing error taxonomy shared by services, persistence and the HTTP layer."""

from __future__ import annotations

from fastapi import status


class BillingError(Exception):
    """Base class for every failure the service reports to callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(BillingError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation"


class NotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(BillingError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class InternalError(BillingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal"


# Not found
class RateNotFound(NotFoundError):
    code = "rate_not_found"


class ShipmentNotFound(NotFoundError):
    code = "shipment_not_found"


class NoApplicableSetting(NotFoundError):
    code = "no_applicable_setting"


class SurchargeNotFound(NotFoundError):
    code = "surcharge_not_found"


class AccountNotFound(NotFoundError):
    code = "account_not_found"


class InvoiceNotFound(NotFoundError):
    code = "invoice_not_found"


class ClubNotFound(NotFoundError):
    code = "club_not_found"


# Conflicts
class AlreadyApplied(ConflictError):
    code = "already_applied"


class ClubLocked(ConflictError):
    code = "club_locked"


class InvalidTransition(ConflictError):
    code = "invalid_transition"


class ConcurrentUpdate(ConflictError):
    code = "concurrent_update"


class BuildCancelled(ConflictError):
    code = "build_cancelled"


class DuplicateKeyError(ConflictError):
    code = "duplicate_key"


# Internal
class StorageError(InternalError):
    code = "storage_error"


class LedgerOutOfSync(InternalError):
    """The balance moved but neither its ledger entry nor a reversal could be written."""

    code = "ledger_out_of_sync"
