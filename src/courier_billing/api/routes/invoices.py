"""Invoice build, application, voiding and credit note endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, status

from ...persistence import Repositories
from ...persistence.codec import normalize_code
from ...schemas.common import ApiResponse, envelope
from ...schemas.invoices import (
    ApplyInvoiceRequest,
    ApplyInvoiceResponse,
    CreditNoteRequest,
    CreditNoteResponse,
    InvoiceBuildRequest,
    InvoiceModel,
)
from ...services import Services
from ..deps import get_repos, get_services

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post("", response_model=ApiResponse[InvoiceModel], status_code=status.HTTP_201_CREATED)
def build_invoice(payload: InvoiceBuildRequest, services: Services = Depends(get_services)) -> dict:
    """Price the shipments and persist a Built invoice. The balance is untouched until apply."""
    invoice = services.invoices.build_invoice(
        payload.account_code,
        payload.awb_numbers,
        payload.billing_date or date.today(),
        branch=payload.branch,
        created_by=payload.created_by,
    )
    return envelope(InvoiceModel.model_validate(invoice))


@router.get("/{invoice_number}", response_model=ApiResponse[InvoiceModel], status_code=status.HTTP_200_OK)
def get_invoice(invoice_number: str, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(InvoiceModel.model_validate(repos.invoices.require(invoice_number)))


@router.post(
    "/{invoice_number}/apply", response_model=ApiResponse[ApplyInvoiceResponse], status_code=status.HTTP_200_OK
)
def apply_invoice(
    invoice_number: str, payload: ApplyInvoiceRequest, services: Services = Depends(get_services)
) -> dict:
    balance = services.ledger.apply_invoice(payload.account_code, invoice_number)
    return envelope(
        ApplyInvoiceResponse(
            invoice_number=normalize_code(invoice_number),
            account_code=normalize_code(payload.account_code),
            balance=balance,
        )
    )


@router.post("/{invoice_number}/void", response_model=ApiResponse[InvoiceModel], status_code=status.HTTP_200_OK)
def void_invoice(invoice_number: str, services: Services = Depends(get_services)) -> dict:
    return envelope(InvoiceModel.model_validate(services.invoices.void_invoice(invoice_number)))


@router.post(
    "/{invoice_number}/credit-notes",
    response_model=ApiResponse[CreditNoteResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_credit_note(
    invoice_number: str, payload: CreditNoteRequest, services: Services = Depends(get_services)
) -> dict:
    entry = services.ledger.apply_credit_note(
        payload.account_code, invoice_number, payload.amount, reason=payload.reason
    )
    return envelope(
        CreditNoteResponse(
            invoice_number=normalize_code(invoice_number),
            reference=entry.reference,
            amount=-entry.amount,
            balance=entry.balance_after,
        )
    )
