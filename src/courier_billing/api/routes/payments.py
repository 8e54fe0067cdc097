"""Payment receipt endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...errors import NotFoundError
from ...persistence import Repositories
from ...schemas.common import ApiResponse, envelope
from ...schemas.invoices import PaymentRequest, PaymentResponse, ReceiptModel
from ...services import Services
from ..deps import get_repos, get_services

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("", response_model=ApiResponse[PaymentResponse], status_code=status.HTTP_201_CREATED)
def record_payment(payload: PaymentRequest, services: Services = Depends(get_services)) -> dict:
    receipt, entry = services.ledger.record_receipt(
        payload.account_code,
        payload.amount,
        receipt_no=payload.receipt_no,
        mode=payload.mode,
        entry_user=payload.entry_user,
        receipt_date=payload.date,
        remarks=payload.remarks,
    )
    return envelope(PaymentResponse(receipt=ReceiptModel.model_validate(receipt), balance=entry.balance_after))


@router.get("/{receipt_no}", response_model=ApiResponse[ReceiptModel], status_code=status.HTTP_200_OK)
def get_payment(receipt_no: str, repos: Repositories = Depends(get_repos)) -> dict:
    receipt = repos.receipts.get(receipt_no)
    if receipt is None:
        raise NotFoundError(f"Receipt {receipt_no} not found")
    return envelope(ReceiptModel.model_validate(receipt))
