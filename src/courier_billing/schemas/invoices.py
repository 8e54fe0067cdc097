"""Invoice, credit note, payment and notification schemas."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import InvoiceStatus


class InvoiceBuildRequest(BaseModel):
    account_code: str = Field(..., min_length=1)
    awb_numbers: List[str] = Field(..., min_length=1)
    billing_date: Optional[dt.date] = Field(default=None, description="Defaults to today.")
    branch: Optional[str] = None
    created_by: Optional[str] = None


class InvoiceLineModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    awb_no: str
    date: Optional[dt.date] = None
    sector: str
    zone: str
    service: str
    weight: Decimal
    rate: Decimal
    freight: Decimal
    fuel: Decimal
    tax: Decimal
    total: Decimal


class InvoiceSummaryModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    basic_amount: Decimal
    fuel_amount: Decimal
    tax_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    grand_total: Decimal


class InvoiceModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoice_number: str
    serial: int
    account_code: str
    invoice_date: dt.date
    financial_year: str
    customer_name: Optional[str] = None
    status: InvoiceStatus
    lines: List[InvoiceLineModel]
    summary: InvoiceSummaryModel
    place_of_supply: Optional[str] = None
    branch: Optional[str] = None
    created_by: Optional[str] = None
    credited_amount: Decimal
    created_at: dt.datetime
    applied_at: Optional[dt.datetime] = None
    voided_at: Optional[dt.datetime] = None


class ApplyInvoiceRequest(BaseModel):
    account_code: str = Field(..., min_length=1)


class ApplyInvoiceResponse(BaseModel):
    invoice_number: str
    account_code: str
    balance: Decimal


class CreditNoteRequest(BaseModel):
    account_code: str = Field(..., min_length=1)
    amount: Optional[Decimal] = Field(default=None, gt=0, description="Defaults to the uncredited remainder.")
    reason: Optional[str] = None


class CreditNoteResponse(BaseModel):
    invoice_number: str
    reference: str
    amount: Decimal
    balance: Decimal


class PaymentRequest(BaseModel):
    account_code: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    receipt_no: Optional[str] = Field(default=None, description="Generated when omitted.")
    mode: str = "Cash"
    entry_user: str = "Unknown"
    date: Optional[dt.date] = None
    remarks: Optional[str] = None


class ReceiptModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    receipt_no: str
    account_code: str
    amount: Decimal
    mode: str
    entry_user: str
    date: Optional[dt.date] = None
    remarks: Optional[str] = None
    created_at: dt.datetime


class PaymentResponse(BaseModel):
    receipt: ReceiptModel
    balance: Decimal


class NotificationModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    account_code: Optional[str] = None
    title: str
    message: str
    kind: str
    is_read: bool
    created_at: dt.datetime
