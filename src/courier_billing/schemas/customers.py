"""Customer account, balance and ledger schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.domain import LedgerEntryKind


class CustomerCreate(BaseModel):
    account_code: str = Field(..., min_length=1, description="Unique customer code, stored upper-cased.")
    name: str = Field(..., min_length=1)
    state: Optional[str] = Field(default=None, description="Customer state; decides CGST/SGST versus IGST.")
    email: Optional[str] = None

    @field_validator("account_code")
    @classmethod
    def validate_account_code(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("account_code cannot be blank")
        return value.strip().upper()


class CustomerModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_code: str
    name: str
    state: Optional[str] = None
    email: Optional[str] = None
    balance: Decimal
    version: int


class BalanceModel(BaseModel):
    account_code: str
    balance: Decimal
    replayed_balance: Decimal
    consistent: bool
    entries: int


class LedgerEntryModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_code: str
    sequence: int
    kind: LedgerEntryKind
    reference: str
    amount: Decimal
    balance_after: Decimal
    created_at: datetime
    remarks: Optional[str] = None
