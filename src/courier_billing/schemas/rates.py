"""Zone rate and surcharge setting schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.domain import SurchargeMode


class ZoneCreate(BaseModel):
    sector: str = Field(..., min_length=1)
    zone: str = Field(..., min_length=1, description="Destination zone key within the sector.")
    rate: Decimal = Field(..., ge=0, description="Base rate per weight unit.")
    service: Optional[str] = Field(default=None, description="Restricts the rate to one service when set.")
    destination: Optional[str] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None

    @model_validator(mode="after")
    def validate_window(self) -> "ZoneCreate":
        if self.effective_from and self.effective_to and self.effective_to < self.effective_from:
            raise ValueError("effective_to must not be before effective_from")
        return self


class ZoneRateUpdate(BaseModel):
    rate: Decimal = Field(..., ge=0)


class ZoneModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    sector: str
    zone: str
    rate: Decimal
    service: Optional[str] = None
    destination: Optional[str] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    is_active: bool
    billed: bool


class SurchargeCreate(BaseModel):
    customer: str = Field(default="", description="Customer code; empty or the global code applies to everyone.")
    service: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    mode: Literal["percentage", "flat"] = "percentage"
    name: Optional[str] = None
    effective_date: date


class SurchargeModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    customer: str
    service: str
    amount: Decimal
    mode: SurchargeMode
    name: Optional[str] = None
    effective_date: date
    created_at: datetime


class SurchargeResolution(BaseModel):
    customer: Optional[str] = None
    service: str
    billing_date: date
    fuel: SurchargeModel
    tax: SurchargeModel
