"""Shipment, manifest, run and clubbing schemas."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import ManifestStatus


class ShipmentCreate(BaseModel):
    awb_no: str = Field(..., min_length=1)
    account_code: str = Field(..., min_length=1)
    sector: str = Field(..., min_length=1)
    zone: str = Field(..., min_length=1)
    date: dt.date
    service: str = ""
    origin: Optional[str] = None
    destination: Optional[str] = None
    actual_weight: Decimal = Field(default=Decimal("0"), ge=0)
    volumetric_weight: Decimal = Field(default=Decimal("0"), ge=0)
    pcs: int = Field(default=1, ge=1)
    state: Optional[str] = None
    run_no: Optional[str] = None
    is_hold: bool = False


class ShipmentUpdate(BaseModel):
    """Partial update; only the fields sent are changed."""

    sector: Optional[str] = None
    zone: Optional[str] = None
    service: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    state: Optional[str] = None
    actual_weight: Optional[Decimal] = Field(default=None, ge=0)
    volumetric_weight: Optional[Decimal] = Field(default=None, ge=0)
    corrected_weight: Optional[Decimal] = Field(default=None, gt=0)
    pcs: Optional[int] = Field(default=None, ge=1)
    run_no: Optional[str] = None
    is_hold: Optional[bool] = None


class ShipmentModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    awb_no: str
    account_code: str
    sector: str
    zone: str
    date: Optional[dt.date] = None
    service: str
    origin: Optional[str] = None
    destination: Optional[str] = None
    actual_weight: Decimal
    volumetric_weight: Decimal
    corrected_weight: Optional[Decimal] = None
    chargeable_weight: Decimal
    pcs: int
    state: Optional[str] = None
    run_no: Optional[str] = None
    manifest_no: Optional[str] = None
    club_no: Optional[str] = None
    is_hold: bool
    is_billed: bool
    bill_no: Optional[str] = None


class ManifestCreate(BaseModel):
    manifest_no: str = Field(..., min_length=1)
    account_code: str = Field(..., min_length=1)
    awb_numbers: List[str] = Field(..., min_length=1)
    pickup_type: Optional[str] = None


class ManifestModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    manifest_no: str
    account_code: str
    awb_numbers: List[str]
    status: ManifestStatus
    pickup_type: Optional[str] = None
    created_at: dt.datetime


class RunCreate(BaseModel):
    run_no: str = Field(..., min_length=1)
    sector: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    date: Optional[dt.date] = None
    flight: Optional[str] = None
    transport_type: Optional[str] = None


class RunModel(RunCreate):
    model_config = ConfigDict(from_attributes=True)


class ClubRowModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    awb_no: str = Field(..., min_length=1)
    weight: Decimal = Field(..., gt=0)


class ClubCreate(BaseModel):
    club_no: str = Field(..., min_length=1)
    run_no: Optional[str] = None
    service: Optional[str] = None
    date: Optional[dt.date] = None
    rows: List[ClubRowModel] = Field(..., min_length=1)
    bag_weight: Optional[Decimal] = Field(default=None, ge=0)
    remarks: Optional[str] = None


class ClubAmend(BaseModel):
    weights: Dict[str, Decimal] = Field(..., min_length=1, description="New row weight per AWB.")


class BagWeightUpdate(BaseModel):
    bag_weight: Optional[Decimal] = Field(default=None, ge=0)


class ClubModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    club_no: str
    run_no: Optional[str] = None
    service: Optional[str] = None
    date: Optional[dt.date] = None
    rows: List[ClubRowModel]
    bag_weight: Optional[Decimal] = None
    is_locked: bool
    remarks: Optional[str] = None


class ClubWeightsModel(BaseModel):
    club_no: str
    is_locked: bool
    bag_weight: Optional[Decimal] = None
    weights: Dict[str, Decimal]
    total_weight: Decimal
