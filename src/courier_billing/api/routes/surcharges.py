"""Fuel and tax setting endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from ...models.domain import SurchargeMode, SurchargeSetting
from ...persistence import Repositories
from ...persistence.rates import SurchargeRepository
from ...schemas.common import ApiResponse, envelope
from ...schemas.rates import SurchargeCreate, SurchargeModel, SurchargeResolution
from ...services import Services
from ..deps import get_repos, get_services

router = APIRouter(tags=["surcharges"])


def _create(repository: SurchargeRepository, payload: SurchargeCreate) -> dict:
    values = payload.model_dump()
    values["mode"] = SurchargeMode(values["mode"])
    return envelope(SurchargeModel.model_validate(repository.create(SurchargeSetting(**values))))


def _list(repository: SurchargeRepository, customer: str | None, service: str | None) -> dict:
    records = sorted(repository.list(customer, service), key=lambda item: (item.effective_date, item.created_at))
    return envelope([SurchargeModel.model_validate(item) for item in records])


@router.post("/fuel-settings", response_model=ApiResponse[SurchargeModel], status_code=status.HTTP_201_CREATED)
def create_fuel_setting(payload: SurchargeCreate, repos: Repositories = Depends(get_repos)) -> dict:
    return _create(repos.fuel_settings, payload)


@router.get("/fuel-settings", response_model=ApiResponse[list[SurchargeModel]], status_code=status.HTTP_200_OK)
def list_fuel_settings(
    customer: str | None = Query(default=None),
    service: str | None = Query(default=None),
    repos: Repositories = Depends(get_repos),
) -> dict:
    return _list(repos.fuel_settings, customer, service)


@router.post("/tax-settings", response_model=ApiResponse[SurchargeModel], status_code=status.HTTP_201_CREATED)
def create_tax_setting(payload: SurchargeCreate, repos: Repositories = Depends(get_repos)) -> dict:
    return _create(repos.tax_settings, payload)


@router.get("/tax-settings", response_model=ApiResponse[list[SurchargeModel]], status_code=status.HTTP_200_OK)
def list_tax_settings(
    customer: str | None = Query(default=None),
    service: str | None = Query(default=None),
    repos: Repositories = Depends(get_repos),
) -> dict:
    return _list(repos.tax_settings, customer, service)


@router.get("/surcharges/resolve", response_model=ApiResponse[SurchargeResolution], status_code=status.HTTP_200_OK)
def resolve_surcharges(
    service: str = Query(..., min_length=1),
    billing_date: date = Query(..., description="Date the settings must be effective on"),
    customer: str | None = Query(default=None, description="Customer code; omit for global settings"),
    services: Services = Depends(get_services),
) -> dict:
    resolved = services.surcharges.resolve_surcharge(customer, service, billing_date)
    return envelope(
        SurchargeResolution(
            customer=customer,
            service=service,
            billing_date=billing_date,
            fuel=SurchargeModel.model_validate(resolved.fuel),
            tax=SurchargeModel.model_validate(resolved.tax),
        )
    )
