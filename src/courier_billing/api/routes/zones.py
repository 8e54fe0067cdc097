"""Zone rate endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from ...models.domain import Zone
from ...persistence import Repositories
from ...schemas.common import ApiResponse, envelope
from ...schemas.rates import ZoneCreate, ZoneModel, ZoneRateUpdate
from ...services import Services
from ..deps import get_repos, get_services

router = APIRouter(prefix="/zones", tags=["zones"])


@router.post("", response_model=ApiResponse[ZoneModel], status_code=status.HTTP_201_CREATED)
def create_zone(payload: ZoneCreate, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(ZoneModel.model_validate(repos.zones.create(Zone(**payload.model_dump()))))


@router.get("", response_model=ApiResponse[list[ZoneModel]], status_code=status.HTTP_200_OK)
def list_zones(
    sector: str | None = Query(default=None, description="Optional sector filter"),
    repos: Repositories = Depends(get_repos),
) -> dict:
    return envelope([ZoneModel.model_validate(zone) for zone in repos.zones.list(sector)])


@router.get("/lookup", response_model=ApiResponse[ZoneModel], status_code=status.HTTP_200_OK)
def lookup_zone(
    sector: str = Query(..., description="Sector of the shipment"),
    zone: str = Query(..., description="Destination zone key"),
    service: str | None = Query(default=None),
    on: date | None = Query(default=None, description="Date the rate must be effective on"),
    services: Services = Depends(get_services),
) -> dict:
    return envelope(ZoneModel.model_validate(services.rates.lookup_zone(sector, zone, service=service, on=on)))


@router.put("/{zone_id}/rate", response_model=ApiResponse[ZoneModel], status_code=status.HTTP_200_OK)
def update_zone_rate(zone_id: str, payload: ZoneRateUpdate, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(ZoneModel.model_validate(repos.zones.update_rate(zone_id, payload.rate)))


@router.delete("/{zone_id}", response_model=ApiResponse[ZoneModel], status_code=status.HTTP_200_OK)
def deactivate_zone(zone_id: str, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(ZoneModel.model_validate(repos.zones.deactivate(zone_id)))
