"""Shipment, manifest and run endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ...errors import NotFoundError
from ...models.domain import Manifest, RunEntry, Shipment
from ...persistence import Repositories
from ...schemas.common import ApiResponse, envelope
from ...schemas.shipments import (
    ManifestCreate,
    ManifestModel,
    RunCreate,
    RunModel,
    ShipmentCreate,
    ShipmentModel,
    ShipmentUpdate,
)
from ..deps import get_repos

router = APIRouter(tags=["shipments"])


@router.post("/shipments", response_model=ApiResponse[ShipmentModel], status_code=status.HTTP_201_CREATED)
def create_shipment(payload: ShipmentCreate, repos: Repositories = Depends(get_repos)) -> dict:
    repos.customers.require(payload.account_code)
    return envelope(ShipmentModel.model_validate(repos.shipments.create(Shipment(**payload.model_dump()))))


@router.get("/shipments", response_model=ApiResponse[list[ShipmentModel]], status_code=status.HTTP_200_OK)
def list_shipments(
    account_code: str = Query(..., description="Customer whose shipments to list"),
    unbilled_only: bool = Query(default=False),
    repos: Repositories = Depends(get_repos),
) -> dict:
    items = repos.shipments.for_account(account_code, unbilled_only=unbilled_only)
    return envelope([ShipmentModel.model_validate(item) for item in items])


@router.get("/shipments/{awb_no}", response_model=ApiResponse[ShipmentModel], status_code=status.HTTP_200_OK)
def get_shipment(awb_no: str, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(ShipmentModel.model_validate(repos.shipments.require(awb_no)))


@router.patch("/shipments/{awb_no}", response_model=ApiResponse[ShipmentModel], status_code=status.HTTP_200_OK)
def update_shipment(awb_no: str, payload: ShipmentUpdate, repos: Repositories = Depends(get_repos)) -> dict:
    """Edit booking fields or record a weight correction."""
    changes = payload.model_dump(exclude_unset=True)
    return envelope(ShipmentModel.model_validate(repos.shipments.update(awb_no, changes)))


@router.post("/manifests", response_model=ApiResponse[ManifestModel], status_code=status.HTTP_201_CREATED)
def create_manifest(payload: ManifestCreate, repos: Repositories = Depends(get_repos)) -> dict:
    repos.customers.require(payload.account_code)
    return envelope(ManifestModel.model_validate(repos.manifests.create(Manifest(**payload.model_dump()))))


@router.get("/manifests/{manifest_no}", response_model=ApiResponse[ManifestModel], status_code=status.HTTP_200_OK)
def get_manifest(manifest_no: str, repos: Repositories = Depends(get_repos)) -> dict:
    manifest = repos.manifests.get(manifest_no)
    if manifest is None:
        raise NotFoundError(f"Manifest {manifest_no} not found")
    return envelope(ManifestModel.model_validate(manifest))


@router.post(
    "/manifests/{manifest_no}/close", response_model=ApiResponse[ManifestModel], status_code=status.HTTP_200_OK
)
def close_manifest(manifest_no: str, repos: Repositories = Depends(get_repos)) -> dict:
    """Closing freezes member shipments except for weight corrections."""
    return envelope(ManifestModel.model_validate(repos.manifests.close(manifest_no)))


@router.post("/runs", response_model=ApiResponse[RunModel], status_code=status.HTTP_201_CREATED)
def create_run(payload: RunCreate, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(RunModel.model_validate(repos.runs.create(RunEntry(**payload.model_dump()))))


@router.get("/runs", response_model=ApiResponse[list[RunModel]], status_code=status.HTTP_200_OK)
def list_runs(repos: Repositories = Depends(get_repos)) -> dict:
    return envelope([RunModel.model_validate(run) for run in repos.runs.list()])


@router.get("/runs/{run_no}", response_model=ApiResponse[RunModel], status_code=status.HTTP_200_OK)
def get_run(run_no: str, repos: Repositories = Depends(get_repos)) -> dict:
    run = repos.runs.get(run_no)
    if run is None:
        raise NotFoundError(f"Run {run_no} not found")
    return envelope(RunModel.model_validate(run))
