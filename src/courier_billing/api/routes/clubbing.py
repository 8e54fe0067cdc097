"""Clubbing endpoints: create, amend while open, lock, inspect billable weights."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ...models.domain import Clubbing, ClubbingRow
from ...models.money import ZERO
from ...persistence import Repositories
from ...schemas.common import ApiResponse, envelope
from ...schemas.shipments import BagWeightUpdate, ClubAmend, ClubCreate, ClubModel, ClubWeightsModel
from ...services.weights import batch_weights
from ..deps import get_repos

router = APIRouter(prefix="/clubbing", tags=["clubbing"])


@router.post("", response_model=ApiResponse[ClubModel], status_code=status.HTTP_201_CREATED)
def create_club(payload: ClubCreate, repos: Repositories = Depends(get_repos)) -> dict:
    values = payload.model_dump(exclude={"rows"})
    rows = [ClubbingRow(awb_no=row.awb_no, weight=row.weight) for row in payload.rows]
    return envelope(ClubModel.model_validate(repos.clubbing.create(Clubbing(rows=rows, **values))))


@router.get("", response_model=ApiResponse[list[ClubModel]], status_code=status.HTTP_200_OK)
def list_clubs_for_run(
    run_no: str = Query(..., description="Run whose clubs to list"),
    repos: Repositories = Depends(get_repos),
) -> dict:
    return envelope([ClubModel.model_validate(club) for club in repos.clubbing.for_run(run_no)])


@router.get("/{club_no}", response_model=ApiResponse[ClubModel], status_code=status.HTTP_200_OK)
def get_club(club_no: str, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(ClubModel.model_validate(repos.clubbing.require(club_no)))


@router.put("/{club_no}/weights", response_model=ApiResponse[ClubModel], status_code=status.HTTP_200_OK)
def amend_club_weights(club_no: str, payload: ClubAmend, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(ClubModel.model_validate(repos.clubbing.amend_weights(club_no, payload.weights)))


@router.put("/{club_no}/bag-weight", response_model=ApiResponse[ClubModel], status_code=status.HTTP_200_OK)
def set_bag_weight(club_no: str, payload: BagWeightUpdate, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(ClubModel.model_validate(repos.clubbing.set_bag_weight(club_no, payload.bag_weight)))


@router.post("/{club_no}/lock", response_model=ApiResponse[ClubModel], status_code=status.HTTP_200_OK)
def lock_club(club_no: str, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(ClubModel.model_validate(repos.clubbing.lock(club_no)))


@router.get("/{club_no}/billable-weights", response_model=ApiResponse[ClubWeightsModel], status_code=status.HTTP_200_OK)
def get_billable_weights(club_no: str, repos: Repositories = Depends(get_repos)) -> dict:
    club = repos.clubbing.require(club_no)
    weights = batch_weights(club)
    return envelope(
        ClubWeightsModel(
            club_no=club.club_no,
            is_locked=club.is_locked,
            bag_weight=club.bag_weight,
            weights=weights,
            total_weight=sum(weights.values(), ZERO),
        )
    )
