"""Customer account, balance and ledger endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...models.domain import CustomerAccount
from ...persistence import Repositories
from ...schemas.common import ApiResponse, envelope
from ...schemas.customers import BalanceModel, CustomerCreate, CustomerModel, LedgerEntryModel
from ...schemas.invoices import InvoiceModel
from ...services import Services
from ..deps import get_repos, get_services

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("", response_model=ApiResponse[CustomerModel], status_code=status.HTTP_201_CREATED)
def create_customer(payload: CustomerCreate, repos: Repositories = Depends(get_repos)) -> dict:
    account = repos.customers.create(CustomerAccount(**payload.model_dump()))
    return envelope(CustomerModel.model_validate(account))


@router.get("", response_model=ApiResponse[list[CustomerModel]], status_code=status.HTTP_200_OK)
def list_customers(repos: Repositories = Depends(get_repos)) -> dict:
    return envelope([CustomerModel.model_validate(account) for account in repos.customers.list()])


@router.get("/{account_code}", response_model=ApiResponse[CustomerModel], status_code=status.HTTP_200_OK)
def get_customer(account_code: str, repos: Repositories = Depends(get_repos)) -> dict:
    return envelope(CustomerModel.model_validate(repos.customers.require(account_code)))


@router.get("/{account_code}/balance", response_model=ApiResponse[BalanceModel], status_code=status.HTTP_200_OK)
def get_balance(account_code: str, services: Services = Depends(get_services)) -> dict:
    """Stored balance next to the balance replayed from the ledger."""
    check = services.ledger.verify_balance(account_code)
    return envelope(
        BalanceModel(
            account_code=check.account_code,
            balance=check.stored_balance,
            replayed_balance=check.replayed_balance,
            consistent=check.consistent,
            entries=check.entries,
        )
    )


@router.get(
    "/{account_code}/ledger", response_model=ApiResponse[list[LedgerEntryModel]], status_code=status.HTTP_200_OK
)
def get_ledger(account_code: str, services: Services = Depends(get_services)) -> dict:
    return envelope([LedgerEntryModel.model_validate(entry) for entry in services.ledger.statement(account_code)])


@router.get("/{account_code}/invoices", response_model=ApiResponse[list[InvoiceModel]], status_code=status.HTTP_200_OK)
def list_customer_invoices(account_code: str, repos: Repositories = Depends(get_repos)) -> dict:
    account = repos.customers.require(account_code)
    return envelope([InvoiceModel.model_validate(item) for item in repos.invoices.for_account(account.account_code)])
