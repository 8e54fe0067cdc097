"""Request-scoped access to the repositories and services built at startup."""

from __future__ import annotations

from fastapi import Request

from ..persistence import Repositories
from ..services import Services


def get_repos(request: Request) -> Repositories:
    return request.app.state.repos


def get_services(request: Request) -> Services:
    return request.app.state.services
