"""Response envelope shared by every endpoint."""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None


def envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}
