from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope returned by every JSON endpoint."""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


def ok(data: Any = None, message: Optional[str] = None) -> ApiResponse[Any]:
    return ApiResponse[Any](success=True, data=data, message=message)
