"""
Schema primitives shared by several routers.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from diary.models.role import Role


class ErrorResponse(BaseModel):
    """Error envelope returned for every 4xx/5xx response."""
    model_config = ConfigDict(from_attributes=True)

    code: str = Field(description="Machine-readable error code, e.g. DAY_NOT_FOUND.")
    message: str
    details: Optional[dict[str, Any]] = None


class RoleTotalsOut(BaseModel):
    sum: float = 0
    count: int = 0
    average: Optional[float] = Field(
        default=None, description="null when count is 0 (no data, not zero)."
    )


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email: str
    role: Role
    display_name: str


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: {"model": ErrorResponse, "description": "Missing or invalid credentials."},
    403: {"model": ErrorResponse, "description": "Not a diary participant."},
    422: {"model": ErrorResponse, "description": "Invalid key or request body."},
    503: {"model": ErrorResponse, "description": "Store temporarily unavailable."},
}
