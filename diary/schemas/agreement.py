"""
Agreement schemas.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from diary.models.agreement import AgreementStatus


class AgreementCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(default="", max_length=4000)
    pinned: Optional[bool] = Field(
        default=None, description="Defaults to true for the first agreement, false afterwards."
    )

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v.strip()


class AgreementUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    body: Optional[str] = Field(default=None, max_length=4000)


class AgreementPinRequest(BaseModel):
    pinned: bool


class AgreementOrderRequest(BaseModel):
    ids: list[str] = Field(min_length=1, description="Agreement ids in their new order.")


class AgreementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    body: str
    pinned: bool
    order: int
    status: AgreementStatus
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SeedResponse(BaseModel):
    inserted: int
