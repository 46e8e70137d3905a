"""
Agreements router.

GET   /agreements                — Active agreements, pinned first
POST  /agreements                — Add an agreement
PATCH /agreements/{id}           — Edit title / body
POST  /agreements/{id}/pin       — Pin or unpin
POST  /agreements/{id}/archive   — Archive (master only)
PUT   /agreements/order          — Reorder
POST  /agreements/seed           — Insert the default list once
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from diary.core.auth import get_current_profile
from diary.db.base import get_db
from diary.schemas.agreement import (
    AgreementCreateRequest,
    AgreementOrderRequest,
    AgreementPinRequest,
    AgreementResponse,
    AgreementUpdateRequest,
    SeedResponse,
)
from diary.schemas.common import ERROR_RESPONSES
from diary.services import agreements as svc
from diary.services.identity import Profile

router = APIRouter(prefix="/agreements", tags=["agreements"], responses=ERROR_RESPONSES)


@router.get("", response_model=list[AgreementResponse], summary="List agreements")
def list_agreements(
    include_archived: bool = Query(default=False),
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return svc.list_agreements(db, include_archived=include_archived)


@router.post(
    "",
    response_model=AgreementResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an agreement",
)
def create_agreement(
    payload: AgreementCreateRequest,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return svc.create_agreement(db, profile, payload.title, payload.body, payload.pinned)


# Declared before /{agreement_id} routes so "order" is not taken as an id.
@router.put("/order", response_model=list[AgreementResponse], summary="Reorder agreements")
def reorder(
    payload: AgreementOrderRequest,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return svc.reorder_agreements(db, payload.ids, profile)


@router.post("/seed", response_model=SeedResponse, summary="Insert default agreements")
def seed(
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return SeedResponse(inserted=svc.seed_default_agreements(db, profile))


@router.patch("/{agreement_id}", response_model=AgreementResponse, summary="Edit an agreement")
def update_agreement(
    agreement_id: str,
    payload: AgreementUpdateRequest,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return svc.update_agreement(db, agreement_id, profile, title=payload.title, body=payload.body)


@router.post("/{agreement_id}/pin", response_model=AgreementResponse, summary="Pin or unpin")
def pin(
    agreement_id: str,
    payload: AgreementPinRequest,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return svc.set_pinned(db, agreement_id, profile, payload.pinned)


@router.post("/{agreement_id}/archive", response_model=AgreementResponse, summary="Archive")
def archive(
    agreement_id: str,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """Only the master participant may archive (`ARCHIVE_FORBIDDEN` otherwise)."""
    return svc.archive_agreement(db, agreement_id, profile)
