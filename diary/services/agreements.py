"""
Agreements: the couple's shared list of rules.

Agreements are never deleted, only archived (master only). Listing returns
active agreements, pinned first, then by ascending `order`.

Public API
----------
list_agreements(db)                                  -> list[Agreement]
get_agreement(db, agreement_id)                      -> Agreement
create_agreement(db, profile, title, body, pinned)   -> Agreement
update_agreement(db, agreement_id, profile, ...)     -> Agreement
set_pinned(db, agreement_id, profile, pinned)        -> Agreement
archive_agreement(db, agreement_id, profile)         -> Agreement
reorder_agreements(db, ordered_ids, profile)         -> list[Agreement]
seed_default_agreements(db, profile)                 -> int  (rows inserted)
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from diary.core.errors import AgreementNotFoundError, ArchiveForbiddenError
from diary.db.base import transient_store_errors
from diary.models.agreement import Agreement, AgreementStatus
from diary.models.role import Role
from diary.services.identity import Profile
from diary.services.notifications import AGREEMENTS_TOPIC, ChangeHub, get_hub

logger = logging.getLogger(__name__)

ORDER_STEP = 100
APPEND_STEP = 10

DEFAULT_AGREEMENTS: list[tuple[str, str]] = [
    ("Say thank you out loud", "When the other does something for you, say it the same day."),
    ("No phones at dinner", "Meals together are for talking."),
    ("Sleep on big arguments", "If it is past midnight, we pause and pick it up tomorrow."),
    ("Share the calendar", "Plans that involve both of us go on the shared calendar first."),
    ("One small surprise a month", "Anything counts, as long as it is for the other."),
]


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _publish(hub: Optional[ChangeHub], kind: str, agreement_id: Optional[str] = None) -> None:
    payload = {"kind": kind}
    if agreement_id:
        payload["id"] = agreement_id
    (hub or get_hub()).publish(AGREEMENTS_TOPIC, payload)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def list_agreements(db: Session, include_archived: bool = False) -> list[Agreement]:
    q = db.query(Agreement)
    if not include_archived:
        q = q.filter(Agreement.status == AgreementStatus.active)
    return q.order_by(Agreement.pinned.desc(), Agreement.order.asc(), Agreement.created_at.asc()).all()


def get_agreement(db: Session, agreement_id: str) -> Agreement:
    agreement = db.get(Agreement, agreement_id)
    if agreement is None:
        raise AgreementNotFoundError(agreement_id)
    return agreement


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def create_agreement(
    db: Session,
    profile: Profile,
    title: str,
    body: str = "",
    pinned: Optional[bool] = None,
    hub: Optional[ChangeHub] = None,
) -> Agreement:
    """Append a new agreement. The very first one is pinned unless told otherwise."""
    existing = list_agreements(db)
    if pinned is None:
        pinned = not existing
    order = max(a.order for a in existing) + APPEND_STEP if existing else ORDER_STEP

    agreement = Agreement(
        id=_new_id(),
        title=title.strip(),
        body=(body or "").strip(),
        pinned=pinned,
        order=order,
        status=AgreementStatus.active,
        created_by=profile.email,
        updated_by=profile.email,
        updated_at=_now(),
    )
    with transient_store_errors(db, "create_agreement"):
        db.add(agreement)
        db.commit()
        db.refresh(agreement)
    _publish(hub, "created", agreement.id)
    return agreement


def update_agreement(
    db: Session,
    agreement_id: str,
    profile: Profile,
    title: Optional[str] = None,
    body: Optional[str] = None,
    hub: Optional[ChangeHub] = None,
) -> Agreement:
    agreement = get_agreement(db, agreement_id)
    if title is not None:
        agreement.title = title.strip()
    if body is not None:
        agreement.body = body.strip()
    agreement.updated_by = profile.email
    agreement.updated_at = _now()
    with transient_store_errors(db, "update_agreement"):
        db.commit()
        db.refresh(agreement)
    _publish(hub, "updated", agreement.id)
    return agreement


def set_pinned(
    db: Session,
    agreement_id: str,
    profile: Profile,
    pinned: bool,
    hub: Optional[ChangeHub] = None,
) -> Agreement:
    agreement = get_agreement(db, agreement_id)
    agreement.pinned = pinned
    agreement.updated_by = profile.email
    agreement.updated_at = _now()
    with transient_store_errors(db, "set_pinned"):
        db.commit()
        db.refresh(agreement)
    _publish(hub, "pinned" if pinned else "unpinned", agreement.id)
    return agreement


def archive_agreement(
    db: Session,
    agreement_id: str,
    profile: Profile,
    hub: Optional[ChangeHub] = None,
) -> Agreement:
    if profile.role != Role.master:
        raise ArchiveForbiddenError(role=profile.role.value)
    agreement = get_agreement(db, agreement_id)
    agreement.status = AgreementStatus.archived
    agreement.pinned = False
    agreement.updated_by = profile.email
    agreement.updated_at = _now()
    with transient_store_errors(db, "archive_agreement"):
        db.commit()
        db.refresh(agreement)
    logger.info("Agreement %s archived by %s", agreement.id, profile.email)
    _publish(hub, "archived", agreement.id)
    return agreement


def reorder_agreements(
    db: Session,
    ordered_ids: list[str],
    profile: Profile,
    hub: Optional[ChangeHub] = None,
) -> list[Agreement]:
    """Give the listed agreements orders 100, 200, ... in the given sequence."""
    agreements = [get_agreement(db, agreement_id) for agreement_id in ordered_ids]
    now = _now()
    for i, agreement in enumerate(agreements):
        agreement.order = (i + 1) * ORDER_STEP
        agreement.updated_by = profile.email
        agreement.updated_at = now
    with transient_store_errors(db, "reorder_agreements"):
        db.commit()
    _publish(hub, "reordered")
    return list_agreements(db)


def seed_default_agreements(
    db: Session,
    profile: Profile,
    defaults: Optional[list[tuple[str, str]]] = None,
    hub: Optional[ChangeHub] = None,
) -> int:
    """Insert the default list once. Returns how many rows were inserted."""
    inserted = 0
    now = _now()
    for i, (title, body) in enumerate(defaults or DEFAULT_AGREEMENTS):
        seed_id = f"seed-{i}"
        if db.get(Agreement, seed_id) is not None:
            continue
        db.add(Agreement(
            id=seed_id,
            title=title,
            body=body,
            pinned=i == 0,
            order=(i + 1) * ORDER_STEP,
            status=AgreementStatus.active,
            created_by=profile.email,
            updated_by=profile.email,
            updated_at=now,
        ))
        inserted += 1
    if inserted:
        with transient_store_errors(db, "seed_default_agreements"):
            db.commit()
        logger.info("Seeded %d default agreements", inserted)
        _publish(hub, "seeded")
    return inserted
