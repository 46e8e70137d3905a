"""
Identity registry: maps an authenticated email to one of the two roles.

The table is static and comes from settings; nothing here touches the DB.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from diary.core.config import settings
from diary.core.errors import UnknownParticipantError
from diary.models.role import Role


@dataclass(frozen=True)
class Profile:
    email: str
    role: Role
    display_name: str


def _registry() -> dict[str, Profile]:
    master = Profile(
        email=settings.MASTER_EMAIL.strip().lower(),
        role=Role.master,
        display_name=settings.MASTER_DISPLAY_NAME,
    )
    partner = Profile(
        email=settings.PARTNER_EMAIL.strip().lower(),
        role=Role.partner,
        display_name=settings.PARTNER_DISPLAY_NAME,
    )
    return {master.email: master, partner.email: partner}


def _normalize(email: str) -> str:
    return (email or "").strip().lower()


def role_of(email: str) -> Optional[Role]:
    profile = _registry().get(_normalize(email))
    return profile.role if profile else None


def display_name_of(email: str) -> str:
    """Configured name for a participant, else the title-cased local part."""
    profile = _registry().get(_normalize(email))
    if profile:
        return profile.display_name
    local_part = _normalize(email).split("@")[0]
    return local_part.title() if local_part else "Unknown"


def display_name_for_role(role: Role) -> str:
    for profile in _registry().values():
        if profile.role == role:
            return profile.display_name
    return role.value


def get_profile(email: str) -> Profile:
    normalized = _normalize(email)
    role = role_of(normalized)
    if role is None:
        raise UnknownParticipantError(email=normalized)
    return Profile(email=normalized, role=role, display_name=display_name_of(normalized))
