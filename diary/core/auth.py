"""
Request authentication.

The fronting proxy signs the user in and forwards two headers:
X-Api-Token (shared secret) and X-User-Email (the signed-in account).
"""
from __future__ import annotations

import secrets

from fastapi import Header

from diary.core.config import settings
from diary.core.errors import NotAuthenticatedError
from diary.services.identity import Profile, get_profile


def get_current_profile(
    x_api_token: str | None = Header(default=None, alias="X-Api-Token"),
    x_user_email: str | None = Header(default=None, alias="X-User-Email"),
) -> Profile:
    if not x_api_token or not secrets.compare_digest(x_api_token, settings.API_TOKEN):
        raise NotAuthenticatedError("Invalid or missing API token.")
    if not x_user_email or not x_user_email.strip():
        raise NotAuthenticatedError("Missing user email.")
    return get_profile(x_user_email)
