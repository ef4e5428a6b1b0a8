from __future__ import annotations

import logging
from typing import Any

from supabase import Client

from src.app.domain.models import IdentityProfile
from src.app.infra.identity.base import IdentityProvider

logger = logging.getLogger(__name__)


def _metadata_value(meta: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = meta.get(key)
        if value:
            return str(value)
    return None


class SupabaseIdentityProvider(IdentityProvider):
    """Validates Supabase Auth access tokens (Google sign-in happens client side)."""

    def __init__(self, client: Client):
        super().__init__()
        self._client = client
        self._access_token: str | None = None

    def _resolve(self, credential: str) -> IdentityProfile:
        if not credential:
            raise PermissionError("Missing token")
        try:
            res = self._client.auth.get_user(credential)
        except Exception as exc:
            raise PermissionError("Invalid/expired token") from exc
        user = getattr(res, "user", None)
        if not user:
            raise PermissionError("Invalid token")

        # Google puts the display name and avatar in user_metadata.
        meta = getattr(user, "user_metadata", None) or {}
        if not isinstance(meta, dict):
            meta = {}
        self._access_token = credential
        return IdentityProfile(
            external_id=str(user.id),
            display_name=_metadata_value(meta, "full_name", "name"),
            email=user.email,
            photo_url=_metadata_value(meta, "avatar_url", "picture"),
        )

    def _revoke(self, profile: IdentityProfile) -> None:
        token, self._access_token = self._access_token, None
        if token:
            self._client.auth.admin.sign_out(token)
            logger.info("Signed out user: id=%s", profile.external_id)
