# src/app/services/user_directory.py
"""
User directory.
Maps identity-provider sign-ins onto persistent ``users/{id}`` documents.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from src.app.domain.errors import ProfileValidationError, UserNotFoundError
from src.app.domain.models import IdentityProfile, PartnerProfile, User
from src.app.infra.db.base import SERVER_TIMESTAMP, DocumentSnapshot, DocumentStore, doc_path

logger = logging.getLogger(__name__)

USERS = "users"
NICKNAME_MAX_LENGTH = 30
DEFAULT_DISPLAY_NAME = "Anonymous"


def user_path(user_id: str) -> str:
    return doc_path(USERS, user_id)


def _as_datetime(value: object) -> Optional[datetime]:
    return value if isinstance(value, datetime) else None


def _optional_str(value: object) -> Optional[str]:
    return str(value) if value else None


def doc_to_user(snap: DocumentSnapshot) -> User:
    return User(
        id=snap.id,
        display_name=str(snap.get("displayName") or DEFAULT_DISPLAY_NAME),
        email=str(snap.get("email") or ""),
        photo_url=_optional_str(snap.get("photoURL")),
        nickname=_optional_str(snap.get("nickname")),
        custom_photo_url=_optional_str(snap.get("customPhotoURL")),
        partner_id=_optional_str(snap.get("partnerId")),
        partnership_id=_optional_str(snap.get("partnershipId")),
        past_partnership_ids=[str(pid) for pid in snap.get("pastPartnershipIds") or [] if pid],
        created_at=_as_datetime(snap.get("createdAt")),
        last_login_at=_as_datetime(snap.get("lastLoginAt")),
    )


def _clean_nickname(nickname: str) -> str:
    value = (nickname or "").strip()
    if not value:
        raise ProfileValidationError("Nickname is required", field="nickname")
    if len(value) > NICKNAME_MAX_LENGTH:
        raise ProfileValidationError(
            f"Nickname must be at most {NICKNAME_MAX_LENGTH} characters", field="nickname"
        )
    return value


class UserDirectory:
    """
    Business logic for User profiles.

    Responsibilities:
      - create the profile on first sign-in, refresh it afterwards
      - profile edits (nickname, custom photo)
      - partner lookups for display

    Partnership linkage fields are never written here.
    """

    def __init__(self, store: DocumentStore):
        self._store = store

    def sync_sign_in(self, profile: IdentityProfile) -> User:
        path = user_path(profile.external_id)
        snap = self._store.get(path, from_server=True)

        provider_fields: dict[str, Any] = {
            "displayName": profile.display_name or DEFAULT_DISPLAY_NAME,
            "email": profile.email or "",
            "photoURL": profile.photo_url,
            "lastLoginAt": SERVER_TIMESTAMP,
        }
        batch = self._store.batch()
        if not snap.exists:
            batch.set(
                path,
                {
                    "uid": profile.external_id,
                    **provider_fields,
                    "nickname": None,
                    "customPhotoURL": None,
                    "partnerId": None,
                    "partnershipId": None,
                    "pastPartnershipIds": [],
                    "createdAt": SERVER_TIMESTAMP,
                },
            )
            logger.info("Created user profile: id=%s", profile.external_id)
        else:
            batch.update(path, {"lastLoginAt": SERVER_TIMESTAMP})
        batch.commit()
        return self.require_user(profile.external_id, from_server=True)

    def get_user(self, user_id: str, *, from_server: bool = False) -> Optional[User]:
        if not user_id:
            return None
        snap = self._store.get(user_path(user_id), from_server=from_server)
        return doc_to_user(snap) if snap.exists else None

    def require_user(self, user_id: str, *, from_server: bool = False) -> User:
        """
        Raises:
            UserNotFoundError: if there is no profile for this id.
        """
        user = self.get_user(user_id, from_server=from_server)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def update_nickname(self, user_id: str, nickname: str) -> User:
        value = _clean_nickname(nickname)
        self.require_user(user_id, from_server=True)
        self._store.batch().update(user_path(user_id), {"nickname": value}).commit()
        return self.require_user(user_id, from_server=True)

    def update_profile(self, user_id: str, nickname: str, custom_photo_url: Optional[str]) -> User:
        value = _clean_nickname(nickname)
        self.require_user(user_id, from_server=True)
        self._store.batch().update(
            user_path(user_id),
            {"nickname": value, "customPhotoURL": custom_photo_url or None},
        ).commit()
        return self.require_user(user_id, from_server=True)

    def get_partner(self, partner_id: Optional[str]) -> Optional[PartnerProfile]:
        """Profile projection of the peer, or None when the id does not resolve."""
        user = self.get_user(partner_id or "")
        if user is None:
            if partner_id:
                logger.info("Partner profile not found: id=%s", partner_id)
            return None
        return PartnerProfile(
            id=user.id,
            display_name=user.display_name,
            nickname=user.nickname,
            photo_url=user.photo_url,
            custom_photo_url=user.custom_photo_url,
        )
