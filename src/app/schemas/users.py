# src/app/schemas/users.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from src.app.domain.models import PartnerProfile, User


class UserResponse(BaseModel):
    id: str
    displayName: str
    nickname: Optional[str] = None
    label: str
    email: str = ""
    photoURL: Optional[str] = None
    customPhotoURL: Optional[str] = None
    avatarURL: Optional[str] = None
    partnerId: Optional[str] = None
    partnershipId: Optional[str] = None
    pastPartnershipIds: list[str] = Field(default_factory=list)


class PartnerResponse(BaseModel):
    id: str
    displayName: str
    label: str
    avatarURL: Optional[str] = None


class ProfileUpdate(BaseModel):
    nickname: str = Field(..., min_length=1, max_length=30)
    customPhotoURL: Optional[str] = Field(default=None, max_length=2048)


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        displayName=user.display_name,
        nickname=user.nickname,
        label=user.label,
        email=user.email,
        photoURL=user.photo_url,
        customPhotoURL=user.custom_photo_url,
        avatarURL=user.avatar_url,
        partnerId=user.partner_id,
        partnershipId=user.partnership_id,
        pastPartnershipIds=list(user.past_partnership_ids),
    )


def partner_response(partner: PartnerProfile | None) -> PartnerResponse | None:
    if partner is None:
        return None
    return PartnerResponse(
        id=partner.id,
        displayName=partner.display_name,
        label=partner.label,
        avatarURL=partner.avatar_url,
    )
