# src/app/schemas/partnerships.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from src.app.schemas.users import PartnerResponse, UserResponse


class JoinRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=12)


class InviteResponse(BaseModel):
    code: str
    user: UserResponse


class PartnershipState(BaseModel):
    """Caller's profile re-read after the change, plus the partner label."""
    user: UserResponse
    partner: Optional[PartnerResponse] = None
