# src/app/routers/partnerships.py
"""
Partnership routes: invite, join, leave.
Every response re-reads the caller's profile from the server.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status

from src.app.deps import get_current_user, get_partnership_manager, get_user_directory
from src.app.domain.errors import PartnerbookError
from src.app.domain.models import User
from src.app.routers.errors import http_error
from src.app.schemas.partnerships import InviteResponse, JoinRequest, PartnershipState
from src.app.schemas.users import PartnerResponse, partner_response, user_response
from src.app.services.partnership_service import PartnershipManager
from src.app.services.user_directory import UserDirectory

router = APIRouter(prefix="/partnerships", tags=["partnerships"])


def _state(directory: UserDirectory, manager: PartnershipManager, user_id: str) -> PartnershipState:
    user = directory.require_user(user_id, from_server=True)
    return PartnershipState(
        user=user_response(user),
        partner=partner_response(manager.get_partner(user.partner_id)),
    )


@router.post("/invite", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def create_invite(
    user: User = Depends(get_current_user),
    manager: PartnershipManager = Depends(get_partnership_manager),
    directory: UserDirectory = Depends(get_user_directory),
):
    try:
        code = manager.create_invite(user.id)
        refreshed = directory.require_user(user.id, from_server=True)
    except PartnerbookError as e:
        raise http_error(e)
    return InviteResponse(code=code, user=user_response(refreshed))


@router.post("/join", response_model=PartnershipState)
async def join(
    body: JoinRequest,
    user: User = Depends(get_current_user),
    manager: PartnershipManager = Depends(get_partnership_manager),
    directory: UserDirectory = Depends(get_user_directory),
):
    try:
        manager.join_by_code(user.id, body.code)
        return _state(directory, manager, user.id)
    except PartnerbookError as e:
        raise http_error(e)


@router.delete("/{partnership_id}", response_model=PartnershipState)
async def leave(
    partnership_id: str,
    user: User = Depends(get_current_user),
    manager: PartnershipManager = Depends(get_partnership_manager),
    directory: UserDirectory = Depends(get_user_directory),
):
    """Dissolve the partnership, or cancel the caller's pending invite."""
    try:
        manager.leave(user.id, partnership_id)
        return _state(directory, manager, user.id)
    except PartnerbookError as e:
        raise http_error(e)


@router.get("/partner", response_model=Optional[PartnerResponse])
async def get_partner(
    user: User = Depends(get_current_user),
    manager: PartnershipManager = Depends(get_partnership_manager),
):
    try:
        return partner_response(manager.get_partner(user.partner_id))
    except PartnerbookError as e:
        raise http_error(e)
