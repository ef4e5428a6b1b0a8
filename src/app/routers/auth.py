from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials

from src.app.deps import (
    auth_scheme,
    get_current_user,
    get_identity_provider,
    get_user_directory,
)
from src.app.domain.errors import PartnerbookError
from src.app.domain.models import User
from src.app.infra.identity.base import IdentityProvider
from src.app.routers.errors import http_error
from src.app.schemas.users import ProfileUpdate, UserResponse, user_response
from src.app.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/session", response_model=UserResponse)
async def start_session(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
    directory: UserDirectory = Depends(get_user_directory),
):
    """Record a sign-in: creates the profile on first sight, else bumps lastLoginAt."""
    if cred is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    try:
        profile = identity.sign_in(cred.credentials)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    try:
        user = directory.sync_sign_in(profile)
    except PartnerbookError as e:
        raise http_error(e)
    return user_response(user)


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    if cred is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    try:
        identity.sign_in(cred.credentials)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    identity.sign_out()


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user_response(user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    directory: UserDirectory = Depends(get_user_directory),
):
    try:
        updated = directory.update_profile(user.id, body.nickname, body.customPhotoURL)
    except PartnerbookError as e:
        raise http_error(e)
    logger.info("Updated profile: user=%s", user.id)
    return user_response(updated)
