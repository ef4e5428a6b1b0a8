# src/app/deps.py (one store per process, handed to every service explicitly)

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client, create_client

from src.app.config import Settings, settings
from src.app.domain.errors import PartnerbookError, StoreConfigurationError
from src.app.domain.models import User
from src.app.infra.db.base import DocumentStore
from src.app.infra.db.memory_store import InMemoryDocumentStore
from src.app.infra.db.recipe_repo import RecipeRepository
from src.app.infra.db.supabase_store import SupabaseDocumentStore
from src.app.infra.identity.base import IdentityProvider
from src.app.infra.identity.supabase_provider import SupabaseIdentityProvider
from src.app.routers.errors import http_error
from src.app.services.partnership_service import PartnershipManager
from src.app.services.recipe_service import RecipeService
from src.app.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)

_client: Client | None = None
_store: DocumentStore | None = None
_manager: PartnershipManager | None = None


def get_supabase() -> Client:
    global _client
    if _client is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise StoreConfigurationError(["SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required"])
        _client = create_client(str(settings.SUPABASE_URL),
                                settings.SUPABASE_SERVICE_ROLE_KEY)
    return _client


def build_store(config: Settings) -> DocumentStore:
    if config.STORE_BACKEND == "memory":
        logger.warning("Using the in-memory document store; data is lost on restart")
        return InMemoryDocumentStore(
            max_batch_operations=config.MAX_BATCH_OPERATIONS,
            max_in_values=config.IN_QUERY_MAX_VALUES,
            max_cached_documents=config.CACHE_MAX_DOCUMENTS,
        )
    return SupabaseDocumentStore(
        get_supabase(),
        table_name=config.DOCUMENTS_TABLE,
        commit_rpc=config.COMMIT_BATCH_RPC,
        max_batch_operations=config.MAX_BATCH_OPERATIONS,
        max_in_values=config.IN_QUERY_MAX_VALUES,
        max_cached_documents=config.CACHE_MAX_DOCUMENTS,
    )


def get_store() -> DocumentStore:
    global _store
    if _store is None:
        _store = build_store(settings)
    return _store


def get_user_directory(store: DocumentStore = Depends(get_store)) -> UserDirectory:
    return UserDirectory(store)


def get_partnership_manager(
    store: DocumentStore = Depends(get_store),
    directory: UserDirectory = Depends(get_user_directory),
) -> PartnershipManager:
    # Shared across requests so the in-flight guard sees every call.
    global _manager
    if _manager is None:
        _manager = PartnershipManager(
            store, directory, max_code_attempts=settings.INVITE_CODE_MAX_ATTEMPTS
        )
    return _manager


def get_recipe_service(store: DocumentStore = Depends(get_store)) -> RecipeService:
    return RecipeService(RecipeRepository(store))


def get_identity_provider() -> IdentityProvider:
    return SupabaseIdentityProvider(get_supabase())


auth_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
    directory: UserDirectory = Depends(get_user_directory),
) -> User:
    """
    Takes Authorization: Bearer <access_token>, validates it with the identity
    provider and returns the stored profile (created on first sight).
    """
    if cred is None or cred.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")

    try:
        profile = identity.sign_in(cred.credentials)
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))

    try:
        user = directory.get_user(profile.external_id, from_server=True)
        if user is None:
            user = directory.sync_sign_in(profile)
    except PartnerbookError as e:
        raise http_error(e)
    return user
