"""
Pytest configuration and fixtures for the recipe partners tests.
"""
from __future__ import annotations

from typing import Callable
from unittest.mock import MagicMock

import pytest

from src.app.domain.models import IdentityProfile, User
from src.app.infra.db.memory_store import InMemoryBackend, InMemoryDocumentStore
from src.app.infra.db.recipe_repo import RecipeRepository
from src.app.services.partnership_service import PartnershipManager, generate_invite_code
from src.app.services.recipe_service import RecipeService
from src.app.services.user_directory import UserDirectory


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store(backend: InMemoryBackend) -> InMemoryDocumentStore:
    return InMemoryDocumentStore(backend)


@pytest.fixture
def directory(store: InMemoryDocumentStore) -> UserDirectory:
    return UserDirectory(store)


@pytest.fixture
def invite_codes() -> list[str]:
    """Codes handed out by the manager, in order. Random ones once exhausted."""
    return ["482913", "551207", "730018"]


@pytest.fixture
def manager(
    store: InMemoryDocumentStore, directory: UserDirectory, invite_codes: list[str]
) -> PartnershipManager:
    def next_code() -> str:
        return invite_codes.pop(0) if invite_codes else generate_invite_code()

    return PartnershipManager(store, directory, code_generator=next_code)


@pytest.fixture
def repo(store: InMemoryDocumentStore) -> RecipeRepository:
    return RecipeRepository(store)


@pytest.fixture
def recipes(repo: RecipeRepository) -> RecipeService:
    return RecipeService(repo)


@pytest.fixture
def sign_up(directory: UserDirectory) -> Callable[..., User]:
    """Create a user profile the way a first sign-in does."""
    def _sign_up(user_id: str, name: str, photo_url: str | None = None) -> User:
        return directory.sync_sign_in(
            IdentityProfile(
                external_id=user_id,
                display_name=name,
                email=f"{user_id}@example.com",
                photo_url=photo_url,
            )
        )

    return _sign_up


@pytest.fixture
def mock_supabase():
    """Mock Supabase client for unit tests."""
    mock_client = MagicMock()

    mock_table = MagicMock()
    mock_table.select.return_value = mock_table
    mock_table.eq.return_value = mock_table
    mock_table.in_.return_value = mock_table
    mock_table.order.return_value = mock_table
    mock_table.limit.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[])

    mock_client.table.return_value = mock_table
    return mock_client
