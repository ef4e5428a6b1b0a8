# src/app/infra/identity/base.py
"""
Abstract base class for identity providers.
The sign-in ceremony itself happens outside this service; providers only
turn its result into an ``IdentityProfile``.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from src.app.domain.models import IdentityProfile

logger = logging.getLogger(__name__)

AuthListener = Callable[[Optional[IdentityProfile]], None]


class IdentityProvider(ABC):
    """
    Abstract interface for identity operations.

    Implementations:
    - SupabaseIdentityProvider: Supabase Auth access tokens
    """

    def __init__(self) -> None:
        self._current: Optional[IdentityProfile] = None
        self._listeners: list[AuthListener] = []

    @abstractmethod
    def _resolve(self, credential: str) -> IdentityProfile:
        """
        Validate a credential with the provider.

        Raises:
            PermissionError: if the credential is missing, invalid or expired.
        """
        pass

    @abstractmethod
    def _revoke(self, profile: IdentityProfile) -> None:
        """End the provider-side session."""
        pass

    def sign_in(self, credential: str) -> IdentityProfile:
        profile = self._resolve(credential)
        self._current = profile
        self._notify(profile)
        return profile

    def current_external_id(self) -> Optional[str]:
        return self._current.external_id if self._current else None

    def on_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register a sign-in/sign-out listener. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def sign_out(self) -> None:
        if self._current is None:
            return
        profile, self._current = self._current, None
        self._revoke(profile)
        self._notify(None)

    def _notify(self, profile: Optional[IdentityProfile]) -> None:
        for listener in list(self._listeners):
            listener(profile)
