# src/app/domain/models.py
"""
Domain models for partners, partnerships and the recipe journal.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from src.app.domain.ingredients import Ingredient

# Slot 1 of a pending partnership holds this until someone joins.
EMPTY_MEMBER_SLOT = ""


class PartnershipStatus(str, Enum):
    """Status enum for partnerships."""
    PENDING = "pending"
    ACTIVE = "active"


@dataclass
class IdentityProfile:
    """What the identity provider hands back after a sign-in."""
    external_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass
class User:
    """
    Persistent profile for a signed-in account.
    Linkage fields are written only by the partnership manager.
    """
    id: str
    display_name: str
    email: str = ""
    photo_url: Optional[str] = None
    nickname: Optional[str] = None
    custom_photo_url: Optional[str] = None

    # Partnership linkage
    partner_id: Optional[str] = None
    partnership_id: Optional[str] = None
    past_partnership_ids: list[str] = field(default_factory=list)

    # Timestamps
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @property
    def label(self) -> str:
        """Name shown to the partner and stamped on recipes/comments."""
        return self.nickname or self.display_name

    @property
    def avatar_url(self) -> Optional[str]:
        return self.custom_photo_url or self.photo_url

    @property
    def is_partnered(self) -> bool:
        """True only while the partnership is active."""
        return self.partner_id is not None

    @property
    def recipe_scope_id(self) -> str:
        """
        Scope stamped on recipes this user creates now.
        A pending invite does not open a shared scope yet.
        """
        if self.partner_id and self.partnership_id:
            return self.partnership_id
        return self.id

    @property
    def visible_scope_ids(self) -> list[str]:
        """Every scope whose recipes this user may read, without duplicates."""
        ids: list[str] = []
        for scope_id in [self.partnership_id, *self.past_partnership_ids, self.id]:
            if scope_id and scope_id not in ids:
                ids.append(scope_id)
        return ids


@dataclass
class PartnerProfile:
    """Projection of the peer's profile for display."""
    id: str
    display_name: str
    nickname: Optional[str] = None
    photo_url: Optional[str] = None
    custom_photo_url: Optional[str] = None

    @property
    def label(self) -> str:
        return self.nickname or self.display_name

    @property
    def avatar_url(self) -> Optional[str]:
        return self.custom_photo_url or self.photo_url


@dataclass
class Partnership:
    """Two-slot linkage record. The creator is always in slot 0."""
    id: str
    users: tuple[str, str]
    invite_code: str
    created_by: str
    status: PartnershipStatus
    created_at: Optional[datetime] = None

    @property
    def creator_id(self) -> str:
        return self.users[0]

    @property
    def is_active(self) -> bool:
        return self.status == PartnershipStatus.ACTIVE

    def has_member(self, user_id: str) -> bool:
        return bool(user_id) and user_id in self.users

    def other_member(self, user_id: str) -> Optional[str]:
        """The peer of ``user_id``, or None while slot 1 is still empty."""
        for member in self.users:
            if member != user_id and member != EMPTY_MEMBER_SLOT:
                return member
        return None


@dataclass
class Comment:
    """Feedback on one recipe version."""
    id: str
    user_id: str
    user_name: str
    text: str
    rating: int
    user_photo_url: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass
class RecipeVersion:
    id: str
    version_number: int
    ingredients: list[Ingredient] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)
    notes: str = ""
    created_at: Optional[datetime] = None
    # Newest first
    comments: list[Comment] = field(default_factory=list)


@dataclass
class Recipe:
    """
    Recipe aggregate. ``scope_id`` is the partnership id (or the author's own
    id for personal recipes) at the time the recipe was created.
    """
    id: str
    title: str
    author_id: str
    author_name: str
    scope_id: Optional[str] = None
    image_url: str = ""
    current_version_index: int = 0
    versions: list[RecipeVersion] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def latest_version(self) -> RecipeVersion:
        return self.versions[-1]

    @property
    def current_version(self) -> RecipeVersion:
        return self.versions[self.current_version_index]

    @property
    def max_version_number(self) -> int:
        return max((v.version_number for v in self.versions), default=0)

    def find_version(self, version_number: int) -> Optional[RecipeVersion]:
        for version in self.versions:
            if version.version_number == version_number:
                return version
        return None
