"""
In-memory rules for the recipe aggregate.

Every function returns a new ``Recipe`` and leaves its input untouched, so a
caller can hold on to the previous state until the repository confirms the
write. Nothing here talks to storage.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from src.app.domain.errors import (
    CommentNotFoundError,
    CommentPermissionError,
    RecipeValidationError,
    VersionNotFoundError,
)
from src.app.domain.ingredients import Ingredient, clean_ingredients
from src.app.domain.models import Comment, Recipe, RecipeVersion, User

MIN_RATING = 1
MAX_RATING = 5
TITLE_MAX_LENGTH = 120


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def version_doc_id(version_number: int) -> str:
    return f"v{version_number}"


def _clean_steps(steps: list[str]) -> list[str]:
    return [step.strip() for step in steps if step and step.strip()]


def _validated_content(
    ingredients: list[Ingredient], steps: list[str]
) -> tuple[list[Ingredient], list[str]]:
    cleaned_ingredients = clean_ingredients(ingredients)
    cleaned_steps = _clean_steps(steps)
    if not cleaned_ingredients:
        raise RecipeValidationError("At least one named ingredient is required", field="ingredients")
    if not cleaned_steps:
        raise RecipeValidationError("At least one step is required", field="steps")
    return cleaned_ingredients, cleaned_steps


def validate_rating(rating: int) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise RecipeValidationError("Rating must be an integer", field="rating")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise RecipeValidationError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}", field="rating"
        )
    return rating


def _validated_text(text: str) -> str:
    value = (text or "").strip()
    if not value:
        raise RecipeValidationError("Comment text is required", field="text")
    return value


def _version_index(recipe: Recipe, version_number: int) -> int:
    for index, version in enumerate(recipe.versions):
        if version.version_number == version_number:
            return index
    raise VersionNotFoundError(recipe.id, version_number)


def _with_version(recipe: Recipe, index: int, version: RecipeVersion) -> Recipe:
    versions = list(recipe.versions)
    versions[index] = version
    return replace(recipe, versions=versions)


def new_recipe(
    *,
    author: User,
    title: str,
    ingredients: list[Ingredient],
    steps: list[str],
    notes: str = "",
    image_url: str = "",
    recipe_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Recipe:
    clean_title = (title or "").strip()
    if not clean_title:
        raise RecipeValidationError("Title is required", field="title")
    if len(clean_title) > TITLE_MAX_LENGTH:
        raise RecipeValidationError(
            f"Title must be at most {TITLE_MAX_LENGTH} characters", field="title"
        )
    cleaned_ingredients, cleaned_steps = _validated_content(ingredients, steps)

    first = RecipeVersion(
        id=version_doc_id(1),
        version_number=1,
        ingredients=cleaned_ingredients,
        steps=cleaned_steps,
        notes=notes or "",
        created_at=now or _now_utc(),
        comments=[],
    )
    return Recipe(
        id=recipe_id or str(uuid4()),
        title=clean_title,
        author_id=author.id,
        author_name=author.label,
        image_url=image_url or "",
        current_version_index=0,
        versions=[first],
    )


def edit_latest_version(
    recipe: Recipe,
    *,
    ingredients: list[Ingredient],
    steps: list[str],
    notes: Optional[str] = None,
    image_url: str = "",
) -> Recipe:
    """Overwrite the latest version's content; number, timestamp and comments stay."""
    if not recipe.versions:
        raise RecipeValidationError("Recipe has no versions to edit", field="versions")
    cleaned_ingredients, cleaned_steps = _validated_content(ingredients, steps)

    latest = recipe.latest_version
    edited = replace(
        latest,
        ingredients=cleaned_ingredients,
        steps=cleaned_steps,
        notes=latest.notes if notes is None else notes,
    )
    updated = _with_version(recipe, len(recipe.versions) - 1, edited)
    return replace(updated, image_url=image_url or recipe.image_url)


def upgrade_version(
    recipe: Recipe,
    *,
    ingredients: Optional[list[Ingredient]] = None,
    steps: Optional[list[str]] = None,
    notes: Optional[str] = None,
    image_url: str = "",
    now: Optional[datetime] = None,
) -> Recipe:
    """
    Append a new version seeded from the latest one.

    Content not supplied is carried forward from the latest version. The new
    version starts without comments and becomes the current one.
    """
    if not recipe.versions:
        raise RecipeValidationError("Recipe has no versions to upgrade", field="versions")
    latest = recipe.latest_version
    cleaned_ingredients, cleaned_steps = _validated_content(
        list(latest.ingredients) if ingredients is None else ingredients,
        list(latest.steps) if steps is None else steps,
    )
    number = recipe.max_version_number + 1
    version = RecipeVersion(
        id=version_doc_id(number),
        version_number=number,
        ingredients=cleaned_ingredients,
        steps=cleaned_steps,
        notes=latest.notes if notes is None else notes,
        created_at=now or _now_utc(),
        comments=[],
    )
    versions = [*recipe.versions, version]
    return replace(
        recipe,
        versions=versions,
        current_version_index=len(versions) - 1,
        image_url=image_url or recipe.image_url,
    )


def select_version(recipe: Recipe, version_number: int) -> Recipe:
    return replace(recipe, current_version_index=_version_index(recipe, version_number))


def add_comment(
    recipe: Recipe,
    *,
    author: User,
    text: str,
    rating: int,
    version_number: Optional[int] = None,
    comment_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Recipe:
    """Prepend a comment to a version (the current one by default)."""
    if version_number is None:
        index = recipe.current_version_index
    else:
        index = _version_index(recipe, version_number)
    comment = Comment(
        id=comment_id or str(uuid4()),
        user_id=author.id,
        user_name=author.label,
        user_photo_url=author.avatar_url,
        text=_validated_text(text),
        rating=validate_rating(rating),
        timestamp=now or _now_utc(),
    )
    version = recipe.versions[index]
    return _with_version(recipe, index, replace(version, comments=[comment, *version.comments]))


def _authored_comment(
    recipe: Recipe, version_number: int, comment_id: str, acting_user_id: str
) -> tuple[int, int]:
    index = _version_index(recipe, version_number)
    for position, comment in enumerate(recipe.versions[index].comments):
        if comment.id != comment_id:
            continue
        if comment.user_id != acting_user_id:
            raise CommentPermissionError(acting_user_id, comment_id)
        return index, position
    raise CommentNotFoundError(comment_id)


def edit_comment(
    recipe: Recipe,
    *,
    version_number: int,
    comment_id: str,
    acting_user_id: str,
    text: Optional[str] = None,
    rating: Optional[int] = None,
) -> Recipe:
    index, position = _authored_comment(recipe, version_number, comment_id, acting_user_id)
    version = recipe.versions[index]
    original = version.comments[position]
    edited = replace(
        original,
        text=original.text if text is None else _validated_text(text),
        rating=original.rating if rating is None else validate_rating(rating),
    )
    comments = list(version.comments)
    comments[position] = edited
    return _with_version(recipe, index, replace(version, comments=comments))


def delete_comment(
    recipe: Recipe,
    *,
    version_number: int,
    comment_id: str,
    acting_user_id: str,
) -> Recipe:
    index, position = _authored_comment(recipe, version_number, comment_id, acting_user_id)
    version = recipe.versions[index]
    comments = [c for i, c in enumerate(version.comments) if i != position]
    return _with_version(recipe, index, replace(version, comments=comments))


def average_rating(version: RecipeVersion) -> Optional[float]:
    ratings = [c.rating for c in version.comments if c.rating]
    if not ratings:
        return None
    return round(sum(ratings) / len(ratings), 2)
