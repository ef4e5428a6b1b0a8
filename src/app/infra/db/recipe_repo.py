from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from src.app.domain.errors import RecipeNotFoundError, WriteFailedError
from src.app.domain.ingredients import ingredients_from_storage
from src.app.domain.models import Comment, Recipe, RecipeVersion
from src.app.domain.recipes import version_doc_id
from src.app.infra.db.base import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    FieldFilter,
    WriteBatch,
    doc_path,
)

logger = logging.getLogger(__name__)

RECIPES = "recipes"
VERSIONS = "versions"
COMMENTS = "comments"

# Recipes store their scope tag under the historical field name.
SCOPE_FIELD = "partnershipId"

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _recipe_path(recipe_id: str) -> str:
    return doc_path(RECIPES, recipe_id)


def _versions_collection(recipe_id: str) -> str:
    return f"{_recipe_path(recipe_id)}/{VERSIONS}"


def _version_path(recipe_id: str, version_number: int) -> str:
    return doc_path(_versions_collection(recipe_id), version_doc_id(version_number))


def _comments_collection(version_path: str) -> str:
    return f"{version_path}/{COMMENTS}"


def _safe_int(value: object, default: int = 0) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _as_datetime(value: object) -> Optional[datetime]:
    return value if isinstance(value, datetime) else None


def chunked(values: list[str], size: int) -> Iterable[list[str]]:
    if size < 1:
        raise ValueError("Chunk size must be positive")
    for start in range(0, len(values), size):
        yield values[start:start + size]


def _doc_to_comment(snap: DocumentSnapshot) -> Comment:
    return Comment(
        id=snap.id,
        user_id=str(snap.get("userId") or ""),
        user_name=str(snap.get("userName") or ""),
        user_photo_url=snap.get("userPhotoURL"),
        text=str(snap.get("text") or ""),
        rating=_safe_int(snap.get("rating")),
        timestamp=_as_datetime(snap.get("timestamp")),
    )


def _comment_to_doc(comment: Comment) -> dict[str, Any]:
    return {
        "userId": comment.user_id,
        "userName": comment.user_name,
        "userPhotoURL": comment.user_photo_url,
        "text": comment.text,
        "rating": comment.rating or None,
        "timestamp": comment.timestamp or SERVER_TIMESTAMP,
    }


def _version_to_doc(version: RecipeVersion) -> dict[str, Any]:
    return {
        "versionNumber": version.version_number,
        "ingredients": [ing.to_document() for ing in version.ingredients],
        "steps": list(version.steps),
        "notes": version.notes,
        "createdAt": version.created_at or SERVER_TIMESTAMP,
    }


def _newest_first(comments: list[Comment]) -> list[Comment]:
    return sorted(comments, key=lambda c: c.timestamp or _OLDEST, reverse=True)


class RecipeRepository:
    """
    Persistence for the recipe aggregate.

    Layout: ``recipes/{id}``, ``recipes/{id}/versions/v{n}`` and
    ``recipes/{id}/versions/v{n}/comments/{comment_id}``. Every mutation is a
    single batch on the injected store.
    """

    def __init__(self, store: DocumentStore, *, query_batch_size: Optional[int] = None):
        self._store = store
        limit = store.max_in_values
        self.query_batch_size = min(query_batch_size or limit, limit)

    # ----- Reads -----

    def get(self, recipe_id: str, *, from_server: bool = False) -> Optional[Recipe]:
        snap = self._store.get(_recipe_path(recipe_id), from_server=from_server)
        if not snap.exists:
            return None
        return self._load_recipe(snap)

    def list_for_user(
        self,
        user_id: str,
        current_scope_id: Optional[str],
        historical_scope_ids: Optional[Iterable[str]] = None,
    ) -> list[Recipe]:
        """
        Every recipe tagged with one of the user's scopes, newest update first.

        The scope set is current + historical + the user's own id. It is
        split into batches the store can take in one ``in`` filter and the
        results are merged and re-sorted here.
        """
        scope_ids: list[str] = []
        for scope_id in [current_scope_id, *(historical_scope_ids or []), user_id]:
            if scope_id and scope_id not in scope_ids:
                scope_ids.append(scope_id)

        snapshots: dict[str, DocumentSnapshot] = {}
        for chunk in chunked(scope_ids, self.query_batch_size):
            for snap in self._store.query(
                RECIPES,
                where=[FieldFilter(SCOPE_FIELD, "in", chunk)],
                order_by="updatedAt",
                descending=True,
            ):
                snapshots[snap.id] = snap

        recipes = [self._load_recipe(snap) for snap in snapshots.values()]
        recipes.sort(key=lambda r: (r.updated_at or _OLDEST, r.id), reverse=True)
        logger.debug(
            "Listed recipes: user=%s, scopes=%d, recipes=%d", user_id, len(scope_ids), len(recipes)
        )
        return recipes

    def _load_recipe(self, snap: DocumentSnapshot) -> Recipe:
        recipe_id = snap.id
        versions: list[RecipeVersion] = []
        for version_snap in self._store.list_documents(_versions_collection(recipe_id)):
            comments = [
                _doc_to_comment(c)
                for c in self._store.list_documents(_comments_collection(version_snap.path))
            ]
            versions.append(
                RecipeVersion(
                    id=version_snap.id,
                    version_number=_safe_int(version_snap.get("versionNumber")),
                    ingredients=ingredients_from_storage(version_snap.get("ingredients")),
                    steps=[str(s) for s in version_snap.get("steps") or []],
                    notes=str(version_snap.get("notes") or ""),
                    created_at=_as_datetime(version_snap.get("createdAt")),
                    comments=_newest_first(comments),
                )
            )
        versions.sort(key=lambda v: v.version_number)

        index = _safe_int(snap.get("currentVersionIndex"))
        if versions:
            index = max(0, min(index, len(versions) - 1))

        return Recipe(
            id=recipe_id,
            scope_id=snap.get(SCOPE_FIELD),
            title=str(snap.get("title") or ""),
            image_url=str(snap.get("imageUrl") or ""),
            author_id=str(snap.get("authorId") or ""),
            author_name=str(snap.get("authorName") or ""),
            current_version_index=index,
            versions=versions,
            created_at=_as_datetime(snap.get("createdAt")),
            updated_at=_as_datetime(snap.get("updatedAt")),
        )

    def _existing_subtree(self, recipe_id: str) -> list[tuple[DocumentSnapshot, list[DocumentSnapshot]]]:
        subtree = []
        for version_snap in self._store.list_documents(_versions_collection(recipe_id)):
            comments = self._store.list_documents(_comments_collection(version_snap.path))
            subtree.append((version_snap, comments))
        return subtree

    # ----- Writes -----

    def save(self, recipe: Recipe, scope_id: str) -> Recipe:
        """
        Upsert the recipe and replace its whole version/comment sub-tree.

        All previously stored comments are deleted and rewritten from the
        in-memory lists, so comment edits and deletions made on the aggregate
        take effect. Returns the recipe as stored.

        Raises:
            WriteFailedError: the batch was rejected; nothing was written.
        """
        recipe_path = _recipe_path(recipe.id)
        existing = self._store.get(recipe_path, from_server=True)

        batch = self._store.batch()
        top_level: dict[str, Any] = {
            SCOPE_FIELD: scope_id,
            "title": recipe.title,
            "imageUrl": recipe.image_url,
            "authorId": recipe.author_id,
            "authorName": recipe.author_name,
            "currentVersionIndex": recipe.current_version_index,
            "updatedAt": SERVER_TIMESTAMP,
        }
        if not existing.exists:
            top_level["createdAt"] = SERVER_TIMESTAMP
        batch.set(recipe_path, top_level, merge=True)

        kept_versions = {_version_path(recipe.id, v.version_number) for v in recipe.versions}
        if existing.exists:
            for version_snap, comments in self._existing_subtree(recipe.id):
                for comment_snap in comments:
                    batch.delete(comment_snap.path)
                if version_snap.path not in kept_versions:
                    batch.delete(version_snap.path)

        for version in recipe.versions:
            version_path = _version_path(recipe.id, version.version_number)
            batch.set(version_path, _version_to_doc(version))
            for comment in version.comments:
                batch.set(doc_path(_comments_collection(version_path), comment.id), _comment_to_doc(comment))

        self._commit(batch, "save", recipe.id)
        logger.info(
            "Saved recipe: id=%s, scope=%s, versions=%d", recipe.id, scope_id, len(recipe.versions)
        )
        saved = self.get(recipe.id, from_server=True)
        if saved is None:
            raise RecipeNotFoundError(recipe.id)
        return saved

    def delete(self, recipe_id: str) -> None:
        """
        Delete comments, versions and the recipe document in one batch.

        Raises:
            RecipeNotFoundError: nothing is stored under this id.
            WriteFailedError: the batch was rejected; nothing was deleted.
        """
        recipe_path = _recipe_path(recipe_id)
        snap = self._store.get(recipe_path, from_server=True)
        subtree = self._existing_subtree(recipe_id)
        if not snap.exists and not subtree:
            raise RecipeNotFoundError(recipe_id)

        batch = self._store.batch()
        for version_snap, comments in subtree:
            for comment_snap in comments:
                batch.delete(comment_snap.path)
            batch.delete(version_snap.path)
        batch.delete(recipe_path)

        self._commit(batch, "delete", recipe_id)
        logger.info("Deleted recipe: id=%s, versions=%d", recipe_id, len(subtree))

    def _commit(self, batch: WriteBatch, operation: str, recipe_id: str) -> None:
        try:
            batch.commit()
        except WriteFailedError as error:
            logger.error("Recipe %s failed for %s: %s", operation, recipe_id, error)
            raise
