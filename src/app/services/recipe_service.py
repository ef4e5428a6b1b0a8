# src/app/services/recipe_service.py
"""
Recipe journal service.
Applies the aggregate rules to stored recipes and persists the result.
"""
from __future__ import annotations

import logging
from typing import Literal, Optional

from src.app.domain import recipes as rules
from src.app.domain.errors import RecipeAccessError, RecipeNotFoundError
from src.app.domain.ingredients import Ingredient
from src.app.domain.models import Recipe, User
from src.app.infra.db.recipe_repo import RecipeRepository

logger = logging.getLogger(__name__)

EditMode = Literal["edit", "upgrade"]


class RecipeService:
    """
    Responsibilities:
    - scope new recipes to the author's current scope
    - keep existing recipes in the scope they were created under
    - only let users touch recipes from one of their scopes
    - run the in-memory rules, then save the whole aggregate
    """

    def __init__(self, repository: RecipeRepository):
        self._repo = repository

    def list_recipes(self, user: User) -> list[Recipe]:
        return self._repo.list_for_user(user.id, user.partnership_id, user.past_partnership_ids)

    def get_recipe(self, user: User, recipe_id: str, *, from_server: bool = False) -> Recipe:
        """
        Raises:
            RecipeNotFoundError: no such recipe.
            RecipeAccessError: recipe belongs to a scope the user never had.
        """
        recipe = self._repo.get(recipe_id, from_server=from_server)
        if recipe is None:
            raise RecipeNotFoundError(recipe_id)
        if recipe.scope_id not in user.visible_scope_ids:
            raise RecipeAccessError(user.id, recipe_id)
        return recipe

    def create_recipe(
        self,
        user: User,
        *,
        title: str,
        ingredients: list[Ingredient],
        steps: list[str],
        notes: str = "",
        image_url: str = "",
    ) -> Recipe:
        recipe = rules.new_recipe(
            author=user,
            title=title,
            ingredients=ingredients,
            steps=steps,
            notes=notes,
            image_url=image_url,
        )
        saved = self._repo.save(recipe, user.recipe_scope_id)
        logger.info("Created recipe: id=%s, author=%s, scope=%s", saved.id, user.id, saved.scope_id)
        return saved

    def update_recipe(
        self,
        user: User,
        recipe_id: str,
        *,
        mode: EditMode,
        ingredients: Optional[list[Ingredient]] = None,
        steps: Optional[list[str]] = None,
        notes: Optional[str] = None,
        image_url: str = "",
    ) -> Recipe:
        recipe = self.get_recipe(user, recipe_id, from_server=True)
        if mode == "edit":
            latest = recipe.latest_version
            updated = rules.edit_latest_version(
                recipe,
                ingredients=list(latest.ingredients) if ingredients is None else ingredients,
                steps=list(latest.steps) if steps is None else steps,
                notes=notes,
                image_url=image_url,
            )
        else:
            updated = rules.upgrade_version(
                recipe,
                ingredients=ingredients,
                steps=steps,
                notes=notes,
                image_url=image_url,
            )
        return self._save(updated)

    def select_version(self, user: User, recipe_id: str, version_number: int) -> Recipe:
        recipe = self.get_recipe(user, recipe_id, from_server=True)
        return self._save(rules.select_version(recipe, version_number))

    def add_comment(
        self, user: User, recipe_id: str, version_number: int, *, text: str, rating: int
    ) -> Recipe:
        recipe = self.get_recipe(user, recipe_id, from_server=True)
        updated = rules.add_comment(
            recipe, author=user, text=text, rating=rating, version_number=version_number
        )
        return self._save(updated)

    def edit_comment(
        self,
        user: User,
        recipe_id: str,
        version_number: int,
        comment_id: str,
        *,
        text: Optional[str] = None,
        rating: Optional[int] = None,
    ) -> Recipe:
        recipe = self.get_recipe(user, recipe_id, from_server=True)
        updated = rules.edit_comment(
            recipe,
            version_number=version_number,
            comment_id=comment_id,
            acting_user_id=user.id,
            text=text,
            rating=rating,
        )
        return self._save(updated)

    def delete_comment(
        self, user: User, recipe_id: str, version_number: int, comment_id: str
    ) -> Recipe:
        recipe = self.get_recipe(user, recipe_id, from_server=True)
        updated = rules.delete_comment(
            recipe,
            version_number=version_number,
            comment_id=comment_id,
            acting_user_id=user.id,
        )
        return self._save(updated)

    def delete_recipe(self, user: User, recipe_id: str) -> None:
        self.get_recipe(user, recipe_id, from_server=True)
        self._repo.delete(recipe_id)

    def _save(self, recipe: Recipe) -> Recipe:
        # Scope is a point-in-time stamp; editing never moves a recipe.
        return self._repo.save(recipe, recipe.scope_id or recipe.author_id)
