# src/app/routers/recipes.py
"""
Recipe journal routes.
Recipes are visible through the caller's current partnership, past
partnerships and personal scope.
"""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from src.app.deps import get_current_user, get_recipe_service
from src.app.domain.errors import PartnerbookError
from src.app.domain.models import User
from src.app.routers.errors import http_error
from src.app.schemas.recipes import (
    CommentCreate,
    CommentUpdate,
    RecipeCreate,
    RecipeResponse,
    RecipeUpdate,
    VersionSelect,
    recipe_response,
)
from src.app.services.recipe_service import RecipeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recipes", tags=["recipes"])


@router.get("", response_model=List[RecipeResponse])
async def list_recipes(
    user: User = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
):
    try:
        return [recipe_response(r) for r in service.list_recipes(user)]
    except PartnerbookError as e:
        raise http_error(e)


@router.post("", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
async def create_recipe(
    body: RecipeCreate,
    user: User = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
):
    try:
        recipe = service.create_recipe(
            user,
            title=body.title,
            ingredients=[i.to_domain() for i in body.ingredients],
            steps=body.steps,
            notes=body.notes,
            image_url=body.imageUrl,
        )
    except PartnerbookError as e:
        raise http_error(e)
    return recipe_response(recipe)


@router.get("/{recipe_id}", response_model=RecipeResponse)
async def get_recipe(
    recipe_id: str,
    user: User = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
):
    try:
        return recipe_response(service.get_recipe(user, recipe_id))
    except PartnerbookError as e:
        raise http_error(e)


@router.put("/{recipe_id}", response_model=RecipeResponse)
async def update_recipe(
    recipe_id: str,
    body: RecipeUpdate,
    user: User = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
):
    """
    mode=edit rewrites the latest version in place and keeps its comments.
    mode=upgrade appends a new version and makes it current.
    """
    ingredients = None
    if body.ingredients is not None:
        ingredients = [i.to_domain() for i in body.ingredients]
    try:
        recipe = service.update_recipe(
            user,
            recipe_id,
            mode=body.mode,
            ingredients=ingredients,
            steps=body.steps,
            notes=body.notes,
            image_url=body.imageUrl,
        )
    except PartnerbookError as e:
        raise http_error(e)
    return recipe_response(recipe)


@router.put("/{recipe_id}/current-version", response_model=RecipeResponse)
async def select_version(
    recipe_id: str,
    body: VersionSelect,
    user: User = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
):
    try:
        return recipe_response(service.select_version(user, recipe_id, body.versionNumber))
    except PartnerbookError as e:
        raise http_error(e)


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recipe(
    recipe_id: str,
    user: User = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
):
    try:
        service.delete_recipe(user, recipe_id)
    except PartnerbookError as e:
        raise http_error(e)
    logger.info("Deleted recipe: id=%s, user=%s", recipe_id, user.id)


@router.post(
    "/{recipe_id}/versions/{version_number}/comments",
    response_model=RecipeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    recipe_id: str,
    version_number: int,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
):
    try:
        recipe = service.add_comment(
            user, recipe_id, version_number, text=body.text, rating=body.rating
        )
    except PartnerbookError as e:
        raise http_error(e)
    return recipe_response(recipe)


@router.patch(
    "/{recipe_id}/versions/{version_number}/comments/{comment_id}",
    response_model=RecipeResponse,
)
async def edit_comment(
    recipe_id: str,
    version_number: int,
    comment_id: str,
    body: CommentUpdate,
    user: User = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
):
    try:
        recipe = service.edit_comment(
            user, recipe_id, version_number, comment_id, text=body.text, rating=body.rating
        )
    except PartnerbookError as e:
        raise http_error(e)
    return recipe_response(recipe)


@router.delete(
    "/{recipe_id}/versions/{version_number}/comments/{comment_id}",
    response_model=RecipeResponse,
)
async def delete_comment(
    recipe_id: str,
    version_number: int,
    comment_id: str,
    user: User = Depends(get_current_user),
    service: RecipeService = Depends(get_recipe_service),
):
    try:
        return recipe_response(
            service.delete_comment(user, recipe_id, version_number, comment_id)
        )
    except PartnerbookError as e:
        raise http_error(e)
