# src/app/schemas/recipes.py
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from src.app.domain.ingredients import Ingredient
from src.app.domain.models import Comment, Recipe, RecipeVersion
from src.app.domain.recipes import average_rating


class IngredientPayload(BaseModel):
    name: str = Field(default="", max_length=200)
    quantity: str = Field(default="", max_length=50)
    unit: str = Field(default="", max_length=30)

    def to_domain(self) -> Ingredient:
        return Ingredient(name=self.name, quantity=self.quantity, unit=self.unit)


class RecipeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    ingredients: list[IngredientPayload] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    notes: str = ""
    imageUrl: str = ""


class RecipeUpdate(BaseModel):
    mode: Literal["edit", "upgrade"]
    ingredients: Optional[list[IngredientPayload]] = None
    steps: Optional[list[str]] = None
    notes: Optional[str] = None
    imageUrl: str = ""


class VersionSelect(BaseModel):
    versionNumber: int = Field(..., ge=1)


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)
    rating: int = Field(..., ge=1, le=5)


class CommentUpdate(BaseModel):
    text: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class CommentResponse(BaseModel):
    id: str
    userId: str
    userName: str
    userPhotoURL: Optional[str] = None
    text: str
    rating: int
    timestamp: Optional[datetime] = None


class VersionResponse(BaseModel):
    id: str
    versionNumber: int
    ingredients: list[IngredientPayload]
    steps: list[str]
    notes: str = ""
    createdAt: Optional[datetime] = None
    averageRating: Optional[float] = None
    comments: list[CommentResponse] = Field(default_factory=list)


class RecipeResponse(BaseModel):
    id: str
    scopeId: Optional[str] = None
    title: str
    imageUrl: str = ""
    authorId: str
    authorName: str
    currentVersionIndex: int = 0
    versions: list[VersionResponse] = Field(default_factory=list)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


def _comment_response(comment: Comment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        userId=comment.user_id,
        userName=comment.user_name,
        userPhotoURL=comment.user_photo_url,
        text=comment.text,
        rating=comment.rating,
        timestamp=comment.timestamp,
    )


def _version_response(version: RecipeVersion) -> VersionResponse:
    return VersionResponse(
        id=version.id,
        versionNumber=version.version_number,
        ingredients=[
            IngredientPayload(name=i.name, quantity=i.quantity, unit=i.unit)
            for i in version.ingredients
        ],
        steps=list(version.steps),
        notes=version.notes,
        createdAt=version.created_at,
        averageRating=average_rating(version),
        comments=[_comment_response(c) for c in version.comments],
    )


def recipe_response(recipe: Recipe) -> RecipeResponse:
    return RecipeResponse(
        id=recipe.id,
        scopeId=recipe.scope_id,
        title=recipe.title,
        imageUrl=recipe.image_url,
        authorId=recipe.author_id,
        authorName=recipe.author_name,
        currentVersionIndex=recipe.current_version_index,
        versions=[_version_response(v) for v in recipe.versions],
        createdAt=recipe.created_at,
        updatedAt=recipe.updated_at,
    )
