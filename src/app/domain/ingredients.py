"""
Ingredient shapes found in storage.

Recipes written by older clients stored ingredients as plain strings, then as
``{name, amount}`` objects, and today as ``{name, quantity, unit}``. All three
can coexist inside one recipe. Readers go through ``ingredient_from_storage``
so the rest of the code only ever sees ``Ingredient``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Ingredient:
    """Current ingredient shape. Quantity is free text ("200", "to taste")."""
    name: str
    quantity: str = ""
    unit: str = ""

    def to_document(self) -> dict[str, str]:
        return {"name": self.name, "quantity": self.quantity, "unit": self.unit}


@dataclass(frozen=True)
class LegacyTextIngredient:
    text: str


@dataclass(frozen=True)
class LegacyAmountIngredient:
    name: str
    amount: str


StoredIngredient = Union[LegacyTextIngredient, LegacyAmountIngredient, Ingredient]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def parse_stored_ingredient(raw: Any) -> StoredIngredient:
    """Classify a raw stored value into one of the known shapes."""
    if isinstance(raw, str):
        return LegacyTextIngredient(text=raw)
    if not isinstance(raw, dict):
        raise ValueError(f"Unrecognized ingredient value: {raw!r}")
    if "amount" in raw and "quantity" not in raw:
        return LegacyAmountIngredient(name=_text(raw.get("name")), amount=_text(raw.get("amount")))
    return Ingredient(
        name=_text(raw.get("name")),
        quantity=_text(raw.get("quantity")),
        unit=_text(raw.get("unit")),
    )


def normalize_ingredient(stored: StoredIngredient) -> Ingredient:
    if isinstance(stored, Ingredient):
        return stored
    if isinstance(stored, LegacyAmountIngredient):
        return Ingredient(name=stored.name, quantity=stored.amount, unit="")
    return Ingredient(name=stored.text, quantity="", unit="")


def ingredient_from_storage(raw: Any) -> Ingredient:
    return normalize_ingredient(parse_stored_ingredient(raw))


def ingredients_from_storage(raw_list: Any) -> list[Ingredient]:
    if not raw_list:
        return []
    return [ingredient_from_storage(item) for item in raw_list]


def clean_ingredients(ingredients: list[Ingredient]) -> list[Ingredient]:
    """Strip whitespace and drop rows left without a name."""
    cleaned: list[Ingredient] = []
    for ing in ingredients:
        name = ing.name.strip()
        if not name:
            continue
        cleaned.append(Ingredient(name=name, quantity=ing.quantity.strip(), unit=ing.unit.strip()))
    return cleaned
