from __future__ import annotations

import pytest

from src.app.domain.ingredients import (
    Ingredient,
    LegacyAmountIngredient,
    LegacyTextIngredient,
    clean_ingredients,
    ingredients_from_storage,
    parse_stored_ingredient,
)


class TestParseStoredIngredient:
    def test_plain_string_is_legacy_text(self) -> None:
        assert parse_stored_ingredient("2 eggs") == LegacyTextIngredient("2 eggs")

    def test_name_amount_is_legacy_amount(self) -> None:
        parsed = parse_stored_ingredient({"name": "flour", "amount": "200g"})
        assert parsed == LegacyAmountIngredient(name="flour", amount="200g")

    def test_current_shape(self) -> None:
        parsed = parse_stored_ingredient({"name": "flour", "quantity": "200", "unit": "g"})
        assert parsed == Ingredient("flour", "200", "g")

    def test_quantity_wins_over_amount(self) -> None:
        parsed = parse_stored_ingredient({"name": "salt", "amount": "1", "quantity": "2"})
        assert isinstance(parsed, Ingredient)
        assert parsed.quantity == "2"

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_stored_ingredient(42)


class TestIngredientsFromStorage:
    def test_mixed_shapes_normalize(self) -> None:
        result = ingredients_from_storage(
            [
                "1 onion",
                {"name": "rice", "amount": "2 cups"},
                {"name": "garlic", "quantity": "3", "unit": "cloves"},
            ]
        )
        assert result == [
            Ingredient("1 onion"),
            Ingredient("rice", "2 cups"),
            Ingredient("garlic", "3", "cloves"),
        ]

    def test_missing_list(self) -> None:
        assert ingredients_from_storage(None) == []

    def test_none_values_become_empty(self) -> None:
        assert ingredients_from_storage([{"name": "oil", "quantity": None}]) == [Ingredient("oil")]


class TestCleanIngredients:
    def test_strips_and_drops_unnamed(self) -> None:
        cleaned = clean_ingredients(
            [Ingredient("  tofu ", " 1 ", " block "), Ingredient("   ", "2", "g")]
        )
        assert cleaned == [Ingredient("tofu", "1", "block")]

    def test_document_shape(self) -> None:
        assert Ingredient("tofu", "1", "block").to_document() == {
            "name": "tofu",
            "quantity": "1",
            "unit": "block",
        }
