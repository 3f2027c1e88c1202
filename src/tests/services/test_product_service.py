"""Tests for product service."""

from decimal import Decimal

import pytest

from bakery_costing.services import price_history_service, product_service
from bakery_costing.services.exceptions import (
    DatabaseError,
    DuplicateNameError,
    ProductNotFoundError,
    RecipeHasNoIngredientsError,
    RecipeNotFoundError,
    ValidationError,
)
from bakery_costing.services.product_service import (
    calculate_margin,
    create_product,
    create_product_from_recipe,
    delete_product,
    get_all_products,
    get_product,
    set_product_price,
    update_product,
    update_product_price,
)
from bakery_costing.utils.constants import (
    ENTITY_TYPE_PRODUCT,
    REASON_MANUAL_PRICE_CHANGE,
    REASON_MARKUP_UPDATE,
)


class TestCreateProductFromRecipe:
    def test_default_markup(self, bread_recipe, cache):
        product = create_product_from_recipe(bread_recipe, cache=cache)

        assert product.base_cost_cache == Decimal("0.5")
        assert product.suggested_price_cache == Decimal("0.8")
        assert product.name == "Bread"
        assert product.recipe_id == bread_recipe

    def test_explicit_markup(self, chocolate_recipe, cache):
        product = create_product_from_recipe(chocolate_recipe, markup_percent=25, cache=cache)
        assert product.suggested_price_cache == Decimal("150")

    def test_image_defaults_to_recipe(self, bread_recipe, cache):
        product = create_product_from_recipe(bread_recipe, cache=cache)
        assert product.image_url == "https://example.com/bread.png"

        other = create_product_from_recipe(
            bread_recipe, image_url="https://example.com/loaf.png", name="Loaf", cache=cache
        )
        assert other.image_url == "https://example.com/loaf.png"
        assert other.name == "Loaf"

    def test_creation_has_no_history(self, bread_recipe, cache):
        product = create_product_from_recipe(bread_recipe, cache=cache)
        assert price_history_service.get_price_history(ENTITY_TYPE_PRODUCT, product.id) == []

    def test_negative_markup(self, bread_recipe, cache):
        with pytest.raises(ValidationError):
            create_product_from_recipe(bread_recipe, markup_percent=-10, cache=cache)

    def test_missing_recipe(self, test_db, cache):
        with pytest.raises(RecipeNotFoundError):
            create_product_from_recipe(31, cache=cache)

    def test_recipe_without_lines(self, empty_recipe, cache):
        with pytest.raises(RecipeHasNoIngredientsError):
            create_product_from_recipe(empty_recipe, cache=cache)

    def test_duplicate_sku(self, bread_recipe, cache):
        create_product_from_recipe(bread_recipe, sku="BR-1", cache=cache)
        with pytest.raises(DuplicateNameError):
            create_product_from_recipe(bread_recipe, sku="BR-1", cache=cache)


class TestProductQueries:
    def test_list_includes_markup_and_margin(self, priced_product, cache):
        summary = get_all_products(cache=cache)[0]

        assert summary["recipe_name"] == "Truffle"
        assert Decimal(summary["markup_percent"]) == Decimal("60")
        assert Decimal(summary["margin_percent"]) == Decimal("37.5")

    def test_list_is_invalidated_on_change(self, priced_product, cache):
        first = get_all_products(cache=cache)
        update_product(priced_product, {"notes": "Seasonal"}, cache=cache)
        assert get_all_products(cache=cache)[0]["notes"] == "Seasonal"
        assert get_all_products(cache=cache) is not first

    def test_missing_product(self, test_db):
        with pytest.raises(ProductNotFoundError):
            get_product(8)

    def test_update_rejects_blank_name(self, priced_product, cache):
        with pytest.raises(ValidationError):
            update_product(priced_product, {"name": "  "}, cache=cache)


class TestPricing:
    def test_update_markup(self, priced_product, cache):
        product = update_product_price(priced_product, Decimal("100"), cache=cache)

        assert product.suggested_price_cache == Decimal("200")
        history = price_history_service.get_price_history(ENTITY_TYPE_PRODUCT, priced_product)
        assert len(history) == 1
        assert history[0].change_reason == REASON_MARKUP_UPDATE

    def test_manual_price(self, priced_product, cache):
        product = set_product_price(priced_product, Decimal("175.5"), cache=cache)

        assert product.suggested_price_cache == Decimal("175.5")
        history = price_history_service.get_price_history(ENTITY_TYPE_PRODUCT, priced_product)
        assert history[0].change_reason == REASON_MANUAL_PRICE_CHANGE
        assert history[0].old_price == Decimal("160")

    def test_same_price_records_nothing(self, priced_product, cache):
        set_product_price(priced_product, Decimal("160"), cache=cache)
        assert price_history_service.get_price_history(ENTITY_TYPE_PRODUCT, priced_product) == []

    def test_negative_price(self, priced_product, cache):
        with pytest.raises(ValidationError):
            set_product_price(priced_product, Decimal("-3"), cache=cache)

    def test_margin(self, priced_product):
        assert calculate_margin(get_product(priced_product)) == Decimal("37.5")

    def test_margin_undefined_for_free_product(self, test_db):
        product = create_product({"name": "Sample"})
        assert calculate_margin(product) is None


class TestDeleteProduct:
    def test_history_survives_delete(self, priced_product, cache):
        set_product_price(priced_product, Decimal("170"), cache=cache)

        assert delete_product(priced_product, cache=cache) is True
        with pytest.raises(ProductNotFoundError):
            get_product(priced_product)
        history = price_history_service.get_price_history(ENTITY_TYPE_PRODUCT, priced_product)
        assert len(history) == 1


class TestFailuresAfterCommit:
    def test_price_kept_when_invalidation_fails(self, priced_product, failing_cache):
        product = set_product_price(priced_product, Decimal("200"), cache=failing_cache)

        assert product.suggested_price_cache == Decimal("200")
        assert product.warnings == ["Cache not invalidated: cache backend down"]
        assert get_product(priced_product).suggested_price_cache == Decimal("200")
        history = price_history_service.get_price_history(ENTITY_TYPE_PRODUCT, priced_product)
        assert len(history) == 1

    def test_create_from_recipe_reports_warning(self, bread_recipe, failing_cache):
        product = create_product_from_recipe(bread_recipe, cache=failing_cache)

        assert product.id is not None
        assert product.warnings == ["Cache not invalidated: cache backend down"]
        assert len(get_all_products(cache=failing_cache)) == 1

    def test_update_and_delete_survive_invalidation_failure(self, priced_product, failing_cache):
        product = update_product(priced_product, {"notes": "Boxed"}, cache=failing_cache)
        assert product.notes == "Boxed"
        assert len(product.warnings) == 1

        assert delete_product(priced_product, cache=failing_cache) is True
        with pytest.raises(ProductNotFoundError):
            get_product(priced_product)

    def test_history_failure_is_reported(self, priced_product, cache, monkeypatch):
        def broken_history(*args, **kwargs):
            raise DatabaseError("history table locked")

        monkeypatch.setattr(product_service, "log_manual_price_change", broken_history)

        product = set_product_price(priced_product, Decimal("180"), cache=cache)

        assert product.suggested_price_cache == Decimal("180")
        assert product.warnings == [
            "Price history not recorded: Database error: history table locked"
        ]

    def test_successful_change_has_no_warnings(self, priced_product, cache):
        assert update_product_price(priced_product, 50, cache=cache).warnings == []
