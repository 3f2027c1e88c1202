"""Pytest configuration and fixtures for the bakery costing tests."""

from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from bakery_costing import models  # noqa: F401
from bakery_costing.models import Recipe
from bakery_costing.models.base import Base
from bakery_costing.services import database as db_module
from bakery_costing.services import ingredient_service, product_service, recipe_service
from bakery_costing.services.cache import CacheCoordinator, reset_cache_coordinator
from bakery_costing.utils.config import (
    ENV_BULK_WORKERS,
    ENV_CACHE_TTL,
    ENV_DATABASE_URL,
    ENV_ENVIRONMENT,
    reset_config,
)


@pytest.fixture(autouse=True)
def isolated_state(monkeypatch):
    """Fresh config and cache singletons, no environment overrides."""
    for name in (ENV_ENVIRONMENT, ENV_DATABASE_URL, ENV_BULK_WORKERS, ENV_CACHE_TTL):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    reset_cache_coordinator()
    yield
    reset_config()
    reset_cache_coordinator()


@pytest.fixture(scope="function")
def test_db(monkeypatch):
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database (foreign keys on)
    2. Creates all tables
    3. Points the service layer's session factory at it
    4. Drops all tables after the test completes
    """
    engine = db_module.create_database_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    monkeypatch.setattr(db_module, "get_session_factory", lambda: session_factory)

    yield session_factory

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def cache():
    """Provide an isolated cache coordinator."""
    return CacheCoordinator(default_ttl=300)


class FailingCacheCoordinator(CacheCoordinator):
    """Coordinator whose invalidation always raises; reads still work."""

    def invalidate_for(self, event, value_changed=True):
        raise RuntimeError("cache backend down")


@pytest.fixture
def failing_cache():
    """Cache coordinator that cannot invalidate."""
    return FailingCacheCoordinator(default_ttl=300)


@pytest.fixture
def flour(test_db):
    """Flour costed per gram at 0.002."""
    result = ingredient_service.create_ingredient(
        {"name": "Flour", "base_unit": "g", "cost_per_base_unit": Decimal("0.002")}
    )
    return result.ingredient_id


@pytest.fixture
def eggs(test_db):
    """Eggs costed per unit at 0.5."""
    result = ingredient_service.create_ingredient(
        {"name": "Eggs", "base_unit": "unit", "cost_per_base_unit": Decimal("0.5")}
    )
    return result.ingredient_id


@pytest.fixture
def milk(test_db):
    """Milk costed per millilitre at 0.001."""
    result = ingredient_service.create_ingredient(
        {"name": "Milk", "base_unit": "ml", "cost_per_base_unit": Decimal("0.001")}
    )
    return result.ingredient_id


@pytest.fixture
def bread_recipe(flour, eggs):
    """500 g flour + 2 eggs, 4 servings: total 2.00, 0.50 per serving."""
    recipe = recipe_service.create_recipe(
        {"name": "Bread", "servings": 4, "image_url": "https://example.com/bread.png"},
        [
            {"ingredient_id": flour, "quantity": 0.5, "unit": "kg"},
            {"ingredient_id": eggs, "quantity": 2, "unit": "unit"},
        ],
    )
    return recipe.id


@pytest.fixture
def chocolate_recipe(test_db):
    """100 g chocolate at 1.2 per g, 1 serving: cost per serving 120."""
    chocolate = ingredient_service.create_ingredient(
        {"name": "Chocolate", "base_unit": "g", "cost_per_base_unit": Decimal("1.2")}
    )
    recipe = recipe_service.create_recipe(
        {"name": "Truffle", "servings": 1},
        [{"ingredient_id": chocolate.ingredient_id, "quantity": 100, "unit": "g"}],
    )
    return recipe.id


@pytest.fixture
def empty_recipe(test_db):
    """A recipe without lines, written directly (the service refuses it)."""
    with db_module.session_scope() as session:
        recipe = Recipe(name="Empty", servings=1)
        session.add(recipe)
        session.flush()
        return recipe.id


@pytest.fixture
def priced_product(chocolate_recipe):
    """Product with cached base cost 100 and price 160 (60% markup)."""
    product = product_service.create_product(
        {
            "name": "Truffle box",
            "recipe_id": chocolate_recipe,
            "base_cost_cache": Decimal("100"),
            "suggested_price_cache": Decimal("160"),
        }
    )
    return product.id
