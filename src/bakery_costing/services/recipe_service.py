"""Recipe Service - recipe management.

This module provides:
- Recipe CRUD with ingredient lines (each line keeps its own unit)
- Soft delete (deactivate) and duplication
- Reverse lookup of recipes using an ingredient

Recipe cost is never stored; the cached recipe list carries costs computed
at load time and is invalidated whenever an ingredient cost changes.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Ingredient, Recipe, RecipeIngredient
from ..utils.config import get_config
from ..utils.constants import CACHE_KEY_RECIPES
from ..utils.validators import validate_recipe_data
from .cache import (
    EVENT_RECIPE,
    CacheCoordinator,
    get_cache_coordinator,
    invalidate_after_write,
)
from .cost_service import compute_recipe_cost
from .database import session_scope
from .exceptions import (
    DatabaseError,
    IngredientNotFoundError,
    RecipeHasNoIngredientsError,
    RecipeNotFoundError,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .unit_converter import normalize_unit

logger = get_service_logger(__name__)

RECIPE_FIELDS = ("name", "description", "servings", "image_url")


def _build_lines(
    session: Session, ingredients_data: List[Dict[str, Any]]
) -> List[RecipeIngredient]:
    lines = []
    for line in ingredients_data:
        ingredient_id = line["ingredient_id"]
        if session.get(Ingredient, ingredient_id) is None:
            raise IngredientNotFoundError(ingredient_id)
        lines.append(
            RecipeIngredient(
                ingredient_id=ingredient_id,
                quantity=float(line["quantity"]),
                unit=normalize_unit(line["unit"]),
            )
        )
    return lines


def _recipe_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    fields = {key: data[key] for key in RECIPE_FIELDS if key in data}
    if fields.get("name"):
        fields["name"] = fields["name"].strip()
    if "servings" in fields:
        fields["servings"] = int(fields["servings"])
    return fields


def create_recipe(
    data: Dict[str, Any],
    ingredients_data: List[Dict[str, Any]],
    cache: Optional[CacheCoordinator] = None,
) -> Recipe:
    """
    Create a recipe with its ingredient lines.

    Args:
        data: Dictionary with name, servings and optional description, image_url
        ingredients_data: List of {"ingredient_id", "quantity", "unit"}
        cache: Optional cache coordinator

    Returns:
        Created Recipe with lines loaded

    Raises:
        ValidationError: If data or any line is invalid, or there are no lines
        IngredientNotFoundError: If a line references a missing ingredient
    """
    is_valid, errors = validate_recipe_data(data, ingredients_data)
    if not is_valid:
        raise ValidationError(errors)

    cache = cache or get_cache_coordinator()

    try:
        with session_scope() as session:
            recipe = Recipe(**_recipe_fields(data))
            recipe.recipe_ingredients = _build_lines(session, ingredients_data)
            session.add(recipe)
            session.flush()
            recipe_id = recipe.id
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create recipe", original_error=e)

    warnings: List[str] = []
    invalidate_after_write(cache, EVENT_RECIPE, warnings, value_changed=False)
    log_operation(
        logger,
        operation="create_recipe",
        outcome="success",
        recipe_id=recipe_id,
        line_count=len(ingredients_data),
    )
    return _with_warnings(get_recipe(recipe_id), warnings)


def get_recipe(recipe_id: int, session: Optional[Session] = None) -> Recipe:
    """
    Retrieve a recipe by ID, lines and their ingredients eager-loaded.

    Raises:
        RecipeNotFoundError: If the recipe doesn't exist
    """
    if session is not None:
        return _get_recipe_impl(recipe_id, session)
    try:
        with session_scope() as session:
            return _get_recipe_impl(recipe_id, session)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load recipe {recipe_id}", original_error=e)


def _get_recipe_impl(recipe_id: int, session: Session) -> Recipe:
    recipe = session.get(Recipe, recipe_id)
    if recipe is None:
        raise RecipeNotFoundError(recipe_id)
    return recipe


def _with_warnings(recipe: Recipe, warnings: List[str]) -> Recipe:
    recipe.warnings = warnings
    return recipe


def _recipe_summary(recipe: Recipe) -> Dict[str, Any]:
    summary = recipe.to_dict(include_relationships=True)
    try:
        cost = compute_recipe_cost(recipe)
        summary["total_cost"] = str(cost.total_cost)
        summary["cost_per_serving"] = str(cost.cost_per_serving)
    except (RecipeHasNoIngredientsError, ValidationError):
        summary["total_cost"] = None
        summary["cost_per_serving"] = None
    return summary


def get_all_recipes(
    include_inactive: bool = False, cache: Optional[CacheCoordinator] = None
) -> List[Dict[str, Any]]:
    """
    List recipes with their lines and current costs, ordered by name.

    The active-only list is cached under "recipes".

    Returns:
        List of recipe dictionaries with total_cost and cost_per_serving
        (None for recipes without lines)
    """
    if include_inactive:
        return _load_recipes(include_inactive=True)
    cache = cache or get_cache_coordinator()
    return cache.get_or_compute(
        CACHE_KEY_RECIPES, get_config().list_cache_ttl_seconds, _load_recipes
    )


def _load_recipes(include_inactive: bool = False) -> List[Dict[str, Any]]:
    try:
        with session_scope() as session:
            query = session.query(Recipe)
            if not include_inactive:
                query = query.filter(Recipe.is_active.is_(True))
            recipes = query.order_by(Recipe.name).all()
            return [_recipe_summary(recipe) for recipe in recipes]
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to list recipes", original_error=e)


def update_recipe(
    recipe_id: int,
    data: Dict[str, Any],
    ingredients_data: Optional[List[Dict[str, Any]]] = None,
    cache: Optional[CacheCoordinator] = None,
) -> Recipe:
    """
    Update a recipe; replaces all lines when ingredients_data is given.

    Products made from the recipe keep their cached prices until refreshed.

    Raises:
        RecipeNotFoundError: If the recipe doesn't exist
        ValidationError: If data or lines are invalid
        IngredientNotFoundError: If a line references a missing ingredient
    """
    cache = cache or get_cache_coordinator()

    try:
        with session_scope() as session:
            recipe = _get_recipe_impl(recipe_id, session)

            merged = {
                "name": recipe.name,
                "description": recipe.description,
                "servings": recipe.servings,
            }
            merged.update({key: data[key] for key in RECIPE_FIELDS if key in data})
            is_valid, errors = validate_recipe_data(
                merged, ingredients_data, require_ingredients=ingredients_data is not None
            )
            if not is_valid:
                raise ValidationError(errors)

            for key, value in _recipe_fields(data).items():
                setattr(recipe, key, value)
            if ingredients_data is not None:
                recipe.recipe_ingredients = _build_lines(session, ingredients_data)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update recipe {recipe_id}", original_error=e)

    warnings: List[str] = []
    invalidate_after_write(cache, EVENT_RECIPE, warnings)
    log_operation(
        logger,
        operation="update_recipe",
        outcome="success",
        recipe_id=recipe_id,
        lines_replaced=ingredients_data is not None,
    )
    return _with_warnings(get_recipe(recipe_id), warnings)


def deactivate_recipe(recipe_id: int, cache: Optional[CacheCoordinator] = None) -> Recipe:
    """
    Soft delete a recipe. Products keep their link and cached prices.

    Raises:
        RecipeNotFoundError: If the recipe doesn't exist
    """
    cache = cache or get_cache_coordinator()
    try:
        with session_scope() as session:
            recipe = _get_recipe_impl(recipe_id, session)
            recipe.is_active = False
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to deactivate recipe {recipe_id}", original_error=e)

    warnings: List[str] = []
    invalidate_after_write(cache, EVENT_RECIPE, warnings, value_changed=False)
    log_operation(logger, operation="deactivate_recipe", outcome="success", recipe_id=recipe_id)
    return _with_warnings(get_recipe(recipe_id), warnings)


def duplicate_recipe(
    recipe_id: int, new_name: Optional[str] = None, cache: Optional[CacheCoordinator] = None
) -> Recipe:
    """
    Copy a recipe and its lines under a new name.

    Args:
        recipe_id: Recipe to copy
        new_name: Name of the copy (defaults to "<name> (copy)")

    Raises:
        RecipeNotFoundError: If the recipe doesn't exist
    """
    cache = cache or get_cache_coordinator()
    try:
        with session_scope() as session:
            source = _get_recipe_impl(recipe_id, session)
            copy = Recipe(
                name=(new_name or f"{source.name} (copy)").strip(),
                description=source.description,
                servings=source.servings,
                image_url=source.image_url,
                is_active=True,
            )
            copy.recipe_ingredients = [
                RecipeIngredient(
                    ingredient_id=line.ingredient_id, quantity=line.quantity, unit=line.unit
                )
                for line in source.recipe_ingredients
            ]
            session.add(copy)
            session.flush()
            copy_id = copy.id
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to duplicate recipe {recipe_id}", original_error=e)

    warnings: List[str] = []
    invalidate_after_write(cache, EVENT_RECIPE, warnings, value_changed=False)
    log_operation(
        logger,
        operation="duplicate_recipe",
        outcome="success",
        recipe_id=recipe_id,
        copy_id=copy_id,
    )
    return _with_warnings(get_recipe(copy_id), warnings)


def get_recipes_using_ingredient(ingredient_id: int) -> List[Dict[str, Any]]:
    """
    Recipes whose lines reference an ingredient.

    Returns:
        List of {"recipe_id", "recipe_name", "is_active", "quantity", "unit"}
    """
    try:
        with session_scope() as session:
            lines = (
                session.query(RecipeIngredient)
                .join(Recipe, RecipeIngredient.recipe_id == Recipe.id)
                .filter(RecipeIngredient.ingredient_id == ingredient_id)
                .order_by(Recipe.name)
                .all()
            )
            return [
                {
                    "recipe_id": line.recipe.id,
                    "recipe_name": line.recipe.name,
                    "is_active": line.recipe.is_active,
                    "quantity": line.quantity,
                    "unit": line.unit,
                }
                for line in lines
            ]
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to find recipes using ingredient {ingredient_id}", original_error=e
        )
