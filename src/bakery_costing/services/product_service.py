"""Product Service - sellable products and their cached prices.

Products carry two cached values: base_cost_cache (recipe cost per serving)
and suggested_price_cache (base cost plus markup). They are written here on
creation and on explicit price edits, and by cost_service.refresh_product_cost.
Every change of suggested_price_cache after creation is recorded in the price
history.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Product, Recipe
from ..utils.config import get_config
from ..utils.constants import (
    CACHE_KEY_PRODUCTS,
    ENTITY_TYPE_PRODUCT,
    REASON_MANUAL_PRICE_CHANGE,
    REASON_MARKUP_UPDATE,
)
from ..utils.validators import (
    validate_markup_percent,
    validate_non_negative_number,
    validate_product_data,
)
from .cache import (
    EVENT_PRODUCT,
    CacheCoordinator,
    get_cache_coordinator,
    invalidate_after_write,
)
from .cost_service import compute_recipe_cost, compute_suggested_price
from .database import session_scope
from .dto_utils import quantize_cost, to_decimal
from .exceptions import (
    DatabaseError,
    DuplicateNameError,
    ProductNotFoundError,
    RecipeNotFoundError,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .price_history_service import log_manual_price_change, record_price_change

logger = get_service_logger(__name__)

PRODUCT_FIELDS = ("name", "recipe_id", "sku", "image_url", "notes")


def _product_summary(product: Product) -> Dict[str, Any]:
    summary = product.to_dict(include_relationships=True)
    markup = product.markup_percent
    summary["markup_percent"] = str(quantize_cost(markup)) if markup is not None else None
    margin = calculate_margin(product)
    summary["margin_percent"] = str(quantize_cost(margin)) if margin is not None else None
    return summary


def create_product(data: Dict[str, Any], cache: Optional[CacheCoordinator] = None) -> Product:
    """
    Create a product with explicit cached values.

    Args:
        data: Dictionary with name (required), optional recipe_id, sku,
            base_cost_cache, suggested_price_cache, image_url, notes
        cache: Optional cache coordinator

    Returns:
        Created Product; its warnings attribute lists failed secondary steps

    Raises:
        ValidationError: If data is invalid
        RecipeNotFoundError: If recipe_id references a missing recipe
        DuplicateNameError: If the SKU is already used
    """
    is_valid, errors = validate_product_data(data)
    if not is_valid:
        raise ValidationError(errors)

    fields = {key: data[key] for key in PRODUCT_FIELDS if key in data}
    fields["name"] = fields["name"].strip()
    fields["base_cost_cache"] = quantize_cost(data.get("base_cost_cache", 0))
    fields["suggested_price_cache"] = quantize_cost(data.get("suggested_price_cache", 0))

    return _insert_product(fields, cache)


def create_product_from_recipe(
    recipe_id: int,
    markup_percent=None,
    image_url: Optional[str] = None,
    name: Optional[str] = None,
    sku: Optional[str] = None,
    cache: Optional[CacheCoordinator] = None,
) -> Product:
    """
    Create a product priced from a recipe's current cost per serving.

    Args:
        recipe_id: Recipe the product is made from
        markup_percent: Markup in percent (>= 0); configured default (60) when None
        image_url: Optional picture; defaults to the recipe's
        name: Optional product name; defaults to the recipe's
        sku: Optional SKU
        cache: Optional cache coordinator

    Returns:
        Created Product with base_cost_cache = cost per serving and
        suggested_price_cache = base cost * (1 + markup / 100)

    Raises:
        RecipeNotFoundError: If the recipe doesn't exist
        RecipeHasNoIngredientsError: If the recipe has no lines
        ValidationError: If the markup is negative
    """
    if markup_percent is None:
        markup_percent = get_config().default_markup_percent
    is_valid, error = validate_markup_percent(markup_percent)
    if not is_valid:
        raise ValidationError([error])

    try:
        with session_scope() as session:
            recipe = session.get(Recipe, recipe_id)
            if recipe is None:
                raise RecipeNotFoundError(recipe_id)
            recipe_cost = compute_recipe_cost(recipe)
            recipe_name = recipe.name
            recipe_image = recipe.image_url
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load recipe {recipe_id}", original_error=e)

    base_cost = quantize_cost(recipe_cost.cost_per_serving)
    fields = {
        "name": (name or recipe_name).strip(),
        "recipe_id": recipe_id,
        "sku": sku,
        "image_url": image_url or recipe_image,
        "base_cost_cache": base_cost,
        "suggested_price_cache": compute_suggested_price(base_cost, markup_percent),
    }
    return _insert_product(fields, cache)


def _insert_product(fields: Dict[str, Any], cache: Optional[CacheCoordinator]) -> Product:
    cache = cache or get_cache_coordinator()

    try:
        with session_scope() as session:
            if fields.get("recipe_id") is not None and (
                session.get(Recipe, fields["recipe_id"]) is None
            ):
                raise RecipeNotFoundError(fields["recipe_id"])
            product = Product(**fields)
            session.add(product)
            session.flush()
            product_id = product.id
    except ServiceError:
        raise
    except IntegrityError as e:
        raise DuplicateNameError("Product SKU", fields.get("sku") or "") from e
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create product", original_error=e)

    warnings: List[str] = []
    invalidate_after_write(cache, EVENT_PRODUCT, warnings)
    log_operation(
        logger,
        operation="create_product",
        outcome="success",
        product_id=product_id,
        recipe_id=fields.get("recipe_id"),
        suggested_price=str(fields["suggested_price_cache"]),
    )
    return _with_warnings(get_product(product_id), warnings)


def _with_warnings(product: Product, warnings: List[str]) -> Product:
    # secondary-step failures ride along on the returned instance
    product.warnings = warnings
    return product


def get_product(product_id: int, session: Optional[Session] = None) -> Product:
    """
    Retrieve a product by ID (recipe eager-loaded).

    Raises:
        ProductNotFoundError: If the product doesn't exist
    """
    if session is not None:
        return _get_product_impl(product_id, session)
    try:
        with session_scope() as session:
            return _get_product_impl(product_id, session)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load product {product_id}", original_error=e)


def _get_product_impl(product_id: int, session: Session) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def get_all_products(cache: Optional[CacheCoordinator] = None) -> List[Dict[str, Any]]:
    """
    List products ordered by name. Cached under "products".

    Returns:
        Product dictionaries with recipe_name and markup_percent
    """
    cache = cache or get_cache_coordinator()
    return cache.get_or_compute(
        CACHE_KEY_PRODUCTS, get_config().list_cache_ttl_seconds, _load_products
    )


def _load_products() -> List[Dict[str, Any]]:
    try:
        with session_scope() as session:
            products = session.query(Product).order_by(Product.name).all()
            return [_product_summary(product) for product in products]
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to list products", original_error=e)


def update_product(
    product_id: int, data: Dict[str, Any], cache: Optional[CacheCoordinator] = None
) -> Product:
    """
    Update descriptive product fields (name, recipe_id, sku, image_url, notes).

    Cached cost and price are not touched; use update_product_price,
    set_product_price or cost_service.refresh_product_cost.
    """
    fields = {key: data[key] for key in PRODUCT_FIELDS if key in data}
    if "name" in fields and (fields["name"] is None or not str(fields["name"]).strip()):
        raise ValidationError(["Name: This field is required"])

    cache = cache or get_cache_coordinator()
    try:
        with session_scope() as session:
            product = _get_product_impl(product_id, session)
            if fields.get("recipe_id") is not None and (
                session.get(Recipe, fields["recipe_id"]) is None
            ):
                raise RecipeNotFoundError(fields["recipe_id"])
            product.update_from_dict(fields)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update product {product_id}", original_error=e)

    warnings: List[str] = []
    invalidate_after_write(cache, EVENT_PRODUCT, warnings)
    log_operation(logger, operation="update_product", outcome="success", product_id=product_id)
    return _with_warnings(get_product(product_id), warnings)


def update_product_price(
    product_id: int, markup_percent, cache: Optional[CacheCoordinator] = None
) -> Product:
    """
    Re-price a product from its cached base cost with a new markup.

    Raises:
        ProductNotFoundError: If the product doesn't exist
        ValidationError: If the markup is negative
    """
    is_valid, error = validate_markup_percent(markup_percent)
    if not is_valid:
        raise ValidationError([error])

    return _set_suggested_price(
        product_id,
        lambda product: compute_suggested_price(product.base_cost_cache, markup_percent),
        REASON_MARKUP_UPDATE,
        cache,
    )


def set_product_price(
    product_id: int,
    new_price,
    reason: str = REASON_MANUAL_PRICE_CHANGE,
    cache: Optional[CacheCoordinator] = None,
) -> Product:
    """
    Set a product's suggested price by hand.

    Raises:
        ProductNotFoundError: If the product doesn't exist
        ValidationError: If the price is negative
    """
    is_valid, error = validate_non_negative_number(new_price, "Suggested price")
    if not is_valid:
        raise ValidationError([error])

    target = quantize_cost(new_price)
    return _set_suggested_price(product_id, lambda _product: target, reason, cache)


def _set_suggested_price(product_id, compute_price, reason, cache) -> Product:
    cache = cache or get_cache_coordinator()

    try:
        with session_scope() as session:
            product = _get_product_impl(product_id, session)
            old_price = to_decimal(product.suggested_price_cache)
            new_price = compute_price(product)
            product.suggested_price_cache = new_price
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update price of product {product_id}", original_error=e)

    warnings: List[str] = []
    if new_price != old_price:
        try:
            if reason == REASON_MANUAL_PRICE_CHANGE:
                log_manual_price_change(ENTITY_TYPE_PRODUCT, product_id, old_price, new_price)
            else:
                record_price_change(
                    ENTITY_TYPE_PRODUCT, product_id, old_price, new_price, reason=reason
                )
        except ServiceError as e:
            warnings.append(f"Price history not recorded: {e}")
            log_operation(
                logger,
                operation="update_product_price",
                outcome="history_failed",
                level=logging.WARNING,
                product_id=product_id,
                error=str(e),
            )

    invalidate_after_write(cache, EVENT_PRODUCT, warnings)
    log_operation(
        logger,
        operation="update_product_price",
        outcome="success" if new_price != old_price else "unchanged",
        product_id=product_id,
        old_price=str(old_price),
        new_price=str(new_price),
    )
    return _with_warnings(get_product(product_id), warnings)


def delete_product(product_id: int, cache: Optional[CacheCoordinator] = None) -> bool:
    """
    Delete a product. Its price history is kept.

    A cache invalidation failure after the delete is only logged.

    Raises:
        ProductNotFoundError: If the product doesn't exist
    """
    cache = cache or get_cache_coordinator()
    try:
        with session_scope() as session:
            session.delete(_get_product_impl(product_id, session))
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete product {product_id}", original_error=e)

    invalidate_after_write(cache, EVENT_PRODUCT, [])
    log_operation(logger, operation="delete_product", outcome="success", product_id=product_id)
    return True


def calculate_margin(product: Product) -> Optional[Decimal]:
    """
    Gross margin of a product's suggested price, in percent.

    Returns:
        (price - cost) / price * 100, or None when the price is zero
    """
    price = to_decimal(product.suggested_price_cache)
    if price == 0:
        return None
    return (price - to_decimal(product.base_cost_cache)) / price * 100
