"""Data Transfer Objects for service layer.

Plain dataclasses returned by the costing, purchase and price history
services. Money fields are Decimal; to_dict() renders them as strings so
results are JSON safe.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional


def _money(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


@dataclass
class LineCost:
    """Cost contribution of one recipe line.

    Attributes:
        ingredient_id: Ingredient referenced by the line
        ingredient_name: Ingredient name, for display
        quantity: Line quantity in the line unit
        unit: Line unit
        base_unit: Ingredient base unit
        quantity_in_base_unit: Quantity used for costing
        converted: False when the units were incompatible and the quantity
            was used as-is (fallback)
        cost_per_base_unit: Ingredient cost at computation time
        line_cost: quantity_in_base_unit * cost_per_base_unit
    """

    ingredient_id: Optional[int]
    ingredient_name: str
    quantity: float
    unit: str
    base_unit: str
    quantity_in_base_unit: float
    converted: bool
    cost_per_base_unit: Decimal
    line_cost: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "base_unit": self.base_unit,
            "quantity_in_base_unit": self.quantity_in_base_unit,
            "converted": self.converted,
            "cost_per_base_unit": _money(self.cost_per_base_unit),
            "line_cost": _money(self.line_cost),
        }


@dataclass
class RecipeCost:
    """Computed cost of a recipe. Never persisted."""

    recipe_id: Optional[int]
    recipe_name: str
    servings: int
    total_cost: Decimal
    cost_per_serving: Decimal
    line_costs: List[LineCost] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        """True when at least one line could not be unit-converted."""
        return any(not line.converted for line in self.line_costs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipe_id": self.recipe_id,
            "recipe_name": self.recipe_name,
            "servings": self.servings,
            "total_cost": _money(self.total_cost),
            "cost_per_serving": _money(self.cost_per_serving),
            "used_fallback": self.used_fallback,
            "line_costs": [line.to_dict() for line in self.line_costs],
        }


@dataclass
class ProductCostRefresh:
    """Outcome of refreshing a product's cached cost and price."""

    product_id: int
    old_base_cost: Decimal
    new_base_cost: Decimal
    old_suggested_price: Decimal
    new_suggested_price: Decimal
    markup_percent: Decimal
    price_changed: bool
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "old_base_cost": _money(self.old_base_cost),
            "new_base_cost": _money(self.new_base_cost),
            "old_suggested_price": _money(self.old_suggested_price),
            "new_suggested_price": _money(self.new_suggested_price),
            "markup_percent": _money(self.markup_percent),
            "price_changed": self.price_changed,
            "warnings": list(self.warnings),
        }


@dataclass
class ItemResult:
    """Per-item outcome of a batch operation."""

    id: int
    success: bool
    error: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "success": self.success, "error": self.error, "data": self.data}


@dataclass
class BatchResult:
    """Outcome of a best-effort batch: every item settles independently.

    Examples:
        >>> result = BatchResult([ItemResult(1, True), ItemResult(2, False, "boom")])
        >>> (result.success_count, result.failure_count)
        (1, 1)
    """

    items: List[ItemResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for item in self.items if not item.success)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0

    @property
    def failures(self) -> List[ItemResult]:
        return [item for item in self.items if not item.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class PurchaseResult:
    """Outcome of registering a purchase.

    Attributes:
        purchase_id: Id of the persisted purchase
        ingredient_id: Ingredient purchased
        calculated_unit_cost: total_price / converted_quantity
        converted_quantity: Purchased quantity in the ingredient base unit
        previous_unit_cost: Ingredient cost before the purchase
        cost_changed: Whether the ingredient cost changed
        inventory_delta: Stock added (0 when the stock step was skipped or failed)
        stock_on_hand: Stock after the purchase, if known
        warnings: Secondary steps that failed without undoing the purchase
    """

    purchase_id: int
    ingredient_id: int
    calculated_unit_cost: Decimal
    converted_quantity: float
    previous_unit_cost: Decimal
    cost_changed: bool
    inventory_delta: float = 0.0
    stock_on_hand: Optional[float] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "purchase_id": self.purchase_id,
            "ingredient_id": self.ingredient_id,
            "calculated_unit_cost": _money(self.calculated_unit_cost),
            "converted_quantity": self.converted_quantity,
            "previous_unit_cost": _money(self.previous_unit_cost),
            "cost_changed": self.cost_changed,
            "inventory_delta": self.inventory_delta,
            "stock_on_hand": self.stock_on_hand,
            "warnings": list(self.warnings),
        }


@dataclass
class PriceStats:
    """Statistics over a price history, computed on read.

    Value fields are None for an empty history; totals are 0.
    """

    entity_type: str
    entity_id: int
    count: int = 0
    first: Optional[Decimal] = None
    last: Optional[Decimal] = None
    min: Optional[Decimal] = None
    max: Optional[Decimal] = None
    average: Optional[Decimal] = None
    total_increase: Decimal = Decimal("0.00")
    total_decrease: Decimal = Decimal("0.00")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "count": self.count,
            "first": _money(self.first),
            "last": _money(self.last),
            "min": _money(self.min),
            "max": _money(self.max),
            "average": _money(self.average),
            "total_increase": _money(self.total_increase),
            "total_decrease": _money(self.total_decrease),
        }


@dataclass
class IngredientCreateResult:
    """Outcome of creating an ingredient with its optional enrichment steps."""

    ingredient_id: int
    ingredient: Dict[str, Any]
    purchase: Optional[PurchaseResult] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ingredient_id": self.ingredient_id,
            "ingredient": self.ingredient,
            "purchase": self.purchase.to_dict() if self.purchase else None,
            "warnings": list(self.warnings),
        }


@dataclass
class OperationResult:
    """Structured result returned by every public operation.

    No exception crosses the operation boundary; failures are reported via
    success=False, a message and a list of errors.
    """

    success: bool
    data: Any = None
    message: str = ""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, data: Any = None, message: str = "", warnings: Optional[List[str]] = None):
        return cls(success=True, data=data, message=message, warnings=list(warnings or []))

    @classmethod
    def fail(cls, message: str, errors: Optional[List[str]] = None):
        return cls(success=False, message=message, errors=list(errors or [message]))

    def to_dict(self) -> Dict[str, Any]:
        data = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
        return {
            "success": self.success,
            "data": data,
            "message": self.message,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }
