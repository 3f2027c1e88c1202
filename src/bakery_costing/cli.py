"""
Bakery Costing CLI

Command-line interface over CostingOperations. No UI required - designed for
scripting and quick checks against the database.

Usage Examples:
    # Convert units
    bakery-costing convert 1.5 kg g

    # Add an ingredient costed per gram, then register a purchase
    bakery-costing add-ingredient "Harina 000" g --supplier Molinos
    bakery-costing purchase 1 1 kg 2000

    # Create a recipe (lines are INGREDIENT_ID:QUANTITY:UNIT)
    bakery-costing add-recipe "Pan de campo" --servings 10 --line 1:500:g --line 2:2:unit

    # Cost it, sell it, refresh it
    bakery-costing recipe-cost 1
    bakery-costing create-product 1 --markup 80
    bakery-costing refresh-all

    # Raise every ingredient cost by 15%
    bakery-costing bulk-increase 15
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .services.database import initialize_app_database
from .services.dto import OperationResult
from .services.dto_utils import cost_to_string
from .services.logging_utils import configure_logging
from .services.operations import CostingOperations
from .services.unit_converter import format_conversion, list_units
from .utils.config import ENV_DATABASE_URL, ENV_ENVIRONMENT, reset_config
from .utils.constants import MOVEMENT_TYPES, PRICE_HISTORY_ENTITY_TYPES


def _parse_line(raw: str) -> dict:
    """Parse INGREDIENT_ID:QUANTITY:UNIT into a recipe line dictionary."""
    parts = raw.split(":", 2)
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(
            f"Invalid line '{raw}'; expected INGREDIENT_ID:QUANTITY:UNIT"
        )
    ingredient_id, quantity, unit = parts
    try:
        return {"ingredient_id": int(ingredient_id), "quantity": float(quantity), "unit": unit}
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid line '{raw}'; id and quantity must be numbers")


def _report(result: OperationResult, as_json: bool, summary: Optional[str] = None) -> int:
    """Print an operation result and return the process exit code."""
    if as_json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return 0 if result.success else 1

    if not result.success:
        print(f"ERROR: {result.message}")
        for error in result.errors:
            if error != result.message:
                print(f"  - {error}")
        return 1

    if result.message:
        print(result.message)
    if summary:
        print(summary)
    for warning in result.warnings:
        print(f"WARNING: {warning}")
    return 0


def _print_rows(rows: List[dict], columns: List[str]) -> None:
    if not rows:
        print("(none)")
        return
    widths = {c: max(len(c), *(len(str(row.get(c, ""))) for row in rows)) for c in columns}
    print("  ".join(c.ljust(widths[c]) for c in columns))
    print("  ".join("-" * widths[c] for c in columns))
    for row in rows:
        print("  ".join(str(row.get(c, "")).ljust(widths[c]) for c in columns))


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="bakery-costing",
        description="Ingredient, recipe and product costing for small bakeries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bakery-costing convert 2 cup ml
  bakery-costing purchase 1 1 kg 2000
  bakery-costing create-product 3 --markup 60
  bakery-costing price-history ingredient 1 --stats
""",
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--database-url", help="SQLAlchemy database URL (overrides config)")
    parser.add_argument(
        "--env",
        choices=["production", "development"],
        help="Configuration environment (default: BAKERY_COSTING_ENV or production)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Units
    convert_parser = subparsers.add_parser("convert", help="Convert a quantity between units")
    convert_parser.add_argument("quantity", type=float)
    convert_parser.add_argument("from_unit")
    convert_parser.add_argument("to_unit")

    units_parser = subparsers.add_parser("units", help="List known units")
    units_parser.add_argument("--category", choices=["weight", "volume", "count"])

    # Ingredients
    add_ingredient_parser = subparsers.add_parser("add-ingredient", help="Create an ingredient")
    add_ingredient_parser.add_argument("name")
    add_ingredient_parser.add_argument("base_unit", help="Unit cost and stock are expressed in")
    add_ingredient_parser.add_argument("--cost", default="0", help="Cost per base unit")
    add_ingredient_parser.add_argument("--supplier")
    add_ingredient_parser.add_argument("--lead-time-days", type=int)

    list_ingredients_parser = subparsers.add_parser("list-ingredients", help="List ingredients")
    list_ingredients_parser.add_argument("--search", help="Case-insensitive name filter")

    set_cost_parser = subparsers.add_parser("set-cost", help="Set an ingredient's unit cost")
    set_cost_parser.add_argument("ingredient_id", type=int)
    set_cost_parser.add_argument("cost")

    bulk_parser = subparsers.add_parser(
        "bulk-increase", help="Raise every ingredient cost by a percentage in (0, 100]"
    )
    bulk_parser.add_argument("percentage")
    bulk_parser.add_argument("--workers", type=int, help="Thread pool size")

    purchase_parser = subparsers.add_parser("purchase", help="Register a purchase")
    purchase_parser.add_argument("ingredient_id", type=int)
    purchase_parser.add_argument("quantity", type=float)
    purchase_parser.add_argument("unit")
    purchase_parser.add_argument("total_price")
    purchase_parser.add_argument(
        "--no-stock", dest="affects_stock", action="store_false", help="Do not add to stock"
    )
    purchase_parser.add_argument("--supplier")
    purchase_parser.add_argument("--notes")

    purchases_parser = subparsers.add_parser("purchases", help="List an ingredient's purchases")
    purchases_parser.add_argument("ingredient_id", type=int)
    purchases_parser.add_argument("--limit", type=int)

    # Recipes
    add_recipe_parser = subparsers.add_parser("add-recipe", help="Create a recipe")
    add_recipe_parser.add_argument("name")
    add_recipe_parser.add_argument("--servings", type=int, required=True)
    add_recipe_parser.add_argument("--description")
    add_recipe_parser.add_argument(
        "--line",
        dest="lines",
        action="append",
        type=_parse_line,
        required=True,
        help="Ingredient line as INGREDIENT_ID:QUANTITY:UNIT (repeatable)",
    )

    subparsers.add_parser("list-recipes", help="List active recipes with costs")

    recipe_cost_parser = subparsers.add_parser("recipe-cost", help="Compute a recipe's cost")
    recipe_cost_parser.add_argument("recipe_id", type=int)

    # Products
    create_product_parser = subparsers.add_parser(
        "create-product", help="Create a product priced from a recipe"
    )
    create_product_parser.add_argument("recipe_id", type=int)
    create_product_parser.add_argument("--markup", help="Markup percent (default 60)")
    create_product_parser.add_argument("--image-url")

    subparsers.add_parser("list-products", help="List products with cached prices")

    refresh_parser = subparsers.add_parser("refresh-product", help="Refresh one product's price")
    refresh_parser.add_argument("product_id", type=int)

    subparsers.add_parser("refresh-all", help="Refresh every recipe-backed product")

    # Price history
    history_parser = subparsers.add_parser("price-history", help="Show price history")
    history_parser.add_argument("entity_type", choices=PRICE_HISTORY_ENTITY_TYPES)
    history_parser.add_argument("entity_id", type=int)
    history_parser.add_argument("--stats", action="store_true", help="Show statistics only")

    # Stock
    stock_parser = subparsers.add_parser("stock", help="Record a stock movement")
    stock_parser.add_argument("ingredient_id", type=int)
    stock_parser.add_argument("quantity", type=float, help="Quantity in the base unit")
    stock_parser.add_argument("movement_type", choices=MOVEMENT_TYPES)
    stock_parser.add_argument("--notes")

    low_stock_parser = subparsers.add_parser("low-stock", help="List low stock ingredients")
    low_stock_parser.add_argument("--threshold", type=float)

    return parser


def run_command(args: argparse.Namespace, ops: CostingOperations) -> int:
    """Dispatch a parsed command to CostingOperations."""
    as_json = args.json
    command = args.command

    if command == "convert":
        result = ops.convert_units(args.quantity, args.from_unit, args.to_unit)
        summary = None
        if result.success:
            summary = format_conversion(args.quantity, args.from_unit, args.to_unit, precision=4)
        return _report(result, as_json, summary)

    if command == "units":
        units = list_units(args.category)
        if as_json:
            print(json.dumps(units))
        else:
            print(", ".join(units))
        return 0

    if command == "add-ingredient":
        data = {
            "name": args.name,
            "base_unit": args.base_unit,
            "cost_per_base_unit": args.cost,
            "supplier": args.supplier,
            "lead_time_days": args.lead_time_days,
        }
        result = ops.create_ingredient(data)
        summary = None
        if result.success:
            summary = f"Ingredient #{result.data['ingredient_id']} ({args.name})"
        return _report(result, as_json, summary)

    if command == "list-ingredients":
        result = ops.list_ingredients(args.search)
        if result.success and not as_json:
            _print_rows(
                result.data,
                ["id", "name", "base_unit", "cost_per_base_unit", "stock_on_hand", "supplier"],
            )
        return _report(result, as_json)

    if command == "set-cost":
        result = ops.update_ingredient_cost(args.ingredient_id, args.cost)
        summary = None
        if result.success:
            summary = f"{result.data['old_cost']} -> {result.data['new_cost']}"
        return _report(result, as_json, summary)

    if command == "bulk-increase":
        return _report(ops.bulk_update_ingredient_prices(args.percentage, args.workers), as_json)

    if command == "purchase":
        result = ops.register_purchase(
            args.ingredient_id,
            args.quantity,
            args.unit,
            args.total_price,
            affects_stock=args.affects_stock,
            supplier=args.supplier,
            notes=args.notes,
        )
        summary = None
        if result.success:
            data = result.data
            summary = (
                f"Unit cost {data['previous_unit_cost']} -> {data['calculated_unit_cost']}, "
                f"stock +{data['inventory_delta']:g}"
            )
        return _report(result, as_json, summary)

    if command == "purchases":
        result = ops.get_ingredient_purchases(args.ingredient_id, args.limit)
        if result.success and not as_json:
            _print_rows(
                result.data,
                [
                    "id",
                    "purchase_date",
                    "quantity_purchased",
                    "unit_purchased",
                    "total_price",
                    "calculated_unit_cost",
                ],
            )
        return _report(result, as_json)

    if command == "add-recipe":
        data = {"name": args.name, "servings": args.servings, "description": args.description}
        result = ops.create_recipe(data, args.lines)
        summary = f"Recipe #{result.data['id']} ({args.name})" if result.success else None
        return _report(result, as_json, summary)

    if command == "list-recipes":
        result = ops.list_recipes()
        if result.success and not as_json:
            _print_rows(result.data, ["id", "name", "servings", "total_cost", "cost_per_serving"])
        return _report(result, as_json)

    if command == "recipe-cost":
        result = ops.compute_recipe_cost(args.recipe_id)
        summary = None
        if result.success:
            data = result.data
            if not as_json:
                _print_rows(
                    data["line_costs"],
                    ["ingredient_name", "quantity", "unit", "quantity_in_base_unit", "line_cost"],
                )
            summary = (
                f"Total {cost_to_string(data['total_cost'])}, "
                f"per serving {cost_to_string(data['cost_per_serving'])}"
            )
            if data["used_fallback"]:
                summary += " (some lines used their quantity as-is)"
        return _report(result, as_json, summary)

    if command == "create-product":
        result = ops.create_product_from_recipe(args.recipe_id, args.markup, args.image_url)
        summary = None
        if result.success:
            product = result.data
            summary = (
                f"Product #{product['id']}: cost {cost_to_string(product['base_cost_cache'])}, "
                f"price {cost_to_string(product['suggested_price_cache'])}"
            )
        return _report(result, as_json, summary)

    if command == "list-products":
        result = ops.list_products()
        if result.success and not as_json:
            _print_rows(
                result.data,
                [
                    "id",
                    "name",
                    "recipe_name",
                    "base_cost_cache",
                    "suggested_price_cache",
                    "markup_percent",
                ],
            )
        return _report(result, as_json)

    if command == "refresh-product":
        result = ops.refresh_product_cost(args.product_id)
        summary = None
        if result.success:
            summary = (
                f"Price {cost_to_string(result.data['old_suggested_price'])} -> "
                f"{cost_to_string(result.data['new_suggested_price'])}"
            )
        return _report(result, as_json, summary)

    if command == "refresh-all":
        return _report(ops.refresh_all_product_costs(), as_json)

    if command == "price-history":
        if args.stats:
            return _report(ops.get_price_stats(args.entity_type, args.entity_id), as_json)
        result = ops.get_price_history(args.entity_type, args.entity_id)
        if result.success and not as_json:
            _print_rows(
                result.data,
                ["changed_at", "old_price", "new_price", "change_percentage", "change_reason"],
            )
        return _report(result, as_json)

    if command == "stock":
        result = ops.update_stock(args.ingredient_id, args.quantity, args.movement_type, args.notes)
        summary = None
        if result.success:
            stock = result.data
            summary = f"{stock['ingredient_name']}: {stock['quantity']:g} {stock['unit']}"
        return _report(result, as_json, summary)

    if command == "low-stock":
        result = ops.get_low_stock_ingredients(args.threshold)
        if result.success and not as_json:
            _print_rows(result.data, ["ingredient_id", "ingredient_name", "quantity", "unit"])
        return _report(result, as_json)

    print(f"ERROR: Unknown command '{command}'")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    if args.env:
        os.environ[ENV_ENVIRONMENT] = args.env
    if args.database_url:
        os.environ[ENV_DATABASE_URL] = args.database_url
    if args.env or args.database_url:
        reset_config()

    initialize_app_database()
    return run_command(args, CostingOperations())


if __name__ == "__main__":
    sys.exit(main())
