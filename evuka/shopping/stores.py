"""Mock store price comparison for the shopping list.

This is a demo pricing engine backed by fixed tables, not a live pricing
integration. Items the tables don't know get a random placeholder price.
"""

from __future__ import annotations

import random
from collections.abc import Iterable

from .models import ShoppingItem, StoreItemPrice, StoreRecommendation

_STORE_PRICING: dict[str, dict[str, float]] = {
    "Walmart": {
        "apple": 0.89, "banana": 0.59, "milk": 3.49, "bread": 2.29,
        "eggs": 3.99, "chicken": 7.99, "rice": 4.99, "pasta": 1.49,
        "cereal": 3.99, "cheese": 4.99, "yogurt": 1.29, "coffee": 8.99,
        "toilet paper": 12.99, "paper towels": 9.99, "detergent": 11.99,
        "shampoo": 4.99, "toothpaste": 3.49, "soap": 2.99, "water": 4.99,
        "soda": 5.99, "juice": 3.99, "chips": 3.49, "cookies": 3.99,
        "ice cream": 4.99, "frozen pizza": 5.99,
    },
    "Target": {
        "apple": 0.99, "banana": 0.69, "milk": 3.79, "bread": 2.49,
        "eggs": 4.29, "chicken": 8.49, "rice": 5.29, "pasta": 1.79,
        "cereal": 4.29, "cheese": 5.29, "yogurt": 1.49, "coffee": 9.49,
        "toilet paper": 13.49, "paper towels": 10.49, "detergent": 12.49,
        "shampoo": 5.29, "toothpaste": 3.79, "soap": 3.29, "water": 5.29,
        "soda": 6.29, "juice": 4.29, "chips": 3.79, "cookies": 4.29,
        "ice cream": 5.29, "frozen pizza": 6.29,
    },
    "Kroger": {
        "apple": 0.95, "banana": 0.65, "milk": 3.59, "bread": 2.39,
        "eggs": 4.19, "chicken": 8.29, "rice": 5.19, "pasta": 1.69,
        "cereal": 4.19, "cheese": 5.19, "yogurt": 1.39, "coffee": 9.29,
        "toilet paper": 13.29, "paper towels": 10.29, "detergent": 12.29,
        "shampoo": 5.19, "toothpaste": 3.69, "soap": 3.19, "water": 5.19,
        "soda": 6.19, "juice": 4.19, "chips": 3.69, "cookies": 4.19,
        "ice cream": 5.19, "frozen pizza": 6.19,
    },
    "Costco": {
        "apple": 0.85, "banana": 0.55, "milk": 3.29, "bread": 2.19,
        "eggs": 3.89, "chicken": 7.89, "rice": 4.89, "pasta": 1.39,
        "cereal": 3.89, "cheese": 4.89, "yogurt": 1.19, "coffee": 8.89,
        "toilet paper": 12.89, "paper towels": 9.89, "detergent": 11.89,
        "shampoo": 4.89, "toothpaste": 3.39, "soap": 2.89, "water": 4.89,
        "soda": 5.89, "juice": 3.89, "chips": 3.39, "cookies": 3.89,
        "ice cream": 4.89, "frozen pizza": 5.89,
    },
    "Whole Foods": {
        "apple": 1.29, "banana": 0.79, "milk": 4.29, "bread": 3.49,
        "eggs": 5.29, "chicken": 9.99, "rice": 6.29, "pasta": 2.49,
        "cereal": 5.29, "cheese": 6.29, "yogurt": 1.99, "coffee": 11.99,
        "toilet paper": 14.99, "paper towels": 11.99, "detergent": 13.99,
        "shampoo": 6.29, "toothpaste": 4.49, "soap": 3.99, "water": 5.99,
        "soda": 6.99, "juice": 5.29, "chips": 4.49, "cookies": 5.29,
        "ice cream": 6.29, "frozen pizza": 7.99,
    },
}

# Current sale percentages per store
_CURRENT_SALES: dict[str, dict[str, int]] = {
    "Walmart": {
        "milk": 10, "bread": 15, "eggs": 20, "cereal": 25,
        "toilet paper": 15, "soda": 20,
    },
    "Target": {
        "apple": 15, "banana": 10, "chicken": 20, "pasta": 25,
        "detergent": 15, "chips": 20,
    },
    "Kroger": {
        "cheese": 15, "yogurt": 10, "coffee": 20, "paper towels": 25,
        "toothpaste": 15, "cookies": 20,
    },
    "Costco": {
        "rice": 15, "pasta": 10, "cereal": 20, "shampoo": 25, "soap": 15,
        "juice": 20,
    },
    "Whole Foods": {
        "apple": 20, "milk": 15, "bread": 10, "eggs": 15, "chicken": 20,
        "ice cream": 25,
    },
}

STORES: list[str] = list(_STORE_PRICING)

# Canonical product names, longest first so "paper towels" beats "paper"
_PRODUCTS: list[str] = sorted(_STORE_PRICING["Walmart"], key=len, reverse=True)


def find_matching_product(item_name: str) -> str | None:
    """Resolve a free-text item name to a known product.

    Tries an exact lookup, then a whole-word match, then substring
    containment in either direction.
    """
    lower_name = item_name.lower()

    if lower_name in _STORE_PRICING["Walmart"]:
        return lower_name

    item_words = lower_name.split()
    for product in _PRODUCTS:
        if any(word in item_words for word in product.split()):
            return product

    for product in _PRODUCTS:
        if product in lower_name or lower_name in product:
            return product

    return None


def generate_mock_store_recommendations(
    items: Iterable[ShoppingItem],
    rng: random.Random | None = None,
) -> list[StoreRecommendation]:
    """Price the active shopping items at every known store.

    Args:
        items: Shopping list items; completed ones are ignored.
        rng: Random source for placeholder prices of unknown items.

    Returns:
        One recommendation per store, cheapest first. Empty if there are
        no active items.
    """
    active = [item for item in items if not item.completed]
    if not active:
        return []

    rng = rng or random.Random()
    recommendations: list[StoreRecommendation] = []

    for store in STORES:
        store_items: list[StoreItemPrice] = []
        total_price = 0.0
        total_regular = 0.0

        for item in active:
            product = find_matching_product(item.name)

            if product is not None:
                base_price = _STORE_PRICING[store][product]
                discount = _CURRENT_SALES[store].get(product, 0)
                price = base_price * (1 - discount / 100)

                total_price += price * item.quantity
                total_regular += base_price * item.quantity

                store_items.append(
                    StoreItemPrice(
                        name=item.name,
                        price=price,
                        on_sale=discount > 0,
                        discount=discount if discount > 0 else None,
                    )
                )
            else:
                price = round(rng.uniform(2, 7), 2)
                total_price += price * item.quantity
                total_regular += price * item.quantity
                store_items.append(StoreItemPrice(name=item.name, price=price))

        recommendations.append(
            StoreRecommendation(
                store=store,
                total_price=total_price,
                savings=total_regular - total_price,
                items=store_items,
            )
        )

    recommendations.sort(key=lambda r: r.total_price)
    return recommendations
