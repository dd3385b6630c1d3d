"""Keyword-based category guessing for shopping list items."""

from __future__ import annotations

DEFAULT_CATEGORY = "Other"

# Iteration order matters: the first category with a matching keyword wins.
_CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "Produce": [
        "apple", "banana", "vegetable", "fruit", "lettuce", "tomato",
        "onion", "potato",
    ],
    "Dairy": ["milk", "cheese", "yogurt", "butter", "cream", "egg"],
    "Meat": ["beef", "chicken", "pork", "fish", "meat", "steak", "sausage"],
    "Bakery": ["bread", "cake", "muffin", "pastry", "bagel", "roll"],
    "Pantry": [
        "pasta", "rice", "cereal", "flour", "sugar", "oil", "can", "soup",
        "beans",
    ],
    "Frozen": ["ice cream", "frozen", "pizza"],
    "Household": ["paper", "towel", "cleaner", "detergent", "soap", "trash"],
    "Personal Care": ["shampoo", "toothpaste", "deodorant", "razor"],
    "Beverages": ["water", "soda", "juice", "coffee", "tea", "drink"],
    "Snacks": ["chips", "cookie", "cracker", "candy", "chocolate", "snack"],
}

CATEGORIES: list[str] = [*_CATEGORY_KEYWORDS, DEFAULT_CATEGORY]


def guess_category(item_name: str) -> str:
    """Guess a category from the item name, or "Other" if nothing matches."""
    lower_name = item_name.lower()
    for category, keywords in _CATEGORY_KEYWORDS.items():
        for keyword in keywords:
            if keyword in lower_name:
                return category
    return DEFAULT_CATEGORY
