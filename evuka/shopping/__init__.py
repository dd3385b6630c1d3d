"""Shopping list with category guessing and mock store price comparison."""

from .categories import CATEGORIES, guess_category
from .models import ShoppingItem, StoreItemPrice, StoreRecommendation
from .shopping_list import ShoppingList
from .stores import STORES, find_matching_product, generate_mock_store_recommendations

__all__ = [
    "CATEGORIES",
    "STORES",
    "ShoppingItem",
    "ShoppingList",
    "StoreItemPrice",
    "StoreRecommendation",
    "find_matching_product",
    "generate_mock_store_recommendations",
    "guess_category",
]
