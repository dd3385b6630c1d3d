"""Data models for the shopping list and store price comparison."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ShoppingItem:
    id: str
    name: str
    quantity: int = 1
    category: str = "Other"
    completed: bool = False


@dataclass(frozen=True)
class StoreItemPrice:
    """Per-unit price of one shopping item at one store."""

    name: str
    price: float
    on_sale: bool = False
    discount: int | None = None  # percent


@dataclass(frozen=True)
class StoreRecommendation:
    store: str
    total_price: float
    savings: float
    items: list[StoreItemPrice] = field(default_factory=list)
