"""In-memory shopping list state."""

from __future__ import annotations

import random
import uuid

from .categories import guess_category
from .models import ShoppingItem, StoreRecommendation
from .stores import generate_mock_store_recommendations


class ShoppingList:
    """A user's shopping list for the current session.

    Store recommendations are derived from the active items and are
    recomputed on every call rather than cached.
    """

    def __init__(
        self,
        items: list[ShoppingItem] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._items: list[ShoppingItem] = list(items or [])
        self._rng = rng

    @property
    def items(self) -> list[ShoppingItem]:
        return list(self._items)

    @property
    def active_items(self) -> list[ShoppingItem]:
        return [i for i in self._items if not i.completed]

    def add(self, name: str, quantity: int = 1) -> ShoppingItem:
        name = name.strip()
        if not name:
            raise ValueError("Item name must not be empty")
        if quantity < 1:
            raise ValueError(f"Quantity must be at least 1, got {quantity}")

        item = ShoppingItem(
            id=uuid.uuid4().hex,
            name=name,
            quantity=quantity,
            category=guess_category(name),
        )
        self._items.append(item)
        return item

    def toggle(self, item_id: str) -> ShoppingItem:
        item = self._get(item_id)
        item.completed = not item.completed
        return item

    def remove(self, item_id: str) -> None:
        self._get(item_id)
        self._items = [i for i in self._items if i.id != item_id]

    def clear_completed(self) -> int:
        """Drop completed items. Returns how many were removed."""
        before = len(self._items)
        self._items = [i for i in self._items if not i.completed]
        return before - len(self._items)

    def by_category(self, category: str | None = None) -> list[ShoppingItem]:
        if category is None:
            return self.items
        return [i for i in self._items if i.category == category]

    def recommendations(self) -> list[StoreRecommendation]:
        return generate_mock_store_recommendations(self._items, rng=self._rng)

    def _get(self, item_id: str) -> ShoppingItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise KeyError(item_id)
