"""Repository interfaces anchoring the domain layer."""
from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from .models import BestsellerEntry, DiscountEntry, ProductUpdate


class CatalogStoreReader(Protocol):
    """Reads the group -> item -> product hierarchy one branch at a time."""

    def list_groups(self) -> Iterable[str]:
        ...

    def list_items(self, group: str) -> Iterable[str]:
        ...

    def list_products(self, group: str, item: str) -> Iterable[tuple[str | None, object]]:
        """Yield ``(product_id, document)`` pairs for one item."""
        ...


class ProductUpdater(Protocol):
    """Applies field patches to products in a single bulk write."""

    def apply_product_updates(self, updates: Sequence[ProductUpdate]) -> int:
        ...


class DiscountRepository(Protocol):
    def list_discounts(self) -> Sequence[DiscountEntry]:
        ...

    def replace_all_discounts(self, entries: Sequence[DiscountEntry]) -> None:
        ...


class BestsellerRepository(Protocol):
    def list_bestsellers(self) -> Sequence[BestsellerEntry]:
        ...

    def replace_all_bestsellers(self, entries: Sequence[BestsellerEntry]) -> None:
        ...
