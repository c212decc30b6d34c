"""Domain models for the product catalog and its promotional overlays.

Products live in a three-level hierarchy (category group, category item,
product). Discounts and bestsellers are overlays keyed by product id.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Iterator, Mapping


class DiscountType(str, Enum):
    FLAT = "flat"
    PERCENTAGE = "percentage"


class BestsellerClass(str, Enum):
    FLAT = "flat"
    PERCENTAGE = "percentage"
    UNDISCOUNTED = "undiscounted"


class DiscountFilter(str, Enum):
    """Which discounts count as "discounted" when selecting bestsellers."""

    ALL = "all"
    ACTIVE = "active"
    EFFECTIVE = "effective"


@dataclass(frozen=True)
class Product:
    """Leaf record of the catalog, denormalized with its category path."""

    product_id: str
    name: str
    price: Decimal
    category_group: str
    category_item: str
    attributes: Mapping[str, object] = field(default_factory=dict, compare=False)

    @property
    def path(self) -> str:
        return f"{self.category_group}/{self.category_item}"


@dataclass(frozen=True)
class DiscountEntry:
    product_id: str
    discount_type: DiscountType
    discount_value: Decimal
    active_from: datetime
    active_until: datetime
    active: bool = True

    def is_effective(self, at: datetime) -> bool:
        return self.active and self.active_from <= at <= self.active_until


@dataclass(frozen=True)
class BestsellerEntry:
    """Ranked bestseller; the discount fields are a snapshot taken at assignment."""

    product_id: str
    rank: int
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = None


@dataclass(frozen=True)
class ProductUpdate:
    """Field patch for one product document."""

    category_group: str
    category_item: str
    product_id: str
    fields: Mapping[str, object]


class ProductIndex(Mapping[str, Product]):
    """Read-only mapping of product id to product, in traversal order."""

    def __init__(self, products: Mapping[str, Product] | None = None) -> None:
        self._products: dict[str, Product] = dict(products or {})

    def __getitem__(self, product_id: str) -> Product:
        return self._products[product_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._products)

    def __len__(self) -> int:
        return len(self._products)

    def __repr__(self) -> str:
        return f"ProductIndex({len(self._products)} products)"

    @classmethod
    def from_products(cls, products: Iterable[Product]) -> "ProductIndex":
        return cls({product.product_id: product for product in products})


def filter_discounts(
    discounts: Iterable[DiscountEntry],
    mode: DiscountFilter,
    at: datetime | None = None,
) -> tuple[DiscountEntry, ...]:
    """Narrow a discount set according to an explicit filter mode."""
    mode = DiscountFilter(mode)
    if mode is DiscountFilter.ALL:
        return tuple(discounts)
    if mode is DiscountFilter.ACTIVE:
        return tuple(entry for entry in discounts if entry.active)
    if at is None:
        raise ValueError("An 'effective' discount filter needs a reference time")
    return tuple(entry for entry in discounts if entry.is_effective(at))
