"""Domain-level results for indexing, reconciliation and assignment."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from .errors import CatalogError, DanglingReference, InsufficientCandidates
from .models import (
    BestsellerClass,
    BestsellerEntry,
    DiscountEntry,
    DiscountType,
    Product,
    ProductIndex,
)


@dataclass(frozen=True)
class DuplicateProduct:
    """A product id met again at another location; the later one replaced the earlier."""

    product_id: str
    replaced_path: str
    kept_path: str


@dataclass(frozen=True)
class IndexBuildResult:
    index: ProductIndex
    duplicates: Sequence[DuplicateProduct] = field(default_factory=tuple)
    errors: Sequence[CatalogError] = field(default_factory=tuple)

    def has_anomalies(self) -> bool:
        return bool(self.duplicates or self.errors)


@dataclass(frozen=True)
class DiscountCheck:
    """A discount entry resolved against its product."""

    entry: DiscountEntry
    product: Product
    discounted_price: Decimal
    savings: Decimal
    savings_percentage: Decimal


@dataclass(frozen=True)
class BestsellerCheck:
    entry: BestsellerEntry
    product: Product
    classification: BestsellerClass


@dataclass(frozen=True)
class PriceBucket:
    label: str
    lower: Decimal | None
    upper: Decimal | None

    def contains(self, price: Decimal) -> bool:
        if self.lower is not None and price <= self.lower:
            return False
        if self.upper is not None and price > self.upper:
            return False
        return True


@dataclass(frozen=True)
class BestsellerTargets:
    flat: int
    percentage: int
    undiscounted: int

    def as_mapping(self) -> Mapping[BestsellerClass, int]:
        return {
            BestsellerClass.FLAT: self.flat,
            BestsellerClass.PERCENTAGE: self.percentage,
            BestsellerClass.UNDISCOUNTED: self.undiscounted,
        }


@dataclass(frozen=True)
class ReconciliationReport:
    total_discounts: int
    total_bestsellers: int
    discount_checks: Sequence[DiscountCheck]
    bestseller_checks: Sequence[BestsellerCheck]
    dangling_discounts: Sequence[DiscountEntry]
    dangling_bestsellers: Sequence[BestsellerEntry]
    discount_type_counts: Mapping[DiscountType, int]
    bestseller_class_counts: Mapping[BestsellerClass, int]
    bestseller_targets: BestsellerTargets | None
    price_histogram: Mapping[str, int]
    total_products: int
    high_value_threshold: Decimal
    high_value_products: int
    high_value_discounted: int
    discount_category_counts: Mapping[str, int]
    bestseller_category_counts: Mapping[str, int]
    duplicate_ranks: Mapping[int, Sequence[str]]
    effective_discounts: int | None = None
    products_with_image: int = 0

    @property
    def valid_discounts(self) -> int:
        return len(self.discount_checks)

    @property
    def invalid_discounts(self) -> int:
        return len(self.dangling_discounts)

    @property
    def valid_bestsellers(self) -> int:
        return len(self.bestseller_checks)

    @property
    def invalid_bestsellers(self) -> int:
        return len(self.dangling_bestsellers)

    def has_issues(self) -> bool:
        return any(
            [
                self.dangling_discounts,
                self.dangling_bestsellers,
                self.duplicate_ranks,
            ]
        )

    def iter_dangling_references(self) -> Iterable[DanglingReference]:
        for entry in self.dangling_discounts:
            yield DanglingReference(collection="discounts", product_id=entry.product_id)
        for bestseller in self.dangling_bestsellers:
            yield DanglingReference(collection="bestsellers", product_id=bestseller.product_id)


@dataclass(frozen=True)
class DiscountAssignment:
    discounts: Sequence[DiscountEntry]
    requested: int
    shortfalls: Sequence[InsufficientCandidates] = field(default_factory=tuple)

    def type_counts(self) -> Mapping[DiscountType, int]:
        counts = {discount_type: 0 for discount_type in DiscountType}
        for entry in self.discounts:
            counts[entry.discount_type] += 1
        return counts


@dataclass(frozen=True)
class BestsellerAssignment:
    bestsellers: Sequence[BestsellerEntry]
    requested: int
    pool_counts: Mapping[BestsellerClass, int]
    shortfalls: Sequence[InsufficientCandidates] = field(default_factory=tuple)
