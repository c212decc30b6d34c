"""Domain services implementing promotion reconciliation rules."""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from .enrichment import has_image
from .models import (
    BestsellerClass,
    BestsellerEntry,
    DiscountEntry,
    DiscountType,
    Product,
    ProductIndex,
)
from .results import (
    BestsellerCheck,
    BestsellerTargets,
    DiscountCheck,
    PriceBucket,
    ReconciliationReport,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def price_buckets_from_bounds(bounds: Sequence[int]) -> tuple[PriceBucket, ...]:
    """Build ``[0,b0], (b0,b1], ..., (bn,inf)`` buckets labelled like ``0-50``, ``51-100``, ``>500``."""
    ordered = sorted(Decimal(bound) for bound in bounds)
    buckets: list[PriceBucket] = []
    lower: Decimal | None = None
    for upper in ordered:
        label = f"0-{upper}" if lower is None else f"{lower + 1}-{upper}"
        buckets.append(PriceBucket(label, lower, upper))
        lower = upper
    buckets.append(PriceBucket(f">{lower}" if lower is not None else "all", lower, None))
    return tuple(buckets)


DEFAULT_PRICE_BUCKETS = price_buckets_from_bounds((50, 100, 200, 500))


def discounted_price(price: Decimal, discount_type: DiscountType, value: Decimal) -> Decimal:
    if discount_type is DiscountType.FLAT:
        return max(Decimal("0"), price - value)
    if discount_type is DiscountType.PERCENTAGE:
        return max(Decimal("0"), price * (1 - value / HUNDRED))
    raise ValueError(f"Unknown discount type: {discount_type!r}")


def savings_percentage(price: Decimal, savings: Decimal) -> Decimal:
    if price == 0:
        return Decimal("0")
    return HUNDRED * savings / price


def discounts_by_product(discounts: Iterable[DiscountEntry]) -> dict[str, DiscountEntry]:
    """One discount per product; a later entry for the same product replaces an earlier one."""
    return {entry.product_id: entry for entry in discounts}


class PromotionReconciler:
    """Cross-checks discount and bestseller overlays against the product index."""

    def __init__(
        self,
        high_value_threshold: Decimal | int = 200,
        price_buckets: Sequence[PriceBucket] = DEFAULT_PRICE_BUCKETS,
        bestseller_targets: BestsellerTargets | None = None,
    ) -> None:
        self._high_value_threshold = Decimal(high_value_threshold)
        self._price_buckets = tuple(price_buckets)
        self._bestseller_targets = bestseller_targets

    def reconcile(
        self,
        index: ProductIndex,
        discounts: Sequence[DiscountEntry],
        bestsellers: Sequence[BestsellerEntry],
        as_of: datetime | None = None,
    ) -> ReconciliationReport:
        discount_checks: list[DiscountCheck] = []
        dangling_discounts: list[DiscountEntry] = []
        type_counts = {discount_type: 0 for discount_type in DiscountType}
        discount_categories: dict[str, int] = defaultdict(int)

        for entry in discounts:
            product = index.get(entry.product_id)
            if product is None:
                logger.warning("Discount %s references a non-existent product", entry.product_id)
                dangling_discounts.append(entry)
                continue
            discount_checks.append(self._check_discount(entry, product))
            type_counts[entry.discount_type] += 1
            discount_categories[product.category_group] += 1

        discount_by_product = discounts_by_product(discounts)
        bestseller_checks: list[BestsellerCheck] = []
        dangling_bestsellers: list[BestsellerEntry] = []
        class_counts = {bestseller_class: 0 for bestseller_class in BestsellerClass}
        bestseller_categories: dict[str, int] = defaultdict(int)

        for bestseller in bestsellers:
            product = index.get(bestseller.product_id)
            if product is None:
                logger.warning("Bestseller %s references a non-existent product", bestseller.product_id)
                dangling_bestsellers.append(bestseller)
                continue
            classification = self._classify(discount_by_product.get(bestseller.product_id))
            bestseller_checks.append(
                BestsellerCheck(entry=bestseller, product=product, classification=classification)
            )
            class_counts[classification] += 1
            bestseller_categories[product.category_group] += 1

        discounted_ids = set(discount_by_product)
        high_value = [product for product in index.values() if product.price > self._high_value_threshold]

        effective = None
        if as_of is not None:
            effective = sum(1 for entry in discounts if entry.is_effective(as_of))

        return ReconciliationReport(
            total_discounts=len(discounts),
            total_bestsellers=len(bestsellers),
            discount_checks=tuple(discount_checks),
            bestseller_checks=tuple(bestseller_checks),
            dangling_discounts=tuple(dangling_discounts),
            dangling_bestsellers=tuple(dangling_bestsellers),
            discount_type_counts=type_counts,
            bestseller_class_counts=class_counts,
            bestseller_targets=self._bestseller_targets,
            price_histogram=self._price_histogram(index),
            total_products=len(index),
            high_value_threshold=self._high_value_threshold,
            high_value_products=len(high_value),
            high_value_discounted=sum(1 for product in high_value if product.product_id in discounted_ids),
            discount_category_counts=dict(discount_categories),
            bestseller_category_counts=dict(bestseller_categories),
            duplicate_ranks=self._duplicate_ranks(bestsellers),
            effective_discounts=effective,
            products_with_image=sum(1 for product in index.values() if has_image(product)),
        )

    @staticmethod
    def _check_discount(entry: DiscountEntry, product: Product) -> DiscountCheck:
        final_price = discounted_price(product.price, entry.discount_type, entry.discount_value)
        savings = product.price - final_price
        return DiscountCheck(
            entry=entry,
            product=product,
            discounted_price=final_price,
            savings=savings,
            savings_percentage=savings_percentage(product.price, savings),
        )

    @staticmethod
    def _classify(discount: DiscountEntry | None) -> BestsellerClass:
        if discount is None:
            return BestsellerClass.UNDISCOUNTED
        if discount.discount_type is DiscountType.FLAT:
            return BestsellerClass.FLAT
        return BestsellerClass.PERCENTAGE

    def _price_histogram(self, index: ProductIndex) -> Mapping[str, int]:
        histogram = {bucket.label: 0 for bucket in self._price_buckets}
        for product in index.values():
            for bucket in self._price_buckets:
                if bucket.contains(product.price):
                    histogram[bucket.label] += 1
                    break
        return histogram

    @staticmethod
    def _duplicate_ranks(bestsellers: Sequence[BestsellerEntry]) -> Mapping[int, Sequence[str]]:
        by_rank: dict[int, list[str]] = defaultdict(list)
        for bestseller in bestsellers:
            by_rank[bestseller.rank].append(bestseller.product_id)
        return {rank: tuple(ids) for rank, ids in sorted(by_rank.items()) if len(ids) > 1}
