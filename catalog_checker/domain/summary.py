"""Aggregation of a reconciliation report into presentation-ready numbers."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Sequence

from .models import BestsellerClass, DiscountType
from .results import DiscountCheck, ReconciliationReport

ONE_PLACE = Decimal("0.1")


def percentage(part: int | Decimal, whole: int | Decimal) -> Decimal:
    if not whole:
        return Decimal("0.0")
    return (Decimal(100) * Decimal(part) / Decimal(whole)).quantize(ONE_PLACE, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CountShare:
    count: int
    percentage: Decimal


@dataclass(frozen=True)
class TargetComparison:
    expected: int
    actual: int

    @property
    def met(self) -> bool:
        return self.expected == self.actual


@dataclass(frozen=True)
class Summary:
    total_products: int
    total_discounts: int
    valid_discounts: CountShare
    invalid_discounts: CountShare
    discount_types: Mapping[DiscountType, CountShare]
    price_histogram: Mapping[str, CountShare]
    high_value_threshold: Decimal
    high_value_products: CountShare
    high_value_discounted: CountShare
    average_savings: Decimal
    average_savings_percentage: Decimal
    max_savings: Decimal
    max_savings_percentage: Decimal
    top_savings: Sequence[DiscountCheck]
    total_bestsellers: int
    valid_bestsellers: CountShare
    invalid_bestsellers: CountShare
    bestseller_classes: Mapping[BestsellerClass, CountShare]
    bestseller_targets: Mapping[BestsellerClass, TargetComparison]
    discount_categories: Mapping[str, CountShare]
    bestseller_categories: Mapping[str, CountShare]
    dangling_discount_ids: Sequence[str]
    dangling_bestseller_ids: Sequence[str]
    duplicate_ranks: Mapping[int, Sequence[str]]
    image_coverage: CountShare
    effective_discounts: int | None = None
    notes: Sequence[str] = field(default_factory=tuple)

    @property
    def discounts_consistent(self) -> bool:
        return self.invalid_discounts.count == 0

    @property
    def bestsellers_consistent(self) -> bool:
        return self.invalid_bestsellers.count == 0

    @property
    def ranks_unique(self) -> bool:
        return not self.duplicate_ranks

    @property
    def targets_met(self) -> bool:
        return all(comparison.met for comparison in self.bestseller_targets.values())

    @property
    def passed(self) -> bool:
        return self.discounts_consistent and self.bestsellers_consistent and self.ranks_unique and self.targets_met


class ReportSummarizer:
    """Turns a ``ReconciliationReport`` into a ``Summary``; performs no I/O."""

    def __init__(self, top_n: int = 5) -> None:
        self._top_n = top_n

    def summarize(self, report: ReconciliationReport) -> Summary:
        checks = report.discount_checks
        valid_count = len(checks)
        savings = [check.savings for check in checks]
        savings_pcts = [check.savings_percentage for check in checks]

        top = sorted(checks, key=lambda check: check.savings, reverse=True)[: self._top_n]

        targets = {}
        if report.bestseller_targets is not None:
            for bestseller_class, expected in report.bestseller_targets.as_mapping().items():
                targets[bestseller_class] = TargetComparison(
                    expected=expected,
                    actual=report.bestseller_class_counts.get(bestseller_class, 0),
                )

        return Summary(
            total_products=report.total_products,
            total_discounts=report.total_discounts,
            valid_discounts=self._share(valid_count, report.total_discounts),
            invalid_discounts=self._share(report.invalid_discounts, report.total_discounts),
            discount_types={
                discount_type: self._share(count, report.total_discounts)
                for discount_type, count in report.discount_type_counts.items()
            },
            price_histogram={
                label: self._share(count, report.total_products) for label, count in report.price_histogram.items()
            },
            high_value_threshold=report.high_value_threshold,
            high_value_products=self._share(report.high_value_products, report.total_products),
            high_value_discounted=self._share(report.high_value_discounted, report.high_value_products),
            average_savings=self._mean(savings),
            average_savings_percentage=self._mean(savings_pcts),
            max_savings=max(savings, default=Decimal("0")),
            max_savings_percentage=max(savings_pcts, default=Decimal("0")),
            top_savings=tuple(top),
            total_bestsellers=report.total_bestsellers,
            valid_bestsellers=self._share(report.valid_bestsellers, report.total_bestsellers),
            invalid_bestsellers=self._share(report.invalid_bestsellers, report.total_bestsellers),
            bestseller_classes={
                bestseller_class: self._share(count, report.total_bestsellers)
                for bestseller_class, count in report.bestseller_class_counts.items()
            },
            bestseller_targets=targets,
            discount_categories={
                category: self._share(count, valid_count)
                for category, count in sorted(report.discount_category_counts.items())
            },
            bestseller_categories={
                category: self._share(count, report.valid_bestsellers)
                for category, count in sorted(report.bestseller_category_counts.items())
            },
            dangling_discount_ids=tuple(entry.product_id for entry in report.dangling_discounts),
            dangling_bestseller_ids=tuple(entry.product_id for entry in report.dangling_bestsellers),
            duplicate_ranks=dict(report.duplicate_ranks),
            image_coverage=self._share(report.products_with_image, report.total_products),
            effective_discounts=report.effective_discounts,
            notes=self._notes(report),
        )

    @staticmethod
    def _share(count: int, whole: int) -> CountShare:
        return CountShare(count=count, percentage=percentage(count, whole))

    @staticmethod
    def _mean(values: Sequence[Decimal]) -> Decimal:
        if not values:
            return Decimal("0")
        return sum(values, Decimal("0")) / len(values)

    @staticmethod
    def _notes(report: ReconciliationReport) -> tuple[str, ...]:
        notes: list[str] = []
        if report.dangling_discounts:
            notes.append(
                f"Investigate the {report.invalid_discounts} discounts that reference non-existent products"
            )
        if report.dangling_bestsellers:
            notes.append(
                f"Investigate the {report.invalid_bestsellers} bestsellers that were not found in the products collection"
            )
        if report.duplicate_ranks:
            ranks = ", ".join(str(rank) for rank in report.duplicate_ranks)
            notes.append(f"Bestseller ranks used more than once: {ranks}")
        return tuple(notes)
