from datetime import datetime, timedelta, timezone
from decimal import Decimal

from catalog_checker.domain.models import (
    BestsellerClass,
    BestsellerEntry,
    DiscountEntry,
    DiscountType,
    Product,
    ProductIndex,
)
from catalog_checker.domain.results import BestsellerTargets
from catalog_checker.domain.services import PromotionReconciler
from catalog_checker.domain.summary import ReportSummarizer, percentage

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_index() -> ProductIndex:
    rows = [
        ("A", 50, "snacks_drinks"),
        ("B", 250, "snacks_drinks"),
        ("C", 300, "grocery_kitchen"),
        ("D", 1000, "grocery_kitchen"),
    ]
    return ProductIndex.from_products(
        Product(pid, f"Item {pid}", Decimal(price), group, "misc") for pid, price, group in rows
    )


def make_discount(product_id: str, discount_type: DiscountType, value: int) -> DiscountEntry:
    return DiscountEntry(product_id, discount_type, Decimal(value), NOW, NOW + timedelta(days=3))


def summarize(discounts, bestsellers, targets=None, top_n=5):
    report = PromotionReconciler(bestseller_targets=targets).reconcile(make_index(), discounts, bestsellers)
    return ReportSummarizer(top_n=top_n).summarize(report)


def test_percentage_rounds_half_up_to_one_place():
    assert percentage(1, 3) == Decimal("33.3")
    assert percentage(2, 3) == Decimal("66.7")
    assert percentage(1, 8) == Decimal("12.5")
    assert percentage(5, 0) == Decimal("0.0")


def test_discount_shares_and_savings():
    discounts = [
        make_discount("B", DiscountType.FLAT, 50),
        make_discount("D", DiscountType.PERCENTAGE, 10),
        make_discount("GHOST", DiscountType.FLAT, 20),
    ]
    summary = summarize(discounts, [])

    assert summary.total_discounts == 3
    assert summary.valid_discounts.count == 2
    assert summary.valid_discounts.percentage == Decimal("66.7")
    assert summary.invalid_discounts.count == 1
    assert summary.discount_types[DiscountType.FLAT].count == 1
    assert summary.discount_types[DiscountType.PERCENTAGE].percentage == Decimal("33.3")
    assert summary.max_savings == Decimal("100")
    assert summary.average_savings == Decimal("75")
    assert summary.dangling_discount_ids == ("GHOST",)
    assert not summary.discounts_consistent
    assert not summary.passed
    assert any("non-existent" in note for note in summary.notes)


def test_top_savings_sorted_and_limited():
    discounts = [
        make_discount("A", DiscountType.PERCENTAGE, 10),
        make_discount("B", DiscountType.FLAT, 50),
        make_discount("D", DiscountType.PERCENTAGE, 20),
    ]
    summary = summarize(discounts, [], top_n=2)

    assert [check.product.product_id for check in summary.top_savings] == ["D", "B"]


def test_high_value_and_histogram_shares():
    summary = summarize([make_discount("C", DiscountType.FLAT, 30)], [])

    assert summary.high_value_products.count == 3
    assert summary.high_value_products.percentage == Decimal("75.0")
    assert summary.high_value_discounted.count == 1
    assert summary.high_value_discounted.percentage == Decimal("33.3")
    assert summary.price_histogram["0-50"].count == 1
    assert summary.price_histogram[">500"].percentage == Decimal("25.0")
    assert summary.discount_categories["grocery_kitchen"].percentage == Decimal("100.0")


def test_bestseller_targets_drive_pass_state():
    discounts = [make_discount("B", DiscountType.FLAT, 50), make_discount("C", DiscountType.PERCENTAGE, 10)]
    bestsellers = [BestsellerEntry("B", 1), BestsellerEntry("C", 2), BestsellerEntry("A", 3)]

    met = summarize(discounts, bestsellers, BestsellerTargets(flat=1, percentage=1, undiscounted=1))
    missed = summarize(discounts, bestsellers, BestsellerTargets(flat=2, percentage=1, undiscounted=0))

    assert met.targets_met
    assert met.passed
    assert met.bestseller_classes[BestsellerClass.UNDISCOUNTED].percentage == Decimal("33.3")
    assert not missed.targets_met
    assert missed.bestseller_targets[BestsellerClass.FLAT].actual == 1
    assert not missed.passed


def test_empty_report_is_all_zero_and_passes():
    summary = summarize([], [])

    assert summary.valid_discounts.percentage == Decimal("0.0")
    assert summary.average_savings == Decimal("0")
    assert summary.top_savings == ()
    assert summary.notes == ()
    assert summary.passed


def test_duplicate_ranks_fail_the_summary():
    bestsellers = [BestsellerEntry("A", 1), BestsellerEntry("B", 1)]
    summary = summarize([], bestsellers)

    assert not summary.ranks_unique
    assert summary.duplicate_ranks == {1: ("A", "B")}
    assert not summary.passed
