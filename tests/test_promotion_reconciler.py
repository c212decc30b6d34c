from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from catalog_checker.domain.models import (
    BestsellerClass,
    BestsellerEntry,
    DiscountEntry,
    DiscountType,
    Product,
    ProductIndex,
)
from catalog_checker.domain.results import BestsellerTargets
from catalog_checker.domain.services import (
    PromotionReconciler,
    discounted_price,
    price_buckets_from_bounds,
)

NOW = datetime(2025, 1, 15, tzinfo=timezone.utc)


def make_product(product_id: str, price, group: str = "snacks_drinks", item: str = "chips") -> Product:
    return Product(
        product_id=product_id,
        name=f"Product {product_id}",
        price=Decimal(str(price)),
        category_group=group,
        category_item=item,
    )


def make_index(**prices) -> ProductIndex:
    return ProductIndex.from_products(make_product(pid, price) for pid, price in prices.items())


def make_discount(product_id: str, discount_type=DiscountType.FLAT, value=50, days=10, active=True) -> DiscountEntry:
    return DiscountEntry(
        product_id=product_id,
        discount_type=discount_type,
        discount_value=Decimal(str(value)),
        active_from=NOW - timedelta(days=1),
        active_until=NOW + timedelta(days=days),
        active=active,
    )


def test_flat_discount_scenario_on_three_products():
    index = make_index(A=50, B=250, C=300)
    discounts = [make_discount("B"), make_discount("C")]

    report = PromotionReconciler().reconcile(index, discounts, [])

    assert report.valid_discounts == 2
    assert report.invalid_discounts == 0
    prices = {check.product.product_id: check.discounted_price for check in report.discount_checks}
    assert prices == {"B": Decimal("200"), "C": Decimal("250")}
    assert report.price_histogram == {"0-50": 1, "51-100": 0, "101-200": 0, "201-500": 2, ">500": 0}
    assert report.discount_type_counts[DiscountType.FLAT] == 2
    assert report.high_value_products == 2
    assert report.high_value_discounted == 2


def test_dangling_discount_is_reported_not_raised():
    index = make_index(A=10)
    discounts = [make_discount("Z", value=5)]

    report = PromotionReconciler().reconcile(index, discounts, [])

    assert report.valid_discounts == 0
    assert report.invalid_discounts == 1
    assert [entry.product_id for entry in report.dangling_discounts] == ["Z"]
    assert [ref.product_id for ref in report.iter_dangling_references()] == ["Z"]
    assert report.has_issues()


@pytest.mark.parametrize("count", [0, 1, 7])
def test_valid_plus_invalid_equals_total(count):
    index = make_index(A=10, B=20)
    discounts = [make_discount("A" if n % 3 == 0 else f"missing-{n}") for n in range(count)]

    report = PromotionReconciler().reconcile(index, discounts, [])

    assert report.valid_discounts + report.invalid_discounts == count
    assert report.total_discounts == count


@pytest.mark.parametrize(
    "price, discount_type, value, expected",
    [
        (100, DiscountType.FLAT, 30, Decimal("70")),
        (20, DiscountType.FLAT, 50, Decimal("0")),
        (200, DiscountType.PERCENTAGE, 10, Decimal("180")),
        (0, DiscountType.PERCENTAGE, 15, Decimal("0")),
    ],
)
def test_discounted_price_stays_between_zero_and_price(price, discount_type, value, expected):
    result = discounted_price(Decimal(price), discount_type, Decimal(value))

    assert result == expected
    assert Decimal("0") <= result <= Decimal(price)


def test_savings_percentage_for_zero_price_is_zero():
    index = make_index(A=0)
    report = PromotionReconciler().reconcile(index, [make_discount("A", value=5)], [])

    check = report.discount_checks[0]
    assert check.savings == Decimal("0")
    assert check.savings_percentage == Decimal("0")


def test_bestsellers_are_classified_by_discount_type():
    index = make_index(A=300, B=80, C=40, D=60)
    discounts = [make_discount("A"), make_discount("B", DiscountType.PERCENTAGE, 10)]
    bestsellers = [
        BestsellerEntry("A", 1, DiscountType.FLAT, Decimal("50")),
        BestsellerEntry("B", 2, DiscountType.PERCENTAGE, Decimal("10")),
        BestsellerEntry("C", 3),
        BestsellerEntry("GONE", 4),
    ]
    targets = BestsellerTargets(flat=1, percentage=1, undiscounted=1)

    report = PromotionReconciler(bestseller_targets=targets).reconcile(index, discounts, bestsellers)

    classes = {check.product.product_id: check.classification for check in report.bestseller_checks}
    assert classes == {
        "A": BestsellerClass.FLAT,
        "B": BestsellerClass.PERCENTAGE,
        "C": BestsellerClass.UNDISCOUNTED,
    }
    assert report.valid_bestsellers == 3
    assert [entry.product_id for entry in report.dangling_bestsellers] == ["GONE"]
    assert report.bestseller_category_counts == {"snacks_drinks": 3}
    assert report.bestseller_targets == targets


def test_duplicate_ranks_are_flagged():
    index = make_index(A=10, B=20, C=30)
    bestsellers = [BestsellerEntry("A", 1), BestsellerEntry("B", 1), BestsellerEntry("C", 2)]

    report = PromotionReconciler().reconcile(index, [], bestsellers)

    assert report.duplicate_ranks == {1: ("A", "B")}
    assert report.has_issues()


def test_effective_count_only_when_reference_time_given():
    index = make_index(A=10, B=20, C=30)
    discounts = [
        make_discount("A"),
        make_discount("B", active=False),
        make_discount("C", days=-2),
    ]
    reconciler = PromotionReconciler()

    assert reconciler.reconcile(index, discounts, []).effective_discounts is None
    assert reconciler.reconcile(index, discounts, [], as_of=NOW).effective_discounts == 1


def test_custom_price_buckets_and_threshold():
    index = make_index(A=5, B=15, C=1000)
    reconciler = PromotionReconciler(high_value_threshold=10, price_buckets=price_buckets_from_bounds((10,)))

    report = reconciler.reconcile(index, [], [])

    assert report.price_histogram == {"0-10": 1, ">10": 2}
    assert report.high_value_products == 2
    assert report.high_value_discounted == 0


def test_products_with_image_are_counted():
    index = ProductIndex.from_products(
        [
            Product("A", "A", Decimal("10"), "g", "i", {"imagePath": "https://cdn/a.png"}),
            Product("B", "B", Decimal("10"), "g", "i", {"imagePath": ""}),
            Product("C", "C", Decimal("10"), "g", "i"),
        ]
    )

    report = PromotionReconciler().reconcile(index, [], [])

    assert report.products_with_image == 1
