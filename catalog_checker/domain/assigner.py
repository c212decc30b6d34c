"""Randomized generation of discount and bestseller overlays."""
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import MutableSequence, Sequence, TypeVar

from .errors import InsufficientCandidates
from .models import (
    BestsellerClass,
    BestsellerEntry,
    DiscountEntry,
    DiscountType,
    ProductIndex,
)
from .results import BestsellerAssignment, DiscountAssignment
from .services import discounts_by_product

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fisher_yates_shuffle(items: MutableSequence[T], rng: random.Random) -> MutableSequence[T]:
    """Shuffle ``items`` in place and return it."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def _take(pool: str, candidates: list[T], count: int, shortfalls: list[InsufficientCandidates]) -> list[T]:
    if count > len(candidates):
        logger.warning("Pool %s has %d candidates for %d slots", pool, len(candidates), count)
        shortfalls.append(InsufficientCandidates(pool=pool, requested=count, available=len(candidates)))
    return candidates[:count]


class RandomizedAssigner:
    """Selects products for promotional treatment.

    All randomness goes through a ``random.Random`` seeded per call, so the
    same seed, inputs and ``now`` reproduce the same overlay.
    """

    def __init__(
        self,
        percentage_range: tuple[int, int] = (5, 20),
        flat_range: tuple[int, int] = (20, 100),
        window_days: tuple[int, int] = (1, 30),
    ) -> None:
        for name, (low, high) in (
            ("percentage_range", percentage_range),
            ("flat_range", flat_range),
            ("window_days", window_days),
        ):
            if low > high:
                raise ValueError(f"{name} lower bound {low} exceeds upper bound {high}")
        if window_days[0] < 1:
            raise ValueError("Discount windows must last at least one day")
        if percentage_range[0] <= 0 or percentage_range[1] >= 100:
            raise ValueError("Percentage discounts must lie strictly between 0 and 100")
        self._percentage_range = percentage_range
        self._flat_range = flat_range
        self._window_days = window_days

    def assign_discounts(
        self,
        index: ProductIndex,
        rng_seed: int | None = None,
        target_count: int = 120,
        price_threshold_for_flat: Decimal | int = 200,
        now: datetime | None = None,
    ) -> DiscountAssignment:
        if target_count < 0:
            raise ValueError("target_count must not be negative")
        rng = random.Random(rng_seed)
        now = now or datetime.now(timezone.utc)
        threshold = Decimal(price_threshold_for_flat)

        candidates = fisher_yates_shuffle(list(index), rng)
        shortfalls: list[InsufficientCandidates] = []
        selected = _take("discounts", candidates, target_count, shortfalls)

        discounts: list[DiscountEntry] = []
        for product_id in selected:
            product = index[product_id]
            if product.price > threshold:
                discount_type = rng.choice((DiscountType.FLAT, DiscountType.PERCENTAGE))
            else:
                discount_type = DiscountType.PERCENTAGE
            low, high = self._flat_range if discount_type is DiscountType.FLAT else self._percentage_range
            value = Decimal(rng.randint(low, high))
            days = rng.randint(*self._window_days)
            discounts.append(
                DiscountEntry(
                    product_id=product_id,
                    discount_type=discount_type,
                    discount_value=value,
                    active_from=now,
                    active_until=now + timedelta(days=days),
                    active=True,
                )
            )
            logger.debug("Assigned %s discount of %s to %s", discount_type.value, value, product_id)

        logger.info("Generated %d discounts (%d requested)", len(discounts), target_count)
        return DiscountAssignment(discounts=tuple(discounts), requested=target_count, shortfalls=tuple(shortfalls))

    def assign_bestsellers(
        self,
        index: ProductIndex,
        discounts: Sequence[DiscountEntry],
        rng_seed: int | None = None,
        total_slots: int = 20,
        flat_slots: int = 6,
        percentage_slots: int = 6,
    ) -> BestsellerAssignment:
        if min(total_slots, flat_slots, percentage_slots) < 0:
            raise ValueError("Slot counts must not be negative")
        regular_slots = total_slots - flat_slots - percentage_slots
        if regular_slots < 0:
            raise ValueError(
                f"flat_slots + percentage_slots ({flat_slots + percentage_slots}) exceeds total_slots ({total_slots})"
            )
        rng = random.Random(rng_seed)

        flat_pool: list[DiscountEntry] = []
        percentage_pool: list[DiscountEntry] = []
        discounted = discounts_by_product(discounts)
        for entry in discounted.values():
            if entry.product_id not in index:
                continue
            if entry.discount_type is DiscountType.FLAT:
                flat_pool.append(entry)
            else:
                percentage_pool.append(entry)
        regular_pool = [product_id for product_id in index if product_id not in discounted]

        shortfalls: list[InsufficientCandidates] = []
        flat = _take("flat", fisher_yates_shuffle(flat_pool, rng), flat_slots, shortfalls)
        percentage = _take("percentage", fisher_yates_shuffle(percentage_pool, rng), percentage_slots, shortfalls)
        regular = _take("undiscounted", fisher_yates_shuffle(regular_pool, rng), regular_slots, shortfalls)

        merged: list[tuple[str, DiscountType | None, Decimal | None]] = [
            (entry.product_id, entry.discount_type, entry.discount_value) for entry in flat + percentage
        ]
        merged.extend((product_id, None, None) for product_id in regular)
        fisher_yates_shuffle(merged, rng)

        bestsellers = tuple(
            BestsellerEntry(
                product_id=product_id,
                rank=rank,
                discount_type=discount_type,
                discount_value=discount_value,
            )
            for rank, (product_id, discount_type, discount_value) in enumerate(merged, start=1)
        )
        logger.info(
            "Generated %d bestsellers: %d flat, %d percentage, %d undiscounted",
            len(bestsellers),
            len(flat),
            len(percentage),
            len(regular),
        )
        return BestsellerAssignment(
            bestsellers=bestsellers,
            requested=total_slots,
            pool_counts={
                BestsellerClass.FLAT: len(flat),
                BestsellerClass.PERCENTAGE: len(percentage),
                BestsellerClass.UNDISCOUNTED: len(regular),
            },
            shortfalls=tuple(shortfalls),
        )
