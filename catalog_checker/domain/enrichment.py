"""Computed product fields: discount flags, background colors, image URLs and the flat export."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence
from urllib.parse import quote

from .models import DiscountEntry, Product, ProductIndex, ProductUpdate
from .money import format_decimal

HAS_DISCOUNT_FIELD = "hasDiscount"
BACKGROUND_COLOR_FIELD = "itemBackgroundColor"
IMAGE_PATH_FIELD = "imagePath"

# ``{path}`` receives the fully URL-encoded storage path.
IMAGE_URL_TEMPLATE = "https://firebasestorage.googleapis.com/v0/b/profit-grocery.firebasestorage.app/o/{path}?alt=media"
TOKEN_PATTERN = re.compile(r"token=([^&]+)")


@dataclass(frozen=True)
class FlagPlan:
    updates: Sequence[ProductUpdate]
    skipped: int = 0
    unknown_categories: Sequence[str] = field(default_factory=tuple)
    missing_images: Sequence[str] = field(default_factory=tuple)

    def merge(self, other: "FlagPlan") -> "FlagPlan":
        """Combine two plans, folding field patches for the same product together."""
        merged: dict[tuple[str, str, str], dict[str, object]] = {}
        for update in list(self.updates) + list(other.updates):
            key = (update.category_group, update.category_item, update.product_id)
            merged.setdefault(key, {}).update(update.fields)
        return FlagPlan(
            updates=tuple(
                ProductUpdate(category_group=group, category_item=item, product_id=product_id, fields=fields)
                for (group, item, product_id), fields in merged.items()
            ),
            skipped=self.skipped + other.skipped,
            unknown_categories=tuple(sorted(set(self.unknown_categories) | set(other.unknown_categories))),
            missing_images=tuple(sorted(set(self.missing_images) | set(other.missing_images))),
        )


def plan_discount_flags(index: ProductIndex, discounts: Iterable[DiscountEntry]) -> FlagPlan:
    discounted = {entry.product_id for entry in discounts}
    updates: list[ProductUpdate] = []
    skipped = 0
    for product in index.values():
        wanted = product.product_id in discounted
        if product.attributes.get(HAS_DISCOUNT_FIELD) is wanted:
            skipped += 1
            continue
        updates.append(
            ProductUpdate(
                category_group=product.category_group,
                category_item=product.category_item,
                product_id=product.product_id,
                fields={HAS_DISCOUNT_FIELD: wanted},
            )
        )
    return FlagPlan(updates=tuple(updates), skipped=skipped)


def plan_background_colors(index: ProductIndex, palette: Mapping[str, int]) -> FlagPlan:
    updates: list[ProductUpdate] = []
    skipped = 0
    unknown: set[str] = set()
    for product in index.values():
        color = palette.get(product.category_group)
        if color is None:
            unknown.add(product.category_group)
            continue
        if product.attributes.get(BACKGROUND_COLOR_FIELD) == color:
            skipped += 1
            continue
        updates.append(
            ProductUpdate(
                category_group=product.category_group,
                category_item=product.category_item,
                product_id=product.product_id,
                fields={BACKGROUND_COLOR_FIELD: color},
            )
        )
    return FlagPlan(updates=tuple(updates), skipped=skipped, unknown_categories=tuple(sorted(unknown)))


def image_storage_path(product: Product) -> str:
    return f"products/{product.category_group}/{product.category_item}/{product.product_id}/image.png"


def image_url(product: Product, url_template: str = IMAGE_URL_TEMPLATE, token: str | None = None) -> str:
    url = url_template.format(path=quote(image_storage_path(product), safe=""))
    if token:
        url += f"{'&' if '?' in url else '?'}token={token}"
    return url


def has_image(product: Product) -> bool:
    value = product.attributes.get(IMAGE_PATH_FIELD)
    return isinstance(value, str) and bool(value.strip())


def plan_image_paths(index: ProductIndex, url_template: str = IMAGE_URL_TEMPLATE) -> FlagPlan:
    """Point every product at its canonical storage URL.

    An access token already present on the stored URL is carried over; no
    token is invented for products that never had one. Products without any
    stored image URL are listed in ``missing_images``.
    """
    updates: list[ProductUpdate] = []
    skipped = 0
    missing: list[str] = []
    for product in index.values():
        current = product.attributes.get(IMAGE_PATH_FIELD) if has_image(product) else None
        if current is None:
            missing.append(product.product_id)
        match = TOKEN_PATTERN.search(current or "")
        wanted = image_url(product, url_template, match.group(1) if match else None)
        if current == wanted:
            skipped += 1
            continue
        updates.append(
            ProductUpdate(
                category_group=product.category_group,
                category_item=product.category_item,
                product_id=product.product_id,
                fields={IMAGE_PATH_FIELD: wanted},
            )
        )
    return FlagPlan(updates=tuple(updates), skipped=skipped, missing_images=tuple(sorted(missing)))


def build_catalog_export(
    index: ProductIndex,
    discounts: Iterable[DiscountEntry] | None = None,
    palette: Mapping[str, int] | None = None,
) -> dict[str, dict[str, dict[str, object]]]:
    """Flatten the index into ``{"dynamic_product_info": {id: {...}}}``."""
    discounted = {entry.product_id for entry in discounts} if discounts is not None else None
    info: dict[str, dict[str, object]] = {}
    for product in index.values():
        record: dict[str, object] = {
            "name": product.name,
            "price": format_decimal(product.price),
            "path": product.path,
        }
        if discounted is not None:
            record[HAS_DISCOUNT_FIELD] = product.product_id in discounted
        elif HAS_DISCOUNT_FIELD in product.attributes:
            record[HAS_DISCOUNT_FIELD] = product.attributes[HAS_DISCOUNT_FIELD]
        color = (palette or {}).get(product.category_group, product.attributes.get(BACKGROUND_COLOR_FIELD))
        if color is not None:
            record[BACKGROUND_COLOR_FIELD] = color
        image_path = product.attributes.get(IMAGE_PATH_FIELD)
        if image_path:
            record[IMAGE_PATH_FIELD] = image_path
        info[product.product_id] = record
    return {"dynamic_product_info": info}
