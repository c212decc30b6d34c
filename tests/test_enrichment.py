from datetime import datetime, timedelta, timezone
from decimal import Decimal

from catalog_checker.domain.enrichment import (
    BACKGROUND_COLOR_FIELD,
    HAS_DISCOUNT_FIELD,
    IMAGE_PATH_FIELD,
    build_catalog_export,
    image_url,
    plan_background_colors,
    plan_discount_flags,
    plan_image_paths,
)
from catalog_checker.domain.models import DiscountEntry, DiscountType, Product, ProductIndex

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)
PALETTE = {"snacks_drinks": 4292998654, "grocery_kitchen": 4292998633}


def make_product(product_id: str, price, group: str, **attributes) -> Product:
    return Product(product_id, f"Item {product_id}", Decimal(str(price)), group, "shelf", attributes)


def make_index() -> ProductIndex:
    return ProductIndex.from_products(
        [
            make_product("p1", 10, "snacks_drinks", hasDiscount=True),
            make_product("p2", 20.5, "snacks_drinks", hasDiscount=True),
            make_product("p3", 30, "grocery_kitchen", itemBackgroundColor=4292998633, imagePath="img/p3.png"),
            make_product("p4", 40, "pet_care"),
        ]
    )


def make_discount(product_id: str) -> DiscountEntry:
    return DiscountEntry(product_id, DiscountType.PERCENTAGE, Decimal("10"), NOW, NOW + timedelta(days=2))


def test_discount_flags_only_patch_changed_products():
    plan = plan_discount_flags(make_index(), [make_discount("p1"), make_discount("p3")])

    patched = {update.product_id: update.fields[HAS_DISCOUNT_FIELD] for update in plan.updates}
    assert patched == {"p2": False, "p3": True, "p4": False}
    assert plan.skipped == 1


def test_background_colors_skip_unknown_and_unchanged():
    plan = plan_background_colors(make_index(), PALETTE)

    patched = {update.product_id: update.fields[BACKGROUND_COLOR_FIELD] for update in plan.updates}
    assert patched == {"p1": 4292998654, "p2": 4292998654}
    assert plan.skipped == 1
    assert plan.unknown_categories == ("pet_care",)


def test_merged_plan_folds_fields_per_product():
    index = make_index()
    plan = plan_discount_flags(index, [make_discount("p1")]).merge(plan_background_colors(index, PALETTE))

    by_id = {update.product_id: dict(update.fields) for update in plan.updates}
    assert by_id["p2"] == {HAS_DISCOUNT_FIELD: False, BACKGROUND_COLOR_FIELD: 4292998654}
    assert by_id["p1"] == {BACKGROUND_COLOR_FIELD: 4292998654}
    assert plan.unknown_categories == ("pet_care",)


def test_export_uses_discounts_and_palette():
    export = build_catalog_export(make_index(), discounts=[make_discount("p4")], palette=PALETTE)

    info = export["dynamic_product_info"]
    assert set(info) == {"p1", "p2", "p3", "p4"}
    assert info["p2"] == {
        "name": "Item p2",
        "price": 20.5,
        "path": "snacks_drinks/shelf",
        HAS_DISCOUNT_FIELD: False,
        BACKGROUND_COLOR_FIELD: 4292998654,
    }
    assert info["p3"]["imagePath"] == "img/p3.png"
    assert info["p4"][HAS_DISCOUNT_FIELD] is True
    assert BACKGROUND_COLOR_FIELD not in info["p4"]


def test_export_without_discounts_keeps_stored_flags():
    export = build_catalog_export(make_index())

    info = export["dynamic_product_info"]
    assert info["p1"][HAS_DISCOUNT_FIELD] is True
    assert info["p1"]["price"] == 10
    assert HAS_DISCOUNT_FIELD not in info["p4"]
    assert info["p3"][BACKGROUND_COLOR_FIELD] == 4292998633


def test_image_url_encodes_storage_path():
    product = make_product("p 1", 10, "snacks_drinks")

    assert image_url(product) == (
        "https://firebasestorage.googleapis.com/v0/b/profit-grocery.firebasestorage.app/o/"
        "products%2Fsnacks_drinks%2Fshelf%2Fp%201%2Fimage.png?alt=media"
    )
    assert image_url(product, "https://cdn.example.com/{path}", token="t1") == (
        "https://cdn.example.com/products%2Fsnacks_drinks%2Fshelf%2Fp%201%2Fimage.png?token=t1"
    )


def test_image_paths_keep_existing_token_and_list_missing_images():
    template = "https://cdn.example.com/o/{path}?alt=media"
    canonical = image_url(make_product("p3", 30, "grocery_kitchen"), template)
    index = ProductIndex.from_products(
        [
            make_product("p1", 10, "snacks_drinks"),
            make_product("p2", 20, "snacks_drinks", imagePath="https://old.host/p2.png?alt=media&token=abc-123&x=1"),
            make_product("p3", 30, "grocery_kitchen", imagePath=canonical),
            make_product("p4", 40, "pet_care", imagePath="  "),
        ]
    )

    plan = plan_image_paths(index, template)

    patched = {update.product_id: update.fields[IMAGE_PATH_FIELD] for update in plan.updates}
    assert set(patched) == {"p1", "p2", "p4"}
    assert patched["p1"] == "https://cdn.example.com/o/products%2Fsnacks_drinks%2Fshelf%2Fp1%2Fimage.png?alt=media"
    assert patched["p2"].endswith("p2%2Fimage.png?alt=media&token=abc-123")
    assert plan.skipped == 1
    assert plan.missing_images == ("p1", "p4")


def test_merged_plan_keeps_missing_images():
    index = make_index()
    plan = plan_background_colors(index, PALETTE).merge(plan_image_paths(index))

    by_id = {update.product_id: dict(update.fields) for update in plan.updates}
    assert set(by_id["p1"]) == {BACKGROUND_COLOR_FIELD, IMAGE_PATH_FIELD}
    assert by_id["p3"] == {IMAGE_PATH_FIELD: image_url(index["p3"])}
    assert plan.missing_images == ("p1", "p2", "p4")
