"""Flattens the hierarchical catalog into a product index."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .errors import CatalogError, CollaboratorError, StructuralError
from .models import Product, ProductIndex
from .money import parse_price
from .repositories import CatalogStoreReader
from .results import DuplicateProduct, IndexBuildResult

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT_NAME = "Unknown Product"


class CatalogIndexer:
    """Walks group -> item -> product and builds a ``ProductIndex``.

    A failing branch is recorded and skipped; the rest of the store is still
    indexed. When a product id shows up twice the later occurrence wins.
    """

    def build_index(self, store: CatalogStoreReader) -> IndexBuildResult:
        products: dict[str, Product] = {}
        duplicates: list[DuplicateProduct] = []
        errors: list[CatalogError] = []

        for group in self._read(store.list_groups, "groups", errors):
            for item in self._read(lambda: store.list_items(group), group, errors):
                branch = f"{group}/{item}"
                for product_id, document in self._read(
                    lambda: store.list_products(group, item), branch, errors
                ):
                    product = self._to_product(group, item, product_id, document, errors)
                    if product is None:
                        continue
                    previous = products.pop(product.product_id, None)
                    if previous is not None:
                        logger.warning(
                            "Product %s found at %s and %s; keeping the latter",
                            product.product_id,
                            previous.path,
                            product.path,
                        )
                        duplicates.append(
                            DuplicateProduct(
                                product_id=product.product_id,
                                replaced_path=previous.path,
                                kept_path=product.path,
                            )
                        )
                    products[product.product_id] = product

        logger.info(
            "Indexed %d products (%d duplicates, %d errors)",
            len(products),
            len(duplicates),
            len(errors),
        )
        return IndexBuildResult(
            index=ProductIndex(products),
            duplicates=tuple(duplicates),
            errors=tuple(errors),
        )

    @staticmethod
    def _read(reader, path: str, errors: list[CatalogError]) -> list:
        """Materialize one branch, recording instead of raising on failure."""
        try:
            values = reader()
            if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
                raise StructuralError(path, f"expected a collection, got {type(values).__name__}")
            return list(values)
        except (StructuralError, CollaboratorError) as exc:
            logger.error("Skipping %s: %s", path, exc)
            errors.append(exc)
            return []

    @staticmethod
    def _to_product(
        group: str,
        item: str,
        product_id: str | None,
        document: object,
        errors: list[CatalogError],
    ) -> Product | None:
        if product_id is None or not str(product_id).strip():
            error = StructuralError(f"{group}/{item}", "product without an id")
            logger.error("Skipping %s", error)
            errors.append(error)
            return None
        path = f"{group}/{item}/{product_id}"
        if not isinstance(document, Mapping):
            error = StructuralError(path, f"product document is {type(document).__name__}, not a mapping")
            logger.error("Skipping %s", error)
            errors.append(error)
            return None
        try:
            price = parse_price(document.get("price"))
        except ValueError as exc:
            error = StructuralError(path, str(exc))
            logger.error("Skipping %s", error)
            errors.append(error)
            return None
        attributes = {key: value for key, value in document.items() if key not in ("id", "name", "price")}
        return Product(
            product_id=str(product_id),
            name=str(document.get("name") or UNKNOWN_PRODUCT_NAME),
            price=price,
            category_group=group,
            category_item=item,
            attributes=attributes,
        )
