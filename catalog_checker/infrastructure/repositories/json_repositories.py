"""JSON-backed repositories for catalog snapshots.

A snapshot mirrors the document database export::

    {
      "products": {group: {item: {product_id: {...}} | [{"id": ..., ...}]}},
      "discounts": {product_id: {...}},
      "bestsellers": {product_id: {...}}
    }
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from catalog_checker.domain.errors import CollaboratorError, StructuralError
from catalog_checker.domain.models import BestsellerEntry, DiscountEntry, DiscountType, ProductUpdate
from catalog_checker.domain.money import format_decimal
from catalog_checker.infrastructure.parsing.utils import (
    format_timestamp,
    parse_decimal,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

NO_DISCOUNT = "none"


def write_json_atomic(path: Path, data: Any, operation: str = "write snapshot") -> None:
    """Write ``data`` to a temp file next to ``path`` and swap it in."""
    path = Path(path)
    payload = json.dumps(data, ensure_ascii=False, indent=2)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as handle:
            tmp_name = handle.name
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise CollaboratorError(operation, str(exc), changed=False) from exc


def keyed_by_product(entries: Iterable[Any], dump, operation: str) -> dict[str, Any]:
    """Key documents by product id. A repeated id fails the write before anything is saved."""
    documents: dict[str, Any] = {}
    duplicates: list[str] = []
    for entry in entries:
        if entry.product_id in documents:
            duplicates.append(entry.product_id)
        documents[entry.product_id] = dump(entry)
    if duplicates:
        listed = ", ".join(sorted(set(duplicates)))
        logger.error("Refusing to %s: duplicate product ids %s", operation, listed)
        raise CollaboratorError(operation, f"duplicate product ids: {listed}", changed=False)
    return documents


class InMemoryCatalogStore:
    """Catalog reader over an already materialized ``group -> item -> products`` tree."""

    def __init__(self, tree: Mapping[str, Any]) -> None:
        self._tree = tree

    def list_groups(self) -> Iterable[str]:
        if not isinstance(self._tree, Mapping):
            raise StructuralError("products", "catalog root is not a mapping")
        return list(self._tree)

    def list_items(self, group: str) -> Iterable[str]:
        items = self._tree.get(group)
        if not isinstance(items, Mapping):
            raise StructuralError(group, f"expected items mapping, got {type(items).__name__}")
        return list(items)

    def list_products(self, group: str, item: str) -> Iterable[tuple[str | None, object]]:
        products = self._tree[group][item]
        if isinstance(products, Mapping):
            return [(str(product_id), document) for product_id, document in products.items()]
        if isinstance(products, list):
            pairs: list[tuple[str | None, object]] = []
            for document in products:
                product_id = document.get("id") if isinstance(document, Mapping) else None
                pairs.append((str(product_id) if product_id is not None else None, document))
            return pairs
        raise StructuralError(f"{group}/{item}", f"expected product collection, got {type(products).__name__}")


class JsonSnapshotStore:
    """Catalog, discount and bestseller repository over one JSON snapshot file.

    Every write replaces the whole file atomically, so a failed write leaves
    the previous snapshot untouched.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._document: dict[str, Any] | None = None
        self.rejected_documents: list[tuple[str, str, str]] = []

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._document is None:
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                raise CollaboratorError("read snapshot", str(exc)) from exc
            if not isinstance(data, dict):
                raise CollaboratorError("read snapshot", "snapshot root is not an object")
            self._document = data
        return self._document

    def _save(self, document: dict[str, Any], operation: str) -> None:
        write_json_atomic(self._path, document, operation=operation)
        self._document = document

    # Catalog reader

    def _catalog(self) -> InMemoryCatalogStore:
        return InMemoryCatalogStore(self._load().get("products", {}))

    def list_groups(self) -> Iterable[str]:
        return self._catalog().list_groups()

    def list_items(self, group: str) -> Iterable[str]:
        return self._catalog().list_items(group)

    def list_products(self, group: str, item: str) -> Iterable[tuple[str | None, object]]:
        return self._catalog().list_products(group, item)

    def apply_product_updates(self, updates: Sequence[ProductUpdate]) -> int:
        document = json.loads(json.dumps(self._load()))
        tree = document.get("products", {})
        for update in updates:
            target = self._find_product(tree, update)
            if target is None:
                raise CollaboratorError(
                    "update products",
                    f"{update.category_group}/{update.category_item}/{update.product_id} not found",
                    changed=False,
                )
            target.update(update.fields)
        if updates:
            self._save(document, "update products")
        return len(updates)

    @staticmethod
    def _find_product(tree: Mapping[str, Any], update: ProductUpdate) -> dict[str, Any] | None:
        products = tree.get(update.category_group, {}).get(update.category_item)
        if isinstance(products, dict):
            found = products.get(update.product_id)
            return found if isinstance(found, dict) else None
        if isinstance(products, list):
            for document in products:
                if isinstance(document, dict) and str(document.get("id")) == update.product_id:
                    return document
        return None

    # Discounts

    def list_discounts(self) -> Sequence[DiscountEntry]:
        self._clear_rejections("discounts")
        entries: list[DiscountEntry] = []
        for key, raw in self._load().get("discounts", {}).items():
            try:
                entries.append(self._parse_discount(str(key), raw))
            except (KeyError, TypeError, ValueError) as exc:
                self._reject("discounts", str(key), exc)
        return entries

    def replace_all_discounts(self, entries: Sequence[DiscountEntry]) -> None:
        document = dict(self._load())
        document["discounts"] = keyed_by_product(entries, self._dump_discount, "replace discounts")
        self._save(document, "replace discounts")
        logger.info("Replaced discounts with %d entries in %s", len(entries), self._path)

    @staticmethod
    def _parse_discount(key: str, raw: Mapping[str, Any]) -> DiscountEntry:
        if not isinstance(raw, Mapping):
            raise TypeError("discount document is not a mapping")
        value = parse_decimal(raw.get("discountValue"))
        if value <= 0:
            raise ValueError(f"discountValue must be positive, got {raw.get('discountValue')!r}")
        active_from = parse_timestamp(raw["startTimestamp"])
        active_until = parse_timestamp(raw["endTimestamp"])
        if active_from > active_until:
            raise ValueError("startTimestamp is after endTimestamp")
        return DiscountEntry(
            product_id=str(raw.get("productID") or raw.get("productId") or key),
            discount_type=DiscountType(raw["discountType"]),
            discount_value=value,
            active_from=active_from,
            active_until=active_until,
            active=bool(raw.get("active", True)),
        )

    @staticmethod
    def _dump_discount(entry: DiscountEntry) -> dict[str, Any]:
        return {
            "productID": entry.product_id,
            "discountType": entry.discount_type.value,
            "discountValue": format_decimal(entry.discount_value),
            "startTimestamp": format_timestamp(entry.active_from),
            "endTimestamp": format_timestamp(entry.active_until),
            "active": entry.active,
        }

    # Bestsellers

    def list_bestsellers(self) -> Sequence[BestsellerEntry]:
        self._clear_rejections("bestsellers")
        entries: list[BestsellerEntry] = []
        for key, raw in self._load().get("bestsellers", {}).items():
            try:
                entries.append(self._parse_bestseller(str(key), raw))
            except (KeyError, TypeError, ValueError) as exc:
                self._reject("bestsellers", str(key), exc)
        return sorted(entries, key=lambda entry: entry.rank)

    def replace_all_bestsellers(self, entries: Sequence[BestsellerEntry]) -> None:
        document = dict(self._load())
        document["bestsellers"] = keyed_by_product(entries, self._dump_bestseller, "replace bestsellers")
        self._save(document, "replace bestsellers")
        logger.info("Replaced bestsellers with %d entries in %s", len(entries), self._path)

    @staticmethod
    def _parse_bestseller(key: str, raw: Mapping[str, Any]) -> BestsellerEntry:
        if not isinstance(raw, Mapping):
            raise TypeError("bestseller document is not a mapping")
        rank = raw["rank"]
        if isinstance(rank, bool) or int(rank) != rank or int(rank) < 1:
            raise ValueError(f"rank must be a positive integer, got {rank!r}")
        raw_type = raw.get("discountType") or NO_DISCOUNT
        discount_type = None if raw_type == NO_DISCOUNT else DiscountType(raw_type)
        return BestsellerEntry(
            product_id=str(raw.get("productId") or raw.get("productID") or key),
            rank=int(rank),
            discount_type=discount_type,
            discount_value=parse_decimal(raw.get("discountValue")) if discount_type is not None else None,
        )

    @staticmethod
    def _dump_bestseller(entry: BestsellerEntry) -> dict[str, Any]:
        return {
            "productId": entry.product_id,
            "rank": entry.rank,
            "discountType": entry.discount_type.value if entry.discount_type else NO_DISCOUNT,
            "discountValue": format_decimal(entry.discount_value) if entry.discount_value is not None else 0,
        }

    def _clear_rejections(self, collection: str) -> None:
        self.rejected_documents = [entry for entry in self.rejected_documents if entry[0] != collection]

    def _reject(self, collection: str, key: str, exc: Exception) -> None:
        logger.warning("Skipping malformed %s document %s: %s", collection, key, exc)
        self.rejected_documents.append((collection, key, str(exc)))
