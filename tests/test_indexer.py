from decimal import Decimal

from catalog_checker.domain.errors import CollaboratorError, StructuralError
from catalog_checker.domain.indexer import UNKNOWN_PRODUCT_NAME, CatalogIndexer
from catalog_checker.infrastructure.repositories.json_repositories import InMemoryCatalogStore


def make_tree():
    return {
        "snacks_drinks": {
            "chips": {"p1": {"name": "Salted Chips", "price": 20}},
            "cola": {"p2": {"name": "Cola", "price": "45.50"}},
        },
        "grocery_kitchen": {
            "rice": [{"id": "p3", "name": "Basmati", "price": 350, "imagePath": "rice.png"}],
        },
    }


class FailingItemsStore(InMemoryCatalogStore):
    def list_items(self, group):
        if group == "broken":
            raise CollaboratorError("list items", "connection reset")
        return super().list_items(group)


def test_index_contains_every_product_with_its_path():
    result = CatalogIndexer().build_index(InMemoryCatalogStore(make_tree()))

    assert set(result.index) == {"p1", "p2", "p3"}
    assert result.index["p2"].price == Decimal("45.50")
    assert result.index["p3"].path == "grocery_kitchen/rice"
    assert result.index["p3"].attributes["imagePath"] == "rice.png"
    assert not result.has_anomalies()


def test_missing_name_and_price_use_defaults():
    tree = {"g": {"i": {"p1": {}}}}
    result = CatalogIndexer().build_index(InMemoryCatalogStore(tree))

    product = result.index["p1"]
    assert product.name == UNKNOWN_PRODUCT_NAME
    assert product.price == Decimal("0")


def test_duplicate_product_id_keeps_last_occurrence():
    tree = {
        "g1": {"i1": {"dup": {"name": "First", "price": 10}}},
        "g2": {"i2": {"dup": {"name": "Second", "price": 99}}},
    }
    result = CatalogIndexer().build_index(InMemoryCatalogStore(tree))

    assert len(result.index) == 1
    assert result.index["dup"].name == "Second"
    assert result.index["dup"].path == "g2/i2"
    assert len(result.duplicates) == 1
    duplicate = result.duplicates[0]
    assert duplicate.replaced_path == "g1/i1"
    assert duplicate.kept_path == "g2/i2"
    assert result.has_anomalies()


def test_malformed_branch_is_skipped_and_reported():
    tree = make_tree()
    tree["bad_group"] = ["not", "a", "mapping"]
    tree["snacks_drinks"]["bad_item"] = 42
    result = CatalogIndexer().build_index(InMemoryCatalogStore(tree))

    assert set(result.index) == {"p1", "p2", "p3"}
    assert len(result.errors) == 2
    assert all(isinstance(error, StructuralError) for error in result.errors)
    assert {error.path for error in result.errors} == {"bad_group", "snacks_drinks/bad_item"}


def test_unreadable_price_is_a_structural_error():
    tree = {"g": {"i": {"ok": {"price": 5}, "bad": {"price": "abc"}, "neg": {"price": -3}}}}
    result = CatalogIndexer().build_index(InMemoryCatalogStore(tree))

    assert set(result.index) == {"ok"}
    assert {error.path for error in result.errors} == {"g/i/bad", "g/i/neg"}


def test_list_product_without_id_is_rejected():
    tree = {"g": {"i": [{"name": "Nameless", "price": 3}, {"id": 7, "price": 4}, "junk"]}}
    result = CatalogIndexer().build_index(InMemoryCatalogStore(tree))

    assert set(result.index) == {"7"}
    assert len(result.errors) == 2


def test_collaborator_failure_skips_only_that_branch():
    tree = make_tree()
    tree["broken"] = {"x": {"p9": {"price": 1}}}
    result = CatalogIndexer().build_index(FailingItemsStore(tree))

    assert "p9" not in result.index
    assert len(result.index) == 3
    assert len(result.errors) == 1
    assert isinstance(result.errors[0], CollaboratorError)


def test_empty_store_gives_empty_index():
    result = CatalogIndexer().build_index(InMemoryCatalogStore({}))

    assert len(result.index) == 0
    assert not result.has_anomalies()
