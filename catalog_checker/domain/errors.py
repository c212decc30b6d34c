"""Error taxonomy for catalog indexing, reconciliation and assignment."""
from __future__ import annotations

from dataclasses import dataclass


class CatalogError(Exception):
    """Base class for errors raised by catalog_checker."""


class StructuralError(CatalogError):
    """A store branch has a shape the indexer cannot interpret."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class CollaboratorError(CatalogError):
    """An external reader or writer failed outright.

    ``changed`` tells the caller whether the backing store may have been
    modified before the failure.
    """

    def __init__(self, operation: str, message: str, changed: bool = False) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.message = message
        self.changed = changed


@dataclass(frozen=True)
class DanglingReference:
    """An overlay entry pointing at a product that is not in the index."""

    collection: str
    product_id: str


@dataclass(frozen=True)
class InsufficientCandidates:
    """A requested quota could only be partially filled."""

    pool: str
    requested: int
    available: int

    @property
    def shortfall(self) -> int:
        return self.requested - self.available
