"""Audit and regeneration toolkit for a hierarchical product catalog."""
from catalog_checker.application.use_cases import (
    AuditPromotionsUseCase,
    CatalogContext,
    PatchCatalogUseCase,
    RegenerateBestsellersUseCase,
    RegenerateDiscountsUseCase,
)
from catalog_checker.domain.assigner import RandomizedAssigner
from catalog_checker.domain.indexer import CatalogIndexer
from catalog_checker.domain.services import PromotionReconciler
from catalog_checker.domain.summary import ReportSummarizer
from catalog_checker.infrastructure.repositories.json_repositories import (
    InMemoryCatalogStore,
    JsonSnapshotStore,
)

__all__ = [
    "AuditPromotionsUseCase",
    "CatalogContext",
    "PatchCatalogUseCase",
    "RegenerateBestsellersUseCase",
    "RegenerateDiscountsUseCase",
    "RandomizedAssigner",
    "CatalogIndexer",
    "PromotionReconciler",
    "ReportSummarizer",
    "InMemoryCatalogStore",
    "JsonSnapshotStore",
]
