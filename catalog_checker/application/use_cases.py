"""Application services orchestrating catalog audits and regeneration runs."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping

from catalog_checker.application.dto import (
    AuditResult,
    BestsellerRequest,
    DiscountRequest,
    PatchRequest,
    PatchResult,
    RegenerationResult,
    RunStatus,
)
from catalog_checker.domain.assigner import RandomizedAssigner
from catalog_checker.domain.enrichment import (
    IMAGE_URL_TEMPLATE,
    FlagPlan,
    plan_background_colors,
    plan_discount_flags,
    plan_image_paths,
)
from catalog_checker.domain.errors import CollaboratorError
from catalog_checker.domain.indexer import CatalogIndexer
from catalog_checker.domain.models import DiscountFilter, filter_discounts
from catalog_checker.domain.repositories import (
    BestsellerRepository,
    CatalogStoreReader,
    DiscountRepository,
    ProductUpdater,
)
from catalog_checker.domain.results import IndexBuildResult
from catalog_checker.domain.services import PromotionReconciler
from catalog_checker.domain.summary import ReportSummarizer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CatalogContext:
    catalog: CatalogStoreReader
    discounts: DiscountRepository
    bestsellers: BestsellerRepository
    updater: ProductUpdater | None = None
    indexer: CatalogIndexer = field(default_factory=CatalogIndexer)


def _status(*partial_conditions: bool) -> RunStatus:
    return RunStatus.PARTIAL if any(partial_conditions) else RunStatus.SUCCESS


class AuditPromotionsUseCase:
    def __init__(
        self,
        context: CatalogContext,
        reconciler: PromotionReconciler,
        summarizer: ReportSummarizer,
    ) -> None:
        self._context = context
        self._reconciler = reconciler
        self._summarizer = summarizer

    def execute(self, as_of: datetime | None = None) -> AuditResult:
        index_result = self._context.indexer.build_index(self._context.catalog)
        discounts = self._context.discounts.list_discounts()
        bestsellers = self._context.bestsellers.list_bestsellers()
        report = self._reconciler.reconcile(index_result.index, discounts, bestsellers, as_of=as_of)
        summary = self._summarizer.summarize(report)
        status = _status(index_result.has_anomalies(), report.has_issues())
        logger.info("Audit finished with status %s", status.value)
        return AuditResult(status=status, index_result=index_result, report=report, summary=summary)


class RegenerateDiscountsUseCase:
    """Replaces the whole discount collection with a freshly generated one."""

    def __init__(self, context: CatalogContext, assigner: RandomizedAssigner) -> None:
        self._context = context
        self._assigner = assigner

    def execute(self, request: DiscountRequest) -> RegenerationResult:
        index_result = self._context.indexer.build_index(self._context.catalog)
        if not index_result.index:
            logger.error("No products found in the catalog; discounts left untouched")
            return RegenerationResult(status=RunStatus.FAILED, changed=False, index_result=index_result)

        assignment = self._assigner.assign_discounts(
            index_result.index,
            rng_seed=request.rng_seed,
            target_count=request.target_count,
            price_threshold_for_flat=request.price_threshold_for_flat,
            now=request.now,
        )
        try:
            self._context.discounts.replace_all_discounts(assignment.discounts)
        except CollaboratorError as exc:
            logger.error("Discount replacement failed: %s", exc)
            return RegenerationResult(
                status=RunStatus.FAILED,
                changed=exc.changed,
                index_result=index_result,
                assignment=assignment,
                error=exc,
            )
        return RegenerationResult(
            status=_status(index_result.has_anomalies(), bool(assignment.shortfalls)),
            changed=True,
            index_result=index_result,
            assignment=assignment,
        )


class RegenerateBestsellersUseCase:
    """Replaces the bestseller collection using an explicitly filtered discount pool."""

    def __init__(self, context: CatalogContext, assigner: RandomizedAssigner) -> None:
        self._context = context
        self._assigner = assigner

    def execute(self, request: BestsellerRequest) -> RegenerationResult:
        index_result = self._context.indexer.build_index(self._context.catalog)
        if not index_result.index:
            logger.error("No products found in the catalog; bestsellers left untouched")
            return RegenerationResult(status=RunStatus.FAILED, changed=False, index_result=index_result)

        as_of = request.as_of
        if request.discount_filter is DiscountFilter.EFFECTIVE and as_of is None:
            as_of = datetime.now(timezone.utc)
        discounts = filter_discounts(self._context.discounts.list_discounts(), request.discount_filter, as_of)
        logger.info("Using %d discounts (%s filter) for bestseller pools", len(discounts), request.discount_filter.value)

        assignment = self._assigner.assign_bestsellers(
            index_result.index,
            discounts,
            rng_seed=request.rng_seed,
            total_slots=request.total_slots,
            flat_slots=request.flat_slots,
            percentage_slots=request.percentage_slots,
        )
        try:
            self._context.bestsellers.replace_all_bestsellers(assignment.bestsellers)
        except CollaboratorError as exc:
            logger.error("Bestseller replacement failed: %s", exc)
            return RegenerationResult(
                status=RunStatus.FAILED,
                changed=exc.changed,
                index_result=index_result,
                assignment=assignment,
                error=exc,
            )
        return RegenerationResult(
            status=_status(index_result.has_anomalies(), bool(assignment.shortfalls)),
            changed=True,
            index_result=index_result,
            assignment=assignment,
        )


class PatchCatalogUseCase:
    """Writes computed fields (discount flags, background colors, image URLs) back onto products."""

    def __init__(
        self,
        context: CatalogContext,
        palette: Mapping[str, int],
        image_url_template: str = IMAGE_URL_TEMPLATE,
    ) -> None:
        if context.updater is None:
            raise ValueError("PatchCatalogUseCase needs a context with a product updater")
        self._context = context
        self._palette = palette
        self._image_url_template = image_url_template

    def plan(self, index_result: IndexBuildResult, request: PatchRequest) -> FlagPlan:
        plan = FlagPlan(updates=())
        if request.discount_flags:
            discounts = self._context.discounts.list_discounts()
            plan = plan.merge(plan_discount_flags(index_result.index, discounts))
        if request.background_colors:
            plan = plan.merge(plan_background_colors(index_result.index, self._palette))
        if request.image_paths:
            plan = plan.merge(plan_image_paths(index_result.index, self._image_url_template))
        return plan

    def execute(self, request: PatchRequest) -> PatchResult:
        index_result = self._context.indexer.build_index(self._context.catalog)
        plan = self.plan(index_result, request)
        partial = _status(index_result.has_anomalies(), bool(plan.unknown_categories))
        if request.dry_run or not plan.updates:
            return PatchResult(status=partial, changed=False, index_result=index_result, plan=plan)
        try:
            applied = self._context.updater.apply_product_updates(plan.updates)
        except CollaboratorError as exc:
            logger.error("Product patch failed: %s", exc)
            return PatchResult(
                status=RunStatus.FAILED,
                changed=exc.changed,
                index_result=index_result,
                plan=plan,
                error=exc,
            )
        return PatchResult(status=partial, changed=applied > 0, index_result=index_result, plan=plan, applied=applied)
