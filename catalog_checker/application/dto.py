"""Application-level DTOs for catalog runs."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Sequence

from catalog_checker.domain.errors import CollaboratorError, InsufficientCandidates
from catalog_checker.domain.models import DiscountFilter
from catalog_checker.domain.enrichment import FlagPlan
from catalog_checker.domain.results import (
    BestsellerAssignment,
    DiscountAssignment,
    IndexBuildResult,
    ReconciliationReport,
)
from catalog_checker.domain.summary import Summary


class RunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        return {RunStatus.SUCCESS: 0, RunStatus.PARTIAL: 2, RunStatus.FAILED: 1}[self]


@dataclass(slots=True, frozen=True)
class AuditResult:
    status: RunStatus
    index_result: IndexBuildResult
    report: ReconciliationReport
    summary: Summary


@dataclass(slots=True, frozen=True)
class DiscountRequest:
    target_count: int
    price_threshold_for_flat: Decimal
    rng_seed: int | None = None
    now: datetime | None = None


@dataclass(slots=True, frozen=True)
class BestsellerRequest:
    discount_filter: DiscountFilter
    total_slots: int
    flat_slots: int
    percentage_slots: int
    rng_seed: int | None = None
    as_of: datetime | None = None


@dataclass(slots=True, frozen=True)
class RegenerationResult:
    status: RunStatus
    changed: bool
    index_result: IndexBuildResult
    assignment: DiscountAssignment | BestsellerAssignment | None = None
    error: CollaboratorError | None = None

    @property
    def shortfalls(self) -> Sequence[InsufficientCandidates]:
        return self.assignment.shortfalls if self.assignment is not None else ()


@dataclass(slots=True, frozen=True)
class PatchRequest:
    discount_flags: bool = True
    background_colors: bool = True
    image_paths: bool = True
    dry_run: bool = False


@dataclass(slots=True, frozen=True)
class PatchResult:
    status: RunStatus
    changed: bool
    index_result: IndexBuildResult
    plan: FlagPlan = field(default_factory=lambda: FlagPlan(updates=()))
    applied: int = 0
    error: CollaboratorError | None = None
