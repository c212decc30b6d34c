"""Command-line entrypoint for catalog audits and promotion regeneration."""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from catalog_checker.application.archive.use_cases import ArchiveRunUseCase
from catalog_checker.application.dto import (
    BestsellerRequest,
    DiscountRequest,
    PatchRequest,
    RegenerationResult,
    RunStatus,
)
from catalog_checker.application.use_cases import (
    AuditPromotionsUseCase,
    CatalogContext,
    PatchCatalogUseCase,
    RegenerateBestsellersUseCase,
    RegenerateDiscountsUseCase,
)
from catalog_checker.config import Settings, load_settings
from catalog_checker.domain.archive.entities import ArchiveFile, ArchiveRunRequest
from catalog_checker.domain.assigner import RandomizedAssigner
from catalog_checker.domain.enrichment import build_catalog_export
from catalog_checker.domain.errors import CollaboratorError
from catalog_checker.domain.models import DiscountFilter
from catalog_checker.domain.results import BestsellerTargets
from catalog_checker.domain.services import PromotionReconciler, price_buckets_from_bounds
from catalog_checker.domain.summary import ReportSummarizer
from catalog_checker.infrastructure.archive.file_repository import FileSystemArchiveRepository
from catalog_checker.infrastructure.parsing.utils import parse_timestamp
from catalog_checker.infrastructure.repositories.json_repositories import JsonSnapshotStore, write_json_atomic
from catalog_checker.presentation.report import render_json, render_markdown, render_text

RENDERERS = {"text": render_text, "json": render_json, "markdown": render_markdown}


def decimal_arg(value: str) -> Decimal:
    try:
        result = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from exc
    if not result.is_finite():
        raise argparse.ArgumentTypeError(f"not a finite number: {value!r}")
    return result


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Audit and regenerate promotions of a product catalog snapshot")
    parser.add_argument("--settings", type=Path, help="Path to a JSON settings override file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress details")
    sub = parser.add_subparsers(dest="command", required=True)

    audit = sub.add_parser("audit", help="Cross-check discounts and bestsellers against the catalog")
    audit.add_argument("snapshot", type=Path, help="Path to the catalog snapshot JSON")
    audit.add_argument("--as-of", type=str, help="Reference time for effective discounts (ISO 8601)")
    audit.add_argument("--format", choices=sorted(RENDERERS), default="text")
    audit.add_argument("--output", type=Path, help="Write the rendered report to this file")
    audit.add_argument("--archive", action="store_true", help="Archive the snapshot and reports of this run")

    discounts = sub.add_parser("assign-discounts", help="Replace all discounts with a random selection")
    discounts.add_argument("snapshot", type=Path)
    discounts.add_argument("--count", type=int, help="Number of products to discount")
    discounts.add_argument("--flat-threshold", type=decimal_arg, help="Minimum price (exclusive) for flat discounts")
    discounts.add_argument("--seed", type=int)

    bestsellers = sub.add_parser("assign-bestsellers", help="Replace all bestsellers with a random selection")
    bestsellers.add_argument("snapshot", type=Path)
    bestsellers.add_argument(
        "--discount-filter",
        required=True,
        choices=[mode.value for mode in DiscountFilter],
        help="Which discounts count when building the discounted pools",
    )
    bestsellers.add_argument("--total", type=int)
    bestsellers.add_argument("--flat", type=int)
    bestsellers.add_argument("--percentage", type=int)
    bestsellers.add_argument("--seed", type=int)
    bestsellers.add_argument("--as-of", type=str)

    patch = sub.add_parser("patch", help="Write hasDiscount, itemBackgroundColor and imagePath onto products")
    patch.add_argument("snapshot", type=Path)
    patch.add_argument("--no-discount-flags", action="store_true")
    patch.add_argument("--no-colors", action="store_true")
    patch.add_argument("--no-images", action="store_true", help="Leave imagePath untouched")
    patch.add_argument("--dry-run", action="store_true")

    export = sub.add_parser("export", help="Export the flattened catalog as JSON")
    export.add_argument("snapshot", type=Path)
    export.add_argument("output", type=Path)
    export.add_argument("--with-discounts", action="store_true", help="Compute hasDiscount from the discounts collection")
    return parser.parse_args(argv)


def _context(store: JsonSnapshotStore) -> CatalogContext:
    return CatalogContext(catalog=store, discounts=store, bestsellers=store, updater=store)


def build_reconciler(settings: Settings) -> PromotionReconciler:
    return PromotionReconciler(
        high_value_threshold=settings.high_value_threshold,
        price_buckets=price_buckets_from_bounds(settings.price_bucket_bounds),
        bestseller_targets=BestsellerTargets(
            flat=settings.bestseller_flat,
            percentage=settings.bestseller_percentage,
            undiscounted=settings.bestseller_undiscounted,
        ),
    )


def build_assigner(settings: Settings) -> RandomizedAssigner:
    return RandomizedAssigner(
        percentage_range=settings.percentage_range,
        flat_range=settings.flat_range,
        window_days=settings.window_days,
    )


def _print_index_anomalies(result) -> None:
    index_result = result.index_result
    print(f"Products indexed: {len(index_result.index)}")
    if index_result.duplicates:
        print(f"Duplicate product ids: {len(index_result.duplicates)}")
        for duplicate in index_result.duplicates:
            print(f"- {duplicate.product_id}: {duplicate.replaced_path} replaced by {duplicate.kept_path}")
    if index_result.errors:
        print(f"Unreadable branches: {len(index_result.errors)}")
        for error in index_result.errors:
            print(f"- {error}")


def _print_regeneration(result: RegenerationResult, kind: str) -> None:
    _print_index_anomalies(result)
    if result.assignment is not None:
        count = len(getattr(result.assignment, kind))
        print(f"Generated {kind}: {count} (requested {result.assignment.requested})")
    for shortfall in result.shortfalls:
        print(f"- pool {shortfall.pool}: {shortfall.available} of {shortfall.requested} available")
    if result.error is not None:
        state = "store may be partially changed" if result.changed else "nothing was changed"
        print(f"Write failed ({state}): {result.error}")


def run_audit(args: argparse.Namespace, settings: Settings, store: JsonSnapshotStore) -> int:
    as_of = parse_timestamp(args.as_of) if args.as_of else None
    use_case = AuditPromotionsUseCase(_context(store), build_reconciler(settings), ReportSummarizer(top_n=settings.top_n))
    result = use_case.execute(as_of=as_of)

    rendered = RENDERERS[args.format](result.summary)
    if args.output:
        args.output.write_text(rendered, encoding="utf-8")
        print(f"Report written to {args.output}")
    else:
        print(rendered)
    _print_index_anomalies(result)
    for collection, key, reason in store.rejected_documents:
        print(f"Rejected {collection} document {key}: {reason}")

    if args.archive:
        run_id = datetime.now(settings.timezone).strftime("%Y%m%d_%H%M%S")
        receipt = ArchiveRunUseCase(FileSystemArchiveRepository(settings.history_dir)).execute(
            ArchiveRunRequest(
                run_id=run_id,
                command="audit",
                inputs=[ArchiveFile(name=args.snapshot.name, content=args.snapshot.read_bytes())],
                outputs=[
                    ArchiveFile(name="summary.json", content=render_json(result.summary).encode("utf-8")),
                    ArchiveFile(name="report.md", content=render_markdown(result.summary).encode("utf-8")),
                ],
                metadata={"status": result.status.value, "passed": result.summary.passed},
            )
        )
        print(f"Archived run to {receipt.location}")
    return result.status.exit_code


def run_assign_discounts(args: argparse.Namespace, settings: Settings, store: JsonSnapshotStore) -> int:
    request = DiscountRequest(
        target_count=args.count if args.count is not None else settings.discount_target_count,
        price_threshold_for_flat=(
            args.flat_threshold if args.flat_threshold is not None else settings.flat_price_threshold
        ),
        rng_seed=args.seed,
    )
    result = RegenerateDiscountsUseCase(_context(store), build_assigner(settings)).execute(request)
    _print_regeneration(result, "discounts")
    if result.assignment is not None and result.error is None:
        for discount_type, count in result.assignment.type_counts().items():
            print(f"- {discount_type.value}: {count}")
    return result.status.exit_code


def run_assign_bestsellers(args: argparse.Namespace, settings: Settings, store: JsonSnapshotStore) -> int:
    request = BestsellerRequest(
        discount_filter=DiscountFilter(args.discount_filter),
        total_slots=args.total if args.total is not None else settings.bestseller_total,
        flat_slots=args.flat if args.flat is not None else settings.bestseller_flat,
        percentage_slots=args.percentage if args.percentage is not None else settings.bestseller_percentage,
        rng_seed=args.seed,
        as_of=parse_timestamp(args.as_of) if args.as_of else None,
    )
    result = RegenerateBestsellersUseCase(_context(store), build_assigner(settings)).execute(request)
    _print_regeneration(result, "bestsellers")
    if result.assignment is not None and result.error is None:
        for entry in result.assignment.bestsellers:
            kind = entry.discount_type.value if entry.discount_type else "none"
            print(f"Rank #{entry.rank}: {entry.product_id} ({kind})")
    return result.status.exit_code


def run_patch(args: argparse.Namespace, settings: Settings, store: JsonSnapshotStore) -> int:
    request = PatchRequest(
        discount_flags=not args.no_discount_flags,
        background_colors=not args.no_colors,
        image_paths=not args.no_images,
        dry_run=args.dry_run,
    )
    result = PatchCatalogUseCase(
        _context(store), settings.background_colors, settings.image_url_template
    ).execute(request)
    _print_index_anomalies(result)
    print(f"Products to update: {len(result.plan.updates)}")
    print(f"Products skipped (no changes needed): {result.plan.skipped}")
    if result.plan.unknown_categories:
        print(f"Categories without a background color: {', '.join(result.plan.unknown_categories)}")
    if result.plan.missing_images:
        print(f"Products without a stored image URL: {len(result.plan.missing_images)}")
    if request.dry_run:
        print("Dry run; nothing was written.")
    elif result.error is not None:
        state = "store may be partially changed" if result.changed else "nothing was changed"
        print(f"Write failed ({state}): {result.error}")
    else:
        print(f"Products updated: {result.applied}")
    return result.status.exit_code


def run_export(args: argparse.Namespace, settings: Settings, store: JsonSnapshotStore) -> int:
    context = _context(store)
    index_result = context.indexer.build_index(store)
    discounts = store.list_discounts() if args.with_discounts else None
    export = build_catalog_export(index_result.index, discounts=discounts, palette=settings.background_colors)
    write_json_atomic(args.output, export, operation="export catalog")
    print(f"Exported {len(index_result.index)} products to {args.output}")
    status = RunStatus.PARTIAL if index_result.has_anomalies() else RunStatus.SUCCESS
    return status.exit_code


COMMANDS = {
    "audit": run_audit,
    "assign-discounts": run_assign_discounts,
    "assign-bestsellers": run_assign_bestsellers,
    "patch": run_patch,
    "export": run_export,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    settings = load_settings(args.settings)
    store = JsonSnapshotStore(args.snapshot)
    try:
        return COMMANDS[args.command](args, settings, store)
    except CollaboratorError as exc:
        print(f"Run failed: {exc}", file=sys.stderr)
        return RunStatus.FAILED.exit_code
    except ValueError as exc:
        print(f"Invalid arguments: {exc}", file=sys.stderr)
        return RunStatus.FAILED.exit_code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
