"""Renderers for reconciliation summaries.

Everything here is formatting; the numbers come from ``Summary``.
"""
from __future__ import annotations

import csv
import io
import json
from decimal import Decimal
from typing import Sequence

import pandas as pd

from catalog_checker.domain.models import DiscountType
from catalog_checker.domain.results import DiscountCheck
from catalog_checker.domain.summary import CountShare, Summary

CURRENCY = "₹"


def format_currency(value: Decimal) -> str:
    return f"{CURRENCY}{value:.2f}"


def format_discount(discount_type: DiscountType, value: Decimal) -> str:
    if discount_type is DiscountType.FLAT:
        return f"Flat {format_currency(value)} off"
    return f"{value}% off"


def _title(category: str) -> str:
    return " ".join(word.capitalize() for word in category.split("_"))


def _metric(name: str, share: CountShare) -> dict[str, str]:
    return {"metric": name, "count": str(share.count), "percentage": f"{share.percentage}%"}


def summary_to_rows(summary: Summary) -> list[dict[str, str]]:
    rows = [
        {"metric": "Total products", "count": str(summary.total_products), "percentage": ""},
        {"metric": "Total discounts", "count": str(summary.total_discounts), "percentage": "100%"},
        _metric("Valid discounts", summary.valid_discounts),
        _metric("Invalid discounts", summary.invalid_discounts),
    ]
    for discount_type, share in summary.discount_types.items():
        rows.append(_metric(f"{discount_type.value.capitalize()} discounts", share))
    rows.append(_metric(f"Products priced above {summary.high_value_threshold}", summary.high_value_products))
    rows.append(_metric("High-value products with discounts", summary.high_value_discounted))
    rows.append(_metric("Products with an image", summary.image_coverage))
    rows.append({"metric": "Total bestsellers", "count": str(summary.total_bestsellers), "percentage": "100%"})
    rows.append(_metric("Valid bestsellers", summary.valid_bestsellers))
    rows.append(_metric("Invalid bestsellers", summary.invalid_bestsellers))
    for bestseller_class, share in summary.bestseller_classes.items():
        rows.append(_metric(f"Bestsellers ({bestseller_class.value})", share))
    if summary.effective_discounts is not None:
        rows.append({"metric": "Currently effective discounts", "count": str(summary.effective_discounts), "percentage": ""})
    return rows


def price_histogram_to_rows(summary: Summary) -> list[dict[str, str]]:
    return [
        {"range": label, "count": str(share.count), "percentage": f"{share.percentage}%"}
        for label, share in summary.price_histogram.items()
    ]


def discount_checks_to_rows(checks: Sequence[DiscountCheck]) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for check in checks:
        rows.append(
            {
                "product_id": check.product.product_id,
                "product_name": check.product.name,
                "category": check.product.path,
                "discount_type": check.entry.discount_type.value,
                "discount": format_discount(check.entry.discount_type, check.entry.discount_value),
                "original_price": format_currency(check.product.price),
                "final_price": format_currency(check.discounted_price),
                "savings": format_currency(check.savings),
                "savings_percentage": f"{check.savings_percentage:.1f}%",
                "valid_until": check.entry.active_until.date().isoformat(),
            }
        )
    return rows


def dangling_to_rows(summary: Summary) -> list[dict[str, str]]:
    rows = [{"collection": "discounts", "product_id": pid} for pid in summary.dangling_discount_ids]
    rows.extend({"collection": "bestsellers", "product_id": pid} for pid in summary.dangling_bestseller_ids)
    return rows


def render_csv(rows: Sequence[dict[str, str]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()) if rows else [])
    if rows:
        writer.writeheader()
        writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def _html_table(rows: Sequence[dict[str, str]]) -> str:
    if not rows:
        return "<p>None.</p>"
    header = "".join(f"<th>{col}</th>" for col in rows[0].keys())
    body = "".join("<tr>" + "".join(f"<td>{value}</td>" for value in row.values()) + "</tr>" for row in rows)
    return f"<table><thead><tr>{header}</tr></thead><tbody>{body}</tbody></table>"


def render_html(summary: Summary) -> str:
    parts = [
        "<h2>Summary</h2>",
        _html_table(summary_to_rows(summary)),
        "<h2>Price distribution</h2>",
        _html_table(price_histogram_to_rows(summary)),
        "<h2>Top discounts by savings</h2>",
        _html_table(discount_checks_to_rows(summary.top_savings)),
        "<h2>Dangling references</h2>",
        _html_table(dangling_to_rows(summary)),
    ]
    return "".join(parts)


def _md_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> list[str]:
    lines = ["| " + " | ".join(headers) + " |", "| " + " | ".join("-" * len(h) for h in headers) + " |"]
    lines.extend("| " + " | ".join(row) + " |" for row in rows)
    lines.append("")
    return lines


def render_markdown(summary: Summary, title: str = "Promotion Verification Report") -> str:
    lines = [f"# {title}", ""]
    status = "PASSED" if summary.passed else "ISSUES FOUND"
    lines += [f"**Status:** {status}", ""]

    lines += ["## Summary", ""]
    lines += _md_table(
        ["Metric", "Count", "Percentage"],
        [[row["metric"], row["count"], row["percentage"]] for row in summary_to_rows(summary)],
    )

    lines += ["### Price Distribution", ""]
    lines += _md_table(
        ["Price Range", "Product Count", "Percentage"],
        [[row["range"], row["count"], row["percentage"]] for row in price_histogram_to_rows(summary)],
    )

    lines += ["## Discount Efficiency", ""]
    lines += _md_table(
        ["Metric", "Value"],
        [
            ["Average Discount Amount", format_currency(summary.average_savings)],
            ["Average Discount Percentage", f"{summary.average_savings_percentage:.1f}%"],
            ["Maximum Discount Amount", format_currency(summary.max_savings)],
            ["Maximum Discount Percentage", f"{summary.max_savings_percentage:.1f}%"],
        ],
    )

    if summary.top_savings:
        lines += [f"### Top {len(summary.top_savings)} Highest Discount Products", ""]
        lines += _md_table(
            ["Product", "Original Price", "Discount", "Final Price", "Savings"],
            [
                [
                    row["product_name"],
                    row["original_price"],
                    row["discount"],
                    row["final_price"],
                    f"{row['savings']} ({row['savings_percentage']})",
                ]
                for row in discount_checks_to_rows(summary.top_savings)
            ],
        )

    if summary.bestseller_targets:
        lines += ["## Bestseller Mix", ""]
        lines += _md_table(
            ["Class", "Expected", "Actual", "Met"],
            [
                [cls.value, str(cmp.expected), str(cmp.actual), "yes" if cmp.met else "no"]
                for cls, cmp in summary.bestseller_targets.items()
            ],
        )

    for heading, categories in (
        ("Discounts by Category", summary.discount_categories),
        ("Bestsellers by Category", summary.bestseller_categories),
    ):
        if categories:
            lines += [f"## {heading}", ""]
            lines += _md_table(
                ["Category", "Count", "Percentage"],
                [[_title(name), str(share.count), f"{share.percentage}%"] for name, share in categories.items()],
            )

    dangling = dangling_to_rows(summary)
    if dangling:
        lines += [f"## Dangling References ({len(dangling)})", ""]
        lines += _md_table(["Collection", "Product ID"], [[row["collection"], f"`{row['product_id']}`"] for row in dangling])

    if summary.duplicate_ranks:
        lines += ["## Duplicate Ranks", ""]
        lines += _md_table(
            ["Rank", "Product IDs"],
            [[str(rank), ", ".join(ids)] for rank, ids in summary.duplicate_ranks.items()],
        )

    if summary.notes:
        lines += ["## Recommendations", ""]
        lines += [f"- {note}" for note in summary.notes]
        lines.append("")
    return "\n".join(lines)


def render_text(summary: Summary) -> str:
    lines = ["Promotion Summary", "================="]
    for row in summary_to_rows(summary):
        suffix = f" ({row['percentage']})" if row["percentage"] else ""
        lines.append(f"{row['metric']}: {row['count']}{suffix}")
    lines.append("")
    lines.append("Price distribution:")
    for row in price_histogram_to_rows(summary):
        lines.append(f"  {row['range']}: {row['count']} products")
    for rank, ids in summary.duplicate_ranks.items():
        lines.append(f"Duplicate rank {rank}: {', '.join(ids)}")
    if summary.dangling_discount_ids or summary.dangling_bestseller_ids:
        lines.append("")
        lines.append("Dangling references:")
        for row in dangling_to_rows(summary):
            lines.append(f"- {row['collection']}: {row['product_id']}")
    lines.append("")
    lines.append("All checks passed." if summary.passed else "Issues detected.")
    return "\n".join(lines)


def _check_to_dict(check: DiscountCheck) -> dict[str, object]:
    return {
        "product_id": check.product.product_id,
        "name": check.product.name,
        "category": check.product.path,
        "discount_type": check.entry.discount_type.value,
        "discount_value": str(check.entry.discount_value),
        "original_price": str(check.product.price),
        "discounted_price": str(check.discounted_price),
        "savings": str(check.savings),
        "savings_percentage": str(check.savings_percentage),
    }


def summary_to_dict(summary: Summary) -> dict[str, object]:
    def share(value: CountShare) -> dict[str, object]:
        return {"count": value.count, "percentage": str(value.percentage)}

    return {
        "passed": summary.passed,
        "total_products": summary.total_products,
        "total_discounts": summary.total_discounts,
        "valid_discounts": share(summary.valid_discounts),
        "invalid_discounts": share(summary.invalid_discounts),
        "discount_types": {k.value: share(v) for k, v in summary.discount_types.items()},
        "price_histogram": {k: share(v) for k, v in summary.price_histogram.items()},
        "high_value_products": share(summary.high_value_products),
        "high_value_discounted": share(summary.high_value_discounted),
        "average_savings": str(summary.average_savings),
        "average_savings_percentage": str(summary.average_savings_percentage),
        "max_savings": str(summary.max_savings),
        "max_savings_percentage": str(summary.max_savings_percentage),
        "top_savings": [_check_to_dict(check) for check in summary.top_savings],
        "image_coverage": share(summary.image_coverage),
        "total_bestsellers": summary.total_bestsellers,
        "valid_bestsellers": share(summary.valid_bestsellers),
        "invalid_bestsellers": share(summary.invalid_bestsellers),
        "bestseller_classes": {k.value: share(v) for k, v in summary.bestseller_classes.items()},
        "bestseller_targets": {
            k.value: {"expected": v.expected, "actual": v.actual, "met": v.met}
            for k, v in summary.bestseller_targets.items()
        },
        "dangling_discount_ids": list(summary.dangling_discount_ids),
        "dangling_bestseller_ids": list(summary.dangling_bestseller_ids),
        "duplicate_ranks": {str(k): list(v) for k, v in summary.duplicate_ranks.items()},
        "discount_categories": {k: share(v) for k, v in summary.discount_categories.items()},
        "bestseller_categories": {k: share(v) for k, v in summary.bestseller_categories.items()},
        "effective_discounts": summary.effective_discounts,
        "notes": list(summary.notes),
    }


def render_json(summary: Summary) -> str:
    return json.dumps(summary_to_dict(summary), ensure_ascii=False, indent=2)


def summary_to_dataframe(summary: Summary) -> pd.DataFrame:
    return pd.DataFrame(summary_to_rows(summary), columns=["metric", "count", "percentage"])


def render_excel(summary: Summary, checks: Sequence[DiscountCheck]) -> bytes:
    buffer = io.BytesIO()
    sheets = {
        "Summary": summary_to_dataframe(summary),
        "Price Distribution": pd.DataFrame(price_histogram_to_rows(summary), columns=["range", "count", "percentage"]),
        "Discounts": pd.DataFrame(discount_checks_to_rows(checks)),
        "Dangling": pd.DataFrame(dangling_to_rows(summary), columns=["collection", "product_id"]),
    }
    with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
        for sheet_name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()
