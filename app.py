"""Streamlit front-end for the catalog promotion audit."""
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import streamlit as st

from catalog_checker import AuditPromotionsUseCase, CatalogContext, JsonSnapshotStore, ReportSummarizer
from catalog_checker.application.dto import AuditResult
from catalog_checker.cli import build_reconciler
from catalog_checker.config import load_settings
from catalog_checker.domain.errors import CollaboratorError
from catalog_checker.infrastructure.storage import settings_store
from catalog_checker.presentation.report import (
    dangling_to_rows,
    discount_checks_to_rows,
    price_histogram_to_rows,
    render_csv,
    render_excel,
    render_html,
    render_markdown,
)


st.set_page_config(page_title="Catalog Promotion Audit", layout="wide")
st.title("Catalog Promotion Audit")


def load_palette_dataframe() -> pd.DataFrame:
    palette = load_settings().background_colors
    return pd.DataFrame(
        [{"category_group": key, "color": value} for key, value in sorted(palette.items())],
        columns=["category_group", "color"],
    )


def run_audit(snapshot_bytes: bytes) -> AuditResult:
    settings = load_settings()
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "snapshot.json"
        path.write_bytes(snapshot_bytes)
        store = JsonSnapshotStore(path)
        context = CatalogContext(catalog=store, discounts=store, bestsellers=store)
        use_case = AuditPromotionsUseCase(context, build_reconciler(settings), ReportSummarizer(top_n=settings.top_n))
        return use_case.execute()


if "result" not in st.session_state:
    st.session_state["result"] = None

snapshot_file = st.file_uploader("Upload catalog snapshot", type=["json"])

with st.expander("Category background colors", expanded=False):
    palette_df = load_palette_dataframe()
    edited = st.data_editor(palette_df, num_rows="dynamic", hide_index=True, key="palette_editor")
    if st.button("Save colors", key="save_palette_btn"):
        cleaned = {
            str(row["category_group"]).strip().lower(): int(row["color"])
            for _, row in edited.iterrows()
            if str(row["category_group"]).strip() and pd.notna(row["color"])
        }
        settings_store.save_overrides({"background_colors": cleaned})
        st.success("Colors saved")

if st.button("Run Audit", disabled=snapshot_file is None) and snapshot_file is not None:
    with st.spinner("Auditing..."):
        try:
            st.session_state["result"] = run_audit(snapshot_file.read())
        except CollaboratorError as exc:
            st.session_state["result"] = None
            st.error(str(exc))

result: AuditResult | None = st.session_state.get("result")
if result is None:
    st.info("Upload a snapshot and run the audit.")
else:
    summary = result.summary
    st.subheader("Summary")
    cols = st.columns(4)
    cols[0].metric("Products", summary.total_products)
    cols[1].metric("Discounts (valid)", f"{summary.valid_discounts.count} / {summary.total_discounts}")
    cols[2].metric("Bestsellers (valid)", f"{summary.valid_bestsellers.count} / {summary.total_bestsellers}")
    cols[3].metric("Status", "Passed" if summary.passed else "Issues")

    if result.index_result.duplicates:
        st.warning(f"{len(result.index_result.duplicates)} duplicate product ids in the catalog")
    for error in result.index_result.errors:
        st.error(str(error))

    tabs = st.tabs(["Discounts", "Prices", "Dangling", "Report"])
    checks = result.report.discount_checks
    with tabs[0]:
        st.dataframe(pd.DataFrame(discount_checks_to_rows(checks)))
    with tabs[1]:
        prices = pd.DataFrame(price_histogram_to_rows(summary))
        st.dataframe(prices)
        if not prices.empty:
            st.bar_chart(prices.assign(count=prices["count"].astype(int)).set_index("range")["count"])
    with tabs[2]:
        st.dataframe(pd.DataFrame(dangling_to_rows(summary)))
    with tabs[3]:
        markdown = render_markdown(summary)
        st.markdown(markdown)
        st.download_button("Download Markdown", data=markdown.encode("utf-8"), file_name="promotion_report.md")
        st.download_button(
            "Download discounts CSV",
            data=render_csv(discount_checks_to_rows(checks)),
            file_name="discounts.csv",
            mime="text/csv",
        )
        st.download_button(
            "Download HTML",
            data=render_html(summary).encode("utf-8"),
            file_name="promotion_report.html",
            mime="text/html",
        )
        st.download_button(
            "Download Excel",
            data=render_excel(summary, checks),
            file_name="promotion_report.xlsx",
        )
