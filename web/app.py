#!/usr/bin/env python3
from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from typing import Any, Optional

import streamlit as st


ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from comprev_match.engine import ComparisonResult, ComparisonStats, process_files  # noqa: E402
from comprev_match.exporter import XLSX_MIME, result_exports  # noqa: E402
from comprev_match.loader import ALL_FORMATS  # noqa: E402

UPLOAD_TYPES = [ext.lstrip(".") for ext in sorted(ALL_FORMATS)]

METRIC_LABELS = {
    "base_total": "Base Geral (rows)",
    "base_filtered": "Base without RGPS",
    "pensionistas_total": "Pensionistas (rows)",
    "pensionistas_matches": "Pensionistas found in base",
    "aposentados_total": "Aposentados (rows)",
    "aposentados_missing": "Aposentados missing from base",
}

DOWNLOAD_LABELS = {
    "Resultado_Pensionistas": "Download pensioner matches",
    "Resultado_Aposentados_Ausentes": "Download missing retirees",
}


def ensure_state() -> None:
    st.session_state.setdefault("processing", False)
    st.session_state.setdefault("result", None)
    st.session_state.setdefault("downloads", [])
    st.session_state.setdefault("upload_generation", 0)


def upload_key(name: str) -> str:
    return f"{name}_{st.session_state['upload_generation']}"


def can_analyze(base: Any, pensionistas: Any, aposentados: Any) -> bool:
    return base is not None and (pensionistas is not None or aposentados is not None)


def metric_items(stats: ComparisonStats) -> list[tuple[str, int]]:
    return [(METRIC_LABELS[name], value) for name, value in stats.as_dict().items()]


def download_label(filename: str) -> str:
    for prefix, label in DOWNLOAD_LABELS.items():
        if filename.startswith(prefix + "_"):
            return label
    return f"Download {filename}"


def build_downloads(result: ComparisonResult, day: Optional[date] = None) -> list[dict]:
    return [
        {"label": download_label(filename), "file_name": filename, "data": payload}
        for filename, payload in result_exports(result, day)
    ]


def reset() -> None:
    st.session_state["result"] = None
    st.session_state["downloads"] = []
    # New widget keys clear the uploaders.
    st.session_state["upload_generation"] += 1


def set_visuals() -> None:
    st.set_page_config(page_title="Análise Requerimentos Base COMPREV", page_icon="📊", layout="wide", initial_sidebar_state="collapsed")
    st.markdown(
        """
        <style>
        .block-container {
            padding-top: 2rem;
            padding-bottom: 2rem;
            max-width: 1100px;
        }
        [data-testid="stMetricValue"] { font-size: 1.6rem; }
        .stAlert { border-radius: 14px; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_uploaders(disabled: bool) -> tuple[Any, Any, Any]:
    cols = st.columns(3)
    with cols[0]:
        base = st.file_uploader(
            "1. Base Geral (required)",
            type=UPLOAD_TYPES,
            key=upload_key("base_upload"),
            disabled=disabled,
            help="Sheet with the 'destinatário' column; RGPS rows are excluded.",
        )
    with cols[1]:
        pensionistas = st.file_uploader(
            "2. Pensionistas",
            type=UPLOAD_TYPES,
            key=upload_key("pensionistas_upload"),
            disabled=disabled,
            help="Base rows whose CPF appears here are exported.",
        )
    with cols[2]:
        aposentados = st.file_uploader(
            "3. Aposentados",
            type=UPLOAD_TYPES,
            key=upload_key("aposentados_upload"),
            disabled=disabled,
            help="Rows here whose CPF is missing from the base are exported.",
        )
    return base, pensionistas, aposentados


def render_result(result: ComparisonResult, downloads: list[dict]) -> None:
    if result.success:
        st.success(result.message)
    else:
        st.error(result.message)

    items = metric_items(result.stats)
    if items:
        cols = st.columns(min(len(items), 3))
        for index, (label, value) in enumerate(items):
            cols[index % len(cols)].metric(label, value)

    for warning in result.warnings:
        st.warning(warning)

    for item in downloads:
        st.download_button(
            item["label"],
            data=item["data"],
            file_name=item["file_name"],
            mime=XLSX_MIME,
            width="stretch",
            key=f"download_{item['file_name']}",
        )

    st.button("New analysis", on_click=reset, width="stretch")


def main() -> None:
    set_visuals()
    ensure_state()

    st.title("Cruzamento Base Comprev vs Pensionistas / Aposentados")
    st.caption(
        "Upload the Base Geral and compare it with Pensionistas (matches) and/or Aposentados (missing). "
        "Only the first sheet of each workbook is read."
    )

    result = st.session_state.get("result")
    if result is not None:
        render_result(result, st.session_state["downloads"])
        return

    processing = st.session_state["processing"]
    base, pensionistas, aposentados = render_uploaders(disabled=processing)
    ready = can_analyze(base, pensionistas, aposentados)
    if base is not None and not ready:
        st.info("Add a Pensionistas or Aposentados file to run the comparison.")

    submit = st.button("Analyze", type="primary", width="stretch", disabled=processing or not ready)

    if submit and ready:
        st.session_state["processing"] = True
        with st.spinner("Comparing files..."):
            result = process_files(base, pensionistas, aposentados)
            st.session_state["downloads"] = build_downloads(result)
        st.session_state["result"] = result
        st.session_state["processing"] = False
        st.rerun()


if __name__ == "__main__":
    main()
