"""
Diagnostics panel.
Lists the requests sent to the SQL API and the visualization service, and the
queries pushed to the map sub-layer.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence
import pandas as pd
import streamlit as st


KIND_SQL = "SQL API"
KIND_VIZ = "viz.json"

HISTORY_SHOWN = 6


def request_kind(info: Mapping[str, Any]) -> str:
    """SQL API requests carry their query text; visualization loads do not."""
    return KIND_SQL if info.get("query") else KIND_VIZ


def build_request_table(executed: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """One row per request, in the order they completed."""
    rows = []
    for info in executed:
        rows.append({
            "Request": info.get("label") or request_kind(info),
            "Kind": request_kind(info),
            "Endpoint": info.get("endpoint") or "",
            "Status": info.get("response_status"),
            "Rows": info.get("row_count"),
            "Error": info.get("error") or info.get("exception") or "",
        })
    return pd.DataFrame(rows, columns=["Request", "Kind", "Endpoint", "Status", "Rows", "Error"])


def build_layer_history_table(
    history: Sequence[str],
    failed_query: Optional[str] = None,
) -> pd.DataFrame:
    """
    Most recent layer queries first.

    The newest applied query is marked "current"; a query the map service
    refused is listed on top as "rejected".
    """
    rows = []
    if failed_query:
        rows.append({"Query": failed_query, "State": "rejected"})
    recent = list(history)[-HISTORY_SHOWN:]
    for position, query in enumerate(reversed(recent)):
        rows.append({"Query": query, "State": "current" if position == 0 else "applied"})
    return pd.DataFrame(rows, columns=["Query", "State"])


def render_diagnostics(
    executed: Iterable[Mapping[str, Any]] | None,
    layer_history: Sequence[str] | None = None,
    failed_query: Optional[str] = None,
    layer_error: Optional[str] = None,
    title: str = "Diagnostics",
) -> None:
    """
    Render the request table, the SQL text of each SQL API request and the
    layer query history inside one expander. Nothing is drawn before the
    first request completes.
    """
    executed = list(executed or [])
    layer_history = list(layer_history or [])
    if not executed and not layer_history and not failed_query:
        return

    with st.expander(title):
        if executed:
            st.markdown("**Requests**")
            st.dataframe(build_request_table(executed), hide_index=True, use_container_width=True)
            for info in executed:
                if request_kind(info) == KIND_SQL:
                    st.caption(info.get("label") or KIND_SQL)
                    st.code(str(info["query"]).strip(), language="sql")

        if layer_history or failed_query:
            st.markdown("**Layer queries**")
            if layer_error:
                st.error(f"Last update rejected: {layer_error}")
            st.dataframe(
                build_layer_history_table(layer_history, failed_query),
                hide_index=True,
                use_container_width=True,
            )
