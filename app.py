"""
Species Occurrence Filter
Filter a remote-rendered occurrence map by scientific name.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import streamlit as st
from streamlit_folium import st_folium

from core.config import (
    build_dataset_registry,
    configure_logging,
    get_default_dataset_key,
    get_request_timeout,
)
from core.loader import start_initial_loads, wait_for_initial_loads
from core.session import STATUS_CATALOG_FAILED
from components.map_rendering import build_visualization_map, render_map_legend
from components.query_debug import render_diagnostics
from components.session_state import SessionStore
from components.species_selector import render_species_selector


configure_logging()

# Page configuration
st.set_page_config(
    page_title="Species Occurrence Filter",
    page_icon="🦐",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def get_executor() -> ThreadPoolExecutor:
    """Executor shared by the initial loads of every session."""
    return ThreadPoolExecutor(max_workers=4, thread_name_prefix="species-filter")


DATASETS = build_dataset_registry()
TIMEOUT = get_request_timeout()

# SIDEBAR: Dataset selection at the top
st.sidebar.markdown("### 🗂️ Dataset")
dataset_keys = list(DATASETS.keys())
default_key = get_default_dataset_key(DATASETS)
dataset_key = st.sidebar.selectbox(
    "Choose dataset:",
    dataset_keys,
    index=dataset_keys.index(default_key),
    format_func=lambda k: DATASETS[k].label,
    help="Occurrence dataset shown on the map"
)
dataset = DATASETS[dataset_key]

st.sidebar.markdown("---")
st.title(f"🗺️ {dataset.label}")

store = SessionStore(dataset)
session = store.session

# === INITIAL LOADS ===
if store.futures is None:
    store.futures = start_initial_loads(session, get_executor(), timeout=TIMEOUT)

with st.spinner("Loading species and map..."):
    wait_for_initial_loads(store.futures, timeout=TIMEOUT * 2)

# Control is bound only once the catalog exists
if session.is_catalog_loaded and not store.binder.is_bound:
    store.binder.bind(session.catalog, session.handle_selection)

# === SELECTION CONTROL ===
st.sidebar.markdown("### 🔎 Filter")
if store.binder.is_bound:
    render_species_selector(store.binder, key=store.widget_key)
    if session.catalog.is_empty:
        st.sidebar.caption(f"No species found in `{dataset.table}`.")
    else:
        st.sidebar.caption(f"{len(session.catalog)} species available")
elif session.status == STATUS_CATALOG_FAILED:
    st.sidebar.caption("Species filter unavailable.")
else:
    st.sidebar.caption("Loading species...")

if st.sidebar.button("Reload", help="Fetch the species list and map again"):
    store.reset()
    st.rerun()

# === MAP ===
if session.map_error is not None:
    st.warning("The map could not be loaded.")
elif session.visualization is not None:
    vis = session.visualization
    map_obj = build_visualization_map(vis)
    st_folium(
        map_obj,
        key=f"species_map_{dataset.key}",
        use_container_width=True,
        height=600,
        returned_objects=[],
    )

    if session.map_update_error:
        st.warning(f"Map update failed: {session.map_update_error}")
        if st.button("Retry map update"):
            session.retry_map_update()
            st.rerun()

    # Legend follows the query the tiles were rendered with
    if session.applied_selection:
        legend = [f"Showing occurrences of *{session.applied_selection}*"]
    else:
        legend = ["Showing all occurrences"]
    render_map_legend(legend, share_url=vis.viz_url if vis.shareable else None)
else:
    st.info("Loading map...")

sync = session.synchronizer
render_diagnostics(
    session.executed_queries,
    sync.history,
    failed_query=sync.failed_query,
    layer_error=sync.last_error,
)
