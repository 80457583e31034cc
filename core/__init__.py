"""
Core Module
Provides the SQL client, dataset configuration, catalog loading, visualization
client and the session that keeps the species selection and the map in sync.
"""
from core.sql import (
    SQL_API_URLS,
    build_base_query,
    build_distinct_query,
    build_filter_query,
    get_sql_with_debug,
    parse_sql_results,
    quote_identifier,
    quote_literal,
)

from core.config import (
    DatasetConfig,
    MapOptions,
    build_dataset_registry,
    configure_logging,
    get_default_dataset_key,
    get_request_timeout,
)

from core.catalog import Catalog, fetch_catalog
from core.visualization import (
    SubLayer,
    VisLayer,
    Visualization,
    get_sublayer_handle,
    load_visualization,
    parse_viz_json,
)
from core.layer_sync import LayerQuerySynchronizer, SyncState
from core.session import NO_FILTER, FilterSession, SelectionEvent
from core.loader import start_initial_loads, wait_for_initial_loads

__all__ = [
    # SQL
    "SQL_API_URLS",
    "build_base_query",
    "build_distinct_query",
    "build_filter_query",
    "get_sql_with_debug",
    "parse_sql_results",
    "quote_identifier",
    "quote_literal",
    # Configuration
    "DatasetConfig",
    "MapOptions",
    "build_dataset_registry",
    "configure_logging",
    "get_default_dataset_key",
    "get_request_timeout",
    # Catalog
    "Catalog",
    "fetch_catalog",
    # Visualization
    "SubLayer",
    "VisLayer",
    "Visualization",
    "get_sublayer_handle",
    "load_visualization",
    "parse_viz_json",
    # Synchronization
    "LayerQuerySynchronizer",
    "SyncState",
    "NO_FILTER",
    "FilterSession",
    "SelectionEvent",
    "start_initial_loads",
    "wait_for_initial_loads",
]
