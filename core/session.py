"""
Filter session state.
Holds the catalog, the selection and the layer synchronizer for one page session.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core.catalog import Catalog
from core.config import DatasetConfig
from core.layer_sync import LayerQuerySynchronizer
from core.visualization import Visualization, get_sublayer_handle


logger = logging.getLogger(__name__)

STATUS_LOADING = "loading"
STATUS_INTERACTIVE = "interactive"
STATUS_CATALOG_FAILED = "catalog_failed"
STATUS_MAP_FAILED = "map_failed"


@dataclass(frozen=True)
class SelectionEvent:
    """A resolved selection: a catalog value, or None for no filter."""
    value: Optional[str] = None

    @property
    def is_clear(self) -> bool:
        return self.value is None


NO_FILTER = SelectionEvent()


class FilterSession:
    """
    Session state shared by the loaders, the selection control and the map.

    Load callbacks may run on worker threads, so every mutation goes through
    one lock.
    """

    def __init__(self, dataset: DatasetConfig):
        self.dataset = dataset
        self.catalog: Optional[Catalog] = None
        self.selection: Optional[str] = None
        self.visualization: Optional[Visualization] = None
        self.catalog_error: Optional[str] = None
        self.map_error: Optional[str] = None
        self.synchronizer = LayerQuerySynchronizer(dataset.table, dataset.column)
        self.executed_queries: List[Dict[str, Any]] = []
        self._lock = threading.RLock()

    # -- load callbacks ------------------------------------------------------

    def record_query(self, debug: Optional[dict]) -> None:
        """Keep request metadata for the diagnostic view."""
        if not debug:
            return
        with self._lock:
            self.executed_queries.append(debug)

    def on_catalog_loaded(self, catalog: Catalog, debug: Optional[dict] = None) -> None:
        with self._lock:
            if debug:
                self.executed_queries.append(debug)
            if self.catalog is not None:
                logger.warning("Catalog for %s already loaded; ignoring reload", self.dataset.key)
                return
            self.catalog = catalog
            self.catalog_error = None

    def on_catalog_failed(self, error: str, debug: Optional[dict] = None) -> None:
        with self._lock:
            if debug:
                self.executed_queries.append(debug)
            if self.catalog is not None:
                return
            self.catalog_error = error
            logger.error("Species filter unavailable for %s: %s", self.dataset.key, error)

    def on_map_loaded(self, vis: Visualization) -> None:
        with self._lock:
            try:
                handle = get_sublayer_handle(
                    vis, self.dataset.layer_index, self.dataset.sublayer_index
                )
            except IndexError as e:
                self._fail_map(f"Sub-layer not found: {e}")
                return
            self.visualization = vis
            self.map_error = None
            self.synchronizer.attach(handle)

    def on_map_failed(self, error: str) -> None:
        with self._lock:
            self._fail_map(error)

    def _fail_map(self, error: str) -> None:
        self.map_error = error
        self.synchronizer.mark_unavailable(error)
        logger.error("Map unavailable for %s: %s", self.dataset.key, error)

    # -- selection -----------------------------------------------------------

    def handle_selection(self, event: SelectionEvent) -> None:
        """Apply a selection event. Values outside the catalog count as no filter."""
        with self._lock:
            value = event.value
            if value is not None and (self.catalog is None or value not in self.catalog):
                logger.warning("Selection %r is not in the catalog; clearing filter", value)
                value = None

            self.selection = value
            if value is None:
                self.synchronizer.clear_filter()
            else:
                self.synchronizer.apply_filter(value)

    def retry_map_update(self) -> bool:
        """Push the last query the layer rejected again."""
        with self._lock:
            return self.synchronizer.retry()

    # -- readiness -----------------------------------------------------------

    @property
    def is_catalog_loaded(self) -> bool:
        return self.catalog is not None

    @property
    def is_interactive(self) -> bool:
        return self.catalog is not None and self.synchronizer.is_attached

    @property
    def status(self) -> str:
        if self.catalog_error is not None:
            return STATUS_CATALOG_FAILED
        if self.map_error is not None:
            return STATUS_MAP_FAILED
        if self.is_interactive:
            return STATUS_INTERACTIVE
        return STATUS_LOADING

    @property
    def current_query(self) -> Optional[str]:
        return self.synchronizer.current_query

    @property
    def applied_selection(self) -> Optional[str]:
        """The filter value the map is actually showing."""
        return self.synchronizer.filter_value

    @property
    def map_update_error(self) -> Optional[str]:
        return self.synchronizer.last_error
