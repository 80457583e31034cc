"""
Layer Query Synchronization
Maps the current selection to the display query of one visualization sub-layer.
"""
from __future__ import annotations

import enum
import logging
from typing import Any, List, Optional, Protocol

from core.sql import build_base_query, build_filter_query


logger = logging.getLogger(__name__)


class LayerHandle(Protocol):
    def set(self, options: dict) -> Any: ...


class SyncState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    CLEARED = "cleared"
    FILTERED = "filtered"


class LayerQuerySynchronizer:
    """
    Owns the query pushed to a sub-layer.

    Requests made before a layer is attached are queued (only the most recent
    is kept) and applied on attach. Requests made after the visualization
    failed to load are dropped with a warning. A query the layer rejects is
    not recorded as applied; it is kept in failed_query until retry() succeeds.

    Example:
        sync = LayerQuerySynchronizer("occurrence_1", "scientificname")
        sync.apply_filter("Pica pica")   # queued
        sync.attach(sublayer)            # pushes the filter query
        sync.clear_filter()              # pushes SELECT * FROM occurrence_1
    """

    def __init__(self, table: str, column: str):
        self.table = table
        self.column = column
        self.layer: Optional[LayerHandle] = None
        self.state = SyncState.UNINITIALIZED
        self.filter_value: Optional[str] = None
        self.current_query: Optional[str] = None
        self.pending_query: Optional[str] = None
        self._pending_value: Optional[str] = None
        self.unavailable_reason: Optional[str] = None
        self.history: List[str] = []
        self.last_error: Optional[str] = None
        self.failed_query: Optional[str] = None
        self._failed_value: Optional[str] = None
        # Fail fast on a misconfigured table or column
        build_filter_query(table, column, None)

    @property
    def base_query(self) -> str:
        return build_base_query(self.table)

    @property
    def is_attached(self) -> bool:
        return self.layer is not None

    @property
    def is_unavailable(self) -> bool:
        return self.unavailable_reason is not None

    def attach(self, layer: LayerHandle) -> None:
        """Take ownership of the layer handle and apply any queued request."""
        self.layer = layer
        self.unavailable_reason = None
        if self.pending_query is not None:
            query, value = self.pending_query, self._pending_value
            self.pending_query = None
            self._pending_value = None
            self._push(query, value)

    def mark_unavailable(self, reason: str) -> None:
        """Record that no layer will ever be attached; queued requests are discarded."""
        self.unavailable_reason = reason
        if self.pending_query is not None:
            logger.warning("Dropping queued layer query, map unavailable: %s", self.pending_query)
        self.pending_query = None
        self._pending_value = None

    def clear_filter(self) -> None:
        """Show every row of the table."""
        self._request(self.base_query, None)

    def apply_filter(self, value: str) -> None:
        """Show only rows whose column equals value exactly."""
        self._request(build_filter_query(self.table, self.column, value), value)

    def _request(self, query: str, value: Optional[str]) -> None:
        if self.layer is None:
            if self.is_unavailable:
                logger.warning(
                    "Map unavailable (%s); dropping layer query: %s", self.unavailable_reason, query
                )
                return
            logger.debug("Layer not loaded yet; queueing query: %s", query)
            self.pending_query = query
            self._pending_value = value
            return
        self._push(query, value)

    def retry(self) -> bool:
        """Push the last rejected query again. Returns True once it is applied."""
        if self.failed_query is None or self.layer is None:
            return False
        self._push(self.failed_query, self._failed_value)
        return self.failed_query is None

    def _push(self, query: str, value: Optional[str]) -> None:
        # Handles that return nothing from set() are treated as applied
        if self.layer.set({"sql": query}) is False:
            parent = getattr(self.layer, "parent", None)
            self.last_error = getattr(parent, "last_error", None) or "Layer rejected the query"
            self.failed_query = query
            self._failed_value = value
            logger.warning("Layer query not applied (%s): %s", self.last_error, query)
            return
        self.last_error = None
        self.failed_query = None
        self._failed_value = None
        self.current_query = query
        self.filter_value = value
        self.state = SyncState.CLEARED if value is None else SyncState.FILTERED
        self.history.append(query)
        logger.info("Layer query set: %s", query)
