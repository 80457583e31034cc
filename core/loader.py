"""
Initial loads for a filter session.
The catalog fetch and the visualization load run independently; each reports
to the session through its own completion callback before its future resolves.
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, wait
from typing import List, Optional

from core.catalog import fetch_catalog
from core.session import FilterSession
from core.visualization import load_visualization


logger = logging.getLogger(__name__)


def run_catalog_load(session: FilterSession, timeout: Optional[float] = None) -> bool:
    """Fetch the catalog and deliver it to the session. Returns True on success."""
    try:
        catalog, error, debug = fetch_catalog(session.dataset, timeout)
    except Exception as e:
        logger.exception("Catalog load raised")
        session.on_catalog_failed(f"Error: {str(e)}")
        return False

    if catalog is None:
        session.on_catalog_failed(error or "Catalog unavailable", debug)
        return False
    session.on_catalog_loaded(catalog, debug)
    return True


def run_visualization_load(session: FilterSession, timeout: Optional[float] = None) -> bool:
    """Load the visualization and deliver it to the session. Returns True on success."""
    dataset = session.dataset
    try:
        vis, error, debug = load_visualization(dataset.viz_url, dataset.map_options, timeout)
    except Exception as e:
        logger.exception("Visualization load raised")
        session.on_map_failed(f"Error: {str(e)}")
        return False

    session.record_query(debug)
    if vis is None:
        session.on_map_failed(error or "Visualization unavailable")
        return False
    session.on_map_loaded(vis)
    return session.map_error is None


def start_initial_loads(
    session: FilterSession,
    executor: Executor,
    timeout: Optional[float] = None,
) -> List[Future]:
    """
    Submit the catalog fetch and the visualization load.

    Args:
        session: Session receiving both results
        executor: Executor running the two loads
        timeout: Per-request timeout in seconds

    Returns:
        [catalog_future, visualization_future]
    """
    return [
        executor.submit(run_catalog_load, session, timeout),
        executor.submit(run_visualization_load, session, timeout),
    ]


def wait_for_initial_loads(futures: List[Future], timeout: Optional[float] = None) -> bool:
    """
    Block until both loads finished.

    Returns:
        True if every future completed within timeout
    """
    done, not_done = wait(futures, timeout=timeout)
    if not_done:
        logger.warning("%d initial load(s) still running after %ss", len(not_done), timeout)
    return not not_done
