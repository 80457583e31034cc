"""
Dataset Registry - Deployment configuration for every filterable dataset
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from core.sql import SQL_API_URLS


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

ENV_DATASET = "SPECIES_FILTER_DATASET"
ENV_TIMEOUT = "SPECIES_FILTER_TIMEOUT"
ENV_LOG_LEVEL = "SPECIES_FILTER_LOG_LEVEL"


@dataclass(frozen=True)
class MapOptions:
    """Display options passed along with the visualization. None means use the viz.json default."""
    zoom: Optional[int] = None
    center_lat: Optional[float] = None
    center_lon: Optional[float] = None
    shareable: Optional[bool] = None
    cartodb_logo: Optional[bool] = None

    @property
    def center(self) -> Optional[tuple[float, float]]:
        if self.center_lat is None or self.center_lon is None:
            return None
        return (self.center_lat, self.center_lon)


@dataclass(frozen=True)
class DatasetConfig:
    """Specification for one filterable dataset deployment"""
    key: str
    label: str
    table: str
    column: str
    sql_api_url: str
    viz_url: str
    map_options: MapOptions = field(default_factory=MapOptions)
    layer_index: int = 1  # layers[0] is the basemap
    sublayer_index: int = 0
    sentinel_label: str = "All species"


def build_dataset_registry() -> dict[str, DatasetConfig]:
    """
    Build the dataset registry.

    Raises:
        ValueError: If two datasets share a key
    """
    specs = [
        DatasetConfig(
            key="occurrence_1",
            label="Species occurrences",
            table="occurrence_1",
            column="scientificname",
            sql_api_url=SQL_API_URLS["lifewatch_v1"],
            viz_url="https://lifewatch.carto.com/api/v2/viz/33404524-6071-11e6-81a5-0e3ebc282e83/viz.json",
            map_options=MapOptions(
                zoom=8,
                center_lat=51.1,
                center_lon=4.2,
                shareable=False,
                cartodb_logo=False,
            ),
        ),
        DatasetConfig(
            key="alien_macroinvertebrates",
            label="Alien macroinvertebrates",
            table="alien_macroinvertebrates",
            column="scientificname",
            sql_api_url=SQL_API_URLS["lifewatch_v2"],
            viz_url="https://inbo.cartodb.com/u/lifewatch/api/v2/viz/b95fcc5e-2ad7-11e5-928a-0e6e1df11cbf/viz.json",
        ),
    ]

    # Ensure unique keys
    registry = {s.key: s for s in specs}
    if len(registry) != len(specs):
        dupes = [s.key for s in specs if [x.key for x in specs].count(s.key) > 1]
        raise ValueError(f"Duplicate dataset keys found: {sorted(set(dupes))}")

    return registry


def get_default_dataset_key(registry: dict[str, DatasetConfig]) -> str:
    """Dataset key from SPECIES_FILTER_DATASET, falling back to the first registry entry."""
    first_key = next(iter(registry))
    key = os.getenv(ENV_DATASET)
    if not key:
        return first_key
    if key not in registry:
        logger.warning("Unknown dataset %r in %s; using %r", key, ENV_DATASET, first_key)
        return first_key
    return key


def get_request_timeout() -> float:
    """Request timeout in seconds from SPECIES_FILTER_TIMEOUT."""
    raw = os.getenv(ENV_TIMEOUT)
    if not raw:
        return DEFAULT_TIMEOUT_SEC
    try:
        timeout = float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r", ENV_TIMEOUT, raw)
        return DEFAULT_TIMEOUT_SEC
    if timeout <= 0:
        logger.warning("Ignoring non-positive %s=%r", ENV_TIMEOUT, raw)
        return DEFAULT_TIMEOUT_SEC
    return timeout


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once. Later calls only adjust the level."""
    level_name = (level or os.getenv(ENV_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    else:
        root.setLevel(numeric_level)
