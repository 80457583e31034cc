"""
Attribute Catalog Loading
Fetches the distinct values of the filterable column from the SQL API.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional
import pandas as pd

from core.config import DatasetConfig
from core.sql import build_distinct_query, get_sql_with_debug, parse_sql_results


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Catalog:
    """Distinct attribute values, sorted ascending by label."""
    values: tuple[str, ...] = ()

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, column: str) -> "Catalog":
        """
        Build a catalog from the rows of a distinct query.

        Null values are dropped. Rows are not deduplicated here; the distinct
        query already guarantees uniqueness.
        """
        if df is None or df.empty or column not in df.columns:
            return cls()
        labels = df[column].dropna().astype(str)
        labels = labels.sort_values(kind="stable")
        return cls(tuple(labels.tolist()))

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __getitem__(self, index: int) -> str:
        return self.values[index]

    def __contains__(self, value: object) -> bool:
        return value in self.values

    @property
    def is_empty(self) -> bool:
        return not self.values


def fetch_catalog(
    dataset: DatasetConfig,
    timeout: Optional[float] = None,
) -> tuple[Optional[Catalog], Optional[str], dict]:
    """
    Fetch the catalog of distinct attribute values for a dataset.

    Args:
        dataset: Dataset configuration (table, column, SQL API URL)
        timeout: Request timeout in seconds

    Returns:
        (catalog, error, debug). catalog is None when the request failed.
    """
    query = build_distinct_query(dataset.table, dataset.column)
    results, error, debug = get_sql_with_debug(dataset.sql_api_url, query, timeout=timeout)
    debug["label"] = "Species catalog"

    if error:
        debug["error"] = error
        logger.error("Catalog fetch failed for %s: %s", dataset.key, error)
        return None, error, debug

    df = parse_sql_results(results)
    catalog = Catalog.from_dataframe(df, dataset.column)
    debug["row_count"] = len(catalog)
    logger.info("Loaded %d %s values for %s", len(catalog), dataset.column, dataset.key)
    return catalog, None, debug
