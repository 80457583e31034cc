"""
Core SQL Utilities
Unified module for SQL API requests, result parsing, and query building.
This is the single source of truth for the text of every query sent to the service.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Optional
import pandas as pd
import requests


logger = logging.getLogger(__name__)


# =============================================================================
# SQL API ENDPOINT URLS
# =============================================================================

SQL_API_URLS = {
    'lifewatch_v2': "https://lifewatch.cartodb.com/api/v2/sql",
    'lifewatch_v1': "https://lifewatch.carto.com/api/v1/sql",
}

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


# =============================================================================
# QUERY BUILDING HELPERS
# =============================================================================

def quote_identifier(name: str) -> str:
    """
    Validate a table or column name.

    Names are deployment constants, so only plain identifiers (optionally
    schema-qualified) are accepted and returned unchanged.

    Raises:
        ValueError: If the name is not a plain identifier
    """
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def quote_literal(value: str) -> str:
    """
    Quote a value as a PostgreSQL standard string literal.

    Single quotes are doubled, so "O'Brien" becomes 'O''Brien'.

    Raises:
        TypeError: If value is not a string
        ValueError: If value contains a NUL character
    """
    if not isinstance(value, str):
        raise TypeError(f"Expected str literal, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError("String literal cannot contain NUL characters")
    return "'" + value.replace("'", "''") + "'"


def build_base_query(table: str) -> str:
    """Unfiltered query for every row of the table."""
    return f"SELECT * FROM {quote_identifier(table)}"


def build_distinct_query(table: str, column: str) -> str:
    """Query for the distinct values of one column."""
    return f"SELECT DISTINCT {quote_identifier(column)} FROM {quote_identifier(table)}"


def build_filter_query(table: str, column: str, value: Optional[str]) -> str:
    """
    Build the display query for a layer.

    Args:
        table: Table name
        column: Column compared by exact, case-sensitive equality
        value: Selected value, or None for no filter

    Returns:
        "SELECT * FROM <table>" when value is None, otherwise
        "SELECT * FROM <table> WHERE <column> = '<value>'" with value escaped.
    """
    base = build_base_query(table)
    if value is None:
        return base
    return f"{base} WHERE {quote_identifier(column)} = {quote_literal(value)}"


# =============================================================================
# RESULT PARSING FUNCTIONS
# =============================================================================

def parse_sql_results(results: Optional[dict]) -> pd.DataFrame:
    """
    Convert SQL API JSON results to pandas DataFrame.

    Args:
        results: SQL API JSON response with 'rows' and, usually, 'fields' keys

    Returns:
        pandas DataFrame with one row per result row. Columns are taken from
        'fields' when present so an empty result keeps its columns.
    """
    if not results or 'rows' not in results:
        return pd.DataFrame()

    rows = results['rows'] or []
    fields = results.get('fields') or {}
    columns = list(fields.keys())

    if not rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(rows)
    if columns:
        for column in columns:
            if column not in df.columns:
                df[column] = None
    return df


# =============================================================================
# QUERY EXECUTION FUNCTIONS
# =============================================================================

def get_sql_with_debug(
    endpoint: str,
    query: str,
    timeout: Optional[float] = None,
) -> tuple[Optional[dict], Optional[str], dict]:
    """
    Send a SQL query to the SQL API and return (json, error, debug_info).

    Args:
        endpoint: Full SQL API URL
        query: SQL query string
        timeout: Request timeout in seconds

    Returns:
        (json_response, error_message, debug_dict). debug_dict has endpoint, query,
        timeout_sec, response_status, row_count and optionally exception.
    """
    debug: dict[str, Any] = {"endpoint": endpoint, "query": query, "timeout_sec": timeout}
    try:
        response = requests.get(
            endpoint, params={"q": query}, headers={"Accept": "application/json"}, timeout=timeout
        )
        debug["response_status"] = response.status_code
        if response.status_code != 200:
            logger.warning("SQL API returned %s for query: %s", response.status_code, query)
            return (
                None,
                f"Error {response.status_code}: {response.text[:500]}",
                debug,
            )
        payload = response.json()
        debug["row_count"] = len(payload.get("rows") or []) if isinstance(payload, dict) else None
        return payload, None, debug
    except requests.exceptions.RequestException as e:
        debug["exception"] = str(e)
        logger.error("SQL API network error: %s", e)
        return None, f"Network error: {str(e)}", debug
    except ValueError as e:
        # Response body was not JSON
        debug["exception"] = str(e)
        logger.error("SQL API returned invalid JSON: %s", e)
        return None, f"Invalid response: {str(e)}", debug
