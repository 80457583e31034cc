"""
Session state management for filter sessions.
Keeps one FilterSession (plus its selection binder) per dataset in st.session_state.
"""
from __future__ import annotations

from concurrent.futures import Future
from typing import List, Optional
import streamlit as st

from components.species_selector import SelectionControlBinder
from core.config import DatasetConfig
from core.session import FilterSession


class SessionStore:
    """
    Manages the filter session of one dataset in st.session_state.

    Example:
        store = SessionStore(dataset)
        session = store.session
        if store.futures is None:
            store.futures = start_initial_loads(session, executor)
    """

    def __init__(self, dataset: DatasetConfig):
        self.dataset = dataset
        self._prefix = f"species_filter_{dataset.key}"
        self._session_key = f"{self._prefix}_session"
        self._binder_key = f"{self._prefix}_binder"
        self._futures_key = f"{self._prefix}_futures"
        if self._session_key not in st.session_state:
            st.session_state[self._session_key] = FilterSession(dataset)
        if self._binder_key not in st.session_state:
            st.session_state[self._binder_key] = SelectionControlBinder(dataset.sentinel_label)

    @property
    def session(self) -> FilterSession:
        return st.session_state[self._session_key]

    @property
    def binder(self) -> SelectionControlBinder:
        return st.session_state[self._binder_key]

    @property
    def futures(self) -> Optional[List[Future]]:
        return st.session_state.get(self._futures_key)

    @futures.setter
    def futures(self, value: List[Future]) -> None:
        st.session_state[self._futures_key] = value

    @property
    def widget_key(self) -> str:
        return f"{self._prefix}_selection"

    def reset(self) -> None:
        """Drop the session so the next run reloads catalog and map."""
        # A widget callback registered this run still holds the old binder
        if self._binder_key in st.session_state:
            st.session_state[self._binder_key].unbind()
        for key in (self._session_key, self._binder_key, self._futures_key, self.widget_key):
            if key in st.session_state:
                del st.session_state[key]
