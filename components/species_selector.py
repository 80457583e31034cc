"""
Species selection control.
Builds the choice list from the catalog and binds the single change handler.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional
import streamlit as st

from core.catalog import Catalog
from core.session import NO_FILTER, SelectionEvent


logger = logging.getLogger(__name__)

SENTINEL_INDEX = 0
DEFAULT_SENTINEL_LABEL = "All species"

SelectionHandler = Callable[[SelectionEvent], None]


@dataclass(frozen=True)
class SelectionOption:
    """One entry of the select box. The sentinel has value None."""
    index: int
    label: str
    value: Optional[str] = None

    @property
    def is_sentinel(self) -> bool:
        return self.value is None


def build_selection_options(
    catalog: Catalog,
    sentinel_label: str = DEFAULT_SENTINEL_LABEL,
) -> List[SelectionOption]:
    """
    Build the select box entries: the sentinel at index 0, then catalog values 1..N.

    Args:
        catalog: Sorted catalog
        sentinel_label: Label of the "no filter" entry

    Returns:
        List of SelectionOption in display order
    """
    options = [SelectionOption(SENTINEL_INDEX, sentinel_label, None)]
    for position, value in enumerate(catalog, start=1):
        options.append(SelectionOption(position, value, value))
    return options


class SelectionControlBinder:
    """
    Keeps exactly one change handler bound to the selection control.

    Example:
        binder = SelectionControlBinder()
        binder.bind(session.catalog, session.handle_selection)
        binder.fire(3)   # handler receives SelectionEvent(catalog[2])
    """

    def __init__(self, sentinel_label: str = DEFAULT_SENTINEL_LABEL):
        self.sentinel_label = sentinel_label
        self.options: List[SelectionOption] = []
        self._handler: Optional[SelectionHandler] = None

    @property
    def is_bound(self) -> bool:
        return self._handler is not None

    def bind(self, catalog: Catalog, handler: SelectionHandler) -> None:
        """Populate options from the catalog and replace any previously bound handler."""
        if self._handler is not None:
            logger.debug("Rebinding selection control; previous handler removed")
        self.options = build_selection_options(catalog, self.sentinel_label)
        self._handler = handler

    def unbind(self) -> None:
        """Detach the handler; later change callbacks are ignored."""
        self._handler = None
        self.options = []

    def resolve(self, index: object) -> SelectionEvent:
        """Map a control index to an event. Anything that is not a real entry means no filter."""
        if isinstance(index, bool) or not isinstance(index, int):
            logger.warning("Malformed selection index %r; clearing filter", index)
            return NO_FILTER
        if index < 0 or index >= len(self.options):
            logger.warning("Selection index %d out of range; clearing filter", index)
            return NO_FILTER
        option = self.options[index]
        if option.is_sentinel:
            return NO_FILTER
        return SelectionEvent(option.value)

    def fire(self, index: object) -> None:
        """Invoke the bound handler with the event for index."""
        if self._handler is None:
            logger.warning("Selection changed before the control was bound; ignoring")
            return
        self._handler(self.resolve(index))

    def format_option(self, index: int) -> str:
        if 0 <= index < len(self.options):
            return self.options[index].label
        return str(index)


def render_species_selector(
    binder: SelectionControlBinder,
    key: str,
    label: str = "Scientific name",
) -> Optional[int]:
    """
    Render the bound selection control in the sidebar.

    The widget value is the option index; Streamlit invokes the change callback
    before the rerun, so the layer query is updated before the map is drawn.

    Args:
        binder: A bound SelectionControlBinder
        key: Unique widget key
        label: Widget label

    Returns:
        The currently selected option index, or None if the binder is not bound
    """
    if not binder.is_bound:
        return None

    indices = [option.index for option in binder.options]
    current = st.session_state.get(key, SENTINEL_INDEX)
    if current not in indices:
        # Catalog changed under the widget
        st.session_state[key] = SENTINEL_INDEX

    def _on_change() -> None:
        binder.fire(st.session_state.get(key))

    return st.sidebar.selectbox(
        label,
        options=indices,
        format_func=binder.format_option,
        key=key,
        on_change=_on_change,
        help="Show only occurrences of the selected species",
    )
