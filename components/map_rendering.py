"""
Map rendering utilities.
Builds a folium map from the tile layers of a loaded visualization.
"""
from __future__ import annotations

from typing import List, Optional
import folium

from core.visualization import Visualization


CARTO_ATTRIBUTION = '&copy; <a href="https://carto.com/attributions">CARTO</a>'
DEFAULT_BASEMAP_URL = "https://{s}.basemaps.cartocdn.com/light_all/{z}/{x}/{y}.png"
DEFAULT_BASEMAP_ATTRIBUTION = (
    '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors'
)


def create_base_map(
    center: tuple = (51.0, 4.4),
    zoom: int = 8,
) -> folium.Map:
    """
    Create an empty folium map; tiles are added from the visualization.

    Args:
        center: Map center (lat, lon)
        zoom: Initial zoom level

    Returns:
        Folium Map without any tile layer
    """
    return folium.Map(location=list(center), zoom_start=zoom, tiles=None)


def _attribution(text: str, show_logo: bool) -> str:
    text = text or DEFAULT_BASEMAP_ATTRIBUTION
    if show_logo:
        return f"{text} | {CARTO_ATTRIBUTION}"
    return text


def add_visualization_layers(map_obj: folium.Map, vis: Visualization) -> int:
    """
    Add every tiled layer and instantiated layer group of the visualization.

    Args:
        map_obj: Folium map to add layers to
        vis: Loaded visualization

    Returns:
        Number of tile layers added
    """
    added = 0
    has_basemap = any(layer.is_tiled and layer.tile_url for layer in vis.layers)
    if not has_basemap:
        folium.TileLayer(
            tiles=DEFAULT_BASEMAP_URL,
            attr=_attribution(DEFAULT_BASEMAP_ATTRIBUTION, vis.show_logo),
            name="Basemap",
        ).add_to(map_obj)
        added += 1

    for index, layer in enumerate(vis.layers):
        if not layer.tile_url:
            continue
        if layer.is_tiled:
            folium.TileLayer(
                tiles=layer.tile_url,
                attr=_attribution(layer.attribution, vis.show_logo),
                name=layer.options.get("name") or "Basemap",
            ).add_to(map_obj)
        else:
            folium.TileLayer(
                tiles=layer.tile_url,
                attr=_attribution(layer.attribution, vis.show_logo),
                name=f"Occurrences ({index})",
                overlay=True,
                control=True,
            ).add_to(map_obj)
        added += 1
    return added


def build_visualization_map(vis: Visualization) -> folium.Map:
    """Create the map for a visualization using its effective center and zoom."""
    map_obj = create_base_map(center=vis.effective_center, zoom=vis.effective_zoom)
    add_visualization_layers(map_obj, vis)
    folium.LayerControl(collapsed=True).add_to(map_obj)
    return map_obj


def render_map_legend(legend_items: List[str], share_url: Optional[str] = None) -> None:
    """
    Render a map legend as an info box using streamlit.

    Args:
        legend_items: List of legend description strings
        share_url: Optional link to the visualization definition
    """
    import streamlit as st

    legend_text = "**Map Legend:**\n" + "\n".join(f"- {item}" for item in legend_items)
    if share_url:
        legend_text += f"\n\n[Open visualization]({share_url})"
    st.info(legend_text)
