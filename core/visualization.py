"""
Visualization Client
Loads a remote visualization definition (viz.json) and keeps its layer groups
instantiated on the Maps API so tiles reflect the current sub-layer queries.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional
import requests

from core.config import MapOptions


logger = logging.getLogger(__name__)

MAPS_API_VERSION = "1.3.0"
DEFAULT_CENTER = (51.0, 4.4)  # Flanders
DEFAULT_ZOOM = 8

# Sub-layer options forwarded to the Maps API
SUBLAYER_OPTION_KEYS = ("sql", "cartocss", "cartocss_version", "interactivity")


class SubLayer:
    """An addressable unit of a layer group whose rows are selected by its 'sql' option."""

    def __init__(self, parent: "VisLayer", index: int, options: dict, visible: bool = True):
        self.parent = parent
        self.index = index
        self.options = dict(options)
        self.visible = visible

    @property
    def sql(self) -> Optional[str]:
        return self.options.get("sql")

    def set(self, options: dict) -> bool:
        """
        Update the sub-layer definition and push it to the Maps API.

        Returns:
            True if the layer group was re-instantiated, False otherwise.
            Failures are logged and kept on the parent layer as last_error.
        """
        self.options.update(options)
        return self.parent.instantiate()

    def __repr__(self) -> str:
        return f"SubLayer(index={self.index}, sql={self.sql!r})"


class VisLayer:
    """One entry of the viz.json 'layers' list."""

    def __init__(
        self,
        layer_type: str,
        options: Optional[dict] = None,
        user_name: Optional[str] = None,
        maps_api_template: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.type = layer_type
        self.options = dict(options or {})
        self.user_name = user_name
        self.maps_api_template = maps_api_template
        self.timeout = timeout
        self.sublayers: List[SubLayer] = []
        self.layergroup_id: Optional[str] = None
        self.last_error: Optional[str] = None
        self.tile_url: Optional[str] = self.options.get("urlTemplate") if self.is_tiled else None

    @property
    def is_tiled(self) -> bool:
        return self.type.lower() == "tiled"

    @property
    def is_layer_group(self) -> bool:
        return self.type.lower() == "layergroup"

    @property
    def attribution(self) -> str:
        return self.options.get("attribution") or ""

    @property
    def maps_api_url(self) -> Optional[str]:
        if not self.maps_api_template:
            return None
        base = self.maps_api_template
        if self.user_name:
            base = base.replace("{user}", self.user_name)
        return base.rstrip("/") + "/api/v1/map"

    def get_sublayer(self, index: int) -> SubLayer:
        """
        Raises:
            IndexError: If the layer has no sub-layer at index
        """
        if index < 0 or index >= len(self.sublayers):
            raise IndexError(
                f"Layer '{self.type}' has {len(self.sublayers)} sub-layers, no index {index}"
            )
        return self.sublayers[index]

    def layergroup_config(self) -> dict:
        """Maps API layer group definition for the visible sub-layers."""
        layers = []
        for sublayer in self.sublayers:
            if not sublayer.visible:
                continue
            layer_options = {
                k: sublayer.options[k] for k in SUBLAYER_OPTION_KEYS if k in sublayer.options
            }
            layers.append({"type": "cartodb", "options": layer_options})
        return {"version": MAPS_API_VERSION, "layers": layers}

    def instantiate(self) -> bool:
        """
        POST the layer group definition to the Maps API and refresh tile_url.

        Returns:
            True on success, False otherwise (see last_error)
        """
        if not self.is_layer_group:
            return False
        url = self.maps_api_url
        if not url:
            self.last_error = "Layer group has no maps_api_template"
            logger.warning(self.last_error)
            return False

        try:
            response = requests.post(url, json=self.layergroup_config(), timeout=self.timeout)
            if response.status_code != 200:
                self.last_error = f"Error {response.status_code}: {response.text[:500]}"
                logger.warning("Maps API rejected layer group: %s", self.last_error)
                return False
            payload = response.json()
        except requests.exceptions.RequestException as e:
            self.last_error = f"Network error: {str(e)}"
            logger.error("Maps API network error: %s", e)
            return False
        except ValueError as e:
            self.last_error = f"Invalid response: {str(e)}"
            logger.error("Maps API returned invalid JSON: %s", e)
            return False

        layergroup_id = payload.get("layergroupid") if isinstance(payload, dict) else None
        if not layergroup_id:
            self.last_error = "Maps API response has no layergroupid"
            logger.warning(self.last_error)
            return False

        self.layergroup_id = layergroup_id
        self.tile_url = f"{url}/{layergroup_id}/{{z}}/{{x}}/{{y}}.png"
        self.last_error = None
        logger.debug("Instantiated layer group %s", layergroup_id)
        return True


@dataclass
class Visualization:
    """A loaded visualization: ordered layers plus display defaults."""
    title: str = ""
    center: tuple = DEFAULT_CENTER
    zoom: int = DEFAULT_ZOOM
    layers: List[VisLayer] = field(default_factory=list)
    user_name: Optional[str] = None
    viz_url: Optional[str] = None
    options: MapOptions = field(default_factory=MapOptions)

    @property
    def effective_center(self) -> tuple:
        return self.options.center or self.center

    @property
    def effective_zoom(self) -> int:
        return self.options.zoom if self.options.zoom is not None else self.zoom

    @property
    def show_logo(self) -> bool:
        return self.options.cartodb_logo is not False

    @property
    def shareable(self) -> bool:
        return bool(self.options.shareable)


def _parse_center(raw: Any) -> tuple:
    """viz.json stores the center as a JSON string such as "[51.1, 4.2]"."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return DEFAULT_CENTER
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        try:
            return (float(raw[0]), float(raw[1]))
        except (TypeError, ValueError):
            return DEFAULT_CENTER
    return DEFAULT_CENTER


def parse_viz_json(
    data: dict,
    options: Optional[MapOptions] = None,
    timeout: Optional[float] = None,
    viz_url: Optional[str] = None,
) -> Visualization:
    """
    Build a Visualization from a viz.json document.

    Args:
        data: Parsed viz.json
        options: Display options overriding the viz.json defaults
        timeout: Timeout used for later Maps API requests
        viz_url: Source URL, kept for the share link

    Raises:
        ValueError: If data is not a viz.json document
    """
    if not isinstance(data, dict) or not isinstance(data.get("layers"), list):
        raise ValueError("viz.json has no 'layers' list")

    datasource = data.get("datasource") or {}
    default_user = datasource.get("user_name")
    default_template = datasource.get("maps_api_template")

    layers = []
    for raw_layer in data["layers"]:
        layer_options = raw_layer.get("options") or {}
        layer = VisLayer(
            layer_type=str(raw_layer.get("type", "")),
            options=layer_options,
            user_name=layer_options.get("user_name") or default_user,
            maps_api_template=layer_options.get("maps_api_template") or default_template,
            timeout=timeout,
        )
        if layer.is_layer_group:
            definition = layer_options.get("layer_definition") or {}
            for index, raw_sublayer in enumerate(definition.get("layers") or []):
                layer.sublayers.append(
                    SubLayer(
                        parent=layer,
                        index=index,
                        options=raw_sublayer.get("options") or {},
                        visible=raw_sublayer.get("visible", True) is not False,
                    )
                )
        layers.append(layer)

    try:
        zoom = int(data.get("zoom", DEFAULT_ZOOM))
    except (TypeError, ValueError):
        zoom = DEFAULT_ZOOM

    return Visualization(
        title=data.get("title") or "",
        center=_parse_center(data.get("center")),
        zoom=zoom,
        layers=layers,
        user_name=default_user,
        viz_url=viz_url,
        options=options or MapOptions(),
    )


def load_visualization(
    viz_url: str,
    options: Optional[MapOptions] = None,
    timeout: Optional[float] = None,
) -> tuple[Optional[Visualization], Optional[str], dict]:
    """
    Fetch viz.json and instantiate its layer groups.

    Args:
        viz_url: URL of the viz.json document
        options: Display options (zoom, center, chrome flags)
        timeout: Request timeout in seconds

    Returns:
        (visualization, error, debug). visualization is None on failure.
    """
    debug: dict[str, Any] = {"label": "Visualization", "endpoint": viz_url, "timeout_sec": timeout}
    try:
        response = requests.get(viz_url, timeout=timeout)
        debug["response_status"] = response.status_code
        if response.status_code != 200:
            error = f"Error {response.status_code}: {response.text[:500]}"
            debug["error"] = error
            logger.error("Visualization load failed: %s", error)
            return None, error, debug
        vis = parse_viz_json(response.json(), options=options, timeout=timeout, viz_url=viz_url)
    except requests.exceptions.RequestException as e:
        debug["exception"] = str(e)
        logger.error("Visualization network error: %s", e)
        return None, f"Network error: {str(e)}", debug
    except ValueError as e:
        debug["exception"] = str(e)
        logger.error("Invalid visualization definition: %s", e)
        return None, f"Invalid visualization: {str(e)}", debug

    for layer in vis.layers:
        if layer.is_layer_group and not layer.instantiate():
            debug["error"] = layer.last_error
            return None, f"Layer group instantiation failed: {layer.last_error}", debug

    logger.info("Loaded visualization '%s' with %d layers", vis.title, len(vis.layers))
    return vis, None, debug


def get_sublayer_handle(vis: Visualization, layer_index: int, sublayer_index: int) -> SubLayer:
    """
    Resolve layers[layer_index].getSubLayer(sublayer_index).

    Raises:
        IndexError: If either index is out of range
    """
    if layer_index < 0 or layer_index >= len(vis.layers):
        raise IndexError(f"Visualization has {len(vis.layers)} layers, no index {layer_index}")
    return vis.layers[layer_index].get_sublayer(sublayer_index)
