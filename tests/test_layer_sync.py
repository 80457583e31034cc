"""
Tests for core.layer_sync (selection to layer query synchronization).
"""
from __future__ import annotations

import unittest
from unittest.mock import patch, MagicMock
import requests

from core.layer_sync import LayerQuerySynchronizer, SyncState
from core.visualization import SubLayer, VisLayer


BASE = "SELECT * FROM occurrence_1"
PICA = "SELECT * FROM occurrence_1 WHERE scientificname = 'Pica pica'"


class FakeSubLayer:
    """Records every options dict it receives."""

    def __init__(self):
        self.calls = []

    def set(self, options: dict) -> bool:
        self.calls.append(dict(options))
        return True

    @property
    def sql(self):
        return self.calls[-1]["sql"] if self.calls else None


class TestLayerQuerySynchronizer(unittest.TestCase):

    def setUp(self):
        self.sync = LayerQuerySynchronizer("occurrence_1", "scientificname")
        self.layer = FakeSubLayer()

    def test_starts_uninitialized(self):
        self.assertEqual(self.sync.state, SyncState.UNINITIALIZED)
        self.assertIsNone(self.sync.current_query)

    def test_clear_is_idempotent(self):
        self.sync.attach(self.layer)
        for _ in range(3):
            self.sync.clear_filter()
        self.assertEqual([c["sql"] for c in self.layer.calls], [BASE] * 3)
        self.assertEqual(self.sync.state, SyncState.CLEARED)

    def test_apply_filter(self):
        self.sync.attach(self.layer)
        self.sync.apply_filter("Pica pica")
        self.assertEqual(self.layer.sql, "SELECT * FROM occurrence_1 WHERE scientificname = 'Pica pica'")
        self.assertEqual(self.sync.state, SyncState.FILTERED)
        self.assertEqual(self.sync.filter_value, "Pica pica")

    def test_round_trip_returns_to_cleared_query(self):
        self.sync.attach(self.layer)
        self.sync.clear_filter()
        initial = self.layer.sql
        self.sync.apply_filter("Pica pica")
        self.sync.clear_filter()
        self.assertEqual(self.layer.sql, initial)
        self.assertEqual(self.sync.state, SyncState.CLEARED)
        self.assertIsNone(self.sync.filter_value)

    def test_quote_in_value_is_escaped(self):
        self.sync.attach(self.layer)
        self.sync.apply_filter("O'Brien")
        self.assertEqual(self.layer.sql, "SELECT * FROM occurrence_1 WHERE scientificname = 'O''Brien'")

    def test_requests_before_attach_keep_only_latest(self):
        self.sync.apply_filter("Pica pica")
        self.sync.apply_filter("Corvus corone")
        self.assertEqual(self.layer.calls, [])
        self.assertEqual(
            self.sync.pending_query,
            "SELECT * FROM occurrence_1 WHERE scientificname = 'Corvus corone'",
        )

        self.sync.attach(self.layer)

        self.assertEqual(len(self.layer.calls), 1)
        self.assertEqual(self.layer.sql, "SELECT * FROM occurrence_1 WHERE scientificname = 'Corvus corone'")
        self.assertIsNone(self.sync.pending_query)
        self.assertEqual(self.sync.state, SyncState.FILTERED)

    def test_attach_without_pending_request_pushes_nothing(self):
        self.sync.attach(self.layer)
        self.assertEqual(self.layer.calls, [])
        self.assertEqual(self.sync.state, SyncState.UNINITIALIZED)

    def test_requests_after_map_failure_are_dropped(self):
        self.sync.apply_filter("Pica pica")
        with self.assertLogs("core.layer_sync", level="WARNING"):
            self.sync.mark_unavailable("viz.json 404")
        self.assertIsNone(self.sync.pending_query)

        with self.assertLogs("core.layer_sync", level="WARNING") as logs:
            self.sync.clear_filter()
        self.assertIn("dropping", logs.output[0])
        self.assertIsNone(self.sync.pending_query)
        self.assertIsNone(self.sync.current_query)

    def test_history_records_pushed_queries(self):
        self.sync.attach(self.layer)
        self.sync.apply_filter("A")
        self.sync.clear_filter()
        self.assertEqual(
            self.sync.history,
            ["SELECT * FROM occurrence_1 WHERE scientificname = 'A'", BASE],
        )

    def test_invalid_table_fails_fast(self):
        with self.assertRaises(ValueError):
            LayerQuerySynchronizer("occurrence_1; DROP TABLE x", "scientificname")


def _ok(layergroup_id: str) -> MagicMock:
    r = MagicMock()
    r.status_code = 200
    r.json.return_value = {"layergroupid": layergroup_id}
    return r


def _layer_group() -> VisLayer:
    group = VisLayer(
        "layergroup",
        user_name="lifewatch",
        maps_api_template="https://{user}.carto.com:443",
    )
    group.sublayers.append(SubLayer(group, 0, {"sql": BASE, "cartocss": "#o {}"}))
    return group


class TestRejectedLayerUpdates(unittest.TestCase):
    """The map service may refuse a new layer group; the old tiles stay on screen."""

    def setUp(self):
        self.sync = LayerQuerySynchronizer("occurrence_1", "scientificname")
        self.group = _layer_group()
        self.sync.attach(self.group.get_sublayer(0))

    @patch("core.visualization.requests.post")
    def test_network_failure_is_not_recorded_as_applied(self, mock_post):
        mock_post.return_value = _ok("initial")
        self.sync.clear_filter()
        mock_post.reset_mock()
        mock_post.side_effect = requests.exceptions.ConnectionError("down")

        with self.assertLogs("core.layer_sync", level="WARNING"):
            self.sync.apply_filter("Pica pica")

        self.assertEqual(self.sync.state, SyncState.CLEARED)
        self.assertEqual(self.sync.current_query, BASE)
        self.assertIsNone(self.sync.filter_value)
        self.assertEqual(self.sync.history, [BASE])
        self.assertEqual(
            self.group.tile_url,
            "https://lifewatch.carto.com:443/api/v1/map/initial/{z}/{x}/{y}.png",
        )
        self.assertEqual(self.sync.last_error, "Network error: down")
        self.assertEqual(self.sync.failed_query, PICA)

    @patch("core.visualization.requests.post")
    def test_retry_applies_rejected_query(self, mock_post):
        mock_post.side_effect = [
            requests.exceptions.ConnectionError("down"),
            _ok("retried"),
        ]
        with self.assertLogs("core.layer_sync", level="WARNING"):
            self.sync.apply_filter("Pica pica")
        self.assertEqual(self.sync.state, SyncState.UNINITIALIZED)

        self.assertTrue(self.sync.retry())

        self.assertEqual(self.sync.state, SyncState.FILTERED)
        self.assertEqual(self.sync.current_query, PICA)
        self.assertEqual(self.sync.filter_value, "Pica pica")
        self.assertIsNone(self.sync.last_error)
        self.assertIsNone(self.sync.failed_query)
        self.assertEqual(self.sync.history, [PICA])
        self.assertIn("/retried/", self.group.tile_url)

    def test_retry_without_failure_does_nothing(self):
        self.assertFalse(self.sync.retry())

    def test_handle_without_parent_gets_generic_error(self):
        layer = MagicMock(spec=["set"])
        layer.set.return_value = False
        sync = LayerQuerySynchronizer("occurrence_1", "scientificname")
        sync.attach(layer)

        with self.assertLogs("core.layer_sync", level="WARNING"):
            sync.clear_filter()

        self.assertEqual(sync.last_error, "Layer rejected the query")
        self.assertEqual(sync.state, SyncState.UNINITIALIZED)
        self.assertEqual(sync.history, [])


if __name__ == "__main__":
    unittest.main()
