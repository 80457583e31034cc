"""
Tests for core.config (dataset registry and environment overrides).
"""
from __future__ import annotations

import logging
import os
import unittest
from unittest.mock import patch

from core import config


class TestDatasetRegistry(unittest.TestCase):

    def test_known_datasets(self):
        registry = config.build_dataset_registry()
        self.assertEqual(set(registry), {"occurrence_1", "alien_macroinvertebrates"})
        occurrence = registry["occurrence_1"]
        self.assertEqual(occurrence.table, "occurrence_1")
        self.assertEqual(occurrence.column, "scientificname")
        self.assertEqual(occurrence.layer_index, 1)
        self.assertEqual(occurrence.sublayer_index, 0)
        self.assertEqual(occurrence.map_options.center, (51.1, 4.2))
        self.assertEqual(occurrence.map_options.zoom, 8)
        self.assertFalse(occurrence.map_options.cartodb_logo)

    def test_dataset_without_options_uses_viz_defaults(self):
        alien = config.build_dataset_registry()["alien_macroinvertebrates"]
        self.assertIsNone(alien.map_options.center)
        self.assertIsNone(alien.map_options.zoom)
        self.assertTrue(alien.sql_api_url.endswith("/api/v2/sql"))


class TestEnvironmentOverrides(unittest.TestCase):

    def setUp(self):
        self.registry = config.build_dataset_registry()

    @patch.dict(os.environ, {}, clear=True)
    def test_default_dataset_is_first_entry(self):
        self.assertEqual(config.get_default_dataset_key(self.registry), next(iter(self.registry)))

    @patch.dict(os.environ, {config.ENV_DATASET: "alien_macroinvertebrates"})
    def test_dataset_from_environment(self):
        self.assertEqual(config.get_default_dataset_key(self.registry), "alien_macroinvertebrates")

    @patch.dict(os.environ, {config.ENV_DATASET: "missing"})
    def test_unknown_dataset_falls_back(self):
        with self.assertLogs("core.config", level="WARNING"):
            key = config.get_default_dataset_key(self.registry)
        self.assertEqual(key, next(iter(self.registry)))

    @patch.dict(os.environ, {}, clear=True)
    def test_timeout_default(self):
        self.assertEqual(config.get_request_timeout(), config.DEFAULT_TIMEOUT_SEC)

    @patch.dict(os.environ, {config.ENV_TIMEOUT: "12.5"})
    def test_timeout_from_environment(self):
        self.assertEqual(config.get_request_timeout(), 12.5)

    def test_malformed_timeout_falls_back(self):
        for raw in ("soon", "-3", "0"):
            with self.subTest(raw=raw), patch.dict(os.environ, {config.ENV_TIMEOUT: raw}):
                with self.assertLogs("core.config", level="WARNING"):
                    self.assertEqual(config.get_request_timeout(), config.DEFAULT_TIMEOUT_SEC)

    def test_configure_logging_sets_level(self):
        root = logging.getLogger()
        previous = root.level
        try:
            config.configure_logging("debug")
            if root.handlers:
                self.assertEqual(root.level, logging.DEBUG)
        finally:
            root.setLevel(previous)


if __name__ == "__main__":
    unittest.main()
