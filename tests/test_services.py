import os
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from refmatch.runtime_config import load_runtime_config
from refmatch.services import ServiceManager


class NullRepo:
    def find_by_exact_field(self, field_name, value, exclude_types):
        return []

    def find_by_contains(self, field_name, substring, exclude_types):
        return []


def _config():
    return load_runtime_config(Path("/nonexistent/runtime.toml"))


class ServiceManagerTests(unittest.TestCase):
    def test_initialize_and_teardown_all(self) -> None:
        session = MagicMock()
        mgr = ServiceManager(NullRepo(), _config(), session=session)
        mgr.initialize_all()
        self.assertTrue(all(s.is_ready() for s in mgr.services))
        self.assertEqual(len(mgr.services), 4)

        mgr.teardown_all()
        self.assertFalse(any(s.is_ready() for s in mgr.services))
        session.close.assert_not_called()

    def test_failed_initialization_tears_down_started_services(self) -> None:
        mgr = ServiceManager(NullRepo(), _config(), session=MagicMock())
        mgr.validator.initialize = MagicMock(side_effect=RuntimeError("boom"))
        with self.assertRaises(RuntimeError):
            mgr.initialize_all()
        self.assertFalse(mgr.crossref.is_ready())
        self.assertFalse(mgr.disambiguator.is_ready())
        self.assertFalse(mgr.detector.is_ready())

    def test_config_flows_into_services(self) -> None:
        mgr = ServiceManager(NullRepo(), _config(), session=MagicMock())
        self.assertEqual(mgr.disambiguator.defaults.max_candidates, 5)
        self.assertEqual(mgr.detector.max_results, 10)
        self.assertEqual(mgr.crossref.base_url, "https://api.crossref.org")

    def test_without_repository_only_disambiguation_is_built(self) -> None:
        with ServiceManager(config=_config(), session=MagicMock()) as mgr:
            self.assertIsNone(mgr.detector)
            self.assertEqual(len(mgr.services), 3)
            self.assertTrue(mgr.disambiguator.is_ready())
        self.assertFalse(mgr.crossref.is_ready())

    def test_environment_read_when_manager_is_built(self) -> None:
        # variables loaded from .env after import still reach the client
        with patch.dict(os.environ, {"CROSSREF_MAILTO": "lib@uni.example"}):
            mgr = ServiceManager(session=MagicMock())
        self.assertEqual(mgr.crossref.mailto, "lib@uni.example")


if __name__ == "__main__":
    unittest.main()
