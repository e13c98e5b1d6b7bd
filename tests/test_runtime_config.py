import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from refmatch.runtime_config import load_runtime_config


class RuntimeConfigTests(unittest.TestCase):
    def _load(self, text: str):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "runtime.toml"
            path.write_text(text, encoding="utf-8")
            return load_runtime_config(path)

    def test_missing_file_uses_defaults(self) -> None:
        cfg = load_runtime_config(Path("/nonexistent/runtime.toml"))
        self.assertEqual(cfg.duplicates.title_weight, 0.4)
        self.assertEqual(cfg.duplicates.author_weight, 0.3)
        self.assertEqual(cfg.duplicates.year_weight, 0.2)
        self.assertEqual(cfg.duplicates.min_title_similarity, 0.7)
        self.assertEqual(cfg.duplicates.max_results, 10)
        self.assertEqual(cfg.disambiguation.max_candidates, 5)
        self.assertEqual(cfg.disambiguation.minimum_confidence_score, 30)
        self.assertEqual(cfg.crossref.base_url, "https://api.crossref.org")

    def test_broken_toml_uses_defaults(self) -> None:
        cfg = self._load("[duplicate_detection\n")
        self.assertEqual(cfg.duplicates.max_results, 10)

    def test_reads_values(self) -> None:
        cfg = self._load(
            "[duplicate_detection]\nmin_title_similarity = 0.8\nmax_results = 5\n"
            "[disambiguation]\nminimum_confidence_score = 0\nmax_candidates = 3\n"
            "[crossref]\nbase_url = \"http://localhost:9000/\"\ntimeout_seconds = 2.5\n"
        )
        self.assertEqual(cfg.duplicates.min_title_similarity, 0.8)
        self.assertEqual(cfg.duplicates.max_results, 5)
        self.assertEqual(cfg.disambiguation.minimum_confidence_score, 0)
        self.assertEqual(cfg.disambiguation.max_candidates, 3)
        self.assertEqual(cfg.crossref.base_url, "http://localhost:9000")
        self.assertEqual(cfg.crossref.timeout_seconds, 2.5)

    def test_invalid_values_fall_back(self) -> None:
        cfg = self._load(
            "[duplicate_detection]\ntitle_weight = 1.5\nauthor_weight = true\nmax_results = -1\n"
            "[disambiguation]\nminimum_confidence_score = 150\n"
            "[crossref]\nmailto = \"nope\"\ntimeout_seconds = 0\n"
        )
        self.assertEqual(cfg.duplicates.title_weight, 0.4)
        self.assertEqual(cfg.duplicates.author_weight, 0.3)
        self.assertEqual(cfg.duplicates.max_results, 10)
        self.assertEqual(cfg.disambiguation.minimum_confidence_score, 30)
        self.assertEqual(cfg.crossref.timeout_seconds, 10.0)
        self.assertIn("@", cfg.crossref.mailto)

    def test_mailto_from_environment(self) -> None:
        with patch.dict(os.environ, {"CROSSREF_MAILTO": "lib@uni.example"}):
            cfg = self._load("")
        self.assertEqual(cfg.crossref.mailto, "lib@uni.example")


if __name__ == "__main__":
    unittest.main()
