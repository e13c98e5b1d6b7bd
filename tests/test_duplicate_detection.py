import unittest
from typing import List, Sequence
from unittest.mock import MagicMock

from refmatch.matching.duplicate_detection import DuplicateDetector, duplicate_confidence
from refmatch.matching.identifiers import IdentifierKind
from refmatch.matching.strategies import SearchStrategy
from refmatch.models import Creator, DuplicateCandidate, RecordHandle


class FakeItemsRepo:
    def __init__(self, records: List[RecordHandle], fail_contains: bool = False) -> None:
        self.records = records
        self.fail_contains = fail_contains

    @staticmethod
    def _value(record: RecordHandle, field_name: str) -> str:
        if field_name == "creator":
            return record.creators_display()
        return getattr(record, field_name) or ""

    def find_by_exact_field(self, field_name: str, value: str, exclude_types: Sequence[str]):
        return [r for r in self.records if r.item_type not in exclude_types and self._value(r, field_name) == value]

    def find_by_contains(self, field_name: str, substring: str, exclude_types: Sequence[str]):
        if self.fail_contains:
            raise RuntimeError("scan failed")
        return [r for r in self.records if r.item_type not in exclude_types and substring in self._value(r, field_name)]


class ExplodingStrategy(SearchStrategy):
    name = "exploding"

    def applicable(self, ids) -> bool:
        return True

    def search(self, ids, exclude_key):
        raise RuntimeError("strategy bug")


VASWANI = (Creator(first_name="Ashish", last_name="Vaswani"),)


def _source(**kwargs) -> RecordHandle:
    base = dict(
        key="SRC",
        item_type="journalArticle",
        title="Attention Is All You Need",
        date="2017",
        creators=VASWANI,
    )
    base.update(kwargs)
    return RecordHandle(**base)


def _candidate(similarity: int) -> DuplicateCandidate:
    return DuplicateCandidate(
        key="DUP", title="Dup", creators="Doe", year=None, item_type="book", similarity=similarity, match_type="ISBN match"
    )


class DetectDuplicatesTests(unittest.TestCase):
    def test_identifier_and_fuzzy_hits_collapse_to_best(self) -> None:
        repo = FakeItemsRepo([
            RecordHandle(
                key="A", item_type="journalArticle", title="Attention is all you need",
                date="2017-06-12", creators=VASWANI, doi="10.5555/attn",
            ),
        ])
        result = DuplicateDetector(repo).detect_duplicates(_source(doi="https://doi.org/10.5555/attn"))
        self.assertTrue(result.has_duplicates)
        self.assertEqual(result.duplicate_count, 1)
        self.assertEqual(result.candidates[0].match_type, "DOI match")
        self.assertEqual(result.candidates[0].similarity, 99)
        self.assertEqual(result.flagged_items, frozenset({"A"}))

    def test_failed_strategies_only_cost_recall(self) -> None:
        repo = FakeItemsRepo(
            [RecordHandle(key="A", item_type="book", isbn="9780306406157", title="A Book")],
            fail_contains=True,
        )
        result = DuplicateDetector(repo).detect_duplicates(_source(isbn="978-0-306-40615-7", auxiliary_text="PMID: 12345678"))
        self.assertEqual([(c.key, c.match_type) for c in result.candidates], [("A", "ISBN match")])

    def test_crashing_strategy_is_isolated(self) -> None:
        repo = FakeItemsRepo([RecordHandle(key="A", item_type="journalArticle", doi="10.1/x")])
        detector = DuplicateDetector(repo)
        detector.strategies = [ExplodingStrategy(repo)] + detector.strategies
        result = detector.detect_duplicates(_source(doi="10.1/x"))
        self.assertEqual(result.duplicate_count, 1)

    def test_internal_error_returns_empty_result(self) -> None:
        normalizer = MagicMock()
        normalizer.normalize.side_effect = RuntimeError("boom")
        detector = DuplicateDetector(FakeItemsRepo([]), url_normalizer=normalizer)
        result = detector.detect_duplicates(_source(url="https://example.com/x"))
        self.assertFalse(result.has_duplicates)
        self.assertEqual(result.duplicate_count, 0)
        self.assertEqual(result.candidates, ())

    def test_no_identifiers_means_no_candidates(self) -> None:
        record = RecordHandle(key="SRC", item_type="journalArticle")
        result = DuplicateDetector(FakeItemsRepo([])).detect_duplicates(record)
        self.assertFalse(result.has_duplicates)

    def test_results_truncated_to_max_results(self) -> None:
        repo = FakeItemsRepo([RecordHandle(key=f"K{i:02d}", item_type="journalArticle", doi="10.1/same") for i in range(12)])
        result = DuplicateDetector(repo, max_results=10).detect_duplicates(_source(doi="10.1/same"))
        self.assertEqual(result.duplicate_count, 12)
        self.assertEqual(len(result.candidates), 10)
        self.assertEqual(len(result.flagged_items), 10)


class FlagPossibleDuplicateTests(unittest.TestCase):
    def test_confidence_boundaries(self) -> None:
        self.assertEqual(duplicate_confidence(85), "high")
        self.assertEqual(duplicate_confidence(84), "medium")
        self.assertEqual(duplicate_confidence(70), "medium")
        self.assertEqual(duplicate_confidence(69), "low")

    def test_warning_payload(self) -> None:
        warning = DuplicateDetector(FakeItemsRepo([])).flag_possible_duplicate(_source(), _candidate(95))
        self.assertEqual(warning["itemKey"], "SRC")
        self.assertEqual(warning["duplicateKey"], "DUP")
        self.assertEqual(warning["confidence"], "high")
        self.assertIn("ISBN match", warning["message"])


class LookupTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repo = FakeItemsRepo([
            RecordHandle(key="U", item_type="webpage", url="https://www.example.com/a/?utm_medium=x"),
            RecordHandle(key="D", item_type="journalArticle", doi="10.1/abc"),
            RecordHandle(key="P", item_type="journalArticle", auxiliary_text="PMID: 12345678"),
            RecordHandle(key="X", item_type="preprint", auxiliary_text="arXiv: 2101.00001"),
        ])
        self.detector = DuplicateDetector(self.repo)

    def test_find_item_by_url(self) -> None:
        found = self.detector.find_item_by_url("https://example.com/a")
        self.assertEqual(found.key, "U")
        self.assertIsNone(self.detector.find_item_by_url("https://example.com/b"))

    def test_find_item_by_identifier(self) -> None:
        self.assertEqual(self.detector.find_item_by_identifier(IdentifierKind.DOI, "doi:10.1/abc").key, "D")
        self.assertEqual(self.detector.find_item_by_identifier(IdentifierKind.PMID, "12345678").key, "P")
        self.assertEqual(self.detector.find_item_by_identifier(IdentifierKind.ARXIV, "2101.00001").key, "X")
        self.assertIsNone(self.detector.find_item_by_identifier(IdentifierKind.PMID, "87654321"))

    def test_unsupported_kind_returns_none(self) -> None:
        self.assertIsNone(self.detector.find_item_by_identifier(IdentifierKind.ISBN, "9780306406157"))


if __name__ == "__main__":
    unittest.main()
