from __future__ import annotations

from typing import Callable, Dict, List, Optional, Protocol, Sequence

from ..logging_setup import get_logger, with_extras
from ..models import DuplicateCandidate, IdentifierSet, RecordHandle
from .identifiers import IdentifierKind, UrlNormalizerLike, extract_auxiliary_id
from .similarity import DEFAULT_WEIGHTS, SimilarityWeights, combined_similarity

logger = get_logger(__name__)

EXCLUDED_ITEM_TYPES = ("attachment", "note")
AUXILIARY_RESULT_CAP = 5
CREATOR_RESULT_CAP = 10
URL_RESULT_CAP = 10

# repository field names understood by every item repository adapter
FIELD_DOI = "doi"
FIELD_ISBN = "isbn"
FIELD_AUXILIARY = "auxiliary_text"
FIELD_URL = "url"
FIELD_CREATOR = "creator"

BASE_SCORES: Dict[IdentifierKind, int] = {
    IdentifierKind.DOI: 99,
    IdentifierKind.PMID: 98,
    IdentifierKind.ISBN: 95,
    IdentifierKind.PMCID: 95,
    IdentifierKind.ARXIV: 95,
}
MATCH_LABELS: Dict[IdentifierKind, str] = {
    IdentifierKind.DOI: "DOI match",
    IdentifierKind.ISBN: "ISBN match",
    IdentifierKind.PMID: "PMID match",
    IdentifierKind.PMCID: "PMC match",
    IdentifierKind.ARXIV: "ArXiv match",
}
URL_SCORE = 90
URL_LABEL = "URL match"
FUZZY_LABEL = "Fuzzy match"

_IDENTIFIER_GETTERS: Dict[IdentifierKind, Callable[[IdentifierSet], Optional[str]]] = {
    IdentifierKind.DOI: lambda ids: ids.doi,
    IdentifierKind.ISBN: lambda ids: ids.isbn,
    IdentifierKind.PMID: lambda ids: ids.pmid,
    IdentifierKind.PMCID: lambda ids: ids.pmcid,
    IdentifierKind.ARXIV: lambda ids: ids.arxiv_id,
}


class ItemRepository(Protocol):
    def find_by_exact_field(
        self, field_name: str, value: str, exclude_types: Sequence[str]
    ) -> Sequence[RecordHandle]: ...

    def find_by_contains(
        self, field_name: str, substring: str, exclude_types: Sequence[str]
    ) -> Sequence[RecordHandle]: ...


def make_candidate(record: RecordHandle, score: int, match_type: str) -> DuplicateCandidate:
    return DuplicateCandidate(
        key=record.key,
        title=record.title or "Untitled",
        creators=record.creators_display(),
        year=record.year,
        item_type=record.item_type,
        similarity=max(0, min(100, int(score))),
        match_type=match_type,
    )


class SearchStrategy:
    """
    One independent way of proposing duplicates. `search` never raises:
    repository failures are logged and the strategy contributes nothing.
    """
    name = "base"

    def __init__(self, repo: ItemRepository) -> None:
        self.repo = repo

    def applicable(self, ids: IdentifierSet) -> bool:
        raise NotImplementedError

    def _search(self, ids: IdentifierSet, exclude_key: str) -> List[DuplicateCandidate]:
        raise NotImplementedError

    def search(self, ids: IdentifierSet, exclude_key: str) -> List[DuplicateCandidate]:
        if not self.applicable(ids):
            return []
        try:
            return self._search(ids, exclude_key)
        except Exception:
            with_extras(logger, strategy=self.name, exclude_key=exclude_key).exception(
                "Duplicate search strategy failed"
            )
            return []


class ExactFieldStrategy(SearchStrategy):
    """DOI / ISBN: exact match on a structured field."""

    _FIELDS = {IdentifierKind.DOI: FIELD_DOI, IdentifierKind.ISBN: FIELD_ISBN}

    def __init__(self, repo: ItemRepository, kind: IdentifierKind) -> None:
        super().__init__(repo)
        if kind not in self._FIELDS:
            raise ValueError(f"no exact-match field for {kind.value}")
        self.kind = kind
        self.name = f"exact:{kind.value.lower()}"

    def applicable(self, ids: IdentifierSet) -> bool:
        return bool(_IDENTIFIER_GETTERS[self.kind](ids))

    def _search(self, ids: IdentifierSet, exclude_key: str) -> List[DuplicateCandidate]:
        value = _IDENTIFIER_GETTERS[self.kind](ids)
        records = self.repo.find_by_exact_field(self._FIELDS[self.kind], value, EXCLUDED_ITEM_TYPES)
        return [
            make_candidate(r, BASE_SCORES[self.kind], MATCH_LABELS[self.kind])
            for r in records
            if r.key != exclude_key
        ]


class AuxiliaryFieldStrategy(SearchStrategy):
    """
    PMID / PMCID / ArXiv ids live in the free-form auxiliary text. The
    `contains` query is coarse, so every hit is re-parsed with the id's own
    pattern and must yield exactly the target id.
    """

    def __init__(self, repo: ItemRepository, kind: IdentifierKind, cap: int = AUXILIARY_RESULT_CAP) -> None:
        super().__init__(repo)
        if kind not in (IdentifierKind.PMID, IdentifierKind.PMCID, IdentifierKind.ARXIV):
            raise ValueError(f"{kind.value} is not an auxiliary-text identifier")
        self.kind = kind
        self.cap = cap
        self.name = f"auxiliary:{kind.value.lower()}"

    def applicable(self, ids: IdentifierSet) -> bool:
        return bool(_IDENTIFIER_GETTERS[self.kind](ids))

    def _search(self, ids: IdentifierSet, exclude_key: str) -> List[DuplicateCandidate]:
        target = _IDENTIFIER_GETTERS[self.kind](ids)
        records = self.repo.find_by_contains(FIELD_AUXILIARY, target, EXCLUDED_ITEM_TYPES)
        out: List[DuplicateCandidate] = []
        for r in records:
            if r.key == exclude_key:
                continue
            found = extract_auxiliary_id(self.kind, r.auxiliary_text)
            if not found or found.lower() != target.lower():
                continue
            out.append(make_candidate(r, BASE_SCORES[self.kind], MATCH_LABELS[self.kind]))
            if len(out) >= self.cap:
                break
        return out


class UrlStrategy(SearchStrategy):
    name = "url"

    def __init__(self, repo: ItemRepository, url_normalizer: UrlNormalizerLike, cap: int = URL_RESULT_CAP) -> None:
        super().__init__(repo)
        self.url_normalizer = url_normalizer
        self.cap = cap

    def applicable(self, ids: IdentifierSet) -> bool:
        return bool(ids.url)

    def _search(self, ids: IdentifierSet, exclude_key: str) -> List[DuplicateCandidate]:
        domain = self.url_normalizer.domain(ids.url)
        records = self.repo.find_by_contains(FIELD_URL, domain, EXCLUDED_ITEM_TYPES)
        out: List[DuplicateCandidate] = []
        for r in list(records)[: self.cap]:
            if r.key == exclude_key or not r.url:
                continue
            if self.url_normalizer.normalize(r.url) == ids.url:
                out.append(make_candidate(r, URL_SCORE, URL_LABEL))
        return out


class FuzzyStrategy(SearchStrategy):
    """Title + first author + year, scored with combined_similarity."""
    name = "fuzzy"

    def __init__(
        self,
        repo: ItemRepository,
        *,
        min_similarity: float = 0.7,
        weights: SimilarityWeights = DEFAULT_WEIGHTS,
        cap: int = CREATOR_RESULT_CAP,
    ) -> None:
        super().__init__(repo)
        # 0.7 * 100 is 70.00000000000001 in floating point
        self.min_score = round(min_similarity * 100, 6)
        self.weights = weights
        self.cap = cap

    def applicable(self, ids: IdentifierSet) -> bool:
        return bool(ids.title and ids.first_author)

    def _search(self, ids: IdentifierSet, exclude_key: str) -> List[DuplicateCandidate]:
        records = self.repo.find_by_contains(FIELD_CREATOR, ids.first_author, EXCLUDED_ITEM_TYPES)
        out: List[DuplicateCandidate] = []
        for r in list(records)[: self.cap]:
            if r.key == exclude_key:
                continue
            score = combined_similarity(
                ids.title,
                r.title,
                ids.first_author,
                r.first_author,
                ids.year,
                r.year,
                weights=self.weights,
            )
            if score >= self.min_score:
                out.append(make_candidate(r, score, FUZZY_LABEL))
        return out


def default_strategies(
    repo: ItemRepository,
    url_normalizer: UrlNormalizerLike,
    *,
    min_similarity: float = 0.7,
    weights: SimilarityWeights = DEFAULT_WEIGHTS,
) -> List[SearchStrategy]:
    return [
        ExactFieldStrategy(repo, IdentifierKind.DOI),
        ExactFieldStrategy(repo, IdentifierKind.ISBN),
        FuzzyStrategy(repo, min_similarity=min_similarity, weights=weights),
        AuxiliaryFieldStrategy(repo, IdentifierKind.PMID),
        AuxiliaryFieldStrategy(repo, IdentifierKind.PMCID),
        AuxiliaryFieldStrategy(repo, IdentifierKind.ARXIV),
        UrlStrategy(repo, url_normalizer),
    ]
