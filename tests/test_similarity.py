import unittest

from refmatch.matching.similarity import (
    EXACT_TITLE_SCORE,
    SimilarityWeights,
    author_similarity,
    clamp_score,
    combined_similarity,
    levenshtein_ratio,
    normalize_title,
    round_half_up,
    title_similarity,
    year_similarity,
)


class TitleSimilarityTests(unittest.TestCase):
    def test_punctuation_and_case_are_ignored(self) -> None:
        self.assertEqual(
            title_similarity("Attention Is All You Need", "attention is all you need!!"),
            EXACT_TITLE_SCORE,
        )

    def test_identical_titles_score_95_not_100(self) -> None:
        self.assertEqual(title_similarity("Deep Residual Learning", "Deep Residual Learning"), 95)

    def test_missing_title_scores_zero(self) -> None:
        self.assertEqual(title_similarity("", "Something"), 0)
        self.assertEqual(title_similarity("Something", None), 0)

    def test_near_match_lands_in_85_band(self) -> None:
        # one substitution in ten characters -> ratio 0.9
        self.assertEqual(title_similarity("abcdefghij", "abcdefghix"), 85)

    def test_unrelated_titles_stay_low(self) -> None:
        score = title_similarity("Quantum chromodynamics", "A history of medieval bread")
        self.assertLess(score, 42)
        self.assertGreaterEqual(score, 0)

    def test_normalize_title_collapses_whitespace(self) -> None:
        self.assertEqual(normalize_title("  Foo,   Bar:  baz! "), "foo bar baz")

    def test_normalize_title_is_idempotent(self) -> None:
        samples = [
            "",
            "   ",
            "Attention Is All You Need!!",
            "  Foo,\tBar:\n\n baz ",
            "Étude sur l'économie «naïve»?",
            "Über-Größe: 東京 (2019)",
            "...---...",
        ]
        for s in samples:
            once = normalize_title(s)
            self.assertEqual(normalize_title(once), once, repr(s))


class AuthorSimilarityTests(unittest.TestCase):
    def test_exact_match_case_insensitive(self) -> None:
        self.assertEqual(author_similarity("Smith", "smith"), 100)

    def test_bare_surname_contained_in_full_name(self) -> None:
        self.assertEqual(author_similarity("Smith", "Smith, J."), 85)

    def test_empty_author_scores_zero(self) -> None:
        self.assertEqual(author_similarity("", "Smith"), 0)
        self.assertEqual(author_similarity(None, None), 0)


class YearSimilarityTests(unittest.TestCase):
    def test_year_bands(self) -> None:
        self.assertEqual(year_similarity(2020, 2020), 100)
        self.assertEqual(year_similarity(2020, 2021), 80)
        self.assertEqual(year_similarity(2022, 2020), 60)

    def test_large_gap_or_missing_year_is_not_applicable(self) -> None:
        self.assertIsNone(year_similarity(2020, 2024))
        self.assertIsNone(year_similarity(None, 2020))


class CombinedSimilarityTests(unittest.TestCase):
    def test_all_factors_present(self) -> None:
        # (95*0.4 + 100*0.3 + 100*0.2) / 0.9 = 97.78
        score = combined_similarity(
            "Attention Is All You Need", "attention is all you need", "Vaswani", "Vaswani", 2017, 2017
        )
        self.assertEqual(score, 98)

    def test_missing_factors_renormalize_weights(self) -> None:
        self.assertEqual(combined_similarity("Foo Bar", "foo bar"), 95)
        self.assertEqual(combined_similarity("Foo Bar", "foo bar", year1=2000, year2=2010), 95)

    def test_nothing_comparable_scores_zero(self) -> None:
        self.assertEqual(combined_similarity(None, None), 0)
        self.assertEqual(combined_similarity("x", "y", weights=SimilarityWeights(0, 0, 0)), 0)

    def test_scores_are_bounded(self) -> None:
        pairs = [
            ("a", "b"),
            ("The same words", "the same words"),
            ("Short", "A considerably longer and unrelated title"),
        ]
        for t1, t2 in pairs:
            score = combined_similarity(t1, t2, "Doe", "Roe", 1990, 1991)
            self.assertGreaterEqual(score, 0)
            self.assertLessEqual(score, 100)


class RoundingTests(unittest.TestCase):
    def test_half_up(self) -> None:
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(0.5), 1)
        self.assertEqual(round_half_up(79.4), 79)

    def test_clamp(self) -> None:
        self.assertEqual(clamp_score(120), 100)
        self.assertEqual(clamp_score(-3), 0)

    def test_levenshtein_ratio(self) -> None:
        self.assertEqual(levenshtein_ratio("", ""), 1.0)
        self.assertAlmostEqual(levenshtein_ratio("abc", "abd"), 2 / 3)


if __name__ == "__main__":
    unittest.main()
