import pytest

from gamescout.metadata.base import GameSearchResult
from gamescout.stores.base import GameSource
from gamescout.utils.matching import (
    find_best_match,
    levenshtein_distance,
    normalize_title,
    rank_candidates,
    score_match,
    similarity,
    strip_demo_indicator,
)


def candidate(title, source="igdb", steam_app_id=None, id=None):
    return GameSearchResult(id=id or f"{source}-{title}", title=title, source=source, steam_app_id=steam_app_id)


def test_normalize_title():
    assert normalize_title("Halo: Infinite") == "halo infinite"
    assert normalize_title("  DOOM   Eternal ") == "doom eternal"
    assert normalize_title(None) == ""


def test_levenshtein_and_similarity():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert similarity("", "") == 1.0
    assert similarity("portal", "portal 2") == pytest.approx(0.75)


def test_punctuation_only_difference_scores_high():
    score = score_match("Halo Infinite", candidate("Halo: Infinite"))
    assert score.confidence >= 0.8
    assert "exact title match" in score.reasons


def test_sequel_is_not_accepted():
    score = score_match("Portal", candidate("Portal 2"))
    assert score.confidence < 0.3
    assert "title suffix mismatch" in score.reasons
    assert find_best_match("Portal", [candidate("Portal 2")]) is None


def test_external_id_mismatch_lowers_confidence():
    matching = score_match("Portal 2", candidate("Portal 2", "steam", "620"), scanned_external_id="620")
    mismatched = score_match("Portal 2", candidate("Portal 2", "steam", "400"), scanned_external_id="620")
    assert mismatched.confidence < matching.confidence
    assert "external id mismatch" in mismatched.reasons
    assert "external id match" in matching.reasons


def test_trusted_source_bonus_without_scanned_id():
    plain = score_match("Baldurs Gate 3", candidate("Baldur's Gate 3"))
    trusted = score_match("Baldurs Gate 3", candidate("Baldur's Gate 3", "steam", "1086940"))
    assert trusted.confidence > plain.confidence


def test_same_source_bonus():
    other = score_match("Celeste", candidate("Celeste", "rawg"), scanned_source="steam")
    same = score_match("Celeste", candidate("Celeste", "steam"), scanned_source="steam")
    assert same.confidence == pytest.approx(min(1.0, other.confidence + 0.1))
    assert "source match" in same.reasons


def test_same_source_bonus_accepts_enum_sources():
    plain = score_match("Celeste", {"title": "Celeste", "source": "steam"}, scanned_source="steam")
    enum = score_match("Celeste", {"title": "Celeste", "source": "steam"}, scanned_source=GameSource.STEAM)
    assert enum == plain
    assert "source match" in enum.reasons


def test_score_is_deterministic_and_bounded():
    pairs = [
        ("The Witcher 3: Wild Hunt", candidate("The Witcher 3 Wild Hunt GOTY", "steam", "292030")),
        ("Hollow Knight", {"title": "Hollow Knight: Silksong", "source": "rawg"}),
        ("x", candidate("A Completely Different Game")),
        ("", candidate("Anything")),
    ]
    for title, cand in pairs:
        first = score_match(title, cand, "292030")
        second = score_match(title, cand, "292030")
        assert first == second
        assert 0.0 <= first.confidence <= 1.0


def test_rank_is_stable_for_ties():
    first = candidate("Celeste", id="a")
    second = candidate("Celeste", id="b")
    ranked = rank_candidates("Celeste", [first, second])
    assert [r.candidate.id for r in ranked] == ["a", "b"]


def test_find_best_match_picks_highest():
    best = find_best_match("DOOM Eternal", [
        candidate("DOOM"),
        candidate("DOOM Eternal"),
        candidate("DOOM Eternal: The Ancient Gods"),
    ])
    assert best is not None
    assert best.candidate.title == "DOOM Eternal"
    assert find_best_match("anything", []) is None


@pytest.mark.parametrize("title,expected", [
    ("Hades Demo", ("Hades", True)),
    ("Dredge (Trial)", ("Dredge", True)),
    ("Prologue", ("Prologue", False)),
    ("Portal 2", ("Portal 2", False)),
    ("Cult of the Lamb Prologue Demo", ("Cult of the Lamb", True)),
])
def test_strip_demo_indicator(title, expected):
    assert strip_demo_indicator(title) == expected
