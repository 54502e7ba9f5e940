"""Title matching between scanned games and metadata search results.

score_match() is a pure function: the same inputs always give the same
confidence and the same reasons, in the same order.
"""
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

ACCEPTANCE_THRESHOLD = 0.3

_DEMO_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r'\s+prologue\s+demo$',
        r'\s+demo\s+version$',
        r'\s*[\[(](?:demo|prologue|trial)[\])]\s*$',
        r'\s+demo$',
        r'\s+prologue$',
        r'\s+trial$',
        r'\s+beta$',
        r'\s+alpha$',
        r'\s+playtest$',
    )
]


@dataclass
class MatchScore:
    confidence: float
    reasons: List[str] = field(default_factory=list)


@dataclass
class MatchResult:
    """A candidate with its score"""
    candidate: Any
    confidence: float
    reasons: List[str] = field(default_factory=list)


def normalize_title(title: Optional[str]) -> str:
    """Lowercase, drop punctuation and collapse whitespace.

    Examples:
        "Halo: Infinite" -> "halo infinite"
        "  DOOM   Eternal " -> "doom eternal"
    """
    if not title:
        return ''
    title = title.lower().strip()
    title = re.sub(r'[^\w\s]', '', title)
    return re.sub(r'\s+', ' ', title).strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance, two-row dynamic programming."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """1 - distance / longer length; two empty strings are identical."""
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longer


def word_overlap(a: str, b: str) -> float:
    words_a = set(a.split())
    words_b = set(b.split())
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / max(len(words_a), len(words_b))


def strip_demo_indicator(title: str) -> Tuple[str, bool]:
    """Remove trailing demo/prologue/trial markers.

    Examples:
        "Hades Demo" -> ("Hades", True)
        "Dredge (Trial)" -> ("Dredge", True)
        "Portal 2" -> ("Portal 2", False)
    """
    stripped = title.strip()
    is_demo = False
    changed = True
    while changed:
        changed = False
        for pattern in _DEMO_PATTERNS:
            candidate = pattern.sub('', stripped).strip()
            if candidate != stripped and candidate:
                stripped = candidate
                is_demo = True
                changed = True
    return stripped, is_demo


def _field(candidate: Any, name: str) -> Any:
    if isinstance(candidate, Mapping):
        return candidate.get(name)
    return getattr(candidate, name, None)


def _source_name(source: Any) -> Any:
    """'steam' for both GameSource.STEAM and the plain string."""
    return getattr(source, 'value', source)


def _suffix_diverges(scanned: str, candidate: str) -> bool:
    """True when the titles share a leading word run but end differently.

    "portal" / "portal 2" diverge; "the witcher 3" / "the witcher iii" diverge;
    titles with no common first word are left to the other penalties.
    """
    scanned_words = scanned.split()
    candidate_words = candidate.split()
    prefix = 0
    for left, right in zip(scanned_words, candidate_words):
        if left != right:
            break
        prefix += 1

    if prefix == 0 or prefix >= max(len(scanned_words), len(candidate_words)):
        return False

    scanned_suffix = ' '.join(scanned_words[prefix:])
    candidate_suffix = ' '.join(candidate_words[prefix:])
    if not scanned_suffix or not candidate_suffix:
        return True
    return similarity(scanned_suffix, candidate_suffix) < 0.5


def score_match(scanned_title: str,
                candidate: Any,
                scanned_external_id: Optional[str] = None,
                scanned_source: Optional[str] = None) -> MatchScore:
    """
    Score one search candidate against a scanned title.

    Args:
        scanned_title: Title from the scanner.
        candidate: GameSearchResult or a mapping with title/source/steam_app_id.
        scanned_external_id: Platform id from the scan (Steam app id), if any.
        scanned_source: Launcher the scan came from, for the same-source bonus.

    Returns:
        MatchScore with confidence clamped to [0, 1].
    """
    confidence = 0.0
    reasons: List[str] = []

    scanned_norm = normalize_title(scanned_title)
    candidate_norm = normalize_title(_field(candidate, 'title'))
    exact = bool(scanned_norm) and scanned_norm == candidate_norm
    title_similarity = similarity(scanned_norm, candidate_norm) if scanned_norm and candidate_norm else 0.0

    if exact:
        confidence += 0.5
        reasons.append('exact title match')

    percent = f"{title_similarity * 100:.0f}%"
    if title_similarity > 0.9:
        confidence += 0.4
        reasons.append(f"very similar title ({percent})")
    elif title_similarity > 0.7:
        confidence += 0.2
        reasons.append(f"similar title ({percent})")
    elif title_similarity > 0.5:
        confidence += 0.1
        reasons.append(f"somewhat similar title ({percent})")
    else:
        reasons.append(f"low title similarity ({percent})")

    candidate_id = _field(candidate, 'steam_app_id')
    candidate_source = _source_name(_field(candidate, 'source'))
    if scanned_external_id and candidate_id:
        if str(scanned_external_id) == str(candidate_id):
            confidence += 0.4
            reasons.append('external id match')
        else:
            confidence -= 0.2
            reasons.append('external id mismatch')
    elif candidate_id and candidate_source == 'steam':
        if title_similarity > 0.7:
            confidence += 0.2
            reasons.append('trusted source with similar title')
        elif title_similarity > 0.5:
            confidence += 0.1
            reasons.append('trusted source with somewhat similar title')

    if scanned_source and candidate_source and _source_name(scanned_source) == candidate_source:
        confidence += 0.1
        reasons.append('source match')

    if not exact:
        if word_overlap(scanned_norm, candidate_norm) < 0.3:
            confidence -= 0.2
            reasons.append('low word overlap')

        longer = max(len(scanned_norm), len(candidate_norm))
        if abs(len(scanned_norm) - len(candidate_norm)) > longer * 0.5:
            confidence -= 0.4
            reasons.append('significant title length difference')

        if _suffix_diverges(scanned_norm, candidate_norm):
            confidence -= 0.5
            reasons.append('title suffix mismatch')

    confidence = max(0.0, min(1.0, confidence))
    return MatchScore(confidence=round(confidence, 4), reasons=reasons)


def rank_candidates(scanned_title: str,
                    candidates: Sequence[Any],
                    scanned_external_id: Optional[str] = None,
                    scanned_source: Optional[str] = None) -> List[MatchResult]:
    """Score every candidate, highest first; ties keep their input order."""
    scored = []
    for candidate in candidates:
        score = score_match(scanned_title, candidate, scanned_external_id, scanned_source)
        scored.append(MatchResult(candidate=candidate, confidence=score.confidence, reasons=score.reasons))
    scored.sort(key=lambda result: result.confidence, reverse=True)
    return scored


def find_best_match(scanned_title: str,
                    candidates: Sequence[Any],
                    scanned_external_id: Optional[str] = None,
                    scanned_source: Optional[str] = None,
                    threshold: float = ACCEPTANCE_THRESHOLD) -> Optional[MatchResult]:
    """
    Pick the top candidate if it clears the acceptance threshold.

    Returns:
        The best MatchResult, or None when nothing is acceptable and the
        caller has to fall back to manual resolution.
    """
    ranked = rank_candidates(scanned_title, candidates, scanned_external_id, scanned_source)
    if ranked and ranked[0].confidence >= threshold:
        return ranked[0]
    return None
