"""Parse model category responses and match them to known category names."""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

# Fuzzy matches must score strictly above this
FUZZY_THRESHOLD = 0.6
CONTAINMENT_SCORE = 0.8

_RESPONSE_PATTERN = re.compile(
    r"Category:\s*(?P<name>.+?)\s*(?:,|\n)\s*Confidence:\s*\[?(?P<confidence>\d*\.?\d+)",
    re.IGNORECASE,
)


@dataclass
class CategorySuggestion:
    """A category name and confidence parsed from a model response."""

    name: str
    confidence: float


def parse_category_response(text: Optional[str]) -> Optional[CategorySuggestion]:
    """
    Extract ``Category: <name>, Confidence: <score>`` from model output.

    Fields may be separated by a comma or a newline. Surrounding quotes,
    brackets and markdown emphasis are stripped from the name, and the
    confidence is clamped to [0, 1].

    Examples:
        >>> parse_category_response("Category: Bug Fix, Confidence: 0.9")
        CategorySuggestion(name='Bug Fix', confidence=0.9)
        >>> parse_category_response("no idea") is None
        True
    """
    if not text:
        return None

    match = _RESPONSE_PATTERN.search(text)
    if not match:
        return None

    name = match.group("name").strip().strip("*\"'`[]").strip()
    if not name:
        return None

    try:
        confidence = float(match.group("confidence"))
    except ValueError:
        return None

    return CategorySuggestion(name=name, confidence=min(max(confidence, 0.0), 1.0))


def _compact(value: str) -> str:
    return re.sub(r"[\W_]+", "", value.lower())


def similarity(suggested: str, candidate: str) -> float:
    """
    Score how well a suggested name matches a candidate category name.

    1.0 for case-insensitive equality after trimming, 0.8 when one contains
    the other (ignoring case, spaces and punctuation), otherwise the share of
    suggested characters present in the candidate.
    """
    a = suggested.strip().lower()
    b = candidate.strip().lower()
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    ca, cb = _compact(a), _compact(b)
    if ca and cb and (ca in cb or cb in ca):
        return CONTAINMENT_SCORE

    common = sum(1 for ch in a if ch in b)
    return common / max(len(a), len(b))


def match_category(suggested: str, names: Sequence[str]) -> Optional[str]:
    """
    Resolve a suggested name to one of ``names``.

    An exact, case-sensitive match always wins. Otherwise the best fuzzy
    score above FUZZY_THRESHOLD is taken; ties keep the earlier name.

    Returns:
        The matching category name, or None.
    """
    if suggested in names:
        return suggested

    best_name = None
    best_score = FUZZY_THRESHOLD
    for name in names:
        score = similarity(suggested, name)
        if score > best_score:
            best_name, best_score = name, score
    return best_name
