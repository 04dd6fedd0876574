"""Resolve an answer value to one option of a choice group.

Identity short-circuits run first (token, exact label, case tie-break)
and only then the tiered fuzzy score. Scoring is a pure function of
strings so it can be exercised without a document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from .field_index import IndexedOption, normalize_key

_WHITESPACE = re.compile(r"\s+")
_LEADING_UPPER = re.compile(r"^[A-Z]")


def fold_case(value: Optional[str]) -> str:
    """Lowercase and collapse whitespace; punctuation survives."""
    return _WHITESPACE.sub(" ", str(value or "").lower()).strip()


def _overlaps(left: str, right: str) -> bool:
    return bool(left) and bool(right) and (left in right or right in left)


@dataclass(frozen=True)
class MatchSignals:
    raw: str
    folded: str
    normalized: str
    label_folded: str
    label_normalized: str
    surrounding: str
    surrounding_folded: str
    surrounding_normalized: str

    @classmethod
    def build(cls, value: str, label: str, surrounding: str) -> "MatchSignals":
        around = (surrounding or "").strip()
        return cls(
            raw=str(value).strip(),
            folded=fold_case(value),
            normalized=normalize_key(value),
            label_folded=fold_case(label),
            label_normalized=normalize_key(label),
            surrounding=around,
            surrounding_folded=fold_case(around),
            surrounding_normalized=normalize_key(around),
        )


SCORE_TABLE: Sequence[Tuple[int, Callable[[MatchSignals], bool]]] = (
    (90, lambda s: bool(s.label_folded) and s.label_folded == s.folded),
    (80, lambda s: _overlaps(s.label_folded, s.folded)),
    (78, lambda s: bool(s.surrounding) and s.surrounding == s.raw),
    (75, lambda s: bool(s.surrounding_folded) and s.surrounding_folded == s.folded),
    (60, lambda s: bool(s.label_normalized) and s.label_normalized == s.normalized),
    (50, lambda s: _overlaps(s.label_normalized, s.normalized)),
    (40, lambda s: _overlaps(s.surrounding_normalized, s.normalized)),
)


def score_option(value: str, label: str, surrounding: str = "") -> int:
    signals = MatchSignals.build(value, label, surrounding)
    for score, predicate in SCORE_TABLE:
        if predicate(signals):
            return score
    return 0


def _case_tie_break(raw: str, options: Sequence[IndexedOption]) -> Optional[IndexedOption]:
    folded = fold_case(raw)
    candidates = [option for option in options if fold_case(option.label) == folded]
    if len(candidates) < 2:
        return None
    for option in candidates:
        if option.label.strip() == raw:
            return option
    for option in candidates:
        if _LEADING_UPPER.match(option.label.strip()):
            return option
    return None


def select_option(value: Optional[str], options: Sequence[IndexedOption]) -> Optional[IndexedOption]:
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    for option in options:
        if option.id == value:
            return option
    for option in options:
        if option.label.strip() == raw:
            return option
    tie_break = _case_tie_break(raw, options)
    if tie_break is not None:
        return tie_break

    best: Optional[IndexedOption] = None
    best_score = 0
    for option in options:
        score = score_option(raw, option.label, option.surrounding)
        if score > best_score:
            best, best_score = option, score
    return best
