from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Identity match models.

MatchCandidate objects are ephemeral: they are produced by the identity
matcher, shown to the operator, and discarded. Only the chosen resolution (a
loan -> customer link) is ever persisted.
"""

__all__ = [
    "MatchTier",
    "MatchHint",
    "MatchCandidate",
    "MatchResult",
]


class MatchTier(Enum):
    """HARD: exact equality on a unique identifier. SOFT: name similarity."""
    HARD = "hard"
    SOFT = "soft"


class MatchHint(Enum):
    """Matcher's recommendation for the row."""
    LINK = "link"
    CREATE_NEW = "create_new"
    REVIEW = "review"


@dataclass(frozen=True)
class MatchCandidate:
    candidate_id: str
    display_name: str
    confidence: float
    matched_fields: frozenset[str] = field(default_factory=frozenset)
    tier: MatchTier = MatchTier.SOFT
    reason: str = ""

    @property
    def is_hard(self) -> bool:
        return self.tier is MatchTier.HARD


@dataclass(frozen=True)
class MatchResult:
    """Ranked candidates plus the matcher's hint for one row.

    ambiguous is True when more than one distinct customer qualified in the
    winning tier. An ambiguous result always carries hint REVIEW.
    """
    candidates: tuple[MatchCandidate, ...] = ()
    hint: MatchHint = MatchHint.CREATE_NEW
    ambiguous: bool = False
    reason: str = ""

    @property
    def best(self) -> MatchCandidate | None:
        return self.candidates[0] if self.candidates else None

    @property
    def has_unambiguous_hard_match(self) -> bool:
        best = self.best
        return best is not None and best.is_hard and not self.ambiguous

    @property
    def requires_review(self) -> bool:
        return self.hint is MatchHint.REVIEW

    @classmethod
    def no_match(cls) -> MatchResult:
        return cls(candidates=(), hint=MatchHint.CREATE_NEW, ambiguous=False, reason="No match found")
