from __future__ import annotations

from dataclasses import dataclass

from .fields import is_canonical

"""FieldMapping model: one source column mapped onto one canonical field."""

__all__ = [
    "FieldMapping",
    "MappingSource",
]


class MappingSource:
    RULE = "rule"
    ADVISORY = "advisory"


@dataclass(frozen=True)
class FieldMapping:
    """Mapping of a raw header to a canonical field.

    Attributes:
        source_column: header text exactly as it appears in the dataset
        canonical_field: one of CANONICAL_FIELDS
        confidence: 0.0 - 1.0
        rationale: short human readable reason (shown in the review UI)
        source: "rule" or "advisory"
    """
    source_column: str
    canonical_field: str
    confidence: float
    rationale: str = ""
    source: str = MappingSource.RULE

    @property
    def is_canonical(self) -> bool:
        return is_canonical(self.canonical_field)
