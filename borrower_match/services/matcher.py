from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from borrower_match.models.config_models import MatchingConfig
from borrower_match.models.field_mapping import FieldMapping
from borrower_match.models.match import MatchCandidate, MatchHint, MatchResult, MatchTier
from borrower_match.models.records import CustomerRecord
from borrower_match.models.source_row import SourceRow

from .normalize import (
    normalize_email,
    normalize_name,
    normalize_national_id,
    normalize_phone,
    similarity,
)
from .validator import mapped_values, resolve_value

"""Identity matcher: tiered hard/soft matching against the customer pool.

Hard tier: exact equality of normalized phone, national ID or email, checked
in that priority order. A single customer hit on one or more of those fields
is the only situation that yields hint LINK. Hits on different customers
(e.g. phone matches A, national ID matches B, or two customers share a phone)
are ambiguous and yield REVIEW.

Soft tier (only when no hard hit): name similarity strictly above the soft
threshold. One survivor -> soft candidate with hint REVIEW; several survivors
-> no candidate, ambiguous, REVIEW. Nothing at all -> CREATE_NEW.

The matcher never mutates the pool; one CustomerIndex can be shared by any
number of worker threads.
"""

__all__ = [
    "IdentityAttributes",
    "CustomerIndex",
    "IdentityMatcher",
    "match_identity",
]

logger = logging.getLogger(__name__)

HARD_FIELDS: tuple[str, ...] = ("phone", "nationalId", "email")


@dataclass(frozen=True)
class IdentityAttributes:
    """Normalized identity values of one incoming record ("" when absent)."""
    full_name: str = ""
    phone: str = ""
    national_id: str = ""
    email: str = ""

    @classmethod
    def normalized(
        cls,
        *,
        full_name: Any = None,
        phone: Any = None,
        national_id: Any = None,
        email: Any = None,
        country_code: str = "260",
    ) -> IdentityAttributes:
        return cls(
            full_name=normalize_name(full_name),
            phone=normalize_phone(phone, country_code),
            national_id=normalize_national_id(national_id),
            email=normalize_email(email),
        )

    @classmethod
    def from_row(
        cls, row: SourceRow, mappings: Sequence[FieldMapping], country_code: str = "260"
    ) -> IdentityAttributes:
        mapped = mapped_values(row, mappings)
        return cls.normalized(
            full_name=resolve_value(row, mapped, "fullName"),
            phone=resolve_value(row, mapped, "phone"),
            national_id=resolve_value(row, mapped, "nationalId"),
            email=resolve_value(row, mapped, "email"),
            country_code=country_code,
        )

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any], country_code: str = "260") -> IdentityAttributes:
        """From canonical-keyed raw fields (fullName / phone / nationalId / email)."""
        return cls.normalized(
            full_name=fields.get("fullName"),
            phone=fields.get("phone"),
            national_id=fields.get("nationalId"),
            email=fields.get("email"),
            country_code=country_code,
        )

    def value_for(self, field: str) -> str:
        if field == "phone":
            return self.phone
        if field == "nationalId":
            return self.national_id
        if field == "email":
            return self.email
        return self.full_name

    @property
    def is_empty(self) -> bool:
        return not (self.full_name or self.phone or self.national_id or self.email)


class CustomerIndex:
    """Read-only lookup tables over a customer pool.

    Hard-tier lookups become dict hits instead of pool scans; the soft tier
    still compares against every named customer.
    """

    def __init__(self, pool: Iterable[CustomerRecord], country_code: str = "260") -> None:
        self.customers: list[CustomerRecord] = list(pool)
        self._by_field: dict[str, dict[str, list[CustomerRecord]]] = {f: {} for f in HARD_FIELDS}
        self._names: list[tuple[CustomerRecord, str]] = []
        for c in self.customers:
            keys = {
                "phone": normalize_phone(c.phone, country_code),
                "nationalId": normalize_national_id(c.national_id),
                "email": normalize_email(c.email),
            }
            for f, key in keys.items():
                if key:
                    self._by_field[f].setdefault(key, []).append(c)
            self._names.append((c, normalize_name(c.full_name)))

    def __len__(self) -> int:
        return len(self.customers)

    def lookup(self, field: str, value: str) -> list[CustomerRecord]:
        if not value:
            return []
        return list(self._by_field[field].get(value, ()))

    def names(self) -> list[tuple[CustomerRecord, str]]:
        return self._names

    def get(self, customer_id: str) -> CustomerRecord | None:
        for c in self.customers:
            if c.id == customer_id:
                return c
        return None


_FIELD_LABELS = {"phone": "phone number", "nationalId": "NRC", "email": "email"}


class IdentityMatcher:
    def __init__(self, index: CustomerIndex, config: MatchingConfig | None = None) -> None:
        self.index = index
        self.config = config or MatchingConfig()

    @classmethod
    def for_pool(
        cls, pool: Iterable[CustomerRecord], config: MatchingConfig | None = None
    ) -> IdentityMatcher:
        cfg = config or MatchingConfig()
        return cls(CustomerIndex(pool, cfg.phone_country_code), cfg)

    def match(self, identity: IdentityAttributes) -> MatchResult:
        hard = self._hard_match(identity)
        if hard is not None:
            return hard
        return self._soft_match(identity)

    def _hard_match(self, identity: IdentityAttributes) -> MatchResult | None:
        # customer id -> (record, matched fields in priority order, confidence)
        hits: dict[str, tuple[CustomerRecord, list[str], float]] = {}
        for field in HARD_FIELDS:
            for customer in self.index.lookup(field, identity.value_for(field)):
                conf = self.config.hard_confidence(field)
                if customer.id in hits:
                    rec, fields, best = hits[customer.id]
                    fields.append(field)
                    hits[customer.id] = (rec, fields, max(best, conf))
                else:
                    hits[customer.id] = (customer, [field], conf)

        if not hits:
            return None

        candidates = [
            MatchCandidate(
                candidate_id=rec.id,
                display_name=rec.full_name or "Unknown",
                confidence=conf,
                matched_fields=frozenset(fields),
                tier=MatchTier.HARD,
                reason="Exact " + " + ".join(_FIELD_LABELS[f] for f in fields) + " match",
            )
            for rec, fields, conf in hits.values()
        ]
        # stable sort keeps priority order (phone first) among equal scores
        candidates.sort(key=lambda c: (-c.confidence, -len(c.matched_fields)))

        if len(candidates) == 1:
            return MatchResult(
                candidates=tuple(candidates),
                hint=MatchHint.LINK,
                ambiguous=False,
                reason=candidates[0].reason,
            )

        logger.warning(
            "ambiguous identity: hard identifiers point at %d customers (%s)",
            len(candidates),
            ", ".join(c.candidate_id for c in candidates),
        )
        return MatchResult(
            candidates=tuple(candidates),
            hint=MatchHint.REVIEW,
            ambiguous=True,
            reason=f"Identifiers match {len(candidates)} different customers",
        )

    def _soft_match(self, identity: IdentityAttributes) -> MatchResult:
        name = identity.full_name
        if not name:
            return MatchResult.no_match()

        survivors: list[tuple[CustomerRecord, float]] = []
        for customer, candidate_name in self.index.names():
            score = similarity(name, candidate_name)
            if score > self.config.soft_threshold:
                survivors.append((customer, score))

        if not survivors:
            return MatchResult.no_match()

        if len(survivors) > 1:
            logger.info(
                "ambiguous name %r: %d similar customers, no suggestion", name, len(survivors)
            )
            return MatchResult(
                candidates=(),
                hint=MatchHint.REVIEW,
                ambiguous=True,
                reason=f"{len(survivors)} customers with similar names",
            )

        customer, score = survivors[0]
        candidate = MatchCandidate(
            candidate_id=customer.id,
            display_name=customer.full_name or "Unknown",
            confidence=self.config.soft_confidence,
            matched_fields=frozenset({"fullName"}),
            tier=MatchTier.SOFT,
            reason=f"High name similarity ({score:.0%})",
        )
        return MatchResult(
            candidates=(candidate,),
            hint=MatchHint.REVIEW,
            ambiguous=False,
            reason=candidate.reason,
        )


def match_identity(
    identity: IdentityAttributes,
    pool: Iterable[CustomerRecord],
    config: MatchingConfig | None = None,
) -> MatchResult:
    """One-shot convenience wrapper; build an IdentityMatcher for batches."""
    return IdentityMatcher.for_pool(pool, config).match(identity)
