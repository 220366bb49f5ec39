from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from typing import Any, Protocol, TypeVar

from borrower_match.logging.error_log import ErrorLogBuffer
from borrower_match.models.config_models import AdvisoryConfig, MatchingConfig
from borrower_match.models.error_record import ErrorRecord
from borrower_match.models.field_mapping import FieldMapping
from borrower_match.models.match import MatchCandidate, MatchHint, MatchResult, MatchTier
from borrower_match.models.records import CustomerRecord
from borrower_match.models.source_row import SourceRow

from .mapper import infer_mappings
from .matcher import IdentityAttributes, IdentityMatcher

"""Advisory (suggestion) layer.

An advisor proposes mappings and matches; the deterministic core decides what
to accept. Advisors are plugged in behind the Suggester protocol:

- RuleBasedSuggester: always available, same answers as the core rules
- GuardedSuggester: wraps any other advisor (e.g. an LLM client) with a
  timeout, a per-tenant rate limit and error capture, so a failing advisor
  degrades to "no suggestions" instead of failing the import.

Advisory match suggestions can never produce a link: they enter as soft-tier
candidates and at most move a row to review.
"""

__all__ = [
    "AdvisoryUnavailable",
    "MatchSuggestion",
    "Suggester",
    "RuleBasedSuggester",
    "RateLimitState",
    "GuardedSuggester",
    "apply_match_suggestion",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_confidence(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def _well_formed_mapping(item: Any) -> bool:
    return (
        isinstance(item, FieldMapping)
        and isinstance(item.source_column, str)
        and isinstance(item.canonical_field, str)
        and _is_confidence(item.confidence)
    )


def _well_formed_match(item: Any) -> bool:
    return (
        isinstance(item, MatchSuggestion)
        and isinstance(item.row_index, int)
        and isinstance(item.candidate, MatchCandidate)
        and isinstance(item.candidate.candidate_id, str)
        and _is_confidence(item.candidate.confidence)
    )


class AdvisoryUnavailable(Exception):
    """The advisor errored, timed out or was rate limited. Never escapes GuardedSuggester."""


@dataclass(frozen=True)
class MatchSuggestion:
    row_index: int
    candidate: MatchCandidate


class Suggester(Protocol):
    def suggest_mappings(
        self, headers: Sequence[str], sample_rows: Sequence[SourceRow]
    ) -> list[FieldMapping]: ...

    def suggest_matches(
        self, rows: Sequence[SourceRow], pool: Sequence[CustomerRecord]
    ) -> list[MatchSuggestion]: ...


class RuleBasedSuggester:
    """Deterministic advisor built from the core rules. Never fails."""

    def __init__(self, config: MatchingConfig | None = None) -> None:
        self.config = config or MatchingConfig()

    def suggest_mappings(
        self, headers: Sequence[str], sample_rows: Sequence[SourceRow]
    ) -> list[FieldMapping]:
        return infer_mappings(headers, config=self.config)

    def suggest_matches(
        self, rows: Sequence[SourceRow], pool: Sequence[CustomerRecord]
    ) -> list[MatchSuggestion]:
        if not rows:
            return []
        matcher = IdentityMatcher.for_pool(pool, self.config)
        mappings = infer_mappings(rows[0].columns, config=self.config)
        out: list[MatchSuggestion] = []
        for row in rows:
            identity = IdentityAttributes.from_row(row, mappings, self.config.phone_country_code)
            result = matcher.match(identity)
            if result.best is not None:
                out.append(MatchSuggestion(row.row_index, result.best))
        return out


class RateLimitState:
    """Sliding one-minute call window per tenant.

    Owned by one GuardedSuggester; create a new one per client rather than
    sharing module level counters.
    """

    def __init__(self, max_calls_per_minute: int, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_calls_per_minute = max_calls_per_minute
        self._clock = clock
        self._calls: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def try_acquire(self, tenant: str) -> bool:
        now = self._clock()
        with self._lock:
            window = self._calls.setdefault(tenant, deque())
            while window and now - window[0] >= 60.0:
                window.popleft()
            if len(window) >= self.max_calls_per_minute:
                return False
            window.append(now)
            return True

    def calls_in_window(self, tenant: str) -> int:
        with self._lock:
            return len(self._calls.get(tenant, ()))


class GuardedSuggester:
    """Call boundary around an unreliable advisor.

    Every failure (exception, timeout, rate limit) is logged, recorded in the
    optional ErrorLogBuffer and converted into an empty suggestion list.
    Malformed items in an otherwise successful result are dropped one by one.
    """

    def __init__(
        self,
        inner: Suggester,
        *,
        tenant: str = "default",
        config: AdvisoryConfig | None = None,
        rate_limit: RateLimitState | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.inner = inner
        self.tenant = tenant
        self.config = config or AdvisoryConfig()
        self.rate_limit = rate_limit or RateLimitState(self.config.max_calls_per_minute)
        self.error_log = error_log
        self.failures = 0
        self._executor = self._new_executor()

    @staticmethod
    def _new_executor() -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="advisory")

    def _call(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        if not self.rate_limit.try_acquire(self.tenant):
            raise AdvisoryUnavailable(f"{operation}: rate limit reached for tenant {self.tenant}")
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self.config.timeout_seconds)
        except FutureTimeoutError as e:
            # the hung call keeps its worker thread until it returns; later calls get a fresh one
            future.cancel()
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = self._new_executor()
            raise AdvisoryUnavailable(f"{operation}: timed out after {self.config.timeout_seconds}s") from e
        except Exception as e:
            raise AdvisoryUnavailable(f"{operation}: {e}") from e

    @staticmethod
    def _accept(operation: str, raw: Any, check: Callable[[Any], bool]) -> list[Any]:
        """Keep the well-formed items of an advisor result, log the rest."""
        try:
            items = list(raw)
        except Exception as e:
            raise AdvisoryUnavailable(f"{operation}: unreadable result ({type(raw).__name__}): {e}") from e
        kept = []
        for item in items:
            if check(item):
                kept.append(item)
            else:
                logger.warning("advisory %s: malformed item dropped: %r", operation, item)
        return kept

    def _record_failure(self, err: AdvisoryUnavailable) -> None:
        self.failures += 1
        logger.warning("advisory unavailable, using rule-based results: %s", err)
        if self.error_log is not None:
            self.error_log.append(
                ErrorRecord.create(
                    tenant=self.tenant,
                    subject="<BATCH>",
                    row=-1,
                    error_type="ADVISORY_UNAVAILABLE",
                    message=str(err),
                )
            )

    def suggest_mappings(
        self, headers: Sequence[str], sample_rows: Sequence[SourceRow]
    ) -> list[FieldMapping]:
        try:
            raw = self._call("suggest_mappings", self.inner.suggest_mappings, headers, sample_rows)
            return self._accept("suggest_mappings", raw, _well_formed_mapping)
        except AdvisoryUnavailable as e:
            self._record_failure(e)
            return []

    def suggest_matches(
        self, rows: Sequence[SourceRow], pool: Sequence[CustomerRecord]
    ) -> list[MatchSuggestion]:
        try:
            raw = self._call("suggest_matches", self.inner.suggest_matches, rows, pool)
            return self._accept("suggest_matches", raw, _well_formed_match)
        except AdvisoryUnavailable as e:
            self._record_failure(e)
            return []

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> GuardedSuggester:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def apply_match_suggestion(
    result: MatchResult,
    suggestion: MatchCandidate,
    known_ids: set[str],
) -> MatchResult:
    """Fold one advisory candidate into a rule-based result.

    - unknown customer ids and out-of-range confidences are dropped
    - a suggestion for a customer the rules already found only updates the
      confidence of a soft candidate; hard candidates are left untouched
    - a new customer is added as a soft candidate and forces REVIEW, unless
      the rules already produced an unambiguous hard match, which always wins
    """
    if suggestion.candidate_id not in known_ids:
        logger.warning("advisory match dropped: unknown customer %r", suggestion.candidate_id)
        return result
    if not 0.0 <= suggestion.confidence <= 1.0:
        logger.warning("advisory match dropped: confidence %s outside [0, 1]", suggestion.confidence)
        return result
    if result.has_unambiguous_hard_match:
        return result

    existing = [c for c in result.candidates if c.candidate_id == suggestion.candidate_id]
    if existing:
        updated = []
        for c in result.candidates:
            if c.candidate_id == suggestion.candidate_id and c.tier is MatchTier.SOFT:
                c = replace(c, confidence=suggestion.confidence, reason=suggestion.reason or c.reason)
            updated.append(c)
        return replace(result, candidates=tuple(updated))

    soft = replace(suggestion, tier=MatchTier.SOFT)
    candidates = tuple(sorted((*result.candidates, soft), key=lambda c: (not c.is_hard, -c.confidence)))
    return MatchResult(
        candidates=candidates,
        hint=MatchHint.REVIEW,
        ambiguous=result.ambiguous,
        reason=result.reason or "Advisory suggestion",
    )
