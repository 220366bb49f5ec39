from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the borrower import / reconciliation library.

Every value has a default so the library works without a config file; the
loader in borrower_match.config.loader overlays YAML values on top.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class AdvisoryConfig:
    """Limits applied around the optional advisory (AI) suggester."""
    enabled: bool = False
    timeout_seconds: float = 10.0
    max_calls_per_minute: int = 20


@dataclass(frozen=True)
class MatchingConfig:
    """Constants for mapping, matching and classification."""
    rule_confidence: float = 0.8
    advisory_min_confidence: float = 0.3
    phone_country_code: str = "260"
    phone_confidence: float = 0.95
    national_id_confidence: float = 0.95
    email_confidence: float = 0.9
    soft_threshold: float = 0.8  # similarity must be strictly greater
    soft_confidence: float = 0.75
    orphan_fuzzy_threshold: float = 0.9

    def hard_confidence(self, field_name: str) -> float:
        if field_name == "phone":
            return self.phone_confidence
        if field_name == "nationalId":
            return self.national_id_confidence
        return self.email_confidence


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object."""
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    advisory: AdvisoryConfig = field(default_factory=AdvisoryConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    concurrency_limit: int = 8
    auto_commit_needs_review: bool = False  # needs_review rows wait for a manual gate
    sample_rows: int = 5  # rows handed to the advisory layer
