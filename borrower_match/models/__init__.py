"""Domain models for the borrower import and orphan-loan reconciliation library.

This package contains all domain model classes used throughout the application.
"""

from .analysis import ImportAnalysis, ImportSummary
from .config_models import AdvisoryConfig, DatabaseConfig, ImportConfig, MatchingConfig
from .decision import RowAction, RowDecision, RowStatus
from .field_mapping import FieldMapping
from .fields import CANONICAL_FIELDS, CUSTOMER_FIELDS, LOAN_FIELDS, ImportKind
from .match import MatchCandidate, MatchHint, MatchResult, MatchTier
from .orphan import CommitFailure, CommitReport, DecisionKind, OperatorDecision, OrphanCase, Resolution
from .records import CustomerRecord, LoanRecord
from .source_row import SourceRow
from .validation_issue import Severity, ValidationIssue

__all__ = [
    # Configuration models
    "AdvisoryConfig",
    "DatabaseConfig",
    "ImportConfig",
    "MatchingConfig",
    # Canonical vocabulary
    "CANONICAL_FIELDS",
    "CUSTOMER_FIELDS",
    "LOAN_FIELDS",
    "ImportKind",
    # Pipeline models
    "SourceRow",
    "FieldMapping",
    "Severity",
    "ValidationIssue",
    "MatchTier",
    "MatchHint",
    "MatchCandidate",
    "MatchResult",
    "RowStatus",
    "RowAction",
    "RowDecision",
    "ImportAnalysis",
    "ImportSummary",
    # Store records
    "CustomerRecord",
    "LoanRecord",
    # Reconciliation models
    "Resolution",
    "DecisionKind",
    "OrphanCase",
    "OperatorDecision",
    "CommitFailure",
    "CommitReport",
]
