# Shared pytest fixtures
from __future__ import annotations

import json
import tempfile
from pathlib import Path

import pytest

from borrower_match.db.memory import InMemoryStore
from borrower_match.logging.init import reset_logging
from borrower_match.models.records import LOAN_STATUS_REQUIRES_MAPPING, CustomerRecord, LoanRecord

TENANT = "agency-1"


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _fresh_logging():
    # the package logger binds sys.stdout at setup; rebuild it per test so capsys sees output
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """rule_confidence: 0.8
advisory_min_confidence: 0.3
phone_country_code: "260"
hard_confidence:
  phone: 0.95
  nationalId: 0.95
  email: 0.9
soft_threshold: 0.8
soft_confidence: 0.75
concurrency_limit: 4
auto_commit_needs_review: false
advisory:
  enabled: false
  timeout_seconds: 2
  max_calls_per_minute: 5
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def customer_pool() -> list[CustomerRecord]:
    return [
        CustomerRecord(id="C1", full_name="Jane Mwale", phone="+260971234567", national_id="123456/78/1"),
        CustomerRecord(id="C2", full_name="Peter Phiri", phone="0955000111", email="peter@example.com"),
        CustomerRecord(id="C3", full_name="Mary Tembo", national_id="222222/22/2"),
    ]


@pytest.fixture()
def orphan_loans() -> list[LoanRecord]:
    return [
        LoanRecord(
            id="L1",
            status=LOAN_STATUS_REQUIRES_MAPPING,
            borrower_name="Jane Mwale",
            amount=5000.0,
            raw_fields={"phone": "0971234567"},
        ),
        LoanRecord(
            id="L2",
            status=LOAN_STATUS_REQUIRES_MAPPING,
            borrower_name="Brand New Person",
            amount=1200.0,
            raw_fields={"phone": "0977777777", "nrc": "999999/99/9"},
        ),
        LoanRecord(id="L3", customer_id="C2", status="active", borrower_name="Peter Phiri", amount=300.0),
    ]


@pytest.fixture()
def store(customer_pool, orphan_loans) -> InMemoryStore:
    return InMemoryStore(customers={TENANT: customer_pool}, loans={TENANT: orphan_loans})


@pytest.fixture()
def customers_json(temp_workdir: Path, customer_pool: list[CustomerRecord]) -> Path:
    path = temp_workdir / "data" / "customers.json"
    data = [
        {"id": c.id, "fullName": c.full_name, "phone": c.phone, "nationalId": c.national_id, "email": c.email}
        for c in customer_pool
    ]
    path.write_text(json.dumps(data), encoding="utf-8")
    return path
