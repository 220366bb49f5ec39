from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from borrower_match.logging.error_log import ErrorLogBuffer
from borrower_match.models.error_record import ErrorRecord

"""Error log JSON Lines contract: fixed key set, fixed types."""

ERROR_LOG_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "required": ["timestamp", "tenant", "subject", "row", "error_type", "message"],
    "properties": {
        "timestamp": {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$"},
        "tenant": {"type": "string"},
        "subject": {"type": "string"},
        "row": {"type": "integer", "minimum": -1},
        "error_type": {"type": "string", "pattern": "^[A-Z][A-Z_]*$"},
        "message": {"type": "string"},
    },
}


def test_error_log_schema_valid_example():
    record = {
        "timestamp": "2026-03-02T10:12:33Z",
        "tenant": "agency-1",
        "subject": "L17",
        "row": -1,
        "error_type": "COMMIT_FAILED",
        "message": "deadlock detected",
    }
    jsonschema.validate(record, ERROR_LOG_SCHEMA)


def test_error_log_schema_rejects_extra_key():
    record = {
        "timestamp": "2026-03-02T10:12:33Z",
        "tenant": "agency-1",
        "subject": "L17",
        "row": -1,
        "error_type": "COMMIT_FAILED",
        "message": "deadlock detected",
        "extra": "not allowed",
    }
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(record, ERROR_LOG_SCHEMA)


def test_written_lines_follow_schema(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("agency-1", "L1", -1, "NOT_FOUND", "loan not found: L1"))
    buf.append(ErrorRecord.create("agency-1", "<BATCH>", 3, "ADVISORY_UNAVAILABLE", "timeout ünicode"))
    path = buf.flush()
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    for line in lines:
        jsonschema.validate(json.loads(line), ERROR_LOG_SCHEMA)
    assert "ünicode" in lines[1]
