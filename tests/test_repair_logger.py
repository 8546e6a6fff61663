"""
Tests for the repair session audit log.
"""

import re

import pytest

from next_builder.models import AttemptPhase, IssueKind, RepairAttempt, StructuredBuildError, ValidationIssue
from next_builder.repair_logger import RepairLogger
from next_builder.response_parser import ParseAnomaly


LINE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \| (INFO|WARNING) \| ')


@pytest.fixture
def log_setup(tmp_path):
    log_file = tmp_path / "logs" / "build_errors.log"
    repair_logger = RepairLogger(str(log_file))
    yield repair_logger, log_file
    repair_logger.close()


def read_lines(repair_logger, log_file):
    for handler in repair_logger.logger.handlers:
        handler.flush()
    return log_file.read_text(encoding="utf-8").splitlines()


class TestRepairLogger:
    def test_line_format(self, log_setup):
        repair_logger, log_file = log_setup
        repair_logger.log_session_start(None, 3)

        lines = read_lines(repair_logger, log_file)
        assert len(lines) == 1
        assert LINE_PATTERN.match(lines[0])
        assert lines[0].endswith("REPAIR SESSION STARTED | tasks: streamed | max_cycles: 3")

    def test_attempt_with_issue_statuses(self, log_setup):
        repair_logger, log_file = log_setup
        fixed = ValidationIssue(IssueKind.MISSING_BOILERPLATE, "src/app/layout.tsx", "missing")
        stuck = ValidationIssue(IssueKind.MISSING_EXPORT, "src/lib/a.ts", "line one\nline two", symbol="x")
        attempt = RepairAttempt(1, AttemptPhase.VALIDATION, issues_found=[fixed, stuck],
                                issues_fixed=[fixed], unresolved=[stuck])
        repair_logger.log_attempt(attempt)

        lines = read_lines(repair_logger, log_file)
        assert "REPAIR ATTEMPT | cycle: 1 | phase: validation | issues: 2 | fixed: 1 | unresolved: 1" in lines[0]
        assert "ISSUE 1/2 | kind: missing_boilerplate | file: src/app/layout.tsx | status: fixed" in lines[1]
        assert "status: unresolved | detail: line one | line two" in lines[2]

    def test_build_errors_logged(self, log_setup):
        repair_logger, log_file = log_setup
        attempt = RepairAttempt(0, AttemptPhase.BUILD, build_succeeded=False, build_errors=[
            StructuredBuildError("Error: x" * 200, signature_id=None),
        ])
        repair_logger.log_attempt(attempt)

        lines = read_lines(repair_logger, log_file)
        assert "build: FAILED" in lines[0]
        assert "ERROR 1/1 | signature: unmatched" in lines[1]
        assert lines[1].endswith("...")

    def test_warnings(self, log_setup):
        repair_logger, log_file = log_setup
        repair_logger.log_parse_anomalies([ParseAnomaly("src/data.json", "non_string_content", "Content was dict")])
        repair_logger.log_task_error(2, ValueError("bad json"))

        lines = read_lines(repair_logger, log_file)
        assert "| WARNING | PARSE ANOMALY | file: src/data.json" in lines[0]
        assert lines[1].endswith("TASK OUTPUT REJECTED | task: 2 | error: bad json")

    def test_summary_and_separator(self, log_setup):
        repair_logger, log_file = log_setup
        repair_logger.log_session_summary("done", 2, 12.34)

        lines = read_lines(repair_logger, log_file)
        assert lines[0].endswith("SESSION SUMMARY | final_result: DONE | cycles_used: 2 | elapsed_time_seconds: 12.3")
        assert lines[1].endswith("-" * 80)

    def test_reopening_does_not_duplicate_handlers(self, log_setup):
        repair_logger, log_file = log_setup
        again = RepairLogger(str(log_file))
        again.log_info("once")

        assert read_lines(repair_logger, log_file)[-1].endswith("once")
        assert len(read_lines(repair_logger, log_file)) == 1
