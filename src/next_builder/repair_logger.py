"""
Repair session audit log.

Appends one line per event to ``build_errors.log`` in the project so a failed
session can be diagnosed after the fact, including the raw build output the
caller only sees summarized.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .models import AttemptPhase, RepairAttempt


MAX_DETAIL_LENGTH = 500


def _flatten(text: str) -> str:
    cleaned = text.replace('\n', ' | ').replace('\r', '')[:MAX_DETAIL_LENGTH]
    if len(text) > MAX_DETAIL_LENGTH:
        cleaned += "..."
    return cleaned


class RepairLogger:
    """Handles logging of repair cycles and build errors to a file."""

    def __init__(self, log_file: str):
        self.log_file = Path(log_file)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        # One logger per log file so concurrent sessions do not share handlers
        self.logger = logging.getLogger(f'RepairLogger.{self.log_file.resolve()}')
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

        if not getattr(self.logger, 'handler_set', False):
            file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
            file_handler.setLevel(logging.INFO)

            formatter = logging.Formatter(
                '%(asctime)s | %(levelname)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(formatter)

            self.logger.addHandler(file_handler)
            self.logger.handler_set = True

    def log_info(self, message: str, data: Optional[Dict] = None):
        """Log an info message with optional structured data."""
        if data:
            formatted_data = " | ".join([f"{k}: {v}" for k, v in data.items()])
            self.logger.info(f"{message} | {formatted_data}")
        else:
            self.logger.info(message)

    def log_warning(self, message: str, data: Optional[Dict] = None):
        if data:
            formatted_data = " | ".join([f"{k}: {v}" for k, v in data.items()])
            self.logger.warning(f"{message} | {formatted_data}")
        else:
            self.logger.warning(message)

    def log_session_start(self, task_count: Optional[int], max_cycles: int):
        self.log_info("REPAIR SESSION STARTED", {
            "tasks": task_count if task_count is not None else "streamed",
            "max_cycles": max_cycles,
        })

    def log_parse_anomalies(self, anomalies: List):
        for anomaly in anomalies:
            self.log_warning("PARSE ANOMALY", {
                "file": anomaly.path,
                "kind": anomaly.kind,
                "detail": _flatten(anomaly.description),
            })

    def log_task_error(self, task_index: int, error: Exception):
        self.log_warning("TASK OUTPUT REJECTED", {
            "task": task_index,
            "error": _flatten(str(error)),
        })

    def log_attempt(self, attempt: RepairAttempt):
        """Log one RepairAttempt, then each issue or build error on its own line."""
        data = {
            "cycle": attempt.cycle_number,
            "phase": attempt.phase.value,
            "issues": len(attempt.issues_found),
            "fixed": len(attempt.issues_fixed),
            "unresolved": len(attempt.unresolved),
        }
        if attempt.phase == AttemptPhase.BUILD:
            data["build"] = "SUCCESS" if attempt.build_succeeded else "FAILED"
        self.log_info("REPAIR ATTEMPT", data)

        for i, issue in enumerate(attempt.issues_found, 1):
            status = "unresolved" if issue in attempt.unresolved else \
                "fixed" if issue in attempt.issues_fixed else "pending"
            self.log_info(f"  ISSUE {i}/{len(attempt.issues_found)}", {
                "kind": issue.kind.value,
                "file": issue.file_path,
                "status": status,
                "detail": _flatten(issue.detail),
            })

        for i, error in enumerate(attempt.build_errors, 1):
            self.log_info(f"  ERROR {i}/{len(attempt.build_errors)}", {
                "signature": error.signature_id or "unmatched",
                "detail": _flatten(error.message),
            })

    def log_session_summary(self, state: str, cycles_used: int, elapsed_time: float,
                            failure_reason: Optional[str] = None):
        """Log a summary of the entire repair session."""
        data = {
            "final_result": state.upper(),
            "cycles_used": cycles_used,
            "elapsed_time_seconds": round(elapsed_time, 1),
        }
        if failure_reason:
            data["reason"] = _flatten(failure_reason)
        self.log_info("SESSION SUMMARY", data)

        # Separator for readability
        self.logger.info("-" * 80)

    def close(self):
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)
        self.logger.handler_set = False
