"""
Repair Orchestrator

Drives one generation session through

    Generating -> Validating -> Fixing -> Building -> Done | Failed

All per-session state (FileSet, RepairAttempt log, cycle counter) lives in a
_Session created by ``run``, so one orchestrator can serve several sessions
on different threads.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .build_validator import BuildValidator, issues_from_build
from .errors import ParseError
from .fixers import FixerRegistry, FixStatus
from .models import AttemptPhase, FileSet, RepairAttempt, SessionState, ValidationIssue
from .repair_logger import RepairLogger
from .response_parser import ParseAnomaly, ResponseParser
from .validators import PatternValidator, default_validators, run_validators


DEFAULT_MAX_CYCLES = 5


class CancellationToken:
    """Thread-safe flag a caller sets to abort a running session."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class RepairResult:
    state: SessionState
    file_set: FileSet
    attempts: List[RepairAttempt] = field(default_factory=list)
    unresolved: List[ValidationIssue] = field(default_factory=list)
    failure_reason: Optional[str] = None
    anomalies: List[ParseAnomaly] = field(default_factory=list)
    task_errors: List[ParseError] = field(default_factory=list)
    cycles_used: int = 0

    @property
    def succeeded(self) -> bool:
        return self.state == SessionState.DONE

    def summaries(self) -> List[str]:
        return [attempt.summary() for attempt in self.attempts]


@dataclass
class _Session:
    file_set: FileSet
    cancel_token: CancellationToken
    attempts: List[RepairAttempt] = field(default_factory=list)
    pending: Optional[RepairAttempt] = None
    cycles: int = 0
    anomalies: List[ParseAnomaly] = field(default_factory=list)
    task_errors: List[ParseError] = field(default_factory=list)
    unresolved: List[ValidationIssue] = field(default_factory=list)
    failure_reason: Optional[str] = None

    def fail(self, reason: str, unresolved: Optional[List[ValidationIssue]] = None) -> SessionState:
        self.failure_reason = reason
        if unresolved is not None:
            self.unresolved = list(unresolved)
        return SessionState.FAILED


class RepairOrchestrator:
    def __init__(self, build_validator: Optional[BuildValidator] = None,
                 registry: Optional[FixerRegistry] = None,
                 validators: Optional[Sequence[PatternValidator]] = None,
                 max_cycles: int = DEFAULT_MAX_CYCLES,
                 repair_logger: Optional[RepairLogger] = None,
                 parallel_validation: bool = True,
                 parser: Optional[ResponseParser] = None):
        """
        Args:
            build_validator: Runs and classifies the build; without one the
                session ends in Done as soon as validation is clean
            registry: Fixers by issue kind
            validators: Pattern validators, defaults to ``default_validators()``
            max_cycles: Fix cycles allowed per session, validation and build
                cycles combined
            repair_logger: Optional audit log
            parallel_validation: Run validators on a thread pool
        """
        if max_cycles < 1:
            raise ValueError("max_cycles must be at least 1")
        self.build_validator = build_validator
        self.registry = registry or FixerRegistry()
        self.validators = list(validators) if validators is not None else default_validators()
        self.max_cycles = max_cycles
        self.repair_logger = repair_logger
        self.parallel_validation = parallel_validation
        self.parser = parser or ResponseParser()

    def run(self, task_outputs: Iterable[str], base: Optional[FileSet] = None,
            cancel_token: Optional[CancellationToken] = None) -> RepairResult:
        """
        Run a whole session to a terminal state.

        Args:
            task_outputs: Raw LLM responses, one per task, in task order
            base: Existing project files the task outputs are layered onto
            cancel_token: Checked before every state transition

        Returns:
            RepairResult in state DONE or FAILED
        """
        start_time = time.time()
        session = _Session(file_set=base.copy() if base is not None else FileSet(),
                           cancel_token=cancel_token or CancellationToken())
        if self.repair_logger:
            self.repair_logger.log_session_start(
                len(task_outputs) if hasattr(task_outputs, '__len__') else None, self.max_cycles)

        state = SessionState.GENERATING
        while not state.is_terminal:
            if session.cancel_token.cancelled:
                print("🛑 Session cancelled")
                state = session.fail("cancelled", session.pending.issues_found if session.pending else [])
                break

            if state == SessionState.GENERATING:
                state = self._generate(session, task_outputs)
            elif state == SessionState.VALIDATING:
                state = self._validate(session)
            elif state == SessionState.FIXING:
                state = self._fix(session)
            elif state == SessionState.BUILDING:
                state = self._build(session)

        if state == SessionState.DONE:
            print(f"✅ Session complete after {session.cycles} repair cycle(s)")
        else:
            print(f"❌ Session failed: {session.failure_reason}")

        if self.repair_logger:
            self.repair_logger.log_session_summary(state.value, session.cycles,
                                                   time.time() - start_time, session.failure_reason)

        return RepairResult(
            state=state,
            file_set=session.file_set,
            attempts=session.attempts,
            unresolved=session.unresolved,
            failure_reason=session.failure_reason,
            anomalies=session.anomalies,
            task_errors=session.task_errors,
            cycles_used=session.cycles,
        )

    def _generate(self, session: _Session, task_outputs: Iterable[str]) -> SessionState:
        parsed_tasks = 0
        for index, raw_text in enumerate(task_outputs, 1):
            if session.cancel_token.cancelled:
                return session.fail("cancelled")
            try:
                parsed = self.parser.parse(raw_text)
            except ParseError as e:
                print(f"⚠️ Task {index} output rejected: {e}")
                session.task_errors.append(e)
                if self.repair_logger:
                    self.repair_logger.log_task_error(index, e)
                continue

            parsed_tasks += 1
            session.file_set.merge(parsed.file_set)
            session.anomalies.extend(parsed.anomalies)
            if parsed.anomalies and self.repair_logger:
                self.repair_logger.log_parse_anomalies(parsed.anomalies)
            print(f"📄 Task {index}: {len(parsed.file_set)} file(s)")

        if not len(session.file_set):
            if parsed_tasks == 0 and session.task_errors:
                return session.fail(f"No task produced usable output ({len(session.task_errors)} rejected)")
            return session.fail("No files to validate")

        return SessionState.VALIDATING

    def _validate(self, session: _Session) -> SessionState:
        print(f"🔍 Validating {len(session.file_set)} file(s)...")
        issues = run_validators(session.file_set, self.validators, parallel=self.parallel_validation)
        if not issues:
            print("✅ No structural issues found")
            return SessionState.BUILDING

        print(f"⚠️ Found {len(issues)} structural issue(s)")
        session.pending = RepairAttempt(cycle_number=session.cycles + 1, phase=AttemptPhase.VALIDATION,
                                        issues_found=issues)
        return SessionState.FIXING

    def _fix(self, session: _Session) -> SessionState:
        attempt = session.pending
        session.pending = None

        if session.cycles >= self.max_cycles:
            attempt.unresolved = list(attempt.issues_found)
            self._record(session, attempt)
            return session.fail(f"Cycle budget exhausted after {session.cycles} cycle(s)", attempt.unresolved)

        session.cycles += 1
        attempt.cycle_number = session.cycles
        print(f"🔧 Cycle {session.cycles}/{self.max_cycles}: fixing {len(attempt.issues_found)} issue(s)")

        changed = False
        for issue in attempt.issues_found:
            outcome = self.registry.apply(issue, session.file_set)
            if outcome.status == FixStatus.FIXED:
                changed = True
                attempt.issues_fixed.append(issue)
                print(f"   ✓ {outcome.message}")
            elif outcome.status == FixStatus.ALREADY_SATISFIED:
                attempt.issues_fixed.append(issue)
            else:
                attempt.unresolved.append(issue)
                print(f"   ✗ {issue}: {outcome.message}")

        self._record(session, attempt)

        if not changed:
            return session.fail("Unfixable issues remain", attempt.unresolved)
        return SessionState.VALIDATING

    def _build(self, session: _Session) -> SessionState:
        if self.build_validator is None:
            return SessionState.DONE

        print("🔨 Building...")
        try:
            result = self.build_validator.build(session.file_set)
        except OSError as e:
            print(f"❌ {e}")
            return session.fail(str(e))

        # The build cannot be interrupted; drop its result instead
        if session.cancel_token.cancelled:
            return session.fail("cancelled")

        attempt = RepairAttempt(cycle_number=session.cycles, phase=AttemptPhase.BUILD,
                                build_succeeded=result.success, build_errors=result.errors)
        if result.success:
            print("✅ Build successful!")
            self._record(session, attempt)
            return SessionState.DONE

        attempt.issues_found = issues_from_build(result)
        fixable = [issue for issue in attempt.issues_found
                   if self.registry.can_fix_signature(issue.signature_id)]
        print(f"⚠️ Build failed with {len(result.errors)} error(s), {len(fixable)} with a known fix")

        if not fixable:
            attempt.unresolved = list(attempt.issues_found)
            self._record(session, attempt)
            unmatched = result.unmatched_errors
            if unmatched:
                reason = "Unrecognized build error: " + unmatched[0].message.split('\n')[0][:200]
            else:
                reason = "No fixer for build errors: " + ", ".join(
                    sorted({error.signature_id for error in result.errors}))
            return session.fail(reason, attempt.unresolved)

        attempt.cycle_number = session.cycles + 1
        session.pending = attempt
        return SessionState.FIXING

    def _record(self, session: _Session, attempt: RepairAttempt):
        session.attempts.append(attempt)
        if self.repair_logger:
            self.repair_logger.log_attempt(attempt)
