"""
Core data model shared by the pipeline stages.

A FileSet is the pipeline's view of one project's files. Validators report
ValidationIssues against it, fixers rewrite it, and the orchestrator keeps a
RepairAttempt record for every cycle it runs.
"""

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


def normalize_path(path: str) -> str:
    """Normalize a project-relative path to POSIX form without leading './' or '/'."""
    cleaned = path.strip().replace('\\', '/')
    while cleaned.startswith('./'):
        cleaned = cleaned[2:]
    cleaned = cleaned.lstrip('/')
    if not cleaned:
        return cleaned
    return posixpath.normpath(cleaned)


@dataclass
class GeneratedFile:
    """A single logical file produced by an LLM task."""
    path: str
    content: Any  # always a str once the parser or a fixer has touched it

    def __post_init__(self):
        self.path = normalize_path(self.path)

    @property
    def is_text(self) -> bool:
        return isinstance(self.content, str)


class FileSet:
    """
    Ordered collection of GeneratedFile keyed by unique path.

    Writing a path that already exists replaces the file in place (last write
    wins). Paths removed through ``remove`` are remembered so the materializer
    can delete them from disk.
    """

    def __init__(self, files=None):
        self._files: Dict[str, GeneratedFile] = {}
        self.removed: List[str] = []
        for generated in files or []:
            self.add(generated)

    def add(self, generated: GeneratedFile) -> None:
        self._files[generated.path] = generated
        if generated.path in self.removed:
            self.removed.remove(generated.path)

    def put(self, path: str, content: Any) -> GeneratedFile:
        existing = self.get(path)
        if existing is not None:
            existing.content = content
            return existing
        generated = GeneratedFile(path, content)
        self.add(generated)
        return generated

    def get(self, path: str) -> Optional[GeneratedFile]:
        return self._files.get(normalize_path(path))

    def content_of(self, path: str) -> Optional[Any]:
        generated = self.get(path)
        return generated.content if generated else None

    def remove(self, path: str) -> bool:
        key = normalize_path(path)
        if key not in self._files:
            return False
        del self._files[key]
        if key not in self.removed:
            self.removed.append(key)
        return True

    def merge(self, other: "FileSet") -> None:
        """Overlay another FileSet on this one; its files win on path clashes."""
        for generated in other:
            self.add(GeneratedFile(generated.path, generated.content))
        for path in other.removed:
            self.remove(path)

    def copy(self) -> "FileSet":
        clone = FileSet(GeneratedFile(f.path, f.content) for f in self)
        clone.removed = list(self.removed)
        return clone

    def paths(self) -> List[str]:
        return list(self._files)

    def to_dict(self) -> Dict[str, Any]:
        return {path: generated.content for path, generated in self._files.items()}

    def __contains__(self, path: str) -> bool:
        return normalize_path(path) in self._files

    def __iter__(self) -> Iterator[GeneratedFile]:
        return iter(list(self._files.values()))

    def __len__(self) -> int:
        return len(self._files)

    def __eq__(self, other) -> bool:
        if not isinstance(other, FileSet):
            return NotImplemented
        return self.to_dict() == other.to_dict() and self.removed == other.removed

    def __repr__(self) -> str:
        return f"FileSet({len(self._files)} files)"


class IssueKind(Enum):
    NON_STRING_CONTENT = "non_string_content"
    MISSING_EXPORT = "missing_export"
    MISSING_IMPORT_TARGET = "missing_import_target"
    MISSING_BOILERPLATE = "missing_boilerplate"
    BUILD_ERROR_SIGNATURE = "build_error_signature"


@dataclass
class ValidationIssue:
    """
    A detected violation of a structural contract.

    ``symbol`` is set for the export kinds, ``target_path`` is the module an
    import points at (MISSING_IMPORT_TARGET), and ``signature_id`` is set for
    issues synthesized from a classified build error.
    """
    kind: IssueKind
    file_path: str
    detail: str
    symbol: Optional[str] = None
    target_path: Optional[str] = None
    signature_id: Optional[str] = None
    data: Dict[str, str] = field(default_factory=dict)

    def key(self) -> tuple:
        return (self.kind, self.file_path, self.symbol, self.target_path, self.signature_id)

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.file_path}: {self.detail}"


@dataclass
class StructuredBuildError:
    """A single build failure message, optionally matched to a known signature."""
    message: str
    signature_id: Optional[str] = None
    file_path: Optional[str] = None
    details: Dict[str, str] = field(default_factory=dict)


@dataclass
class BuildResult:
    success: bool
    errors: List[StructuredBuildError] = field(default_factory=list)

    @property
    def unmatched_errors(self) -> List[StructuredBuildError]:
        return [error for error in self.errors if error.signature_id is None]


class AttemptPhase(Enum):
    VALIDATION = "validation"
    BUILD = "build"


@dataclass
class RepairAttempt:
    """Audit record for one cycle of the repair loop."""
    cycle_number: int
    phase: AttemptPhase
    issues_found: List[ValidationIssue] = field(default_factory=list)
    issues_fixed: List[ValidationIssue] = field(default_factory=list)
    unresolved: List[ValidationIssue] = field(default_factory=list)
    build_succeeded: Optional[bool] = None
    build_errors: List[StructuredBuildError] = field(default_factory=list)

    def summary(self) -> str:
        """One-line status message suitable for showing to the end user."""
        if self.phase == AttemptPhase.BUILD:
            if self.build_succeeded:
                if self.cycle_number == 0:
                    return "Build succeeded with no repairs needed"
                return f"Build succeeded after {self.cycle_number} repair cycle(s)"
            head = (f"Cycle {self.cycle_number}: build failed with "
                    f"{len(self.build_errors)} error(s)")
        else:
            head = (f"Cycle {self.cycle_number}: found {len(self.issues_found)} "
                    f"structural issue(s)")
        if self.issues_found:
            head += f", fixed {len(self.issues_fixed)}"
            if self.unresolved:
                head += f", {len(self.unresolved)} unresolved"
        return head


class SessionState(Enum):
    GENERATING = "generating"
    VALIDATING = "validating"
    FIXING = "fixing"
    BUILDING = "building"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.DONE, SessionState.FAILED)
