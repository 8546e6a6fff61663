"""
Build Validator

Thin adapter over the external build toolchain. The runner materializes the
FileSet and invokes the build; this module's own logic is classifying each
raw error message against an ordered list of known signatures.
"""

import os
import re
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional, Pattern

from .errors import MaterializeError
from .materializer import FileMaterializer
from .models import BuildResult, FileSet, IssueKind, StructuredBuildError, ValidationIssue, normalize_path


SIG_CLIENT_COMPONENT_HOOK = "client-component-hook"
SIG_MISSING_EXPORT_MEMBER = "missing-export-member"
SIG_ATTEMPTED_IMPORT = "attempted-import-error"
SIG_MISSING_DEFAULT_EXPORT = "missing-default-export"
SIG_NEXT_CONFIG_TS = "next-config-ts-unsupported"
SIG_NEXT_FONT_FETCH = "next-font-fetch"
SIG_MODULE_NOT_FOUND = "module-not-found"
SIG_TYPE_ERROR = "type-error"
SIG_SYNTAX_ERROR = "syntax-error"

FILE_REFERENCE_PATTERN = re.compile(
    r'''(?:^|[\s'"(\[/])\.?/?((?:src|app|components|lib|context|contexts|hooks|pages|types|utils)/'''
    r'''[\w@./\-\[\]()]+?\.(?:tsx|ts|jsx|js|mjs|css))(?::\d+(?::\d+)?)?''',
    re.MULTILINE
)


@dataclass(frozen=True)
class BuildSignature:
    id: str
    pattern: Pattern
    description: str


BUILD_SIGNATURES: List[BuildSignature] = [
    BuildSignature(
        SIG_CLIENT_COMPONENT_HOOK,
        re.compile(r'(?:needs\s+`?(?P<hook>\w+)`?\.\s*)?(?:It only works in a Client Component|'
                   r'only works in Client Components?|none of its parents are marked with "use client")'),
        "React hook or browser API used in a Server Component",
    ),
    BuildSignature(
        SIG_MISSING_EXPORT_MEMBER,
        re.compile(r'''Module\s+['"]+(?P<module>[^'"]+)['"]+\s+has no exported member\s+['"](?P<symbol>[\w$]+)['"]'''),
        "Import names a symbol the module does not export",
    ),
    BuildSignature(
        SIG_ATTEMPTED_IMPORT,
        re.compile(r'''['"](?P<symbol>[\w$]+)['"]\s+is not exported from\s+['"](?P<module>[^'"]+)['"]'''),
        "Import names a symbol the module does not export",
    ),
    BuildSignature(
        SIG_MISSING_DEFAULT_EXPORT,
        re.compile(r'''['"]+(?P<module>[^'"\s]+)['"]+\s+(?:does not contain a default export|has no default export)'''),
        "Default import from a module without a default export",
    ),
    BuildSignature(
        SIG_NEXT_CONFIG_TS,
        re.compile(r'''Configuring Next\.js via ['"]?next\.config\.ts['"]? is not supported'''),
        "next.config.ts is not supported by this Next.js version",
    ),
    BuildSignature(
        SIG_NEXT_FONT_FETCH,
        re.compile(r'''`next/font`\s+error|Failed to fetch (?:font )?`[^`]+` from Google Fonts|fonts\.googleapis\.com'''),
        "next/font/google could not download a font during the build",
    ),
    BuildSignature(
        SIG_MODULE_NOT_FOUND,
        re.compile(r'''(?:Module not found: (?:Error: )?Can't resolve|Cannot find module)\s+['"](?P<module>[^'"]+)['"]'''),
        "Import of a module that does not exist",
    ),
    BuildSignature(
        SIG_TYPE_ERROR,
        re.compile(r'Type error:'),
        "TypeScript type error",
    ),
    BuildSignature(
        SIG_SYNTAX_ERROR,
        re.compile(r'SyntaxError|Syntax Error|Unexpected token|Expected .+ but found'),
        "Syntax error",
    ),
]


def extract_file_path(message: str) -> Optional[str]:
    """First project file referenced by a message, relative to the project root."""
    match = FILE_REFERENCE_PATTERN.search(message)
    if not match:
        return None
    path = match.group(1)
    # absolute paths in code frames: keep the part from src/ on
    if '/src/' in path:
        path = path[path.index('/src/') + 1:]
    return normalize_path(path)


def classify_error(message: str, signatures: Optional[List[BuildSignature]] = None) -> StructuredBuildError:
    """
    Match a raw build message against the signature list; first match wins.

    Unmatched messages keep ``signature_id=None`` and the raw text.
    """
    error = StructuredBuildError(message=message, file_path=extract_file_path(message))
    for signature in signatures or BUILD_SIGNATURES:
        match = signature.pattern.search(message)
        if match:
            error.signature_id = signature.id
            error.details = {key: value for key, value in match.groupdict().items() if value}
            break
    return error


ERROR_START_MARKERS = [
    'Error:', 'Type error:', 'SyntaxError', 'ReferenceError:', 'Attempted import error',
    'Module not found', 'Cannot find module', 'is defined multiple times',
    '`next/font` error',
]
ERROR_END_MARKERS = ['> Build failed', 'webpack errors', 'info  -', 'warn  -']
CONTINUATION_MARKERS = [
    '×', '✗', '╭─', '│', '╰──', '·', 'at line', 'previous definition',
    'redefined here', 'Import trace', 'Failed to fetch', '>', '|',
]


def _is_file_line(line: str) -> bool:
    return line.startswith('./') and any(ext in line for ext in ['.tsx', '.ts', '.jsx', '.js', '.css'])


def split_build_output(build_output: str) -> List[str]:
    """
    Extract individual error messages from NextJS build output.

    A message is the file reference line(s) preceding it plus its error line
    and code-frame continuation. If nothing recognizable is found the tail of
    the output becomes a single message.
    """
    errors = []
    current_error = []
    has_message = False
    in_error_section = False

    def flush():
        nonlocal current_error, has_message
        if has_message:
            errors.append('\n'.join(current_error))
        current_error = []
        has_message = False

    for line in build_output.split('\n'):
        line_stripped = line.strip()
        if not line_stripped:
            continue

        if any(marker in line for marker in ERROR_END_MARKERS):
            flush()
            in_error_section = False
            continue

        if 'Failed to compile' in line:
            flush()
            in_error_section = True
            continue

        if _is_file_line(line_stripped):
            if has_message:
                flush()
            current_error.append(line_stripped)
            in_error_section = True
            continue

        if any(marker in line for marker in ERROR_START_MARKERS):
            if has_message:
                flush()
            current_error.append(line_stripped)
            has_message = True
            in_error_section = True
            continue

        if in_error_section and has_message and any(marker in line for marker in CONTINUATION_MARKERS):
            current_error.append(line_stripped)

    flush()

    if not errors and build_output.strip():
        errors = ['\n'.join(build_output.strip().split('\n')[-40:])]
    return errors


@dataclass
class RawBuildOutput:
    success: bool
    messages: List[str] = field(default_factory=list)


class NpmBuildRunner:
    """Materializes a FileSet into a project directory and runs the build there."""

    def __init__(self, project_dir: str, command: str = "npm run build", timeout: int = 300,
                 materializer: Optional[FileMaterializer] = None):
        self.project_dir = project_dir
        self.command = command.split()
        self.timeout = timeout
        self.materializer = materializer or FileMaterializer(project_dir)

    def run(self, file_set: FileSet) -> RawBuildOutput:
        report = self.materializer.materialize_all(file_set)
        if not report.success:
            raise MaterializeError(f"Failed to write {len(report.failed)} file(s)", report.failed)

        env = dict(os.environ, CI="true", FORCE_COLOR="0", NEXT_TELEMETRY_DISABLED="1")
        print(f"   📦 Running {' '.join(self.command)}...")
        try:
            result = subprocess.run(self.command, cwd=self.project_dir, capture_output=True,
                                    text=True, timeout=self.timeout, env=env)
        except subprocess.TimeoutExpired:
            return RawBuildOutput(False, [f"Build timed out after {self.timeout}s"])
        except FileNotFoundError:
            return RawBuildOutput(False, [f"{self.command[0]} not found - please install Node.js"])

        if result.returncode == 0:
            return RawBuildOutput(True)
        return RawBuildOutput(False, split_build_output(result.stdout + "\n" + result.stderr))


class BuildValidator:
    def __init__(self, runner, signatures: Optional[List[BuildSignature]] = None):
        """
        Args:
            runner: Object with ``run(file_set) -> RawBuildOutput``
            signatures: Ordered signature list, defaults to BUILD_SIGNATURES
        """
        self.runner = runner
        self.signatures = signatures or BUILD_SIGNATURES

    def build(self, file_set: FileSet) -> BuildResult:
        raw = self.runner.run(file_set)
        if raw.success:
            return BuildResult(success=True)

        messages = raw.messages or ["Build failed without output"]
        return BuildResult(success=False,
                           errors=[classify_error(message, self.signatures) for message in messages])


def issues_from_build(result: BuildResult) -> List[ValidationIssue]:
    """
    Turn build errors into BUILD_ERROR_SIGNATURE issues, one per error.

    Unmatched errors keep ``signature_id=None`` and carry the raw message.
    """
    issues = []
    for error in result.errors:
        lines = [line for line in error.message.split('\n') if line and not line.startswith('./')]
        headline = (lines[0] if lines else error.message)[:200]
        issues.append(ValidationIssue(
            kind=IssueKind.BUILD_ERROR_SIGNATURE,
            file_path=error.file_path or '',
            detail=error.message if error.signature_id is None else headline,
            signature_id=error.signature_id,
            data=dict(error.details),
        ))
    return issues
