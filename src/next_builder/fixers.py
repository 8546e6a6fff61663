"""
Pattern Fixers

Deterministic rewrites paired with validator issue kinds. Every fixer is
idempotent: it first checks whether the contract already holds and leaves the
FileSet untouched if so.

Fixers report instead of raising. An issue that cannot be repaired comes back
as an UNRESOLVED FixOutcome (with the IrreparableExport attached for export
problems) so the orchestrator can record it and decide when to stop.
"""

import posixpath
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from .boilerplate import DEFAULT_MANIFEST, NEXT_CONFIG_MJS, BoilerplateManifest
from .build_validator import (
    SIG_ATTEMPTED_IMPORT,
    SIG_CLIENT_COMPONENT_HOOK,
    SIG_MISSING_DEFAULT_EXPORT,
    SIG_MISSING_EXPORT_MEMBER,
    SIG_MODULE_NOT_FOUND,
    SIG_NEXT_CONFIG_TS,
    SIG_NEXT_FONT_FETCH,
)
from .errors import IrreparableExport
from .models import FileSet, IssueKind, ValidationIssue
from .response_parser import coerce_content
from .source_index import (
    find_local_declaration,
    has_use_client,
    is_code_file,
    local_declarations,
    resolve_import,
    scan_exports,
    scan_imports,
)
from .validators import context_name_for, context_symbols


DIRECTIVE_LINE_PATTERN = re.compile(r'''^\s*['"]use (?:client|server)['"];?[ \t]*\n?''')
GOOGLE_FONT_IMPORT_PATTERN = re.compile(
    r'''^[ \t]*import\s*\{([^}]*)\}\s*from\s*['"]next/font/google['"];?[ \t]*\n?''', re.MULTILINE
)
TEMPLATE_CLASS_NAME_PATTERN = re.compile(r'className=\{`([^`$]*)`\}')
EMPTY_CLASS_NAME_PATTERN = re.compile(r'\s*className=(?:""|\{\s*\})')


class FixStatus(Enum):
    FIXED = "fixed"
    ALREADY_SATISFIED = "already_satisfied"
    UNRESOLVED = "unresolved"


@dataclass
class FixOutcome:
    issue: ValidationIssue
    status: FixStatus
    changed_paths: List[str] = field(default_factory=list)
    message: str = ""
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.status == FixStatus.FIXED

    @property
    def resolved(self) -> bool:
        return self.status != FixStatus.UNRESOLVED


# ---------------------------------------------------------------------------
# Export synthesis
# ---------------------------------------------------------------------------

def _append_statement(content: str, statement: str) -> str:
    if content and not content.endswith('\n'):
        content += '\n'
    return f"{content}\n{statement}\n"


def _insert_after_directives(content: str, line: str) -> str:
    match = DIRECTIVE_LINE_PATTERN.match(content)
    if not match:
        return f"{line}\n{content}"
    head = match.group(0)
    if not head.endswith('\n'):
        head += '\n'
    return f"{head}{line}\n{content[match.end():]}"


def _module_stem(path: str) -> str:
    stem = posixpath.splitext(posixpath.basename(path))[0]
    if stem == 'index':
        stem = posixpath.basename(posixpath.dirname(path)) or stem
    return stem


def _normalize_name(name: str) -> str:
    lowered = name.lower()
    return lowered[:-len('context')] if lowered.endswith('context') else lowered


def _ensure_use_context(content: str) -> tuple:
    """
    Make ``useContext`` available in the module.

    Returns:
        (content, call_expression) where call_expression is ``useContext`` or
        ``React.useContext`` depending on how React is imported.
    """
    for spec in scan_imports(content):
        if spec.source != 'react':
            continue
        if 'useContext' in spec.symbols:
            return content, 'useContext'

    braces = re.search(r'''(import\s+(?:[\w$]+\s*,\s*)?\{)([^}]*)(\}\s*from\s*['"]react['"])''', content)
    if braces:
        names = braces.group(2).rstrip()
        separator = ', ' if names.strip() and not names.strip().endswith(',') else ' '
        updated = f"{braces.group(1)}{names}{separator}useContext {braces.group(3)}"
        return content[:braces.start()] + updated + content[braces.end():], 'useContext'

    if re.search(r'''import\s+(?:\*\s+as\s+)?React\b[^;\n]*from\s*['"]react['"]''', content):
        return content, 'React.useContext'

    return _insert_after_directives(content, "import { useContext } from 'react';"), 'useContext'


def _context_accessor(name: str, call: str) -> str:
    container, accessor = context_symbols(name)
    return (
        f"export function {accessor}() {{\n"
        f"  const context = {call}({container});\n"
        f"  if (!context) {{\n"
        f"    throw new Error('{accessor} must be used within {name}Provider');\n"
        f"  }}\n"
        f"  return context;\n"
        f"}}"
    )


def add_missing_export(path: str, content: str, symbol: str) -> str:
    """
    Return ``content`` rewritten so that the module exports ``symbol``.

    Strategies, in order: already exported (unchanged); a local declaration
    of the symbol, or the binding of ``export default function <symbol>``
    (append an export statement); the context accessor built from its state
    container; the nearest matching local declaration (append a pass-through
    alias).

    Raises:
        IrreparableExport: no plausible local binding exists
    """
    exports = scan_exports(content)
    if exports.provides(symbol):
        return content

    if symbol == 'default':
        return _add_default_export(path, content, exports)

    kind = find_local_declaration(content, symbol)
    if kind:
        keyword = "export type" if kind in ('interface', 'type') else "export"
        return _append_statement(content, f"{keyword} {{ {symbol} }};")

    if exports.default_name == symbol:
        return _append_statement(content, f"export {{ {symbol} }};")

    name = context_name_for(path)
    if name:
        container, accessor = context_symbols(name)
        has_container = container in exports.named or find_local_declaration(content, container)
        if symbol == accessor and has_container:
            content, call = _ensure_use_context(content)
            return _append_statement(content, _context_accessor(name, call))

    wanted = _normalize_name(symbol)
    bindings = local_declarations(content) + sorted(exports.named)
    if exports.default_name:
        bindings.append(exports.default_name)
    candidates = [
        candidate for candidate in bindings
        if candidate != symbol and _normalize_name(candidate) == wanted
    ]
    if candidates:
        return _append_statement(content, f"export {{ {candidates[0]} as {symbol} }};")

    raise IrreparableExport(path, symbol, "no local declaration to export")


def _add_default_export(path: str, content: str, exports) -> str:
    stem = _module_stem(path).lower()
    declared = local_declarations(content)
    for candidate in declared + sorted(exports.named):
        if candidate.lower() == stem:
            return _append_statement(content, f"export default {candidate};")

    components = [name for name in declared + sorted(exports.named) if name[:1].isupper()]
    if len(components) == 1:
        return _append_statement(content, f"export default {components[0]};")

    raise IrreparableExport(path, 'default', "no declaration matches the module name")


def _plain_class_name(match) -> str:
    return f'className="{" ".join(match.group(1).split())}"'


def strip_google_fonts(content: str) -> str:
    """
    Remove ``next/font/google`` from a module: the import, the font loader
    constants and every class name reference to them. Template class names
    left without interpolations become plain strings; empty ones are dropped.
    """
    loaders = []
    for match in GOOGLE_FONT_IMPORT_PATTERN.finditer(content):
        loaders.extend(name.split(' as ')[-1].strip() for name in match.group(1).split(',') if name.strip())
    if not loaders:
        return content
    content = GOOGLE_FONT_IMPORT_PATTERN.sub('', content)

    declaration = re.compile(
        r'^[ \t]*(?:export\s+)?const\s+([A-Za-z_$][\w$]*)\s*=\s*(?:%s)\s*\([^;]*?\)\s*;?[ \t]*\n?'
        % '|'.join(re.escape(name) for name in loaders),
        re.MULTILINE
    )
    fonts = declaration.findall(content)
    content = declaration.sub('', content)

    if fonts:
        names = '|'.join(re.escape(name) for name in fonts)
        content = re.sub(r'\$\{\s*(?:%s)\.(?:variable|className)\s*\}\s*' % names, '', content)
        content = re.sub(r'\s*className=\{\s*(?:%s)\.(?:variable|className)\s*\}' % names, '', content)

    content = TEMPLATE_CLASS_NAME_PATTERN.sub(_plain_class_name, content)
    return EMPTY_CLASS_NAME_PATTERN.sub('', content)


# ---------------------------------------------------------------------------
# Issue fixers
# ---------------------------------------------------------------------------

class IssueFixer:
    kind: IssueKind = None

    def fix(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        raise NotImplementedError


class MissingExportFixer(IssueFixer):
    kind = IssueKind.MISSING_EXPORT

    def fix(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        return self.export_symbol(issue, issue.file_path, issue.symbol, file_set)

    def export_symbol(self, issue: ValidationIssue, path: str, symbol: str, file_set: FileSet) -> FixOutcome:
        generated = file_set.get(path) if path else None
        if generated is None or not isinstance(generated.content, str) or not symbol:
            error = IrreparableExport(path or '?', symbol or '?', "module not available")
            return FixOutcome(issue, FixStatus.UNRESOLVED, message=str(error), error=error)

        try:
            updated = add_missing_export(generated.path, generated.content, symbol)
        except IrreparableExport as e:
            return FixOutcome(issue, FixStatus.UNRESOLVED, message=str(e), error=e)

        if updated == generated.content:
            return FixOutcome(issue, FixStatus.ALREADY_SATISFIED,
                              message=f"{generated.path} already exports {symbol}")

        generated.content = updated
        return FixOutcome(issue, FixStatus.FIXED, [generated.path],
                          message=f"Added export '{symbol}' to {generated.path}")


class MissingImportTargetFixer(IssueFixer):
    """Same remediation as a missing export, applied to the imported module."""
    kind = IssueKind.MISSING_IMPORT_TARGET

    def __init__(self, export_fixer: Optional[MissingExportFixer] = None):
        self.export_fixer = export_fixer or MissingExportFixer()

    def fix(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        return self.export_fixer.export_symbol(issue, issue.target_path, issue.symbol, file_set)


class MissingBoilerplateFixer(IssueFixer):
    kind = IssueKind.MISSING_BOILERPLATE

    def __init__(self, manifest: BoilerplateManifest = DEFAULT_MANIFEST):
        self.manifest = manifest

    def fix(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        if issue.file_path in file_set:
            return FixOutcome(issue, FixStatus.ALREADY_SATISFIED, message=f"{issue.file_path} exists")

        entry = self.manifest.entry_for(issue.file_path, file_set)
        if entry is None:
            return FixOutcome(issue, FixStatus.UNRESOLVED,
                              message=f"No canonical template for {issue.file_path}")
        existing = self.manifest.existing_path(entry, file_set)
        if existing:
            return FixOutcome(issue, FixStatus.ALREADY_SATISFIED, message=f"{existing} exists")

        file_set.put(entry.path, entry.content)
        return FixOutcome(issue, FixStatus.FIXED, [entry.path],
                          message=f"Inserted boilerplate {entry.path}")


class NonStringContentFixer(IssueFixer):
    kind = IssueKind.NON_STRING_CONTENT

    def fix(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        generated = file_set.get(issue.file_path)
        if generated is None or isinstance(generated.content, str):
            return FixOutcome(issue, FixStatus.ALREADY_SATISFIED, message="Content is already text")

        generated.content, _ = coerce_content(generated.content)
        return FixOutcome(issue, FixStatus.FIXED, [generated.path],
                          message=f"Serialized content of {generated.path}")


SignatureHandler = Callable[[ValidationIssue, FileSet], FixOutcome]


class BuildSignatureFixer(IssueFixer):
    """
    Dispatches BUILD_ERROR_SIGNATURE issues through a static table of
    signature id -> handler. Signatures without a handler are unfixable.
    """
    kind = IssueKind.BUILD_ERROR_SIGNATURE

    def __init__(self, export_fixer: Optional[MissingExportFixer] = None,
                 manifest: BoilerplateManifest = DEFAULT_MANIFEST):
        self.export_fixer = export_fixer or MissingExportFixer()
        self.manifest = manifest
        self.handlers: Dict[str, SignatureHandler] = {
            SIG_CLIENT_COMPONENT_HOOK: self._add_use_client,
            SIG_MISSING_EXPORT_MEMBER: self._export_member,
            SIG_ATTEMPTED_IMPORT: self._export_member,
            SIG_MISSING_DEFAULT_EXPORT: self._export_default,
            SIG_NEXT_CONFIG_TS: self._replace_next_config,
            SIG_NEXT_FONT_FETCH: self._remove_google_fonts,
            SIG_MODULE_NOT_FOUND: self._restore_boilerplate_module,
        }

    def handles(self, signature_id: Optional[str]) -> bool:
        return signature_id in self.handlers

    def fix(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        handler = self.handlers.get(issue.signature_id)
        if handler is None:
            return FixOutcome(issue, FixStatus.UNRESOLVED,
                              message=f"No fixer for build signature {issue.signature_id}")
        return handler(issue, file_set)

    def _add_use_client(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        generated = file_set.get(issue.file_path) if issue.file_path else None
        if generated is None or not isinstance(generated.content, str):
            return FixOutcome(issue, FixStatus.UNRESOLVED, message="Build error names no known file")
        if has_use_client(generated.content):
            return FixOutcome(issue, FixStatus.ALREADY_SATISFIED,
                              message=f"{generated.path} already has 'use client'")

        generated.content = "'use client';\n\n" + generated.content
        return FixOutcome(issue, FixStatus.FIXED, [generated.path],
                          message=f"Added 'use client' to {generated.path}")

    def _export_member(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        target = self._resolve_module(issue, file_set)
        return self.export_fixer.export_symbol(issue, target, issue.data.get('symbol'), file_set)

    def _export_default(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        target = self._resolve_module(issue, file_set)
        return self.export_fixer.export_symbol(issue, target, 'default', file_set)

    def _replace_next_config(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        changed = []
        if file_set.remove('next.config.ts'):
            changed.append('next.config.ts')
        if 'next.config.mjs' not in file_set and 'next.config.js' not in file_set:
            file_set.put('next.config.mjs', NEXT_CONFIG_MJS)
            changed.append('next.config.mjs')
        if not changed:
            return FixOutcome(issue, FixStatus.ALREADY_SATISFIED, message="next.config.ts already replaced")
        return FixOutcome(issue, FixStatus.FIXED, changed,
                          message="Converted next.config.ts to next.config.mjs")

    def _remove_google_fonts(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        reported = file_set.get(issue.file_path) if issue.file_path else None
        if reported is not None and isinstance(reported.content, str) \
                and GOOGLE_FONT_IMPORT_PATTERN.search(reported.content):
            targets = [reported]
        else:
            targets = [generated for generated in file_set
                       if is_code_file(generated.path) and isinstance(generated.content, str)]

        changed = []
        for generated in targets:
            updated = strip_google_fonts(generated.content)
            if updated != generated.content:
                generated.content = updated
                changed.append(generated.path)

        if not changed:
            return FixOutcome(issue, FixStatus.ALREADY_SATISFIED, message="No next/font/google imports left")
        return FixOutcome(issue, FixStatus.FIXED, changed,
                          message=f"Removed Google fonts from {', '.join(changed)}")

    def _restore_boilerplate_module(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        module = issue.data.get('module', '')
        if issue.file_path and module.startswith('.'):
            candidate = posixpath.normpath(posixpath.join(posixpath.dirname(issue.file_path), module))
        elif module.startswith('@/'):
            candidate = posixpath.join('src', module[2:])
        else:
            candidate = module

        for entry in self.manifest.resolve(file_set):
            if entry.path == candidate or posixpath.splitext(entry.path)[0] == candidate:
                existing = self.manifest.existing_path(entry, file_set)
                if existing:
                    return FixOutcome(issue, FixStatus.ALREADY_SATISFIED, message=f"{existing} exists")
                file_set.put(entry.path, entry.content)
                return FixOutcome(issue, FixStatus.FIXED, [entry.path],
                                  message=f"Inserted boilerplate {entry.path}")

        return FixOutcome(issue, FixStatus.UNRESOLVED,
                          message=f"Missing module '{module}' is not a boilerplate file")

    def _resolve_module(self, issue: ValidationIssue, file_set: FileSet) -> Optional[str]:
        module = issue.data.get('module')
        if not module:
            return None
        paths = file_set.paths()
        resolved = resolve_import(module, issue.file_path or '', paths)
        if resolved:
            return resolved

        stem = posixpath.basename(module.rstrip('/'))
        matches = [path for path in paths
                   if is_code_file(path) and posixpath.splitext(posixpath.basename(path))[0] == stem]
        return matches[0] if len(matches) == 1 else None


class FixerRegistry:
    """Maps each IssueKind to the fixer that handles it."""

    def __init__(self, manifest: BoilerplateManifest = DEFAULT_MANIFEST):
        export_fixer = MissingExportFixer()
        self.build_fixer = BuildSignatureFixer(export_fixer, manifest)
        self.fixers: Dict[IssueKind, IssueFixer] = {
            IssueKind.MISSING_EXPORT: export_fixer,
            IssueKind.MISSING_IMPORT_TARGET: MissingImportTargetFixer(export_fixer),
            IssueKind.MISSING_BOILERPLATE: MissingBoilerplateFixer(manifest),
            IssueKind.NON_STRING_CONTENT: NonStringContentFixer(),
            IssueKind.BUILD_ERROR_SIGNATURE: self.build_fixer,
        }

    def can_fix_signature(self, signature_id: Optional[str]) -> bool:
        return self.build_fixer.handles(signature_id)

    def apply(self, issue: ValidationIssue, file_set: FileSet) -> FixOutcome:
        fixer = self.fixers.get(issue.kind)
        if fixer is None:
            return FixOutcome(issue, FixStatus.UNRESOLVED, message=f"No fixer for {issue.kind.value}")
        return fixer.fix(issue, file_set)
