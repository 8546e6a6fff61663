"""
Pattern Validators

Independent checkers, each inspecting the whole FileSet for one structural
contract:
1. Content type (every file holds text)
2. Export/import consistency between generated modules
3. Shared-state context modules exporting their container and accessor
4. Required boilerplate files

Validators only read the FileSet, so ``run_validators`` may run them on a
thread pool; issues are always merged back in validator order.
"""

import re
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

from .boilerplate import DEFAULT_MANIFEST, BoilerplateManifest
from .build_validator import SIG_CLIENT_COMPONENT_HOOK
from .models import FileSet, IssueKind, ValidationIssue
from .source_index import (
    build_export_map,
    find_local_declaration,
    has_use_client,
    is_code_file,
    resolve_import,
    scan_imports,
)


CONTEXT_FILE_PATTERN = re.compile(r'(?:^|/)[Cc]ontexts?/(?:.*/)?(\w+?)Context\.(?:tsx?|jsx?)$')


def context_name_for(path: str) -> Optional[str]:
    """
    Extract the context name from a shared-state module path.

    Example: src/context/TodoContext.tsx -> "Todo"
    """
    match = CONTEXT_FILE_PATTERN.search(path)
    return match.group(1) if match else None


def context_symbols(name: str) -> Tuple[str, str]:
    """The (state container, accessor) names a context module must export."""
    return f"{name}Context", f"use{name}Context"


class PatternValidator:
    name = "pattern"

    def validate(self, file_set: FileSet) -> List[ValidationIssue]:
        raise NotImplementedError


class ContentTypeValidator(PatternValidator):
    """Catches any file whose content is not a string."""
    name = "content_type"

    def validate(self, file_set: FileSet) -> List[ValidationIssue]:
        return [
            ValidationIssue(
                kind=IssueKind.NON_STRING_CONTENT,
                file_path=generated.path,
                detail=f"Content is {type(generated.content).__name__}, expected text",
            )
            for generated in file_set
            if not isinstance(generated.content, str)
        ]


class ExportImportValidator(PatternValidator):
    """
    Checks that every import of a generated module names something that
    module exports.

    Imports of external packages, of paths outside the FileSet, and
    namespace imports are ignored. A module with ``export * from`` is given
    the benefit of the doubt.
    """
    name = "export_import"

    def validate(self, file_set: FileSet) -> List[ValidationIssue]:
        export_map = build_export_map(file_set)
        known_paths = file_set.paths()
        issues = []
        seen = set()

        for generated in file_set:
            if not is_code_file(generated.path) or not isinstance(generated.content, str):
                continue

            for spec in scan_imports(generated.content):
                target = resolve_import(spec.source, generated.path, known_paths)
                if target is None or target not in export_map:
                    continue

                exports = export_map[target]
                for symbol in spec.symbols:
                    if exports.provides(symbol):
                        continue
                    if symbol != 'default' and exports.star_sources:
                        continue
                    key = (generated.path, target, symbol)
                    if key in seen:
                        continue
                    seen.add(key)

                    what = "a default export" if symbol == 'default' else f"'{symbol}'"
                    issues.append(ValidationIssue(
                        kind=IssueKind.MISSING_IMPORT_TARGET,
                        file_path=generated.path,
                        target_path=target,
                        symbol=symbol,
                        detail=f"Imports {what} from '{spec.source}' but {target} does not export it",
                    ))

        return issues


class ContextPatternValidator(PatternValidator):
    """
    Checks the shared-state idiom for ``context/<Name>Context.tsx``:

    - the module starts with ``'use client'`` (createContext and hooks only
      run in Client Components)
    - it exports both ``<Name>Context`` and ``use<Name>Context``
    - a ``<Name>Provider`` it declares is exported as well

    A missing directive is reported under the client-component-hook build
    signature so the same fixer handles it before and after a build.
    """
    name = "context_pattern"

    def validate(self, file_set: FileSet) -> List[ValidationIssue]:
        export_map = build_export_map(file_set)
        issues = []

        for path, exports in export_map.items():
            name = context_name_for(path)
            if not name:
                continue
            content = file_set.content_of(path)

            if not has_use_client(content):
                issues.append(ValidationIssue(
                    kind=IssueKind.BUILD_ERROR_SIGNATURE,
                    file_path=path,
                    signature_id=SIG_CLIENT_COMPONENT_HOOK,
                    detail="Context module must start with 'use client'",
                ))

            for symbol in context_symbols(name):
                if symbol not in exports.named:
                    issues.append(ValidationIssue(
                        kind=IssueKind.MISSING_EXPORT,
                        file_path=path,
                        symbol=symbol,
                        detail=f"Context module must export {symbol}",
                    ))

            provider = f"{name}Provider"
            declared = exports.default_name == provider or find_local_declaration(content, provider)
            if provider not in exports.named and declared:
                issues.append(ValidationIssue(
                    kind=IssueKind.MISSING_EXPORT,
                    file_path=path,
                    symbol=provider,
                    detail=f"Context module declares {provider} but does not export it by name",
                ))

        return issues


class BoilerplateValidator(PatternValidator):
    name = "boilerplate"

    def __init__(self, manifest: BoilerplateManifest = DEFAULT_MANIFEST):
        self.manifest = manifest

    def validate(self, file_set: FileSet) -> List[ValidationIssue]:
        return [
            ValidationIssue(
                kind=IssueKind.MISSING_BOILERPLATE,
                file_path=entry.path,
                detail=f"Required file {entry.path} is missing",
            )
            for entry in self.manifest.missing(file_set)
        ]


def default_validators(manifest: BoilerplateManifest = DEFAULT_MANIFEST) -> List[PatternValidator]:
    return [
        ContentTypeValidator(),
        ExportImportValidator(),
        ContextPatternValidator(),
        BoilerplateValidator(manifest),
    ]


def run_validators(file_set: FileSet, validators: Optional[Sequence[PatternValidator]] = None,
                   parallel: bool = True) -> List[ValidationIssue]:
    """
    Run all validators and merge their issues.

    Args:
        file_set: Files to inspect (read only)
        validators: Validators to run, defaults to ``default_validators()``
        parallel: Run validators concurrently on a thread pool

    Returns:
        Issues in validator order, duplicates removed
    """
    validators = list(validators) if validators is not None else default_validators()
    if not validators:
        return []

    if parallel and len(validators) > 1:
        with ThreadPoolExecutor(max_workers=len(validators)) as pool:
            results = list(pool.map(lambda v: v.validate(file_set), validators))
    else:
        results = [validator.validate(file_set) for validator in validators]

    merged = []
    seen = set()
    for issues in results:
        for issue in issues:
            if issue.key() in seen:
                continue
            seen.add(issue.key())
            merged.append(issue)
    return merged
