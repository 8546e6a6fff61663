"""
Lexical Source Index

Regex-level scanning of TypeScript/JavaScript modules: what a module exports,
what it imports and from where, and whether a symbol is declared locally.
Generated apps are small, flat module graphs, so no type-checking or full
parsing is attempted.
"""

import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .models import FileSet


CODE_EXTENSIONS = ('.tsx', '.ts', '.jsx', '.js')

BLOCK_COMMENT_PATTERN = re.compile(r'/\*.*?\*/', re.DOTALL)
LINE_COMMENT_PATTERN = re.compile(r'^\s*//.*$', re.MULTILINE)

DEFAULT_EXPORT_PATTERN = re.compile(r'\bexport\s+default\b')
DEFAULT_DECLARATION_PATTERN = re.compile(
    r'\bexport\s+default\s+(?:async\s+)?(?:abstract\s+)?(?:function\*?|class)\s+([A-Za-z_$][\w$]*)'
)
DECLARATION_EXPORT_PATTERN = re.compile(
    r'\bexport\s+(?:declare\s+)?(?:async\s+)?(?:abstract\s+)?'
    r'(?:const|let|var|function\*?|class|interface|type|enum)\s+([A-Za-z_$][\w$]*)'
)
EXPORT_LIST_PATTERN = re.compile(r'\bexport\s*(?:type\s+)?\{([^}]*)\}')
EXPORT_STAR_PATTERN = re.compile(r'''\bexport\s*\*\s*(?:as\s+([A-Za-z_$][\w$]*)\s+)?from\s*['"]([^'"]+)['"]''')

IMPORT_PATTERN = re.compile(
    r'''^[ \t]*import\s+(type\s+)?([^'";]+?)\s+from\s*['"]([^'"]+)['"]''',
    re.MULTILINE
)

DECLARATION_TEMPLATE = (
    r'^(?:declare\s+)?(?:async\s+)?(?:abstract\s+)?'
    r'(const|let|var|function\*?|class|interface|type|enum)\s+({name})\b'
)
ANY_DECLARATION_PATTERN = re.compile(DECLARATION_TEMPLATE.format(name=r'[A-Za-z_$][\w$]*'), re.MULTILINE)

USE_CLIENT_PATTERN = re.compile(r'''^\s*(?:['"]use client['"];?\s*)''')


@dataclass
class ModuleExports:
    """Exported names of one module."""
    has_default: bool = False
    default_name: Optional[str] = None  # binding created by `export default function X`
    named: Set[str] = field(default_factory=set)
    star_sources: List[str] = field(default_factory=list)

    def provides(self, symbol: str) -> bool:
        if symbol == 'default':
            return self.has_default
        return symbol in self.named


@dataclass
class ImportSpec:
    """One import statement: the module specifier and the symbols it pulls in."""
    source: str
    symbols: List[str] = field(default_factory=list)  # original names; 'default' for default imports
    namespace: Optional[str] = None
    type_only: bool = False


def is_code_file(path: str) -> bool:
    return (path.endswith(CODE_EXTENSIONS)
            and not path.endswith('.d.ts')
            and 'node_modules/' not in path)


def has_use_client(content: str) -> bool:
    return bool(USE_CLIENT_PATTERN.match(content))


def strip_comments(content: str) -> str:
    content = BLOCK_COMMENT_PATTERN.sub('', content)
    return LINE_COMMENT_PATTERN.sub('', content)


def _split_specifiers(block: str) -> List[List[str]]:
    """Split ``a, b as c, type d`` into [['a'], ['b', 'c'], ['d']]."""
    specifiers = []
    for item in block.split(','):
        item = item.strip()
        if not item:
            continue
        item = re.sub(r'^type\s+', '', item)
        parts = re.split(r'\s+as\s+', item)
        specifiers.append([part.strip() for part in parts if part.strip()])
    return [parts for parts in specifiers if parts]


def scan_exports(content: str) -> ModuleExports:
    source = strip_comments(content)
    exports = ModuleExports()

    if DEFAULT_EXPORT_PATTERN.search(source):
        exports.has_default = True
        declared = DEFAULT_DECLARATION_PATTERN.search(source)
        if declared:
            exports.default_name = declared.group(1)

    for match in DECLARATION_EXPORT_PATTERN.finditer(source):
        exports.named.add(match.group(1))

    for match in EXPORT_LIST_PATTERN.finditer(source):
        for parts in _split_specifiers(match.group(1)):
            exported = parts[-1]
            if exported == 'default':
                exports.has_default = True
            else:
                exports.named.add(exported)

    for match in EXPORT_STAR_PATTERN.finditer(source):
        if match.group(1):
            exports.named.add(match.group(1))
        else:
            exports.star_sources.append(match.group(2))

    return exports


def scan_imports(content: str) -> List[ImportSpec]:
    source = strip_comments(content)
    imports = []

    for match in IMPORT_PATTERN.finditer(source):
        type_only = bool(match.group(1))
        clause = match.group(2).strip()
        spec = ImportSpec(source=match.group(3), type_only=type_only)

        braces = re.search(r'\{([^}]*)\}', clause)
        if braces:
            spec.symbols.extend(parts[0] for parts in _split_specifiers(braces.group(1)))
            clause = clause[:braces.start()] + clause[braces.end():]

        for head in (part.strip() for part in clause.split(',')):
            if not head:
                continue
            namespace = re.match(r'^\*\s*as\s+([A-Za-z_$][\w$]*)$', head)
            if namespace:
                spec.namespace = namespace.group(1)
            elif re.match(r'^[A-Za-z_$][\w$]*$', head):
                spec.symbols.insert(0, 'default')

        imports.append(spec)

    return imports


def resolve_import(specifier: str, importer: str, known_paths: Iterable[str]) -> Optional[str]:
    """
    Resolve an import specifier to a path in the FileSet.

    Handles the ``@/`` alias (tried against ``src/`` first, then the project
    root) and relative paths. Bare package imports resolve to None.
    """
    known = set(known_paths)

    if specifier.startswith('@/'):
        rest = specifier[2:]
        bases = [posixpath.join('src', rest), rest]
    elif specifier.startswith('.'):
        joined = posixpath.join(posixpath.dirname(importer), specifier)
        bases = [posixpath.normpath(joined)]
    else:
        return None

    for base in bases:
        if base in known:
            return base
        for ext in CODE_EXTENSIONS:
            if base + ext in known:
                return base + ext
        for ext in CODE_EXTENSIONS:
            index_path = posixpath.join(base, 'index' + ext)
            if index_path in known:
                return index_path

    return None


def find_local_declaration(content: str, symbol: str) -> Optional[str]:
    """Return the declaration keyword if ``symbol`` is declared at top level without export."""
    pattern = re.compile(DECLARATION_TEMPLATE.format(name=re.escape(symbol)), re.MULTILINE)
    match = pattern.search(strip_comments(content))
    return match.group(1) if match else None


def local_declarations(content: str) -> List[str]:
    """Names declared at top level without an export keyword, in file order."""
    names = []
    for match in ANY_DECLARATION_PATTERN.finditer(strip_comments(content)):
        if match.group(2) not in names:
            names.append(match.group(2))
    return names


def build_export_map(file_set: FileSet) -> Dict[str, ModuleExports]:
    return {
        generated.path: scan_exports(generated.content)
        for generated in file_set
        if is_code_file(generated.path) and isinstance(generated.content, str)
    }
