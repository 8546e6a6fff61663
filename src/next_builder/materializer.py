"""
File Materializer

Writes FileSet entries into a project directory and reads existing project
trees back into a FileSet.

Each file is written to a temporary sibling and moved into place with
os.replace, so a failed write never leaves a truncated file behind that the
build would pick up as complete.
"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .errors import MaterializeError
from .models import FileSet, GeneratedFile, normalize_path
from .response_parser import coerce_content


SKIP_DIRECTORIES = {'node_modules', '.next', '.git', 'out', 'dist', '.turbo'}
TEXT_EXTENSIONS = ('.ts', '.tsx', '.js', '.jsx', '.mjs', '.cjs', '.json', '.css', '.scss',
                   '.md', '.html', '.svg', '.txt', '.yml', '.yaml', '.env', '.example')
MAX_READ_BYTES = 512 * 1024


@dataclass
class MaterializeReport:
    """Outcome of writing a whole FileSet, reported per file."""
    written: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    removed: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


class FileMaterializer:
    def __init__(self, target_dir: str, retries: int = 1):
        self.target_dir = Path(target_dir)
        self.retries = retries

    def resolve(self, path: str) -> Path:
        """Map a project-relative path into the target directory, refusing escapes."""
        relative = normalize_path(path)
        if not relative or relative.startswith('..'):
            raise MaterializeError(f"Refusing to write outside project: {path!r}", {path: "unsafe path"})
        destination = (self.target_dir / relative).resolve()
        root = self.target_dir.resolve()
        if destination != root and root not in destination.parents:
            raise MaterializeError(f"Refusing to write outside project: {path!r}", {path: "unsafe path"})
        return destination

    def materialize(self, generated: GeneratedFile) -> Path:
        """
        Write one file atomically.

        Non-string content is coerced rather than rejected; only real I/O
        failures raise.

        Args:
            generated: The file to write

        Returns:
            Absolute path of the written file

        Raises:
            MaterializeError: the path is unsafe or the write failed
        """
        content, coerced = coerce_content(generated.content)
        if coerced:
            print(f"⚠️  Non-string content for {generated.path}, serialized before writing")
            generated.content = content

        destination = self.resolve(generated.path)
        temp_name = None
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(prefix=f".{destination.name}.", suffix=".tmp",
                                             dir=str(destination.parent))
            with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
                f.write(content)
            os.replace(temp_name, destination)
            temp_name = None
        except OSError as e:
            raise MaterializeError(f"Failed to write {generated.path}: {e}",
                                   {generated.path: str(e)}) from e
        finally:
            if temp_name and os.path.exists(temp_name):
                os.unlink(temp_name)

        return destination

    def materialize_all(self, file_set: FileSet) -> MaterializeReport:
        """
        Write every file in the set and delete files the set has dropped.

        Each failing file is retried once before it is reported as failed.
        """
        report = MaterializeReport()
        self.target_dir.mkdir(parents=True, exist_ok=True)

        for generated in file_set:
            error = self._write_with_retry(generated)
            if error:
                report.failed[generated.path] = error
                print(f"❌ Error writing {generated.path}: {error}")
            else:
                report.written.append(generated.path)

        for path in file_set.removed:
            try:
                destination = self.resolve(path)
                if destination.exists():
                    destination.unlink()
                    report.removed.append(path)
                    print(f"🗑️  Removed: {path}")
            except OSError as e:
                report.failed[path] = f"could not remove: {e}"

        print(f"✓ Materialized {len(report.written)} file(s) into {self.target_dir}")
        return report

    def _write_with_retry(self, generated: GeneratedFile) -> Optional[str]:
        last_error = None
        for _ in range(self.retries + 1):
            try:
                self.materialize(generated)
                return None
            except MaterializeError as e:
                last_error = str(e)
                if e.failures.get(generated.path) == "unsafe path":
                    break
        return last_error


def read_tree(directory: str) -> FileSet:
    """
    Load an existing project directory into a FileSet.

    Build output, dependencies and files that are not UTF-8 text are skipped.
    """
    root = Path(directory)
    file_set = FileSet()
    if not root.is_dir():
        return file_set

    for current, dirs, files in os.walk(root):
        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRECTORIES)
        for name in sorted(files):
            full_path = Path(current) / name
            if not name.endswith(TEXT_EXTENSIONS) and name not in ('.gitignore', '.eslintrc'):
                continue
            try:
                if full_path.stat().st_size > MAX_READ_BYTES:
                    continue
                content = full_path.read_text(encoding='utf-8')
            except (OSError, UnicodeDecodeError) as e:
                print(f"⚠️ Could not read {full_path}: {e}")
                continue
            relative = full_path.relative_to(root).as_posix()
            file_set.add(GeneratedFile(relative, content))

    return file_set
