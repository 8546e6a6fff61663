"""
Boilerplate Manifest

Static, versioned list of files every generated NextJS app must contain,
with the canonical content used when one is missing. The app directory
(``src/app`` or ``app``) is detected from the file set so the manifest works
for both create-next-app layouts.
"""

import posixpath
from dataclasses import dataclass
from typing import List, Optional

from .models import FileSet
from .source_index import CODE_EXTENSIONS, is_code_file


BOILERPLATE_VERSION = "1"

APP_DIRS = ('src/app', 'app')

ROOT_LAYOUT = """import type { Metadata } from 'next'
import './globals.css'

export const metadata: Metadata = {
  title: 'My App',
  description: 'Generated by NextJS Builder',
}

export default function RootLayout({
  children,
}: {
  children: React.ReactNode
}) {
  return (
    <html lang="en">
      <body>{children}</body>
    </html>
  )
}
"""

GLOBALS_CSS = """@tailwind base;
@tailwind components;
@tailwind utilities;
"""

NEXT_CONFIG_MJS = """/** @type {import('next').NextConfig} */
const nextConfig = {
  /* config options here */
};

export default nextConfig;
"""


@dataclass(frozen=True)
class BoilerplateEntry:
    path: str
    content: str


class BoilerplateManifest:
    """
    Required files relative to the app directory.

    Entries are (name, canonical content) pairs; ``resolve`` turns them into
    concrete project paths for a given FileSet.
    """

    def __init__(self, entries=None, version: str = BOILERPLATE_VERSION):
        self.version = version
        self.entries = list(entries) if entries is not None else [
            ("layout.tsx", ROOT_LAYOUT),
            ("globals.css", GLOBALS_CSS),
        ]

    @staticmethod
    def detect_app_dir(file_set: FileSet) -> str:
        """
        Prefer the directory holding the root layout or page, then whichever
        app directory has any files. Defaults to ``src/app``.
        """
        paths = file_set.paths()
        for app_dir in APP_DIRS:
            for path in paths:
                directory, name = posixpath.split(path)
                if directory == app_dir and is_code_file(path) and name.split('.')[0] in ('layout', 'page'):
                    return app_dir
        for app_dir in APP_DIRS:
            if any(path.startswith(app_dir + '/') for path in paths):
                return app_dir
        return 'src/app'

    @staticmethod
    def existing_path(entry: BoilerplateEntry, file_set: FileSet) -> Optional[str]:
        """
        Return the path already satisfying ``entry``, if any.

        Code entries match any code extension, so ``layout.jsx`` stands in
        for ``layout.tsx``.
        """
        if entry.path in file_set:
            return entry.path
        base, extension = posixpath.splitext(entry.path)
        if extension not in CODE_EXTENSIONS:
            return None
        for candidate in CODE_EXTENSIONS:
            if base + candidate in file_set:
                return base + candidate
        return None

    def missing(self, file_set: FileSet) -> List[BoilerplateEntry]:
        return [entry for entry in self.resolve(file_set) if self.existing_path(entry, file_set) is None]

    def resolve(self, file_set: FileSet) -> List[BoilerplateEntry]:
        app_dir = self.detect_app_dir(file_set)
        return [BoilerplateEntry(f"{app_dir}/{name}", content) for name, content in self.entries]

    def entry_for(self, path: str, file_set: FileSet) -> Optional[BoilerplateEntry]:
        for entry in self.resolve(file_set):
            if entry.path == path:
                return entry
        return None


DEFAULT_MANIFEST = BoilerplateManifest()
