"""
Shared test fixtures and helpers.

No test touches the network or npm: builds go through FakeBuildRunner and
LLM calls through FakeLLM.
"""

from pathlib import Path
from typing import Dict, List

import pytest

from next_builder.boilerplate import GLOBALS_CSS, ROOT_LAYOUT
from next_builder.build_validator import RawBuildOutput
from next_builder.models import FileSet, GeneratedFile


TODO_CONTEXT = """'use client';

import { createContext, useState } from 'react';

export interface TodoState {
  todos: string[];
}

export const TodoContext = createContext<TodoState | null>(null);

export function TodoProvider({ children }: { children: React.ReactNode }) {
  const [todos] = useState<string[]>([]);
  return <TodoContext.Provider value={{ todos }}>{children}</TodoContext.Provider>;
}
"""

TODO_LIST = """'use client';

import { useTodoContext } from '../context/TodoContext';

export default function List() {
  const { todos } = useTodoContext();
  return <ul>{todos.map((todo) => <li key={todo}>{todo}</li>)}</ul>;
}
"""

HOME_PAGE = """import List from '@/components/List';

export default function Home() {
  return <main><List /></main>;
}
"""


GEIST_LAYOUT = """import type { Metadata } from "next";
import { Geist, Geist_Mono } from "next/font/google";
import "./globals.css";

const geistSans = Geist({
  variable: "--font-geist-sans",
  subsets: ["latin"],
});

const geistMono = Geist_Mono({
  variable: "--font-geist-mono",
  subsets: ["latin"],
});

export const metadata: Metadata = {
  title: "Todo App",
};

export default function RootLayout({ children }: { children: React.ReactNode }) {
  return (
    <html lang="en">
      <body className={`${geistSans.variable} ${geistMono.variable} antialiased`}>
        {children}
      </body>
    </html>
  );
}
"""


def make_file_set(files: Dict[str, object]) -> FileSet:
    return FileSet(GeneratedFile(path, content) for path, content in files.items())


class FakeBuildRunner:
    """Returns scripted build outputs in order; repeats the last one when exhausted."""

    def __init__(self, outputs: List[RawBuildOutput]):
        self.outputs = list(outputs)
        self.calls: List[FileSet] = []

    def run(self, file_set: FileSet) -> RawBuildOutput:
        self.calls.append(file_set.copy())
        index = min(len(self.calls), len(self.outputs)) - 1
        return self.outputs[index]


class FakeLLM:
    """Returns scripted responses in order and records every prompt."""

    def __init__(self, responses: List):
        self.responses = list(responses)
        self.prompts: List[str] = []

    def complete(self, messages):
        self.prompts.append(messages[-1]["content"])
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Return an empty project directory."""
    directory = tmp_path / "app"
    directory.mkdir()
    return directory


@pytest.fixture
def todo_file_set() -> FileSet:
    """Context module exporting only its container, plus a consumer of the accessor."""
    return make_file_set({
        "context/TodoContext.ts": TODO_CONTEXT,
        "components/List.ts": TODO_LIST,
    })


@pytest.fixture
def clean_app() -> FileSet:
    """A src/app project that passes every pattern validator."""
    return make_file_set({
        "src/app/layout.tsx": ROOT_LAYOUT,
        "src/app/globals.css": GLOBALS_CSS,
        "src/app/page.tsx": HOME_PAGE,
        "src/components/List.tsx": "export default function List() {\n  return <ul />;\n}\n",
    })


@pytest.fixture
def passing_build() -> FakeBuildRunner:
    return FakeBuildRunner([RawBuildOutput(True)])
