"""
Tests for the next-builder command line.
"""

from pathlib import Path

import pytest

from next_builder.boilerplate import GLOBALS_CSS, ROOT_LAYOUT
from next_builder.main import main

from conftest import HOME_PAGE


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    for name in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "OPENROUTER_API_KEY", "NEXT_BUILDER_MAX_CYCLES"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return ["--env-file", str(tmp_path / "none.env")]


def write_files(root: Path, files):
    for path, content in files.items():
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)


class TestValidateCommand:
    def test_clean_project(self, cli_env, project_dir, capsys):
        write_files(project_dir, {
            "src/app/layout.tsx": ROOT_LAYOUT,
            "src/app/globals.css": GLOBALS_CSS,
            "src/app/page.tsx": "export default function Home() { return null; }\n",
        })
        assert main(cli_env + ["validate", str(project_dir)]) == 0
        assert "No structural issues" in capsys.readouterr().out

    def test_reports_issues(self, cli_env, project_dir, capsys):
        write_files(project_dir, {"src/app/page.tsx": HOME_PAGE})
        assert main(cli_env + ["validate", str(project_dir)]) == 1
        assert "src/app/layout.tsx" in capsys.readouterr().out


class TestRepairCommand:
    def test_inserts_boilerplate_without_building(self, cli_env, project_dir):
        write_files(project_dir, {"src/app/page.tsx": "export default function Home() { return null; }\n"})

        assert main(cli_env + ["repair", str(project_dir), "--no-build"]) == 0
        assert (project_dir / "src/app/layout.tsx").read_text() == ROOT_LAYOUT
        assert "SESSION SUMMARY | final_result: DONE" in (project_dir / "build_errors.log").read_text()

    def test_empty_directory(self, cli_env, project_dir):
        assert main(cli_env + ["repair", str(project_dir), "--no-build"]) == 1

    def test_max_cycles_option(self, cli_env, project_dir, capsys):
        write_files(project_dir, {
            "src/app/layout.tsx": ROOT_LAYOUT,
            "src/app/globals.css": GLOBALS_CSS,
            "src/app/page.tsx": "import { missing } from '@/lib/utils';\n",
            "src/lib/utils.ts": "export const cn = () => '';\n",
        })
        assert main(cli_env + ["--max-cycles", "2", "repair", str(project_dir), "--no-build"]) == 1
        assert "Failed" in capsys.readouterr().out


class TestGenerateCommand:
    def test_requires_llm_provider(self, cli_env, project_dir, capsys):
        assert main(cli_env + ["generate", "A todo app", "-o", str(project_dir)]) == 1
        assert "No LLM provider configured" in capsys.readouterr().out


def test_invalid_setting_exits_with_error(cli_env, monkeypatch, project_dir):
    monkeypatch.setenv("NEXT_BUILDER_MAX_CYCLES", "lots")
    assert main(cli_env + ["validate", str(project_dir)]) == 1
