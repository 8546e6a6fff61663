"""
Tests for writing FileSets to disk and reading project trees back.
"""

import os
from pathlib import Path

import pytest

from next_builder.errors import MaterializeError
from next_builder.materializer import FileMaterializer, read_tree
from next_builder.models import GeneratedFile

from conftest import make_file_set


class TestFileMaterializer:
    def test_writes_nested_files(self, project_dir: Path):
        materializer = FileMaterializer(str(project_dir))
        report = materializer.materialize_all(make_file_set({
            "src/app/page.tsx": "export default function Page() {}\n",
            "package.json": "{}",
        }))
        assert report.success
        assert sorted(report.written) == ["package.json", "src/app/page.tsx"]
        assert (project_dir / "src/app/page.tsx").read_text() == "export default function Page() {}\n"

    def test_overwrites_existing_file(self, project_dir: Path):
        (project_dir / "a.ts").write_text("old")
        FileMaterializer(str(project_dir)).materialize(GeneratedFile("a.ts", "new"))
        assert (project_dir / "a.ts").read_text() == "new"

    def test_no_temp_files_left_behind(self, project_dir: Path):
        FileMaterializer(str(project_dir)).materialize_all(make_file_set({"src/a.ts": "x"}))
        assert os.listdir(project_dir / "src") == ["a.ts"]

    def test_non_string_content_coerced_on_write(self, project_dir: Path):
        generated = GeneratedFile("data.json", {"x": 1})
        FileMaterializer(str(project_dir)).materialize(generated)
        assert (project_dir / "data.json").read_text() == "{\n  \"x\": 1\n}"
        assert generated.content == "{\n  \"x\": 1\n}"

    def test_path_escaping_project_rejected(self, project_dir: Path):
        with pytest.raises(MaterializeError) as exc_info:
            FileMaterializer(str(project_dir)).materialize(GeneratedFile("../outside.ts", "x"))
        assert exc_info.value.failures == {"../outside.ts": "unsafe path"}
        assert not (project_dir.parent / "outside.ts").exists()

    def test_materialize_error_is_os_error(self):
        assert issubclass(MaterializeError, OSError)

    def test_failed_write_retried_once_then_reported(self, project_dir: Path, monkeypatch):
        calls = []

        def failing_replace(src, dst):
            calls.append(dst)
            raise PermissionError("read-only file system")

        monkeypatch.setattr(os, "replace", failing_replace)
        report = FileMaterializer(str(project_dir)).materialize_all(make_file_set({"a.ts": "x"}))

        assert not report.success
        assert "a.ts" in report.failed
        assert len(calls) == 2

    def test_transient_failure_recovers_on_retry(self, project_dir: Path, monkeypatch):
        real_replace = os.replace
        attempts = []

        def flaky_replace(src, dst):
            attempts.append(dst)
            if len(attempts) == 1:
                raise OSError("disk busy")
            return real_replace(src, dst)

        monkeypatch.setattr(os, "replace", flaky_replace)
        report = FileMaterializer(str(project_dir)).materialize_all(make_file_set({"a.ts": "x"}))

        assert report.success
        assert (project_dir / "a.ts").read_text() == "x"

    def test_removed_paths_deleted(self, project_dir: Path):
        (project_dir / "next.config.ts").write_text("export default {};")
        file_set = make_file_set({"next.config.ts": "export default {};"})
        file_set.remove("next.config.ts")
        file_set.put("next.config.mjs", "export default {};")

        report = FileMaterializer(str(project_dir)).materialize_all(file_set)

        assert report.removed == ["next.config.ts"]
        assert not (project_dir / "next.config.ts").exists()
        assert (project_dir / "next.config.mjs").exists()


class TestReadTree:
    def test_reads_project_files(self, project_dir: Path):
        (project_dir / "src/app").mkdir(parents=True)
        (project_dir / "src/app/page.tsx").write_text("page")
        (project_dir / "package.json").write_text("{}")

        file_set = read_tree(str(project_dir))

        assert sorted(file_set.paths()) == ["package.json", "src/app/page.tsx"]
        assert file_set.content_of("src/app/page.tsx") == "page"

    def test_skips_dependencies_and_build_output(self, project_dir: Path):
        for directory in ("node_modules/react", ".next/server", ".git"):
            (project_dir / directory).mkdir(parents=True)
            (project_dir / directory / "index.js").write_text("x")
        (project_dir / "app.ts").write_text("x")

        assert read_tree(str(project_dir)).paths() == ["app.ts"]

    def test_skips_binary_and_undecodable_files(self, project_dir: Path):
        (project_dir / "favicon.ico").write_bytes(b"\x00\x01")
        (project_dir / "broken.ts").write_bytes(b"\xff\xfe\xfa")
        (project_dir / "ok.ts").write_text("ok")

        assert read_tree(str(project_dir)).paths() == ["ok.ts"]

    def test_missing_directory_is_empty(self, tmp_path: Path):
        assert len(read_tree(str(tmp_path / "missing"))) == 0
