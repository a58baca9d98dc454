"""Tests for the generated-artifact writer."""

from __future__ import annotations

from pathlib import Path

import pytest

from modularisan.scaffolder.writer import (
    ArtifactWriter,
    GeneratedArtifact,
    sibling_doc_name,
    sibling_test_name,
)

pytestmark = pytest.mark.unit


class TestSiblingNames:
    def test_test_name(self):
        assert sibling_test_name("my-service.ts") == "my-service.test.ts"
        assert sibling_test_name("login-form.tsx") == "login-form.test.tsx"

    def test_doc_name(self):
        assert sibling_doc_name("my-service.ts") == "my-service.md"


class TestPlan:
    def test_main_only(self, tmp_path: Path):
        files = ArtifactWriter().plan(GeneratedArtifact(code="x"), tmp_path, "a.ts")
        assert files == [tmp_path / "a.ts"]

    def test_all_siblings(self, tmp_path: Path):
        artifact = GeneratedArtifact(code="x", tests="t", documentation="d")
        files = ArtifactWriter().plan(artifact, tmp_path, "a.ts")
        assert files == [tmp_path / "a.ts", tmp_path / "a.test.ts", tmp_path / "a.md"]


class TestWrite:
    async def test_writes_main_and_siblings(self, tmp_path: Path, logger):
        artifact = GeneratedArtifact(code="main", tests="tests", documentation="docs")
        target = tmp_path / "services"
        written = await ArtifactWriter(logger).write(artifact, target, "user.ts")

        assert written == [target / "user.ts", target / "user.test.ts", target / "user.md"]
        assert (target / "user.ts").read_text() == "main"
        assert (target / "user.test.ts").read_text() == "tests"
        assert (target / "user.md").read_text() == "docs"

    async def test_skips_empty_siblings(self, tmp_path: Path, logger):
        written = await ArtifactWriter(logger).write(GeneratedArtifact(code="x", tests=""), tmp_path, "a.ts")
        assert written == [tmp_path / "a.ts"]
        assert not (tmp_path / "a.test.ts").exists()

    async def test_markdown_base_file(self, tmp_path: Path, logger):
        artifact = GeneratedArtifact(code="# Guide", documentation="extra")
        written = await ArtifactWriter(logger).write(artifact, tmp_path, "guide.mdx")
        assert written == [tmp_path / "guide.mdx", tmp_path / "guide.md"]
        assert (tmp_path / "guide.mdx").read_text() == "# Guide"

    async def test_dry_run_touches_nothing(self, tmp_path: Path, logger):
        artifact = GeneratedArtifact(code="main", tests="tests", documentation="docs")
        target = tmp_path / "never"
        planned = await ArtifactWriter(logger).write(artifact, target, "x.ts", dry_run=True)

        assert planned == [target / "x.ts", target / "x.test.ts", target / "x.md"]
        assert not target.exists()
        output = logger.console.file.getvalue()
        assert "[dry-run] Would create directory" in output
        assert output.count("[dry-run] Would write") == 3
