"""The single choke point through which generated code reaches disk.

Template-rendered and AI-generated output share the
:class:`GeneratedArtifact` shape, and both are written (or previewed under
``dry_run``) by :class:`ArtifactWriter`, so dry-run behaviour is identical
for every code path.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ..logger import Logger
from ..utils import ensure_dir, write_text


class GeneratedArtifact(BaseModel):
    """Generated output destined for one main file plus optional siblings."""

    code: str = Field(..., description="Main file content")
    explanation: str = Field(default="", description="Free-text explanation from the generator")
    suggestions: list[str] = Field(default_factory=list)
    tests: Optional[str] = Field(default=None, description="Content of the sibling test file")
    documentation: Optional[str] = Field(default=None, description="Content of the sibling .md file")
    dependencies: list[str] = Field(default_factory=list, description="Packages the code needs")


def sibling_test_name(base_file_name: str) -> str:
    """``'my-service.ts'`` -> ``'my-service.test.ts'``."""
    path = Path(base_file_name)
    return f"{path.stem}.test{path.suffix}"


def sibling_doc_name(base_file_name: str) -> str:
    """``'my-service.ts'`` -> ``'my-service.md'``."""
    return f"{Path(base_file_name).stem}.md"


class ArtifactWriter:
    """Writes a :class:`GeneratedArtifact` or previews it without touching disk."""

    def __init__(self, logger: Logger | None = None) -> None:
        self.logger = logger or Logger()

    def plan(self, artifact: GeneratedArtifact, target_dir: str | Path, base_file_name: str) -> list[Path]:
        """Return the files *artifact* maps to, main file first."""
        target = Path(target_dir)
        files = [target / base_file_name]
        if artifact.tests:
            files.append(target / sibling_test_name(base_file_name))
        if artifact.documentation:
            files.append(target / sibling_doc_name(base_file_name))
        return files

    async def write(
        self,
        artifact: GeneratedArtifact,
        target_dir: str | Path,
        base_file_name: str,
        dry_run: bool = False,
    ) -> list[Path]:
        """Write *artifact* under *target_dir*.

        Args:
            artifact: Code plus optional tests/documentation.
            target_dir: Directory receiving the files; created if missing.
            base_file_name: Main file name including its extension.
            dry_run: Only log what would be written.

        Returns:
            The paths written, or that would have been written on a dry run.
        """
        files = self.plan(artifact, target_dir, base_file_name)

        if dry_run:
            self.logger.info(f"[dry-run] Would create directory: {Path(target_dir)}")
            for path in files:
                self.logger.info(f"[dry-run] Would write: {path}")
            return files

        target = await ensure_dir(target_dir)
        contents = [(target / base_file_name, artifact.code)]
        if artifact.tests:
            contents.append((target / sibling_test_name(base_file_name), artifact.tests))
        if artifact.documentation:
            contents.append((target / sibling_doc_name(base_file_name), artifact.documentation))

        for path, content in contents:
            await write_text(path, content)
            self.logger.debug(f"Wrote {path}")

        return [path for path, _ in contents]
