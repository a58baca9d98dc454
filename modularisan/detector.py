"""Framework detection from ``package.json`` metadata.

Classifies a JavaScript/TypeScript project into one of a fixed set of
:class:`FrameworkProfile` descriptors, each carrying the default path and
file-extension conventions used by the rest of the system.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError, FileSystemError
from .logger import Logger
from .utils import load_json, path_exists


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class FrameworkType(str, Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    FULLSTACK = "fullstack"


class PackageManager(str, Enum):
    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class FrameworkFeatures(BaseModel):
    model_config = ConfigDict(frozen=True)

    routing: bool = False
    api: bool = False
    ssr: bool = False
    typescript: bool = True
    testing: bool = True


class FrameworkPaths(BaseModel):
    """Default directories, relative to the project root."""

    model_config = ConfigDict(frozen=True)

    src: str = "src"
    components: str = "src/components"
    modules: str = "src/modules"
    shared: str = "src/shared"
    tests: str = "__tests__"
    pages: Optional[str] = None
    api: Optional[str] = None


class FrameworkExtensions(BaseModel):
    """File suffix per artifact kind."""

    model_config = ConfigDict(frozen=True)

    component: str = ".tsx"
    page: str = ".tsx"
    api: str = ".ts"
    service: str = ".ts"
    test: str = ".test.ts"


class FrameworkProfile(BaseModel):
    """Immutable descriptor of a host framework's conventions."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name, e.g. 'Next.js'")
    type: FrameworkType = Field(default=FrameworkType.FRONTEND)
    version: Optional[str] = Field(default=None, description="Version range from the manifest")
    features: FrameworkFeatures = Field(default_factory=FrameworkFeatures)
    paths: FrameworkPaths = Field(default_factory=FrameworkPaths)
    extensions: FrameworkExtensions = Field(default_factory=FrameworkExtensions)

    @property
    def key(self) -> str:
        """Template-set key: ``'Next.js'`` -> ``'next'``."""
        return self.name.split(".")[0].lower()


class ProjectStructure(BaseModel):
    """Everything the detector learned about a project root."""

    framework: FrameworkProfile
    has_typescript: bool = False
    has_testing: bool = False
    package_manager: PackageManager = PackageManager.NPM
    root_dir: Path


# ---------------------------------------------------------------------------
# Profile table
# ---------------------------------------------------------------------------

_TS_EXTENSIONS = FrameworkExtensions()

FRAMEWORK_PROFILES: dict[str, FrameworkProfile] = {
    "next": FrameworkProfile(
        name="Next.js",
        type=FrameworkType.FULLSTACK,
        features=FrameworkFeatures(routing=True, api=True, ssr=True),
        paths=FrameworkPaths(pages="src/app", api="src/app/api"),
        extensions=_TS_EXTENSIONS,
    ),
    "nuxt": FrameworkProfile(
        name="Nuxt.js",
        type=FrameworkType.FULLSTACK,
        features=FrameworkFeatures(routing=True, api=True, ssr=True),
        paths=FrameworkPaths(
            src=".",
            components="components",
            modules="modules",
            shared="shared",
            tests="tests",
            pages="pages",
            api="server/api",
        ),
        extensions=FrameworkExtensions(component=".vue", page=".vue"),
    ),
    "nest": FrameworkProfile(
        name="Nest.js",
        type=FrameworkType.BACKEND,
        features=FrameworkFeatures(routing=True, api=True),
        paths=FrameworkPaths(tests="test"),
        extensions=FrameworkExtensions(component=".ts", page=".ts", test=".spec.ts"),
    ),
    "react": FrameworkProfile(
        name="React",
        type=FrameworkType.FRONTEND,
        features=FrameworkFeatures(),
        paths=FrameworkPaths(),
        extensions=_TS_EXTENSIONS,
    ),
    "vue": FrameworkProfile(
        name="Vue.js",
        type=FrameworkType.FRONTEND,
        features=FrameworkFeatures(),
        paths=FrameworkPaths(tests="tests"),
        extensions=FrameworkExtensions(component=".vue", page=".vue"),
    ),
    "svelte": FrameworkProfile(
        name="Svelte",
        type=FrameworkType.FRONTEND,
        features=FrameworkFeatures(),
        paths=FrameworkPaths(tests="tests"),
        extensions=FrameworkExtensions(component=".svelte", page=".svelte"),
    ),
    "angular": FrameworkProfile(
        name="Angular",
        type=FrameworkType.FRONTEND,
        features=FrameworkFeatures(routing=True),
        paths=FrameworkPaths(
            components="src/app/components",
            modules="src/app/modules",
            shared="src/app/shared",
            tests="src/tests",
        ),
        extensions=FrameworkExtensions(
            component=".component.ts",
            page=".component.ts",
            api=".service.ts",
            service=".service.ts",
            test=".spec.ts",
        ),
    ),
    "express": FrameworkProfile(
        name="Express.js",
        type=FrameworkType.BACKEND,
        features=FrameworkFeatures(routing=True, api=True),
        paths=FrameworkPaths(tests="tests"),
        extensions=FrameworkExtensions(component=".ts", page=".ts"),
    ),
}

DEFAULT_FRAMEWORK = "react"

# Meta-frameworks come before the UI library they build on.  First match wins.
FRAMEWORK_MARKERS: list[tuple[str, tuple[str, ...]]] = [
    ("next", ("next",)),
    ("nuxt", ("nuxt", "@nuxt/kit")),
    ("nest", ("@nestjs/core",)),
    ("vue", ("vue", "@vue/cli-service")),
    ("svelte", ("svelte", "@sveltejs/kit")),
    ("angular", ("@angular/core",)),
    ("express", ("express",)),
]

TESTING_MARKERS: tuple[str, ...] = ("jest", "vitest", "@testing-library/react")

LOCKFILES: list[tuple[str, PackageManager]] = [
    ("package-lock.json", PackageManager.NPM),
    ("yarn.lock", PackageManager.YARN),
    ("pnpm-lock.yaml", PackageManager.PNPM),
]


def supported_frameworks() -> list[str]:
    """Return the keys of every known framework profile."""
    return list(FRAMEWORK_PROFILES)


def get_profile(key: str) -> FrameworkProfile:
    """Return the profile for *key*, falling back to React for unknown keys."""
    return FRAMEWORK_PROFILES.get(key, FRAMEWORK_PROFILES[DEFAULT_FRAMEWORK])


def match_framework(dependencies: dict[str, Any]) -> tuple[str, str | None]:
    """Return ``(profile_key, matched_dependency)`` for *dependencies*.

    ``matched_dependency`` is ``None`` when nothing matched and the React
    fallback was used.
    """
    for key, markers in FRAMEWORK_MARKERS:
        for marker in markers:
            if marker in dependencies:
                return key, marker
    return DEFAULT_FRAMEWORK, None


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------


class FrameworkDetector:
    """Inspects ``package.json`` and lockfiles under a project root."""

    def __init__(self, root_dir: str | Path | None = None, logger: Logger | None = None) -> None:
        self.root_dir = Path(root_dir) if root_dir is not None else Path.cwd()
        self.logger = logger or Logger()

    async def detect(self) -> ProjectStructure:
        """Classify the project.

        Only a missing or unreadable manifest is an error.  Everything else
        degrades to defaults.

        Raises:
            ConfigurationError: If ``package.json`` is absent or not valid JSON.
        """
        manifest_path = self.root_dir / "package.json"
        if not await path_exists(manifest_path):
            raise ConfigurationError(
                "No package.json found. Please run this command in a project directory.",
                {"path": str(manifest_path)},
            )

        try:
            manifest = await load_json(manifest_path)
        except (json.JSONDecodeError, FileSystemError) as exc:
            raise ConfigurationError(
                f"Failed to read package.json: {exc}", {"path": str(manifest_path)}
            ) from exc
        if not isinstance(manifest, dict):
            manifest = {}

        dependencies: dict[str, Any] = {
            **(manifest.get("dependencies") or {}),
            **(manifest.get("devDependencies") or {}),
        }

        key, marker = match_framework(dependencies)
        profile = get_profile(key)
        if marker is not None and isinstance(dependencies.get(marker), str):
            profile = profile.model_copy(update={"version": dependencies[marker]})

        has_typescript = "typescript" in dependencies or await path_exists(
            self.root_dir / "tsconfig.json"
        )
        has_testing = any(name in dependencies for name in TESTING_MARKERS)
        package_manager = await self._detect_package_manager()

        self.logger.info(f"Detected framework: {profile.name}")
        self.logger.info(f"TypeScript: {'Yes' if has_typescript else 'No'}")
        self.logger.info(f"Testing: {'Yes' if has_testing else 'No'}")
        self.logger.info(f"Package Manager: {package_manager.value}")

        return ProjectStructure(
            framework=profile,
            has_typescript=has_typescript,
            has_testing=has_testing,
            package_manager=package_manager,
            root_dir=self.root_dir,
        )

    async def _detect_package_manager(self) -> PackageManager:
        for lockfile, manager in LOCKFILES:
            if await path_exists(self.root_dir / lockfile):
                return manager
        return PackageManager.NPM

    async def validate_project_structure(self, structure: ProjectStructure) -> bool:
        """Return ``True`` if the profile's source directory exists."""
        src_path = structure.root_dir / structure.framework.paths.src
        if not await path_exists(src_path):
            self.logger.error(f"Source directory not found: {src_path}")
            return False
        return True
