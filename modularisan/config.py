"""Modularisan project configuration.

Typed configuration records (Pydantic v2) plus :class:`ConfigStore`, which
owns the single persisted ``modularisan.config.yml`` file at the project
root: first-run initialisation from detected framework facts, cached
loading, legacy-file migration, deep-merge updates, dotted-path get/set and
validation.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .detector import FrameworkFeatures, FrameworkType, PackageManager, ProjectStructure
from .errors import ConfigurationError, FileSystemError, ValidationError
from .logger import Logger
from .utils import load_json, path_exists, read_text, remove_file, write_text

CONFIG_FILE_NAME = "modularisan.config.yml"
LEGACY_CONFIG_NAMES: tuple[str, ...] = (
    "nextisan.config.yml",
    "nextisan.config.json",
    ".nextisan.json",
)
CONFIG_VERSION = "2.0.0"
TEMPLATE_KINDS: tuple[str, ...] = (
    "component",
    "service",
    "test",
    "module",
    "type",
    "api",
    "hook",
    "page",
)
# Must be non-empty in every loaded or persisted configuration.
REQUIRED_FIELDS: tuple[str, ...] = ("framework.name", "project.name", "paths.modules")

NamingConvention = Literal["kebab-case", "camelCase", "PascalCase", "snake_case"]
AIProviderName = Literal["openai", "anthropic", "local"]


# ---------------------------------------------------------------------------
# Configuration sections
# ---------------------------------------------------------------------------


class FrameworkSection(BaseModel):
    """The detected framework, as persisted."""

    name: str = Field(default="")
    type: FrameworkType = Field(default=FrameworkType.FRONTEND)
    version: Optional[str] = Field(default=None)
    features: FrameworkFeatures = Field(default_factory=FrameworkFeatures)


class ProjectSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default="")
    description: str = Field(default="")
    root_dir: str = Field(default="", alias="rootDir")
    package_manager: PackageManager = Field(default=PackageManager.NPM, alias="packageManager")


class PathsSection(BaseModel):
    """Directories relative to ``project.rootDir``."""

    modules: str = Field(default="")
    shared: str = Field(default="")
    tests: str = Field(default="")
    stubs: Optional[str] = Field(default=None)


class FeaturesSection(BaseModel):
    typescript: bool = Field(default=True)
    testing: bool = Field(default=True)
    standalone_modules: bool = Field(default=False)
    package_per_module: bool = Field(default=False)


class TemplatesSection(BaseModel):
    """Template-set identifier per artifact kind (``'<framework>/<kind>'``)."""

    component: str = Field(default="default/component")
    service: str = Field(default="default/service")
    test: str = Field(default="default/test")
    module: str = Field(default="default/module")
    type: str = Field(default="default/type")
    api: str = Field(default="default/api")
    hook: str = Field(default="default/hook")
    page: str = Field(default="default/page")


class ConventionsSection(BaseModel):
    naming: NamingConvention = Field(default="kebab-case")
    file_extensions: dict[str, str] = Field(default_factory=dict)


class AIConfig(BaseModel):
    """Optional AI-assisted generation settings."""

    enabled: bool = Field(default=False)
    provider: Optional[AIProviderName] = Field(default=None)
    model: Optional[str] = Field(default=None)
    api_key: Optional[str] = Field(default=None, description="Key, or unset to read the provider's env var")
    base_url: Optional[str] = Field(default=None, description="Override the provider endpoint")


class ProjectConfiguration(BaseModel):
    """The single persisted configuration record."""

    version: str = Field(default=CONFIG_VERSION)
    framework: FrameworkSection = Field(default_factory=FrameworkSection)
    project: ProjectSection = Field(default_factory=ProjectSection)
    paths: PathsSection = Field(default_factory=PathsSection)
    features: FeaturesSection = Field(default_factory=FeaturesSection)
    templates: TemplatesSection = Field(default_factory=TemplatesSection)
    conventions: ConventionsSection = Field(default_factory=ConventionsSection)
    ai: Optional[AIConfig] = Field(default=None)

    def to_tree(self) -> dict[str, Any]:
        """Plain tree-of-maps form, keyed exactly as the YAML file is."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_tree(cls, tree: dict[str, Any]) -> "ProjectConfiguration":
        return cls.model_validate(tree)

    def extension(self, kind: str, default: str = ".ts") -> str:
        """File suffix configured for *kind*, or *default*."""
        return self.conventions.file_extensions.get(kind) or default

    def root_path(self, fallback: Path | None = None) -> Path:
        """Absolute project root, resolving a relative ``rootDir`` against *fallback*."""
        base = Path(self.project.root_dir) if self.project.root_dir else None
        if base is None:
            return fallback or Path.cwd()
        if not base.is_absolute() and fallback is not None:
            return fallback / base
        return base

    def modules_path(self, fallback: Path | None = None) -> Path:
        return self.root_path(fallback) / self.paths.modules


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------


def deep_merge(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Merge *source* onto a copy of *target*.

    Mapping values merge recursively.  Lists and scalars from *source*
    replace the target value wholesale; lists are never concatenated.
    """
    result = dict(target)
    for key, value in source.items():
        if isinstance(value, dict):
            base = result.get(key)
            result[key] = deep_merge(base if isinstance(base, dict) else {}, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def get_by_path(tree: dict[str, Any], path: str, default: Any = None) -> Any:
    """Read ``"a.b.c"`` from a nested mapping, returning *default* if absent."""
    node: Any = tree
    for segment in path.split("."):
        if not isinstance(node, dict) or segment not in node:
            return default
        node = node[segment]
    return node


def set_by_path(tree: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Write *value* at ``"a.b.c"``, creating intermediate mappings.

    Mutates and returns *tree*.
    """
    segments = path.split(".")
    if not path or any(not segment for segment in segments):
        raise ValidationError(f"Invalid configuration path: {path!r}", {"path": path})

    node = tree
    for segment in segments[:-1]:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = {}
            node[segment] = child
        node = child
    node[segments[-1]] = value
    return tree


def template_id(framework_name: str, kind: str) -> str:
    """``('Next.js', 'component')`` -> ``'next/component'``."""
    framework_key = framework_name.lower().split(".")[0]
    return f"{framework_key}/{kind}"


def default_config_template() -> dict[str, Any]:
    """The fixed defaults every new configuration starts from."""
    return {
        "version": CONFIG_VERSION,
        "features": {
            "typescript": True,
            "testing": True,
            "standalone_modules": False,
            "package_per_module": False,
        },
        "conventions": {"naming": "kebab-case", "file_extensions": {}},
        "ai": {"enabled": False},
    }


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ConfigStore:
    """Reads, writes and caches ``modularisan.config.yml`` for one project root.

    The configuration is loaded at most once per instance; later calls to
    :meth:`load_config` return the cached object until :meth:`save_config`
    or :meth:`update_config` replaces it.
    """

    def __init__(self, root_dir: str | Path | None = None, logger: Logger | None = None) -> None:
        self.root_dir = Path(root_dir) if root_dir is not None else Path.cwd()
        self.config_path = self.root_dir / CONFIG_FILE_NAME
        self.logger = logger or Logger()
        self._config: ProjectConfiguration | None = None

    # -- Paths ---------------------------------------------------------------

    def get_config_path(self) -> Path:
        return self.config_path

    async def has_config(self) -> bool:
        return await path_exists(self.config_path)

    # -- Initialisation --------------------------------------------------------

    async def initialize_config(
        self,
        structure: ProjectStructure,
        overrides: dict[str, Any] | None = None,
    ) -> ProjectConfiguration:
        """Build, persist and cache a configuration for a freshly detected project.

        Args:
            structure: Output of :meth:`FrameworkDetector.detect`.
            overrides: File-shaped partial configuration; deep-merged last so
                explicit values win over detected ones.

        Returns:
            The persisted configuration.
        """
        framework = structure.framework
        project_name, project_description = await self._read_manifest_identity()

        tree = deep_merge(
            default_config_template(),
            {
                "framework": {
                    "name": framework.name,
                    "type": framework.type.value,
                    "version": framework.version,
                    "features": framework.features.model_dump(),
                },
                "project": {
                    "name": project_name,
                    "description": project_description,
                    "rootDir": str(self.root_dir),
                    "packageManager": structure.package_manager.value,
                },
                "paths": {
                    "modules": framework.paths.modules,
                    "shared": framework.paths.shared,
                    "tests": framework.paths.tests,
                },
                "features": {
                    "typescript": structure.has_typescript,
                    "testing": structure.has_testing,
                },
                "templates": {kind: template_id(framework.name, kind) for kind in TEMPLATE_KINDS},
                "conventions": {"file_extensions": framework.extensions.model_dump()},
            },
        )
        if overrides:
            tree = deep_merge(tree, overrides)

        config = self._validate_tree(tree, source="initialisation")
        await self.save_config(config)
        self.logger.success(f"Configuration initialized for {framework.name} project")
        return config

    async def _read_manifest_identity(self) -> tuple[str, str]:
        manifest_path = self.root_dir / "package.json"
        name, description = "my-project", ""
        if not await path_exists(manifest_path):
            return name, description
        try:
            manifest = await load_json(manifest_path)
        except (json.JSONDecodeError, FileSystemError) as exc:
            self.logger.warning(f"Could not read package.json, using defaults: {exc}")
            return name, description
        if isinstance(manifest, dict):
            name = manifest.get("name") or name
            description = manifest.get("description") or description
        return name, description

    # -- Load / save -----------------------------------------------------------

    async def load_config(self) -> ProjectConfiguration:
        """Return the cached configuration, loading or migrating it on first use.

        Raises:
            ConfigurationError: If the current file is invalid, or no
                configuration (current or legacy) exists.
        """
        if self._config is not None:
            return self._config

        if await path_exists(self.config_path):
            content = await read_text(self.config_path)
            try:
                tree = yaml.safe_load(content)
            except yaml.YAMLError as exc:
                self.logger.error(f"Failed to parse config file: {exc}")
                raise ConfigurationError(
                    "Invalid configuration file",
                    {"path": str(self.config_path), "reason": str(exc)},
                ) from exc
            self._config = self._validate_tree(tree, source=str(self.config_path))
            return self._config

        for legacy_name in LEGACY_CONFIG_NAMES:
            legacy_path = self.root_dir / legacy_name
            if not await path_exists(legacy_path):
                continue
            self.logger.info(
                f"Found legacy config file: {legacy_name}. Migrating to {CONFIG_FILE_NAME}"
            )
            try:
                content = await read_text(legacy_path)
                if legacy_name.endswith(".json"):
                    tree = json.loads(content)
                else:
                    tree = yaml.safe_load(content)
                config = self._validate_tree(tree, source=str(legacy_path))
            except (json.JSONDecodeError, yaml.YAMLError, ConfigurationError) as exc:
                self.logger.error(f"Failed to migrate legacy config {legacy_name}: {exc}")
                continue

            await self.save_config(config)
            await remove_file(legacy_path)
            self.logger.success(f"Migrated configuration from {legacy_name} to {CONFIG_FILE_NAME}")
            return config

        raise ConfigurationError(
            "No configuration found. Run 'misan init' to initialize the project.",
            {"path": str(self.config_path)},
        )

    async def save_config(self, config: ProjectConfiguration) -> None:
        """Persist *config* with sorted keys and make it the cached value."""
        content = yaml.safe_dump(
            config.to_tree(),
            sort_keys=True,
            default_flow_style=False,
            indent=2,
            allow_unicode=True,
            width=100,
        )
        try:
            await write_text(self.config_path, content)
        except FileSystemError as exc:
            self.logger.error(f"Failed to save configuration: {exc}")
            raise
        self._config = config
        self.logger.debug(f"Configuration saved to {CONFIG_FILE_NAME}")

    async def update_config(self, updates: dict[str, Any]) -> ProjectConfiguration:
        """Deep-merge *updates* onto the loaded configuration and persist it."""
        current = await self.load_config()
        merged = deep_merge(current.to_tree(), updates)
        config = self._validate_tree(merged, source="update")
        await self.save_config(config)
        return config

    # -- Dotted-path access ----------------------------------------------------

    async def get(self, path: str, default: Any = None) -> Any:
        config = await self.load_config()
        return get_by_path(config.to_tree(), path, default)

    async def set(self, path: str, value: Any) -> ProjectConfiguration:
        """Write *value* at dotted *path* and persist immediately.

        Raises:
            ValidationError: If the result no longer fits the configuration
                schema (e.g. ``features.testing = "maybe"``).
        """
        config = await self.load_config()
        tree = set_by_path(config.to_tree(), path, value)
        if path in REQUIRED_FIELDS and not value:
            raise ValidationError(f"{path} cannot be empty", {"path": path})
        try:
            updated = ProjectConfiguration.from_tree(tree)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid value for {path}: {value!r}",
                {"path": path, "errors": exc.errors(include_url=False)},
            ) from exc
        await self.save_config(updated)
        return updated

    # -- Validation ------------------------------------------------------------

    async def validate_config(self, config: ProjectConfiguration | None = None) -> bool:
        """Check required fields and the modules directory.

        Returns ``False`` (never raises) on the first failed check, logging
        what was wrong.
        """
        target = config or await self.load_config()

        if not target.framework.name:
            self.logger.error("Invalid config: Framework name is required")
            return False
        if not target.project.name:
            self.logger.error("Invalid config: Project name is required")
            return False
        if not target.paths.modules:
            self.logger.error("Invalid config: Modules path is required")
            return False

        modules_path = target.modules_path(self.root_dir)
        if not await path_exists(modules_path):
            self.logger.error(f"Modules directory does not exist: {modules_path}")
            return False
        return True

    # -- Internal helpers --------------------------------------------------------

    @staticmethod
    def _validate_tree(tree: Any, source: str) -> ProjectConfiguration:
        if not isinstance(tree, dict):
            raise ConfigurationError(
                "Invalid configuration file",
                {"source": source, "reason": "top-level value is not a mapping"},
            )
        try:
            config = ProjectConfiguration.from_tree(tree)
        except PydanticValidationError as exc:
            raise ConfigurationError(
                "Invalid configuration file",
                {"source": source, "errors": exc.errors(include_url=False)},
            ) from exc

        missing = [path for path in REQUIRED_FIELDS if not get_by_path(config.to_tree(), path)]
        if missing:
            raise ConfigurationError(
                "Invalid configuration file",
                {"source": source, "missing": missing},
            )
        return config
