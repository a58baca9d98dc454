"""Module planning and materialisation.

Takes a :class:`~modularisan.config.ProjectConfiguration` and creates,
extends, lists and deletes feature modules under the configured modules
directory.  The filesystem is the only index: listing re-derives every
:class:`ModuleStructure` from what is on disk.

Creation is plan-then-execute with no rollback.  If a step fails after the
module root exists, the partial tree stays on disk and a retry reports
"already exists"; recovery is ``delete_module`` then retry.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from ..config import ProjectConfiguration
from ..detector import FrameworkType
from ..errors import AlreadyExistsError, FileSystemError, NotFoundError, ValidationError
from ..logger import Logger
from ..naming import (
    to_camel_case,
    to_pascal_case,
    validate_component_name,
    validate_name,
)
from ..utils import (
    append_text,
    ensure_dir,
    is_dir,
    list_subdirectories,
    path_exists,
    read_text,
    remove_tree,
    save_json,
    write_text,
)
from .templates import TemplateRenderer, template_candidates
from .writer import ArtifactWriter, GeneratedArtifact


# ---------------------------------------------------------------------------
# Layout presets
# ---------------------------------------------------------------------------

DEFAULT_MODULE_COMPONENTS: list[str] = ["components", "services", "types", "hooks", "utils"]

MODULE_TEMPLATES: dict[str, list[str]] = {
    "basic": ["components", "services", "types"],
    "full": ["components", "services", "types", "hooks", "utils", "tests"],
    "api": ["services", "types", "controllers", "middleware"],
    "ui": ["components", "hooks", "types", "styles"],
}

ROUTING_DIRS: tuple[str, ...] = ("pages", "routes")
API_DIRS: tuple[str, ...] = ("api", "controllers")
TEST_DIRS: tuple[str, ...] = ("tests", "__tests__")
MANIFEST_FILE = "package.json"
INDEX_FILE = "index.ts"

_REACT_LIKE = ("React", "Next")
_VUE_LIKE = ("Vue", "Nuxt")


def components_for_template(template: str | None) -> list[str]:
    """Subdirectory list for a named preset, or the global default."""
    if template and template in MODULE_TEMPLATES:
        return list(MODULE_TEMPLATES[template])
    return list(DEFAULT_MODULE_COMPONENTS)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class ModuleStructure(BaseModel):
    """One generated or discovered module."""

    name: str
    path: Path
    components: list[str] = Field(default_factory=list, description="Top-level subdirectories")
    has_routing: bool = False
    has_api: bool = False
    has_tests: bool = False
    is_standalone: bool = False
    has_package_json: bool = False


class CreateModuleOptions(BaseModel):
    """Caller-facing options; ``None`` means "use the configured default"."""

    name: str
    description: str = ""
    path: Optional[str] = Field(default=None, description="Parent dir relative to the project root")
    components: Optional[list[str]] = None
    template: Optional[str] = Field(default=None, description="basic | full | api | ui")
    routing: Optional[bool] = None
    api: Optional[bool] = None
    tests: Optional[bool] = None
    standalone: Optional[bool] = None
    package_json: Optional[bool] = None


class ResolvedModuleOptions(BaseModel):
    """:class:`CreateModuleOptions` with every default applied."""

    name: str
    description: str
    parent_dir: Path
    components: list[str]
    routing: bool
    api: bool
    tests: bool
    standalone: bool
    package_json: bool


class CreateComponentOptions(BaseModel):
    name: str
    module_name: str
    type: Literal["functional", "class"] = "functional"
    props: bool = True
    client: bool = False
    story: bool = False
    test: bool = False


# ---------------------------------------------------------------------------
# Index helpers
# ---------------------------------------------------------------------------


def export_line(entity_name: str) -> str:
    return f"export * from './{entity_name}'\n"


async def append_export_line(index_path: str | Path, entity_name: str) -> bool:
    """Append the re-export for *entity_name* unless it is already present.

    Returns:
        ``True`` if the index file changed.
    """
    index_path = Path(index_path)
    line = export_line(entity_name)
    if await path_exists(index_path):
        content = await read_text(index_path)
        if line in content:
            return False
        if content and not content.endswith("\n"):
            line = "\n" + line
        await append_text(index_path, line)
    else:
        await write_text(index_path, line)
    return True


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ModuleService:
    """Creates and inspects modules for one configured project."""

    def __init__(
        self,
        config: ProjectConfiguration,
        renderer: TemplateRenderer | None = None,
        writer: ArtifactWriter | None = None,
        logger: Logger | None = None,
        root_dir: str | Path | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or Logger()
        self.renderer = renderer or TemplateRenderer()
        self.writer = writer or ArtifactWriter(self.logger)
        fallback = Path(root_dir) if root_dir is not None else None
        self.root_dir = config.root_path(fallback)

    # -- Derived settings ----------------------------------------------------

    @property
    def modules_dir(self) -> Path:
        return self.root_dir / self.config.paths.modules

    @property
    def index_extension(self) -> str:
        default = ".ts" if self.config.features.typescript else ".js"
        return self.config.extension("index", default)

    def _ext(self, kind: str) -> str:
        defaults = {
            "component": ".tsx",
            "page": ".tsx",
            "api": ".ts",
            "service": ".ts",
            "test": ".test.ts",
            "hook": ".ts",
            "type": ".ts",
        }
        return self.config.extension(kind, defaults.get(kind, ".ts"))

    def _base_context(self, name: str) -> dict[str, Any]:
        return {
            "name": name,
            "framework": self.config.framework.name,
            "typescript": self.config.features.typescript,
        }

    def resolve_options(self, options: CreateModuleOptions) -> ResolvedModuleOptions:
        """Apply configured defaults once, at the API boundary."""
        features = self.config.features
        parent = self.root_dir / options.path if options.path else self.modules_dir
        components = (
            list(options.components)
            if options.components is not None
            else components_for_template(options.template)
        )

        def pick(value: bool | None, default: bool) -> bool:
            return default if value is None else value

        return ResolvedModuleOptions(
            name=options.name,
            description=options.description,
            parent_dir=parent,
            components=_dedupe(components),
            # Routing and API directories are opt-in.
            routing=pick(options.routing, False),
            api=pick(options.api, False),
            tests=pick(options.tests, features.testing),
            standalone=pick(options.standalone, features.standalone_modules),
            package_json=pick(options.package_json, features.package_per_module),
        )

    # -- Module lifecycle ----------------------------------------------------

    async def create_module(self, options: CreateModuleOptions) -> ModuleStructure:
        """Plan and materialise a new module.

        Raises:
            ValidationError: If the name is not kebab-case.
            AlreadyExistsError: If the target directory already exists.
            FileSystemError: If a directory or file cannot be written.
            TemplateRenderingError: If an index/README/test template fails.
        """
        if not validate_name(options.name):
            raise ValidationError(
                "Invalid module name. Use kebab-case (e.g., user-management)",
                {"name": options.name, "expected": "kebab-case"},
            )
        resolved = self.resolve_options(options)
        module_path = resolved.parent_dir / resolved.name

        if await path_exists(module_path):
            raise AlreadyExistsError(
                f"Module '{resolved.name}' already exists at {module_path}",
                {"name": resolved.name, "path": str(module_path)},
            )

        self.logger.info(f"Creating module: {resolved.name}")
        await ensure_dir(module_path)

        created: list[str] = []
        for component in resolved.components:
            await ensure_dir(module_path / component)
            created.append(component)
            self.logger.debug(f"Created {component}/")

        has_routing = resolved.routing and self.config.framework.type != FrameworkType.BACKEND
        if has_routing:
            for directory in ROUTING_DIRS:
                await ensure_dir(module_path / directory)
                created.append(directory)

        has_api = resolved.api and self.config.framework.features.api
        if has_api:
            for directory in API_DIRS:
                await ensure_dir(module_path / directory)
                created.append(directory)

        if resolved.tests:
            await ensure_dir(module_path / "tests")
            created.append("tests")

        components = _dedupe(created)
        if resolved.tests:
            await self._write_module_test(resolved.name, module_path / "tests")

        await self._write_module_files(resolved.name, resolved.description, module_path, components)

        has_manifest = resolved.package_json or resolved.standalone
        if has_manifest:
            await self._write_module_manifest(resolved.name, resolved.description, module_path)

        structure = ModuleStructure(
            name=resolved.name,
            path=module_path,
            components=components,
            has_routing=has_routing,
            has_api=bool(has_api),
            has_tests=resolved.tests or any(d in components for d in TEST_DIRS),
            is_standalone=has_manifest,
            has_package_json=has_manifest,
        )
        self.logger.success(f"Module '{resolved.name}' created successfully at {module_path}")
        return structure

    async def _write_module_test(self, name: str, tests_dir: Path) -> None:
        context = {**self._base_context(name), "symbol": to_pascal_case(name), "kind": "module"}
        content = self.renderer.render_first(
            template_candidates(self.config.templates.test, self._ext("test")), context
        )
        await write_text(tests_dir / f"{name}{self._ext('test')}", content)

    async def _write_module_files(
        self, name: str, description: str, module_path: Path, components: list[str]
    ) -> None:
        exports = [c for c in components if c not in TEST_DIRS]
        context = {
            **self._base_context(name),
            "description": description,
            "components": components,
            "exports": exports,
            "index_extension": self.index_extension,
        }

        index_content = self.renderer.render_first(
            template_candidates(f"{self.config.templates.module}/index", self.index_extension),
            context,
        )
        await write_text(module_path / f"index{self.index_extension}", index_content)

        readme = self.renderer.render("common/module-readme.md", context)
        await write_text(module_path / "README.md", readme)

        for component in components:
            await write_text(
                module_path / component / INDEX_FILE,
                f"// Export all {component} from this directory\n",
            )

    def build_module_manifest(self, name: str, description: str) -> dict[str, Any]:
        """Minimal ``package.json`` for a standalone module."""
        framework_name = self.config.framework.name
        typescript = self.config.features.typescript
        testing = self.config.features.testing

        peer: dict[str, str] = {}
        if any(marker in framework_name for marker in _REACT_LIKE):
            peer.update({"react": "^18.0.0", "react-dom": "^18.0.0"})
        if any(marker in framework_name for marker in _VUE_LIKE):
            peer["vue"] = "^3.0.0"
        if typescript:
            peer["typescript"] = "^5.0.0"

        dev: dict[str, str] = {}
        if testing:
            dev["jest"] = "^29.0.0"
        if typescript:
            dev["@types/node"] = "^20.0.0"

        scripts = {"test": "jest", "test:watch": "jest --watch"}
        if typescript:
            scripts["type-check"] = "tsc --noEmit"

        return {
            "name": f"@{self.config.project.name}/{name}",
            "version": "1.0.0",
            "description": description or f"{name} module",
            "main": f"index{self.index_extension}",
            "private": True,
            "scripts": scripts,
            "peerDependencies": peer,
            "devDependencies": dev,
        }

    async def _write_module_manifest(self, name: str, description: str, module_path: Path) -> None:
        await save_json(self.build_module_manifest(name, description), module_path / MANIFEST_FILE)

    async def find_module_path(self, module_name: str) -> Path | None:
        """Return the module directory, or ``None`` when it does not exist."""
        module_path = self.modules_dir / module_name
        if await is_dir(module_path):
            return module_path
        return None

    async def _require_module(self, module_name: str) -> Path:
        module_path = await self.find_module_path(module_name)
        if module_path is None:
            raise NotFoundError(f"Module '{module_name}' not found", {"module": module_name})
        return module_path

    async def list_modules(self) -> list[ModuleStructure]:
        """Re-derive every module under the modules directory from disk.

        Entries that cannot be inspected are logged and skipped.
        """
        if not await is_dir(self.modules_dir):
            return []

        modules: list[ModuleStructure] = []
        for entry in await list_subdirectories(self.modules_dir):
            structure = await self.analyze_module(entry.name, entry)
            if structure is not None:
                modules.append(structure)
        return modules

    async def analyze_module(self, name: str, module_path: Path) -> ModuleStructure | None:
        """Build a :class:`ModuleStructure` from what exists in *module_path*."""
        try:
            subdirs = await list_subdirectories(module_path)
        except FileSystemError as exc:
            self.logger.error(f"Failed to analyze module {name}: {exc}")
            return None

        components = [entry.name for entry in subdirs]
        has_manifest = await path_exists(module_path / MANIFEST_FILE)
        return ModuleStructure(
            name=name,
            path=module_path,
            components=components,
            has_routing=any(d in components for d in ROUTING_DIRS),
            has_api=any(d in components for d in API_DIRS),
            has_tests=any(d in components for d in TEST_DIRS),
            is_standalone=has_manifest,
            has_package_json=has_manifest,
        )

    async def delete_module(self, name: str, force: bool = False) -> None:
        """Remove the module directory tree.  There is no undo."""
        module_path = await self._require_module(name)
        if not force:
            self.logger.warning(
                f"This will permanently delete the module '{name}' and all its contents."
            )
        await remove_tree(module_path)
        self.logger.success(f"Module '{name}' deleted successfully")

    # -- Entities inside a module --------------------------------------------

    def _check_entity_name(self, kind: str, name: str, example: str) -> None:
        if not validate_name(name):
            raise ValidationError(
                f"Invalid {kind} name. Use kebab-case (e.g., {example})",
                {"name": name, "expected": "kebab-case"},
            )

    def _render_test(self, name: str, symbol: str, kind: str) -> str:
        context = {**self._base_context(name), "symbol": symbol, "kind": kind}
        return self.renderer.render_first(
            template_candidates(self.config.templates.test, self._ext("test")), context
        )

    async def create_component(self, options: CreateComponentOptions) -> list[Path]:
        """Render a component (plus optional story/test) into ``components/``."""
        convention = "PascalCase" if self.config.conventions.naming == "PascalCase" else "kebab-case"
        if not validate_component_name(options.name, convention):
            example = "LoginForm" if convention == "PascalCase" else "login-form"
            raise ValidationError(
                f"Invalid component name. Use {convention} (e.g., {example})",
                {"name": options.name, "expected": convention},
            )
        module_path = await self._require_module(options.module_name)
        component_dir = await ensure_dir(module_path / "components")

        component_name = (
            options.name if convention == "PascalCase" else to_pascal_case(options.name)
        )
        extension = self._ext("component")
        context = {
            **self._base_context(options.name),
            "component_name": component_name,
            "with_props": options.props,
            "is_client_component": options.client,
        }
        code = self.renderer.render_first(
            template_candidates(f"{self.config.templates.component}/{options.type}", extension),
            context,
        )
        tests = self._render_test(options.name, component_name, "component") if options.test else None

        written = await self.writer.write(
            GeneratedArtifact(code=code, tests=tests), component_dir, f"{options.name}{extension}"
        )

        if options.story:
            story = self.renderer.render(
                "common/story",
                {**context, "module_name": options.module_name},
            )
            written += await self.writer.write(
                GeneratedArtifact(code=story), component_dir, f"{options.name}.stories.tsx"
            )

        await append_export_line(component_dir / INDEX_FILE, options.name)
        self.logger.success(f"Component '{options.name}' created in module '{options.module_name}'")
        return written

    async def create_service(
        self, module_name: str, service_name: str, is_server: bool = False
    ) -> list[Path]:
        """Render ``services/<name>`` with a companion test when testing is enabled."""
        self._check_entity_name("service", service_name, "user-service")
        module_path = await self._require_module(module_name)
        services_dir = await ensure_dir(module_path / "services")

        class_name = to_pascal_case(service_name)
        extension = self._ext("service")
        context = {**self._base_context(service_name), "class_name": class_name, "is_server": is_server}
        code = self.renderer.render_first(
            template_candidates(self.config.templates.service, extension), context
        )
        tests = (
            self._render_test(service_name, class_name, "service")
            if self.config.features.testing
            else None
        )

        written = await self.writer.write(
            GeneratedArtifact(code=code, tests=tests), services_dir, f"{service_name}{extension}"
        )
        await append_export_line(services_dir / INDEX_FILE, service_name)
        self.logger.success(f"Service '{service_name}' created in module '{module_name}'")
        return written

    async def create_type(
        self, name: str, module_name: str, type_options: list[str] | None = None
    ) -> list[Path]:
        self._check_entity_name("type", name, "user-types")
        module_path = await self._require_module(module_name)
        types_dir = await ensure_dir(module_path / "types")

        extension = self._ext("type")
        context = {
            **self._base_context(name),
            "class_name": to_pascal_case(name),
            "type_options": list(type_options or []),
        }
        code = self.renderer.render_first(
            template_candidates(self.config.templates.type, extension), context
        )
        written = await self.writer.write(GeneratedArtifact(code=code), types_dir, f"{name}{extension}")
        await append_export_line(types_dir / INDEX_FILE, name)
        self.logger.success(f"Type '{name}' created in module '{module_name}'")
        return written

    async def create_test(self, name: str, module_name: str, test_type: str = "unit") -> list[Path]:
        """Write a standalone test file into ``tests/``.  Tests are not re-exported."""
        self._check_entity_name("test", name, "user-flow")
        module_path = await self._require_module(module_name)
        tests_dir = await ensure_dir(module_path / "tests")

        content = self._render_test(name, to_pascal_case(name), test_type)
        written = await self.writer.write(
            GeneratedArtifact(code=content), tests_dir, f"{name}{self._ext('test')}"
        )
        self.logger.success(f"Test '{name}' created in module '{module_name}'")
        return written

    async def create_api(
        self,
        name: str,
        module_name: str,
        methods: list[str] | None = None,
        with_validation: bool = False,
    ) -> list[Path]:
        self._check_entity_name("API", name, "user-api")
        module_path = await self._require_module(module_name)
        api_dir = await ensure_dir(module_path / "api")

        class_name = to_pascal_case(name)
        extension = self._ext("api")
        context = {
            **self._base_context(name),
            "class_name": class_name,
            "methods": [m.upper() for m in (methods or ["GET"])],
            "with_validation": with_validation,
        }
        code = self.renderer.render_first(
            template_candidates(f"{self.config.templates.api}/route", extension), context
        )
        tests = self._render_test(name, class_name, "api") if self.config.features.testing else None

        written = await self.writer.write(
            GeneratedArtifact(code=code, tests=tests), api_dir, f"{name}{extension}"
        )
        await append_export_line(api_dir / INDEX_FILE, name)
        self.logger.success(f"API '{name}' created in module '{module_name}'")
        return written

    async def create_hook(self, name: str, module_name: str, with_test: bool = False) -> list[Path]:
        self._check_entity_name("hook", name, "use-auth")
        module_path = await self._require_module(module_name)
        hooks_dir = await ensure_dir(module_path / "hooks")

        hook_name = to_camel_case(name if name.startswith("use-") else f"use-{name}")
        extension = self._ext("hook")
        context = {**self._base_context(name), "hook_name": hook_name}
        code = self.renderer.render_first(
            template_candidates(self.config.templates.hook, extension), context
        )
        tests = self._render_test(name, hook_name, "hook") if with_test else None

        written = await self.writer.write(
            GeneratedArtifact(code=code, tests=tests), hooks_dir, f"{name}{extension}"
        )
        await append_export_line(hooks_dir / INDEX_FILE, name)
        self.logger.success(f"Hook '{name}' created in module '{module_name}'")
        return written

    async def create_page(
        self, name: str, module_name: str, dynamic_param: str | None = None
    ) -> list[Path]:
        self._check_entity_name("page", name, "user-profile")
        module_path = await self._require_module(module_name)
        pages_dir = await ensure_dir(module_path / "pages")

        extension = self._ext("page")
        context = {
            **self._base_context(name),
            "component_name": to_pascal_case(name),
            "dynamic_param": dynamic_param or "",
        }
        code = self.renderer.render_first(
            template_candidates(self.config.templates.page, extension), context
        )
        written = await self.writer.write(GeneratedArtifact(code=code), pages_dir, f"{name}{extension}")
        await append_export_line(pages_dir / INDEX_FILE, name)
        self.logger.success(f"Page '{name}' created in module '{module_name}'")
        return written


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _dedupe(items: list[str]) -> list[str]:
    """Drop repeats while keeping first-seen order."""
    seen: list[str] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen
