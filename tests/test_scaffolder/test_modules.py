"""Tests for the module planner and materializer (ModuleService).

Covers:
- Option resolution against configured defaults
- create_module layout, manifest and failure semantics
- Entity creation (component, service, type, test, api, hook, page)
- Idempotent index exports
- Listing and analysing modules from disk
- Deletion
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from modularisan.errors import (
    AlreadyExistsError,
    NotFoundError,
    TemplateRenderingError,
    ValidationError,
)
from modularisan.scaffolder.modules import (
    DEFAULT_MODULE_COMPONENTS,
    MODULE_TEMPLATES,
    CreateComponentOptions,
    CreateModuleOptions,
    ModuleService,
    append_export_line,
    components_for_template,
    export_line,
)
from modularisan.scaffolder.templates import TemplateRenderer
from modularisan.scaffolder.writer import ArtifactWriter

pytestmark = pytest.mark.unit


@pytest.fixture
def modules_dir(config, next_project: Path) -> Path:
    return next_project / "src" / "modules"


@pytest.fixture
def react_service(config_factory, next_project: Path, logger) -> ModuleService:
    """A frontend-only React setup with no routing or API features."""
    config = config_factory(
        next_project,
        framework={
            "name": "React",
            "type": "frontend",
            "features": {"routing": False, "api": False, "ssr": False},
        },
        templates={"component": "react/component", "test": "react/test", "module": "react/module"},
    )
    return ModuleService(config, logger=logger)


# ---------------------------------------------------------------------------
# Presets and option resolution
# ---------------------------------------------------------------------------


class TestPresets:
    def test_module_templates(self):
        assert MODULE_TEMPLATES["basic"] == ["components", "services", "types"]
        assert MODULE_TEMPLATES["full"] == MODULE_TEMPLATES["basic"] + ["hooks", "utils", "tests"]
        assert MODULE_TEMPLATES["api"] == ["services", "types", "controllers", "middleware"]
        assert MODULE_TEMPLATES["ui"] == ["components", "hooks", "types", "styles"]

    def test_unknown_template_falls_back(self):
        assert components_for_template("enterprise") == DEFAULT_MODULE_COMPONENTS
        assert components_for_template(None) == DEFAULT_MODULE_COMPONENTS

    def test_presets_are_copies(self):
        components_for_template("basic").append("x")
        assert "x" not in MODULE_TEMPLATES["basic"]


class TestResolveOptions:
    def test_defaults_from_config(self, module_service: ModuleService, modules_dir: Path):
        resolved = module_service.resolve_options(CreateModuleOptions(name="user-auth"))
        assert resolved.parent_dir == modules_dir
        assert resolved.components == DEFAULT_MODULE_COMPONENTS
        assert resolved.routing is False
        assert resolved.api is False
        assert resolved.tests is True
        assert resolved.standalone is False
        assert resolved.package_json is False

    def test_explicit_values_win(self, module_service: ModuleService, next_project: Path):
        resolved = module_service.resolve_options(
            CreateModuleOptions(
                name="x1",
                path="packages",
                components=["a", "b", "a"],
                template="full",
                routing=False,
                tests=False,
                package_json=True,
            )
        )
        assert resolved.parent_dir == next_project / "packages"
        assert resolved.components == ["a", "b"]
        assert resolved.routing is False
        assert resolved.tests is False
        assert resolved.package_json is True


# ---------------------------------------------------------------------------
# create_module
# ---------------------------------------------------------------------------


class TestCreateModule:
    async def test_basic_scenario(self, config_factory, next_project: Path, logger):
        (next_project / "modules").mkdir()
        config = config_factory(next_project, paths={"modules": "modules"})
        service = ModuleService(config, logger=logger)

        await service.create_module(CreateModuleOptions(name="user-auth", template="basic"))

        root = next_project / "modules" / "user-auth"
        for sub in ("components", "services", "types"):
            assert (root / sub).is_dir()
        assert (root / "index.ts").is_file()
        assert (root / "README.md").is_file()

    async def test_default_layout_has_no_routing_or_api(
        self, module_service: ModuleService, modules_dir: Path
    ):
        structure = await module_service.create_module(
            CreateModuleOptions(name="user-auth", template="basic")
        )

        assert structure.components == ["components", "services", "types", "tests"]
        assert structure.has_routing is False
        assert structure.has_api is False
        for sub in ("pages", "routes", "api", "controllers"):
            assert not (modules_dir / "user-auth" / sub).exists()

    async def test_full_next_layout(self, module_service: ModuleService, modules_dir: Path):
        structure = await module_service.create_module(
            CreateModuleOptions(name="user-auth", description="Authentication", routing=True, api=True)
        )

        root = modules_dir / "user-auth"
        assert structure.path == root
        assert structure.components == DEFAULT_MODULE_COMPONENTS + [
            "pages", "routes", "api", "controllers", "tests",
        ]
        assert structure.has_routing is True
        assert structure.has_api is True
        assert structure.has_tests is True
        assert structure.is_standalone is False
        assert (root / "tests" / "user-auth.test.ts").is_file()
        assert not (root / "package.json").exists()

    async def test_index_and_stubs(self, module_service: ModuleService, modules_dir: Path):
        await module_service.create_module(CreateModuleOptions(name="billing", template="basic", tests=True))

        root = modules_dir / "billing"
        index = (root / "index.ts").read_text()
        assert "export * from './components'" in index
        assert "export * from './tests'" not in index
        assert (root / "services" / "index.ts").read_text() == (
            "// Export all services from this directory\n"
        )
        assert (root / "tests" / "index.ts").read_text() == (
            "// Export all tests from this directory\n"
        )
        assert "# Billing" in (root / "README.md").read_text()

    async def test_backend_skips_routing_dirs(self, config_factory, next_project: Path, logger):
        config = config_factory(
            next_project,
            framework={"name": "Express.js", "type": "backend", "features": {"routing": True, "api": True}},
        )
        service = ModuleService(config, logger=logger)
        structure = await service.create_module(
            CreateModuleOptions(name="orders", template="api", routing=True, api=True)
        )

        assert "pages" not in structure.components
        assert "routes" not in structure.components
        assert structure.has_routing is False
        assert structure.has_api is True
        assert structure.components.count("controllers") == 1

    async def test_api_requires_framework_support(self, react_service: ModuleService):
        structure = await react_service.create_module(
            CreateModuleOptions(name="cart", template="ui", api=True, routing=True)
        )
        assert "api" not in structure.components
        assert structure.has_api is False
        assert "pages" in structure.components

    async def test_custom_components(self, module_service: ModuleService, modules_dir: Path):
        structure = await module_service.create_module(
            CreateModuleOptions(name="lib", components=["helpers"], routing=False, api=False, tests=False)
        )
        assert structure.components == ["helpers"]
        assert (modules_dir / "lib" / "helpers" / "index.ts").exists()

    async def test_standalone_writes_manifest(self, module_service: ModuleService, modules_dir: Path):
        structure = await module_service.create_module(
            CreateModuleOptions(name="payments", template="basic", standalone=True)
        )
        manifest = json.loads((modules_dir / "payments" / "package.json").read_text())

        assert structure.is_standalone is True
        assert structure.has_package_json is True
        assert manifest["name"] == "@my-app/payments"
        assert manifest["version"] == "1.0.0"
        assert manifest["private"] is True
        assert manifest["main"] == "index.ts"
        assert manifest["peerDependencies"]["react"] == "^18.0.0"
        assert manifest["peerDependencies"]["typescript"] == "^5.0.0"
        assert "jest" in manifest["devDependencies"]

    async def test_vue_manifest(self, config_factory, next_project: Path, logger):
        config = config_factory(
            next_project,
            framework={"name": "Vue.js", "type": "frontend"},
            features={"typescript": False, "testing": False},
        )
        manifest = ModuleService(config, logger=logger).build_module_manifest("ui-kit", "")
        assert manifest["peerDependencies"] == {"vue": "^3.0.0"}
        assert manifest["devDependencies"] == {}
        assert manifest["description"] == "ui-kit module"

    async def test_invalid_name(self, module_service: ModuleService, modules_dir: Path):
        with pytest.raises(ValidationError) as exc_info:
            await module_service.create_module(CreateModuleOptions(name="UserAuth"))
        assert "kebab-case" in exc_info.value.message
        assert list(modules_dir.iterdir()) == []

    async def test_exclusivity(self, module_service: ModuleService, modules_dir: Path):
        await module_service.create_module(CreateModuleOptions(name="user-auth", template="basic"))
        marker = modules_dir / "user-auth" / "components" / "keep.ts"
        marker.write_text("// mine\n")
        before = sorted(p.relative_to(modules_dir) for p in modules_dir.rglob("*"))

        with pytest.raises(AlreadyExistsError):
            await module_service.create_module(CreateModuleOptions(name="user-auth", template="full"))

        after = sorted(p.relative_to(modules_dir) for p in modules_dir.rglob("*"))
        assert after == before
        assert marker.read_text() == "// mine\n"

    async def test_partial_failure_leaves_tree(self, config, logger, tmp_path: Path, modules_dir: Path):
        empty_templates = tmp_path / "no-templates"
        empty_templates.mkdir()
        service = ModuleService(config, renderer=TemplateRenderer(empty_templates), logger=logger)

        with pytest.raises(TemplateRenderingError):
            await service.create_module(CreateModuleOptions(name="half", template="basic", tests=False))

        assert (modules_dir / "half" / "components").is_dir()
        with pytest.raises(AlreadyExistsError):
            await service.create_module(CreateModuleOptions(name="half", template="basic"))


# ---------------------------------------------------------------------------
# Index exports
# ---------------------------------------------------------------------------


class TestAppendExportLine:
    async def test_creates_index(self, tmp_path: Path):
        index = tmp_path / "index.ts"
        assert await append_export_line(index, "login-form") is True
        assert index.read_text() == "export * from './login-form'\n"

    async def test_idempotent(self, tmp_path: Path):
        index = tmp_path / "index.ts"
        await append_export_line(index, "login-form")
        assert await append_export_line(index, "login-form") is False
        assert index.read_text().count(export_line("login-form")) == 1

    async def test_appends_after_stub(self, tmp_path: Path):
        index = tmp_path / "index.ts"
        index.write_text("// Export all components from this directory")
        await append_export_line(index, "a")
        await append_export_line(index, "b")
        assert index.read_text().splitlines() == [
            "// Export all components from this directory",
            "export * from './a'",
            "export * from './b'",
        ]


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@pytest.fixture
async def user_module(module_service: ModuleService) -> Path:
    structure = await module_service.create_module(CreateModuleOptions(name="users", template="basic"))
    return structure.path


class TestCreateComponent:
    async def test_component_with_test_and_story(self, module_service: ModuleService, user_module: Path):
        written = await module_service.create_component(
            CreateComponentOptions(name="login-form", module_name="users", test=True, story=True, client=True)
        )
        components = user_module / "components"
        assert written == [
            components / "login-form.tsx",
            components / "login-form.test.tsx",
            components / "login-form.stories.tsx",
        ]
        source = (components / "login-form.tsx").read_text()
        assert "'use client'" in source
        assert "export function LoginForm" in source
        assert "describe('LoginForm'" in (components / "login-form.test.tsx").read_text()
        assert "title: 'Users/LoginForm'" in (components / "login-form.stories.tsx").read_text()

    async def test_story_goes_through_writer(self, config, logger, user_module: Path):
        written_names: list[str] = []

        class RecordingWriter(ArtifactWriter):
            async def write(self, artifact, target_dir, base_file_name, dry_run=False):
                written_names.append(base_file_name)
                return await super().write(artifact, target_dir, base_file_name, dry_run)

        service = ModuleService(config, writer=RecordingWriter(logger), logger=logger)
        await service.create_component(
            CreateComponentOptions(name="user-card", module_name="users", story=True)
        )

        assert written_names == ["user-card.tsx", "user-card.stories.tsx"]

    async def test_class_component_without_props(self, module_service: ModuleService, user_module: Path):
        await module_service.create_component(
            CreateComponentOptions(name="banner", module_name="users", type="class", props=False)
        )
        source = (user_module / "components" / "banner.tsx").read_text()
        assert "export class Banner extends Component {" in source
        assert "Props" not in source

    async def test_export_appended_once(self, module_service: ModuleService, user_module: Path):
        options = CreateComponentOptions(name="avatar", module_name="users")
        await module_service.create_component(options)
        await module_service.create_component(options)
        index = (user_module / "components" / "index.ts").read_text()
        assert index.count("export * from './avatar'") == 1

    async def test_pascal_convention(self, config_factory, next_project: Path, logger):
        config = config_factory(next_project, conventions={"naming": "PascalCase"})
        service = ModuleService(config, logger=logger)
        await service.create_module(CreateModuleOptions(name="users", template="basic"))

        await service.create_component(CreateComponentOptions(name="UserCard", module_name="users"))
        source = (next_project / "src" / "modules" / "users" / "components" / "UserCard.tsx").read_text()
        assert "export function UserCard" in source

        with pytest.raises(ValidationError) as exc_info:
            await service.create_component(CreateComponentOptions(name="user-card", module_name="users"))
        assert "PascalCase" in exc_info.value.message

    async def test_invalid_name_before_lookup(self, module_service: ModuleService):
        with pytest.raises(ValidationError):
            await module_service.create_component(CreateComponentOptions(name="Bad_Name", module_name="ghost"))

    async def test_missing_module(self, module_service: ModuleService):
        with pytest.raises(NotFoundError) as exc_info:
            await module_service.create_component(CreateComponentOptions(name="x1", module_name="ghost"))
        assert exc_info.value.details == {"module": "ghost"}


class TestOtherEntities:
    async def test_service_with_companion_test(self, module_service: ModuleService, user_module: Path):
        written = await module_service.create_service("users", "user-api", is_server=True)
        services = user_module / "services"
        assert written == [services / "user-api.ts", services / "user-api.test.ts"]
        source = (services / "user-api.ts").read_text()
        assert source.startswith("import 'server-only'")
        assert "export class UserApi" in source
        assert "export const userApi = new UserApi()" in source
        assert "export * from './user-api'" in (services / "index.ts").read_text()

    async def test_service_without_testing(self, config_factory, next_project: Path, logger):
        config = config_factory(next_project, features={"testing": False})
        service = ModuleService(config, logger=logger)
        await service.create_module(CreateModuleOptions(name="users", template="basic"))
        written = await service.create_service("users", "mailer")
        assert [p.name for p in written] == ["mailer.ts"]

    async def test_type(self, module_service: ModuleService, user_module: Path):
        await module_service.create_type("user-profile", "users", ["display-name", "avatar"])
        source = (user_module / "types" / "user-profile.ts").read_text()
        assert "export interface UserProfile {" in source
        assert "displayName?: unknown" in source
        assert "export * from './user-profile'" in (user_module / "types" / "index.ts").read_text()

    async def test_test_file_not_exported(self, module_service: ModuleService, user_module: Path):
        written = await module_service.create_test("sign-up", "users", "integration")
        assert written == [user_module / "tests" / "sign-up.test.ts"]
        assert "SignUp (integration)" in written[0].read_text()
        assert (user_module / "tests" / "index.ts").read_text() == "// Export all tests from this directory\n"

    async def test_next_api(self, module_service: ModuleService, user_module: Path):
        await module_service.create_api("profile", "users", ["get", "put"], with_validation=True)
        source = (user_module / "api" / "profile.ts").read_text()
        assert "export async function GET" in source
        assert "export async function PUT" in source
        assert (user_module / "api" / "profile.test.ts").exists()
        assert "export * from './profile'" in (user_module / "api" / "index.ts").read_text()

    async def test_hook(self, module_service: ModuleService, user_module: Path):
        written = await module_service.create_hook("auth", "users", with_test=True)
        hooks = user_module / "hooks"
        assert written == [hooks / "auth.ts", hooks / "auth.test.ts"]
        assert "export function useAuth()" in (hooks / "auth.ts").read_text()

    async def test_hook_keeps_use_prefix(self, module_service: ModuleService, user_module: Path):
        await module_service.create_hook("use-session", "users")
        assert "export function useSession()" in (user_module / "hooks" / "use-session.ts").read_text()

    async def test_page(self, module_service: ModuleService, user_module: Path):
        await module_service.create_page("user-profile", "users", dynamic_param="id")
        source = (user_module / "pages" / "user-profile.tsx").read_text()
        assert "export default function UserProfilePage" in source
        assert "export * from './user-profile'" in (user_module / "pages" / "index.ts").read_text()

    @pytest.mark.parametrize("kind", ["service", "type", "test", "api", "hook", "page"])
    async def test_entity_name_validated(self, module_service: ModuleService, user_module: Path, kind):
        calls = {
            "service": lambda: module_service.create_service("users", "UserApi"),
            "type": lambda: module_service.create_type("User_Type", "users"),
            "test": lambda: module_service.create_test("Flow", "users"),
            "api": lambda: module_service.create_api("Api", "users"),
            "hook": lambda: module_service.create_hook("useAuth", "users"),
            "page": lambda: module_service.create_page("Home", "users"),
        }
        with pytest.raises(ValidationError):
            await calls[kind]()


# ---------------------------------------------------------------------------
# Discovery and deletion
# ---------------------------------------------------------------------------


class TestListModules:
    async def test_empty(self, module_service: ModuleService):
        assert await module_service.list_modules() == []

    async def test_missing_modules_dir(self, config_factory, tmp_path: Path, logger):
        service = ModuleService(config_factory(tmp_path), logger=logger)
        assert await service.list_modules() == []

    async def test_reflects_manual_directories(self, module_service: ModuleService, modules_dir: Path):
        manual = modules_dir / "hand-made"
        (manual / "tests").mkdir(parents=True)
        (manual / "package.json").write_text("{}")

        modules = await module_service.list_modules()

        assert len(modules) == 1
        found = modules[0]
        assert found.name == "hand-made"
        assert found.path == manual
        assert found.has_tests is True
        assert found.is_standalone is True
        assert found.has_package_json is True
        assert found.has_routing is False

    async def test_created_modules_sorted(self, module_service: ModuleService, modules_dir: Path):
        await module_service.create_module(CreateModuleOptions(name="zeta", template="basic"))
        await module_service.create_module(CreateModuleOptions(name="alpha", template="basic"))
        (modules_dir / "README.md").write_text("not a module")

        names = [m.name for m in await module_service.list_modules()]
        assert names == ["alpha", "zeta"]

    async def test_analyze_flags(self, module_service: ModuleService, modules_dir: Path):
        root = modules_dir / "shop"
        for sub in ("routes", "controllers", "__tests__"):
            (root / sub).mkdir(parents=True)
        structure = await module_service.analyze_module("shop", root)
        assert structure.has_routing is True
        assert structure.has_api is True
        assert structure.has_tests is True
        assert structure.is_standalone is False
        assert structure.components == ["__tests__", "controllers", "routes"]

    async def test_analyze_unreadable_returns_none(self, module_service: ModuleService, modules_dir: Path, logger):
        assert await module_service.analyze_module("ghost", modules_dir / "ghost") is None
        assert "Failed to analyze module ghost" in logger.console.file.getvalue()


class TestFindAndDelete:
    async def test_find_module_path(self, module_service: ModuleService, user_module: Path):
        assert await module_service.find_module_path("users") == user_module
        assert await module_service.find_module_path("ghost") is None

    async def test_delete_forced(self, module_service: ModuleService, user_module: Path, logger):
        await module_service.delete_module("users", force=True)
        assert not user_module.exists()
        assert "permanently delete" not in logger.console.file.getvalue()

    async def test_delete_warns_without_force(self, module_service: ModuleService, user_module: Path, logger):
        await module_service.delete_module("users")
        assert not user_module.exists()
        assert "permanently delete" in logger.console.file.getvalue()

    async def test_delete_missing(self, module_service: ModuleService):
        with pytest.raises(NotFoundError):
            await module_service.delete_module("ghost", force=True)
