"""Command-line shell for Modularisan (``misan``).

Parses arguments, wires one :class:`~modularisan.logger.Logger` into the
core services and turns any :class:`~modularisan.errors.ModularisanError`
into a single printed line plus exit status 1.  All real work happens in
the core; this module only presents results.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .ai import AIService
from .config import ConfigStore, ProjectConfiguration
from .detector import FrameworkDetector, PackageManager, ProjectStructure, get_profile
from .errors import ModularisanError, NotFoundError, ValidationError, format_error
from .logger import Logger
from .naming import validate_framework, validate_name
from .scaffolder.modules import (
    MODULE_TEMPLATES,
    CreateComponentOptions,
    CreateModuleOptions,
    ModuleService,
)
from .scaffolder.templates import TemplateRenderer
from .utils import ensure_dir, path_exists

# Public framework names -> profile keys.
FRAMEWORK_ALIASES: dict[str, str] = {
    "nextjs": "next",
    "nuxtjs": "nuxt",
    "nestjs": "nest",
}

ENTITY_KINDS = ("component", "service", "type", "test", "api", "hook", "page")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="misan",
        description="Modularisan -- modular architecture scaffolding for JS/TS projects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  misan init\n"
            "  misan create module user-auth --template full\n"
            "  misan create component login-form --module user-auth --test\n"
            "  misan config set features.testing false\n"
            "  misan debug --check-config\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--directory", "-d",
        default=".",
        help="Project root directory (default: current directory)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", action="store_true", help="Show debug output")
    verbosity.add_argument("--quiet", action="store_true", help="Only show errors")
    parser.add_argument("--debug", action="store_true", help="Include error details in failures")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    init = commands.add_parser("init", help="Detect the framework and write modularisan.config.yml")
    init.add_argument("--framework", "-f", default=None, help="Force a framework instead of detecting")
    init.add_argument("--modules-path", default=None, help="Modules directory relative to the root")
    init.add_argument("--standalone", action="store_true", help="Give every module its own package.json")
    init.add_argument(
        "--naming",
        choices=["kebab-case", "camelCase", "PascalCase", "snake_case"],
        default=None,
        help="File naming convention",
    )
    init.add_argument("--force", action="store_true", help="Overwrite an existing configuration")

    commands.add_parser("validate", help="Check the configuration and the modules directory")

    debug = commands.add_parser("debug", help="Show configuration, detection and module diagnostics")
    debug_scope = debug.add_mutually_exclusive_group()
    debug_scope.add_argument("--check-config", action="store_true", help="Only report the configuration")
    debug_scope.add_argument("--check-modules", action="store_true", help="Only report the modules")

    config = commands.add_parser("config", help="Show or edit configuration values")
    config_actions = config.add_subparsers(dest="action", metavar="ACTION")
    config_actions.required = True
    config_actions.add_parser("show", help="Print the whole configuration")
    config_get = config_actions.add_parser("get", help="Print one value by dotted path")
    config_get.add_argument("path")
    config_set = config_actions.add_parser("set", help="Set one value by dotted path")
    config_set.add_argument("path")
    config_set.add_argument("value", help="Parsed as YAML, so 'true' and '3' become typed")

    create = commands.add_parser("create", help="Create a module or an entity inside a module")
    create_kinds = create.add_subparsers(dest="kind", metavar="KIND")
    create_kinds.required = True

    module = create_kinds.add_parser("module", help="Create a new module")
    module.add_argument("name")
    module.add_argument("--description", default="")
    module.add_argument("--path", default=None, help="Parent directory relative to the project root")
    module.add_argument("--template", choices=sorted(MODULE_TEMPLATES), default=None)
    module.add_argument("--components", type=_csv, default=None, help="Comma-separated subdirectories")
    for flag in ("routing", "api", "tests", "standalone", "package-json"):
        module.add_argument(
            f"--{flag}",
            action=argparse.BooleanOptionalAction,
            default=None,
            help=f"Turn {flag} on or off for this module",
        )

    for kind in ENTITY_KINDS:
        entity = create_kinds.add_parser(kind, help=f"Create a {kind} inside a module")
        entity.add_argument("name")
        entity.add_argument("--module", "-m", required=True, dest="module_name")
        if kind == "component":
            entity.add_argument("--type", choices=["functional", "class"], default="functional")
            entity.add_argument("--no-props", dest="props", action="store_false")
            entity.add_argument("--client", action="store_true", help="Mark as a client component")
            entity.add_argument("--story", action="store_true", help="Also write a Storybook story")
            entity.add_argument("--test", action="store_true", help="Also write a test file")
        elif kind == "service":
            entity.add_argument("--server", action="store_true", help="Server-only service")
        elif kind == "type":
            entity.add_argument("--fields", type=_csv, default=None, help="Comma-separated optional fields")
        elif kind == "test":
            entity.add_argument("--test-type", default="unit")
        elif kind == "api":
            entity.add_argument("--methods", type=_csv, default=None, help="e.g. GET,POST")
            entity.add_argument("--validation", action="store_true")
        elif kind == "hook":
            entity.add_argument("--test", action="store_true", help="Also write a test file")
        elif kind == "page":
            entity.add_argument("--param", default=None, help="Dynamic route parameter")

    list_cmd = commands.add_parser("list", help="List modules found on disk")
    list_cmd.add_argument("--json", action="store_true", help="Output as JSON")

    delete = commands.add_parser("delete", help="Delete a module and everything in it")
    delete.add_argument("name")
    delete.add_argument("--force", action="store_true", help="Skip the warning")

    generate = commands.add_parser("generate", help="Generate code with the configured AI provider")
    generate.add_argument("kind", choices=["component", "service"])
    generate.add_argument("name")
    generate.add_argument("--module", "-m", required=True, dest="module_name")
    generate.add_argument("--description", default="")
    generate.add_argument("--dry-run", action="store_true", help="Show the files without writing them")

    return parser


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


class CommandContext:
    """Per-invocation wiring shared by every handler."""

    def __init__(self, root_dir: Path, console: Console, logger: Logger) -> None:
        self.root_dir = root_dir
        self.console = console
        self.logger = logger
        self.store = ConfigStore(root_dir, logger)

    async def module_service(self) -> ModuleService:
        config = await self.store.load_config()
        return ModuleService(config, logger=self.logger, root_dir=self.root_dir)


async def cmd_init(ctx: CommandContext, args: argparse.Namespace) -> int:
    if await ctx.store.has_config() and not args.force:
        ctx.logger.warning("Modularisan is already initialized. Use --force to overwrite.")
        return 0

    ctx.logger.info(f"Initializing Modularisan in: {ctx.root_dir}")
    detector = FrameworkDetector(ctx.root_dir, ctx.logger)
    forced_key = None
    if args.framework:
        name = validate_framework(args.framework)
        forced_key = FRAMEWORK_ALIASES.get(name, name)

    if forced_key is None:
        structure = await detector.detect()
    else:
        try:
            structure = await detector.detect()
        except ModularisanError as exc:
            ctx.logger.warning(f"Framework detection failed, using {args.framework}: {exc}")
            structure = ProjectStructure(
                framework=get_profile(forced_key),
                has_typescript=True,
                has_testing=True,
                package_manager=PackageManager.NPM,
                root_dir=ctx.root_dir,
            )
        ctx.logger.info(f"Overriding detected framework with: {args.framework}")
        structure = structure.model_copy(update={"framework": get_profile(forced_key)})

    overrides: dict[str, Any] = {}
    if args.modules_path:
        overrides.setdefault("paths", {})["modules"] = args.modules_path
    if args.standalone:
        overrides["features"] = {"standalone_modules": True, "package_per_module": True}
    if args.naming:
        overrides["conventions"] = {"naming": args.naming}

    config = await ctx.store.initialize_config(structure, overrides)
    await ensure_dir(config.modules_path(ctx.root_dir))
    ctx.logger.info("Next: misan create module <name>")
    return 0


async def cmd_validate(ctx: CommandContext, args: argparse.Namespace) -> int:
    if await ctx.store.validate_config():
        ctx.logger.success("Configuration is valid")
        return 0
    return 1


async def cmd_config(ctx: CommandContext, args: argparse.Namespace) -> int:
    if args.action == "show":
        config = await ctx.store.load_config()
        _print_plain(ctx.console, _dump_yaml(config.to_tree()), end="")
        return 0

    if args.action == "get":
        sentinel = object()
        value = await ctx.store.get(args.path, sentinel)
        if value is sentinel:
            raise NotFoundError(f"Configuration key not found: {args.path}", {"path": args.path})
        if isinstance(value, (dict, list)):
            _print_plain(ctx.console, _dump_yaml(value), end="")
        else:
            _print_plain(ctx.console, json.dumps(value))
        return 0

    try:
        value = yaml.safe_load(args.value)
    except yaml.YAMLError:
        value = args.value
    await ctx.store.set(args.path, value)
    ctx.logger.success(f"Set {args.path} = {json.dumps(value)}")
    return 0


async def cmd_create(ctx: CommandContext, args: argparse.Namespace) -> int:
    service = await ctx.module_service()

    if args.kind == "module":
        structure = await service.create_module(
            CreateModuleOptions(
                name=args.name,
                description=args.description,
                path=args.path,
                components=args.components,
                template=args.template,
                routing=args.routing,
                api=args.api,
                tests=args.tests,
                standalone=args.standalone,
                package_json=args.package_json,
            )
        )
        ctx.logger.info(f"Components: {', '.join(structure.components)}")
        return 0

    if args.kind == "component":
        written = await service.create_component(
            CreateComponentOptions(
                name=args.name,
                module_name=args.module_name,
                type=args.type,
                props=args.props,
                client=args.client,
                story=args.story,
                test=args.test,
            )
        )
    elif args.kind == "service":
        written = await service.create_service(args.module_name, args.name, is_server=args.server)
    elif args.kind == "type":
        written = await service.create_type(args.name, args.module_name, args.fields)
    elif args.kind == "test":
        written = await service.create_test(args.name, args.module_name, args.test_type)
    elif args.kind == "api":
        written = await service.create_api(
            args.name, args.module_name, args.methods, with_validation=args.validation
        )
    elif args.kind == "hook":
        written = await service.create_hook(args.name, args.module_name, with_test=args.test)
    else:
        written = await service.create_page(args.name, args.module_name, dynamic_param=args.param)

    for path in written:
        ctx.logger.debug(f"Created {path}")
    return 0


async def cmd_list(ctx: CommandContext, args: argparse.Namespace) -> int:
    service = await ctx.module_service()
    modules = await service.list_modules()

    if args.json:
        payload = [m.model_dump(mode="json") for m in modules]
        _print_plain(ctx.console, json.dumps(payload, indent=2))
        return 0

    if not modules:
        ctx.logger.info("No modules found. Create your first module with: misan create module <name>")
        return 0

    table = Table(title=f"Modules ({len(modules)})", show_lines=True)
    table.add_column("Name", style="green")
    table.add_column("Components")
    for column in ("Routing", "API", "Tests", "Standalone"):
        table.add_column(column, justify="center")

    for module in modules:
        table.add_row(
            escape(module.name),
            escape(", ".join(module.components)),
            _mark(module.has_routing),
            _mark(module.has_api),
            _mark(module.has_tests),
            _mark(module.is_standalone),
        )
    ctx.console.print(table)
    return 0


async def cmd_debug(ctx: CommandContext, args: argparse.Namespace) -> int:
    """Print diagnostics.  Section failures are reported inline, never raised."""
    tables: list[Table] = []
    if not args.check_modules:
        tables.append(await _debug_configuration(ctx))
    if not (args.check_config or args.check_modules):
        tables.append(await _debug_project(ctx))
        tables.append(_debug_templates())
    if not args.check_config:
        tables.append(await _debug_modules(ctx))

    for table in tables:
        ctx.console.print(table)
    return 0


async def _debug_configuration(ctx: CommandContext) -> Table:
    rows: list[tuple[str, str]] = [("Config file", escape(str(ctx.store.get_config_path())))]
    if not await ctx.store.has_config():
        rows.append(("Status", "[red]Not initialized[/red]"))
        rows.append(("Hint", "Run 'misan init' to initialize the project"))
        return _summary_table("Configuration", rows)

    try:
        config = await ctx.store.load_config()
    except ModularisanError as exc:
        rows.append(("Status", "[red]Error[/red]"))
        rows.append(("Error", escape(exc.message)))
        return _summary_table("Configuration", rows)

    rows += [
        ("Status", "[green]Initialized[/green]"),
        ("Framework", escape(f"{config.framework.name} ({config.framework.type.value})")),
        ("Version", escape(config.version)),
        ("TypeScript", _mark(config.features.typescript)),
        ("Testing", _mark(config.features.testing)),
        ("Standalone modules", _mark(config.features.standalone_modules)),
        ("Valid", _mark(await ctx.store.validate_config(config))),
    ]
    return _summary_table("Configuration", rows)


async def _debug_project(ctx: CommandContext) -> Table:
    manifest = ctx.root_dir / "package.json"
    rows: list[tuple[str, str]] = [("package.json", _mark(await path_exists(manifest)))]

    # Detection logs each facet at info level; the table already shows them.
    detector = FrameworkDetector(ctx.root_dir, Logger(ctx.console, "error"))
    try:
        structure = await detector.detect()
    except ModularisanError as exc:
        rows.append(("Framework detection", f"[red]Failed[/red] {escape(exc.message)}"))
        return _summary_table("Project", rows)

    framework = structure.framework
    rows += [
        ("Detected framework", escape(f"{framework.name} {framework.version or ''}".strip())),
        ("Package manager", structure.package_manager.value),
        ("TypeScript", _mark(structure.has_typescript)),
        ("Testing", _mark(structure.has_testing)),
    ]
    for name, relative in framework.paths.model_dump().items():
        if relative:
            exists = await path_exists(ctx.root_dir / relative)
            rows.append((f"{name} directory", f"{_mark(exists)} {escape(relative)}"))
    return _summary_table("Project", rows)


def _debug_templates() -> Table:
    renderer = TemplateRenderer()
    return _summary_table(
        "Templates",
        [
            ("Template directory", escape(str(renderer.template_dir))),
            ("Template files", str(len(renderer.list_templates()))),
        ],
    )


async def _debug_modules(ctx: CommandContext) -> Table:
    try:
        service = await ctx.module_service()
        modules = await service.list_modules()
    except ModularisanError as exc:
        return _summary_table("Modules", [("Module check", f"[red]Failed[/red] {escape(exc.message)}")])

    rows: list[tuple[str, str]] = [("Found modules", str(len(modules)))]
    for module in modules:
        features = [
            label
            for label, flag in (
                ("routing", module.has_routing),
                ("api", module.has_api),
                ("tests", module.has_tests),
                ("standalone", module.is_standalone),
            )
            if flag
        ]
        rows.append(
            (
                escape(module.name),
                escape(f"{', '.join(module.components)} | features: {', '.join(features) or 'none'}"),
            )
        )
    return _summary_table("Modules", rows)


async def cmd_delete(ctx: CommandContext, args: argparse.Namespace) -> int:
    service = await ctx.module_service()
    await service.delete_module(args.name, force=args.force)
    return 0


async def cmd_generate(ctx: CommandContext, args: argparse.Namespace) -> int:
    config: ProjectConfiguration = await ctx.store.load_config()
    service = ModuleService(config, logger=ctx.logger, root_dir=ctx.root_dir)
    if not validate_name(args.name):
        raise ValidationError(
            f"Invalid {args.kind} name. Use kebab-case", {"name": args.name, "expected": "kebab-case"}
        )

    module_path = await service.find_module_path(args.module_name)
    if module_path is None:
        raise NotFoundError(f"Module '{args.module_name}' not found", {"module": args.module_name})

    ai = AIService(config, logger=ctx.logger)
    if args.kind == "component":
        artifact = await ai.generate_component(args.name, args.description, args.module_name)
        target_dir = module_path / "components"
        file_name = f"{args.name}{config.extension('component', '.tsx')}"
    else:
        artifact = await ai.generate_service(args.name, args.description, args.module_name)
        target_dir = module_path / "services"
        file_name = f"{args.name}{config.extension('service', '.ts')}"

    await ai.save_generated_code(artifact, target_dir, file_name, dry_run=args.dry_run)
    if artifact.explanation:
        ctx.logger.info(artifact.explanation)
    for suggestion in artifact.suggestions:
        ctx.logger.info(f"Suggestion: {suggestion}")
    return 0


HANDLERS = {
    "init": cmd_init,
    "validate": cmd_validate,
    "debug": cmd_debug,
    "config": cmd_config,
    "create": cmd_create,
    "list": cmd_list,
    "delete": cmd_delete,
    "generate": cmd_generate,
}


def _dump_yaml(value: Any) -> str:
    return yaml.safe_dump(value, sort_keys=True, default_flow_style=False, indent=2, allow_unicode=True)


def _mark(flag: bool) -> str:
    return "[green]✓[/green]" if flag else "[red]✗[/red]"


def _summary_table(title: str, rows: list[tuple[str, str]]) -> Table:
    table = Table(title=title, show_header=False, title_justify="left")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in rows:
        table.add_row(key, value)
    return table


def _print_plain(console: Console, text: str, end: str = "\n") -> None:
    console.print(text, markup=False, highlight=False, soft_wrap=True, end=end)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def run_cli(argv: list[str] | None = None, console: Console | None = None) -> int:
    """Parse *argv*, run the command and return the process exit status."""
    args = build_parser().parse_args(argv)
    console = console or Console()
    level = "debug" if args.verbose else "error" if args.quiet else "info"
    logger = Logger(console, level)
    ctx = CommandContext(Path(args.directory).resolve(), console, logger)

    try:
        return asyncio.run(HANDLERS[args.command](ctx, args))
    except ModularisanError as exc:
        logger.error(format_error(exc, debug=args.debug))
        return 1


def main() -> None:
    """CLI entry point for ``misan`` and ``python -m modularisan``."""
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
