"""microgen command line.

Usage::

    microgen new orders --module github.com/acme/orders --db-driver postgres
    microgen new orders --output-dir ./services --force --no-git
    microgen version
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from microgen import __version__
from microgen.config import (
    DatabaseDriver,
    GeneratorSettings,
    apply_overrides,
    new_config,
)
from microgen.errors import HookError, ScaffoldError, WriteError
from microgen.hooks import GitInitializer, GoModuleInitializer, PostGenerateHook, run_hooks
from microgen.scaffolder import GenerationResult, ServiceGenerator, cleanup_partial
from microgen.utils import (
    console,
    format_duration,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
)

# CLI option dest -> ConfigOverrides field
OVERRIDE_OPTIONS: dict[str, str] = {
    "module": "module_name",
    "description": "description",
    "service_version": "version",
    "author": "author",
    "port": "port",
    "grpc_port": "grpc_port",
    "env": "environment",
    "db_driver": "db_driver",
    "db_url": "db_url",
    "db_host": "db_host",
    "db_port": "db_port",
    "db_user": "db_user",
    "db_password": "db_password",
    "db_name": "db_name",
    "redis_url": "redis_url",
    "redis_host": "redis_host",
    "redis_port": "redis_port",
    "redis_db_number": "redis_db",
    "redis_password": "redis_password",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="microgen",
        description="Scaffold a new microservice project from a template tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  microgen new user-service --module github.com/myorg/user-service\n"
            "  microgen new payment-service -m github.com/myorg/payment-service \\\n"
            "      --port 3000 --db-driver mysql --redis-host localhost\n"
            "  microgen new auth-service -o /path/to/projects --force\n"
        ),
    )
    parser.add_argument("-V", "--version", action="version", version=f"microgen {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    new = subparsers.add_parser("new", help="Create a new microservice project")
    new.add_argument("service", help="Service name; also the generated directory name")

    service = new.add_argument_group("service")
    service.add_argument("--module", "-m", help="Module path (e.g. github.com/your-org/service-name)")
    service.add_argument("--description", "-d", help="Service description")
    service.add_argument("--version", "-v", dest="service_version", help="Service version (e.g. 2.1.0)")
    service.add_argument("--author", "-a", help="Author name")
    service.add_argument("--port", "-p", help="HTTP port for the service")
    service.add_argument("--grpc-port", "-g", help="gRPC port for the service")
    service.add_argument("--env", "-e", help="Environment (development, staging, production)")

    database = new.add_argument_group("database")
    database.add_argument(
        "--db-driver", choices=[driver.value for driver in DatabaseDriver], help="Database driver"
    )
    database.add_argument("--db-url", help="Connection URL (overrides the individual db settings)")
    database.add_argument("--db-host", help="Database host")
    database.add_argument("--db-port", help="Database port (3306 for MySQL, 5432 for PostgreSQL)")
    database.add_argument("--db-user", help="Database user")
    database.add_argument("--db-password", help="Database password")
    database.add_argument("--db-name", help="Database name")

    redis = new.add_argument_group("redis")
    redis.add_argument("--redis-url", help="Redis URL (overrides the individual redis settings)")
    redis.add_argument("--redis-host", help="Redis host")
    redis.add_argument("--redis-port", help="Redis port")
    redis.add_argument("--redis-db-number", help="Redis database number (0-15)")
    redis.add_argument("--redis-password", help="Redis password")

    output = new.add_argument_group("output and behaviour")
    output.add_argument("--output-dir", "-o", type=Path, help="Parent directory (default: current directory)")
    output.add_argument("--templates", type=Path, help="Template directory (default: bundled service template)")
    output.add_argument("--git", action=argparse.BooleanOptionalAction, default=None,
                        help="Initialise a git repository on a dev branch")
    output.add_argument("--go-mod", action=argparse.BooleanOptionalAction, default=None,
                        help="Run go mod init and go mod tidy")
    output.add_argument("--force", action="store_true", help="Overwrite the service if it already exists")
    output.add_argument("--dry-run", action="store_true", help="List what would be generated and exit")
    output.add_argument("--keep-partial", action="store_true",
                        help="Keep partially written output when generation fails")

    subparsers.add_parser("version", help="Print the version information")
    return parser


def collect_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Map parsed CLI options onto configuration override fields."""
    return {
        field: getattr(args, option)
        for option, field in OVERRIDE_OPTIONS.items()
        if getattr(args, option, None) not in (None, "")
    }


def _select_hooks(args: argparse.Namespace, settings: GeneratorSettings) -> list[PostGenerateHook]:
    hooks: list[PostGenerateHook] = []
    if settings.init_module if args.go_mod is None else args.go_mod:
        hooks.append(GoModuleInitializer())
    if settings.init_git if args.git is None else args.git:
        hooks.append(GitInitializer())
    return hooks


def cmd_new(args: argparse.Namespace, settings: GeneratorSettings | None = None) -> int:
    settings = settings or GeneratorSettings.from_env()

    try:
        config = apply_overrides(new_config(args.service), collect_overrides(args))
    except (ValueError, ValidationError) as exc:
        print_error(f"Invalid configuration: {exc}")
        return 1

    output_dir = args.output_dir or settings.output_dir
    target = (output_dir / config.service_name).resolve()
    generator = ServiceGenerator(config, args.templates or settings.templates_dir)

    if args.dry_run:
        try:
            outputs = generator.plan()
        except ScaffoldError as exc:
            print_error(str(exc))
            return 1
        for output in outputs:
            suffix = "/" if output.is_dir else ""
            console.print(f"  {output.path.as_posix()}{suffix}")
        console.print(f"[dim]{len(outputs)} entries would be written to {target}[/dim]")
        return 0

    console.print(f"Generating [bold]{config.service_name}[/bold] microservice...")
    started = time.monotonic()
    try:
        result = generator.generate(target, force=args.force)
    except WriteError as exc:
        print_error(str(exc))
        failed = GenerationResult.failed(exc.partial)
        print_warning(f"{len(failed.files_written)} entries were written before the failure.")
        if args.keep_partial:
            print_warning(f"Partial output left at {failed.destination}")
        else:
            cleanup_partial(failed.partial)
            print_warning(f"Removed partial output at {failed.destination}")
        return 1
    except ScaffoldError as exc:
        print_error(str(exc))
        return 1

    for warning in result.warnings:
        print_warning(warning)

    hooks = _select_hooks(args, settings)
    try:
        completed = asyncio.run(run_hooks(hooks, result.destination, config))
    except HookError as exc:
        print_error(str(exc))
        print_warning(f"The project files were generated at {result.destination}")
        return 1

    print_summary_table(
        {
            "Service": config.service_name,
            "Module": config.module_name,
            "Database": config.db_driver.value,
            "Environment": config.environment,
            "Files": str(len(result.files_written)),
            "Hooks": ", ".join(completed) or "none",
            "Elapsed": format_duration(time.monotonic() - started),
        },
        title="Generated service",
    )
    print_success(f"Successfully created {config.service_name} microservice!")
    console.print(f"Project location: {result.destination}")
    console.print("To get started:")
    console.print(f"   cd {result.destination}")
    if not any(isinstance(hook, GoModuleInitializer) for hook in hooks):
        console.print("   go mod tidy")
    console.print("   go run main.go")
    return 0


def run(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "new":
        return cmd_new(args)
    if args.command == "version":
        console.print(f"microgen {__version__}")
        return 0
    parser.print_help()
    return 1


def main() -> None:
    """CLI entry point for ``microgen`` and ``python -m microgen``."""
    sys.exit(run())


if __name__ == "__main__":
    main()
