"""Post-generation hooks.

Hooks run external tools (the Go module tool, git) against a freshly
generated service.  They are supplied by the command line after a successful
:class:`~microgen.scaffolder.writer.GenerationResult`; the generation engine
never runs external processes itself.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from microgen.config import ServiceConfig
from microgen.errors import HookError
from microgen.utils import console, run_command

DEFAULT_GITIGNORE = """\
# Binaries
*.exe
*.exe~
*.dll
*.so
*.dylib
*.test
*.out
go.work

# Environment
.env
.env.local
.env.*.local
docker-compose-local.yml

# Editors and OS
.vscode/
.idea/
*.swp
*.swo
.DS_Store
Thumbs.db

# Build and runtime artefacts
*.log
tmp/
build/
dist/
*.db
*.sqlite
"""


class PostGenerateHook(Protocol):
    """A step run against the generated tree."""

    name: str

    async def run(self, project_root: Path, config: ServiceConfig) -> None:
        ...


async def _check(hook: str, cmd: list[str], cwd: Path) -> str:
    returncode, stdout, stderr = await run_command(cmd, cwd=cwd)
    if returncode != 0:
        raise HookError(hook, cmd, stderr or stdout)
    return stdout


class GoModuleInitializer:
    """Initialise the Go module (``go mod init`` + ``go mod tidy``)."""

    name = "go module"

    async def run(self, project_root: Path, config: ServiceConfig) -> None:
        if (project_root / "go.mod").exists():
            console.print("  go.mod already exists, running go mod tidy...")
        else:
            console.print(f"  Creating go.mod for [bold]{config.module_name}[/bold]...")
            await _check(self.name, ["go", "mod", "init", config.module_name], project_root)
        await _check(self.name, ["go", "mod", "tidy"], project_root)
        console.print("  [green]+[/green] Go module initialised")


class GitInitializer:
    """Initialise a git repository on a ``dev`` branch."""

    name = "git"

    def __init__(self, branch: str = "dev", gitignore: str = DEFAULT_GITIGNORE) -> None:
        self.branch = branch
        self.gitignore = gitignore

    async def run(self, project_root: Path, config: ServiceConfig) -> None:
        await _check(self.name, ["git", "init"], project_root)

        gitignore_path = project_root / ".gitignore"
        if not gitignore_path.exists():
            try:
                gitignore_path.write_text(self.gitignore, encoding="utf-8")
            except OSError as exc:
                raise HookError(self.name, ["write", str(gitignore_path)], str(exc)) from exc
            console.print("  [green]+[/green] Created .gitignore")

        await _check(self.name, ["git", "add", "."], project_root)
        await _check(self.name, ["git", "checkout", "-b", self.branch], project_root)
        console.print(f"  [green]+[/green] Git repository initialised on branch {self.branch}")


async def run_hooks(
    hooks: Iterable[PostGenerateHook],
    project_root: Path,
    config: ServiceConfig,
) -> list[str]:
    """Run *hooks* in order, stopping at the first failure.

    Returns:
        Names of the hooks that completed.
    """
    completed: list[str] = []
    for hook in hooks:
        console.print(f"Running {hook.name} hook...")
        await hook.run(project_root, config)
        completed.append(hook.name)
    return completed
