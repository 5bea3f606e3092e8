"""Shared pytest fixtures for the microgen test suite.

Provides reusable fixtures for:
- Building small template trees on disk
- Default service configurations
- A template tree with conditional database-driver groups
- Mock asyncio subprocesses for the post-generation hooks
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from microgen.config import ServiceConfig, new_config


# ---------------------------------------------------------------------------
# Template trees
# ---------------------------------------------------------------------------

TreeSpec = dict[str, str | bytes | None]


def build_tree(root: Path, spec: TreeSpec) -> Path:
    """Create *spec* under *root*.

    Keys are POSIX paths relative to *root*.  ``None`` creates a directory,
    ``str`` a UTF-8 text file and ``bytes`` a binary file.
    """
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in spec.items():
        target = root / rel
        if content is None:
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
    return root


def snapshot(root: Path) -> dict[str, bytes | None]:
    """Map every path under *root* to its bytes (``None`` for directories)."""
    result: dict[str, bytes | None] = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root).as_posix()
        result[rel] = None if path.is_dir() else path.read_bytes()
    return result


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[TreeSpec, str], Path]:
    """Factory fixture: ``make_tree({"a/b.txt": "x"}, "name")`` -> root path."""

    def _make(spec: TreeSpec, name: str = "template") -> Path:
        return build_tree(tmp_path / name, spec)

    return _make


@pytest.fixture
def driver_template(make_tree) -> Path:
    """Template with one file per database driver plus shared files."""
    return make_tree(
        {
            ".microgen.yaml": (
                "groups:\n"
                "  db_driver:\n"
                "    mysql: [db/mysql.sql, migrations/mysql]\n"
                "    postgres: [db/postgres.sql, migrations/postgres]\n"
            ),
            "README.md": "# {{ service }}\n",
            "db/mysql.sql": "-- mysql for {{ db_name }}\n",
            "db/postgres.sql": "-- postgres for {{ db_name }}\n",
            "migrations/mysql/0001.sql": "CREATE TABLE a;\n",
            "migrations/postgres/0001.sql": "CREATE TABLE b;\n",
            "static.bin": b"\x00\x01\x02{{ not rendered }}\xff",
        }
    )


# ---------------------------------------------------------------------------
# Configurations
# ---------------------------------------------------------------------------

@pytest.fixture
def orders_config() -> ServiceConfig:
    """Default configuration for a service named ``orders``."""
    return new_config("orders")


@pytest.fixture
def tree_builder() -> Callable[[Path, TreeSpec], Path]:
    """The :func:`build_tree` helper, for trees outside the template root."""
    return build_tree


@pytest.fixture
def tree_snapshot() -> Callable[[Path], dict[str, bytes | None]]:
    """The :func:`snapshot` helper."""
    return snapshot


# ---------------------------------------------------------------------------
# Mock Subprocess (generic)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
