"""Unit tests for the command line (microgen.cli).

Tests cover:
- Option parsing and override collection
- `new` end to end against a small template (hooks disabled)
- Collision handling, --force and --dry-run
- Partial-failure cleanup and --keep-partial
- Hook selection and hook failures
- `version`
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from microgen import __version__
from microgen.cli import _select_hooks, build_parser, collect_overrides, run
from microgen.config import GeneratorSettings
from microgen.errors import HookError, WriteError
from microgen.hooks import GitInitializer, GoModuleInitializer
from microgen.scaffolder.writer import PartialState


@pytest.fixture
def new_args(driver_template: Path, tmp_path: Path):
    """Build argv for ``microgen new`` against the driver template."""

    def _args(*extra: str, name: str = "orders") -> list[str]:
        return [
            "new",
            name,
            "--output-dir",
            str(tmp_path / "out"),
            "--templates",
            str(driver_template),
            "--no-git",
            "--no-go-mod",
            *extra,
        ]

    return _args


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParsing:
    @pytest.mark.unit
    def test_collect_overrides(self):
        args = build_parser().parse_args(
            ["new", "orders", "-m", "github.com/acme/orders", "-v", "2.0.0", "-e", "production",
             "--redis-db-number", "3", "--db-driver", "postgres"]
        )
        assert collect_overrides(args) == {
            "module_name": "github.com/acme/orders",
            "version": "2.0.0",
            "environment": "production",
            "redis_db": "3",
            "db_driver": "postgres",
        }

    @pytest.mark.unit
    def test_unset_options_not_collected(self):
        args = build_parser().parse_args(["new", "orders", "--db-host", ""])
        assert collect_overrides(args) == {}

    @pytest.mark.unit
    def test_unknown_driver_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["new", "orders", "--db-driver", "oracle"])

    @pytest.mark.unit
    def test_hook_selection_follows_settings(self):
        args = build_parser().parse_args(["new", "orders"])
        hooks = _select_hooks(args, GeneratorSettings(init_git=False, init_module=True))
        assert [type(h) for h in hooks] == [GoModuleInitializer]

    @pytest.mark.unit
    def test_hook_flags_override_settings(self):
        args = build_parser().parse_args(["new", "orders", "--git", "--no-go-mod"])
        hooks = _select_hooks(args, GeneratorSettings(init_git=False, init_module=True))
        assert [type(h) for h in hooks] == [GitInitializer]


# ---------------------------------------------------------------------------
# new
# ---------------------------------------------------------------------------


class TestNew:
    @pytest.mark.unit
    def test_generates_service(self, new_args, tmp_path: Path):
        assert run(new_args("--db-driver", "postgres")) == 0
        dest = tmp_path / "out" / "orders"
        assert (dest / "README.md").read_text(encoding="utf-8") == "# orders\n"
        assert (dest / "db/postgres.sql").is_file()
        assert not (dest / "db/mysql.sql").exists()

    @pytest.mark.unit
    def test_invalid_port(self, new_args, tmp_path: Path, capsys):
        assert run(new_args("--port", "not-a-port")) == 1
        assert "Invalid configuration" in capsys.readouterr().out
        assert not (tmp_path / "out").exists()

    @pytest.mark.unit
    def test_dry_run_writes_nothing(self, new_args, tmp_path: Path, capsys):
        assert run(new_args("--dry-run")) == 0
        output = capsys.readouterr().out
        assert "README.md" in output
        assert "db/mysql.sql" in output
        assert not (tmp_path / "out").exists()

    @pytest.mark.unit
    def test_existing_service_refused(self, new_args, tmp_path: Path, capsys):
        dest = tmp_path / "out" / "orders"
        dest.mkdir(parents=True)
        (dest / "main.go").write_text("package main\n", encoding="utf-8")

        assert run(new_args()) == 1
        assert "already" in capsys.readouterr().out
        assert (dest / "main.go").read_text(encoding="utf-8") == "package main\n"
        assert not (dest / "README.md").exists()

    @pytest.mark.unit
    def test_empty_directory_refused(self, new_args, tmp_path: Path, capsys):
        dest = tmp_path / "out" / "orders"
        dest.mkdir(parents=True)

        assert run(new_args()) == 1
        assert "empty" in capsys.readouterr().out
        assert list(dest.iterdir()) == []

    @pytest.mark.unit
    def test_force_overwrites(self, new_args, tmp_path: Path, capsys):
        dest = tmp_path / "out" / "orders"
        dest.mkdir(parents=True)
        (dest / "main.go").write_text("package main\n", encoding="utf-8")

        assert run(new_args("--force")) == 0
        assert "Overwriting" in capsys.readouterr().out
        assert not (dest / "main.go").exists()
        assert (dest / "README.md").is_file()

    @pytest.mark.unit
    def test_unknown_placeholder_fails(self, make_tree, tmp_path: Path, capsys):
        template = make_tree({"a.txt": "{{ nope }}"}, "broken")
        code = run(["new", "orders", "-o", str(tmp_path / "out"), "--templates", str(template),
                    "--no-git", "--no-go-mod"])
        assert code == 1
        assert "nope" in capsys.readouterr().out
        assert not (tmp_path / "out" / "orders").exists()


class TestPartialFailure:
    def _raise_write_error(self, dest: Path):
        def generate(self, destination, *, force=False):
            dest.mkdir(parents=True)
            (dest / "README.md").write_text("x", encoding="utf-8")
            partial = PartialState(destination=dest, created_root=True, written=(dest / "README.md",))
            raise WriteError("disk-full", partial=partial, path=dest / "db")

        return generate

    @pytest.mark.unit
    def test_partial_output_removed(self, new_args, tmp_path: Path, capsys):
        dest = (tmp_path / "out" / "orders").resolve()
        with patch("microgen.cli.ServiceGenerator.generate", self._raise_write_error(dest)):
            assert run(new_args()) == 1
        output = capsys.readouterr().out
        assert "disk-full" in output
        assert "1 entries were written" in output
        assert not dest.exists()

    @pytest.mark.unit
    def test_keep_partial(self, new_args, tmp_path: Path):
        dest = (tmp_path / "out" / "orders").resolve()
        with patch("microgen.cli.ServiceGenerator.generate", self._raise_write_error(dest)):
            assert run(new_args("--keep-partial")) == 1
        assert (dest / "README.md").is_file()


class TestHooks:
    @pytest.mark.unit
    def test_hooks_run_after_generation(self, driver_template: Path, tmp_path: Path):
        mock_hooks = AsyncMock(return_value=["go module", "git"])
        with patch("microgen.cli.run_hooks", mock_hooks):
            code = run(["new", "orders", "-o", str(tmp_path), "--templates", str(driver_template),
                        "--git", "--go-mod"])
        assert code == 0
        hooks, root, config = mock_hooks.await_args.args
        assert [type(h) for h in hooks] == [GoModuleInitializer, GitInitializer]
        assert root == (tmp_path / "orders").resolve()
        assert config.service_name == "orders"

    @pytest.mark.unit
    def test_hook_failure_keeps_files(self, driver_template: Path, tmp_path: Path, capsys):
        mock_hooks = AsyncMock(side_effect=HookError("git", ["git", "init"], "fatal: nope"))
        with patch("microgen.cli.run_hooks", mock_hooks):
            code = run(["new", "orders", "-o", str(tmp_path), "--templates", str(driver_template),
                        "--git", "--no-go-mod"])
        assert code == 1
        assert "fatal: nope" in capsys.readouterr().out
        assert (tmp_path / "orders" / "README.md").is_file()


class TestVersion:
    @pytest.mark.unit
    def test_version_command(self, capsys):
        assert run(["version"]) == 0
        assert __version__ in capsys.readouterr().out

    @pytest.mark.unit
    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    @pytest.mark.unit
    def test_no_command(self, capsys):
        assert run([]) == 1
