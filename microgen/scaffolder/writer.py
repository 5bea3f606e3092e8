"""Destination writer.

Consumes rendered :class:`OutputEntry` values in order and places them under a
destination root, enforcing an overwrite policy:

* ``REFUSE``: the destination must not exist, and no file is ever
  overwritten (files are created exclusively).
* ``FORCE``: the existing destination is removed entirely before the first
  entry is written, so writing always starts from an empty root.

A failure partway through raises :class:`WriteError` carrying a
:class:`PartialState`.  Nothing is rolled back automatically; callers decide
whether to keep the partial tree or remove it with :func:`cleanup_partial`.
"""

from __future__ import annotations

import os
import shutil
import stat
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from microgen.errors import AlreadyExistsError, WriteError
from microgen.scaffolder.renderer import OutputEntry


class OverwritePolicy(str, Enum):
    REFUSE = "refuse"
    FORCE = "force"


@dataclass(frozen=True)
class PartialState:
    """What had been written when a run failed."""

    destination: Path
    created_root: bool
    written: tuple[Path, ...] = ()
    last_entry: Path | None = None
    failed_entry: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "destination": str(self.destination),
            "created_root": self.created_root,
            "written": [str(p) for p in self.written],
            "last_entry": str(self.last_entry) if self.last_entry else None,
            "failed_entry": str(self.failed_entry) if self.failed_entry else None,
        }


@dataclass(frozen=True)
class GenerationResult:
    """Terminal outcome of a generation run."""

    success: bool
    destination: Path
    files_written: tuple[Path, ...] = ()
    directories_created: tuple[Path, ...] = ()
    partial: PartialState | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def succeeded(
        cls,
        destination: Path,
        files: Iterable[Path],
        directories: Iterable[Path],
        warnings: Iterable[str] = (),
    ) -> "GenerationResult":
        return cls(
            success=True,
            destination=destination,
            files_written=tuple(files),
            directories_created=tuple(directories),
            warnings=tuple(warnings),
        )

    @classmethod
    def failed(cls, partial: PartialState) -> "GenerationResult":
        return cls(
            success=False,
            destination=partial.destination,
            files_written=partial.written,
            partial=partial,
        )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _is_empty_dir(path: Path) -> bool:
    with os.scandir(path) as it:
        return next(it, None) is None


def _remove_destination(destination: Path) -> None:
    if destination.is_symlink() or destination.is_file():
        destination.unlink()
    elif destination.is_dir():
        shutil.rmtree(destination)


def write(
    outputs: Iterable[OutputEntry],
    destination: str | Path,
    policy: OverwritePolicy = OverwritePolicy.REFUSE,
) -> GenerationResult:
    """Write *outputs* under *destination* following *policy*.

    Raises:
        AlreadyExistsError: Under ``REFUSE``, if the destination already exists
            or a file to be written appears during the run.
        WriteError: If any filesystem operation fails.
    """
    destination = Path(destination)
    existed = destination.exists() or destination.is_symlink()

    if existed and policy is OverwritePolicy.REFUSE:
        raise AlreadyExistsError(f"Destination already exists: {destination}", path=destination)

    if existed and policy is OverwritePolicy.FORCE:
        try:
            _remove_destination(destination)
        except OSError as exc:
            raise WriteError(
                f"Failed to remove existing destination {destination}: {exc}",
                partial=PartialState(destination=destination, created_root=False),
                path=destination,
                cause=exc,
            ) from exc
        existed = False

    created_root = not existed
    written: list[Path] = []
    files: list[Path] = []
    directories: list[Path] = []

    def partial(failed: Path | None) -> PartialState:
        return PartialState(
            destination=destination,
            created_root=created_root,
            written=tuple(written),
            last_entry=written[-1] if written else None,
            failed_entry=failed,
        )

    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteError(
            f"Failed to create destination {destination}: {exc}",
            partial=partial(destination),
            path=destination,
            cause=exc,
        ) from exc

    for output in outputs:
        target = destination.joinpath(*output.path.parts)
        try:
            if output.is_dir:
                target.mkdir(parents=True, exist_ok=True)
                target.chmod(output.mode | stat.S_IRWXU)
                directories.append(target)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                with open(target, "xb") as fh:
                    fh.write(output.content)
                target.chmod(output.mode)
                files.append(target)
        except FileExistsError as exc:
            raise AlreadyExistsError(
                f"Refusing to overwrite existing file {target}",
                path=target,
                partial=partial(target),
            ) from exc
        except OSError as exc:
            raise WriteError(
                f"Failed to write {target}: {exc}",
                partial=partial(target),
                path=target,
                cause=exc,
            ) from exc
        written.append(target)

    return GenerationResult.succeeded(destination, files, directories)


def cleanup_partial(partial: PartialState) -> None:
    """Remove what a failed run left behind.

    If the run created the destination root, the whole root is removed.
    Otherwise only the paths recorded in *partial* are removed, newest first;
    directories that are not empty are left in place.
    """
    if partial.created_root:
        if partial.destination.exists():
            shutil.rmtree(partial.destination)
        return
    for path in reversed(partial.written):
        if path.is_dir() and not path.is_symlink():
            if _is_empty_dir(path):
                path.rmdir()
        elif path.exists() or path.is_symlink():
            path.unlink()
