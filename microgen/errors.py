"""Exceptions raised by the microgen generation engine.

Every error aborts the run it belongs to.  Each carries enough context (the
offending path and the underlying cause) for the caller to decide what to do
next; nothing is retried automatically.
"""

from __future__ import annotations

from pathlib import Path, PurePath
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from microgen.scaffolder.collision import CollisionReport
    from microgen.scaffolder.writer import PartialState


class ScaffoldError(Exception):
    """Base class for every generation failure."""

    def __init__(
        self,
        message: str,
        *,
        path: PurePath | str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.path = path
        self.cause = cause
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly description of the error."""
        return {
            "error": type(self).__name__,
            "message": str(self),
            "path": str(self.path) if self.path is not None else None,
            "cause": repr(self.cause) if self.cause is not None else None,
        }


class ReadError(ScaffoldError):
    """The template tree (or its manifest) could not be read."""


class RenderError(ScaffoldError):
    """A template entry could not be turned into an output entry."""


class UnknownPlaceholderError(RenderError):
    """A template references a placeholder that is not declared."""

    def __init__(self, names: list[str] | tuple[str, ...], *, path: PurePath | str | None = None) -> None:
        self.names = tuple(sorted(set(names)))
        listed = ", ".join(self.names)
        location = f" in {path}" if path is not None else ""
        super().__init__(f"Unknown placeholder(s){location}: {listed}", path=path)


class AlreadyExistsError(ScaffoldError):
    """The destination already exists and overwriting was not requested."""

    def __init__(
        self,
        message: str,
        *,
        path: PurePath | str | None = None,
        report: CollisionReport | None = None,
        partial: PartialState | None = None,
    ) -> None:
        self.report = report
        self.partial = partial
        super().__init__(message, path=path)


class WriteError(ScaffoldError):
    """Writing the destination tree failed partway through.

    ``partial`` describes what had been written when the failure happened so
    the caller can inspect or remove it with
    :func:`microgen.scaffolder.writer.cleanup_partial`.
    """

    def __init__(
        self,
        message: str,
        *,
        partial: PartialState,
        path: PurePath | str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.partial = partial
        super().__init__(message, path=path, cause=cause)

    @property
    def destination(self) -> Path:
        return self.partial.destination


class HookError(ScaffoldError):
    """A post-generation command (module tooling, git) failed."""

    def __init__(self, hook: str, command: list[str], stderr: str = "") -> None:
        self.hook = hook
        self.command = list(command)
        self.stderr = stderr
        detail = f": {stderr}" if stderr else ""
        super().__init__(f"{hook} failed running '{' '.join(command)}'{detail}")
