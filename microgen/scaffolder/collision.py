"""Pre-flight inspection of the destination directory.

:func:`check_destination` looks at the destination before anything is walked,
rendered or written and classifies what is already there, so the caller can
either stop with an actionable message or, when forcing, print a warning and
let the writer remove the existing tree.  The check itself never modifies the
filesystem.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

MODULE_MANIFESTS = ("go.mod",)
SOURCE_PATTERNS = ("*.go",)


class CollisionKind(str, Enum):
    NONE = "none"
    EMPTY = "empty"
    SOURCE = "source"
    MODULE = "module"
    UNRELATED = "unrelated"
    NOT_A_DIRECTORY = "not-a-directory"


@dataclass(frozen=True)
class CollisionReport:
    """What already occupies a destination path."""

    destination: Path
    kind: CollisionKind
    found: tuple[Path, ...] = ()

    @property
    def exists(self) -> bool:
        return self.kind is not CollisionKind.NONE

    @property
    def blocking(self) -> bool:
        """Whether generation must stop unless forced."""
        return self.kind is not CollisionKind.NONE

    def message(self, service_name: str | None = None) -> str:
        """Explain the collision and how to resolve it."""
        name = service_name or self.destination.name
        if self.kind is CollisionKind.SOURCE:
            listed = "\n   ".join(str(p) for p in self.found)
            headline = (
                f'Service "{name}" already exists at: {self.destination}\n\n'
                f"This appears to be an existing project with source files:\n   {listed}"
            )
        elif self.kind is CollisionKind.MODULE:
            headline = (
                f'Module "{name}" already exists at: {self.destination}\n\n'
                f"This appears to be an existing module with a {self.found[0].name} file."
            )
        elif self.kind is CollisionKind.NOT_A_DIRECTORY:
            headline = f"A file already exists at: {self.destination}"
        elif self.kind is CollisionKind.UNRELATED:
            headline = f'Directory "{name}" already exists at: {self.destination}'
        elif self.kind is CollisionKind.EMPTY:
            headline = f'An empty directory "{name}" already exists at: {self.destination}'
        else:
            return f"Destination is free: {self.destination}"

        return (
            f"{headline}\n\n"
            "To resolve this, you can:\n"
            "   - Use a different service name\n"
            f"   - Remove the existing path: rm -rf {self.destination}\n"
            f"   - Use --force to overwrite: microgen new {name} --force"
        )

    def warning(self, service_name: str | None = None) -> str:
        """Downgraded message used when the caller forces an overwrite."""
        name = service_name or self.destination.name
        return f"Service '{name}' already exists at {self.destination}. Overwriting due to --force flag..."


def check_destination(destination: str | Path) -> CollisionReport:
    """Classify whatever currently sits at *destination*."""
    destination = Path(destination)
    if not destination.exists() and not destination.is_symlink():
        return CollisionReport(destination, CollisionKind.NONE)
    if not destination.is_dir():
        return CollisionReport(destination, CollisionKind.NOT_A_DIRECTORY)

    sources = sorted(p for pattern in SOURCE_PATTERNS for p in destination.glob(pattern) if p.is_file())
    if sources:
        return CollisionReport(destination, CollisionKind.SOURCE, tuple(sources))

    manifests = [destination / name for name in MODULE_MANIFESTS if (destination / name).is_file()]
    if manifests:
        return CollisionReport(destination, CollisionKind.MODULE, tuple(manifests))

    if any(destination.iterdir()):
        return CollisionReport(destination, CollisionKind.UNRELATED)
    return CollisionReport(destination, CollisionKind.EMPTY)
