"""Template tree walker.

Enumerates a template directory in a deterministic order (every directory
before its children, siblings sorted by name) and classifies each node as a
directory, a static file (copied byte-for-byte) or a template-bearing file
(rendered with Jinja2).  File contents are read during the walk so that any
read failure happens before the first byte is written to the destination.

An optional ``.microgen.yaml`` manifest at the template root declares
conditional groups, files that must be copied verbatim, and files to leave
out entirely::

    static:
      - "docs/**/*.tmpl"
    exclude:
      - "*.orig"
    groups:
      db_driver:
        mysql: ["migrations/mysql"]
        postgres: ["migrations/postgres"]
"""

from __future__ import annotations

import os
import stat
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath

import yaml
from pydantic import BaseModel, Field, ValidationError

from microgen.errors import ReadError

MANIFEST_NAME = ".microgen.yaml"
TEMPLATE_SUFFIX = ".j2"

# Jinja2 delimiters; shared with the renderer.
MARKERS = ("{{", "{%", "{#")

IGNORED_NAMES = frozenset({".git", ".hg", ".svn", "__pycache__", ".DS_Store"})


class EntryKind(str, Enum):
    DIRECTORY = "directory"
    FILE = "file"


@dataclass(frozen=True)
class GroupTag:
    """Restricts an entry to configurations where ``selector == value``."""

    selector: str
    value: str

    def __str__(self) -> str:
        return f"{self.selector}={self.value}"


@dataclass(frozen=True)
class TemplateEntry:
    """One node of the template tree.  Read-only once loaded."""

    path: PurePosixPath
    kind: EntryKind
    is_template: bool = False
    content: bytes = b""
    mode: int = 0o755
    groups: tuple[GroupTag, ...] = ()

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class TemplateManifest(BaseModel):
    """Parsed ``.microgen.yaml``."""

    static: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    groups: dict[str, dict[str, list[str]]] = Field(default_factory=dict)

    def is_static(self, rel_path: str) -> bool:
        return _matches_any(rel_path, self.static)

    def is_excluded(self, rel_path: str) -> bool:
        return _matches_any(rel_path, self.exclude)

    def tags_for(self, rel_path: str) -> tuple[GroupTag, ...]:
        """Return the group tags declared for *rel_path* itself."""
        tags: list[GroupTag] = []
        for selector in sorted(self.groups):
            for value in sorted(self.groups[selector]):
                if _matches_any(rel_path, self.groups[selector][value]):
                    tags.append(GroupTag(selector, value))
        return tuple(tags)


def _matches_any(rel_path: str, patterns: list[str]) -> bool:
    name = rel_path.rsplit("/", 1)[-1]
    for pattern in patterns:
        pattern = pattern.strip("/")
        if fnmatchcase(rel_path, pattern):
            return True
        # Bare patterns (no slash) match on the file name at any depth.
        if "/" not in pattern and fnmatchcase(name, pattern):
            return True
    return False


def load_manifest(template_root: str | Path) -> TemplateManifest:
    """Load the manifest at *template_root*, or an empty one if absent.

    Raises:
        ReadError: If the manifest exists but cannot be read or is invalid.
    """
    manifest_path = Path(template_root) / MANIFEST_NAME
    if not manifest_path.is_file():
        return TemplateManifest()
    try:
        raw = yaml.safe_load(manifest_path.read_text(encoding="utf-8")) or {}
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        raise ReadError(
            f"Cannot read template manifest {manifest_path}", path=manifest_path, cause=exc
        ) from exc
    try:
        return TemplateManifest.model_validate(raw)
    except ValidationError as exc:
        raise ReadError(
            f"Invalid template manifest {manifest_path}: {exc}", path=manifest_path, cause=exc
        ) from exc


# ---------------------------------------------------------------------------
# Walking
# ---------------------------------------------------------------------------


def has_markers(text: str) -> bool:
    """Return ``True`` if *text* contains a placeholder delimiter."""
    return any(marker in text for marker in MARKERS)


def _is_template(name: str, content: bytes) -> bool:
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        # Binary content is always copied verbatim, whatever its name.
        return False
    return name.endswith(TEMPLATE_SUFFIX) or has_markers(text)


def walk(template_root: str | Path) -> Iterator[TemplateEntry]:
    """Yield every entry of the template tree in deterministic order.

    The root itself is not yielded.  Each call starts a fresh walk; the
    generator keeps no state between runs.

    Raises:
        ReadError: If the root is missing, a directory cannot be listed, or a
            file cannot be read.
    """
    root = Path(template_root)
    if not root.is_dir():
        raise ReadError(f"Template directory not found: {root}", path=root)
    manifest = load_manifest(root)
    yield from _walk_dir(root, PurePosixPath(), manifest, ())


def _walk_dir(
    directory: Path,
    rel_dir: PurePosixPath,
    manifest: TemplateManifest,
    inherited: tuple[GroupTag, ...],
) -> Iterator[TemplateEntry]:
    try:
        with os.scandir(directory) as it:
            children = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        raise ReadError(f"Cannot list template directory {directory}", path=directory, cause=exc) from exc

    for child in children:
        rel = rel_dir / child.name
        rel_str = rel.as_posix()
        if child.name in IGNORED_NAMES or manifest.is_excluded(rel_str):
            continue
        if not rel_dir.parts and child.name == MANIFEST_NAME:
            continue

        tags = inherited + tuple(t for t in manifest.tags_for(rel_str) if t not in inherited)
        try:
            is_dir = child.is_dir(follow_symlinks=False)
            is_symlink = child.is_symlink()
            st = child.stat()
        except OSError as exc:
            raise ReadError(f"Cannot stat template entry {child.path}", path=child.path, cause=exc) from exc

        if is_dir:
            yield TemplateEntry(
                path=rel,
                kind=EntryKind.DIRECTORY,
                mode=stat.S_IMODE(st.st_mode),
                groups=tags,
            )
            yield from _walk_dir(Path(child.path), rel, manifest, tags)
            continue
        if is_symlink and stat.S_ISDIR(st.st_mode):
            # Symlinked directories are not followed.
            continue

        try:
            content = Path(child.path).read_bytes()
        except OSError as exc:
            raise ReadError(f"Cannot read template file {child.path}", path=child.path, cause=exc) from exc

        if manifest.is_static(rel_str):
            is_template = False
        else:
            is_template = _is_template(child.name, content)

        yield TemplateEntry(
            path=rel,
            kind=EntryKind.FILE,
            is_template=is_template,
            content=content,
            mode=stat.S_IMODE(st.st_mode),
            groups=tags,
        )
