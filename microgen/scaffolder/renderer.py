"""Jinja2 rendering of template entries.

Provides the :class:`TemplateRenderer`, which turns :class:`TemplateEntry`
values into :class:`OutputEntry` values for one :class:`ServiceConfig`:

* file contents of template-bearing entries are rendered with Jinja2;
* every path component containing a placeholder is rendered the same way;
* entries tagged with a conditional group that the configuration does not
  select are dropped, though their names are still checked.

Placeholders are resolved through :data:`PLACEHOLDERS`, the single declared
mapping from placeholder name to configuration field.  Any other name in a
template is an :class:`UnknownPlaceholderError`; unresolved markers are never
written out.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError, meta

from microgen.config import ServiceConfig
from microgen.errors import RenderError, UnknownPlaceholderError
from microgen.scaffolder.walker import TEMPLATE_SUFFIX, EntryKind, TemplateEntry, has_markers


def _field(name: str) -> Callable[[ServiceConfig], Any]:
    def accessor(config: ServiceConfig) -> Any:
        value = getattr(config, name)
        return value.value if isinstance(value, Enum) else value

    return accessor


PLACEHOLDERS: dict[str, Callable[[ServiceConfig], Any]] = {
    "service": _field("service_name"),
    "module": _field("module_name"),
    "description": _field("description"),
    "version": _field("version"),
    "author": _field("author"),
    "port": _field("port"),
    "grpc_port": _field("grpc_port"),
    "db_driver": _field("db_driver"),
    "db_url": _field("db_url"),
    "db_host": _field("db_host"),
    "db_port": _field("db_port"),
    "db_user": _field("db_user"),
    "db_password": _field("db_password"),
    "db_name": _field("db_name"),
    "redis_url": _field("redis_url"),
    "redis_host": _field("redis_host"),
    "redis_port": _field("redis_port"),
    "redis_db": _field("redis_db"),
    "redis_password": _field("redis_password"),
    "environment": _field("environment"),
}


def build_context(config: ServiceConfig) -> dict[str, Any]:
    """Resolve every declared placeholder against *config*."""
    return {name: accessor(config) for name, accessor in PLACEHOLDERS.items()}


@dataclass(frozen=True)
class OutputEntry:
    """Destination-bound counterpart of a :class:`TemplateEntry`."""

    path: PurePosixPath
    kind: EntryKind
    content: bytes = b""
    mode: int = 0o644
    source: PurePosixPath | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders template entries for a single configuration.

    The renderer never touches the filesystem and never mutates the
    configuration it is given.
    """

    def __init__(self) -> None:
        self.env = Environment(
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["camel_case"] = _camel_case_filter
        # Jinja normalises line endings to newline_sequence; CRLF sources keep theirs.
        self.crlf_env = self.env.overlay(newline_sequence="\r\n")

    # -- Strings ------------------------------------------------------------

    def check_names(self, source: str, *, path: PurePosixPath | str | None = None) -> None:
        """Raise :class:`UnknownPlaceholderError` if *source* uses an undeclared name."""
        try:
            unknown = meta.find_undeclared_variables(self.env.parse(source)) - PLACEHOLDERS.keys()
        except TemplateSyntaxError as exc:
            raise RenderError(
                f"Template syntax error in {path or '<string>'} line {exc.lineno}: {exc.message}",
                path=path,
                cause=exc,
            ) from exc
        if unknown:
            raise UnknownPlaceholderError(sorted(unknown), path=path)

    def render_string(
        self,
        source: str,
        context: dict[str, Any],
        *,
        path: PurePosixPath | str | None = None,
    ) -> str:
        """Render *source*, rejecting any name not in :data:`PLACEHOLDERS`."""
        self.check_names(source, path=path)
        env = self.crlf_env if "\r\n" in source else self.env
        try:
            return env.from_string(source).render(**context)
        except TemplateSyntaxError as exc:
            raise RenderError(
                f"Template syntax error in {path or '<string>'} line {exc.lineno}: {exc.message}",
                path=path,
                cause=exc,
            ) from exc
        except UndefinedError as exc:
            # Attribute access on a declared placeholder, e.g. ``{{ port.x }}``.
            raise RenderError(f"Undefined value in {path or '<string>'}: {exc}", path=path, cause=exc) from exc

    # -- Paths --------------------------------------------------------------

    def render_path(
        self,
        path: PurePosixPath,
        context: dict[str, Any],
        *,
        strip_suffix: bool = False,
    ) -> PurePosixPath:
        """Render each component of *path*.

        A component may render to a value containing ``/`` (for instance a
        module path); the result is then nested.  Empty, ``.``/``..`` and
        absolute results are rejected.
        """
        parts: list[str] = []
        components = list(path.parts)
        if strip_suffix and components and components[-1].endswith(TEMPLATE_SUFFIX):
            components[-1] = components[-1][: -len(TEMPLATE_SUFFIX)]

        for component in components:
            rendered = self.render_string(component, context, path=path) if has_markers(component) else component
            if rendered.startswith("/"):
                raise RenderError(f"Path component of {path} renders to an absolute path: {rendered!r}", path=path)
            pieces = [piece for piece in rendered.split("/") if piece]
            if not pieces or any(piece in (".", "..") for piece in pieces):
                raise RenderError(f"Path component of {path} renders to an invalid name: {rendered!r}", path=path)
            parts.extend(pieces)
        return PurePosixPath(*parts)

    # -- Entries ------------------------------------------------------------

    def is_selected(self, entry: TemplateEntry, context: dict[str, Any]) -> bool:
        """Return ``True`` if every group tag on *entry* matches *context*."""
        for tag in entry.groups:
            if tag.selector not in PLACEHOLDERS:
                raise UnknownPlaceholderError([tag.selector], path=entry.path)
            if str(context[tag.selector]) != tag.value:
                return False
        return True

    def validate(self, entry: TemplateEntry) -> None:
        """Check every name *entry* references, whether or not it is selected.

        Covers group selectors, placeholder-bearing path components and the
        content of template-bearing files.
        """
        for tag in entry.groups:
            if tag.selector not in PLACEHOLDERS:
                raise UnknownPlaceholderError([tag.selector], path=entry.path)
        for component in entry.path.parts:
            if has_markers(component):
                self.check_names(component, path=entry.path)
        if entry.is_template and not entry.is_dir:
            try:
                source = entry.content.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise RenderError(f"Template {entry.path} is not valid UTF-8", path=entry.path, cause=exc) from exc
            self.check_names(source, path=entry.path)

    def render(self, entry: TemplateEntry, config: ServiceConfig) -> OutputEntry | None:
        """Translate one entry, or return ``None`` if its group is not selected."""
        return self._render(entry, build_context(config))

    def _render(self, entry: TemplateEntry, context: dict[str, Any]) -> OutputEntry | None:
        if not self.is_selected(entry, context):
            return None

        out_path = self.render_path(entry.path, context, strip_suffix=entry.is_template)
        if entry.is_dir:
            return OutputEntry(path=out_path, kind=EntryKind.DIRECTORY, mode=entry.mode, source=entry.path)

        content = entry.content
        if entry.is_template:
            try:
                source = entry.content.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise RenderError(f"Template {entry.path} is not valid UTF-8", path=entry.path, cause=exc) from exc
            content = self.render_string(source, context, path=entry.path).encode("utf-8")

        return OutputEntry(
            path=out_path,
            kind=EntryKind.FILE,
            content=content,
            mode=entry.mode,
            source=entry.path,
        )

    def render_all(self, entries: Iterable[TemplateEntry], config: ServiceConfig) -> list[OutputEntry]:
        """Render *entries* in order, dropping unselected groups.

        Every entry is validated first, including the ones the configuration
        does not select, so a bad name in any variant fails every run.

        Raises:
            RenderError: If two entries render to the same destination path.
            UnknownPlaceholderError: If any entry references an unknown name.
        """
        entries = list(entries)
        for entry in entries:
            self.validate(entry)

        context = build_context(config)
        outputs: list[OutputEntry] = []
        seen: dict[PurePosixPath, OutputEntry] = {}

        for entry in entries:
            output = self._render(entry, context)
            if output is None:
                continue
            previous = seen.get(output.path)
            if previous is not None:
                # Two templates may legitimately name the same directory.
                if previous.is_dir and output.is_dir:
                    continue
                raise RenderError(
                    f"{entry.path} and {previous.source} both render to {output.path}",
                    path=output.path,
                )
            seen[output.path] = output
            outputs.append(output)
        return outputs


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", str(value).lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", str(value))
    return "".join(word.capitalize() for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", str(value))
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""
