"""Main scaffolding orchestrator.

Takes a :class:`ServiceConfig` and a template directory and produces a new
service tree:

1. inspect the destination (collision gate);
2. walk the whole template tree into memory;
3. render every entry, dropping unselected conditional groups;
4. write the rendered entries.

Steps 2 and 3 finish before step 4 starts, so an unreadable template or an
unknown placeholder aborts the run before the destination is touched, even
under ``force``.
"""

from __future__ import annotations

from pathlib import Path

from microgen.config import DEFAULT_TEMPLATE_DIR, ServiceConfig
from microgen.errors import AlreadyExistsError
from microgen.scaffolder.collision import CollisionReport, check_destination
from microgen.scaffolder.renderer import OutputEntry, TemplateRenderer
from microgen.scaffolder.walker import walk
from microgen.scaffolder.writer import GenerationResult, OverwritePolicy, write


class ServiceGenerator:
    """Generates one service from a template tree.

    Holds no state between runs beyond its configuration and template
    location; :meth:`generate` may be called for several destinations.
    """

    def __init__(self, config: ServiceConfig, template_dir: str | Path | None = None) -> None:
        self.config = config
        self.template_dir = Path(template_dir) if template_dir is not None else DEFAULT_TEMPLATE_DIR
        self.renderer = TemplateRenderer()

    # -- Public API --------------------------------------------------------

    def plan(self) -> list[OutputEntry]:
        """Walk and render the template without writing anything."""
        entries = list(walk(self.template_dir))
        return self.renderer.render_all(entries, self.config)

    def check(self, destination: str | Path) -> CollisionReport:
        return check_destination(destination)

    def generate(self, destination: str | Path, *, force: bool = False) -> GenerationResult:
        """Generate the service tree at *destination*.

        Args:
            destination: Root directory of the generated service.
            force: Replace whatever already exists at *destination*.

        Returns:
            A successful :class:`GenerationResult`.  When *force* replaced an
            existing tree the result carries the collision warning.

        Raises:
            AlreadyExistsError: If anything, even an empty directory, exists at
                *destination* and *force* is not set.
            ReadError, RenderError, UnknownPlaceholderError: Template
                problems; nothing has been written.
            WriteError: Writing failed partway; see ``error.partial``.
        """
        destination = Path(destination)
        report = self.check(destination)
        if report.blocking and not force:
            raise AlreadyExistsError(
                report.message(self.config.service_name), path=destination, report=report
            )

        outputs = self.plan()

        warnings: list[str] = []
        policy = OverwritePolicy.REFUSE
        if force and report.blocking:
            policy = OverwritePolicy.FORCE
            warnings.append(report.warning(self.config.service_name))

        result = write(outputs, destination, policy)
        return GenerationResult.succeeded(
            result.destination,
            result.files_written,
            result.directories_created,
            warnings=warnings,
        )
