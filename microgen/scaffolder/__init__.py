"""microgen scaffolder, the template generation engine.

Walks a template directory, renders placeholders in file contents and names
from a :class:`~microgen.config.ServiceConfig`, drops conditional groups the
configuration does not select, and writes the result to a destination
directory under an explicit overwrite policy.

Quick usage::

    from microgen.config import apply_overrides, new_config
    from microgen.scaffolder import ServiceGenerator

    config = apply_overrides(new_config("orders"), {"db_driver": "postgres"})
    result = ServiceGenerator(config).generate("/tmp/orders")
"""

from microgen.scaffolder.collision import CollisionKind, CollisionReport, check_destination
from microgen.scaffolder.generator import ServiceGenerator
from microgen.scaffolder.renderer import PLACEHOLDERS, OutputEntry, TemplateRenderer
from microgen.scaffolder.walker import EntryKind, GroupTag, TemplateEntry, walk
from microgen.scaffolder.writer import (
    GenerationResult,
    OverwritePolicy,
    PartialState,
    cleanup_partial,
    write,
)

__all__ = [
    "PLACEHOLDERS",
    "CollisionKind",
    "CollisionReport",
    "EntryKind",
    "GenerationResult",
    "GroupTag",
    "OutputEntry",
    "OverwritePolicy",
    "PartialState",
    "ServiceGenerator",
    "TemplateEntry",
    "TemplateRenderer",
    "check_destination",
    "cleanup_partial",
    "walk",
    "write",
]
