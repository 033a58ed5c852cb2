"""Template store discovery for Dropkick."""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .errors import (
    FileNotFoundInTemplateError,
    KickletNotFoundError,
    ManifestError,
    StoreEmptyError,
    StoreNotFoundError,
)
from .file_filter import list_entries, should_show_entry
from .models import Kicklet, SourceFile, Template

logger = logging.getLogger(__name__)

TEMPLATES_ENV_VAR = "DROPKICK_TEMPLATES"


def default_templates_root() -> Path:
    """Get the template store path.

    Uses DROPKICK_TEMPLATES when set, otherwise ~/.bundlegem/templates.
    """
    override = os.environ.get(TEMPLATES_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".bundlegem" / "templates"


class TemplateStore:
    """Read-only view of a directory holding one subdirectory per template.

    Nothing is cached: every call rescans the filesystem, so iteration can
    be restarted at any time and always reflects the current state.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser()

    def iter_templates(self) -> Iterator[Template]:
        """Lazily yield the templates of the store, sorted by name.

        Raises:
            StoreNotFoundError: If the root directory does not exist
        """
        if not self.root.is_dir():
            raise StoreNotFoundError(self.root)

        for entry in list_entries(self.root):
            if entry.is_dir():
                yield Template(name=entry.name, path=entry)

    def __iter__(self) -> Iterator[Template]:
        return self.iter_templates()

    def scan(self) -> List[Template]:
        """Load every template of the store.

        Raises:
            StoreNotFoundError: If the root directory does not exist
            StoreEmptyError: If the root holds no templates
        """
        templates = list(self.iter_templates())
        logger.debug("Found %d template(s) in %s", len(templates), self.root)
        if not templates:
            raise StoreEmptyError(self.root)
        return templates

    def get_template(self, name: str) -> Optional[Template]:
        """Look up a template by name."""
        if not name or '/' in name or name in ('.', '..'):
            return None
        if not self.root.is_dir():
            raise StoreNotFoundError(self.root)
        path = self.root / name
        if path.is_dir() and should_show_entry(path):
            return Template(name=name, path=path)
        return None

    def resolve_file(self, reference: str) -> SourceFile:
        """Resolve a ``<template>/<file>`` reference.

        Raises:
            StoreNotFoundError: If the store root does not exist
            FileNotFoundInTemplateError: If the template or file is missing
        """
        template_name, _, relative_path = reference.strip().strip('/').partition('/')
        if not relative_path:
            raise FileNotFoundInTemplateError(
                template_name, "",
                f"Expected <template>/<file>, got '{reference}'",
            )

        template = self.get_template(template_name)
        if template is None:
            raise FileNotFoundInTemplateError(
                template_name, relative_path,
                f"Template '{template_name}' not found in {self.root}",
            )

        source = template.resolve(relative_path)
        logger.debug("Resolved %s to %s", reference, source.path)
        return source

    def find_kicklet(self, name: str, preferred_template: Optional[str] = None) -> Kicklet:
        """Find a kicklet by ``<template>/<kicklet>`` or by bare name.

        A bare name is looked up in ``preferred_template`` first and then
        across the whole store, where it must be unique.

        Raises:
            StoreNotFoundError: If the store root does not exist
            KickletNotFoundError: If no kicklet, or more than one, matches
            ManifestError: If the named or preferred template has a malformed
                manifest; malformed manifests elsewhere are skipped
        """
        template_name, sep, kicklet_name = name.strip().partition('/')
        if sep:
            template = self.get_template(template_name)
            kicklet = template.get_kicklet(kicklet_name) if template else None
            if kicklet is None:
                raise KickletNotFoundError(name)
            return kicklet

        if preferred_template:
            template = self.get_template(preferred_template)
            kicklet = template.get_kicklet(name) if template else None
            if kicklet is not None:
                return kicklet

        matches = []
        for template in self.iter_templates():
            try:
                kicklets = template.kicklets()
            except ManifestError as e:
                logger.warning("Skipping kicklets of %s: %s", template.name, e)
                continue
            matches.extend(kicklet for kicklet in kicklets if kicklet.name == name)
        if not matches:
            raise KickletNotFoundError(name)
        if len(matches) > 1:
            candidates = ", ".join(k.qualified_name for k in matches)
            raise KickletNotFoundError(
                name, f"Kicklet '{name}' is ambiguous; use one of: {candidates}"
            )
        return matches[0]
