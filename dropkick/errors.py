"""Error types raised by Dropkick."""

from pathlib import Path
from typing import List, Optional


class DropkickError(Exception):
    """Base class for every error Dropkick reports to the user."""


class ConfigError(DropkickError):
    """The local .dropkickrc file could not be parsed."""


class StoreNotFoundError(DropkickError):
    """The template store root does not exist."""

    def __init__(self, root: Path):
        self.root = Path(root)
        super().__init__(f"Template store not found: {self.root}")


class StoreEmptyError(DropkickError):
    """The template store exists but holds no templates.

    Non-fatal: callers treat it as an empty listing.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.templates: List = []
        super().__init__(f"No templates found in {self.root}")


class ManifestError(DropkickError):
    """A template's kicklet manifest is malformed."""


class FileNotFoundInTemplateError(DropkickError):
    """A referenced file does not exist inside its template."""

    def __init__(self, template: str, relative_path: str, message: Optional[str] = None):
        self.template = template
        self.relative_path = relative_path
        super().__init__(message or f"'{relative_path}' not found in template '{template}'")


class KickletNotFoundError(FileNotFoundInTemplateError):
    """No kicklet matches the requested name."""

    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__("", name, message or f"Kicklet '{name}' not found")


class UnboundVariableError(DropkickError):
    """A placeholder has no value in the interpolation context."""

    def __init__(self, variable: str, source: Optional[str] = None):
        self.variable = variable
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Unbound variable '{variable}'{where}")


class TemplateRenderError(DropkickError):
    """A template file has malformed placeholder syntax."""


class TargetWriteError(DropkickError):
    """Writing a file into the target directory failed."""

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        super().__init__(f"Could not write {self.path}: {reason}")


class OverwriteRefusedError(DropkickError):
    """A destination file exists and overwriting it was not confirmed."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(f"Refusing to overwrite existing file: {self.path}")
