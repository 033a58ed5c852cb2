from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import FileNotFoundInTemplateError
from .file_filter import TEMPLATE_SUFFIX, is_ignored_name, iter_files, strip_template_suffix
from .manifest import load_manifest, normalize_relative_path


@dataclass(frozen=True)
class SourceFile:
    """A single template file resolved for checkout."""

    template: str
    relative_path: str
    path: Path

    @property
    def destination(self) -> str:
        """Path relative to the target directory, with .tt removed."""
        return strip_template_suffix(self.relative_path)

    @property
    def is_template(self) -> bool:
        """Whether the file is a .tt template rendered on checkout."""
        return self.destination != self.relative_path

    @property
    def reference(self) -> str:
        return f"{self.template}/{self.relative_path}"


@dataclass(frozen=True)
class Template:
    """A named directory of project files in the template store."""

    name: str
    path: Path

    def files(self) -> List[str]:
        """Relative paths of every file in the template, in a stable order."""
        return list(iter_files(self.path))

    def kicklets(self) -> List["Kicklet"]:
        """Kicklets declared in the template's manifest, in manifest order."""
        return [
            Kicklet(name=name, template=self, files=tuple(files))
            for name, files in load_manifest(self.path).items()
        ]

    def get_kicklet(self, name: str) -> Optional["Kicklet"]:
        for kicklet in self.kicklets():
            if kicklet.name == name:
                return kicklet
        return None

    def resolve(self, relative_path: str) -> SourceFile:
        """Resolve a template-relative path to a file on disk.

        The path may name the file exactly or leave out its .tt suffix.

        Raises:
            FileNotFoundInTemplateError: If no such file exists in the template, or
                it is hidden from the template tree (.git, kicklets.yml, ...)
        """
        try:
            normalized = normalize_relative_path(relative_path)
        except ValueError as e:
            raise FileNotFoundInTemplateError(
                self.name, str(relative_path), f"Invalid path in template '{self.name}': {e}"
            ) from e

        if any(is_ignored_name(part) for part in normalized.split("/")):
            raise FileNotFoundInTemplateError(self.name, normalized)

        for candidate in (normalized, normalized + TEMPLATE_SUFFIX):
            path = self.path / candidate
            if path.is_file():
                return SourceFile(template=self.name, relative_path=candidate, path=path)

        raise FileNotFoundInTemplateError(self.name, normalized)


@dataclass(frozen=True)
class Kicklet:
    """A named group of files within one template, checked out together."""

    name: str
    template: Template
    files: Tuple[str, ...]

    @property
    def qualified_name(self) -> str:
        return f"{self.template.name}/{self.name}"

    def resolve(self) -> List[SourceFile]:
        """Resolve every file of the kicklet, in declaration order."""
        return [self.template.resolve(relative_path) for relative_path in self.files]


@dataclass
class CheckoutResult:
    """Outcome of a successful checkout operation."""

    written: List[Path] = field(default_factory=list)
    interpolated: List[Path] = field(default_factory=list)
    overwritten: List[Path] = field(default_factory=list)


@dataclass
class ProjectConfig:
    """Local project settings read from .dropkickrc."""

    name: Optional[str] = None
    template: Optional[str] = None
    prefix: str = ""
    strict: Optional[bool] = None
    variables: Dict[str, Any] = field(default_factory=dict)
