"""
Checkout of template files into a target directory.

A checkout operation is all-or-nothing. Every file is read, rendered if
it is a .tt template, and checked for conflicts before anything is
written; if a write then fails, the files written so far are removed,
overwritten files get their previous content and mode back, and
directories created by the operation are removed again.
"""

import logging
import os
import shutil
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .errors import DropkickError, TargetWriteError, OverwriteRefusedError
from .file_filter import is_binary
from .interpolation import Interpolator, needs_rendering
from .models import CheckoutResult, Kicklet, SourceFile, Template

logger = logging.getLogger(__name__)

ConfirmOverwrite = Callable[[Path], bool]


@dataclass
class PlannedWrite:
    """A file ready to be written, with its final content."""

    source: SourceFile
    destination: Path
    content: bytes
    interpolated: bool = False
    overwrite: bool = False


@dataclass
class _Journal:
    """Records what an operation changed so it can be undone."""

    created_files: List[Path] = field(default_factory=list)
    backups: List[Tuple[Path, bytes, int]] = field(default_factory=list)
    created_dirs: List[Path] = field(default_factory=list)

    def rollback(self) -> None:
        for path in reversed(self.created_files):
            try:
                path.unlink()
            except (FileNotFoundError, NotADirectoryError):
                pass
            except OSError as e:
                logger.warning("Rollback could not remove %s: %s", path, e)

        for path, content, mode in reversed(self.backups):
            try:
                path.write_bytes(content)
                os.chmod(path, mode)
            except OSError as e:
                logger.warning("Rollback could not restore %s: %s", path, e)

        for directory in reversed(self.created_dirs):
            try:
                directory.rmdir()
            except OSError as e:
                logger.warning("Rollback could not remove directory %s: %s", directory, e)


class CheckoutExecutor:
    """Copies template files into a target directory."""

    def __init__(self,
                 target_dir: Union[str, Path],
                 interpolator: Optional[Interpolator] = None,
                 context_provider: Optional[Callable[[], Dict[str, Any]]] = None,
                 confirm_overwrite: Optional[ConfirmOverwrite] = None):
        """Initialize the executor.

        Args:
            target_dir: Directory files are checked out into
            interpolator: Engine for text files; strict by default
            context_provider: Builds the interpolation context, called at
                most once per operation and only if a file needs it
            confirm_overwrite: Asked before replacing an existing file;
                when missing, existing files are never replaced
        """
        self.target_dir = Path(target_dir)
        self.interpolator = interpolator or Interpolator()
        self.context_provider = context_provider
        self.confirm_overwrite = confirm_overwrite

    def checkout_file(self, template: Template, relative_path: str) -> CheckoutResult:
        """Check out a single file of a template."""
        return self.checkout([template.resolve(relative_path)])

    def checkout_kicklet(self, kicklet: Kicklet) -> CheckoutResult:
        """Check out every file of a kicklet, or none of them."""
        return self.checkout(kicklet.resolve())

    def checkout(self, sources: Sequence[SourceFile]) -> CheckoutResult:
        """Check out a set of resolved template files as one operation.

        Raises:
            OverwriteRefusedError: If a destination exists and was not confirmed
            TargetWriteError: If a file could not be read or written
            UnboundVariableError: If strict interpolation finds a missing value
        """
        plan = self.plan(sources)

        journal = _Journal()
        result = CheckoutResult()
        try:
            for item in plan:
                self._write(item, journal)
                result.written.append(item.destination)
                if item.interpolated:
                    result.interpolated.append(item.destination)
                if item.overwrite:
                    result.overwritten.append(item.destination)
        except (DropkickError, KeyboardInterrupt):
            logger.warning("Checkout failed, rolling back %d file(s)", len(result.written))
            journal.rollback()
            raise

        logger.debug("Checked out %d file(s) into %s", len(result.written), self.target_dir)
        return result

    def plan(self, sources: Sequence[SourceFile]) -> List[PlannedWrite]:
        """Read, interpolate and conflict-check every source without writing."""
        context_cache: Dict[str, Dict[str, Any]] = {}

        def get_context() -> Dict[str, Any]:
            if "context" not in context_cache:
                context_cache["context"] = self.context_provider() if self.context_provider else {}
            return context_cache["context"]

        plan: List[PlannedWrite] = []
        seen = set()
        for source in sources:
            if source.destination in seen:
                logger.debug("Skipping duplicate destination %s", source.destination)
                continue
            seen.add(source.destination)

            destination = self.target_dir / source.destination
            content, interpolated = self._render(source, get_context)

            overwrite = False
            if destination.exists():
                if destination.is_dir():
                    raise TargetWriteError(destination, "a directory is in the way")
                if not (self.confirm_overwrite and self.confirm_overwrite(destination)):
                    raise OverwriteRefusedError(destination)
                overwrite = True

            plan.append(PlannedWrite(
                source=source,
                destination=destination,
                content=content,
                interpolated=interpolated,
                overwrite=overwrite,
            ))
        return plan

    def _render(self, source: SourceFile, get_context: Callable[[], Dict[str, Any]]) -> Tuple[bytes, bool]:
        try:
            data = source.path.read_bytes()
        except OSError as e:
            raise TargetWriteError(source.path, f"cannot read template file ({e.strerror or e})") from e

        # Only .tt files are templates; everything else is copied verbatim
        if not source.is_template or is_binary(data, source.path.name):
            return data, False

        text = data.decode('utf-8')
        if not needs_rendering(text):
            return data, False

        rendered = self.interpolator.render(text, get_context(), source=source.reference)
        return rendered.encode('utf-8'), True

    def _write(self, item: PlannedWrite, journal: _Journal) -> None:
        destination = item.destination
        try:
            missing_dirs = []
            parent = destination.parent
            while not parent.exists():
                missing_dirs.append(parent)
                parent = parent.parent
            for directory in reversed(missing_dirs):
                directory.mkdir()
                journal.created_dirs.append(directory)

            if item.overwrite:
                journal.backups.append((
                    destination,
                    destination.read_bytes(),
                    stat.S_IMODE(destination.stat().st_mode),
                ))
            else:
                journal.created_files.append(destination)
            destination.write_bytes(item.content)
            shutil.copymode(item.source.path, destination)
        except OSError as e:
            raise TargetWriteError(destination, e.strerror or str(e)) from e
