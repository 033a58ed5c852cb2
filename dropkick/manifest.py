"""Kicklet manifest parsing.

A template may carry a ``kicklets.yml`` file mapping each kicklet name to
the ordered list of template-relative files it checks out::

    kicklets:
      ci-pipeline:
        - .gitlab-ci.yaml
        - Dockerfile
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Dict, List

import yaml

from .errors import ManifestError
from .file_filter import MANIFEST_FILENAME

logger = logging.getLogger(__name__)


def normalize_relative_path(raw) -> str:
    """Normalize a template-relative path and reject ones escaping the template.

    Raises:
        ValueError: If the path is empty, absolute, or climbs out with ..
    """
    if not isinstance(raw, str):
        raise ValueError(f"expected a path, got {raw!r}")
    cleaned = raw.strip().replace('\\', '/')
    if not cleaned:
        raise ValueError("empty path")

    path = PurePosixPath(cleaned)
    if path.is_absolute():
        raise ValueError(f"absolute path '{raw}'")

    parts = [part for part in path.parts if part not in ('', '.')]
    if not parts or '..' in parts:
        raise ValueError(f"path '{raw}' leaves the template")
    return '/'.join(parts)


def load_manifest(template_dir: Path) -> Dict[str, List[str]]:
    """Load the kicklet definitions of a template.

    Args:
        template_dir: Template directory that may contain kicklets.yml

    Returns:
        Mapping of kicklet name to ordered relative file paths; empty when
        the template has no manifest

    Raises:
        ManifestError: If the manifest is not valid YAML or breaks the schema
    """
    manifest_path = Path(template_dir) / MANIFEST_FILENAME
    if not manifest_path.is_file():
        return {}

    try:
        with open(manifest_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, OSError, UnicodeDecodeError) as e:
        raise ManifestError(f"Could not read {manifest_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict) or not isinstance(data.get('kicklets', {}), dict):
        raise ManifestError(f"{manifest_path}: expected a 'kicklets' mapping")

    kicklets: Dict[str, List[str]] = {}
    for name, files in (data.get('kicklets') or {}).items():
        if not isinstance(files, list) or not files:
            raise ManifestError(f"{manifest_path}: kicklet '{name}' must list at least one file")
        try:
            kicklets[str(name)] = [normalize_relative_path(entry) for entry in files]
        except ValueError as e:
            raise ManifestError(f"{manifest_path}: kicklet '{name}': {e}") from e

    logger.debug("Loaded %d kicklet(s) from %s", len(kicklets), manifest_path)
    return kicklets
