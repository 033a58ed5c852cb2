"""
File filtering for the template store.

This module decides which entries of a template directory are shown to
the user, walks a template's file tree in a stable order, and tells text
files (which get interpolated) apart from binary files (copied as-is).
"""

import fnmatch
import os
from pathlib import Path
from typing import Iterator, List, Optional

TEMPLATE_SUFFIX = ".tt"

MANIFEST_FILENAME = "kicklets.yml"

# Entries never shown in the template tree
IGNORE_PATTERNS = [
    ".git",
    "node_modules",
    ".DS_Store",
    "__pycache__",
    "*.swp",
    "*~",
    MANIFEST_FILENAME,
]

BINARY_EXTENSIONS = {
    '.exe', '.dll', '.so', '.dylib', '.a', '.lib', '.bin',
    '.zip', '.tar', '.gz', '.bz2', '.xz', '.7z', '.rar',
    '.pdf', '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.ico', '.tiff',
    '.mp3', '.mp4', '.mov', '.ttf', '.otf', '.woff', '.woff2', '.eot',
}

# Sniff window for binary detection
SNIFF_BYTES = 8192

# Lexers for files the extension alone does not identify
SPECIAL_FILE_LEXERS = {
    'dockerfile': 'docker',
    'gemfile': 'ruby',
    'rakefile': 'ruby',
    'guardfile': 'ruby',
    'capfile': 'ruby',
    'vagrantfile': 'ruby',
    'makefile': 'make',
    'cmakelists.txt': 'cmake',
    'justfile': 'make',
}


def is_ignored_name(name: str) -> bool:
    """Check a single path component against the ignore patterns."""
    return any(fnmatch.fnmatch(name.lower(), pattern.lower()) for pattern in IGNORE_PATTERNS)


def should_show_entry(path: Path) -> bool:
    """Check whether a directory entry belongs in the template tree."""
    if is_ignored_name(path.name):
        return False
    return path.is_dir() or path.is_file()


def list_entries(directory: Path) -> List[Path]:
    """List visible entries of a directory, sorted by name."""
    try:
        entries = [entry for entry in directory.iterdir() if should_show_entry(entry)]
    except OSError:
        return []
    return sorted(entries, key=lambda p: p.name)


def iter_files(root: Path) -> Iterator[str]:
    """Walk a template directory and yield file paths relative to it.

    Paths use forward slashes and come out in a stable, depth-first
    order: the files and subdirectories of each directory sorted by name.

    Args:
        root: Template directory to walk

    Yields:
        Relative POSIX paths of every visible file
    """
    root = Path(root)
    for entry in list_entries(root):
        if entry.is_dir():
            for child in iter_files(entry):
                yield f"{entry.name}/{child}"
        else:
            yield entry.name


def strip_template_suffix(relative_path: str) -> str:
    """Drop a trailing .tt from a template file path."""
    if relative_path.endswith(TEMPLATE_SUFFIX) and len(relative_path) > len(TEMPLATE_SUFFIX):
        return relative_path[:-len(TEMPLATE_SUFFIX)]
    return relative_path


def display_name(path: str) -> str:
    """Name of a tree entry as shown to the user, without .tt."""
    return strip_template_suffix(os.path.basename(path.rstrip('/')))


def is_binary(data: bytes, filename: Optional[str] = None) -> bool:
    """Determine whether file content should bypass interpolation.

    Args:
        data: Raw file content
        filename: Optional file name used for an extension check

    Returns:
        True for binary content, False for UTF-8 text
    """
    if filename:
        extension = Path(strip_template_suffix(filename)).suffix.lower()
        if extension in BINARY_EXTENSIONS:
            return True

    if b'\x00' in data[:SNIFF_BYTES]:
        return True

    try:
        data.decode('utf-8')
    except UnicodeDecodeError:
        return True
    return False


def special_lexer_name(path: Path) -> Optional[str]:
    """Lexer for file names (Dockerfile, Makefile, ...) with no useful extension."""
    name = strip_template_suffix(path.name)
    return SPECIAL_FILE_LEXERS.get(name.lower())
