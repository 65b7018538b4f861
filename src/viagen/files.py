"""Editable path resolution and gated file access for viagen."""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Sequence, Union

from .errors import EditableFileNotFoundError, EditableFileWriteError, PathNotAllowedError

logger = logging.getLogger(__name__)

# Subtrees never listed, at any depth
SKIPPED_DIRECTORIES = frozenset({"node_modules", ".git"})

PathLike = Union[str, Path]


def _join(base: PathLike, path: str) -> str:
    """Join and normalize without touching the filesystem or following symlinks."""
    return os.path.normpath(os.path.join(os.path.abspath(base), path))


def is_absolute_request(path: str) -> bool:
    """Check whether a requested path starts with a path-root marker."""
    return path.startswith("/") or os.path.isabs(path)


def resolve_editable_patterns(patterns: Iterable[str], project_root: PathLike) -> List[Path]:
    """Resolve editable patterns (relative to project_root) into absolute paths."""
    return [Path(_join(project_root, pattern)) for pattern in patterns]


def _collect_files(directory: Path, project_root: str) -> List[str]:
    """Recursively collect files under a directory, relative to project_root.

    Unreadable subtrees are skipped by os.walk and contribute nothing.
    Symlinks are not listed, whether they point at files or nowhere.
    """
    results = []
    for root, dirs, files in os.walk(directory):
        dirs[:] = [d for d in dirs if d not in SKIPPED_DIRECTORIES]
        for name in files:
            path = os.path.join(root, name)
            if os.path.islink(path):
                continue
            results.append(os.path.relpath(path, project_root))
    return results


def resolve_editable_files(resolved_patterns: Sequence[Path], project_root: PathLike) -> List[str]:
    """Expand resolved patterns into a sorted list of relative file paths.

    Directories are expanded to their contents, files are included directly
    and patterns missing from disk are skipped. Paths are relative to
    project_root and may start with ``../`` for patterns above it.
    """
    root = os.path.abspath(project_root)
    files = []
    for pattern in resolved_patterns:
        if pattern.is_dir():
            files.extend(_collect_files(pattern, root))
        elif pattern.is_file():
            files.append(os.path.relpath(pattern, root))
        else:
            logger.debug(f"Editable pattern not on disk, skipping listing: {pattern}")
    return sorted(set(files))


def is_path_allowed(requested_path: str, resolved_patterns: Sequence[Path], project_root: PathLike) -> bool:
    """Check that a requested path resolves inside one of the editable patterns."""
    if is_absolute_request(requested_path):
        return False

    target = _join(project_root, requested_path)

    for pattern in resolved_patterns:
        pattern_str = str(pattern)
        if pattern.is_dir():
            if target.startswith(pattern_str + os.sep):
                return True
        elif pattern.exists():
            if target == pattern_str:
                return True
        else:
            # Pattern not on disk yet: check structurally
            if target.startswith(pattern_str + os.sep) or target == pattern_str:
                return True
    return False


def read_editable_file(requested_path: str, resolved_patterns: Sequence[Path], project_root: PathLike) -> str:
    """Read an allow-listed file as UTF-8 text."""
    if not is_path_allowed(requested_path, resolved_patterns, project_root):
        logger.info(f"Denied read outside editable list: {requested_path}")
        raise PathNotAllowedError(requested_path)

    target = _join(project_root, requested_path)
    try:
        with open(target, "r", encoding="utf-8", errors="replace", newline="") as f:
            return f.read()
    except OSError as e:
        logger.debug(f"Read failed for {target}: {e}")
        raise EditableFileNotFoundError(requested_path) from e


def write_editable_file(
    requested_path: str,
    content: str,
    resolved_patterns: Sequence[Path],
    project_root: PathLike,
) -> None:
    """Write UTF-8 text to an allow-listed file.

    Concurrent writers to the same path are not serialized.
    """
    if not is_path_allowed(requested_path, resolved_patterns, project_root):
        logger.info(f"Denied write outside editable list: {requested_path}")
        raise PathNotAllowedError(requested_path)

    target = _join(project_root, requested_path)
    try:
        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Write failed for {target}: {e}")
        raise EditableFileWriteError(requested_path, str(e)) from e
    logger.debug(f"Wrote {len(content)} characters to {target}")


class EditableWorkspace:
    """Allow-listed view of a project tree for an external agent."""

    def __init__(self, project_root: PathLike, patterns: Iterable[str]):
        self.project_root = Path(os.path.abspath(project_root))
        self.patterns = list(patterns)
        # Resolved once; membership is re-checked against disk on every call
        self.resolved_patterns = resolve_editable_patterns(self.patterns, self.project_root)

    def list_files(self) -> List[str]:
        return resolve_editable_files(self.resolved_patterns, self.project_root)

    def is_allowed(self, requested_path: str) -> bool:
        return is_path_allowed(requested_path, self.resolved_patterns, self.project_root)

    def read(self, requested_path: str) -> str:
        return read_editable_file(requested_path, self.resolved_patterns, self.project_root)

    def write(self, requested_path: str, content: str) -> None:
        write_editable_file(requested_path, content, self.resolved_patterns, self.project_root)
