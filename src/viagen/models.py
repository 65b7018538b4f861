"""Data models for viagen."""

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional


@dataclass
class CommandResult:
    """Outcome of a single external process call."""

    ok: bool
    stdout: str = ""
    stderr: str = ""


@dataclass
class RenamedPath:
    """A rename reported by the working tree status."""

    source: str
    destination: str


@dataclass
class WorkingTreeStatus:
    """Changed paths grouped the way `git status` reports them."""

    modified: List[str] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    renamed: List[RenamedPath] = field(default_factory=list)
    not_added: List[str] = field(default_factory=list)


@dataclass
class DiffSummaryEntry:
    """One line of a diff summary."""

    path: str
    insertions: int = 0
    deletions: int = 0
    binary: bool = False


@dataclass
class LineStats:
    """Running insertion/deletion counts for one path."""

    insertions: int = 0
    deletions: int = 0


@dataclass
class DiffStats:
    """Per-file line counts merged from staged, unstaged and untracked changes.

    ``degraded`` is set when the counts could not be computed; the per-file
    map and the totals are then empty.
    """

    files: Dict[str, LineStats] = field(default_factory=dict)
    insertions: int = 0
    deletions: int = 0
    degraded: bool = False


@dataclass
class ChangedFile:
    """A single path with uncommitted changes."""

    path: str
    status: str
    insertions: int = 0
    deletions: int = 0

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass
class RepoStatus:
    """Aggregated change state of the working tree.

    ``degraded`` marks zeroed line counts that could not be computed. It is
    kept out of the HTTP body, whose shape is fixed.
    """

    files: List[ChangedFile] = field(default_factory=list)
    git: bool = False
    insertions: int = 0
    deletions: int = 0
    degraded: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "files": [f.to_dict() for f in self.files],
            "git": self.git,
            "insertions": self.insertions,
            "deletions": self.deletions,
        }


@dataclass
class FileDiff:
    """Unified diff text for the whole tree or a single path."""

    diff: str = ""
    path: Optional[str] = None
    git: bool = True

    def to_dict(self) -> Dict[str, object]:
        if not self.git:
            return {"diff": self.diff, "git": False}
        if self.path is not None:
            return {"diff": self.diff, "path": self.path}
        return {"diff": self.diff}
