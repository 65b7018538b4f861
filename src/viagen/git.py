"""Version-control change aggregation for viagen.

Everything here degrades instead of failing: a missing ``git`` binary, a
directory outside any repository or an unreadable file turn into empty
results, never exceptions. The only error raised to callers is
:class:`~viagen.errors.AbsolutePathError` for absolute diff paths.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

from .errors import AbsolutePathError
from .files import is_absolute_request
from .models import (
    ChangedFile,
    CommandResult,
    DiffStats,
    DiffSummaryEntry,
    FileDiff,
    LineStats,
    RenamedPath,
    RepoStatus,
    WorkingTreeStatus,
)

logger = logging.getLogger(__name__)

# Unmerged index/worktree pairs; reported as modified
CONFLICT_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})


class VcsClient(Protocol):
    """Version-control operations needed by the change tracker.

    Every method returns ``None`` when the underlying command failed.
    """

    async def repo_root(self) -> Optional[Path]:
        ...

    async def status(self) -> Optional[WorkingTreeStatus]:
        ...

    async def diff_summary(self, staged: bool) -> Optional[List[DiffSummaryEntry]]:
        ...

    async def diff(self, staged: bool, path: Optional[str] = None) -> Optional[str]:
        ...


def parse_porcelain_status(output: str) -> WorkingTreeStatus:
    """Parse ``git status --porcelain=v1 -z`` output into categories."""
    status = WorkingTreeStatus()
    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue

        code, path = entry[:2], entry[3:]
        index, worktree = code[0], code[1]

        # Renames and copies carry the source path as the next entry
        source = None
        if index in "RC" or worktree in "RC":
            source = entries[i] if i < len(entries) else ""
            i += 1

        if code == "??":
            status.not_added.append(path)
        elif code == "!!":
            continue
        elif code in CONFLICT_CODES:
            status.modified.append(path)
        elif index == "R" or worktree == "R":
            status.renamed.append(RenamedPath(source=source or "", destination=path))
        elif index in "AC" or worktree == "A":
            # Worktree-only additions come from `git add -N`
            status.created.append(path)
        elif index == "D" or worktree == "D":
            status.deleted.append(path)
        elif index in "MT" or worktree in "MT":
            status.modified.append(path)
    return status


def _parse_count(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_numstat(output: str) -> List[DiffSummaryEntry]:
    """Parse ``git diff --numstat -z`` output.

    Renamed files are reported under their destination path; binary files
    carry ``-`` counts and are flagged rather than counted.
    """
    entries = []
    tokens = output.split("\0")
    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1
        if not token:
            continue

        fields = token.split("\t", 2)
        if len(fields) != 3:
            continue
        added, removed, path = fields
        if not path:
            # Rename: source and destination follow as separate tokens
            if i + 1 >= len(tokens):
                break
            path = tokens[i + 1]
            i += 2

        binary = added == "-" and removed == "-"
        entries.append(
            DiffSummaryEntry(
                path=path,
                insertions=0 if binary else _parse_count(added),
                deletions=0 if binary else _parse_count(removed),
                binary=binary,
            )
        )
    return entries


def join_diffs(staged: str, unstaged: str) -> str:
    """Combine staged and unstaged diff text, staged first."""
    if staged and unstaged:
        return staged + "\n" + unstaged
    return staged or unstaged or ""


def read_text(path: Path) -> str:
    with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
        return f.read()


def count_lines(path: Path) -> int:
    """Count lines the way untracked insertions are reported."""
    return len(read_text(path).split("\n"))


def synthesize_untracked_diff(path: str, content: str) -> str:
    """Render a file with no history as an all-added unified diff."""
    lines = content.split("\n")
    added = "\n".join(f"+{line}" for line in lines)
    return f"--- /dev/null\n+++ b/{path}\n@@ -0,0 +1,{len(lines)} @@\n{added}"


class GitCli:
    """VcsClient backed by the ``git`` command line."""

    def __init__(self, cwd: Path, executable: str = "git"):
        self.cwd = Path(cwd)
        self.executable = executable

    async def _run(self, *args: str) -> CommandResult:
        """Run a git command and capture its output."""
        logger.debug(f"Running {self.executable} {' '.join(args)} in {self.cwd}")
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                cwd=str(self.cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            # Binary missing or cwd gone
            logger.debug(f"Could not start {self.executable}: {e}")
            return CommandResult(ok=False, stderr=str(e))

        stdout, stderr = await process.communicate()
        result = CommandResult(
            ok=process.returncode == 0,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        if not result.ok:
            logger.debug(f"git {args[0]} exited with {process.returncode}: {result.stderr.strip()}")
        return result

    async def repo_root(self) -> Optional[Path]:
        result = await self._run("rev-parse", "--show-toplevel")
        if not result.ok or not result.stdout.strip():
            return None
        return Path(result.stdout.strip())

    async def status(self) -> Optional[WorkingTreeStatus]:
        result = await self._run("status", "--porcelain=v1", "-z", "--untracked-files=all")
        if not result.ok:
            return None
        return parse_porcelain_status(result.stdout)

    async def diff_summary(self, staged: bool) -> Optional[List[DiffSummaryEntry]]:
        args = ["diff", "--numstat", "-z", "--no-color", "--no-ext-diff"]
        if staged:
            args.append("--cached")
        result = await self._run(*args)
        if not result.ok:
            return None
        return parse_numstat(result.stdout)

    async def diff(self, staged: bool, path: Optional[str] = None) -> Optional[str]:
        args = ["diff", "--no-color", "--no-ext-diff"]
        if staged:
            args.append("--cached")
        if path is not None:
            args.extend(["--", path])
        result = await self._run(*args)
        if not result.ok:
            return None
        return result.stdout


async def find_repo_root(start_dir: Path, client_factory: Callable[[Path], VcsClient] = GitCli) -> Optional[Path]:
    """Resolve the repository root containing start_dir, or None outside a repository."""
    return await client_factory(Path(start_dir)).repo_root()


@dataclass
class RepoHandle:
    """Discovered repository root and a client bound to it."""

    root: Path
    client: VcsClient


def merge_changed_files(tree: WorkingTreeStatus, stats: DiffStats) -> List[ChangedFile]:
    """Unite status categories with line stats, first occurrence wins."""
    files = []

    def push(path: str, status: str):
        counts = stats.files.get(path, LineStats())
        files.append(ChangedFile(path=path, status=status, insertions=counts.insertions, deletions=counts.deletions))

    for path in tree.modified:
        push(path, "M")
    for path in tree.created:
        push(path, "A")
    for path in tree.deleted:
        push(path, "D")
    for renamed in tree.renamed:
        push(renamed.destination, "R")
    for path in tree.not_added:
        push(path, "?")

    # A file can appear in more than one category
    seen = set()
    unique = []
    for changed in files:
        if changed.path in seen:
            continue
        seen.add(changed.path)
        unique.append(changed)
    return sorted(unique, key=lambda f: f.path)


class ChangeTracker:
    """Computes status and diffs for the repository containing a project."""

    def __init__(self, project_root: Path, client_factory: Callable[[Path], VcsClient] = GitCli):
        self.project_root = Path(os.path.abspath(project_root))
        self._client_factory = client_factory
        self._handle: Optional[RepoHandle] = None

    async def ensure_git(self) -> Optional[RepoHandle]:
        """Return the cached repository handle, discovering it on first use.

        The repository root may differ from the project root. Concurrent
        first calls may both run discovery; the result is the same.
        """
        if self._handle is not None:
            return self._handle

        root = await find_repo_root(self.project_root, self._client_factory)
        if root is None:
            logger.debug(f"No git repository found for {self.project_root}")
            return None

        logger.info(f"Using git repository at {root}")
        self._handle = RepoHandle(root=root, client=self._client_factory(root))
        return self._handle

    async def collect_diff_stats(self, handle: RepoHandle, untracked: List[str]) -> DiffStats:
        """Build per-file stats from staged and unstaged summaries plus untracked files."""
        staged, unstaged = await asyncio.gather(
            handle.client.diff_summary(staged=True),
            handle.client.diff_summary(staged=False),
        )
        if staged is None or unstaged is None:
            logger.warning(f"Diff statistics unavailable for {handle.root}")
            return DiffStats(degraded=True)

        per_file: Dict[str, LineStats] = {}
        for entry in staged + unstaged:
            if entry.binary:
                continue
            counts = per_file.setdefault(entry.path, LineStats())
            counts.insertions += entry.insertions
            counts.deletions += entry.deletions

        # Diff summaries never include untracked files
        for path in untracked:
            try:
                lines = await asyncio.to_thread(count_lines, handle.root / path)
            except OSError as e:
                logger.debug(f"Skipping stats for unreadable untracked file {path}: {e}")
                continue
            per_file[path] = LineStats(insertions=lines, deletions=0)

        return DiffStats(
            files=per_file,
            insertions=sum(s.insertions for s in per_file.values()),
            deletions=sum(s.deletions for s in per_file.values()),
        )

    async def status(self) -> RepoStatus:
        """List changed files with line counts; never raises."""
        handle = await self.ensure_git()
        if handle is None:
            return RepoStatus(files=[], git=False)

        tree = await handle.client.status()
        if tree is None:
            logger.warning(f"git status failed for {handle.root}")
            return RepoStatus(files=[], git=False)

        stats = await self.collect_diff_stats(handle, tree.not_added)
        return RepoStatus(
            files=merge_changed_files(tree, stats),
            git=True,
            insertions=stats.insertions,
            deletions=stats.deletions,
            degraded=stats.degraded,
        )

    async def _file_diff(self, handle: RepoHandle, path: str) -> str:
        target = os.path.normpath(os.path.join(str(handle.root), path))
        root = str(handle.root)
        if not target.startswith(root + os.sep) and target != root:
            logger.info(f"Denied diff outside repository: {path}")
            return ""

        staged, unstaged = await asyncio.gather(
            handle.client.diff(staged=True, path=path),
            handle.client.diff(staged=False, path=path),
        )
        combined = join_diffs(staged or "", unstaged or "")
        if combined:
            return combined

        # No tracked changes: the file may be untracked
        try:
            content = await asyncio.to_thread(read_text, Path(target))
        except OSError:
            return ""
        return synthesize_untracked_diff(path, content)

    async def diff(self, path: Optional[str] = None) -> FileDiff:
        """Return the diff for one path, or for the whole tree when path is empty."""
        if path and is_absolute_request(path):
            raise AbsolutePathError(path)

        handle = await self.ensure_git()
        if handle is None:
            return FileDiff(diff="", git=False)

        if path:
            return FileDiff(diff=await self._file_diff(handle, path), path=path)

        staged, unstaged = await asyncio.gather(
            handle.client.diff(staged=True),
            handle.client.diff(staged=False),
        )
        return FileDiff(diff=join_diffs(staged or "", unstaged or ""))
