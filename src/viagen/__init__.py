"""
Viagen - Secure workspace access for AI coding assistants.

Serves an allow-listed view of a project tree and its git change state to an
external agent.
"""

__version__ = "0.1.0"

from .files import EditableWorkspace
from .git import ChangeTracker, GitCli
from .models import ChangedFile, FileDiff, RepoStatus

__all__ = [
    "ChangeTracker",
    "ChangedFile",
    "EditableWorkspace",
    "FileDiff",
    "GitCli",
    "RepoStatus",
    "__version__",
]
