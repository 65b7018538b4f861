"""Shared fixtures for viagen tests."""

import shutil
import subprocess
from pathlib import Path

import pytest


def run_git(cwd: Path, *args: str) -> str:
    """Run git with a throwaway identity and return stdout."""
    result = subprocess.run(
        [
            "git",
            "-c", "user.email=test@test.com",
            "-c", "user.name=Test",
            "-c", "commit.gpgsign=false",
            "-c", "init.defaultBranch=main",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


@pytest.fixture
def git_ceiling(tmp_path, monkeypatch):
    """Keep git from discovering repositories above the temporary directory."""
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    return tmp_path


@pytest.fixture
def repo(git_ceiling):
    """Repository with one modified tracked file and two untracked files."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    root = git_ceiling / "repo"
    root.mkdir()
    run_git(root, "init", "-q")

    (root / "existing.txt").write_text("hello\n")
    run_git(root, "add", "existing.txt")
    run_git(root, "commit", "-q", "-m", "initial")

    (root / "existing.txt").write_text("hello\nworld\n")
    (root / "new-file.txt").write_text("brand new\n")
    (root / "subdir").mkdir()
    (root / "subdir" / "nested.txt").write_text("nested\n")
    return root


@pytest.fixture
def git():
    """Helper for arranging repository state."""
    return run_git


@pytest.fixture
def no_git_dir(git_ceiling):
    """Plain directory outside any repository."""
    root = git_ceiling / "plain"
    root.mkdir()
    (root / "file.txt").write_text("not tracked\n")
    return root


@pytest.fixture
def project(tmp_path):
    """Project tree with editable and non-editable content."""
    root = tmp_path / "project"
    (root / "src" / "components").mkdir(parents=True)
    (root / "secret").mkdir()
    (root / "src" / "node_modules" / "dep").mkdir(parents=True)
    (root / "src" / ".git").mkdir()

    (root / ".env").write_text("API_KEY=secret123\nDB_URL=postgres://localhost")
    (root / "src" / "app.ts").write_text("export const app = true;")
    (root / "src" / "components" / "Button.tsx").write_text("<button />")
    (root / "secret" / "keys.json").write_text("{}")
    (root / "src" / "node_modules" / "dep" / "index.js").write_text("module.exports = {}")
    (root / "src" / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    return root
