"""Tests for the HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from viagen.config import Settings
from viagen.server import create_app

TOKEN_VARIABLES = ("ANTHROPIC_API_KEY", "CLAUDE_ACCESS_TOKEN", "GITHUB_TOKEN")


def make_client(project_root, editable=("src", ".env"), **kwargs):
    settings = Settings(project_root=project_root, editable=list(editable), _env_file=None, **kwargs)
    return TestClient(create_app(settings))


@pytest.fixture
def client(project):
    return make_client(project)


@pytest.fixture
def clean_tokens(monkeypatch):
    for name in TOKEN_VARIABLES:
        monkeypatch.delenv(name, raising=False)


def test_list_files(client):
    """Test the editable listing route."""
    response = client.get("/via/files")

    assert response.status_code == 200
    files = response.json()["files"]
    assert ".env" in files
    assert "src/app.ts" in files
    assert not any("node_modules" in f for f in files)
    assert not any(f.startswith("secret") for f in files)


def test_read_file(client):
    """Test reading an allowed file."""
    response = client.get("/via/file", params={"path": "src/app.ts"})

    assert response.status_code == 200
    assert response.json() == {"path": "src/app.ts", "content": "export const app = true;"}


def test_read_without_path_is_bad_request(client):
    """Test the path parameter is required."""
    response = client.get("/via/file")

    assert response.status_code == 400
    assert response.json() == {"error": "Missing path parameter"}


@pytest.mark.parametrize("path", ["secret/keys.json", "../../../etc/passwd", "/etc/passwd"])
def test_read_outside_editable_list_is_forbidden(client, path):
    """Test reads outside the allow-list are refused."""
    response = client.get("/via/file", params={"path": path})

    assert response.status_code == 403
    assert response.json() == {"error": "Path not in editable list"}


def test_read_missing_file_is_not_found(client):
    """Test allowed but absent files return not found."""
    response = client.get("/via/file", params={"path": "src/missing.ts"})

    assert response.status_code == 404
    assert response.json() == {"error": "File not found"}


def test_write_then_read(client, project):
    """Test a write lands on disk and reads back."""
    response = client.post("/via/file", json={"path": "src/app.ts", "content": "updated"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "path": "src/app.ts"}
    assert (project / "src" / "app.ts").read_text() == "updated"
    assert client.get("/via/file", params={"path": "src/app.ts"}).json()["content"] == "updated"


def test_write_outside_editable_list_is_forbidden(client, project):
    """Test writes outside the allow-list leave the disk untouched."""
    response = client.post("/via/file", json={"path": "secret/keys.json", "content": "hacked"})

    assert response.status_code == 403
    assert (project / "secret" / "keys.json").read_text() == "{}"


def test_write_missing_fields_is_bad_request(client):
    """Test the write body needs both path and content."""
    response = client.post("/via/file", json={"path": "src/app.ts"})

    assert response.status_code == 400
    assert "content" in response.json()["error"]


def test_write_empty_path_is_bad_request(client):
    """Test an empty path is rejected."""
    response = client.post("/via/file", json={"path": "", "content": "x"})

    assert response.status_code == 400


def test_write_invalid_json_is_bad_request(client):
    """Test a body that is not JSON is rejected."""
    response = client.post(
        "/via/file",
        content="not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON body"}


def test_write_failure_is_server_error(client):
    """Test an I/O failure on write surfaces as a server error."""
    response = client.post("/via/file", json={"path": "src/no-such-dir/file.ts", "content": "x"})

    assert response.status_code == 500
    assert response.json()["error"]


def test_wrong_method_is_not_allowed(client):
    """Test unsupported methods on a known route."""
    response = client.put("/via/file", json={"path": "src/app.ts", "content": "x"})

    assert response.status_code == 405
    assert "error" in response.json()


def test_custom_route_prefix(project):
    """Test every route follows the configured prefix."""
    client = make_client(project, route_prefix="/workspace/")

    assert client.get("/workspace/files").status_code == 200
    assert client.get("/via/files").status_code == 404


def test_git_status_outside_repository(no_git_dir):
    """Test status reports git as unavailable for a plain directory."""
    client = make_client(no_git_dir, editable=["."])
    response = client.get("/via/git/status")

    assert response.status_code == 200
    assert response.json() == {"files": [], "git": False, "insertions": 0, "deletions": 0}


def test_git_status_and_diff(repo):
    """Test status and diff routes against a real repository."""
    client = make_client(repo, editable=["."])

    status = client.get("/via/git/status").json()
    paths = {f["path"]: f for f in status["files"]}
    assert status["git"] is True
    assert paths["existing.txt"]["status"] == "M"
    assert paths["new-file.txt"] == {"path": "new-file.txt", "status": "?", "insertions": 2, "deletions": 0}

    diff = client.get("/via/git/diff", params={"path": "new-file.txt"}).json()
    assert diff["path"] == "new-file.txt"
    assert diff["diff"].startswith("--- /dev/null\n+++ b/new-file.txt")

    full = client.get("/via/git/diff").json()
    assert set(full) == {"diff"}
    assert "+world" in full["diff"]


def test_git_diff_absolute_path_is_bad_request(client):
    """Test absolute diff paths are rejected."""
    response = client.get("/via/git/diff", params={"path": "/etc/passwd"})

    assert response.status_code == 400
    assert response.json() == {"error": "Absolute paths not allowed"}


def test_health_without_credentials(project, clean_tokens):
    """Test health reports missing assistant credentials."""
    response = make_client(project).get("/via/health")

    assert response.status_code == 200
    assert response.json() == {"status": "error", "configured": False, "git": False}


def test_health_with_credentials(project, clean_tokens, monkeypatch):
    """Test health picks credentials up from the environment."""
    monkeypatch.setenv("CLAUDE_ACCESS_TOKEN", "token")
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_token")

    response = make_client(project).get("/via/health")

    assert response.json() == {"status": "ok", "configured": True, "git": True}
