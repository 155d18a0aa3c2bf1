"""Tests for the HTTP routes over the history service."""

import pytest
from fastapi.testclient import TestClient

from controlhist.api.app import create_app
from controlhist.services.git_history import GitHistoryService

CONTROL = "controls/ac/ac-1.yaml"
MAPPINGS = "mappings/ac/ac-1-mappings.yaml"


@pytest.fixture
def populated_repo(git_repo):
    git_repo.commit({CONTROL: "status: planned\n"}, "Create ac-1")
    git_repo.change({MAPPINGS: "- control_id: ac-1\n  uuid: m-1\n"}, "Map ac-1")
    git_repo.change({CONTROL: "status: implemented\n"}, "Implement ac-1")
    git_repo.checkout()
    return git_repo


@pytest.fixture
def client(populated_repo):
    app = create_app(GitHistoryService(populated_repo.root))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def plain_client(plain_dir):
    app = create_app(GitHistoryService(plain_dir))
    with TestClient(app) as test_client:
        yield test_client


def test_health_reports_repository(client, populated_repo):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["isGitRepository"] is True
    assert data["workdir"] == str(populated_repo.root)


def test_history_wire_shape(client):
    response = client.get("/api/git/history", params={"path": CONTROL})

    assert response.status_code == 200
    data = response.json()
    assert data["filePath"] == CONTROL
    assert data["totalCommits"] == 2
    assert data["status"] == "ok"
    assert data["truncated"] is False

    latest = data["commits"][0]
    assert latest["message"] == "Implement ac-1"
    assert latest["shortHash"] == latest["hash"][:7]
    assert latest["date"].endswith("Z")
    assert latest["changes"] == {"insertions": 1, "deletions": 1, "files": 1}
    assert latest["yamlDiff"]["changes"][0]["path"] == "status"
    assert data["lastCommit"]["hash"] == latest["hash"]


def test_history_limit_validation(client):
    assert client.get("/api/git/history", params={"path": CONTROL, "limit": 0}).status_code == 422
    assert client.get("/api/git/history").status_code == 422

    response = client.get("/api/git/history", params={"path": CONTROL, "limit": 1})
    assert response.json()["truncated"] is True


def test_commit_count_and_latest(client):
    count = client.get("/api/git/commit-count", params={"path": MAPPINGS}).json()
    assert count == {"filePath": MAPPINGS, "count": 1}

    latest = client.get("/api/git/latest", params={"path": MAPPINGS}).json()
    assert latest["message"] == "Map ac-1"

    missing = client.get("/api/git/latest", params={"path": "controls/none.yaml"})
    assert missing.status_code == 200
    assert missing.json() is None


def test_file_at_commit(client):
    history = client.get("/api/git/history", params={"path": CONTROL}).json()
    oldest = history["commits"][-1]["hash"]

    response = client.get(f"/api/git/file/{oldest}", params={"path": CONTROL})

    assert response.status_code == 200
    assert response.json() == {
        "filePath": CONTROL,
        "commitHash": oldest,
        "content": "status: planned\n",
    }

    unknown = client.get("/api/git/file/not-a-commit", params={"path": CONTROL})
    assert unknown.status_code == 200
    assert unknown.json()["content"] is None


def test_stats_and_status(client):
    stats = client.get("/api/git/stats").json()
    assert stats["totalCommits"] == 3
    assert stats["contributors"] == 1

    status = client.get("/api/git/status").json()
    assert status["isGitRepository"] is True
    assert status["currentBranch"] == "master"
    assert status["branchInfo"]["lastCommitMessage"] == "Implement ac-1"


def test_pending_and_unified(client, populated_repo):
    assert client.get("/api/git/pending", params={"path": CONTROL}).json() is None

    (populated_repo.root / CONTROL).write_text("status: partial\n")
    pending = client.get("/api/git/pending", params={"path": CONTROL}).json()
    assert pending["hash"] == "pending"
    assert pending["author"] == "You"

    unified = client.get(
        "/api/git/unified", params={"control": CONTROL, "mappings": MAPPINGS}
    ).json()
    assert unified["totalCommits"] == 4
    assert unified["commits"][0]["isPending"] is True
    assert unified["commits"][0]["type"] == "control"
    assert unified["commitsByType"] == {"control": 3, "mapping": 1}
    assert unified["filePaths"] == {"control": CONTROL, "mapping": MAPPINGS}


def test_routes_on_non_repository_return_empty_shapes(plain_client):
    assert plain_client.get("/health").json()["isGitRepository"] is False

    history = plain_client.get("/api/git/history", params={"path": CONTROL})
    assert history.status_code == 200
    assert history.json()["commits"] == []
    assert history.json()["status"] == "empty"

    assert plain_client.get("/api/git/commit-count", params={"path": CONTROL}).json()["count"] == 0
    assert plain_client.get("/api/git/status").json()["isGitRepository"] is False
    assert plain_client.get("/api/git/stats").json()["totalCommits"] == 0
    assert plain_client.get("/api/git/unified").json()["commits"] == []
