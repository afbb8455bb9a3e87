"""Tests for the HTTP API using FastAPI's TestClient."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from claude_tmux_manager.core.enums import HostPlatform
from claude_tmux_manager.core.models import GitStatus
from claude_tmux_manager.core.terminal import TerminalLauncher
from claude_tmux_manager.utils.process import CommandExecutionError, CommandResult
from claude_tmux_manager.web.app import create_app


@pytest.fixture
def launcher(fake_executor, config):
    return TerminalLauncher(
        fake_executor,
        config.tmux_session_name,
        platform=HostPlatform.LINUX,
        is_available=lambda name: name == "gnome-terminal",
    )


@pytest.fixture
def client(config, manager, launcher):
    app = create_app(config=config, session_manager=manager, terminal_launcher=launcher)
    return TestClient(app)


@pytest.fixture
def add_session(registry, make_session, fake_tmux):
    def _add(project="demo", feature="login", window=True, **overrides):
        session = make_session(project, feature, **overrides)
        asyncio.run(registry.upsert(session))
        if window:
            fake_tmux.add_window(session.window_name, session.worktree_path)
        return session

    return _add


class TestHealth:
    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
        assert response.headers["X-Request-ID"]

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

    def test_missing_component_uses_error_body(self, config, manager):
        app = create_app(config=config, session_manager=manager)

        response = TestClient(app).post("/api/windows/demo/login/terminal")

        assert response.status_code == 500
        assert response.json() == {
            "error": "Internal server error",
            "message": "terminal_launcher not available",
        }


class TestSessionEndpoints:
    """Test suite for /api/sessions."""

    def test_list_empty(self, client):
        response = client.get("/api/sessions")

        assert response.status_code == 200
        assert response.json() == {"sessions": [], "total": 0}

    def test_list_uses_camel_case(self, client, add_session):
        add_session()

        body = client.get("/api/sessions").json()

        session = body["sessions"][0]
        assert body["total"] == 1
        assert session["projectName"] == "demo"
        assert session["featureName"] == "login"
        assert session["windowName"] == "demo:login"
        assert "worktreePath" in session

    def test_list_filters(self, client, add_session, fake_probe):
        add_session("demo", "login")
        add_session("demo", "signup", window=False)
        add_session("other", "login", window=False)

        active = client.get("/api/sessions", params={"isActive": "true", "refresh": "true"})
        by_project = client.get("/api/sessions", params={"project": "other"})

        assert [s["featureName"] for s in active.json()["sessions"]] == ["login"]
        assert [s["projectName"] for s in by_project.json()["sessions"]] == ["other"]

    def test_list_filters_uncommitted_changes(self, client, add_session):
        add_session("demo", "clean", git_stats=GitStatus(branch="feature/clean"))
        add_session("demo", "dirty", git_stats=GitStatus(branch="feature/dirty", staged=1))

        body = client.get("/api/sessions", params={"hasUncommittedChanges": "true"}).json()

        assert [s["featureName"] for s in body["sessions"]] == ["dirty"]

    def test_get_session(self, client, add_session):
        add_session()

        response = client.get("/api/sessions/demo/login")

        assert response.status_code == 200
        body = response.json()
        assert body["isActive"] is True
        assert body["gitStats"]["hasUncommittedChanges"] is False
        assert body["gitStats"]["branch"] == "feature/login"

    def test_get_unknown_session(self, client):
        response = client.get("/api/sessions/ghost/none")

        assert response.status_code == 404
        assert response.json() == {"error": "Session not found"}

    def test_create_session(self, client, tmp_path):
        response = client.post(
            "/api/sessions",
            json={"projectPath": str(tmp_path / "demo"), "featureName": "login"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["session"]["windowName"] == "demo:login"
        assert body["session"]["isActive"] is True

    def test_create_invalid_feature(self, client, tmp_path):
        response = client.post(
            "/api/sessions",
            json={"projectPath": str(tmp_path / "demo"), "featureName": "Bad Name"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    def test_create_duplicate(self, client, tmp_path):
        payload = {"projectPath": str(tmp_path / "demo"), "featureName": "login"}
        client.post("/api/sessions", json=payload)

        response = client.post("/api/sessions", json=payload)

        assert response.status_code == 409

    def test_create_tmux_failure(self, client, fake_tmux, tmp_path):
        fake_tmux.fail_create = True

        response = client.post(
            "/api/sessions",
            json={"projectPath": str(tmp_path / "demo"), "featureName": "login"},
        )

        assert response.status_code == 503

    def test_delete_session(self, client, add_session, registry):
        add_session()

        response = client.delete("/api/sessions/demo/login")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert registry.get("demo", "login") is None

    def test_delete_unknown_session(self, client):
        assert client.delete("/api/sessions/ghost/none").status_code == 404

    def test_delete_partial_failure(self, client, add_session, fake_worktrees):
        add_session()
        fake_worktrees.fail_remove = True

        response = client.delete("/api/sessions/demo/login")

        assert response.status_code == 409
        assert "git worktree remove failed" in response.json()["message"]

    def test_session_output(self, client, add_session, fake_tmux):
        add_session()

        response = client.get("/api/sessions/demo/login/output", params={"lines": 20})

        assert response.status_code == 200
        assert response.json() == {"output": fake_tmux.output}

    def test_session_output_unknown(self, client):
        assert client.get("/api/sessions/ghost/none/output").status_code == 404

    def test_sync(self, client, fake_tmux, tmp_path):
        fake_tmux.add_window("demo:login", tmp_path / "demo" / ".worktrees" / "login")

        body = client.post("/api/sessions/sync").json()

        assert body["total"] == 1
        assert body["sessions"][0]["windowName"] == "demo:login"


class TestWindowEndpoints:
    """Test suite for /api/windows."""

    def test_list_windows(self, client, fake_tmux):
        fake_tmux.add_window("demo:login", "/repo/.worktrees/login")
        fake_tmux.add_window("scratch")

        body = client.get("/api/windows").json()

        assert body == {
            "windows": [
                {"name": "demo:login", "panePath": "/repo/.worktrees/login"},
                {"name": "scratch", "panePath": None},
            ]
        }

    def test_send_command(self, client, add_session, fake_tmux):
        add_session()

        response = client.post(
            "/api/windows/demo/login/command", json={"command": "npm test"}
        )

        assert response.status_code == 200
        assert fake_tmux.sent == [("demo:login", "npm test")]

    def test_send_empty_command(self, client, add_session):
        add_session()

        response = client.post("/api/windows/demo/login/command", json={"command": ""})

        assert response.status_code == 400

    def test_send_command_unknown_session(self, client):
        response = client.post("/api/windows/ghost/none/command", json={"command": "ls"})

        assert response.status_code == 404


class TestTerminalEndpoint:
    """Test suite for POST /api/windows/{project}/{feature}/terminal."""

    def test_terminal_opened(self, client, add_session, fake_executor):
        add_session()

        response = client.post("/api/windows/demo/login/terminal")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Terminal opened for demo:login",
            "windowName": "demo:login",
        }
        assert fake_executor.commands[0].startswith("(nohup gnome-terminal -- bash -c ")

    def test_terminal_fallback_with_debug(self, client, add_session, fake_executor):
        add_session()
        fake_executor.results = [CommandResult(exit_code=1, stdout="", stderr="no display")]

        response = client.post("/api/windows/demo/login/terminal")

        assert response.status_code == 202
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Failed to open terminal automatically"
        assert body["fallback"]["sessionName"] == "claude-tmux-manager"
        assert body["fallback"]["windowName"] == "demo:login"
        assert len(body["fallback"]["instructions"]) == 3
        assert body["fallback"]["instructions"][1].startswith("2. Run: tmux attach-session")
        assert body["debug"] == {"exitCode": 1, "stderr": "no display", "stdout": ""}

    def test_terminal_fallback_without_debug(self, client, add_session, fake_executor):
        add_session()
        fake_executor.results = [CommandExecutionError("spawn failed")]

        response = client.post("/api/windows/demo/login/terminal")

        assert response.status_code == 202
        body = response.json()
        assert body["error"] == "Could not automatically open terminal"
        assert "debug" not in body

    def test_terminal_unknown_session(self, client, fake_executor):
        response = client.post("/api/windows/ghost/none/terminal")

        assert response.status_code == 404
        assert response.json() == {"error": "Session not found"}
        assert fake_executor.commands == []

    def test_terminal_internal_error(self, client, manager, monkeypatch):
        async def broken(project, feature):
            raise RuntimeError("registry exploded")

        monkeypatch.setattr(manager, "get_session", broken)

        response = client.post("/api/windows/demo/login/terminal")

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to open terminal",
            "message": "registry exploded",
        }


class TestSearchEndpoint:
    """Test suite for GET /api/sessions/search."""

    @pytest.fixture
    def populated(self, add_session):
        for project, feature in [("web", "auth-flow"), ("auth", "ui"), ("shop", "cart")]:
            add_session(project, feature)

    def test_search_ranks_and_aggregates(self, client, populated):
        response = client.get("/api/sessions/search", params={"q": "auth"})

        assert response.status_code == 200
        data = response.json()
        assert [(r["windowName"], r["matchScore"]) for r in data["results"]] == [
            ("web:auth-flow", 70),
            ("auth:ui", 60),
        ]
        assert data["pagination"] == {
            "limit": 50,
            "offset": 0,
            "total": 2,
            "hasMore": False,
        }
        assert data["aggregations"] == {
            "totalMatches": 2,
            "averageMatchScore": 65.0,
            "projectBreakdown": {"web": 1, "auth": 1},
            "statusBreakdown": {"idle": 2},
        }

    def test_pagination(self, client, populated):
        first = client.get("/api/sessions/search", params={"q": "auth", "limit": 1}).json()
        second = client.get(
            "/api/sessions/search", params={"q": "auth", "limit": 1, "offset": 1}
        ).json()

        assert [r["windowName"] for r in first["results"]] == ["web:auth-flow"]
        assert first["pagination"]["hasMore"] is True
        assert [r["windowName"] for r in second["results"]] == ["auth:ui"]
        assert second["pagination"]["hasMore"] is False

    def test_sort_by_name(self, client, populated):
        response = client.get("/api/sessions/search", params={"q": "auth", "sortBy": "name"})

        assert [r["windowName"] for r in response.json()["results"]] == [
            "auth:ui",
            "web:auth-flow",
        ]

    def test_without_query_returns_nothing(self, client, populated):
        data = client.get("/api/sessions/search").json()

        assert data["results"] == []
        assert data["aggregations"]["totalMatches"] == 0
        assert data["aggregations"]["averageMatchScore"] == 0.0

    def test_overlong_query_rejected(self, client):
        response = client.get("/api/sessions/search", params={"q": "x" * 501})

        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    def test_invalid_parameters(self, client):
        assert client.get("/api/sessions/search?q=a&sortBy=activity").status_code == 422
        assert client.get("/api/sessions/search?q=a&limit=0").status_code == 422
        assert client.get("/api/sessions/search?q=a&offset=-1").status_code == 422


class TestStatusEndpoint:
    """Test suite for GET /api/sessions/{project}/{feature}/status."""

    def test_healthy_session(self, client, add_session, git_executor):
        session = add_session()
        session.worktree_path.mkdir(parents=True)

        response = client.get("/api/sessions/demo/login/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "idle"
        assert data["session"]["isActive"] is True
        assert data["healthCheck"] == {
            "tmuxWindowExists": True,
            "pathAccessible": True,
            "gitWorktreeValid": True,
            "branchValid": True,
            "isHealthy": True,
            "healthScore": 100,
            "issues": [],
        }
        assert len(git_executor.commands) == 2

    def test_unhealthy_session(self, client, add_session):
        add_session()

        data = client.get("/api/sessions/demo/login/status").json()

        assert data["status"] == "unhealthy"
        assert data["healthCheck"]["healthScore"] == 25
        assert "Project or worktree path is not accessible" in data["healthCheck"]["issues"]

    def test_unknown_session(self, client):
        response = client.get("/api/sessions/ghost/none/status")

        assert response.status_code == 404
        assert response.json() == {"error": "Session not found"}


class TestPullRequestEndpoint:
    """Test suite for GET /api/windows/{project}/{feature}/pr."""

    def test_found(self, client, add_session, git_executor):
        add_session()
        git_executor.results = [
            CommandResult(exit_code=0, stdout="https://github.com/acme/demo.git\n"),
            CommandResult(
                exit_code=0,
                stdout='[{"number": 3, "url": "https://github.com/acme/demo/pull/3",'
                ' "title": "Login", "state": "OPEN"}]',
            ),
        ]

        response = client.get("/api/windows/demo/login/pr")

        assert response.status_code == 200
        assert response.json() == {
            "found": True,
            "pr": {
                "number": 3,
                "url": "https://github.com/acme/demo/pull/3",
                "title": "Login",
                "state": "OPEN",
            },
        }

    def test_missing(self, client, add_session, git_executor):
        add_session()
        git_executor.results = [
            CommandResult(exit_code=0, stdout="https://github.com/acme/demo.git\n"),
            CommandResult(exit_code=0, stdout="[]"),
        ]

        assert client.get("/api/windows/demo/login/pr").json() == {
            "found": False,
            "branchName": "feature/login",
            "createUrl": "https://github.com/acme/demo/compare/main...feature/login?expand=1",
        }

    def test_cli_unavailable(self, client, add_session, git_executor):
        add_session()
        git_executor.results = [
            CommandResult(exit_code=0, stdout="https://github.com/acme/demo.git\n"),
            CommandExecutionError("gh: command not found"),
        ]

        assert client.get("/api/windows/demo/login/pr").json() == {
            "found": False,
            "branchName": "feature/login",
            "fallback": True,
            "searchUrl": "https://github.com/acme/demo/pulls?q=is%3Apr%20head%3Afeature%2Flogin",
        }

    def test_unknown_session(self, client, git_executor):
        response = client.get("/api/windows/ghost/none/pr")

        assert response.status_code == 404
        assert git_executor.commands == []
