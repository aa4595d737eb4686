"""CLI integration tests for agentcoord."""

import json
import subprocess
import sys
import time
from pathlib import Path
from unittest import mock

import pytest
from typer.testing import CliRunner

from agentcoord.cli import app, run
from agentcoord.commands.lock import _hold
from agentcoord.config import CoordConfig, load_config
from agentcoord.core import LockHandle, LockManager
from agentcoord.errors import LockError, LockTimeoutError
from agentcoord.models import LockMode


def invoke(runner: CliRunner, state_dir: Path, *args: str, json_mode: bool = False):
    """Invoke the CLI against a given state directory."""
    options = ["--state-dir", str(state_dir)]
    if json_mode:
        options += ["--json", "-q"]
    return runner.invoke(app, [*options, *args])


def invoke_json(runner: CliRunner, state_dir: Path, *args: str):
    """Invoke in JSON mode and decode stdout."""
    result = invoke(runner, state_dir, *args, json_mode=True)
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestVersionCommand:
    """Tests for --version flag."""

    def test_version_shows_version(self, runner: CliRunner) -> None:
        """--version should display version string."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "agentcoord" in result.stdout
        assert "0.1.0" in result.stdout


class TestHelpCommand:
    """Tests for --help flag."""

    def test_help_shows_groups(self, runner: CliRunner) -> None:
        """--help should list all command groups."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for group in ("init", "lock", "resources", "trace", "session", "health"):
            assert group in result.stdout


class TestExitCodes:
    """Tests for the console entry point."""

    @pytest.mark.parametrize(
        "argv",
        [
            ["trace", "start"],
            ["lock", "acquire"],
            ["session", "save", "only-one-arg"],
            ["resources", "register"],
        ],
    )
    def test_missing_arguments_exit_1(
        self, argv: list[str], monkeypatch: pytest.MonkeyPatch, state_dir: Path
    ) -> None:
        """Missing required arguments print usage and exit 1."""
        monkeypatch.setattr(sys, "argv", ["agentcoord", "--state-dir", str(state_dir), *argv])
        with pytest.raises(SystemExit) as exc_info:
            run()
        assert exc_info.value.code == 1

    def test_success_exits_0(self, monkeypatch: pytest.MonkeyPatch, state_dir: Path) -> None:
        """A successful command exits 0."""
        monkeypatch.setattr(
            sys, "argv", ["agentcoord", "--state-dir", str(state_dir), "-q", "lock", "status"]
        )
        with pytest.raises(SystemExit) as exc_info:
            run()
        assert exc_info.value.code == 0

    def test_domain_failure_exits_1(self, monkeypatch: pytest.MonkeyPatch, state_dir: Path) -> None:
        """Domain errors exit 1 through the entry point too."""
        monkeypatch.setattr(
            sys, "argv", ["agentcoord", "--state-dir", str(state_dir), "trace", "timeline", "nope"]
        )
        with pytest.raises(SystemExit) as exc_info:
            run()
        assert exc_info.value.code == 1


class TestInitCommand:
    """Tests for init."""

    def test_init_creates_layout(self, runner: CliRunner, state_dir: Path) -> None:
        """init creates the state directories and config template."""
        result = invoke(runner, state_dir, "init")
        assert result.exit_code == 0
        assert (state_dir / "config.toml").exists()
        for name in ("locks", "traces", "sessions", "checkpoints", "coordination", "health"):
            assert (state_dir / name).is_dir()

    def test_init_twice_keeps_config(self, runner: CliRunner, state_dir: Path) -> None:
        """An existing config is not overwritten."""
        invoke(runner, state_dir, "init")
        (state_dir / "config.toml").write_text("[traces]\nlist_limit = 3\n")
        result = invoke(runner, state_dir, "init")
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert "list_limit = 3" in (state_dir / "config.toml").read_text()

    def test_state_dir_from_environment(
        self, runner: CliRunner, state_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """AGENTCOORD_STATE_DIR selects the state directory."""
        monkeypatch.setenv("AGENTCOORD_STATE_DIR", str(state_dir))
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0
        assert (state_dir / "config.toml").exists()


class TestLockCommands:
    """Tests for the lock group."""

    def test_acquire_and_release(self, runner: CliRunner, state_dir: Path) -> None:
        """acquire --hold 0 takes and releases the lock."""
        data = invoke_json(runner, state_dir, "lock", "acquire", "corpus-enricher", "write",
                           "--hold", "0")
        assert data["mode"] == "write"
        assert data["resource"] == "corpus"
        status = invoke_json(runner, state_dir, "lock", "status")
        assert status == {"resource": "corpus", "locks": []}

    def test_status_lists_holders(self, runner: CliRunner, state_dir: Path) -> None:
        """status shows current holders."""
        LockManager(CoordConfig(state_dir=state_dir), "codebase").acquire("code-writer")
        status = invoke_json(runner, state_dir, "lock", "status", "--resource", "codebase")
        assert [lock["agent"] for lock in status["locks"]] == ["code-writer"]
        text = invoke(runner, state_dir, "lock", "status", "-r", "codebase")
        assert "code-writer (READ)" in text.output

    def test_status_free(self, runner: CliRunner, state_dir: Path) -> None:
        """An unlocked resource is reported free."""
        result = invoke(runner, state_dir, "lock", "status")
        assert result.exit_code == 0
        assert "FREE" in result.output

    def test_acquire_timeout(self, runner: CliRunner, state_dir: Path) -> None:
        """A blocked acquire fails with exit code 1."""
        LockManager(CoordConfig(state_dir=state_dir)).acquire("holder", LockMode.WRITE)
        result = invoke(runner, state_dir, "lock", "acquire", "waiter", "read", "--timeout", "0.05",
                        "--hold", "0")
        assert result.exit_code == 1
        assert "Timeout" in result.output

    def test_cleanup(self, runner: CliRunner, state_dir: Path) -> None:
        """cleanup removes all locks."""
        manager = LockManager(CoordConfig(state_dir=state_dir))
        manager.acquire("a")
        manager.acquire("b")
        data = invoke_json(runner, state_dir, "lock", "cleanup")
        assert data["removed"] == 2
        assert manager.status() == []

    def test_hold_refreshes_until_deadline(self) -> None:
        """The hold loop heartbeats the lock on every tick."""
        handle = mock.Mock(spec=LockHandle)
        _hold(handle, 0.1, 0.02)
        assert handle.refresh.call_count >= 3

    def test_hold_zero_returns_immediately(self) -> None:
        """--hold 0 releases without refreshing."""
        handle = mock.Mock(spec=LockHandle)
        _hold(handle, 0, 10)
        handle.refresh.assert_not_called()

    def test_lost_lock_exits_1(self, runner: CliRunner, state_dir: Path) -> None:
        """A lock reaped while held is reported as an error."""
        with mock.patch.object(
            LockHandle, "refresh", side_effect=LockError("Lock x is no longer held")
        ):
            result = invoke(runner, state_dir, "lock", "acquire", "holder", "write",
                            "--hold", "0.05")
        assert result.exit_code == 1
        assert "no longer held" in result.output

    def test_held_lock_outlives_stale_timeout(self, state_dir: Path) -> None:
        """A holding acquire keeps its lock fresh, so a second writer still times out."""
        state_dir.mkdir(parents=True)
        (state_dir / "config.toml").write_text("[locks]\nstale_timeout = 0.6\n")
        manager = LockManager(load_config(state_dir))
        holder = subprocess.Popen(
            [sys.executable, "-m", "agentcoord.cli", "--state-dir", str(state_dir), "-q",
             "lock", "acquire", "holder", "write", "--hold", "3"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        try:
            deadline = time.monotonic() + 20
            while not manager.status():
                assert holder.poll() is None
                assert time.monotonic() < deadline
                time.sleep(0.05)
            time.sleep(1.0)
            with pytest.raises(LockTimeoutError):
                manager.acquire("intruder", LockMode.WRITE, timeout=0.3)
            assert holder.wait(timeout=20) == 0
        finally:
            if holder.poll() is None:
                holder.kill()
                holder.wait()
        assert manager.status() == []


class TestResourcesCommands:
    """Tests for the resources group."""

    def test_check_parallel(self, runner: CliRunner, state_dir: Path) -> None:
        """A conflict-free batch is reported safe."""
        result = invoke(runner, state_dir, "resources", "check", "corpus-searcher",
                        "web-researcher")
        assert result.exit_code == 0
        assert "parallel safely" in result.output

    def test_check_conflicts_json(self, runner: CliRunner, state_dir: Path) -> None:
        """Conflicts and phases are reported."""
        data = invoke_json(runner, state_dir, "resources", "check", "corpus-searcher",
                           "corpus-enricher")
        assert data["safe"] is False
        assert data["recommendation"] == "sequential"
        assert data["phases"] == [["corpus-searcher"], ["corpus-enricher"]]
        assert data["conflicts"][0]["reason"] == "Write/Read conflict on shared resources"

    def test_suggest(self, runner: CliRunner, state_dir: Path) -> None:
        """suggest reports efficiency and speedup."""
        data = invoke_json(runner, state_dir, "resources", "suggest", "corpus-searcher",
                           "corpus-enricher", "web-researcher")
        assert data["efficiency"] == 67
        assert data["speedup"] == 1.5
        text = invoke(runner, state_dir, "resources", "suggest", "test-writer", "test-writer")
        assert "SEQUENTIAL EXECUTION REQUIRED" in text.output

    def test_configured_profile_used(self, runner: CliRunner, state_dir: Path) -> None:
        """Profiles from config.toml extend the table."""
        invoke(runner, state_dir, "init")
        data = invoke_json(runner, state_dir, "resources", "check", "report-writer",
                           "report-writer")
        assert data["conflicts"][0]["reason"] == "Both agents write to shared resources"

    def test_register_unregister_status(self, runner: CliRunner, state_dir: Path) -> None:
        """Work moves from active to completed."""
        invoke_json(runner, state_dir, "resources", "register", "corpus-enricher", "Adding",
                    "sword", "entries")
        status = invoke_json(runner, state_dir, "resources", "status")
        assert status["activeWork"]["corpus-enricher"]["description"] == "Adding sword entries"
        data = invoke_json(runner, state_dir, "resources", "unregister", "corpus-enricher")
        assert data["work"]["agent"] == "corpus-enricher"
        status = invoke_json(runner, state_dir, "resources", "status")
        assert status["activeWork"] == {}
        assert len(status["completedWork"]) == 1

    def test_unregister_unknown(self, runner: CliRunner, state_dir: Path) -> None:
        """Unregistering unknown work is a warning, not a failure."""
        result = invoke(runner, state_dir, "resources", "unregister", "nobody")
        assert result.exit_code == 0
        assert "No active work" in result.output


class TestTraceCommands:
    """Tests for the trace group."""

    def test_full_workflow(self, runner: CliRunner, state_dir: Path) -> None:
        """start, step, complete, error, finish, then inspect."""
        invoke_json(runner, state_dir, "trace", "start", "wf-1", "Sword research", "weapons")
        first = invoke_json(runner, state_dir, "trace", "step", "wf-1", "corpus-searcher",
                            "Search", '{"query": "longsword"}')
        assert first == {"workflowId": "wf-1", "stepId": 0}
        second = invoke_json(runner, state_dir, "trace", "step", "wf-1", "web-researcher",
                             "Fetch")
        assert second["stepId"] == 1
        done = invoke_json(runner, state_dir, "trace", "complete", "wf-1", "0", "3 hits")
        assert done["step"]["result"] == {"kind": "text", "text": "3 hits"}
        invoke_json(runner, state_dir, "trace", "error", "wf-1", "1", "HTTP 503")
        finished = invoke_json(runner, state_dir, "trace", "finish", "wf-1", "partial")
        assert finished["workflow"]["status"] == "partial"

        timeline = invoke_json(runner, state_dir, "trace", "timeline", "wf-1")
        assert [s["status"] for s in timeline["steps"]] == ["completed", "error"]
        assert timeline["steps"][0]["data"] == {"kind": "json", "value": {"query": "longsword"}}

        listed = invoke_json(runner, state_dir, "trace", "list")
        assert [t["workflowId"] for t in listed] == ["wf-1"]

        analysis = invoke_json(runner, state_dir, "trace", "analyze", "wf-1")
        assert analysis["completedSteps"] == 1
        assert analysis["failedSteps"] == 1

        text = invoke(runner, state_dir, "trace", "timeline", "wf-1")
        assert text.exit_code == 0
        assert "Workflow timeline: wf-1" in text.output

    def test_unknown_workflow(self, runner: CliRunner, state_dir: Path) -> None:
        """Unknown workflows print an error and exit 1."""
        result = invoke(runner, state_dir, "trace", "complete", "missing", "0")
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_bracketed_text_printed_literally(self, runner: CliRunner, state_dir: Path) -> None:
        """Text that looks like markup survives error and timeline output."""
        invoke(runner, state_dir, "trace", "start", "wf-1", "Fix [bold] tags")
        invoke(runner, state_dir, "trace", "step", "wf-1", "parser", "Read [/path]")
        message = "closing tag [/path] here"
        result = invoke(runner, state_dir, "trace", "error", "wf-1", "0", message)
        assert result.exit_code == 0, result.output
        assert message in result.output

        timeline = invoke(runner, state_dir, "trace", "timeline", "wf-1")
        assert timeline.exit_code == 0, timeline.output
        assert "Description: Fix [bold] tags" in timeline.output

        analysis = invoke(runner, state_dir, "trace", "analyze", "wf-1")
        assert analysis.exit_code == 0, analysis.output
        listing = invoke(runner, state_dir, "trace", "list")
        assert listing.exit_code == 0, listing.output

    def test_duplicate_start(self, runner: CliRunner, state_dir: Path) -> None:
        """Starting an existing workflow fails."""
        invoke(runner, state_dir, "trace", "start", "wf", "x")
        result = invoke(runner, state_dir, "trace", "start", "wf", "x")
        assert result.exit_code == 1

    def test_list_empty(self, runner: CliRunner, state_dir: Path) -> None:
        """An empty trace directory is reported."""
        result = invoke(runner, state_dir, "trace", "list")
        assert result.exit_code == 0
        assert "No workflows" in result.output


class TestSessionCommands:
    """Tests for the session group."""

    def test_session_lifecycle(self, runner: CliRunner, state_dir: Path, tmp_path: Path) -> None:
        """create, save, resume, list, complete, analytics."""
        initial = tmp_path / "initial.json"
        initial.write_text(json.dumps({"estimatedSteps": 3}))
        session = invoke_json(runner, state_dir, "session", "create", "Sword research",
                              "research", str(initial))
        session_id = session["sessionId"]
        assert session["totalSteps"] == 3

        state = tmp_path / "state.json"
        state.write_text(json.dumps({"completedSteps": 1, "phase": "research"}))
        saved = invoke_json(runner, state_dir, "session", "save", session_id, str(state),
                            "Corpus searched")
        assert saved["checkpoint"]["phase"] == "research"

        resumed = invoke_json(runner, state_dir, "session", "resume", session_id)
        assert resumed["session"]["completedSteps"] == 1
        assert resumed["session"]["currentPhase"] == "research"

        recoverable = invoke_json(runner, state_dir, "session", "list", "--recoverable")
        assert [s["sessionId"] for s in recoverable] == [session_id]

        completed = invoke_json(runner, state_dir, "session", "complete", session_id)
        assert completed["session"]["status"] == "completed"

        analytics = invoke_json(runner, state_dir, "session", "analytics", session_id)
        assert analytics["checkpointCount"] == 2

        totals = invoke_json(runner, state_dir, "session", "analytics")
        assert totals["byStatus"] == {"completed": 1}

        archived = invoke_json(runner, state_dir, "session", "archive", "30")
        assert archived["archived"] == []

    def test_pause_and_text_resume(self, runner: CliRunner, state_dir: Path) -> None:
        """A paused session resumes in text mode."""
        session = invoke_json(runner, state_dir, "session", "create", "x", "research")
        invoke_json(runner, state_dir, "session", "pause", session["sessionId"])
        paused = invoke_json(runner, state_dir, "session", "list", "--status", "paused")
        assert len(paused) == 1
        result = invoke(runner, state_dir, "session", "resume", session["sessionId"])
        assert result.exit_code == 0
        assert "No checkpoints yet" in result.output

    def test_bracketed_title_printed_literally(self, runner: CliRunner, state_dir: Path) -> None:
        """Session titles are not interpreted as markup."""
        result = invoke(runner, state_dir, "session", "create", "Notes [/tmp]", "research")
        assert result.exit_code == 0, result.output
        assert "Title: Notes [/tmp]" in result.output
        listing = invoke(runner, state_dir, "session", "list")
        assert listing.exit_code == 0, listing.output

    def test_invalid_state_file(self, runner: CliRunner, state_dir: Path, tmp_path: Path) -> None:
        """A state file that is not valid JSON is rejected."""
        session = invoke_json(runner, state_dir, "session", "create", "x", "research")
        bad = tmp_path / "bad.json"
        bad.write_text("{nope")
        result = invoke(runner, state_dir, "session", "save", session["sessionId"], str(bad), "x")
        assert result.exit_code == 1
        assert "Invalid state file" in result.output

    def test_resume_unknown(self, runner: CliRunner, state_dir: Path) -> None:
        """Unknown sessions exit 1."""
        result = invoke(runner, state_dir, "session", "resume", "session-none-1")
        assert result.exit_code == 1


class TestHealthCommands:
    """Tests for the health group."""

    def test_check_json(self, runner: CliRunner, state_dir: Path) -> None:
        """check reports overall status and saves the report."""
        data = invoke_json(runner, state_dir, "health", "check")
        assert data["overall"] == "healthy"
        assert (state_dir / "health" / "system-health.json").exists()

    def test_check_text(self, runner: CliRunner, state_dir: Path) -> None:
        """Text output names the overall status."""
        result = invoke(runner, state_dir, "health", "check", "--no-save")
        assert result.exit_code == 0
        assert "HEALTHY" in result.output

    def test_watch_with_count(self, runner: CliRunner, state_dir: Path) -> None:
        """watch stops after --count checks."""
        result = invoke(runner, state_dir, "health", "watch", "--interval", "0.1", "--count", "2")
        assert result.exit_code == 0
        assert result.output.count("System health") == 2
