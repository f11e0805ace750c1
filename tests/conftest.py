"""Pytest configuration and fixtures."""

import asyncio
import json
import tempfile
from pathlib import Path
from typing import Optional

import pytest

from epicchat.config import Config
from epicchat.errors import StreamAborted
from epicchat.registry import SessionRegistry


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_workspace(temp_dir):
    """Create a workspace with a .flow directory for epic fn-1."""
    flow = temp_dir / ".flow"
    (flow / "specs").mkdir(parents=True)
    (flow / "tasks").mkdir()
    (flow / "memory").mkdir()

    (flow / "specs" / "fn-1.md").write_text("# Login epic\n\nUsers sign in with email.\n")
    (flow / "tasks" / "fn-1.1.json").write_text(
        json.dumps({"id": "fn-1.1", "title": "Build login form", "status": "done"})
    )
    (flow / "tasks" / "fn-1.2.json").write_text(
        json.dumps({"id": "fn-1.2", "title": "Add session cookie", "status": "todo"})
    )
    (flow / "tasks" / "fn-2.1.json").write_text(
        json.dumps({"id": "fn-2.1", "title": "Other epic", "status": "todo"})
    )
    (flow / "memory" / "conventions.md").write_text("Use snake_case for task ids.\n")

    (temp_dir / "package.json").write_text(json.dumps({"name": "acme-web"}))
    (temp_dir / "learnings.md").write_text("# Learnings\n\n- [2026-01-05] Prefer small tasks\n")

    yield temp_dir


@pytest.fixture
def mock_config(temp_dir):
    """Create a mock configuration."""
    return Config(
        anthropic_api_key="test_key",
        default_model="anthropic:claude-haiku-4-5",
    )


@pytest.fixture
def registry():
    """A registry private to one test."""
    return SessionRegistry()


class FakeStream:
    """Scripted completion stream.

    Emits ``fragments`` in order, then either returns their concatenation,
    raises ``error``, or (with ``hold``) waits until aborted.
    """

    def __init__(self, fragments=(), error: Optional[BaseException] = None, hold: bool = False):
        self.fragments = list(fragments)
        self.error = error
        self.hold = hold
        self.callbacks = []
        self.abort_requested = False
        self._release: Optional[asyncio.Event] = None

    def on_fragment(self, callback):
        self.callbacks.append(callback)

    async def final(self) -> str:
        self._release = asyncio.Event()
        if self.abort_requested:
            self._release.set()
        for text in self.fragments:
            if self.abort_requested:
                raise StreamAborted("aborted")
            for callback in self.callbacks:
                callback(text)
            await asyncio.sleep(0)
        if self.hold:
            await self._release.wait()
            if self.error is None:
                raise StreamAborted("aborted")
        if self.error is not None:
            raise self.error
        return "".join(self.fragments)

    def request_abort(self):
        self.abort_requested = True
        if self._release is not None:
            self._release.set()


class FakeCompletionClient:
    """Hands out scripted streams and records what it was asked to send."""

    def __init__(self, *streams: FakeStream, open_error: Optional[Exception] = None):
        self.streams = list(streams)
        self.open_error = open_error
        self.calls: list[tuple[str, list[dict]]] = []

    def open_stream(self, system_prompt, messages):
        if self.open_error is not None:
            raise self.open_error
        self.calls.append((system_prompt, messages))
        return self.streams.pop(0)


class RecordingSurface:
    """Display surface that keeps every delivered event."""

    def __init__(self):
        self.closed = False
        self.events: list[tuple[str, object]] = []

    def deliver(self, epic_id, event):
        self.events.append((epic_id, event))

    def types(self) -> list[str]:
        return [event.type for _, event in self.events]


class StubProvider:
    """Context provider with fixed answers."""

    def __init__(self, spec=None, tasks="", name="demo", learnings=None, memory=None):
        self.spec = spec
        self.tasks = tasks
        self.name = name
        self.learnings = learnings
        self.memory = memory

    def read_spec(self, workspace_root, epic_id):
        return self.spec

    def read_task_summary(self, workspace_root, epic_id):
        return self.tasks

    def read_project_name(self, workspace_root):
        return self.name

    def read_learnings(self, workspace_root):
        return self.learnings

    def read_memory(self, workspace_root):
        return self.memory


class BrokenProvider:
    """Context provider whose every read fails."""

    def read_spec(self, workspace_root, epic_id):
        raise OSError("disk gone")

    def read_task_summary(self, workspace_root, epic_id):
        raise OSError("disk gone")

    def read_project_name(self, workspace_root):
        raise OSError("disk gone")

    def read_learnings(self, workspace_root):
        raise OSError("disk gone")

    def read_memory(self, workspace_root):
        raise OSError("disk gone")


class StatusError(Exception):
    """Mimics an SDK error carrying an HTTP status."""

    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


@pytest.fixture
def surface():
    return RecordingSurface()
