"""Tests for the REPL and terminal surface."""

import io

from conftest import FakeCompletionClient, FakeStream, StatusError
from rich.console import Console

from epicchat.cli import REPL, RichSurface
from epicchat.models import CommandType, ErrorEvent, ErrorKind, TextComplete, TextDelta


def test_rich_surface_renders_events():
    output = io.StringIO()
    surface = RichSurface(Console(file=output, width=80))

    surface.deliver("E1", TextDelta(text="Hello [b]"))
    surface.deliver("E1", TextComplete())
    surface.deliver("E1", ErrorEvent(kind=ErrorKind.AUTH, message="Authentication failed."))

    rendered = output.getvalue()
    assert "Hello [b]" in rendered
    assert "Error (auth)" in rendered
    assert "ANTHROPIC_API_KEY" in rendered


def test_repl_mode_switch_and_learn(test_workspace, mock_config):
    repl = REPL(test_workspace, "fn-1", mock_config)
    try:
        repl.handle_input("/review")
        assert repl.command_type is CommandType.REVIEW

        repl.handle_input("/learn Decision: keep tasks small")
        assert "Decision: keep tasks small" in (test_workspace / "learnings.md").read_text()
    finally:
        repl.loop.close()


def test_repl_send_keeps_history(test_workspace, mock_config):
    repl = REPL(test_workspace, "fn-1", mock_config)
    client = FakeCompletionClient(
        FakeStream(["Sure"]), FakeStream(error=StatusError("slow down", 429))
    )
    repl.agent.client = client
    try:
        repl.send("Plan it")
        repl.send("Again")
    finally:
        repl.loop.close()

    assert [(m.role, m.content) for m in repl.history] == [
        ("user", "Plan it"),
        ("assistant", "Sure"),
    ]
    assert client.calls[1][1][-1] == {"role": "user", "content": "Again"}
    statuses = [r["status"] for r in repl.logger.read_sessions()]
    assert statuses == ["started", "completed", "started", "errored"]
