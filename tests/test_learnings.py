"""Tests for learnings, flow memory and cross-project context."""

import re

from epicchat.constants import (
    MAX_CROSS_PROJECT_CHARS,
    MAX_LEARNINGS_ENTRIES,
    MAX_PER_PROJECT_CHARS,
)
from epicchat.learnings import (
    CrossProjectContextCache,
    append_learnings,
    read_flow_memory,
    read_learnings,
)
from epicchat.models import RegisteredProject


def test_read_missing_learnings(temp_dir):
    assert read_learnings(temp_dir) == ""


def test_append_creates_header(temp_dir):
    append_learnings(temp_dir, ["Decision (high): use SQLite", "Risk (perf): add index"])

    content = (temp_dir / "learnings.md").read_text()
    assert content.startswith("# Learnings\n\n")
    lines = [line for line in content.splitlines() if line.startswith("- ")]
    assert len(lines) == 2
    assert re.match(r"- \[\d{4}-\d{2}-\d{2}\] Decision \(high\): use SQLite", lines[0])


def test_append_nothing_is_noop(temp_dir):
    append_learnings(temp_dir, [])

    assert not (temp_dir / "learnings.md").exists()


def test_oversized_learnings_keep_recent_entries(temp_dir):
    entries = [f"- [2026-01-01] entry {i} " + "x" * 200 for i in range(100)]
    (temp_dir / "learnings.md").write_text("# Learnings\n" + "\n".join(entries))

    content = read_learnings(temp_dir)

    assert content.startswith("# Learnings\n")
    kept = [line for line in content.splitlines() if line.startswith("- ")]
    assert len(kept) == MAX_LEARNINGS_ENTRIES
    assert "entry 99 " in kept[-1]
    assert "entry 50 " in kept[0]


def test_read_flow_memory(temp_dir):
    memory = temp_dir / ".flow" / "memory"
    memory.mkdir(parents=True)
    (memory / "api.md").write_text("Use REST.\n")
    (memory / "empty.md").write_text("  \n")
    (memory / "notes.txt").write_text("ignored")

    assert read_flow_memory(temp_dir) == "### api\nUse REST."


def test_read_flow_memory_missing(temp_dir):
    assert read_flow_memory(temp_dir) is None


def make_project(root, name, learnings):
    path = root / name
    path.mkdir()
    (path / "learnings.md").write_text(learnings)
    return RegisteredProject(path=str(path), name=name)


def test_cross_project_orders_by_size(temp_dir):
    small = make_project(temp_dir, "small", "tiny")
    big = make_project(temp_dir, "big", "much more material here")
    cache = CrossProjectContextCache()

    context = cache.gather(str(temp_dir / "current"), [small, big])

    assert context.index("### big") < context.index("### small")


def test_cross_project_truncates_per_project(temp_dir):
    project = make_project(temp_dir, "huge", "y" * (MAX_PER_PROJECT_CHARS + 500))

    context = CrossProjectContextCache().gather(str(temp_dir / "current"), [project])

    assert context.endswith("...(truncated)")
    assert len(context) < MAX_PER_PROJECT_CHARS + 100


def test_cross_project_respects_budget(temp_dir):
    projects = [
        make_project(temp_dir, f"p{i}", str(i) * (MAX_PER_PROJECT_CHARS + 10))
        for i in range(5)
    ]

    context = CrossProjectContextCache().gather(str(temp_dir / "current"), projects)

    assert len(context) <= MAX_CROSS_PROJECT_CHARS + 100
    assert context.count("### p") == 3


def test_cross_project_excludes_current(temp_dir):
    current = make_project(temp_dir, "current", "mine")

    assert CrossProjectContextCache().gather(current.path, [current]) is None


def test_cross_project_cache_ttl(temp_dir):
    now = [0.0]
    project = make_project(temp_dir, "other", "first")
    cache = CrossProjectContextCache(ttl=60, clock=lambda: now[0])
    current = str(temp_dir / "current")

    assert "first" in cache.gather(current, [project])

    (temp_dir / "other" / "learnings.md").write_text("second")
    now[0] = 30.0
    assert "first" in cache.gather(current, [project])

    now[0] = 61.0
    assert "second" in cache.gather(current, [project])

    (temp_dir / "other" / "learnings.md").write_text("third")
    cache.invalidate(current)
    assert "third" in cache.gather(current, [project])
