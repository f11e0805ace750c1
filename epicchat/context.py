"""Context providers that read an epic's surroundings from the workspace."""

import json
import logging
from pathlib import Path
from typing import Optional, Protocol

from epicchat.constants import (
    FLOW_DIR,
    NO_EPIC_TASKS_TEXT,
    NO_TASKS_DIR_TEXT,
    TASKS_UNREADABLE_TEXT,
)
from epicchat.learnings import CrossProjectContextCache, read_flow_memory, read_learnings
from epicchat.models import ContextBundle, RegisteredProject
from epicchat.system_prompt import build_extra_context

logger = logging.getLogger(__name__)


class ContextProvider(Protocol):
    """Read-only accessors for the context of one conversation."""

    def read_spec(self, workspace_root: str, epic_id: str) -> Optional[str]: ...

    def read_task_summary(self, workspace_root: str, epic_id: str) -> str: ...

    def read_project_name(self, workspace_root: str) -> str: ...

    def read_learnings(self, workspace_root: str) -> Optional[str]: ...

    def read_memory(self, workspace_root: str) -> Optional[str]: ...


class FlowContextReader:
    """Reads specs, tasks and learnings from a workspace's ``.flow`` directory."""

    def read_spec(self, workspace_root: str, epic_id: str) -> Optional[str]:
        spec_path = Path(workspace_root) / FLOW_DIR / "specs" / f"{epic_id}.md"
        try:
            return spec_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def read_task_summary(self, workspace_root: str, epic_id: str) -> str:
        """Summarize the epic's tasks, one ``- [status] id: title`` line each.

        Args:
            workspace_root: Workspace directory
            epic_id: Epic identifier; task files are named ``<epic_id>.<n>.json``

        Returns:
            Task lines, or a fallback sentence when nothing can be listed
        """
        tasks_dir = Path(workspace_root) / FLOW_DIR / "tasks"
        try:
            if not tasks_dir.exists():
                return NO_TASKS_DIR_TEXT
            task_files = sorted(
                f for f in tasks_dir.iterdir()
                if f.name.startswith(f"{epic_id}.") and f.name.endswith(".json")
            )
        except OSError:
            return TASKS_UNREADABLE_TEXT

        lines = []
        for task_file in task_files:
            try:
                task = json.loads(task_file.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError):
                continue  # Skip unreadable task files
            if not isinstance(task, dict):
                continue
            status = task.get("status") or "unknown"
            task_id = task.get("id") or task_file.name
            title = task.get("title") or "Untitled"
            lines.append(f"- [{status}] {task_id}: {title}")

        return "\n".join(lines) if lines else NO_EPIC_TASKS_TEXT

    def read_project_name(self, workspace_root: str) -> str:
        package_json = Path(workspace_root) / "package.json"
        try:
            if package_json.exists():
                name = json.loads(package_json.read_text(encoding="utf-8")).get("name")
                if name and isinstance(name, str):
                    return name
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, AttributeError):
            pass  # Fall through to directory name
        return _default_project_name(workspace_root)

    def read_learnings(self, workspace_root: str) -> Optional[str]:
        learnings = read_learnings(Path(workspace_root))
        return learnings if learnings.strip() else None

    def read_memory(self, workspace_root: str) -> Optional[str]:
        return read_flow_memory(Path(workspace_root))


def _default_project_name(workspace_root: str) -> str:
    return Path(workspace_root).name or str(workspace_root) or "project"


def gather_context(
    provider: ContextProvider,
    workspace_root: str,
    epic_id: str,
    projects: Optional[list[RegisteredProject]] = None,
    cache: Optional[CrossProjectContextCache] = None,
) -> ContextBundle:
    """Build a fresh context bundle, degrading every failed read to its fallback.

    Args:
        provider: Context provider
        workspace_root: Workspace directory
        epic_id: Epic identifier
        projects: Registered projects for cross-project knowledge
        cache: Cross-project cache (only consulted when projects are given)

    Returns:
        ContextBundle; never raises for provider failures
    """

    def attempt(what: str, read, fallback):
        try:
            return read()
        except Exception as e:
            logger.debug("Could not read %s for %s: %s", what, workspace_root, e)
            return fallback

    spec = attempt("spec", lambda: provider.read_spec(workspace_root, epic_id), None)
    tasks = attempt(
        "tasks",
        lambda: provider.read_task_summary(workspace_root, epic_id),
        TASKS_UNREADABLE_TEXT,
    )
    project_name = attempt(
        "project name",
        lambda: provider.read_project_name(workspace_root),
        None,
    )
    learnings = attempt("learnings", lambda: provider.read_learnings(workspace_root), None)
    memory = attempt("memory", lambda: provider.read_memory(workspace_root), None)

    cross_project = None
    if projects:
        cache = cache or CrossProjectContextCache()
        cross_project = attempt(
            "cross-project context",
            lambda: cache.gather(workspace_root, projects),
            None,
        )

    return ContextBundle(
        spec=_text_or_none(spec),
        tasks=_text_or_none(tasks) or NO_EPIC_TASKS_TEXT,
        project_name=_text_or_none(project_name) or _default_project_name(workspace_root),
        learnings=_text_or_none(learnings),
        extra_context=build_extra_context(_text_or_none(memory), _text_or_none(cross_project)),
    )


def _text_or_none(value: object) -> Optional[str]:
    return value if isinstance(value, str) and value.strip() else None
