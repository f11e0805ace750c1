"""Project learnings, flow memory and cross-project knowledge."""

import logging
import time
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from epicchat.constants import (
    DEFAULT_CROSS_PROJECT_TTL,
    FLOW_DIR,
    LEARNINGS_FILENAME,
    LEARNINGS_HEADER,
    MAX_CROSS_PROJECT_CHARS,
    MAX_LEARNINGS_ENTRIES,
    MAX_LEARNINGS_SIZE,
    MAX_PER_PROJECT_CHARS,
    MIN_PARTIAL_SECTION_CHARS,
    TRUNCATION_MARKER,
)
from epicchat.models import RegisteredProject

logger = logging.getLogger(__name__)


def get_learnings_path(workspace_root: Path) -> Path:
    return Path(workspace_root) / LEARNINGS_FILENAME


def read_learnings(workspace_root: Path) -> str:
    """Read the workspace learnings file.

    Oversized files are cut down to the header line plus the most recent
    entries, where an entry starts at a ``- `` bullet.

    Args:
        workspace_root: Workspace directory

    Returns:
        Learnings text, or an empty string if missing or unreadable
    """
    path = get_learnings_path(workspace_root)
    try:
        if not path.exists():
            return ""
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Failed to read learnings from %s: %s", path, e)
        return ""

    if len(content) <= MAX_LEARNINGS_SIZE:
        return content

    lines = content.split("\n")
    header = lines[0] or LEARNINGS_HEADER
    entries: list[str] = []
    current: list[str] = []
    for line in lines[1:]:
        if line.startswith("- ") and current:
            entries.append("\n".join(current))
            current = [line]
        else:
            current.append(line)
    if current:
        entries.append("\n".join(current))

    kept = entries[-MAX_LEARNINGS_ENTRIES:]
    return header + "\n" + "\n".join(kept)


def append_learnings(workspace_root: Path, entries: list[str]) -> None:
    """Append dated bullet entries to the learnings file.

    Args:
        workspace_root: Workspace directory
        entries: Learning texts, one bullet each
    """
    if not entries:
        return

    path = get_learnings_path(workspace_root)
    try:
        if not path.exists():
            path.write_text(f"{LEARNINGS_HEADER}\n\n", encoding="utf-8")

        stamp = date.today().isoformat()
        formatted = "".join(f"- [{stamp}] {entry}\n" for entry in entries)
        with open(path, "a", encoding="utf-8") as f:
            f.write(formatted)
        logger.debug("Appended %d learnings to %s", len(entries), path)
    except OSError as e:
        logger.warning("Failed to append learnings to %s: %s", path, e)


def read_flow_memory(project_root: Path) -> Optional[str]:
    """Read ``.flow/memory/*.md`` as ``### <topic>`` sections.

    Returns:
        Joined sections, or None when there is no non-empty memory file
    """
    memory_dir = Path(project_root) / FLOW_DIR / "memory"
    try:
        if not memory_dir.is_dir():
            return None
        files = sorted(memory_dir.glob("*.md"))
    except OSError:
        return None

    sections = []
    for file in files:
        try:
            content = file.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError):
            continue  # Skip unreadable files
        if content:
            sections.append(f"### {file.stem}\n{content}")

    return "\n\n".join(sections) if sections else None


@dataclass
class _CacheEntry:
    context: str
    timestamp: float


class CrossProjectContextCache:
    """Knowledge gathered from other registered projects, cached per workspace."""

    def __init__(
        self,
        ttl: float = DEFAULT_CROSS_PROJECT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache.

        Args:
            ttl: Seconds a gathered context stays valid
            clock: Time source (monotonic seconds)
        """
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    def gather(
        self, current_root: str, projects: list[RegisteredProject]
    ) -> Optional[str]:
        """Collect learnings and memory from every project except the current one.

        Projects with more material are placed first; the result is packed
        into a fixed character budget.

        Args:
            current_root: Workspace root of the active conversation
            projects: Registered projects

        Returns:
            Formatted ``### <project>`` sections, or None
        """
        cached = self._entries.get(current_root)
        if cached and self.clock() - cached.timestamp < self.ttl:
            return cached.context or None

        entries: list[tuple[str, str]] = []
        for project in projects:
            if project.path == current_root:
                continue
            content = self._project_knowledge(Path(project.path))
            if content:
                entries.append((project.name or Path(project.path).name, content))

        entries.sort(key=lambda entry: len(entry[1]), reverse=True)

        sections: list[str] = []
        total = 0
        for name, content in entries:
            section = f"### {name}\n{content}"
            if total + len(section) > MAX_CROSS_PROJECT_CHARS:
                remaining = MAX_CROSS_PROJECT_CHARS - total
                if remaining > MIN_PARTIAL_SECTION_CHARS:
                    sections.append(
                        f"### {name}\n{content[:remaining - 50]}{TRUNCATION_MARKER}"
                    )
                break
            sections.append(section)
            total += len(section)

        context = "\n\n".join(sections)
        self._entries[current_root] = _CacheEntry(context, self.clock())
        return context or None

    def invalidate(self, current_root: Optional[str] = None) -> None:
        if current_root is None:
            self._entries.clear()
        else:
            self._entries.pop(current_root, None)

    @staticmethod
    def _project_knowledge(project_root: Path) -> Optional[str]:
        parts = []

        learnings_path = project_root / LEARNINGS_FILENAME
        try:
            if learnings_path.exists():
                learnings = learnings_path.read_text(encoding="utf-8").strip()
                if learnings:
                    parts.append(learnings)
        except (OSError, UnicodeDecodeError):
            pass  # Skip unreadable learnings

        memory = read_flow_memory(project_root)
        if memory:
            parts.append(memory)

        if not parts:
            return None

        content = "\n\n".join(parts)
        if len(content) > MAX_PER_PROJECT_CHARS:
            content = content[:MAX_PER_PROJECT_CHARS] + TRUNCATION_MARKER
        return content
