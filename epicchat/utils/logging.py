"""Session run logging utilities."""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from epicchat.constants import EPICCHAT_DIR


class SessionLogger:
    """Records chat session lifecycle transitions as NDJSON.

    Only outcomes are recorded (start, completion, error kind, abort), never
    message content.
    """

    def __init__(self, project_root: Path, run_id: Optional[str] = None):
        """Initialize session logger.

        Args:
            project_root: Project root directory
            run_id: Optional run ID (generated if not provided)
        """
        self.project_root = project_root
        self.run_id = run_id or datetime.now().strftime("%Y%m%d_%H%M%S")

        self.log_dir = project_root / EPICCHAT_DIR / "runs" / self.run_id
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.sessions_path = self.log_dir / "sessions.ndjson"
        self._lock = threading.Lock()

    def log_session(self, epic_id: str, status: str, **details: Any) -> None:
        """Append one lifecycle record.

        Args:
            epic_id: Epic the session belongs to
            status: started, completed, errored or aborted
            **details: Extra JSON-serializable fields
        """
        entry = {
            "ts": datetime.now().isoformat(),
            "epic_id": epic_id,
            "status": status,
            **details,
        }

        with self._lock, open(self.sessions_path, "a") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def read_sessions(self) -> list[dict]:
        """Read back all records of this run.

        Returns:
            Records in write order
        """
        if not self.sessions_path.exists():
            return []
        with open(self.sessions_path) as f:
            return [json.loads(line) for line in f if line.strip()]

    def get_log_path(self) -> str:
        """Get the path to the log directory.

        Returns:
            Absolute path to log directory
        """
        return str(self.log_dir.absolute())
