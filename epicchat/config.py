"""Configuration loading and management."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from epicchat.constants import (
    DEFAULT_CROSS_PROJECT_TTL,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    EPICCHAT_DIR,
    SUPPORTED_MODELS,
)
from epicchat.models import RegisteredProject


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value)


@dataclass
class Config:
    """epicchat configuration.

    Loads from .env and optionally .epicchat/config.json
    """

    # API key (opaque lookup, never displayed)
    anthropic_api_key: Optional[str] = None

    # Model settings
    default_model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS

    # Streaming settings
    stream_timeout: Optional[float] = None
    cross_project_ttl: float = DEFAULT_CROSS_PROJECT_TTL

    # Registered projects (from .epicchat/config.json)
    projects: list[RegisteredProject] = field(default_factory=list)

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> "Config":
        """Load configuration from environment and project-specific config.

        Args:
            project_root: Project root directory (for .epicchat/config.json)

        Returns:
            Config instance
        """
        load_dotenv()

        config = cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            default_model=os.getenv("EPICCHAT_DEFAULT_MODEL", DEFAULT_MODEL),
            max_tokens=int(os.getenv("EPICCHAT_MAX_TOKENS", DEFAULT_MAX_TOKENS)),
            stream_timeout=_optional_float(os.getenv("EPICCHAT_STREAM_TIMEOUT")),
            cross_project_ttl=float(
                os.getenv("EPICCHAT_CROSS_PROJECT_TTL", DEFAULT_CROSS_PROJECT_TTL)
            ),
        )

        if project_root:
            config_path = project_root / EPICCHAT_DIR / "config.json"
            if config_path.exists():
                try:
                    with open(config_path) as f:
                        project_config = json.load(f)
                    config.projects = [
                        RegisteredProject(
                            path=entry["path"],
                            name=entry.get("name") or Path(entry["path"]).name,
                        )
                        for entry in project_config.get("projects", [])
                        if isinstance(entry, dict) and entry.get("path")
                    ]
                except (json.JSONDecodeError, IOError, AttributeError):
                    pass  # Ignore invalid config

        return config

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.anthropic_api_key:
            errors.append("No API key found. Set ANTHROPIC_API_KEY")

        if self.default_model not in SUPPORTED_MODELS:
            errors.append(f"Unsupported model: {self.default_model}")

        if self.max_tokens <= 0:
            errors.append("max_tokens must be positive")

        if self.stream_timeout is not None and self.stream_timeout <= 0:
            errors.append("stream_timeout must be positive")

        if self.cross_project_ttl < 0:
            errors.append("cross_project_ttl must not be negative")

        return errors

    def to_dict(self) -> dict:
        """Convert config to dictionary (for logging/display)."""
        return {
            "default_model": self.default_model,
            "max_tokens": self.max_tokens,
            "stream_timeout": self.stream_timeout,
            "cross_project_ttl": self.cross_project_ttl,
            "projects": [p.name for p in self.projects],
            "has_anthropic_key": bool(self.anthropic_api_key),
        }
