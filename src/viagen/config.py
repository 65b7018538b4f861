"""Configuration management for viagen using pydantic-settings and platformdirs."""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from platformdirs import user_config_dir, user_state_dir
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Server settings for one project."""

    model_config = SettingsConfigDict(
        env_prefix="VIAGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # .env files carry unrelated application variables
    )

    project_root: Path = Field(default_factory=Path.cwd, description="Project the agent works on")
    editable: List[str] = Field(
        default=["src"],
        description="Files and directories, relative to project_root, the agent may read and write",
    )
    host: str = Field(default="127.0.0.1", description="Interface to bind")
    port: int = Field(default=5174, description="Port to bind")
    route_prefix: str = Field(default="/via", description="Prefix for every route")
    log_level: str = Field(default="INFO", description="Logging level")

    # Read unprefixed, as the assistant and git tooling expect them
    anthropic_api_key: Optional[str] = Field(default=None, validation_alias="ANTHROPIC_API_KEY")
    claude_access_token: Optional[str] = Field(default=None, validation_alias="CLAUDE_ACCESS_TOKEN")
    github_token: Optional[str] = Field(default=None, validation_alias="GITHUB_TOKEN")

    @property
    def assistant_configured(self) -> bool:
        return bool(self.anthropic_api_key or self.claude_access_token)


class ConfigManager:
    """Manages per-user viagen directories and per-project editable patterns."""

    def __init__(self, config_dir: Optional[Path] = None, state_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir or user_config_dir("viagen", "viagen"))
        self.state_dir = Path(state_dir or user_state_dir("viagen", "viagen"))

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.state_dir.mkdir(parents=True, exist_ok=True)

        self.projects_file = self.config_dir / "projects.json"
        self.log_file = self.state_dir / "server.log"

        self.projects: Dict[str, Dict] = self._load_projects()

    def _load_projects(self) -> Dict[str, Dict]:
        """Load per-project overrides from the projects file."""
        if not self.projects_file.exists():
            return {}

        try:
            with open(self.projects_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable {self.projects_file}: {e}")
            return {}

        if not isinstance(data, dict):
            return {}
        return {path: entry for path, entry in data.items() if isinstance(entry, dict)}

    def save_projects(self):
        """Save per-project overrides to the projects file."""
        with open(self.projects_file, "w", encoding="utf-8") as f:
            json.dump(self.projects, f, indent=2, sort_keys=True)

    def set_editable(self, path: Path, editable: List[str]) -> Dict:
        """Store the editable patterns for a project."""
        key = str(path.resolve())
        self.projects[key] = {"editable": list(editable)}
        self.save_projects()
        return self.projects[key]

    def remove_project(self, path: Path) -> bool:
        """Forget the overrides for a project."""
        key = str(path.resolve())
        if key in self.projects:
            del self.projects[key]
            self.save_projects()
            return True
        return False

    def get_project(self, path: Path) -> Optional[Dict]:
        """Get the overrides for a specific project."""
        return self.projects.get(str(path.resolve()))

    def load_settings(self, project_root: Optional[Path] = None, **overrides) -> Settings:
        """Build settings for a project.

        Explicit overrides win over the projects file, which wins over the
        environment and the project's ``.env`` file.
        """
        root = (project_root or Path.cwd()).resolve()
        values: Dict[str, object] = {"project_root": root}

        project = self.get_project(root)
        if project and project.get("editable"):
            values["editable"] = project["editable"]

        values.update({key: value for key, value in overrides.items() if value is not None})
        return Settings(_env_file=root / ".env", **values)
