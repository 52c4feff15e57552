"""HomeFlow configuration management."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class Config:
    """HomeFlow configuration."""

    workspace_path: Path = field(default_factory=lambda: Path.home() / ".homeflow")
    log_level: str = "INFO"
    wal_mode: bool = True

    # Local identity used when no session token is supplied
    user_id: str = "local-user"

    # Plan generation
    default_plan: str = "standard"
    templates_path: Path | None = None

    # Permit checklist items without a typical timeline are due this many days out
    permit_default_days: int = 7

    @classmethod
    def load(cls, workspace_path: Path | None = None) -> Config:
        """Load config from YAML file, env vars, then defaults."""
        config = cls()

        if workspace_path:
            config.workspace_path = workspace_path

        env_path = os.environ.get("HOMEFLOW_WORKSPACE")
        if env_path:
            config.workspace_path = Path(env_path)

        config_file = config.workspace_path / "config.yaml"
        if config_file.exists():
            with open(config_file) as f:
                data = yaml.safe_load(f) or {}
            for key, value in data.items():
                if key == "workspace_path" or not hasattr(config, key):
                    continue
                if key == "templates_path":
                    config.templates_path = Path(value).expanduser() if value else None
                else:
                    setattr(config, key, type(getattr(config, key))(value))

        # Env wins over the file
        env_log = os.environ.get("HOMEFLOW_LOG_LEVEL")
        if env_log:
            config.log_level = env_log

        env_templates = os.environ.get("HOMEFLOW_TEMPLATES")
        if env_templates:
            config.templates_path = Path(env_templates).expanduser()

        return config

    @property
    def db_path(self) -> Path:
        return self.workspace_path / "homeflow.db"

    def save(self) -> None:
        """Save current config to YAML."""
        self.workspace_path.mkdir(parents=True, exist_ok=True)
        config_file = self.workspace_path / "config.yaml"
        data = {
            "log_level": self.log_level,
            "wal_mode": self.wal_mode,
            "user_id": self.user_id,
            "default_plan": self.default_plan,
            "templates_path": str(self.templates_path) if self.templates_path else None,
            "permit_default_days": self.permit_default_days,
        }
        with open(config_file, "w") as f:
            yaml.dump(data, f, default_flow_style=False)
