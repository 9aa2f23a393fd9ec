"""Configuration loader for agentskills."""

import copy
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".agentskills" / "config.yaml"


class Config:
    """Key-value configuration for agentskills backed by a YAML file.

    Holds the repository list, ordering preferences and paths. A missing
    file is an empty configuration; ``set`` writes the file immediately.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration.

        Args:
            config_path: Path to the YAML file. Defaults to $AGENTSKILLS_CONFIG
                or ~/.agentskills/config.yaml
        """
        load_dotenv()
        if config_path is None:
            config_path = os.environ.get("AGENTSKILLS_CONFIG") or DEFAULT_CONFIG_PATH
        self.config_path = Path(config_path).expanduser()
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from the YAML file."""
        if not self.config_path.exists():
            logger.debug(f"No config file at {self.config_path}, using defaults")
            self._config = {}
            return

        with open(self.config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed config file {self.config_path}")
            data = {}
        self._config = data

    def reload(self) -> None:
        self._load_config()

    def save(self) -> None:
        """Write the configuration back to its YAML file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)

    def _substitute_env_vars(self, value: str) -> str:
        """Substitute environment variables in configuration values.

        Args:
            value: String that may be a ${VAR} pattern

        Returns:
            String with environment variables substituted
        """
        if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            var_name = value[2:-1]
            return os.environ.get(var_name, "")
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-separated key.

        Args:
            key: Dot-separated configuration key (e.g., 'state.repo_order')
            default: Default value if key not found

        Returns:
            Configuration value (a copy for containers) or default
        """
        value: Any = self._config

        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        if isinstance(value, str):
            value = self._substitute_env_vars(value)

        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dot-separated key and persist it.

        Args:
            key: Dot-separated configuration key
            value: New value; None removes the key
        """
        keys = key.split(".")
        node = self._config
        for k in keys[:-1]:
            child = node.get(k)
            if not isinstance(child, dict):
                child = {}
                node[k] = child
            node = child

        if value is None:
            node.pop(keys[-1], None)
        else:
            node[keys[-1]] = copy.deepcopy(value)

        self.save()

    @property
    def repositories(self) -> List[Dict[str, Any]]:
        """Get user configured repository records."""
        repos = self.get("repositories", [])
        return [r for r in repos if isinstance(r, dict) and r.get("url")]

    @property
    def cache_dir(self) -> Path:
        """Get the git cache directory."""
        default = Path(tempfile.gettempdir()) / "agentskills-git-cache"
        return Path(self.get("paths.cache_dir", str(default))).expanduser()

    @property
    def log_file(self) -> Optional[Path]:
        """Get the optional log file path."""
        value = self.get("paths.log_file")
        return Path(value).expanduser() if value else None

    @property
    def github_token(self) -> str:
        """Get GitHub token from environment."""
        return os.environ.get("GITHUB_TOKEN", "")
