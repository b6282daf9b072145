"""
Persistent settings for jmsh.
Stored in $XDG_CONFIG_HOME/jmsh/config.json (~/.config/jmsh/config.json)
"""

from __future__ import annotations
import os
import json
import logging
import tempfile
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# On-disk names that differ from the attribute names
_DISK_KEYS = {"save_password": "savePassword", "verify_tls": "verifyTls"}


def default_config_path() -> Path:
    xdg_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(xdg_home) / "jmsh" / "config.json"


def validate_endpoint(endpoint: str) -> None:
    """
    Check a console URL: http(s), a host, no path.

    Raises:
        ValueError: With a message fit to show the user
    """
    if not endpoint.startswith(("http://", "https://")):
        raise ValueError("must be a http url")
    parsed = urlparse(endpoint)
    if not parsed.netloc:
        raise ValueError("must contain a host")
    if parsed.path not in ("", "/"):
        raise ValueError("must not contain path")


@dataclass
class JmshConfig:
    """
    Settings that persist across runs.

    Never holds the password; that lives in the keychain if anywhere.
    """
    endpoint: str = ""
    username: str = ""

    # None means "never asked"
    save_password: Optional[bool] = None

    verify_tls: bool = True
    timeout: float = 30.0

    def to_dict(self) -> dict:
        """Serialize to dict, using on-disk key names."""
        data = {}
        for key, value in asdict(self).items():
            if key == "save_password" and value is None:
                continue
            data[_DISK_KEYS.get(key, key)] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> JmshConfig:
        """Deserialize from dict, ignoring unknown keys."""
        reverse = {v: k for k, v in _DISK_KEYS.items()}
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {}
        for key, value in data.items():
            name = reverse.get(key, key)
            if name in valid_fields:
                filtered[name] = value
        return cls(**filtered)

    @property
    def is_complete(self) -> bool:
        return bool(self.endpoint and self.username)


class ConfigManager:
    """
    Loads and saves the config file.

    Usage:
        manager = ConfigManager()
        config = manager.config

        config.endpoint = "https://jump.example.com"
        manager.save()
    """

    def __init__(self, config_path: Path = None):
        self._config_path = Path(config_path) if config_path else default_config_path()
        self._config: Optional[JmshConfig] = None

    @property
    def path(self) -> Path:
        return self._config_path

    @property
    def config(self) -> JmshConfig:
        """Current config, loading from disk if needed."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> JmshConfig:
        """Load config from disk, or return defaults."""
        if not self._config_path.exists():
            logger.debug("No config file found, using defaults")
            return JmshConfig()
        try:
            data = json.loads(self._config_path.read_text())
            logger.debug(f"Loaded config from {self._config_path}")
            return JmshConfig.from_dict(data)
        except (json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load config: {e}, using defaults")
            return JmshConfig()

    def save(self) -> None:
        """
        Write the config atomically (temp file in the same directory, then rename).

        Raises:
            OSError: If the file cannot be written
        """
        if self._config is None:
            return

        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix="config_", suffix=".json", dir=self._config_path.parent
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(self._config.to_dict(), f, indent=2)
            os.replace(tmp_name, self._config_path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        logger.debug(f"Saved config to {self._config_path}")
