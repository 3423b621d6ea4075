"""
Pipeline Configuration.

Settings live in ``config.json`` inside the data directory
(``~/.cryptopiano`` unless ``CRYPTOPIANO_HOME`` points elsewhere).
Environment variables override the file:

    CRYPTOPIANO_HOME        data directory
    CRYPTOPIANO_LOG_LEVEL   logging level name
    CRYPTOPIANO_LEVEL       signature security level (2, 3 or 5)
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


CONFIG_FILENAME = "config.json"
CONTACTS_FILENAME = "contacts.json"
KEYPAIR_FILENAME = "identity.json"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def default_data_dir() -> Path:
    """Data directory from ``CRYPTOPIANO_HOME`` or ``~/.cryptopiano``."""
    env = os.environ.get("CRYPTOPIANO_HOME")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".cryptopiano"


@dataclass
class PipelineConfig:
    """
    Settings for the message pipeline and its command line front end.

    Attributes:
        security_level: ML-DSA level for new key pairs and signing (2, 3 or 5)
        sign_messages: Sign composed messages whenever a local key pair exists
        associated_data: Context string authenticated by the password envelope;
            sender and recipient must agree on it
        data_dir: Directory holding the config file, contacts and key pair
        log_level: Logging level name
    """

    security_level: int = 3
    sign_messages: bool = True
    associated_data: str = ""
    data_dir: Path = field(default_factory=default_data_dir)
    log_level: str = "WARNING"

    def validate(self) -> None:
        """
        Raises:
            ValueError: On an unknown security level or log level
        """
        if self.security_level not in (2, 3, 5):
            raise ValueError(f"security_level must be 2, 3 or 5, got {self.security_level!r}")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level!r}")

    @property
    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME

    @property
    def contacts_path(self) -> Path:
        return self.data_dir / CONTACTS_FILENAME

    @property
    def keypair_path(self) -> Path:
        return self.data_dir / KEYPAIR_FILENAME

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["data_dir"] = str(self.data_dir)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Build a config from a dict, ignoring unknown keys."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "data_dir" in known:
            known["data_dir"] = Path(known["data_dir"]).expanduser()
        config = cls(**known)
        config.validate()
        return config

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "PipelineConfig":
        """
        Load settings from ``path`` (default: ``config.json`` in the data
        directory), then apply environment overrides.

        A missing file yields the defaults.

        Raises:
            ValueError: If the file is not valid JSON or holds invalid values
        """
        path = Path(path) if path else default_data_dir() / CONFIG_FILENAME
        data: Dict[str, Any] = {}

        if path.exists():
            try:
                with path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid configuration file {path}: {e}") from e
            logger.debug(f"Loaded configuration from {path}")

        if os.environ.get("CRYPTOPIANO_HOME"):
            data["data_dir"] = os.environ["CRYPTOPIANO_HOME"]
        if os.environ.get("CRYPTOPIANO_LOG_LEVEL"):
            data["log_level"] = os.environ["CRYPTOPIANO_LOG_LEVEL"].upper()
        if os.environ.get("CRYPTOPIANO_LEVEL"):
            try:
                data["security_level"] = int(os.environ["CRYPTOPIANO_LEVEL"])
            except ValueError:
                raise ValueError(f"CRYPTOPIANO_LEVEL must be an integer, got {os.environ['CRYPTOPIANO_LEVEL']!r}") from None

        return cls.from_dict(data)

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Write settings as JSON and return the path written."""
        path = Path(path) if path else self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        return path
