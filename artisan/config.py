# artisan/config.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Environment configuration for runners and the supervisor."""

import os
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError


DEFAULT_SERVER = "https://api.artifactsmmo.com"
DEFAULT_DATABASE_URL = "sqlite:///local/artisan.db"
TEST_ENVIRONMENTS = ("test", "testing")

CHARACTER_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_character_name(name: Optional[str]) -> str:
    """Check a character name before it is used in a URL.

    Args:
        name: Candidate character name.

    Returns:
        The name, unchanged.

    Raises:
        ConfigurationError: If the name is empty or has characters outside
            ``[A-Za-z0-9_-]``.
    """
    if not name or not CHARACTER_NAME_PATTERN.match(name):
        raise ConfigurationError(f"Invalid character name: {name!r}")
    return name


def get_env(dotenv_path: Optional[str] = None) -> Dict[str, Any]:
    custom_env = dotenv_path or os.getenv("CUSTOM_ENV_FILE")
    if custom_env is not None:
        load_dotenv(custom_env, override=True)
    else:
        load_dotenv()

    return {
        "api_token": os.getenv("ARTIFACTS_API_TOKEN", None),
        "control_character": os.getenv("control_character", None),
        "server_url": os.getenv("ARTIFACTS_SERVER", DEFAULT_SERVER),
        "environment": os.getenv("ARTISAN_ENV", os.getenv("NODE_ENV", "production")),
        "test_character": os.getenv("test_character", "test_character"),
        "test_token": os.getenv("test_token", "test_token"),

        "database_url": os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        "data_dir": os.getenv("ARTISAN_DATA_DIR", "local/data"),

        "task_cleanup_days": int(os.getenv("TASK_CLEANUP_DAYS", 7)),
        "telemetry_flush_interval": float(os.getenv("TELEMETRY_FLUSH_INTERVAL", 600)),
        "telemetry_flush_threshold": int(os.getenv("TELEMETRY_FLUSH_THRESHOLD", 100)),
        "action_pacing_seconds": float(os.getenv("ACTION_PACING_SECONDS", 0.5)),
        "request_timeout": float(os.getenv("REQUEST_TIMEOUT", 30)),
    }


@dataclass
class ArtisanConfig:
    """Settings shared by runners and the supervisor.

    Attributes:
        api_token: Bearer token for the game API.
        control_character: Default character when none is given on the
            command line.
        server_url: Base URL of the game API.
        environment: ``test`` switches to the test identity.
        test_character: Character name used in test mode.
        test_token: Token used in test mode.
        database_url: SQLAlchemy URL of the relational store.
        data_dir: Directory for telemetry backup files.
        task_cleanup_days: Age after which terminal tasks are deleted.
        telemetry_flush_interval: Seconds between scheduled buffer flushes.
        telemetry_flush_threshold: Queue length that triggers an early flush.
        action_pacing_seconds: Pause after each successful action.
        request_timeout: HTTP timeout in seconds.
    """

    api_token: Optional[str] = None
    control_character: Optional[str] = None
    server_url: str = DEFAULT_SERVER
    environment: str = "production"
    test_character: Optional[str] = "test_character"
    test_token: Optional[str] = "test_token"

    database_url: str = DEFAULT_DATABASE_URL
    data_dir: str = "local/data"

    task_cleanup_days: int = 7
    telemetry_flush_interval: float = 600.0
    telemetry_flush_threshold: int = 100
    action_pacing_seconds: float = 0.5
    request_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Swap in the test identity when running in test mode."""
        if self.is_test:
            self.api_token = self.test_token
            self.control_character = self.test_character
        self.server_url = self.server_url.rstrip("/")

    @property
    def is_test(self) -> bool:
        return (self.environment or "").lower() in TEST_ENVIRONMENTS

    def require_token(self) -> str:
        """Return the API token or abort.

        Raises:
            ConfigurationError: If no token is configured.
        """
        if not self.api_token:
            raise ConfigurationError(
                "ARTIFACTS_API_TOKEN is not set; add it to your .env file"
            )
        return self.api_token

    def resolve_character(self, name: Optional[str] = None) -> str:
        """Pick the character to control.

        Args:
            name: Name from the command line, if any.

        Returns:
            The validated character name.

        Raises:
            ConfigurationError: If no name is available or it is invalid.
        """
        if self.is_test:
            name = self.test_character
        return validate_character_name(name or self.control_character)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_env(cls, dotenv_file: Optional[str] = None) -> "ArtisanConfig":
        env = get_env(dotenv_file)
        return cls(**env)
