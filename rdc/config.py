"""Client configuration: credentials, API base URL and timeouts."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from rdc.models import ConfigError

logger = logging.getLogger("rdc-session.config")

CONFIG_DIR = Path.home() / ".rdc"
USER_CONFIG_FILE = CONFIG_DIR / "config.json"

USERNAME_ENV = "SAUCE_USERNAME"
ACCESS_KEY_ENV = "SAUCE_ACCESS_KEY"
LEGACY_ACCESS_KEY_ENV = "SAUCE_API_KEY"
ENVIRONMENT_ENV = "ENVIRONMENT"
BASE_URL_ENV = "RDC_BASE_URL"

DEFAULT_REGION = "us-west-1"
DEFAULT_OS = "Android"

# Data-center aliases accepted in ~/.rdc/config.json
DATA_CENTERS = {
    "US_WEST": "us-west-1",
    "US_EAST": "us-east-4",
    "EU_CENTRAL": "eu-central-1",
}


def base_url_for(region: str) -> str:
    """Build the RDC v2 API root for a data-center alias or raw host segment."""
    segment = DATA_CENTERS.get(region.upper(), region)
    return f"https://api.{segment}.saucelabs.com/rdc/v2/"


@dataclass
class ClientConfig:
    """Everything needed to talk to the device cloud API."""

    username: str
    access_key: str = field(repr=False)
    base_url: str = field(default_factory=lambda: base_url_for(DEFAULT_REGION))
    connect_timeout: float = 20.0
    request_timeout: float = 30.0
    poll_interval: float = 5.0

    def __post_init__(self) -> None:
        if not self.username or not self.access_key:
            raise ConfigError("Both username and access key are required")
        if not self.base_url.endswith("/"):
            self.base_url += "/"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ClientConfig:
        """Load credentials and base URL from the environment.

        Missing credentials are a hard startup failure, never retried.
        """
        env = os.environ if environ is None else environ

        username = _require(env, USERNAME_ENV)
        access_key = env.get(ACCESS_KEY_ENV, "").strip() or env.get(LEGACY_ACCESS_KEY_ENV, "").strip()
        if not access_key:
            raise ConfigError(f"Missing required environment variable: {ACCESS_KEY_ENV}")

        base_url = env.get(BASE_URL_ENV, "").strip()
        if not base_url:
            environment = env.get(ENVIRONMENT_ENV, "").strip()
            base_url = base_url_for(environment or get_default_region())

        return cls(username=username, access_key=access_key, base_url=base_url)


def _require(env, name: str) -> str:  # noqa: ANN001
    value = env.get(name, "").strip()
    if not value:
        raise ConfigError(f"Missing required environment variable: {name}")
    return value


def read_user_config() -> dict:
    """Read user config from ~/.rdc/config.json. Returns {} if missing or invalid."""
    if not USER_CONFIG_FILE.exists():
        return {}
    try:
        data = json.loads(USER_CONFIG_FILE.read_text())
    except Exception as e:
        logger.warning("Failed to read config file %s: %s", USER_CONFIG_FILE, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: expected a JSON object", USER_CONFIG_FILE)
        return {}
    return data


def get_default_region() -> str:
    """Return the configured region, defaulting to us-west-1."""
    return str(read_user_config().get("region") or DEFAULT_REGION)


def get_default_os() -> str:
    """Return the configured device OS class, defaulting to 'Android'."""
    return str(read_user_config().get("default_os") or DEFAULT_OS)
