"""Configuration management for kvtool.

Reads the Cloudflare account identifier and API token from a
wrangler-style TOML file (``./wrangler.toml`` by default). Values can be
overridden through environment variables so tokens need not live on disk:

- KVTOOL_ACCOUNT_ID
- KVTOOL_API_TOKEN

The configuration is loaded once at process entry and passed explicitly to
every component; it is never mutated afterwards.
"""

import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from kvtool.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("wrangler.toml")
DEFAULT_API_BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_CONCURRENCY = 32


@dataclass(frozen=True)
class KvConfig:
    """Configuration for kvtool.

    Attributes:
        account_id: Cloudflare account identifier
        api_token: API token sent as a bearer credential
        concurrency: Maximum simultaneous per-key requests or file writes
        api_base_url: Cloudflare API root (overridable for testing)
    """

    account_id: str
    api_token: str
    concurrency: int = DEFAULT_CONCURRENCY
    api_base_url: str = DEFAULT_API_BASE_URL

    @property
    def account_url(self) -> str:
        """Base URL for account-scoped resources."""
        return f"{self.api_base_url.rstrip('/')}/accounts/{self.account_id}"

    @classmethod
    def load(
        cls, path: Optional[Path] = None, concurrency: Optional[int] = None
    ) -> "KvConfig":
        """Load configuration from a TOML file.

        Args:
            path: Path to config file (defaults to ./wrangler.toml)
            concurrency: Overrides the file's ``[kvtool] concurrency`` value

        Returns:
            KvConfig instance with loaded values

        Raises:
            ConfigError: If the file is missing, unparsable, or lacks a
                required field
        """
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e

        account_id = os.environ.get("KVTOOL_ACCOUNT_ID") or data.get("account_id")
        api_token = os.environ.get("KVTOOL_API_TOKEN") or data.get("api_token")

        missing = [
            name
            for name, value in (("account_id", account_id), ("api_token", api_token))
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required config field(s) in {path}: {', '.join(missing)}")

        section = data.get("kvtool", {})
        if concurrency is None:
            concurrency = section.get("concurrency", DEFAULT_CONCURRENCY)
        # TOML booleans are ints to isinstance()
        if not isinstance(concurrency, int) or isinstance(concurrency, bool):
            raise ConfigError(f"concurrency must be an integer, got {concurrency!r}")
        if concurrency < 1:
            raise ConfigError(f"concurrency must be at least 1, got {concurrency}")

        return cls(
            account_id=str(account_id),
            api_token=str(api_token),
            concurrency=concurrency,
            api_base_url=section.get("api_base_url", DEFAULT_API_BASE_URL),
        )


def get_data_dir() -> Path:
    """Get the platform-specific data directory.

    Returns:
        Path to the kvtool data directory (holds the log file).
    """
    if sys.platform == "darwin" or sys.platform == "linux":
        xdg_state = os.environ.get("XDG_STATE_HOME")
        if xdg_state:
            return Path(xdg_state) / "kvtool"
        return Path.home() / ".local" / "state" / "kvtool"
    elif sys.platform == "win32":
        appdata = os.environ.get("LOCALAPPDATA")
        if appdata:
            return Path(appdata) / "kvtool"
        return Path.home() / "AppData" / "Local" / "kvtool"
    else:
        return Path.home() / ".kvtool"


def get_log_dir() -> Path:
    """Get the directory for kvtool log files."""
    return get_data_dir() / "logs"
