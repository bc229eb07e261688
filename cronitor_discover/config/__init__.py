import os
import socket
import yaml
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from cronitor_discover.config.logging import logger
from cronitor_discover.errors import ConfigurationError

# === CONFIGURATION ===
CONFIG_FILE = os.path.expanduser(os.environ.get("CRONITOR_CONFIG", "~/.cronitor.yaml"))
DEFAULT_API_URL = "https://cronitor.io/api/monitors"
DEFAULT_TIMEOUT = 30
MIN_API_KEY_LENGTH = 10


@dataclass(frozen=True)
class DiscoverOptions:
    """Per-run options, built once from the command line."""
    crontab_path: str
    exclude_from_name: Tuple[str, ...] = ()
    no_auto_discover: bool = False
    no_stdout: bool = False
    save: bool = False
    is_auto: bool = False
    verbose: bool = False
    invocation: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Settings:
    """Account and host settings resolved from flags, environment and config file."""
    api_key: str = ""
    api_url: str = DEFAULT_API_URL
    hostname: str = ""
    timezone: Optional[str] = None
    timeout: int = DEFAULT_TIMEOUT
    exclude_from_name: Tuple[str, ...] = field(default_factory=tuple)


def load_config_file(path: str = CONFIG_FILE) -> Dict:
    """Load settings from YAML config file."""
    if not os.path.exists(path):
        logger.debug("Config file not found at %s", path)
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        logger.error("YAML parsing error in %s: %s", path, e)
        return {}
    except OSError as e:
        logger.error("Error loading config file %s: %s", path, e)
        return {}


def parse_timeout(value) -> int:
    """Request timeout in seconds; must be a positive whole number."""
    try:
        timeout = int(value)
    except (TypeError, ValueError):
        timeout = 0
    if timeout <= 0:
        raise ConfigurationError(f"invalid timeout {value!r} in configuration file; expected seconds")
    return timeout


def load_settings(overrides: Optional[Dict] = None, path: Optional[str] = None) -> Settings:
    """Resolve settings: flags, then environment, then config file."""
    overrides = {k: v for k, v in (overrides or {}).items() if v}
    file_values = load_config_file(path or CONFIG_FILE)

    def pick(name: str, env: str, default=None):
        if name in overrides:
            return overrides[name]
        if os.environ.get(env):
            return os.environ[env]
        return file_values.get(name, default)

    exclusions = file_values.get("exclude_from_name") or []
    if isinstance(exclusions, str):
        exclusions = [exclusions]

    return Settings(
        api_key=str(pick("api_key", "CRONITOR_API_KEY", "")),
        api_url=str(pick("api_url", "CRONITOR_API_URL", DEFAULT_API_URL)),
        hostname=str(pick("hostname", "CRONITOR_HOSTNAME", "")),
        timezone=pick("timezone", "TZ"),
        timeout=parse_timeout(file_values.get("timeout", DEFAULT_TIMEOUT)),
        exclude_from_name=tuple(str(e) for e in exclusions),
    )


def effective_hostname(settings: Settings) -> str:
    return settings.hostname or socket.gethostname()
