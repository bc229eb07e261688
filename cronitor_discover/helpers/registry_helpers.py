import json
import requests
from typing import Any, Dict, List
from cronitor_discover import __version__
from cronitor_discover.config import Settings
from cronitor_discover.config.logging import logger
from cronitor_discover.errors import RegistryError
from cronitor_discover.helpers.monitor_helpers import Monitor

USER_AGENT = f"cronitor-discover/{__version__}"


class RegistryClient:
    """Submits discovered monitors to the registry in a single batch."""

    def __init__(self, settings: Settings):
        self.api_key = settings.api_key
        self.api_url = settings.api_url
        self.timeout = settings.timeout

    def _put(self, url: str, payload: List[Dict[str, Any]]) -> Any:
        logger.debug("Request to %s:\n%s", url, json.dumps(payload, indent=2))
        try:
            resp = requests.put(
                url,
                json=payload,
                auth=(self.api_key, ""),
                headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RegistryError(f"Request to {url} failed: {e}")

        logger.debug("Response from %s (%s):\n%s", url, resp.status_code, resp.text)
        if not 200 <= resp.status_code < 300:
            raise RegistryError(f"Error from {url}: {resp.status_code} {resp.text}")
        try:
            return resp.json()
        except ValueError:
            raise RegistryError(f"Error from {url}: {resp.text}")

    def put_monitors(self, monitors: Dict[str, Monitor], is_auto: bool = False) -> Dict[str, Monitor]:
        """Create or update monitors and merge assigned codes back by key."""
        url = self.api_url
        if is_auto:
            url = f"{url}?auto-discover=1"

        response = self._put(url, [monitor.to_dict() for monitor in monitors.values()])
        if not isinstance(response, list):
            raise RegistryError(f"Error from {url}: unexpected response {response!r}")

        merge_codes(monitors, response)
        logger.info("Synced %d monitors with %s", len(monitors), self.api_url)
        return monitors


def merge_codes(monitors: Dict[str, Monitor], response: List[Dict[str, Any]]) -> None:
    """Copy server-assigned codes onto monitors that do not have one yet."""
    for entry in response:
        if not isinstance(entry, dict):
            continue
        monitor = monitors.get(entry.get("key"))
        if monitor is not None and not monitor.code and entry.get("code"):
            monitor.code = str(entry["code"])
