"""Block until the configured cadence server answers /health, for CI and compose setups."""

import sys
import time

import requests

from cadence.application.config import AppConfig, resolve_config
from cadence.domain.constants import RESPONSIVENESS_TIMEOUT

ATTEMPTS = 30
POLL_INTERVAL = 1.0


def health_url(config: AppConfig) -> str:
    return f"http://{config.server_host}:{config.server_port}/health"


def server_version(url: str) -> str | None:
    """Version reported by a healthy server, or None while it is unreachable or failing."""
    try:
        response = requests.get(url, timeout=RESPONSIVENESS_TIMEOUT)
    except requests.exceptions.RequestException:
        return None
    if response.status_code != 200:
        return None
    return response.json().get("version", "unknown")


def wait_for_server(url: str, attempts: int = ATTEMPTS, interval: float = POLL_INTERVAL) -> bool:
    for attempt in range(1, attempts + 1):
        version = server_version(url)
        if version is not None:
            print(f"cadence server {version} is up at {url}")
            return True
        if attempt < attempts:
            print(f"{url} not ready ({attempt}/{attempts}), retrying in {interval:g}s")
            time.sleep(interval)
    return False


def main() -> int:
    url = health_url(resolve_config())
    if wait_for_server(url):
        return 0
    print(f"Gave up on {url} after {ATTEMPTS} attempts.", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
