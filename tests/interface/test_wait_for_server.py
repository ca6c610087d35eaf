import importlib.util
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from cadence.application.config import AppConfig
from cadence.domain.constants import RESPONSIVENESS_TIMEOUT

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "wait_for_server.py"


@pytest.fixture
def script():
    spec = importlib.util.spec_from_file_location("wait_for_server", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _healthy():
    response = MagicMock(status_code=200)
    response.json.return_value = {"status": "ok", "version": "0.1.0"}
    return response


def test_health_url_uses_configured_host_and_port(script, mock_home):
    config = AppConfig(server_host="10.0.0.5", server_port=9100)
    assert script.health_url(config) == "http://10.0.0.5:9100/health"


def test_main_polls_configured_server(script, mock_home, monkeypatch):
    monkeypatch.delenv("CADENCE_SERVER_HOST", raising=False)
    monkeypatch.setenv("CADENCE_SERVER_PORT", "9200")
    with patch("requests.get", return_value=_healthy()) as mock_get:
        assert script.main() == 0

    mock_get.assert_called_once_with(
        "http://127.0.0.1:9200/health", timeout=RESPONSIVENESS_TIMEOUT
    )


def test_wait_retries_until_healthy(script):
    failures = [requests.exceptions.ConnectionError(), MagicMock(status_code=503)]
    with (
        patch("requests.get", side_effect=[*failures, _healthy()]) as mock_get,
        patch("time.sleep") as mock_sleep,
    ):
        assert script.wait_for_server("http://h/health", attempts=5, interval=0.5) is True

    assert mock_get.call_count == 3
    assert mock_sleep.call_count == 2


def test_wait_gives_up(script):
    with (
        patch("requests.get", side_effect=requests.exceptions.ConnectionError()),
        patch("time.sleep") as mock_sleep,
    ):
        assert script.wait_for_server("http://h/health", attempts=3, interval=0.1) is False

    assert mock_sleep.call_count == 2
