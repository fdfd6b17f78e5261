import subprocess
import sys
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from splunk_runner.health import HealthMonitor  # noqa: E402
from splunk_runner.shutdown import ShutdownCoordinator  # noqa: E402

HEALTH_URL = "http://127.0.0.1:8089/services/server/health/splunkd/details?output_mode=json"

EXAMPLE_TREE = {
    "health": "red",
    "features": {
        "disk space": {"health": "green"},
        "network": {
            "health": "red",
            "features": {"latency": {"health": "red"}},
        },
    },
}


def document(*contents) -> dict:
    """Wrap health trees the way the details endpoint does."""
    return {"entry": [{"name": "details", "content": content} for content in contents]}


class FakeSplunkd:
    """Stand-in for the splunkd management API health endpoint."""

    def __init__(self, payload=None):
        self.payload = payload
        self.status_code = 200
        self.fail = False
        self.raw = None
        self.requests: list[httpx.Request] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            raise httpx.ConnectError("connection closed", request=request)
        if self.raw is not None:
            return httpx.Response(self.status_code, content=self.raw)
        return httpx.Response(self.status_code, json=self.payload)

    def monitor(self, **kwargs) -> HealthMonitor:
        kwargs.setdefault("auth", ("admin", "changeme"))
        return HealthMonitor(HEALTH_URL, transport=httpx.MockTransport(self.handle), **kwargs)


@pytest.fixture
def splunkd():
    return FakeSplunkd(document(EXAMPLE_TREE))


@pytest.fixture
def shutdown():
    coordinator = ShutdownCoordinator()
    yield coordinator
    coordinator.cancel("test teardown")


def python_child(code: str) -> subprocess.Popen:
    """Start a python child in its own session, like the real spawners."""
    return subprocess.Popen(
        [sys.executable, "-c", code],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
