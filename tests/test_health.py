import pytest
import requests

from garden_stock_notifier.health import HealthServer


@pytest.fixture
def server():
    srv = HealthServer("127.0.0.1", 0)
    assert srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def http():
    # Ignore any HTTP(S)_PROXY from the environment for loopback requests.
    session = requests.Session()
    session.trust_env = False
    yield session
    session.close()


@pytest.mark.parametrize("path", ["/", "/health"])
def test_health_reports_running(server, http, path):
    resp = http.get(server.base_url + path, timeout=5)
    assert resp.status_code == 200
    assert resp.text == "Stock Notifier is running.\n"


def test_status_is_json(server, http):
    body = http.get(server.base_url + "/status", timeout=5).json()
    assert body["status"] == "running"
    assert isinstance(body["keywords"], list)


def test_unknown_path_is_404(server, http):
    assert http.get(server.base_url + "/nope", timeout=5).status_code == 404


def test_start_twice_returns_same_url(server):
    assert server.start() == server.base_url


def test_port_in_use_is_not_fatal(server):
    other = HealthServer("127.0.0.1", server.port)
    assert other.start() == ""
    assert not other.running
