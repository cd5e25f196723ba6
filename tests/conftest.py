import httpx
import pytest
from fastapi.testclient import TestClient

from httpu.api.client import SimApiClient
from httpu.config.settings import get_settings
from httpu.transport.udp import HTTPUClient


@pytest.fixture(scope="session")
def simulator():
    """
    Runs the responder simulator in-process for the test session. The UDP
    endpoint lives on the TestClient's event loop, bound to an ephemeral port.
    """
    with pytest.MonkeyPatch.context() as mp:
        mp.setenv("SIM_UDP_HOST", "127.0.0.1")
        mp.setenv("SIM_UDP_PORT", "0")
        from services.responder_sim.app.main import app

        with TestClient(app) as client:
            yield client

@pytest.fixture(scope="session")
def sim_api(simulator):
    return SimApiClient(str(simulator.base_url), client=simulator)

@pytest.fixture(scope="session")
def sim_url(sim_api):
    health = sim_api.health()
    return f"http://{health['udp_host']}:{health['udp_port']}"

@pytest.fixture
def reset_simulator(sim_api):
    """
    Ensure each test starts from a clean simulator.
    """
    sim_api.reset()
    yield

@pytest.fixture
def settings():
    return get_settings()

@pytest.fixture
def httpu_client():
    client = HTTPUClient.open_on_address("127.0.0.1")
    try:
        yield client
    finally:
        client.close()

@pytest.fixture
def msearch():
    def build(url: str, st: str = "ssdp:all", **kwargs) -> httpx.Request:
        headers = {"MAN": '"ssdp:discover"', "MX": "1", "ST": st}
        return httpx.Request("M-SEARCH", url, headers=headers, extensions={"target": b"*"}, **kwargs)
    return build
