import pytest

@pytest.mark.smoke
def test_health(sim_api):
    resp = sim_api.health()
    assert resp["status"] == "ok"
    assert resp["udp_port"] > 0
