import pytest

from httpu.transport.constants import LOCAL_ADDRESS_HEADER
from httpu.transport.framing import serialize_request

pytestmark = [pytest.mark.system, pytest.mark.usefixtures("reset_simulator")]


def test_every_send_reaches_the_device_unchanged(httpu_client, sim_api, sim_url, msearch):
    req = msearch(sim_url, st="urn:schemas-upnp-org:device:MediaRenderer:1")
    httpu_client.execute(req, 0.2, 3)

    wire = serialize_request(req).decode("latin-1")
    assert sim_api.requests() == [wire, wire, wire]

def test_replies_from_every_send_are_collected(httpu_client, sim_api, sim_url, msearch):
    # two "devices" answering each of two sends; duplicates are kept
    sim_api.set_response(replies=2)
    responses = httpu_client.execute(msearch(sim_url), 0.3, 2)

    assert len(responses) == 4
    assert all(r.headers[LOCAL_ADDRESS_HEADER] == "127.0.0.1" for r in responses)

def test_response_round_trip(httpu_client, sim_api, sim_url, msearch):
    headers = {
        "CACHE-CONTROL": "max-age=100",
        "LOCATION": "http://127.0.0.1:9999/root.xml",
        "ST": "ssdp:all",
        "USN": "uuid:round-trip",
    }
    sim_api.set_response(status_code=200, reason="OK", headers=headers, body="<ok/>")

    [resp] = httpu_client.execute(msearch(sim_url), 0.2, 1)

    received = [(k, v) for k, v in resp.headers.multi_items() if k != LOCAL_ADDRESS_HEADER]
    expected = [(k.lower(), v) for k, v in headers.items()] + [("content-length", "5")]
    assert received == expected
    assert resp.status_code == 200
    assert resp.reason_phrase == "OK"
    assert resp.content == b"<ok/>"

def test_error_status_is_still_a_response(httpu_client, sim_api, sim_url, msearch):
    sim_api.set_response(status_code=412, reason="Precondition Failed", headers={})
    [resp] = httpu_client.execute(msearch(sim_url), 0.2, 1)
    assert resp.status_code == 412
    assert resp.reason_phrase == "Precondition Failed"

def test_zero_sends_collects_nothing(httpu_client, sim_api, sim_url, msearch):
    assert httpu_client.execute(msearch(sim_url), 0.1, 0) == []
    assert sim_api.requests() == []
