from __future__ import annotations
import httpx

class SimApiClient:
    """Control-plane client for the responder simulator."""

    def __init__(self, base_url: str, timeout_s: float = 2.0, client: httpx.Client | None = None):
        # an existing client (e.g. fastapi's TestClient) can be handed in instead
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout_s)

    def close(self) -> None:
        self._client.close()

    def health(self) -> dict:
        r = self._client.get("/health")
        r.raise_for_status()
        return r.json()

    def udp_port(self) -> int:
        return self.health()["udp_port"]

    def status(self) -> dict:
        r = self._client.get("/status")
        r.raise_for_status()
        return r.json()

    def reset(self) -> dict:
        r = self._client.post("/control/reset")
        r.raise_for_status()
        return r.json()

    def set_faults(self, **faults) -> dict:
        r = self._client.post("/control/faults", json=faults)
        r.raise_for_status()
        return r.json()

    def set_response(self, **response) -> dict:
        r = self._client.post("/control/response", json=response)
        r.raise_for_status()
        return r.json()

    def requests(self) -> list[str]:
        r = self._client.get("/requests")
        r.raise_for_status()
        return r.json()["requests"]
