import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import BaseModel, Field

from services.responder_sim.app.core.faults import FaultConfig
from services.responder_sim.app.core.protocol import ResponseTemplate, SimModel
from httpu.config.settings import get_settings

logger = logging.getLogger(__name__)

MODEL = SimModel()


class UdpProto(asyncio.DatagramProtocol):
    def connection_made(self, transport):
        # required: stored transport for later sendto()
        self.transport = transport

    def datagram_received(self, data: bytes, addr):
        packets = MODEL.handle(data)
        if not packets:
            logger.debug("dropping request from %s", addr)
            return

        delay = MODEL.faults.delay_ms / 1000.0
        loop = asyncio.get_running_loop()
        for pkt in packets:
            if delay > 0:
                loop.call_later(delay, self.transport.sendto, pkt, addr)
            else:
                self.transport.sendto(pkt, addr)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        lambda: UdpProto(),
        local_addr=(settings.sim_udp_host, settings.sim_udp_port),
    )
    app.state.udp_transport = transport
    logger.info("responder listening on udp %s", transport.get_extra_info("sockname"))
    try:
        yield
    finally:
        transport.close()


app = FastAPI(title="HTTPU Responder Simulator", version="0.1.0", lifespan=lifespan)


class FaultsIn(BaseModel):
    delay_ms: int = Field(0, ge=0, le=5000)
    drop_rate: float = Field(0.0, ge=0.0, le=1.0)
    garbage_rate: float = Field(0.0, ge=0.0, le=1.0)


class ResponseIn(BaseModel):
    status_code: int = Field(200, ge=100, le=599)
    reason: str = "OK"
    headers: dict[str, str] | None = None
    body: str = ""
    replies: int = Field(1, ge=0, le=100)


def _faults_dict() -> dict:
    return {
        "delay_ms": MODEL.faults.delay_ms,
        "drop_rate": MODEL.faults.drop_rate,
        "garbage_rate": MODEL.faults.garbage_rate,
    }


@app.get("/health")
def health():
    sockname = app.state.udp_transport.get_extra_info("sockname")
    return {"status": "ok", "udp_host": sockname[0], "udp_port": sockname[1]}

@app.get("/status")
def status():
    return {
        "reset_count": MODEL.reset_count,
        "received": len(MODEL.received),
        "replies": MODEL.replies,
        "faults": _faults_dict(),
    }

@app.post("/control/reset")
def reset():
    MODEL.reset()
    return {"status": "reset", "reset_count": MODEL.reset_count}

@app.get("/control/faults")
def get_faults():
    return _faults_dict()

@app.post("/control/faults")
def set_faults(f: FaultsIn):
    MODEL.faults = FaultConfig(delay_ms=f.delay_ms, drop_rate=f.drop_rate, garbage_rate=f.garbage_rate)
    return {"status": "faults_updated", "faults": f.model_dump()}

@app.post("/control/response")
def set_response(r: ResponseIn):
    template = ResponseTemplate(status_code=r.status_code, reason=r.reason, body=r.body)
    if r.headers is not None:
        template.headers = dict(r.headers)
    MODEL.response = template
    MODEL.replies = r.replies
    return {"status": "response_updated", "response": r.model_dump()}

@app.get("/requests")
def list_requests():
    return {"requests": [data.decode("latin-1") for data in MODEL.received]}


if __name__ == "__main__":
    import httpx
    import uvicorn
    url = httpx.URL(get_settings().sim_http)
    uvicorn.run(app, host=url.host, port=url.port or 80, reload=False)
