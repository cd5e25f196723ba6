from __future__ import annotations
from dataclasses import dataclass, field
from .faults import FaultConfig


def _default_headers() -> dict[str, str]:
    return {
        "CACHE-CONTROL": "max-age=1800",
        "EXT": "",
        "LOCATION": "http://127.0.0.1:8000/description.xml",
        "SERVER": "responder-sim/0.1 UPnP/1.1",
        "ST": "upnp:rootdevice",
        "USN": "uuid:responder-sim::upnp:rootdevice",
    }


@dataclass
class ResponseTemplate:
    status_code: int = 200
    reason: str = "OK"
    headers: dict[str, str] = field(default_factory=_default_headers)
    body: str = ""

    def encode(self) -> bytes:
        body = self.body.encode()
        lines = [f"HTTP/1.1 {self.status_code} {self.reason}"]
        lines += [f"{name}: {value}" for name, value in self.headers.items()]
        if body:
            lines.append(f"Content-Length: {len(body)}")
        return ("\r\n".join(lines) + "\r\n\r\n").encode() + body


@dataclass
class SimModel:
    response: ResponseTemplate = field(default_factory=ResponseTemplate)
    replies: int = 1
    reset_count: int = 0
    faults: FaultConfig = field(default_factory=FaultConfig)
    received: list[bytes] = field(default_factory=list)

    def reset(self) -> None:
        self.response = ResponseTemplate()
        self.replies = 1
        self.faults = FaultConfig()
        self.received.clear()
        self.reset_count += 1

    def handle(self, request: bytes) -> list[bytes]:
        """Record a request and return the datagrams to answer it with."""
        self.received.append(request)
        if self.faults.should_drop():
            return []

        packet = self.response.encode()
        packets = [packet] * self.replies
        if self.faults.should_garble():
            packets.append(FaultConfig.truncate(packet))
        return packets
