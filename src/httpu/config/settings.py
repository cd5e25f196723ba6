from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class Settings:
    bind_address: str
    bind_port: int
    timeout_s: float
    num_sends: int
    sim_http: str
    sim_udp_host: str
    sim_udp_port: int


def get_settings() -> Settings:
    """
    Centralized configuration for the client, the responder simulator and tests.
    Values come from environment variables with safe defaults.
    """
    return Settings(
        bind_address=os.getenv("HTTPU_BIND_ADDRESS", ""),
        bind_port=int(os.getenv("HTTPU_BIND_PORT", "0")),
        timeout_s=float(os.getenv("HTTPU_TIMEOUT_S", "2.0")),
        num_sends=int(os.getenv("HTTPU_NUM_SENDS", "3")),
        sim_http=os.getenv("SIM_HTTP", "http://127.0.0.1:8000"),
        sim_udp_host=os.getenv("SIM_UDP_HOST", "127.0.0.1"),
        sim_udp_port=int(os.getenv("SIM_UDP_PORT", "0")),
    )
