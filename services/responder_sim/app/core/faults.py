from __future__ import annotations
from dataclasses import dataclass
import random

@dataclass
class FaultConfig:
    delay_ms: int = 0           # delay before each reply
    drop_rate: float = 0.0      # 0.0..1.0, ignore the request entirely
    garbage_rate: float = 0.0   # 0.0..1.0, follow the replies with a truncated one

    def should_drop(self) -> bool:
        return self.drop_rate > 0 and random.random() < self.drop_rate

    def should_garble(self) -> bool:
        return self.garbage_rate > 0 and random.random() < self.garbage_rate

    @staticmethod
    def truncate(packet: bytes) -> bytes:
        return packet[: len(packet) // 2]
