"""
ReceiveStats: shared receive accumulators

Counters filled by every PacketSink of a run and drained by the
SampleRecorder once per tick. Only touched from inside the engine's event
loop, so no locking is involved.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass
class ReceiveCounters:
    """
    Bytes and packets received since the last sample tick.

    Attributes:
        bytes_total: Payload bytes received by all sinks
        packets_received: Datagrams received by all sinks
        lifetime_bytes: Bytes received over the whole run (never reset)
        lifetime_packets: Datagrams received over the whole run (never reset)
    """
    bytes_total: int = 0
    packets_received: int = 0
    lifetime_bytes: int = 0
    lifetime_packets: int = 0

    def record(self, size: int) -> None:
        self.bytes_total += size
        self.packets_received += 1
        self.lifetime_bytes += size
        self.lifetime_packets += 1

    def drain(self) -> Tuple[int, int]:
        """Return (bytes_total, packets_received) and reset both to zero"""
        snapshot = (self.bytes_total, self.packets_received)
        self.bytes_total = 0
        self.packets_received = 0
        return snapshot
