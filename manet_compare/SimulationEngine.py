"""
SimulationEngine: contract between the harness and a discrete-event engine

The harness never touches radio, mobility or routing internals. It asks an
engine for nodes, protocol stacks, sockets and traffic sources, and it
expresses every wait as a scheduled callback. Two engines implement this
contract:

- Ns3Engine: ns-3 through its Python bindings
- EventScheduler: an in-process heap scheduler with zero-latency links,
  used for synthetic receive schedules

Both process events in (time, insertion order), so callbacks scheduled for
the same simulated second run first-in first-out.
"""

from abc import ABC, abstractmethod
from collections import namedtuple
from typing import Callable, List, Optional

# A received datagram as seen by a sink: payload length and sender address.
Datagram = namedtuple("Datagram", ["size", "sender"])


class SinkSocket(ABC):
    """Receive side of a UDP socket bound by the engine for a PacketSink"""

    node: int
    address: str
    port: int

    @abstractmethod
    def recv_from(self) -> Optional[Datagram]:
        """Pop the oldest pending datagram, or None when the queue is empty"""

    @abstractmethod
    def close(self) -> None:
        pass


class SimulationEngine(ABC):
    """
    Discrete-event engine used by RoutingExperiment.

    Times passed to schedule() and stop() are delays relative to now(),
    matching ns-3's Simulator::Schedule and Simulator::Stop.
    """

    name = "engine"

    # ---------------------------------------------------------------- clock
    @abstractmethod
    def now(self) -> float:
        """Current simulated time in seconds"""

    @abstractmethod
    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        """Run callback after delay simulated seconds"""

    @abstractmethod
    def stop(self, delay: float) -> None:
        """Stop run() once the clock reaches now() + delay"""

    @abstractmethod
    def run(self) -> None:
        """Process events in timestamp order until stopped or drained"""

    @abstractmethod
    def destroy(self) -> None:
        """Release all engine state; the engine cannot be reused afterwards"""

    # ------------------------------------------------------------ topology
    @abstractmethod
    def create_nodes(self, count: int) -> List[int]:
        """Create count ad-hoc nodes and return their ids"""

    @abstractmethod
    def install_list_routing(self, protocol_name: str, priority: int,
                             nodes: List[int]) -> None:
        """Register one routing protocol in a list helper and install the stack on nodes"""

    @abstractmethod
    def install_internet_stack(self, nodes: List[int]) -> None:
        """Install the base internet stack without a routing helper"""

    @abstractmethod
    def install_dsr(self, nodes: List[int]) -> None:
        """Attach the DSR routing agent to nodes that already carry an internet stack"""

    @abstractmethod
    def assign_addresses(self, nodes: List[int], base: str, mask: str) -> List[str]:
        """Assign one IPv4 address per node, in node order"""

    # ------------------------------------------------------------- traffic
    @abstractmethod
    def open_sink(self, node: int, address: str, port: int,
                  on_receive: Callable[[SinkSocket], None]) -> SinkSocket:
        """Bind a UDP socket on node and call on_receive whenever it has data"""

    @abstractmethod
    def install_onoff(self, node: int, remote_address: str, port: int,
                      packet_size: int, data_rate: str,
                      start: float, stop: float) -> None:
        """Install a constant-on UDP source on node sending to remote_address:port"""

    # -------------------------------------------------------------- traces
    def enable_mobility_trace(self, path: str) -> None:
        print(f"ℹ️  Mobility tracing not supported by {self.name} engine, skipping {path}")

    def enable_flow_monitor(self) -> None:
        print(f"ℹ️  Flow monitor not supported by {self.name} engine")

    def write_flow_monitor(self, path: str) -> None:
        pass

    def enable_pcap(self, prefix: str) -> None:
        print(f"ℹ️  PCAP traces not supported by {self.name} engine, skipping {prefix}")

    def print_routing_tables(self, at: float, path: str) -> None:
        print(f"ℹ️  Routing table dumps not supported by {self.name} engine")


def parse_data_rate(rate: str) -> float:
    """
    Convert an ns-3 style data rate string into bits per second.

    Accepts "1000000bps", "11Mbps", "8kbps", "1Gb/s" style values; a bare
    number is taken as bits per second.
    """
    text = str(rate).strip()
    units = (
        ("Gbps", 1e9), ("Gb/s", 1e9),
        ("Mbps", 1e6), ("Mb/s", 1e6),
        ("kbps", 1e3), ("kb/s", 1e3), ("Kbps", 1e3),
        ("bps", 1.0), ("b/s", 1.0),
    )
    for suffix, scale in units:
        if text.endswith(suffix):
            value = float(text[:-len(suffix)])
            break
    else:
        value, scale = float(text), 1.0
    bits = value * scale
    if bits <= 0:
        raise ValueError(f"data rate must be positive: {rate!r}")
    return bits
