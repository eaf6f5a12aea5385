"""
TrafficPlan: sender/receiver pairing for a comparison run

The first num_sinks nodes receive. Sink i is fed by node i + num_sinks
through a constant-on UDP source that starts at t=0 and stops just before
the run horizon. Pairing is checked in full before any socket or
application is created.
"""

from dataclasses import dataclass
from typing import List

from manet_compare.Config import Config, ConfigurationError
from manet_compare.PacketSink import PacketSink
from manet_compare.ReceiveStats import ReceiveCounters
from manet_compare.SimulationEngine import SimulationEngine


@dataclass(frozen=True)
class Flow:
    """
    One measured sender -> sink pairing.

    Attributes:
        source_node: Node running the on/off source
        sink_node: Node running the PacketSink
        address: Sink IPv4 address
        port: Sink UDP port
        start: Source start time (s)
        stop: Source stop time (s)
    """
    source_node: int
    sink_node: int
    address: str
    port: int
    start: float
    stop: float


def plan_flows(nodes: List[int], addresses: List[str], num_sinks: int, port: int,
               total_time: float) -> List[Flow]:
    """
    Pair sinks with senders without touching the engine.

    Raises:
        ConfigurationError: if num_sinks < 1 or there are fewer non-sink
            nodes than sinks
    """
    if num_sinks < 1:
        raise ConfigurationError(f"need at least one sink, got {num_sinks}")
    senders = len(nodes) - num_sinks
    if senders < num_sinks:
        raise ConfigurationError(
            f"cannot pair {num_sinks} sinks with {max(senders, 0)} sender nodes "
            f"({len(nodes)} nodes total)")
    if len(addresses) < num_sinks:
        raise ConfigurationError(
            f"only {len(addresses)} addresses for {num_sinks} sinks")

    stop = total_time - Config.STOP_EPSILON
    return [
        Flow(source_node=nodes[i + num_sinks], sink_node=nodes[i],
             address=addresses[i], port=port, start=0.0, stop=stop)
        for i in range(num_sinks)
    ]


class TrafficPlan:
    """Creates the sinks and sources of a run on an engine"""

    def __init__(self, engine: SimulationEngine, counters: ReceiveCounters,
                 packet_size: int = Config.PKT_SIZE, data_rate: str = Config.DATA_RATE,
                 verbose: bool = False):
        self.engine = engine
        self.counters = counters
        self.packet_size = packet_size
        self.data_rate = data_rate
        self.verbose = verbose
        self.flows: List[Flow] = []
        self.sinks: List[PacketSink] = []

    def build(self, nodes: List[int], addresses: List[str], num_sinks: int, port: int,
              total_time: float) -> List[Flow]:
        """
        Bind one PacketSink per receiver and install its paired source.

        Returns:
            The flows, in sink order
        """
        flows = plan_flows(nodes, addresses, num_sinks, port, total_time)
        for flow in flows:
            sink = PacketSink(self.engine, flow.sink_node, flow.address, flow.port,
                              self.counters, verbose=self.verbose)
            self.sinks.append(sink)
            self.engine.install_onoff(flow.source_node, flow.address, flow.port,
                                      self.packet_size, self.data_rate,
                                      flow.start, flow.stop)
        self.flows = flows
        print(f"✅ Traffic plan: {len(flows)} flows on port {port}")
        return flows

    def close(self) -> None:
        for sink in self.sinks:
            sink.close()

    @property
    def datagrams_received(self) -> int:
        return sum(sink.received for sink in self.sinks)
