"""
PacketSink: per-flow UDP receiver

Each sink node owns one PacketSink. The engine invokes on_receive() when
its socket becomes readable; the handler drains every queued datagram in
arrival order and adds each one to the shared ReceiveCounters. Nothing is
filtered or validated: an empty or malformed datagram still counts by its
length.
"""

from manet_compare.ReceiveStats import ReceiveCounters
from manet_compare.SimulationEngine import SimulationEngine, SinkSocket


class PacketSink:
    def __init__(self, engine: SimulationEngine, node: int, address: str, port: int,
                 counters: ReceiveCounters, verbose: bool = False):
        """
        Bind a UDP socket on node at address:port.

        Args:
            engine: Engine owning the socket
            node: Receiving node id
            address: Local IPv4 address of the node
            port: UDP port
            counters: Accumulators shared with the SampleRecorder
            verbose: Print one line per received datagram
        """
        self.engine = engine
        self.node = node
        self.address = address
        self.port = port
        self.counters = counters
        self.verbose = verbose
        self.received = 0
        self.socket = engine.open_sink(node, address, port, self.on_receive)

    def on_receive(self, socket: SinkSocket) -> None:
        datagram = socket.recv_from()
        while datagram is not None:
            self.counters.record(datagram.size)
            self.received += 1
            if self.verbose:
                print(self._describe(datagram.sender))
            datagram = socket.recv_from()

    def _describe(self, sender: str) -> str:
        stamp = f"{self.engine.now():g} {self.node}"
        if sender:
            return f"{stamp} received one packet from {sender}"
        return f"{stamp} received one packet!"

    def close(self) -> None:
        if self.socket is not None:
            self.socket.close()
            self.socket = None
