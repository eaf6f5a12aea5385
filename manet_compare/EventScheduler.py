"""
EventScheduler: in-process discrete-event engine

Implements the SimulationEngine contract without ns-3. Events live in a
heap keyed by (time, sequence) so equal timestamps run in the order they
were scheduled. Links are ideal: a datagram sent by an on/off source is
delivered to the bound sink inside the sender's own event unless a link
delay is configured. Routing is not modelled beyond requiring that both
endpoints carry an installed stack.

Used for synthetic receive schedules where every byte and its arrival
time is known in advance.
"""

import heapq
import itertools
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from manet_compare.SimulationEngine import (
    Datagram, SimulationEngine, SinkSocket, parse_data_rate,
)


class SchedulerSocket(SinkSocket):
    """Bound UDP receive queue owned by an EventScheduler"""

    def __init__(self, scheduler: "EventScheduler", node: int, address: str, port: int,
                 on_receive: Callable[[SinkSocket], None]):
        self._scheduler = scheduler
        self.node = node
        self.address = address
        self.port = port
        self.on_receive = on_receive
        self.pending: Deque[Datagram] = deque()
        self.closed = False

    def recv_from(self) -> Optional[Datagram]:
        if not self.pending:
            return None
        return self.pending.popleft()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.pending.clear()
        self._scheduler._unbind(self)


class EventScheduler(SimulationEngine):
    """
    Heap-ordered single-threaded event loop.

    Attributes:
        link_delay: Seconds between a send and its delivery (0 = same event)
        events_processed: Number of callbacks executed by run()
        datagrams_sent: Datagrams emitted by on/off sources
        datagrams_delivered: Datagrams handed to a bound sink
        routing: Per-node description of the installed routing stack
    """

    name = "scheduler"

    def __init__(self, link_delay: float = 0.0):
        if link_delay < 0:
            raise ValueError(f"link delay must be >= 0, got {link_delay}")
        self.link_delay = float(link_delay)
        self._queue: List[Tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()
        self._now = 0.0
        self._stopped = False
        self._destroyed = False

        self._nodes: List[int] = []
        self._addresses: Dict[int, str] = {}
        self._bindings: Dict[Tuple[str, int], SchedulerSocket] = {}
        self.routing: Dict[int, str] = {}
        self.internet_installed: set = set()

        self.events_processed = 0
        self.datagrams_sent = 0
        self.datagrams_delivered = 0

    # ---------------------------------------------------------------- clock
    def now(self) -> float:
        return self._now

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        if delay < 0:
            raise ValueError(f"cannot schedule into the past (delay={delay})")
        heapq.heappush(self._queue, (self._now + delay, next(self._seq), callback))

    def stop(self, delay: float) -> None:
        self.schedule(delay, self._halt)

    def _halt(self) -> None:
        self._stopped = True

    def run(self) -> None:
        self._stopped = False
        while self._queue and not self._stopped:
            at, _, callback = heapq.heappop(self._queue)
            self._now = at
            callback()
            self.events_processed += 1

    def pending_events(self) -> int:
        return len(self._queue)

    def destroy(self) -> None:
        for sock in list(self._bindings.values()):
            sock.close()
        self._queue.clear()
        self._destroyed = True

    # ------------------------------------------------------------ topology
    def create_nodes(self, count: int) -> List[int]:
        start = len(self._nodes)
        created = list(range(start, start + count))
        self._nodes.extend(created)
        return created

    def install_list_routing(self, protocol_name: str, priority: int,
                             nodes: List[int]) -> None:
        for node in nodes:
            self.internet_installed.add(node)
            self.routing[node] = f"list:{protocol_name}@{priority}"

    def install_internet_stack(self, nodes: List[int]) -> None:
        for node in nodes:
            self.internet_installed.add(node)

    def install_dsr(self, nodes: List[int]) -> None:
        for node in nodes:
            if node not in self.internet_installed:
                raise RuntimeError(f"node {node} has no internet stack for DSR")
            self.routing[node] = "dsr"

    def assign_addresses(self, nodes: List[int], base: str, mask: str) -> List[str]:
        octets = [int(part) for part in base.split(".")]
        prefix = ".".join(str(o) for o in octets[:3])
        assigned = []
        for offset, node in enumerate(nodes, start=1):
            addr = f"{prefix}.{octets[3] + offset}"
            self._addresses[node] = addr
            assigned.append(addr)
        return assigned

    # ------------------------------------------------------------- traffic
    def open_sink(self, node: int, address: str, port: int,
                  on_receive: Callable[[SinkSocket], None]) -> SinkSocket:
        key = (address, int(port))
        if key in self._bindings:
            raise RuntimeError(f"{address}:{port} is already bound")
        sock = SchedulerSocket(self, node, address, int(port), on_receive)
        self._bindings[key] = sock
        return sock

    def _unbind(self, sock: SchedulerSocket) -> None:
        self._bindings.pop((sock.address, sock.port), None)

    def deliver(self, address: str, port: int, payloads: List[bytes],
                sender: str = "") -> int:
        """
        Queue payloads on the socket bound to address:port and fire its callback once.

        Returns the number of datagrams queued; 0 when nothing is bound there.
        """
        sock = self._bindings.get((address, int(port)))
        if sock is None or sock.closed or not payloads:
            return 0
        for payload in payloads:
            sock.pending.append(Datagram(len(payload), sender))
        self.datagrams_delivered += len(payloads)
        sock.on_receive(sock)
        return len(payloads)

    def _routable(self, src: int, dst_address: str) -> bool:
        dst = next((n for n, a in self._addresses.items() if a == dst_address), None)
        return (src in self.routing and dst is not None and dst in self.routing)

    def install_onoff(self, node: int, remote_address: str, port: int,
                      packet_size: int, data_rate: str,
                      start: float, stop: float) -> None:
        period = packet_size * 8.0 / parse_data_rate(data_rate)
        payload = bytes(packet_size)
        sender = self._addresses.get(node, "")
        sent = itertools.count(1)

        def send():
            if self._now >= stop:
                return
            self.datagrams_sent += 1
            if self._routable(node, remote_address):
                if self.link_delay > 0:
                    self.schedule(self.link_delay,
                                  lambda: self.deliver(remote_address, port, [payload], sender))
                else:
                    self.deliver(remote_address, port, [payload], sender)
            # Send k goes out at start + k * period, computed from k so it does not drift
            next_at = start + next(sent) * period
            if next_at < stop:
                self.schedule(max(0.0, next_at - self._now), send)

        self.schedule(max(0.0, start - self._now), send)
