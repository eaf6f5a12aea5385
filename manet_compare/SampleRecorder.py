"""
SampleRecorder: periodic throughput sampling

A PeriodicTimer fires the recorder every sample interval from t=0 until
the run horizon. Each tick drains the shared ReceiveCounters, converts the
bytes into a receive rate and hands one Sample to the ResultWriter. The
drain and the emit happen in the same event, so a received datagram is
attributed to exactly one sample.
"""

import math
from dataclasses import dataclass
from typing import Callable, List, Optional

from manet_compare.ReceiveStats import ReceiveCounters
from manet_compare.SimulationEngine import SimulationEngine


@dataclass(frozen=True)
class Sample:
    """
    One row of the result stream.

    Attributes:
        timestamp_seconds: Simulated time of the tick
        kilobits_per_second: Receive rate over the interval ending at the tick
        packets_received: Datagrams received over the interval
        num_sinks: Configured number of sinks
        protocol_name: OLSR, AODV, DSDV or DSR
        transmit_power_dbm: Configured PHY transmit power
    """
    timestamp_seconds: float
    kilobits_per_second: float
    packets_received: int
    num_sinks: int
    protocol_name: str
    transmit_power_dbm: float


class PeriodicTimer:
    """
    Fires a callback at first_at + k * interval for k = 0 .. n - 1, where
    n = floor((horizon - first_at) / interval).

    A run of T seconds sampled every I seconds therefore fires floor(T / I)
    times. When T is not a multiple of I the trailing partial interval gets
    no tick (T=7.5, I=1 fires at 0..6), even though a tick at 7 would still
    fall before the horizon.
    Firing times are computed from the tick index rather than accumulated,
    so they do not drift for intervals like 0.1 s.
    """

    def __init__(self, engine: SimulationEngine, interval: float, horizon: float,
                 callback: Callable[[], None], first_at: float = 0.0):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.engine = engine
        self.interval = float(interval)
        self.horizon = float(horizon)
        self.first_at = float(first_at)
        self.callback = callback
        self.fired = 0
        self.max_fires = max(0, math.floor((self.horizon - self.first_at) / self.interval + 1e-9))
        self.cancelled = False

    def time_of(self, index: int) -> float:
        return self.first_at + index * self.interval

    def start(self) -> None:
        if self.max_fires == 0:
            return
        self.engine.schedule(max(0.0, self.first_at - self.engine.now()), self._fire)

    def cancel(self) -> None:
        self.cancelled = True

    def _fire(self) -> None:
        if self.cancelled:
            return
        self.fired += 1
        self.callback()
        if self.fired < self.max_fires and not self.cancelled:
            next_at = self.time_of(self.fired)
            self.engine.schedule(max(0.0, next_at - self.engine.now()), self._fire)


class SampleRecorder:
    def __init__(self, engine: SimulationEngine, counters: ReceiveCounters,
                 interval: float, horizon: float, num_sinks: int,
                 protocol_name: str, transmit_power_dbm: float,
                 emit: Optional[Callable[[Sample], None]] = None):
        """
        Args:
            engine: Engine supplying the clock and scheduling
            counters: Accumulators filled by the PacketSinks
            interval: Seconds between ticks
            horizon: Run stop time; no tick is scheduled at or past it
            num_sinks, protocol_name, transmit_power_dbm: Copied into every Sample
            emit: Receives each Sample (normally ResultWriter.append_row)
        """
        self.engine = engine
        self.counters = counters
        self.interval = float(interval)
        self.num_sinks = num_sinks
        self.protocol_name = protocol_name
        self.transmit_power_dbm = transmit_power_dbm
        self.emit = emit
        self.samples: List[Sample] = []
        self.timer = PeriodicTimer(engine, interval, horizon, self.tick)

    def start(self) -> None:
        self.timer.start()

    def tick(self) -> Sample:
        bytes_total, packets = self.counters.drain()
        kbps = bytes_total * 8.0 / 1000.0 / self.interval
        sample = Sample(
            timestamp_seconds=self.engine.now(),
            kilobits_per_second=kbps,
            packets_received=packets,
            num_sinks=self.num_sinks,
            protocol_name=self.protocol_name,
            transmit_power_dbm=self.transmit_power_dbm,
        )
        self.samples.append(sample)
        if self.emit is not None:
            self.emit(sample)
        return sample
