"""
SampleRecorder and PeriodicTimer Unit Tests.

Uses synthetic receive schedules with known byte sizes on the in-process
scheduler.
"""

import pytest

from manet_compare.PacketSink import PacketSink
from manet_compare.SampleRecorder import PeriodicTimer, Sample, SampleRecorder


# ==============================================================================
# PeriodicTimer
# ==============================================================================

class TestPeriodicTimer:

    def _run(self, scheduler, interval, horizon):
        times = []
        timer = PeriodicTimer(scheduler, interval, horizon, lambda: times.append(scheduler.now()))
        timer.start()
        scheduler.stop(horizon)
        scheduler.run()
        return timer, times

    def test_fires_once_per_whole_interval(self, scheduler):
        timer, times = self._run(scheduler, 1.0, 5.0)
        assert times == [0.0, 1.0, 2.0, 3.0, 4.0]
        assert timer.fired == 5

    @pytest.mark.parametrize("interval, horizon, expected", [
        (1.0, 60.0, 60),
        (0.5, 3.0, 6),
        (0.1, 1.0, 10),
        (0.3, 1.0, 3),
        (1.0, 7.5, 7),
        (2.0, 1.0, 0),
    ])
    def test_fire_count_is_floor_of_horizon_over_interval(self, scheduler, interval, horizon, expected):
        timer, times = self._run(scheduler, interval, horizon)
        assert len(times) == expected
        assert all(t < horizon for t in times)

    def test_times_do_not_drift(self, scheduler):
        _, times = self._run(scheduler, 0.1, 1.0)
        assert times == pytest.approx([i * 0.1 for i in range(10)])

    def test_cancel_stops_future_firings(self, scheduler):
        fired = []
        timer = PeriodicTimer(scheduler, 1.0, 10.0, lambda: fired.append(scheduler.now()))
        timer.start()
        scheduler.schedule(2.5, timer.cancel)
        scheduler.run()
        assert fired == [0.0, 1.0, 2.0]

    def test_rejects_non_positive_interval(self, scheduler):
        with pytest.raises(ValueError):
            PeriodicTimer(scheduler, 0.0, 10.0, lambda: None)


# ==============================================================================
# SampleRecorder
# ==============================================================================

@pytest.fixture
def sink_setup(wired_scheduler, counters):
    engine, nodes, addresses = wired_scheduler
    sink = PacketSink(engine, nodes[0], addresses[0], 9, counters)
    return engine, addresses[0], sink


def _deliver_at(engine, address, at, sizes):
    engine.schedule(at, lambda: engine.deliver(address, 9, [bytes(n) for n in sizes]))


def _recorder(engine, counters, horizon, interval=1.0, emit=None):
    return SampleRecorder(engine, counters, interval=interval, horizon=horizon,
                          num_sinks=1, protocol_name="AODV", transmit_power_dbm=27.0,
                          emit=emit)


def test_rate_matches_bytes_inside_each_interval(sink_setup, counters):
    engine, address, _ = sink_setup
    _deliver_at(engine, address, 0.5, [500])
    _deliver_at(engine, address, 0.7, [250])
    # Same timestamp as the tick at 1.0 but scheduled earlier, so it lands in that tick
    _deliver_at(engine, address, 1.0, [100])
    _deliver_at(engine, address, 2.5, [1000, 1000])

    recorder = _recorder(engine, counters, horizon=4.0)
    recorder.start()
    engine.stop(4.0)
    engine.run()

    rates = [s.kilobits_per_second for s in recorder.samples]
    packets = [s.packets_received for s in recorder.samples]
    assert [s.timestamp_seconds for s in recorder.samples] == [0.0, 1.0, 2.0, 3.0]
    assert rates == pytest.approx([0.0, 6.8, 0.0, 16.0])
    assert packets == [0, 3, 0, 2]


def test_counters_reset_after_every_tick(sink_setup, counters):
    engine, address, _ = sink_setup
    _deliver_at(engine, address, 0.2, [400])

    recorder = _recorder(engine, counters, horizon=3.0)
    recorder.start()
    engine.run()

    assert [s.packets_received for s in recorder.samples] == [0, 1, 0]
    assert counters.bytes_total == 0
    assert counters.packets_received == 0


def test_no_datagram_counted_twice(sink_setup, counters):
    engine, address, _ = sink_setup
    schedule = [(0.1, [10]), (0.9, [20, 30]), (1.5, [40]), (2.0, [50]), (4.9, [60])]
    for at, sizes in schedule:
        _deliver_at(engine, address, at, sizes)

    recorder = _recorder(engine, counters, horizon=6.0)
    recorder.start()
    engine.stop(6.0)
    engine.run()

    assert sum(s.packets_received for s in recorder.samples) == 6
    total_bytes = sum(s.kilobits_per_second for s in recorder.samples) * 1000 / 8
    assert total_bytes == pytest.approx(210)


def test_rate_divides_by_configured_interval(sink_setup, counters):
    engine, address, _ = sink_setup
    _deliver_at(engine, address, 0.1, [1000])

    recorder = _recorder(engine, counters, horizon=1.0, interval=0.5)
    recorder.start()
    engine.run()

    # 1000 bytes over a 0.5 s interval
    assert recorder.samples[1].kilobits_per_second == pytest.approx(16.0)


def test_samples_carry_run_metadata(scheduler, counters):
    recorder = SampleRecorder(scheduler, counters, interval=1.0, horizon=2.0,
                              num_sinks=3, protocol_name="DSR", transmit_power_dbm=7.5)
    counters.record(125)
    sample = recorder.tick()

    assert sample == Sample(0.0, 1.0, 1, 3, "DSR", 7.5)


def test_emit_receives_samples_in_tick_order(scheduler, counters):
    emitted = []
    recorder = _recorder(scheduler, counters, horizon=3.0, emit=emitted.append)
    recorder.start()
    scheduler.run()

    assert emitted == recorder.samples
    assert [s.timestamp_seconds for s in emitted] == [0.0, 1.0, 2.0]
