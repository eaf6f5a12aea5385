"""
TrafficPlan Unit Tests.

Covers sink/sender pairing, flow windows and pairing failures.
"""

from unittest.mock import Mock

import pytest

from manet_compare.Config import Config, ConfigurationError
from manet_compare.ReceiveStats import ReceiveCounters
from manet_compare.SimulationEngine import SimulationEngine
from manet_compare.TrafficPlan import Flow, TrafficPlan, plan_flows

NODES = list(range(10))
ADDRESSES = [f"10.1.1.{i + 1}" for i in NODES]


def test_sinks_are_first_nodes_and_senders_offset_by_num_sinks():
    flows = plan_flows(NODES, ADDRESSES, 3, 9, 60.0)

    assert [(f.sink_node, f.source_node) for f in flows] == [(0, 3), (1, 4), (2, 5)]
    assert [f.address for f in flows] == ADDRESSES[:3]
    assert all(f.port == 9 for f in flows)


def test_flows_start_at_zero_and_stop_before_horizon():
    flows = plan_flows(NODES, ADDRESSES, 2, 9, 60.0)

    for flow in flows:
        assert flow.start == 0.0
        assert flow.stop == pytest.approx(60.0 - Config.STOP_EPSILON)
        assert flow.stop < 60.0


def test_half_the_nodes_can_be_sinks():
    flows = plan_flows(NODES, ADDRESSES, 5, 9, 10.0)
    assert len({f.source_node for f in flows}) == 5


def test_more_sinks_than_senders_fails():
    with pytest.raises(ConfigurationError, match="cannot pair 6 sinks"):
        plan_flows(NODES, ADDRESSES, 6, 9, 10.0)


@pytest.mark.parametrize("num_sinks", [0, -1])
def test_non_positive_sinks_fail(num_sinks):
    with pytest.raises(ConfigurationError):
        plan_flows(NODES, ADDRESSES, num_sinks, 9, 10.0)


def test_flow_is_immutable():
    flow = Flow(2, 0, "10.1.1.1", 9, 0.0, 1.0)
    with pytest.raises(AttributeError):
        flow.port = 10


def test_build_binds_sinks_and_installs_sources():
    engine = Mock(spec=SimulationEngine)
    plan = TrafficPlan(engine, ReceiveCounters(), packet_size=512, data_rate="2Mbps")

    flows = plan.build(NODES, ADDRESSES, 2, 9, 30.0)

    assert len(plan.sinks) == 2
    assert engine.open_sink.call_count == 2
    engine.open_sink.assert_any_call(0, "10.1.1.1", 9, plan.sinks[0].on_receive)
    engine.install_onoff.assert_any_call(2, "10.1.1.1", 9, 512, "2Mbps", 0.0, flows[0].stop)
    engine.install_onoff.assert_any_call(3, "10.1.1.2", 9, 512, "2Mbps", 0.0, flows[1].stop)


def test_failed_pairing_creates_nothing():
    engine = Mock(spec=SimulationEngine)
    plan = TrafficPlan(engine, ReceiveCounters())

    with pytest.raises(ConfigurationError):
        plan.build(NODES[:3], ADDRESSES[:3], 2, 9, 30.0)

    engine.open_sink.assert_not_called()
    engine.install_onoff.assert_not_called()
    assert plan.sinks == []
