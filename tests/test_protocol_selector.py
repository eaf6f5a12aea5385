"""
ProtocolSelector Unit Tests.

Covers:
- Code -> protocol mapping
- List-routing vs two-step installation paths
- Rejection of unknown codes
"""

from unittest.mock import Mock, call

import pytest

from manet_compare import ProtocolSelector
from manet_compare.Config import ConfigurationError
from manet_compare.ProtocolSelector import (
    LIST_PATH, TWO_STEP_PATH, RoutingHandle, RoutingProtocol,
)
from manet_compare.SimulationEngine import SimulationEngine


@pytest.fixture
def engine():
    return Mock(spec=SimulationEngine)


NODES = [0, 1, 2, 3]


@pytest.mark.parametrize("code, expected", [
    (1, RoutingProtocol.OLSR),
    (2, RoutingProtocol.AODV),
    (3, RoutingProtocol.DSDV),
    (4, RoutingProtocol.DSR),
])
def test_select_maps_codes(code, expected):
    assert ProtocolSelector.select(code) is expected
    assert expected.code == code


@pytest.mark.parametrize("code", [0, 5, -1, 100, "abc", None, 1.9, 4.5, 2.0, True, "3"])
def test_select_rejects_unknown_codes(code):
    with pytest.raises(ConfigurationError, match="No such protocol"):
        ProtocolSelector.select(code)


def test_labels_match_output_strings():
    assert [p.label for p in RoutingProtocol] == ["OLSR", "AODV", "DSDV", "DSR"]


@pytest.mark.parametrize("protocol", [
    RoutingProtocol.OLSR, RoutingProtocol.AODV, RoutingProtocol.DSDV,
])
def test_list_protocols_install_in_one_step(engine, protocol):
    handle = ProtocolSelector.install(protocol, engine, NODES)

    engine.install_list_routing.assert_called_once_with(protocol.label, 100, NODES)
    engine.install_internet_stack.assert_not_called()
    engine.install_dsr.assert_not_called()
    assert handle == RoutingHandle(protocol, LIST_PATH, tuple(NODES))


def test_dsr_installs_stack_then_agent(engine):
    handle = ProtocolSelector.install(RoutingProtocol.DSR, engine, NODES)

    assert engine.method_calls == [
        call.install_internet_stack(NODES),
        call.install_dsr(NODES),
    ]
    engine.install_list_routing.assert_not_called()
    assert handle.install_path == TWO_STEP_PATH
    assert handle.node_ids == tuple(NODES)


def test_every_protocol_has_an_installer():
    assert set(ProtocolSelector.INSTALLERS) == set(RoutingProtocol)


def test_handle_is_read_only(engine):
    handle = ProtocolSelector.install(RoutingProtocol.AODV, engine, NODES)
    with pytest.raises(AttributeError):
        handle.install_path = TWO_STEP_PATH


def test_dsr_on_scheduler_marks_every_node(scheduler):
    nodes = scheduler.create_nodes(5)
    ProtocolSelector.install(RoutingProtocol.DSR, scheduler, nodes)

    assert scheduler.internet_installed == set(nodes)
    assert all(scheduler.routing[n] == "dsr" for n in nodes)


def test_list_routing_on_scheduler_records_priority(scheduler):
    nodes = scheduler.create_nodes(3)
    ProtocolSelector.install(RoutingProtocol.OLSR, scheduler, nodes)

    assert all(scheduler.routing[n] == "list:OLSR@100" for n in nodes)
