"""
ProtocolSelector: routing protocol choice and stack installation

Maps the numeric protocol code used on the command line to a
RoutingProtocol and installs the matching stack on every ad-hoc node.

Installation paths:
- OLSR, AODV, DSDV: list routing. The protocol is registered in an Ipv4
  list routing helper at priority 100 and the internet stack is installed
  with that helper in a single step.
- DSR: two steps. The plain internet stack goes on every node first, then
  the DSR main helper attaches the DSR agent to the same nodes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Tuple

from manet_compare.Config import Config, ConfigurationError
from manet_compare.SimulationEngine import SimulationEngine

LIST_PATH = "list"
TWO_STEP_PATH = "two-step"


class RoutingProtocol(Enum):
    OLSR = 1
    AODV = 2
    DSDV = 3
    DSR = 4

    @property
    def code(self) -> int:
        return self.value

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class RoutingHandle:
    """
    Result of installing a routing stack; read-only for the rest of the run.

    Attributes:
        protocol: Installed RoutingProtocol
        install_path: LIST_PATH or TWO_STEP_PATH
        node_ids: Nodes carrying the stack
    """
    protocol: RoutingProtocol
    install_path: str
    node_ids: Tuple[int, ...]


def select(code: int) -> RoutingProtocol:
    """
    Resolve a protocol code (1=OLSR, 2=AODV, 3=DSDV, 4=DSR).

    Raises:
        ConfigurationError: for any other code, including non-integers
    """
    message = f"No such protocol: {code!r} (expected 1=OLSR, 2=AODV, 3=DSDV, 4=DSR)"
    # bool is an int subclass; True must not resolve to OLSR
    if isinstance(code, bool) or not isinstance(code, int):
        raise ConfigurationError(message)
    try:
        return RoutingProtocol(code)
    except ValueError:
        raise ConfigurationError(message) from None


def _install_list_routing(protocol: RoutingProtocol, engine: SimulationEngine,
                          nodes: List[int]) -> str:
    engine.install_list_routing(protocol.label, Config.LIST_ROUTING_PRIORITY, nodes)
    return LIST_PATH


def _install_dsr(protocol: RoutingProtocol, engine: SimulationEngine,
                 nodes: List[int]) -> str:
    engine.install_internet_stack(nodes)
    engine.install_dsr(nodes)
    return TWO_STEP_PATH


INSTALLERS: Dict[RoutingProtocol, Callable[[RoutingProtocol, SimulationEngine, List[int]], str]] = {
    RoutingProtocol.OLSR: _install_list_routing,
    RoutingProtocol.AODV: _install_list_routing,
    RoutingProtocol.DSDV: _install_list_routing,
    RoutingProtocol.DSR: _install_dsr,
}


def install(protocol: RoutingProtocol, engine: SimulationEngine,
            nodes: List[int]) -> RoutingHandle:
    """
    Install the stack for protocol on every node in nodes.

    Returns:
        RoutingHandle describing what was installed
    """
    installer = INSTALLERS.get(protocol)
    if installer is None:
        raise ConfigurationError(f"No installer registered for {protocol}")
    path = installer(protocol, engine, list(nodes))
    print(f"✅ Installed {protocol.label} on {len(nodes)} nodes ({path} path)")
    return RoutingHandle(protocol=protocol, install_path=path, node_ids=tuple(nodes))
