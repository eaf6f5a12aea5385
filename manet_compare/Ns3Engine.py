"""
Ns3Engine: ns-3 backend for the routing comparison harness

Builds the ad-hoc network through the ns-3 Python bindings and exposes it
through the SimulationEngine contract.

Network Configuration:
    - Wi-Fi: 802.11b ad-hoc MAC, ConstantRateWifiManager at DsssRate11Mbps
      (data and non-unicast control mode), TxPowerStart/End = configured power
    - Channel: constant-speed propagation delay, Friis propagation loss
    - Mobility: Gauss-Markov inside a 2000 x 2000 x 100 m box, initial
      positions uniform in 2000 x 2000 x 150 m
    - Addressing: 10.1.1.0/24, one address per node in node order
    - Traffic: OnOffApplication UDP sources (OnTime=1, OffTime=0)

Python callbacks reach ns-3 through two cppyy trampolines defined once per
process: pythonMakeEvent (scheduled events) and PythonRecvTrampoline
(socket receive callbacks, dispatched to the right sink by node id).
"""

import os
from typing import Callable, Dict, List, Optional

import cppyy
from ns import ns

from manet_compare.Config import Config, ExperimentConfig
from manet_compare.SimulationEngine import Datagram, SimulationEngine, SinkSocket

_CALLBACKS_READY = False


def setup_cppyy_callbacks():
    """
    Define the C++ helpers that let ns-3 invoke Python callables.

    Required for:
    - Event scheduling (pythonMakeEvent)
    - Socket receive callbacks (PythonRecvTrampoline)

    Uses shared_ptr storage so scheduled std::function objects outlive the
    Python call that created them. Safe to call more than once.
    """
    global _CALLBACKS_READY
    if _CALLBACKS_READY:
        return

    ns3_root = os.environ.get("NS3_ROOT")
    if ns3_root:
        cppyy.add_include_path(os.path.join(ns3_root, "build/include"))

    ns.cppyy.cppdef(r"""
    #include "ns3/event-id.h"
    #include "ns3/make-event.h"
    #include "ns3/ptr.h"
    #include "ns3/socket.h"
    #include <vector>
    #include <functional>
    #include <memory>
    using namespace ns3;

    static std::vector<std::shared_ptr<std::function<void()>>> _py_store;

    EventImpl* pythonMakeEvent(std::function<void()> f) {
        auto func_ptr = std::make_shared<std::function<void()>>(std::move(f));
        _py_store.push_back(func_ptr);
        return MakeEvent(*func_ptr);
    }

    static std::function<void(Ptr<Socket>)> _py_recv;

    void PythonRecvTrampoline(Ptr<Socket> s) {
        if (_py_recv) _py_recv(s);
    }

    void ClearPythonCallbacks() {
        _py_store.clear();
        _py_recv = nullptr;
    }
    """)
    _CALLBACKS_READY = True


class Ns3SinkSocket(SinkSocket):
    """Wraps a bound ns-3 UDP socket"""

    def __init__(self, socket, node: int, address: str, port: int):
        self._socket = socket
        self.node = node
        self.address = address
        self.port = port

    def recv_from(self) -> Optional[Datagram]:
        if self._socket is None:
            return None
        sender_address = ns.Address()
        packet = self._socket.RecvFrom(sender_address)
        if not packet:
            return None
        sender = ""
        if ns.InetSocketAddress.IsMatchingType(sender_address):
            sender = str(ns.InetSocketAddress.ConvertFrom(sender_address).GetIpv4())
        return Datagram(packet.GetSize(), sender)

    def close(self) -> None:
        if self._socket is not None:
            self._socket.Close()
            self._socket = None


class Ns3Engine(SimulationEngine):
    name = "ns3"

    def __init__(self, config: ExperimentConfig):
        """
        Configure ns-3 defaults for the run.

        Args:
            config: Run parameters (transmit power, packet size, data rate)

        Attributes:
            nodes: NodeContainer of all ad-hoc nodes
            devices: NetDeviceContainer from the Wi-Fi install
            _event_refs: Python callables kept alive while ns-3 holds them
            _recv_handlers: node id -> (sink socket, on_receive)
        """
        setup_cppyy_callbacks()
        self.config = config
        self.nodes = None
        self.devices = None
        self.interfaces = None
        self._ipv4: Dict[str, object] = {}
        self._event_refs: List[Callable[[], None]] = []
        self._recv_handlers: Dict[int, tuple] = {}
        self._apps = []
        self._flowmon_helper = None
        self._phy = None
        self._flowmon = None

        ns.Packet.EnablePrinting()
        ns.Config.SetDefault("ns3::OnOffApplication::PacketSize",
                             ns.StringValue(str(config.packet_size)))
        ns.Config.SetDefault("ns3::OnOffApplication::DataRate",
                             ns.StringValue(config.data_rate))
        # Non-unicast frames use the same mode as unicast ones
        ns.Config.SetDefault("ns3::WifiRemoteStationManager::NonUnicastMode",
                             ns.StringValue(Config.PHY_MODE))

        ns.cppyy.gbl._py_recv = self._dispatch_receive

    # ---------------------------------------------------------------- clock
    def now(self) -> float:
        return ns.Simulator.Now().GetSeconds()

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        self._event_refs.append(callback)
        ns.Simulator.Schedule(ns.Seconds(delay), ns.cppyy.gbl.pythonMakeEvent(callback))

    def stop(self, delay: float) -> None:
        ns.Simulator.Stop(ns.Seconds(delay))

    def run(self) -> None:
        ns.Simulator.Run()

    def destroy(self) -> None:
        self._flowmon = None
        ns.cppyy.gbl.ClearPythonCallbacks()
        ns.Simulator.Destroy()
        self._event_refs.clear()
        self._recv_handlers.clear()

    # ------------------------------------------------------------ topology
    def create_nodes(self, count: int) -> List[int]:
        """
        Create the ad-hoc nodes with Wi-Fi devices and Gauss-Markov mobility.

        Returns:
            ns-3 node indices 0..count-1
        """
        self.nodes = ns.NodeContainer()
        self.nodes.Create(count)

        wifi = ns.WifiHelper()
        wifi.SetStandard(ns.WIFI_STANDARD_80211b)

        channel = ns.YansWifiChannelHelper()
        channel.SetPropagationDelay("ns3::ConstantSpeedPropagationDelayModel")
        channel.AddPropagationLoss("ns3::FriisPropagationLossModel")

        phy = ns.YansWifiPhyHelper()
        self._phy = phy
        phy.SetChannel(channel.Create())
        phy.Set("TxPowerStart", ns.DoubleValue(self.config.transmit_power_dbm))
        phy.Set("TxPowerEnd", ns.DoubleValue(self.config.transmit_power_dbm))

        wifi.SetRemoteStationManager("ns3::ConstantRateWifiManager",
                                     "DataMode", ns.StringValue(Config.PHY_MODE),
                                     "ControlMode", ns.StringValue(Config.PHY_MODE))

        mac = ns.WifiMacHelper()
        mac.SetType("ns3::AdhocWifiMac")
        self.devices = wifi.Install(phy, mac, self.nodes)

        self._install_mobility()
        return list(range(count))

    def _install_mobility(self) -> None:
        stream_index = 0

        pos = ns.ObjectFactory()
        pos.SetTypeId("ns3::RandomBoxPositionAllocator")
        pos.Set("X", ns.StringValue(f"ns3::UniformRandomVariable[Min=0.0|Max={Config.AREA_X}]"))
        pos.Set("Y", ns.StringValue(f"ns3::UniformRandomVariable[Min=0.0|Max={Config.AREA_Y}]"))
        pos.Set("Z", ns.StringValue(f"ns3::UniformRandomVariable[Min=0.0|Max={Config.AREA_Z}]"))
        position_alloc = pos.Create().GetObject[ns.PositionAllocator]()
        stream_index += position_alloc.AssignStreams(stream_index)

        mobility = ns.MobilityHelper()
        mobility.SetMobilityModel(
            "ns3::GaussMarkovMobilityModel",
            "Bounds", ns.BoxValue(ns.Box(0, Config.AREA_X, 0, Config.AREA_Y, 0, Config.BOUNDS_Z)),
            "TimeStep", ns.TimeValue(ns.Seconds(Config.MOBILITY_TIME_STEP)),
            "Alpha", ns.DoubleValue(Config.MOBILITY_ALPHA),
            "MeanVelocity", ns.StringValue(
                f"ns3::UniformRandomVariable[Min={Config.MEAN_VELOCITY_MIN}|Max={Config.MEAN_VELOCITY_MAX}]"),
            "MeanDirection", ns.StringValue("ns3::UniformRandomVariable[Min=0|Max=6.283185307]"),
            "MeanPitch", ns.StringValue("ns3::UniformRandomVariable[Min=0.05|Max=0.05]"),
            "NormalVelocity", ns.StringValue("ns3::NormalRandomVariable[Mean=0.0|Variance=0.0|Bound=0.0]"),
            "NormalDirection", ns.StringValue("ns3::NormalRandomVariable[Mean=0.0|Variance=0.2|Bound=0.4]"),
            "NormalPitch", ns.StringValue("ns3::NormalRandomVariable[Mean=0.0|Variance=0.02|Bound=0.04]"))
        mobility.SetPositionAllocator(position_alloc)
        mobility.Install(self.nodes)
        mobility.AssignStreams(self.nodes, stream_index)

    def _container(self, nodes: List[int]):
        container = ns.NodeContainer()
        for idx in nodes:
            container.Add(self.nodes.Get(idx))
        return container

    def install_list_routing(self, protocol_name: str, priority: int,
                             nodes: List[int]) -> None:
        helpers = {
            "OLSR": ns.OlsrHelper,
            "AODV": ns.AodvHelper,
            "DSDV": ns.DsdvHelper,
        }
        routing = helpers[protocol_name]()
        routing_list = ns.Ipv4ListRoutingHelper()
        routing_list.Add(routing, priority)

        internet = ns.InternetStackHelper()
        internet.SetRoutingHelper(routing_list)
        internet.Install(self._container(nodes))

    def install_internet_stack(self, nodes: List[int]) -> None:
        internet = ns.InternetStackHelper()
        internet.Install(self._container(nodes))

    def install_dsr(self, nodes: List[int]) -> None:
        dsr = ns.DsrHelper()
        dsr_main = ns.DsrMainHelper()
        dsr_main.Install(dsr, self._container(nodes))

    def assign_addresses(self, nodes: List[int], base: str, mask: str) -> List[str]:
        address_helper = ns.Ipv4AddressHelper()
        address_helper.SetBase(ns.Ipv4Address(base), ns.Ipv4Mask(mask))
        self.interfaces = address_helper.Assign(self.devices)

        assigned = []
        for idx in nodes:
            ipv4 = self.interfaces.GetAddress(idx)
            text = str(ipv4)
            self._ipv4[text] = ipv4
            assigned.append(text)
        return assigned

    # ------------------------------------------------------------- traffic
    def _dispatch_receive(self, socket) -> None:
        entry = self._recv_handlers.get(socket.GetNode().GetId())
        if entry is None:
            return
        sink_socket, on_receive = entry
        on_receive(sink_socket)

    def open_sink(self, node: int, address: str, port: int,
                  on_receive: Callable[[SinkSocket], None]) -> SinkSocket:
        socket = ns.Socket.CreateSocket(self.nodes.Get(node),
                                        ns.TypeId.LookupByName("ns3::UdpSocketFactory"))
        socket.Bind(ns.InetSocketAddress(self._ipv4[address], int(port)).ConvertTo())
        socket.SetRecvCallback(ns.MakeCallback(ns.cppyy.gbl.PythonRecvTrampoline))

        sink_socket = Ns3SinkSocket(socket, node, address, int(port))
        self._recv_handlers[self.nodes.Get(node).GetId()] = (sink_socket, on_receive)
        return sink_socket

    def install_onoff(self, node: int, remote_address: str, port: int,
                      packet_size: int, data_rate: str,
                      start: float, stop: float) -> None:
        onoff = ns.OnOffHelper("ns3::UdpSocketFactory", ns.Address())
        onoff.SetAttribute("OnTime", ns.StringValue("ns3::ConstantRandomVariable[Constant=1.0]"))
        onoff.SetAttribute("OffTime", ns.StringValue("ns3::ConstantRandomVariable[Constant=0.0]"))
        onoff.SetAttribute("PacketSize", ns.UintegerValue(packet_size))
        onoff.SetAttribute("DataRate", ns.StringValue(data_rate))
        remote = ns.InetSocketAddress(self._ipv4[remote_address], int(port)).ConvertTo()
        onoff.SetAttribute("Remote", ns.AddressValue(remote))

        apps = onoff.Install(self.nodes.Get(node))
        apps.Start(ns.Seconds(start))
        apps.Stop(ns.Seconds(stop))
        self._apps.append(apps)

    # -------------------------------------------------------------- traces
    def enable_mobility_trace(self, path: str) -> None:
        ascii_helper = ns.AsciiTraceHelper()
        ns.MobilityHelper.EnableAsciiAll(ascii_helper.CreateFileStream(path))
        print(f"✅ Mobility trace enabled: {path}")

    def enable_flow_monitor(self) -> None:
        self._flowmon_helper = ns.FlowMonitorHelper()
        self._flowmon = self._flowmon_helper.InstallAll()

    def write_flow_monitor(self, path: str) -> None:
        if self._flowmon is None:
            return
        self._flowmon.SerializeToXmlFile(path, False, False)
        print(f"✅ Flow monitor data written to {path}")

    def enable_pcap(self, prefix: str) -> None:
        if self._phy is None:
            raise RuntimeError("enable_pcap called before create_nodes")
        self._phy.EnablePcapAll(prefix)
        print(f"✅ Per-device PCAP traces enabled: {prefix}-*.pcap")

    def print_routing_tables(self, at: float, path: str) -> None:
        stream = ns.AsciiTraceHelper().CreateFileStream(path)
        ns.Ipv4RoutingHelper.PrintRoutingTableAllAt(ns.Seconds(at), stream)
        print(f"ℹ️  Routing tables will be dumped to {path} at {at}s")
