"""
MANET Routing Comparison Configuration Parameters

This module defines the default parameters for the routing comparison
harness, the per-run ExperimentConfig built from them, and the error
types raised when a run cannot be configured or its results cannot be
persisted.

Parameter categories:
- Ad-hoc topology and node mobility
- Wi-Fi PHY and traffic generation
- Measurement and output settings

Licensed under the MIT License
"""

from dataclasses import dataclass

from manet_compare.SimulationEngine import parse_data_rate


class HarnessError(Exception):
    """Base class for all harness failures"""


class ConfigurationError(HarnessError):
    """Raised before a run starts when its parameters cannot produce a valid experiment"""


class ResultWriteError(HarnessError):
    """Raised when a result row or header cannot be persisted"""


class Config:
    """Global default parameters for routing comparison runs"""

    SEED = 12345
    RUN = 0

    # ============================================================================
    # Ad-hoc Topology
    # ============================================================================
    N_NODES = 10
    N_SINKS = 2
    AREA_X = 2000.0
    AREA_Y = 2000.0
    AREA_Z = 150.0
    BOUNDS_Z = 100.0

    # ============================================================================
    # Gauss-Markov Mobility
    # ============================================================================
    MEAN_VELOCITY_MIN = 800
    MEAN_VELOCITY_MAX = 1200
    MOBILITY_TIME_STEP = 0.5
    MOBILITY_ALPHA = 0.85

    # ============================================================================
    # Wi-Fi / Traffic
    # ============================================================================
    PHY_MODE = "DsssRate11Mbps"
    DATA_RATE = "1000000bps"
    PKT_SIZE = 1000
    PORT = 9
    TX_POWER_DBM = 27.0
    ADDRESS_BASE = "10.1.1.0"
    ADDRESS_MASK = "255.255.255.0"

    # ============================================================================
    # Run Timing
    # ============================================================================
    TOTAL_TIME = 60.0
    SAMPLE_INTERVAL = 1.0
    # Senders stop this long before the horizon so their last send is not
    # racing the stop event.
    STOP_EPSILON = 0.001

    # ============================================================================
    # Routing
    # ============================================================================
    PROTOCOL = 2
    LIST_ROUTING_PRIORITY = 100

    # ============================================================================
    # Output Settings
    # ============================================================================
    CSV_FILE_NAME = "routingProtocolsFANET.csv"
    TRACE_NAME = "routingProtocolsFANET"
    TRACE_MOBILITY = False
    FLOW_MONITOR = False
    PRINT_ROUTES = False
    PCAP = False
    VERBOSE_RECEIVE = False
    ENGINE = "ns3"


ENGINES = ("ns3", "scheduler")


@dataclass
class ExperimentConfig:
    """
    Parameters of a single comparison run.

    Attributes:
        output_file_name: CSV file receiving one row per sample tick
        protocol_code: 1=OLSR, 2=AODV, 3=DSDV, 4=DSR
        trace_mobility: Write an ascii mobility trace next to the CSV
        num_sinks: Number of receiving nodes (each paired with one sender)
        transmit_power_dbm: PHY TxPowerStart/TxPowerEnd
        total_time_seconds: Run horizon
        sample_interval_seconds: Period of the throughput sampler
    """
    output_file_name: str = Config.CSV_FILE_NAME
    protocol_code: int = Config.PROTOCOL
    trace_mobility: bool = Config.TRACE_MOBILITY
    num_sinks: int = Config.N_SINKS
    transmit_power_dbm: float = Config.TX_POWER_DBM
    total_time_seconds: float = Config.TOTAL_TIME
    sample_interval_seconds: float = Config.SAMPLE_INTERVAL

    num_nodes: int = Config.N_NODES
    port: int = Config.PORT
    packet_size: int = Config.PKT_SIZE
    data_rate: str = Config.DATA_RATE
    engine: str = Config.ENGINE
    seed: int = Config.SEED
    run: int = Config.RUN
    trace_name: str = Config.TRACE_NAME
    flow_monitor: bool = Config.FLOW_MONITOR
    print_routes: bool = Config.PRINT_ROUTES
    pcap: bool = Config.PCAP
    verbose_receive: bool = Config.VERBOSE_RECEIVE

    def validate(self) -> None:
        """
        Reject parameter combinations that cannot form a run.

        Protocol codes and sink pairing are checked again by the selector
        and the traffic plan; this pass catches the numeric ranges.

        Raises:
            ConfigurationError: on the first invalid parameter
        """
        if self.total_time_seconds <= 0:
            raise ConfigurationError(
                f"total time must be positive, got {self.total_time_seconds}")
        if self.sample_interval_seconds <= 0:
            raise ConfigurationError(
                f"sample interval must be positive, got {self.sample_interval_seconds}")
        if self.num_nodes < 2:
            raise ConfigurationError(f"need at least 2 nodes, got {self.num_nodes}")
        if self.packet_size <= 0:
            raise ConfigurationError(f"packet size must be positive, got {self.packet_size}")
        try:
            parse_data_rate(self.data_rate)
        except ValueError as e:
            raise ConfigurationError(f"invalid data rate '{self.data_rate}': {e}") from None
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"port out of range: {self.port}")
        if self.engine not in ENGINES:
            raise ConfigurationError(
                f"unknown engine '{self.engine}' (expected one of {', '.join(ENGINES)})")
        if not self.output_file_name:
            raise ConfigurationError("output file name must not be empty")
