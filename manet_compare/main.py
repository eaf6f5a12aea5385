"""
MANET Routing Comparison: command-line entry point

Runs one throughput trial of an ad-hoc network under the selected routing
protocol and writes one CSV row per sample tick.

Usage:
    python -m manet_compare.main [OPTIONS]

Options:
    --csv NAME          Output CSV file (default: from Config.CSV_FILE_NAME)
    --protocol INT      1=OLSR;2=AODV;3=DSDV;4=DSR (default: 2)
    --trace-mobility    Write an ascii mobility trace
    --sinks INT         Number of sinks (default: 2)
    --txp DBM           Transmit power (default: 27.0)
    --time SECONDS      Simulated run time (default: 60.0)
    --interval SECONDS  Sample interval (default: 1.0)
    --nodes INT         Number of ad-hoc nodes (default: 10)
    --engine NAME       ns3 or scheduler (default: ns3)
    --seed INT          RNG seed (default: 12345)
    --run INT           RNG run number (default: 0)
    --flowmon           Serialize FlowMonitor statistics (ns3 only)
    --print-routes      Dump routing tables halfway through the run (ns3 only)
    --pcap              Write per-device PCAP traces (ns3 only)
    --verbose           Print one line per received packet

Exit status: 0 on success, 2 on a configuration error (nothing written),
1 when results could not be persisted.
"""

import argparse
import random
import sys

import numpy as np

from manet_compare.Config import Config, ConfigurationError, ExperimentConfig, ResultWriteError
from manet_compare.RoutingExperiment import RoutingExperiment, create_engine


def parse_args(argv=None):
    """
    Parse command-line arguments for run configuration.

    Returns:
        Namespace object with parsed arguments
    """
    p = argparse.ArgumentParser(description="Compare MANET routing protocols by receive rate")
    p.add_argument("--csv", type=str, default=Config.CSV_FILE_NAME,
                   help="The name of the CSV output file name")
    p.add_argument("--protocol", type=int, default=Config.PROTOCOL,
                   help="1=OLSR;2=AODV;3=DSDV;4=DSR")
    p.add_argument("--trace-mobility", action="store_true", default=Config.TRACE_MOBILITY,
                   help="Enable mobility tracing")
    p.add_argument("--sinks", type=int, default=Config.N_SINKS)
    p.add_argument("--txp", type=float, default=Config.TX_POWER_DBM, help="Transmit power (dBm)")
    p.add_argument("--time", type=float, default=Config.TOTAL_TIME, help="Simulated time (s)")
    p.add_argument("--interval", type=float, default=Config.SAMPLE_INTERVAL,
                   help="Sample interval (s)")
    p.add_argument("--nodes", type=int, default=Config.N_NODES)
    p.add_argument("--packet-size", type=int, default=Config.PKT_SIZE)
    p.add_argument("--rate", type=str, default=Config.DATA_RATE, help="Sender data rate")
    p.add_argument("--engine", type=str, default=Config.ENGINE, help="ns3 or scheduler")
    p.add_argument("--seed", type=int, default=Config.SEED)
    p.add_argument("--run",  type=int, default=Config.RUN)
    p.add_argument("--flowmon", action="store_true", default=Config.FLOW_MONITOR)
    p.add_argument("--print-routes", action="store_true", default=Config.PRINT_ROUTES)
    p.add_argument("--pcap", action="store_true", default=Config.PCAP,
                   help="Write per-device PCAP trace files")
    p.add_argument("--verbose", action="store_true", default=Config.VERBOSE_RECEIVE)
    return p.parse_args(argv)


def build_config(args) -> ExperimentConfig:
    return ExperimentConfig(
        output_file_name=args.csv,
        protocol_code=args.protocol,
        trace_mobility=args.trace_mobility,
        num_sinks=args.sinks,
        transmit_power_dbm=args.txp,
        total_time_seconds=args.time,
        sample_interval_seconds=args.interval,
        num_nodes=args.nodes,
        packet_size=args.packet_size,
        data_rate=args.rate,
        engine=args.engine,
        seed=args.seed,
        run=args.run,
        flow_monitor=args.flowmon,
        print_routes=args.print_routes,
        pcap=args.pcap,
        verbose_receive=args.verbose,
    )


def seed_rngs(config: ExperimentConfig) -> None:
    """Seed Python, numpy and (for ns-3 runs) the ns-3 RNG streams"""
    random.seed(config.seed)
    np.random.seed(config.seed)
    if config.engine == "ns3":
        from ns import ns
        ns.RngSeedManager.SetSeed(config.seed)
        ns.RngSeedManager.SetRun(config.run)


def run_experiment(argv=None) -> int:
    """
    Execute a single comparison run with the parsed parameters.

    This function:
    1. Parses command-line arguments
    2. Builds the run configuration
    3. Seeds all RNGs for reproducibility
    4. Creates and runs the experiment

    Returns:
        Process exit status
    """
    args = parse_args(argv)
    config = build_config(args)

    print(f"🔧 Configuration: protocol={config.protocol_code}, sinks={config.num_sinks}, "
          f"txp={config.transmit_power_dbm}dBm, time={config.total_time_seconds}s, "
          f"engine={config.engine}")

    try:
        experiment = RoutingExperiment(config)
        # Configuration problems surface here, before the engine is created
        experiment.preflight()
        seed_rngs(config)
        experiment.engine = create_engine(config)
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 2
    except ImportError as e:
        print(f"❌ ns-3 bindings unavailable ({e}); install the ns3 extra "
              f"(pip install 'manet-compare[ns3]') or use --engine scheduler",
              file=sys.stderr)
        return 2

    try:
        experiment.run()
        print(f"✅ Results written to {config.output_file_name}")
        return 0

    except ResultWriteError as e:
        print(f"❌ Result persistence failed: {e}", file=sys.stderr)
        return 1


def main() -> None:
    sys.exit(run_experiment())


if __name__ == "__main__":
    main()
