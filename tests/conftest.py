"""Shared fixtures for the routing comparison harness tests."""

import pytest

from manet_compare.Config import ExperimentConfig
from manet_compare.EventScheduler import EventScheduler
from manet_compare.ReceiveStats import ReceiveCounters


@pytest.fixture
def scheduler() -> EventScheduler:
    """Zero-latency in-process engine."""
    return EventScheduler()


@pytest.fixture
def counters() -> ReceiveCounters:
    return ReceiveCounters()


@pytest.fixture
def wired_scheduler(scheduler):
    """Scheduler with two nodes carrying a stack and addresses 10.1.1.1/10.1.1.2."""
    nodes = scheduler.create_nodes(2)
    scheduler.install_list_routing("AODV", 100, nodes)
    addresses = scheduler.assign_addresses(nodes, "10.1.1.0", "255.255.255.0")
    return scheduler, nodes, addresses


@pytest.fixture
def make_config(tmp_path):
    """Factory for scheduler-backed configs writing into tmp_path."""
    def _make(**overrides) -> ExperimentConfig:
        params = dict(
            output_file_name=str(tmp_path / "results.csv"),
            protocol_code=2,
            num_sinks=2,
            num_nodes=10,
            transmit_power_dbm=27.0,
            total_time_seconds=5.0,
            sample_interval_seconds=1.0,
            packet_size=1000,
            data_rate="8000bps",
            engine="scheduler",
        )
        params.update(overrides)
        return ExperimentConfig(**params)
    return _make
