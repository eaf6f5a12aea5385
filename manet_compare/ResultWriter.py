"""
ResultWriter: CSV result stream for routing comparison runs

Writes one header row when a run starts and appends one row per sample
tick. Every row is written through its own open/append/close cycle so it
is on disk before the next event runs; a run killed right after a tick
keeps that tick's row.

Column order is fixed:
    SimulationSecond, ReceiveRate, PacketsReceived, NumberOfSinks,
    RoutingProtocol, TransmissionPower

ReceiveRate is in kilobits per second.

Licensed under the MIT License
"""

import csv
import json
import os
import time as time_module
from pathlib import Path
from typing import List

import numpy as np

from manet_compare.Config import ResultWriteError
from manet_compare.SampleRecorder import Sample

HEADERS = [
    "SimulationSecond", "ReceiveRate", "PacketsReceived",
    "NumberOfSinks", "RoutingProtocol", "TransmissionPower",
]


class ResultWriter:
    """
    Persists Samples to a CSV file in tick order.

    Keeps the written samples in memory for the end-of-run summary.
    """
    def __init__(self, output_file_name: str):
        self.output_file = Path(output_file_name)
        self.rows: List[Sample] = []
        self.header_written = False
        self.simulation_start_time = None
        self.sim_time_end_seconds = 0.0
        self.wall_clock_seconds = 0.0

    def write_header(self) -> None:
        """
        Truncate the output file and write the column headers.

        Raises:
            ResultWriteError: if the file cannot be created
        """
        try:
            if self.output_file.parent and not self.output_file.parent.exists():
                self.output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.output_file, 'w', newline='') as f:
                csv.writer(f).writerow(HEADERS)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise ResultWriteError(f"cannot write header to {self.output_file}: {e}") from e
        self.header_written = True
        self.simulation_start_time = time_module.time()

    def append_row(self, sample: Sample) -> None:
        """
        Append one sample and force it to disk.

        Raises:
            ResultWriteError: if the header was never written or the row
                cannot be persisted
        """
        if not self.header_written:
            raise ResultWriteError(f"header not written to {self.output_file}")
        row = {
            'SimulationSecond': sample.timestamp_seconds,
            'ReceiveRate': sample.kilobits_per_second,
            'PacketsReceived': sample.packets_received,
            'NumberOfSinks': sample.num_sinks,
            'RoutingProtocol': sample.protocol_name,
            'TransmissionPower': sample.transmit_power_dbm,
        }
        try:
            with open(self.output_file, 'a', newline='') as f:
                csv.DictWriter(f, fieldnames=HEADERS).writerow(row)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise ResultWriteError(f"cannot append row to {self.output_file}: {e}") from e
        self.rows.append(sample)

    def generate_summary_report(self, **metadata) -> dict:
        """
        Summarise the run and store it as JSON next to the CSV file.

        Creates <csv stem>_summary.json containing:
        - Row count and total packets received
        - Mean, peak and standard deviation of the receive rate
        - Simulation timing (simulated vs wall-clock seconds)
        - Any extra metadata passed in (protocol, sinks, power, ...)

        Returns:
            Dictionary containing the summary
        """
        self.wall_clock_seconds = time_module.time() - (self.simulation_start_time or time_module.time())
        rates = np.array([s.kilobits_per_second for s in self.rows], dtype=float)
        summary = {
            'rows': len(self.rows),
            'total_packets': int(sum(s.packets_received for s in self.rows)),
            'mean_receive_rate_kbps': float(rates.mean()) if rates.size else 0.0,
            'peak_receive_rate_kbps': float(rates.max()) if rates.size else 0.0,
            'std_receive_rate_kbps': float(rates.std()) if rates.size else 0.0,
            'sim_time_seconds': self.sim_time_end_seconds,
            'wall_clock_seconds': self.wall_clock_seconds,
            'data_file': str(self.output_file),
        }
        summary.update(metadata)

        summary_file = self.output_file.with_name(f"{self.output_file.stem}_summary.json")
        try:
            with open(summary_file, 'w') as f:
                json.dump(summary, f, indent=2)
        except OSError as e:
            raise ResultWriteError(f"cannot write summary to {summary_file}: {e}") from e

        return summary


def read_results(path) -> List[dict]:
    """Load a result CSV back into typed rows"""
    rows = []
    with open(path, newline='') as f:
        for raw in csv.DictReader(f):
            rows.append({
                'SimulationSecond': float(raw['SimulationSecond']),
                'ReceiveRate': float(raw['ReceiveRate']),
                'PacketsReceived': int(raw['PacketsReceived']),
                'NumberOfSinks': int(raw['NumberOfSinks']),
                'RoutingProtocol': raw['RoutingProtocol'],
                'TransmissionPower': float(raw['TransmissionPower']),
            })
    return rows
