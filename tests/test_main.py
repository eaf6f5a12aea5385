"""
Command-line entry point tests (scheduler engine only).
"""

from unittest.mock import patch

from manet_compare import ProtocolSelector
from manet_compare.Config import Config
from manet_compare.main import build_config, parse_args, run_experiment
from manet_compare.ResultWriter import read_results


def test_defaults_follow_config():
    config = build_config(parse_args([]))

    assert config.output_file_name == Config.CSV_FILE_NAME
    assert config.protocol_code == 2
    assert config.num_sinks == 2
    assert config.transmit_power_dbm == 27.0
    assert config.total_time_seconds == 60.0
    assert config.sample_interval_seconds == 1.0
    assert config.trace_mobility is False


def test_flags_override_config():
    config = build_config(parse_args([
        "--csv", "dsr.csv", "--protocol", "4", "--sinks", "3", "--txp", "20",
        "--time", "30", "--interval", "0.5", "--trace-mobility", "--verbose",
    ]))

    assert config.output_file_name == "dsr.csv"
    assert config.protocol_code == 4
    assert config.num_sinks == 3
    assert config.transmit_power_dbm == 20.0
    assert config.total_time_seconds == 30.0
    assert config.sample_interval_seconds == 0.5
    assert config.trace_mobility is True
    assert config.verbose_receive is True


def test_successful_run_exits_zero(tmp_path):
    out = tmp_path / "run.csv"
    status = run_experiment([
        "--engine", "scheduler", "--csv", str(out), "--protocol", "3",
        "--time", "4", "--rate", "8000bps",
    ])

    assert status == 0
    rows = read_results(out)
    assert len(rows) == 4
    assert {r['RoutingProtocol'] for r in rows} == {"DSDV"}


def test_unknown_protocol_exits_with_config_error(tmp_path, capsys):
    out = tmp_path / "run.csv"
    status = run_experiment(["--engine", "scheduler", "--csv", str(out), "--protocol", "5"])

    assert status == 2
    assert not out.exists()
    assert "No such protocol: 5" in capsys.readouterr().err


def test_unpairable_sinks_exit_with_config_error(tmp_path):
    out = tmp_path / "run.csv"
    status = run_experiment(["--engine", "scheduler", "--csv", str(out),
                             "--nodes", "4", "--sinks", "3"])

    assert status == 2
    assert not out.exists()


def test_unwritable_output_exits_one(tmp_path):
    status = run_experiment(["--engine", "scheduler", "--csv", str(tmp_path), "--time", "2"])
    assert status == 1


def test_pcap_flag():
    assert build_config(parse_args([])).pcap is False
    assert build_config(parse_args(["--pcap"])).pcap is True


def test_missing_ns3_bindings_exit_with_config_error(tmp_path, capsys):
    out = tmp_path / "run.csv"
    with patch("manet_compare.main.create_engine",
               side_effect=ImportError("No module named 'ns'")):
        status = run_experiment(["--engine", "scheduler", "--csv", str(out)])

    assert status == 2
    assert not out.exists()
    assert "install the ns3 extra" in capsys.readouterr().err


def test_cli_run_resolves_protocol_once(tmp_path):
    out = tmp_path / "run.csv"
    with patch.object(ProtocolSelector, "select", wraps=ProtocolSelector.select) as select:
        status = run_experiment(["--engine", "scheduler", "--csv", str(out), "--time", "2"])

    assert status == 0
    select.assert_called_once_with(2)
