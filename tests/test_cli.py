"""Tests for the ppistream command line."""

import logging

import pandas as pd
import pytest
from click.testing import CliRunner

from ppistream.cli import main

from tests.conftest import ppi_frame


@pytest.fixture(autouse=True)
def reset_logging():
    # The handler binds the stderr of the invocation that created it
    yield
    logger = logging.getLogger("ppistream")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "ppi.csv"
    ppi_frame(n=60).to_csv(path, index=False)
    return str(path)


class TestReplayCommand:
    def test_default_metric(self, runner, csv_path):
        result = runner.invoke(main, ["replay", csv_path])
        assert result.exit_code == 0, result.output
        assert "Replayed 60 rows through rmssd: 59 values" in result.output
        assert "mean:" in result.output

    def test_moving_average(self, runner, csv_path):
        result = runner.invoke(main, ["replay", csv_path, "-m", "moving-average", "--window-size", "3"])
        assert result.exit_code == 0, result.output
        assert "58 values" in result.output

    def test_writes_output(self, runner, csv_path, tmp_path):
        out = tmp_path / "out.csv"
        result = runner.invoke(
            main, ["replay", csv_path, "-m", "cascaded-smoothing", "-o", str(out)]
        )
        assert result.exit_code == 0, result.output
        assert f"Output written to {out}" in result.output
        written = pd.read_csv(out)
        assert list(written.columns) == ["timestamp", "PpInMs", "cascaded_smoothing"]
        assert written["cascaded_smoothing"].notna().sum() == 60 - 7

    def test_numeric_timestamps(self, runner, tmp_path):
        path = tmp_path / "numeric.csv"
        pd.DataFrame({"t": [0.0, 800.0, 1650.0], "PpInMs": [800, 850, 820]}).to_csv(path, index=False)
        result = runner.invoke(main, ["replay", str(path), "--timestamp-column", "t", "--window-ms", "5000"])
        assert result.exit_code == 0, result.output
        assert "2 values" in result.output

    def test_offset_timestamps(self, runner, tmp_path):
        path = tmp_path / "offset.csv"
        path.write_text(
            "timestamp,PpInMs\n"
            "2025-08-06T10:00:00.000+02:00,800\n"
            "2025-08-06T10:00:00.850+02:00,850\n"
            "2025-08-06T10:00:01.670+02:00,820\n"
        )
        result = runner.invoke(main, ["replay", str(path)])
        assert result.exit_code == 0, result.output
        assert "Replayed 3 rows through rmssd: 2 values" in result.output

    def test_missing_column(self, runner, csv_path):
        result = runner.invoke(main, ["replay", csv_path, "--timestamp-column", "ts"])
        assert result.exit_code != 0
        assert "no column 'ts'" in result.output

    def test_invalid_window_reported(self, runner, csv_path):
        result = runner.invoke(main, ["replay", csv_path, "-m", "median", "--window-size", "0"])
        assert result.exit_code == 1
        assert "window_size must be a positive integer" in result.output

    def test_unknown_metric(self, runner, csv_path):
        result = runner.invoke(main, ["replay", csv_path, "-m", "sdnn"])
        assert result.exit_code != 0


class TestEvaluateCommand:
    def test_prints_ranking(self, runner, csv_path):
        result = runner.invoke(main, ["evaluate", csv_path, "-s", "1", "-c", "100"])
        assert result.exit_code == 0, result.output
        assert "Distortion impact (60 rows, seed 1)" in result.output
        for name in ("rmssd", "cascaded_median", "ema(0.3)"):
            assert name in result.output

    def test_writes_table(self, runner, csv_path, tmp_path):
        out = tmp_path / "table.csv"
        result = runner.invoke(main, ["-v", "evaluate", csv_path, "-o", str(out)])
        assert result.exit_code == 0, result.output
        table = pd.read_csv(out)
        assert len(table) == 6
        assert list(table.columns) == [
            "name", "mean_relative_error", "abs_relative_error", "n_valid_pairs",
        ]

    def test_same_seed_same_table(self, runner, csv_path, tmp_path):
        first, second = tmp_path / "a.csv", tmp_path / "b.csv"
        runner.invoke(main, ["evaluate", csv_path, "-s", "5", "-o", str(first)])
        runner.invoke(main, ["evaluate", csv_path, "-s", "5", "-o", str(second)])
        pd.testing.assert_frame_equal(pd.read_csv(first), pd.read_csv(second))


class TestConfigureLogging:
    def test_single_handler(self):
        from ppistream.logging_utils import configure_logging

        configure_logging(logging.DEBUG)
        logger = configure_logging(logging.INFO)
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO
        assert not logger.propagate
