"""
Unit tests for CLI module.

Tests command-line interface functionality using Click's testing utilities.
"""

import json
import pytest
from pathlib import Path
from click.testing import CliRunner

from endowsim.cli import main, __version__
from endowsim.serialization import load_request, result_to_response, save_response


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def runner(monkeypatch):
    """Create CLI test runner with serial generation."""
    monkeypatch.setenv("ENDOWSIM_EXECUTOR", "none")
    return CliRunner()


@pytest.fixture
def temp_request(tmp_path, two_asset_payload):
    """Create temporary request file (raw camelCase payload)."""
    request_file = tmp_path / "request.json"
    with open(request_file, "w") as f:
        json.dump(two_asset_payload, f)
    return request_file


@pytest.fixture
def temp_result(tmp_path, simulation_result):
    """Create temporary response file."""
    result_file = tmp_path / "result.json"
    save_response(result_to_response(simulation_result), result_file)
    return result_file


# ============================================================================
# MAIN COMMAND TESTS
# ============================================================================

class TestMainCommand:
    """Test main CLI group."""

    def test_main_help(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "EndowSim" in result.output
        assert "simulate" in result.output
        assert "request" in result.output

    def test_main_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


# ============================================================================
# SIMULATE COMMAND TESTS
# ============================================================================

class TestSimulateCommand:
    """Test simulate command."""

    def test_simulate_help(self, runner):
        result = runner.invoke(main, ["simulate", "--help"])

        assert result.exit_code == 0
        assert "--request" in result.output
        assert "--simulations" in result.output

    def test_simulate_requires_request(self, runner):
        result = runner.invoke(main, ["simulate"])
        assert result.exit_code != 0

    def test_simulate_basic(self, runner, temp_request):
        result = runner.invoke(main, ["simulate", "-r", str(temp_request), "-n", "100"])

        assert result.exit_code == 0, result.output
        assert "Simulation Results" in result.output
        assert "Success Rate" in result.output

    def test_simulate_quiet(self, runner, temp_request):
        result = runner.invoke(main, ["-q", "simulate", "-r", str(temp_request), "-n", "100"])

        assert result.exit_code == 0, result.output
        assert "Success Rate:" in result.output
        assert "Loading request" not in result.output

    def test_simulate_with_output(self, runner, temp_request, tmp_path):
        output = tmp_path / "out.json"
        result = runner.invoke(main, [
            "-q", "simulate", "-r", str(temp_request),
            "-n", "100", "--seed", "7", "--executor", "none", "-o", str(output),
        ])

        assert result.exit_code == 0, result.output
        with open(output) as f:
            data = json.load(f)
        assert data["metadata"]["simulationCount"] == 100
        assert data["metadata"]["seed"] == 7
        assert data["pathsAvailable"] is True

    def test_simulate_threaded(self, runner, temp_request):
        result = runner.invoke(main, [
            "-q", "simulate", "-r", str(temp_request),
            "-n", "100", "--executor", "thread", "--workers", "2",
        ])
        assert result.exit_code == 0, result.output

    def test_simulate_with_plot(self, runner, temp_request, tmp_path):
        plot = tmp_path / "charts" / "fan.png"
        result = runner.invoke(main, [
            "-q", "simulate", "-r", str(temp_request), "-n", "100", "--plot", str(plot),
        ])

        assert result.exit_code == 0, result.output
        assert plot.exists()

    def test_simulate_invalid_override(self, runner, temp_request):
        """Test overrides go through boundary validation."""
        result = runner.invoke(main, ["simulate", "-r", str(temp_request), "-n", "50"])

        assert result.exit_code == 1
        assert "Error loading request" in result.output

    def test_simulate_invalid_correlation(self, runner, tmp_path, two_asset_payload):
        payload = {**two_asset_payload, "correlationMatrix": [[1.0, 0.5], [0.4, 1.0]]}
        request_file = tmp_path / "bad_corr.json"
        request_file.write_text(json.dumps(payload))

        result = runner.invoke(main, ["simulate", "-r", str(request_file)])

        assert result.exit_code == 1
        assert "Error during simulation" in result.output


# ============================================================================
# REQUEST COMMAND TESTS
# ============================================================================

class TestRequestCommand:
    """Test request management commands."""

    def test_request_help(self, runner):
        result = runner.invoke(main, ["request", "--help"])

        assert result.exit_code == 0
        assert "validate" in result.output
        assert "create" in result.output

    def test_request_create_basic(self, runner, tmp_path):
        output = tmp_path / "basic.json"
        result = runner.invoke(main, ["request", "create", str(output)])

        assert result.exit_code == 0
        request = load_request(output)
        assert request.years == 20
        assert len(request.asset_assumptions) == 7
        assert "startYear" in json.loads(output.read_text())

    def test_request_create_stress(self, runner, tmp_path):
        output = tmp_path / "stress.json"
        result = runner.invoke(main, ["request", "create", str(output), "--template", "stress"])

        assert result.exit_code == 0
        request = load_request(output)
        assert request.spending_policy.type == "cpi_linked"
        assert len(request.stress.equity_shocks) == 1
        assert request.benchmark.type == "cpi_plus"

    def test_request_validate_valid(self, runner, temp_request):
        result = runner.invoke(main, ["request", "validate", str(temp_request)])

        assert result.exit_code == 0
        assert "Request Valid" in result.output
        assert "Public Fixed Income" in result.output

    def test_request_validate_quiet(self, runner, temp_request):
        result = runner.invoke(main, ["-q", "request", "validate", str(temp_request)])

        assert result.exit_code == 0
        assert "Request is valid" in result.output

    def test_request_validate_bad_weights(self, runner, tmp_path, two_asset_payload):
        payload = {**two_asset_payload, "portfolioWeights": {"publicEquity": 50, "publicFixedIncome": 40}}
        request_file = tmp_path / "bad_weights.json"
        request_file.write_text(json.dumps(payload))

        result = runner.invoke(main, ["request", "validate", str(request_file)])

        assert result.exit_code == 1
        assert "validation failed" in result.output

    def test_request_validate_invalid_path(self, runner):
        result = runner.invoke(main, ["request", "validate", "nonexistent.json"])
        assert result.exit_code != 0


# ============================================================================
# REPORT COMMAND TESTS
# ============================================================================

class TestReportCommand:
    """Test report command."""

    def test_report_help(self, runner):
        result = runner.invoke(main, ["report", "--help"])

        assert result.exit_code == 0
        assert "--format" in result.output

    def test_report_summary(self, runner, temp_result):
        result = runner.invoke(main, ["-q", "report", "-r", str(temp_result)])

        assert result.exit_code == 0
        assert "Success Rate:" in result.output
        assert "Simulations: 200" in result.output

    def test_report_detailed(self, runner, temp_result):
        result = runner.invoke(main, ["report", "-r", str(temp_result), "--format", "detailed"])

        assert result.exit_code == 0
        assert "=== Summary Statistics ===" in result.output
        assert "medianFinalValue" in result.output
        assert "2035:" in result.output

    def test_report_csv(self, runner, temp_result, tmp_path):
        output = tmp_path / "report.csv"
        result = runner.invoke(main, [
            "report", "-r", str(temp_result), "--format", "csv", "-o", str(output),
        ])

        assert result.exit_code == 0
        lines = output.read_text().strip().splitlines()
        assert lines[0] == "year,p10,p25,p50,p75,p90"
        assert len(lines) == 12
        assert lines[1].startswith("2025,")


# ============================================================================
# INFO COMMAND TESTS
# ============================================================================

class TestInfoCommand:
    """Test info command."""

    def test_info_shows_version(self, runner):
        result = runner.invoke(main, ["info"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_info_shows_settings(self, runner):
        result = runner.invoke(main, ["info"])

        assert result.exit_code == 0
        assert "numpy" in result.output
        assert "executor: none" in result.output


# ============================================================================
# ERROR HANDLING TESTS
# ============================================================================

class TestErrorHandling:
    """Test CLI error handling."""

    def test_invalid_request_file_format(self, runner, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{ invalid json }")

        result = runner.invoke(main, ["simulate", "-r", str(bad)])

        assert result.exit_code == 1
        assert "Error loading request" in result.output

    def test_missing_required_fields(self, runner, tmp_path):
        incomplete = tmp_path / "incomplete.json"
        incomplete.write_text(json.dumps({"years": 10}))

        result = runner.invoke(main, ["simulate", "-r", str(incomplete)])

        assert result.exit_code == 1
