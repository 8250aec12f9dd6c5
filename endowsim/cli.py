"""
Command-Line Interface for EndowSim.

Purpose
-------
Provides a CLI for running endowment simulations, managing request files
and generating reports without writing Python code.

Commands
--------
- simulate: Run a Monte Carlo simulation from a request file
- request: Validate and create request files
- report: Summarize a saved simulation response
- info: Show version and dependency information

Example Usage
-------------
    # Run simulation from a request file
    $ endowsim simulate --request request.json --output out.json --seed 42

    # Create and validate a request
    $ endowsim request create request.json --template stress
    $ endowsim request validate request.json

    # Report on a saved response
    $ endowsim report -r out.json --format detailed

    # Show version
    $ endowsim --version
"""

from __future__ import annotations

import datetime
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError as PydanticValidationError

from . import __version__
from .exceptions import EndowSimError


def _get_console():
    """Lazy import Rich for better startup time."""
    from rich.console import Console
    return Console()


def _configure_logging(level: str, quiet: bool) -> None:
    """Route package logs through a RichHandler at the configured level."""
    from rich.logging import RichHandler

    handler = RichHandler(show_path=False, rich_tracebacks=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger = logging.getLogger("endowsim")
    logger.handlers[:] = [handler]
    logger.setLevel("WARNING" if quiet else level)
    logger.propagate = False


@click.group()
@click.version_option(version=__version__, prog_name="endowsim")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def main(ctx: click.Context, quiet: bool) -> None:
    """
    EndowSim - Endowment Monte Carlo Simulation Engine.

    Projects a multi-asset endowment portfolio under correlated random
    returns, inflation, spending policy and stress scenarios.

    Use 'endowsim COMMAND --help' for command-specific help.
    """
    from .config import AppSettings

    settings = AppSettings()
    _configure_logging(settings.log_level, quiet)
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["console"] = _get_console()
    ctx.obj["settings"] = settings


@main.command()
@click.option(
    "--request", "-r", "request_file",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to simulation request file (JSON)"
)
@click.option(
    "--output", "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Output file for the response (JSON)"
)
@click.option(
    "--simulations", "-n",
    type=int,
    default=None,
    help="Override numSimulations (100-10,000)"
)
@click.option(
    "--seed", "-s",
    type=int,
    default=None,
    help="Random seed for reproducibility"
)
@click.option(
    "--workers",
    type=int,
    default=None,
    help="Worker threads (default: ENDOWSIM_MAX_WORKERS or CPU count)"
)
@click.option(
    "--executor",
    type=click.Choice(["thread", "none"]),
    default=None,
    help="Path generation executor (default: ENDOWSIM_EXECUTOR)"
)
@click.option(
    "--plot",
    type=click.Path(path_type=Path),
    default=None,
    help="Save a fan chart to this path (PNG)"
)
@click.pass_context
def simulate(
    ctx: click.Context,
    request_file: Path,
    output: Optional[Path],
    simulations: Optional[int],
    seed: Optional[int],
    workers: Optional[int],
    executor: Optional[str],
    plot: Optional[Path],
) -> None:
    """
    Run Monte Carlo simulation.

    Loads a request, simulates every path and prints the headline
    statistics; optionally saves the full response and a fan chart.

    Example:
        endowsim simulate -r request.json -n 5000 --seed 42 -o out.json
    """
    console = ctx.obj.get("console")
    quiet = ctx.obj.get("quiet", False)
    settings = ctx.obj["settings"]

    # Import here to avoid slow startup
    from .serialization import (
        load_request,
        request_from_dict,
        request_to_dict,
        result_to_response,
        save_response,
    )
    from .simulation import SimulationEngine
    from .utils import format_currency

    if not quiet:
        console.print(f"[bold blue]Loading request from {request_file}...[/bold blue]")

    try:
        request = load_request(request_file)
        overrides = {}
        if simulations is not None:
            overrides["numSimulations"] = simulations
        if seed is not None:
            overrides["seed"] = seed
        if overrides:
            request = request_from_dict({**request_to_dict(request), **overrides})
    except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
        click.echo(f"Error loading request: {e}", err=True)
        sys.exit(1)

    updates = {}
    if workers is not None:
        updates["max_workers"] = workers
    if executor is not None:
        updates["executor"] = executor
    if updates:
        settings = settings.model_copy(update=updates)

    if not quiet:
        console.print(
            f"[bold]Running {request.num_simulations:,} simulations "
            f"over {request.years} years...[/bold]"
        )

    try:
        result = SimulationEngine(request, settings).run()
    except EndowSimError as e:
        click.echo(f"Error during simulation: {e}", err=True)
        sys.exit(1)

    stats = result.statistics
    risk = stats.risk

    if not quiet:
        from rich.table import Table

        table = Table(title="Simulation Results", show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green", justify="right")

        table.add_row("Horizon", f"{request.years} years")
        table.add_row("Simulations", f"{stats.total_paths:,}")
        table.add_row("Seed", f"{result.seed}")
        table.add_row("", "")
        table.add_row("Median Final Value", format_currency(stats.median_final_value))
        table.add_row("10th Percentile", format_currency(stats.final_percentiles["p10"]))
        table.add_row("90th Percentile", format_currency(stats.final_percentiles["p90"]))
        table.add_row("Success Rate", f"{stats.success_rate:.1%}")
        table.add_row("Median Annualized Return", f"{risk.median_annualized_return:.2%}")
        table.add_row("Sharpe (median)", f"{risk.sharpe:.2f}")
        table.add_row("CVaR 95%", format_currency(risk.cvar95))
        table.add_row("Calmar", f"{risk.calmar:.2f}")
        table.add_row("Sustainability Horizon", f"{risk.sustainability_horizon:.1f} years")
        table.add_row("Compute Time", f"{result.compute_time_ms:,.0f} ms")

        console.print(table)
    else:
        click.echo(f"Median Final Value: {stats.median_final_value:,.0f}")
        click.echo(f"Success Rate: {stats.success_rate:.4f}")

    if output:
        save_response(result_to_response(result, settings.raw_paths_limit), output)
        if not quiet:
            click.echo(f"Results saved to {output}")

    if plot:
        import matplotlib
        matplotlib.use("Agg")
        from .plotting import plot_fan_chart

        plot.parent.mkdir(parents=True, exist_ok=True)
        plot_fan_chart(result, save_path=str(plot))
        if not quiet:
            click.echo(f"Fan chart saved to {plot}")


@main.group()
def request() -> None:
    """
    Request file management commands.

    Validate and create simulation request files.
    """
    pass


@request.command("validate")
@click.argument("request_file", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def request_validate(ctx: click.Context, request_file: Path) -> None:
    """
    Validate a request file.

    Runs boundary validation, builds the internal model and factorizes the
    correlation matrix, without simulating.

    Example:
        endowsim request validate request.json
    """
    console = ctx.obj.get("console")
    quiet = ctx.obj.get("quiet", False)

    from .assumptions import build_simulation_spec
    from .correlation import CorrelationFactorizer
    from .serialization import load_request

    try:
        req = load_request(request_file)
        spec = build_simulation_spec(req)
        CorrelationFactorizer(spec.correlation, spec.asset_keys)
    except (OSError, json.JSONDecodeError, PydanticValidationError, EndowSimError) as e:
        click.echo(f"Request validation failed: {e}", err=True)
        sys.exit(1)

    if quiet:
        click.echo("Request is valid")
        return

    from rich.panel import Panel

    from .constants import ASSET_LABELS

    info = (
        f"[bold]Request Valid[/bold]\n\n"
        f"[cyan]Horizon:[/cyan] {spec.years} years from {spec.start_year}\n"
        f"[cyan]Initial value:[/cyan] {spec.initial_value:,.0f}\n"
        f"[cyan]Paths:[/cyan] {spec.num_simulations:,}\n"
        f"[cyan]Stress events:[/cyan] {len(spec.stress.equity_shocks)} shocks, "
        f"{len(spec.stress.cpi_shifts)} CPI shifts\n\n"
        f"[cyan]Asset classes ({spec.n_assets}):[/cyan]\n"
    )
    for a, w in zip(spec.assumptions, spec.target_weights):
        label = ASSET_LABELS.get(a.key, a.key)
        info += f"  - {label}: {w * 100:.1f}% weight, {a.mu * 100:.1f}% return, {a.sigma * 100:.1f}% vol\n"

    console.print(Panel(info, title="Request Summary", border_style="green"))


@request.command("create")
@click.argument("output_file", type=click.Path(path_type=Path))
@click.option("--template", "-t", type=click.Choice(["basic", "stress"]), default="basic")
@click.pass_context
def request_create(ctx: click.Context, output_file: Path, template: str) -> None:
    """
    Create a new request file from template.

    Both templates use the seven default asset classes and their default
    correlation matrix; "stress" adds an equity shock, a CPI shift, a
    CPI-linked spending policy and a benchmark.

    Example:
        endowsim request create my_request.json --template basic
    """
    console = ctx.obj.get("console")
    quiet = ctx.obj.get("quiet", False)

    from .config import SimulationRequest
    from .constants import ASSET_CLASSES, DEFAULT_ASSUMPTIONS, DEFAULT_CORRELATION_MATRIX
    from .serialization import save_request

    payload = {
        "years": 20,
        "startYear": datetime.date.today().year,
        "initialValue": 100_000_000,
        "spendingRate": 0.05,
        "spendingGrowth": 0.0,
        "assetAssumptions": {k: dict(DEFAULT_ASSUMPTIONS[k]) for k in ASSET_CLASSES},
        "portfolioWeights": {
            "publicEquity": 40, "privateEquity": 15, "publicFixedIncome": 20,
            "privateCredit": 5, "realAssets": 10, "diversifying": 7, "cashShortTerm": 3,
        },
        "correlationMatrix": [list(row) for row in DEFAULT_CORRELATION_MATRIX],
        "numSimulations": 1000,
        "seed": 42,
    }
    if template == "stress":
        payload.update({
            "initialOperatingExpense": 1_000_000,
            "spendingPolicy": {"type": "cpi_linked", "floorYoy": 0.0, "capYoy": 0.05},
            "rebalancing": {"bandPct": 5, "frequency": "annual"},
            "stress": {
                "equityShocks": [{"assetKey": "publicEquity", "pct": -30, "year": 2}],
                "cpiShifts": [{"deltaPct": 2.0, "from": 1, "to": 5}],
            },
            "benchmark": {"type": "cpi_plus", "spread": 0.05},
        })

    save_request(SimulationRequest.model_validate(payload), output_file)

    if not quiet:
        console.print(f"[green]Created request file: {output_file}[/green]")


@main.command()
@click.option(
    "--result", "-r",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to simulation response file (JSON)"
)
@click.option(
    "--format", "-f",
    type=click.Choice(["summary", "detailed", "csv"]),
    default="summary",
    help="Output format (default: summary)"
)
@click.option(
    "--output", "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Output file (for csv format)"
)
@click.pass_context
def report(
    ctx: click.Context,
    result: Path,
    format: str,
    output: Optional[Path],
) -> None:
    """
    Generate reports from a saved simulation response.

    Example:
        endowsim report -r out.json --format detailed
    """
    console = ctx.obj.get("console")
    quiet = ctx.obj.get("quiet", False)

    from .serialization import load_response
    from .utils import format_currency

    try:
        data = load_response(result)
    except (OSError, json.JSONDecodeError) as e:
        click.echo(f"Error loading result: {e}", err=True)
        sys.exit(1)

    summary = data.get("summary", {})
    meta = data.get("metadata", {})

    if format == "summary":
        rows = [
            ("Horizon", f"{meta.get('years', 'N/A')} years"),
            ("Simulations", f"{meta.get('simulationCount', 0):,}"),
            ("Median Final Value", format_currency(summary.get("medianFinalValue", 0))),
            ("Mean Final Value", format_currency(summary.get("averageFinalValue", 0))),
            ("10th Percentile", format_currency(summary.get("finalValues", {}).get("percentile10", 0))),
            ("90th Percentile", format_currency(summary.get("finalValues", {}).get("percentile90", 0))),
            ("Success Rate", f"{summary.get('successRate', 0):.1%}"),
            ("Probability of Loss", f"{summary.get('probabilityOfLoss', 0):.1%}"),
        ]
        if not quiet:
            from rich.table import Table

            table = Table(title="Simulation Summary")
            table.add_column("Statistic", style="cyan")
            table.add_column("Value", style="green", justify="right")
            for label, value in rows:
                table.add_row(label, value)
            console.print(table)
        else:
            for label, value in rows:
                click.echo(f"{label}: {value}")

    elif format == "detailed":
        click.echo("\n=== Summary Statistics ===")
        for key, value in summary.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                click.echo(f"{key}: {value:,.4f}")
            elif isinstance(value, dict) and key in ("finalValues", "worstCuts"):
                click.echo(f"{key}: {json.dumps(value)}")
        click.echo("\n=== Success by Year ===")
        labels = meta.get("yearLabels", [])[1:]
        for year, p in zip(labels, summary.get("successByYear", [])):
            click.echo(f"{year}: {p:.1%}")

    elif format == "csv":
        import pandas as pd

        if not output:
            output = Path("report.csv")

        bands = summary.get("percentilesByYear")
        if not bands:
            click.echo("No percentile bands found in result file", err=True)
            sys.exit(1)
        frame = pd.DataFrame(bands, index=pd.Index(meta.get("yearLabels"), name="year"))
        frame.to_csv(output)

        if not quiet:
            click.echo(f"CSV report saved to {output}")


@main.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """
    Display system and package information.

    Shows version numbers, installed dependencies and the active settings.
    """
    from importlib.metadata import PackageNotFoundError, version

    console = ctx.obj.get("console")
    settings = ctx.obj["settings"]

    info_lines = [
        f"EndowSim Version: {__version__}",
        f"Python: {sys.version.split()[0]}",
    ]

    for dist in ("numpy", "pandas", "scipy", "pydantic", "pydantic-settings", "matplotlib", "rich", "click"):
        try:
            info_lines.append(f"{dist}: {version(dist)}")
        except PackageNotFoundError:
            info_lines.append(f"{dist}: not installed")

    info_lines.append("")
    info_lines.append(f"executor: {settings.executor}")
    info_lines.append(f"max_workers: {settings.max_workers or 'auto'}")
    info_lines.append(f"batch_size: {settings.batch_size}")
    info_lines.append(f"timeout_s: {settings.timeout_s or 'none'}")

    from rich.panel import Panel
    console.print(Panel("\n".join(info_lines), title="System Information"))


if __name__ == "__main__":
    main()
