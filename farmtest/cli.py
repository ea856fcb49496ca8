"""
cli.py - Rich Command Line Interface for farmtest

Robust, factor-adjusted multiple testing of means from the shell.

Usage:
    farmtest --help
    farmtest test data.csv --alpha 0.05
    farmtest test x.csv --y y.csv --bootstrap --n-boot 500 --seed 1
    farmtest test data.csv --factors-x factors.csv --output results.csv
    farmtest cov data.csv --output cov.csv
    farmtest fdr pvalues.csv --alpha 0.1
    farmtest simulate --n 100 --p 50 --k 3 --mu 0.5 --output data.csv
    farmtest version

All CSV inputs carry a single header line followed by comma-separated
numeric rows (one observation per row).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box

from .simulation import NoiseType
from .types import Alternative

# Initialize Typer app and Rich console
app = typer.Typer(
    name="farmtest",
    help="Factor-adjusted robust multiple testing of means",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)


def _log_sink(message) -> None:
    err_console.print(str(message).rstrip(), markup=False, highlight=False)


@app.callback()
def configure_logging(
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Show solver log messages"),
):
    """Route loguru output to stderr; only warnings unless --verbose."""
    logger.remove()
    logger.add(
        _log_sink,
        format="[{time:HH:mm:ss}] <level>{message}</level>",
        level="DEBUG" if verbose else "WARNING",
    )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def load_matrix(path: Path, label: str = "data") -> np.ndarray:
    """Load a headed numeric CSV file as an (n, p) matrix."""
    if not path.exists():
        console.print(f"[red]Error:[/red] {label} file not found: {path}")
        raise typer.Exit(1)

    try:
        return np.loadtxt(path, delimiter=",", skiprows=1, ndmin=2)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] Could not parse {path}: {exc}")
        raise typer.Exit(1)


def save_matrix(path: Path, data: np.ndarray, columns) -> None:
    """Write a matrix as CSV with a plain header line."""
    np.savetxt(path, data, delimiter=",", header=",".join(columns), comments="")


def print_rejections(result, top: int) -> None:
    """Print the summary panel and the most significant coordinates."""
    p = result.p_values.size
    summary = Table.grid(padding=(0, 2))
    summary.add_column(style="dim")
    summary.add_column(style="bold")
    summary.add_row("Hypotheses", str(p))
    summary.add_row("Rejected", f"[green]{result.n_rejections}[/green]")
    for attr, label in (
        ("n_factors", "Factors"),
        ("n_factors_x", "Factors (X)"),
        ("n_factors_y", "Factors (Y)"),
    ):
        if hasattr(result, attr):
            summary.add_row(label, str(getattr(result, attr)))
    for attr, label in (("selection_x", "Factors (X)"), ("selection_y", "Factors (Y)")):
        if hasattr(result, attr):
            summary.add_row(label, str(getattr(result, attr).n_factors))
    console.print(Panel(summary, title="Test Result", border_style="green"))

    if hasattr(result, "means"):
        estimate = result.means
    else:
        estimate = result.means_x - result.means_y

    order = np.argsort(result.p_values, kind="stable")[:top]
    table = Table(title=f"Top {len(order)} Coordinates", box=box.SIMPLE)
    table.add_column("Index", style="cyan", justify="right")
    table.add_column("Estimate", justify="right")
    if hasattr(result, "t_stat"):
        table.add_column("Statistic", justify="right")
    table.add_column("p-value", justify="right")
    table.add_column("Reject", justify="center")

    for j in order:
        row = [str(j), f"{estimate[j]:.4f}"]
        if hasattr(result, "t_stat"):
            row.append(f"{result.t_stat[j]:.3f}")
        row.append(f"{result.p_values[j]:.3g}")
        row.append("[green]yes[/green]" if result.significant[j] else "[dim]no[/dim]")
        table.add_row(*row)

    console.print(table)


# =============================================================================
# COMMANDS
# =============================================================================

@app.command()
def test(
    input_file: Path = typer.Argument(..., help="CSV with the first sample (rows=observations)"),
    y: Optional[Path] = typer.Option(None, "--y", "-y", help="CSV with a second sample"),
    factors_x: Optional[Path] = typer.Option(None, "--factors-x", help="CSV with observed factors for X"),
    factors_y: Optional[Path] = typer.Option(None, "--factors-y", help="CSV with observed factors for Y"),
    h0: float = typer.Option(0.0, "--h0", help="Null mean (or mean difference) for every coordinate"),
    k_x: int = typer.Option(-1, "--k-x", help="Latent factors in X; <= 0 selects automatically"),
    k_y: int = typer.Option(-1, "--k-y", help="Latent factors in Y; <= 0 selects automatically"),
    adjust: bool = typer.Option(True, "--adjust/--no-adjust", help="Remove latent factors before testing"),
    alpha: float = typer.Option(0.05, "--alpha", "-a", help="FDR level"),
    alternative: Alternative = typer.Option(Alternative.TWO_SIDED, "--alternative", help="Alternative hypothesis"),
    bootstrap: bool = typer.Option(False, "--bootstrap", "-b", help="Use multiplier bootstrap p-values"),
    n_boot: int = typer.Option(500, "--n-boot", help="Bootstrap replicates"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Random seed for the bootstrap"),
    top: int = typer.Option(10, "--top", help="Number of coordinates to display"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write per-coordinate results to CSV"),
):
    """
    Run a factor-adjusted robust multiple mean test.

    Example:
        farmtest test data.csv --alpha 0.1
        farmtest test x.csv --y y.csv --bootstrap --seed 7
        farmtest test data.csv --no-adjust
    """
    from . import farm_test

    console.print(Panel.fit("[bold]FarmTest: Robust Multiple Testing[/bold]", border_style="blue"))

    X = load_matrix(input_file, "data")
    Y = load_matrix(y, "second sample") if y is not None else None
    FX = load_matrix(factors_x, "factor") if factors_x is not None else None
    FY = load_matrix(factors_y, "factor") if factors_y is not None else None

    console.print(f"  Loaded data: [cyan]{X.shape[0]}[/cyan] observations x [cyan]{X.shape[1]}[/cyan] coordinates")
    if Y is not None:
        console.print(f"  Second sample: [cyan]{Y.shape[0]}[/cyan] observations")

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console
        ) as progress:
            progress.add_task("Running test...", total=None)
            result = farm_test(
                X, h0=h0, Y=Y, factors_x=FX, factors_y=FY, k_x=k_x, k_y=k_y,
                factor_adjusted=adjust, bootstrap=bootstrap, rng=np.random.default_rng(seed),
                alpha=alpha, alternative=alternative, n_boot=n_boot,
            )
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    console.print("  [green]✓[/green] Test complete\n")
    print_rejections(result, top)

    if output:
        estimate = result.means if hasattr(result, "means") else result.means_x - result.means_y
        save_matrix(
            output,
            np.column_stack([estimate, result.p_values, result.significant.astype(float)]),
            ["estimate", "p_value", "significant"],
        )
        console.print(f"\n  Saved to: [bold]{output}[/bold]")


@app.command()
def cov(
    input_file: Path = typer.Argument(..., help="CSV with observations (rows) by coordinates (columns)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the covariance matrix to CSV"),
):
    """
    Estimate the tuning-free Huber covariance matrix.

    Example:
        farmtest cov data.csv --output cov.csv
    """
    from . import farm_cov

    console.print(Panel.fit("[bold]Huber Covariance[/bold]", border_style="blue"))
    X = load_matrix(input_file, "data")

    try:
        with console.status("[bold blue]Estimating covariance..."):
            result = farm_cov(X)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    p = result.p
    n_show = min(p, 6)
    table = Table(title="Covariance" + (f" (first {n_show} of {p})" if p > n_show else ""), box=box.SIMPLE)
    table.add_column("", style="cyan")
    for j in range(n_show):
        table.add_column(f"X{j}", justify="right")
    for i in range(n_show):
        table.add_row(f"X{i}", *[f"{result.cov[i, j]:.4f}" for j in range(n_show)])
    console.print(table)

    console.print(f"  Robust means: {', '.join(f'{m:.4f}' for m in result.means[:n_show])}"
                  + (" ..." if p > n_show else ""))

    if output:
        save_matrix(output, result.cov, [f"X{j}" for j in range(p)])
        console.print(f"\n  Saved to: [bold]{output}[/bold]")


@app.command()
def fdr(
    input_file: Path = typer.Argument(..., help="CSV with one column of p-values"),
    alpha: float = typer.Option(0.05, "--alpha", "-a", help="FDR level"),
):
    """
    Apply the adaptive Benjamini-Hochberg rule to a list of p-values.

    Example:
        farmtest fdr pvalues.csv --alpha 0.1
    """
    from . import farm_fdr

    pvals = load_matrix(input_file, "p-value").ravel()
    try:
        significant = farm_fdr(pvals, alpha=alpha)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    rejected = np.flatnonzero(significant)
    console.print(f"  Rejected [green]{rejected.size}[/green] of {pvals.size} hypotheses at FDR {alpha}")
    if rejected.size:
        console.print(f"  Indices: {', '.join(str(i) for i in rejected)}")


@app.command()
def simulate(
    n: int = typer.Option(100, "--n", "-n", help="Number of observations"),
    p: int = typer.Option(50, "--p", "-p", help="Number of coordinates"),
    k: int = typer.Option(3, "--k", "-k", help="Number of latent factors"),
    mu: float = typer.Option(0.0, "--mu", help="Mean shift applied to the first --signals coordinates"),
    signals: int = typer.Option(0, "--signals", help="Number of coordinates with a non-zero mean"),
    noise: NoiseType = typer.Option(NoiseType.STUDENT_T, "--noise", help="Idiosyncratic noise distribution"),
    df: float = typer.Option(3.0, "--df", help="Degrees of freedom of Student-t noise"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Random seed"),
    output: Path = typer.Option(Path("simulated.csv"), "--output", "-o", help="Output CSV file"),
    factors_output: Optional[Path] = typer.Option(None, "--factors-output", help="Also write the factors to CSV"),
):
    """
    Simulate heavy-tailed factor-model data.

    Example:
        farmtest simulate --n 200 --p 100 --k 3 --mu 1.0 --signals 10 --seed 42
    """
    from .simulation import simulate_factor_data

    if not 0 <= signals <= p:
        console.print(f"[red]Error:[/red] --signals must be in [0, {p}], got {signals}")
        raise typer.Exit(1)

    means = np.zeros(p)
    means[:signals] = mu
    try:
        data = simulate_factor_data(n, p, k, mu=means, noise=noise, df=df, rng=np.random.default_rng(seed))
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    save_matrix(output, data["X"], [f"X{j}" for j in range(p)])
    console.print(f"  [green]✓[/green] Generated {n} x {p} matrix with {k} factors")
    console.print(f"  Saved to: [bold]{output}[/bold]")

    if factors_output:
        save_matrix(factors_output, data["factors"], [f"F{j}" for j in range(k)])
        console.print(f"  Factors saved to: [bold]{factors_output}[/bold]")


@app.command()
def version():
    """Show version information."""
    from . import __version__

    console.print(Panel(
        f"[bold cyan]farmtest[/bold cyan] v{__version__}\n\n"
        "Factor-adjusted robust multiple testing\n"
        "with false discovery rate control.",
        border_style="cyan"
    ))


# =============================================================================
# ENTRY POINT
# =============================================================================

def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
