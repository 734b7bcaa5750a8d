"""Command-line interface for the quasi-Monte-Carlo integrator."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from qmc_integrator.admission import AdmissionGuard, run_nested_fan_out
from qmc_integrator.config import IntegrationConfig
from qmc_integrator.errors import QMCError
from qmc_integrator.integration import QuasiMonteCarloIntegrator, convergence_study
from qmc_integrator.pool import BoundedWorkerPool
from qmc_integrator.report import build_report_data, export_json


console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qmc-integrate",
        description="Parallel quasi-Monte-Carlo approximation of pi with Halton points.",
    )

    parser.add_argument(
        "--samples", "-n",
        type=int,
        default=2_000_000,
        help="Number of sample points (default: 2,000,000)",
    )
    parser.add_argument(
        "--tasks",
        type=int,
        default=20,
        help="Number of equal index ranges; any remainder is dropped (default: 20)",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=8,
        help="Number of concurrent workers (default: 8)",
    )
    parser.add_argument(
        "--executor",
        choices=["thread", "process"],
        default="thread",
        help="Worker type (default: thread)",
    )
    parser.add_argument(
        "--base-x",
        type=int,
        default=2,
        help="Prime Halton base for the x coordinate (default: 2)",
    )
    parser.add_argument(
        "--base-y",
        type=int,
        default=3,
        help="Prime Halton base for the y coordinate (default: 3)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort if the tasks take longer than this many seconds",
    )
    parser.add_argument(
        "--convergence",
        type=int,
        nargs="*",
        default=None,
        metavar="N",
        help="Also tabulate the error for these sample sizes (default: 1e4 1e5 1e6 1e7)",
    )
    parser.add_argument(
        "--nested-demo",
        action="store_true",
        help="Run the nested fan-out experiment (5 outer permits, inner pool of 10)",
    )
    parser.add_argument(
        "--output-dir", "-o",
        type=str,
        default="output",
        help="Output directory for the JSON report (default: output/)",
    )
    parser.add_argument(
        "--no-report",
        action="store_true",
        help="Skip writing the JSON report",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging",
    )

    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def run(args: argparse.Namespace) -> None:
    """Execute the integration and optional experiments."""
    configure_logging(args.verbose)

    console.print(Panel.fit(
        "[bold blue]QMC Integrator[/bold blue]\n"
        "Parallel quasi-Monte-Carlo integration with Halton sequences",
        border_style="blue",
    ))

    config = IntegrationConfig(
        total_samples=args.samples,
        task_count=args.tasks,
        worker_count=args.workers,
        executor=args.executor,
        base_x=args.base_x,
        base_y=args.base_y,
        timeout=args.timeout,
    )

    # ------------------------------------------------------------ Integration
    console.print(
        f"\n[bold]Integrating ({config.total_samples:,} samples, "
        f"{config.task_count} tasks, {config.worker_count} workers)...[/bold]"
    )
    try:
        result = QuasiMonteCarloIntegrator(config).run()
    except QMCError as exc:
        console.print(f"[red]Integration failed:[/red] {exc}")
        sys.exit(1)

    result_table = Table(title="Integration Result")
    result_table.add_column("Metric", style="cyan")
    result_table.add_column("Value", justify="right")
    result_table.add_row("Estimate of pi", f"{result.estimate:.10f}")
    result_table.add_row("Effective Samples", f"{result.total_samples:,}")
    result_table.add_row("Dropped Samples", f"{config.total_samples - result.total_samples:,}")
    result_table.add_row("Absolute Error", f"{result.absolute_error:.3e}")
    result_table.add_row("Theoretical Error Order", f"{result.theoretical_error_order:.3e}")
    result_table.add_row("Elapsed", f"{result.elapsed_time:.3f} s")
    console.print(result_table)

    # ------------------------------------------------------------ Convergence
    convergence = None
    if args.convergence is not None:
        sizes = args.convergence or [10_000, 100_000, 1_000_000, 10_000_000]
        console.print(f"\n[bold]Running convergence study ({len(sizes)} sizes)...[/bold]")
        try:
            convergence = convergence_study(sizes, config)
        except QMCError as exc:
            console.print(f"[red]Convergence study failed:[/red] {exc}")
            sys.exit(1)

        conv_table = Table(title="Convergence")
        conv_table.add_column("Samples", justify="right", style="cyan")
        conv_table.add_column("Estimate", justify="right")
        conv_table.add_column("Abs Error", justify="right")
        conv_table.add_column("(log n)^2 / n", justify="right")
        conv_table.add_column("Elapsed", justify="right")
        for row in convergence.itertuples(index=False):
            conv_table.add_row(
                f"{row.effective_samples:,}",
                f"{row.estimate:.10f}",
                f"{row.abs_error:.3e}",
                f"{row.theoretical_order:.3e}",
                f"{row.elapsed_time:.3f} s",
            )
        console.print(conv_table)

    # ------------------------------------------------------------ Nested fan-out
    nested = None
    if args.nested_demo:
        console.print("\n[bold]Running nested fan-out (20 outer x 100 inner)...[/bold]")
        with BoundedWorkerPool(5, name="outer") as outer_pool, \
                BoundedWorkerPool(10, name="inner") as inner_pool:
            guard = AdmissionGuard(permits=5, outer_pool=outer_pool, inner_pool=inner_pool)
            nested = run_nested_fan_out(guard, timeout=args.timeout)

        nested_table = Table(title="Nested Fan-Out")
        nested_table.add_column("Metric", style="cyan")
        nested_table.add_column("Value", justify="right")
        nested_table.add_row("Outer Tasks Completed", f"{nested.outer_completed}")
        nested_table.add_row("Inner Tasks Completed", f"{nested.inner_completed:,}")
        nested_table.add_row("Peak Concurrent Outer Tasks", f"{nested.peak_outer_concurrency}")
        nested_table.add_row("Elapsed", f"{nested.elapsed_time:.3f} s")
        console.print(nested_table)

    # ------------------------------------------------------------ Export report
    if not args.no_report:
        report_data = build_report_data(config, result, convergence, nested)
        json_path = export_json(report_data, Path(args.output_dir) / "integration_report.json")
        console.print(f"\n[green]JSON report saved:[/green] {json_path}")

    console.print("\n[bold green]Done.[/bold green]")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    run(args)


if __name__ == "__main__":
    main()
