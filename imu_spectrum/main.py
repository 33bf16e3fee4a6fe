from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from imu_spectrum.config import settings
from imu_spectrum.errors import ParseError
from imu_spectrum.ingest.txt_loader import CHANNELS, available_channels, load_txt
from imu_spectrum.pipeline import ChannelAnalysis, run_pipeline
from imu_spectrum.utils.logging import error, info

app = typer.Typer(add_completion=False)

out = Console()


def _harmonics_table(analysis: ChannelAnalysis) -> Table:
    table = Table(title=f"{analysis.channel}: selected harmonics")
    table.add_column("#", justify="right")
    table.add_column("Frequency (Hz)", justify="right")
    table.add_column("Amplitude", justify="right")
    table.add_column("Phase (rad)", justify="right")
    table.add_column("|X(f)|", justify="right")
    for i, h in enumerate(analysis.harmonics, start=1):
        table.add_row(
            str(i),
            f"{h.frequency_hz:.4f}",
            f"{h.amplitude:.4f}",
            f"{h.phase_rad:+.4f}",
            f"{h.magnitude:.4g}",
        )
    return table


def _print_analysis(analysis: ChannelAnalysis) -> None:
    rate = f"~{analysis.sample_rate_hz:.2f} Hz" if analysis.sample_rate_hz else "undetermined"
    out.print(f"Samples: {analysis.n_samples:,} | Sampling rate: {rate}")
    if analysis.spectrum is not None:
        sp = analysis.spectrum
        out.print(f"FFT size: {sp.fft_size:,} | Bin width: {sp.bin_width_hz:.4f} Hz | Peaks: {len(analysis.peaks)}")

    if analysis.reconstruction is None:
        out.print("[yellow]No reconstruction.[/yellow]")
    else:
        out.print(_harmonics_table(analysis))
        out.print(analysis.equation, markup=False)
        out.print(f"Mean offset: {analysis.reconstruction.mean:.4f} | MSE: {analysis.mse:.6g} | R²: {analysis.r2:.4f}")

    for note in analysis.notes:
        out.print(f"[dim]note:[/dim] {escape(note)}", highlight=False)


@app.command()
def run(
    path: str = typer.Argument(..., help="Tab-delimited sensor log (.txt) with a 'time' column"),
    channel: str = typer.Option(settings.default_channel, help="Channel column to analyze"),
    fmin: float = typer.Option(settings.min_frequency_hz, min=0.0, help="Ignore spectrum bins below this frequency (Hz)"),
    count: int = typer.Option(settings.harmonic_count, min=0, help="Number of harmonics to keep"),
    out_dir: str = typer.Option(settings.out_dir, help="Output folder for charts and report"),
    report: bool = typer.Option(True, "--report/--no-report", help="Write a PDF report"),
):
    """Analyze one channel: spectrum, dominant harmonics and reconstruction equation."""
    if channel not in CHANNELS:
        error(f"Unknown channel '{channel}'. Options: {list(CHANNELS)}")
        raise typer.Exit(code=2)

    try:
        outputs = run_pipeline(
            path=path,
            channel=channel,
            min_frequency_hz=fmin,
            harmonic_count=count,
            out_dir=out_dir,
            write_report=report,
        )
    except ParseError as e:
        error(f"Parse error: {e}")
        raise typer.Exit(code=1)

    _print_analysis(outputs.analysis)


@app.command()
def channels(
    path: Optional[str] = typer.Argument(None, help="Optional log file to check for data per channel"),
):
    """List recognised channels and their units."""
    present: Optional[list[str]] = None
    if path:
        try:
            present = available_channels(load_txt(path))
        except ParseError as e:
            error(f"Parse error: {e}")
            raise typer.Exit(code=1)

    table = Table(title="Channels")
    table.add_column("Column")
    table.add_column("Unit")
    if present is not None:
        table.add_column("Has data")
    for ch, unit in CHANNELS.items():
        row = [ch, unit]
        if present is not None:
            row.append("yes" if ch in present else "no")
        table.add_row(*row)
    out.print(table)
    if present is not None:
        info(f"{len(present)} of {len(CHANNELS)} channels have data.")


if __name__ == "__main__":
    app()
