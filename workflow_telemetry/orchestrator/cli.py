from pathlib import Path
import typer
from typing import Optional

from workflow_telemetry.agent.log_config import setup_cli_logger
from workflow_telemetry.agent.runner import TelemetryError, TelemetryRunner
from workflow_telemetry.orchestrator.config import ConfigError, load_config

app = typer.Typer(help="Workflow telemetry - CPU and memory monitoring across job phases")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug detail to stderr"),
):
    setup_cli_logger(verbose)


def _runner(config_file: Optional[Path], **overrides) -> TelemetryRunner:
    try:
        config = load_config(config_file, **overrides)
    except (ConfigError, OSError) as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=2)
    return TelemetryRunner(config)


@app.command()
def start(
    interval: Optional[float] = typer.Option(None, "--interval", help="Sampling interval in seconds (default 1)"),
    metrics_dir: Optional[Path] = typer.Option(None, "--dir", help="Scratch directory for samples and state"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
):
    """Launch the detached sampler and record where it runs"""
    runner = _runner(config_file, sampling_interval=interval, metrics_dir=metrics_dir)
    try:
        runner.start()
    except TelemetryError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)


@app.command()
def stop(
    output_format: Optional[str] = typer.Option(None, "--format", help="summary, json or both"),
    artifact_name: Optional[str] = typer.Option(None, "--artifact-name", help="Artifact name and file prefix"),
    artifact_dir: Optional[Path] = typer.Option(None, "--artifact-dir", help="Where artifacts are published"),
    metrics_dir: Optional[Path] = typer.Option(None, "--dir", help="Scratch directory used by start"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
):
    """Stop the sampler and write the summary, CSV and report"""
    runner = _runner(config_file, output_format=output_format, artifact_name=artifact_name,
                     artifact_dir=artifact_dir, metrics_dir=metrics_dir)
    try:
        runner.stop()
    except TelemetryError as e:
        typer.echo(f"Failed to collect telemetry: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def status(
    metrics_dir: Optional[Path] = typer.Option(None, "--dir", help="Scratch directory used by start"),
):
    """Show whether a sampler is running and how many samples it logged"""
    info = _runner(None, metrics_dir=metrics_dir).status()
    if not info["started"]:
        typer.echo("No telemetry state found")
        return

    typer.echo(f"Metrics directory: {info['metrics_dir']}")
    typer.echo(f"Started:           {info['start_time']}")
    typer.echo(f"Sampler PID:       {info['pid']} ({'running' if info['running'] else 'stopped'})")
    typer.echo(f"Samples:           {info['samples']}")


@app.command()
def report(
    metrics_dir: Path = typer.Argument(..., help="Directory holding raw_metrics.jsonl"),
    output_format: Optional[str] = typer.Option(None, "--format", help="summary, json or both"),
    artifact_name: Optional[str] = typer.Option(None, "--artifact-name", help="File prefix"),
):
    """Aggregate an existing sample log without stopping anything"""
    if not metrics_dir.is_dir():
        typer.echo(f"No such directory: {metrics_dir}", err=True)
        raise typer.Exit(code=1)

    runner = _runner(None, output_format=output_format, artifact_name=artifact_name,
                     metrics_dir=metrics_dir)
    try:
        runner.report(metrics_dir)
    except TelemetryError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
