"""
CI-facing side of the start and stop phases.

On a GitHub Actions runner the state channel, step outputs and job summary
are files named by environment variables. Outside a runner the same calls
fall back to the console and to files in the metrics directory, so both
phases also work from a plain shell.
"""
import json
import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import Dict, List, Optional

import typer

logger = logging.getLogger(__name__)


def _append_env_file(path: str, name: str, value: str):
    with open(path, "a", encoding="utf-8") as f:
        if "\n" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
        else:
            f.write(f"{name}={value}\n")


def _read_env_file(path: Path) -> Dict[str, str]:
    values = {}
    lines = path.read_text(encoding="utf-8").splitlines()
    i = 0
    while i < len(lines):
        line = lines[i]
        if "<<" in line and "=" not in line.split("<<", 1)[0]:
            name, delimiter = line.split("<<", 1)
            body = []
            i += 1
            while i < len(lines) and lines[i] != delimiter:
                body.append(lines[i])
                i += 1
            values[name] = "\n".join(body)
        elif "=" in line:
            name, value = line.split("=", 1)
            values[name] = value
        i += 1
    return values


class JobSurface:
    def __init__(self, metrics_dir: Optional[Path] = None, env: Optional[Dict[str, str]] = None):
        self.metrics_dir = Path(metrics_dir) if metrics_dir else None
        self.env = os.environ if env is None else env
        self.outputs: Dict[str, str] = {}
        self.warnings: List[str] = []

    def save_state(self, name: str, value: str):
        state_path = self.env.get("GITHUB_STATE")
        if state_path:
            _append_env_file(state_path, name, value)

    def get_state(self, name: str) -> str:
        value = self.env.get(f"STATE_{name}")
        if value:
            return value
        state_path = self.env.get("GITHUB_STATE")
        if state_path and Path(state_path).is_file():
            return _read_env_file(Path(state_path)).get(name, "")
        return ""

    def set_output(self, name: str, value: str):
        self.outputs[name] = value
        output_path = self.env.get("GITHUB_OUTPUT")
        if output_path:
            _append_env_file(output_path, name, value)
        else:
            typer.echo(f"{name}={value}")

    def append_summary(self, markdown: str) -> Optional[Path]:
        summary_path = self.env.get("GITHUB_STEP_SUMMARY")
        if summary_path:
            path = Path(summary_path)
        elif self.metrics_dir:
            path = self.metrics_dir / "summary.md"
        else:
            typer.echo(markdown)
            return None

        with open(path, "a", encoding="utf-8") as f:
            f.write(markdown)
        return path

    def info(self, message: str):
        typer.echo(message)

    def warning(self, message: str):
        self.warnings.append(message)
        logger.warning(message)
        if self.env.get("GITHUB_ACTIONS") == "true":
            typer.echo(f"::warning::{message}")


class ArtifactUploadError(Exception):
    pass


class DirectoryArtifactUploader:
    """Publishes an artifact by copying its files under `<root>/<name>/`"""

    def __init__(self, root: Path):
        self.root = Path(root)

    def upload(self, name: str, files: List[Path], root_directory: Path, retention_days: int = 30) -> Path:
        destination = self.root / name
        try:
            destination.mkdir(parents=True, exist_ok=True)
            for file in files:
                relative = Path(file).resolve().relative_to(Path(root_directory).resolve())
                target = destination / relative
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(file, target)
            (destination / "retention.json").write_text(
                json.dumps({"retention_days": retention_days}), encoding="utf-8"
            )
        except (OSError, ValueError) as e:
            raise ArtifactUploadError(f"failed to upload artifact {name}: {e}") from e
        return destination
