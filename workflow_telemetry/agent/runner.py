import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from workflow_telemetry.agent.handoff import HandoffRecord, load_handoff, save_handoff
from workflow_telemetry.agent.lifecycle import SamplerLifecycle
from workflow_telemetry.agent.sample_log import Sample, SampleLog, utc_timestamp
from workflow_telemetry.metrics.summary import MetricsSummary, summarize
from workflow_telemetry.metrics.system_info import SystemInfo, get_system_info
from workflow_telemetry.orchestrator.config import TelemetryConfig
from workflow_telemetry.orchestrator.job_io import ArtifactUploadError, DirectoryArtifactUploader, JobSurface
from workflow_telemetry.orchestrator.result_save import ResultStore
from workflow_telemetry.orchestrator.results_visual import ReportBuilder

logger = logging.getLogger(__name__)

OUTPUT_NAMES = ("peak_cpu", "peak_memory", "avg_cpu", "avg_memory")


class TelemetryError(Exception):
    """The metrics directory cannot be used; the phase fails"""


@dataclass
class TelemetryReport:
    summary: MetricsSummary
    system: SystemInfo
    json_path: Path
    csv_path: Path
    summary_path: Optional[Path] = None
    artifact_path: Optional[Path] = None


class TelemetryRunner:
    """Start and stop phases around a detached sampler"""

    def __init__(self, config: TelemetryConfig, surface: Optional[JobSurface] = None,
                 lifecycle: Optional[SamplerLifecycle] = None, uploader=None):
        self.config = config
        self.surface = surface or JobSurface(config.metrics_dir)
        self.lifecycle = lifecycle or SamplerLifecycle()
        if uploader is None and config.artifact_dir is not None:
            uploader = DirectoryArtifactUploader(config.artifact_dir)
        self.uploader = uploader

    def start(self) -> HandoffRecord:
        metrics_dir = self.config.metrics_dir
        self.surface.info(f"Starting telemetry monitoring (interval: {self.config.sampling_interval}s)")
        self.surface.info(f"Metrics directory: {metrics_dir}")

        self._stop_previous(metrics_dir)

        pid = None
        try:
            metrics_dir.mkdir(parents=True, exist_ok=True)
            SampleLog(metrics_dir).clear()
            pid = self.lifecycle.launch(self.config.sampling_interval, metrics_dir)
            record = HandoffRecord(samples_location=metrics_dir, sampler_identity=pid,
                                   start_time=utc_timestamp())
            save_handoff(record, self.surface)
        except OSError as e:
            if pid is not None:
                self.lifecycle.terminate(pid)
            raise TelemetryError(f"Failed to start telemetry monitoring: {e}") from e

        self.surface.info(f"Monitor started with PID: {pid}")
        self.surface.info("Telemetry monitoring active - metrics will be collected during workflow execution")
        return record

    def _stop_previous(self, metrics_dir: Path):
        """One sampler per metrics directory: retire whatever an earlier start left running"""
        previous = load_handoff(metrics_dir, self.surface)
        if previous is None or not self.lifecycle.is_running(previous.sampler_identity):
            return
        logger.info(f"Stopping sampler {previous.sampler_identity} left by an earlier start")
        self.lifecycle.terminate(previous.sampler_identity)
        self.lifecycle.drain(self.config.drain_window_s)

    def stop(self) -> Optional[TelemetryReport]:
        record = load_handoff(self.config.metrics_dir, self.surface)
        if record is None:
            self.surface.warning("No telemetry state found - monitoring may not have started correctly")
            return None

        self.surface.info("Stopping telemetry monitoring...")
        self.lifecycle.terminate(record.sampler_identity)
        self.lifecycle.drain(self.config.drain_window_s)

        return self.report(record.samples_location)

    def status(self) -> Dict[str, Any]:
        record = load_handoff(self.config.metrics_dir, self.surface)
        if record is None:
            return {"started": False}
        return {
            "started": True,
            "metrics_dir": str(record.samples_location),
            "pid": record.sampler_identity,
            "start_time": record.start_time,
            "running": self.lifecycle.is_running(record.sampler_identity),
            "samples": len(SampleLog(record.samples_location).read_all()),
        }

    def report(self, metrics_dir: Path) -> Optional[TelemetryReport]:
        """Aggregate whatever the sample log holds; no samples is only a warning"""
        metrics_dir = Path(metrics_dir)
        try:
            samples = SampleLog(metrics_dir).read_all()
        except OSError as e:
            raise TelemetryError(f"Failed to read samples from {metrics_dir}: {e}") from e

        if not samples:
            self.surface.warning("No metric samples collected")
            self.set_empty_outputs()
            return None

        self.surface.info(f"Collected {len(samples)} metric samples")
        summary = summarize(samples)
        system = get_system_info()

        store = ResultStore(metrics_dir, self.config.file_prefix)
        try:
            json_path, csv_path = store.write_all(summary, system, samples)
        except OSError as e:
            raise TelemetryError(f"Failed to write metrics files to {metrics_dir}: {e}") from e

        self.surface.set_output("peak_cpu", str(summary.peak_cpu_percent))
        self.surface.set_output("peak_memory", str(summary.peak_memory_percent))
        self.surface.set_output("avg_cpu", str(summary.avg_cpu_percent))
        self.surface.set_output("avg_memory", str(summary.avg_memory_percent))
        self.surface.set_output("metrics_file", str(json_path))

        builder = ReportBuilder(max_points=self.config.max_chart_points)
        result = TelemetryReport(summary=summary, system=system, json_path=json_path, csv_path=csv_path)
        if self.config.output_format in ("summary", "both"):
            result.summary_path = self.surface.append_summary(builder.build_report(summary, samples, system))

        if self.config.artifact_name:
            result.artifact_path = self._upload([json_path, csv_path], metrics_dir, samples)

        self.surface.info(builder.console_summary(summary))
        return result

    def _upload(self, files: List[Path], metrics_dir: Path, samples: List[Sample]) -> Optional[Path]:
        name = self.config.artifact_name
        if self.uploader is None:
            self.surface.warning(f"No artifact destination configured; skipping upload of {name}")
            return None
        try:
            destination = self.uploader.upload(name, files, metrics_dir, self.config.retention_days)
        except (ArtifactUploadError, OSError) as e:
            self.surface.warning(f"Failed to upload artifact: {e}")
            return None

        self.surface.info(f"Uploaded metrics artifact: {name}")
        self.surface.info(f"  - {files[0].name} (summary + system info)")
        self.surface.info(f"  - {files[1].name} ({len(samples)} samples)")
        return destination

    def set_empty_outputs(self):
        for name in OUTPUT_NAMES:
            self.surface.set_output(name, "0")
        self.surface.set_output("metrics_file", "")
