"""
Sampling loop run inside the detached sampler process.

Usage (normally spawned by SamplerLifecycle.launch):
    python -m workflow_telemetry.agent.sampler --interval 1 --dir /tmp/telemetry-metrics
"""
import logging
import signal
import threading
from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from workflow_telemetry.agent.log_config import setup_sampler_logger
from workflow_telemetry.agent.probes.cpu_probe import PlatformCpuProbe
from workflow_telemetry.agent.probes.memory_probe import (
    MemoryProbe, MemoryProbeError, MemoryReading, installed_memory_mb,
)
from workflow_telemetry.agent.sample_log import Sample, SampleLog, utc_timestamp

logger = logging.getLogger(__name__)

SAMPLER_LOG_NAME = "sampler.log"
MIN_INTERVAL_S = 1


class SamplerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Sampler:
    """Single-threaded wait-measure-append loop over one SampleLog"""

    def __init__(self, sample_log: SampleLog, interval: float = MIN_INTERVAL_S,
                 cpu_probe: Optional[PlatformCpuProbe] = None,
                 memory_probe: Optional[MemoryProbe] = None):
        if interval < MIN_INTERVAL_S:
            raise ValueError(f"sampling interval must be at least {MIN_INTERVAL_S}s, got {interval}")

        self._interval = interval
        self.sample_log = sample_log
        self.cpu_probe = cpu_probe or PlatformCpuProbe()
        self.memory_probe = memory_probe or MemoryProbe()
        # reported on ticks where the memory counters fail
        self.last_total_mb = installed_memory_mb() or 0
        self.state = SamplerState.IDLE
        self.ticks = 0
        self.failures = 0
        self._stop_event = threading.Event()

    @property
    def interval(self) -> float:
        return self._interval

    def run(self):
        """Sample immediately, then once per interval until stop() is called"""
        if self.state != SamplerState.IDLE:
            raise RuntimeError(f"sampler already {self.state.value}")

        self.state = SamplerState.RUNNING
        logger.info(f"Sampler running: interval={self._interval}s, log={self.sample_log.path}")
        try:
            self.tick()
            while not self._stop_event.wait(self._interval):
                self.tick()
        finally:
            self.state = SamplerState.STOPPED
            logger.info(f"Sampler stopped after {self.ticks} ticks ({self.failures} failed)")

    def stop(self):
        if self.state == SamplerState.RUNNING:
            self.state = SamplerState.STOPPING
        self._stop_event.set()

    def tick(self) -> Optional[Sample]:
        """Take and append one sample; failures are logged and swallowed"""
        self.ticks += 1
        try:
            sample = self.collect_sample()
            self.sample_log.append(sample)
            return sample
        except Exception as e:
            self.failures += 1
            logger.error(f"Error collecting sample: {e}")
            return None

    def collect_sample(self) -> Sample:
        cpu = self.cpu_probe.measure()
        try:
            memory = self.memory_probe.measure()
            self.last_total_mb = memory.total_mb
        except MemoryProbeError as e:
            logger.warning(f"Recording zero memory usage for this tick: {e}")
            memory = MemoryReading(used_mb=0, total_mb=self.last_total_mb, percent=0.0)

        return Sample(
            timestamp=utc_timestamp(),
            cpu_percent=cpu,
            memory_used_mb=memory.used_mb,
            memory_total_mb=memory.total_mb,
            memory_percent=memory.percent,
        )


def install_signal_handlers(sampler: Sampler):
    """Stop on SIGTERM/SIGINT without waiting for an in-flight tick"""
    def _handle(signum, frame):
        logger.info(f"Received signal {signum}, stopping")
        sampler.stop()
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, _handle)
    signal.signal(signal.SIGINT, _handle)


def main(
    interval: float = typer.Option(MIN_INTERVAL_S, "--interval", help="Sampling interval in seconds"),
    metrics_dir: Path = typer.Option(..., "--dir", help="Metrics directory holding the sample log"),
):
    """Detached CPU/memory sampler"""
    metrics_dir.mkdir(parents=True, exist_ok=True)
    setup_sampler_logger(metrics_dir / SAMPLER_LOG_NAME)

    try:
        sampler = Sampler(SampleLog(metrics_dir), interval=interval)
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(code=2)

    install_signal_handlers(sampler)
    try:
        sampler.run()
    except SystemExit:
        pass


if __name__ == "__main__":
    typer.run(main)
