import logging
import re
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import Optional

import psutil

from workflow_telemetry.metrics.util import round1

logger = logging.getLogger(__name__)

PROC_STAT = "/proc/stat"
FIRST_READ_DELAY_S = 0.1
UTILITY_TIMEOUT_S = 5

_TOP_USER = re.compile(r"(\d+\.?\d*)%\s*user")
_TOP_SYS = re.compile(r"(\d+\.?\d*)%\s*sys")
_WMIC_LOAD = re.compile(r"LoadPercentage=(\d+)")


class CpuProbeError(Exception):
    """Raised when a platform strategy cannot produce a reading"""


@dataclass(frozen=True)
class CpuCounterSnapshot:
    """Cumulative CPU ticks since boot, from the aggregate `cpu ` line"""
    idle_ticks: int
    total_ticks: int


def parse_proc_stat(text: str) -> CpuCounterSnapshot:
    for line in text.splitlines():
        if line.startswith("cpu "):
            fields = [int(part) for part in line.split()[1:]]
            if len(fields) < 4:
                break
            iowait = fields[4] if len(fields) > 4 else 0
            return CpuCounterSnapshot(idle_ticks=fields[3] + iowait, total_ticks=sum(fields))
    raise CpuProbeError("no aggregate cpu line in /proc/stat")


def cpu_percent_between(before: CpuCounterSnapshot, after: CpuCounterSnapshot) -> Optional[float]:
    """Busy percentage between two snapshots, or None when no ticks elapsed"""
    total_delta = after.total_ticks - before.total_ticks
    idle_delta = after.idle_ticks - before.idle_ticks
    if total_delta <= 0:
        return None
    busy = (total_delta - idle_delta) / total_delta * 100
    return round1(min(max(busy, 0.0), 100.0))


def parse_top_output(text: str) -> float:
    """Sum user and sys from macOS `top -l 1` output"""
    usage_line = next((line for line in text.splitlines() if "CPU usage" in line), text)
    user = _TOP_USER.search(usage_line)
    system = _TOP_SYS.search(usage_line)
    if not user:
        raise CpuProbeError("no user percentage in top output")
    return round1(float(user.group(1)) + (float(system.group(1)) if system else 0.0))


def parse_wmic_output(text: str) -> float:
    match = _WMIC_LOAD.search(text)
    if not match:
        raise CpuProbeError("no LoadPercentage in wmic output")
    return round1(float(match.group(1)))


def load_average_percent() -> float:
    """
    Degraded-accuracy estimate: 1-minute load average over logical cores.

    Load average counts runnable (and on Linux, uninterruptible) tasks, not
    busy time, so this is only an approximation of utilization.
    """
    load_1m = psutil.getloadavg()[0]
    cores = psutil.cpu_count(logical=True) or 1
    return round1(load_1m / cores * 100)


class PlatformCpuProbe:
    """Aggregate CPU busy percentage using the best strategy for the host OS"""

    def __init__(self, platform: Optional[str] = None, proc_stat_path: str = PROC_STAT):
        self.platform = platform or sys.platform
        self.proc_stat_path = proc_stat_path
        self.core_count = psutil.cpu_count(logical=True) or 1
        self.previous: Optional[CpuCounterSnapshot] = None
        self.last_value = 0.0

    def measure(self) -> float:
        try:
            if self.platform.startswith("linux"):
                value = self._measure_linux()
            elif self.platform == "darwin":
                value = parse_top_output(self._run(["top", "-l", "1", "-n", "0"]))
            elif self.platform == "win32":
                value = parse_wmic_output(self._run(["wmic", "cpu", "get", "loadpercentage", "/value"]))
            else:
                raise CpuProbeError(f"no CPU strategy for platform {self.platform}")
        except (OSError, ValueError, subprocess.SubprocessError, CpuProbeError) as e:
            logger.debug(f"CPU probe falling back to load average: {e}")
            value = load_average_percent()

        value = min(max(value, 0.0), 100.0 * self.core_count)
        self.last_value = value
        return value

    def _measure_linux(self) -> float:
        if self.previous is None:
            self.previous = self._read_snapshot()
            time.sleep(FIRST_READ_DELAY_S)

        current = self._read_snapshot()
        value = cpu_percent_between(self.previous, current)
        self.previous = current
        return self.last_value if value is None else value

    def _read_snapshot(self) -> CpuCounterSnapshot:
        with open(self.proc_stat_path, encoding="utf-8") as f:
            return parse_proc_stat(f.read())

    def _run(self, command) -> str:
        return subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=UTILITY_TIMEOUT_S,
            check=True,
        ).stdout
