import psutil
from dataclasses import dataclass
from typing import Optional

from workflow_telemetry.metrics.util import round1

MIB = 1024 * 1024


class MemoryProbeError(Exception):
    """OS memory counters could not be read"""


@dataclass(frozen=True)
class MemoryReading:
    used_mb: int
    total_mb: int
    percent: float


class MemoryProbe:
    """System-wide memory utilization from total/free counters"""

    def measure(self) -> MemoryReading:
        try:
            vm = psutil.virtual_memory()
        except (OSError, RuntimeError) as e:
            raise MemoryProbeError(f"memory counters unavailable: {e}") from e

        total_mb = round(vm.total / MIB)
        free_mb = round(vm.available / MIB)
        if total_mb <= 0:
            raise MemoryProbeError("memory total reported as zero")

        used_mb = max(total_mb - free_mb, 0)
        return MemoryReading(
            used_mb=used_mb,
            total_mb=total_mb,
            percent=round1(used_mb / total_mb * 100),
        )


def installed_memory_mb() -> Optional[int]:
    """Physical memory size, or None when the counters cannot be read"""
    try:
        total_mb = round(psutil.virtual_memory().total / MIB)
    except (OSError, RuntimeError):
        return None
    return total_mb if total_mb > 0 else None
