import platform
import subprocess
import sys
from dataclasses import dataclass
from typing import Dict, Any

import psutil

MIB = 1024 * 1024

_ARCH_NAMES = {
    "x86_64": "x64",
    "amd64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
}


@dataclass
class SystemInfo:
    cpu_cores: int
    cpu_model: str
    total_memory_mb: int
    platform: str
    arch: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cpu_cores": self.cpu_cores,
            "cpu_model": self.cpu_model,
            "total_memory_mb": self.total_memory_mb,
            "platform": self.platform,
            "arch": self.arch,
        }


def _cpu_model() -> str:
    """Best-effort CPU model string (platform.processor() is empty on most Linux hosts)"""
    try:
        if sys.platform.startswith("linux"):
            with open("/proc/cpuinfo", encoding="utf-8") as f:
                for line in f:
                    if line.lower().startswith(("model name", "hardware", "cpu model")):
                        return line.split(":", 1)[1].strip()
        elif sys.platform == "darwin":
            return subprocess.run(
                ["sysctl", "-n", "machdep.cpu.brand_string"],
                capture_output=True, text=True, timeout=5, check=True,
            ).stdout.strip()
    except (OSError, subprocess.SubprocessError, IndexError):
        pass
    return platform.processor().strip() or "Unknown"


def get_system_info() -> SystemInfo:
    machine = platform.machine().lower()
    return SystemInfo(
        cpu_cores=psutil.cpu_count(logical=True) or 1,
        cpu_model=_cpu_model() or "Unknown",
        total_memory_mb=round(psutil.virtual_memory().total / MIB),
        platform=sys.platform,
        arch=_ARCH_NAMES.get(machine, machine or "unknown"),
    )
