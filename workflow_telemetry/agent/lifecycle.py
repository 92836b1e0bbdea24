"""
Launch and stop the detached sampler process.

The sampler must outlive the process that starts it (CI runs the start and
stop phases as separate processes), so it is a separate OS process in its own
session rather than a thread. It is identified afterwards only by its pid.
"""
import logging
import os
import subprocess
import sys
import time
from pathlib import Path
from typing import List

import psutil

logger = logging.getLogger(__name__)

SAMPLER_MODULE = "workflow_telemetry.agent.sampler"
DRAIN_WINDOW_S = 1.0
PACKAGE_ROOT = Path(__file__).resolve().parents[2]


class SamplerLifecycle:
    def __init__(self, python: str = sys.executable):
        self.python = python

    def command(self, interval: float, target_directory: Path) -> List[str]:
        return [self.python, "-m", SAMPLER_MODULE,
                "--interval", str(interval), "--dir", str(target_directory)]

    def launch(self, interval: float, target_directory: Path) -> int:
        """Start the sampler detached from the caller and return its pid"""
        target_directory = Path(target_directory)
        target_directory.mkdir(parents=True, exist_ok=True)

        env = os.environ.copy()
        env["PYTHONPATH"] = os.pathsep.join(
            p for p in [str(PACKAGE_ROOT), env.get("PYTHONPATH", "")] if p
        )

        kwargs = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        process = subprocess.Popen(
            self.command(interval, target_directory),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            close_fds=True,
            env=env,
            **kwargs,
        )
        logger.info(f"Sampler started with PID: {process.pid}")
        return process.pid

    def _sampler_process(self, identity: int):
        """The live sampler process for this pid, or None if there isn't one"""
        if not identity or identity <= 0:
            return None
        try:
            process = psutil.Process(identity)
            if process.status() == psutil.STATUS_ZOMBIE:
                return None
            cmdline = process.cmdline()
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            return None
        except psutil.AccessDenied:
            logger.debug(f"Cannot inspect PID {identity}")
            return None

        # pid reuse: never signal a process that is not our sampler
        if SAMPLER_MODULE not in cmdline:
            logger.debug(f"PID {identity} is not a sampler: {cmdline}")
            return None
        return process

    def is_running(self, identity: int) -> bool:
        return self._sampler_process(identity) is not None

    def terminate(self, identity: int) -> bool:
        """
        Ask the sampler to stop.

        Returns True if a stop request was delivered, False if the pid does not
        refer to a live sampler (already stopped counts as success).
        """
        process = self._sampler_process(identity)
        if process is None:
            logger.debug("Sampler process already stopped")
            return False

        try:
            process.terminate()
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            logger.debug("Sampler process exited before the stop request")
            return False
        except psutil.AccessDenied as e:
            logger.warning(f"Not allowed to stop sampler PID {identity}: {e}")
            return False

        logger.info(f"Stopped sampler process (PID: {identity})")
        return True

    def drain(self, window: float = DRAIN_WINDOW_S):
        """Give an in-flight append time to land before the log is read"""
        if window > 0:
            time.sleep(window)
