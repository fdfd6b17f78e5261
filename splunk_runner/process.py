"""
Process supervision for the forwarder's long-running units.

Each Supervisor owns one child at a time: it runs it until it exits, then
restarts it after a fixed delay, until the shutdown coordinator is cancelled.
"""

import logging
import os
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .config import Config
from .shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)

Spawn = Callable[[], subprocess.Popen]


class ProcessState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    EXITED = "exited"
    KILLED = "killed"


@dataclass
class ProcessStatus:
    """Point-in-time view of a supervised process."""

    state: ProcessState = ProcessState.NOT_STARTED
    pid: Optional[int] = None
    returncode: Optional[int] = None
    started_at: Optional[datetime] = None
    restart_count: int = 0

    @property
    def terminal_exit(self) -> bool:
        """True when the last child exited on its own rather than by a signal."""
        return self.state is ProcessState.EXITED

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "pid": self.pid,
            "returncode": self.returncode,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "restart_count": self.restart_count,
        }


class SupervisedProcess:
    """Lock-protected status of one supervised unit.

    Written only by its Supervisor, read from request handlers.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._status = ProcessStatus()
        self._handle: Optional[subprocess.Popen] = None

    def status(self) -> ProcessStatus:
        with self._lock:
            return replace(self._status)

    def handle(self) -> Optional[subprocess.Popen]:
        with self._lock:
            return self._handle

    def _started(self, handle: subprocess.Popen):
        with self._lock:
            restarts = self._status.restart_count
            if self._status.state is not ProcessState.NOT_STARTED:
                restarts += 1
            self._handle = handle
            self._status = ProcessStatus(
                state=ProcessState.RUNNING,
                pid=handle.pid,
                started_at=datetime.now(),
                restart_count=restarts,
            )

    def _exited(self, returncode: Optional[int]):
        with self._lock:
            self._handle = None
            state = ProcessState.KILLED if returncode is not None and returncode < 0 else ProcessState.EXITED
            self._status = replace(self._status, state=state, returncode=returncode)

    def _spawn_failed(self):
        with self._lock:
            restarts = self._status.restart_count
            if self._status.state is not ProcessState.NOT_STARTED:
                restarts += 1
            self._handle = None
            self._status = ProcessStatus(
                state=ProcessState.EXITED,
                restart_count=restarts,
            )


class Supervisor:
    """Run-until-exit, restart-unless-cancelled loop for one unit."""

    def __init__(
        self,
        name: str,
        shutdown: ShutdownCoordinator,
        restart_delay: float = 5,
        stop_timeout: float = 10,
        poll_interval: float = 0.5,
    ):
        self.name = name
        self.process = SupervisedProcess(name)
        self._shutdown = shutdown
        self.restart_delay = restart_delay
        self.stop_timeout = stop_timeout
        self.poll_interval = poll_interval

    def status(self) -> ProcessStatus:
        return self.process.status()

    def run(self, spawn: Spawn) -> bool:
        """Supervise children produced by spawn until shutdown.

        spawn is never called once shutdown has been requested. Returns True
        once the loop ends because of the shutdown coordinator.
        """
        while not self._shutdown.cancelled():
            try:
                handle = self._shutdown.call_unless_cancelled(spawn)
            except Exception as e:
                logger.error(f"Failed to start {self.name}: {e}")
                self.process._spawn_failed()
            else:
                if handle is None:
                    break
                self.process._started(handle)
                logger.info(f"Started {self.name} with PID {handle.pid}")
                if self._wait(handle):
                    self._terminate(handle)
                    break
                self.process._exited(handle.returncode)

            if self._shutdown.cancelled():
                break
            logger.warning(f"{self.name} exited, restarting in {self.restart_delay} seconds")
            if self._shutdown.wait(self.restart_delay):
                break
        logger.info(f"Supervisor for {self.name} stopped")
        return True

    def _wait(self, handle: subprocess.Popen) -> bool:
        """Block until the child exits or shutdown is requested.

        Returns True if shutdown was requested while the child was running.
        """
        while handle.poll() is None:
            if self._shutdown.wait(self.poll_interval):
                return handle.poll() is None
        logger.info(f"{self.name} (PID {handle.pid}) exited with code {handle.returncode}")
        return False

    def _terminate(self, handle: subprocess.Popen):
        """Stop the child's process group, SIGTERM first then SIGKILL."""
        logger.info(f"Stopping {self.name} (PID {handle.pid})")
        _signal_group(handle, signal.SIGTERM)
        try:
            handle.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"{self.name} did not stop gracefully, forcing kill")
            _signal_group(handle, signal.SIGKILL)
            handle.wait(timeout=5)
        self.process._exited(handle.returncode)
        logger.info(f"Stopped {self.name} with code {handle.returncode}")


def _signal_group(handle: subprocess.Popen, signum: int):
    """Signal the child's process group, or only the child if it shares ours."""
    try:
        pgid = os.getpgid(handle.pid)
        if pgid == os.getpgrp():
            handle.send_signal(signum)
        else:
            os.killpg(pgid, signum)
    except ProcessLookupError:
        pass


def command_spawner(argv: list[str]) -> Spawn:
    """Build a spawn function running argv in its own session.

    Output of the child goes to the runner's stderr.
    """

    def spawn() -> subprocess.Popen:
        return subprocess.Popen(
            argv,
            stdout=sys.stderr,
            stderr=sys.stderr,
            start_new_session=True,  # Create new process group
        )

    return spawn


def splunkd_command(cfg: Config, extra_args: list[str] = ()) -> list[str]:
    """Command line for splunkd in the foreground."""
    return [str(cfg.splunk_bin), "start", "--answer-yes", "--nodaemon", *extra_args]


def tail_command(cfg: Config) -> list[str]:
    """Command line following splunkd.log."""
    return [cfg.tail_path, "-F", str(cfg.splunkd_log)]
