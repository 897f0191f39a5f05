"""Supervision of the ssh client subprocess."""

import atexit
import os
import subprocess
import threading
import time
import weakref
from collections.abc import Sequence
from enum import Enum
from typing import IO, Any

from pydantic import BaseModel, ConfigDict, Field

from .command import format_command
from .exceptions import AlreadyRunningError, TunnelEstablishmentError
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_SETTLE_DELAY = 1.0
DEFAULT_DRAIN_TIMEOUT = 2.0


class SupervisorState(str, Enum):
    """Lifecycle state of a supervised process."""

    IDLE = "idle"
    SPAWNING = "spawning"
    RUNNING = "running"
    FAILED = "failed"
    TERMINATING = "terminating"
    TERMINATED = "terminated"


class ProcessStatus(BaseModel):
    """Point-in-time status of the supervised process."""

    model_config = ConfigDict(frozen=True)

    pid: int = Field(description="Process id")
    running: bool = Field(description="Whether the process is alive")
    exit_code: int = Field(
        description="-1 while the process table reports it alive, else its exit code"
    )


_live_supervisors: "weakref.WeakSet[ProcessSupervisor]" = weakref.WeakSet()


class ProcessSupervisor:
    """Owns one subprocess and its pipes from spawn to termination.

    Liveness is resolved from two sources: ``Popen.poll()`` and a signal 0
    probe of the pid. The probe wins when they disagree.
    """

    def __init__(
        self,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT,
    ):
        """Initialize an idle supervisor.

        Args:
            settle_delay: Seconds to wait after spawning before checking
                that the process is still alive
            drain_timeout: Seconds allowed to collect output of a process
                that failed to start
        """
        self.settle_delay = settle_delay
        self.drain_timeout = drain_timeout
        self._process: subprocess.Popen[str] | None = None
        self._state = SupervisorState.IDLE
        self._lock = threading.RLock()

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def pid(self) -> int | None:
        """Get process ID if a handle is held"""
        process = self._process
        return process.pid if process is not None else None

    def is_running(self) -> bool:
        """Check if the supervised process is currently alive"""
        status = self.status()
        return status is not None and status.running

    def spawn(self, argv: Sequence[str]) -> int:
        """Start the process and wait for it to settle.

        Args:
            argv: Command line of the process

        Returns:
            PID of the running process

        Raises:
            AlreadyRunningError: If a process is already running
            TunnelEstablishmentError: If the process cannot be started or
                is not alive after the settle delay
        """
        with self._lock:
            if self._state == SupervisorState.RUNNING and self.is_running():
                raise AlreadyRunningError(
                    f"Tunnel already established (pid {self.pid})"
                )

            if self._process is not None:
                # Previous process died on its own; drop its handle
                self._release(self._process)

            self._state = SupervisorState.SPAWNING
            logger.info("Spawning ssh process", command=format_command(argv))

            try:
                process = subprocess.Popen(
                    list(argv),
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    errors="replace",
                )
            except OSError as e:
                self._state = SupervisorState.FAILED
                logger.error("Failed to start ssh process", error=str(e))
                raise TunnelEstablishmentError(
                    f"Couldn't open SSH tunnel: {e}"
                ) from e

            self._process = process
            _live_supervisors.add(self)

            # No readiness signal exists for a forward; wait once and check
            time.sleep(self.settle_delay)

            status = self.status()
            if status is None or not status.running:
                self._fail(process)

            self._state = SupervisorState.RUNNING
            logger.info("ssh process running", pid=process.pid)
            return process.pid

    def status(self) -> ProcessStatus | None:
        """Resolve the current process status.

        Returns:
            ProcessStatus, or None when no process is held
        """
        with self._lock:
            process = self._process
            if process is None:
                return None

            returncode = process.poll()
            running = returncode is None
            exit_code = -1 if returncode is None else returncode

            if self._probe(process.pid):
                running = True
                exit_code = 0

            return ProcessStatus(pid=process.pid, running=running, exit_code=exit_code)

    def terminate(self) -> None:
        """Close the pipes, then send SIGTERM and SIGKILL back to back.

        Never raises. Does nothing when no process is held.
        """
        with self._lock:
            process = self._process
            if process is None:
                return

            self._state = SupervisorState.TERMINATING
            logger.info("Terminating ssh process", pid=process.pid)

            self._close_pipes(process)

            for send in (process.terminate, process.kill):
                try:
                    send()
                except OSError as e:
                    logger.debug("Signal not delivered", pid=process.pid, error=str(e))

            try:
                process.poll()
            except OSError:
                pass

            self._process = None
            self._state = SupervisorState.TERMINATED
            _live_supervisors.discard(self)

    @staticmethod
    def _probe(pid: int) -> bool:
        """Deliver signal 0 to ``pid``; True when the process exists."""
        try:
            os.kill(pid, 0)
        except OSError:
            return False
        return True

    def _fail(self, process: "subprocess.Popen[str]") -> None:
        """Collect diagnostics of a process that did not stay up and raise."""
        stdout, stderr = self._drain(process)
        exit_code = process.returncode
        self._release(process)
        self._state = SupervisorState.FAILED

        logger.error(
            "ssh process exited during startup",
            pid=process.pid,
            exit_code=exit_code,
            stderr=stderr,
        )

        message = "Couldn't open SSH tunnel"
        if stdout:
            message += f": {stdout}"
        if stderr:
            message += f" Error: {stderr}"

        raise TunnelEstablishmentError(
            message, stdout=stdout, stderr=stderr, exit_code=exit_code
        )

    def _drain(self, process: "subprocess.Popen[str]") -> tuple[str, str]:
        """Read remaining output and reap the process."""
        try:
            stdout, stderr = process.communicate(timeout=self.drain_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("ssh process did not exit, killing", pid=process.pid)
            process.kill()
            try:
                stdout, stderr = process.communicate(timeout=self.drain_timeout)
            except subprocess.TimeoutExpired:
                stdout, stderr = "", ""
        except (OSError, ValueError) as e:
            logger.debug("Could not read ssh output", error=str(e))
            stdout, stderr = "", ""

        return (stdout or "").strip(), (stderr or "").strip()

    def _release(self, process: "subprocess.Popen[str]") -> None:
        """Close pipes, reap if possible and forget the handle."""
        self._close_pipes(process)
        try:
            process.wait(timeout=0)
        except (subprocess.TimeoutExpired, OSError):
            pass
        if self._process is process:
            self._process = None
        _live_supervisors.discard(self)

    @staticmethod
    def _close_pipes(process: "subprocess.Popen[str]") -> None:
        streams: tuple[IO[Any] | None, ...] = (
            process.stdin,
            process.stdout,
            process.stderr,
        )
        for stream in streams:
            if stream is None:
                continue
            try:
                stream.close()
            except (OSError, ValueError):
                pass


def _terminate_live_supervisors() -> None:
    """Terminate processes still held when the interpreter exits."""
    for supervisor in list(_live_supervisors):
        try:
            supervisor.terminate()
        except Exception as e:
            logger.error("Failed to terminate ssh process at exit", error=str(e))


atexit.register(_terminate_live_supervisors)
