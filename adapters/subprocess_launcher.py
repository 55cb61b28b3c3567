"""Adapter: SubprocessLauncher implements WorkerLauncherPort.

Starts ``<vm> <vm arguments> -m kernel.worker ...`` for one scenario with
stderr merged into stdout, so reading the one pipe to EOF drains both
streams and the worker can never stall on a full buffer.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading
from typing import TYPE_CHECKING

from domain.errors import WorkerLaunchError
from modules.worker.core import build_worker_args

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from pathlib import Path

    from domain.models import Instrument, RunOptions, Scenario, Vm

logger = logging.getLogger("microbench.adapters")

WORKER_MODULE = "kernel.worker"


def vm_argument_words(vm_arguments: dict[str, str]) -> list[str]:
    """Split VM argument values into command-line words, in declaration order.

    An empty value means "no flag", so ``-Jopt=,-O`` compares the default
    interpreter against ``-O``.
    """
    words: list[str] = []
    for value in vm_arguments.values():
        words.extend(shlex.split(value))
    return words


class SubprocessWorker:
    """A running worker process. Concrete WorkerProcessPort."""

    def __init__(self, process: subprocess.Popen[str], timeout: float | None = None) -> None:
        self._process = process
        self._timed_out = threading.Event()
        self._watchdog: threading.Timer | None = None
        if timeout is not None:
            self._watchdog = threading.Timer(timeout, self._kill)
            self._watchdog.daemon = True
            self._watchdog.start()
        self._timeout = timeout

    def _kill(self) -> None:
        if self._process.poll() is None:
            logger.warning("Worker pid=%s exceeded %ss, killing", self._process.pid, self._timeout)
            self._timed_out.set()
            self._process.kill()

    def lines(self) -> Iterator[str]:
        assert self._process.stdout is not None
        with self._process.stdout:
            for line in self._process.stdout:
                yield line.rstrip("\r\n")

    def wait(self) -> int:
        try:
            code = self._process.wait()
        finally:
            if self._watchdog is not None:
                self._watchdog.cancel()
        if self._timed_out.is_set():
            msg = f"Worker timed out after {self._timeout}s and was killed"
            raise WorkerLaunchError(msg)
        return code


class SubprocessLauncher:
    """Concrete implementation of WorkerLauncherPort using subprocess."""

    def __init__(
        self,
        vms: Sequence[Vm],
        project_root: Path,
        cwd: Path,
        timeout: float | None = None,
    ) -> None:
        """Initialise with the VMs scenarios refer to.

        Args:
            vms: Every VM a scenario's ``vm_local_name`` can name.
            project_root: Directory holding the ``kernel`` package.
            cwd: Working directory for workers; also where benchmark modules
                are imported from.
            timeout: Seconds after which a worker is killed, or None.
        """
        self._vms = {vm.local_name: vm for vm in vms}
        self._project_root = project_root
        self._cwd = cwd
        self._timeout = timeout

    def command(
        self,
        scenario: Scenario,
        instrument: Instrument,
        options: RunOptions,
        marker: str,
    ) -> list[str]:
        """The full worker command line for one trial."""
        vm = self._vms.get(scenario.vm_local_name)
        if vm is None:
            msg = f"Unknown VM '{scenario.vm_local_name}' for {scenario.local_name}"
            raise WorkerLaunchError(msg)
        return [
            vm.executable,
            *vm_argument_words(scenario.vm_arguments),
            "-m",
            WORKER_MODULE,
            *build_worker_args(scenario, instrument, options, marker),
        ]

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        paths = [str(self._cwd), str(self._project_root)]
        if env.get("PYTHONPATH"):
            paths.append(env["PYTHONPATH"])
        env["PYTHONPATH"] = os.pathsep.join(paths)
        env["PYTHONUNBUFFERED"] = "1"
        return env

    def launch(
        self,
        scenario: Scenario,
        instrument: Instrument,
        options: RunOptions,
        marker: str,
    ) -> SubprocessWorker:
        cmd = self.command(scenario, instrument, options, marker)
        logger.debug("Spawning worker: %s", shlex.join(cmd))
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                cwd=self._cwd,
                env=self._environment(),
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            msg = f"Cannot start worker with {cmd[0]}: {exc}"
            raise WorkerLaunchError(msg) from exc
        logger.debug("Worker spawned, pid=%s", process.pid)
        return SubprocessWorker(process, timeout=self._timeout)
