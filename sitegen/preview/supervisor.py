"""Dependency installation and supervision of the single live preview process.

The supervisor is an explicit state machine::

    IDLE -> INSTALLING -> STARTING -> RUNNING -> STOPPING -> IDLE
                 |
                 +-> FAILED   (non-zero exit or timeout; terminal for the request)

Only port-listen confirmation and exit codes drive transitions. Output of the
child processes is forwarded to the ``sitegen.preview.process`` logger and
never inspected.
"""

from __future__ import annotations

import asyncio
import os
import signal
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Deque, List, Optional, Sequence

from ..errors import InstallError
from ..logging import get_logger
from .ports import is_port_bound, wait_for_port


class PreviewState(str, Enum):
    IDLE = "idle"
    INSTALLING = "installing"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"


_ALLOWED = {
    PreviewState.IDLE: {PreviewState.INSTALLING, PreviewState.STARTING, PreviewState.STOPPING},
    PreviewState.INSTALLING: {PreviewState.STARTING, PreviewState.FAILED, PreviewState.IDLE},
    PreviewState.STARTING: {PreviewState.RUNNING, PreviewState.IDLE, PreviewState.STOPPING},
    PreviewState.RUNNING: {PreviewState.STOPPING, PreviewState.IDLE},
    PreviewState.STOPPING: {PreviewState.IDLE},
    PreviewState.FAILED: {PreviewState.INSTALLING, PreviewState.STOPPING, PreviewState.IDLE},
}


@dataclass(frozen=True)
class Transition:
    """One observed state change."""

    source: PreviewState
    target: PreviewState
    reason: str


_OVERLONG_CHUNK = 65536

PortProbe = Callable[[int, str], bool]
ReadyWaiter = Callable[[str, int, float], Awaitable[bool]]


class PreviewSupervisor:
    """Installs workspace dependencies and owns at most one preview process."""

    def __init__(
        self,
        workspace: Path,
        *,
        host: str = "0.0.0.0",
        port: int = 5173,
        public_host: str = "localhost",
        install_command: Sequence[str] = ("npm", "install", "--no-audit", "--no-fund"),
        dev_command: Sequence[str] = ("npx", "vite", "--host", "{host}", "--port", "{port}", "--strictPort"),
        install_timeout: float = 120.0,
        start_timeout: float = 2.0,
        stop_grace_period: float = 5.0,
        port_probe: PortProbe | None = None,
        ready_waiter: ReadyWaiter | None = None,
    ) -> None:
        self.workspace = Path(workspace)
        self.host = host
        self.port = port
        self.public_host = public_host
        self.install_command = list(install_command)
        self.dev_command = list(dev_command)
        self.install_timeout = install_timeout
        self.start_timeout = start_timeout
        self.stop_grace_period = stop_grace_period
        self._port_probe = port_probe or (lambda port, host: is_port_bound(port, host))
        self._ready_waiter = ready_waiter or wait_for_port
        self.logger = get_logger("preview")
        self.process_logger = get_logger("preview.process")

        self._state = PreviewState.IDLE
        self.history: List[Transition] = []
        self.process: Optional[asyncio.subprocess.Process] = None
        self.adopted = False
        self.ready = False
        self._watchers: List[asyncio.Task[None]] = []
        self._lock = asyncio.Lock()
        self._transition_listeners: List[Callable[[Transition], None]] = []
        self._ready_listeners: List[Callable[[], None]] = []
        self._exit_listeners: List[Callable[[Optional[int]], None]] = []

    # ------------------------------------------------------------------
    # Observability

    @property
    def state(self) -> PreviewState:
        return self._state

    @property
    def url(self) -> str:
        return f"http://{self.public_host}:{self.port}"

    def on_transition(self, callback: Callable[[Transition], None]) -> None:
        self._transition_listeners.append(callback)

    def on_ready(self, callback: Callable[[], None]) -> None:
        self._ready_listeners.append(callback)

    def on_exit(self, callback: Callable[[Optional[int]], None]) -> None:
        self._exit_listeners.append(callback)

    def snapshot(self) -> dict[str, object]:
        return {
            "state": self._state.value,
            "port": self.port,
            "pid": self.process.pid if self.process is not None else None,
            "adopted": self.adopted,
            "ready": self.ready,
        }

    # ------------------------------------------------------------------
    # Public operations

    async def prepare(self) -> str:
        """Install dependencies, then start (or reuse) the preview server."""
        async with self._lock:
            await self._install_locked()
            await self._start_locked()
        return self.url

    async def install(self) -> None:
        async with self._lock:
            await self._install_locked()

    async def start(self) -> bool:
        """Start the preview server; returns whether it was seen listening."""
        async with self._lock:
            return await self._start_locked()

    async def stop(self) -> None:
        async with self._lock:
            await self._stop_locked("stop requested")

    # ------------------------------------------------------------------
    # State machine

    def _transition(self, target: PreviewState, reason: str) -> None:
        source = self._state
        if target == source:
            return
        if target not in _ALLOWED[source]:
            raise RuntimeError(f"Invalid preview transition {source.value} -> {target.value}")
        self._state = target
        transition = Transition(source=source, target=target, reason=reason)
        self.history.append(transition)
        self.logger.debug("Preview %s -> %s (%s)", source.value, target.value, reason)
        for listener in list(self._transition_listeners):
            listener(transition)

    async def _install_locked(self) -> None:
        if self._state in (PreviewState.RUNNING, PreviewState.STARTING):
            await self._stop_locked("new generation")
        self._transition(PreviewState.INSTALLING, "install requested")
        command = list(self.install_command)
        self.logger.info("Installing dependencies: %s", " ".join(command))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(self.workspace),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as exc:
            self._transition(PreviewState.FAILED, "install could not start")
            raise InstallError(f"Unable to run `{' '.join(command)}`: {exc}") from exc

        tail: Deque[str] = deque(maxlen=20)
        drain = asyncio.create_task(self._forward_output(process.stdout, "install", tail))
        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=self.install_timeout)
        except asyncio.TimeoutError:
            self._signal_group(process, signal.SIGKILL)
            await process.wait()
            await self._finish_drain(drain)
            self._transition(PreviewState.FAILED, "install timed out")
            raise InstallError(
                f"`{' '.join(command)}` timed out after {self.install_timeout:g}s"
            )
        await self._finish_drain(drain)

        if returncode != 0:
            self._transition(PreviewState.FAILED, f"install exited {returncode}")
            output = "\n".join(tail)
            message = f"`{' '.join(command)}` failed with exit code {returncode}"
            if output:
                message = f"{message}: {output}"
            raise InstallError(message, returncode=returncode)
        self.logger.info("Install succeeded")

    async def _start_locked(self) -> bool:
        if self._state == PreviewState.FAILED:
            raise RuntimeError("Cannot start preview after a failed install")
        if self._owns_live_process() or self._state == PreviewState.RUNNING:
            await self._stop_locked("restart")

        self._transition(PreviewState.STARTING, "start requested")
        self.ready = False
        self.adopted = False

        if await asyncio.to_thread(self._port_probe, self.port, self.host):
            # Something this supervisor does not own already serves the port.
            self.logger.info("Port %d already in use; reusing the existing server", self.port)
            self.adopted = True
            self.ready = True
            self._transition(PreviewState.RUNNING, "port already served")
            self._notify_ready()
            return True

        command = [part.format(host=self.host, port=self.port) for part in self.dev_command]
        self.logger.info("Starting preview server: %s", " ".join(command))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(self.workspace),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            self.logger.error("Unable to start preview server: %s", exc)
            self._transition(PreviewState.IDLE, "spawn failed")
            return False

        self.process = process
        self._watchers = [
            asyncio.create_task(self._forward_output(process.stdout, "stdout")),
            asyncio.create_task(self._forward_output(process.stderr, "stderr")),
            asyncio.create_task(self._watch_exit(process)),
        ]

        probe_host = "127.0.0.1" if self.host in ("0.0.0.0", "", "::") else self.host
        listening = await self._ready_waiter(probe_host, self.port, self.start_timeout)
        if process.returncode is not None:
            self.logger.warning("Preview server exited during startup with code %s", process.returncode)
            self.process = None
            for watcher in self._watchers:
                await self._finish_drain(watcher)
            self._watchers = []
            self._transition(PreviewState.IDLE, "exited during startup")
            return False

        if listening:
            self.ready = True
            self._transition(PreviewState.RUNNING, "port listening")
            self._notify_ready()
        else:
            self.logger.info(
                "Preview server not listening after %.1fs; continuing optimistically",
                self.start_timeout,
            )
            self._transition(PreviewState.RUNNING, "start timeout elapsed")
        return listening

    async def _stop_locked(self, reason: str) -> None:
        if self._state in (PreviewState.IDLE, PreviewState.FAILED) and not self._owns_live_process():
            return
        self._transition(PreviewState.STOPPING, reason)
        process = self.process
        if process is not None and process.returncode is None:
            self.logger.info("Stopping preview server (pid %d)", process.pid)
            self._signal_group(process, signal.SIGTERM)
            try:
                await asyncio.wait_for(process.wait(), timeout=self.stop_grace_period)
            except asyncio.TimeoutError:
                self.logger.warning("Preview server ignored SIGTERM; killing it")
                self._signal_group(process, signal.SIGKILL)
                await process.wait()
        for watcher in self._watchers:
            await self._finish_drain(watcher)
        self._watchers = []
        self.process = None
        self.adopted = False
        self.ready = False
        self._transition(PreviewState.IDLE, "stopped")

    # ------------------------------------------------------------------
    # Helpers

    def _owns_live_process(self) -> bool:
        return self.process is not None and self.process.returncode is None

    def _notify_ready(self) -> None:
        for listener in list(self._ready_listeners):
            listener()

    async def _watch_exit(self, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        self.logger.info("Preview process exited with code %s", returncode)
        for listener in list(self._exit_listeners):
            listener(returncode)
        if self.process is process and self._state == PreviewState.RUNNING:
            self.process = None
            self.ready = False
            self._transition(PreviewState.IDLE, f"process exited {returncode}")

    async def _forward_output(
        self,
        stream: Optional[asyncio.StreamReader],
        label: str,
        tail: Optional[Deque[str]] = None,
    ) -> None:
        if stream is None:
            return
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # readline() drops the buffered chunk once a line exceeds the stream limit.
                chunk = await stream.read(_OVERLONG_CHUNK)
                if not chunk:
                    return
                text = chunk.decode("utf-8", errors="replace").rstrip()
                self.process_logger.info("[%s] (long line truncated) %s", label, text[:200])
                continue
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            if not text:
                continue
            if tail is not None:
                tail.append(text)
            self.process_logger.info("[%s] %s", label, text)

    @staticmethod
    async def _finish_drain(task: asyncio.Task[None]) -> None:
        try:
            await asyncio.wait_for(task, timeout=5)
        except asyncio.TimeoutError:
            task.cancel()

    def _signal_group(self, process: asyncio.subprocess.Process, sig: int) -> None:
        if process.returncode is not None:
            return
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, sig)
            elif sig == signal.SIGTERM:
                process.terminate()
            else:
                process.kill()
        except ProcessLookupError:
            return


__all__ = ["PreviewState", "PreviewSupervisor", "Transition"]
