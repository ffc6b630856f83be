# src/contextforge/backends/local_agent_backend.py
"""
Local command-line agent backend.

Spawns one agent process per compression, writes the prompt to its stdin
and captures stdout as the summary. The process never outlives the call:
on timeout, cancellation or any failure it is killed and reaped before the
error propagates.

Executable discovery order:
    1. ``local_agent.executable`` from the configuration
    2. the ``CONTEXTFORGE_AGENT_PATH`` environment variable
    3. ``claude`` on ``PATH``
    4. well-known install locations (``~/.local/bin``, ``/usr/local/bin``, ``/usr/bin``)
"""

import asyncio
import contextlib
import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional

from ..config.settings import CompressionSettings, LocalAgentSettings
from ..exceptions import BackendTransportError
from .base import BaseBackend

logger = logging.getLogger(__name__)

AGENT_PATH_ENV = "CONTEXTFORGE_AGENT_PATH"
DEFAULT_AGENT_NAME = "claude"
COMMON_INSTALL_DIRS = ("~/.local/bin", "/usr/local/bin", "/usr/bin")
READ_CHUNK_SIZE = 65536
STDERR_TAIL_BYTES = 4096


def find_agent_executable(configured: str = "") -> Optional[str]:
    """Locate the agent executable, or return None when nothing is found."""
    if configured:
        resolved = shutil.which(configured) or (configured if Path(configured).expanduser().is_file() else None)
        if resolved:
            return str(Path(resolved).expanduser())
        logger.warning(f"Configured agent executable '{configured}' not found.")

    env_path = os.environ.get(AGENT_PATH_ENV)
    if env_path:
        if Path(env_path).expanduser().is_file():
            return str(Path(env_path).expanduser())
        logger.warning(f"{AGENT_PATH_ENV}='{env_path}' does not point to a file.")

    on_path = shutil.which(DEFAULT_AGENT_NAME)
    if on_path:
        return on_path

    for directory in COMMON_INSTALL_DIRS:
        candidate = Path(directory).expanduser() / DEFAULT_AGENT_NAME
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)
    return None


class LocalAgentBackend(BaseBackend):
    """Compression backend that pipes the prompt through a local agent CLI."""

    def __init__(self, settings: LocalAgentSettings, log_raw_payloads: bool = False):
        super().__init__(log_raw_payloads)
        self.settings = settings
        self.default_model = settings.model or None
        self.default_timeout = settings.timeout
        self._executable: Optional[str] = None

    @classmethod
    def from_config(cls, config: CompressionSettings) -> "LocalAgentBackend":
        return cls(config.local_agent, log_raw_payloads=config.log_raw_payloads)

    def get_name(self) -> str:
        return "local_agent"

    def resolve_executable(self) -> str:
        """Resolve (and cache) the agent executable path."""
        if self._executable is None:
            found = find_agent_executable(self.settings.executable)
            if found is None:
                raise BackendTransportError(
                    self.get_name(),
                    f"Agent executable not found. Configure local_agent.executable or set {AGENT_PATH_ENV}.",
                    reason="process_failed",
                )
            logger.debug(f"Using agent executable: {found}")
            self._executable = found
        return self._executable

    def build_command(self, model: Optional[str]) -> List[str]:
        argv = [self.resolve_executable(), *self.settings.args]
        if model and self.settings.model_flag:
            argv.extend([self.settings.model_flag, model])
        return argv

    async def _complete(self, prompt: str, model: Optional[str]) -> str:
        argv = self.build_command(model)
        logger.debug(f"Spawning agent process: {argv[0]} ({len(argv) - 1} args)")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BackendTransportError(
                self.get_name(), f"Failed to start agent process '{argv[0]}': {e}", reason="process_failed"
            )

        stdin_task = asyncio.create_task(self._feed_stdin(process, prompt.encode("utf-8")))
        stderr_task = asyncio.create_task(self._read_stderr_tail(process))
        try:
            stdout = await self._read_stdout(process)
            await stdin_task
            stderr_tail = await stderr_task
            returncode = await process.wait()
        finally:
            pending = [task for task in (stdin_task, stderr_task) if not task.done()]
            for task in pending:
                task.cancel()
            for task in pending:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            if process.returncode is None:
                logger.warning(f"Killing agent process (pid {process.pid}).")
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        if returncode != 0:
            detail = stderr_tail.decode("utf-8", errors="replace").strip()
            raise BackendTransportError(
                self.get_name(),
                f"Agent process exited with code {returncode}: {detail or '<no stderr>'}",
                reason="process_failed",
            )
        return stdout.decode("utf-8", errors="replace")

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> bytes:
        assert process.stdout is not None
        limit = self.settings.max_output_bytes
        buffer = bytearray()
        while True:
            chunk = await process.stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                return bytes(buffer)
            buffer.extend(chunk)
            if len(buffer) > limit:
                raise BackendTransportError(
                    self.get_name(),
                    f"Agent output exceeded {limit} bytes.",
                    reason="output_overflow",
                )

    @staticmethod
    async def _read_stderr_tail(process: asyncio.subprocess.Process) -> bytes:
        assert process.stderr is not None
        tail = b""
        while True:
            chunk = await process.stderr.read(READ_CHUNK_SIZE)
            if not chunk:
                return tail
            tail = (tail + chunk)[-STDERR_TAIL_BYTES:]

    @staticmethod
    async def _feed_stdin(process: asyncio.subprocess.Process, data: bytes) -> None:
        assert process.stdin is not None
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.debug(f"Agent process closed stdin early: {e}")
        finally:
            process.stdin.close()
