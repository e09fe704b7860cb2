"""Transport layer for MCP communication.

A transport owns a server's byte streams and lifecycle. It knows nothing
about JSON-RPC: stdout arrives as raw chunks (which may split or merge
messages) and framing is left to the correlator.

Currently implements:
  - StdioTransport: child process with piped stdin/stdout/stderr
"""

from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable

from mcpdocs.errors import SpawnError, StartupTimeoutError, WriteError
from mcpdocs.observability import get_logger

logger = get_logger(__name__)

DataHandler = Callable[[bytes], None]
CloseHandler = Callable[[BaseException | None], None]
ReadyPredicate = Callable[[str], bool]

# Bytes requested per stdout read
DEFAULT_CHUNK_SIZE = 64 * 1024

# Seconds to wait after SIGTERM before killing the process
DEFAULT_KILL_TIMEOUT = 5.0

# Stderr lines remembered for readiness checks started after they arrived
_STDERR_BACKLOG = 50


class Transport(ABC):
    """Abstract duplex byte stream with a start/ready/terminate lifecycle."""

    def __init__(self) -> None:
        self._data_handlers: list[DataHandler] = []
        self._close_handlers: list[CloseHandler] = []
        self._close_notified = False

    def on_data(self, handler: DataHandler) -> None:
        """Register a handler called with each raw output chunk."""
        self._data_handlers.append(handler)

    def on_close(self, handler: CloseHandler) -> None:
        """Register a handler called once when output ends (None) or fails (exception)."""
        self._close_handlers.append(handler)

    def _emit_data(self, chunk: bytes) -> None:
        for handler in list(self._data_handlers):
            handler(chunk)

    def _notify_closed(self, reason: BaseException | None) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        for handler in list(self._close_handlers):
            handler(reason)

    @abstractmethod
    async def start(
        self,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        """Start the transport (e.g. launch the server process)."""
        ...

    @abstractmethod
    async def await_ready(self, predicate: ReadyPredicate, timeout: float) -> None:
        """Wait until a status line satisfies ``predicate``."""
        ...

    @abstractmethod
    async def send(self, data: bytes) -> None:
        """Write raw bytes to the server."""
        ...

    @abstractmethod
    async def terminate(self) -> None:
        """Stop the server and release resources. Idempotent."""
        ...

    @property
    @abstractmethod
    def is_alive(self) -> bool:
        """True while the server process is running."""
        ...


class StdioTransport(Transport):
    """Child process whose stdin/stdout carry the protocol.

    Stdout is pumped in chunks to the registered data handlers. Stderr is
    read line by line: lines are offered to a pending readiness check and
    otherwise logged at debug level, so the pipe never fills up.
    """

    def __init__(
        self,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        kill_timeout: float = DEFAULT_KILL_TIMEOUT,
    ) -> None:
        super().__init__()
        self._chunk_size = chunk_size
        self._kill_timeout = kill_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._stderr_backlog: deque[str] = deque(maxlen=_STDERR_BACKLOG)
        self._ready_waiter: tuple[ReadyPredicate, asyncio.Future[None]] | None = None
        self._stderr_closed = False
        self._started = False

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def start(
        self,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        """Launch the server process.

        Args:
            command: Executable to run.
            args: Arguments passed to the executable.
            env: Extra environment variables, merged over the current environment.

        Raises:
            SpawnError: If the executable cannot be launched.
            RuntimeError: If this transport was already started.
        """
        if self._started:
            raise RuntimeError("Transport already started; create a new transport")
        self._started = True
        argv = [command, *(args or [])]
        merged_env = {**os.environ, **env} if env else None

        logger.info("mcp.transport.starting", command=argv)
        try:
            self._process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=merged_env,
            )
        except OSError as exc:
            raise SpawnError(argv, exc.strerror or str(exc)) from exc
        except ValueError as exc:
            raise SpawnError(argv, str(exc)) from exc

        self._tasks = [
            asyncio.create_task(self._pump_stdout(), name=f"mcp-stdout-{self._process.pid}"),
            asyncio.create_task(self._pump_stderr(), name=f"mcp-stderr-{self._process.pid}"),
        ]
        logger.info("mcp.transport.started", pid=self._process.pid)

    async def await_ready(self, predicate: ReadyPredicate, timeout: float) -> None:
        """Wait until a stderr line satisfies ``predicate``.

        Lines already received are checked first.

        Raises:
            StartupTimeoutError: If no line matches within ``timeout`` seconds,
                or stderr closes before one does.
        """
        if self._process is None:
            raise RuntimeError("Transport not started; call start() first")
        if any(predicate(line) for line in self._stderr_backlog):
            return
        if self._stderr_closed:
            raise StartupTimeoutError(timeout, details={"reason": "stderr closed"})

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._ready_waiter = (predicate, waiter)
        try:
            await asyncio.wait_for(waiter, timeout=timeout)
        except asyncio.TimeoutError:
            raise StartupTimeoutError(timeout) from None
        except EOFError:
            raise StartupTimeoutError(timeout, details={"reason": "stderr closed"}) from None
        finally:
            self._ready_waiter = None

    async def send(self, data: bytes) -> None:
        """Write to the server's stdin and drain.

        Raises:
            WriteError: If stdin is closed or the pipe is broken.
        """
        process = self._process
        if process is None or process.stdin is None or process.stdin.is_closing():
            raise WriteError("stdin is closed")
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise WriteError(str(exc) or type(exc).__name__) from exc

    async def terminate(self) -> None:
        """Terminate the process (kill after the grace period) and stop readers."""
        process = self._process
        if process is None:
            return
        self._process = None

        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), timeout=self._kill_timeout)
            except asyncio.TimeoutError:
                logger.warning("mcp.transport.kill", pid=process.pid)
                process.kill()
                await process.wait()

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("mcp.transport.stopped", pid=process.pid, returncode=process.returncode)
        self._notify_closed(None)

    async def _pump_stdout(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        reason: BaseException | None = None
        try:
            while True:
                chunk = await stdout.read(self._chunk_size)
                if not chunk:
                    break
                self._emit_data(chunk)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("mcp.transport.read_failed", error=str(exc))
            reason = exc
        self._notify_closed(reason)

    async def _pump_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        stderr = self._process.stderr
        try:
            while True:
                try:
                    raw = await stderr.readline()
                except (ValueError, asyncio.LimitOverrunError) as exc:
                    # Over-long line: the reader drops what it buffered, keep draining
                    logger.warning("mcp.transport.stderr_truncated", error=str(exc))
                    continue
                if not raw:
                    break
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                self._stderr_backlog.append(line)
                logger.debug("mcp.transport.stderr", line=line)
                if self._ready_waiter is not None:
                    predicate, waiter = self._ready_waiter
                    if not waiter.done() and predicate(line):
                        waiter.set_result(None)
        finally:
            self._stderr_closed = True
            if self._ready_waiter is not None:
                _, waiter = self._ready_waiter
                if not waiter.done():
                    waiter.set_exception(EOFError("stderr closed"))
