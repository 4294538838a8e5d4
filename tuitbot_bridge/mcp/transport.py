"""MCP server communication via stdio subprocess transport."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import uuid
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from tuitbot_bridge import __version__
from tuitbot_bridge.mcp.schema import RemoteTool

if TYPE_CHECKING:
    from tuitbot_bridge.validation.config import SidecarConfig

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_NAME = "tuitbot-bridge"
HOST_ENV_VAR = "TUITBOT_HOST"
DEFAULT_COMMAND = "tuitbot"
DEFAULT_ARGS = ["mcp", "serve"]
SHUTDOWN_TIMEOUT = 5.0

# Some tools answer with one very large JSON line; asyncio's default is 64 KiB.
STREAM_LIMIT = 8 * 1024 * 1024


class MCPError(Exception):
    """Base class for errors raised by the MCP transport."""


class MCPTransportError(MCPError):
    """Raised when the sidecar process can't be reached."""


class MCPProcessExitedError(MCPTransportError):
    """Raised for every pending request when the sidecar process exits."""

    def __init__(self, exit_code: Optional[int]):
        super().__init__(f"MCP process exited with code {exit_code}")
        self.exit_code = exit_code


class MCPProtocolError(MCPError):
    """A JSON-RPC error object returned by the sidecar, or a malformed result."""

    def __init__(self, code: Optional[int], message: str, data: Any = None):
        super().__init__(f"MCP error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


class MCPTransport:
    """
    Talk to an MCP server over its stdin/stdout with newline-delimited JSON-RPC.

    Any number of requests may be in flight at once. Each one waits on a
    future keyed by its request id; a single reader task resolves them as
    response lines arrive, in whatever order the server answers. When the
    process exits, every request still waiting is rejected with
    ``MCPProcessExitedError``.

    There is no per-request timeout and no automatic restart. A crashed
    sidecar is terminal for the transport instance.
    """

    def __init__(
        self,
        command: str = DEFAULT_COMMAND,
        args: Optional[List[str]] = None,
        config_path: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        host_name: str = CLIENT_NAME,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT,
        on_exit: Optional[Callable[[Optional[int]], None]] = None,
        on_notification: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        self.command = command
        self.args = list(DEFAULT_ARGS if args is None else args)
        self.config_path = config_path
        self.env = env or {}
        self.host_name = host_name
        self.shutdown_timeout = shutdown_timeout
        self._on_exit = on_exit
        self._on_notification = on_notification
        self._process: Optional[asyncio.subprocess.Process] = None
        self._pending: Dict[str, asyncio.Future] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()
        self._server_info: Optional[Dict[str, Any]] = None
        self._returncode: Optional[int] = None

    @classmethod
    def from_config(cls, config: "SidecarConfig", **kwargs: Any) -> "MCPTransport":
        """Build a transport from the ``sidecar`` section of the bridge config."""
        return cls(
            command=config.resolve_binary(),
            args=config.args,
            config_path=config.config_path,
            env=config.env,
            host_name=config.host_name,
            shutdown_timeout=config.shutdown_timeout,
            **kwargs,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def build_argv(self) -> List[str]:
        """Command line for the sidecar: ``command [--config path] args...``."""
        argv = [self.command]
        if self.config_path:
            argv += ["--config", self.config_path]
        return argv + self.args

    def build_env(self) -> Dict[str, str]:
        return {**os.environ, HOST_ENV_VAR: self.host_name, **self.env}

    async def start(self) -> Dict[str, Any]:
        """
        Spawn the sidecar and perform the MCP initialize handshake.

        Returns the server's ``initialize`` result. Raises
        ``MCPTransportError`` if the process can't be spawned and
        ``MCPProcessExitedError`` if it exits before answering.
        """
        if self.is_running and self._server_info is not None:
            return self._server_info

        argv = self.build_argv()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_env(),
                limit=STREAM_LIMIT,
            )
        except FileNotFoundError:
            raise MCPTransportError(
                f"MCP server command not found: {self.command}. "
                "Make sure tuitbot is installed and on PATH, or set sidecar.binary_path."
            )
        except OSError as exc:
            raise MCPTransportError(f"Failed to start MCP server {self.command}: {exc}")

        logger.debug("Started MCP server pid=%s: %s", process.pid, " ".join(argv))
        self._process = process
        self._returncode = None
        self._reader_task = asyncio.create_task(self._read_stdout(process))
        self._stderr_task = asyncio.create_task(self._drain_stderr(process))

        try:
            self._server_info = await self.request("initialize", {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": CLIENT_NAME, "version": __version__},
            })
        except MCPError:
            await self.stop()
            raise

        await self.notify("notifications/initialized")
        return self._server_info

    async def stop(self) -> None:
        """
        Terminate the sidecar.

        Sends SIGTERM and waits up to ``shutdown_timeout`` seconds before
        SIGKILL. Safe to call more than once and after the process exited.
        """
        process = self._process
        if process is None:
            return
        self._process = None
        self._server_info = None

        tasks = [self._reader_task, self._stderr_task]
        self._reader_task = None
        self._stderr_task = None
        current = asyncio.current_task()
        for task in tasks:
            if task is None or task is current:
                continue
            if not task.done():
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()

        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), timeout=self.shutdown_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "MCP server pid=%s did not exit within %.1fs, killing",
                    process.pid,
                    self.shutdown_timeout,
                )
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

        self._handle_exit(process.returncode)

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def pending_count(self) -> int:
        """Number of requests still waiting for a response."""
        return len(self._pending)

    @property
    def returncode(self) -> Optional[int]:
        return self._returncode

    # ── JSON-RPC ──────────────────────────────────────────────────────────

    async def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Send a JSON-RPC request and wait for the matching response's result."""
        process = self._process
        if process is None or process.returncode is not None:
            raise MCPTransportError("MCP process is not running")

        request_id = uuid.uuid4().hex
        message: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params
        line = json.dumps(message) + "\n"

        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._write(process, line)
        except MCPTransportError:
            self._pending.pop(request_id, None)
            raise

        return await future

    async def notify(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Send a JSON-RPC notification. No reply is expected."""
        process = self._process
        if process is None or process.returncode is not None:
            return

        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        try:
            await self._write(process, json.dumps(message) + "\n")
        except MCPTransportError as exc:
            logger.debug("Dropped notification %s: %s", method, exc)

    async def _write(self, process: asyncio.subprocess.Process, line: str) -> None:
        async with self._write_lock:
            stdin = process.stdin
            if stdin is None or stdin.is_closing():
                raise MCPTransportError("MCP process stdin is closed")
            try:
                stdin.write(line.encode())
                await stdin.drain()
            except (BrokenPipeError, ConnectionResetError, OSError) as exc:
                raise MCPTransportError(f"MCP transport error: {exc}")

    # ── Reading ───────────────────────────────────────────────────────────

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> None:
        stdout = process.stdout
        try:
            while True:
                try:
                    raw = await stdout.readline()
                except ValueError:
                    logger.warning("Discarded MCP output line longer than %d bytes", STREAM_LIMIT)
                    continue
                if not raw:
                    break
                self._handle_line(raw)
        except Exception:
            logger.exception("MCP stdout reader failed")

        returncode = await process.wait()
        self._handle_exit(returncode)

    async def _drain_stderr(self, process: asyncio.subprocess.Process) -> None:
        stderr = process.stderr
        while True:
            try:
                raw = await stderr.readline()
            except ValueError:
                continue
            if not raw:
                return
            logger.debug("[mcp stderr] %s", raw.decode("utf-8", errors="replace").rstrip())

    def _handle_line(self, raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            return

        try:
            message = json.loads(line)
        except ValueError:
            # Log output or other noise on stdout.
            logger.debug("Ignoring non-JSON line from MCP server: %.200s", line)
            return

        if not isinstance(message, dict):
            return

        msg_id = message.get("id")
        if msg_id is None:
            if self._on_notification is not None:
                try:
                    self._on_notification(message)
                except Exception:
                    logger.exception("on_notification callback failed for %s", message.get("method"))
            return

        # A server-initiated request, or an id we never issued.
        if "method" in message or not isinstance(msg_id, str):
            return

        future = self._pending.pop(msg_id, None)
        if future is None or future.done():
            return

        error = message.get("error")
        if error is not None:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            future.set_exception(MCPProtocolError(
                error.get("code"),
                str(error.get("message", "Unknown error")),
                error.get("data"),
            ))
        else:
            future.set_result(message.get("result"))

    def _handle_exit(self, returncode: Optional[int]) -> None:
        first_exit = self._returncode is None
        self._returncode = returncode

        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(MCPProcessExitedError(returncode))

        if first_exit:
            if pending:
                logger.warning(
                    "MCP server exited with code %s, failed %d pending request(s)",
                    returncode,
                    len(pending),
                )
            if self._on_exit is not None:
                try:
                    self._on_exit(returncode)
                except Exception:
                    logger.exception("on_exit callback failed")

    # ── MCP Protocol ──────────────────────────────────────────────────────

    async def list_tools(self) -> List[RemoteTool]:
        """Fetch the tool list from the MCP server."""
        result = await self.request("tools/list")
        if not isinstance(result, dict):
            raise MCPProtocolError(None, f"tools/list returned {type(result).__name__}, expected an object")

        tools: List[RemoteTool] = []
        for raw in result.get("tools") or []:
            try:
                tools.append(RemoteTool.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping malformed tool entry %r: %s", raw, exc)
        return tools

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Call a tool on the MCP server and return its raw result."""
        return await self.request("tools/call", {"name": name, "arguments": arguments or {}})
