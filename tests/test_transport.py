"""Tests for the stdio JSON-RPC transport, run against a real fake sidecar process."""

import asyncio
import json
import signal
import sys
import time

import pytest

from tuitbot_bridge.mcp.transport import (
    HOST_ENV_VAR,
    PROTOCOL_VERSION,
    MCPProcessExitedError,
    MCPProtocolError,
    MCPTransport,
    MCPTransportError,
)
from tuitbot_bridge.validation.config import SidecarConfig


def _envelope(result):
    return json.loads(result["content"][0]["text"])


class TestCommandLine:
    """Tests for argv and environment construction."""

    def test_default_argv(self):
        transport = MCPTransport()
        assert transport.build_argv() == ["tuitbot", "mcp", "serve"]

    def test_config_path_is_leading_argument_pair(self):
        transport = MCPTransport(command="/opt/tuitbot", config_path="/etc/tuitbot.toml")
        assert transport.build_argv() == ["/opt/tuitbot", "--config", "/etc/tuitbot.toml", "mcp", "serve"]

    def test_env_merges_host_marker_and_overrides(self, monkeypatch):
        monkeypatch.setenv("INHERITED_VAR", "yes")
        transport = MCPTransport(host_name="my-host", env={"EXTRA": "1"})

        env = transport.build_env()

        assert env["INHERITED_VAR"] == "yes"
        assert env[HOST_ENV_VAR] == "my-host"
        assert env["EXTRA"] == "1"

    def test_from_config(self, monkeypatch):
        monkeypatch.delenv("TUITBOT_BINARY", raising=False)
        config = SidecarConfig(config_path="cfg.toml", shutdown_timeout=1.5)

        transport = MCPTransport.from_config(config)

        assert transport.command == "tuitbot"
        assert transport.config_path == "cfg.toml"
        assert transport.shutdown_timeout == 1.5


class TestHandshake:
    """Tests for start() and the initialize handshake."""

    async def test_start_returns_initialize_result(self, sidecar_config):
        transport = MCPTransport.from_config(sidecar_config)
        try:
            info = await transport.start()
            assert transport.is_running
            assert info["protocolVersion"] == PROTOCOL_VERSION
            assert info["clientInfo"]["name"] == "tuitbot-bridge"
            assert info["serverInfo"]["name"] == "fake-sidecar"
        finally:
            await transport.stop()

    async def test_initialized_notification_sent(self, transport):
        result = await transport.call_tool("handshake")
        assert _envelope(result)["data"] is True

    async def test_host_marker_reaches_sidecar(self, transport):
        result = await transport.call_tool("env")
        assert _envelope(result)["data"] == "tuitbot-bridge"

    async def test_start_twice_is_noop(self, transport):
        first = await transport.start()
        second = await transport.start()
        assert first == second

    async def test_missing_binary_raises(self):
        transport = MCPTransport(command="/nonexistent/tuitbot-binary")
        with pytest.raises(MCPTransportError, match="not found"):
            await transport.start()
        assert not transport.is_running

    async def test_exit_before_handshake_fails_start(self, make_sidecar_config):
        transport = MCPTransport.from_config(make_sidecar_config("exit_before_init"))
        with pytest.raises(MCPProcessExitedError) as exc_info:
            await transport.start()
        assert exc_info.value.exit_code == 7
        assert not transport.is_running
        assert transport.pending_count == 0


class TestRequests:
    """Tests for request/response correlation."""

    async def test_list_tools_skips_malformed_entries(self, transport):
        tools = await transport.list_tools()
        names = [t.name for t in tools]
        assert names == ["get_stats", "x_post_tweet", "health_check", "future_tool_xyz"]
        assert tools[0].input_schema == {"type": "object", "properties": {}}
        assert tools[2].description is None

    async def test_tools_list_sent_without_params(self, transport):
        result = await transport.request("tools/list")
        assert result["params_seen"] is False

    async def test_call_tool_returns_raw_result(self, transport):
        result = await transport.call_tool("echo", {"q": "rust"})
        assert _envelope(result)["data"] == {"q": "rust"}

    async def test_error_response_raises_protocol_error(self, transport):
        with pytest.raises(MCPProtocolError) as exc_info:
            await transport.call_tool("fail")
        assert exc_info.value.code == -32000
        assert exc_info.value.message == "tool exploded"
        assert transport.pending_count == 0

    async def test_unknown_method_raises_protocol_error(self, transport):
        with pytest.raises(MCPProtocolError) as exc_info:
            await transport.request("resources/list")
        assert exc_info.value.code == -32601

    async def test_concurrent_requests_resolve_by_id(self, transport):
        """The held call is answered after the echo call, but each caller gets its own reply."""
        held = asyncio.ensure_future(transport.call_tool("hold", {"which": "first"}))
        await asyncio.sleep(0.05)
        assert not held.done()

        echoed = await transport.call_tool("echo", {"which": "second"})
        held_result = await held

        assert _envelope(echoed)["data"] == {"which": "second"}
        assert _envelope(held_result)["data"] == {"which": "first"}
        assert transport.pending_count == 0

    async def test_many_concurrent_requests(self, transport):
        calls = [transport.call_tool("hold", {"n": i}) for i in range(5)]
        calls.append(transport.call_tool("echo", {"n": "last"}))

        results = await asyncio.gather(*calls)

        for i in range(5):
            assert _envelope(results[i])["data"] == {"n": i}
        assert _envelope(results[5])["data"] == {"n": "last"}

    async def test_noise_and_notifications_ignored(self, make_sidecar_config):
        seen = []
        transport = MCPTransport.from_config(make_sidecar_config("noisy"), on_notification=seen.append)
        await transport.start()
        try:
            result = await transport.call_tool("echo", {"ok": 1})
            assert _envelope(result)["data"] == {"ok": 1}
            assert seen
            assert all(msg["method"] == "notifications/message" for msg in seen)
        finally:
            await transport.stop()

    async def test_request_before_start_raises(self):
        transport = MCPTransport()
        with pytest.raises(MCPTransportError, match="not running"):
            await transport.request("tools/list")
        assert transport.pending_count == 0


class TestProcessExit:
    """Tests for exit handling and shutdown."""

    async def test_exit_rejects_all_pending(self, sidecar_config):
        exits = []
        transport = MCPTransport.from_config(sidecar_config, on_exit=exits.append)
        await transport.start()

        calls = [
            transport.call_tool("hold", {"n": 1}),
            transport.call_tool("hold", {"n": 2}),
            transport.call_tool("crash", {"code": 3}),
        ]
        results = await asyncio.gather(*calls, return_exceptions=True)

        assert all(isinstance(r, MCPProcessExitedError) for r in results)
        assert all(r.exit_code == 3 for r in results)
        assert transport.pending_count == 0
        assert not transport.is_running
        assert transport.returncode == 3
        assert exits == [3]

        with pytest.raises(MCPTransportError):
            await transport.call_tool("echo")

        await transport.stop()

    async def test_stop_is_idempotent(self, sidecar_config):
        transport = MCPTransport.from_config(sidecar_config)
        await transport.start()

        await transport.stop()
        await transport.stop()

        assert not transport.is_running

    async def test_stop_after_crash_does_not_raise(self, transport):
        with pytest.raises(MCPProcessExitedError):
            await transport.call_tool("crash", {"code": 0})
        await transport.stop()

    async def test_stop_rejects_pending_requests(self, transport):
        held = asyncio.ensure_future(transport.call_tool("hold"))
        await asyncio.sleep(0.05)

        await transport.stop()

        with pytest.raises(MCPProcessExitedError):
            await held
        assert transport.pending_count == 0

    async def test_notify_after_stop_is_silent(self, transport):
        await transport.stop()
        await transport.notify("notifications/cancelled", {"requestId": "x"})

    async def test_stop_awaits_reader_tasks(self, transport):
        reader = transport._reader_task
        drain = transport._stderr_task

        await transport.stop()

        assert reader.done()
        assert drain.done()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    async def test_stop_kills_process_that_ignores_sigterm(self, make_sidecar_config):
        transport = MCPTransport.from_config(make_sidecar_config("ignore_term", shutdown_timeout=0.5))
        await transport.start()

        t0 = time.monotonic()
        await transport.stop()
        elapsed = time.monotonic() - t0

        assert 0.4 <= elapsed < 3.0
        assert transport.returncode == -signal.SIGKILL
        assert not transport.is_running


class TestCallbackFailures:
    """Tests that a raising host callback doesn't break the transport."""

    @staticmethod
    def _boom(_):
        raise RuntimeError("host callback bug")

    async def test_raising_notification_callback(self, make_sidecar_config):
        transport = MCPTransport.from_config(make_sidecar_config("noisy"), on_notification=self._boom)
        await transport.start()
        try:
            result = await transport.call_tool("echo", {"ok": 1})
            assert _envelope(result)["data"] == {"ok": 1}

            result = await transport.call_tool("echo", {"ok": 2})
            assert _envelope(result)["data"] == {"ok": 2}
        finally:
            await transport.stop()

    async def test_exit_still_rejects_pending_after_callback_failure(self, make_sidecar_config):
        transport = MCPTransport.from_config(make_sidecar_config("noisy"), on_notification=self._boom)
        await transport.start()
        try:
            held = asyncio.ensure_future(transport.call_tool("hold"))
            await asyncio.sleep(0.05)
            with pytest.raises(MCPProcessExitedError) as exc_info:
                await transport.call_tool("crash", {"code": 4})
            assert exc_info.value.exit_code == 4

            with pytest.raises(MCPProcessExitedError):
                await held
            assert transport.pending_count == 0
        finally:
            await transport.stop()

    async def test_raising_exit_callback(self, sidecar_config):
        transport = MCPTransport.from_config(sidecar_config, on_exit=self._boom)
        await transport.start()

        with pytest.raises(MCPProcessExitedError):
            await transport.call_tool("crash", {"code": 5})

        assert transport.returncode == 5
        await transport.stop()
