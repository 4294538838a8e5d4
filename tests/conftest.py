"""Shared fixtures: a transport wired to the fake sidecar."""

import sys
from pathlib import Path

import pytest

from tuitbot_bridge.mcp.transport import MCPTransport
from tuitbot_bridge.validation.config import BridgeConfig, SidecarConfig

FAKE_SIDECAR = Path(__file__).parent / "fixtures" / "fake_sidecar.py"


def fake_sidecar_config(mode: str = "normal", **overrides) -> SidecarConfig:
    """Sidecar config that launches the fake server with the current interpreter."""
    return SidecarConfig(
        binary_path=sys.executable,
        args=[str(FAKE_SIDECAR)],
        env={"FAKE_SIDECAR_MODE": mode},
        shutdown_timeout=overrides.pop("shutdown_timeout", 2.0),
        **overrides,
    )


@pytest.fixture
def make_sidecar_config():
    return fake_sidecar_config


@pytest.fixture
def sidecar_config():
    return fake_sidecar_config()


@pytest.fixture
def bridge_config(sidecar_config):
    return BridgeConfig(sidecar=sidecar_config)


@pytest.fixture
async def transport(sidecar_config):
    """A started transport, stopped after the test."""
    t = MCPTransport.from_config(sidecar_config)
    await t.start()
    yield t
    await t.stop()
