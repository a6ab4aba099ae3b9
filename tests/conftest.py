"""Pytest configuration and shared fixtures."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import pytest

from shotline.models.config import (
    CaptureConfig,
    DeviceConfig,
    DiscoveryConfig,
    OutputConfig,
    ProjectConfig,
    RoutesConfig,
    ShotlineConfig,
    SitemapConfig,
)
from shotline.models.run import CaptureOutcome, RunContext


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def devices() -> list[DeviceConfig]:
    return [
        DeviceConfig(name="desktop", width=1440, height=900),
        DeviceConfig(name="mobile", width=390, height=844),
    ]


@pytest.fixture
def shotline_config(devices: list[DeviceConfig]) -> ShotlineConfig:
    """Config with sitemap discovery disabled and no settle delay."""
    return ShotlineConfig(
        project=ProjectConfig(repo="acme/web"),
        capture=CaptureConfig(devices=devices, settle_ms=0),
        routes=RoutesConfig(include=["/", "/dashboard", "/settings"], exclude=["/api/*"]),
        discovery=DiscoveryConfig(sitemap=SitemapConfig(enabled=False), max_routes=50),
        output=OutputConfig(
            public_base_url="https://assets.example.com",
            history_base_url="https://history.example.com",
        ),
    )


@pytest.fixture
def run_context() -> RunContext:
    return RunContext(
        repo="acme/web",
        sha="abc1234",
        ref="refs/heads/feature",
        event_type="preview",
        pr_number=42,
        base_url="https://preview.example.com",
    )


@pytest.fixture
def temp_config_file(shotline_config: ShotlineConfig, tmp_path: Path) -> Path:
    config_file = tmp_path / "shotline.json"
    shotline_config.save(config_file)
    return config_file


# ============================================================================
# Renderer Fakes
# ============================================================================


class FakeSession:
    """Device session that returns deterministic bytes instead of a PNG."""

    def __init__(self, device: DeviceConfig, renderer: "FakeRenderer"):
        self.device = device
        self.renderer = renderer

    async def capture(self, url: str) -> bytes:
        self.renderer.calls.append((self.device.name, url))
        if urlparse(url).path in self.renderer.fail_routes:
            raise RuntimeError(f"Navigation timeout for {url}")
        return f"png:{self.device.name}:{url}".encode()


class FakeRenderer:
    def __init__(self, fail_routes: tuple[str, ...] = (), fail_devices: tuple[str, ...] = ()):
        self.fail_routes = set(fail_routes)
        self.fail_devices = set(fail_devices)
        self.calls: list[tuple[str, str]] = []
        self.opened: list[str] = []
        self.closed: list[str] = []

    @asynccontextmanager
    async def device_session(self, device: DeviceConfig):
        if device.name in self.fail_devices:
            raise RuntimeError("Browser context crashed")
        self.opened.append(device.name)
        try:
            yield FakeSession(device, self)
        finally:
            self.closed.append(device.name)


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


# ============================================================================
# Object Store Fakes
# ============================================================================


class MemoryStore:
    """In-memory object store recording every call."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.puts: list[tuple[str, str, str]] = []
        self.gets: list[str] = []

    def put(self, key: str, body: bytes, content_type: str, cache_control: str) -> None:
        self.puts.append((key, content_type, cache_control))
        self.objects[key] = body

    def get(self, key: str) -> Optional[bytes]:
        self.gets.append(key)
        return self.objects.get(key)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


# ============================================================================
# Outcome Fixtures
# ============================================================================


@pytest.fixture
def sample_outcomes() -> list[CaptureOutcome]:
    return [
        CaptureOutcome.ok("/", "desktop", "shots/desktop/root.png", "a" * 64),
        CaptureOutcome.failed("/dashboard", "desktop", "Timeout 30000ms exceeded"),
        CaptureOutcome.ok("/", "mobile", "shots/mobile/root.png", "b" * 64),
        CaptureOutcome.ok("/dashboard", "mobile", "shots/mobile/dashboard-1a2b3c4d.png", "c" * 64),
    ]
