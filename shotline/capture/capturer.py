"""Screenshots every route on every device."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from urllib.parse import urljoin

from shotline.models.config import CaptureConfig, DeviceConfig
from shotline.models.run import CaptureOutcome
from shotline.url_utils import route_slug, sha256_bytes

from .renderer import DeviceSession, Renderer

logger = logging.getLogger(__name__)

SHOTS_DIR = "shots"


def artifact_path(device_name: str, route: str) -> str:
    """Relative (POSIX) path of a route's screenshot inside a run directory."""
    return f"{SHOTS_DIR}/{device_name}/{route_slug(route)}.png"


class Capturer:
    """Captures screenshots for a list of routes across device profiles.

    A failure for one (route, device) pair is recorded as an ``error``
    outcome and never stops the remaining pairs. Devices run concurrently up
    to ``max_parallel_devices``; routes within a device run in order on a
    single page.
    """

    def __init__(self, config: CaptureConfig, renderer: Renderer, run_dir: Path):
        self.config = config
        self.renderer = renderer
        self.run_dir = run_dir

    async def capture_all(self, base_url: str, routes: list[str]) -> list[CaptureOutcome]:
        total = len(routes) * len(self.config.devices)
        logger.info(
            "Capturing %d routes on %d devices (%d screenshots)",
            len(routes), len(self.config.devices), total,
        )
        semaphore = asyncio.Semaphore(self.config.max_parallel_devices)

        async def _run_device(device: DeviceConfig) -> list[CaptureOutcome]:
            async with semaphore:
                return await self._capture_device(device, base_url, routes)

        per_device = await asyncio.gather(
            *(_run_device(device) for device in self.config.devices)
        )
        return [outcome for outcomes in per_device for outcome in outcomes]

    async def _capture_device(
        self, device: DeviceConfig, base_url: str, routes: list[str],
    ) -> list[CaptureOutcome]:
        logger.info("Device '%s' (%dx%d)", device.name, device.width, device.height)
        outcomes: list[CaptureOutcome] = []
        try:
            async with self.renderer.device_session(device) as session:
                for index, route in enumerate(routes):
                    logger.debug("[%s %d/%d] %s", device.name, index + 1, len(routes), route)
                    outcomes.append(await self._capture_route(session, device, base_url, route))
        except Exception as e:
            logger.error("Device session '%s' failed: %s", device.name, e)
            done = {o.path for o in outcomes}
            outcomes.extend(
                CaptureOutcome.failed(route, device.name, f"Device session failed: {e}")
                for route in routes
                if route not in done
            )
        return outcomes

    async def _capture_route(
        self, session: DeviceSession, device: DeviceConfig, base_url: str, route: str,
    ) -> CaptureOutcome:
        target_url = urljoin(base_url, route)
        rel_path = artifact_path(device.name, route)
        start = time.time()
        try:
            image = await session.capture(target_url)
            dest = self.run_dir / rel_path
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(image)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning("[ERROR] %s %s: %s", device.name, route, message)
            return CaptureOutcome.failed(route, device.name, message)

        logger.info("[OK] %s %s (%.1fs)", device.name, route, time.time() - start)
        return CaptureOutcome.ok(route, device.name, rel_path, sha256_bytes(image))
