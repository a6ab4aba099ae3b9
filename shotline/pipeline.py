"""Pipeline orchestrator. Runs the discover, capture, manifest, and publish stages."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

import httpx

from shotline.capture.capturer import Capturer
from shotline.capture.renderer import PlaywrightRenderer, Renderer
from shotline.discovery.routes import discover_routes
from shotline.manifest import build_manifest, write_run_dir
from shotline.models.config import ShotlineConfig
from shotline.models.run import RunContext, RunManifest
from shotline.publish.publisher import Publisher, PublishResult
from shotline.publish.store import ObjectStore, create_store
from shotline.url_utils import RepoId

logger = logging.getLogger(__name__)


class Pipeline:
    """Runs the capture and publish stages for one commit."""

    def __init__(self, config: ShotlineConfig, store: Optional[ObjectStore] = None):
        self.config = config
        self._store = store

    @property
    def store(self) -> ObjectStore:
        if self._store is None:
            self._store = create_store(self.config.storage)
        return self._store

    def run_capture(self, context: RunContext, out_dir: Path) -> RunManifest:
        """Discover routes, capture them, and write the run directory."""
        return asyncio.run(self.capture(context, out_dir))

    async def capture(
        self,
        context: RunContext,
        out_dir: Path,
        renderer: Optional[Renderer] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> RunManifest:
        RepoId.parse(context.repo)
        start = time.time()
        logger.info("=== Capturing %s@%s from %s ===", context.repo, context.sha, context.base_url)

        logger.info("--- Stage 1: Discover ---")
        discovery = await discover_routes(self.config, context.base_url, client=http_client)
        logger.info(
            "--- Stage 1 complete: %d routes, %d warnings ---",
            len(discovery.routes), len(discovery.warnings),
        )

        logger.info("--- Stage 2: Capture ---")
        stage_start = time.time()
        if renderer is None:
            async with PlaywrightRenderer(self.config.capture) as playwright_renderer:
                outcomes = await Capturer(
                    self.config.capture, playwright_renderer, out_dir,
                ).capture_all(context.base_url, discovery.routes)
        else:
            outcomes = await Capturer(
                self.config.capture, renderer, out_dir,
            ).capture_all(context.base_url, discovery.routes)
        logger.info("--- Stage 2 complete: %d outcomes in %.1fs ---",
                    len(outcomes), time.time() - stage_start)

        logger.info("--- Stage 3: Manifest ---")
        manifest = build_manifest(
            context,
            routes=discovery.routes,
            devices=self.config.capture.devices,
            outcomes=outcomes,
            warnings=discovery.warnings,
        )
        path = write_run_dir(out_dir, manifest)
        logger.info(
            "=== Capture complete: %d captured, %d failed, %d warnings in %.1fs (%s) ===",
            manifest.stats.routes_captured, manifest.stats.routes_failed,
            manifest.stats.warnings, time.time() - start, path,
        )
        return manifest

    def run_publish(self, run_dir: Path) -> PublishResult:
        """Publish a previously captured run directory."""
        logger.info("--- Stage 4: Publish ---")
        publisher = Publisher(self.store, self.config.output, self.config.publish)
        result = publisher.publish_run_dir(run_dir)
        logger.info("--- Stage 4 complete: %s ---", result.manifest_url)
        return result

    def run_full(self, context: RunContext, out_dir: Path) -> tuple[RunManifest, PublishResult]:
        RepoId.parse(context.repo)
        manifest = self.run_capture(context, out_dir)
        return manifest, self.run_publish(out_dir)
