"""Builds the immutable run manifest and reads or writes run directories."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

from shotline.models.config import DeviceConfig
from shotline.models.run import (
    DISCOVERY_DEVICE,
    DISCOVERY_ROUTE,
    CaptureOutcome,
    RunContext,
    RunManifest,
    RunStats,
)

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"
SUMMARY_FILE = "SUMMARY.txt"


def utc_timestamp() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def build_manifest(
    context: RunContext,
    routes: list[str],
    devices: list[DeviceConfig],
    outcomes: list[CaptureOutcome],
    warnings: list[str],
    captured_at: Optional[str] = None,
) -> RunManifest:
    """Aggregate outcomes and discovery warnings into a RunManifest.

    Warnings are kept in their own list and do not count as failed
    captures. They are also appended to ``routes`` as ``_discovery``/
    ``system`` error entries so existing viewers keep showing them.
    """
    concrete = tuple(outcomes)
    warning_entries = tuple(
        CaptureOutcome.failed(DISCOVERY_ROUTE, DISCOVERY_DEVICE, w) for w in warnings
    )
    stats = RunStats(
        routes_requested=len(routes) * len(devices),
        routes_captured=sum(1 for o in concrete if o.status == "ok"),
        routes_failed=sum(1 for o in concrete if o.status == "error"),
        warnings=len(warnings),
    )
    return RunManifest(
        repo=context.repo,
        sha=context.sha,
        ref=context.ref,
        event_type=context.event_type,
        pr_number=context.pr_number,
        base_url=context.base_url,
        captured_at=captured_at or utc_timestamp(),
        routes=concrete + warning_entries,
        warnings=tuple(warnings),
        stats=stats,
    )


def manifest_json(manifest: RunManifest) -> str:
    return json.dumps(manifest.to_json_dict(), indent=2) + "\n"


def write_run_dir(run_dir: Path, manifest: RunManifest) -> Path:
    """Write manifest.json and SUMMARY.txt into a run directory."""
    run_dir.mkdir(parents=True, exist_ok=True)
    path = run_dir / MANIFEST_FILE
    path.write_text(manifest_json(manifest), encoding="utf-8")

    stats = manifest.stats
    (run_dir / SUMMARY_FILE).write_text(
        f"Routes: {stats.routes_requested}\n"
        f"Captured: {stats.routes_captured}\n"
        f"Failed: {stats.routes_failed}\n"
        f"Warnings: {stats.warnings}\n",
        encoding="utf-8",
    )
    logger.debug("Saved manifest to %s", path)
    return path


def load_manifest(run_dir: Path) -> RunManifest:
    path = run_dir / MANIFEST_FILE
    if not path.exists():
        raise FileNotFoundError(f"No manifest found in {run_dir}. Run 'shotline capture' first.")
    with open(path, encoding="utf-8") as f:
        return RunManifest.model_validate(json.load(f))
