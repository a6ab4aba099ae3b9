"""Uploads a captured run and records it in the repository index."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from shotline.manifest import load_manifest, manifest_json, utc_timestamp
from shotline.models.config import OutputConfig, PublishConfig
from shotline.models.index import PrPointer, RunSummary
from shotline.models.run import RunManifest
from shotline.url_utils import RepoId

from .index_sync import IndexSynchronizer
from .keys import (
    IMMUTABLE_CACHE_CONTROL,
    JSON_CACHE_CONTROL,
    JSON_CONTENT_TYPE,
    PNG_CONTENT_TYPE,
    artifact_key,
    manifest_key,
    pr_pointer_key,
    public_url,
    timeline_url,
)
from .store import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishResult:
    manifest_url: str
    timeline_url: str
    artifacts_uploaded: int = 0
    index_attempts: int = 1

    def to_json_dict(self) -> dict:
        return {"manifestUrl": self.manifest_url, "timelineUrl": self.timeline_url}


class Publisher:
    """Publishes a run directory to an object store.

    Artifacts and the manifest are keyed by repo + sha, so publishing the
    same sha again overwrites them in place. If the index update fails, the
    uploaded artifacts and manifest are left in the store and the
    ``IndexUpdateError`` propagates to the caller.
    """

    def __init__(
        self,
        store: ObjectStore,
        output: OutputConfig,
        publish: Optional[PublishConfig] = None,
        synchronizer: Optional[IndexSynchronizer] = None,
    ):
        publish = publish or PublishConfig()
        self.store = store
        self.output = output
        self.synchronizer = synchronizer or IndexSynchronizer(
            store,
            max_attempts=publish.index_max_attempts,
            backoff_seconds=publish.index_backoff_seconds,
        )

    def publish_run_dir(self, run_dir: Path) -> PublishResult:
        return self.publish(load_manifest(run_dir), run_dir)

    def publish(self, manifest: RunManifest, run_dir: Path) -> PublishResult:
        repo = RepoId.parse(manifest.repo)
        logger.info("Publishing %s@%s (%s)", repo, manifest.sha, manifest.event_type)

        uploaded = self._upload_artifacts(repo, manifest, run_dir)

        key = manifest_key(repo, manifest.sha)
        self.store.put(key, manifest_json(manifest).encode("utf-8"), JSON_CONTENT_TYPE, JSON_CACHE_CONTROL)
        manifest_url = public_url(self.output.public_base_url, key)
        logger.info("Manifest stored at %s", manifest_url)

        attempts = self.synchronizer.sync(repo, RunSummary.from_manifest(manifest, manifest_url))

        if manifest.pr_number:
            self._write_pr_pointer(repo, manifest, manifest_url)

        return PublishResult(
            manifest_url=manifest_url,
            timeline_url=timeline_url(self.output.history_base_url, repo),
            artifacts_uploaded=uploaded,
            index_attempts=len(attempts),
        )

    def _upload_artifacts(self, repo: RepoId, manifest: RunManifest, run_dir: Path) -> int:
        count = 0
        for outcome in manifest.captured_outcomes:
            local_path = run_dir / outcome.image_path
            body = local_path.read_bytes()
            self.store.put(
                artifact_key(repo, manifest.sha, outcome.image_path),
                body, PNG_CONTENT_TYPE, IMMUTABLE_CACHE_CONTROL,
            )
            count += 1
        logger.info("Uploaded %d screenshots", count)
        return count

    def _write_pr_pointer(self, repo: RepoId, manifest: RunManifest, manifest_url: str) -> None:
        pointer = PrPointer(
            repo=manifest.repo,
            pr_number=manifest.pr_number,
            sha=manifest.sha,
            manifest_url=manifest_url,
            updated_at=utc_timestamp(),
        )
        key = pr_pointer_key(repo, manifest.pr_number)
        self.store.put(
            key, json.dumps(pointer.to_json_dict(), indent=2).encode("utf-8"),
            JSON_CONTENT_TYPE, JSON_CACHE_CONTROL,
        )
        logger.info("PR #%d pointer updated (%s)", manifest.pr_number, key)
