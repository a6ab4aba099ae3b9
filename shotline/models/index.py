"""Repository index data structures shared by every publish for a repo."""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from shotline.models.run import EventType, RunManifest, _CamelModel


class RunSummary(_CamelModel):
    sha: str
    ref: str
    event_type: EventType
    pr_number: Optional[int] = None
    captured_at: str
    manifest_url: str
    route_count: int = 0

    @classmethod
    def from_manifest(cls, manifest: RunManifest, manifest_url: str) -> "RunSummary":
        return cls(
            sha=manifest.sha,
            ref=manifest.ref,
            event_type=manifest.event_type,
            pr_number=manifest.pr_number,
            captured_at=manifest.captured_at,
            manifest_url=manifest_url,
            route_count=manifest.stats.routes_captured,
        )


class RepoIndex(_CamelModel):
    version: int = 1
    repo: str
    updated_at: str = ""
    runs: tuple[RunSummary, ...] = Field(default_factory=tuple)

    def has_run(self, sha: str) -> bool:
        return any(run.sha == sha for run in self.runs)


class PrPointer(_CamelModel):
    version: int = 1
    repo: str
    pr_number: int
    sha: str
    manifest_url: str
    updated_at: str
