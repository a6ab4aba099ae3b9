"""Capture run data structures: per-route outcomes and the run manifest."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

EventType = Literal["preview", "production"]

DISCOVERY_ROUTE = "_discovery"
DISCOVERY_DEVICE = "system"


class _CamelModel(BaseModel):
    """Base for persisted records; JSON uses camelCase keys for the viewer."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CaptureOutcome(_CamelModel):
    path: str
    device: str
    status: Literal["ok", "error"]
    image_path: Optional[str] = None  # relative to the run directory
    image_sha256: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def check_status_fields(self) -> "CaptureOutcome":
        if self.status == "ok":
            if not self.image_path or not self.image_sha256 or self.error is not None:
                raise ValueError("ok outcome requires imagePath and imageSha256 and no error")
        else:
            if not self.error or self.image_path is not None or self.image_sha256 is not None:
                raise ValueError("error outcome requires an error message and no image")
        return self

    @classmethod
    def ok(cls, path: str, device: str, image_path: str, image_sha256: str) -> "CaptureOutcome":
        return cls(
            path=path, device=device, status="ok",
            image_path=image_path, image_sha256=image_sha256,
        )

    @classmethod
    def failed(cls, path: str, device: str, error: str) -> "CaptureOutcome":
        return cls(path=path, device=device, status="error", error=error or "Unknown error")

    @property
    def is_discovery_warning(self) -> bool:
        return self.path == DISCOVERY_ROUTE and self.device == DISCOVERY_DEVICE


class RunStats(_CamelModel):
    routes_requested: int = 0
    routes_captured: int = 0
    routes_failed: int = 0
    warnings: int = 0


class RunContext(BaseModel):
    """Identity of the deployment being captured."""

    repo: str
    sha: str
    ref: str
    event_type: EventType
    pr_number: Optional[int] = Field(default=None, gt=0)
    base_url: str


class RunManifest(_CamelModel):
    version: int = 1
    repo: str
    sha: str
    ref: str
    event_type: EventType
    pr_number: Optional[int] = None
    base_url: str
    captured_at: str  # ISO timestamp
    routes: tuple[CaptureOutcome, ...] = ()
    warnings: tuple[str, ...] = ()
    stats: RunStats = Field(default_factory=RunStats)

    @property
    def concrete_outcomes(self) -> list[CaptureOutcome]:
        return [o for o in self.routes if not o.is_discovery_warning]

    @property
    def captured_outcomes(self) -> list[CaptureOutcome]:
        return [o for o in self.concrete_outcomes if o.status == "ok"]
