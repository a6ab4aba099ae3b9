"""Configuration models for shotline."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from shotline.url_utils import RepoId

WaitUntil = Literal["load", "domcontentloaded", "networkidle", "commit"]


def _resolve_env(v: Optional[str]) -> Optional[str]:
    if isinstance(v, str) and v.startswith("env:"):
        env_var = v[4:]
        resolved = os.environ.get(env_var)
        if resolved is None:
            raise ValueError(f"Environment variable '{env_var}' not set")
        return resolved
    return v


class ProjectConfig(BaseModel):
    repo: str
    default_branch: str = "main"

    @field_validator("repo")
    @classmethod
    def validate_repo(cls, v: str) -> str:
        RepoId.parse(v)
        return v


class DeviceConfig(BaseModel):
    # Used as a directory name under shots/.
    name: str = Field(min_length=1, pattern=r"^[A-Za-z0-9_-][A-Za-z0-9._-]*$")
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class CaptureConfig(BaseModel):
    devices: list[DeviceConfig] = Field(
        default_factory=lambda: [
            DeviceConfig(name="desktop", width=1440, height=900),
            DeviceConfig(name="mobile", width=390, height=844),
        ],
        min_length=1,
    )
    full_page: bool = True
    timeout_ms: int = Field(default=30000, gt=0)
    wait_until: WaitUntil = "networkidle"
    disable_animations: bool = True
    settle_ms: int = Field(default=150, ge=0)
    max_parallel_devices: int = Field(default=1, gt=0)

    @field_validator("devices")
    @classmethod
    def unique_device_names(cls, v: list[DeviceConfig]) -> list[DeviceConfig]:
        names = [d.name for d in v]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate device names: {', '.join(dupes)}")
        return v


class RoutesConfig(BaseModel):
    include: list[str] = Field(default_factory=lambda: ["/"])
    exclude: list[str] = Field(default_factory=list)


class SitemapConfig(BaseModel):
    enabled: bool = True
    path: str = "/sitemap.xml"


class DiscoveryConfig(BaseModel):
    sitemap: SitemapConfig = Field(default_factory=SitemapConfig)
    max_routes: int = Field(default=200, gt=0)
    timeout_ms: int = Field(default=10000, gt=0)


class OutputConfig(BaseModel):
    public_base_url: str = "https://assets.shotline.dev"
    history_base_url: str = "https://history.shotline.dev"

    @field_validator("public_base_url", "history_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Expected an http(s) URL, got '{v}'")
        return v.rstrip("/")


class StorageConfig(BaseModel):
    backend: Literal["filesystem", "r2"] = "filesystem"
    root_dir: str = "./shotline-store"

    # R2 / S3-compatible settings
    bucket: Optional[str] = None
    account_id: Optional[str] = None
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    timeout_seconds: float = 30.0

    @field_validator("access_key_id", "secret_access_key", "account_id", mode="before")
    @classmethod
    def resolve_env_secret(cls, v: Optional[str]) -> Optional[str]:
        return _resolve_env(v)


class PublishConfig(BaseModel):
    index_max_attempts: int = Field(default=3, gt=0)
    index_backoff_seconds: float = Field(default=0.25, ge=0)


class ShotlineConfig(BaseModel):
    version: int = 1
    project: ProjectConfig
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    routes: RoutesConfig = Field(default_factory=RoutesConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)

    @classmethod
    def load(cls, path: str | Path) -> "ShotlineConfig":
        """Load config from a JSON or YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, encoding="utf-8") as f:
            if path.suffix in (".yml", ".yaml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(), f, indent=2)
