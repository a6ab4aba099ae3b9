"""Tests for configuration models."""

import json

import pytest
from pydantic import ValidationError

from shotline.models.config import (
    CaptureConfig,
    DeviceConfig,
    DiscoveryConfig,
    OutputConfig,
    ProjectConfig,
    ShotlineConfig,
    StorageConfig,
)


class TestDeviceConfig:
    """Tests for DeviceConfig model."""

    def test_custom_values(self):
        device = DeviceConfig(name="tablet", width=768, height=1024)
        assert device.model_dump() == {"name": "tablet", "width": 768, "height": 1024}

    @pytest.mark.parametrize("width,height", [(0, 100), (100, 0), (-1, 100)])
    def test_rejects_non_positive_size(self, width, height):
        with pytest.raises(ValidationError):
            DeviceConfig(name="bad", width=width, height=height)

    def test_rejects_empty_name(self):
        with pytest.raises(ValidationError):
            DeviceConfig(name="", width=100, height=100)

    @pytest.mark.parametrize("name", ["../x", "..", ".", "a/b", "a\\b", ".hidden", "big phone"])
    def test_rejects_names_unsafe_as_directories(self, name):
        with pytest.raises(ValidationError):
            DeviceConfig(name=name, width=100, height=100)

    @pytest.mark.parametrize("name", ["desktop", "iPhone_15-Pro", "tablet.landscape", "4k"])
    def test_accepts_plain_names(self, name):
        assert DeviceConfig(name=name, width=100, height=100).name == name


class TestCaptureConfig:
    """Tests for CaptureConfig model."""

    def test_default_values(self):
        config = CaptureConfig()
        assert [d.name for d in config.devices] == ["desktop", "mobile"]
        assert config.full_page is True
        assert config.timeout_ms == 30000
        assert config.wait_until == "networkidle"
        assert config.disable_animations is True
        assert config.settle_ms == 150
        assert config.max_parallel_devices == 1

    def test_rejects_duplicate_device_names(self):
        with pytest.raises(ValidationError, match="Duplicate device names"):
            CaptureConfig(devices=[
                DeviceConfig(name="desktop", width=1440, height=900),
                DeviceConfig(name="desktop", width=1280, height=720),
            ])

    def test_requires_a_device(self):
        with pytest.raises(ValidationError):
            CaptureConfig(devices=[])

    def test_rejects_unknown_wait_strategy(self):
        with pytest.raises(ValidationError):
            CaptureConfig(wait_until="idle")


class TestProjectConfig:
    def test_accepts_owner_name(self):
        assert ProjectConfig(repo="acme/web").default_branch == "main"

    def test_rejects_bad_repo(self):
        with pytest.raises(ValidationError, match="owner/repo"):
            ProjectConfig(repo="acme")


class TestOutputConfig:
    def test_strips_trailing_slash(self):
        config = OutputConfig(public_base_url="https://assets.example.com/")
        assert config.public_base_url == "https://assets.example.com"

    def test_rejects_non_http_url(self):
        with pytest.raises(ValidationError):
            OutputConfig(public_base_url="assets.example.com")


class TestStorageConfig:
    """Tests for secret resolution in StorageConfig."""

    def test_resolves_env_secret(self, monkeypatch):
        monkeypatch.setenv("R2_SECRET", "s3cr3t")
        config = StorageConfig(backend="r2", secret_access_key="env:R2_SECRET")
        assert config.secret_access_key == "s3cr3t"

    def test_missing_env_secret_fails(self, monkeypatch):
        monkeypatch.delenv("R2_MISSING", raising=False)
        with pytest.raises(ValidationError, match="R2_MISSING"):
            StorageConfig(backend="r2", access_key_id="env:R2_MISSING")

    def test_plain_secret_kept(self):
        assert StorageConfig(access_key_id="AKIA").access_key_id == "AKIA"


class TestShotlineConfig:
    """Tests for the top-level config."""

    def test_defaults(self):
        config = ShotlineConfig(project=ProjectConfig(repo="acme/web"))
        assert config.routes.include == ["/"]
        assert config.routes.exclude == []
        assert config.discovery.sitemap.enabled is True
        assert config.discovery.sitemap.path == "/sitemap.xml"
        assert config.discovery.max_routes == 200
        assert config.storage.backend == "filesystem"
        assert config.publish.index_max_attempts == 3

    def test_rejects_zero_max_routes(self):
        with pytest.raises(ValidationError):
            DiscoveryConfig(max_routes=0)

    def test_save_and_load_json(self, shotline_config, tmp_path):
        path = tmp_path / "nested" / "shotline.json"
        shotline_config.save(path)
        loaded = ShotlineConfig.load(path)
        assert loaded == shotline_config

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "shotline.yml"
        path.write_text(
            "project:\n"
            "  repo: acme/web\n"
            "capture:\n"
            "  devices:\n"
            "    - {name: desktop, width: 1280, height: 720}\n"
            "routes:\n"
            "  include: ['/', '/pricing']\n"
            "  exclude: ['/admin/*']\n"
        )
        config = ShotlineConfig.load(path)
        assert config.project.repo == "acme/web"
        assert [d.name for d in config.capture.devices] == ["desktop"]
        assert config.routes.include == ["/", "/pricing"]

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ShotlineConfig.load(tmp_path / "missing.json")

    def test_load_invalid_config(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"project": {"repo": "not-a-repo"}}))
        with pytest.raises(ValidationError):
            ShotlineConfig.load(path)
