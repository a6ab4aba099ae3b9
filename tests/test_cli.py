"""Tests for the command line interface."""

import json

import pytest
from click.testing import CliRunner

from shotline.cli import cli
from shotline.manifest import build_manifest, write_run_dir
from shotline.models.config import ShotlineConfig, StorageConfig
from shotline.pipeline import Pipeline


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def store_config_file(shotline_config, tmp_path):
    shotline_config.storage = StorageConfig(backend="filesystem", root_dir=str(tmp_path / "store"))
    path = tmp_path / "shotline.json"
    shotline_config.save(path)
    return path


@pytest.fixture
def captured_run(tmp_path, run_context, devices, sample_outcomes):
    run_dir = tmp_path / "run"
    manifest = build_manifest(run_context, ["/", "/dashboard"], devices, sample_outcomes, [])
    for outcome in manifest.captured_outcomes:
        path = run_dir / outcome.image_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"png")
    write_run_dir(run_dir, manifest)
    return run_dir, manifest


class TestInit:
    def test_creates_config(self, runner, tmp_path):
        path = tmp_path / "shotline.json"
        result = runner.invoke(cli, ["init", "--repo", "acme/web", "-c", str(path)])

        assert result.exit_code == 0, result.output
        assert ShotlineConfig.load(path).project.repo == "acme/web"

    def test_prompts_for_repo(self, runner, tmp_path):
        path = tmp_path / "shotline.json"
        result = runner.invoke(cli, ["init", "-c", str(path)], input="acme/web\n")
        assert result.exit_code == 0, result.output
        assert path.exists()

    def test_invalid_repo(self, runner, tmp_path):
        path = tmp_path / "shotline.json"
        result = runner.invoke(cli, ["init", "--repo", "acme", "-c", str(path)])
        assert result.exit_code == 1
        assert not path.exists()

    def test_keeps_existing_file_when_declined(self, runner, tmp_path):
        path = tmp_path / "shotline.json"
        path.write_text("{}")
        result = runner.invoke(cli, ["init", "--repo", "acme/web", "-c", str(path)], input="n\n")
        assert result.exit_code == 0
        assert path.read_text() == "{}"


class TestCapture:
    def test_missing_config(self, runner, tmp_path):
        result = runner.invoke(cli, [
            "capture", "--base-url", "https://x.example.com", "--sha", "abc",
            "--ref", "main", "--event", "production", "-c", str(tmp_path / "missing.json"),
        ])
        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_rejects_unknown_event(self, runner, temp_config_file):
        result = runner.invoke(cli, [
            "capture", "--base-url", "https://x.example.com", "--sha", "abc",
            "--ref", "main", "--event", "staging", "-c", str(temp_config_file),
        ])
        assert result.exit_code == 2

    def test_prints_summary(self, runner, temp_config_file, captured_run, monkeypatch):
        run_dir, manifest = captured_run
        seen = []

        def fake_run_capture(self, context, out_dir):
            seen.append(context)
            return manifest

        monkeypatch.setattr(Pipeline, "run_capture", fake_run_capture)
        result = runner.invoke(cli, [
            "capture", "--base-url", "https://preview.example.com", "--sha", "abc1234",
            "--ref", "refs/heads/feature", "--event", "preview", "--pr", "42",
            "-c", str(temp_config_file), "-o", str(run_dir),
        ])

        assert result.exit_code == 0, result.output
        assert "Capture Summary" in result.output
        assert seen[0].repo == "acme/web"
        assert seen[0].pr_number == 42
        assert seen[0].event_type == "preview"

    def test_non_positive_pr_rejected(self, runner, temp_config_file):
        result = runner.invoke(cli, [
            "capture", "--base-url", "https://x.example.com", "--sha", "abc",
            "--ref", "main", "--event", "preview", "--pr", "0", "-c", str(temp_config_file),
        ])
        assert result.exit_code == 1


class TestPublish:
    def test_publishes_run(self, runner, store_config_file, captured_run, tmp_path):
        run_dir, _ = captured_run
        result = runner.invoke(cli, ["publish", "-i", str(run_dir), "-c", str(store_config_file)])

        assert result.exit_code == 0, result.output
        output = result.output
        payload = json.loads(output[output.index("{"):output.rindex("}") + 1])
        assert payload == {
            "manifestUrl": "https://assets.example.com/repos/acme/web/runs/abc1234/manifest.json",
            "timelineUrl": "https://history.example.com/acme/web",
        }
        assert (tmp_path / "store" / "repos" / "acme" / "web" / "index.json").exists()

    def test_missing_run_directory(self, runner, store_config_file, tmp_path):
        result = runner.invoke(cli, [
            "publish", "-i", str(tmp_path / "nope"), "-c", str(store_config_file),
        ])
        assert result.exit_code == 1
        assert "No manifest found" in result.output


class TestCommentPr:
    def test_requires_token(self, runner, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        result = runner.invoke(cli, [
            "comment-pr", "--repo", "acme/web", "--sha", "abc",
            "--run-url", "https://a/m.json", "--timeline-url", "https://h/acme/web",
        ])
        assert result.exit_code == 1
        assert "GITHUB_TOKEN" in result.output
