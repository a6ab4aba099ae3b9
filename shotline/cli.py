"""CLI entry point for shotline."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from shotline.github.comment import CommentError, GitHubCommenter
from shotline.models.config import ProjectConfig, ShotlineConfig
from shotline.models.run import RunContext, RunManifest
from shotline.pipeline import Pipeline
from shotline.publish.index_sync import IndexUpdateError
from shotline.publish.store import StoreError
from shotline.url_utils import RepoId

console = Console()

DEFAULT_CONFIG = "shotline.json"
# ValueError covers InvalidRepoError and pydantic's ValidationError.
_FATAL_ERRORS = (FileNotFoundError, ValueError, IndexUpdateError, StoreError, CommentError)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(path: str) -> ShotlineConfig:
    try:
        return ShotlineConfig.load(path)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {path}[/red]")
        console.print("Run 'shotline init' to create a default config.")
        sys.exit(1)
    except ValidationError as e:
        console.print(f"[red]Invalid config {path}:[/red]\n{e}")
        sys.exit(1)


def _fail(error: Exception) -> None:
    console.print(f"[red]shotline error: {error}[/red]")
    sys.exit(1)


def _print_manifest_summary(manifest: RunManifest, out_dir: Path) -> None:
    stats = manifest.stats
    table = Table(title="Capture Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Repo", manifest.repo)
    table.add_row("SHA", manifest.sha)
    table.add_row("Requested", str(stats.routes_requested))
    table.add_row("Captured", f"[green]{stats.routes_captured}[/green]")
    table.add_row("Failed", f"[red]{stats.routes_failed}[/red]")
    table.add_row("Warnings", f"[yellow]{stats.warnings}[/yellow]")
    console.print(table)
    for warning in manifest.warnings:
        console.print(f"  [yellow]warning:[/yellow] {warning}")
    console.print(f"  Run directory: [blue]{out_dir}[/blue]")


def _run_context(
    cfg: ShotlineConfig, base_url: str, sha: str, ref: str, event: str, pr: Optional[int],
) -> RunContext:
    return RunContext(
        repo=cfg.project.repo, sha=sha, ref=ref,
        event_type=event, pr_number=pr, base_url=base_url,
    )


def capture_options(fn):
    fn = click.option("--out", "-o", default="output/run", help="Output run directory")(fn)
    fn = click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")(fn)
    fn = click.option("--pr", type=int, default=None, help="Pull request number")(fn)
    fn = click.option(
        "--event", required=True, type=click.Choice(["preview", "production"]), help="Event type",
    )(fn)
    fn = click.option("--ref", required=True, help="Git ref")(fn)
    fn = click.option("--sha", required=True, help="Git SHA")(fn)
    fn = click.option("--base-url", required=True, help="Deployment URL to capture")(fn)
    return fn


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option("0.1.0", prog_name="shotline")
def cli(verbose: bool) -> None:
    """Capture and publish UI timeline screenshots"""
    setup_logging(verbose)


@cli.command()
@capture_options
def capture(base_url: str, sha: str, ref: str, event: str, pr: Optional[int], config: str, out: str) -> None:
    """Discover routes and capture screenshots into a run directory."""
    cfg = _load_config(config)
    out_dir = Path(out)
    try:
        manifest = Pipeline(cfg).run_capture(_run_context(cfg, base_url, sha, ref, event, pr), out_dir)
    except _FATAL_ERRORS as e:
        _fail(e)
    _print_manifest_summary(manifest, out_dir)


@cli.command()
@click.option("--input", "-i", "input_dir", required=True, help="Run directory containing manifest.json")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def publish(input_dir: str, config: str) -> None:
    """Publish a captured run to the object store."""
    cfg = _load_config(config)
    try:
        result = Pipeline(cfg).run_publish(Path(input_dir))
    except _FATAL_ERRORS as e:
        _fail(e)
    console.print_json(data=result.to_json_dict())


@cli.command()
@capture_options
def run(base_url: str, sha: str, ref: str, event: str, pr: Optional[int], config: str, out: str) -> None:
    """Capture and publish in one step."""
    cfg = _load_config(config)
    out_dir = Path(out)
    try:
        manifest, result = Pipeline(cfg).run_full(
            _run_context(cfg, base_url, sha, ref, event, pr), out_dir,
        )
    except _FATAL_ERRORS as e:
        _fail(e)
    _print_manifest_summary(manifest, out_dir)
    console.print_json(data=result.to_json_dict())


@cli.command("comment-pr")
@click.option("--repo", required=True, help="Repository in owner/repo format")
@click.option("--sha", required=True, help="Commit SHA")
@click.option("--run-url", required=True, help="Run manifest URL")
@click.option("--timeline-url", required=True, help="Timeline URL")
@click.option("--pr", type=int, default=None, help="Pull request number")
@click.option("--token", default=None, help="GitHub token (defaults to GITHUB_TOKEN)")
def comment_pr(repo: str, sha: str, run_url: str, timeline_url: str, pr: Optional[int], token: Optional[str]) -> None:
    """Create or update the shotline comment on a pull request."""
    token = token or os.environ.get("GITHUB_TOKEN")
    if not token:
        _fail(ValueError("Missing GitHub token. Set --token or GITHUB_TOKEN."))

    async def _upsert() -> Optional[int]:
        async with GitHubCommenter(token) as commenter:
            return await commenter.upsert(RepoId.parse(repo), sha, run_url, timeline_url, pr)

    try:
        pr_number = asyncio.run(_upsert())
    except _FATAL_ERRORS as e:
        _fail(e)
    console.print_json(data={"prNumber": pr_number, "updated": bool(pr_number)})


@cli.command()
@click.option("--repo", "-r", prompt="Repository (owner/name)", help="GitHub repository")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def init(repo: str, config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    try:
        cfg = ShotlineConfig(project=ProjectConfig(repo=repo))
    except ValidationError as e:
        _fail(e)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]shotline capture --base-url <url> --sha <sha> --ref <ref> --event preview[/blue]")


if __name__ == "__main__":
    cli()
