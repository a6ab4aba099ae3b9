"""Object key layout shared with the timeline viewer.

    repos/{owner}/{name}/index.json
    repos/{owner}/{name}/runs/{sha}/manifest.json
    repos/{owner}/{name}/runs/{sha}/{artifactPath}
    repos/{owner}/{name}/prs/{prNumber}/latest.json
"""

from __future__ import annotations

from shotline.url_utils import RepoId

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
PNG_CONTENT_TYPE = "image/png"
JSON_CACHE_CONTROL = "public, max-age=60"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


def repo_prefix(repo: RepoId) -> str:
    return f"repos/{repo.owner}/{repo.name}"


def run_prefix(repo: RepoId, sha: str) -> str:
    return f"{repo_prefix(repo)}/runs/{sha}"


def artifact_key(repo: RepoId, sha: str, image_path: str) -> str:
    return f"{run_prefix(repo, sha)}/{image_path.lstrip('/')}"


def manifest_key(repo: RepoId, sha: str) -> str:
    return f"{run_prefix(repo, sha)}/manifest.json"


def index_key(repo: RepoId) -> str:
    return f"{repo_prefix(repo)}/index.json"


def pr_pointer_key(repo: RepoId, pr_number: int) -> str:
    return f"{repo_prefix(repo)}/prs/{pr_number}/latest.json"


def public_url(base_url: str, key: str) -> str:
    return f"{base_url.rstrip('/')}/{key}"


def timeline_url(history_base_url: str, repo: RepoId) -> str:
    return f"{history_base_url.rstrip('/')}/{repo.full_name}"
