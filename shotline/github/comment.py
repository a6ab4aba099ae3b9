"""Upserts a single marked pull request comment linking the run."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from shotline.url_utils import RepoId

logger = logging.getLogger(__name__)

MARKER = "<!-- shotline-comment -->"
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class CommentError(RuntimeError):
    pass


class RetryableGitHubError(RuntimeError):
    pass


def comment_body(run_url: str, timeline_url: str) -> str:
    return "\n".join([
        MARKER,
        "## UI History",
        "",
        f"- Run: {run_url}",
        f"- Timeline: {timeline_url}",
        "",
        "This is an archive-only snapshot run and does not block merges.",
    ])


class GitHubCommenter:
    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int = 4,
    ) -> None:
        self.max_attempts = max_attempts
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "shotline",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubCommenter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((httpx.TransportError, RetryableGitHubError)),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            stop=stop_after_attempt(self.max_attempts),
            reraise=True,
        ):
            with attempt:
                response = await self._client.request(method, path, **kwargs)
                if response.status_code in RETRYABLE_STATUS:
                    raise RetryableGitHubError(f"GitHub retryable {response.status_code}")
                if response.status_code >= 400:
                    raise CommentError(
                        f"GitHub API error {response.status_code} for {method} {path}"
                    )
                return response.json()
        raise CommentError("GitHub request retries exhausted")

    async def resolve_pr(self, repo: RepoId, sha: str) -> Optional[int]:
        pulls = await self._request("GET", f"/repos/{repo.full_name}/commits/{sha}/pulls")
        return pulls[0]["number"] if pulls else None

    async def upsert(
        self,
        repo: RepoId,
        sha: str,
        run_url: str,
        timeline_url: str,
        pr_number: Optional[int] = None,
    ) -> Optional[int]:
        """Create or update the marked comment. Returns the PR number, or None."""
        if pr_number is None:
            pr_number = await self.resolve_pr(repo, sha)
        if not pr_number:
            logger.info("No pull request associated with %s; skipping comment", sha)
            return None

        comments = await self._request(
            "GET", f"/repos/{repo.full_name}/issues/{pr_number}/comments",
            params={"per_page": 100},
        )
        existing = next((c for c in comments if MARKER in (c.get("body") or "")), None)
        body = comment_body(run_url, timeline_url)

        if existing:
            await self._request(
                "PATCH", f"/repos/{repo.full_name}/issues/comments/{existing['id']}",
                json={"body": body},
            )
            logger.info("Updated comment %s on PR #%d", existing["id"], pr_number)
        else:
            await self._request(
                "POST", f"/repos/{repo.full_name}/issues/{pr_number}/comments",
                json={"body": body},
            )
            logger.info("Created comment on PR #%d", pr_number)
        return pr_number
