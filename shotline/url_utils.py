"""Route canonicalization, stable slugs, and repo ids."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

ROOT_SLUG = "root"

_MULTI_SLASH = re.compile(r"/+")
# Trailing slashes and whitespace go together so a second pass is a no-op.
_TRAILING = re.compile(r"[/\s]+$")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")


class InvalidRepoError(ValueError):
    """Raised when a repository identifier is not in owner/name form."""


def canonicalize_path(path: str) -> str:
    """Normalize a route path for deduplication.

    Strips query and fragment, forces a leading slash, collapses repeated
    slashes and drops the trailing slash (the root stays ``/``).
    """
    if not path:
        return "/"

    normalized = path.split("#", 1)[0].split("?", 1)[0].strip()
    if not normalized.startswith("/"):
        normalized = "/" + normalized

    normalized = _MULTI_SLASH.sub("/", normalized)
    return _TRAILING.sub("", normalized) or "/"


def route_slug(route: str) -> str:
    """Generate a filesystem-safe token for a route.

    The short sha1 suffix is computed from the raw route so that routes whose
    sanitized text coincides (``/project/1`` vs ``/project-1``) never collide.
    """
    if route == "/":
        return ROOT_SLUG

    cleaned = _NON_ALNUM.sub("-", route[1:] if route.startswith("/") else route)
    cleaned = cleaned.strip("-").lower()
    digest = hashlib.sha1(route.encode()).hexdigest()[:8]
    return f"{cleaned or 'route'}-{digest}"


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class RepoId:
    owner: str
    name: str

    @classmethod
    def parse(cls, repo: str) -> "RepoId":
        parts = repo.split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise InvalidRepoError(
                f"Invalid repo '{repo}'. Expected owner/repo format."
            )
        return cls(owner=parts[0], name=parts[1])

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name
