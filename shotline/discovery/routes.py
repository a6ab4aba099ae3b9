"""Route discovery: configured routes plus sitemap routes, filtered and capped."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urljoin

import httpx
from wcmatch import glob

from shotline.models.config import ShotlineConfig
from shotline.url_utils import canonicalize_path

from .sitemap import SitemapError, fetch_sitemap, parse_sitemap_routes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryResult:
    routes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# "*" stays within one path segment; "**" may span several.
_EXCLUDE_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.DOTGLOB | glob.IGNORECASE | glob.FORCEUNIX


def _is_excluded(route: str, patterns: list[str]) -> bool:
    return bool(patterns) and glob.globmatch(route, patterns, flags=_EXCLUDE_FLAGS)


def apply_route_filters(
    routes: list[str], exclude_patterns: list[str], max_routes: int
) -> list[str]:
    """Drop excluded routes, sort ascending, then cap at ``max_routes``.

    The cap is applied after sorting, so which routes survive it depends only
    on the route names, not on the order they were discovered in.
    """
    kept = sorted(r for r in routes if not _is_excluded(r, exclude_patterns))
    return kept[:max_routes]


async def _sitemap_routes(
    client: httpx.AsyncClient, sitemap_url: str, base_url: str
) -> tuple[list[str], Optional[str]]:
    """Return (routes, warning) for a sitemap; never raises for sitemap problems."""
    try:
        xml = await fetch_sitemap(client, sitemap_url)
    except httpx.HTTPStatusError as e:
        return [], f"Sitemap request failed ({e.response.status_code}) at {sitemap_url}"
    except httpx.HTTPError as e:
        return [], f"Sitemap fetch failed at {sitemap_url}: {str(e) or type(e).__name__}"

    try:
        return parse_sitemap_routes(xml, base_url), None
    except SitemapError as e:
        return [], f"Sitemap parse failed at {sitemap_url}: {e}"


async def discover_routes(
    config: ShotlineConfig,
    base_url: str,
    client: httpx.AsyncClient | None = None,
) -> DiscoveryResult:
    """Build the route list for a run.

    Sitemap failures are reported as warnings; the run continues with the
    configured include routes.
    """
    warnings: list[str] = []
    route_set = {canonicalize_path(r) for r in config.routes.include}
    logger.debug("Configured routes: %s", sorted(route_set))

    sitemap = config.discovery.sitemap
    if sitemap.enabled:
        sitemap_url = urljoin(base_url, sitemap.path)
        logger.info("Fetching sitemap %s", sitemap_url)
        if client is None:
            timeout = config.discovery.timeout_ms / 1000
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned:
                found, warning = await _sitemap_routes(owned, sitemap_url, base_url)
        else:
            found, warning = await _sitemap_routes(client, sitemap_url, base_url)

        if warning:
            logger.warning(warning)
            warnings.append(warning)
        else:
            logger.info("Sitemap yielded %d routes", len(found))
        route_set.update(found)

    routes = apply_route_filters(
        list(route_set), config.routes.exclude, config.discovery.max_routes
    )
    if len(routes) < len(route_set):
        logger.info(
            "Route filters kept %d of %d routes (max_routes=%d)",
            len(routes), len(route_set), config.discovery.max_routes,
        )
    return DiscoveryResult(routes=routes, warnings=warnings)
