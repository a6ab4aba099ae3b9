"""Turns sitemap.xml into same-origin canonical routes."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from urllib.parse import urlparse

import httpx

from shotline.url_utils import canonicalize_path

logger = logging.getLogger(__name__)

USER_AGENT = "shotline-bot/0.1"

_DEFAULT_PORTS = {"http": 80, "https": 443}


class SitemapError(ValueError):
    """Raised when a sitemap document cannot be parsed at all."""


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _origin(url: str) -> tuple[str, str, int]:
    """Return (scheme, host, port) with the default port filled in.

    Raises ValueError for URLs that have no scheme/host or a bad port.
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    if scheme not in _DEFAULT_PORTS or not parsed.hostname:
        raise ValueError(f"Not an absolute http(s) URL: {url!r}")
    port = parsed.port or _DEFAULT_PORTS[scheme]
    return scheme, parsed.hostname.lower(), port


def _iter_locs(root: ET.Element):
    for url_el in root.iter():
        if _local_name(url_el.tag) != "url":
            continue
        for child in url_el:
            if _local_name(child.tag) == "loc" and child.text:
                yield child.text.strip()


def parse_sitemap_routes(xml: str, base_url: str) -> list[str]:
    """Extract canonical routes for every same-origin <loc> in a sitemap.

    Entries that are malformed or point at another origin are skipped.
    Order follows the document, with duplicates removed.
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        raise SitemapError(f"Invalid sitemap XML: {e}") from e

    base_origin = _origin(base_url)
    routes: dict[str, None] = {}
    for loc in _iter_locs(root):
        try:
            if _origin(loc) != base_origin:
                continue
            routes.setdefault(canonicalize_path(urlparse(loc).path), None)
        except ValueError:
            logger.debug("Skipping malformed sitemap entry: %s", loc)
    return list(routes)


async def fetch_sitemap(client: httpx.AsyncClient, sitemap_url: str) -> str:
    """Fetch a sitemap body. Raises httpx errors on transport or status failure."""
    response = await client.get(sitemap_url, headers={"user-agent": USER_AGENT})
    response.raise_for_status()
    return response.text
