"""URL canonicalization, domain-level dedup and noisy-host filtering.

Pure functions, no I/O. Applied before any fetch so that social media,
video platforms and forum landing pages never reach the extractor.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# Hosts where distinct paths are distinct resources (repos, docs, decks);
# these dedup by full normalized URL instead of by host.
PATH_SENSITIVE_HOSTS: frozenset[str] = frozenset(
    {
        "github.com",
        "gist.github.com",
        "raw.githubusercontent.com",
        "github.io",
        "gitlab.com",
        "bitbucket.org",
        "docs.google.com",
        "drive.google.com",
        "slides.com",
        "speakerdeck.com",
        "slideshare.net",
        "dropbox.com",
        "notion.site",
    }
)

NOISY_HOSTS: frozenset[str] = frozenset(
    {
        "facebook.com",
        "twitter.com",
        "x.com",
        "instagram.com",
        "linkedin.com",
        "tiktok.com",
        "pinterest.com",
        "reddit.com",
        "quora.com",
        "youtube.com",
        "youtu.be",
        "vimeo.com",
        "bilibili.com",
        "twitch.tv",
        "medium.com",
        "substack.com",
        "blogspot.com",
        "wordpress.com",
        "tumblr.com",
    }
)

FORUM_HOSTS: frozenset[str] = frozenset(
    {
        "discord.com",
        "discord.gg",
        "piazza.com",
        "slack.com",
        "campuswire.com",
        "groups.google.com",
    }
)

_FORUM_RESOURCE_RE = re.compile(r"^/(invite|join|class|signup|g|forum)/[\w.-]+", re.I)
_TRACKING_PARAM_RE = re.compile(r"^(utm_\w+|fbclid|gclid|ref_src)$", re.I)
_DEFAULT_PORTS = {"http": 80, "https": 443}
_SECOND_LEVEL_LABELS = frozenset({"ac", "co", "com", "edu", "gov", "net", "org"})


def normalize_url(url: str) -> str | None:
    """Canonicalize an absolute http(s) URL.

    Lowercases scheme and host, drops default ports, fragments, tracking
    query parameters and trailing slashes. Returns None for anything that
    is not an absolute http(s) URL.
    """
    if not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if scheme not in _DEFAULT_PORTS or not host:
        return None

    netloc = host
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f"{host}:{port}"

    path = parts.path or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"

    query_pairs = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if not _TRACKING_PARAM_RE.match(key)
    ]
    query = urlencode(query_pairs)
    return urlunsplit((scheme, netloc, path, query, ""))


def host_key(url: str) -> str:
    """Hostname without scheme, port and leading ``www.``; '' if unparsable."""
    try:
        host = (urlsplit(url.strip()).hostname or "").lower()
    except ValueError:
        return ""
    return host.removeprefix("www.")


def host_matches(host: str, candidates: Iterable[str]) -> bool:
    """True when host equals or is a subdomain of any candidate."""
    return any(host == c or host.endswith(f".{c}") for c in candidates)


def is_path_sensitive(url: str) -> bool:
    return host_matches(host_key(url), PATH_SENSITIVE_HOSTS)


def site_key(host: str) -> str:
    """Registrable-domain approximation: ``cs.example.edu`` -> ``example.edu``."""
    labels = host.removeprefix("www.").split(".")
    if (
        len(labels) >= 3
        and len(labels[-1]) == 2
        and labels[-2] in _SECOND_LEVEL_LABELS
    ):
        return ".".join(labels[-3:])
    return ".".join(labels[-2:])


def is_same_site(url_a: str, url_b: str) -> bool:
    host_a, host_b = host_key(url_a), host_key(url_b)
    return bool(host_a) and site_key(host_a) == site_key(host_b)


def is_noisy(url: str) -> bool:
    """True for social/video/blogging hosts and forum landing pages.

    Forum-style hosts are kept only when the path points at an invite or
    a specific class/resource.
    """
    normalized = normalize_url(url)
    if normalized is None:
        return True
    host = host_key(normalized)
    if host_matches(host, NOISY_HOSTS):
        return True
    if host_matches(host, FORUM_HOSTS):
        path = urlsplit(normalized).path
        if host == "discord.gg":
            return not path.strip("/")
        return not _FORUM_RESOURCE_RE.match(path)
    return False


def normalize_domain(urls: Iterable[str]) -> list[str]:
    """Normalize and dedup URLs, keeping first-seen order.

    Dedups by host, except for path-sensitive hosts which dedup by the full
    normalized URL. Invalid URLs are dropped.
    """
    seen: set[str] = set()
    out: list[str] = []
    for raw in urls:
        url = normalize_url(raw)
        if url is None:
            continue
        host = host_key(url)
        key = url.lower() if host_matches(host, PATH_SENSITIVE_HOSTS) else host
        if key in seen:
            continue
        seen.add(key)
        out.append(url)
    return out


def dedupe_urls(urls: Iterable[str]) -> list[str]:
    """Normalize and dedup by exact normalized URL, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for raw in urls:
        url = normalize_url(raw)
        if url is None or url.lower() in seen:
            continue
        seen.add(url.lower())
        out.append(url)
    return out
