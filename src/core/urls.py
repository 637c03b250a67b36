"""
URL helpers shared by extractors.

Domains are reduced to the registered domain (eTLD+1) using tldextract's
bundled public suffix snapshot, so extraction never touches the network.
"""

from __future__ import annotations

import ipaddress
import re
from functools import lru_cache
from urllib.parse import urlsplit

import tldextract

from .logging import get_logger

LOGGER = get_logger("core.urls")

# Empty suffix_list_urls keeps tldextract on the snapshot shipped with the package
_EXTRACTOR = tldextract.TLDExtract(suffix_list_urls=())

_HOST_RE = re.compile(r"^[\w-]+(\.[\w-]+)*$")


def _host_of(url: str) -> str:
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except ValueError:
        return ""
    if host is None and "://" not in url:
        # Bare "example.com/path" style values
        try:
            host = urlsplit(f"//{url.strip()}").hostname
        except ValueError:
            return ""
    host = (host or "").rstrip(".").lower()
    if host and not _HOST_RE.match(host):
        try:
            ipaddress.ip_address(host)
        except ValueError:
            return ""
    return host


@lru_cache(maxsize=4096)
def extract_domain(url: str) -> str:
    """
    Derive the registered domain of ``url``.

    Examples:
        http://www.example.com/a -> example.com
        https://accounts.google.co.uk -> google.co.uk
        http://192.168.1.1/admin -> 192.168.1.1

    Returns:
        Domain string, or "" when the url has no usable host
    """
    if not url:
        return ""

    host = _host_of(url)
    if not host:
        return ""

    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        pass

    extracted = _EXTRACTOR(host)
    if extracted.domain and extracted.suffix:
        return f"{extracted.domain}.{extracted.suffix}"
    if extracted.domain:
        return extracted.domain
    LOGGER.debug("No registrable domain in host %r", host)
    return host
