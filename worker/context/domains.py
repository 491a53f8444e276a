"""Domain helpers shared by context building and citation classification."""

import re
from urllib.parse import urlparse

# Second-level labels that sit under a country code (example.co.uk)
_COMPOUND_SLDS = {"co", "com", "org", "net", "ac", "gov", "edu"}

_TLD_PATTERN = re.compile(r"\.(com|io|ai|net|org|co|dev|app|tech|so)$")


def normalize_domain(value: str) -> str:
    """Reduce a URL or host to a bare lowercase host without ``www.``."""
    value = value.strip().lower()
    if not value:
        return ""
    if "://" not in value:
        value = f"//{value}"
    host = urlparse(value).hostname or ""
    if host.startswith("www."):
        host = host[4:]
    return host.rstrip(".")


def root_domain(host: str) -> str:
    """Return the registrable part of a host (app.acme.co.uk -> acme.co.uk)."""
    labels = normalize_domain(host).split(".")
    if len(labels) <= 2:
        return ".".join(labels)
    if labels[-2] in _COMPOUND_SLDS and len(labels[-1]) == 2:
        return ".".join(labels[-3:])
    return ".".join(labels[-2:])


def domain_matches(host: str, candidate: str) -> bool:
    """True if host equals candidate or is a subdomain of it."""
    host = normalize_domain(host)
    candidate = normalize_domain(candidate)
    if not host or not candidate:
        return False
    return host == candidate or host.endswith(f".{candidate}")


def name_from_domain(host: str) -> str:
    """Guess a display name from a domain (notion.so -> Notion)."""
    base = root_domain(host).split(".")[0]
    base = _TLD_PATTERN.sub("", base)
    return base[:1].upper() + base[1:]
