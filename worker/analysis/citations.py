"""Citation ownership buckets and influence scores."""

import re

from worker.analysis.models import (
    CitationBucket,
    CitationClassification,
    CitationHint,
    TargetDescriptor,
)
from worker.context.domains import domain_matches, normalize_domain, root_domain
from worker.observation.models import Citation

# Press, academic and government sources that carry the most weight
AUTHORITATIVE_DOMAINS = [
    "techcrunch.com",
    "forbes.com",
    "wsj.com",
    "bloomberg.com",
    "reuters.com",
    "nytimes.com",
    "ft.com",
    "harvard.edu",
    "mit.edu",
    "stanford.edu",
]

AUTHORITATIVE_SUFFIXES = (".edu", ".gov")

# Platforms that host everyone's content; never attributed by name match
GENERIC_DOMAINS = [
    "google.com",
    "wikipedia.org",
    "youtube.com",
    "github.com",
    "reddit.com",
    "medium.com",
    "linkedin.com",
    "twitter.com",
    "x.com",
    "facebook.com",
    "quora.com",
    "stackoverflow.com",
    "g2.com",
    "capterra.com",
]

DEFAULT_INFLUENCE = {
    CitationBucket.OWNED: 0.6,
    CitationBucket.OPERATED: 0.5,
    CitationBucket.EARNED: 0.5,
    CitationBucket.COMPETITOR: 0.4,
}

AUTHORITATIVE_INFLUENCE = 0.9

_NON_ALNUM = re.compile(r"[^a-z0-9]")

# Name tokens shorter than this match too many unrelated domains
MIN_NAME_TOKEN = 3


def is_authoritative(domain: str) -> bool:
    """True for press, academic and government domains."""
    host = normalize_domain(domain)
    if host.endswith(AUTHORITATIVE_SUFFIXES):
        return True
    return any(domain_matches(host, candidate) for candidate in AUTHORITATIVE_DOMAINS)


def is_generic(domain: str) -> bool:
    """True for platforms hosting third-party content."""
    return any(domain_matches(domain, candidate) for candidate in GENERIC_DOMAINS)


def _name_token(name: str) -> str:
    return _NON_ALNUM.sub("", name.lower())


def _domain_label(domain: str) -> str:
    return _NON_ALNUM.sub("", root_domain(domain).split(".")[0])


def _name_in_domain(names: tuple[str, ...] | list[str], domain: str) -> bool:
    """True if any name's alphanumeric token appears in the domain's main label."""
    label = _domain_label(domain)
    if not label:
        return False
    for name in names:
        token = _name_token(name)
        if len(token) >= MIN_NAME_TOKEN and token in label:
            return True
    return False


def matches_competitor(domain: str, competitor: str) -> bool:
    """True if a domain belongs to a named competitor (by name or domain)."""
    if "." in competitor and " " not in competitor.strip():
        return domain_matches(domain, competitor)
    return _name_in_domain([competitor], domain)


def classify_bucket(
    domain: str,
    target: TargetDescriptor,
    hint: CitationHint | None = None,
) -> CitationBucket:
    """
    Assign an ownership bucket to a cited domain.

    Declared domains win over the judge, the judge wins over name
    heuristics. Anything unattributed is earned. Operated hosts are checked
    first because they are usually subdomains of an owned domain.
    """
    if any(domain_matches(domain, operated) for operated in target.operated_domains):
        return CitationBucket.OPERATED
    if any(domain_matches(domain, owned) for owned in target.owned_domains):
        return CitationBucket.OWNED
    if hint is not None and hint.bucket is not None:
        return hint.bucket

    if is_generic(domain):
        return CitationBucket.EARNED
    if _name_in_domain((target.name, *target.aliases), domain):
        return CitationBucket.OWNED
    if any(matches_competitor(domain, competitor) for competitor in target.competitors):
        return CitationBucket.COMPETITOR
    return CitationBucket.EARNED


def default_influence(domain: str, bucket: CitationBucket) -> float:
    """Heuristic influence when the judge gives none."""
    if is_authoritative(domain):
        return AUTHORITATIVE_INFLUENCE
    return DEFAULT_INFLUENCE[bucket]


def classify_citation(
    citation: Citation,
    target: TargetDescriptor,
    hint: CitationHint | None = None,
) -> CitationClassification:
    """Classify one cited source for the target company."""
    domain = citation.domain
    bucket = classify_bucket(domain, target, hint)

    influence = default_influence(domain, bucket)
    if hint is not None and hint.influence_score is not None:
        influence = hint.influence_score

    return CitationClassification(
        url=citation.url,
        domain=domain,
        bucket=bucket,
        influence_score=min(1.0, max(0.0, influence)),
        title=citation.title,
    )


def classify_citations(
    citations: list[Citation],
    target: TargetDescriptor,
    hints: dict[str, CitationHint] | None = None,
) -> list[CitationClassification]:
    """Classify every citation of a response, in order."""
    hints = hints or {}
    return [
        classify_citation(c, target, hints.get(c.url) or hints.get(c.url.rstrip("/")))
        for c in citations
    ]
