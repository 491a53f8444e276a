"""Tests for citation classification."""

import pytest

from worker.analysis.citations import (
    AUTHORITATIVE_INFLUENCE,
    classify_bucket,
    classify_citation,
    classify_citations,
    default_influence,
    is_authoritative,
    is_generic,
    matches_competitor,
)
from worker.analysis.models import CitationBucket, CitationHint, TargetDescriptor
from worker.observation.models import Citation


@pytest.fixture
def target() -> TargetDescriptor:
    """Target with declared domains and mixed competitor names."""
    return TargetDescriptor(
        name="Acme Analytics Inc",
        domain="acme.io",
        aliases=("Acme Analytics", "Acme"),
        competitors=("Globex", "initech.com"),
        owned_domains=("acme.io", "acme-blog.com"),
        operated_domains=("docs.acme.io", "acme.zendesk.com"),
    )


class TestDomainLists:
    """Tests for authoritative and generic domain checks."""

    def test_authoritative(self) -> None:
        """Press, academic and government hosts are authoritative."""
        assert is_authoritative("www.forbes.com")
        assert is_authoritative("cs.stanford.edu")
        assert is_authoritative("data.census.gov")
        assert not is_authoritative("acme.io")

    def test_generic(self) -> None:
        """Platforms hosting everyone's content are generic."""
        assert is_generic("en.wikipedia.org")
        assert is_generic("reddit.com")
        assert not is_generic("globex.com")

    def test_matches_competitor_by_name_or_domain(self) -> None:
        """Names match the domain label, domains match exactly."""
        assert matches_competitor("blog.globex.com", "Globex")
        assert matches_competitor("initech.com", "initech.com")
        assert not matches_competitor("initech.net", "initech.com")
        assert not matches_competitor("hooli.com", "Globex")


class TestClassifyBucket:
    """Tests for classify_bucket."""

    @pytest.mark.parametrize(
        ("domain", "expected"),
        [
            ("acme.io", CitationBucket.OWNED),
            ("www.acme.io", CitationBucket.OWNED),
            ("acme-blog.com", CitationBucket.OWNED),
            ("docs.acme.io", CitationBucket.OPERATED),
            ("acme.zendesk.com", CitationBucket.OPERATED),
            ("acmeanalytics.com", CitationBucket.OWNED),
            ("globex.com", CitationBucket.COMPETITOR),
            ("initech.com", CitationBucket.COMPETITOR),
            ("techcrunch.com", CitationBucket.EARNED),
            ("reddit.com", CitationBucket.EARNED),
        ],
    )
    def test_buckets(
        self, target: TargetDescriptor, domain: str, expected: CitationBucket
    ) -> None:
        """Declared lists first, then name heuristics, else earned."""
        assert classify_bucket(domain, target) == expected

    def test_generic_domain_never_owned_by_name(self, target: TargetDescriptor) -> None:
        """A company subreddit is still earned."""
        assert classify_bucket("acme.reddit.com", target) == CitationBucket.EARNED

    def test_judge_hint_used_for_undeclared(self, target: TargetDescriptor) -> None:
        """A judge bucket beats heuristics."""
        hint = CitationHint(url="https://g2.com/acme", bucket=CitationBucket.COMPETITOR)
        assert classify_bucket("g2.com", target, hint) == CitationBucket.COMPETITOR

    def test_declared_domain_beats_judge(self, target: TargetDescriptor) -> None:
        """The judge cannot relabel a declared domain."""
        hint = CitationHint(url="https://acme.io", bucket=CitationBucket.EARNED)
        assert classify_bucket("acme.io", target, hint) == CitationBucket.OWNED

    def test_short_names_do_not_match(self) -> None:
        """Tiny name tokens would match unrelated domains."""
        target = TargetDescriptor(name="X", domain="x.ai")
        assert classify_bucket("xerox.com", target) == CitationBucket.EARNED


class TestInfluence:
    """Tests for influence scores."""

    def test_defaults_by_bucket(self) -> None:
        """Each bucket has a default influence."""
        assert default_influence("acme.io", CitationBucket.OWNED) == 0.6
        assert default_influence("docs.acme.io", CitationBucket.OPERATED) == 0.5
        assert default_influence("blog.example.com", CitationBucket.EARNED) == 0.5
        assert default_influence("globex.com", CitationBucket.COMPETITOR) == 0.4

    def test_authoritative_override(self) -> None:
        """Authoritative sources carry the highest default."""
        assert default_influence("reuters.com", CitationBucket.EARNED) == AUTHORITATIVE_INFLUENCE

    def test_hint_influence_wins_and_is_clamped(self, target: TargetDescriptor) -> None:
        """Judge influence replaces the default, clamped to 0-1."""
        citation = Citation(url="https://blog.example.com/post", title="Post")
        hint = CitationHint(url=citation.url, influence_score=0.95)

        classified = classify_citation(citation, target, hint)

        assert classified.influence_score == 0.95
        assert classified.bucket == CitationBucket.EARNED
        assert classified.domain == "blog.example.com"
        assert classified.title == "Post"

    def test_classify_citations_matches_hints_by_url(self, target: TargetDescriptor) -> None:
        """Hints are looked up by URL, with or without a trailing slash."""
        citations = [Citation(url="https://example.com/"), Citation(url="https://globex.com")]
        hints = {
            "https://example.com": CitationHint(url="https://example.com", influence_score=0.1)
        }

        classified = classify_citations(citations, target, hints)

        assert [c.influence_score for c in classified] == [0.1, 0.4]
        assert [c.bucket for c in classified] == [CitationBucket.EARNED, CitationBucket.COMPETITOR]
