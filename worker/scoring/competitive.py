"""Competitive metrics - who else the assistants talk about.

Aggregates competitor names and competitor-owned citations across every
analyzed response of a run, then derives the target's share of voice and
the size of the niche it competes in.

Share of voice counts responses, not occurrences: a competitor named five
times in one answer counts once for that answer, and the target counts once
for every answer that mentions it.

Usage:
    from worker.scoring.competitive import extract_competitive_metrics

    metrics = extract_competitive_metrics(analysis.analyzed)
    print(metrics.share_of_voice)    # 0-1
    print(metrics.niche_size)        # micro | niche | broad
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from worker.analysis.citations import matches_competitor
from worker.analysis.models import AnalyzedResponse, CitationBucket
from worker.context.domains import name_from_domain

logger = structlog.get_logger(__name__)


class NicheSize(StrEnum):
    """How crowded the target's market is."""

    MICRO = "micro"
    NICHE = "niche"
    BROAD = "broad"


# ---------------------------------------------------------------------------
# Niche table
# ---------------------------------------------------------------------------
# Distinct competitors observed -> niche size. Visibility in a broad market
# is harder to earn, so competitive positioning is scaled up there and down
# in a micro market where few alternatives exist.
# ---------------------------------------------------------------------------
MICRO_MAX_COMPETITORS = 3
NICHE_MAX_COMPETITORS = 10

NICHE_MULTIPLIERS: dict[NicheSize, float] = {
    NicheSize.MICRO: 0.8,
    NicheSize.NICHE: 1.0,
    NicheSize.BROAD: 1.3,
}


def classify_niche(competitor_count: int) -> NicheSize:
    """Niche size for a number of distinct competitors."""
    if competitor_count <= MICRO_MAX_COMPETITORS:
        return NicheSize.MICRO
    if competitor_count <= NICHE_MAX_COMPETITORS:
        return NicheSize.NICHE
    return NicheSize.BROAD


def niche_multiplier(niche: NicheSize) -> float:
    """Competitive positioning multiplier for a niche size."""
    return NICHE_MULTIPLIERS[niche]


@dataclass
class CompetitorRecord:
    """A competitor observed during a run (keyed case-insensitively by name)."""

    name: str
    mention_count: int = 0
    domains: set[str] = field(default_factory=set)

    @property
    def key(self) -> str:
        return self.name.lower()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "mention_count": self.mention_count,
            "domains": sorted(self.domains),
        }


@dataclass
class CompetitiveMetrics:
    """Run-wide competitive picture.

    Attributes:
        competitors: Records sorted by mention count, then name.
        target_mentions: Analyzed responses that mention the target.
        target_citations: Owned or operated citations across all responses.
        competitor_mentions: Sum of per-response competitor mentions.
        share_of_voice: target / (target + competitor) mentions, 0 when both are 0.
    """

    competitors: list[CompetitorRecord] = field(default_factory=list)
    analyzed_count: int = 0
    target_mentions: int = 0
    target_citations: int = 0
    competitor_mentions: int = 0
    competitor_citations: int = 0
    share_of_voice: float = 0.0
    niche_size: NicheSize = NicheSize.MICRO
    niche_multiplier: float = NICHE_MULTIPLIERS[NicheSize.MICRO]

    @property
    def total_competitors(self) -> int:
        """Number of distinct competitors observed."""
        return len(self.competitors)

    def top_competitors(self, limit: int = 5) -> list[CompetitorRecord]:
        """Most-mentioned competitors."""
        return self.competitors[:limit]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "competitors": [c.to_dict() for c in self.competitors],
            "total_competitors": self.total_competitors,
            "analyzed_count": self.analyzed_count,
            "target_mentions": self.target_mentions,
            "target_citations": self.target_citations,
            "competitor_mentions": self.competitor_mentions,
            "competitor_citations": self.competitor_citations,
            "share_of_voice": round(self.share_of_voice, 4),
            "niche_size": self.niche_size.value,
            "niche_multiplier": self.niche_multiplier,
        }


class CompetitiveMetricsExtractor:
    """Aggregates competitor signals over analyzed responses."""

    def extract(self, analyzed: list[AnalyzedResponse]) -> CompetitiveMetrics:
        """
        Build competitive metrics for a run.

        Names are aggregated first so that competitor-bucket citations can be
        attached to named records regardless of response order. Citations that
        match no named competitor create a record named after their domain.

        Args:
            analyzed: Every analyzed response of the run

        Returns:
            CompetitiveMetrics
        """
        records: dict[str, CompetitorRecord] = {}
        metrics = CompetitiveMetrics(analyzed_count=len(analyzed))

        for item in analyzed:
            if item.mention.mention_detected:
                metrics.target_mentions += 1

            seen_in_response: set[str] = set()
            for name in item.competitors_mentioned:
                key = name.strip().lower()
                if not key or key in seen_in_response:
                    continue
                seen_in_response.add(key)
                record = records.setdefault(key, CompetitorRecord(name=name.strip()))
                record.mention_count += 1

        for item in analyzed:
            for citation in item.citations:
                if citation.bucket in (CitationBucket.OWNED, CitationBucket.OPERATED):
                    metrics.target_citations += 1
                elif citation.bucket is CitationBucket.COMPETITOR:
                    metrics.competitor_citations += 1
                    self._attach_domain(records, citation.domain)

        metrics.competitors = sorted(
            records.values(), key=lambda r: (-r.mention_count, r.key)
        )
        metrics.competitor_mentions = sum(r.mention_count for r in metrics.competitors)

        voice_total = metrics.target_mentions + metrics.competitor_mentions
        metrics.share_of_voice = metrics.target_mentions / voice_total if voice_total else 0.0
        metrics.niche_size = classify_niche(metrics.total_competitors)
        metrics.niche_multiplier = niche_multiplier(metrics.niche_size)

        logger.debug(
            "competitive_metrics_extracted",
            competitors=metrics.total_competitors,
            target_mentions=metrics.target_mentions,
            competitor_mentions=metrics.competitor_mentions,
            share_of_voice=round(metrics.share_of_voice, 4),
            niche_size=metrics.niche_size.value,
        )
        return metrics

    @staticmethod
    def _attach_domain(records: dict[str, CompetitorRecord], domain: str) -> None:
        if not domain:
            return
        for key in sorted(records):
            record = records[key]
            if domain in record.domains or matches_competitor(domain, record.name):
                record.domains.add(domain)
                return

        name = name_from_domain(domain) or domain
        record = records.setdefault(name.lower(), CompetitorRecord(name=name))
        record.domains.add(domain)


def extract_competitive_metrics(analyzed: list[AnalyzedResponse]) -> CompetitiveMetrics:
    """Convenience function to extract competitive metrics."""
    return CompetitiveMetricsExtractor().extract(analyzed)
