"""Judgment services - grade one answer for mentions of a target company.

The judge's output is untrusted. Services return either a dict or the raw
text the model produced; ``worker.analysis.analyzer`` does the parsing.
"""

import asyncio
import copy
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from api.exceptions import ExternalServiceError
from worker.analysis.models import TargetDescriptor
from worker.context.builder import generate_name_variations
from worker.observation.models import Citation

JUDGE_SYSTEM_PROMPT = """You grade AI assistant answers for brand visibility.
Return a single JSON object and nothing else, with these keys:
  "mention_detected": true or false - is the target company named?
  "position": "primary" | "secondary" | "passing" | "none"
  "sentiment": "very_positive" | "positive" | "neutral" | "negative" | "very_negative"
  "confidence": number from 0 to 1
  "context_excerpt": the sentence that names the target, or ""
  "citations": list of {"url", "bucket", "influence_score"} where bucket is
      "owned" | "operated" | "earned" | "competitor" relative to the target
  "competitors": names of other companies in the target's market that the answer names
"""

JUDGE_USER_TEMPLATE = """Target company: {name}
Domain: {domain}
Also known as: {aliases}
Known competitors: {competitors}
Owned domains: {owned}
Operated domains: {operated}

Cited sources:
{citations}

Answer to grade:
\"\"\"
{answer}
\"\"\"
"""


def build_judge_messages(
    response_text: str,
    target: TargetDescriptor,
    citations: list[Citation],
) -> list[dict[str, str]]:
    """Chat messages asking a model to grade one answer."""
    cited = "\n".join(f"- {c.url}" for c in citations) or "(none)"
    user = JUDGE_USER_TEMPLATE.format(
        name=target.name,
        domain=target.domain,
        aliases=", ".join(target.aliases) or "(none)",
        competitors=", ".join(target.competitors) or "(unknown)",
        owned=", ".join(target.owned_domains) or "(none)",
        operated=", ".join(target.operated_domains) or "(none)",
        citations=cited,
        answer=response_text,
    )
    return [
        {"role": "system", "content": JUDGE_SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]


class JudgmentService(ABC):
    """Abstract base class for answer graders."""

    name: str = "judge"

    @abstractmethod
    async def analyze(
        self,
        response_text: str,
        target: TargetDescriptor,
        citations: list[Citation],
    ) -> dict | str:
        """Grade one answer. The result is parsed defensively by the caller."""
        ...


@dataclass
class LLMJudgmentConfig:
    """Configuration for an OpenAI-compatible judge."""

    api_key: str = ""
    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "openai/gpt-4o-mini"
    timeout_seconds: float = 45.0
    max_tokens: int = 600

    # Injected transport (tests use httpx.MockTransport)
    transport: httpx.AsyncBaseTransport | None = None


class LLMJudgmentService(JudgmentService):
    """Judge backed by a chat completion model in JSON mode."""

    name = "llm"

    def __init__(self, config: LLMJudgmentConfig):
        self.config = config

    async def analyze(
        self,
        response_text: str,
        target: TargetDescriptor,
        citations: list[Citation],
    ) -> dict | str:
        """Ask the model for a JSON judgment and return its raw text."""
        payload = {
            "model": self.config.model,
            "messages": build_judge_messages(response_text, target, citations),
            "temperature": 0.0,
            "max_tokens": self.config.max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            transport=self.config.transport,
        ) as client:
            response = await client.post(
                f"{self.config.base_url}/chat/completions",
                headers=headers,
                json=payload,
            )

        if response.status_code != 200:
            raise ExternalServiceError(
                "judge", f"HTTP {response.status_code}: {response.text[:200]}"
            )

        data = response.json()
        content: str = data["choices"][0]["message"]["content"] or ""
        return content


class HeuristicJudgmentService(JudgmentService):
    """Deterministic rule-based judge for offline runs."""

    name = "heuristic"

    # Hedging phrases indicating uncertainty
    HEDGING_PHRASES = [
        "i'm not sure",
        "i don't know",
        "i cannot confirm",
        "it's unclear",
        "may or may not",
        "might be",
        "could be",
        "possibly",
        "perhaps",
        "it seems",
        "appears to be",
        "reportedly",
        "i believe",
        "as far as i know",
        "to my knowledge",
    ]

    # Certainty phrases indicating confidence
    CERTAINTY_PHRASES = [
        "definitely",
        "certainly",
        "absolutely",
        "without a doubt",
        "clearly",
        "undoubtedly",
        "in fact",
        "indeed",
    ]

    POSITIVE_INDICATORS = [
        "excellent",
        "great",
        "outstanding",
        "impressive",
        "innovative",
        "leading",
        "best",
        "top",
        "trusted",
        "reliable",
        "recommended",
        "popular",
        "powerful",
        "award-winning",
        "effective",
        "easy to use",
        "standout",
    ]

    NEGATIVE_INDICATORS = [
        "poor",
        "bad",
        "disappointing",
        "problematic",
        "issues",
        "complaints",
        "criticized",
        "concerns",
        "lacking",
        "limited",
        "struggling",
        "unreliable",
        "expensive",
        "outdated",
        "avoid",
        "inferior",
    ]

    # Share of the answer before which a first mention counts as leading
    PRIMARY_CUTOFF = 0.25
    SECONDARY_CUTOFF = 0.6

    async def analyze(
        self,
        response_text: str,
        target: TargetDescriptor,
        citations: list[Citation],
    ) -> dict | str:
        """Grade an answer with phrase lists and name variations."""
        text_lower = response_text.lower()
        offsets = self._find_mentions(text_lower, target)
        competitors = [
            name
            for name in target.competitors
            if self._word_pattern(name.lower()).search(text_lower)
        ]
        hedging = [p for p in self.HEDGING_PHRASES if p in text_lower]
        certainty = [p for p in self.CERTAINTY_PHRASES if p in text_lower]

        if not offsets:
            return {
                "mention_detected": False,
                "position": "none",
                "sentiment": "neutral",
                "confidence": self._confidence(0.8, hedging, certainty),
                "context_excerpt": "",
                "citations": [],
                "competitors": competitors,
            }

        first = offsets[0]
        excerpt = self._sentence_at(response_text, first)
        mention_sentences = " ".join(
            self._sentence_at(response_text, offset).lower() for offset in offsets
        )

        return {
            "mention_detected": True,
            "position": self._position(first, len(offsets), len(response_text)),
            "sentiment": self._sentiment(mention_sentences),
            "confidence": self._confidence(0.9, hedging, certainty),
            "context_excerpt": excerpt,
            "citations": [],
            "competitors": competitors,
        }

    @staticmethod
    def _word_pattern(term: str) -> re.Pattern[str]:
        return re.compile(rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])")

    def _find_mentions(self, text_lower: str, target: TargetDescriptor) -> list[int]:
        """Character offsets of every name, alias or domain mention."""
        terms: set[str] = set()
        for name in (target.name, *target.aliases):
            terms.update(v.lower() for v in generate_name_variations(name) if len(v) >= 2)
        if target.domain:
            terms.add(target.domain.lower())

        offsets: set[int] = set()
        for term in terms:
            for match in self._word_pattern(term).finditer(text_lower):
                offsets.add(match.start())
        return sorted(offsets)

    def _position(self, first_offset: int, count: int, length: int) -> str:
        """Prominence from where the first mention sits and how often it recurs."""
        share = first_offset / max(length, 1)
        if share <= self.PRIMARY_CUTOFF or count >= 3:
            return "primary"
        if share <= self.SECONDARY_CUTOFF or count >= 2:
            return "secondary"
        return "passing"

    def _sentiment(self, mention_text: str) -> str:
        """Five-level sentiment from indicator words near the mentions."""
        positive = sum(1 for word in self.POSITIVE_INDICATORS if word in mention_text)
        negative = sum(1 for word in self.NEGATIVE_INDICATORS if word in mention_text)
        total = positive + negative
        if total == 0:
            return "neutral"

        score = (positive - negative) / total
        if score >= 0.6 and positive >= 2:
            return "very_positive"
        if score > 0.3:
            return "positive"
        if score <= -0.6 and negative >= 2:
            return "very_negative"
        if score < -0.3:
            return "negative"
        return "neutral"

    @staticmethod
    def _confidence(base: float, hedging: list[str], certainty: list[str]) -> float:
        """Lower confidence for hedged answers, raise it slightly for assertive ones."""
        value = base - 0.1 * min(len(hedging), 3) + 0.05 * min(len(certainty), 2)
        return round(min(1.0, max(0.1, value)), 3)

    @staticmethod
    def _sentence_at(text: str, offset: int) -> str:
        """The sentence containing a character offset."""
        start = max(text.rfind(". ", 0, offset), text.rfind("\n", 0, offset))
        start = 0 if start < 0 else start + 1
        end_candidates = [i for i in (text.find(". ", offset), text.find("\n", offset)) if i >= 0]
        end = min(end_candidates) + 1 if end_candidates else len(text)
        return text[start:end].strip()[:300]


class MockJudgmentService(JudgmentService):
    """Mock judge for testing.

    Presets are keyed by answer text. Unmatched answers fall back to the
    heuristic judge so mock runs still produce meaningful analyses.
    """

    name = "mock"

    def __init__(self) -> None:
        self.responses: dict[str, dict | str] = {}
        self.failing_texts: set[str] = set()
        self.should_fail: bool = False
        self.fail_count: int = 0
        self.delay_seconds: float = 0.0
        self.calls: list[str] = []
        self._fallback = HeuristicJudgmentService()

    def set_response(self, response_text: str, payload: dict | str) -> None:
        """Return a fixed judgment for an answer text."""
        self.responses[response_text] = payload

    def set_failure_mode(self, should_fail: bool, fail_count: int = 1) -> None:
        """Raise on the next ``fail_count`` calls."""
        self.should_fail = should_fail
        self.fail_count = fail_count

    def fail_text(self, response_text: str) -> None:
        """Always raise for one answer text."""
        self.failing_texts.add(response_text)

    async def analyze(
        self,
        response_text: str,
        target: TargetDescriptor,
        citations: list[Citation],
    ) -> dict | str:
        """Return a preset judgment, or the heuristic one."""
        self.calls.append(response_text)

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if response_text in self.failing_texts:
            raise ExternalServiceError("judge", "Simulated judge failure")

        if self.should_fail and self.fail_count > 0:
            self.fail_count -= 1
            raise ExternalServiceError("judge", "Simulated judge failure")

        if response_text in self.responses:
            preset = self.responses[response_text]
            return copy.deepcopy(preset)

        return await self._fallback.analyze(response_text, target, citations)


def get_judgment_service(
    provider: str,
    config: LLMJudgmentConfig | None = None,
) -> JudgmentService:
    """Factory function to get a judgment service."""
    if provider in ("openrouter", "openai"):
        config = config or LLMJudgmentConfig()
        if provider == "openai" and "openrouter" in config.base_url:
            config.base_url = "https://api.openai.com/v1"
            config.model = config.model.removeprefix("openai/")
        return LLMJudgmentService(config)
    if provider == "heuristic":
        return HeuristicJudgmentService()
    if provider == "mock":
        return MockJudgmentService()
    raise ValueError(f"Unknown judgment provider: {provider}")
