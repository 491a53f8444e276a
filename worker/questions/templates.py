"""Question types, weight tables and conversational templates.

The five question types differ in how much they "give away" the target:
a direct question names the company, so a mention there is weak evidence
of organic visibility, while an explanatory question never names it, so
being volunteered there is strong evidence.
"""

from dataclasses import dataclass, field
from enum import StrEnum


class QuestionType(StrEnum):
    """Probe question classes, easiest first."""

    DIRECT_CONVERSATIONAL = "direct_conversational"
    COMPARISON_QUERY = "comparison_query"
    INDIRECT_CONVERSATIONAL = "indirect_conversational"
    RECOMMENDATION_REQUEST = "recommendation_request"
    EXPLANATORY_QUERY = "explanatory_query"


# Difficulty weights used when scoring mentions
DIFFICULTY_WEIGHTS: dict[QuestionType, float] = {
    QuestionType.DIRECT_CONVERSATIONAL: 0.2,
    QuestionType.COMPARISON_QUERY: 0.5,
    QuestionType.INDIRECT_CONVERSATIONAL: 1.0,
    QuestionType.RECOMMENDATION_REQUEST: 1.5,
    QuestionType.EXPLANATORY_QUERY: 2.0,
}

# Share of the question set drawn from each type (insertion order breaks ties)
QUESTION_MIX: dict[QuestionType, float] = {
    QuestionType.DIRECT_CONVERSATIONAL: 0.30,
    QuestionType.INDIRECT_CONVERSATIONAL: 0.25,
    QuestionType.COMPARISON_QUERY: 0.20,
    QuestionType.RECOMMENDATION_REQUEST: 0.15,
    QuestionType.EXPLANATORY_QUERY: 0.10,
}


@dataclass(frozen=True)
class QuestionTemplate:
    """A conversational question template."""

    id: str
    template: str
    type: QuestionType
    variables: tuple[str, ...] = field(default_factory=tuple)
    weight: float = 1.0  # Selection priority within its type

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "template": self.template,
            "type": self.type.value,
            "variables": list(self.variables),
            "weight": self.weight,
        }


def _t(
    template_id: str,
    text: str,
    qtype: QuestionType,
    *variables: str,
    weight: float = 1.0,
) -> QuestionTemplate:
    return QuestionTemplate(
        id=template_id,
        template=text,
        type=qtype,
        variables=variables,
        weight=weight,
    )


_D = QuestionType.DIRECT_CONVERSATIONAL
_I = QuestionType.INDIRECT_CONVERSATIONAL
_C = QuestionType.COMPARISON_QUERY
_R = QuestionType.RECOMMENDATION_REQUEST
_E = QuestionType.EXPLANATORY_QUERY

QUESTION_TEMPLATES: list[QuestionTemplate] = [
    # === DIRECT CONVERSATIONAL (names the company) ===
    _t(
        "direct-eval-01",
        "Help me understand what {company} does and if it's right for {use_case}",
        _D,
        "company",
        "use_case",
    ),
    _t(
        "direct-eval-02",
        "I'm evaluating {company} for our {company_size} - what should I know about pricing and features?",
        _D,
        "company",
        "company_size",
    ),
    _t(
        "direct-decision-01",
        "What are the pros and cons of choosing {company} in the {category} space?",
        _D,
        "company",
        "category",
    ),
    _t(
        "direct-choice-01",
        "Is {company} a good choice for {use_case}?",
        _D,
        "company",
        "use_case",
    ),
    _t(
        "direct-approach-01",
        "Walk me through how {company} approaches {problem}",
        _D,
        "company",
        "problem",
        weight=0.8,
    ),
    _t(
        "direct-investment-01",
        "Is {company} worth the investment for a {company_size}?",
        _D,
        "company",
        "company_size",
        weight=0.9,
    ),
    _t(
        "direct-implement-01",
        "If I choose {company}, what should I know about getting started?",
        _D,
        "company",
        weight=0.8,
    ),
    _t(
        "direct-reviews-01",
        "What do people say about {company}? Is it trustworthy?",
        _D,
        "company",
        weight=0.9,
    ),
    # === INDIRECT CONVERSATIONAL (category, no company name) ===
    _t(
        "indirect-options-01",
        "I need to choose the best {category} for my team - what are my options?",
        _I,
        "category",
    ),
    _t(
        "indirect-criteria-01",
        "What should I look for when evaluating {category} tools?",
        _I,
        "category",
    ),
    _t(
        "indirect-landscape-01",
        "Help me understand the landscape of {category} solutions and the key players",
        _I,
        "category",
    ),
    _t(
        "indirect-audience-01",
        "What tools do {audience} typically use for {use_case}?",
        _I,
        "audience",
        "use_case",
        weight=0.9,
    ),
    _t(
        "indirect-problem-01",
        "We keep struggling with {problem}. Which products actually solve this?",
        _I,
        "problem",
    ),
    _t(
        "indirect-switch-01",
        "We're outgrowing our current {category}. What are teams switching to?",
        _I,
        "category",
        weight=0.8,
    ),
    # === COMPARISON QUERY (company versus named alternatives) ===
    _t(
        "comparison-head-01",
        "Compare {company} vs {competitor} for {use_case}",
        _C,
        "company",
        "competitor",
        "use_case",
    ),
    _t(
        "comparison-head-02",
        "{company} or {competitor}: which one is better for a {company_size}?",
        _C,
        "company",
        "competitor",
        "company_size",
    ),
    _t(
        "comparison-alt-01",
        "What are the best alternatives to {competitor}?",
        _C,
        "competitor",
        weight=0.9,
    ),
    _t(
        "comparison-diff-01",
        "How does {company} differ from other {category} options?",
        _C,
        "company",
        "category",
    ),
    _t(
        "comparison-price-01",
        "How does {company} pricing compare to {competitor}?",
        _C,
        "company",
        "competitor",
        weight=0.9,
    ),
    # === RECOMMENDATION REQUEST (asks the assistant to pick) ===
    _t(
        "recommend-best-01",
        "What {category} would you recommend for a {company_size}?",
        _R,
        "category",
        "company_size",
    ),
    _t(
        "recommend-top-01",
        "Which {category} tools would you recommend for {audience}?",
        _R,
        "category",
        "audience",
    ),
    _t(
        "recommend-usecase-01",
        "Recommend a tool for {use_case} that is easy to adopt",
        _R,
        "use_case",
        weight=0.9,
    ),
    _t(
        "recommend-problem-01",
        "What would you suggest to fix {problem} without a huge budget?",
        _R,
        "problem",
        weight=0.8,
    ),
    # === EXPLANATORY QUERY (educational, topic only) ===
    _t(
        "explain-how-01",
        "How does {category} actually work, and what makes a good one?",
        _E,
        "category",
        weight=0.9,
    ),
    _t(
        "explain-problem-01",
        "Why is {problem} so hard, and how do companies usually handle it?",
        _E,
        "problem",
        weight=0.8,
    ),
    _t(
        "explain-practice-01",
        "What are best practices for {use_case}?",
        _E,
        "use_case",
        weight=0.8,
    ),
    _t(
        "explain-trend-01",
        "What are the latest trends in {category}?",
        _E,
        "category",
        weight=0.9,
    ),
]


def get_templates_by_type(question_type: QuestionType) -> list[QuestionTemplate]:
    """Get templates of one type, highest selection weight first."""
    templates = [t for t in QUESTION_TEMPLATES if t.type == question_type]
    return sorted(templates, key=lambda t: -t.weight)
