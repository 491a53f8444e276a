"""Run one visibility scoring pass from the command line.

Usage:
    # Offline run with the mock provider and heuristic judge
    python scripts/run_visibility.py --name "Acme Inc" --domain acme.com --provider mock --judge heuristic

    # Real providers from .env, with competitors and a knowledge file
    python scripts/run_visibility.py --name Acme --domain acme.com \
        --competitor Globex --competitor Initech --knowledge knowledge.json --questions 20

    # Print the full calculation or the JSON result
    python scripts/run_visibility.py --name Acme --domain acme.com --show-math
    python scripts/run_visibility.py --name Acme --domain acme.com --json

The knowledge file is a JSON list of {"tag": ..., "content": ...} objects.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from api.config import get_settings
from api.exceptions import PipelineError
from api.logging import setup_logging
from worker.context.models import CompanyRecord, KnowledgeEntry
from worker.context.store import InMemoryCompanyStore
from worker.pipeline.repository import InMemoryRunRepository
from worker.pipeline.run import ProgressEvent
from worker.pipeline.runner import PipelineConfig, VisibilityPipeline


def load_knowledge(path: str | None) -> list[KnowledgeEntry]:
    """Read knowledge entries from a JSON file."""
    if not path:
        return []
    items = json.loads(Path(path).read_text(encoding="utf-8"))
    return [KnowledgeEntry(tag=i.get("tag", "other"), content=i["content"]) for i in items]


def print_progress(event: ProgressEvent) -> None:
    print(f"[{event.percent:3d}%] {event.stage.value:<12} {event.message}", file=sys.stderr)


async def run_visibility(args: argparse.Namespace) -> int:
    config = PipelineConfig.from_settings(get_settings())
    if args.provider:
        config.answer_provider = args.provider
    if args.judge:
        config.judge_provider = args.judge

    store = InMemoryCompanyStore()
    company_id = args.company_id or args.domain
    await store.add_company(
        CompanyRecord(
            id=company_id,
            name=args.name,
            domain=args.domain,
            industry=args.industry,
            size=args.size,
            aliases=args.alias,
            competitors=args.competitor,
            owned_domains=args.owned_domain,
        ),
        load_knowledge(args.knowledge),
    )

    pipeline = VisibilityPipeline(store, InMemoryRunRepository(), config=config)
    try:
        outcome = await pipeline.run(
            company_id,
            question_count=args.questions,
            progress_callback=None if args.quiet else print_progress,
        )
    except PipelineError as e:
        print(f"Run failed ({e.code}): {e.message}", file=sys.stderr)
        return 1

    score = outcome.score
    if args.json:
        print(json.dumps(outcome.run.result, indent=2, default=str))
    elif args.show_math:
        print(score.show_the_math())
    else:
        print(f"\n{args.name}: {score.score_100:.1f}/100 (Grade {score.grade})")
        print(f"  {score.breakdown}")
        for recommendation in score.recommendations:
            print(f"  - {recommendation}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Score a company's visibility in AI answers")
    parser.add_argument("--name", required=True, help="Company name")
    parser.add_argument("--domain", required=True, help="Company domain")
    parser.add_argument("--company-id", default=None, help="Record id (defaults to the domain)")
    parser.add_argument("--industry", default=None, help="Industry (inferred when omitted)")
    parser.add_argument(
        "--size",
        choices=["startup", "small", "medium", "enterprise"],
        default=None,
        help="Company size",
    )
    parser.add_argument("--alias", action="append", default=[], help="Alternate name")
    parser.add_argument("--competitor", action="append", default=[], help="Known competitor")
    parser.add_argument("--owned-domain", action="append", default=[], help="Extra owned domain")
    parser.add_argument("--knowledge", default=None, help="JSON file of knowledge entries")
    parser.add_argument("--questions", type=int, default=None, help="Question count (5-50)")
    parser.add_argument(
        "--provider",
        choices=["perplexity", "openrouter", "openai", "mock"],
        default=None,
        help="Answer provider (defaults to settings)",
    )
    parser.add_argument(
        "--judge",
        choices=["openrouter", "openai", "heuristic", "mock"],
        default=None,
        help="Judgment provider (defaults to settings)",
    )
    parser.add_argument("--json", action="store_true", help="Print the full JSON result")
    parser.add_argument("--show-math", action="store_true", help="Print the calculation")
    parser.add_argument("--quiet", action="store_true", help="Hide progress output")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(run_visibility(args)))


if __name__ == "__main__":
    main()
