"""Command-line entry point: route a question and run research or recall."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from adaptive_research.assistant import ResearchAssistant
from adaptive_research.events import SSEEvent
from adaptive_research.exceptions import ResearchPipelineError
from adaptive_research.logging import configure_structlog, get_logger
from adaptive_research.models import AssistantResponse, SessionMatch, Tier, UserProfile
from adaptive_research.providers.sessions import InMemorySessionStore
from adaptive_research.workflow import format_research_for_synthesis

log = get_logger("adaptive_research.cli")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="adaptive-research", description=__doc__)
    parser.add_argument("question", help="Question to route and research")
    parser.add_argument("--diabetes-type", help="Diabetes type for the user profile")
    parser.add_argument("--medication", action="append", default=[], help="Medication (repeatable)")
    parser.add_argument("--sessions", type=Path, help="JSON file with past sessions for recall")
    parser.add_argument("--output", type=Path, help="Write the full response as JSON to this file")
    return parser.parse_args(argv)


def _load_sessions(path: Path | None) -> InMemorySessionStore:
    if path is None:
        return InMemorySessionStore()
    raw = json.loads(path.read_text(encoding="utf-8"))
    return InMemorySessionStore(SessionMatch.model_validate(item) for item in raw)


async def _print_event(event: SSEEvent) -> None:
    data = event.data
    if event.event.value == "round_started":
        print(f"Round {data['round']}: {data['query']} ({data['estimatedSources']} sources)")
    elif event.event.value == "api_completed":
        status = "ok" if data["success"] else "failed"
        print(f"  {data['api']}: {data['count']} ({data['duration']}ms, {status})")
    elif event.event.value == "round_complete":
        print(f"  {data['sourceCount']} new sources")
    elif event.event.value == "reflection_complete":
        reflection = data["reflection"]
        print(f"  quality={reflection['evidence_quality']} continue={reflection['should_continue']}")


def _print_response(response: AssistantResponse) -> None:
    classification = response.classification
    print(f"\nTier {classification.tier.value} ({classification.confidence:.2f}): {classification.reasoning}")
    if response.recall is not None:
        recall = response.recall
        if recall.kind == "answer":
            print(f"\n{recall.answer}\n\nKaynak: {recall.session_reference.title} ({recall.session_reference.date})")
        else:
            print(f"\n{recall.message}")
    elif response.research is not None:
        print()
        print(format_research_for_synthesis(response.research))
    elif classification.tier == Tier.MODEL:
        print("Answer from model knowledge; no research needed.")


async def run(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    profile = UserProfile(diabetes_type=args.diabetes_type, medications=args.medication) if args.diabetes_type else None
    assistant = ResearchAssistant(session_store=_load_sessions(args.sessions))

    try:
        response = await assistant.handle(args.question, profile=profile, event_callback=_print_event)
    except ResearchPipelineError as e:
        log.error("cli.failed", error=str(e), error_type=type(e).__name__)
        print(f"❌ {e}", file=sys.stderr)
        return 1

    _print_response(response)
    if args.output:
        args.output.write_text(response.model_dump_json(indent=2), encoding="utf-8")
        print(f"Results saved to: {args.output}")
    return 0


def main() -> None:
    load_dotenv()
    configure_structlog(testing=True)
    sys.exit(asyncio.run(run()))
