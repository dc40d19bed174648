import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import TypeAdapter, ValidationError

from agent.edit_orchestrator import (
    EditOrchestrator,
    OpenRouterIntentResolver,
    OpenRouterJudge,
    PlanStep,
    ProviderMediaGenerator,
    VerifierAgent,
)
from models.timeline_models import Clip
from operators.timeline_store import TimelineError, TimelineStore

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("timeline-agent")


def _attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logger_level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    target_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        target_logger.addHandler(file_handler)
    target_logger.setLevel(logger_level_value)


EDIT_AGENT_LOG_FILE = os.getenv("EDIT_AGENT_LOG_FILE", "").strip()
if EDIT_AGENT_LOG_FILE:
    log_path = Path(EDIT_AGENT_LOG_FILE)
    if not log_path.is_absolute():
        log_path = ROOT_DIR / log_path
    _attach_file_handler("agent.edit_orchestrator", log_path)


_CLIPS = TypeAdapter(list[Clip])
_STEPS = TypeAdapter(list[PlanStep])


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply an edit plan to a clip timeline")
    parser.add_argument(
        "--clips",
        required=True,
        help="JSON file with the initial clip list",
    )
    parser.add_argument(
        "--plan",
        required=True,
        help="JSON file with the plan steps to execute",
    )
    parser.add_argument(
        "--goal",
        default=None,
        help="Overall goal to verify the finished plan against",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Also verify each successful step",
    )
    parser.add_argument(
        "--media-dir",
        default=None,
        help="Directory for generated media (default: MEDIA_OUTPUT_DIR)",
    )
    return parser.parse_args(argv)


def load_inputs(clips_path: Path, plan_path: Path) -> tuple[list[Clip], list[PlanStep]]:
    clips = _CLIPS.validate_json(clips_path.read_bytes())
    steps = _STEPS.validate_json(plan_path.read_bytes())
    return clips, steps


async def run(args: argparse.Namespace) -> dict:
    clips, steps = load_inputs(Path(args.clips), Path(args.plan))
    store = TimelineStore(clips)

    verifier = VerifierAgent(OpenRouterJudge()) if (args.verify or args.goal) else None
    orchestrator = EditOrchestrator(
        store,
        resolver=OpenRouterIntentResolver(),
        verifier=verifier,
        generator=ProviderMediaGenerator(
            Path(args.media_dir) if args.media_dir else None
        ),
        verify_steps=args.verify,
    )

    def progress_callback(message: str) -> None:
        logger.info(message)

    verification = None
    if args.goal:
        report, verification = await orchestrator.run_and_verify(
            steps, args.goal, on_progress=progress_callback
        )
    else:
        report = await orchestrator.execute_plan_with_verification(
            steps, on_progress=progress_callback
        )

    return {
        "report": report.model_dump(mode="json"),
        "verification": verification.model_dump(mode="json") if verification else None,
        "clips": [c.model_dump(mode="json") for c in store.get_clips()],
    }


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    try:
        output = asyncio.run(run(args))
    except (OSError, ValidationError, TimelineError) as e:
        logger.error(f"Invalid input: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        sys.exit(1)

    print(json.dumps(output, indent=2))
    sys.exit(0)


if __name__ == "__main__":
    main()
