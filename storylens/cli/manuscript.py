"""Index a manuscript file and query it from the command line.

Usage::

    python -m storylens.cli index manuscript.txt --title "The Lighthouse"

    python -m storylens.cli search manuscript.txt "character relationships" \\
        --type character --limit 5

    python -m storylens.cli analytics manuscript.txt --mode deep

Provider selection follows :mod:`storylens.bootstrap`; with no credentials
configured the offline hashing embedder and keyword tagger are used.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog
from pydantic import BaseModel

from storylens.bootstrap import build_story_index
from storylens.config.loader import load_config
from storylens.config.settings import Settings
from storylens.models.analytics import AnalysisMode
from storylens.models.project import DEFAULT_PROJECT_TITLE, Project
from storylens.services.story_index import StoryIndex
from storylens.utils.errors import StoryLensError
from storylens.utils.logging import configure_logging

logger = structlog.get_logger(logger_name=__name__)


def _emit(model: BaseModel | dict) -> None:
    if isinstance(model, BaseModel):
        print(model.model_dump_json(indent=2))
    else:
        print(json.dumps(model, indent=2, default=str))


async def _load_project(index: StoryIndex, args: argparse.Namespace) -> str:
    """Register the manuscript with the project store and index it."""
    path = Path(args.file)
    content = path.read_text(encoding="utf-8")
    project_id = args.project_id or path.stem
    title = args.title or path.stem or DEFAULT_PROJECT_TITLE
    await index.project_store.save_project(
        Project(project_id=project_id, title=title, content=content)
    )
    result = await index.handle_project_saved(project_id)
    if args.command == "index":
        _emit(result)
    return project_id


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    index = build_story_index(app_settings, config=load_config(args.config, app_settings))
    project_id = await _load_project(index, args)

    if args.command == "search":
        response = await index.search(project_id, args.query, type=args.type, limit=args.limit)
        _emit(response)
    elif args.command == "analytics":
        analytics = await index.get_project_analytics(project_id, AnalysisMode(args.mode))
        _emit(analytics)

    if args.stats:
        _emit({name: stats.model_dump() for name, stats in (await index.cache_stats()).items()})
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m storylens.cli",
        description="Index a manuscript and run semantic search or analytics over it.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="YAML config path")
    parser.add_argument(
        "--stats", action="store_true", help="Also print per-namespace cache statistics"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def _add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("file", help="Path to a UTF-8 manuscript text file")
        sub.add_argument("--project-id", dest="project_id", help="Project id (default: file stem)")
        sub.add_argument("--title", help="Project title used in result titles")

    # -- index --
    _add_common(subparsers.add_parser("index", help="Chunk, embed and tag a manuscript"))

    # -- search --
    search_parser = subparsers.add_parser("search", help="Run a semantic query")
    _add_common(search_parser)
    search_parser.add_argument("query", help="Free-text query")
    search_parser.add_argument(
        "--type", help="Tag category (character, theme, ...) or content type (dialogue, ...)"
    )
    search_parser.add_argument("--limit", type=int, help="Maximum results")

    # -- analytics --
    analytics_parser = subparsers.add_parser("analytics", help="Print project analytics")
    _add_common(analytics_parser)
    analytics_parser.add_argument(
        "--mode", choices=[m.value for m in AnalysisMode], default=AnalysisMode.FAST.value
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the command and return a process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    try:
        app_settings = Settings()
    except StoryLensError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    try:
        return asyncio.run(_run(args, app_settings))
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except StoryLensError as exc:
        logger.error("cli_command_failed", command=args.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
