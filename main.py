"""CLI entry point for the natural-language job search engine."""

import argparse
import base64
import json
import logging
import sys
from pathlib import Path

from src.core.config import Settings
from src.core.db import SQLiteJobStore, init_db, load_jobs_file, upsert_job
from src.core.errors import JobStoreError, RefinementFailure, TranscriptionFailure
from src.core.schemas import RefineRequest, SearchRequest
from src.llm import available_providers, get_provider
from src.pipeline.orchestrator import SearchService


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Natural-language job search - parse, match and refine job searches",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- search subcommand ---
    search_parser = subparsers.add_parser("search", help="Run a natural-language job search")
    source = search_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--query", help="Free-text description of the ideal job")
    source.add_argument("--audio", help="Path to a recorded audio query")
    search_parser.add_argument(
        "--provider",
        choices=available_providers(),
        help="LLM provider override (default: from settings)",
    )
    _add_common(search_parser)

    # --- refine subcommand ---
    refine_parser = subparsers.add_parser(
        "refine",
        help="Refine a previous search with conversational feedback",
    )
    refine_parser.add_argument(
        "--previous",
        required=True,
        help="Path to a previous search (or refine) JSON response",
    )
    refine_parser.add_argument("--feedback", required=True, help="What to change")
    refine_parser.add_argument(
        "--provider",
        choices=available_providers(),
        help="LLM provider override (default: from settings)",
    )
    _add_common(refine_parser)

    # --- import-jobs subcommand ---
    import_parser = subparsers.add_parser("import-jobs", help="Load job postings from YAML")
    import_parser.add_argument("--file", required=True, help="Path to a YAML list of jobs")
    _add_common(import_parser)

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _build_service(settings: Settings, provider_name: str | None) -> SearchService:
    provider = get_provider(provider_name or settings.llm.provider, settings.llm)
    conn = init_db(settings.database.path)
    return SearchService.from_settings(settings, provider, SQLiteJobStore(conn))


def cmd_search(args: argparse.Namespace, settings: Settings) -> None:
    """Handle search subcommand."""
    if args.audio:
        audio = Path(args.audio)
        if not audio.exists():
            msg = f"Audio file not found: {audio}"
            raise FileNotFoundError(msg)
        request = SearchRequest(audio=base64.b64encode(audio.read_bytes()).decode("ascii"))
    else:
        request = SearchRequest(query=args.query)

    service = _build_service(settings, args.provider)
    response = service.search(request)
    print(response.model_dump_json(by_alias=True, indent=2))


def cmd_refine(args: argparse.Namespace, settings: Settings) -> None:
    """Handle refine subcommand.

    Accepts either a search response (parsedSearch/matches) or a previous refine
    response (updatedSearch/newResults), so refinements can be chained.
    """
    path = Path(args.previous)
    if not path.exists():
        msg = f"Previous response not found: {path}"
        raise FileNotFoundError(msg)
    previous = json.loads(path.read_text())
    if "updatedSearch" in previous:
        original, results = previous["updatedSearch"], previous.get("newResults", [])
    else:
        original, results = previous.get("parsedSearch"), previous.get("matches", [])
    if original is None:
        msg = f"No search criteria found in {path}"
        raise ValueError(msg)

    request = RefineRequest(
        original_search=original,
        user_feedback=args.feedback,
        previous_results=results,
    )
    service = _build_service(settings, args.provider)
    result = service.refine(request)
    print(result.model_dump_json(by_alias=True, indent=2))


def cmd_import_jobs(args: argparse.Namespace, settings: Settings) -> None:
    """Handle import-jobs subcommand."""
    jobs = load_jobs_file(args.file)
    conn = init_db(settings.database.path)
    for job in jobs:
        upsert_job(conn, job)
    conn.close()
    print(f"Imported {len(jobs)} jobs into {settings.database.path}")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    commands = {
        "search": cmd_search,
        "refine": cmd_refine,
        "import-jobs": cmd_import_jobs,
    }
    try:
        commands[args.command](args, settings)
    except (
        FileNotFoundError,
        ImportError,
        JobStoreError,
        ValueError,
        RefinementFailure,
        TranscriptionFailure,
    ) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
