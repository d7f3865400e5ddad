# hotcontent/cli/discover.py
"""
Discover, resolve and rank public figures.

Usage:
    python -m hotcontent.cli.discover
    python -m hotcontent.cli.discover --source=wikidata,tmdb --type=actress,anchor --limit=50
    python -m hotcontent.cli.discover --dry --verbose
    python -m hotcontent.cli.discover --discover-only
    python -m hotcontent.cli.discover --rank-only
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def get_db_session():
    """Get a database session."""
    from hotcontent.database import SessionLocal

    return SessionLocal()


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


def print_ranking(ranked, verbose: bool = False) -> None:
    print(f"\n{'#':>3}  {'Name':<28} {'Type':<11} {'Score':>6}  {'Platform':<10} Eligible")
    print("-" * 72)
    for position, candidate in enumerate(ranked, start=1):
        eligible = "yes" if candidate.is_eligible else "no"
        print(
            f"{position:>3}  {candidate.name[:28]:<28} {candidate.entity_type:<11} "
            f"{candidate.hot_score:>6.1f}  {(candidate.primary_platform or '-'):<10} {eligible}"
        )
        if verbose:
            for reason in candidate.ineligibility_reasons:
                print(f"       - {reason}")


def print_summary(summary: dict, errors: list[str], verbose: bool) -> None:
    print("\n=== Discovery Summary ===\n")
    for key, value in summary.items():
        print(f"{key}: {value}")
    if errors:
        print(f"\nErrors ({len(errors)}):")
        for error in errors if verbose else errors[:5]:
            print(f"  - {error}")
        if not verbose and len(errors) > 5:
            print(f"  ... {len(errors) - 5} more (use --verbose)")
    print()


async def run_discover(args, db) -> int:
    from hotcontent.config import get_settings, require_pipeline_config
    from hotcontent.services.orchestrator import AutoPipelineOrchestrator, RunOptions

    settings = get_settings()
    require_pipeline_config(settings)
    orchestrator = AutoPipelineOrchestrator(db, settings)
    errors: list[str] = []

    if args.rank_only:
        ranked = orchestrator.rank_stored(entity_types=args.types, top_n=args.limit)
        print_ranking(ranked, args.verbose)
        summary = {
            "Ranked": len(ranked),
            "Eligible": sum(1 for c in ranked if c.is_eligible),
        }
        print_summary(summary, errors, args.verbose)
        return 0

    options = RunOptions(
        entity_types=args.types,
        sources=args.sources,
        discover_limit=args.limit,
        dry_run=args.dry,
    )
    outcome = await orchestrator.discover_entities(options)
    errors.extend(outcome.errors)

    if args.verbose:
        print("\nConnectors:")
        for source, status in sorted(outcome.connector_status.items()):
            print(f"  {source}: {status}")
        for message in outcome.ambiguities:
            print(f"  ambiguous: {message}")

    ranked = []
    if not args.discover_only:
        ranked = orchestrator.rank_entities(outcome.entities, outcome.signals, top_n=args.limit)
        print_ranking(ranked, args.verbose)

    saved = 0
    if not args.dry:
        saved = len(orchestrator.persist_entities(outcome.entities, dry_run=False, errors=errors))

    summary = {
        "Entities discovered": len(outcome.entities),
        "Ranked": len(ranked),
        "Eligible": sum(1 for c in ranked if c.is_eligible),
        "Saved": "skipped (dry run)" if args.dry else saved,
    }
    print_summary(summary, errors, args.verbose)
    return 0


def build_parser() -> argparse.ArgumentParser:
    from hotcontent.constants import DiscoveryDefaults
    from hotcontent.services.connectors import ALL_SOURCES

    parser = argparse.ArgumentParser(
        description="Hot-content entity discovery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Discover from every source and save
  python -m hotcontent.cli.discover

  # Preview Wikidata + TMDB actresses without writing
  python -m hotcontent.cli.discover --source=wikidata,tmdb --type=actress --dry --verbose

  # Re-rank what is already stored
  python -m hotcontent.cli.discover --rank-only
        """,
    )
    parser.add_argument(
        "--source",
        dest="sources",
        type=_csv,
        default=ALL_SOURCES,
        help=f"Comma-separated sources (default: {','.join(ALL_SOURCES)})",
    )
    parser.add_argument(
        "--type",
        dest="types",
        type=_csv,
        default=DiscoveryDefaults.ENTITY_TYPES,
        help="Comma-separated entity types: actress,anchor,model,influencer",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=DiscoveryDefaults.DISCOVER_LIMIT,
        help=f"Max entities to discover and rank (default: {DiscoveryDefaults.DISCOVER_LIMIT})",
    )
    parser.add_argument("--dry", action="store_true", help="Fetch and rank, write nothing")
    parser.add_argument("--verbose", action="store_true", help="Show reasons and connector details")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--discover-only", action="store_true", help="Skip ranking")
    mode.add_argument("--rank-only", action="store_true", help="Rank stored entities without fetching")
    return parser


def main(argv: list[str] | None = None) -> None:
    from hotcontent.config import get_settings
    from hotcontent.constants import DiscoveryDefaults
    from hotcontent.errors import ConfigurationError
    from hotcontent.logging_config import configure_logging

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.limit <= 0:
        print("Error: --limit must be positive")
        sys.exit(1)

    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON, level="DEBUG" if args.verbose else settings.LOG_LEVEL)

    unknown_types = [t for t in args.types if t not in DiscoveryDefaults.ENTITY_TYPES]
    if unknown_types:
        print(f"Error: unknown entity type(s): {', '.join(unknown_types)}")
        sys.exit(1)

    db = None
    try:
        db = get_db_session()
        code = asyncio.run(run_discover(args, db))
    except ConfigurationError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Discovery failed: {e}")
        print(f"Error: discovery failed: {e}")
        sys.exit(1)
    finally:
        if db is not None:
            db.close()

    sys.exit(code)


if __name__ == "__main__":
    main()
