# hotcontent/cli/ingest.py
"""
Run a hot-content ingestion batch.

Usage:
    python -m hotcontent.cli.ingest
    python -m hotcontent.cli.ingest --dry --limit 10
    python -m hotcontent.cli.ingest --smart
    python -m hotcontent.cli.ingest --full --categories fashion,events
    python -m hotcontent.cli.ingest --refresh
    python -m hotcontent.cli.ingest --reset --confirm
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


def mode_name(args) -> str:
    for mode in ("dry", "smart", "full", "refresh", "reset"):
        if getattr(args, mode):
            return mode
    return "standard"


def print_summary(mode: str, summary: dict, errors: list[str], verbose: bool = False) -> None:
    print(f"\n=== Ingest Summary ({mode}) ===\n")
    for key, value in summary.items():
        print(f"{key}: {value}")
    if errors:
        print(f"\nErrors ({len(errors)}):")
        for error in errors if verbose else errors[:5]:
            print(f"  - {error}")
        if not verbose and len(errors) > 5:
            print(f"  ... {len(errors) - 5} more (use --verbose)")
    print()


def _batch_summary(result) -> dict:
    counts = result.to_dict()
    return {
        "Discovered": counts["discovered"],
        "Validated": counts["validated"],
        "Auto-published": counts["autoPublished"],
        "Queued for review": counts["queuedForReview"],
        "Blocked": counts["blocked"],
    }


async def run_refresh(args, db, settings) -> tuple[dict, list[str]]:
    from hotcontent.services.metadata_refresh import MetadataRefreshService

    refresher = MetadataRefreshService.from_settings(settings)
    try:
        summary = await refresher.refresh_stale(
            db,
            stale_after_hours=settings.STALE_AFTER_HOURS,
            limit=args.limit,
            dry_run=args.dry,
        )
    finally:
        await refresher.close()

    return {
        "Entities refreshed": summary.processed,
        "With images": summary.succeeded,
        "Without images": summary.failed,
        "Saved": summary.saved,
    }, summary.errors


async def run_ingest(args, db) -> int:
    from hotcontent.config import get_settings, require_pipeline_config
    from hotcontent.constants import DiscoveryDefaults
    from hotcontent.services.learning import EngagementLearningService, LearningConfig
    from hotcontent.services.orchestrator import AutoPipelineOrchestrator, RunOptions
    from hotcontent.services.persistence import HotMediaRepository

    settings = get_settings()
    require_pipeline_config(settings)
    learning_config = LearningConfig.from_settings(settings)
    mode = mode_name(args)

    if args.refresh:
        summary, errors = await run_refresh(args, db, settings)
        print_summary(mode, summary, errors, args.verbose)
        return 0

    options = RunOptions(
        entity_types=args.types,
        limit=args.limit,
        dry_run=args.dry,
        categories=args.categories,
    )
    extra: dict = {}
    errors: list[str] = []

    if args.smart:
        recommendations = EngagementLearningService(db, config=learning_config).get_recommendations()
        options.seed_names = tuple(recommendations.priority_names)
        if not options.categories and recommendations.recommended_categories:
            options.categories = tuple(recommendations.recommended_categories)
        options.auto_publish_min_confidence = settings.SMART_AUTO_PUBLISH_MIN_CONFIDENCE
        extra["Priority entities"] = len(recommendations.priority_names)
        extra["Categories"] = ", ".join(options.categories or ()) or "all"
        extra["Weak content archived"] = HotMediaRepository(db).archive_weak_content(
            max_trending=learning_config.weak_content_max_trending,
            min_age_days=learning_config.weak_content_min_age_days,
        )

    if args.full:
        refreshed, refresh_errors = await run_refresh(args, db, settings)
        errors.extend(refresh_errors)
        extra["Entities refreshed"] = refreshed["Entities refreshed"]
        options.limit = args.limit * DiscoveryDefaults.FULL_MODE_CONTENT_MULTIPLIER

    if args.reset:
        extra["Archived"] = HotMediaRepository(db).archive_all()
        options.limit = DiscoveryDefaults.RESET_BATCH_LIMIT

    orchestrator = AutoPipelineOrchestrator(db, settings)
    result = await orchestrator.run_batch(options)
    errors.extend(result.errors)

    summary = {"Run": result.run_id, **_batch_summary(result), **extra}

    if args.full:
        learning = EngagementLearningService(db, config=learning_config).run()
        errors.extend(learning.errors)
        summary["Items rescored"] = learning.items_updated
        summary["Entity trends updated"] = learning.entities_updated
        summary["Insights"] = len(learning.insights)

    if args.dry:
        summary["Writes"] = "skipped (dry run)"

    print_summary(mode, summary, errors, args.verbose)
    return 0


def build_parser() -> argparse.ArgumentParser:
    from hotcontent.constants import DiscoveryDefaults

    parser = argparse.ArgumentParser(
        description="Hot-content ingestion batch",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Standard batch of 20 candidates
  python -m hotcontent.cli.ingest

  # Preview without writing anything
  python -m hotcontent.cli.ingest --dry --verbose

  # Let engagement insights pick entities and categories
  python -m hotcontent.cli.ingest --smart

  # Archive everything and start over
  python -m hotcontent.cli.ingest --reset --confirm
        """,
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--dry", action="store_true", help="Run the full batch with zero writes")
    mode.add_argument("--smart", action="store_true", help="Use learning recommendations and archive weak content")
    mode.add_argument("--full", action="store_true", help="Refresh metadata, larger batch, then run learning")
    mode.add_argument("--refresh", action="store_true", help="Refresh stale entity metadata only")
    mode.add_argument("--reset", action="store_true", help="Archive all hot media, then run a fresh batch")
    parser.add_argument("--confirm", action="store_true", help="Required with --reset")
    parser.add_argument(
        "--limit",
        type=int,
        default=DiscoveryDefaults.INGEST_LIMIT,
        help=f"Content candidates per batch (default: {DiscoveryDefaults.INGEST_LIMIT})",
    )
    parser.add_argument("--categories", type=_csv, default=None, help="Comma-separated content categories")
    parser.add_argument(
        "--type",
        dest="types",
        type=_csv,
        default=DiscoveryDefaults.ENTITY_TYPES,
        help="Comma-separated entity types: actress,anchor,model,influencer",
    )
    parser.add_argument("--verbose", action="store_true", help="Show every error")
    return parser


def main(argv: list[str] | None = None) -> None:
    from hotcontent.config import get_settings
    from hotcontent.constants import DiscoveryDefaults
    from hotcontent.errors import ConfigurationError
    from hotcontent.logging_config import configure_logging

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.reset and not args.confirm:
        print("Error: --reset archives all hot media. Re-run with --confirm.")
        sys.exit(1)

    if args.limit <= 0:
        print("Error: --limit must be positive")
        sys.exit(1)

    unknown_types = [t for t in args.types if t not in DiscoveryDefaults.ENTITY_TYPES]
    if unknown_types:
        print(f"Error: unknown entity type(s): {', '.join(unknown_types)}")
        sys.exit(1)

    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON, level="DEBUG" if args.verbose else settings.LOG_LEVEL)

    db = None
    try:
        db = get_db_session()
        code = asyncio.run(run_ingest(args, db))
    except ConfigurationError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Ingest failed: {e}")
        print(f"Error: ingest failed: {e}")
        sys.exit(1)
    finally:
        if db is not None:
            db.close()

    sys.exit(code)


if __name__ == "__main__":
    main()
