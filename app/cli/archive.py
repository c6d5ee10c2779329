# app/cli/archive.py
"""
CLI commands for the signature archive.

Usage:
    python -m app.cli.archive run --job-id nightly-42 --server-id web-1 --worker-id 3
    python -m app.cli.archive status
    python -m app.cli.archive preview
    python -m app.cli.archive watermark
    python -m app.cli.archive init-db
"""

import argparse
import sys

from dotenv import load_dotenv

load_dotenv()


def _setup():
    """Configure logging and build the run configuration from settings."""
    from app.config import ArchiveConfig, get_settings
    from app.logging_config import configure_logging

    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)
    return ArchiveConfig.from_settings(settings)


def cmd_run(args):
    """Run one archive pass and exit with its status code."""
    from app.services.archive.workflow import execute_archive_job, new_job_id

    config = _setup()
    if args.batch_size:
        from dataclasses import replace

        config = replace(config, batch_size=args.batch_size)

    result = execute_archive_job(
        args.job_id or new_job_id(),
        args.server_id,
        args.worker_id,
        config=config,
    )

    print("\n=== Archive Run ===\n")
    for stage in result.stages:
        if stage.skipped:
            print(f"{stage.stage}: skipped (archiving disabled)")
            continue
        print(
            f"{stage.stage}: selected {stage.selected}, archived {stage.archived}, "
            f"failed {stage.failed}, pruned {stage.pruned}"
        )
        for error in stage.errors:
            print(f"  - {error}")

    if result.error:
        print(f"\nRun aborted: {result.error}")

    sys.exit(int(result.status))


def cmd_status(args):
    """Show live queue and archive table sizes."""
    from app.database import ArchiveSessionLocal, LiveSessionLocal, store_context
    from app.services.archive.archive_service import get_archive_stats
    from app.services.archive.policy_service import get_policy_summary

    config = _setup()

    with store_context(LiveSessionLocal) as live_db, store_context(ArchiveSessionLocal) as archive_db:
        stats = get_archive_stats(live_db, archive_db)

    policy = get_policy_summary(config)
    print("\n=== Archive Status ===\n")
    print(f"Archiving enabled: {policy['enabled']}")
    print(f"  Batch size: {policy['batch_size']}")
    print(f"  Minimum signature lifetime: {config.min_signature_lifetime}")
    print(f"  Delete unconfirmed orphans: {policy['delete_unconfirmed_orphans']}")

    print("\nLive queues:")
    for table, count in stats["live"].items():
        print(f"  {table}: {count}")

    print("\nArchive tables:")
    for table, count in stats["archive"].items():
        print(f"  {table}: {count}")
    print()


def cmd_preview(args):
    """Show what the next runs would archive."""
    from app.database import LiveSessionLocal, store_context
    from app.services.archive.selection_service import get_archive_preview

    config = _setup()

    with store_context(LiveSessionLocal) as live_db:
        preview = get_archive_preview(live_db, config)

    print("\n=== Archive Preview ===\n")
    if not preview["enabled"]:
        print("Archiving is disabled; nothing would be archived.\n")
        return

    print(f"Signature cutoff: {preview['signature_cutoff']}")
    print("\nEligible (next batch):")
    for category, count in preview["eligible"].items():
        print(f"  {category}: {count} ({preview['next_batch'][category]})")
    print()


def cmd_watermark(args):
    """Show the upstream drain watermark."""
    from app.database import LiveSessionLocal, store_context
    from app.services.archive.policy_service import get_archive_watermark, get_queue_last_emptied

    config = _setup()

    with store_context(LiveSessionLocal) as live_db:
        drained = get_queue_last_emptied(live_db, config.upstream_queues)
        watermark = get_archive_watermark(live_db, config)

    print("\n=== Queue Drain Status ===\n")
    for queue, emptied_at in drained.items():
        print(f"  {queue}: {emptied_at.isoformat() if emptied_at else 'never'}")
    print(f"\nWatermark: {watermark.isoformat() if watermark else 'none'}\n")


def cmd_init_db(args):
    """Create live and archive tables if they don't exist."""
    from app.database import init_db

    _setup()
    init_db()
    print("Live and archive tables ready")


def main():
    parser = argparse.ArgumentParser(
        description="Signature Archive CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run one archive pass (exit code 0 = ok, 1 = store unavailable)
  python -m app.cli.archive run --server-id web-1 --worker-id 3

  # Smaller batches while draining a backlog by hand
  python -m app.cli.archive run --server-id ops --worker-id 1 --batch-size 500

  # Check table sizes
  python -m app.cli.archive status

  # Preview eligible rows
  python -m app.cli.archive preview
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # run command
    run_parser = subparsers.add_parser("run", help="Run one archive pass")
    run_parser.add_argument("--job-id", default=None, help="Job identifier (default: random)")
    run_parser.add_argument("--server-id", default="cli", help="Server identifier (default: cli)")
    run_parser.add_argument("--worker-id", default="0", help="Worker identifier (default: 0)")
    run_parser.add_argument("--batch-size", type=int, default=None, help="Override ARCHIVE_BATCH_SIZE")
    run_parser.set_defaults(func=cmd_run)

    # status command
    status_parser = subparsers.add_parser("status", help="Show table sizes")
    status_parser.set_defaults(func=cmd_status)

    # preview command
    preview_parser = subparsers.add_parser("preview", help="Preview eligible rows")
    preview_parser.set_defaults(func=cmd_preview)

    # watermark command
    watermark_parser = subparsers.add_parser("watermark", help="Show upstream drain watermark")
    watermark_parser.set_defaults(func=cmd_watermark)

    # init-db command
    init_parser = subparsers.add_parser("init-db", help="Create tables in both stores")
    init_parser.set_defaults(func=cmd_init_db)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
