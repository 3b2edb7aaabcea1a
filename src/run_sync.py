"""Index Synchronizer CLI Entry Point

Provides the command-line interface for pushing changed articles to the
search index and for flagging articles or issues for re-indexing. Meant to
be called from cron or from publishing hooks.

Usage:
    python src/run_sync.py sync --dataset data/dataset.json --dry-run
    python src/run_sync.py mark-container --dataset data/dataset.json 5
"""

# run_sync.py
import argparse
import logging
import time
from pathlib import Path

from index_sync.config import SyncSettings
from index_sync.errors import parse_identifier
from index_sync.index_client import ElasticsearchIndexClient, InMemoryIndexClient
from index_sync.pipeline import BatchSynchronizer, run_sync
from index_sync.store import InMemoryDocumentStore
from index_sync.tracker import ChangeTracker
from index_sync.transformers import deny_subscribed_access

INDEX_RECORDS_FILENAME = "index_records.json"


def configure_logging() -> None:
    """Configure logging with both console and file output.

    Sets up:
      - Root logger at DEBUG level
      - Console handler at INFO level for user-facing messages
      - File handler at DEBUG level for detailed troubleshooting
      - Reduced verbosity for the Elasticsearch client loggers
    """
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / "index_sync.log"

    # Root logger
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    logging.getLogger("elasticsearch").setLevel(logging.WARNING)
    logging.getLogger("elastic_transport").setLevel(logging.WARNING)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Clear existing handlers to avoid duplicates if run multiple times
    logger.handlers.clear()
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)


def allow_subscribed_access(container, document, request_context) -> bool:
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Incremental search index synchronizer"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    dataset_parent = argparse.ArgumentParser(add_help=False)
    dataset_parent.add_argument(
        "--dataset",
        type=Path,
        default=Path("data/dataset.json"),
        help="Path to the JSON dataset (journals, containers, published, documents).",
    )

    sync = subparsers.add_parser("sync", parents=[dataset_parent], help="Push one batch of changed articles.")
    sync.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Maximum number of articles per run (default: INDEX_SYNC_BATCH_SIZE or 2000).",
    )
    sync.add_argument(
        "--container-id",
        default=None,
        help="Restrict the run to one issue; the index is cleared instead of per-article deletes.",
    )
    sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Build records without contacting Elasticsearch; records are written to --output-dir and the dataset is left untouched.",
    )
    sync.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Directory for dry-run output.",
    )
    sync.add_argument(
        "--clear-after-submit",
        action="store_true",
        help="Only clear dirty flags after the index accepted the whole batch.",
    )
    sync.add_argument(
        "--allow-subscription-content",
        action="store_true",
        help="Index articles of subscription-only issues.",
    )

    mark_document = subparsers.add_parser("mark-document", parents=[dataset_parent], help="Flag one article.")
    mark_document.add_argument("document_id")

    mark_container = subparsers.add_parser("mark-container", parents=[dataset_parent], help="Flag all articles of an issue.")
    mark_container.add_argument("container_id")

    delete_document = subparsers.add_parser("delete-document", parents=[dataset_parent], help="Remove one article from the index.")
    delete_document.add_argument("document_id")

    subparsers.add_parser("clear-index", help="Remove every article from the index.")
    return parser


def main(argv=None) -> int:
    """
    CLI entrypoint for the index synchronizer.

    Parses command-line arguments, runs the requested command and returns
    a Unix-style exit code (0 on success, non-zero on failure).
    """
    configure_logging()
    logger = logging.getLogger(__name__)

    args = build_parser().parse_args(argv)

    try:
        settings = SyncSettings.from_env()

        if args.command == "clear-index":
            ElasticsearchIndexClient.from_settings(settings).clear_index()
            logger.info("✓ Index %s cleared", settings.elasticsearch_index)
            return 0

        store = InMemoryDocumentStore.from_json(args.dataset)

        if args.command == "mark-document":
            document_id = parse_identifier(args.document_id, "document id")
            if store.get_document(document_id) is None:
                logger.error("Document %s not found in %s", document_id, args.dataset)
                return 1
            ChangeTracker(store).mark_document_changed(document_id)
            store.save(args.dataset)
            logger.info("✓ Marked document %s for re-indexing", document_id)

        elif args.command == "mark-container":
            marked = ChangeTracker(store).mark_container_changed(args.container_id)
            store.save(args.dataset)
            logger.info("✓ Marked %d documents of container %s for re-indexing", marked, args.container_id)

        elif args.command == "delete-document":
            synchronizer = BatchSynchronizer(
                store,
                ElasticsearchIndexClient.from_settings(settings),
                base_url=settings.base_url,
            )
            synchronizer.delete_document(args.document_id)

        elif args.command == "sync":
            logger.info("=== Starting index synchronization ===")
            logger.info("Dataset: %s", args.dataset)
            logger.info("Container: %s", args.container_id or "None (whole installation)")
            logger.info("Dry_run: %s", args.dry_run)

            if args.dry_run:
                index_client = InMemoryIndexClient()
            else:
                index_client = ElasticsearchIndexClient.from_settings(settings)

            start_time = time.time()
            try:
                result = run_sync(
                    store,
                    index_client,
                    settings=settings,
                    container_id=args.container_id,
                    batch_size=args.batch_size,
                    clear_after_submit=args.clear_after_submit,
                    is_subscribed_access=(
                        allow_subscribed_access if args.allow_subscription_content
                        else deny_subscribed_access
                    ),
                )
            finally:
                # Flags cleared before a failure stay cleared; dry runs keep the backlog
                if not args.dry_run:
                    store.save(args.dataset)

            output_path = None
            if args.dry_run:
                output_path = index_client.dump(args.output_dir / INDEX_RECORDS_FILENAME)

            logger.info("=" * 70)
            logger.info("Synchronization completed in %.2fs", time.time() - start_time)
            logger.info("  Processed:    %d/%d dirty documents", result.batch_count, result.total_dirty)
            logger.info("  Deleted:      %d", result.deleted)
            logger.info("  Cleared:      %s", result.cleared_index)
            logger.info("  Add records:  %d", result.added_records)
            logger.info("  Unauthorized: %d", result.skipped_unauthorized)
            logger.info("  Failed:       %d", result.failed_transform)
            logger.info("  Remaining:    %d", result.remaining_dirty)
            if output_path:
                logger.info("  Output:       %s", output_path)
            logger.info("=" * 70)

    except Exception as e:
        logger.exception(f"Command {args.command} failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
