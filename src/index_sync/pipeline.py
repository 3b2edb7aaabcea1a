"""
Incremental Indexing Pipeline

Pushes changed articles to the search index, one bounded batch per run.

Each run:
1. Fetches a batch of dirty articles from the change tracker
2. Clears their dirty flags and builds delete/add records per article
3. Removes stale records (one delete per article, or a full clear for
   issue-scoped runs)
4. Submits all add records

Repeated runs drain a backlog; runs are not meant to overlap.
"""

import logging
import time
from typing import Any, List, Optional

from .config import MAX_BATCH_SIZE, SyncSettings
from .errors import IndexSubmissionError, InvalidArgumentError, TransformError, parse_identifier
from .index_client import IndexClient
from .models import IndexRecord, SyncResult
from .store import DocumentStore
from .tracker import ChangeTracker
from .transformers import ContentTransformer, SubscriptionCheck, deny_subscribed_access

logger = logging.getLogger(__name__)


class BatchSynchronizer:
    """
    Orchestrates indexing runs against one index client.

    By default dirty flags are cleared before an article is transformed,
    so an article whose submission fails is not retried unless it is
    marked again. With `clear_after_submit=True` flags are only cleared
    once the whole batch has been accepted by the index client, which
    may resubmit articles but never loses them.
    """

    def __init__(
        self,
        store: DocumentStore,
        index_client: IndexClient,
        base_url: str,
        is_subscribed_access: SubscriptionCheck = deny_subscribed_access,
        request_context: Any = None,
        clear_after_submit: bool = False,
    ) -> None:
        self.store = store
        self.index_client = index_client
        self.tracker = ChangeTracker(store)
        self.base_url = base_url
        self.is_subscribed_access = is_subscribed_access
        self.request_context = request_context
        self.clear_after_submit = clear_after_submit

    def _new_transformer(self) -> ContentTransformer:
        return ContentTransformer(
            self.store,
            base_url=self.base_url,
            is_subscribed_access=self.is_subscribed_access,
            request_context=self.request_context,
        )

    def synchronize(self, batch_size: int = MAX_BATCH_SIZE, container_id=None) -> SyncResult:
        """
        Run one indexing pass.

        Args:
            batch_size: Maximum number of articles processed in this run
            container_id: If given, only articles of this issue are
                processed and the index is cleared instead of deleting
                articles one by one

        Returns:
            SyncResult with the run's counters

        Raises:
            InvalidArgumentError: On a malformed batch size or issue id
            IndexSubmissionError: If the index client fails; not retried
        """
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
            raise InvalidArgumentError(f"Invalid batch size: {batch_size!r}")
        if container_id is not None:
            container_id = parse_identifier(container_id, "container id")

        run_start = time.time()
        result = SyncResult()

        # ========== STEP 1: FETCH DIRTY BATCH ==========
        logger.info("STEP 1/4: Fetching dirty documents (batch_size=%d, container=%s)", batch_size, container_id)
        documents, total_dirty = self.tracker.fetch_dirty_batch(batch_size, container_id=container_id)
        result.batch_count = len(documents)
        result.total_dirty = total_dirty
        logger.info("✓ Fetched %d of %d dirty documents", len(documents), total_dirty)

        if not documents:
            logger.info("Nothing to synchronize")
            return result

        # ========== STEP 2: TRANSFORM DOCUMENTS ==========
        logger.info("STEP 2/4: Transforming %d documents", len(documents))
        transformer = self._new_transformer()
        to_delete: List[IndexRecord] = []
        to_add: List[IndexRecord] = []

        for document in documents:
            if not self.clear_after_submit:
                self.tracker.mark_document_clean(document.id)

            to_delete.append(transformer.build_delete_record(document))

            if not transformer.is_access_authorized(document):
                result.skipped_unauthorized += 1
                continue

            try:
                to_add.extend(transformer.build_add_records(document))
            except TransformError as e:
                logger.warning("Skipping document %s: %s", document.id, e.reason)
                result.failed_transform += 1

        logger.info(
            "✓ Transform completed (add_records=%d, unauthorized=%d, failed=%d)",
            len(to_add),
            result.skipped_unauthorized,
            result.failed_transform,
        )

        # ========== STEP 3: REMOVE STALE RECORDS ==========
        try:
            if container_id is not None:
                logger.info("STEP 3/4: Clearing index for container-scoped run")
                self.index_client.clear_index()
                result.cleared_index = True
            else:
                logger.info("STEP 3/4: Deleting %d documents from index", len(to_delete))
                for record in to_delete:
                    self.index_client.delete_by_distinct_id(record.distinct_id)
                    result.deleted += 1

            # ========== STEP 4: SUBMIT ADD RECORDS ==========
            logger.info("STEP 4/4: Submitting %d add records", len(to_add))
            for record in to_add:
                self.index_client.index(record)
                result.added_records += 1
        except IndexSubmissionError:
            logger.exception(
                "Index submission failed after %d deletes and %d adds",
                result.deleted,
                result.added_records,
            )
            raise

        if self.clear_after_submit:
            for document in documents:
                self.tracker.mark_document_clean(document.id)

        result.remaining_dirty = self.tracker.count_dirty(container_id)
        logger.info(
            "✓ Synchronized %d documents in %.2fs (%d dirty remaining)",
            len(documents),
            time.time() - run_start,
            result.remaining_dirty,
        )
        return result

    def delete_document(self, document_id) -> None:
        """Remove one article (all of its chunks) from the index."""
        record = self._new_transformer().build_delete_record(document_id)
        self.index_client.delete_by_distinct_id(record.distinct_id)
        logger.info("Deleted document %s from index", record.distinct_id)

    def clear_index(self) -> None:
        """Remove every article from the index."""
        self.index_client.clear_index()


def run_sync(
    store: DocumentStore,
    index_client: IndexClient,
    settings: Optional[SyncSettings] = None,
    container_id=None,
    batch_size: Optional[int] = None,
    clear_after_submit: bool = False,
    is_subscribed_access: SubscriptionCheck = deny_subscribed_access,
) -> SyncResult:
    """Run one synchronization pass configured from `settings`.

    `batch_size` overrides the configured batch size when given.
    """
    settings = settings or SyncSettings.from_env()
    if batch_size is None:
        batch_size = settings.batch_size
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise InvalidArgumentError(f"Invalid batch size: {batch_size!r}")

    synchronizer = BatchSynchronizer(
        store,
        index_client,
        base_url=settings.base_url,
        is_subscribed_access=is_subscribed_access,
        clear_after_submit=clear_after_submit,
    )
    return synchronizer.synchronize(batch_size=batch_size, container_id=container_id)
