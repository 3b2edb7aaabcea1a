"""Change Tracker

Keeps the per-article "dirty" flag that tells the synchronizer which
articles need (re-)indexing. Marking and fetching both work on the
persisted flag, so an article marked dirty while a run is in progress is
picked up by the next run.
"""

import logging
from typing import List, Tuple

from .errors import InvalidArgumentError, parse_identifier
from .models import STATUS_PUBLISHED, Document
from .store import DocumentStore

logger = logging.getLogger(__name__)

INDEXING_STATE_DIRTY = True
INDEXING_STATE_CLEAN = False


class ChangeTracker:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def mark_document_changed(self, document_id) -> None:
        """Flag one article for re-indexing during the next run.

        Raises:
            InvalidArgumentError: If the id is not a positive integer
        """
        document_id = parse_identifier(document_id, "document id")
        self.store.set_indexing_state(document_id, INDEXING_STATE_DIRTY)
        logger.debug("Marked document %s dirty", document_id)

    def mark_document_clean(self, document_id) -> None:
        document_id = parse_identifier(document_id, "document id")
        self.store.set_indexing_state(document_id, INDEXING_STATE_CLEAN)

    def mark_container_changed(self, container_id) -> int:
        """
        Flag every published article of an issue for re-indexing.

        Articles without a published record or whose status is not
        "published" are left alone.

        Returns:
            Number of articles marked
        """
        container_id = parse_identifier(container_id, "container id")

        marked = 0
        for document in self.store.iter_documents_by_container(container_id):
            if self.store.get_published_record(document.id) is None:
                continue
            if document.status != STATUS_PUBLISHED:
                continue
            self.mark_document_changed(document.id)
            marked += 1

        logger.info("Marked %d documents of container %s dirty", marked, container_id)
        return marked

    def fetch_dirty_batch(
        self,
        max_size: int,
        container_id=None,
    ) -> Tuple[List[Document], int]:
        """
        Fetch up to `max_size` dirty articles.

        Args:
            max_size: Upper bound on the batch length
            container_id: Optional issue id restricting the batch

        Returns:
            Tuple of (batch, total number of dirty articles matching the filter)
        """
        if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size <= 0:
            raise InvalidArgumentError(f"Invalid batch size: {max_size!r}")
        if container_id is not None:
            container_id = parse_identifier(container_id, "container id")

        return self.store.fetch_by_indexing_state(
            INDEXING_STATE_DIRTY, container_id=container_id, limit=max_size
        )

    def count_dirty(self, container_id=None) -> int:
        if container_id is not None:
            container_id = parse_identifier(container_id, "container id")
        _, total = self.store.fetch_by_indexing_state(
            INDEXING_STATE_DIRTY, container_id=container_id, limit=0
        )
        return total
