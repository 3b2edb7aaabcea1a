"""Search Index Clients

Thin adapters between the synchronizer and the remote search index.
Every client offers the same three operations:

  - index(record): upsert one add record, keyed by its objectID
  - delete_by_distinct_id(distinct_id): remove all chunk records of an article
  - clear_index(): remove every record the client is scoped to

Failures are raised as IndexSubmissionError; nothing is retried here.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple

from elastic_transport import TransportError
from elasticsearch import ApiError, Elasticsearch

from .errors import IndexSubmissionError
from .models import IndexRecord, RecordAction

logger = logging.getLogger(__name__)


class IndexClient(Protocol):
    def index(self, record: IndexRecord) -> None: ...

    def delete_by_distinct_id(self, distinct_id: int) -> None: ...

    def clear_index(self) -> None: ...


def _require_add(record: IndexRecord) -> None:
    if record.action != RecordAction.ADD or not record.object_id:
        raise IndexSubmissionError(
            f"Only add records with an objectID can be indexed (distinctId={record.distinct_id})"
        )


class ElasticsearchIndexClient:
    """
    Index client backed by an Elasticsearch index.

    Chunk records are stored under `_id = objectID`, so re-indexing an
    article overwrites its previous chunks with the same ids.
    """

    def __init__(
        self,
        index_name: str,
        url: str = "http://localhost:9200",
        api_key: Optional[str] = None,
        request_timeout: float = 30,
        es: Optional[Elasticsearch] = None,
    ) -> None:
        self.index_name = index_name
        self.es = es or Elasticsearch(url, api_key=api_key, request_timeout=request_timeout)

    @classmethod
    def from_settings(cls, settings) -> "ElasticsearchIndexClient":
        return cls(
            index_name=settings.elasticsearch_index,
            url=settings.elasticsearch_url,
            api_key=settings.elasticsearch_api_key,
            request_timeout=settings.request_timeout,
        )

    def index(self, record: IndexRecord) -> None:
        _require_add(record)
        try:
            self.es.index(index=self.index_name, id=record.object_id, document=record.to_payload())
        except (ApiError, TransportError) as e:
            raise IndexSubmissionError(f"Failed to index {record.object_id}: {e}") from e
        logger.debug("Indexed %s into %s", record.object_id, self.index_name)

    def delete_by_distinct_id(self, distinct_id: int) -> None:
        try:
            response = self.es.delete_by_query(
                index=self.index_name,
                query={"term": {"distinctId": distinct_id}},
                conflicts="proceed",
                refresh=True,
            )
        except (ApiError, TransportError) as e:
            raise IndexSubmissionError(f"Failed to delete distinctId={distinct_id}: {e}") from e
        logger.debug("Deleted %s records for distinctId=%s", response.get("deleted", 0), distinct_id)

    def clear_index(self) -> None:
        try:
            response = self.es.delete_by_query(
                index=self.index_name,
                query={"match_all": {}},
                conflicts="proceed",
                refresh=True,
            )
        except (ApiError, TransportError) as e:
            raise IndexSubmissionError(f"Failed to clear index {self.index_name}: {e}") from e
        logger.info("Cleared index %s (%s records removed)", self.index_name, response.get("deleted", 0))


class InMemoryIndexClient:
    """
    Index client that keeps records in a dict.

    Used for dry runs (records can be dumped to JSON) and in tests;
    `calls` lists every operation in the order it was made.
    """

    def __init__(self) -> None:
        self.records: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Any]] = []

    def index(self, record: IndexRecord) -> None:
        _require_add(record)
        self.calls.append(("index", record.object_id))
        self.records[record.object_id] = record.to_payload()

    def delete_by_distinct_id(self, distinct_id: int) -> None:
        self.calls.append(("delete_by_distinct_id", distinct_id))
        self.records = {
            object_id: payload
            for object_id, payload in self.records.items()
            if payload["distinctId"] != distinct_id
        }

    def clear_index(self) -> None:
        self.calls.append(("clear_index", None))
        self.records.clear()

    def dump(self, path: str | Path) -> Path:
        """Write the current records to a JSON array file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(list(self.records.values()), f, ensure_ascii=False, indent=2)
        logger.info("✓ Wrote %d index records to %s", len(self.records), path.name)
        return path
