"""Datastore contract and an in-memory implementation.

The synchronizer only talks to the datastore through `DocumentStore`.
Host applications plug in their own implementation; the in-memory store
backs the CLI (via a JSON dataset) and the test suite.
"""

from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol, Tuple
import logging

from .loaders import load_dataset, save_dataset
from .models import Container, Document, Journal, PublishedRecord

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    def get_document(self, document_id: int) -> Optional[Document]: ...

    def iter_documents_by_container(self, container_id: int) -> Iterator[Document]: ...

    def get_container(self, container_id: int) -> Optional[Container]: ...

    def get_journal(self, journal_id: int) -> Optional[Journal]: ...

    def get_published_record(self, document_id: int) -> Optional[PublishedRecord]: ...

    def set_indexing_state(self, document_id: int, dirty: bool) -> None: ...

    def fetch_by_indexing_state(
        self,
        dirty: bool,
        container_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Tuple[List[Document], int]: ...


class InMemoryDocumentStore:
    """Dictionary-backed `DocumentStore`.

    "Documents of a container" are the documents whose published record
    points at that container.
    """

    def __init__(
        self,
        documents: Optional[List[Document]] = None,
        containers: Optional[List[Container]] = None,
        journals: Optional[List[Journal]] = None,
        published: Optional[List[PublishedRecord]] = None,
    ) -> None:
        self.documents: Dict[int, Document] = {d.id: d for d in documents or []}
        self.containers: Dict[int, Container] = {c.id: c for c in containers or []}
        self.journals: Dict[int, Journal] = {j.id: j for j in journals or []}
        self.published: Dict[int, PublishedRecord] = {
            p.document_id: p for p in published or []
        }

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryDocumentStore":
        data = load_dataset(path)
        store = cls(
            documents=[Document(**d) for d in data["documents"]],
            containers=[Container(**c) for c in data["containers"]],
            journals=[Journal(**j) for j in data["journals"]],
            published=[PublishedRecord(**p) for p in data["published"]],
        )
        logger.debug(
            "Loaded dataset %s: %d documents, %d containers, %d journals",
            path,
            len(store.documents),
            len(store.containers),
            len(store.journals),
        )
        return store

    def to_dataset(self) -> Dict[str, list]:
        return {
            "journals": [j.model_dump(mode="json") for j in self.journals.values()],
            "containers": [c.model_dump(mode="json") for c in self.containers.values()],
            "published": [p.model_dump(mode="json") for p in self.published.values()],
            "documents": [d.model_dump(mode="json") for d in self.documents.values()],
        }

    def save(self, path: str | Path) -> None:
        save_dataset(path, self.to_dataset())

    def get_document(self, document_id: int) -> Optional[Document]:
        return self.documents.get(document_id)

    def iter_documents_by_container(self, container_id: int) -> Iterator[Document]:
        for document_id in sorted(self.documents):
            record = self.published.get(document_id)
            if record is not None and record.container_id == container_id:
                yield self.documents[document_id]

    def get_container(self, container_id: int) -> Optional[Container]:
        return self.containers.get(container_id)

    def get_journal(self, journal_id: int) -> Optional[Journal]:
        return self.journals.get(journal_id)

    def get_published_record(self, document_id: int) -> Optional[PublishedRecord]:
        return self.published.get(document_id)

    def set_indexing_state(self, document_id: int, dirty: bool) -> None:
        document = self.documents.get(document_id)
        if document is None:
            logger.warning("Cannot set indexing state: unknown document %s", document_id)
            return
        document.indexing_dirty = dirty

    def fetch_by_indexing_state(
        self,
        dirty: bool,
        container_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Tuple[List[Document], int]:
        if container_id is None:
            candidates = (self.documents[i] for i in sorted(self.documents))
        else:
            candidates = self.iter_documents_by_container(container_id)
        matching = [d for d in candidates if d.indexing_dirty == dirty]
        batch = matching if limit is None else matching[:limit]
        return batch, len(matching)
