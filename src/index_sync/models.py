"""Data Models Module

Defines Pydantic models for the objects the synchronizer reads from the
datastore (journals, issues, articles and their galleys) and for the
records it submits to the search index.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Union
from pydantic import BaseModel, ConfigDict, Field

STATUS_PUBLISHED = "published"

LocalizedText = Union[str, Dict[str, str], None]
LocalizedList = Union[List[str], Dict[str, List[str]], None]


class AccessStatus(str, Enum):
    OPEN = "open"
    SUBSCRIPTION = "subscription"


class RecordAction(str, Enum):
    ADD = "add"
    DELETE = "delete"


class Journal(BaseModel):
    """Publishing context an issue belongs to. Supplies the URL path segment."""
    id: int
    acronym: LocalizedText = None
    path: Optional[str] = None


class Container(BaseModel):
    """A publication grouping (an issue) with its publication and access state."""
    id: int
    journal_id: int
    published: bool = False
    access_status: AccessStatus = AccessStatus.OPEN

    @property
    def subscription_required(self) -> bool:
        return self.access_status == AccessStatus.SUBSCRIPTION


class Galley(BaseModel):
    """One rendition of an article's full text.

    Content is read from `file_path` unless it is given inline.
    """
    file_type: str
    file_path: Optional[str] = None
    content: Optional[str] = None


class PublishedRecord(BaseModel):
    """Publication entry linking an article to the issue it appears in."""
    document_id: int
    container_id: int
    sequence: float = 0
    galleys: List[Galley] = []


class Author(BaseModel):
    first_name: str = ""
    middle_name: Optional[str] = None
    last_name: str = ""
    seq: float = 0


class Document(BaseModel):
    """An article as stored by the authoring workflow.

    Localized fields accept either a plain value or a mapping of
    locale to value.
    """
    id: int
    journal_id: int
    locale: str = "en_US"
    status: str = STATUS_PUBLISHED
    title: LocalizedText = None
    abstract: LocalizedText = None
    discipline: LocalizedList = None
    subject: LocalizedList = None
    coverage: LocalizedList = None
    type: LocalizedText = None
    authors: List[Author] = []
    date_published: Optional[datetime] = None
    section_title: Optional[str] = None
    indexing_dirty: bool = False


class IndexRecord(BaseModel):
    """One unit submitted to the search index.

    An article with several body chunks yields several add records that
    share `distinct_id`. Serialize with `to_payload()` to get the wire
    field names.
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    distinct_id: int = Field(alias="distinctId")
    action: RecordAction = Field(alias="objectAction")
    object_id: Optional[str] = Field(default=None, alias="objectID")
    order: Optional[int] = None
    title: Optional[str] = None
    discipline: List[str] = []
    subject: List[str] = []
    coverage: List[str] = []
    type: Optional[str] = None
    authors: Optional[str] = None
    publication_date: Optional[int] = Field(default=None, alias="publicationDate")
    section: Optional[str] = None
    url: Optional[str] = None
    body: Optional[str] = None

    def to_payload(self) -> Dict[str, object]:
        if self.action == RecordAction.DELETE.value:
            return self.model_dump(by_alias=True, include={"distinct_id", "action"})
        return self.model_dump(by_alias=True)


class SyncResult(BaseModel):
    """Outcome of one synchronization run."""
    batch_count: int = 0
    total_dirty: int = 0
    deleted: int = 0
    added_records: int = 0
    skipped_unauthorized: int = 0
    failed_transform: int = 0
    cleared_index: bool = False
    remaining_dirty: int = 0
