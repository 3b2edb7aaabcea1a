"""Document Transformation Module

Converts one article (plus its issue and journal context) into the records
submitted to the search index.

Key responsibilities:
  - Decide whether an article may be visible in the index at all
  - Map article fields to index fields (titles, taxonomies, authors, URL)
  - Split abstract and full text into paragraph chunks small enough for
    the index's record size limit
  - Build add records (one per non-empty chunk) and delete records
"""

import re
import html
import logging
from datetime import timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .config import WORDWRAP_WIDTH
from .errors import TransformError, parse_identifier
from .models import (
    STATUS_PUBLISHED,
    Container,
    Document,
    IndexRecord,
    Journal,
    PublishedRecord,
    RecordAction,
)
from .store import DocumentStore

logger = logging.getLogger(__name__)

# Regex patterns (define at module level for performance)
TAG_RE = re.compile(r"<[^>]+>")
PARAGRAPH_RE = re.compile(r"<p(?:\s[^>]*)?/?>|</p\s*>", re.IGNORECASE)
INDEX_PHP_RE = re.compile(r"/index\.php")

HTML_GALLEY_TYPE = "text/html"

SubscriptionCheck = Callable[[Container, Document, Any], bool]


def deny_subscribed_access(container: Container, document: Document, request_context: Any) -> bool:
    """Default subscription check: gated content is never indexed."""
    return False


def strip_tags(text: Optional[str]) -> str:
    if not text:
        return ""
    return TAG_RE.sub("", text)


def wordwrap(text: str, width: int = WORDWRAP_WIDTH) -> str:
    """
    Break lines longer than `width` at word boundaries.

    The space a line is broken at becomes the newline; no other
    character is added or removed. Words longer than `width` are left
    whole, and existing newlines are kept.
    """
    wrapped: List[str] = []
    for line in text.split("\n"):
        while len(line) > width:
            split_at = line.rfind(" ", 0, width + 1)
            if split_at <= 0:
                split_at = line.find(" ", width + 1)
                if split_at == -1:
                    break
            wrapped.append(line[:split_at])
            line = line[split_at + 1:]
        wrapped.append(line)
    return "\n".join(wrapped)


def chunk_content(content: Optional[str], width: int = WORDWRAP_WIDTH) -> List[str]:
    """
    Split HTML content into paragraph chunks.

    Steps:
    1. Unescape HTML entities
    2. Split on opening/closing <p> tags
    3. Strip remaining tags from each fragment and word-wrap it
    4. Trim each fragment

    Chunks may be empty strings; callers decide whether to keep them.

    Args:
        content: Raw HTML (or plain text)
        width: Word-wrap column width

    Returns:
        Ordered list of chunks; [""] for empty input
    """
    content = content or ""
    decoded = html.unescape(content)
    if not decoded:
        return [strip_tags(content).strip()]

    chunks: List[str] = []
    for fragment in PARAGRAPH_RE.split(decoded):
        if not fragment:
            continue
        chunks.append(wordwrap(strip_tags(fragment), width).strip())
    return chunks


def resolve_localized(value: Any, locale: str) -> Any:
    """Pick the value for `locale` from a localized mapping.

    Falls back to the first non-empty locale. Non-mapping values are
    returned unchanged.
    """
    if not isinstance(value, dict):
        return value
    if value.get(locale):
        return value[locale]
    for candidate in value.values():
        if candidate:
            return candidate
    return None


def normalize_str_list(value: Any) -> List[str]:
    """Always returns a list; [] if null/missing/empty."""
    if not value:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    single = str(value).strip()
    return [single] if single else []


def format_authors(document: Document) -> str:
    """Format authors as "First [Middle] Last", comma separated, in author order."""
    names = []
    for author in sorted(document.authors, key=lambda a: a.seq):
        name = author.first_name
        if author.middle_name:
            name += " " + author.middle_name
        name += " " + author.last_name
        names.append(name)
    return ", ".join(names)


def format_publication_date(document: Document) -> Optional[int]:
    """Epoch seconds for the publication date; naive datetimes are taken as UTC."""
    published = document.date_published
    if published is None:
        return None
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return int(published.timestamp())


class ContentTransformer:
    """
    Maps articles to index records.

    Issues and journals are cached by id for the lifetime of the
    transformer. Create one transformer per synchronization run so the
    caches never outlive it.

    Example:
        >>> transformer = ContentTransformer(store, base_url="https://journals.example.org")
        >>> if transformer.is_access_authorized(document):
        ...     records = transformer.build_add_records(document)
    """

    def __init__(
        self,
        store: DocumentStore,
        base_url: str,
        is_subscribed_access: SubscriptionCheck = deny_subscribed_access,
        request_context: Any = None,
        wordwrap_width: int = WORDWRAP_WIDTH,
    ) -> None:
        self.store = store
        self.base_url = base_url
        self.is_subscribed_access = is_subscribed_access
        self.request_context = request_context
        self.wordwrap_width = wordwrap_width
        self._container_cache: Dict[int, Optional[Container]] = {}
        self._journal_cache: Dict[int, Optional[Journal]] = {}

    def _get_container(self, container_id: int) -> Optional[Container]:
        if container_id not in self._container_cache:
            self._container_cache[container_id] = self.store.get_container(container_id)
        return self._container_cache[container_id]

    def _get_journal(self, journal_id: int) -> Optional[Journal]:
        if journal_id not in self._journal_cache:
            self._journal_cache[journal_id] = self.store.get_journal(journal_id)
        return self._journal_cache[journal_id]

    def is_access_authorized(self, document: Document) -> bool:
        """
        Check whether the article may appear in the index.

        Requires a published record, a resolvable journal and issue, a
        published issue, a published article and, for subscription-only
        issues, a passing subscription check.
        """
        record = self.store.get_published_record(document.id)
        if record is None:
            logger.debug("Document %s not authorized: no published record", document.id)
            return False

        journal = self._get_journal(document.journal_id)
        if journal is None:
            logger.debug("Document %s not authorized: journal %s not found", document.id, document.journal_id)
            return False

        container = self._get_container(record.container_id)
        if container is None:
            logger.debug("Document %s not authorized: issue %s not found", document.id, record.container_id)
            return False

        if not container.published or document.status != STATUS_PUBLISHED:
            logger.debug(
                "Document %s not authorized: issue published=%s, status=%s",
                document.id,
                container.published,
                document.status,
            )
            return False

        if container.subscription_required:
            if not self.is_subscribed_access(container, document, self.request_context):
                logger.debug("Document %s not authorized: subscription check failed", document.id)
                return False

        return True

    def _require_published_record(self, document: Document) -> PublishedRecord:
        record = self.store.get_published_record(document.id)
        if record is None:
            raise TransformError(document.id, "no published record")
        return record

    def format_title(self, document: Document) -> Optional[str]:
        title = resolve_localized(document.title, document.locale)
        if title is None:
            return None
        return strip_tags(title)

    def format_url(self, document: Document) -> str:
        """Build the article URL: base URL (with /index.php), journal acronym, article id."""
        journal = self._get_journal(document.journal_id)
        if journal is None:
            raise TransformError(document.id, f"journal {document.journal_id} not found")
        acronym = resolve_localized(journal.acronym, document.locale) or journal.path
        if not acronym:
            raise TransformError(document.id, f"journal {journal.id} has no acronym")

        base_url = self.base_url.rstrip("/")
        if not INDEX_PHP_RE.search(base_url):
            base_url += "/index.php"
        return f"{base_url}/{acronym.lower()}/article/view/{document.id}"

    def get_galley_html(self, document: Document, record: PublishedRecord) -> str:
        """Concatenate the contents of all HTML galleys."""
        contents = ""
        for galley in record.galleys:
            if galley.file_type != HTML_GALLEY_TYPE:
                continue
            if galley.content is not None:
                contents += galley.content
            elif galley.file_path:
                try:
                    contents += Path(galley.file_path).read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as e:
                    raise TransformError(document.id, f"cannot read galley {galley.file_path}: {e}") from e
        return contents

    def map_fields(self, document: Document) -> Dict[str, Any]:
        """
        Resolve every index field for an article.

        Abstract and full-text chunks are merged into a single ordered
        'body' list (abstract first).

        Raises:
            TransformError: If the published record, issue or journal
                cannot be resolved, or a galley file cannot be read
        """
        record = self._require_published_record(document)
        if self._get_container(record.container_id) is None:
            raise TransformError(document.id, f"issue {record.container_id} not found")

        locale = document.locale
        abstract_chunks = chunk_content(resolve_localized(document.abstract, locale), self.wordwrap_width)
        full_text_chunks = chunk_content(self.get_galley_html(document, record), self.wordwrap_width)

        type_value = resolve_localized(document.type, locale)
        return {
            "title": self.format_title(document),
            "discipline": normalize_str_list(resolve_localized(document.discipline, locale)),
            "subject": normalize_str_list(resolve_localized(document.subject, locale)),
            "coverage": normalize_str_list(resolve_localized(document.coverage, locale)),
            "type": str(type_value) if type_value else None,
            "authors": format_authors(document),
            "publication_date": format_publication_date(document),
            "section": document.section_title,
            "url": self.format_url(document),
            "body": abstract_chunks + full_text_chunks,
        }

    def build_add_records(self, document: Document) -> List[IndexRecord]:
        """
        Build one add record per non-empty body chunk.

        Empty chunks are skipped and do not use up a position: records
        are numbered {id}_0, {id}_1, ... with order 1, 2, ...

        Returns:
            List of add records; [] if the body is empty
        """
        fields = self.map_fields(document)
        body_chunks = fields.pop("body")

        records: List[IndexRecord] = []
        for chunk in body_chunks:
            chunk = chunk.strip()
            if not chunk:
                continue
            position = len(records)
            records.append(IndexRecord(
                distinct_id=document.id,
                action=RecordAction.ADD,
                object_id=f"{document.id}_{position}",
                order=position + 1,
                body=chunk,
                **fields,
            ))

        if not records:
            logger.debug("Document %s has an empty body; no add records", document.id)
        return records

    def build_delete_record(self, document_or_id: Union[Document, int, str]) -> IndexRecord:
        """Build a delete record keyed by the article's distinct id."""
        if isinstance(document_or_id, Document):
            distinct_id = document_or_id.id
        else:
            distinct_id = parse_identifier(document_or_id, "document id")
        return IndexRecord(distinct_id=distinct_id, action=RecordAction.DELETE)
