from datetime import datetime, timezone

import pytest

from index_sync.errors import InvalidArgumentError, TransformError
from index_sync.models import Container, Galley, Journal, PublishedRecord
from index_sync.transformers import (
    ContentTransformer,
    chunk_content,
    format_authors,
    wordwrap,
)

from factories import (
    BASE_URL,
    make_document,
    make_published,
    make_store,
    subscription_container,
)


# --- helpers -----------------------------------------------------------------


def make_transformer(store, **kwargs):
    return ContentTransformer(store, base_url=BASE_URL, **kwargs)


# --- chunk_content -----------------------------------------------------------


def test_chunk_content_splits_paragraphs():
    assert chunk_content("<p>Hello</p><p>World</p>") == ["Hello", "World"]


def test_chunk_content_empty_input():
    assert chunk_content("") == [""]
    assert chunk_content(None) == [""]


def test_chunk_content_without_paragraph_tags():
    assert chunk_content("NoParagraphTags") == ["NoParagraphTags"]


def test_chunk_content_decodes_entities_and_strips_tags():
    """Entities are decoded before tags are stripped, so escaped markup is removed too."""
    chunks = chunk_content("<p>Fish &amp; <b>chips</b></p><p>&lt;i&gt;salt&lt;/i&gt;</p>")

    assert chunks == ["Fish & chips", "salt"]


def test_chunk_content_paragraph_tags_case_insensitive_and_attributes():
    chunks = chunk_content('<P class="lead">One</P><p style="x">Two<p/>Three')

    assert chunks == ["One", "Two", "Three"]


def test_chunk_content_does_not_split_on_pre_tags():
    chunks = chunk_content("<p>Code:<pre>x = 1</pre></p>")

    assert chunks == ["Code:x = 1"]


def test_chunk_content_keeps_whitespace_only_fragments_as_empty_chunks():
    """Fragments between paragraphs are kept; emptiness is filtered later."""
    chunks = chunk_content("<p>A</p>\n<p>B</p>")

    assert chunks == ["A", "", "B"]


def test_chunk_content_wraps_long_paragraphs_without_losing_words():
    text = " ".join(["word"] * 200)

    chunks = chunk_content(f"<p>{text}</p>")

    assert len(chunks) == 1
    lines = chunks[0].split("\n")
    assert len(lines) > 1
    assert all(len(line) <= 250 for line in lines)
    assert chunks[0].replace("\n", " ") == text


def test_chunk_content_is_deterministic():
    html_text = "<p>" + "</p><p>".join(f"Paragraph {i}" for i in range(50)) + "</p>"

    assert chunk_content(html_text) == chunk_content(html_text)


# --- wordwrap ----------------------------------------------------------------


def test_wordwrap_leaves_long_words_whole():
    long_word = "x" * 300

    assert wordwrap(f"{long_word} tail", width=250) == f"{long_word}\ntail"


def test_wordwrap_preserves_existing_newlines():
    assert wordwrap("short\nlines", width=10) == "short\nlines"


def test_wordwrap_breaks_at_last_space_within_width():
    assert wordwrap("aaa bbb ccc", width=7) == "aaa bbb\nccc"


# --- field mapping -----------------------------------------------------------


def test_format_authors_orders_by_sequence_and_includes_middle_name():
    doc = make_document(1)
    doc.authors.reverse()

    assert format_authors(doc) == "Ada Lovelace, Charles X. Babbage"


def test_map_fields_resolves_all_fields():
    doc = make_document(7)
    store = make_store([doc])

    fields = make_transformer(store).map_fields(doc)

    assert fields["title"] == "Article 7"
    assert fields["discipline"] == ["History"]
    assert fields["subject"] == ["Maps", "Trade"]
    assert fields["coverage"] == []
    assert fields["type"] == "Research Article"
    assert fields["authors"] == "Ada Lovelace, Charles X. Babbage"
    assert fields["publication_date"] == int(datetime(2020, 1, 1, tzinfo=timezone.utc).timestamp())
    assert fields["section"] == "Articles"
    assert fields["url"] == f"{BASE_URL}/index.php/jas/article/view/7"
    # No HTML galley: the full text contributes a single empty chunk
    assert fields["body"] == ["Abstract of article 7.", ""]


def test_map_fields_keeps_existing_index_php_in_base_url():
    doc = make_document(7)
    store = make_store([doc])
    transformer = ContentTransformer(store, base_url="https://x.org/index.php/")

    assert transformer.map_fields(doc)["url"] == "https://x.org/index.php/jas/article/view/7"


def test_map_fields_falls_back_to_other_locale():
    doc = make_document(3, locale="fr_CA", title={"en_US": "English title"})
    store = make_store([doc])

    assert make_transformer(store).map_fields(doc)["title"] == "English title"


def test_map_fields_without_publication_date():
    doc = make_document(3, date_published=None)
    store = make_store([doc])

    assert make_transformer(store).map_fields(doc)["publication_date"] is None


def test_map_fields_raises_without_published_record():
    doc = make_document(3)
    store = make_store([doc], published=[])

    with pytest.raises(TransformError):
        make_transformer(store).map_fields(doc)


def test_map_fields_raises_when_journal_missing():
    doc = make_document(3)
    store = make_store([doc], journals=[])

    with pytest.raises(TransformError):
        make_transformer(store).map_fields(doc)


# --- build_add_records -------------------------------------------------------


def test_build_add_records_one_record_per_chunk():
    """Abstract chunks come first, then galley chunks; ids and orders are sequential."""
    doc = make_document(42)
    store = make_store(
        [doc],
        published=[make_published(42, html="<p>Intro</p><p>Method</p><p>Results</p>")],
    )

    records = make_transformer(store).build_add_records(doc)

    assert [r.object_id for r in records] == ["42_0", "42_1", "42_2", "42_3"]
    assert [r.order for r in records] == [1, 2, 3, 4]
    assert [r.body for r in records] == ["Abstract of article 42.", "Intro", "Method", "Results"]
    assert all(r.distinct_id == 42 for r in records)
    assert all(r.action == "add" for r in records)
    assert all(r.title == "Article 42" for r in records)


def test_build_add_records_skips_empty_chunks_without_using_a_slot():
    doc = make_document(8, abstract={"en_US": "<p>First</p>\n\n<p>  </p><p>Second</p>"})
    store = make_store([doc])

    records = make_transformer(store).build_add_records(doc)

    assert [(r.object_id, r.order, r.body) for r in records] == [
        ("8_0", 1, "First"),
        ("8_1", 2, "Second"),
    ]


def test_build_add_records_empty_body_yields_nothing():
    doc = make_document(9, abstract={"en_US": "   "})
    store = make_store([doc], published=[make_published(9, html="<p> </p>")])

    assert make_transformer(store).build_add_records(doc) == []


def test_build_add_records_reads_html_galley_files(tmp_path):
    galley_file = tmp_path / "galley.html"
    galley_file.write_text("<p>From file</p>", encoding="utf-8")
    doc = make_document(10, abstract=None)
    record = PublishedRecord(
        document_id=10,
        container_id=5,
        galleys=[
            Galley(file_type="application/pdf", file_path=str(tmp_path / "ignored.pdf")),
            Galley(file_type="text/html", file_path=str(galley_file)),
        ],
    )
    store = make_store([doc], published=[record])

    records = make_transformer(store).build_add_records(doc)

    assert [r.body for r in records] == ["From file"]


def test_build_add_records_missing_galley_file_raises(tmp_path):
    doc = make_document(11)
    record = PublishedRecord(
        document_id=11,
        container_id=5,
        galleys=[Galley(file_type="text/html", file_path=str(tmp_path / "missing.html"))],
    )
    store = make_store([doc], published=[record])

    with pytest.raises(TransformError):
        make_transformer(store).build_add_records(doc)


def test_build_add_records_undecodable_galley_file_raises(tmp_path):
    """A galley that is not valid UTF-8 is a transform failure, not a crash."""
    galley_file = tmp_path / "latin1.html"
    galley_file.write_bytes(b"<p>caf\xe9</p>")
    doc = make_document(12)
    record = PublishedRecord(
        document_id=12,
        container_id=5,
        galleys=[Galley(file_type="text/html", file_path=str(galley_file))],
    )
    store = make_store([doc], published=[record])

    with pytest.raises(TransformError) as excinfo:
        make_transformer(store).build_add_records(doc)

    assert excinfo.value.document_id == 12
    assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)


def test_add_record_payload_uses_wire_field_names():
    doc = make_document(12)
    store = make_store([doc])

    payload = make_transformer(store).build_add_records(doc)[0].to_payload()

    assert payload["objectID"] == "12_0"
    assert payload["distinctId"] == 12
    assert payload["objectAction"] == "add"
    assert "publicationDate" in payload


# --- build_delete_record -----------------------------------------------------


def test_build_delete_record_accepts_document_or_id():
    transformer = make_transformer(make_store([]))
    doc = make_document(13)

    for value in (doc, 13, "13"):
        record = transformer.build_delete_record(value)
        assert record.distinct_id == 13
        assert record.action == "delete"
        assert record.object_id is None

    assert transformer.build_delete_record(13).to_payload() == {
        "distinctId": 13,
        "objectAction": "delete",
    }


@pytest.mark.parametrize("bad_id", ["abc", 0, -3, None, 1.5, True])
def test_build_delete_record_rejects_malformed_ids(bad_id):
    transformer = make_transformer(make_store([]))

    with pytest.raises(InvalidArgumentError):
        transformer.build_delete_record(bad_id)


# --- is_access_authorized ----------------------------------------------------


def test_access_authorized_for_published_open_document():
    doc = make_document(1)
    assert make_transformer(make_store([doc])).is_access_authorized(doc) is True


def test_access_denied_for_unpublished_container():
    doc = make_document(1)
    store = make_store([doc], containers=[Container(id=5, journal_id=1, published=False)])

    assert make_transformer(store).is_access_authorized(doc) is False


def test_access_denied_without_published_record():
    doc = make_document(1)
    store = make_store([doc], published=[])

    assert make_transformer(store).is_access_authorized(doc) is False


def test_access_denied_when_status_not_published():
    doc = make_document(1, status="queued")

    assert make_transformer(make_store([doc])).is_access_authorized(doc) is False


def test_access_denied_when_container_missing():
    doc = make_document(1)
    store = make_store([doc], containers=[])

    assert make_transformer(store).is_access_authorized(doc) is False


def test_access_denied_when_subscription_check_fails():
    doc = make_document(1)
    store = make_store([doc], containers=[subscription_container()])

    assert make_transformer(store).is_access_authorized(doc) is False


def test_access_granted_when_subscription_check_passes():
    doc = make_document(1)
    store = make_store([doc], containers=[subscription_container()])
    seen = []

    def check(container, document, request_context):
        seen.append((container.id, document.id, request_context))
        return True

    transformer = make_transformer(store, is_subscribed_access=check, request_context="ctx")

    assert transformer.is_access_authorized(doc) is True
    assert seen == [(5, 1, "ctx")]


def test_container_and_journal_lookups_are_cached():
    docs = [make_document(i) for i in range(1, 4)]
    store = make_store(docs)
    lookups = {"container": 0, "journal": 0}
    original_get_container = store.get_container
    original_get_journal = store.get_journal

    def counting_get_container(container_id):
        lookups["container"] += 1
        return original_get_container(container_id)

    def counting_get_journal(journal_id):
        lookups["journal"] += 1
        return original_get_journal(journal_id)

    store.get_container = counting_get_container
    store.get_journal = counting_get_journal
    transformer = make_transformer(store)

    for doc in docs:
        assert transformer.is_access_authorized(doc)
        transformer.build_add_records(doc)

    assert lookups == {"container": 1, "journal": 1}
