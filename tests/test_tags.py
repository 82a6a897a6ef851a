"""Tests for tag normalisation, replace-set updates and AND filtering."""

from docdesk.workspace.tags import (
    filter_documents_by_tags,
    get_document_tag_names,
    normalize_tag_name,
    parse_tag_list,
    set_document_tags,
    set_note_tags,
    upsert_tags_by_name,
)


def test_normalize_and_parse():
    assert normalize_tag_name("  Climate ") == "climate"
    assert parse_tag_list("Risk, risk ,,  FINANCE,") == ["risk", "finance"]
    assert parse_tag_list("") == []


def test_upsert_creates_tags_once(db):
    first = upsert_tags_by_name(db, ["A", "b"])
    second = upsert_tags_by_name(db, ["a", " B ", "c"])
    assert set(first) <= set(second)
    assert db.list_tag_names() == ["a", "b", "c"]


def test_empty_filter_means_no_restriction(db):
    assert filter_documents_by_tags(db, []) is None
    assert filter_documents_by_tags(db, ["  ", ""]) is None


def test_unknown_tag_matches_nothing(db, bare_doc):
    bare_doc("d1")
    set_document_tags(db, "d1", ["a"])
    assert filter_documents_by_tags(db, ["nonexistent"]) == []
    assert filter_documents_by_tags(db, ["a", "nonexistent"]) == []


def test_filter_requires_all_tags(db, bare_doc):
    for doc_id in ("d1", "d2", "d3"):
        bare_doc(doc_id)
    set_document_tags(db, "d1", ["a", "b"])
    set_document_tags(db, "d2", ["a"])
    set_document_tags(db, "d3", ["b", "c", "a"])

    assert sorted(filter_documents_by_tags(db, ["a", "b"])) == ["d1", "d3"]
    assert sorted(filter_documents_by_tags(db, ["A", " a "])) == ["d1", "d2", "d3"]
    assert filter_documents_by_tags(db, ["c"]) == ["d3"]


def test_tag_update_replaces_whole_set(db, bare_doc):
    bare_doc("d1")
    set_document_tags(db, "d1", ["a", "b"])
    set_document_tags(db, "d1", ["c"])

    assert get_document_tag_names(db, "d1") == ["c"]
    assert filter_documents_by_tags(db, ["a"]) == []
    # stale tags are kept
    assert db.list_tag_names() == ["a", "b", "c"]

    set_document_tags(db, "d1", [])
    assert get_document_tag_names(db, "d1") == []


def test_note_tags_do_not_affect_document_filter(db, bare_doc):
    bare_doc("d1")
    set_note_tags(db, "note-1", ["only-on-note"])
    assert filter_documents_by_tags(db, ["only-on-note"]) == []
    assert db.note_tag_names(["note-1"]) == {"note-1": ["only-on-note"]}
