"""Tests for NodeQuery compilation and MIME classification."""

from __future__ import annotations

from homecloud.fs.metadata import classify_mime_type
from homecloud.fs.query import ROOT, NodeQuery, ParentFilter
from homecloud.models.files import FileCategory


def _sql(query: NodeQuery) -> list[str]:
    return [str(c.compile(compile_kwargs={"literal_binds": True})) for c in query.conditions()]


class TestParentFilter:
    def test_root(self):
        assert ROOT.is_root
        assert ParentFilter(3).is_root is False


class TestNodeQuery:
    def test_always_scoped_to_user(self):
        sql = _sql(NodeQuery(user_id=7, trashed=None))
        assert sql == ["files.user_id = 7"]

    def test_root_children_use_is_null(self):
        sql = _sql(NodeQuery.children(1, None))
        assert "files.parent_id IS NULL" in sql
        assert "files.trashed = 0" in sql or "files.trashed = false" in sql

    def test_folder_children_use_equality(self):
        sql = _sql(NodeQuery.children(1, 42))
        assert "files.parent_id = 42" in sql

    def test_siblings(self):
        sql = _sql(NodeQuery.siblings(1, None, "Docs", exclude_id=5))
        assert "files.name = 'Docs'" in sql
        assert "files.id != 5" in sql

    def test_files_only(self):
        sql = _sql(NodeQuery(user_id=1, folders=False))
        assert "files.category != 'folder'" in sql

    def test_where_returns_copy(self):
        base = NodeQuery.children(1, None)
        starred = base.where(starred=True)
        assert base.starred is None
        assert starred.starred is True
        assert starred.parent == base.parent


class TestClassifyMimeType:
    def test_families(self):
        assert classify_mime_type("image/png") is FileCategory.IMAGE
        assert classify_mime_type("video/mp4") is FileCategory.VIDEO
        assert classify_mime_type("audio/mpeg") is FileCategory.AUDIO

    def test_pdf_is_document(self):
        assert classify_mime_type("application/pdf") is FileCategory.DOCUMENT

    def test_archives(self):
        assert classify_mime_type("application/zip") is FileCategory.ARCHIVE
        assert classify_mime_type("application/x-7z-compressed") is FileCategory.ARCHIVE
        assert classify_mime_type("application/gzip") is FileCategory.ARCHIVE

    def test_unknown_defaults_to_document(self):
        assert classify_mime_type(None) is FileCategory.DOCUMENT
        assert classify_mime_type("text/plain") is FileCategory.DOCUMENT
