"""
Tests for the Document Catalog
==============================
"""

import pytest

from shared.dealroom_core.documents import DocumentCatalog, normalize_folder
from shared.dealroom_core.exceptions import InvalidInputError, NotFoundError


@pytest.fixture
def catalog():
    return DocumentCatalog()


class TestFolders:

    @pytest.mark.parametrize("raw,expected", [
        (None, "/"),
        ("", "/"),
        ("Financials", "/Financials"),
        ("/Financials/", "/Financials"),
        ("//Legal//NDAs/", "/Legal/NDAs"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_folder(raw) == expected

    def test_parent_folders_registered(self, catalog):
        catalog.create_folder("DR-1", "Legal/NDAs/2026")
        assert catalog.list_folders("DR-1") == ["/", "/Legal", "/Legal/NDAs", "/Legal/NDAs/2026"]

    def test_empty_room_has_root(self, catalog):
        assert catalog.list_folders("DR-9") == ["/"]


class TestDocuments:

    def test_add_and_get(self, catalog):
        doc = catalog.add_document("DR-1", "CIM.pdf", 48, folder_path="/Financials")

        assert doc.document_id.startswith("doc_")
        assert catalog.get(doc.document_id, room_id="DR-1") == doc

    def test_document_belongs_to_its_room(self, catalog):
        doc = catalog.add_document("DR-1", "CIM.pdf", 48)
        with pytest.raises(NotFoundError):
            catalog.get(doc.document_id, room_id="DR-2")

    def test_page_count_must_be_positive(self, catalog):
        with pytest.raises(InvalidInputError):
            catalog.add_document("DR-1", "Empty.pdf", 0)

    def test_replace_bumps_version(self, catalog):
        doc = catalog.add_document("DR-1", "CIM.pdf", 48)
        updated = catalog.replace_document(doc.document_id, page_count=50)

        assert updated.version == 2
        assert updated.page_count == 50
        assert updated.document_id == doc.document_id

    def test_list_by_folder(self, catalog):
        catalog.add_document("DR-1", "b.pdf", 1, folder_path="/A")
        catalog.add_document("DR-1", "a.pdf", 1, folder_path="/A")
        catalog.add_document("DR-1", "c.pdf", 1, folder_path="/B")

        assert [d.name for d in catalog.list_documents("DR-1", folder="A")] == ["a.pdf", "b.pdf"]
        assert len(catalog.list_documents("DR-1")) == 3
