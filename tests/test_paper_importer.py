"""Tests for PaperImporter service."""

import json
from datetime import datetime

import pytest

from app.services.paper_importer import PaperImporter, synthesize_id


class TestSynthesizeId:
    """Test local ID generation."""

    def test_prefix_and_uniqueness(self):
        first = synthesize_id("manual", 0)
        second = synthesize_id("manual", 0)
        assert first.startswith("manual-")
        assert first != second


class TestParseManual:
    """Test pasted-text parsing."""

    def setup_method(self):
        self.importer = PaperImporter()

    def test_two_entries(self):
        text = "First title\nAbstract line one\nline two\n\n  \nSecond title"
        papers = self.importer.parse_manual(text)

        assert len(papers) == 2
        assert papers[0].title == "First title"
        assert papers[0].abstract == "Abstract line one line two"
        assert papers[0].journal == "Manual Import"
        assert papers[0].authors == ["Local Import"]
        assert papers[0].year == datetime.now().year
        assert papers[1].abstract == "No abstract provided."
        assert papers[0].id != papers[1].id

    def test_blank_text(self):
        assert self.importer.parse_manual("\n\n   \n") == []


class TestParseFile:
    """Test JSON and CSV uploads."""

    def setup_method(self):
        self.importer = PaperImporter()

    def test_json_array(self):
        content = json.dumps([
            {"id": "123", "title": "T1", "abstract": "A1", "year": "2021-05", "journal": "J", "authors": ["X"]},
            {"title": None},
            "not an object",
        ]).encode()
        papers = self.importer.parse_file(content, "papers.JSON")

        assert len(papers) == 2
        assert papers[0].id == "123"
        assert papers[0].year == 2021
        assert papers[0].authors == ["X"]
        assert papers[1].title == "Untitled"
        assert papers[1].journal == "Uploaded File"
        assert papers[1].id.startswith("file-")

    def test_json_not_array(self):
        with pytest.raises(ValueError, match="array"):
            self.importer.parse_file(b'{"title": "x"}', "papers.json")

    def test_json_invalid(self):
        with pytest.raises(ValueError, match="Failed to parse JSON"):
            self.importer.parse_file(b"{not json", "papers.json")

    def test_csv_tolerant_headers(self):
        content = (
            "\ufeffArticle Title,Abstract Text,Publication Date,Source\n"
            '"CAR-T, revisited",Long abstract,2022/03/01,Cell\n'
            "\n"
            "Second,,,\n"
        ).encode()
        papers = self.importer.parse_file(content, "export.csv")

        assert len(papers) == 2
        assert papers[0].title == "CAR-T, revisited"
        assert papers[0].abstract == "Long abstract"
        assert papers[0].year == 2022
        assert papers[0].journal == "Cell"
        assert papers[1].journal == "Uploaded File"
        assert papers[1].year == datetime.now().year

    def test_csv_requires_title_column(self):
        content = b"Name,Abstract\nfoo,bar\n"
        with pytest.raises(ValueError, match="Title"):
            self.importer.parse_file(content, "export.csv")

    def test_csv_too_short(self):
        with pytest.raises(ValueError, match="too short"):
            self.importer.parse_file(b"Title\n", "export.csv")

    def test_unsupported_extension(self):
        with pytest.raises(ValueError, match="Unsupported"):
            self.importer.parse_file(b"data", "papers.xlsx")
