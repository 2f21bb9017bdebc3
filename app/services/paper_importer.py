"""Paper importer for manual paste and JSON/CSV uploads.

Produces Paper records with locally synthesized IDs when the source has none.
"""

import csv
import io
import json
import re
import time
import uuid
from datetime import datetime

from app.models.schemas import Paper


def synthesize_id(source: str, index: int) -> str:
    """``<source>-<ms timestamp>-<index>-<8 hex>``; the hex suffix avoids collisions."""
    return f"{source}-{int(time.time() * 1000)}-{index}-{uuid.uuid4().hex[:8]}"


def _parse_year(value) -> int:
    digits = re.sub(r"\D", "", str(value or ""))
    if digits:
        return int(digits[:4])
    return datetime.now().year


def _find_column(headers: list[str], *needles: str) -> int:
    for idx, header in enumerate(headers):
        if any(needle in header for needle in needles):
            return idx
    return -1


class PaperImporter:
    """Parses pasted text and uploaded files into Paper records."""

    SUPPORTED_EXTENSIONS = {".json", ".csv"}

    def parse_file(self, content: bytes, filename: str) -> list[Paper]:
        """Parse an upload based on its extension.

        Raises:
            ValueError: If the format is unsupported or the content is invalid.
        """
        ext = self._get_extension(filename)
        if ext == ".json":
            return self.parse_json(content)
        elif ext == ".csv":
            return self.parse_csv(content)
        else:
            raise ValueError(f"Unsupported file format: {ext}")

    def parse_manual(self, text: str) -> list[Paper]:
        """Parse pasted papers separated by blank lines.

        The first line of each entry is the title; the remaining lines form the
        abstract.
        """
        papers: list[Paper] = []
        year = datetime.now().year
        for idx, entry in enumerate(re.split(r"\n\s*\n", text or "")):
            lines = [line.strip() for line in entry.strip().splitlines()]
            if not lines or not lines[0]:
                continue
            papers.append(
                Paper(
                    id=synthesize_id("manual", idx),
                    title=lines[0],
                    abstract=" ".join(lines[1:]) or "No abstract provided.",
                    year=year,
                    journal="Manual Import",
                    authors=["Local Import"],
                )
            )
        return papers

    def parse_json(self, content: bytes) -> list[Paper]:
        """Parse a JSON array of paper-like objects.

        Raises:
            ValueError: If the content is not a JSON array.
        """
        try:
            data = json.loads(content.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"Failed to parse JSON: {e}") from e
        if not isinstance(data, list):
            raise ValueError("JSON upload must be an array of papers")

        papers: list[Paper] = []
        for idx, item in enumerate(data):
            if not isinstance(item, dict):
                continue
            authors = item.get("authors") or []
            papers.append(
                Paper(
                    id=str(item.get("id") or synthesize_id("file", idx)),
                    title=str(item.get("title") or "Untitled"),
                    abstract=str(item.get("abstract") or ""),
                    year=_parse_year(item.get("year")),
                    journal=str(item.get("journal") or "Uploaded File"),
                    authors=[str(a) for a in authors] if isinstance(authors, list) else [],
                )
            )
        return papers

    def parse_csv(self, content: bytes) -> list[Paper]:
        """Parse a delimited table with tolerant, case-insensitive headers.

        Columns are matched by substring: title, abstract, year/date,
        journal/source. Only the title column is required.

        Raises:
            ValueError: If there is no header plus data row, or no title column.
        """
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ValueError(f"Failed to decode CSV: {e}") from e

        rows = [row for row in csv.reader(io.StringIO(text)) if any(c.strip() for c in row)]
        if len(rows) < 2:
            raise ValueError("CSV too short")

        headers = [h.strip().lower() for h in rows[0]]
        title_idx = _find_column(headers, "title")
        abstract_idx = _find_column(headers, "abstract")
        year_idx = _find_column(headers, "year", "date")
        journal_idx = _find_column(headers, "journal", "source")
        if title_idx == -1:
            raise ValueError("CSV must have a 'Title' column.")

        def cell(row: list[str], idx: int) -> str:
            return row[idx].strip() if 0 <= idx < len(row) else ""

        papers: list[Paper] = []
        for idx, row in enumerate(rows[1:], start=1):
            if len(row) <= title_idx:
                continue
            papers.append(
                Paper(
                    id=synthesize_id("file", idx),
                    title=cell(row, title_idx) or "Untitled",
                    abstract=cell(row, abstract_idx),
                    year=_parse_year(cell(row, year_idx)),
                    journal=cell(row, journal_idx) or "Uploaded File",
                    authors=[],
                )
            )
        return papers

    def _get_extension(self, filename: str) -> str:
        """Get the lowercase file extension including the dot."""
        dot_idx = filename.rfind(".")
        if dot_idx == -1:
            return ""
        return filename[dot_idx:].lower()
