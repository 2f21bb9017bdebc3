"""PubMed E-utilities client for searching and fetching paper records."""

import asyncio
import re
from datetime import datetime

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from app.models.schemas import Paper, QueryPart

MAX_AUTHORS = 5


class SearchPage:
    """One page of esearch results."""

    __slots__ = ("ids", "count")

    def __init__(self, ids: list[str], count: int):
        self.ids = ids
        self.count = count


def build_query(
    core_term: str,
    core_field: str = "",
    parts: list[QueryPart] | None = None,
    year_start: int | None = None,
    year_end: int | None = None,
    article_types: list[str] | None = None,
) -> str:
    """Build a PubMed boolean query from the search builder fields.

    Example: ``(crispr[tiab]) AND (cancer) AND (2020:2025[dp]) AND (Review[pt])``
    """
    if not core_term:
        return ""
    query = f"({core_term}{core_field})"
    for part in parts or []:
        if part.term:
            query += f" {part.operator} ({part.term}{part.field})"
    if year_start is not None and year_end is not None:
        query += f" AND ({year_start}:{year_end}[dp])"
    if article_types:
        types = " OR ".join(f"{t}[pt]" for t in article_types)
        query += f" AND ({types})"
    return query


def extract_pubmed_ids(text: str) -> list[str]:
    """Every run of digits in ``text``, in order."""
    return re.findall(r"\d+", text or "")


def _text(node) -> str:
    return node.get_text() if node is not None else ""


def _parse_year(article) -> int:
    pub_date = article.find("PubDate")
    if pub_date is not None:
        year_node = pub_date.find("Year")
        if year_node is not None:
            try:
                return int(year_node.get_text(strip=True))
            except ValueError:
                pass
        medline = pub_date.find("MedlineDate")
        if medline is not None:
            match = re.search(r"\d{4}", medline.get_text())
            if match:
                return int(match.group(0))
    return datetime.now().year


def _parse_abstract(article) -> str:
    sections = article.find_all("AbstractText")
    if not sections:
        return "No abstract available."
    parts = []
    for section in sections:
        label = section.get("Label")
        text = section.get_text()
        parts.append(f"{label}: {text}" if label else text)
    return " ".join(parts).strip()


def _parse_journal(article) -> str:
    journal = article.find("Journal")
    if journal is not None:
        title = journal.find("Title")
        if title is not None and title.get_text(strip=True):
            return title.get_text(strip=True)
        abbrev = journal.find("ISOAbbreviation")
        if abbrev is not None and abbrev.get_text(strip=True):
            return abbrev.get_text(strip=True)
    return "Unknown Journal"


def _parse_authors(article) -> list[str]:
    authors: list[str] = []
    for author in article.find_all("Author")[:MAX_AUTHORS]:
        last_name = _text(author.find("LastName"))
        initials = _text(author.find("Initials"))
        if last_name:
            authors.append(f"{last_name} {initials}")
    return authors


def parse_articles(xml: str) -> list[Paper]:
    """Parse an efetch XML document into Paper records."""
    soup = BeautifulSoup(xml, "xml")
    papers: list[Paper] = []
    for article in soup.find_all("PubmedArticle"):
        title = _text(article.find("ArticleTitle")) or "No Title"
        papers.append(
            Paper(
                id=_text(article.find("PMID")),
                title=title,
                abstract=_parse_abstract(article),
                year=_parse_year(article),
                journal=_parse_journal(article),
                authors=_parse_authors(article),
            )
        )
    return papers


class PubMedClient:
    """Async client for NCBI E-utilities (esearch + efetch)."""

    BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
    DB = "pubmed"

    def __init__(
        self,
        email: str | None = None,
        api_key: str | None = None,
        tool: str = "research-compass",
        batch_size: int = 200,
        batch_pause_seconds: float = 0.3,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.email = email
        self.api_key = api_key
        self.tool = tool
        self.batch_size = batch_size
        self.batch_pause_seconds = batch_pause_seconds
        self._http_client = http_client or httpx.AsyncClient(timeout=30.0)

    def _common_params(self) -> dict:
        params: dict = {"db": self.DB, "tool": self.tool}
        if self.email:
            params["email"] = self.email
        if self.api_key:
            params["api_key"] = self.api_key
        return params

    async def search(self, query: str, offset: int = 0, page_size: int = 10) -> SearchPage:
        """Run esearch and return one page of PMIDs plus the total hit count.

        Returns an empty page on error.
        """
        params = {
            **self._common_params(),
            "term": query,
            "retstart": offset,
            "retmax": page_size,
            "retmode": "json",
            "sort": "date",
        }
        try:
            response = await self._http_client.get(
                f"{self.BASE_URL}/esearch.fcgi", params=params
            )
            response.raise_for_status()
            result = response.json().get("esearchresult") or {}
        except (httpx.HTTPStatusError, httpx.TimeoutException, httpx.ConnectError) as e:
            logger.warning(f"PubMed search error: {type(e).__name__}")
            return SearchPage(ids=[], count=0)
        except Exception as e:
            logger.error(f"Unexpected error querying PubMed: {type(e).__name__}")
            return SearchPage(ids=[], count=0)

        if "idlist" not in result:
            return SearchPage(ids=[], count=0)
        return SearchPage(ids=list(result["idlist"]), count=int(result.get("count") or 0))

    async def fetch_details(self, ids: list[str]) -> list[Paper]:
        """Fetch and parse records for ``ids`` in batches.

        Batches are POSTed (long ID lists exceed URL limits) with a short pause
        between them. On error the papers gathered so far are returned.
        """
        if not ids:
            return []

        batches = [ids[i:i + self.batch_size] for i in range(0, len(ids), self.batch_size)]
        papers: list[Paper] = []
        for index, batch in enumerate(batches):
            data = {**self._common_params(), "id": ",".join(batch), "retmode": "xml"}
            try:
                response = await self._http_client.post(
                    f"{self.BASE_URL}/efetch.fcgi", data=data
                )
                response.raise_for_status()
                papers.extend(parse_articles(response.text))
            except (httpx.HTTPStatusError, httpx.TimeoutException, httpx.ConnectError) as e:
                logger.warning(f"PubMed fetch error on batch {index + 1}/{len(batches)}: {e}")
                return papers
            except Exception as e:
                logger.error(f"Unexpected error fetching PubMed details: {e}")
                return papers

            if index < len(batches) - 1:
                await asyncio.sleep(self.batch_pause_seconds)

        logger.info(f"Fetched {len(papers)} PubMed records in {len(batches)} batch(es)")
        return papers

    async def close(self):
        """Close the underlying HTTP client."""
        await self._http_client.aclose()
