"""Tests for the PubMed E-utilities client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.models.schemas import QueryPart
from app.services.pubmed_client import (
    PubMedClient,
    build_query,
    extract_pubmed_ids,
    parse_articles,
)

SAMPLE_EFETCH_XML = """<?xml version="1.0" ?>
<PubmedArticleSet>
  <PubmedArticle>
    <MedlineCitation>
      <PMID Version="1">38000001</PMID>
      <Article>
        <Journal>
          <JournalIssue><PubDate><Year>2023</Year></PubDate></JournalIssue>
          <Title>Nature Medicine</Title>
          <ISOAbbreviation>Nat Med</ISOAbbreviation>
        </Journal>
        <ArticleTitle>In vivo base editing of PCSK9</ArticleTitle>
        <Abstract>
          <AbstractText Label="BACKGROUND">LDL is high.</AbstractText>
          <AbstractText Label="RESULTS">LDL went down.</AbstractText>
        </Abstract>
        <AuthorList>
          <Author><LastName>Lee</LastName><Initials>RG</Initials></Author>
          <Author><LastName>Kim</LastName><Initials>J</Initials></Author>
          <Author><CollectiveName>Consortium</CollectiveName></Author>
        </AuthorList>
      </Article>
    </MedlineCitation>
  </PubmedArticle>
  <PubmedArticle>
    <MedlineCitation>
      <PMID Version="1">38000002</PMID>
      <Article>
        <Journal>
          <JournalIssue><PubDate><MedlineDate>2019 Nov-Dec</MedlineDate></PubDate></JournalIssue>
          <ISOAbbreviation>J Test</ISOAbbreviation>
        </Journal>
        <ArticleTitle></ArticleTitle>
        <AuthorList>
          <Author><LastName>A</LastName><Initials>A</Initials></Author>
          <Author><LastName>B</LastName><Initials>B</Initials></Author>
          <Author><LastName>C</LastName><Initials>C</Initials></Author>
          <Author><LastName>D</LastName><Initials>D</Initials></Author>
          <Author><LastName>E</LastName><Initials>E</Initials></Author>
          <Author><LastName>F</LastName><Initials>F</Initials></Author>
        </AuthorList>
      </Article>
    </MedlineCitation>
  </PubmedArticle>
</PubmedArticleSet>
"""


def _response(status: int = 200, json_data=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.json.return_value = json_data or {}
    response.text = text
    if status >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "error", request=MagicMock(), response=MagicMock(status_code=status)
        )
    else:
        response.raise_for_status.return_value = None
    return response


class TestBuildQuery:
    """Test boolean query construction."""

    def test_full_query(self):
        query = build_query(
            "crispr",
            "[tiab]",
            [QueryPart(operator="AND", term="cancer"), QueryPart(operator="NOT", term="mouse", field="[mh]")],
            2020,
            2025,
            ["Review", "Clinical Trial"],
        )
        assert query == (
            "(crispr[tiab]) AND (cancer) NOT (mouse[mh]) AND (2020:2025[dp]) "
            "AND (Review[pt] OR Clinical Trial[pt])"
        )

    def test_blank_parts_skipped(self):
        assert build_query("crispr", parts=[QueryPart(term="")]) == "(crispr)"

    def test_empty_core_term(self):
        assert build_query("") == ""


class TestParseArticles:
    """Test efetch XML parsing."""

    def test_full_record(self):
        paper = parse_articles(SAMPLE_EFETCH_XML)[0]
        assert paper.id == "38000001"
        assert paper.title == "In vivo base editing of PCSK9"
        assert paper.abstract == "BACKGROUND: LDL is high. RESULTS: LDL went down."
        assert paper.year == 2023
        assert paper.journal == "Nature Medicine"
        assert paper.authors == ["Lee RG", "Kim J"]

    def test_fallbacks(self):
        paper = parse_articles(SAMPLE_EFETCH_XML)[1]
        assert paper.title == "No Title"
        assert paper.abstract == "No abstract available."
        assert paper.year == 2019
        assert paper.journal == "J Test"
        assert paper.authors == ["A A", "B B", "C C", "D D", "E E"]


def test_extract_pubmed_ids():
    assert extract_pubmed_ids("PMID: 123, 456\n789 abc") == ["123", "456", "789"]
    assert extract_pubmed_ids("none here") == []


class TestPubMedClient:
    """Test esearch and batched efetch."""

    def setup_method(self):
        self.http = MagicMock()
        self.http.get = AsyncMock()
        self.http.post = AsyncMock()
        self.http.aclose = AsyncMock()
        self.client = PubMedClient(
            email="test@example.com", api_key="key", batch_size=2, http_client=self.http
        )

    @pytest.mark.asyncio
    async def test_search(self):
        self.http.get.return_value = _response(
            json_data={"esearchresult": {"count": "42", "idlist": ["1", "2"]}}
        )
        page = await self.client.search("(crispr)", offset=10, page_size=2)

        assert page.ids == ["1", "2"]
        assert page.count == 42
        params = self.http.get.await_args.kwargs["params"]
        assert params["retstart"] == 10
        assert params["retmax"] == 2
        assert params["sort"] == "date"
        assert params["email"] == "test@example.com"
        assert params["api_key"] == "key"

    @pytest.mark.asyncio
    async def test_search_http_error_returns_empty(self):
        self.http.get.return_value = _response(status=500)
        page = await self.client.search("(crispr)")
        assert page.ids == []
        assert page.count == 0

    @pytest.mark.asyncio
    async def test_search_without_idlist(self):
        self.http.get.return_value = _response(json_data={"esearchresult": {"count": "5"}})
        page = await self.client.search("(crispr)")
        assert page.count == 0

    @pytest.mark.asyncio
    async def test_fetch_details_batches_with_pause(self):
        self.http.post.return_value = _response(text=SAMPLE_EFETCH_XML)
        with patch("app.services.pubmed_client.asyncio.sleep", new_callable=AsyncMock) as sleep:
            papers = await self.client.fetch_details(["1", "2", "3", "4", "5"])

        # 3 batches of at most 2 IDs, each returning the two sample records
        assert self.http.post.await_count == 3
        assert len(papers) == 6
        sent = [c.kwargs["data"]["id"] for c in self.http.post.await_args_list]
        assert sent == ["1,2", "3,4", "5"]
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.3)

    @pytest.mark.asyncio
    async def test_fetch_details_returns_partial_on_error(self):
        self.http.post.side_effect = [
            _response(text=SAMPLE_EFETCH_XML),
            httpx.ConnectError("down"),
        ]
        with patch("app.services.pubmed_client.asyncio.sleep", new_callable=AsyncMock):
            papers = await self.client.fetch_details(["1", "2", "3"])
        assert len(papers) == 2

    @pytest.mark.asyncio
    async def test_fetch_details_empty(self):
        assert await self.client.fetch_details([]) == []
        self.http.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close(self):
        await self.client.close()
        self.http.aclose.assert_awaited_once()
