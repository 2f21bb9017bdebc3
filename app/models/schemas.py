"""
Pydantic schemas for the Research Compass backend.

This module contains all data validation and serialization models used
throughout the application, following Pydantic V2 syntax. Wire names are
camelCase (the AI reply schema and the frontend both use them); Python code
uses the snake_case field names.
"""

from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Supporting Enums and Types
Focus = Literal["broad", "balanced", "specific"]
Algorithm = Literal["consultant", "standard", "strict"]
Trend = Literal["rising", "stable", "declining"]
TranslationStatus = Literal["translated", "too_short", "failed"]
SessionStatus = Literal["processing", "completed", "error", "superseded"]
BooleanOperator = Literal["AND", "OR", "NOT"]
ExportFormat = Literal["markdown", "json", "csv"]


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Paper(CamelModel):
    """
    A bibliographic record.

    Papers come from PubMed, manual paste, or file upload and are never
    mutated after creation.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Source-provided or locally synthesized identifier")
    title: str = Field(..., description="Title of the paper")
    abstract: str = Field(default="", description="Abstract text (section labels preserved)")
    year: int = Field(..., description="Publication year")
    journal: str = Field(default="", description="Journal or source name")
    authors: list[str] = Field(default_factory=list, description="Up to 5 author names")


class AnalysisConfig(CamelModel):
    """Request parameters that drive prompt phrasing and sampling temperature."""

    creativity: float = Field(default=0.5, ge=0.0, le=1.0, description="Speculation level")
    depth: float = Field(default=0.5, ge=0.0, le=1.0, description="Granularity level")
    focus: Focus = Field(default="balanced", description="Scope narrowing clause")
    algorithm: Algorithm = Field(default="standard", description="Analysis mode")
    max_papers: int = Field(default=200, ge=1, description="Cap on papers sent to the AI")


class TopicCluster(CamelModel):
    """An AI-identified group of papers sharing a theme."""

    id: str = Field(..., description="Opaque topic identifier")
    name: str = Field(..., description="Topic label")
    keywords: list[str] = Field(default_factory=list, description="Discriminative keywords")
    novelty: float = Field(default=0.5, description="How new the research feels (0-1)")
    impact: float = Field(default=0.5, description="Citation/journal potential (0-1)")
    volume: int = Field(default=0, ge=0, description="Number of papers in this topic")
    trend: Trend = Field(default="stable", description="Publication trend")
    description: str = Field(default="", description="Short description of the cluster")
    paper_ids: list[str] = Field(default_factory=list, description="IDs of member papers")


class EmergingTopic(CamelModel):
    """A cross-cutting trend surfaced from the topic set."""

    name: str = Field(..., description="Name of the emerging topic")
    reason: str = Field(default="", description="Why this topic is considered emerging")
    potential_score: float = Field(default=0.5, description="Potential score (0-1)")
    paper_ids: list[str] = Field(default_factory=list, description="IDs of driving papers")


class TrendDatum(CamelModel):
    """Per-year publication volume within a topic."""

    year: int
    topic: str
    count: int = Field(..., ge=0)


class AnalysisResult(CamelModel):
    """
    Normalized result of a multi-mode analysis.

    Every field is populated after normalization; mode-specific fields
    (noise_count, stopwords) are only set by strict mode.
    """

    topics: list[TopicCluster] = Field(default_factory=list)
    emerging_topics: list[EmergingTopic] = Field(default_factory=list)
    trend_data: list[TrendDatum] = Field(default_factory=list)
    summary: str = Field(default="")
    methodology: str = Field(default="")
    noise_count: int | None = Field(
        default=None, description="Papers discarded as noise (strict mode only)"
    )
    stopwords: list[str] = Field(
        default_factory=list, description="Corpus-level stopwords the AI excluded (strict mode)"
    )
    total_papers_analyzed: int = Field(..., ge=0, description="Papers actually sent after shaping")
    timestamp: datetime = Field(..., description="Completion time of the AI call (UTC)")
    mode_used: str = Field(..., description="Human-readable mode label")


class TrendAnalysisResult(CamelModel):
    """Three-part narrative produced from hotspot data."""

    trend_judgment: str = Field(default="", description="Frontiers vs classics judgment")
    deep_dive: str = Field(default="", description="Deep dive on the top hotspot")
    abstract_section: str = Field(default="", description="Academic abstract (results section)")


class TranslationOutcome(BaseModel):
    """Result of a best-effort translation."""

    status: TranslationStatus
    text: str = ""


# Request/Response Models for API
class QueryPart(CamelModel):
    """One extra clause of a PubMed builder query."""

    operator: BooleanOperator = "AND"
    term: str = ""
    field: str = Field(default="", description="PubMed field tag, e.g. [tiab]")


class SearchRequest(CamelModel):
    """Request body for POST /search.

    Either pass a raw ``query`` or the builder fields (core_term and friends).
    """

    query: str | None = None
    core_term: str | None = None
    core_field: str = ""
    parts: list[QueryPart] = Field(default_factory=list)
    year_start: int = 2020
    year_end: int = Field(default_factory=lambda: datetime.now().year)
    article_types: list[str] = Field(default_factory=list)
    offset: int = Field(default=0, ge=0)
    page_size: int = Field(default=10, ge=1, le=500)


class SearchResponse(CamelModel):
    """Response from POST /search and the paper import endpoints."""

    papers: list[Paper]
    total_count: int = Field(..., ge=0)
    query: str = ""


class ImportIdsRequest(CamelModel):
    """Request body for POST /papers/import."""

    ids_text: str = Field(..., description="Free text containing PubMed IDs")


class ManualImportRequest(CamelModel):
    """Request body for POST /papers/manual."""

    text: str = Field(..., description="Papers separated by blank lines; first line is the title")


class AnalyzeRequest(CamelModel):
    """Request body for POST /analyze."""

    papers: list[Paper] = Field(..., min_length=1)
    context: str = Field(default="", description="Research field or query context")
    config: AnalysisConfig = Field(default_factory=AnalysisConfig)
    workspace_id: str | None = Field(
        default=None,
        description="Client workspace; a newer analysis supersedes older in-flight ones",
    )


class AnalyzeResponse(CamelModel):
    """Response from POST /analyze."""

    session_id: str = Field(..., description="Unique session identifier for polling")
    status: SessionStatus = Field(..., description="Current status of the analysis")


class SessionStatusResponse(CamelModel):
    """Response for GET /analysis/{session_id}."""

    session_id: str
    status: SessionStatus
    stage: str | None = None
    result: AnalysisResult | None = Field(
        default=None,
        description="The completed analysis (only present if status is 'completed')",
    )
    error_message: str | None = Field(
        default=None, description="User-readable error details if status is 'error'"
    )


class TrendRequest(CamelModel):
    """Request body for POST /trend."""

    field: str = Field(..., min_length=1, description="Researcher's field")
    data: str = Field(..., min_length=1, description="Free-form hotspot data")


class TranslateRequest(BaseModel):
    """Request body for POST /translate."""

    text: str


class TranslateResponse(BaseModel):
    """Response from POST /translate."""

    translation: str
    status: TranslationStatus
