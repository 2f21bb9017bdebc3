"""Test configuration and fixtures for pytest."""

import json

import pytest

from app.models.schemas import AnalysisConfig, Paper


def make_paper(index: int, year: int = 2023, abstract: str | None = None) -> Paper:
    """Build a deterministic paper for tests."""
    return Paper(
        id=f"pmid-{index}",
        title=f"Paper title {index}",
        abstract=abstract if abstract is not None else f"Abstract text for paper {index}.",
        year=year,
        journal="Journal of Tests",
        authors=["Smith J"],
    )


def make_papers(count: int, year: int = 2023) -> list[Paper]:
    return [make_paper(i, year=year) for i in range(count)]


@pytest.fixture
def paper_factory():
    """Expose make_paper to tests without importing conftest."""
    return make_paper


@pytest.fixture
def papers_factory():
    return make_papers


@pytest.fixture
def sample_papers() -> list[Paper]:
    """Five papers spread over three publication years."""
    return [
        make_paper(1, year=2021),
        make_paper(2, year=2023),
        make_paper(3, year=2023),
        make_paper(4, year=2024),
        make_paper(5, year=2024),
    ]


@pytest.fixture
def strict_config() -> AnalysisConfig:
    return AnalysisConfig(algorithm="strict", max_papers=200)


@pytest.fixture
def standard_config() -> AnalysisConfig:
    return AnalysisConfig(algorithm="standard", creativity=0.7, depth=0.25, max_papers=200)


@pytest.fixture
def mock_strict_reply() -> str:
    """Strict-mode AI reply: topics only, plus noise count and stopwords."""
    return json.dumps({
        "summary": "Two clusters dominate the set.",
        "methodology": "Noise-filtered clustering.",
        "noise_paper_count": 1,
        "stopwords": ["study", "patients"],
        "topics": [
            {
                "id": "t1",
                "name": "Gene Editing Delivery",
                "keywords": ["lipid nanoparticle", "AAV"],
                "novelty": 0.9,
                "impact": 0.7,
                "volume": 3,
                "trend": "stable",
                "description": "Vectors for in vivo editing.",
                "paperIds": ["pmid-1", "pmid-2", "pmid-4"],
            },
            {
                "id": "t2",
                "name": "Base Editing Safety",
                "keywords": ["off-target"],
                "novelty": 0.4,
                "impact": 0.6,
                "volume": 2,
                "trend": "declining",
                "description": "Off-target profiling.",
                "paperIds": ["pmid-3", "pmid-5"],
            },
        ],
    })


@pytest.fixture
def mock_standard_reply() -> str:
    """Standard-mode AI reply with emerging topics and trend data."""
    return json.dumps({
        "summary": "A descriptive overview.",
        "methodology": "Descriptive grouping.",
        "topics": [
            {
                "id": "s1",
                "name": "Prime Editing",
                "keywords": ["pegRNA"],
                "novelty": 0.6,
                "impact": 0.8,
                "volume": 2,
                "trend": "rising",
                "description": "Search-and-replace editing.",
                "paperIds": ["pmid-4", "pmid-5"],
            }
        ],
        "emergingTopics": [
            {
                "name": "Epigenome Editing",
                "reason": "Appears in recent titles.",
                "potentialScore": 0.85,
                "paperIds": ["pmid-5"],
            }
        ],
        "trendData": [
            {"year": 2024, "topic": "Prime Editing", "count": 2},
        ],
    })
