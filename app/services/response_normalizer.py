"""Turn raw AI JSON into fully defaulted AnalysisResult / TrendAnalysisResult.

Strict mode asks the AI for topics only; trend data and emerging topics are
derived here from the papers each topic claims.
"""

import json
import logging
import uuid
from collections import Counter
from datetime import datetime, timezone

from app.models.schemas import (
    AnalysisResult,
    EmergingTopic,
    Paper,
    TopicCluster,
    TrendAnalysisResult,
    TrendDatum,
)
from app.services.ai_client import EmptyResponseError, MalformedResponseError
from app.services.prompt_builder import AnalysisMode, mode_profile

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 0.5
DEFAULT_DESCRIPTION = "No description provided."
VALID_TRENDS = {"rising", "stable", "declining"}
EMERGING_NOVELTY_THRESHOLD = 0.8
STRICT_EMERGING_REASON = (
    "Strict-mode signal: rising publication trend or novelty above 0.8."
)


def _load_json(raw: str | None) -> dict:
    if raw is None or not raw.strip():
        raise EmptyResponseError()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"AI reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError("AI reply is not a JSON object")
    return data


def _as_score(value, default: float = DEFAULT_SCORE) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return default


def _as_str_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def _filter_known_ids(ids: list[str], known_ids: set[str]) -> tuple[list[str], int]:
    kept = [pid for pid in ids if pid in known_ids]
    return kept, len(ids) - len(kept)


def _normalize_topic(raw: dict, known_ids: set[str]) -> tuple[TopicCluster, int]:
    paper_ids, dropped = _filter_known_ids(_as_str_list(raw.get("paperIds")), known_ids)
    trend = raw.get("trend")
    if trend not in VALID_TRENDS:
        trend = "stable"

    volume = raw.get("volume")
    if not isinstance(volume, (int, float)) or volume < 0:
        volume = len(paper_ids)

    topic = TopicCluster(
        id=str(raw.get("id") or uuid.uuid4().hex[:12]),
        name=str(raw.get("name") or "Unnamed Topic"),
        keywords=_as_str_list(raw.get("keywords")),
        novelty=_as_score(raw.get("novelty")),
        impact=_as_score(raw.get("impact")),
        volume=int(volume),
        trend=trend,
        description=str(raw.get("description") or DEFAULT_DESCRIPTION),
        paper_ids=paper_ids,
    )
    return topic, dropped


def _normalize_emerging(raw: dict, known_ids: set[str]) -> tuple[EmergingTopic, int]:
    paper_ids, dropped = _filter_known_ids(_as_str_list(raw.get("paperIds")), known_ids)
    return EmergingTopic(
        name=str(raw.get("name") or "Unnamed Trend"),
        reason=str(raw.get("reason") or ""),
        potential_score=_as_score(raw.get("potentialScore")),
        paper_ids=paper_ids,
    ), dropped


def _normalize_trend_datum(raw: dict) -> TrendDatum | None:
    try:
        return TrendDatum(
            year=int(raw["year"]),
            topic=str(raw["topic"]),
            count=max(0, int(raw.get("count") or 0)),
        )
    except (KeyError, TypeError, ValueError):
        return None


def derive_trend_data(topics: list[TopicCluster], papers: list[Paper]) -> list[TrendDatum]:
    """Count each topic's papers per publication year.

    Papers the topic references but that are not in ``papers`` are skipped.
    Output is ordered by topic order, then year.
    """
    year_by_id = {p.id: p.year for p in papers}
    data: list[TrendDatum] = []
    for topic in topics:
        counts = Counter(
            year_by_id[pid] for pid in topic.paper_ids if pid in year_by_id
        )
        for year in sorted(counts):
            data.append(TrendDatum(year=year, topic=topic.name, count=counts[year]))
    return data


def derive_emerging_topics(topics: list[TopicCluster]) -> list[EmergingTopic]:
    """Topics that are rising or have novelty above 0.8."""
    return [
        EmergingTopic(
            name=t.name,
            reason=STRICT_EMERGING_REASON,
            potential_score=t.novelty,
            paper_ids=list(t.paper_ids),
        )
        for t in topics
        if t.trend == "rising" or t.novelty > EMERGING_NOVELTY_THRESHOLD
    ]


def normalize_analysis(
    raw: str | None,
    mode: AnalysisMode,
    papers: list[Paper],
    total_papers_analyzed: int,
    completed_at: datetime | None = None,
) -> AnalysisResult:
    """Parse and default an analysis reply.

    Args:
        raw: Reply text from the AI call.
        mode: The mode the request was built for.
        papers: Papers actually sent (post-shaping); used to check paper IDs
            and, in strict mode, to derive per-year counts.
        total_papers_analyzed: Count actually sent.
        completed_at: Completion time; defaults to now (UTC).

    Raises:
        EmptyResponseError: No reply content.
        MalformedResponseError: Reply is not a JSON object.
    """
    data = _load_json(raw)
    known_ids = {p.id for p in papers}
    dropped = 0

    topics: list[TopicCluster] = []
    for item in data.get("topics") or []:
        if isinstance(item, dict):
            topic, n = _normalize_topic(item, known_ids)
            topics.append(topic)
            dropped += n

    noise_count = None
    stopwords: list[str] = []
    if mode is AnalysisMode.STRICT:
        trend_data = derive_trend_data(topics, papers)
        emerging = derive_emerging_topics(topics)
        if isinstance(data.get("noise_paper_count"), (int, float)):
            noise_count = int(data["noise_paper_count"])
        stopwords = _as_str_list(data.get("stopwords"))
    else:
        emerging = []
        for item in data.get("emergingTopics") or []:
            if isinstance(item, dict):
                topic, n = _normalize_emerging(item, known_ids)
                emerging.append(topic)
                dropped += n
        trend_data = [
            d for d in (
                _normalize_trend_datum(item)
                for item in data.get("trendData") or []
                if isinstance(item, dict)
            )
            if d is not None
        ]

    if dropped:
        logger.warning("Dropped %d paper IDs not present in the request", dropped)

    return AnalysisResult(
        topics=topics,
        emerging_topics=emerging,
        trend_data=trend_data,
        summary=str(data.get("summary") or ""),
        methodology=str(data.get("methodology") or ""),
        noise_count=noise_count,
        stopwords=stopwords,
        total_papers_analyzed=total_papers_analyzed,
        timestamp=completed_at or datetime.now(timezone.utc),
        mode_used=mode_profile(mode).label,
    )


def normalize_trend(raw: str | None) -> TrendAnalysisResult:
    """Parse a trend-forecast reply.

    Raises:
        EmptyResponseError: No reply content.
        MalformedResponseError: Not a JSON object, or any of the three sections
            is missing or blank.
    """
    data = _load_json(raw)
    sections = {
        name: str(data.get(name) or "").strip()
        for name in ("trendJudgment", "deepDive", "abstractSection")
    }
    missing = [name for name, text in sections.items() if not text]
    if missing:
        raise MalformedResponseError(f"Trend reply is missing sections: {', '.join(missing)}")
    return TrendAnalysisResult(
        trend_judgment=sections["trendJudgment"],
        deep_dive=sections["deepDive"],
        abstract_section=sections["abstractSection"],
    )
