"""Literature analysis service.

Runs the multi-mode topic analysis and the hotspot trend forecast against the
generative-AI provider:

    shape papers -> build prompt/schema -> call with retry -> normalize reply
"""

import time

from loguru import logger

from app.models.schemas import AnalysisConfig, AnalysisResult, Paper, TrendAnalysisResult
from app.services.ai_client import GenerativeAIClient
from app.services.payload_shaper import (
    MAX_PAYLOAD_CHARS,
    TITLE_ONLY_THRESHOLD,
    shape_papers,
)
from app.services.prompt_builder import (
    TREND_MAX_CHARS,
    AnalysisMode,
    PromptRequest,
    build_analysis_request,
    build_trend_request,
)
from app.services.resilient_invoker import with_retry
from app.services.response_normalizer import normalize_analysis, normalize_trend


class LiteratureAnalyzer:
    """Clusters papers into topics and forecasts trends using an LLM.

    Steps for ``analyze``:
        1. Cap and shape the paper list into a bounded payload.
        2. Build the mode-specific prompt, schema and temperature.
        3. Call the AI with retry/backoff (quota and oversize errors are fatal).
        4. Normalize the reply, deriving trend data locally in strict mode.
    """

    def __init__(
        self,
        ai_client: GenerativeAIClient,
        analysis_retries: int = 3,
        retry_delay_ms: int = 1000,
        payload_max_chars: int = MAX_PAYLOAD_CHARS,
        title_only_threshold: int = TITLE_ONLY_THRESHOLD,
        trend_max_chars: int = TREND_MAX_CHARS,
    ):
        self._ai_client = ai_client
        self._analysis_retries = analysis_retries
        self._retry_delay_ms = retry_delay_ms
        self._payload_max_chars = payload_max_chars
        self._title_only_threshold = title_only_threshold
        self._trend_max_chars = trend_max_chars

    async def _invoke(self, request: PromptRequest) -> str:
        return await with_retry(
            lambda: self._ai_client.generate(
                request.prompt,
                request.temperature,
                schema=request.schema,
                schema_name=request.schema_name,
            ),
            max_retries=self._analysis_retries,
            delay=self._retry_delay_ms,
        )

    async def analyze(
        self,
        papers: list[Paper],
        context: str,
        config: AnalysisConfig,
    ) -> AnalysisResult:
        """Cluster and score papers.

        Args:
            papers: Papers in display order; only the first ``config.max_papers`` are sent.
            context: Free-text research field or query.
            config: Mode, focus, creativity and depth.

        Returns:
            A fully defaulted AnalysisResult.
        """
        mode = AnalysisMode(config.algorithm)
        payload = shape_papers(
            papers,
            config.max_papers,
            volume_threshold=self._title_only_threshold,
            max_chars=self._payload_max_chars,
        )
        request = build_analysis_request(payload, context, config)

        # Privacy: counts and flags only, no paper text
        logger.info(
            f"Analysis started: mode={mode.value} papers={payload.paper_count} "
            f"title_only={payload.title_only} truncated={payload.truncated} "
            f"temperature={request.temperature}"
        )
        t0 = time.monotonic()
        raw = await self._invoke(request)
        elapsed_ms = int((time.monotonic() - t0) * 1000)

        result = normalize_analysis(
            raw,
            mode,
            payload.papers,
            total_papers_analyzed=payload.paper_count,
        )
        logger.info(
            f"Analysis completed in {elapsed_ms}ms: {len(result.topics)} topics, "
            f"{len(result.emerging_topics)} emerging"
        )
        return result

    async def analyze_trends(self, field: str, data: str) -> TrendAnalysisResult:
        """Produce the three-part trend narrative for free-form hotspot data."""
        request = build_trend_request(field, data, max_chars=self._trend_max_chars)
        logger.info(f"Trend forecast started: {len(data)} chars of hotspot data")
        raw = await self._invoke(request)
        return normalize_trend(raw)
