"""API routes for the Research Compass backend."""

import asyncio
import json
import logging
import time
import uuid

from fastapi import APIRouter, File, HTTPException, Query, Request, Response, UploadFile

from app.config import get_settings
from app.models.schemas import (
    AnalysisResult,
    AnalyzeRequest,
    AnalyzeResponse,
    ExportFormat,
    ImportIdsRequest,
    ManualImportRequest,
    SearchRequest,
    SearchResponse,
    SessionStatusResponse,
    TranslateRequest,
    TranslateResponse,
    TrendAnalysisResult,
    TrendRequest,
)
from app.services.ai_client import AIServiceError, GenerativeAIClient
from app.services.literature_analyzer import LiteratureAnalyzer
from app.services.paper_importer import PaperImporter
from app.services.pubmed_client import PubMedClient, build_query, extract_pubmed_ids
from app.services.report_exporter import MEDIA_TYPES, ReportExporter
from app.services.translator import Translator

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _session_key(session_id: str) -> str:
    return f"session:{session_id}"


def _workspace_key(workspace_id: str) -> str:
    return f"workspace:{workspace_id}:latest"


def _literature_analyzer(ai_client: GenerativeAIClient) -> LiteratureAnalyzer:
    settings = get_settings()
    return LiteratureAnalyzer(
        ai_client=ai_client,
        analysis_retries=settings.analysis_max_retries,
        retry_delay_ms=settings.retry_initial_delay_ms,
        payload_max_chars=settings.payload_max_chars,
        title_only_threshold=settings.title_only_threshold,
        trend_max_chars=settings.trend_max_chars,
    )


def _pubmed_client() -> PubMedClient:
    settings = get_settings()
    return PubMedClient(
        email=settings.pubmed_email,
        api_key=settings.pubmed_api_key,
        tool=settings.pubmed_tool,
        batch_size=settings.pubmed_batch_size,
        batch_pause_seconds=settings.pubmed_batch_pause_seconds,
    )


async def _is_superseded(redis, session_id: str, workspace_id: str | None) -> bool:
    """True when a newer analysis was started for the same workspace."""
    if not workspace_id:
        return False
    latest = await redis.get(_workspace_key(workspace_id))
    return latest is not None and latest != session_id


async def _run_analysis(
    session_id: str,
    body: AnalyzeRequest,
    redis,
    ai_client: GenerativeAIClient,
) -> None:
    """Execute the analysis pipeline in the background.

    The final status is written to Redis so the frontend can poll for it. A
    result that finishes after a newer request for the same workspace is
    discarded and the session is marked superseded.
    """
    settings = get_settings()
    ttl = settings.session_ttl_seconds
    t0 = time.monotonic()

    try:
        analyzer = _literature_analyzer(ai_client)
        result = await analyzer.analyze(body.papers, body.context, body.config)
        session_data = {
            "status": "completed",
            "stage": "completed",
            "result": result.model_dump_json(by_alias=True),
            "elapsed_ms": int((time.monotonic() - t0) * 1000),
        }
    except AIServiceError as e:
        logger.warning("Analysis failed for session %s: %s", session_id, type(e).__name__)
        session_data = {"status": "error", "stage": "error", "error_message": e.user_message}
    except Exception as e:
        logger.exception("Analysis pipeline failed for session %s", session_id)
        session_data = {
            "status": "error",
            "stage": "error",
            "error_message": f"Analysis failed: {type(e).__name__}",
        }

    try:
        if await _is_superseded(redis, session_id, body.workspace_id):
            logger.info("Discarding stale analysis for session %s", session_id)
            session_data = {"status": "superseded", "stage": "superseded"}
        await redis.set(_session_key(session_id), json.dumps(session_data), ex=ttl)
    except Exception:
        logger.exception("Could not store analysis result for session %s", session_id)


# ---------------------------------------------------------------------------
# Paper sources
# ---------------------------------------------------------------------------

@router.post("/search", response_model=SearchResponse)
async def search(body: SearchRequest):
    """Search PubMed and return one page of fully fetched papers."""
    query = body.query or build_query(
        body.core_term or "",
        body.core_field,
        body.parts,
        body.year_start,
        body.year_end,
        body.article_types,
    )
    if not query:
        raise HTTPException(status_code=422, detail="Either query or coreTerm is required")

    client = _pubmed_client()
    try:
        page = await client.search(query, offset=body.offset, page_size=body.page_size)
        papers = await client.fetch_details(page.ids)
    finally:
        await client.close()

    return SearchResponse(papers=papers, total_count=page.count, query=query)


@router.post("/papers/import", response_model=SearchResponse)
async def import_ids(body: ImportIdsRequest):
    """Fetch details for every PubMed ID found in free text."""
    ids = extract_pubmed_ids(body.ids_text)
    if not ids:
        raise HTTPException(status_code=422, detail="No valid PubMed IDs found in the input.")

    client = _pubmed_client()
    try:
        papers = await client.fetch_details(ids)
    finally:
        await client.close()

    return SearchResponse(papers=papers, total_count=len(ids), query=",".join(ids))


@router.post("/papers/manual", response_model=SearchResponse)
async def import_manual(body: ManualImportRequest):
    """Parse pasted papers (title line, then abstract; entries split by blank lines)."""
    papers = PaperImporter().parse_manual(body.text)
    if not papers:
        raise HTTPException(
            status_code=422,
            detail="Could not parse papers. Ensure titles and abstracts are separated by empty lines.",
        )
    return SearchResponse(papers=papers, total_count=len(papers), query="Manual Import")


@router.post("/papers/upload", response_model=SearchResponse)
async def upload_papers(file: UploadFile = File(...)):
    """Parse an uploaded JSON array or CSV table of papers."""
    settings = get_settings()
    filename = file.filename or ""
    ext = _get_file_extension(filename)
    allowed_extensions = {f".{ft}" for ft in settings.allowed_file_types}
    if ext not in allowed_extensions:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {ext}. Allowed: {settings.allowed_file_types}",
        )

    content = await file.read()
    if len(content) > settings.max_file_size_mb * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds {settings.max_file_size_mb} MB limit",
        )

    try:
        papers = PaperImporter().parse_file(content, filename)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not papers:
        raise HTTPException(status_code=400, detail="No papers parsed. Check file format.")

    return SearchResponse(papers=papers, total_count=len(papers), query=f"File: {filename}")


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(request: Request, body: AnalyzeRequest):
    """Start an analysis job and return immediately with a session_id.

    The pipeline runs in the background. Poll GET /analysis/{session_id}
    to retrieve status and results.
    """
    settings = get_settings()
    session_id = str(uuid.uuid4())
    redis = request.app.state.redis

    try:
        await redis.set(
            _session_key(session_id),
            json.dumps({"status": "processing", "stage": "analyzing"}),
            ex=settings.session_ttl_seconds,
        )
        if body.workspace_id:
            await redis.set(
                _workspace_key(body.workspace_id),
                session_id,
                ex=settings.session_ttl_seconds,
            )
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Session storage unavailable: {type(e).__name__}",
        )

    task = asyncio.create_task(
        _run_analysis(session_id, body, redis, request.app.state.ai_client)
    )
    tasks: set = request.app.state.analysis_tasks
    tasks.add(task)
    task.add_done_callback(tasks.discard)

    return AnalyzeResponse(session_id=session_id, status="processing")


@router.get("/analysis/{session_id}", response_model=SessionStatusResponse)
async def get_analysis(request: Request, session_id: str):
    """Retrieve analysis status and results by session ID."""
    redis = request.app.state.redis
    raw = await redis.get(_session_key(session_id))

    if raw is None:
        raise HTTPException(status_code=404, detail="Session not found")

    session_data = json.loads(raw)
    status = session_data.get("status", "processing")

    result = None
    if status == "completed" and "result" in session_data:
        result = AnalysisResult.model_validate_json(session_data["result"])

    return SessionStatusResponse(
        session_id=session_id,
        status=status,
        stage=session_data.get("stage"),
        result=result,
        error_message=session_data.get("error_message"),
    )


@router.get("/analysis/{session_id}/export")
async def export_analysis(
    request: Request,
    session_id: str,
    format: ExportFormat = Query(default="markdown"),
):
    """Download a completed analysis as markdown, JSON, or CSV."""
    redis = request.app.state.redis
    raw = await redis.get(_session_key(session_id))
    if raw is None:
        raise HTTPException(status_code=404, detail="Session not found")

    session_data = json.loads(raw)
    if session_data.get("status") != "completed" or "result" not in session_data:
        raise HTTPException(status_code=409, detail="Analysis is not completed")

    result = AnalysisResult.model_validate_json(session_data["result"])
    content = ReportExporter().export(result, format)
    media_type, extension = MEDIA_TYPES[format]
    return Response(
        content=content,
        media_type=media_type,
        headers={
            "Content-Disposition": f'attachment; filename="analysis_export_{session_id}.{extension}"'
        },
    )


@router.delete("/session/{session_id}", status_code=204)
async def delete_session(request: Request, session_id: str):
    """Delete a session and its result."""
    redis = request.app.state.redis
    await redis.delete(_session_key(session_id))
    return None


@router.post("/trend", response_model=TrendAnalysisResult)
async def trend(request: Request, body: TrendRequest):
    """Generate the three-part trend narrative from hotspot data.

    AI errors are mapped to HTTP statuses by the app-level handler.
    """
    analyzer = _literature_analyzer(request.app.state.ai_client)
    return await analyzer.analyze_trends(body.field, body.data)


@router.post("/translate", response_model=TranslateResponse)
async def translate(request: Request, body: TranslateRequest):
    """Best-effort translation of a hovered or selected text span."""
    settings = get_settings()
    translator = Translator(
        ai_client=request.app.state.ai_client,
        cache=request.app.state.translation_cache,
        target_language=settings.translation_target_language,
        max_retries=settings.translation_max_retries,
        retry_delay_ms=settings.retry_initial_delay_ms,
    )
    outcome = await translator.translate(body.text)
    return TranslateResponse(translation=outcome.text, status=outcome.status)


def _get_file_extension(filename: str) -> str:
    """Get the lowercase file extension including the dot."""
    dot_idx = filename.rfind(".")
    if dot_idx == -1:
        return ""
    return filename[dot_idx:].lower()
