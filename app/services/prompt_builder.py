"""Prompt and response-schema construction for the three AI request shapes.

Analysis requests come in three modes (strict, standard, consultant). Each mode
fixes a sampling temperature, a display label and a response schema. The trend
and translation prompts have no mode variants.
"""

from enum import Enum

from app.models.schemas import AnalysisConfig
from app.services.payload_shaper import ShapedPayload

TREND_MAX_CHARS = 25_000
TREND_TRUNCATION_SUFFIX = "...[TRUNCATED]"
TREND_TEMPERATURE = 0.4
TRANSLATION_TEMPERATURE = 0.2
MIN_TRANSLATABLE_CHARS = 2


class AnalysisMode(str, Enum):
    STRICT = "strict"
    STANDARD = "standard"
    CONSULTANT = "consultant"


def _string_array() -> dict:
    return {"type": "array", "items": {"type": "string"}}


def _object(properties: dict) -> dict:
    # Structured outputs require every property listed and no extras.
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


TOPIC_SCHEMA = _object({
    "id": {"type": "string"},
    "name": {"type": "string"},
    "keywords": _string_array(),
    "novelty": {"type": "number"},
    "impact": {"type": "number"},
    "volume": {"type": "integer"},
    "trend": {"type": "string", "enum": ["rising", "stable", "declining"]},
    "description": {"type": "string"},
    "paperIds": _string_array(),
})

EMERGING_TOPIC_SCHEMA = _object({
    "name": {"type": "string"},
    "reason": {"type": "string"},
    "potentialScore": {"type": "number"},
    "paperIds": _string_array(),
})

TREND_DATUM_SCHEMA = _object({
    "year": {"type": "integer"},
    "topic": {"type": "string"},
    "count": {"type": "integer"},
})

FULL_ANALYSIS_SCHEMA = _object({
    "summary": {"type": "string"},
    "methodology": {"type": "string"},
    "topics": {"type": "array", "items": TOPIC_SCHEMA},
    "emergingTopics": {"type": "array", "items": EMERGING_TOPIC_SCHEMA},
    "trendData": {"type": "array", "items": TREND_DATUM_SCHEMA},
})

# Strict mode leaves trend and emerging-topic synthesis to local derivation
# to keep the reply small.
STRICT_ANALYSIS_SCHEMA = _object({
    "summary": {"type": "string"},
    "methodology": {"type": "string"},
    "noise_paper_count": {"type": "integer"},
    "stopwords": _string_array(),
    "topics": {"type": "array", "items": TOPIC_SCHEMA},
})

TREND_SCHEMA = _object({
    "trendJudgment": {"type": "string"},
    "deepDive": {"type": "string"},
    "abstractSection": {"type": "string"},
})


class ModeProfile:
    """Fixed per-mode request parameters."""

    __slots__ = ("temperature", "label", "schema")

    def __init__(self, temperature: float, label: str, schema: dict):
        self.temperature = temperature
        self.label = label
        self.schema = schema


MODE_PROFILES: dict[AnalysisMode, ModeProfile] = {
    AnalysisMode.STRICT: ModeProfile(
        temperature=0.0,
        label="Strict (Noise-Filtered Clustering)",
        schema=STRICT_ANALYSIS_SCHEMA,
    ),
    AnalysisMode.STANDARD: ModeProfile(
        temperature=0.3,
        label="Standard (Descriptive Grouping)",
        schema=FULL_ANALYSIS_SCHEMA,
    ),
    AnalysisMode.CONSULTANT: ModeProfile(
        temperature=0.85,
        label="Consultant (Speculative Foresight)",
        schema=FULL_ANALYSIS_SCHEMA,
    ),
}

_missing_modes = set(AnalysisMode) - set(MODE_PROFILES)
if _missing_modes:
    raise RuntimeError(f"No mode profile for: {sorted(m.value for m in _missing_modes)}")

FOCUS_INSTRUCTIONS = {
    "broad": "Focus on high-level themes and cross-disciplinary connections.",
    "specific": "Focus on specific methodologies, molecular mechanisms, and granular details.",
    "balanced": "",
}


class PromptRequest:
    """Everything needed for one generative-AI call."""

    __slots__ = ("prompt", "schema", "schema_name", "temperature")

    def __init__(
        self,
        prompt: str,
        schema: dict | None,
        schema_name: str,
        temperature: float,
    ):
        self.prompt = prompt
        self.schema = schema
        self.schema_name = schema_name
        self.temperature = temperature


def mode_profile(mode: AnalysisMode) -> ModeProfile:
    return MODE_PROFILES[mode]


def _input_block(payload: ShapedPayload) -> str:
    volume_note = (
        f"TITLE-ONLY MODE: {payload.paper_count} papers exceed the volume threshold, "
        "so each line carries only ID, year and title. Cluster on titles alone."
        if payload.title_only
        else "Each line carries ID, year, title, journal and the first 500 characters "
        "of the abstract."
    )
    truncation_note = (
        "\nThe list was cut at the transport limit; ignore any partial last line."
        if payload.truncated
        else ""
    )
    return (
        f"# Input Data\nTotal papers: {payload.paper_count}\n"
        f"{volume_note}{truncation_note}\n\n{payload.text}"
    )


def _strict_prompt(payload: ShapedPayload, context: str, focus: str) -> str:
    return f"""# Role & Objective
You are a bibliometric analyst running a deterministic topic-modelling pass over a literature set.
Research context: "{context or 'Not specified'}"

# ANALYSIS ALGORITHM (deterministic, noise-filtered):
Step 1 [Filter]: Discard papers that are off-topic for the research context. Report how many you discarded in "noise_paper_count".
Step 2 [Stopwords]: List corpus-wide terms that appear everywhere and carry no discriminative signal in "stopwords"; never use them as keywords.
Step 3 [Cluster]: Group the remaining {payload.paper_count} papers into distinct clusters by underlying mechanism, not surface wording.
Step 4 [Label]: For each cluster give a precise label, 5-8 discriminative keywords, novelty and impact in [0,1], and its trend.

# Constraints
1. Every paper ID you list must come from the input; map IDs explicitly in "paperIds".
2. Set "volume" to the number of papers in the cluster.
3. Trend: 'rising' if most papers are from the last two years, 'declining' if most are older than five years, otherwise 'stable'.
4. Do not speculate; describe only what the papers show.
{focus}

# Output Structure (Strict JSON)
Return a valid JSON object matching the requested schema.

{_input_block(payload)}
"""


def _standard_prompt(
    payload: ShapedPayload, context: str, focus: str, config: AnalysisConfig
) -> str:
    return f"""# Role & Objective
You are a Senior Research Analyst producing a comprehensive, descriptive map of a literature set.
Research context: "{context or 'Not specified'}"

# ANALYSIS ALGORITHM:
Step 1 [Group]: Group these {payload.paper_count} papers into coherent research topics that together cover the whole set.
Step 2 [Extract]: For each topic extract 5-8 keywords that separate it from the other topics.
Step 3 [Score]: Score novelty and impact in [0,1] and classify the trend as rising, stable or declining.
Step 4 [Trends]: Count papers per topic per publication year in "trendData".
Step 5 [Emerging]: List cross-cutting emerging topics with a reason and a potentialScore in [0,1].

# Constraints
1. Prefer descriptive, well-established topic names.
2. Map paper IDs explicitly in "paperIds"; use only IDs from the input.
3. Configuration: Speculation: {config.creativity * 100:.0f}%, Granularity: {config.depth * 100:.0f}%.
{focus}

# Output Structure (Strict JSON)
Return a valid JSON object matching the requested schema.

{_input_block(payload)}
"""


def _consultant_prompt(
    payload: ShapedPayload, context: str, focus: str, config: AnalysisConfig
) -> str:
    return f"""# Role & Objective
You are a Senior Chief Scientist and Strategic Intelligence Analyst advising a research director.
Research context: "{context or 'Not specified'}"

# ANALYSIS ALGORITHM (Mimic BERTopic Pipeline):
Step 1 [Embed & Cluster]: Mentally group these {payload.paper_count} papers into distinct semantic clusters based on their underlying mechanisms, not just surface keywords.
Step 2 [Extract]: For each cluster, extract 5-8 keywords that maximize the "semantic distance" from other clusters.
Step 3 [Label]: Generate a provocative "Topic Label" that synthesizes the mechanism + the application.
Step 4 [Foresight]: Identify emerging research fronts the field has not named yet, and say why they matter.

# Critical Constraints & Logic
1. NO Textbook Categories: Do NOT group results into broad, generic categories.
2. Discriminative Keywords ONLY: Pick words that are unique to this topic.
3. Temporal Weighting: 'rising' = majority of papers in the last two years; 'stable' = spread evenly; 'declining' = mostly older.
4. Source Attribution: Map Paper IDs explicitly; use only IDs from the input.
5. Configuration: Speculation: {config.creativity * 100:.0f}%, Granularity: {config.depth * 100:.0f}%.
{focus}

# Output Structure (Strict JSON)
Return a valid JSON object matching the requested schema.

{_input_block(payload)}
"""


def build_analysis_request(
    payload: ShapedPayload, context: str, config: AnalysisConfig
) -> PromptRequest:
    """Build the instruction text, schema and temperature for an analysis call."""
    mode = AnalysisMode(config.algorithm)
    profile = MODE_PROFILES[mode]
    focus = FOCUS_INSTRUCTIONS[config.focus]

    if mode is AnalysisMode.STRICT:
        prompt = _strict_prompt(payload, context, focus)
    elif mode is AnalysisMode.STANDARD:
        prompt = _standard_prompt(payload, context, focus, config)
    else:
        prompt = _consultant_prompt(payload, context, focus, config)

    return PromptRequest(
        prompt=prompt,
        schema=profile.schema,
        schema_name=f"{mode.value}_analysis",
        temperature=profile.temperature,
    )


def build_trend_request(
    field: str, data: str, max_chars: int = TREND_MAX_CHARS
) -> PromptRequest:
    """Build the three-part trend forecast prompt from free-form hotspot data."""
    safe_data = data[:max_chars] + TREND_TRUNCATION_SUFFIX if len(data) > max_chars else data
    prompt = f"""You are a Senior Medical Journal Editor (e.g., NEJM, Lancet).
I am a researcher in the field of: "{field}".
Data: \"\"\"{safe_data}\"\"\"

Tasks:
1. Trend Judgment (Frontiers vs Classics): which entries are emerging research fronts and which are established classics, and why.
2. Deep Dive (Top hotspot analysis): analyse the top-ranked entry in depth: mechanism, open questions, likely next steps.
3. Abstract Writing (Results section): write the results section of an academic abstract summarising these hotspots.

Return a valid JSON object with "trendJudgment", "deepDive" and "abstractSection".
"""
    return PromptRequest(
        prompt=prompt,
        schema=TREND_SCHEMA,
        schema_name="trend_forecast",
        temperature=TREND_TEMPERATURE,
    )


def build_translation_prompt(text: str, target_language: str) -> str | None:
    """Build the translation instruction, or None when the span is too short."""
    clean = (text or "").strip()
    if len(clean) < MIN_TRANSLATABLE_CHARS:
        return None
    return (
        f"Translate to {target_language}. Context: Research abstract. "
        f'Text: "{clean}". Return ONLY the translation.'
    )
