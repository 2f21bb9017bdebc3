"""Reduce a paper list to a bounded text block that is safe to send to the AI."""

from app.models.schemas import Paper

TITLE_ONLY_THRESHOLD = 100
MAX_PAYLOAD_CHARS = 300_000
ABSTRACT_CHARS = 500
TRUNCATION_MARKER = "\n...[TRUNCATED: payload exceeded transport limit]"


class ShapedPayload:
    """The shaped text plus the facts the prompt and normalizer need."""

    __slots__ = ("text", "paper_count", "title_only", "truncated", "papers")

    def __init__(
        self,
        text: str,
        paper_count: int,
        title_only: bool,
        truncated: bool,
        papers: list[Paper],
    ):
        self.text = text
        self.paper_count = paper_count
        self.title_only = title_only
        self.truncated = truncated
        self.papers = papers


def _title_only_line(paper: Paper) -> str:
    return f"ID: {paper.id} | Year: {paper.year} | Title: {paper.title}"


def _extended_line(paper: Paper) -> str:
    abstract = (paper.abstract or "")[:ABSTRACT_CHARS]
    return (
        f"ID: {paper.id} | Year: {paper.year} | Title: {paper.title} | "
        f"Journal: {paper.journal} | Abstract: {abstract}"
    )


def shape_papers(
    papers: list[Paper],
    max_papers: int,
    volume_threshold: int = TITLE_ONLY_THRESHOLD,
    max_chars: int = MAX_PAYLOAD_CHARS,
) -> ShapedPayload:
    """Shape papers into one newline-delimited block.

    The list is capped to the first ``max_papers`` entries in the order given.
    Above ``volume_threshold`` papers each line carries only id, year and title;
    otherwise the journal and the first 500 abstract characters are included.
    Text beyond ``max_chars`` is cut and replaced by TRUNCATION_MARKER; that
    content counts as not provided.
    """
    capped = list(papers[:max_papers])
    title_only = len(capped) > volume_threshold
    line = _title_only_line if title_only else _extended_line
    text = "\n".join(line(p) for p in capped)

    truncated = len(text) > max_chars
    if truncated:
        text = text[:max_chars] + TRUNCATION_MARKER

    return ShapedPayload(
        text=text,
        paper_count=len(capped),
        title_only=title_only,
        truncated=truncated,
        papers=capped,
    )
