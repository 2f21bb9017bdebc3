"""
Report exporter for completed analyses.

Renders an AnalysisResult as markdown, JSON, or a flat CSV table.
"""

import csv
import io

from app.models.schemas import AnalysisResult, ExportFormat, TrendDatum

MEDIA_TYPES: dict[str, tuple[str, str]] = {
    "markdown": ("text/markdown", "md"),
    "json": ("application/json", "json"),
    "csv": ("text/csv", "csv"),
}


def _sorted_trends(trend_data: list[TrendDatum]) -> list[TrendDatum]:
    return sorted(trend_data, key=lambda d: (d.topic, d.year))


class ReportExporter:
    """Exports analysis results for download."""

    def export(self, result: AnalysisResult, fmt: ExportFormat) -> str:
        """Render ``result`` in the requested format.

        Raises:
            ValueError: If the format is unknown.
        """
        if fmt == "markdown":
            return self.to_markdown(result)
        elif fmt == "json":
            return result.model_dump_json(by_alias=True, indent=2)
        elif fmt == "csv":
            return self.to_csv(result)
        raise ValueError(f"Unsupported export format: {fmt}")

    def to_markdown(self, result: AnalysisResult) -> str:
        lines = [
            "# Research Analysis Report",
            "",
            f"> Generated on {result.timestamp:%Y-%m-%d %H:%M} UTC "
            f"({result.mode_used}, {result.total_papers_analyzed} papers)",
            "",
            "## 1. Summary",
            result.summary,
            "",
            "## 2. Methodology",
            result.methodology,
            "",
            "## 3. Emerging Frontiers",
        ]
        if not result.emerging_topics:
            lines += ["_No emerging topics identified._", ""]
        for e in result.emerging_topics:
            lines += [
                f"### {e.name}",
                f"- **Reasoning**: {e.reason}",
                f"- **Potential Score**: {e.potential_score * 10:.1f}/10",
                "",
            ]

        lines.append("## 4. Key Research Topics")
        for t in result.topics:
            lines += [
                f"### {t.name}",
                f"- **Description**: {t.description}",
                f"- **Keywords**: {', '.join(t.keywords)}",
                f"- **Impact**: {t.impact:.2f}",
                f"- **Novelty**: {t.novelty:.2f}",
                f"- **Trend Status**: {t.trend.upper()}",
                f"- **Paper Volume**: {t.volume}",
                "",
            ]

        lines += [
            "## 5. Topic Evolution Data",
            "| Topic | Year | Paper Count |",
            "|---|---|---|",
        ]
        for d in _sorted_trends(result.trend_data):
            lines.append(f"| {d.topic} | {d.year} | {d.count} |")
        return "\n".join(lines) + "\n"

    def to_csv(self, result: AnalysisResult) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL)
        writer.writerow([
            "Section", "Item Name", "Details/Keywords", "Metric 1 (Impact/Score)",
            "Metric 2 (Novelty)", "Metric 3 (Trend)", "Metric 4 (Volume)", "Description",
        ])
        writer.writerow(["Summary", "Report Summary", "See Description", "", "", "", "", result.summary])
        for t in result.topics:
            writer.writerow([
                "Topic Cluster", t.name, "; ".join(t.keywords), t.impact,
                t.novelty, t.trend, t.volume, t.description,
            ])
        for e in result.emerging_topics:
            writer.writerow(["Emerging Topic", e.name, e.reason, e.potential_score, "", "", "", ""])
        for d in _sorted_trends(result.trend_data):
            writer.writerow(["Trend Data", d.topic, f"Year: {d.year}", f"Count: {d.count}", "", "", "", ""])
        return buffer.getvalue()
