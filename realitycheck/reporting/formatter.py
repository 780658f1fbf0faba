"""Text formatter for RealityCheck usage summaries.

Renders usage summary records (as returned by the plugin) as aligned
plain-text tables for the command line.
"""

from collections import defaultdict
from typing import Any, Iterable


class TextFormatter:
    """Formats usage data as human-readable plain text."""

    @staticmethod
    def format_duration(duration_ms: int) -> str:
        """Format milliseconds as 'Xh Ym' (e.g., '2h 15m').

        Truncates to whole minutes. Returns '0m' for zero/negative durations.
        """
        total_minutes = max(int(duration_ms), 0) // 60000
        hours = total_minutes // 60
        minutes = total_minutes % 60

        if hours == 0:
            return f"{minutes}m"
        return f"{hours}h {minutes}m"

    @staticmethod
    def format_usage(title: str, records: list[dict[str, Any]]) -> str:
        """Render usage records and per-category totals under *title*."""
        parts = [f"{title}\n", "\n"]
        if not records:
            parts.append("  No usage recorded.\n")
            return "".join(parts)

        total_ms = sum(r["totalTimeMs"] for r in records)
        productive_ms = sum(r["totalTimeMs"] for r in records if r["isProductive"])

        rows = [
            (r["appName"], r["category"], TextFormatter.format_duration(r["totalTimeMs"]),
             "yes" if r["isProductive"] else "")
            for r in records
        ]
        parts.append(
            TextFormatter._table(
                ("App", "Category", "Time", "Productive"),
                rows,
                ("Total", "", TextFormatter.format_duration(total_ms), ""),
            )
        )

        parts.append("\nBy Category:\n")
        parts.append(
            TextFormatter._table(
                ("Category", "Time"),
                [
                    (category, TextFormatter.format_duration(ms))
                    for category, ms in TextFormatter._category_totals(records)
                ],
                ("Productive", TextFormatter.format_duration(productive_ms)),
            )
        )
        return "".join(parts)

    @staticmethod
    def _category_totals(records: Iterable[dict[str, Any]]) -> list[tuple[str, int]]:
        totals: dict[str, int] = defaultdict(int)
        for r in records:
            totals[r["category"]] += r["totalTimeMs"]
        return sorted(totals.items(), key=lambda item: (-item[1], item[0]))

    @staticmethod
    def _table(
        header: tuple[str, ...],
        rows: list[tuple[str, ...]],
        footer: tuple[str, ...],
    ) -> str:
        """Render rows between a header and a footer line.

        The first column is left-aligned, the rest right-aligned.
        """
        widths = [
            max(len(line[i]) for line in [header, footer, *rows])
            for i in range(len(header))
        ]

        def render(line: tuple[str, ...]) -> str:
            cells = [f"{line[0]:<{widths[0]}}"]
            cells.extend(f"{cell:>{w}}" for cell, w in zip(line[1:], widths[1:]))
            return "  " + "  ".join(cells)

        head = render(header)
        separator = "  " + "─" * (len(head) - 2)
        lines = [head, separator, *(render(r) for r in rows), separator, render(footer)]
        return "\n".join(lines) + "\n"
