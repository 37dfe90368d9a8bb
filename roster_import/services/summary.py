from __future__ import annotations

from ..models.import_result import ImportResult

"""SUMMARY line rendering.

Format:
    SUMMARY rows={rows} mapped={mapped}/{headers} patterns={patterns}
    corrected={corrected} errors={errors} warnings={warnings} phase={phase}

(one line; wrapped here for readability)
"""

__all__ = [
    "render_summary_line",
]


def render_summary_line(result: ImportResult) -> str:
    """Render the SUMMARY line for an ImportResult.

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> r = ImportResult(status="complete", phase="complete", rows=3, headers=4, mapped=3,
        ...                  patterns=0, corrected=1, errors=0, warnings=2,
        ...                  start_time=t, end_time=t, elapsed_seconds=0.0)
        >>> render_summary_line(r)
        'SUMMARY rows=3 mapped=3/4 patterns=0 corrected=1 errors=0 warnings=2 phase=complete'
    """
    return (
        f"SUMMARY rows={result.rows} mapped={result.mapped}/{result.headers} "
        f"patterns={result.patterns} corrected={result.corrected} "
        f"errors={result.errors} warnings={result.warnings} phase={result.phase}"
    )
