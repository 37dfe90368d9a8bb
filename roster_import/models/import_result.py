from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

"""Result of one non-interactive import run (SUMMARY line + CLI exit code)."""

__all__ = [
    "ImportResult",
    "STATUS_COMPLETE",
    "STATUS_BLOCKED",
]

STATUS_COMPLETE = "complete"
STATUS_BLOCKED = "blocked"  # ユーザー操作 (マッピング/修正/日付形式) が必要


@dataclass(frozen=True)
class ImportResult:
    status: str
    phase: str  # 停止した段階 (mapping / bulk-correction / date-disambiguation / ...)
    rows: int
    headers: int
    mapped: int
    patterns: int  # 未解決の ErrorPattern 数
    corrected: int  # 一括修正で置換した出現数
    errors: int
    warnings: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    reason: str | None = None
    output_path: Path | None = None
    report_path: Path | None = None
    mapping_report: list[dict[str, object]] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETE
