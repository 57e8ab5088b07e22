from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .aggregator import ResultStatus, RunTotals
from .poller import PollOutcome, PollState


@dataclass(frozen=True)
class JasmineRunResult:
    variant: str
    outcome: PollOutcome
    results: dict[str, ResultStatus]
    report_json_path: Optional[Path] = None
    summary_path: Optional[Path] = None
    artifacts: list[Path] = field(default_factory=list)

    @property
    def totals(self) -> RunTotals:
        return self.outcome.totals

    @property
    def all_passed(self) -> bool:
        totals = self.outcome.totals
        return totals.total_tests > 0 and totals.total_failed == 0 and totals.total_passed == totals.total_tests


def cancelled_before_polling() -> PollOutcome:
    return PollOutcome(
        state=PollState.ABORTED,
        reason="cancelled",
        iterations=0,
        totals=RunTotals(),
        raw_events=None,
    )
