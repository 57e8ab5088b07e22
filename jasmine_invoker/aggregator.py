from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .events import RunDone, RunStarted, SpecDone, SpecStarted, parse_event_feed


class ResultStatus(Enum):
    IN_PROGRESS = "In-Progress"
    PASSED = "Passed"
    FAILED = "Failed"

    @property
    def is_final(self) -> bool:
        return self is not ResultStatus.IN_PROGRESS


@dataclass(frozen=True)
class RunTotals:
    total_tests: int = 0
    total_passed: int = 0
    total_failed: int = 0

    @property
    def total_finished(self) -> int:
        return self.total_passed + self.total_failed

    @property
    def is_complete(self) -> bool:
        return self.total_tests > 0 and self.total_finished == self.total_tests

    def as_dict(self) -> dict[str, int]:
        return {
            "totalTests": self.total_tests,
            "totalPassed": self.total_passed,
            "totalFailed": self.total_failed,
        }


@dataclass(frozen=True)
class AggregationPass:
    """What changed in one `update()` call, for the status table."""

    totals: RunTotals
    reported: list[tuple[str, ResultStatus]] = field(default_factory=list)
    in_progress: Optional[str] = None
    in_progress_is_new: bool = False
    reinstantiated: bool = False


class ResultAggregator:
    """
    Turns the full jasmine event feed into totals and a per-spec status map.

    The feed is re-read from the start on every poll, so totals are recomputed
    from scratch each time. What survives between calls is the set of specs that
    were already reported (so each final result is reported once) and the single
    spec currently shown as in progress.
    """

    def __init__(self) -> None:
        self.totals = RunTotals()
        self.previous_results: dict[str, ResultStatus] = {}
        self.in_progress_test: Optional[str] = None
        self._started_count = 0

    def update(self, raw_events: Union[str, bytes, list[Any]]) -> RunTotals:
        return self.aggregate(raw_events).totals

    def aggregate(self, raw_events: Union[str, bytes, list[Any]]) -> AggregationPass:
        events = parse_event_feed(raw_events)

        total_tests = 0
        total_passed = 0
        total_failed = 0
        started_count = 0
        current: dict[str, ResultStatus] = {}

        for event in events:
            if isinstance(event, RunDone):
                continue
            if isinstance(event, RunStarted):
                # A restarted suite counts from zero again.
                total_tests = event.total_specs_defined
                total_passed = 0
                total_failed = 0
                current = {}
                started_count += 1
            elif isinstance(event, SpecDone):
                if event.passed:
                    current[event.full_name] = ResultStatus.PASSED
                    total_passed += 1
                else:
                    current[event.full_name] = ResultStatus.FAILED
                    total_failed += 1
            elif isinstance(event, SpecStarted):
                current[event.full_name] = ResultStatus.IN_PROGRESS

        # Only a restart not seen on an earlier poll resets what was reported.
        reinstantiated = started_count > 1 and started_count > self._started_count
        self._started_count = started_count
        if reinstantiated:
            self.previous_results.clear()
            self.in_progress_test = None

        reported: list[tuple[str, ResultStatus]] = []
        previous_marker = self.in_progress_test

        # Flush the tracked in-progress spec first once it has resolved.
        if self.in_progress_test is not None:
            status = current.get(self.in_progress_test)
            if status is None:
                self.in_progress_test = None
            elif status.is_final:
                reported.append((self.in_progress_test, status))
                self.previous_results[self.in_progress_test] = status
                self.in_progress_test = None

        for name, status in current.items():
            if name in self.previous_results:
                continue
            if status.is_final:
                reported.append((name, status))
                self.previous_results[name] = status
            elif self.in_progress_test is None:
                self.in_progress_test = name

        self.totals = RunTotals(
            total_tests=total_tests,
            total_passed=total_passed,
            total_failed=total_failed,
        )
        return AggregationPass(
            totals=self.totals,
            reported=reported,
            in_progress=self.in_progress_test,
            in_progress_is_new=self.in_progress_test is not None and self.in_progress_test != previous_marker,
            reinstantiated=reinstantiated,
        )

    def results(self) -> dict[str, ResultStatus]:
        """Reported results plus the pending in-progress spec, in report order."""
        out = dict(self.previous_results)
        if self.in_progress_test is not None and self.in_progress_test not in out:
            out[self.in_progress_test] = ResultStatus.IN_PROGRESS
        return out
