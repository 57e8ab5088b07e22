from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .aggregator import AggregationPass, ResultAggregator, RunTotals
from .errors import AutomationError, EventSourceError
from .event_source import EventSource
from .signals import TerminalCheck


class PollState(Enum):
    POLLING = "polling"
    COMPLETED = "completed"
    ABORTED = "aborted"


class PollTimer:
    """
    Fixed-cadence wait between poll cycles that can be cancelled from another thread.
    """

    def __init__(self, interval_s: float) -> None:
        if interval_s < 0:
            raise ValueError("interval_s must be >= 0")
        self.interval_s = interval_s
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def wait(self, seconds: Optional[float] = None) -> bool:
        """Sleep for `seconds` (default: one interval). Returns False if cancelled."""
        duration = self.interval_s if seconds is None else seconds
        if duration <= 0:
            return not self.cancelled
        return not self._cancelled.wait(duration)


@dataclass(frozen=True)
class PollOutcome:
    state: PollState
    reason: str
    iterations: int
    totals: RunTotals
    raw_events: Optional[str]

    @property
    def completed(self) -> bool:
        return self.state is PollState.COMPLETED


class CompletionPoller:
    """
    Polls an event source until the jasmine run is over.

    Each cycle fetches the full event feed, aggregates it and stops as COMPLETED
    once every declared spec has a result. The variant's terminal check runs
    after that (HTML report present, app left the foreground). Running out of
    cycles, never seeing a feed within `start_timeout_cycles`, or a cancelled
    timer all stop as ABORTED with the last known totals.

    Transient source/driver failures are reported and the next cycle proceeds
    with the aggregator untouched. A malformed feed (EventFeedError) propagates.
    """

    def __init__(
        self,
        *,
        source: EventSource,
        aggregator: ResultAggregator,
        timer: PollTimer,
        max_iterations: int,
        terminal_check: Optional[TerminalCheck] = None,
        start_timeout_cycles: Optional[int] = None,
        on_pass: Optional[Callable[[AggregationPass], None]] = None,
    ) -> None:
        if max_iterations <= 0:
            raise ValueError("max_iterations must be > 0")
        if start_timeout_cycles is not None and start_timeout_cycles <= 0:
            raise ValueError("start_timeout_cycles must be > 0 when provided")
        self.source = source
        self.aggregator = aggregator
        self.timer = timer
        self.max_iterations = max_iterations
        self.terminal_check = terminal_check
        self.start_timeout_cycles = start_timeout_cycles
        self.on_pass = on_pass
        self.state = PollState.POLLING
        self.iterations = 0
        self.raw_events: Optional[str] = None

    def _finish(self, state: PollState, reason: str) -> PollOutcome:
        self.state = state
        return PollOutcome(
            state=state,
            reason=reason,
            iterations=self.iterations,
            totals=self.aggregator.totals,
            raw_events=self.raw_events,
        )

    def _fetch(self) -> Optional[str]:
        try:
            return self.source.fetch()
        except EventSourceError as e:
            print(f"  failed to get the jasmine test execution status: {e}")
            print("  will fetch the status again after the next wait")
            return None

    def _check_terminal(self) -> Optional[PollOutcome]:
        if self.terminal_check is None:
            return None
        try:
            signal = self.terminal_check.check()
        except AutomationError as e:
            print(f"  terminal state check failed: {e}")
            return None
        if signal is None:
            return None
        state = PollState.COMPLETED if signal.completed else PollState.ABORTED
        return self._finish(state, signal.reason)

    def poll_once(self) -> Optional[PollOutcome]:
        """Run a single cycle. Returns an outcome when polling should stop."""
        self.iterations += 1
        raw = self._fetch()
        if raw is not None:
            self.raw_events = raw
            aggregation = self.aggregator.aggregate(raw)
            if self.on_pass is not None:
                self.on_pass(aggregation)
            if aggregation.totals.is_complete:
                print("Jasmine tests execution is completed.")
                return self._finish(PollState.COMPLETED, "all_specs_reported")

        outcome = self._check_terminal()
        if outcome is not None:
            return outcome

        if (
            self.raw_events is None
            and self.start_timeout_cycles is not None
            and self.iterations >= self.start_timeout_cycles
        ):
            print(
                f"Jasmine tests do not seem to have started after {self.iterations} poll(s). "
                "Check the app/device logs for more information."
            )
            return self._finish(PollState.ABORTED, "not_started")
        return None

    def run(self) -> PollOutcome:
        while True:
            outcome = self.poll_once()
            if outcome is not None:
                return outcome
            if self.iterations >= self.max_iterations:
                print(f"Stopped polling after {self.iterations} poll(s) without the run completing.")
                return self._finish(PollState.ABORTED, "iteration_budget_exhausted")
            print("  tests execution seems in progress, waiting for the results...")
            if not self.timer.wait():
                return self._finish(PollState.ABORTED, "cancelled")
