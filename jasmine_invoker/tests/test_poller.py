"""Tests for the completion poller and its timer."""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
from jasmine_invoker.aggregator import ResultAggregator, RunTotals
from jasmine_invoker.errors import AutomationError, EventFeedError, EventSourceError
from jasmine_invoker.poller import CompletionPoller, PollState, PollTimer
from jasmine_invoker.signals import TerminalSignal
from jasmine_feeds import feed, spec_done, spec_started, started


class ScriptedSource:
    """Returns (or raises) the scripted responses in order, then repeats the last one."""

    description = "scripted"

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = 0

    def fetch(self):
        self.calls += 1
        response = self.responses[0] if len(self.responses) == 1 else self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class ScriptedCheck:
    def __init__(self, signals):
        self.signals = list(signals)
        self.calls = 0

    def check(self):
        self.calls += 1
        signal = self.signals[0] if len(self.signals) == 1 else self.signals.pop(0)
        if isinstance(signal, Exception):
            raise signal
        return signal


class CountingTimer(PollTimer):
    def __init__(self):
        super().__init__(0)
        self.waits = 0

    def wait(self, seconds=None):
        self.waits += 1
        return super().wait(seconds)


PARTIAL = feed(started(3), spec_started("A"), spec_done("A", "passed"), spec_started("B"))
COMPLETE = feed(
    started(3),
    spec_done("A", "passed"),
    spec_done("B", "failed"),
    spec_done("C", "passed"),
)


def _poller(source, *, max_iterations=5, terminal_check=None, start_timeout_cycles=None, timer=None):
    return CompletionPoller(
        source=source,
        aggregator=ResultAggregator(),
        timer=timer or CountingTimer(),
        max_iterations=max_iterations,
        terminal_check=terminal_check,
        start_timeout_cycles=start_timeout_cycles,
    )


def test_completes_when_every_spec_has_a_result():
    poller = _poller(ScriptedSource([PARTIAL, COMPLETE]))
    outcome = poller.run()

    assert outcome.state is PollState.COMPLETED
    assert outcome.reason == "all_specs_reported"
    assert outcome.iterations == 2
    assert outcome.totals == RunTotals(total_tests=3, total_passed=2, total_failed=1)
    assert outcome.raw_events == COMPLETE
    assert poller.state is PollState.COMPLETED


def test_budget_exhausted_keeps_last_totals():
    """Running out of polls is an aborted outcome, not an error."""
    timer = CountingTimer()
    poller = _poller(ScriptedSource([PARTIAL]), max_iterations=3, timer=timer)
    outcome = poller.run()

    assert outcome.state is PollState.ABORTED
    assert outcome.reason == "iteration_budget_exhausted"
    assert outcome.iterations == 3
    assert outcome.totals == RunTotals(total_tests=3, total_passed=1, total_failed=0)
    assert poller.aggregator.in_progress_test == "B"
    assert timer.waits == 2


def test_transient_fetch_failure_does_not_reset_state():
    source = ScriptedSource([PARTIAL, EventSourceError("script failed"), None, COMPLETE])
    poller = _poller(source)
    outcome = poller.run()

    assert outcome.state is PollState.COMPLETED
    assert outcome.iterations == 4
    assert source.calls == 4


def test_failure_after_feed_keeps_previous_totals():
    poller = _poller(ScriptedSource([PARTIAL, EventSourceError("gone")]), max_iterations=2)
    outcome = poller.run()

    assert outcome.state is PollState.ABORTED
    assert outcome.totals.total_passed == 1
    assert outcome.raw_events == PARTIAL


def test_terminal_report_completes_early():
    check = ScriptedCheck([None, TerminalSignal(completed=True, reason="html_report_found")])
    outcome = _poller(ScriptedSource([PARTIAL]), terminal_check=check).run()

    assert outcome.state is PollState.COMPLETED
    assert outcome.reason == "html_report_found"
    assert outcome.iterations == 2


def test_app_left_foreground_aborts():
    check = ScriptedCheck([TerminalSignal(completed=False, reason="app_not_in_foreground")])
    outcome = _poller(ScriptedSource([PARTIAL]), terminal_check=check).run()

    assert outcome.state is PollState.ABORTED
    assert outcome.reason == "app_not_in_foreground"
    assert outcome.iterations == 1
    assert outcome.totals.total_tests == 3


def test_count_completion_wins_over_terminal_check():
    check = ScriptedCheck([TerminalSignal(completed=False, reason="app_not_in_foreground")])
    outcome = _poller(ScriptedSource([COMPLETE]), terminal_check=check).run()

    assert outcome.state is PollState.COMPLETED
    assert check.calls == 0


def test_terminal_check_errors_are_tolerated():
    check = ScriptedCheck([AutomationError("device offline"), None])
    outcome = _poller(ScriptedSource([PARTIAL, COMPLETE]), terminal_check=check).run()

    assert outcome.state is PollState.COMPLETED


def test_not_started_within_start_timeout():
    outcome = _poller(ScriptedSource([None]), start_timeout_cycles=2).run()

    assert outcome.state is PollState.ABORTED
    assert outcome.reason == "not_started"
    assert outcome.iterations == 2
    assert outcome.raw_events is None


def test_start_timeout_ignored_once_feed_seen():
    outcome = _poller(ScriptedSource([PARTIAL]), max_iterations=4, start_timeout_cycles=1).run()

    assert outcome.reason == "iteration_budget_exhausted"
    assert outcome.iterations == 4


def test_cancelled_timer_aborts():
    timer = PollTimer(30)
    timer.cancel()
    outcome = _poller(ScriptedSource([None]), timer=timer).run()

    assert outcome.state is PollState.ABORTED
    assert outcome.reason == "cancelled"
    assert outcome.iterations == 1


def test_malformed_feed_propagates():
    with pytest.raises(EventFeedError):
        _poller(ScriptedSource(["{not json"])).run()


def test_on_pass_sees_every_aggregation():
    seen = []
    poller = CompletionPoller(
        source=ScriptedSource([PARTIAL, COMPLETE]),
        aggregator=ResultAggregator(),
        timer=PollTimer(0),
        max_iterations=5,
        on_pass=seen.append,
    )
    poller.run()

    assert [p.totals.total_finished for p in seen] == [1, 3]


def test_poll_timer():
    timer = PollTimer(0)
    assert timer.wait()
    assert timer.wait(0)
    timer.cancel()
    assert timer.cancelled
    assert not timer.wait()
    assert not timer.wait(5)


def test_invalid_limits():
    with pytest.raises(ValueError):
        PollTimer(-1)
    with pytest.raises(ValueError):
        _poller(ScriptedSource([None]), max_iterations=0)
    with pytest.raises(ValueError):
        _poller(ScriptedSource([None]), start_timeout_cycles=0)
