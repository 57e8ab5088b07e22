"""Tests for jasmine event feed parsing."""
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
from jasmine_invoker.aggregator import ResultAggregator
from jasmine_invoker.errors import EventFeedError
from jasmine_invoker.events import RunDone, RunStarted, SpecDone, SpecStarted, parse_event_feed
from jasmine_feeds import DONE, feed, spec_done, spec_started, started, suite_done, suite_started


def test_parse_keeps_feed_order():
    events = parse_event_feed(
        feed(started(2), suite_started("S"), spec_started("A"), spec_done("A", "passed"), suite_done("S"), DONE)
    )

    assert events == [
        RunStarted(total_specs_defined=2),
        SpecStarted(full_name="A"),
        SpecDone(full_name="A", status="passed"),
        RunDone(),
    ]


def test_spec_done_passed_is_case_insensitive():
    assert SpecDone(full_name="A", status="PASSED").passed
    assert not SpecDone(full_name="A", status="failed").passed


def test_jasmine_done_needs_no_result():
    assert parse_event_feed('[{"event": "JasmineDone"}]') == [RunDone()]


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        '{"event": "jasmineStarted"}',
        "[1, 2]",
        '[{"result": {}}]',
        '[{"event": "specDone"}]',
        json.dumps([{"event": "jasmineStarted", "result": {"totalSpecsDefined": "3"}}]),
        json.dumps([{"event": "specDone", "result": {"fullName": "A"}}]),
        json.dumps([{"event": "specStarted", "result": {"fullName": 7}}]),
    ],
)
def test_malformed_feeds_raise(raw):
    """Shape errors surface as EventFeedError, not as failed assertions."""
    with pytest.raises(EventFeedError):
        parse_event_feed(raw)


def test_undecodable_bytes_raise_feed_error():
    raw = b'[{"event":"specDone","result":{"fullName":"\xe9","status":"passed"}}]'

    with pytest.raises(EventFeedError):
        parse_event_feed(raw)
    with pytest.raises(EventFeedError):
        ResultAggregator().update(raw)
