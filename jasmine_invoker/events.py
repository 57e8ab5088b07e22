from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from .errors import EventFeedError

JASMINE_STARTED = "jasmineStarted"
SPEC_STARTED = "specStarted"
SPEC_DONE = "specDone"
JASMINE_DONE = "jasmineDone"


@dataclass(frozen=True)
class RunStarted:
    total_specs_defined: int


@dataclass(frozen=True)
class SpecStarted:
    full_name: str


@dataclass(frozen=True)
class SpecDone:
    full_name: str
    status: str

    @property
    def passed(self) -> bool:
        return self.status.lower() == "passed"


@dataclass(frozen=True)
class RunDone:
    pass


TestEvent = Union[RunStarted, SpecStarted, SpecDone, RunDone]


def _require_result(item: dict[str, Any], *, context: str) -> dict[str, Any]:
    result = item.get("result")
    if not isinstance(result, dict):
        raise EventFeedError(f"{context}: 'result' must be an object")
    return result


def _require_str(result: dict[str, Any], key: str, *, context: str) -> str:
    value = result.get(key)
    if not isinstance(value, str):
        raise EventFeedError(f"{context}: result.{key} must be a string")
    return value


def _parse_event(item: Any, *, context: str) -> TestEvent | None:
    if not isinstance(item, dict):
        raise EventFeedError(f"{context}: event must be an object")
    event_type = item.get("event")
    if not isinstance(event_type, str) or not event_type:
        raise EventFeedError(f"{context}: 'event' must be a non-empty string")

    if event_type.lower() == JASMINE_DONE.lower():
        return RunDone()

    # suiteStarted/suiteDone and any other reporter events still carry a result.
    result = _require_result(item, context=context)

    if event_type == JASMINE_STARTED:
        total = result.get("totalSpecsDefined")
        if isinstance(total, bool) or not isinstance(total, int):
            raise EventFeedError(f"{context}: result.totalSpecsDefined must be an integer")
        return RunStarted(total_specs_defined=total)
    if event_type == SPEC_STARTED:
        return SpecStarted(full_name=_require_str(result, "fullName", context=context))
    if event_type == SPEC_DONE:
        return SpecDone(
            full_name=_require_str(result, "fullName", context=context),
            status=_require_str(result, "status", context=context),
        )
    return None


def parse_event_feed(raw: Union[str, bytes, list[Any]]) -> list[TestEvent]:
    """
    Parse a serialized `jasmineEvents` array into typed events, in feed order.

    Events the aggregator has no use for (suiteStarted, suiteDone, ...) are dropped.
    """
    if isinstance(raw, (str, bytes)):
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise EventFeedError(f"Invalid jasmine event JSON: {e}") from e
    else:
        payload = raw

    if not isinstance(payload, list):
        raise EventFeedError(f"Expected a JSON array of jasmine events, got {type(payload).__name__}")

    events: list[TestEvent] = []
    for idx, item in enumerate(payload):
        event = _parse_event(item, context=f"jasmineEvents[{idx}]")
        if event is not None:
            events.append(event)
    return events
