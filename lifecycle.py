#!/usr/bin/env python3
"""
Issue lifecycle reconstruction

Turns a tracker changelog into an ordered status timeline, then resolves the
lifecycle milestones (started, in test, passed, verified) and the rework flags
that cycle_time.py turns into metrics.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from config import StateNames, DEFAULT_TEST_STATE, DEFAULT_PASSED_STATE
from utils_dates import parse_issue_date


STATUS_FIELD = 'status'


class IncompleteLifecycle(Exception):
    """Raised when a required milestone transition is missing from the changelog"""
    reason = 'incomplete'


class NoStartMilestone(IncompleteLifecycle):
    reason = 'no start'


class NoEndMilestone(IncompleteLifecycle):
    reason = 'no end'


@dataclass
class ChangeEvent:
    """One status transition taken from the changelog"""
    timestamp: datetime
    created: str          # tracker timestamp as received, used for output
    from_state: str
    to_state: str


@dataclass
class ChangelogPage:
    """One page of raw changelog histories as returned by the tracker"""
    histories: List[Dict[str, Any]]
    is_last: bool = True


@dataclass
class Milestones:
    """Lifecycle milestones resolved from a timeline"""
    started: ChangeEvent
    finished: ChangeEvent
    entered_test: ChangeEvent
    entered_passed: ChangeEvent
    progress_end: ChangeEvent
    # End state was entered again after the first completion
    truncated: bool = False


@dataclass
class ReworkFlags:
    reworked: bool = False
    repassed: bool = False
    reverified: bool = False


def normalize_changelog_page(histories: Iterable[Dict[str, Any]]) -> List[ChangeEvent]:
    """
    Reduce raw changelog histories to status transitions.

    Each history contributes at most one event: the first item that changes
    the status field with both the old and new state names present.
    """
    events = []
    for history in histories:
        for item in history.get('items') or []:
            if item.get('field') != STATUS_FIELD:
                continue
            from_state = item.get('fromString')
            to_state = item.get('toString')
            if from_state is None or to_state is None:
                continue
            created = history.get('created')
            timestamp = parse_issue_date(created)
            if timestamp is not None:
                events.append(ChangeEvent(timestamp, created, from_state, to_state))
            break
    return events


class TimelineBuilder:
    """Accumulates changelog pages for one issue and sorts once at the end"""

    def __init__(self):
        self.events: List[ChangeEvent] = []
        self.complete = False

    def add_page(self, page: ChangelogPage) -> bool:
        """Add a page; returns True once the tracker has signalled the last page"""
        self.events.extend(normalize_changelog_page(page.histories))
        self.complete = page.is_last
        return self.complete

    def build(self) -> List[ChangeEvent]:
        # sorted() is stable, so simultaneous transitions keep delivery order
        return sorted(self.events, key=lambda event: event.timestamp)


def build_timeline(pages: Iterable[ChangelogPage]) -> List[ChangeEvent]:
    """Consume changelog pages until the last one and return the sorted timeline"""
    builder = TimelineBuilder()
    for page in pages:
        if builder.add_page(page):
            break
    return builder.build()


def _first_index(timeline: List[ChangeEvent], to_state: str) -> Optional[int]:
    for index, event in enumerate(timeline):
        if event.to_state == to_state:
            return index
    return None


def _last_entry(window: List[ChangeEvent], to_state: str) -> Optional[ChangeEvent]:
    for event in reversed(window):
        if event.to_state == to_state:
            return event
    return None


def resolve_milestones(timeline: List[ChangeEvent], start_state: str, end_state: str,
                       test_state: str = DEFAULT_TEST_STATE, passed_state: str = DEFAULT_PASSED_STATE) -> Milestones:
    """
    Locate lifecycle milestones in a sorted timeline.

    Completion is the *first* entry into the end state; anything after it is
    left out of the phase milestones. Within that window the *last* entries
    into the test and passed states count, because an issue may cycle through
    them several times before completing. Missing phase entries fall back to
    the next milestone, ending at completion.

    Raises:
        NoStartMilestone: the start state is never entered
        NoEndMilestone: the end state is never entered
    """
    start_index = _first_index(timeline, start_state)
    if start_index is None:
        raise NoStartMilestone(start_state)
    finish_index = _first_index(timeline, end_state)
    if finish_index is None:
        raise NoEndMilestone(end_state)

    finished = timeline[finish_index]
    window = timeline[:finish_index + 1]

    entered_passed = _last_entry(window, passed_state) or finished
    entered_test = _last_entry(window, test_state) or entered_passed

    progress_end = finished
    for event in reversed(window):
        if event.from_state == start_state:
            progress_end = event
            break

    truncated = any(event.to_state == end_state for event in timeline[finish_index + 1:])

    return Milestones(
        started=timeline[start_index],
        finished=finished,
        entered_test=entered_test,
        entered_passed=entered_passed,
        progress_end=progress_end,
        truncated=truncated,
    )


def detect_rework(timeline: List[ChangeEvent], states: StateNames = StateNames()) -> ReworkFlags:
    """
    Flag backward transitions out of the forward-only phases.

    Runs over the whole timeline, including events after completion, so an
    issue reopened after verification is reported as reverified even though
    its milestones ignore the reopen.
    """
    forward = states.forward_targets()
    backward = set()
    for event in timeline:
        allowed = forward.get(event.from_state)
        if allowed is not None and event.to_state not in allowed:
            backward.add(event.from_state)

    return ReworkFlags(
        reworked=states.test in backward,
        repassed=states.passed in backward,
        reverified=states.end in backward,
    )
