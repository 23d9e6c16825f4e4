#!/usr/bin/env python3
"""
Shared utilities for tracker issue processing
Contains the console status display and issue field accessors
Used by sync_issues.py, cycle_time.py and report_generator.py
"""

from typing import Any, Dict, Optional

from rich.console import Console


class StatusDisplay:
    """Handle status messages and per-issue progress markers on the console"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.markers_on_line = 0

    def print(self, message: str, style: str = None):
        """Print a message on its own line, closing any open marker line first"""
        self.end_markers()
        self.console.print(message, style=style)

    def marker(self, char: str):
        """Write a single progress marker without a newline"""
        self.console.print(char, end="", highlight=False, markup=False)
        self.markers_on_line += 1

    def end_markers(self):
        if self.markers_on_line:
            self.console.print()
            self.markers_on_line = 0


def get_issue_key(issue: Dict[str, Any]) -> str:
    return issue.get('key', '')


def get_issue_fields(issue: Dict[str, Any]) -> Dict[str, Any]:
    return issue.get('fields') or {}


def get_issue_type(issue: Dict[str, Any]) -> str:
    """Issue type name, e.g. 'Story' or 'Bug'"""
    issue_type = get_issue_fields(issue).get('issuetype') or {}
    if isinstance(issue_type, dict):
        return issue_type.get('name', '')
    return str(issue_type)


def get_assignee_name(issue: Dict[str, Any]) -> str:
    """Assignee display name, or 'Unassigned'"""
    assignee = get_issue_fields(issue).get('assignee')
    if not assignee:
        return 'Unassigned'
    if isinstance(assignee, dict):
        return assignee.get('displayName') or assignee.get('name') or 'Unassigned'
    return str(assignee)


def get_updated(issue: Dict[str, Any]) -> Optional[str]:
    return get_issue_fields(issue).get('updated')


def field_value_to_label(value: Any) -> str:
    """
    Flatten a custom field value into a display label.

    Handles option fields ({'value': ...}), named objects ({'name': ...}),
    lists of either (the last entry wins, as with sprint history) and plain
    scalars.
    """
    if value is None:
        return ''
    if isinstance(value, list):
        labels = [field_value_to_label(item) for item in value]
        labels = [label for label in labels if label]
        return labels[-1] if labels else ''
    if isinstance(value, dict):
        for key in ('value', 'name', 'displayName'):
            if value.get(key):
                return str(value[key])
        return ''
    return str(value).strip()
