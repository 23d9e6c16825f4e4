#!/usr/bin/env python3
"""
Shared filtering utilities for issue cycle time analysis
Decides whether an issue carries the data the report needs
"""

from typing import Any, Dict, Optional

from config import FieldConfig
from utils import get_issue_fields, field_value_to_label


def get_estimate(issue: Dict[str, Any], fields: FieldConfig) -> Optional[str]:
    """
    Return the issue's estimate as a display string, or None when blank.

    Numeric estimates are normalized so 3.0 is written as 3.
    """
    value = get_issue_fields(issue).get(fields.estimate)
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else str(value)
    text = field_value_to_label(value)
    return text or None


def get_group_label(issue: Dict[str, Any], fields: FieldConfig) -> str:
    if not fields.group:
        return ''
    return field_value_to_label(get_issue_fields(issue).get(fields.group))


def match_group(label: str, fields: FieldConfig) -> Optional[str]:
    """
    Match a grouping label against the configured pattern.

    Returns:
        The team name (the 'team' named group, or the whole match when the
        pattern has none), or None when the label is not recognized
    """
    if not label:
        return None
    match = fields.compiled_pattern.search(label)
    if not match:
        return None
    if 'team' in match.groupdict() and match.group('team'):
        return match.group('team')
    return match.group(0)
