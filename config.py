"""
Configuration module for the Issue Cycle Time Reporter
Contains all configurable constants and settings used across the application.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Any, Optional


class ConfigurationError(Exception):
    """Raised when required tracker settings are missing or invalid"""
    pass


# ============================================================================
# WORKFLOW STATES
# ============================================================================

DEFAULT_START_STATE: str = 'In Progress'
DEFAULT_END_STATE: str = 'Verified'
DEFAULT_TEST_STATE: str = 'In Test'
DEFAULT_PASSED_STATE: str = 'Passed'
REJECTED_STATE: str = 'Rejected'


@dataclass(frozen=True)
class StateNames:
    """Status names marking the lifecycle milestones"""
    start: str = DEFAULT_START_STATE
    end: str = DEFAULT_END_STATE
    test: str = DEFAULT_TEST_STATE
    passed: str = DEFAULT_PASSED_STATE

    def forward_targets(self) -> Dict[str, FrozenSet[str]]:
        """
        Forward-only phases mapped to the exits that count as moving forward.
        Any other exit from one of these phases is rework.
        """
        return {
            self.test: frozenset({self.passed, self.end, REJECTED_STATE}),
            self.passed: frozenset({self.end, REJECTED_STATE}),
            self.end: frozenset(),
        }


# ============================================================================
# TRACKER FIELDS
# ============================================================================

# Story points field on most Jira Cloud sites; override with TRACKER_ESTIMATE_FIELD
DEFAULT_ESTIMATE_FIELD: str = 'customfield_10016'

# Sprint names look like "Falcons Sprint 42"; the team is the leading word(s)
DEFAULT_GROUP_PATTERN: str = r'^(?P<team>[A-Za-z][\w-]*(?: [A-Za-z][\w-]*)*?) Sprint \d+'

# Fields requested from the search endpoint besides the configured custom fields
SEARCH_FIELDS: List[str] = ['issuetype', 'updated', 'assignee', 'summary']


@dataclass(frozen=True)
class FieldConfig:
    """Logical field roles mapped to tracker field identifiers"""
    estimate: str = DEFAULT_ESTIMATE_FIELD
    group: Optional[str] = None
    group_pattern: str = DEFAULT_GROUP_PATTERN
    compiled_pattern: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        try:
            compiled = re.compile(self.group_pattern)
        except re.error as e:
            raise ConfigurationError(f"Invalid group pattern {self.group_pattern!r}: {e}")
        object.__setattr__(self, 'compiled_pattern', compiled)

    def search_fields(self) -> List[str]:
        fields = list(SEARCH_FIELDS) + [self.estimate]
        if self.group:
            fields.append(self.group)
        return fields


# ============================================================================
# REPORT OUTPUT
# ============================================================================

# Grouping columns per report variant
VARIANT_COLUMNS: Dict[str, List[str]] = {
    'team': ['Group', 'Team'],
    'user': ['User'],
}

METRIC_COLUMNS: List[str] = [
    'Key', 'Type', 'Points',
    'StartedDt', 'InTestDt', 'PassedDt', 'VerifiedDt',
    'Days', 'WeekDays', 'InProgress', 'InTest', 'Passed',
    'Reworked', 'Repassed', 'Reverified',
]

DEFAULT_OUTPUT_FILE: str = 'cycle_times.csv'
DEFAULT_SKIP_LOG_FILE: str = 'cycle_times_skipped.log'
DEFAULT_WATERMARK_FILE: str = '.cycle_time_watermark'

# Default query when TRACKER_JQL is unset; {project} is the subject key
DEFAULT_JQL: str = 'project = "{project}" AND status = "{end}" ORDER BY updated ASC'

# Changelog and search page size requested from the tracker
PAGE_SIZE: int = 100


# ============================================================================
# ENVIRONMENT VARIABLE HELPERS
# ============================================================================

def get_tracker_base_url() -> str:
    """Get the tracker base URL from environment variables."""
    return os.getenv('TRACKER_BASE_URL', '')

def get_tracker_email() -> str:
    """Get the account email used for basic auth."""
    return os.getenv('TRACKER_EMAIL', '')

def get_tracker_token() -> str:
    """Get the API token used for basic auth."""
    return os.getenv('TRACKER_TOKEN', '')

def get_tracker_jql() -> str:
    """Get the issue query template with fallback."""
    return os.getenv('TRACKER_JQL', DEFAULT_JQL)

def get_request_timeout() -> Optional[float]:
    """Get the HTTP timeout in seconds, or None to wait indefinitely."""
    raw = os.getenv('TRACKER_TIMEOUT', '').strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"TRACKER_TIMEOUT must be a number, got {raw!r}")

def get_field_config() -> FieldConfig:
    """Resolve the logical field roles once from the environment."""
    return FieldConfig(
        estimate=os.getenv('TRACKER_ESTIMATE_FIELD', DEFAULT_ESTIMATE_FIELD),
        group=os.getenv('TRACKER_GROUP_FIELD') or None,
        group_pattern=os.getenv('TRACKER_GROUP_PATTERN', DEFAULT_GROUP_PATTERN),
    )


# ============================================================================
# CONFIGURATION VALIDATION
# ============================================================================

def validate_configuration(variant: str = 'team') -> Dict[str, Any]:
    """Validate configuration and return status."""
    config_status = {
        'base_url': bool(get_tracker_base_url()),
        'email': bool(get_tracker_email()),
        'token': bool(get_tracker_token()),
        'group_field': os.getenv('TRACKER_GROUP_FIELD', ''),
        'issues': []
    }

    if not config_status['base_url']:
        config_status['issues'].append('TRACKER_BASE_URL environment variable not set')
    if not config_status['email'] or not config_status['token']:
        config_status['issues'].append('TRACKER_EMAIL and TRACKER_TOKEN must both be set')
    if variant == 'team' and not config_status['group_field']:
        config_status['issues'].append('TRACKER_GROUP_FIELD is required for the team report')

    return config_status


__all__ = [
    'ConfigurationError',
    'StateNames',
    'FieldConfig',
    'REJECTED_STATE',
    'VARIANT_COLUMNS',
    'METRIC_COLUMNS',
    'DEFAULT_OUTPUT_FILE',
    'DEFAULT_SKIP_LOG_FILE',
    'DEFAULT_WATERMARK_FILE',
    'DEFAULT_JQL',
    'PAGE_SIZE',
    'get_tracker_base_url',
    'get_tracker_email',
    'get_tracker_token',
    'get_tracker_jql',
    'get_request_timeout',
    'get_field_config',
    'validate_configuration',
]
