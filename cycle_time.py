#!/usr/bin/env python3
"""
Issue Cycle Time Reporter

Polls the issue tracker, reconstructs each finished issue's status lifecycle
and appends one CSV row of cycle time metrics per issue.
"""

import argparse
import csv
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from dotenv import load_dotenv

import config
from config import (
    METRIC_COLUMNS,
    VARIANT_COLUMNS,
    ConfigurationError,
    FieldConfig,
    StateNames,
)
from lifecycle import (
    ChangeEvent,
    IncompleteLifecycle,
    build_timeline,
    detect_rework,
    resolve_milestones,
)
from sync_issues import IssueTrackerClient, TransportError
from utils import (
    StatusDisplay,
    get_assignee_name,
    get_issue_key,
    get_issue_type,
    get_updated,
)
from utils_dates import business_days, calendar_days, format_duration, parse_issue_date, round_duration
from utils_filtering import get_estimate, get_group_label, match_group


# Progress legend, one character per issue
MARKER_EMITTED = '.'
MARKER_TRUNCATED = '+'
MARKER_INCOMPLETE = '-'
MARKER_UNESTIMATED = 'x'
MARKER_UNRECOGNIZED = '?'

SKIP_UNESTIMATED = 'unestimated'
SKIP_UNRECOGNIZED_GROUP = 'unrecognized group'


class SkipIssue(Exception):
    """Raised when an issue lacks the data needed for a report row"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass
class IssueMetrics:
    """One report row of cycle time metrics"""
    key: str
    issue_type: str
    points: str
    started_at: str
    in_test_at: str
    passed_at: str
    verified_at: str
    days: int
    weekdays: float
    in_progress: float
    in_test: float
    passed: float
    reworked: bool
    repassed: bool
    reverified: bool
    grouping: Dict[str, str] = field(default_factory=dict)
    truncated: bool = False

    def to_row(self, variant: str) -> List[str]:
        row = [self.grouping.get(column, '') for column in VARIANT_COLUMNS[variant]]
        row.extend([
            self.key,
            self.issue_type,
            self.points,
            self.started_at,
            self.in_test_at,
            self.passed_at,
            self.verified_at,
            str(self.days),
            format_duration(self.weekdays),
            format_duration(self.in_progress),
            format_duration(self.in_test),
            format_duration(self.passed),
            str(int(self.reworked)),
            str(int(self.repassed)),
            str(int(self.reverified)),
        ])
        return row


def calculate_issue_metrics(key: str, issue_type: str, points: str, timeline: List[ChangeEvent],
                            states: StateNames = StateNames(),
                            grouping: Optional[Dict[str, str]] = None) -> IssueMetrics:
    """
    Derive the metrics row for one issue from its sorted timeline.

    Raises:
        IncompleteLifecycle: the timeline never enters the start or end state
    """
    milestones = resolve_milestones(timeline, states.start, states.end, states.test, states.passed)
    flags = detect_rework(timeline, states)

    started = milestones.started.timestamp
    finished = milestones.finished.timestamp
    tested = milestones.entered_test.timestamp
    passed = milestones.entered_passed.timestamp

    return IssueMetrics(
        key=key,
        issue_type=issue_type,
        points=points,
        started_at=milestones.started.created,
        in_test_at=milestones.entered_test.created,
        passed_at=milestones.entered_passed.created,
        verified_at=milestones.finished.created,
        days=calendar_days(started, finished),
        weekdays=round_duration(business_days(started, finished)),
        in_progress=round_duration(business_days(started, milestones.progress_end.timestamp)),
        in_test=round_duration(business_days(tested, passed)),
        passed=round_duration(business_days(passed, finished)),
        reworked=flags.reworked,
        repassed=flags.repassed,
        reverified=flags.reverified,
        grouping=dict(grouping or {}),
        truncated=milestones.truncated,
    )


class MetricsSink:
    """Append-only CSV output; every row is flushed as soon as it is written"""

    def __init__(self, path: str, variant: str):
        self.path = Path(path)
        self.variant = variant
        self.header = VARIANT_COLUMNS[variant] + METRIC_COLUMNS
        self.rows_written = 0

    def _existing_header(self) -> Optional[List[str]]:
        if not self.path.exists() or self.path.stat().st_size == 0:
            return None
        with open(self.path, newline='', encoding='utf-8') as f:
            return next(csv.reader(f), [])

    def __enter__(self):
        existing = self._existing_header()
        if existing is not None and existing != self.header:
            raise ConfigurationError(
                f"{self.path} has a different header than the {self.variant} report; "
                f"choose another --output file")
        needs_header = existing is None
        self._file = open(self.path, 'a', newline='', encoding='utf-8')
        self._writer = csv.writer(self._file)
        if needs_header:
            self._writer.writerow(self.header)
            self._file.flush()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._file.close()
        return False

    def write(self, metrics: IssueMetrics):
        self._writer.writerow(metrics.to_row(self.variant))
        self._file.flush()
        self.rows_written += 1


class SkipLog:
    """Plain-text side log of issues skipped for missing milestones"""

    def __init__(self, path: str):
        self.path = Path(path)
        self.lines_written = 0

    def __enter__(self):
        self._file = open(self.path, 'a', encoding='utf-8')
        return self

    def __exit__(self, exc_type, exc, tb):
        self._file.close()
        return False

    def write(self, issue_key: str, reason: str):
        self._file.write(f"{issue_key} {reason}\n")
        self._file.flush()
        self.lines_written += 1


def advance_watermark(current: Optional[str], candidate: Optional[str]) -> Optional[str]:
    """Return whichever tracker timestamp is later, keeping its original text"""
    candidate_dt = parse_issue_date(candidate)
    if candidate_dt is None:
        return current
    current_dt = parse_issue_date(current)
    if current_dt is None or candidate_dt > current_dt:
        return candidate
    return current


class CycleTimeAnalyzer:
    """Runs issues through lifecycle reconstruction and writes report rows"""

    def __init__(self, client: IssueTrackerClient, sink: MetricsSink, skip_log: SkipLog,
                 fields: FieldConfig, states: StateNames = StateNames(), variant: str = 'team',
                 status: Optional[StatusDisplay] = None):
        if variant not in VARIANT_COLUMNS:
            raise ConfigurationError(f"Unknown report variant {variant!r}")
        self.client = client
        self.sink = sink
        self.skip_log = skip_log
        self.fields = fields
        self.states = states
        self.variant = variant
        self.status = status or client.status
        self.counts: Dict[str, int] = {}

    def _grouping(self, issue: Dict[str, Any]) -> Dict[str, str]:
        if self.variant == 'user':
            return {'User': get_assignee_name(issue)}

        label = get_group_label(issue, self.fields)
        team = match_group(label, self.fields)
        if team is None:
            raise SkipIssue(SKIP_UNRECOGNIZED_GROUP)
        return {'Group': label, 'Team': team}

    def build_metrics(self, issue: Dict[str, Any]) -> IssueMetrics:
        """
        Build the report row for one issue.

        Raises:
            SkipIssue: no estimate, or grouping label not recognized
            IncompleteLifecycle: start or end transition missing
            TransportError: changelog fetch failed
        """
        points = get_estimate(issue, self.fields)
        if points is None:
            raise SkipIssue(SKIP_UNESTIMATED)
        grouping = self._grouping(issue)

        key = get_issue_key(issue)
        timeline = build_timeline(self.client.fetch_changelog_pages(key))
        return calculate_issue_metrics(key, get_issue_type(issue), points, timeline,
                                       self.states, grouping)

    def process_issue(self, issue: Dict[str, Any]) -> str:
        """Process one issue and return its progress marker"""
        key = get_issue_key(issue)
        try:
            metrics = self.build_metrics(issue)
        except SkipIssue as e:
            marker = MARKER_UNESTIMATED if e.reason == SKIP_UNESTIMATED else MARKER_UNRECOGNIZED
        except IncompleteLifecycle as e:
            self.skip_log.write(key, e.reason)
            marker = MARKER_INCOMPLETE
        else:
            self.sink.write(metrics)
            marker = MARKER_TRUNCATED if metrics.truncated else MARKER_EMITTED

        self.counts[marker] = self.counts.get(marker, 0) + 1
        return marker

    def process_batch(self, issues: Iterable[Dict[str, Any]], watermark: Optional[str] = None) -> Optional[str]:
        """
        Process issues in order and return the updated watermark.

        A TransportError from any issue propagates and ends the batch.
        """
        for issue in issues:
            self.status.marker(self.process_issue(issue))
            watermark = advance_watermark(watermark, get_updated(issue))
        return watermark

    def run_subjects(self, subjects: List[str], jql_template: str, since: Optional[str] = None) -> Optional[str]:
        """Run one batch per subject, threading the watermark through each"""
        watermark = since
        for subject in subjects:
            jql = jql_template.format(project=subject, end=self.states.end)
            self.status.print(f"🔍 {subject}: {jql}", style="cyan")
            issues = self.client.search_issues(jql, self.fields, since=since)
            watermark = self.process_batch(issues, watermark)
            self.status.end_markers()
        return watermark


def read_watermark(path: str) -> Optional[str]:
    watermark_file = Path(path)
    if not watermark_file.exists():
        return None
    value = watermark_file.read_text(encoding='utf-8').strip()
    return value or None


def write_watermark(path: str, watermark: str):
    Path(path).write_text(watermark + '\n', encoding='utf-8')


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function"""
    parser = argparse.ArgumentParser(
        description='Report cycle time metrics for finished tracker issues',
        epilog='''
Progress legend:
  .  issue reported
  +  issue reported; end state re-entered after completion
  -  skipped, no start or no end transition (see skip log)
  x  skipped, no estimate
  ?  skipped, grouping label not recognized

Environment:
  TRACKER_BASE_URL, TRACKER_EMAIL, TRACKER_TOKEN      connection
  TRACKER_ESTIMATE_FIELD, TRACKER_GROUP_FIELD         custom field ids
  TRACKER_GROUP_PATTERN, TRACKER_JQL, TRACKER_TIMEOUT
        ''',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('subjects', nargs='+', help='Project keys to report on')
    parser.add_argument('--variant', choices=sorted(VARIANT_COLUMNS), default='team',
                        help='Grouping columns: team (grouping field) or user (assignee)')
    parser.add_argument('--output', '-o', default=config.DEFAULT_OUTPUT_FILE, help='CSV file to append to')
    parser.add_argument('--skip-log', default=config.DEFAULT_SKIP_LOG_FILE, help='Log of issues without start/end')
    parser.add_argument('--since', help='Only issues updated at or after this timestamp')
    parser.add_argument('--since-file', nargs='?', const=config.DEFAULT_WATERMARK_FILE,
                        help='Read --since from, and write the new watermark to, this file')
    parser.add_argument('--start-state', default=config.DEFAULT_START_STATE)
    parser.add_argument('--end-state', default=config.DEFAULT_END_STATE)
    parser.add_argument('--test-state', default=config.DEFAULT_TEST_STATE)
    parser.add_argument('--passed-state', default=config.DEFAULT_PASSED_STATE)
    parser.add_argument('--summary', help='Write a Markdown summary of the CSV to this file when done')
    parser.add_argument('--chart', help='Write a WeekDays histogram PNG to this file when done')
    args = parser.parse_args(argv)

    load_dotenv()

    status = StatusDisplay()
    config_status = config.validate_configuration(args.variant)
    if config_status['issues']:
        for problem in config_status['issues']:
            status.print(f"❌ {problem}", style="red")
        return 2

    since = args.since
    if not since and args.since_file:
        since = read_watermark(args.since_file)
        if since:
            status.print(f"⏱️  Resuming from watermark {since}", style="dim")
    if since and parse_issue_date(since) is None:
        status.print(f"❌ Unrecognized --since value {since!r}, expected a timestamp like 2024-01-15T09:00",
                     style="red")
        return 2

    try:
        fields = config.get_field_config()
        client = IssueTrackerClient(
            config.get_tracker_base_url(),
            config.get_tracker_email(),
            config.get_tracker_token(),
            timeout=config.get_request_timeout(),
            status=status,
        )
    except ConfigurationError as e:
        status.print(f"❌ {e}", style="red")
        return 2

    states = StateNames(args.start_state, args.end_state, args.test_state, args.passed_state)

    watermark = since
    try:
        with MetricsSink(args.output, args.variant) as sink, SkipLog(args.skip_log) as skip_log:
            analyzer = CycleTimeAnalyzer(client, sink, skip_log, fields, states, args.variant, status)
            try:
                watermark = analyzer.run_subjects(args.subjects, config.get_tracker_jql(), since)
            finally:
                status.end_markers()
                status.print(f"📊 {sink.rows_written} rows written to {args.output}, "
                             f"{skip_log.lines_written} skipped issues logged to {args.skip_log}", style="blue")
    except ConfigurationError as e:
        status.print(f"❌ {e}", style="red")
        return 2
    except TransportError as e:
        status.print(f"❌ Tracker request failed, batch aborted: {e}", style="red bold")
        status.print("Rows written so far are complete; re-run with --since to continue.", style="yellow")
        return 1
    except KeyboardInterrupt:
        status.print("\n⚠️  Interrupted. Rows written so far are complete.", style="yellow")
        return 130

    if watermark:
        status.print(f"🔖 Latest update seen: {watermark}", style="green")
        if args.since_file:
            write_watermark(args.since_file, watermark)

    if args.summary or args.chart:
        from report_generator import CycleTimeSummary
        summary = CycleTimeSummary.from_csv(args.output, args.variant)
        if args.summary:
            summary.write_markdown(args.summary)
            status.print(f"📝 Summary written to {args.summary}", style="blue")
        if args.chart:
            summary.write_histogram(args.chart)
            status.print(f"📈 Chart written to {args.chart}", style="blue")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
