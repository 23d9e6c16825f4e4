#!/usr/bin/env python3
"""
Issue Tracker Client

Fetches issue search results and per-issue changelogs from a Jira-style REST
API. Every call is synchronous; any failed call raises TransportError and is
left to the caller, which aborts the batch.
"""

from typing import Any, Dict, Iterator, Optional

import requests

from config import PAGE_SIZE, FieldConfig
from lifecycle import ChangelogPage
from utils import StatusDisplay
from utils_dates import parse_issue_date


class TransportError(Exception):
    """Raised when a tracker request fails or returns a non-success status"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def format_since(since: str) -> str:
    """
    Convert a tracker timestamp watermark into a JQL date literal.

    JQL only accepts minute precision ("yyyy/MM/dd HH:mm"), so the watermark
    is truncated; issues updated within that minute are fetched again.
    """
    moment = parse_issue_date(since)
    if moment is None:
        raise ValueError(f"Unrecognized since value: {since!r}")
    return moment.strftime('%Y/%m/%d %H:%M')


class IssueTrackerClient:
    """Thin client for the tracker's search and changelog endpoints"""

    def __init__(self, base_url: str, email: str, token: str, timeout: Optional[float] = None,
                 status: Optional[StatusDisplay] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()
        self.session.auth = (email, token)
        self.session.headers.update({'Accept': 'application/json'})
        self.status = status or StatusDisplay()
        self.request_count = 0

    def _make_request(self, path: str, params: Dict = None) -> Dict:
        """Make a GET request against the tracker and return the decoded JSON body"""
        url = f"{self.base_url}{path}"
        self.request_count += 1
        try:
            response = self.session.get(url, params=params or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"GET {url} failed: {e}") from e

        if response.status_code >= 400:
            raise TransportError(
                f"GET {url} failed {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"GET {url} returned invalid JSON: {e}",
                                 status_code=response.status_code) from e

    def search_issues(self, jql: str, fields: FieldConfig, since: Optional[str] = None) -> Iterator[Dict[str, Any]]:
        """Yield every issue matching the query, following nextPageToken pagination"""
        if since:
            clause = f'updated >= "{format_since(since)}"'
            jql = _add_clause(jql, clause)

        next_page_token = None
        while True:
            params = {
                'jql': jql,
                'maxResults': PAGE_SIZE,
                'fields': ','.join(fields.search_fields()),
            }
            if next_page_token:
                params['nextPageToken'] = next_page_token

            data = self._make_request('/rest/api/3/search/jql', params)
            issues = data.get('issues') or []
            for issue in issues:
                yield issue

            next_page_token = data.get('nextPageToken')
            if data.get('isLast') or not next_page_token or not issues:
                break

    def fetch_changelog_pages(self, issue_key: str) -> Iterator[ChangelogPage]:
        """Yield changelog pages for one issue until the tracker reports the last page"""
        start_at = 0
        while True:
            params = {'startAt': start_at, 'maxResults': PAGE_SIZE}
            data = self._make_request(f"/rest/api/3/issue/{issue_key}/changelog", params)
            values = data.get('values') or []
            if 'isLast' in data:
                is_last = bool(data['isLast'])
            else:
                total = data.get('total', 0)
                is_last = start_at + len(values) >= total
            # An empty page can't advance the cursor
            if not values:
                is_last = True

            yield ChangelogPage(histories=values, is_last=is_last)

            if is_last:
                break
            start_at += len(values)


def _add_clause(jql: str, clause: str) -> str:
    """AND a clause into a query, keeping any ORDER BY at the end"""
    upper = jql.upper()
    order_at = upper.rfind(' ORDER BY ')
    if order_at == -1:
        return f"({jql}) AND {clause}" if jql.strip() else clause
    head, tail = jql[:order_at], jql[order_at:]
    return f"({head}) AND {clause}{tail}"


__all__ = ['IssueTrackerClient', 'TransportError', 'format_since']
