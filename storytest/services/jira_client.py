
import logging
from typing import Any, Dict, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from storytest.config import Settings, check_jira_settings
from storytest.models.models import ConnectionReport, RecentIssue

logger = logging.getLogger(__name__)

RECENT_ISSUES_JQL = 'ORDER BY created DESC'
RECENT_ISSUES_LIMIT = 5
RECENT_ISSUES_FIELDS = ['key', 'summary', 'status']
API_TOKEN_HELP_URL = 'https://id.atlassian.com/manage-profile/security/api-tokens'


class JiraError(Exception):
    """Base class for Jira failures surfaced to the caller."""
    pass


class JiraNotFoundError(JiraError):
    def __init__(self, key: str, message: Optional[str] = None):
        self.key = key
        super().__init__(message or (
            f"JIRA story '{key}' not found. Story may not exist or you may not have permission to view it."
        ))


class JiraAuthError(JiraError):
    pass


class JiraTransportError(JiraError):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"JIRA API error: {status_code} {message}")


class JiraConnectivityError(JiraError):
    pass


class JiraMalformedResponseError(JiraError):
    pass


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if body.get('errorMessages'):
            return '; '.join(str(m) for m in body['errorMessages'])
        if isinstance(body.get('errors'), dict) and body['errors']:
            return '; '.join(f"{k}: {v}" for k, v in body['errors'].items())
    return response.reason or response.text or 'Unknown error'


class JiraClient:
    """Client for reading Jira issues."""

    def __init__(self, settings: Settings):
        base_url = settings.jira_base_url or ''
        # only one trailing slash is removed
        self.base_url = base_url[:-1] if base_url.endswith('/') else base_url
        self.auth = HTTPBasicAuth(settings.jira_email, settings.jira_api_token)
        self.timeout = settings.jira_timeout
        self.headers = {'Accept': 'application/json', 'Content-Type': 'application/json'}
        self.config_check = check_jira_settings(settings)
        logger.info(f"JIRA client initialized with URL: {self.base_url}")

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            if method == 'POST':
                return requests.post(url, auth=self.auth, headers=self.headers, timeout=self.timeout, **kwargs)
            return requests.get(url, auth=self.auth, headers=self.headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error(f"JIRA request to {url} failed: {e}")
            raise JiraConnectivityError(
                f"Failed to connect to JIRA at {self.base_url}: {e}. Check JIRA_BASE_URL and network access."
            ) from e

    def _check(self, response: requests.Response, not_found: JiraError, auth_message: str) -> Dict[str, Any]:
        status = response.status_code
        if status == 404:
            raise not_found
        if status in (401, 403):
            raise JiraAuthError(auth_message)
        if status < 200 or status >= 300:
            logger.error(f"JIRA API error - status: {status}, URL: {response.url}")
            raise JiraTransportError(status, _error_detail(response))
        try:
            return response.json()
        except ValueError as e:
            raise JiraMalformedResponseError(f"JIRA returned a non-JSON response (status {status})") from e

    def fetch_issue(self, key: str) -> Dict[str, Any]:
        """
        Fetch the raw issue record for a story key.

        The v3 request asks for the names map (``expand=names``). When v3 answers
        410 Gone the request is repeated once against v2, whose record has no
        names map.
        """
        response = self._send('GET', f'/rest/api/3/issue/{key}', params={'expand': 'names'})
        if response.status_code == 410:
            logger.warning(f"JIRA /rest/api/3/issue returned 410 for {key}, falling back to /rest/api/2/issue")
            response = self._send('GET', f'/rest/api/2/issue/{key}')

        issue = self._check(
            response,
            not_found=JiraNotFoundError(key),
            auth_message=f"Authentication failed for story {key}. Verify credentials: JIRA_EMAIL and JIRA_API_TOKEN",
        )
        if not isinstance(issue, dict):
            raise JiraMalformedResponseError(f"JIRA response for {key} is not an issue object")
        return issue

    def _search_recent(self) -> Dict[str, Any]:
        not_found = JiraNotFoundError('', (
            "JIRA API returned 404. Possible causes:\n"
            f"1. JIRA_BASE_URL is incorrect: {self.base_url}\n"
            "2. JIRA instance doesn't exist\n"
            "3. Network/proxy issues\n\n"
            f"Try visiting this URL in browser: {self.base_url}/rest/api/3/serverInfo"
        ))
        auth_message = f"Authentication failed. Verify JIRA_EMAIL and JIRA_API_TOKEN are correct. Check {API_TOKEN_HELP_URL}"
        try:
            response = self._send('POST', '/rest/api/3/search/jql', json={
                'jql': RECENT_ISSUES_JQL,
                'maxResults': RECENT_ISSUES_LIMIT,
                'fields': RECENT_ISSUES_FIELDS,
            })
            return self._check(response, not_found, auth_message)
        except JiraError as e:
            logger.warning(f"POST /rest/api/3/search/jql failed, falling back to /rest/api/2/search: {e}")

        response = self._send('GET', '/rest/api/2/search', params={
            'jql': RECENT_ISSUES_JQL,
            'maxResults': RECENT_ISSUES_LIMIT,
            'fields': ','.join(RECENT_ISSUES_FIELDS),
        })
        return self._check(response, not_found, auth_message)

    def test_connection(self) -> ConnectionReport:
        """Read-only probe listing the most recently created issues."""
        data = self._search_recent()
        issues = data.get('issues', []) if isinstance(data, dict) else None
        if not isinstance(issues, list):
            raise JiraMalformedResponseError("JIRA search response has no issue list")

        recent: List[RecentIssue] = []
        for issue in issues:
            if not isinstance(issue, dict):
                raise JiraMalformedResponseError(f"JIRA search response holds a non-issue entry: {issue!r}")
            fields = issue.get('fields') if isinstance(issue.get('fields'), dict) else {}
            status = fields.get('status') or {}
            recent.append(RecentIssue(
                key=str(issue.get('key', '')),
                summary=str(fields.get('summary') or ''),
                status=str(status.get('name') or '') if isinstance(status, dict) else '',
            ))

        return ConnectionReport(
            issuesFound=len(recent),
            recentIssues=recent,
            instruction=f"Try fetching one of these issues: {', '.join(i.key for i in recent)}",
        )
