"""
Tests for the Jira transport: v3 -> v2 fallback and error mapping.
"""
import pytest
import requests
from unittest.mock import patch

from storytest.config import Settings
from storytest.services.jira_client import (
    JiraClient,
    JiraNotFoundError,
    JiraAuthError,
    JiraTransportError,
    JiraConnectivityError,
    JiraMalformedResponseError,
)

ISSUE = {"key": "PROJ-7", "fields": {"summary": "Checkout"}, "names": {"summary": "Summary"}}


def test_base_url_loses_a_single_trailing_slash():
    client = JiraClient(Settings(_env_file=None, jira_base_url="https://x.atlassian.net//"))

    assert client.base_url == "https://x.atlassian.net/"


def test_missing_credentials_reported_in_config_check():
    client = JiraClient(Settings(_env_file=None, jira_email="", jira_api_token=""))

    assert client.config_check.hasCredentials is False
    assert any("JIRA_API_TOKEN" in w for w in client.config_check.warnings)


@patch("storytest.services.jira_client.requests.get")
def test_fetch_issue_requests_names_with_basic_auth(mock_get, jira_client, make_response):
    mock_get.return_value = make_response(200, ISSUE)

    assert jira_client.fetch_issue("PROJ-7") == ISSUE

    mock_get.assert_called_once()
    args, kwargs = mock_get.call_args
    assert args[0] == "https://test.atlassian.net/rest/api/3/issue/PROJ-7"
    assert kwargs["params"] == {"expand": "names"}
    assert kwargs["auth"].username == "test@example.com"
    assert kwargs["auth"].password == "test-token"


@patch("storytest.services.jira_client.requests.get")
def test_fetch_issue_falls_back_to_v2_once_on_gone(mock_get, jira_client, make_response):
    legacy = {"key": "PROJ-7", "fields": {"summary": "Checkout", "description": "wiki text"}}
    mock_get.side_effect = [make_response(410, None, reason="Gone"), make_response(200, legacy)]

    assert jira_client.fetch_issue("PROJ-7") == legacy

    assert mock_get.call_count == 2
    args, kwargs = mock_get.call_args
    assert args[0] == "https://test.atlassian.net/rest/api/2/issue/PROJ-7"
    assert "params" not in kwargs


@patch("storytest.services.jira_client.requests.get")
def test_fallback_failure_is_not_retried_again(mock_get, jira_client, make_response):
    mock_get.side_effect = [make_response(410, None, reason="Gone"), make_response(410, None, reason="Gone")]

    with pytest.raises(JiraTransportError) as exc_info:
        jira_client.fetch_issue("PROJ-7")

    assert exc_info.value.status_code == 410
    assert mock_get.call_count == 2


@patch("storytest.services.jira_client.requests.get")
def test_fetch_issue_not_found_names_the_key(mock_get, jira_client, make_response):
    mock_get.return_value = make_response(404, {"errorMessages": ["Issue does not exist"]})

    with pytest.raises(JiraNotFoundError) as exc_info:
        jira_client.fetch_issue("PROJ-404")

    assert exc_info.value.key == "PROJ-404"
    assert "PROJ-404" in str(exc_info.value)
    assert mock_get.call_count == 1


@pytest.mark.parametrize("status", [401, 403])
@patch("storytest.services.jira_client.requests.get")
def test_fetch_issue_auth_failure(mock_get, status, jira_client, make_response):
    mock_get.return_value = make_response(status, None, reason="Unauthorized")

    with pytest.raises(JiraAuthError, match="JIRA_API_TOKEN"):
        jira_client.fetch_issue("PROJ-7")


@patch("storytest.services.jira_client.requests.get")
def test_fetch_issue_other_status_keeps_status_and_jira_message(mock_get, jira_client, make_response):
    mock_get.return_value = make_response(500, {"errorMessages": ["Internal failure"]}, reason="Server Error")

    with pytest.raises(JiraTransportError) as exc_info:
        jira_client.fetch_issue("PROJ-7")

    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "Internal failure"
    assert str(exc_info.value) == "JIRA API error: 500 Internal failure"


@patch("storytest.services.jira_client.requests.get")
def test_field_errors_are_joined(mock_get, jira_client, make_response):
    mock_get.return_value = make_response(400, {"errors": {"expand": "bad value"}}, reason="Bad Request")

    with pytest.raises(JiraTransportError, match="expand: bad value"):
        jira_client.fetch_issue("PROJ-7")


@patch("storytest.services.jira_client.requests.get")
def test_network_failure_becomes_connectivity_error(mock_get, jira_client):
    mock_get.side_effect = requests.exceptions.ConnectionError("Name or service not known")

    with pytest.raises(JiraConnectivityError, match="JIRA_BASE_URL"):
        jira_client.fetch_issue("PROJ-7")


@patch("storytest.services.jira_client.requests.get")
def test_non_json_body_is_malformed(mock_get, jira_client, make_response):
    mock_get.return_value = make_response(200, ValueError("no json"))

    with pytest.raises(JiraMalformedResponseError):
        jira_client.fetch_issue("PROJ-7")


@patch("storytest.services.jira_client.requests.get")
def test_non_object_body_is_malformed(mock_get, jira_client, make_response):
    mock_get.return_value = make_response(200, ["not", "an", "issue"])

    with pytest.raises(JiraMalformedResponseError):
        jira_client.fetch_issue("PROJ-7")


SEARCH_RESULT = {"issues": [
    {"key": "PROJ-3", "fields": {"summary": "Third", "status": {"name": "To Do"}}},
    {"key": "PROJ-2", "fields": {"summary": "Second", "status": {"name": "Done"}}},
]}


@patch("storytest.services.jira_client.requests.get")
@patch("storytest.services.jira_client.requests.post")
def test_connection_uses_jql_search(mock_post, mock_get, jira_client, make_response):
    mock_post.return_value = make_response(200, SEARCH_RESULT)

    report = jira_client.test_connection()

    assert report.status == "connected"
    assert report.issuesFound == 2
    assert len(report.recentIssues) == report.issuesFound
    assert report.recentIssues[1].status == "Done"
    assert report.instruction == "Try fetching one of these issues: PROJ-3, PROJ-2"
    args, kwargs = mock_post.call_args
    assert args[0] == "https://test.atlassian.net/rest/api/3/search/jql"
    assert kwargs["json"] == {"jql": "ORDER BY created DESC", "maxResults": 5, "fields": ["key", "summary", "status"]}
    mock_get.assert_not_called()


@patch("storytest.services.jira_client.requests.get")
@patch("storytest.services.jira_client.requests.post")
def test_connection_falls_back_to_legacy_search(mock_post, mock_get, jira_client, make_response):
    mock_post.return_value = make_response(405, None, reason="Method Not Allowed")
    mock_get.return_value = make_response(200, SEARCH_RESULT)

    report = jira_client.test_connection()

    assert report.issuesFound == 2
    args, kwargs = mock_get.call_args
    assert args[0] == "https://test.atlassian.net/rest/api/2/search"
    assert kwargs["params"] == {"jql": "ORDER BY created DESC", "maxResults": 5, "fields": "key,summary,status"}


@patch("storytest.services.jira_client.requests.get")
@patch("storytest.services.jira_client.requests.post")
def test_connection_falls_back_after_network_error(mock_post, mock_get, jira_client, make_response):
    mock_post.side_effect = requests.exceptions.Timeout("timed out")
    mock_get.return_value = make_response(200, {"issues": []})

    report = jira_client.test_connection()

    assert report.issuesFound == 0
    assert report.recentIssues == []


@patch("storytest.services.jira_client.requests.get")
@patch("storytest.services.jira_client.requests.post")
def test_connection_legacy_404_points_at_base_url(mock_post, mock_get, jira_client, make_response):
    mock_post.return_value = make_response(404, None, reason="Not Found")
    mock_get.return_value = make_response(404, None, reason="Not Found")

    with pytest.raises(JiraNotFoundError, match="JIRA_BASE_URL is incorrect"):
        jira_client.test_connection()


@patch("storytest.services.jira_client.requests.get")
@patch("storytest.services.jira_client.requests.post")
def test_connection_auth_failure(mock_post, mock_get, jira_client, make_response):
    mock_post.return_value = make_response(401, None, reason="Unauthorized")
    mock_get.return_value = make_response(401, None, reason="Unauthorized")

    with pytest.raises(JiraAuthError, match="JIRA_EMAIL"):
        jira_client.test_connection()


@patch("storytest.services.jira_client.requests.get")
@patch("storytest.services.jira_client.requests.post")
def test_connection_without_issue_list_is_malformed(mock_post, mock_get, jira_client, make_response):
    mock_post.return_value = make_response(200, {"issues": "none"})

    with pytest.raises(JiraMalformedResponseError):
        jira_client.test_connection()


@patch("storytest.services.jira_client.requests.get")
@patch("storytest.services.jira_client.requests.post")
def test_connection_with_non_issue_entry_is_malformed(mock_post, mock_get, jira_client, make_response):
    mock_post.return_value = make_response(200, {"issues": [SEARCH_RESULT["issues"][0], None]})

    with pytest.raises(JiraMalformedResponseError):
        jira_client.test_connection()
