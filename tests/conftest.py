import pytest
from unittest.mock import Mock

from storytest.config import Settings
from storytest.services.jira_client import JiraClient


def _text(value):
    return {"type": "text", "text": value}


@pytest.fixture
def adf():
    """Builders for Atlassian Document Format nodes."""
    class Builder:
        @staticmethod
        def doc(*blocks):
            return {"type": "doc", "version": 1, "content": list(blocks)}

        @staticmethod
        def paragraph(*runs):
            return {"type": "paragraph", "content": [_text(r) for r in runs]}

        @staticmethod
        def heading(*runs):
            return {"type": "heading", "attrs": {"level": 2}, "content": [_text(r) for r in runs]}

        @staticmethod
        def bullet_list(*items, ordered=False):
            return {
                "type": "orderedList" if ordered else "bulletList",
                "content": [
                    {"type": "listItem", "content": [{"type": "paragraph", "content": [_text(item)]}]}
                    for item in items
                ],
            }

    return Builder


@pytest.fixture
def make_response():
    def _make(status_code=200, payload=None, reason="OK", url="https://test.atlassian.net/rest"):
        response = Mock()
        response.status_code = status_code
        response.reason = reason
        response.url = url
        response.text = ""
        if isinstance(payload, Exception):
            response.json.side_effect = payload
        else:
            response.json.return_value = payload
        return response
    return _make


@pytest.fixture
def jira_settings():
    return Settings(
        _env_file=None,
        jira_base_url="https://test.atlassian.net/",
        jira_email="test@example.com",
        jira_api_token="test-token",
    )


@pytest.fixture
def jira_client(jira_settings):
    return JiraClient(jira_settings)
