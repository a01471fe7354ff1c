
import logging
from typing import Any, Dict

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from storytest.config import Settings
from storytest.models.models import ConnectionReport, NormalizedStory
from storytest.services.acceptance_criteria import locate_acceptance_criteria
from storytest.services.adf_text import render_to_text
from storytest.services.jira_client import JiraClient, JiraMalformedResponseError

logger = logging.getLogger(__name__)


def normalize_issue(issue: Dict[str, Any], requested_key: str) -> NormalizedStory:
    if not isinstance(issue, dict) or not isinstance(issue.get('fields'), dict):
        raise JiraMalformedResponseError(
            f"JIRA response for {requested_key} has no 'fields' object and cannot be read as a story"
        )
    fields = issue['fields']

    description_obj = fields.get('description')
    # API v2 returns the description as wiki text instead of a document
    if isinstance(description_obj, str):
        description = description_obj
    else:
        description = render_to_text(description_obj)

    try:
        return NormalizedStory(
            key=issue.get('key') or requested_key,
            title=fields.get('summary') or '',
            description=description,
            acceptanceCriteria=locate_acceptance_criteria(issue, description),
        )
    except ValidationError as e:
        raise JiraMalformedResponseError(f"JIRA response for {requested_key} does not match the story schema: {e}") from e


class JiraService:
    def __init__(self, settings: Settings = None, client: JiraClient = None):
        if client is None:
            client = JiraClient(settings or Settings())
        self.client = client

    @property
    def config_check(self):
        return self.client.config_check

    def get_story(self, story_key: str) -> NormalizedStory:
        story = normalize_issue(self.client.fetch_issue(story_key), story_key)
        logger.info(
            f"Fetched JIRA story {story.key} (acceptance criteria {'found' if story.acceptanceCriteria else 'not found'})"
        )
        return story

    async def fetch_story(self, story_key: str) -> NormalizedStory:
        return await run_in_threadpool(self.get_story, story_key)

    async def test_connection(self) -> ConnectionReport:
        return await run_in_threadpool(self.client.test_connection)
