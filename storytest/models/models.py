
from pydantic import BaseModel, Field
from typing import List, Dict, Optional

STORY_KEY_PATTERN = r'^[A-Z]+-\d+$'


class NormalizedStory(BaseModel):
    key: str
    title: str = ""
    description: str = ""
    acceptanceCriteria: str = ""


class RecentIssue(BaseModel):
    key: str
    summary: str = ""
    status: str = ""


class ConnectionReport(BaseModel):
    status: str = "connected"
    message: str = "Successfully connected to JIRA"
    issuesFound: int
    recentIssues: List[RecentIssue]
    instruction: str


class ConfigCheck(BaseModel):
    baseUrl: str
    emailSet: bool
    apiTokenSet: bool
    hasCredentials: bool
    warnings: List[str] = []


class JiraFetchRequest(BaseModel):
    storyId: str = Field(..., min_length=1, pattern=STORY_KEY_PATTERN)


class JiraFetchResponse(BaseModel):
    storyId: str
    title: str
    description: str
    acceptanceCriteria: str


class TestCase(BaseModel):
    testCaseId: str = Field(..., alias="testCaseId")
    title: str
    description: str
    testSteps: List[str]
    expectedResults: str
    priority: str


class StoryInput(BaseModel):
    title: str = ""
    description: str = ""
    acceptanceCriteria: str = ""
    additionalContext: Optional[str] = None
    storyId: Optional[str] = Field(None, pattern=STORY_KEY_PATTERN)


class RefinementRequest(BaseModel):
    story: StoryInput
    questions: List[str]
    answers: Dict[str, str]
