
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from storytest.config import get_settings
from storytest.models.models import (
    JiraFetchRequest, JiraFetchResponse, StoryInput, RefinementRequest
)
from storytest.services.jira_client import (
    JiraError, JiraNotFoundError, JiraAuthError, JiraConnectivityError
)
from storytest.services.jira_service import JiraService
from storytest.services.llm_service import LLMService

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="User Story Test Case Generator", version="1.0.0")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Services
jira_service = JiraService(settings)
llm_service = LLMService(settings)

for warning in jira_service.config_check.warnings:
    logger.warning(warning)

TROUBLESHOOTING = [
    "1. Verify JIRA_BASE_URL is correct (no trailing slash)",
    "2. Verify JIRA_EMAIL matches your JIRA account",
    "3. Verify JIRA_API_TOKEN is valid (check https://id.atlassian.com/manage-profile/security/api-tokens)",
    "4. Make sure you have permission to access issues in JIRA",
    "5. Try fetching a different story key",
]


def jira_http_error(error: JiraError) -> HTTPException:
    if isinstance(error, JiraNotFoundError):
        status_code = 404
    elif isinstance(error, JiraAuthError):
        status_code = 401
    elif isinstance(error, JiraConnectivityError):
        status_code = 503
    else:
        status_code = 502
    return HTTPException(status_code=status_code, detail=str(error))


@app.get("/jira/diagnose")
async def diagnose_jira():
    check = jira_service.config_check
    diagnostics = {
        "status": "checking",
        "environment": {
            "JIRA_BASE_URL": check.baseUrl,
            "JIRA_EMAIL": "SET" if check.emailSet else "NOT SET",
            "JIRA_API_TOKEN": "SET" if check.apiTokenSet else "NOT SET",
            "hasCredentials": check.hasCredentials,
        },
        "message": "Attempting to fetch recent JIRA issues...",
    }

    if not check.hasCredentials:
        return JSONResponse(status_code=400, content={
            **diagnostics,
            "status": "failed",
            "error": "JIRA credentials not configured in .env file",
            "requiredEnvVars": ["JIRA_BASE_URL", "JIRA_EMAIL", "JIRA_API_TOKEN"],
        })

    try:
        report = await jira_service.test_connection()
    except JiraError as e:
        logger.error(f"JIRA diagnose failed: {e}")
        return JSONResponse(status_code=400, content={
            **diagnostics,
            "status": "failed",
            "error": str(e),
            "troubleshooting": TROUBLESHOOTING,
        })

    return {
        **diagnostics,
        "status": "success",
        "message": "JIRA connection successful",
        "connection": report.model_dump(),
    }


@app.post("/jira/fetch", response_model=JiraFetchResponse)
async def fetch_jira_story(request: JiraFetchRequest):
    try:
        story = await jira_service.fetch_story(request.storyId)
    except JiraError as e:
        logger.error(f"JIRA fetch error for {request.storyId}: {e}")
        raise jira_http_error(e)

    return JiraFetchResponse(
        storyId=story.key,
        title=story.title,
        description=story.description,
        acceptanceCriteria=story.acceptanceCriteria,
    )


async def hydrate_story(story: StoryInput) -> StoryInput:
    if not story.storyId:
        return story
    try:
        fetched = await jira_service.fetch_story(story.storyId)
    except JiraError as e:
        logger.error(f"JIRA fetch error for {story.storyId}: {e}")
        raise jira_http_error(e)
    # fields sent explicitly win over the Jira copy
    return StoryInput(
        storyId=story.storyId,
        title=story.title or fetched.title,
        description=story.description or fetched.description,
        acceptanceCriteria=story.acceptanceCriteria or fetched.acceptanceCriteria,
        additionalContext=story.additionalContext,
    )


@app.post("/testcases/generate")
async def generate_test_cases(request: StoryInput):
    story = await hydrate_story(request)
    if not story.title and not story.description:
        raise HTTPException(status_code=400, detail="A story title or description is required")

    try:
        result = await llm_service.generate_test_cases(
            story,
            settings.max_test_cases,
            settings.enable_follow_up_questions,
        )
    except Exception as e:
        logger.error(f"Test case generation error: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to generate test cases: {str(e)}")

    if result.get("followUpQuestions"):
        logger.info(f"Requesting clarification for story '{story.title}'")
        return {"followUpQuestions": result["followUpQuestions"]}

    logger.info(f"Generated {len(result.get('testCases', []))} test cases for story '{story.title}'")
    return {"testCases": result.get("testCases", [])}


@app.post("/testcases/refine")
async def refine_test_cases(request: RefinementRequest):
    story = await hydrate_story(request.story)
    try:
        result = await llm_service.generate_refined_test_cases(
            story,
            request.questions,
            request.answers,
            settings.max_test_cases,
        )
    except Exception as e:
        logger.error(f"Answer submission error: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to process answers: {str(e)}")

    logger.info(f"Generated {len(result.get('testCases', []))} refined test cases")
    return {"testCases": result.get("testCases", [])}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
