import json
import logging
from typing import Dict, Any, List, Optional

from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.prompts import ChatPromptTemplate
from pydantic import ValidationError

from storytest.config import Settings
from storytest.models.models import StoryInput, TestCase

logger = logging.getLogger(__name__)

MAX_CONTEXT_CHARS = 12000

GENERATION_INSTRUCTIONS = (
    "You are a senior QA engineer. "
    "Generate a diverse suite of test cases (positive, negative, edge cases) with realistic test data "
    "for the user story below. Every acceptance criterion must be covered by at least one test case. "
    "Return ONLY a valid JSON object with a top-level key 'testCases' which is an array of objects. "
    "Each object must have fields: testCaseId, title, description, testSteps (array of strings), "
    "expectedResults, priority (P1/P2/P3). "
    "Use at most {max_cases} test cases. Use readable IDs like TC-001, TC-002."
)

REFINEMENT_INSTRUCTIONS = (
    "Refine and regenerate the test cases for the user story based on the clarifications below. "
    "Return ONLY JSON with top-level key 'testCases'. Maintain the same schema. "
    "Ensure coverage of both normal and failure paths, boundary conditions and every acceptance criterion. "
    "Use at most {max_cases} test cases."
)

EXAMPLE_OUTPUT = '''{{
  "testCases": [
    {{
      "testCaseId": "TC-001",
      "title": "Example",
      "description": "...",
      "testSteps": ["step 1", "step 2"],
      "expectedResults": "...",
      "priority": "P2"
    }}
  ]
}}'''

GENERATION_PROMPT = ChatPromptTemplate.from_messages([
    ("system", GENERATION_INSTRUCTIONS),
    ("human", "User story:\n{story}\n\nJSON Schema and Example:\n" + EXAMPLE_OUTPUT + "\n\nReturn only JSON with no extra text."),
])

REFINEMENT_PROMPT = ChatPromptTemplate.from_messages([
    ("system", REFINEMENT_INSTRUCTIONS),
    ("human", "User story:\n{story}\n\nClarifications:\n{clarifications}\n\nReturn only JSON."),
])


def format_story(story: StoryInput) -> str:
    sections = [
        f"Title: {story.title}",
        f"Description:\n{story.description}",
        f"Acceptance Criteria:\n{story.acceptanceCriteria or 'Not provided'}",
    ]
    if story.additionalContext:
        sections.append(f"Additional Context:\n{story.additionalContext}")
    return '\n\n'.join(sections)[:MAX_CONTEXT_CHARS]


class LLMService:
    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or Settings()
        self.model_name = settings.gemini_model
        self.temperature = settings.llm_temperature
        self.api_key = settings.gemini_api_key

    def _llm(self) -> ChatGoogleGenerativeAI:
        if self.api_key:
            return ChatGoogleGenerativeAI(model=self.model_name, temperature=self.temperature, google_api_key=self.api_key)
        # falls back to GOOGLE_API_KEY from the environment
        return ChatGoogleGenerativeAI(model=self.model_name, temperature=self.temperature)

    async def _complete(self, messages) -> Dict[str, Any]:
        response = await self._llm().ainvoke(messages)
        content = response.content if hasattr(response, 'content') else str(response)
        if not isinstance(content, str):
            content = str(content)
        parsed = self._safe_parse_json(content)
        if not parsed:
            logger.warning("LLM response could not be parsed as JSON")
            parsed = {'testCases': []}
        parsed['testCases'] = self._valid_test_cases(parsed.get('testCases'))
        return parsed

    def _valid_test_cases(self, raw_cases: Any) -> List[Dict[str, Any]]:
        if not isinstance(raw_cases, list):
            return []
        cases = []
        for raw in raw_cases:
            try:
                cases.append(TestCase.model_validate(raw).model_dump(by_alias=True))
            except ValidationError as e:
                logger.warning(f"Dropping test case that does not match the schema: {e}")
        return cases

    async def generate_test_cases(self, story: StoryInput, max_cases: int, enable_followups: bool) -> Dict[str, Any]:
        messages = GENERATION_PROMPT.format_messages(story=format_story(story), max_cases=max_cases)
        parsed = await self._complete(messages)

        if enable_followups and len(parsed.get('testCases') or []) < 3:
            return {'followUpQuestions': self._propose_followups(story)}

        return parsed

    async def generate_refined_test_cases(
        self,
        story: StoryInput,
        questions: List[str],
        answers_map: Dict[str, str],
        max_cases: int
    ) -> Dict[str, Any]:
        qa_pairs = []
        for idx, q in enumerate(questions):
            a = answers_map.get(str(idx), '') or answers_map.get(q, '')
            qa_pairs.append(f'Q: {q} A: {a}')
        qa_block = '\n'.join(qa_pairs)

        messages = REFINEMENT_PROMPT.format_messages(
            story=format_story(story), clarifications=qa_block, max_cases=max_cases
        )
        return await self._complete(messages)

    def _propose_followups(self, story: StoryInput) -> List[str]:
        questions = [
            "What user roles and permissions need to be covered?",
            "What environments or integrations are in scope (e.g., external APIs, identity provider)?",
            "Are there validation rules, limits or error messages the tests must check?",
        ]
        if not story.acceptanceCriteria:
            questions.insert(0, "What are the acceptance criteria for this story?")
        return questions

    def _safe_parse_json(self, text: str) -> Optional[Dict[str, Any]]:
        try:
            parsed = json.loads(text)
        except ValueError:
            start = text.find('{')
            end = text.rfind('}')
            if start == -1 or end <= start:
                return None
            try:
                parsed = json.loads(text[start:end + 1])
            except ValueError:
                return None
        return parsed if isinstance(parsed, dict) else None
