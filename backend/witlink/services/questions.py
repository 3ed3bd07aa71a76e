"""Quiz question generation through an OpenAI-compatible chat API."""
import json
import logging
import re
from typing import List, Optional

from openai import APITimeoutError, OpenAI, OpenAIError, RateLimitError
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from witlink.errors import ExternalServiceError
from witlink.models import AnswerKey, Difficulty, Question

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """Write {count} multiple-choice quiz questions.
Topic: {topic}
Difficulty: {difficulty} (one of EASY, MEDIUM, HARD)

Rules:
- Every question has a unique text and exactly four short, distinct options.
- Exactly one option is correct. Spread the correct answers evenly over A, B, C and D.
- Players get {seconds} seconds per question, so keep questions and options short enough to read and answer in time.
- Questions must be fair for the difficulty and free of ambiguity.

Reply with JSON only, no extra words, in this shape:
{{"questions": [{{"question": "Which planet is known as the Red Planet?", "options": ["A) Venus", "B) Mars", "C) Jupiter", "D) Saturn"], "correctAnswer": "B"}}]}}
"""

_FENCE_RE = re.compile(r'^```[a-zA-Z0-9_-]*\s*|\s*```$')
_ARRAY_RE = re.compile(r'\[[\s\S]*\]')


class QuestionGenerationError(ExternalServiceError):
    pass


class QuestionPayload(BaseModel):
    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=4, max_length=4)
    correctAnswer: AnswerKey

    @field_validator('question')
    @classmethod
    def _strip_question(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError('question text is empty')
        return value

    @field_validator('options')
    @classmethod
    def _distinct_options(cls, value: List[str]) -> List[str]:
        options = [o.strip() for o in value]
        if any(not o for o in options):
            raise ValueError('options must not be empty')
        if len(set(options)) != len(options):
            raise ValueError('options must be distinct')
        return options

    @field_validator('correctAnswer', mode='before')
    @classmethod
    def _normalize_key(cls, value):
        # Models sometimes answer "b" or "B) Mars"
        if isinstance(value, str) and value.strip():
            return value.strip()[0].upper()
        return value

    def to_question(self) -> Question:
        return Question(text=self.question, options=tuple(self.options), correct_answer=self.correctAnswer)


_questions_adapter = TypeAdapter(List[QuestionPayload])


def _load_json(text: str):
    cleaned = _FENCE_RE.sub('', text.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        match = _ARRAY_RE.search(cleaned)
        if not match:
            raise QuestionGenerationError('Could not parse questions from model response') from None
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            raise QuestionGenerationError('Could not parse questions from model response') from None


def parse_questions(text: str) -> List[Question]:
    """Parse and validate a model response into questions.

    Accepts a bare JSON array or an object with a ``questions`` array,
    optionally wrapped in a Markdown code fence.
    """
    if not isinstance(text, str) or not text.strip():
        raise QuestionGenerationError('Model returned an empty response')
    data = _load_json(text)
    if isinstance(data, dict):
        data = data.get('questions')
    if not isinstance(data, list) or not data:
        raise QuestionGenerationError('Model response does not contain questions')
    try:
        payloads = _questions_adapter.validate_python(data)
    except ValidationError as exc:
        raise QuestionGenerationError(f'Invalid question in model response: {exc.error_count()} error(s)') from exc
    return [p.to_question() for p in payloads]


def build_prompt(topic: str, difficulty: Difficulty, count: int) -> str:
    return PROMPT_TEMPLATE.format(
        count=count,
        topic=topic,
        difficulty=difficulty.value,
        seconds=difficulty.seconds_per_question,
    )


class OpenAIQuestionProvider:
    """Callable ``provider(topic, difficulty) -> list[Question]``."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = 'gpt-4.1-mini',
        base_url: Optional[str] = None,
        timeout: float = 60,
        count: int = 10,
        client=None,
    ):
        self.model = model
        self.count = count
        self._client = client
        self._client_kwargs = {'api_key': api_key, 'base_url': base_url, 'timeout': timeout}

    @property
    def client(self):
        # Created lazily so the app starts without an API key configured
        if self._client is None:
            self._client = OpenAI(**self._client_kwargs)
        return self._client

    def __call__(self, topic: str, difficulty) -> List[Question]:
        difficulty = Difficulty.parse(difficulty)
        prompt = build_prompt(topic, difficulty, self.count)
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{'role': 'user', 'content': prompt}],
                response_format={'type': 'json_object'},
            )
        except RateLimitError as e:
            logger.error(f"Question API rate limit exceeded: {e}")
            raise QuestionGenerationError('Question service is busy, try again') from e
        except APITimeoutError as e:
            logger.error(f"Question API call timed out: {e}")
            raise QuestionGenerationError('Question service timed out') from e
        except OpenAIError as e:
            logger.error(f"Error generating questions: {e}", exc_info=True)
            raise QuestionGenerationError() from e

        if not response.choices:
            raise QuestionGenerationError('Model response does not contain choices')
        questions = parse_questions(response.choices[0].message.content)
        logger.info(f"Generated {len(questions)} questions topic={topic!r} difficulty={difficulty.value}")
        return questions


def build_question_provider(config) -> OpenAIQuestionProvider:
    return OpenAIQuestionProvider(
        api_key=config.get('OPENAI_API_KEY'),
        model=config.get('QUESTION_MODEL', 'gpt-4.1-mini'),
        base_url=config.get('QUESTION_API_BASE_URL'),
        timeout=config.get('QUESTION_TIMEOUT_SEC', 60),
        count=config.get('QUESTION_COUNT', 10),
    )
