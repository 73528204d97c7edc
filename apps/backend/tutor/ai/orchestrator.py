"""AI-or-heuristic decision logic for each tutoring endpoint.

Each public coroutine checks whether AI is usable, asks the gateway, parses
the model's JSON and, under ``ErrorPolicy.FALLBACK_ON_ERROR``, answers with
the matching heuristic whenever any of that fails. Under
``ErrorPolicy.FAIL_ON_ERROR`` the ``GatewayError`` is raised to the caller
instead.
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from pydantic import ValidationError

from tutor.ai import heuristics
from tutor.ai.gateway import GatewayClient, GatewayError, GatewayUnconfigured, MalformedResponse, parse_json_content
from tutor.core.config import CallProfile
from tutor.db.repository import PageStore
from tutor.prompts.tutor_prompts import (
    analyze_image_prompt,
    book_discussion_prompt,
    evaluate_pronunciation_prompt,
    extract_vocabulary_prompt,
    speaking_practice_prompt,
    to_openai_messages,
    with_image,
)
from tutor.schemas.books import Book, BookPage
from tutor.schemas.evaluation import DEFAULT_CONFIDENCE, EvaluationResult
from tutor.schemas.images import ImageAnalysis
from tutor.schemas.messages import ChatTurn, PracticeContext
from tutor.schemas.vocabulary import DifficultyLevel, VocabularyItem
from tutor.utils.side_effects import SideEffectOutcome, best_effort

T = TypeVar("T")

DEFAULT_SCORE = 70
DEFAULT_SUGGESTION = "Keep practicing to improve your pronunciation!"
DEFAULT_DESCRIPTION = "This image shows an interesting scene from the story."
CHAT_HISTORY_TURNS = 10
DISCUSSION_HISTORY_TURNS = 6
EMPTY_DISCUSSION_REPLY = "I'm sorry, I couldn't understand that. Could you ask me something else about the book?"
_LEVELS = {level.value for level in DifficultyLevel}


class ErrorPolicy(str, Enum):
    FALLBACK_ON_ERROR = "fallback_on_error"
    FAIL_ON_ERROR = "fail_on_error"


class ResultSource(str, Enum):
    AI = "ai"
    HEURISTIC = "heuristic"


@dataclass
class Orchestrated(Generic[T]):
    value: T
    source: ResultSource
    # the failure that sent us down the heuristic path, if any
    error: Optional[GatewayError] = None
    side_effects: List[SideEffectOutcome] = field(default_factory=list)


async def _orchestrate(
    operation: str,
    gateway: GatewayClient,
    ai_path: Callable[[], Awaitable[T]],
    heuristic: Callable[[], T],
    policy: ErrorPolicy = ErrorPolicy.FALLBACK_ON_ERROR,
) -> Orchestrated[T]:
    availability = gateway.config.availability
    if not availability.usable:
        if policy is ErrorPolicy.FAIL_ON_ERROR:
            raise GatewayUnconfigured(f"AI API key is {availability.value}")
        logging.warning(f"{operation}: AI configuration {availability.value}, using basic evaluation")
        return Orchestrated(value=heuristic(), source=ResultSource.HEURISTIC)

    try:
        value = await ai_path()
    except GatewayError as e:
        if policy is ErrorPolicy.FAIL_ON_ERROR:
            raise
        if isinstance(e, MalformedResponse):
            logging.warning(f"{operation}: malformed AI output, using basic evaluation: {e}")
        else:
            logging.warning(f"{operation}: AI {e.kind} failure, using basic evaluation: {e}")
        return Orchestrated(value=heuristic(), source=ResultSource.HEURISTIC, error=e)
    return Orchestrated(value=value, source=ResultSource.AI)


# ---- parsing model output ----

def _score(payload: dict[str, Any], key: str) -> int:
    raw = payload.get(key)
    try:
        value = float(raw) if raw not in (None, "", 0) else DEFAULT_SCORE
    except (TypeError, ValueError):
        value = DEFAULT_SCORE
    if not math.isfinite(value):
        raise MalformedResponse(f"Non-finite {key}: {raw!r}")
    return heuristics.clamp_score(value)


def parse_evaluation(content: str) -> EvaluationResult:
    payload = parse_json_content(content)
    if not isinstance(payload, dict):
        raise MalformedResponse("Expected a JSON object with evaluation scores")

    suggestions = payload.get("suggestions")
    if isinstance(suggestions, str):
        suggestions = [suggestions]
    if not isinstance(suggestions, list) or not suggestions:
        suggestions = [DEFAULT_SUGGESTION]

    return EvaluationResult(
        pronunciation_score=_score(payload, "pronunciation_score"),
        fluency_score=_score(payload, "fluency_score"),
        accuracy_score=_score(payload, "accuracy_score"),
        suggestions=[str(s) for s in suggestions],
    )


def _vocabulary_items(raw: Any, difficulty_level: DifficultyLevel) -> List[VocabularyItem]:
    if isinstance(raw, dict):
        raw = raw.get("vocabulary", raw.get("words"))
    if not isinstance(raw, list):
        raise MalformedResponse("Expected a JSON array of vocabulary objects")

    items = []
    try:
        for entry in raw:
            if not isinstance(entry, dict) or not entry.get("word"):
                raise MalformedResponse(f"Vocabulary entry without a word: {entry!r}")
            word = str(entry["word"])
            level = str(entry.get("difficulty_level") or "").lower()
            if level not in _LEVELS:
                level = difficulty_level
            items.append(VocabularyItem(
                word=word,
                definition=entry.get("definition") or f"A word that appears in the story: {word.lower()}",
                difficulty_level=level,
                part_of_speech=entry.get("part_of_speech") or "noun",
                example_sentence=entry.get("example_sentence") or f"This is an example with {word.lower()}.",
            ))
    except ValidationError as e:
        raise MalformedResponse(f"Vocabulary entry failed validation: {e}") from e
    return items


def parse_vocabulary(content: str, difficulty_level: DifficultyLevel, max_words: int) -> List[VocabularyItem]:
    items = _vocabulary_items(parse_json_content(content), difficulty_level)
    return items[:max_words]


def parse_image_analysis(content: str) -> ImageAnalysis:
    payload = parse_json_content(content)
    if not isinstance(payload, dict):
        raise MalformedResponse("Expected a JSON object with a description")
    vocabulary = payload.get("vocabulary") or []
    return ImageAnalysis(
        description=str(payload.get("description") or DEFAULT_DESCRIPTION),
        vocabulary=_vocabulary_items(vocabulary, DifficultyLevel.BEGINNER),
    )


# ---- endpoints ----

async def evaluate_pronunciation(
    transcript: str,
    target_text: str,
    gateway: GatewayClient,
    confidence: Optional[float] = None,
) -> Orchestrated[EvaluationResult]:
    confidence = DEFAULT_CONFIDENCE if confidence is None else confidence

    async def ai_path() -> EvaluationResult:
        prompt = evaluate_pronunciation_prompt.invoke({
            "target_text": target_text,
            "transcript": transcript,
            "confidence": confidence,
        })
        completion = await gateway.complete(
            to_openai_messages(prompt.to_messages()),
            profile=gateway.config.text,
            model=gateway.config.text_model,
        )
        return parse_evaluation(completion.content)

    return await _orchestrate(
        "evaluate_pronunciation",
        gateway,
        ai_path,
        lambda: heuristics.evaluate_basic_pronunciation(transcript, target_text, confidence),
    )


async def extract_vocabulary(
    description: str,
    gateway: GatewayClient,
    difficulty_level: DifficultyLevel = DifficultyLevel.BEGINNER,
    max_words: int = 5,
) -> Orchestrated[List[VocabularyItem]]:
    async def ai_path() -> List[VocabularyItem]:
        prompt = extract_vocabulary_prompt.invoke({
            "description": description,
            "difficulty_level": difficulty_level.value,
            "max_words": max_words,
        })
        completion = await gateway.complete(
            to_openai_messages(prompt.to_messages()),
            profile=gateway.config.text,
            model=gateway.config.text_model,
        )
        return parse_vocabulary(completion.content, difficulty_level, max_words)

    return await _orchestrate(
        "extract_vocabulary",
        gateway,
        ai_path,
        lambda: heuristics.extract_basic_vocabulary(description, difficulty_level, max_words),
    )


async def analyze_image(
    image_url: str,
    gateway: GatewayClient,
    context: Optional[str] = None,
    page_id: Optional[str] = None,
    pages: Optional[PageStore] = None,
    policy: ErrorPolicy = ErrorPolicy.FALLBACK_ON_ERROR,
    profile: Optional[CallProfile] = None,
) -> Orchestrated[ImageAnalysis]:
    """Describe a book page image, saving the description when ``page_id`` is given.

    The save is best-effort: its outcome is reported in ``side_effects`` and
    never changes the returned analysis.
    """
    profile = profile or gateway.config.vision

    async def ai_path() -> ImageAnalysis:
        prompt = analyze_image_prompt.invoke({"context": context or "General children's book illustration"})
        messages = with_image(to_openai_messages(prompt.to_messages()), image_url)
        completion = await gateway.complete(messages, profile=profile, model=gateway.config.vision_model)
        return parse_image_analysis(completion.content)

    result = await _orchestrate(
        "analyze_image",
        gateway,
        ai_path,
        lambda: ImageAnalysis(description=heuristics.basic_image_description(context)),
        policy=policy,
    )

    if page_id and pages is not None:
        description = result.value.description
        outcome = await best_effort(
            f"save description for page {page_id}",
            lambda: pages.update_page_description(page_id, description),
        )
        result.side_effects.append(outcome)
    return result


async def speaking_practice_reply(
    message: str,
    history: List[ChatTurn],
    context: PracticeContext,
    gateway: GatewayClient,
) -> Orchestrated[str]:
    async def ai_path() -> str:
        book = context.book
        page = context.current_page
        prompt = speaking_practice_prompt.invoke({
            "title": book.title if book else "Unknown",
            "author": (book.author if book else None) or "an unknown author",
            "book_description": (book.description if book else None) or "No description available",
            "difficulty_level": (book.difficulty_level if book else None) or "beginner",
            "age_range": (book.age_range if book else None) or "3-12",
            "page_count": (book.page_count if book else None) or "unknown",
            "page_number": page.number if page else 1,
            "text_content": (page.text_content if page else None) or "No text available",
            "image_description": (page.image_description if page else None) or "No description available",
        })
        messages = to_openai_messages(prompt.to_messages())
        messages.extend({"role": t.role, "content": t.content} for t in history[-CHAT_HISTORY_TURNS:])
        messages.append({"role": "user", "content": message})

        completion = await gateway.complete(messages, profile=gateway.config.chat, model=gateway.config.chat_model)
        reply = completion.content.strip()
        if not reply:
            raise MalformedResponse("Empty tutor reply")
        return reply

    return await _orchestrate(
        "speaking_practice",
        gateway,
        ai_path,
        lambda: heuristics.basic_practice_reply(message, context),
    )


def _page_context(page: Optional[BookPage]) -> str:
    if page is None:
        return ""
    context = f"\nCurrent page {page.page_number}: \"{page.text_content or ''}\""
    if page.image_description:
        context += f"\nPage illustration: {page.image_description}"
    return context


async def discuss_book(
    message: str,
    history: List[ChatTurn],
    book: Book,
    gateway: GatewayClient,
    page: Optional[BookPage] = None,
) -> Orchestrated[str]:
    """Answer a child's question about ``book``, grounded on ``page`` when given."""

    async def ai_path() -> str:
        prompt = book_discussion_prompt.invoke({
            "title": book.title,
            "book_description": book.description or "No description available",
            "age_range": heuristics.age_range(book),
            "difficulty_level": book.difficulty_level,
            "page_context": _page_context(page),
        })
        messages = to_openai_messages(prompt.to_messages())
        messages.extend({"role": t.role, "content": t.content} for t in history[-DISCUSSION_HISTORY_TURNS:])
        messages.append({"role": "user", "content": message})

        completion = await gateway.complete(messages, profile=gateway.config.discussion, model=gateway.config.text_model)
        return completion.content.strip() or EMPTY_DISCUSSION_REPLY

    return await _orchestrate(
        "discuss_book",
        gateway,
        ai_path,
        lambda: heuristics.basic_discussion_reply(message, book),
    )
