import json

import pytest

from conftest import FakeGateway, ai_config
from tutor.ai import heuristics, orchestrator
from tutor.ai.gateway import GatewayHTTPError, GatewayNetworkError, GatewayTimeout, GatewayUnconfigured, MalformedResponse
from tutor.ai.orchestrator import ErrorPolicy, ResultSource
from tutor.schemas.books import Book, BookPage
from tutor.schemas.messages import BookContext, ChatTurn, PageContext, PracticeContext
from tutor.schemas.vocabulary import DifficultyLevel


@pytest.mark.asyncio
async def test_evaluation_without_key_uses_heuristic():
    gateway = FakeGateway("unused", config=ai_config(api_key=None))

    result = await orchestrator.evaluate_pronunciation("the cat sat", "the cat sat", gateway, confidence=0.9)

    assert result.source is ResultSource.HEURISTIC
    assert result.value.accuracy_score == 100
    assert result.value.pronunciation_score == 90
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_evaluation_from_model():
    content = json.dumps({
        "pronunciation_score": 88,
        "fluency_score": 91.6,
        "accuracy_score": 150,
        "suggestions": ["Slow down a little"],
    })
    gateway = FakeGateway(content)

    result = await orchestrator.evaluate_pronunciation("the cat sat", "the cat sat", gateway)

    assert result.source is ResultSource.AI
    assert result.value.pronunciation_score == 88
    assert result.value.fluency_score == 92
    assert result.value.accuracy_score == 100
    assert result.value.suggestions == ["Slow down a little"]
    call = gateway.calls[0]
    assert call["profile"] == gateway.config.text
    assert "Spoken text: \"the cat sat\"" in call["messages"][-1]["content"]


@pytest.mark.asyncio
async def test_evaluation_fills_missing_scores():
    gateway = FakeGateway('{"accuracy_score": 0}')

    result = await orchestrator.evaluate_pronunciation("hi", "hi", gateway)

    assert result.value.pronunciation_score == orchestrator.DEFAULT_SCORE
    assert result.value.accuracy_score == orchestrator.DEFAULT_SCORE
    assert result.value.suggestions == [orchestrator.DEFAULT_SUGGESTION]


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [
    GatewayTimeout("too slow"),
    GatewayNetworkError("unreachable"),
    GatewayHTTPError(500, "boom"),
    MalformedResponse("no choices"),
])
async def test_evaluation_falls_back_on_any_gateway_failure(failure):
    gateway = FakeGateway(failure)

    result = await orchestrator.evaluate_pronunciation("a dog ran fast today", "the cat sat", gateway, confidence=0.5)

    assert result.source is ResultSource.HEURISTIC
    assert result.error is failure
    assert result.value == heuristics.evaluate_basic_pronunciation("a dog ran fast today", "the cat sat", 0.5)


@pytest.mark.asyncio
async def test_evaluation_falls_back_on_prose_reply():
    gateway = FakeGateway("You did great, keep going!")

    result = await orchestrator.evaluate_pronunciation("the cat sat", "the cat sat", gateway, confidence=0.9)

    assert result.source is ResultSource.HEURISTIC
    assert isinstance(result.error, MalformedResponse)


@pytest.mark.asyncio
async def test_vocabulary_from_model_is_truncated_and_lowercased():
    content = "```json\n" + json.dumps([
        {"word": "Brave", "definition": "Not afraid", "difficulty_level": "beginner", "part_of_speech": "adjective",
         "example_sentence": "The fox was brave."},
        {"word": "Forest", "definition": "Many trees", "difficulty_level": "expert"},
        {"word": "Lantern", "definition": "A light you carry"},
    ]) + "\n```"
    gateway = FakeGateway(content)

    result = await orchestrator.extract_vocabulary(
        "A brave fox in a forest", gateway, difficulty_level=DifficultyLevel.INTERMEDIATE, max_words=2
    )

    assert result.source is ResultSource.AI
    assert [i.word for i in result.value] == ["brave", "forest"]
    assert result.value[0].part_of_speech == "adjective"
    # unknown levels fall back to the requested one
    assert result.value[1].difficulty_level is DifficultyLevel.INTERMEDIATE


@pytest.mark.asyncio
async def test_vocabulary_rejects_entries_without_word():
    gateway = FakeGateway('[{"definition": "orphan"}]')

    result = await orchestrator.extract_vocabulary("The brave little fox jumped", gateway, max_words=3)

    assert result.source is ResultSource.HEURISTIC
    assert [i.word for i in result.value] == ["brave", "little", "jumped"]


@pytest.mark.asyncio
async def test_image_analysis_persists_ai_description(repo):
    book = repo.add_book()
    page = repo.add_page(book.id, 1)
    gateway = FakeGateway('{"description": "A fox reads a book.", "vocabulary": [{"word": "Fox", "definition": "An animal"}]}')

    result = await orchestrator.analyze_image(page.image_url, gateway, context="story", page_id=page.id, pages=repo)

    assert result.source is ResultSource.AI
    assert result.value.description == "A fox reads a book."
    assert result.value.vocabulary[0].word == "fox"
    assert [s.succeeded for s in result.side_effects] == [True]
    assert repo.pages[page.id].image_description == "A fox reads a book."
    call = gateway.calls[0]
    assert call["profile"] == gateway.config.vision
    assert call["model"] == gateway.config.vision_model
    image_part = call["messages"][-1]["content"][-1]
    assert image_part == {"type": "image_url", "image_url": {"url": page.image_url, "detail": "high"}}


@pytest.mark.asyncio
async def test_image_analysis_fallback_is_persisted_too(repo):
    book = repo.add_book()
    page = repo.add_page(book.id, 1)
    gateway = FakeGateway(GatewayTimeout("slow"))

    result = await orchestrator.analyze_image(page.image_url, gateway, context="cover", page_id=page.id, pages=repo)

    assert result.source is ResultSource.HEURISTIC
    assert result.value.description == heuristics.CONTEXT_DESCRIPTIONS["cover"]
    assert result.value.vocabulary == []
    assert repo.pages[page.id].image_description == heuristics.CONTEXT_DESCRIPTIONS["cover"]


@pytest.mark.asyncio
async def test_image_analysis_survives_failed_save(repo):
    book = repo.add_book()
    page = repo.add_page(book.id, 1)
    repo.fail_updates = True
    gateway = FakeGateway('{"description": "A fox reads a book."}')

    result = await orchestrator.analyze_image(page.image_url, gateway, page_id=page.id, pages=repo)

    assert result.value.description == "A fox reads a book."
    outcome = result.side_effects[0]
    assert not outcome.succeeded
    assert "storage unavailable" in outcome.error


@pytest.mark.asyncio
async def test_image_analysis_without_page_has_no_side_effects(repo):
    gateway = FakeGateway('{"description": ""}')

    result = await orchestrator.analyze_image("https://cdn.example.test/p.png", gateway)

    assert result.value.description == orchestrator.DEFAULT_DESCRIPTION
    assert result.side_effects == []
    assert repo.description_updates == []


@pytest.mark.asyncio
async def test_fail_on_error_raises_instead_of_falling_back():
    gateway = FakeGateway(GatewayHTTPError(429, "rate limited"))

    with pytest.raises(GatewayHTTPError):
        await orchestrator.analyze_image("https://cdn.example.test/p.png", gateway, policy=ErrorPolicy.FAIL_ON_ERROR)


@pytest.mark.asyncio
async def test_fail_on_error_without_key_raises_unconfigured():
    gateway = FakeGateway("unused", config=ai_config(api_key="your-openai-api-key-here"))

    with pytest.raises(GatewayUnconfigured):
        await orchestrator.analyze_image("https://cdn.example.test/p.png", gateway, policy=ErrorPolicy.FAIL_ON_ERROR)
    assert gateway.calls == []


def _practice_context():
    return PracticeContext(
        book=BookContext(title="The Brave Fox", author="A. Writer"),
        current_page=PageContext(number=2, text_content="The fox ran home."),
    )


@pytest.mark.asyncio
async def test_speaking_practice_sends_recent_history():
    history = [ChatTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}") for i in range(14)]
    gateway = FakeGateway("  What do you see on this page?  ")

    result = await orchestrator.speaking_practice_reply("Tell me more", history, _practice_context(), gateway)

    assert result.source is ResultSource.AI
    assert result.value == "What do you see on this page?"
    messages = gateway.calls[0]["messages"]
    assert messages[0]["role"] == "system"
    assert "The Brave Fox" in messages[0]["content"]
    assert [m["content"] for m in messages[1:-1]] == [f"turn {i}" for i in range(4, 14)]
    assert messages[-1] == {"role": "user", "content": "Tell me more"}
    assert gateway.calls[0]["profile"] == gateway.config.chat


@pytest.mark.asyncio
async def test_speaking_practice_empty_reply_falls_back():
    gateway = FakeGateway("   ")

    result = await orchestrator.speaking_practice_reply("hello", [], _practice_context(), gateway)

    assert result.source is ResultSource.HEURISTIC
    assert result.value.startswith("Hello!")


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [
    '{"pronunciation_score": NaN, "fluency_score": 80, "accuracy_score": 80}',
    '{"pronunciation_score": 80, "fluency_score": 1e999, "accuracy_score": 80}',
    '{"pronunciation_score": 80, "fluency_score": 80, "accuracy_score": -Infinity}',
])
async def test_evaluation_with_non_finite_scores_falls_back(content):
    gateway = FakeGateway(content)

    result = await orchestrator.evaluate_pronunciation("the cat sat", "the cat sat", gateway, confidence=0.9)

    assert result.source is ResultSource.HEURISTIC
    assert isinstance(result.error, MalformedResponse)
    assert result.value.accuracy_score == 100


def _discussion_book():
    return Book(id="b1", title="The Brave Fox", description="a fox who finds a lantern",
                target_age_min=4, target_age_max=7, difficulty_level="intermediate")


@pytest.mark.asyncio
async def test_discussion_sends_recent_history_and_page():
    history = [ChatTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}") for i in range(10)]
    page = BookPage(id="p3", book_id="b1", page_number=3, text_content="The fox ran home.",
                    image_description="A fox at a red door.")
    gateway = FakeGateway("  The fox was looking for his family!  ")

    result = await orchestrator.discuss_book("Why did the fox run?", history, _discussion_book(), gateway, page=page)

    assert result.source is ResultSource.AI
    assert result.value == "The fox was looking for his family!"
    messages = gateway.calls[0]["messages"]
    system = messages[0]["content"]
    assert messages[0]["role"] == "system"
    assert '"The Brave Fox" - a fox who finds a lantern' in system
    assert "Target age: 4-7 years" in system
    assert 'Current page 3: "The fox ran home."' in system
    assert "Page illustration: A fox at a red door." in system
    assert [m["content"] for m in messages[1:-1]] == [f"turn {i}" for i in range(4, 10)]
    assert messages[-1] == {"role": "user", "content": "Why did the fox run?"}
    assert gateway.calls[0]["profile"] == gateway.config.discussion


@pytest.mark.asyncio
async def test_discussion_without_page_or_description():
    book = Book(id="b1", title="Moon Party")
    gateway = FakeGateway("It is about the moon.")

    await orchestrator.discuss_book("What is this about?", [], book, gateway)

    system = gateway.calls[0]["messages"][0]["content"]
    assert "No description available" in system
    assert "Target age: 3-12 years" in system
    assert "Current page" not in system


@pytest.mark.asyncio
async def test_discussion_blank_reply_uses_canned_answer():
    gateway = FakeGateway("   ")

    result = await orchestrator.discuss_book("hmm", [], _discussion_book(), gateway)

    assert result.source is ResultSource.AI
    assert result.value == orchestrator.EMPTY_DISCUSSION_REPLY


@pytest.mark.asyncio
@pytest.mark.parametrize("gateway", [
    FakeGateway(GatewayTimeout("AI call exceeded 15s")),
    FakeGateway("unused", config=ai_config(api_key=None)),
])
async def test_discussion_falls_back_to_keywords(gateway):
    result = await orchestrator.discuss_book("What happens in the story?", [], _discussion_book(), gateway)

    assert result.source is ResultSource.HEURISTIC
    assert "This story is about a fox who finds a lantern." in result.value
