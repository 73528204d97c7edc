"""Rule-based stand-ins for every AI-backed answer.

These never touch the network or storage and never raise on well-formed
input, so a request can always be answered even with AI switched off.
"""
from __future__ import annotations
import math
import re
from typing import List, Optional

from tutor.schemas.books import Book
from tutor.schemas.evaluation import EvaluationResult
from tutor.schemas.vocabulary import DifficultyLevel, VocabularyItem
from tutor.schemas.messages import PracticeContext

_PUNCTUATION = re.compile(r"[.,!?;:]")
_NON_WORD = re.compile(r"[^\w\s]")

SUGGEST_ACCURACY = "Try to pronounce each word clearly and distinctly"
SUGGEST_PRONUNCIATION = "Speak more confidently and clearly"
SUGGEST_FLUENCY = "Try to match the rhythm and pace of natural speech"
SUGGEST_PRAISE = "Great job! Keep practicing to improve further."

STOPWORDS = frozenset({
    "this", "that", "with", "from", "they", "have", "been", "were", "said",
    "each", "which", "their", "time", "will", "about", "would", "there",
    "could", "other", "more", "very", "what", "know", "just", "first", "into",
    "over", "think", "also", "your", "work", "life", "only", "still",
    "should", "after", "being", "made", "before", "here", "through", "when",
    "where", "much", "some", "these", "many", "then", "them", "well",
})

CONTEXT_DESCRIPTIONS = {
    "cover": "This is the cover of a children's book with colorful illustrations.",
    "story": "This page shows an illustration from the story with characters and scenes.",
    "educational": "This educational illustration helps children learn new concepts.",
    "default": "This image shows an interesting scene that helps tell the story.",
}


def clamp_score(value: float) -> int:
    """Round half up and clamp into 0..100."""
    return max(0, min(100, int(math.floor(value + 0.5))))


def tokenize(text: str) -> List[str]:
    return _PUNCTUATION.sub("", (text or "").lower()).split()


def evaluate_basic_pronunciation(transcript: str, target_text: str, confidence: float) -> EvaluationResult:
    """Score a reading attempt by strict positional word comparison."""
    target_words = tokenize(target_text)
    spoken_words = tokenize(transcript)

    matched = sum(1 for spoken, target in zip(spoken_words, target_words) if spoken == target)
    accuracy = matched / len(target_words) * 100 if target_words else 0.0
    pronunciation = confidence * 100
    fluency = max(0, 100 - abs(len(spoken_words) - len(target_words)) * 10)

    suggestions = []
    if accuracy < 80:
        suggestions.append(SUGGEST_ACCURACY)
    if pronunciation < 70:
        suggestions.append(SUGGEST_PRONUNCIATION)
    if fluency < 70:
        suggestions.append(SUGGEST_FLUENCY)
    if not suggestions:
        suggestions.append(SUGGEST_PRAISE)

    return EvaluationResult(
        pronunciation_score=clamp_score(pronunciation),
        fluency_score=clamp_score(fluency),
        accuracy_score=clamp_score(accuracy),
        suggestions=suggestions,
    )


def extract_basic_vocabulary(
    description: str,
    difficulty_level: DifficultyLevel | str = DifficultyLevel.BEGINNER,
    max_words: int = 5,
) -> List[VocabularyItem]:
    words = _NON_WORD.sub("", (description or "").lower()).split()

    unique: List[str] = []
    for word in words:
        if not 3 < len(word) < 12 or word in STOPWORDS or word in unique:
            continue
        unique.append(word)
        if len(unique) >= max_words:
            break

    return [
        VocabularyItem(
            word=word,
            definition=f"A word that appears in the story: {word}",
            difficulty_level=difficulty_level,
            part_of_speech="noun",
            example_sentence=f"The story mentions {word}.",
        )
        for word in unique
    ]


def basic_image_description(context: Optional[str] = None) -> str:
    key = (context or "default").lower()
    return CONTEXT_DESCRIPTIONS.get(key, CONTEXT_DESCRIPTIONS["default"])


def basic_practice_reply(message: str, context: PracticeContext) -> str:
    """Keyword-driven tutor reply used when the chat model is unavailable."""
    text = message.lower()
    title = context.book.title if context.book else "this book"
    page = context.current_page
    number = page.number if page else 1
    page_text = (page.text_content if page else None) or ""
    scene = (page.image_description if page else None) or ""

    if re.search(r"\b(hello|hi)\b", text):
        return (
            f"Hello! I'm excited to help you practice speaking English with \"{title}\"! "
            f"We're on page {number}. What would you like to talk about from this page?"
        )
    if "character" in text or "who" in text:
        quote = f" The text says: \"{page_text[:100]}...\"" if page_text else ""
        return (
            f"Great question about the characters! Looking at page {number}, let's practice "
            f"speaking about the characters we see.{quote} Can you tell me what you think "
            "about the main character? Try to speak your thoughts out loud!"
        )
    if "what happen" in text or "story" in text:
        return (
            f"Excellent! Let's practice describing what's happening in the story. On page {number}, "
            f"{scene or 'we can see an interesting scene'}. Can you describe what you see in your own "
            "words? Don't worry about making mistakes - practice makes perfect!"
        )
    if "word" in text or "vocabulary" in text or "meaning" in text:
        if page_text:
            sentence = page_text.split(".")[0]
            lead = f"From the text on this page, let's pick some interesting words to practice. Try reading this sentence aloud: \"{sentence}.\""
        else:
            lead = "Let's practice some vocabulary from this page."
        return f"That's a great way to improve your vocabulary! {lead} Which words would you like to learn more about?"
    if "read" in text or "practice" in text:
        if page_text:
            return (
                f"Perfect! Reading practice is so important. Let's practice reading from page {number}. "
                f"Try reading this part slowly and clearly: \"{page_text[:150]}...\" "
                "Take your time and focus on pronunciation!"
            )
        return (
            f"Perfect! Reading practice is so important. Let's practice describing what we see on "
            f"page {number}. Look at the image and try to describe it in English!"
        )

    return (
        f"That's an interesting point! I love that you're engaging with \"{title}\". On page {number}, "
        f"there's so much to explore. {scene or 'The illustration shows us important details about the story.'} "
        "What aspect of this page would you like to practice speaking about? Remember, the more you "
        "practice speaking, the more confident you'll become!"
    )


def age_range(book: Book) -> str:
    if book.target_age_min is None or book.target_age_max is None:
        return "3-12"
    return f"{book.target_age_min}-{book.target_age_max}"


def basic_discussion_reply(message: str, book: Book) -> str:
    """Keyword-driven answer for the book discussion when the model is unavailable."""
    text = message.lower()
    title = book.title

    if "what" in text and ("happen" in text or "story" in text):
        about = book.description or "a wonderful adventure"
        return f"That's a great question about \"{title}\"! This story is about {about}. What part of the story interests you the most?"
    if "who" in text and ("character" in text or "main" in text):
        return (
            f"The characters in \"{title}\" are really interesting! This book is designed for children aged "
            f"{age_range(book)}. Can you tell me which character you like best?"
        )
    if "why" in text or "how" in text:
        return (
            f"That's a thoughtful question! \"{title}\" has many interesting parts to explore. "
            "What made you think about that? I'd love to hear your ideas!"
        )
    if "word" in text or "mean" in text:
        return (
            "Great question about vocabulary! Learning new words is so important. Can you tell me which "
            "word you'd like to understand better? I can help explain it!"
        )
    if "like" in text or "favorite" in text:
        return (
            f"I love hearing about your favorites! \"{title}\" has so many wonderful parts. "
            "What do you like most about this story?"
        )

    return (
        f"That's an interesting thought about \"{title}\"! This {book.difficulty_level} level book has lots "
        "to discover. Can you tell me more about what you're thinking?"
    )
