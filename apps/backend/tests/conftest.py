import uuid
from typing import List, Optional, Tuple

import pytest

from tutor.ai.gateway import RawCompletion
from tutor.core.config import AIConfig, CallProfile
from tutor.schemas.books import Book, BookPage, User, VocabularyWord
from tutor.schemas.vocabulary import VocabularyItem

TEST_API_KEY = "sk-test-0123456789abcdef"


def ai_config(api_key: Optional[str] = TEST_API_KEY, **overrides) -> AIConfig:
    """AIConfig with no backoff or batch pacing so tests run instantly."""
    fast = CallProfile(max_attempts=1, base_delay_s=0.0, timeout_s=1.0)
    values = dict(
        api_key=api_key,
        base_url="https://ai.example.test/v1",
        text=fast,
        vision=fast,
        batch_vision=fast,
        chat=fast,
        discussion=fast,
        batch_delay_s=0.0,
    )
    values.update(overrides)
    return AIConfig(**values)


class FakeGateway:
    """Stands in for GatewayClient; replays scripted contents or errors in order."""

    def __init__(self, *responses, config: Optional[AIConfig] = None):
        self.config = config or ai_config()
        self.responses = list(responses)
        self.calls: List[dict] = []

    @property
    def available(self) -> bool:
        return self.config.availability.usable

    async def complete(self, messages, profile, model=None) -> RawCompletion:
        self.calls.append({"messages": messages, "profile": profile, "model": model})
        if not self.responses:
            raise AssertionError("FakeGateway called more times than scripted")
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return RawCompletion(content=response)


class InMemoryRepository:
    def __init__(self):
        self.users: dict[str, User] = {}
        self.books: dict[str, Book] = {}
        self.pages: dict[str, BookPage] = {}
        self.words: dict[str, VocabularyWord] = {}
        self.fail_updates = False
        self.fail_creates = False
        self.fail_discussions = False
        self.discussions: List[dict] = []
        self.description_updates: List[Tuple[str, str]] = []

    # seeding helpers
    def add_user(self, email: str, role: str = "child") -> User:
        user = User(id=uuid.uuid4().hex, email=email, role=role)
        self.users[user.id] = user
        return user

    def add_book(self, title: str = "The Brave Fox", uploaded_by: Optional[str] = None, **fields) -> Book:
        book = Book(id=uuid.uuid4().hex, title=title, uploaded_by=uploaded_by, **fields)
        self.books[book.id] = book
        return book

    def add_page(self, book_id: str, page_number: int, description: Optional[str] = None,
                 image_url: Optional[str] = "https://cdn.example.test/page.png") -> BookPage:
        page = BookPage(
            id=uuid.uuid4().hex,
            book_id=book_id,
            page_number=page_number,
            image_url=image_url,
            image_description=description,
        )
        self.pages[page.id] = page
        return page

    # BookRepository
    async def get_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.email == email), None)

    async def list_books(self, difficulty=None, category=None, search=None, offset=0, limit=12):
        books = [b for b in self.books.values() if b.is_public]
        if difficulty:
            books = [b for b in books if b.difficulty_level == difficulty]
        if category:
            books = [b for b in books if b.category == category]
        if search:
            books = [b for b in books if search.lower() in b.title.lower()]
        return books[offset:offset + limit], len(books)

    async def get_book(self, book_id: str) -> Optional[Book]:
        return self.books.get(book_id)

    async def get_page(self, page_id: str) -> Optional[BookPage]:
        return self.pages.get(page_id)

    async def list_pages(self, book_id: str) -> List[BookPage]:
        pages = [p for p in self.pages.values() if p.book_id == book_id]
        return sorted(pages, key=lambda p: p.page_number)

    async def find_page_by_number(self, book_id: str, page_number: int) -> Optional[BookPage]:
        return next(
            (p for p in self.pages.values() if p.book_id == book_id and p.page_number == page_number),
            None,
        )

    async def create_page(self, book_id, page_number, image_url, image_description=None) -> BookPage:
        if self.fail_creates:
            raise RuntimeError("insert failed")
        return self.add_page(book_id, page_number, image_description, image_url=image_url)

    async def update_page_description(self, page_id: str, description: str) -> None:
        if self.fail_updates:
            raise RuntimeError("storage unavailable")
        page = self.pages.get(page_id)
        if not page:
            raise LookupError(f"Book page {page_id} not found")
        self.pages[page_id] = page.model_copy(update={"image_description": description})
        self.description_updates.append((page_id, description))

    async def find_vocabulary_word(self, word: str) -> Optional[VocabularyWord]:
        return self.words.get(word.lower())

    async def insert_vocabulary_word(self, item: VocabularyItem, created_by: Optional[str] = None) -> VocabularyWord:
        stored = VocabularyWord(
            id=uuid.uuid4().hex,
            word=item.word.lower(),
            definition=item.definition,
            difficulty_level=item.difficulty_level.value,
            part_of_speech=item.part_of_speech,
            example_sentence=item.example_sentence,
            created_by=created_by,
        )
        self.words[stored.word] = stored
        return stored

    async def save_discussion(self, user_id, book_id, page_number, user_message, ai_response) -> None:
        if self.fail_discussions:
            raise RuntimeError("discussion log unavailable")
        self.discussions.append({
            "user_id": user_id,
            "book_id": book_id,
            "page_number": page_number,
            "user_message": user_message,
            "ai_response": ai_response,
        })


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()
