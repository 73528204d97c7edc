from __future__ import annotations
import re
from typing import List, Optional, Protocol, Tuple

from beanie import PydanticObjectId

from tutor.db.models import UserDoc, BookDoc, BookPageDoc, VocabularyWordDoc, BookDiscussionDoc
from tutor.schemas.books import Book, BookPage, User, VocabularyWord
from tutor.schemas.vocabulary import VocabularyItem


class PageStore(Protocol):
    """The slice of the row store the AI pipeline writes through."""

    async def list_pages(self, book_id: str) -> List[BookPage]: ...

    async def update_page_description(self, page_id: str, description: str) -> None: ...


class BookRepository(PageStore, Protocol):
    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    async def list_books(
        self,
        difficulty: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 12,
    ) -> Tuple[List[Book], int]: ...

    async def get_book(self, book_id: str) -> Optional[Book]: ...

    async def get_page(self, page_id: str) -> Optional[BookPage]: ...

    async def find_page_by_number(self, book_id: str, page_number: int) -> Optional[BookPage]: ...

    async def create_page(
        self,
        book_id: str,
        page_number: int,
        image_url: str,
        image_description: Optional[str] = None,
    ) -> BookPage: ...

    async def find_vocabulary_word(self, word: str) -> Optional[VocabularyWord]: ...

    async def insert_vocabulary_word(self, item: VocabularyItem, created_by: Optional[str] = None) -> VocabularyWord: ...

    async def save_discussion(
        self,
        user_id: str,
        book_id: str,
        page_number: Optional[int],
        user_message: str,
        ai_response: str,
    ) -> None: ...


def _object_id(value: str) -> Optional[PydanticObjectId]:
    if not value or not PydanticObjectId.is_valid(value):
        return None
    return PydanticObjectId(value)


def _user(doc: UserDoc) -> User:
    return User(id=str(doc.id), email=doc.email, name=doc.name, role=doc.role)


def _book(doc: BookDoc) -> Book:
    return Book(id=str(doc.id), **doc.model_dump(exclude={"id", "revision_id"}))


def _page(doc: BookPageDoc) -> BookPage:
    return BookPage(
        id=str(doc.id),
        book_id=doc.book_id,
        page_number=doc.page_number,
        image_url=doc.image_url,
        image_description=doc.image_description,
        text_content=doc.text_content,
    )


def _word(doc: VocabularyWordDoc) -> VocabularyWord:
    return VocabularyWord(
        id=str(doc.id),
        word=doc.word,
        definition=doc.definition,
        difficulty_level=doc.difficulty_level,
        part_of_speech=doc.part_of_speech,
        example_sentence=doc.example_sentence,
        created_by=doc.created_by,
    )


class MongoBookRepository:
    """Row store backed by the beanie documents in ``tutor.db.models``."""

    async def get_user_by_email(self, email: str) -> Optional[User]:
        doc = await UserDoc.find_one(UserDoc.email == email)
        return _user(doc) if doc else None

    async def list_books(
        self,
        difficulty: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 12,
    ) -> Tuple[List[Book], int]:
        query = BookDoc.find(BookDoc.is_public == True)  # noqa: E712
        if difficulty:
            query = query.find(BookDoc.difficulty_level == difficulty)
        if category:
            query = query.find(BookDoc.category == category)
        if search:
            query = query.find({"title": {"$regex": re.escape(search), "$options": "i"}})

        total = await query.count()
        docs = await query.sort(-BookDoc.created_at).skip(offset).limit(limit).to_list()
        return [_book(d) for d in docs], total

    async def get_book(self, book_id: str) -> Optional[Book]:
        oid = _object_id(book_id)
        doc = await BookDoc.get(oid) if oid else None
        return _book(doc) if doc else None

    async def get_page(self, page_id: str) -> Optional[BookPage]:
        oid = _object_id(page_id)
        doc = await BookPageDoc.get(oid) if oid else None
        return _page(doc) if doc else None

    async def list_pages(self, book_id: str) -> List[BookPage]:
        docs = await BookPageDoc.find(BookPageDoc.book_id == book_id).sort(+BookPageDoc.page_number).to_list()
        return [_page(d) for d in docs]

    async def find_page_by_number(self, book_id: str, page_number: int) -> Optional[BookPage]:
        doc = await BookPageDoc.find_one(
            BookPageDoc.book_id == book_id,
            BookPageDoc.page_number == page_number,
        )
        return _page(doc) if doc else None

    async def create_page(
        self,
        book_id: str,
        page_number: int,
        image_url: str,
        image_description: Optional[str] = None,
    ) -> BookPage:
        doc = BookPageDoc(
            book_id=book_id,
            page_number=page_number,
            image_url=image_url,
            image_description=image_description,
        )
        await doc.insert()
        return _page(doc)

    async def update_page_description(self, page_id: str, description: str) -> None:
        oid = _object_id(page_id)
        doc = await BookPageDoc.get(oid) if oid else None
        if not doc:
            raise LookupError(f"Book page {page_id} not found")
        await doc.update({"$set": {"image_description": description}})

    async def find_vocabulary_word(self, word: str) -> Optional[VocabularyWord]:
        doc = await VocabularyWordDoc.find_one(VocabularyWordDoc.word == word.lower())
        return _word(doc) if doc else None

    async def insert_vocabulary_word(self, item: VocabularyItem, created_by: Optional[str] = None) -> VocabularyWord:
        doc = VocabularyWordDoc(
            word=item.word.lower(),
            definition=item.definition,
            difficulty_level=item.difficulty_level.value,
            part_of_speech=item.part_of_speech or "noun",
            example_sentence=item.example_sentence or f"This is an example with {item.word}.",
            created_by=created_by,
        )
        await doc.insert()
        return _word(doc)

    async def save_discussion(
        self,
        user_id: str,
        book_id: str,
        page_number: Optional[int],
        user_message: str,
        ai_response: str,
    ) -> None:
        await BookDiscussionDoc(
            user_id=user_id,
            book_id=book_id,
            page_number=page_number,
            user_message=user_message,
            ai_response=ai_response,
        ).insert()
