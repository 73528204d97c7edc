from datetime import datetime
from pydantic import Field
from beanie import Document
from typing import Optional


class UserDoc(Document):
    email: str
    name: Optional[str] = None
    role: str = "child"  # "child", "parent" or "admin"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
        indexes = ["email"]


class BookDoc(Document):
    title: str
    author: Optional[str] = None
    description: Optional[str] = None
    difficulty_level: str = "beginner"
    category: Optional[str] = None
    is_public: bool = True
    uploaded_by: Optional[str] = None  # UserDoc.id as string
    target_age_min: Optional[int] = None
    target_age_max: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "books"
        indexes = ["difficulty_level", "category", "uploaded_by"]


class BookPageDoc(Document):
    book_id: str
    page_number: int
    image_url: Optional[str] = None
    image_description: Optional[str] = None
    text_content: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "book_pages"
        indexes = ["book_id", "page_number"]


class VocabularyWordDoc(Document):
    word: str  # always lowercase
    definition: str
    difficulty_level: str = "beginner"
    part_of_speech: str = "noun"
    example_sentence: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "vocabulary_words"
        indexes = ["word"]


class BookDiscussionDoc(Document):
    user_id: str
    book_id: str
    page_number: Optional[int] = None
    user_message: str
    ai_response: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "book_discussions"
        indexes = ["user_id", "book_id"]
