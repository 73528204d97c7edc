from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional


class User(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str = "child"  # "child", "parent" or "admin"


class Book(BaseModel):
    id: str
    title: str
    author: Optional[str] = None
    description: Optional[str] = None
    difficulty_level: str = "beginner"
    category: Optional[str] = None
    is_public: bool = True
    uploaded_by: Optional[str] = None
    target_age_min: Optional[int] = None
    target_age_max: Optional[int] = None
    created_at: Optional[datetime] = None


class BookPage(BaseModel):
    id: str
    book_id: str
    page_number: int
    image_url: Optional[str] = None
    image_description: Optional[str] = None
    text_content: Optional[str] = None


class VocabularyWord(BaseModel):
    id: str
    word: str
    definition: str
    difficulty_level: str = "beginner"
    part_of_speech: str = "noun"
    example_sentence: Optional[str] = None
    created_by: Optional[str] = None


class BookList(BaseModel):
    books: List[Book] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 12


class BookDetail(Book):
    pages: List[BookPage] = Field(default_factory=list)


class UploadedPage(BaseModel):
    id: str
    page_number: int
    image_url: str
    filename: str
    has_description: bool = False


class FailedUpload(BaseModel):
    filename: str
    error: str


class UploadPagesResponse(BaseModel):
    message: str
    uploaded_pages: List[UploadedPage]
    failed_uploads: List[FailedUpload]
    total_files: int
