from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class BookContext(BaseModel):
    title: str
    author: Optional[str] = None
    description: Optional[str] = None
    difficulty_level: Optional[str] = None
    age_range: Optional[str] = None
    page_count: Optional[int] = None


class PageContext(BaseModel):
    number: int
    text_content: Optional[str] = None
    image_description: Optional[str] = None
    image_url: Optional[str] = None


class PracticeContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    book: Optional[BookContext] = None
    current_page: Optional[PageContext] = Field(default=None, alias="currentPage")
    practice_mode: Optional[str] = Field(default=None, alias="practiceMode")


class SpeakingPracticeRequest(BaseModel):
    """Chat message sent while practicing speaking about a book page."""
    message: Optional[str] = None
    history: List[ChatTurn] = Field(default_factory=list)
    context: Optional[PracticeContext] = None


class SpeakingPracticeResponse(BaseModel):
    success: bool = True
    response: str
    source: str
    timestamp: str


class DiscussBookRequest(BaseModel):
    """A child's question about a book, optionally tied to one page."""
    model_config = ConfigDict(populate_by_name=True)

    book_id: Optional[str] = Field(default=None, alias="bookId")
    page_number: Optional[int] = Field(default=None, alias="pageNumber")
    message: Optional[str] = None
    conversation_history: List[ChatTurn] = Field(default_factory=list, alias="conversationHistory")


class DiscussBookResponse(BaseModel):
    message: str
    response: str
    book_title: str
    page_number: Optional[int] = None
    source: str
