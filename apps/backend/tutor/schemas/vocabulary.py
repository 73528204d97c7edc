from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class VocabularyItem(BaseModel):
    word: str
    definition: str
    difficulty_level: DifficultyLevel = DifficultyLevel.BEGINNER
    part_of_speech: str = "noun"
    example_sentence: str = ""

    @field_validator("word")
    @classmethod
    def canonical_word(cls, v: str) -> str:
        # lowercase form is the dedup key against stored words
        return v.strip().lower()


class ExtractVocabularyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    description: Optional[str] = None
    difficulty_level: DifficultyLevel = Field(default=DifficultyLevel.BEGINNER, alias="difficultyLevel")
    max_words: int = Field(default=5, ge=1, le=20, alias="maxWords")


class ExtractVocabularyResponse(BaseModel):
    message: str
    vocabulary: List[VocabularyItem]
    stored_count: int
    source: str
