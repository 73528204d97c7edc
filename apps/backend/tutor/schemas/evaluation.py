from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


DEFAULT_CONFIDENCE = 0.8


class EvaluationRequest(BaseModel):
    """A learner's spoken attempt at reading a target passage aloud."""
    model_config = ConfigDict(populate_by_name=True)

    transcript: Optional[str] = None
    target_text: Optional[str] = Field(default=None, alias="targetText")
    confidence: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)


class EvaluationResult(BaseModel):
    pronunciation_score: int = Field(ge=0, le=100)
    fluency_score: int = Field(ge=0, le=100)
    accuracy_score: int = Field(ge=0, le=100)
    suggestions: List[str]
