from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional
from tutor.schemas.vocabulary import VocabularyItem


class ImageAnalysis(BaseModel):
    description: str
    vocabulary: List[VocabularyItem] = Field(default_factory=list)


class AnalyzeImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    page_id: Optional[str] = Field(default=None, alias="pageId")
    context: Optional[str] = None


class AnalyzeImageResponse(ImageAnalysis):
    updated_page: bool = False
    source: str


class BatchStatus(str, Enum):
    ANALYZED = "analyzed"
    SKIPPED = "skipped"
    FAILED = "failed"


class BatchItemOutcome(BaseModel):
    item_id: str
    ordinal: int
    status: BatchStatus
    error_message: Optional[str] = None
    description: Optional[str] = None


class BatchReport(BaseModel):
    total_items: int = 0
    analyzed: int = 0
    skipped: int = 0
    failed: int = 0
    details: List[BatchItemOutcome] = Field(default_factory=list)

    @model_validator(mode="after")
    def counts_match_details(self) -> "BatchReport":
        if self.analyzed + self.skipped + self.failed != self.total_items:
            raise ValueError("batch counts do not add up to total_items")
        if len(self.details) != self.total_items:
            raise ValueError("one outcome per item is required")
        return self


class BatchAnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    force_reanalyze: bool = Field(default=False, alias="forceReanalyze")


class BatchAnalyzeResponse(BaseModel):
    message: str
    summary: BatchReport


class RegenerateDescriptionResponse(BaseModel):
    message: str
    description: str
