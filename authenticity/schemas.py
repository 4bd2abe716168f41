from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict, Field

STRENGTHS = ("Strong", "Moderate", "Weak")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Indicator(BaseModel):
    name: str
    strength: str


class AnalysisCreate(_CamelModel):
    filename: str
    original_size: int = Field(alias="originalSize")
    dimensions: str
    classification: str
    confidence: int
    processing_time: float = Field(alias="processingTime")
    indicators: List[str] = Field(default_factory=list)


class AnalysisRecord(AnalysisCreate):
    id: str
    created_at: datetime = Field(
        alias="createdAt", default_factory=lambda: datetime.now(timezone.utc)
    )


class AnalysisResponse(_CamelModel):
    id: str
    classification: str
    confidence: int
    processing_time: float = Field(alias="processingTime")
    image_size: str = Field(alias="imageSize")
    indicators: List[Indicator]
    filename: str
    original_size: int = Field(alias="originalSize")

    @classmethod
    def from_record(cls, record: AnalysisRecord) -> "AnalysisResponse":
        return cls(
            id=record.id,
            classification=record.classification,
            confidence=record.confidence,
            processing_time=record.processing_time,
            image_size=record.dimensions,
            indicators=[
                Indicator(name=name, strength=STRENGTHS[i % len(STRENGTHS)])
                for i, name in enumerate(record.indicators)
            ],
            filename=record.filename,
            original_size=record.original_size,
        )
