from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional
from pydantic import BaseModel, field_serializer


class AnalysisRequest(BaseModel):
    # Blank and missing values are rejected by AnalyzeOperation, not here
    action: Optional[str] = None
    guideline: Optional[str] = None


class ClassificationOutcome(BaseModel):
    label: Optional[str] = None
    score: Optional[float] = None


class AnalysisResponse(BaseModel):
    action: Optional[str] = None
    guideline: Optional[str] = None
    result: Optional[str] = None
    confidence: Optional[Decimal] = None
    timestamp: datetime

    @field_serializer("confidence")
    def _confidence_as_number(self, value: Optional[Decimal]):
        return float(value) if value is not None else None


class AnalysesSummaryResponse(BaseModel):
    count: int = 0
    resultsCount: Optional[Dict[str, int]] = None
