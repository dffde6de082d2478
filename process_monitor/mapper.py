"""Conversions between classifier outcomes, stored records and API responses."""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Optional
from .models import AnalysisRecord
from .schemas import AnalysisRequest, AnalysisResponse, ClassificationOutcome

CONFIDENCE_QUANTUM = Decimal("0.01")


class IncompleteOutcomeError(ValueError):
    """The classifier answered, but without a label or a score."""


FLOAT32_DIGITS = 7


def round_confidence(score: float) -> Decimal:
    # Scores are single precision: 0.014999999664723873 is read back as 0.015
    return Decimal(f"{score:.{FLOAT32_DIGITS}g}").quantize(CONFIDENCE_QUANTUM, rounding=ROUND_HALF_EVEN)


def _require_complete(outcome: Optional[ClassificationOutcome]) -> ClassificationOutcome:
    if outcome is None or outcome.label is None or outcome.score is None:
        raise IncompleteOutcomeError(f"incomplete classification outcome: {outcome!r}")
    return outcome


def to_record(request: AnalysisRequest, outcome: Optional[ClassificationOutcome]) -> AnalysisRecord:
    outcome = _require_complete(outcome)
    return AnalysisRecord(
        action=request.action,
        guideline=request.guideline,
        result=outcome.label,
        confidence=round_confidence(outcome.score),
        created_at=datetime.now(timezone.utc),
    )


def response_from_outcome(request: AnalysisRequest, outcome: Optional[ClassificationOutcome]) -> AnalysisResponse:
    outcome = _require_complete(outcome)
    return AnalysisResponse(
        action=request.action,
        guideline=request.guideline,
        result=outcome.label,
        confidence=round_confidence(outcome.score),
        timestamp=datetime.now(timezone.utc),
    )


def response_from_record(record: AnalysisRecord) -> AnalysisResponse:
    """Cache hits carry the time the analysis was first computed."""
    return AnalysisResponse(
        action=record.action,
        guideline=record.guideline,
        result=record.result,
        confidence=Decimal(str(record.confidence)).quantize(CONFIDENCE_QUANTUM),
        timestamp=as_utc(record.created_at),
    )


def as_utc(value: datetime) -> datetime:
    # SQLite hands DateTime(timezone=True) columns back naive
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
