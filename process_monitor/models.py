from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Index, Integer, Numeric, Text
from .db import Base


def _utcnow():
    return datetime.now(timezone.utc)


class AnalysisRecord(Base):
    __tablename__ = "analysis"
    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(Text, nullable=False)
    guideline = Column(Text, nullable=False)
    result = Column(Text, nullable=False)
    confidence = Column(Numeric(18, 2, asdecimal=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    __table_args__ = (
        # One stored answer per (action, guideline) pair
        Index("ix_analysis_action_guideline", "action", "guideline", unique=True),
        Index("ix_analysis_id", "id", unique=True),
    )

    def __init__(self, action: str, guideline: str, result: str, confidence, created_at=None):
        super().__init__(
            action=action,
            guideline=guideline,
            result=result,
            confidence=confidence,
            created_at=created_at or _utcnow(),
        )

    def __repr__(self):
        return f"AnalysisRecord(id={self.id!r}, result={self.result!r}, confidence={self.confidence!r})"
