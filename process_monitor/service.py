from typing import List, Optional
from .hf_client import Classifier
from .mapper import IncompleteOutcomeError, response_from_outcome, response_from_record, to_record
from .models import AnalysisRecord
from .repository import ResultStore
from .schemas import AnalysesSummaryResponse, AnalysisRequest, AnalysisResponse
from .utils.logging import get_logger

log = get_logger(__name__)


class InvalidRequestError(ValueError):
    """Action or guideline is missing or blank."""


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class AnalyzeOperation:
    """Answers compliance questions, asking the classifier at most once per pair."""

    def __init__(self, classifier: Classifier, repository: ResultStore):
        self.classifier = classifier
        self.repository = repository

    def execute(self, request: Optional[AnalysisRequest]) -> AnalysisResponse:
        if request is None or _is_blank(request.action) or _is_blank(request.guideline):
            raise InvalidRequestError("Invalid request")

        existing = self.repository.find_one(
            AnalysisRecord,
            AnalysisRecord.action == request.action,
            AnalysisRecord.guideline == request.guideline,
        )
        if existing is not None:
            log.debug(f"Cache hit id={existing.id}")
            return response_from_record(existing)

        # TransportError propagates as is
        outcome = self.classifier.classify(request.action, request.guideline)

        try:
            record = to_record(request, outcome)
        except IncompleteOutcomeError:
            log.exception("Error during classification, analysis not saved")
        else:
            self.repository.add(record)

        return response_from_outcome(request, outcome)

    def get_history(self) -> Optional[List[AnalysisResponse]]:
        records = self.repository.find_all(AnalysisRecord)
        if not records:
            return None
        responses = [response_from_record(r) for r in records]
        return sorted(responses, key=lambda r: r.timestamp, reverse=True)

    def get_summary(self) -> AnalysesSummaryResponse:
        results_count = self.repository.count_by_column(AnalysisRecord, AnalysisRecord.result)
        if not results_count:
            return AnalysesSummaryResponse(count=0, resultsCount=None)
        return AnalysesSummaryResponse(
            count=sum(results_count.values()),
            resultsCount=dict(results_count),
        )
