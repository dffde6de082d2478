"""Tests for AnalyzeOperation: cache lookup, classification and aggregates."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from process_monitor.hf_client import TransportError
from process_monitor.mapper import IncompleteOutcomeError
from process_monitor.models import AnalysisRecord
from process_monitor.schemas import AnalysisRequest, ClassificationOutcome
from process_monitor.service import AnalyzeOperation, InvalidRequestError

from conftest import FakeClassifier


class FailingClassifier:
    def __init__(self):
        self.calls = 0

    def classify(self, action, guideline):
        self.calls += 1
        raise TransportError("classifier_failed status=503")


class RecordingStore:
    """In-memory store whose writes can be made to fail."""

    def __init__(self, add_result=True):
        self.add_result = add_result
        self.records = []
        self.added = []
        self.lookups = 0

    def find_one(self, model, *criteria):
        self.lookups += 1
        return None

    def find_all(self, model):
        return list(self.records) or None

    def add(self, entity):
        self.added.append(entity)
        return self.add_result

    def count_by_column(self, model, column):
        return {}


def _request(action="Shared the customer list by email", guideline="Customer data must stay in the CRM"):
    return AnalysisRequest(action=action, guideline=guideline)


class TestValidation:
    @pytest.mark.parametrize("action,guideline", [
        (None, "Test guideline"),
        ("", "Test guideline"),
        ("   ", "Test guideline"),
        ("Test action", None),
        ("Test action", ""),
        ("Test action", "   "),
    ])
    def test_blank_fields_rejected_before_any_io(self, action, guideline):
        classifier, store = FakeClassifier(), RecordingStore()
        operation = AnalyzeOperation(classifier, store)

        with pytest.raises(InvalidRequestError, match="Invalid request"):
            operation.execute(AnalysisRequest(action=action, guideline=guideline))

        assert classifier.calls == []
        assert store.lookups == 0
        assert store.added == []

    def test_missing_request_rejected(self):
        operation = AnalyzeOperation(FakeClassifier(), RecordingStore())

        with pytest.raises(InvalidRequestError):
            operation.execute(None)


class TestExecute:
    def test_miss_classifies_and_persists(self, operation, classifier, repository):
        response = operation.execute(_request())

        assert response.result == "COMPLIES"
        assert response.confidence == Decimal("0.99")
        assert len(classifier.calls) == 1
        stored = repository.find_all(AnalysisRecord)
        assert len(stored) == 1
        assert stored[0].result == "COMPLIES"
        assert stored[0].confidence == Decimal("0.99")

    def test_classifier_receives_action_and_guideline(self, operation, classifier):
        operation.execute(_request(action="A", guideline="G"))

        assert classifier.calls == [("A", "G")]

    def test_second_call_is_served_from_store(self, operation, classifier):
        first = operation.execute(_request())
        second = operation.execute(_request())

        assert len(classifier.calls) == 1
        assert second.result == first.result
        assert second.confidence == first.confidence

    def test_cache_hit_returns_original_timestamp(self, operation, repository):
        created = datetime(2023, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
        repository.add(AnalysisRecord(
            "Shared the customer list by email",
            "Customer data must stay in the CRM",
            "DEVIATES",
            Decimal("0.77"),
            created_at=created,
        ))

        response = operation.execute(_request())

        assert response.result == "DEVIATES"
        assert response.timestamp == created

    def test_concurrent_misses_store_one_record(self, operation, classifier):
        with ThreadPoolExecutor(max_workers=8) as pool:
            responses = list(pool.map(lambda _: operation.execute(_request()), range(8)))

        assert {r.result for r in responses} == {"COMPLIES"}
        assert 1 <= len(classifier.calls) <= 8
        summary = operation.get_summary()
        assert summary.count == 1
        assert summary.resultsCount == {"COMPLIES": 1}

    def test_lookup_is_exact(self, operation, classifier):
        operation.execute(_request(action="Action"))
        operation.execute(_request(action="action"))

        assert len(classifier.calls) == 2

    def test_transport_error_propagates(self, repository):
        classifier = FailingClassifier()
        operation = AnalyzeOperation(classifier, repository)

        with pytest.raises(TransportError):
            operation.execute(_request())

        assert classifier.calls == 1
        assert repository.find_all(AnalysisRecord) is None

    def test_failed_write_still_returns_response(self):
        classifier = FakeClassifier(ClassificationOutcome(label="UNCLEAR", score=0.5049))
        store = RecordingStore(add_result=False)
        operation = AnalyzeOperation(classifier, store)

        response = operation.execute(_request())

        assert len(store.added) == 1
        assert response.result == "UNCLEAR"
        assert response.confidence == Decimal("0.50")
        assert response.action == "Shared the customer list by email"

    def test_failed_write_means_next_call_classifies_again(self):
        classifier = FakeClassifier()
        operation = AnalyzeOperation(classifier, RecordingStore(add_result=False))

        operation.execute(_request())
        operation.execute(_request())

        assert len(classifier.calls) == 2

    @pytest.mark.parametrize("outcome", [
        ClassificationOutcome(),
        ClassificationOutcome(label="COMPLIES"),
        ClassificationOutcome(score=0.8),
    ])
    def test_incomplete_outcome_skips_persistence_then_fails(self, outcome):
        store = RecordingStore()
        operation = AnalyzeOperation(FakeClassifier(outcome), store)

        with pytest.raises(IncompleteOutcomeError):
            operation.execute(_request())

        assert store.added == []


class TestHistory:
    def test_empty_history_is_none(self, operation):
        assert operation.get_history() is None

    def test_newest_first(self, operation, repository):
        t1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
        t2 = t1 + timedelta(hours=1)
        t3 = t2 + timedelta(hours=1)
        for name, created in (("second", t2), ("third", t3), ("first", t1)):
            repository.add(AnalysisRecord(name, "guideline", "COMPLIES", Decimal("0.9"), created_at=created))

        history = operation.get_history()

        assert [h.action for h in history] == ["third", "second", "first"]
        assert [h.timestamp for h in history] == [t3, t2, t1]

    def test_history_does_not_call_classifier(self, operation, classifier, repository):
        repository.add(AnalysisRecord("a", "g", "COMPLIES", Decimal("0.9")))

        operation.get_history()

        assert classifier.calls == []


class TestSummary:
    def test_empty_summary(self, operation):
        summary = operation.get_summary()

        assert summary.count == 0
        assert summary.resultsCount is None

    def test_counts_by_result(self, operation, repository):
        results = ["COMPLIES", "DEVIATES", "COMPLIES", "UNCLEAR", "COMPLIES"]
        for i, result in enumerate(results):
            repository.add(AnalysisRecord(f"action {i}", "guideline", result, Decimal("0.6")))

        summary = operation.get_summary()

        assert summary.count == 5
        assert summary.resultsCount == {"COMPLIES": 3, "DEVIATES": 1, "UNCLEAR": 1}

    def test_summary_reflects_executed_analyses(self, operation):
        operation.execute(_request(action="one"))
        operation.execute(_request(action="two"))
        operation.execute(_request(action="one"))

        summary = operation.get_summary()

        assert summary.count == 2
        assert summary.resultsCount == {"COMPLIES": 2}
