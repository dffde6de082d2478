from typing import List, Optional, Tuple

import pytest

from process_monitor.db import create_tables, init_engine_and_session
from process_monitor.repository import SQLRepository
from process_monitor.schemas import ClassificationOutcome
from process_monitor.service import AnalyzeOperation


class FakeClassifier:
    """Returns a fixed outcome and records every call."""

    def __init__(self, outcome: Optional[ClassificationOutcome] = None):
        self.outcome = outcome or ClassificationOutcome(label="COMPLIES", score=0.9876)
        self.calls: List[Tuple[str, str]] = []

    def classify(self, action, guideline):
        self.calls.append((action, guideline))
        return self.outcome


@pytest.fixture
def repository(tmp_path):
    engine, SessionLocal = init_engine_and_session(f"sqlite:///{tmp_path / 'analyses.db'}")
    create_tables(engine)
    yield SQLRepository(SessionLocal)
    engine.dispose()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def operation(classifier, repository):
    return AnalyzeOperation(classifier, repository)
